"""metro: record benchmark timings across git revisions and compare them."""

__version__ = "0.3.0"
