"""Benchmark and plot configuration.

Handles:
- Loading a metro profile from YAML.
- Merging CLI options over profile values.
- Validating the final configuration before anything runs.

Profile format::

    data_file: bench/metro.csv
    command: ["cargo", "bench"]
    repeat: 3
    revisions: ["v0.1.0", "v0.2.0", "main"]
    ignore_dirty: false
    ignore:
      - "target/**"
    flag_marker: "-"

    plot:
      output: metro.svg
      variance: false
      medians: true
      normalize: false
      filters: ["nbody", "!par"]
"""

from __future__ import annotations

import os
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from metro.errors import ConfigError
from metro.logging import get_logger

log = get_logger("config")

DEFAULT_DATA_FILE = Path("metro.csv")
DEFAULT_PLOT_FILE = Path("metro.svg")
DEFAULT_COMMAND = ["cargo", "bench"]


# ---------------------------------------------------------------------------
# Config objects
# ---------------------------------------------------------------------------


@dataclass
class MetroConfig:
    """Resolved configuration for a ``metro bench`` run."""

    data_file: Path = field(default_factory=lambda: DEFAULT_DATA_FILE)
    command: list[str] = field(default_factory=lambda: list(DEFAULT_COMMAND))
    repeat: int = 1
    revisions: list[str] = field(default_factory=list)  # empty = current checkout
    ignore_dirty: bool = False
    ignore_globs: list[str] = field(default_factory=list)
    flag_marker: str = "-"
    cwd: Path | None = None  # where the benchmark command runs

    @property
    def command_display(self) -> str:
        return " ".join(self.command)

    @property
    def start_dir(self) -> Path:
        """Where the repository is searched from and the command runs."""
        return Path(self.cwd) if self.cwd else Path(os.getcwd())

    @property
    def resolved_data_file(self) -> Path:
        """The data file, a relative path taken against :attr:`start_dir`."""
        if self.data_file.is_absolute():
            return self.data_file
        return self.start_dir / self.data_file


@dataclass
class PlotConfig:
    """Resolved configuration for ``metro plot`` and ``metro show``."""

    output_file: Path = field(default_factory=lambda: DEFAULT_PLOT_FILE)
    include_variance: bool = False
    compute_medians: bool = False
    compute_normalize: bool = False
    filters: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@dataclass
class ValidationError:
    """A single configuration validation error."""

    field: str
    message: str
    severity: str = "error"  # "error" or "warning"


def validate_config(config: MetroConfig) -> list[ValidationError]:
    """Validate a bench configuration.  Empty list means valid."""
    errors: list[ValidationError] = []

    if config.repeat < 1:
        errors.append(
            ValidationError(
                field="repeat",
                message=f"Repeat count must be at least 1 (got {config.repeat}).",
            )
        )

    if not config.command or not config.command[0]:
        errors.append(
            ValidationError(
                field="command",
                message="Benchmark command must not be empty.",
            )
        )

    if not config.flag_marker:
        errors.append(
            ValidationError(
                field="flag_marker",
                message="Flag marker must be a non-empty prefix such as '-'.",
            )
        )

    data_file = config.resolved_data_file
    if data_file.is_dir():
        errors.append(
            ValidationError(
                field="data_file",
                message=f"Data file is a directory: {data_file}",
            )
        )

    if len(set(config.revisions)) != len(config.revisions):
        errors.append(
            ValidationError(
                field="revisions",
                message="Revision list contains duplicates; they will be benchmarked twice.",
                severity="warning",
            )
        )

    return errors


def validate_plot_config(config: PlotConfig) -> list[ValidationError]:
    """Validate a plot configuration.  Empty list means valid."""
    errors: list[ValidationError] = []
    if config.compute_normalize and not config.compute_medians:
        errors.append(
            ValidationError(
                field="normalize",
                message="Normalization only applies together with medians; ignoring it.",
                severity="warning",
            )
        )
    return errors


def raise_for_errors(errors: list[ValidationError]) -> None:
    """Log warnings and raise :class:`ConfigError` for fatal errors."""
    for w in errors:
        if w.severity == "warning":
            log.warning("Config warning: %s: %s", w.field, w.message)
    fatal = [e for e in errors if e.severity == "error"]
    if fatal:
        messages = [f"  {e.field}: {e.message}" for e in fatal]
        raise ConfigError("Invalid configuration:\n" + "\n".join(messages))


# ---------------------------------------------------------------------------
# YAML profile loading
# ---------------------------------------------------------------------------


def load_profile(profile_path: Path) -> dict[str, Any]:
    """Load a metro profile from a YAML file.

    An empty file is an empty profile.

    Raises:
        ConfigError: If the file is missing, unparsable, or not a mapping.
    """
    if not profile_path.exists():
        raise ConfigError(f"Profile not found: {profile_path}")

    try:
        data = yaml.safe_load(profile_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"Profile {profile_path} is not valid YAML") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Profile must be a YAML mapping, got {type(data).__name__}")
    return data


def _as_command(value: Any) -> list[str]:
    if isinstance(value, str):
        return shlex.split(value)
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return list(value)
    raise ConfigError("'command' must be a string or a list of strings")


def _as_str_list(value: Any, key: str) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [str(v) for v in value]
    raise ConfigError(f"'{key}' must be a list of strings")


def config_from_profile(
    profile_data: dict[str, Any],
    *,
    cli_overrides: dict[str, Any] | None = None,
) -> MetroConfig:
    """Build a MetroConfig from a parsed profile.

    Keys of *cli_overrides* match MetroConfig field names; a value of
    None (or an empty list) means "not given on the command line".
    """
    cli = {k: v for k, v in (cli_overrides or {}).items() if v is not None and v != []}

    config = MetroConfig()
    if "data_file" in profile_data:
        config.data_file = Path(str(profile_data["data_file"]))
    if "command" in profile_data:
        config.command = _as_command(profile_data["command"])
    if "repeat" in profile_data:
        try:
            config.repeat = int(profile_data["repeat"])
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"'repeat' must be an integer, got {profile_data['repeat']!r}") from exc
    config.revisions = _as_str_list(profile_data.get("revisions"), "revisions")
    config.ignore_dirty = bool(profile_data.get("ignore_dirty", False))
    config.ignore_globs = _as_str_list(profile_data.get("ignore"), "ignore")
    if "flag_marker" in profile_data:
        config.flag_marker = str(profile_data["flag_marker"])

    # CLI overrides.
    if "data_file" in cli:
        config.data_file = Path(cli["data_file"])
    if "command" in cli:
        config.command = _as_command(cli["command"])
    if "repeat" in cli:
        config.repeat = int(cli["repeat"])
    if "revisions" in cli:
        config.revisions = list(cli["revisions"])
    if cli.get("ignore_dirty"):
        config.ignore_dirty = True
    if "ignore_globs" in cli:
        config.ignore_globs = config.ignore_globs + list(cli["ignore_globs"])
    if "cwd" in cli:
        config.cwd = Path(cli["cwd"])

    return config


def plot_config_from_profile(
    profile_data: dict[str, Any],
    *,
    cli_overrides: dict[str, Any] | None = None,
) -> PlotConfig:
    """Build a PlotConfig from a profile's ``plot:`` section plus CLI values.

    Boolean CLI flags can only switch options on.
    """
    section = profile_data.get("plot") or {}
    if not isinstance(section, dict):
        raise ConfigError("Profile 'plot' must be a mapping")
    cli = {k: v for k, v in (cli_overrides or {}).items() if v is not None and v != []}

    config = PlotConfig(
        output_file=Path(str(section.get("output", DEFAULT_PLOT_FILE))),
        include_variance=bool(section.get("variance", False)),
        compute_medians=bool(section.get("medians", False)),
        compute_normalize=bool(section.get("normalize", False)),
        filters=_as_str_list(section.get("filters"), "plot.filters"),
    )

    if "output_file" in cli:
        config.output_file = Path(cli["output_file"])
    if cli.get("include_variance"):
        config.include_variance = True
    if cli.get("compute_medians"):
        config.compute_medians = True
    if cli.get("compute_normalize"):
        config.compute_normalize = True
    if "filters" in cli:
        config.filters = list(cli["filters"])
    return config
