"""Error taxonomy for metro.

Every failure that should reach the user is a :class:`MetroError`.
Causes are chained with ``raise ... from exc`` and rendered outermost
first by :func:`format_error_chain`.
"""

from __future__ import annotations

from pathlib import Path


class MetroError(Exception):
    """Base class for all errors reported by metro.

    A secondary error is one that happened while this error was already
    propagating (e.g. restoring HEAD after a failed benchmark run).  It
    is recorded rather than raised so the original failure stays on top.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.secondary: list[BaseException] = []

    def add_secondary(self, exc: BaseException) -> None:
        """Record an error raised while this one was propagating."""
        self.secondary.append(exc)


# ---------------------------------------------------------------------------
# Repository state
# ---------------------------------------------------------------------------


class RepositoryNotFoundError(MetroError):
    """No git repository encloses the starting directory."""

    def __init__(self, start_path: Path) -> None:
        super().__init__(f"no git repository found at or above `{start_path}`")
        self.start_path = start_path


class BareRepositoryError(MetroError):
    """The repository has no working tree."""

    def __init__(self, git_dir: Path) -> None:
        super().__init__(f"cannot benchmark bare repository `{git_dir}`")
        self.git_dir = git_dir


class DirtyRepositoryError(MetroError):
    """The working tree has unexpected modified or untracked files."""

    def __init__(self, count: int) -> None:
        super().__init__(f"repository contains {count} dirty files")
        self.count = count


class InvalidRevisionError(MetroError):
    """A revision token does not resolve to a commit."""

    def __init__(self, token: str, reason: str = "does not resolve to a commit") -> None:
        super().__init__(f"revision `{token}` {reason}")
        self.token = token


class CheckoutError(MetroError):
    """Checking out a revision failed."""


class RestoreError(MetroError):
    """Restoring the original HEAD failed."""


# ---------------------------------------------------------------------------
# Benchmark execution
# ---------------------------------------------------------------------------


class BenchCommandError(MetroError):
    """The benchmark command could not be executed."""


class ProcessExitError(BenchCommandError):
    """The benchmark command exited with a nonzero status."""

    def __init__(self, command: str, exit_code: int, detail: str = "") -> None:
        message = f"`{command}` exited with error-code `{exit_code}`"
        if detail:
            message += f": {detail}"
        super().__init__(message)
        self.command = command
        self.exit_code = exit_code


class OutputDecodeError(BenchCommandError):
    """The benchmark command's standard output is not valid UTF-8."""

    def __init__(self, command: str) -> None:
        super().__init__(f"`{command}` did not output utf-8")
        self.command = command


class ExtractError(MetroError):
    """A matched benchmark line carries a number that cannot be parsed."""


class RevisionRunError(MetroError):
    """Benchmarking one revision of a revision list failed."""

    def __init__(self, token: str, short_id: str) -> None:
        super().__init__(f"benchmarking revision `{token}` ({short_id}) failed")
        self.token = token
        self.short_id = short_id


# ---------------------------------------------------------------------------
# Measurement data
# ---------------------------------------------------------------------------


class StoreIOError(MetroError):
    """The measurement file could not be opened, written or read."""


class DecodeError(MetroError):
    """A persisted measurement row is malformed."""

    def __init__(self, path: Path, line_number: int, reason: str) -> None:
        super().__init__(f"cannot decode `{path}` line {line_number}: {reason}")
        self.path = path
        self.line_number = line_number


class FilterError(MetroError):
    """A measurement filter is not a valid regular expression."""


class ConfigError(MetroError):
    """The configuration or profile is invalid."""


# ---------------------------------------------------------------------------
# Display
# ---------------------------------------------------------------------------


def format_error_chain(exc: BaseException) -> str:
    """Render *exc* and its causes, outermost first.

    Example::

        error: benchmarking revision `v2` (1a2b3c4) failed
          caused by: `cargo bench` exited with error-code `101`
          also: failed to restore HEAD to `refs/heads/main`
    """
    lines = [f"error: {exc}"]
    seen: set[int] = {id(exc)}
    cause = _next_cause(exc)
    while cause is not None and id(cause) not in seen:
        seen.add(id(cause))
        lines.append(f"  caused by: {cause}")
        cause = _next_cause(cause)

    for secondary in getattr(exc, "secondary", []):
        lines.append(f"  also: {secondary}")
        inner = _next_cause(secondary)
        while inner is not None and id(inner) not in seen:
            seen.add(id(inner))
            lines.append(f"    caused by: {inner}")
            inner = _next_cause(inner)
    return "\n".join(lines)


def _next_cause(exc: BaseException) -> BaseException | None:
    if exc.__cause__ is not None:
        return exc.__cause__
    if exc.__suppress_context__:
        return None
    return exc.__context__
