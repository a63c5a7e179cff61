"""Git working-tree state management.

Wraps the handful of git verbs metro needs: discover the enclosing
repository, check that the working tree is clean, resolve revisions to
commits, check a commit out, and put HEAD back where it was.  All calls
go through the ``git`` executable.

:class:`HeadGuard` brackets a multi-revision run: it records HEAD on
entry and restores it on every exit path once anything was checked out.
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path
from types import TracebackType
from typing import Iterable

from metro.errors import (
    BareRepositoryError,
    CheckoutError,
    DirtyRepositoryError,
    InvalidRevisionError,
    MetroError,
    RepositoryNotFoundError,
    RestoreError,
)
from metro.logging import get_logger

log = get_logger("git")


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Repository:
    """A discovered git repository."""

    git_dir: Path
    workdir: Path | None  # None for a bare repository

    @property
    def is_bare(self) -> bool:
        return self.workdir is None

    @property
    def cwd(self) -> Path:
        """Directory to run git commands in."""
        return self.workdir if self.workdir is not None else self.git_dir


@dataclass(frozen=True)
class Commit:
    """A revision token resolved to a commit."""

    token: str
    id: str
    short_id: str


@dataclass(frozen=True)
class HeadState:
    """Where HEAD pointed before any checkout."""

    commit_id: str
    ref: str | None  # e.g. "refs/heads/main"; None when detached


# ---------------------------------------------------------------------------
# Git invocation
# ---------------------------------------------------------------------------


def _git(cwd: Path, *args: str) -> subprocess.CompletedProcess[str]:
    log.debug("Running: git %s (in %s)", " ".join(args), cwd)
    return subprocess.run(
        ["git", *args],
        capture_output=True,
        text=True,
        cwd=str(cwd),
        check=False,
    )


def _stderr(proc: subprocess.CompletedProcess[str]) -> str:
    return (proc.stderr or "").strip()[:200]


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def discover(start_path: Path) -> Repository:
    """Find the repository enclosing *start_path*.

    git itself walks up the parent directories, so any directory inside
    the working tree (or a bare repository's directory) is accepted.

    Raises:
        RepositoryNotFoundError: If no repository encloses *start_path*.
    """
    start_path = Path(start_path)
    try:
        proc = _git(start_path, "rev-parse", "--absolute-git-dir")
    except OSError as exc:
        raise RepositoryNotFoundError(start_path) from exc
    if proc.returncode != 0:
        raise RepositoryNotFoundError(start_path)
    git_dir = Path(proc.stdout.strip())

    bare = _git(start_path, "rev-parse", "--is-bare-repository")
    if bare.stdout.strip() == "true":
        return Repository(git_dir=git_dir, workdir=None)

    top = _git(start_path, "rev-parse", "--show-toplevel")
    if top.returncode != 0 or not top.stdout.strip():
        # Inside the .git directory of a non-bare repository.
        return Repository(git_dir=git_dir, workdir=git_dir.parent)
    return Repository(git_dir=git_dir, workdir=Path(top.stdout.strip()))


# ---------------------------------------------------------------------------
# Cleanliness
# ---------------------------------------------------------------------------


def dirty_paths(repo: Repository) -> list[Path]:
    """Return every modified, added, deleted or untracked path.

    Ignored files are not reported.  Untracked directories are listed
    file by file so they can be matched against exception paths.
    """
    if repo.workdir is None:
        raise BareRepositoryError(repo.git_dir)

    proc = _git(repo.workdir, "status", "--porcelain=v1", "-z", "--untracked-files=all")
    if proc.returncode != 0:
        raise MetroError(f"could not load git repository status: {_stderr(proc)}")

    paths: list[Path] = []
    entries = proc.stdout.split("\0")
    i = 0
    while i < len(entries):
        entry = entries[i]
        i += 1
        if len(entry) < 4:
            continue
        status, path = entry[:2], entry[3:]
        if "R" in status or "C" in status:
            # Renames and copies are followed by the original path.
            i += 1
        paths.append(repo.workdir / path)
    return paths


def _canonical(path: Path) -> Path:
    return Path(path).expanduser().resolve()


def check_clean(repo: Repository, exceptions: Iterable[Path] = ()) -> None:
    """Require a clean working tree, apart from *exceptions*.

    Both sides are canonicalized before comparing, so relative and
    absolute spellings of the same file match.  An exception that is a
    directory covers every path beneath it.  Every unexpected dirty
    file is logged.

    Raises:
        BareRepositoryError: If the repository has no working tree.
        DirtyRepositoryError: Carrying the number of unexpected dirty files.
    """
    allowed = {_canonical(p) for p in exceptions}
    allowed_dirs = [p for p in allowed if p.is_dir()]
    errors = 0
    for path in dirty_paths(repo):
        canonical = _canonical(path)
        if canonical in allowed or any(d in canonical.parents for d in allowed_dirs):
            log.debug("file `%s` is dirty (expected)", path)
            continue
        log.warning("file `%s` is dirty", path)
        errors += 1
    if errors > 0:
        raise DirtyRepositoryError(errors)


def expand_ignore_globs(repo: Repository, patterns: Iterable[str]) -> list[Path]:
    """Expand ignore globs to the concrete paths they match.

    Patterns are relative to the working tree root; ``**`` recurses.
    """
    if repo.workdir is None:
        return []
    paths: list[Path] = []
    for pattern in patterns:
        if Path(pattern).is_absolute():
            matches = [Path(pattern)] if Path(pattern).exists() else []
        else:
            matches = sorted(repo.workdir.glob(pattern))
        if not matches:
            log.debug("ignore pattern `%s` matched nothing", pattern)
        paths.extend(matches)
    return paths


# ---------------------------------------------------------------------------
# Revisions
# ---------------------------------------------------------------------------


def short_id(repo: Repository, object_id: str) -> str:
    """Return the shortest unambiguous id for *object_id*.

    Falls back to the full id if git cannot abbreviate it.
    """
    proc = _git(repo.cwd, "rev-parse", "--short", object_id)
    short = proc.stdout.strip()
    if proc.returncode != 0 or not short:
        log.debug("could not abbreviate %s: %s", object_id, _stderr(proc))
        return object_id
    return short


def resolve(repo: Repository, token: str) -> Commit:
    """Resolve a user-supplied revision to a commit.

    Annotated tags are peeled to the commit they point at.

    Raises:
        InvalidRevisionError: If *token* names nothing, or names a tree
            or blob rather than a commit.
    """
    proc = _git(repo.cwd, "rev-parse", "--verify", "--quiet", f"{token}^{{object}}")
    if proc.returncode != 0 or not proc.stdout.strip():
        raise InvalidRevisionError(token, "does not name a git object")
    object_id = proc.stdout.strip()

    kind = _git(repo.cwd, "cat-file", "-t", object_id).stdout.strip()
    if kind == "tag":
        peeled = _git(repo.cwd, "rev-parse", "--verify", "--quiet", f"{object_id}^{{commit}}")
        if peeled.returncode != 0:
            raise InvalidRevisionError(token, "is a tag that does not point at a commit")
        object_id = peeled.stdout.strip()
        kind = "commit"
    if kind != "commit":
        raise InvalidRevisionError(token, f"is a {kind or 'unknown object'}, not a commit")

    return Commit(token=token, id=object_id, short_id=short_id(repo, object_id))


def head_commit(repo: Repository) -> Commit:
    """Resolve the current HEAD."""
    try:
        return resolve(repo, "HEAD")
    except InvalidRevisionError as exc:
        raise MetroError("failed to fetch HEAD from repo") from exc


def record_head(repo: Repository) -> HeadState:
    """Capture HEAD, including the branch it is attached to."""
    commit = head_commit(repo)
    proc = _git(repo.cwd, "symbolic-ref", "--quiet", "HEAD")
    ref = proc.stdout.strip() if proc.returncode == 0 else None
    return HeadState(commit_id=commit.id, ref=ref or None)


# ---------------------------------------------------------------------------
# Checkout / restore
# ---------------------------------------------------------------------------


def checkout(repo: Repository, commit: Commit) -> None:
    """Check out *commit*'s tree and detach HEAD at it.

    git refuses the whole checkout when local changes would be
    overwritten, so on failure nothing has moved.

    Raises:
        CheckoutError: If git refuses or fails.
    """
    if repo.workdir is None:
        raise BareRepositoryError(repo.git_dir)
    proc = _git(repo.workdir, "checkout", "--quiet", "--detach", commit.id)
    if proc.returncode != 0:
        raise CheckoutError(
            f"failed to check out `{commit.token}` ({commit.short_id}): {_stderr(proc)}"
        )
    log.debug("checked out %s (%s)", commit.token, commit.short_id)


def restore_head(repo: Repository, head: HeadState) -> None:
    """Check out the recorded head's tree and reattach HEAD to its ref.

    Raises:
        RestoreError: If either step fails.
    """
    if repo.workdir is None:
        raise BareRepositoryError(repo.git_dir)
    target = head.ref or head.commit_id
    proc = _git(repo.workdir, "checkout", "--quiet", "--detach", head.commit_id)
    if proc.returncode != 0:
        raise RestoreError(f"failed to restore HEAD to `{target}`: {_stderr(proc)}")
    if head.ref is not None:
        proc = _git(repo.workdir, "symbolic-ref", "HEAD", head.ref)
        if proc.returncode != 0:
            raise RestoreError(f"failed to reattach HEAD to `{head.ref}`: {_stderr(proc)}")
    log.debug("restored HEAD to %s", target)


class HeadGuard:
    """Scoped checkout: restores the original HEAD on every exit path.

    Usage::

        with HeadGuard(repo) as guard:
            for commit in commits:
                guard.checkout(commit)
                ...

    HEAD is recorded on entry; a bare repository is refused there.  On
    exit, if anything was checked out, it is restored.  A restore failure
    while another error propagates is attached to that error (when it is
    a :class:`MetroError`) and logged, so the original failure is not
    lost.  A restore failure on a clean exit is raised.
    """

    def __init__(self, repo: Repository) -> None:
        self.repo = repo
        self.head: HeadState | None = None
        self.checked_out = False

    def __enter__(self) -> HeadGuard:
        if self.repo.workdir is None:
            raise BareRepositoryError(self.repo.git_dir)
        self.head = record_head(self.repo)
        return self

    def checkout(self, commit: Commit) -> None:
        self.checked_out = True
        checkout(self.repo, commit)

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if not self.checked_out or self.head is None:
            return
        try:
            restore_head(self.repo, self.head)
        except MetroError as restore_exc:
            if exc is None:
                raise
            log.error("%s", restore_exc)
            if isinstance(exc, MetroError):
                exc.add_secondary(restore_exc)
