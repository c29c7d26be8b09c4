"""
Branch Restoration Guard and repository lock.

Once the pipeline leaves the operator's branch, getting back to it is the
one step that must run on every exit path. BranchRestorationGuard does
that from a ``finally`` block; ReleaseInterrupted raised by the signal
handlers in ``versionmark.lifecycle`` takes the same path.
"""

import fcntl
import os
from pathlib import Path

from versionmark.core.exceptions import BranchRestoreError, RepositoryLockedError, VcsCommandError
from versionmark.core.structured_logger import get_logger
from versionmark.vcs.base import VersionControl

logger = get_logger("Guard")

LOCK_FILE_NAME = "versionmark.lock"


class BranchRestorationGuard:
    """
    Context manager that force-checks-out ``branch`` on exit.

    Usage:
        with BranchRestorationGuard(vcs, ctx.original_branch):
            builder.build(ctx, doc_commit)

    If restoring fails while another exception is propagating, the original
    exception wins and the restore failure is logged. If the body succeeded,
    the restore failure is raised as BranchRestoreError.
    """

    def __init__(self, vcs: VersionControl, branch: str):
        self.vcs = vcs
        self.branch = branch

    def __enter__(self) -> "BranchRestorationGuard":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        try:
            self.vcs.checkout(self.branch, force=True)
            logger.debug("Restored original branch", branch=self.branch)
        except VcsCommandError as e:
            if exc_val is None:
                raise BranchRestoreError(
                    self.branch,
                    f"Could not check out {self.branch} again: {e.message}. Run 'git checkout -f {self.branch}'.",
                ) from e
            logger.error(
                "Could not restore original branch",
                branch=self.branch,
                error=e.message,
                cause=type(exc_val).__name__,
            )
        return False


class RepositoryLock:
    """
    Exclusive, non-blocking lock held for the whole release run.

    The lock is an flock on a file inside the repository's control
    directory, so it never shows up as a working-tree change and is released
    by the kernel if the process dies.
    """

    def __init__(self, control_dir: Path):
        self.path = Path(control_dir) / LOCK_FILE_NAME
        self._fd: int | None = None

    def acquire(self) -> None:
        fd = os.open(self.path, os.O_RDWR | os.O_CREAT, 0o644)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError as e:
            os.close(fd)
            raise RepositoryLockedError(
                f"Another release is already running in this repository (lock: {self.path})",
                {"lock": str(self.path)},
            ) from e
        os.ftruncate(fd, 0)
        os.write(fd, f"{os.getpid()}\n".encode())
        self._fd = fd

    def release(self) -> None:
        if self._fd is None:
            return
        try:
            fcntl.flock(self._fd, fcntl.LOCK_UN)
        finally:
            os.close(self._fd)
            self._fd = None

    @property
    def held(self) -> bool:
        return self._fd is not None

    def __enter__(self) -> "RepositoryLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()
