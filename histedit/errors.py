"""Exit-code contract and exception types for histedit."""
from __future__ import annotations

import enum

from .types import OID, PendingRefUpdate


class ExitCode(enum.IntEnum):
    """Exit codes returned by the ``histedit`` command.

    0: success
    1: user error (bad arguments, stale ids, wrong repository state)
    2: repository not found
    3: internal / storage error
    4: the branch changed underneath a rewrite
    """

    SUCCESS = 0
    USER_ERROR = 1
    REPO_NOT_FOUND = 2
    INTERNAL_ERROR = 3
    CONFLICT = 4


class HistEditError(Exception):
    """Base exception for histedit errors."""

    def __init__(self, message: str, exit_code: ExitCode = ExitCode.INTERNAL_ERROR) -> None:
        super().__init__(message)
        self.exit_code = exit_code


class NotARepositoryError(HistEditError):
    def __init__(self, path: str) -> None:
        super().__init__(f'Not a git repository: {path}', exit_code=ExitCode.REPO_NOT_FOUND)
        self.path = path


class ResolutionError(HistEditError):
    def __init__(self, name: str) -> None:
        super().__init__(f'Unknown commit {name}', exit_code=ExitCode.USER_ERROR)
        self.name = name


class DetachedStateError(HistEditError):
    """HEAD is not a branch that points at a commit."""

    def __init__(self, message: str = 'HEAD is not on a branch. Check out a branch first.') -> None:
        super().__init__(message, exit_code=ExitCode.USER_ERROR)


class TargetNotFoundError(HistEditError):
    def __init__(self, target: OID, branch: str) -> None:
        super().__init__(f'Commit {target} is not in the history of {branch}',
                         exit_code=ExitCode.USER_ERROR)
        self.target = target
        self.branch = branch


class InvalidSignatureError(HistEditError):
    def __init__(self, message: str) -> None:
        super().__init__(message, exit_code=ExitCode.USER_ERROR)


class BackupError(HistEditError):
    """Snapshotting the branch tip failed; nothing was rewritten."""


class RewriteCancelled(HistEditError):
    def __init__(self, processed: int, total: int) -> None:
        super().__init__(f'Rewrite cancelled after {processed} of {total} commits; branch unchanged',
                         exit_code=ExitCode.USER_ERROR)
        self.processed = processed
        self.total = total


class IncompleteRewriteError(HistEditError):
    """The rebuilt set did not reach the branch tip. Should be unreachable."""


class ReferenceUpdateError(HistEditError):
    """A reference write failed.

    When raised at the end of a rewrite, ``pending`` holds everything needed to
    retry just the reference update: every new commit already exists in the
    object store, unreferenced until the update succeeds.
    """

    def __init__(self, message: str, pending: PendingRefUpdate | None = None) -> None:
        super().__init__(message)
        self.pending = pending


class ConcurrentModificationError(HistEditError):
    def __init__(self, ref: str, expected: OID | None, actual: OID | None) -> None:
        super().__init__(f'{ref} moved from {expected} to {actual} while it was being rewritten',
                         exit_code=ExitCode.CONFLICT)
        self.ref = ref
        self.expected = expected
        self.actual = actual


class NoBackupError(HistEditError):
    def __init__(self, branch: str) -> None:
        super().__init__(f'No backup exists for branch {branch}', exit_code=ExitCode.USER_ERROR)
        self.branch = branch


class RestoreError(HistEditError):
    """The branch was restored but its backup reference could not be removed."""

    def __init__(self, message: str, restored_tip: OID) -> None:
        super().__init__(message)
        self.restored_tip = restored_tip
