"""
Custom Exceptions for versionmark
=================================

Every failure of a release run is fatal. The exception type tells the
operator which step failed and whether anything was already mutated.

Error Codes:
- 1xxx: Input errors (version string, configuration)
- 2xxx: Precondition errors (nothing mutated yet)
- 3xxx: Environment errors (tools, locks, repository access)
- 4xxx: Execution errors (commits already made, manual recovery needed)
- 5xxx: System errors (interruption, restoration failure)

Exit codes: 1 when nothing was mutated, 2 once the repository was touched,
130 on interruption.
"""

from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Structured error codes for operator-facing messages"""

    # 1xxx: Input Errors
    INPUT_FORMAT = 1001
    CONFIGURATION_ERROR = 1002

    # 2xxx: Precondition Errors
    DIRTY_WORKING_TREE = 2001
    DIRTY_METADATA_FILE = 2002
    TAG_ALREADY_EXISTS = 2003
    MISSING_PRECEDING_TAG = 2004
    ANCESTRY_VIOLATION = 2005
    DETACHED_HEAD = 2006
    UPSTREAM_REMOTE_NOT_FOUND = 2007
    BRANCH_EXISTS = 2008

    # 3xxx: Environment Errors
    TOOL_UNAVAILABLE = 3001
    REPOSITORY_LOCKED = 3002
    REPOSITORY_NOT_FOUND = 3003
    VCS_COMMAND_FAILED = 3004

    # 4xxx: Execution Errors
    DOCUMENT_STAMP_FAILED = 4001
    METADATA_REWRITE_FAILED = 4002
    SEQUENCER_STEP_FAILED = 4003
    BACKMERGE_FAILED = 4004
    MERGE_CONFLICT = 4005

    # 5xxx: System Errors
    BRANCH_RESTORE_FAILED = 5001
    INTERRUPTED = 5002


class ReleaseError(Exception):
    """Base exception for all versionmark errors"""

    exit_code = 1

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.SEQUENCER_STEP_FAILED,
        details: dict[str, Any] | None = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for structured logging"""
        return {
            'error_type': self.__class__.__name__,
            'error_code': int(self.error_code),
            'message': self.message,
            'details': self.details
        }

    def user_message(self) -> str:
        """Operator-facing message, prefixed the way every failure line is"""
        return f"!!! {self.message}"


# -- input -----------------------------------------------------------------


class InputFormatError(ReleaseError):
    """Raised when the version string does not match vMAJOR.MINOR.PATCH"""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.INPUT_FORMAT, details)


class ConfigurationError(ReleaseError):
    """Raised when settings fail validation"""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details)


# -- preconditions -----------------------------------------------------------


class PreconditionError(ReleaseError):
    """Base for gate failures; raised before anything is mutated"""


class DirtyWorkingTreeError(PreconditionError):
    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.DIRTY_WORKING_TREE, details)


class DirtyMetadataFileError(PreconditionError):
    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.DIRTY_METADATA_FILE, details)


class TagAlreadyExistsError(PreconditionError):
    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.TAG_ALREADY_EXISTS, details)


class MissingPrecedingTagError(PreconditionError):
    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.MISSING_PRECEDING_TAG, details)


class AncestryViolationError(PreconditionError):
    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.ANCESTRY_VIOLATION, details)


class DetachedHeadError(PreconditionError):
    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.DETACHED_HEAD, details)


class UpstreamRemoteNotFoundError(PreconditionError):
    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.UPSTREAM_REMOTE_NOT_FOUND, details)


class BranchExistsError(PreconditionError):
    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.BRANCH_EXISTS, details)


class ToolUnavailableError(PreconditionError):
    """Raised when an external tool the run depends on cannot be found"""

    def __init__(self, tool: str, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.TOOL_UNAVAILABLE, details)
        self.tool = tool


# -- environment -----------------------------------------------------------


class RepositoryNotFoundError(ReleaseError):
    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.REPOSITORY_NOT_FOUND, details)


class RepositoryLockedError(ReleaseError):
    """Raised when another release run holds the repository lock"""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.REPOSITORY_LOCKED, details)


class VcsCommandError(ReleaseError):
    """Raw version-control failure; callers wrap it into a step error"""

    def __init__(self, command: str, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.VCS_COMMAND_FAILED, details)
        self.command = command


# -- execution -------------------------------------------------------------


class ExecutionError(ReleaseError):
    """Base for failures after the repository was mutated"""

    exit_code = 2


class DocumentStampError(ExecutionError):
    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.DOCUMENT_STAMP_FAILED, details)


class MetadataRewriteError(ExecutionError):
    """Raised when a version field is missing from the metadata file"""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.METADATA_REWRITE_FAILED, details)


class SequencerStepFailure(ExecutionError):
    """Raised when a commit or tag step of the release sequence fails"""

    def __init__(self, step: str, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.SEQUENCER_STEP_FAILED, details)
        self.step = step


class BackmergeError(ExecutionError):
    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.BACKMERGE_FAILED,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, error_code, details)


class MergeConflictError(BackmergeError):
    """Raised when the biased merge still leaves unresolved conflicts"""

    def __init__(self, branch: str, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.MERGE_CONFLICT, details)
        self.branch = branch


# -- system ----------------------------------------------------------------


class BranchRestoreError(ReleaseError):
    exit_code = 2

    def __init__(self, branch: str, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.BRANCH_RESTORE_FAILED, details)
        self.branch = branch


class ReleaseInterrupted(ReleaseError):
    """Raised from a signal handler so cleanup runs on termination"""

    exit_code = 130

    def __init__(self, signal_name: str):
        super().__init__(
            f"Interrupted by {signal_name}",
            ErrorCode.INTERRUPTED,
            {"signal": signal_name},
        )
        self.signal_name = signal_name
