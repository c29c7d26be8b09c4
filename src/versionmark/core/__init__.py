"""Core versionmark module: canonical public API."""

from versionmark.core.exceptions import (
    AncestryViolationError,
    BackmergeError,
    BranchExistsError,
    BranchRestoreError,
    ConfigurationError,
    DetachedHeadError,
    DirtyMetadataFileError,
    DirtyWorkingTreeError,
    DocumentStampError,
    ErrorCode,
    ExecutionError,
    InputFormatError,
    MergeConflictError,
    MetadataRewriteError,
    MissingPrecedingTagError,
    PreconditionError,
    ReleaseError,
    ReleaseInterrupted,
    RepositoryLockedError,
    RepositoryNotFoundError,
    SequencerStepFailure,
    TagAlreadyExistsError,
    ToolUnavailableError,
    UpstreamRemoteNotFoundError,
    VcsCommandError,
)
from versionmark.core.types import (
    BackmergeBranch,
    CommitRef,
    MergeBias,
    ReleaseContext,
    ReleaseResult,
    RemoteInfo,
    RewriteMode,
    Tag,
    VersionSpec,
)

__all__ = [
    "AncestryViolationError",
    "BackmergeBranch",
    "BackmergeError",
    "BranchExistsError",
    "BranchRestoreError",
    "CommitRef",
    "ConfigurationError",
    "DetachedHeadError",
    "DirtyMetadataFileError",
    "DirtyWorkingTreeError",
    "DocumentStampError",
    "ErrorCode",
    "ExecutionError",
    "InputFormatError",
    "MergeBias",
    "MergeConflictError",
    "MetadataRewriteError",
    "MissingPrecedingTagError",
    "PreconditionError",
    "ReleaseContext",
    "ReleaseError",
    "ReleaseInterrupted",
    "ReleaseResult",
    "RemoteInfo",
    "RepositoryLockedError",
    "RepositoryNotFoundError",
    "RewriteMode",
    "SequencerStepFailure",
    "Tag",
    "TagAlreadyExistsError",
    "ToolUnavailableError",
    "UpstreamRemoteNotFoundError",
    "VcsCommandError",
    "VersionSpec",
]
