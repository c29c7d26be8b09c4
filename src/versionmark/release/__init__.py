"""Release workflow components."""

from versionmark.release.backmerge import BackmergeBuilder
from versionmark.release.guard import BranchRestorationGuard, RepositoryLock
from versionmark.release.metadata import MetadataRewriter
from versionmark.release.pipeline import ReleasePipeline
from versionmark.release.preconditions import PreconditionGate, build_release_context
from versionmark.release.sequencer import ReleaseSequencer, SequenceResult
from versionmark.release.stamper import DocumentStamper
from versionmark.release.version import VERSION_REGEX, parse_version

__all__ = [
    "BackmergeBuilder",
    "BranchRestorationGuard",
    "DocumentStamper",
    "MetadataRewriter",
    "PreconditionGate",
    "ReleasePipeline",
    "ReleaseSequencer",
    "RepositoryLock",
    "SequenceResult",
    "VERSION_REGEX",
    "build_release_context",
    "parse_version",
]
