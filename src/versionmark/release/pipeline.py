"""
Release Pipeline
================

Wires the components together in their fixed order:

    parse -> context -> gate -> sequencer -> [guard: backmerge]

The whole run holds the repository lock and an interrupt scope; the branch
guard starts where the operator's branch is first left.
"""

from versionmark.config.settings import Settings
from versionmark.core.structured_logger import TraceContext, get_logger
from versionmark.core.types import ReleaseResult
from versionmark.lifecycle import InterruptScope
from versionmark.release.backmerge import BackmergeBuilder
from versionmark.release.guard import BranchRestorationGuard, RepositoryLock
from versionmark.release.metadata import MetadataRewriter
from versionmark.release.preconditions import PreconditionGate, build_release_context
from versionmark.release.sequencer import ReleaseSequencer
from versionmark.release.stamper import DocumentStamper
from versionmark.release.version import parse_version
from versionmark.vcs.base import VersionControl

logger = get_logger("Pipeline")


class ReleasePipeline:
    """
    One release run against one repository.

    Collaborators default to the ones built from ``settings`` and may be
    replaced, which is how tests inject fakes for external commands.
    """

    def __init__(
        self,
        vcs: VersionControl,
        settings: Settings,
        *,
        gate: PreconditionGate | None = None,
        stamper: DocumentStamper | None = None,
        rewriter: MetadataRewriter | None = None,
        builder: BackmergeBuilder | None = None,
        lock: RepositoryLock | None = None,
    ):
        self.vcs = vcs
        self.settings = settings
        self.gate = gate or PreconditionGate(vcs, settings)
        self.stamper = stamper or DocumentStamper(vcs.root, settings.docs)
        self.rewriter = rewriter or MetadataRewriter(vcs.root, settings.metadata)
        self.builder = builder or BackmergeBuilder(vcs, settings.backmerge.conflict_bias)
        self.lock = lock or RepositoryLock(vcs.control_dir())
        self.sequencer = ReleaseSequencer(vcs, self.stamper, self.rewriter, settings.project_name)

    def run(self, version_text: str) -> ReleaseResult:
        version = parse_version(version_text)

        with TraceContext() as trace_id, InterruptScope(), self.lock:
            logger.info("Starting release", version=str(version), trace_id=trace_id)
            ctx = build_release_context(self.vcs, version, self.settings)
            self.gate.check(ctx)

            sequence = self.sequencer.run(ctx)

            with BranchRestorationGuard(self.vcs, ctx.original_branch):
                backmerge = self.builder.build(ctx, sequence.doc_commit)

            logger.info("Release prepared", version=str(version), tag=sequence.tag.name, backmerge=backmerge.name)
            return ReleaseResult(
                context=ctx,
                doc_commit=sequence.doc_commit,
                release_commit=sequence.release_commit,
                dev_commit=sequence.dev_commit,
                tag=sequence.tag,
                backmerge=backmerge,
            )
