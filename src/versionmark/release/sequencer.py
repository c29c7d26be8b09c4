"""
Release Commit Sequencer
========================

Drives the fixed commit sequence on the operator's branch:

    S0  stamp documentation
    S1  doc commit                  -> doc_commit
    S2  metadata: release version
    S3  release commit              -> release_commit
    S4  annotated tag at release_commit
    S5  metadata: dev version
    S6  dev commit                  -> dev_commit

The tag always points at the release commit, never the doc or dev commit.
Any failure stops the sequence; commits already made are left in place
for the operator to inspect or reset.
"""

from dataclasses import dataclass

from versionmark.core.exceptions import SequencerStepFailure, VcsCommandError
from versionmark.core.structured_logger import get_logger
from versionmark.core.types import CommitRef, ReleaseContext, RewriteMode, Tag
from versionmark.release.metadata import MetadataRewriter
from versionmark.release.stamper import DocumentStamper
from versionmark.vcs.base import VersionControl

logger = get_logger("Sequencer")


@dataclass(frozen=True)
class SequenceResult:
    doc_commit: CommitRef
    release_commit: CommitRef
    tag: Tag
    dev_commit: CommitRef


class ReleaseSequencer:
    """Makes the doc, release and dev commits and the release tag"""

    def __init__(
        self,
        vcs: VersionControl,
        stamper: DocumentStamper,
        rewriter: MetadataRewriter,
        project_name: str = "Kubernetes",
    ):
        self.vcs = vcs
        self.stamper = stamper
        self.rewriter = rewriter
        self.project_name = project_name

    def run(self, ctx: ReleaseContext) -> SequenceResult:
        version = ctx.version
        numeric = f"{version.major}.{version.minor}.{version.patch}"

        logger.info("+++ Versioning documentation and examples")
        self.stamper.stamp(version)
        doc_commit = self._commit(
            "doc commit", lambda: self.vcs.commit_all(f"Versioning docs and examples for {numeric}")
        )

        logger.info(f"+++ Updating to {version}")
        self.rewriter.rewrite(version, RewriteMode.RELEASE)
        logger.info("+++ Committing version change")
        release_commit = self._commit(
            "release commit",
            lambda: self.vcs.commit_paths([self.rewriter.relative_path], f"{self.project_name} version {version}"),
        )

        logger.info("+++ Tagging version")
        tag = Tag(name=str(version), message=f"{self.project_name} version {version}", target=release_commit)
        self._step("tag", lambda: self.vcs.create_annotated_tag(tag.name, tag.message, tag.target))

        dev_version = version.full_version(RewriteMode.DEV)
        logger.info(f"+++ Updating to {dev_version}")
        self.rewriter.rewrite(version, RewriteMode.DEV)
        logger.info("+++ Committing version change")
        dev_commit = self._commit(
            "dev commit",
            lambda: self.vcs.commit_paths([self.rewriter.relative_path], f"{self.project_name} version {dev_version}"),
        )

        logger.debug(
            "Release sequence complete",
            doc_commit=doc_commit[:8],
            release_commit=release_commit[:8],
            dev_commit=dev_commit[:8],
        )
        return SequenceResult(doc_commit=doc_commit, release_commit=release_commit, tag=tag, dev_commit=dev_commit)

    def _commit(self, step: str, action) -> CommitRef:
        commit = self._step(step, action)
        logger.debug("Committed", step=step, commit=commit[:8])
        return commit

    @staticmethod
    def _step(step: str, action):
        try:
            return action()
        except VcsCommandError as e:
            raise SequencerStepFailure(
                step,
                f"Release sequence failed at the {step}: {e.message}. Commits made so far are kept; "
                "inspect the branch and reset it manually before retrying.",
                {"step": step, **e.details},
            ) from e
