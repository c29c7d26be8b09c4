"""
Backmerge Builder
=================

Builds ``<version>-merge-to-<mainline>``: a branch rooted at the remote
mainline head that carries the tag's history but not the doc commit, so
``git describe`` on mainline sees the tag without mainline picking up the
release-only doc edits.

    <version>-merge-to-master-tmp-<ts>   from HEAD, doc commit reverted
    <version>-merge-to-master            from <remote>/master, temp branch merged in
    temp branch deleted

Nothing is pushed. Must run inside a BranchRestorationGuard: it leaves
the operator's branch and ends on the backmerge branch.
"""

import time
from collections.abc import Callable

from versionmark.core.exceptions import BackmergeError, VcsCommandError
from versionmark.core.structured_logger import get_logger
from versionmark.core.types import BackmergeBranch, CommitRef, MergeBias, ReleaseContext
from versionmark.vcs.base import VersionControl

logger = get_logger("Backmerge")


class BackmergeBuilder:
    def __init__(
        self,
        vcs: VersionControl,
        bias: MergeBias = MergeBias.INCOMING,
        clock: Callable[[], float] = time.time,
    ):
        self.vcs = vcs
        self.bias = bias
        self._clock = clock

    def temp_branch_name(self, ctx: ReleaseContext) -> str:
        return f"{ctx.backmerge_branch}-tmp-{int(self._clock())}"

    def build(self, ctx: ReleaseContext, doc_commit: CommitRef) -> BackmergeBranch:
        """
        Raises:
            MergeConflictError: If the biased merge cannot settle every conflict.
                The temporary and backmerge branches are left for manual resolution.
            BackmergeError: For any other version-control failure
        """
        version = ctx.version
        backmerge = ctx.backmerge_branch
        temp = self.temp_branch_name(ctx)

        logger.info("+++ Constructing backmerge branches")
        self._step(f"create {temp}", lambda: self.vcs.create_branch(temp, checkout=True))
        revert_commit = self._step(f"revert {doc_commit[:8]}", lambda: self.vcs.revert(doc_commit))

        self._step(
            f"create {backmerge}",
            lambda: self.vcs.create_branch(backmerge, start_point=ctx.mainline_ref, checkout=True),
        )
        message = f"{version.major}.{version.minor}.{version.patch} merge to {ctx.mainline_branch}"
        logger.info("Merging release history", source=temp, target=backmerge, bias=str(self.bias))
        head = self._step(f"merge {temp}", lambda: self.vcs.merge(temp, message, self.bias))

        self._step(f"delete {temp}", lambda: self.vcs.delete_branch(temp, force=True))
        logger.info("Created backmerge branch", branch=backmerge, head=head[:8])
        return BackmergeBranch(
            name=backmerge,
            source_ref=ctx.mainline_ref,
            head=head,
            revert_commit=revert_commit,
            temp_branch=temp,
        )

    @staticmethod
    def _step(description: str, action):
        try:
            return action()
        except VcsCommandError as e:
            raise BackmergeError(
                f"Backmerge construction failed ({description}): {e.message}",
                details={"step": description, **e.details},
            ) from e
