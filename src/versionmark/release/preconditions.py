"""
Precondition Gate
=================

Everything here runs before the first mutation. Checks short-circuit on
the first failure, in this order:

1. no uncommitted changes to tracked files
2. no staged or unstaged changes to the metadata file
3. point releases only (patch != 0):
   a. refresh remote references
   b. the target tag is not on the remote yet
   c. the preceding patch tag is on the remote
   d. the current branch descends from the remote release-X.Y head
4. every external tool the run invokes is available
5. the backmerge branch does not exist yet

A failure needs no cleanup because nothing has been touched.
"""

import os
import shutil
from collections.abc import Callable
from pathlib import Path

from versionmark.config.settings import Settings
from versionmark.core.exceptions import (
    AncestryViolationError,
    BranchExistsError,
    DetachedHeadError,
    DirtyMetadataFileError,
    DirtyWorkingTreeError,
    MissingPrecedingTagError,
    TagAlreadyExistsError,
    ToolUnavailableError,
    UpstreamRemoteNotFoundError,
    VcsCommandError,
)
from versionmark.core.structured_logger import get_logger
from versionmark.core.types import ReleaseContext, VersionSpec
from versionmark.vcs.base import VersionControl

logger = get_logger("PreconditionGate")


def build_release_context(vcs: VersionControl, version: VersionSpec, settings: Settings) -> ReleaseContext:
    """
    Capture the branch and upstream remote once, before anything changes.

    Raises:
        DetachedHeadError: If no branch is checked out
        UpstreamRemoteNotFoundError: If no remote matches remote.url_pattern
    """
    branch = vcs.current_branch()
    if branch is None:
        raise DetachedHeadError("You must run this from a branch, HEAD is detached")

    remote = vcs.find_remote(settings.remote.url_pattern)
    if remote is None:
        raise UpstreamRemoteNotFoundError(
            f"No remote fetches from a URL matching '{settings.remote.url_pattern}'",
            {"url_pattern": settings.remote.url_pattern},
        )

    return ReleaseContext(
        version=version,
        original_branch=branch,
        release_branch=version.release_branch(settings.remote.release_branch_prefix),
        fetch_remote=remote.name,
        fetch_url=remote.fetch_url,
        push_url=remote.push_url or settings.remote.default_push_url,
        mainline_branch=settings.remote.mainline_branch,
    )


class PreconditionGate:
    """Single go/no-go decision for a release run"""

    def __init__(
        self,
        vcs: VersionControl,
        settings: Settings,
        which: Callable[[str], str | None] = shutil.which,
    ):
        self.vcs = vcs
        self.settings = settings
        self._which = which

    def check(self, ctx: ReleaseContext) -> None:
        """Raise the first failing precondition, or return if the run may proceed."""
        self.check_working_tree()
        self.check_metadata_file()
        if ctx.version.is_point_release:
            self.check_point_release(ctx)
        self.check_tools()
        self.check_backmerge_branch(ctx)
        logger.info("Preconditions satisfied", version=str(ctx.version), branch=ctx.original_branch)

    def check_working_tree(self) -> None:
        if not self.vcs.is_working_tree_clean():
            raise DirtyWorkingTreeError("You must not have any uncommitted changes when running this command")

    def check_metadata_file(self) -> None:
        path = self.settings.metadata.path.as_posix()
        if self.vcs.is_path_modified(path):
            raise DirtyMetadataFileError(f"You have changes in '{path}' already.", {"path": path})

    def check_point_release(self, ctx: ReleaseContext) -> None:
        version = ctx.version
        # no going back in time, pull latest from upstream
        self.vcs.refresh_remotes()

        if self.vcs.remote_tag_exists(ctx.fetch_url, str(version)):
            raise TagAlreadyExistsError(
                f"You are trying to tag {version} but it already exists.  Stop it!",
                {"tag": str(version)},
            )

        previous = version.previous_patch()
        if not self.vcs.remote_tag_exists(ctx.fetch_url, str(previous)):
            raise MissingPrecedingTagError(
                f"You are trying to tag {version} but {previous} doesn't even exist!",
                {"tag": str(version), "previous": str(previous)},
            )

        release_head = self.vcs.remote_branch_head(ctx.fetch_url, ctx.release_branch)
        if release_head is None:
            raise AncestryViolationError(
                f"You are trying to tag to an existing minor release but branch: "
                f"{ctx.release_branch} does not exist on {ctx.fetch_remote}",
                {"release_branch": ctx.release_branch},
            )
        try:
            descends = self.vcs.is_ancestor(release_head, ctx.original_branch)
        except VcsCommandError as e:
            raise AncestryViolationError(
                f"Could not check that {ctx.release_branch} ({release_head[:8]}) is an ancestor of "
                f"{ctx.original_branch}: {e.message}",
                {"release_branch": ctx.release_branch, "release_head": release_head},
            ) from e
        if not descends:
            raise AncestryViolationError(
                f"You are trying to tag to an existing minor release but branch: "
                f"{ctx.release_branch} is not an ancestor of {ctx.original_branch}",
                {"release_branch": ctx.release_branch, "release_head": release_head},
            )

    def check_tools(self) -> None:
        for tool in self.settings.external_tools():
            if not self._tool_available(tool):
                raise ToolUnavailableError(
                    tool,
                    f"Required tool '{tool}' is not available. Install it or adjust the configuration.",
                    {"tool": tool},
                )

    def check_backmerge_branch(self, ctx: ReleaseContext) -> None:
        if self.vcs.branch_exists(ctx.backmerge_branch):
            raise BranchExistsError(
                f"Branch {ctx.backmerge_branch} already exists. Delete it before releasing {ctx.version} again.",
                {"branch": ctx.backmerge_branch},
            )

    def _tool_available(self, tool: str) -> bool:
        local = Path(self.vcs.root) / tool
        if local.is_file():
            return os.access(local, os.X_OK)
        return self._which(tool) is not None
