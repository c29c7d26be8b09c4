"""Tests for versionmark.release.preconditions: release context and gate"""

import os
from unittest.mock import MagicMock

import pytest

from versionmark.config.settings import DocsConfig, MetadataConfig, RemoteConfig
from versionmark.core.exceptions import (
    AncestryViolationError,
    BranchExistsError,
    DetachedHeadError,
    DirtyMetadataFileError,
    DirtyWorkingTreeError,
    MissingPrecedingTagError,
    PreconditionError,
    TagAlreadyExistsError,
    ToolUnavailableError,
    UpstreamRemoteNotFoundError,
    VcsCommandError,
)
from versionmark.core.types import RemoteInfo, VersionSpec
from versionmark.release.preconditions import PreconditionGate, build_release_context
from versionmark.vcs.base import VersionControl

POINT = VersionSpec(1, 2, 3)
MINOR = VersionSpec(1, 3, 0)


def _gate(vcs, settings, which=lambda tool: f"/usr/bin/{tool}"):
    return PreconditionGate(vcs, settings, which=which)


@pytest.mark.unit
class TestBuildReleaseContext:
    def test_fields(self, repo, settings):
        ctx = build_release_context(repo, POINT, settings)
        assert ctx.version == POINT
        assert ctx.original_branch == "master"
        assert ctx.release_branch == "release-1.2"
        assert ctx.fetch_remote == "upstream"
        assert ctx.fetch_url == "https://github.com/example/project.git"
        assert ctx.push_url == "git@github.com:example/project.git"
        assert ctx.mainline_ref == "upstream/master"
        assert ctx.backmerge_branch == "v1.2.3-merge-to-master"

    def test_detached_head(self, repo, settings):
        repo.detach()
        with pytest.raises(DetachedHeadError):
            build_release_context(repo, POINT, settings)

    def test_no_matching_remote(self, repo, settings_factory):
        settings = settings_factory(remote=RemoteConfig(url_pattern="someone/else.git"))
        with pytest.raises(UpstreamRemoteNotFoundError) as exc:
            build_release_context(repo, POINT, settings)
        assert exc.value.details == {"url_pattern": "someone/else.git"}

    def test_first_matching_remote_wins(self, repo, settings):
        repo.add_remote("origin", "https://github.com/me/fork.git")
        ctx = build_release_context(repo, POINT, settings)
        assert ctx.fetch_remote == "upstream"

    def test_default_push_url_when_remote_has_none(self, settings):
        vcs = MagicMock(spec=VersionControl)
        vcs.current_branch.return_value = "master"
        vcs.find_remote.return_value = RemoteInfo("upstream", "https://github.com/example/project.git", "")
        ctx = build_release_context(vcs, POINT, settings)
        assert ctx.push_url == settings.remote.default_push_url


@pytest.mark.unit
class TestGateOrder:
    def test_clean_minor_release_passes(self, repo, settings):
        ctx = build_release_context(repo, MINOR, settings)
        _gate(repo, settings).check(ctx)
        assert repo.operations == []

    def test_dirty_tree_first(self, point_release_repo, settings):
        repo = point_release_repo
        repo.write_file("README.md", "changed\n")
        repo.write_file("pkg/version/base.go", "changed\n")
        ctx = build_release_context(repo, POINT, settings)
        with pytest.raises(DirtyWorkingTreeError):
            _gate(repo, settings).check(ctx)
        assert repo.fetch_count == 0

    def test_untracked_files_are_ignored(self, repo, settings):
        repo.write_file("scratch.txt", "notes\n")
        ctx = build_release_context(repo, MINOR, settings)
        _gate(repo, settings).check(ctx)

    def test_dirty_metadata(self, settings):
        vcs = MagicMock(spec=VersionControl)
        vcs.is_working_tree_clean.return_value = True
        vcs.is_path_modified.return_value = True
        with pytest.raises(DirtyMetadataFileError) as exc:
            _gate(vcs, settings).check_metadata_file()
        vcs.is_path_modified.assert_called_once_with("pkg/version/base.go")
        assert "pkg/version/base.go" in exc.value.message

    def test_minor_release_skips_remote_checks(self, settings):
        vcs = MagicMock(spec=VersionControl)
        vcs.is_working_tree_clean.return_value = True
        vcs.is_path_modified.return_value = False
        vcs.branch_exists.return_value = False
        vcs.root = "/nonexistent"
        ctx = build_release_context(_context_vcs(), MINOR, settings)
        _gate(vcs, settings).check(ctx)
        vcs.refresh_remotes.assert_not_called()
        vcs.remote_tag_exists.assert_not_called()
        vcs.remote_branch_head.assert_not_called()

    def test_all_failures_are_preconditions(self):
        for cls in (
            DirtyWorkingTreeError,
            DirtyMetadataFileError,
            TagAlreadyExistsError,
            MissingPrecedingTagError,
            AncestryViolationError,
            BranchExistsError,
        ):
            err = cls("x")
            assert isinstance(err, PreconditionError)
            assert err.exit_code == 1


def _context_vcs():
    vcs = MagicMock(spec=VersionControl)
    vcs.current_branch.return_value = "master"
    vcs.find_remote.return_value = RemoteInfo("upstream", "u", "p")
    return vcs


@pytest.mark.unit
class TestPointReleaseChecks:
    def test_passes(self, point_release_repo, settings):
        ctx = build_release_context(point_release_repo, POINT, settings)
        _gate(point_release_repo, settings).check(ctx)
        assert point_release_repo.fetch_count == 1
        assert point_release_repo.operations == []

    def test_tag_already_exists(self, point_release_repo, settings):
        point_release_repo.publish_tag("upstream", "v1.2.3")
        ctx = build_release_context(point_release_repo, POINT, settings)
        with pytest.raises(TagAlreadyExistsError, match="already exists"):
            _gate(point_release_repo, settings).check(ctx)

    def test_missing_previous_tag(self, point_release_repo, settings):
        ctx = build_release_context(point_release_repo, VersionSpec(1, 2, 5), settings)
        with pytest.raises(MissingPrecedingTagError) as exc:
            _gate(point_release_repo, settings).check(ctx)
        assert exc.value.details["previous"] == "v1.2.4"

    def test_release_branch_missing(self, point_release_repo, settings):
        point_release_repo.publish_tag("upstream", "v1.4.0")
        ctx = build_release_context(point_release_repo, VersionSpec(1, 4, 1), settings)
        with pytest.raises(AncestryViolationError, match="does not exist"):
            _gate(point_release_repo, settings).check(ctx)

    def test_not_descended_from_release_branch(self, point_release_repo, settings):
        repo = point_release_repo
        repo.write_file("README.md", "release only\n")
        repo.commit_all("Release branch fix")
        repo.publish_branch("upstream", "release-1.2")
        repo.checkout("master")
        ctx = build_release_context(repo, POINT, settings)
        with pytest.raises(AncestryViolationError, match="not an ancestor"):
            _gate(repo, settings).check(ctx)

    def test_release_head_unknown_locally(self, settings):
        vcs = _context_vcs()
        vcs.is_working_tree_clean.return_value = True
        vcs.is_path_modified.return_value = False
        vcs.remote_tag_exists.side_effect = lambda url, tag: tag == "v1.2.2"
        vcs.remote_branch_head.return_value = "f" * 40
        vcs.is_ancestor.side_effect = VcsCommandError("git merge-base", "bad object")
        ctx = build_release_context(vcs, POINT, settings)
        with pytest.raises(AncestryViolationError, match="bad object"):
            _gate(vcs, settings).check(ctx)

    def test_refresh_happens_before_remote_queries(self, settings):
        vcs = _context_vcs()
        vcs.is_working_tree_clean.return_value = True
        vcs.is_path_modified.return_value = False
        vcs.remote_tag_exists.return_value = True
        ctx = build_release_context(vcs, POINT, settings)
        with pytest.raises(TagAlreadyExistsError):
            _gate(vcs, settings).check(ctx)
        names = [c[0] for c in vcs.method_calls]
        assert names.index("refresh_remotes") < names.index("remote_tag_exists")


@pytest.mark.unit
class TestToolsAndBranch:
    def test_missing_tool(self, repo, settings_factory):
        settings = settings_factory(metadata=MetadataConfig())
        ctx = build_release_context(repo, MINOR, settings)
        with pytest.raises(ToolUnavailableError) as exc:
            _gate(repo, settings, which=lambda tool: None).check(ctx)
        assert exc.value.tool == "gofmt"

    def test_hook_checked_before_formatter(self, repo, settings_factory):
        settings = settings_factory(metadata=MetadataConfig(), docs=DocsConfig(hooks=[["gen-docs"]]))
        with pytest.raises(ToolUnavailableError) as exc:
            _gate(repo, settings, which=lambda tool: None).check_tools()
        assert exc.value.tool == "gen-docs"

    def test_local_executable_hook(self, repo, settings_factory):
        repo.write_file("hack/gen.sh", "#!/bin/sh\n")
        os.chmod(repo.root / "hack" / "gen.sh", 0o755)
        settings = settings_factory(docs=DocsConfig(hooks=[["hack/gen.sh"]]))
        _gate(repo, settings, which=lambda tool: None).check_tools()

    def test_local_hook_not_executable(self, repo, settings_factory):
        repo.write_file("hack/gen.sh", "#!/bin/sh\n")
        os.chmod(repo.root / "hack" / "gen.sh", 0o644)
        settings = settings_factory(docs=DocsConfig(hooks=[["hack/gen.sh"]]))
        with pytest.raises(ToolUnavailableError):
            _gate(repo, settings).check_tools()

    def test_backmerge_branch_exists(self, repo, settings):
        repo.create_branch("v1.3.0-merge-to-master")
        ctx = build_release_context(repo, MINOR, settings)
        with pytest.raises(BranchExistsError) as exc:
            _gate(repo, settings).check(ctx)
        assert exc.value.details == {"branch": "v1.3.0-merge-to-master"}
