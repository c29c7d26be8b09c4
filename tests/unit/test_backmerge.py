"""Tests for versionmark.release.backmerge: backmerge branch construction"""

from unittest.mock import MagicMock

import pytest

from versionmark.core.exceptions import BackmergeError, MergeConflictError, VcsCommandError
from versionmark.core.types import MergeBias, VersionSpec
from versionmark.release.backmerge import BackmergeBuilder
from versionmark.release.metadata import MetadataRewriter
from versionmark.release.preconditions import build_release_context
from versionmark.release.sequencer import ReleaseSequencer
from versionmark.release.stamper import DocumentStamper
from versionmark.vcs.base import VersionControl

V = VersionSpec(1, 3, 0)


def _release(repo, settings, version=V):
    ctx = build_release_context(repo, version, settings)
    seq = ReleaseSequencer(
        repo,
        DocumentStamper(repo.root, settings.docs),
        MetadataRewriter(repo.root, settings.metadata),
        settings.project_name,
    )
    return ctx, seq.run(ctx)


def _advance_mainline(repo, path, content):
    """Publish a mainline commit the release branch does not have."""
    repo.create_branch("mainline-work", start_point="upstream/master", checkout=True)
    if content is None:
        (repo.root / path).unlink()
    else:
        repo.write_file(path, content)
    repo.commit_paths([path], "Mainline change")
    repo.publish_branch("upstream", "master")
    repo.checkout("master")
    repo.delete_branch("mainline-work", force=True)
    repo.operations.clear()


@pytest.mark.unit
class TestBackmergeBuilder:
    def test_temp_branch_name(self, repo, settings):
        ctx = build_release_context(repo, V, settings)
        builder = BackmergeBuilder(repo, clock=lambda: 1700000000.7)
        assert builder.temp_branch_name(ctx) == "v1.3.0-merge-to-master-tmp-1700000000"

    def test_build_sequence(self, repo, settings):
        ctx, seq = _release(repo, settings)
        repo.operations.clear()
        result = BackmergeBuilder(repo, clock=lambda: 42).build(ctx, seq.doc_commit)

        assert repo.operations == [
            "create_branch",
            "revert",
            "create_branch",
            "merge",
            "delete_branch",
        ]
        assert result.name == "v1.3.0-merge-to-master"
        assert result.source_ref == "upstream/master"
        assert result.temp_branch == "v1.3.0-merge-to-master-tmp-42"
        assert "v1.3.0-merge-to-master-tmp-42" not in repo.branches
        assert repo.current_branch() == "v1.3.0-merge-to-master"

    def test_revert_of_doc_commit(self, repo, settings):
        ctx, seq = _release(repo, settings)
        result = BackmergeBuilder(repo).build(ctx, seq.doc_commit)
        assert repo.commit_message(result.revert_commit).startswith('Revert "Versioning docs and examples for 1.3.0"')
        assert repo.commit_parents(result.revert_commit) == [seq.dev_commit]

    def test_backmerge_carries_tag_not_doc_edits(self, repo, settings):
        ctx, seq = _release(repo, settings)
        result = BackmergeBuilder(repo).build(ctx, seq.doc_commit)

        assert repo.is_ancestor(seq.release_commit, result.head)
        tree = repo.tree(result.head)
        assert "STRIP_FOR_RELEASE" in tree["docs/README.md"]
        assert "releases.k8s.io/HEAD" in tree["pkg/api/v1/types.go"]
        assert 'gitVersion   string = "v1.3.0-dev"' in tree["pkg/version/base.go"]

    def test_merge_commit_when_mainline_moved(self, repo, settings):
        _advance_mainline(repo, "CHANGELOG.md", "mainline notes\n")
        ctx, seq = _release(repo, settings)
        result = BackmergeBuilder(repo).build(ctx, seq.doc_commit)

        assert repo.commit_message(result.head) == "1.3.0 merge to master"
        parents = repo.commit_parents(result.head)
        assert len(parents) == 2
        assert parents[0] == repo.remote_branch_head(ctx.fetch_url, "master")
        tree = repo.tree(result.head)
        assert tree["CHANGELOG.md"] == "mainline notes\n"
        assert 'gitVersion   string = "v1.3.0-dev"' in tree["pkg/version/base.go"]

    def test_incoming_bias_prefers_release_side(self, repo, settings):
        _advance_mainline(repo, "pkg/version/base.go", "mainline version file\n")
        ctx, seq = _release(repo, settings)
        result = BackmergeBuilder(repo, MergeBias.INCOMING).build(ctx, seq.doc_commit)
        assert 'gitVersion   string = "v1.3.0-dev"' in repo.tree(result.head)["pkg/version/base.go"]

    def test_target_bias_prefers_mainline(self, repo, settings):
        _advance_mainline(repo, "pkg/version/base.go", "mainline version file\n")
        ctx, seq = _release(repo, settings)
        result = BackmergeBuilder(repo, MergeBias.TARGET).build(ctx, seq.doc_commit)
        assert repo.tree(result.head)["pkg/version/base.go"] == "mainline version file\n"

    def test_unresolvable_conflict(self, repo, settings):
        _advance_mainline(repo, "pkg/version/base.go", None)
        ctx, seq = _release(repo, settings)
        with pytest.raises(MergeConflictError) as exc:
            BackmergeBuilder(repo).build(ctx, seq.doc_commit)
        assert exc.value.details["paths"] == ["pkg/version/base.go"]
        assert exc.value.exit_code == 2

    def test_vcs_failure_wrapped(self):
        vcs = MagicMock(spec=VersionControl)
        vcs.revert.side_effect = VcsCommandError("git revert", "could not revert", {"status": 1})
        ctx = MagicMock()
        ctx.version = V
        ctx.backmerge_branch = "v1.3.0-merge-to-master"
        with pytest.raises(BackmergeError) as exc:
            BackmergeBuilder(vcs).build(ctx, "d" * 40)
        assert not isinstance(exc.value, MergeConflictError)
        assert exc.value.details["step"] == f"revert {'d' * 8}"
        vcs.merge.assert_not_called()
