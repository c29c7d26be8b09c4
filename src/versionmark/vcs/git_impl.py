"""
GitPython Implementation
========================

VersionControl over a real git work tree. Plumbing that GitPython has no
object API for (ls-remote, revert, merge strategies) goes through
``repo.git``, which shells out to the git executable.
"""

import logging
from pathlib import Path

from git import GitCommandError, InvalidGitRepositoryError, NoSuchPathError, Repo

from versionmark.core.exceptions import MergeConflictError, RepositoryNotFoundError, VcsCommandError
from versionmark.core.types import CommitRef, MergeBias, RemoteInfo

from .base import VersionControl

logger = logging.getLogger(__name__)

# -X option name for each bias, from the point of view of the branch being merged into
_BIAS_OPTION = {
    MergeBias.INCOMING: "theirs",
    MergeBias.TARGET: "ours",
}


def open_repository(path: str | Path) -> "GitRepository":
    """Open the repository containing path, refusing bare repositories."""
    try:
        repo = Repo(path, search_parent_directories=True)
    except (InvalidGitRepositoryError, NoSuchPathError) as e:
        raise RepositoryNotFoundError(f"Not a git repository: {path}", {"path": str(path)}) from e
    if repo.bare:
        raise RepositoryNotFoundError(f"Repository is bare: {path}", {"path": str(path)})
    return GitRepository(repo)


class GitRepository(VersionControl):
    """VersionControl backed by GitPython"""

    def __init__(self, repo: Repo):
        self._repo = repo

    @property
    def repo(self) -> Repo:
        return self._repo

    def _git(self, command: str, *args: str) -> str:
        try:
            return getattr(self._repo.git, command.replace("-", "_"))(*args)
        except GitCommandError as e:
            raise VcsCommandError(
                f"git {command}",
                f"git {command} failed: {(e.stderr or str(e)).strip()}",
                {"args": list(args), "status": e.status},
            ) from e

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def root(self) -> Path:
        return Path(self._repo.working_tree_dir)

    def control_dir(self) -> Path:
        return Path(self._repo.git_dir)

    def current_branch(self) -> str | None:
        if self._repo.head.is_detached:
            return None
        return self._repo.active_branch.name

    def head_commit(self) -> CommitRef:
        return CommitRef(self._repo.head.commit.hexsha)

    def commit_parents(self, commit: str) -> list[CommitRef]:
        try:
            return [CommitRef(p.hexsha) for p in self._repo.commit(commit).parents]
        except (ValueError, GitCommandError) as e:
            raise VcsCommandError("git rev-parse", f"Unknown commit: {commit}") from e

    def is_working_tree_clean(self) -> bool:
        return not self._repo.is_dirty(index=True, working_tree=True, untracked_files=False)

    def is_path_modified(self, path: str) -> bool:
        return self._repo.is_dirty(index=True, working_tree=True, untracked_files=False, path=path)

    def find_remote(self, url_pattern: str) -> RemoteInfo | None:
        for remote in self._repo.remotes:
            fetch_url = remote.url
            if url_pattern not in fetch_url:
                continue
            push_url = self._git("remote", "get-url", "--push", remote.name).strip()
            return RemoteInfo(name=remote.name, fetch_url=fetch_url, push_url=push_url or fetch_url)
        return None

    def remote_tag_exists(self, url: str, tag: str) -> bool:
        output = self._git("ls-remote", "--tags", url, f"refs/tags/{tag}")
        return bool(output.strip())

    def remote_branch_head(self, url: str, branch: str) -> CommitRef | None:
        output = self._git("ls-remote", "--heads", url, f"refs/heads/{branch}")
        for line in output.splitlines():
            sha, _, ref = line.partition("\t")
            if ref == f"refs/heads/{branch}":
                return CommitRef(sha)
        return None

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        try:
            return self._repo.is_ancestor(ancestor, descendant)
        except GitCommandError as e:
            raise VcsCommandError(
                "git merge-base",
                f"Cannot compare {ancestor} with {descendant}: {(e.stderr or str(e)).strip()}",
            ) from e

    def branch_exists(self, name: str) -> bool:
        return any(head.name == name for head in self._repo.heads)

    def tag_target(self, name: str) -> CommitRef:
        try:
            return CommitRef(self._repo.tags[name].commit.hexsha)
        except IndexError as e:
            raise VcsCommandError("git tag", f"Tag not found: {name}") from e

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def refresh_remotes(self) -> None:
        logger.debug("Updating remotes")
        self._git("remote", "update")

    def commit_all(self, message: str) -> CommitRef:
        self._git("commit", "-a", "-m", message)
        return self.head_commit()

    def commit_paths(self, paths: list[str], message: str) -> CommitRef:
        self._git("add", "--", *paths)
        self._git("commit", "-m", message)
        return self.head_commit()

    def create_annotated_tag(self, name: str, message: str, target: str) -> None:
        self._git("tag", "-a", "-m", message, name, target)

    def create_branch(self, name: str, start_point: str | None = None, checkout: bool = False) -> None:
        start = [start_point] if start_point else []
        if checkout:
            self._git("checkout", "-b", name, *start)
        else:
            self._git("branch", name, *start)

    def checkout(self, name: str, force: bool = False) -> None:
        if force:
            self._git("checkout", "-f", name)
        else:
            self._git("checkout", name)

    def revert(self, commit: str) -> CommitRef:
        try:
            self._git("revert", "--no-edit", commit)
        except VcsCommandError:
            if self._repo.index.unmerged_blobs():
                self._abort("revert")
            raise
        return self.head_commit()

    def merge(self, branch: str, message: str, bias: MergeBias) -> CommitRef:
        try:
            self._repo.git.merge("-X", _BIAS_OPTION[bias], "-m", message, branch)
        except GitCommandError as e:
            output = f"{e.stdout or ''}\n{e.stderr or ''}"
            if "CONFLICT" in output or self._repo.index.unmerged_blobs():
                conflicted = sorted(self._repo.index.unmerged_blobs())
                self._abort("merge")
                raise MergeConflictError(
                    branch,
                    f"Merge of {branch} into {self.current_branch()} has conflicts the "
                    f"'{bias}' bias cannot resolve. Resolve them manually.",
                    {"paths": conflicted},
                ) from e
            raise VcsCommandError("git merge", f"git merge failed: {(e.stderr or str(e)).strip()}") from e
        return self.head_commit()

    def delete_branch(self, name: str, force: bool = False) -> None:
        self._git("branch", "-D" if force else "-d", name)

    def _abort(self, operation: str) -> None:
        try:
            getattr(self._repo.git, operation)("--abort")
        except GitCommandError as e:
            logger.warning("git %s --abort failed: %s", operation, (e.stderr or str(e)).strip())
