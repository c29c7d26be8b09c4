"""
Abstract Version-Control Interface
==================================

The narrow set of capabilities the release workflow needs from a
version-control system. The orchestration code only talks to this
contract, so it runs unchanged against a real repository or the in-memory
implementation used by the tests.

Implementations:
- GitRepository: GitPython over a real work tree
- InMemoryRepository: commit graph held in memory over a scratch work tree

Every failing operation raises VcsCommandError (or MergeConflictError for
merges); callers decide which step error to surface.
"""

from abc import ABC, abstractmethod
from pathlib import Path

from versionmark.core.types import CommitRef, MergeBias, RemoteInfo


class VersionControl(ABC):
    """Capability interface over a single repository and its work tree"""

    # -- queries -----------------------------------------------------------

    @property
    @abstractmethod
    def root(self) -> Path:
        """Root of the work tree"""

    @abstractmethod
    def control_dir(self) -> Path:
        """Private directory of the repository (where the run lock lives)"""

    @abstractmethod
    def current_branch(self) -> str | None:
        """Checked-out branch name, or None when HEAD is detached"""

    @abstractmethod
    def head_commit(self) -> CommitRef:
        """Commit HEAD points to"""

    @abstractmethod
    def commit_parents(self, commit: str) -> list[CommitRef]:
        """Parents of a commit, first parent first"""

    @abstractmethod
    def is_working_tree_clean(self) -> bool:
        """No staged or unstaged changes to tracked files (untracked files are ignored)"""

    @abstractmethod
    def is_path_modified(self, path: str) -> bool:
        """A tracked path has staged or unstaged modifications"""

    @abstractmethod
    def find_remote(self, url_pattern: str) -> RemoteInfo | None:
        """First remote whose fetch URL contains url_pattern"""

    @abstractmethod
    def remote_tag_exists(self, url: str, tag: str) -> bool:
        """The remote at url has refs/tags/<tag>"""

    @abstractmethod
    def remote_branch_head(self, url: str, branch: str) -> CommitRef | None:
        """Commit refs/heads/<branch> points to on the remote at url"""

    @abstractmethod
    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        """ancestor is reachable from descendant (a commit is its own ancestor)"""

    @abstractmethod
    def branch_exists(self, name: str) -> bool:
        """A local branch with this name exists"""

    @abstractmethod
    def tag_target(self, name: str) -> CommitRef:
        """Commit a local tag points to"""

    # -- mutations ---------------------------------------------------------

    @abstractmethod
    def refresh_remotes(self) -> None:
        """Fetch all remotes so remote-tracking refs are current"""

    @abstractmethod
    def commit_all(self, message: str) -> CommitRef:
        """Commit every modified tracked file"""

    @abstractmethod
    def commit_paths(self, paths: list[str], message: str) -> CommitRef:
        """Stage the given paths and commit them"""

    @abstractmethod
    def create_annotated_tag(self, name: str, message: str, target: str) -> None:
        """Create an annotated tag at target"""

    @abstractmethod
    def create_branch(self, name: str, start_point: str | None = None, checkout: bool = False) -> None:
        """Create a local branch at start_point (default HEAD), optionally switching to it"""

    @abstractmethod
    def checkout(self, name: str, force: bool = False) -> None:
        """Switch to a branch; force discards local modifications"""

    @abstractmethod
    def revert(self, commit: str) -> CommitRef:
        """Commit the inverse of commit on the current branch"""

    @abstractmethod
    def merge(self, branch: str, message: str, bias: MergeBias) -> CommitRef:
        """
        Merge branch into the current branch.

        Conflicting hunks are resolved toward ``bias``; anything the bias
        cannot settle aborts the merge and raises MergeConflictError.
        """

    @abstractmethod
    def delete_branch(self, name: str, force: bool = False) -> None:
        """Delete a local branch"""
