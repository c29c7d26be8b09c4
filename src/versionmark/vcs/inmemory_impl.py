"""
In-Memory Version Control
=========================

Commit graph, branches, tags and remotes held in memory, over a real
scratch work tree so file-level collaborators (metadata rewriter, document
stamper) run unchanged. Ideal for testing the release orchestration without
a git executable.

Semantics mirror git closely enough for the release workflow:
- commits are whole-tree snapshots of the tracked files
- ``commit_all`` only picks up tracked files, like ``git commit -a``
- reverts and merges work per file; a merge with both sides changed is
  settled by the bias, a modify/delete pair is a conflict
- merging a descendant fast-forwards

Limitations:
- no index: staging and committing happen together
- remotes are plain records; ``publish_*`` helpers stand in for other
  people pushing to them
"""

import hashlib
import logging
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from versionmark.core.exceptions import MergeConflictError, VcsCommandError
from versionmark.core.types import CommitRef, MergeBias, RemoteInfo

from .base import VersionControl

logger = logging.getLogger(__name__)

Tree = dict[str, bytes]


@dataclass
class _Commit:
    sha: CommitRef
    parents: tuple[CommitRef, ...]
    message: str
    tree: Tree


@dataclass
class _Remote:
    name: str
    fetch_url: str
    push_url: str
    heads: dict[str, CommitRef] = field(default_factory=dict)
    tags: dict[str, CommitRef] = field(default_factory=dict)


class InMemoryRepository(VersionControl):
    """
    In-memory repository over a work tree directory.

    ``operations`` records every mutating call in order, e.g.
    ``["commit_all", "commit_paths", "create_annotated_tag", ...]``, so tests
    can assert both ordering and that nothing was mutated at all.
    """

    def __init__(self, workdir: Path, initial_branch: str = "master", control_dir: Path | None = None):
        self._root = Path(workdir)
        self._control_dir = Path(control_dir) if control_dir else None
        self._commits: dict[CommitRef, _Commit] = {}
        self._branches: dict[str, CommitRef] = {}
        self._tags: dict[str, tuple[CommitRef, str]] = {}
        self._remotes: dict[str, _Remote] = {}
        self._tracking: dict[str, CommitRef] = {}
        self._head_branch: str | None = initial_branch
        self._detached_at: CommitRef | None = None
        self._counter = 0
        self.operations: list[str] = []
        self.fetch_count = 0

    # ------------------------------------------------------------------
    # Test helpers
    # ------------------------------------------------------------------

    def write_file(self, path: str, content: str) -> None:
        target = self._root / path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")

    def read_file(self, path: str) -> str:
        return (self._root / path).read_text(encoding="utf-8")

    def seed(self, message: str = "Initial commit") -> CommitRef:
        """Commit every file currently in the work tree, tracked or not."""
        tree = self._scan_worktree()
        return self._record_commit(message, tree)

    def add_remote(self, name: str, fetch_url: str, push_url: str | None = None) -> None:
        self._remotes[name] = _Remote(name, fetch_url, push_url or fetch_url)

    def publish_branch(self, remote: str, branch: str, ref: str | None = None) -> CommitRef:
        """Point a branch on the remote (and its tracking ref) at ref (default HEAD)."""
        sha = self._resolve(ref) if ref else self.head_commit()
        self._remotes[remote].heads[branch] = sha
        self._tracking[f"{remote}/{branch}"] = sha
        return sha

    def publish_tag(self, remote: str, tag: str, ref: str | None = None) -> None:
        sha = self._resolve(ref) if ref else self.head_commit()
        self._remotes[remote].tags[tag] = sha

    def detach(self) -> None:
        self._detached_at = self.head_commit()
        self._head_branch = None

    def commit_message(self, commit: str) -> str:
        return self._commits[self._resolve(commit)].message

    def tree(self, ref: str) -> dict[str, str]:
        """Decoded file contents of a commit."""
        return {p: c.decode("utf-8") for p, c in self._commits[self._resolve(ref)].tree.items()}

    def tag_message(self, name: str) -> str:
        return self._tags[name][1]

    @property
    def branches(self) -> list[str]:
        return sorted(self._branches)

    @property
    def tags(self) -> list[str]:
        return sorted(self._tags)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def root(self) -> Path:
        return self._root

    def control_dir(self) -> Path:
        if self._control_dir is None:
            self._control_dir = Path(tempfile.mkdtemp(prefix="versionmark-vcs-"))
        return self._control_dir

    def current_branch(self) -> str | None:
        return self._head_branch

    def head_commit(self) -> CommitRef:
        if self._detached_at:
            return self._detached_at
        sha = self._branches.get(self._head_branch)
        if sha is None:
            raise VcsCommandError("rev-parse", f"Branch {self._head_branch} has no commits yet")
        return sha

    def commit_parents(self, commit: str) -> list[CommitRef]:
        return list(self._commits[self._resolve(commit)].parents)

    def is_working_tree_clean(self) -> bool:
        head = self._head_tree()
        return all(self._read_path(path) == content for path, content in head.items())

    def is_path_modified(self, path: str) -> bool:
        return self._head_tree().get(path) != self._read_path(path)

    def find_remote(self, url_pattern: str) -> RemoteInfo | None:
        for remote in self._remotes.values():
            if url_pattern in remote.fetch_url:
                return RemoteInfo(remote.name, remote.fetch_url, remote.push_url)
        return None

    def remote_tag_exists(self, url: str, tag: str) -> bool:
        return tag in self._remote_by_url(url).tags

    def remote_branch_head(self, url: str, branch: str) -> CommitRef | None:
        return self._remote_by_url(url).heads.get(branch)

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        return self._resolve(ancestor) in self._ancestors(self._resolve(descendant))

    def branch_exists(self, name: str) -> bool:
        return name in self._branches

    def tag_target(self, name: str) -> CommitRef:
        if name not in self._tags:
            raise VcsCommandError("tag", f"Tag not found: {name}")
        return self._tags[name][0]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def refresh_remotes(self) -> None:
        self.fetch_count += 1
        for remote in self._remotes.values():
            for branch, sha in remote.heads.items():
                self._tracking[f"{remote.name}/{branch}"] = sha

    def commit_all(self, message: str) -> CommitRef:
        self.operations.append("commit_all")
        head = self._head_tree()
        tree = dict(head)
        for path in head:
            content = self._read_path(path)
            if content is None:
                del tree[path]
            else:
                tree[path] = content
        if tree == head:
            raise VcsCommandError("commit", "nothing to commit, working tree clean")
        return self._record_commit(message, tree)

    def commit_paths(self, paths: list[str], message: str) -> CommitRef:
        self.operations.append("commit_paths")
        head = self._head_tree()
        tree = dict(head)
        for path in paths:
            content = self._read_path(path)
            if content is None and path not in head:
                raise VcsCommandError("add", f"pathspec '{path}' did not match any files")
            if content is None:
                del tree[path]
            else:
                tree[path] = content
        if tree == head:
            raise VcsCommandError("commit", "nothing to commit, working tree clean")
        return self._record_commit(message, tree)

    def create_annotated_tag(self, name: str, message: str, target: str) -> None:
        self.operations.append("create_annotated_tag")
        if name in self._tags:
            raise VcsCommandError("tag", f"tag '{name}' already exists")
        self._tags[name] = (self._resolve(target), message)

    def create_branch(self, name: str, start_point: str | None = None, checkout: bool = False) -> None:
        self.operations.append("create_branch")
        if name in self._branches:
            raise VcsCommandError("branch", f"a branch named '{name}' already exists")
        sha = self._resolve(start_point) if start_point else self.head_commit()
        if checkout:
            self._switch(sha, force=False)
            self._branches[name] = sha
            self._head_branch = name
            self._detached_at = None
        else:
            self._branches[name] = sha

    def checkout(self, name: str, force: bool = False) -> None:
        self.operations.append("checkout")
        if name not in self._branches:
            raise VcsCommandError("checkout", f"pathspec '{name}' did not match any branch")
        self._switch(self._branches[name], force=force)
        self._head_branch = name
        self._detached_at = None

    def revert(self, commit: str) -> CommitRef:
        self.operations.append("revert")
        target = self._commits[self._resolve(commit)]
        parent_tree = self._commits[target.parents[0]].tree if target.parents else {}
        current = self._head_tree()
        if not self.is_working_tree_clean():
            raise VcsCommandError("revert", "your local changes would be overwritten by revert")
        tree = dict(current)
        for path in set(target.tree) | set(parent_tree):
            before, after = parent_tree.get(path), target.tree.get(path)
            if before == after:
                continue
            if current.get(path) != after:
                raise VcsCommandError("revert", f"could not revert {target.sha[:7]}: conflict in {path}")
            if before is None:
                del tree[path]
            else:
                tree[path] = before
        first_line = target.message.splitlines()[0] if target.message else ""
        message = f'Revert "{first_line}"\n\nThis reverts commit {target.sha}.'
        sha = self._record_commit(message, tree)
        self._write_tree(current, tree)
        return sha

    def merge(self, branch: str, message: str, bias: MergeBias) -> CommitRef:
        self.operations.append("merge")
        ours = self.head_commit()
        theirs = self._resolve(branch)
        ours_ancestors = self._ancestors(ours)
        if theirs in ours_ancestors:
            return ours
        if ours in self._ancestors(theirs):
            self._switch(theirs, force=False)
            self._move_head(theirs)
            return theirs

        base_tree = self._commits[self._merge_base(ours, theirs)].tree
        ours_tree = self._commits[ours].tree
        theirs_tree = self._commits[theirs].tree
        merged: Tree = {}
        conflicts = []
        for path in sorted(set(base_tree) | set(ours_tree) | set(theirs_tree)):
            base, mine, other = base_tree.get(path), ours_tree.get(path), theirs_tree.get(path)
            if mine == other or other == base:
                result = mine
            elif mine == base:
                result = other
            elif mine is None or other is None:
                conflicts.append(path)
                continue
            else:
                result = other if bias is MergeBias.INCOMING else mine
            if result is not None:
                merged[path] = result
        if conflicts:
            raise MergeConflictError(
                branch,
                f"Merge of {branch} into {self._head_branch} has conflicts the "
                f"'{bias}' bias cannot resolve. Resolve them manually.",
                {"paths": conflicts},
            )
        sha = self._record_commit(message, merged, extra_parents=(theirs,))
        self._write_tree(ours_tree, merged)
        return sha

    def delete_branch(self, name: str, force: bool = False) -> None:
        self.operations.append("delete_branch")
        if name not in self._branches:
            raise VcsCommandError("branch", f"branch '{name}' not found")
        if name == self._head_branch:
            raise VcsCommandError("branch", f"Cannot delete branch '{name}' checked out")
        if not force and not self.is_ancestor(name, self.head_commit()):
            raise VcsCommandError("branch", f"The branch '{name}' is not fully merged")
        del self._branches[name]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _remote_by_url(self, url: str) -> _Remote:
        for remote in self._remotes.values():
            if url in (remote.fetch_url, remote.push_url):
                return remote
        raise VcsCommandError("ls-remote", f"'{url}' does not appear to be a git repository")

    def _resolve(self, ref: str) -> CommitRef:
        if ref in self._branches:
            return self._branches[ref]
        if ref in self._tracking:
            return self._tracking[ref]
        if ref in self._tags:
            return self._tags[ref][0]
        if ref in self._commits:
            return CommitRef(ref)
        raise VcsCommandError("rev-parse", f"unknown revision '{ref}'")

    def _ancestors(self, sha: CommitRef) -> set[CommitRef]:
        seen: set[CommitRef] = set()
        stack = [sha]
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self._commits[current].parents)
        return seen

    def _merge_base(self, a: CommitRef, b: CommitRef) -> CommitRef:
        common = self._ancestors(a) & self._ancestors(b)
        if not common:
            raise VcsCommandError("merge", "refusing to merge unrelated histories")
        return max(common, key=lambda c: len(self._ancestors(c)))

    def _head_tree(self) -> Tree:
        if self._detached_at is None and self._branches.get(self._head_branch) is None:
            return {}
        return self._commits[self.head_commit()].tree

    def _move_head(self, sha: CommitRef) -> None:
        if self._head_branch is None:
            self._detached_at = sha
        else:
            self._branches[self._head_branch] = sha

    def _record_commit(self, message: str, tree: Tree, extra_parents: tuple[CommitRef, ...] = ()) -> CommitRef:
        parents: tuple[CommitRef, ...] = ()
        if self._detached_at is not None or self._branches.get(self._head_branch) is not None:
            parents = (self.head_commit(),)
        parents += extra_parents
        self._counter += 1
        digest = hashlib.sha1(f"{self._counter}\0{message}\0{','.join(parents)}".encode()).hexdigest()
        sha = CommitRef(digest)
        self._commits[sha] = _Commit(sha, parents, message, dict(tree))
        self._move_head(sha)
        logger.debug("Recorded commit %s: %s", sha[:8], message.splitlines()[0] if message else "")
        return sha

    def _switch(self, sha: CommitRef, force: bool) -> None:
        current = self._head_tree()
        target = self._commits[sha].tree
        if force:
            self._write_tree(current, target)
            return
        if target == current:
            return
        if not self.is_working_tree_clean():
            raise VcsCommandError("checkout", "Your local changes would be overwritten by checkout")
        self._write_tree(current, target)

    def _write_tree(self, old: Tree, new: Tree) -> None:
        for path in old:
            if path not in new:
                (self._root / path).unlink(missing_ok=True)
        for path, content in new.items():
            target = self._root / path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content)

    def _read_path(self, path: str) -> bytes | None:
        target = self._root / path
        return target.read_bytes() if target.is_file() else None

    def _scan_worktree(self) -> Tree:
        return {
            p.relative_to(self._root).as_posix(): p.read_bytes()
            for p in sorted(self._root.rglob("*"))
            if p.is_file()
        }
