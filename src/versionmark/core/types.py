"""
Core Type Definitions
=====================

Value objects shared by every release component. All of them are frozen:
a ReleaseContext is built once per run and threaded through the pipeline,
nothing reads ambient state after that.

Naming conventions produced here are part of the operator-facing contract
and must stay bit-exact:

- release branch      release-<major>.<minor>
- backmerge branch    v<major>.<minor>.<patch>-merge-to-<mainline>
- temporary branch    <backmerge>-tmp-<unix-timestamp>
- dev version         v<major>.<minor>.<patch>-dev
- dev minor field     <minor>.<patch>+
"""

from dataclasses import dataclass
from enum import Enum
from typing import NewType

CommitRef = NewType("CommitRef", str)


class RewriteMode(str, Enum):
    """Which flavour of version the metadata file is stamped with."""

    RELEASE = "release"
    DEV = "dev"

    def __str__(self) -> str:
        return self.value


class MergeBias(str, Enum):
    """Which side wins a conflicting hunk during the backmerge merge."""

    INCOMING = "incoming"
    TARGET = "target"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class VersionSpec:
    """A parsed vMAJOR.MINOR.PATCH version."""

    major: int
    minor: int
    patch: int

    def __str__(self) -> str:
        return f"v{self.major}.{self.minor}.{self.patch}"

    @property
    def is_point_release(self) -> bool:
        return self.patch != 0

    def previous_patch(self) -> "VersionSpec | None":
        """The tag a point release must follow, or None for a .0 release."""
        if self.patch == 0:
            return None
        return VersionSpec(self.major, self.minor, self.patch - 1)

    def release_branch(self, prefix: str = "release-") -> str:
        return f"{prefix}{self.major}.{self.minor}"

    def backmerge_branch(self, mainline: str = "master") -> str:
        return f"{self}-merge-to-{mainline}"

    def minor_field(self, mode: RewriteMode) -> str:
        value = f"{self.minor}.{self.patch}"
        return f"{value}+" if mode is RewriteMode.DEV else value

    def full_version(self, mode: RewriteMode) -> str:
        return f"{self}-dev" if mode is RewriteMode.DEV else str(self)


@dataclass(frozen=True)
class RemoteInfo:
    """An upstream remote as seen by the version-control layer."""

    name: str
    fetch_url: str
    push_url: str


@dataclass(frozen=True)
class ReleaseContext:
    """Immutable per-run context, constructed once before any mutation."""

    version: VersionSpec
    original_branch: str
    release_branch: str
    fetch_remote: str
    fetch_url: str
    push_url: str
    mainline_branch: str = "master"

    @property
    def mainline_ref(self) -> str:
        """Remote-tracking ref of the mainline, e.g. ``origin/master``."""
        return f"{self.fetch_remote}/{self.mainline_branch}"

    @property
    def backmerge_branch(self) -> str:
        return self.version.backmerge_branch(self.mainline_branch)


@dataclass(frozen=True)
class Tag:
    name: str
    message: str
    target: CommitRef


@dataclass(frozen=True)
class BackmergeBranch:
    """Result of the backmerge construction."""

    name: str
    source_ref: str
    head: CommitRef
    revert_commit: CommitRef
    temp_branch: str


@dataclass(frozen=True)
class ReleaseResult:
    """
    Everything a successful run produced.

    ``next_steps()`` renders the instructions the operator has to follow,
    since nothing is pushed automatically.
    """

    context: ReleaseContext
    doc_commit: CommitRef
    release_commit: CommitRef
    dev_commit: CommitRef
    tag: Tag
    backmerge: BackmergeBranch

    def next_steps(self) -> str:
        ctx = self.context
        version = ctx.version
        lines = [
            "Success you must now:",
            "",
            "- Push the tag:",
            f"   git push {ctx.push_url} {version}",
            "   - Please note you are pushing the tag live BEFORE your PRs.",
            "       You need this so the builds pick up the right tag info.",
            "       If something goes wrong further down please fix the tag!",
            "       Either delete this tag and give up, fix the tag before your next PR,",
            "       or find someone who can help solve the tag problem!",
            "",
        ]
        if version.is_point_release:
            lines += [
                f"- Send branch: {ctx.original_branch} as a PR to {ctx.release_branch} <-- NOTE THIS",
                "- Get someone to review and merge that PR",
                "",
            ]
        lines += [
            f"- I created the branch {self.backmerge.name} for you. What I don't know is if this is",
            "  the latest version. If it is, AND ONLY IF IT IS, submit this branch as a pull",
            f"  request to {ctx.mainline_branch}:",
            "",
            f"   git push <personal> {self.backmerge.name}",
            "",
            "  and get someone to approve that PR. I know this branch looks odd. The purpose of this",
            f"  branch is to get the tag for the version onto {ctx.mainline_branch} for things like 'git describe'.",
            "",
            "  IF THIS IS NOT THE LATEST VERSION YOU WILL CAUSE TIME TO GO BACKWARDS. DON'T DO THAT, PLEASE.",
        ]
        if not version.is_point_release:
            lines += [
                "",
                "- Push the new release branch",
                f"   git push {ctx.push_url} {ctx.original_branch}:{ctx.release_branch}",
            ]
        return "\n".join(lines)
