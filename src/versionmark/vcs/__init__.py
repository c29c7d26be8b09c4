"""Version-control layer: capability interface and its implementations."""

from .base import VersionControl
from .git_impl import GitRepository, open_repository
from .inmemory_impl import InMemoryRepository

__all__ = [
    "GitRepository",
    "InMemoryRepository",
    "VersionControl",
    "open_repository",
]
