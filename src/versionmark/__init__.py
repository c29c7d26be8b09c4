"""versionmark: version bump, release tagging and backmerge branch construction."""

__version__ = "1.0.0"
