"""
Pytest configuration for all versionmark tests: validates the environment,
registers markers, and provides a seeded in-memory repository.
"""

import logging
import sys
from pathlib import Path

import pytest

from versionmark.config.settings import DocsConfig, MetadataConfig, RemoteConfig, Settings
from versionmark.core.structured_logger import ROOT_LOGGER_NAME
from versionmark.vcs.inmemory_impl import InMemoryRepository

# =============================================================================
# SAMPLE CONTENT
# =============================================================================

METADATA_PATH = "pkg/version/base.go"

GO_METADATA = """package version

var (
	gitMajor     string = ""
	gitMinor     string = ""
	gitVersion   string = "v0.0.0-master+$Format:%h$"
	gitCommit    string = "$Format:%H$"
	gitTreeState string = "not a git tree"
)
"""

DOC_README = """# Documentation

Browse the docs at https://releases.k8s.io/HEAD/docs/README.md
<!-- BEGIN STRIP_FOR_RELEASE -->
You are looking at documentation for an unreleased version.
<!-- END STRIP_FOR_RELEASE -->
Built from HEAD.
"""

API_TYPES = """package v1

// More info: http://releases.k8s.io/HEAD/docs/volumes.md#emptydir
type EmptyDirVolumeSource struct{}
"""

UPSTREAM_URL = "https://github.com/example/project.git"
UPSTREAM_PUSH_URL = "git@github.com:example/project.git"


def make_settings(**overrides) -> Settings:
    """Settings for the sample tree: no formatter, no hooks, example upstream."""
    values = {
        "project_name": "Project",
        "metadata": MetadataConfig(formatter=[]),
        "docs": DocsConfig(files=[Path("docs/README.md")], hooks=[]),
        "remote": RemoteConfig(url_pattern="example/project.git"),
    }
    values.update(overrides)
    return Settings(**values)


# =============================================================================
# SHARED FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def reset_versionmark_logging():
    """configure_logging() binds a handler to the current stderr; drop it after each test."""
    yield
    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.propagate = True


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def settings_factory():
    """make_settings(**overrides) for tests that need a variant."""
    return make_settings


@pytest.fixture
def repo(tmp_path) -> InMemoryRepository:
    """Seeded repository on master whose upstream master matches HEAD."""
    workdir = tmp_path / "work"
    workdir.mkdir()
    vcs = InMemoryRepository(workdir, control_dir=tmp_path / "control")
    (tmp_path / "control").mkdir()
    vcs.write_file(METADATA_PATH, GO_METADATA)
    vcs.write_file("docs/README.md", DOC_README)
    vcs.write_file("pkg/api/v1/types.go", API_TYPES)
    vcs.write_file("README.md", "# Project\n")
    vcs.seed("Initial commit")
    vcs.add_remote("upstream", UPSTREAM_URL, UPSTREAM_PUSH_URL)
    vcs.publish_branch("upstream", "master")
    return vcs


@pytest.fixture
def point_release_repo(repo) -> InMemoryRepository:
    """Repository ready for v1.2.3: v1.2.2 tagged upstream, on a branch descending from release-1.2."""
    repo.publish_tag("upstream", "v1.2.2")
    repo.publish_branch("upstream", "release-1.2")
    repo.create_branch("fix-1.2", checkout=True)
    repo.operations.clear()
    return repo


# =============================================================================
# PYTEST CONFIGURATION
# =============================================================================


def pytest_configure(config):
    """Validate test environment and configure pytest with custom markers."""
    missing = []
    for mod in ("git", "click", "pydantic", "pydantic_settings", "yaml"):
        try:
            __import__(mod)
        except ImportError:
            missing.append(mod)

    if missing:
        print(
            "\n"
            "=" * 70 + "\n"
            " TEST ENVIRONMENT ERROR\n"
            "=" * 70 + "\n"
            f"\n"
            f" Missing dependencies: {', '.join(missing)}\n"
            f"\n"
            f" versionmark must be installed before running tests.\n"
            f" Run:\n"
            f"\n"
            f"   pip install -e '.[dev]'\n"
            f"\n"
            "=" * 70,
            file=sys.stderr,
        )
        raise SystemExit(1)

    config.addinivalue_line(
        "markers", "unit: Fast unit tests with no external dependencies"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests against real git repositories"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests for full workflows"
    )
