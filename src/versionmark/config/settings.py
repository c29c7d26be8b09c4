"""
Pydantic Settings Configuration
=================================

Type-safe configuration for a release run. Defaults reproduce the classic
Kubernetes release layout (pkg/version/base.go, docs/README.md, gofmt), so a
repository with that layout needs no configuration file at all.
"""

import os
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from versionmark.core.exceptions import ConfigurationError
from versionmark.core.types import MergeBias

CONFIG_ENV_VAR = "VERSIONMARK_CONFIG"
DEFAULT_CONFIG_NAME = "versionmark.yaml"


class MetadataConfig(BaseModel):
    """Location and field names of the version metadata file"""
    path: Path = Field(Path("pkg/version/base.go"), description="Metadata file, relative to the repository root")
    major_field: str = Field("gitMajor", description="Field holding the major version")
    minor_field: str = Field("gitMinor", description="Field holding '<minor>.<patch>' (suffixed '+' in dev mode)")
    version_field: str = Field("gitVersion", description="Field holding the full version (suffixed '-dev' in dev mode)")
    formatter: List[str] = Field(
        default_factory=lambda: ["gofmt", "-s", "-w"],
        description="Command run on the file after rewriting (empty = no reformatting)",
    )

    @field_validator('path')
    @classmethod
    def validate_relative(cls, v: Path) -> Path:
        if v.is_absolute():
            raise ValueError("metadata.path must be relative to the repository root")
        return v

    model_config = ConfigDict(extra='forbid')


class DocsConfig(BaseModel):
    """Documentation stamping performed before the doc commit"""
    files: List[Path] = Field(
        default_factory=lambda: [Path("docs/README.md"), Path("examples/README.md")],
        description="Docs whose release-only sections are stripped and HEAD references stamped",
    )
    strip_begin: str = Field("<!-- BEGIN STRIP_FOR_RELEASE -->", description="Marker opening a release-stripped block")
    strip_end: str = Field("<!-- END STRIP_FOR_RELEASE -->", description="Marker closing a release-stripped block")
    head_marker: str = Field("HEAD", description="Token replaced by the version on each doc line")
    api_globs: List[str] = Field(
        default_factory=lambda: ["pkg/api/v[0-9]*/types.go"],
        description="Files whose versioned documentation URLs are rewritten",
    )
    api_url_prefix: str = Field("releases.k8s.io", description="URL prefix followed by a version path segment")
    hooks: List[List[str]] = Field(
        default_factory=lambda: [["hack/run-gendocs.sh"], ["hack/update-swagger-spec.sh"]],
        description="Commands run in the repository root after stamping",
    )

    @field_validator('hooks')
    @classmethod
    def validate_hooks(cls, v: List[List[str]]) -> List[List[str]]:
        for hook in v:
            if not hook:
                raise ValueError("docs.hooks entries must be non-empty commands")
        return v

    model_config = ConfigDict(extra='forbid')


class RemoteConfig(BaseModel):
    """Upstream remote identification"""
    url_pattern: str = Field("kubernetes/kubernetes.git", description="Substring identifying the upstream remote URL")
    default_push_url: str = Field(
        "https://github.com/kubernetes/kubernetes.git",
        description="Push URL used when the upstream remote has none",
    )
    mainline_branch: str = Field("master", description="Mainline branch the backmerge targets")
    release_branch_prefix: str = Field("release-", description="Prefix of per-minor release branches")

    model_config = ConfigDict(extra='forbid')


class BackmergeConfig(BaseModel):
    """Backmerge branch construction"""
    conflict_bias: MergeBias = Field(
        MergeBias.INCOMING,
        description="Side preferred on conflicting hunks: incoming (release content) or target (mainline)",
    )

    model_config = ConfigDict(extra='forbid')


class LoggingConfig(BaseModel):
    """Logging configuration"""
    level: str = Field("INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")
    format: str = Field("text", description="Log format (json, text)")

    @field_validator('level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level"""
        valid_levels = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of: {', '.join(sorted(valid_levels))}")
        return v_upper

    @field_validator('format')
    @classmethod
    def validate_format(cls, v: str) -> str:
        v_lower = v.lower()
        if v_lower not in {'json', 'text'}:
            raise ValueError("Log format must be 'json' or 'text'")
        return v_lower

    model_config = ConfigDict(extra='forbid')


class Settings(BaseSettings):
    """
    Release tool settings with type validation.

    Configuration is loaded from:
    1. Environment variables with VERSIONMARK_ prefix (highest precedence)
    2. YAML config file (if present)
    3. Default values (fallback)

    Environment variable mapping uses double-underscore nesting:
      VERSIONMARK_REMOTE__MAINLINE_BRANCH
      VERSIONMARK_METADATA__PATH
      VERSIONMARK_LOGGING__FORMAT
    """

    project_name: str = Field("Kubernetes", description="Name used in commit and tag messages")
    metadata: MetadataConfig = Field(default_factory=MetadataConfig)
    docs: DocsConfig = Field(default_factory=DocsConfig)
    remote: RemoteConfig = Field(default_factory=RemoteConfig)
    backmerge: BackmergeConfig = Field(default_factory=BackmergeConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix='VERSIONMARK_',
        env_nested_delimiter='__',
        extra='forbid',
    )

    @classmethod
    def settings_customise_sources(
        cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings
    ):
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    @classmethod
    def from_yaml(cls, config_path: str | Path) -> "Settings":
        """
        Load settings from a YAML file.

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValidationError: If configuration is invalid
        """
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            config_data = yaml.safe_load(f) or {}

        return cls(**config_data)

    def external_tools(self) -> List[str]:
        """Executables the run will invoke, in invocation order, de-duplicated."""
        tools: List[str] = []
        for hook in self.docs.hooks:
            if hook[0] not in tools:
                tools.append(hook[0])
        if self.metadata.formatter and self.metadata.formatter[0] not in tools:
            tools.append(self.metadata.formatter[0])
        return tools

    def validate_required_config(self) -> List[str]:
        """
        Validate cross-field constraints.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        fields = [self.metadata.major_field, self.metadata.minor_field, self.metadata.version_field]
        if any(not f.strip() for f in fields):
            errors.append("metadata field names must not be empty")
        elif len(set(fields)) != len(fields):
            errors.append("metadata field names must be distinct")

        if not self.remote.url_pattern.strip():
            errors.append("remote.url_pattern must not be empty")
        if not self.remote.mainline_branch.strip():
            errors.append("remote.mainline_branch must not be empty")
        if self.docs.strip_begin == self.docs.strip_end:
            errors.append("docs.strip_begin and docs.strip_end must differ")

        return errors


def resolve_config_path(repo_root: Path) -> Optional[Path]:
    """VERSIONMARK_CONFIG if set, else versionmark.yaml in the repository root if present."""
    explicit = os.getenv(CONFIG_ENV_VAR, "").strip()
    if explicit:
        return Path(explicit)
    candidate = repo_root / DEFAULT_CONFIG_NAME
    return candidate if candidate.exists() else None


def load_settings(config_path: Optional[str | Path] = None) -> Settings:
    """
    Load and validate settings.

    Raises:
        ConfigurationError: If the file is missing or configuration is invalid
    """
    try:
        settings = Settings.from_yaml(config_path) if config_path else Settings()
    except FileNotFoundError as e:
        raise ConfigurationError(str(e)) from e
    except (ValidationError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e

    errors = settings.validate_required_config()
    if errors:
        raise ConfigurationError(
            "Configuration validation failed: " + "; ".join(errors),
            {"errors": errors},
        )
    return settings
