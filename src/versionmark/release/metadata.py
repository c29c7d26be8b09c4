"""
Metadata Rewriter
=================

Stamps the three version fields of the metadata file:

    gitMajor   string = "1"
    gitMinor   string = "3.4"        (release)   "3.4+"        (dev)
    gitVersion string = "v1.3.4"     (release)   "v1.3.4-dev"  (dev)

Fields are located by name, not by line position, on lines that declare
them (commented-out or embedded mentions are left alone), and only the quoted
value is replaced, so applying the same (version, mode) twice yields identical
bytes. The configured formatter is run afterwards to restore canonical
layout.
"""

import re
import subprocess
from collections.abc import Callable
from pathlib import Path

from versionmark.config.settings import MetadataConfig
from versionmark.core.exceptions import MetadataRewriteError
from versionmark.core.structured_logger import get_logger
from versionmark.core.types import RewriteMode, VersionSpec

logger = get_logger("MetadataRewriter")


def _field_pattern(name: str) -> re.Pattern:
    # [var|const] <name> [<type>] = "<value>" at the start of a line
    return re.compile(
        r'^(\s*(?:(?:var|const)\s+)?' + re.escape(name) + r'(?:\s+[\w.*\[\]]+)?\s*=\s*)"[^"\n]*"',
        re.MULTILINE,
    )


class MetadataRewriter:
    """Rewrites the version fields of one metadata file in place"""

    def __init__(
        self,
        root: Path,
        config: MetadataConfig,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ):
        self.root = Path(root)
        self.config = config
        self._runner = runner

    @property
    def path(self) -> Path:
        return self.root / self.config.path

    @property
    def relative_path(self) -> str:
        return self.config.path.as_posix()

    def field_values(self, version: VersionSpec, mode: RewriteMode) -> dict[str, str]:
        return {
            self.config.major_field: str(version.major),
            self.config.minor_field: version.minor_field(mode),
            self.config.version_field: version.full_version(mode),
        }

    def render(self, text: str, version: VersionSpec, mode: RewriteMode) -> str:
        """Return text with all three fields set; nothing is written."""
        missing = []
        for name, value in self.field_values(version, mode).items():
            text, count = _field_pattern(name).subn(
                lambda m, value=value: f'{m.group(1)}"{value}"', text
            )
            if count == 0:
                missing.append(name)
        if missing:
            raise MetadataRewriteError(
                f"Could not find {', '.join(missing)} in {self.relative_path}",
                {"path": self.relative_path, "missing_fields": missing},
            )
        return text

    def rewrite(self, version: VersionSpec, mode: RewriteMode) -> Path:
        """Rewrite the file for (version, mode) and reformat it."""
        try:
            original = self.path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise MetadataRewriteError(
                f"Metadata file not found: {self.relative_path}",
                {"path": self.relative_path},
            ) from e
        except (OSError, UnicodeDecodeError) as e:
            raise MetadataRewriteError(
                f"Could not read {self.relative_path}: {e}",
                {"path": self.relative_path},
            ) from e

        rendered = self.render(original, version, mode)
        try:
            self.path.write_text(rendered, encoding="utf-8")
        except OSError as e:
            raise MetadataRewriteError(
                f"Could not write {self.relative_path}: {e}",
                {"path": self.relative_path},
            ) from e
        logger.debug("Rewrote version fields", path=self.relative_path, mode=str(mode))
        self._format()
        return self.path

    def _format(self) -> None:
        if not self.config.formatter:
            return
        command = [*self.config.formatter, str(self.path)]
        try:
            result = self._runner(command, cwd=self.root, capture_output=True, text=True, check=False)
        except OSError as e:
            raise MetadataRewriteError(
                f"Could not run formatter {self.config.formatter[0]}: {e}",
                {"command": command},
            ) from e
        if result.returncode != 0:
            raise MetadataRewriteError(
                f"Formatter {self.config.formatter[0]} failed on {self.relative_path}: {result.stderr.strip()}",
                {"command": command, "returncode": result.returncode},
            )
