"""
Document Stamper
================

Prepares documentation for a release before the doc commit:

1. In every configured doc file, delete each block from the strip-begin
   marker to the next strip-end marker (both lines included; the end marker
   is only looked for from the line after the begin marker) and replace the
   first HEAD token on each remaining line with the version.
2. In every file matching the API globs, point versioned documentation URLs
   (``releases.k8s.io/<anything>``) at the version.
3. Run the hook commands (doc generators, API spec regeneration) in the
   repository root.

The release pipeline only cares whether this succeeded; any failure raises
DocumentStampError before a commit is made.
"""

import re
import subprocess
from collections.abc import Callable
from pathlib import Path

from versionmark.config.settings import DocsConfig
from versionmark.core.exceptions import DocumentStampError
from versionmark.core.structured_logger import get_logger
from versionmark.core.types import VersionSpec

logger = get_logger("DocumentStamper")


class DocumentStamper:
    """Strips release-only doc sections and stamps version references"""

    def __init__(
        self,
        root: Path,
        config: DocsConfig,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ):
        self.root = Path(root)
        self.config = config
        self._runner = runner

    def stamp(self, version: VersionSpec) -> list[Path]:
        """Stamp every configured file, run the hooks, return the files touched."""
        touched = []
        for doc in self.config.files:
            path = self.root / doc
            if not path.is_file():
                raise DocumentStampError(f"Documentation file not found: {doc.as_posix()}", {"path": doc.as_posix()})
            if self._rewrite(path, self.stamp_doc(self._read(path), version)):
                touched.append(path)

        for path in self._api_files():
            if self._rewrite(path, self.stamp_api(self._read(path), version)):
                touched.append(path)

        for hook in self.config.hooks:
            self._run_hook(hook, version)

        logger.info("Stamped documentation", version=str(version), files=len(touched))
        return touched

    def stamp_doc(self, text: str, version: VersionSpec) -> str:
        lines = []
        stripping = False
        for line in text.splitlines(keepends=True):
            if stripping:
                if self.config.strip_end in line:
                    stripping = False
                continue
            if self.config.strip_begin in line:
                # the end marker is only looked for from the following line
                stripping = True
                continue
            lines.append(line.replace(self.config.head_marker, str(version), 1))
        return "".join(lines)

    def stamp_api(self, text: str, version: VersionSpec) -> str:
        pattern = re.compile(rf"({re.escape(self.config.api_url_prefix)})/[^/\n]*")
        return "".join(
            pattern.sub(lambda m: f"{m.group(1)}/{version}", line, count=1)
            for line in text.splitlines(keepends=True)
        )

    def _api_files(self) -> list[Path]:
        files: list[Path] = []
        for pattern in self.config.api_globs:
            for path in sorted(self.root.glob(pattern)):
                if path.is_file() and path not in files:
                    files.append(path)
        return files

    def _read(self, path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            relative = path.relative_to(self.root).as_posix()
            raise DocumentStampError(f"Could not read {relative}: {e}", {"path": relative}) from e

    def _rewrite(self, path: Path, text: str) -> bool:
        if self._read(path) == text:
            return False
        try:
            path.write_text(text, encoding="utf-8")
        except OSError as e:
            relative = path.relative_to(self.root).as_posix()
            raise DocumentStampError(f"Could not write {relative}: {e}", {"path": relative}) from e
        return True

    def _run_hook(self, hook: list[str], version: VersionSpec) -> None:
        executable = hook[0]
        if (self.root / executable).is_file():
            executable = str(self.root / executable)
        command = [executable, *hook[1:]]
        logger.info("Running documentation hook", hook=" ".join(hook))
        try:
            result = self._runner(command, cwd=self.root, capture_output=True, text=True, check=False)
        except OSError as e:
            raise DocumentStampError(f"Could not run {hook[0]}: {e}", {"hook": hook}) from e
        if result.returncode != 0:
            raise DocumentStampError(
                f"{hook[0]} exited with status {result.returncode} while stamping {version}",
                {"hook": hook, "returncode": result.returncode, "stderr": result.stderr.strip()},
            )
