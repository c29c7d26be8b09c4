"""Version string parsing."""

import re

from versionmark.core.exceptions import InputFormatError
from versionmark.core.types import VersionSpec

VERSION_REGEX = r"^v(0|[1-9][0-9]*)\.(0|[1-9][0-9]*)\.(0|[1-9][0-9]*)$"

_VERSION_RE = re.compile(VERSION_REGEX)


def parse_version(text: str) -> VersionSpec:
    """
    Parse ``vMAJOR.MINOR.PATCH`` into a VersionSpec.

    Leading zeros are rejected (``v1.02.0``), as are surrounding whitespace
    and pre-release suffixes. ``str()`` of the result is the input again.

    Raises:
        InputFormatError: If text does not match the version grammar
    """
    match = _VERSION_RE.fullmatch(text)
    if not match:
        raise InputFormatError(
            f"You must specify the version in the form of '{VERSION_REGEX}'",
            {"version": text},
        )
    major, minor, patch = (int(part) for part in match.groups())
    return VersionSpec(major, minor, patch)
