"""
Target parsing — ``name-or-package-path[@v1[,v2,...]]``.
"""

from __future__ import annotations

import re

from binpin.core.errors import MalformedTarget

# Major-version suffix used by Go module paths, e.g. ".../v2".
_MAJOR_VERSION_RE = re.compile(r"^v[0-9]*$")

NONE_VERSION = "none"


def parse_target(raw_target: str) -> tuple[str, str, list[str]]:
    """Split a raw target into (name, package path, versions).

    The package path is empty when the tool is referenced by name. A
    missing version section yields ``[""]`` (any version).

    Raises:
        MalformedTarget: Duplicate versions, or ``none`` mixed with others.
    """
    if not raw_target:
        raise ValueError("target is empty, this should be filtered earlier")

    name_or_package, _, version_part = raw_target.partition("@")
    versions = version_part.split(",") if "@" in raw_target else [""]

    if len(versions) > 1:
        seen: set[str] = set()
        for v in versions:
            if v in seen:
                raise MalformedTarget(f"version duplicates are not allowed, got: {versions}")
            seen.add(v)
            if v == NONE_VERSION:
                raise MalformedTarget(
                    f"none is not allowed when there are more than one specified version, got: {versions}"
                )

    name, package_path = name_or_package, ""
    if "/" in name_or_package:
        # Referenced by package path; default name from its last element.
        package_path = name_or_package
        segments = package_path.rstrip("/").split("/")
        name = segments[-1]
        if len(segments) > 3 and _MAJOR_VERSION_RE.match(name):
            # Module paths commonly end with a major version; skip it.
            name = segments[-2]
    return name.lower(), package_path, versions
