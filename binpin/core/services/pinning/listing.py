"""
Pinned tool listing — what the pin directory currently holds.
"""

from __future__ import annotations

import logging
from pathlib import Path

from binpin.core.errors import PinError
from binpin.core.models.package import PinnedTool, PinnedVersion
from binpin.core.services.pinning.manifest import ROOT_MOD_FILE, direct_package_of
from binpin.core.services.pinning.pin_dir import existing_mod_files, mod_file_index, name_from_mod_file

logger = logging.getLogger(__name__)

TABLE_HEADER = ("Name", "Binary Name", "Package @ Version", "Build EnvVars", "Build Flags")


def env_var_name(name: str, array: bool = False) -> str:
    """Variable name a tool's binary is exposed under, e.g. ``GOLANGCI_LINT``."""
    var = name.upper().replace(".", "_").replace("-", "_")
    return f"{var}_ARRAY" if array else var


def list_pinned(mod_dir: str | Path, remove_malformed: bool = False) -> list[PinnedTool]:
    """Pinned tools in the pin directory, array versions grouped in index order.

    Malformed module files are skipped; with ``remove_malformed`` they
    are deleted too.
    """
    mod_dir = Path(mod_dir)
    if not mod_dir.is_dir():
        return []

    tools: dict[str, PinnedTool] = {}
    for path in sorted(mod_dir.glob("*.mod")):
        if path.name == ROOT_MOD_FILE or ".tmp." in path.name or path.name.endswith("tmp.mod"):
            continue
        name, _ = name_from_mod_file(path)
        if name in tools or mod_file_index(path, name) is None:
            continue

        tool = None
        for mod_file in existing_mod_files(mod_dir, name):
            try:
                pkg = direct_package_of(mod_file)
            except PinError as e:
                if remove_malformed:
                    logger.warning("found malformed module file %s, removing due to error: %s", mod_file, e)
                    mod_file.unlink(missing_ok=True)
                else:
                    logger.debug("skipping malformed module file %s: %s", mod_file, e)
                continue

            version = PinnedVersion(version=pkg.module.version, mod_file=mod_file.name)
            if tool is None:
                tool = PinnedTool(
                    name=name,
                    mod_path=pkg.module.path,
                    package_path=pkg.path,
                    env_var_name=env_var_name(name),
                    versions=[version],
                    build_envs=pkg.build_envs,
                    build_flags=pkg.build_flags,
                )
            else:
                tool.versions.append(version)
                tool.env_var_name = env_var_name(name, array=True)
        if tool is not None:
            tools[name] = tool
    return list(tools.values())


def sort_pinned(tools: list[PinnedTool]) -> list[PinnedTool]:
    """Tools by name (then package path), each tool's versions by version."""
    ordered = []
    for tool in sorted(tools, key=lambda t: (t.name, t.package_path)):
        tool = tool.model_copy(deep=True)
        tool.versions.sort(key=lambda v: v.version)
        ordered.append(tool)
    return ordered


def format_pinned_table(tools: list[PinnedTool], target: str = "") -> str:
    """Render tools as an aligned table; ``target`` limits it to one tool.

    Raises:
        PinError: ``target`` is not pinned.
    """
    rows = [TABLE_HEADER]
    for tool in tools:
        if target and tool.name != target:
            continue
        for v in tool.versions:
            rows.append((
                tool.name,
                f"{tool.name}-{v.version}",
                f"{tool.package_path}@{v.version}",
                " ".join(tool.build_envs),
                " ".join(tool.build_flags),
            ))
    if target and len(rows) == 1:
        raise PinError(f"Pinned tool {target} not found")

    widths = [max(len(row[i]) for row in rows) for i in range(len(TABLE_HEADER))]
    lines = ["  ".join(cell.ljust(w) for cell, w in zip(row, widths)).rstrip() for row in rows]
    return "\n".join(lines) + "\n"
