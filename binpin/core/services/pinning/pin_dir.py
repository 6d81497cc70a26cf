"""
Pin directory layout — the directory holding one module file per tool.

    <name>.mod           pinned tool (array index 0)
    <name>.<n>.mod       further versions of the same tool (n >= 1)
    go.mod               fake root module, lets go accept -modfile here
    README.md, .gitignore
    *.tmp.*, *.sum       transient, removed at the start of every run
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from binpin.core.errors import PinError
from binpin.core.services.pinning.manifest import ROOT_MOD_FILE

logger = logging.getLogger(__name__)

_ROOT_MOD_CONTENT = (
    "module _ // Fake go.mod auto-created by 'binpin' for go -moddir compatibility "
    "with non-Go projects. Commit this file, together with other .mod files."
)

_README_TEMPLATE = """\
# Project Development Dependencies.

This is directory which stores Go modules with pinned buildable package that is used within this repository, managed by binpin.

* Run `binpin get` to install all tools having each own module file in this directory.
* Run `binpin get <tool>` to install <tool> that have own module file in this directory.
* Run `binpin list` to see which tools are pinned in {mod_dir}.
* See `binpin --help` on how to add, remove or change binaries dependencies.

## Requirements

* Go 1.14+
"""

_GITIGNORE = """
# Ignore everything
*

# But not these files:
!.gitignore
!*.mod
!README.md

*tmp.mod
"""

# Transient files left by an interrupted run.
_TMP_GLOBS = ("*.sum", "*.*.tmp.*", "*.tmp.*")


def remove_all_glob(directory: Path, pattern: str) -> list[Path]:
    """Remove every file matching ``pattern`` in ``directory``."""
    removed = []
    for path in sorted(directory.glob(pattern)):
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise PinError(f"remove {path}: {e}") from e
        removed.append(path)
    return removed


def clean_tmp_files(mod_dir: Path) -> None:
    """Remove sum and tmp files for a fresh start."""
    if not mod_dir.is_dir():
        return
    for pattern in _TMP_GLOBS:
        for path in remove_all_glob(mod_dir, pattern):
            logger.debug("removed stale %s", path)


def ensure_pin_dir(mod_dir: Path) -> None:
    """Create the pin directory and (re)write its generated files."""
    if not mod_dir.is_dir():
        logger.warning(
            "binpin not used before here, creating directory for pinned modules for you at %s", mod_dir
        )
    try:
        mod_dir.mkdir(parents=True, exist_ok=True)
        (mod_dir / ROOT_MOD_FILE).write_text(_ROOT_MOD_CONTENT, encoding="utf-8")
        (mod_dir / "README.md").write_text(_README_TEMPLATE.format(mod_dir=mod_dir), encoding="utf-8")
        (mod_dir / ".gitignore").write_text(_GITIGNORE, encoding="utf-8")
    except OSError as e:
        raise PinError(f"ensure mod dir {mod_dir}: {e}") from e


def mod_file_index(path: Path, name: str) -> int | None:
    """Array index of ``path`` for tool ``name``, or None if it is not one."""
    if path.name == f"{name}.mod":
        return 0
    match = re.fullmatch(re.escape(name) + r"\.([0-9]+)\.mod", path.name)
    return int(match.group(1)) if match else None


def existing_mod_files(mod_dir: Path, name: str) -> list[Path]:
    """Module files for ``name`` in array order (name.mod, name.1.mod, ...)."""
    if not mod_dir.is_dir():
        return []
    indexed = [
        (index, path)
        for path in mod_dir.glob(f"{name}.*mod")
        if (index := mod_file_index(path, name)) is not None
    ]
    return [path for _, path in sorted(indexed)]


def name_from_mod_file(mod_file: Path) -> tuple[str, bool]:
    """Tool name of a module file and whether it is part of an array."""
    parts = mod_file.name.removesuffix(".mod").split(".")
    if len(parts) > 1 and parts[-1].isdigit():
        return ".".join(parts[:-1]), True
    return ".".join(parts), False
