"""
Module cache probe — find a package's module in the local download cache.

Used when ``go get`` cannot resolve a package, e.g. because the module
depends on broken modules and needs replace directives. A package path
mixes an unknown-length module path with a package sub-path, so every
prefix is tried, longest first, against
``<GOMODCACHE>/cache/download/<module>/@v/``. Over-matching a module
path is harmless (the build rejects it later); under-matching would
silently produce the wrong relative path.
"""

from __future__ import annotations

import logging
import posixpath
from collections.abc import Callable, Iterator
from pathlib import Path

from binpin.core.errors import NoCachedModule, PinError
from binpin.core.models.package import Package, is_tagged_version, trim_module_prefix
from binpin.core.services.pinning.modfile import escape_module_path
from binpin.core.services.pinning.toolchain import UpdatePolicy

logger = logging.getLogger(__name__)

# A module path has at least this many segments (host/owner/repo).
MIN_MODULE_SEGMENTS = 3

# Revision prefix length used by pseudo-versions.
SHORT_REVISION = 12

# Returns the version found for one candidate module, or None.
Matcher = Callable[[Path], str | None]


def candidate_module_paths(package_path: str, min_segments: int = MIN_MODULE_SEGMENTS) -> Iterator[str]:
    """Yield ``package_path`` and its parents, longest first."""
    candidate = package_path.strip("/")
    while len(candidate.split("/")) >= min_segments:
        yield candidate
        candidate = posixpath.dirname(candidate)


def latest_listed_version(list_file: Path) -> str:
    """Last line of a cache ``list`` file (the cache keeps it sorted)."""
    try:
        lines = [ln.strip() for ln in list_file.read_text(encoding="utf-8").splitlines()]
    except OSError as e:
        raise PinError(f"get latest version from {list_file}: {e}") from e
    lines = [ln for ln in lines if ln]
    if not lines:
        raise PinError(f"get latest version from {list_file}: empty file")
    return lines[-1]


def _latest(meta_dir: Path) -> str | None:
    return latest_listed_version(meta_dir / "list")


def _exact_tag(version: str) -> Matcher:
    def match(meta_dir: Path) -> str | None:
        info = meta_dir / f"{version}.info"
        if info.is_file():
            return version
        logger.debug("resolve in mod cache: %s does not exist, looking for different module", info)
        return None
    return match


def _revision(version: str) -> Matcher:
    def match(meta_dir: Path) -> str | None:
        if len(version) <= SHORT_REVISION:
            return None
        suffix = f"{version[:SHORT_REVISION]}.info"
        try:
            entries = sorted(meta_dir.iterdir())
        except OSError as e:
            raise PinError(f"read cached versions in {meta_dir}: {e}") from e
        for entry in entries:
            if entry.is_file() and entry.name.endswith(suffix):
                return entry.name[: -len(".info")]
        logger.debug("resolve in mod cache: no .info file for revision %s, looking for different module",
                     version[:SHORT_REVISION])
        return None
    return match


def _matcher_for(update: UpdatePolicy, version: str) -> Matcher:
    if update is not UpdatePolicy.NONE or not version:
        return _latest
    if is_tagged_version(version):
        return _exact_tag(version)
    return _revision(version)


def resolve_in_mod_cache(
    mod_cache_dir: str | Path,
    update: UpdatePolicy,
    target: Package,
) -> Package:
    """Resolve ``target`` against the module download cache.

    Returns a copy of ``target`` with module path, version and relative
    path filled in.

    Raises:
        NoCachedModule: No cached module contains the package.
    """
    download_dir = Path(mod_cache_dir) / "cache" / "download"
    package_path = target.path
    match = _matcher_for(update, target.module.version)

    for module_path in candidate_module_paths(package_path):
        meta_dir = download_dir / escape_module_path(module_path) / "@v"
        if not meta_dir.is_dir():
            logger.debug("resolve in mod cache: %s directory does not exist", meta_dir)
            continue
        logger.debug("resolve in mod cache: found %s directory", meta_dir)

        version = match(meta_dir)
        if version is None:
            continue

        resolved = target.model_copy(deep=True)
        resolved.module.path = module_path
        resolved.module.version = version
        resolved.rel_path = trim_module_prefix(package_path, module_path)
        return resolved

    raise NoCachedModule(f"no module was cached matching given package {package_path}")
