"""
Version resolution — turn a package reference into a buildable coordinate.

``go get`` is asked first, against a disposable empty module file, so
that every module it records is there because of our target. When it
fails (or leaves an ambiguity we cannot settle) the local module cache
is probed instead. Once the module is known, its own replace directives
are fetched so they can be mirrored into the pinned module file.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from binpin.core.errors import DeadlineExceeded, NoIndirectModule, PinError, ResolutionError, ToolchainError
from binpin.core.models.package import ModuleVersion, Package, trim_module_prefix
from binpin.core.services.pinning.cache_probe import resolve_in_mod_cache
from binpin.core.services.pinning.modfile import escape_module_path, indirect_modules, parse_modfile
from binpin.core.services.pinning.toolchain import Toolchain, UpdatePolicy

logger = logging.getLogger(__name__)

INCOMPATIBLE_SUFFIX = "+incompatible"


def _with_module(target: Package, mod: ModuleVersion) -> Package:
    resolved = target.model_copy(deep=True)
    resolved.rel_path = trim_module_prefix(target.path, mod.path)
    resolved.module = mod.model_copy()
    return resolved


def resolve_package(
    toolchain: Toolchain,
    tmp_modfile: str | Path,
    update: UpdatePolicy,
    target: Package,
    mod_cache_dir: str | Path,
) -> Package:
    """Resolve module path, version and relative path for ``target``.

    Args:
        toolchain: Toolchain bound to the pin directory.
        tmp_modfile: Empty module file ``go get`` may write to.
        update: Update policy passed to ``go get``.
        target: Package with at least a package path.
        mod_cache_dir: Module cache root used by the fallback probe.

    Returns:
        A resolved copy of ``target``.

    Raises:
        NoIndirectModule: ``go get`` succeeded but recorded nothing usable.
        ResolutionError: Both ``go get`` and the cache probe failed.
    """
    try:
        output = toolchain.get(tmp_modfile, update, str(target))
    except DeadlineExceeded:
        raise
    except ToolchainError as e:
        get_error: Exception = e
    else:
        mods = indirect_modules(tmp_modfile)
        if not mods:
            raise NoIndirectModule(f"no indirect module found on {tmp_modfile}")
        if len(mods) == 1:
            return _with_module(target, mods[0])

        if target.module.path:
            for mod in mods:
                if mod.path == target.module.path:
                    return _with_module(target, mod)
            raise NoIndirectModule(
                f"no indirect module found on {tmp_modfile} for {target.module.path} module"
            )

        for mod in mods:
            if mod.path == target.path:
                return _with_module(target, mod)

        # Not successful from our perspective; fall back to the cache.
        get_error = ToolchainError(
            f"ambiguous modules {', '.join(str(m) for m in mods)} for {target.path}; go get output: {output}",
            output,
        )

    logger.debug("go get could not resolve %s (%s); probing module cache", target, get_error)
    try:
        return resolve_in_mod_cache(mod_cache_dir, update, target)
    except PinError as e:
        raise ResolutionError(
            f"fallback to local go mod cache resolution failed after go get failure ({get_error}): {e}"
        ) from e


def local_modfile_after_get(mod_cache_dir: str | Path, target: Package) -> Path:
    """Where ``go get`` extracted the target module's own go.mod."""
    return Path(mod_cache_dir) / escape_module_path(str(target.module)) / "go.mod"


def fetch_replace_directives(
    toolchain: Toolchain,
    target: Package,
) -> list[tuple[ModuleVersion, ModuleVersion]]:
    """Replace directives of the resolved target module.

    Modules commonly patch broken transitive dependencies with replace
    directives; since a pinned module file has this module as its only
    dependency, copying them reproduces the module's own build. Returns
    nothing for pre-module packages and ``+incompatible`` versions.
    """
    if target.module.version.endswith(INCOMPATIBLE_SUFFIX):
        return []

    mod_cache = toolchain.env("GOMODCACHE")
    if not mod_cache:
        gopath = toolchain.env("GOPATH").split(os.pathsep)[0]
        mod_cache = str(Path(gopath) / "pkg" / "mod")

    target_modfile = local_modfile_after_get(mod_cache, target)
    if not target_modfile.is_file():
        logger.debug("no go.mod at %s; pre-module package", target_modfile)
        return []

    try:
        parsed = parse_modfile(target_modfile, lax=True)
    except PinError as e:
        raise PinError(f"parse target mod file {target_modfile}: {e}") from e
    return [(r.old, r.new) for r in parsed.replaces]
