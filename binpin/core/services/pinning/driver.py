"""
Multi-target driver — the ``get`` entry point.

Expands one raw target into per-version install requests, handling the
special forms around them:

    (empty)              refresh every pinned tool
    name@none            uninstall (module files only, binaries stay)
    name  + rename       move every version to a new name
    path[@v1,v2,...]     install, one module file per version
    name                 reinstall / update what is pinned

After installing, array module files beyond the requested versions are
pruned.
"""

from __future__ import annotations

import logging
from pathlib import Path

from binpin.adapters.base import Adapter
from binpin.core.config.loader import Settings
from binpin.core.errors import ManifestError, MalformedTarget, NameCollision, PinError
from binpin.core.models.package import ModuleVersion, Package
from binpin.core.services.pinning.installer import InstallConfig, get_package
from binpin.core.services.pinning.listing import list_pinned
from binpin.core.services.pinning.manifest import ManifestFile
from binpin.core.services.pinning.pin_dir import (
    clean_tmp_files,
    ensure_pin_dir,
    existing_mod_files,
    mod_file_index,
)
from binpin.core.services.pinning.target import NONE_VERSION, parse_target
from binpin.core.services.pinning.toolchain import Deadline, Toolchain, UpdatePolicy

logger = logging.getLogger(__name__)


def _install_all(config: InstallConfig, name: str, targets: list[Package]) -> list[Package]:
    pinned = []
    for i, target in enumerate(targets):
        try:
            pinned.append(get_package(config, i, name, target))
        except PinError as e:
            raise PinError(f"{name}.mod: getting {target}: {e}") from e
    return pinned


def _remove_mod_files(paths: list[Path]) -> None:
    for path in paths:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise PinError(f"remove {path}: {e}") from e
        logger.debug("removed %s", path)


def _validate_new_name(versions: list[str], old: str, new: str) -> None:
    if new == old:
        raise MalformedTarget(f"cannot be the same as module name {new}")
    if versions[0] == NONE_VERSION:
        raise MalformedTarget("cannot use with @none logic")


def _direct_package(path: Path, name: str) -> Package | None:
    try:
        with ManifestFile.open(path, writable=False) as mf:
            return mf.direct_package
    except ManifestError as e:
        raise ManifestError(
            f"found unparsable mod file {path}. Uninstall it first via get {name}@none or fix it manually: {e}"
        ) from e


def get_all(config: InstallConfig) -> list[Package]:
    """Reinstall every pinned tool at its pinned version(s)."""
    pinned = []
    for tool in list_pinned(config.mod_dir):
        for i, target in enumerate(tool.to_packages()):
            try:
                pinned.append(get_package(config, i, tool.name, target))
            except PinError as e:
                raise PinError(f"{i}: getting {target}: {e}") from e
    return pinned


def rename(config: InstallConfig, name: str, new_name: str) -> list[Package]:
    """Reinstall every version of ``name`` as ``new_name``, then drop the old files."""
    taken = existing_mod_files(config.mod_dir, new_name)
    if taken:
        raise NameCollision(
            f"found existing installed binaries {[p.name for p in taken]} under name you want to rename on. "
            f"Remove target name {new_name} or use different one"
        )

    existing = existing_mod_files(config.mod_dir, name)
    if not existing:
        raise PinError(f"nothing to rename, tool {name} not installed")

    targets = []
    for path in existing:
        pkg = _direct_package(path, name)
        if pkg is None:
            raise ManifestError(
                f"failed to rename tool {name} to {new_name} name; found empty mod file {path}; "
                "Use full path to install tool again"
            )
        targets.append(pkg)

    pinned = _install_all(config, new_name, targets)
    _remove_mod_files(existing)
    return pinned


def uninstall(config: InstallConfig, name: str) -> list[Path]:
    """Forget a pinned tool. Installed binaries are left in place."""
    existing = existing_mod_files(config.mod_dir, name)
    if not existing:
        raise PinError(f"nothing to delete, tool {name} is not installed")
    _remove_mod_files(existing)
    logger.info("removed %s", ", ".join(p.name for p in existing))
    return existing


def _expand_targets(
    config: InstallConfig,
    target_name: str,
    name: str,
    package_path: str,
    versions: list[str],
    existing: list[Path],
) -> list[Package]:
    path_was_specified = package_path != ""
    targets = []
    for i, version in enumerate(versions):
        # "Unknown" module mode until an existing file or resolution tells.
        target = Package(module=ModuleVersion(version=version), rel_path=package_path)
        if i < len(existing):
            path = existing[i]
            pinned = _direct_package(path, name)
            if pinned is not None:
                if target.path and target.path != pinned.path:
                    if path_was_specified:
                        raise NameCollision(
                            f"found mod file {path} that has different package path {pinned.path!r} than "
                            f"given {target.path!r}. Uninstall existing tool using `{target_name}@none` "
                            "or use `-n` flag to choose different name"
                        )
                    raise NameCollision(
                        f"found array mod file {path} that has different package path {pinned.path!r} "
                        f"than previous in array {target.path!r}. Manual edit? Uninstall existing tool "
                        f"using `{target_name}@none` or use `-n` flag to choose different name"
                    )
                target.module.path = pinned.module.path
                if not target.module.version and config.update is UpdatePolicy.NONE:
                    target.module.version = pinned.module.version
                target.rel_path = pinned.rel_path
                # Later versions without a file of their own reuse this path.
                package_path = target.path
            elif not target.path:
                raise ManifestError(
                    f"failed to install tool {target_name}; found empty mod file {path}; "
                    "Use full path to install tool again"
                )
        if not target.path:
            raise PinError(
                f"tool referenced by name {name} that was never installed before; Use full path to install a tool"
            )
        targets.append(target)
    return targets


def _prune_array_files(mod_dir: Path, name: str, keep: int) -> None:
    stale = [
        path
        for path in existing_mod_files(mod_dir, name)
        if (mod_file_index(path, name) or 0) >= keep
    ]
    _remove_mod_files(stale)


def get(config: InstallConfig, raw_target: str, name: str = "", rename_to: str = "") -> list[Package]:
    """Install, update, rename or uninstall according to ``raw_target``.

    Args:
        config: Shared run configuration.
        raw_target: ``name-or-package-path[@v1[,v2,...]]``; empty refreshes all.
        name: Install under this name instead of the derived one.
        rename_to: Rename the tool referenced by ``raw_target``.

    Returns:
        Every package that was pinned.
    """
    clean_tmp_files(config.mod_dir)
    ensure_pin_dir(config.mod_dir)

    if not raw_target:
        if name:
            raise PinError("name cannot be specified if no target was given")
        if rename_to:
            raise PinError("rename cannot be specified if no target was given")
        return get_all(config)

    try:
        tool_name, package_path, versions = parse_target(raw_target)
    except MalformedTarget as e:
        raise MalformedTarget(f"parse {raw_target}: {e}") from e

    if config.update is not UpdatePolicy.NONE and (versions[0] or len(versions) > 1):
        raise MalformedTarget(
            f"{config.update.value} specified; upgrade cannot take version arguments (string after @), got {versions}"
        )

    if rename_to:
        if package_path:
            raise MalformedTarget(
                f"-r rename has to reference installed tool by name not path, got: {package_path}"
            )
        if versions[0] or len(versions) > 1:
            raise MalformedTarget(f"-r rename cannot take version arguments (string after @), got {versions}")
        try:
            _validate_new_name(versions, tool_name, rename_to)
        except MalformedTarget as e:
            raise MalformedTarget(f"-r: {e}") from e
        return rename(config, tool_name, rename_to)

    target_name = tool_name
    if name:
        try:
            _validate_new_name(versions, tool_name, name)
        except MalformedTarget as e:
            raise MalformedTarget(f"-n: {e}") from e
        target_name = name

    existing = existing_mod_files(config.mod_dir, target_name)

    if versions[0] == NONE_VERSION:
        if package_path:
            raise MalformedTarget(f"cannot delete tool by full path. Use just {target_name}@none name instead")
        uninstall(config, target_name)
        return []

    if not versions[0] and len(existing) > 1 and config.update is UpdatePolicy.NONE:
        # No version given: pull every pinned array version at once.
        versions = [""] * len(existing)

    targets = _expand_targets(config, target_name, tool_name, package_path, versions, existing)
    pinned = _install_all(config, target_name, targets)
    _prune_array_files(config.mod_dir, target_name, len(versions))
    return pinned


def pin(
    settings: Settings,
    adapter: Adapter,
    raw_target: str = "",
    update: UpdatePolicy = UpdatePolicy.NONE,
    name: str = "",
    rename_to: str = "",
    link: bool = False,
) -> list[Package]:
    """Run one ``get`` with a fresh deadline shared by all toolchain calls."""
    mod_dir = Path(settings.mod_dir).absolute()
    toolchain = Toolchain(adapter, work_dir=mod_dir, deadline=Deadline(settings.timeout_seconds))
    config = InstallConfig(
        toolchain=toolchain,
        mod_dir=mod_dir,
        install_dir=settings.install_dir,
        mod_cache_dir=settings.mod_cache_dir,
        update=update,
        link=settings.link or link,
    )
    return get(config, raw_target, name=name, rename_to=rename_to)
