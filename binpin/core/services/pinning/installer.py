"""
Install orchestrator — pin and build one package under one tool name.

Flow for a single (index, name, package)::

    RESOLVE ─▶ STAGE ─▶ VERIFY_BUILDABLE ─▶ BUILD ─▶ LINK ─▶ COMMIT

Every edit happens on ``<name>.tmp.mod``; the file of record is only
replaced (atomically) once the binary was built. Any failure before
that leaves the file of record exactly as it was.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from binpin.core.errors import NotInstallable, PinError
from binpin.core.models.package import ModuleVersion, Package, is_tagged_version
from binpin.core.services.pinning.manifest import ROOT_MOD_FILE, ManifestFile, create_from_existing_or_new
from binpin.core.services.pinning.pin_dir import clean_tmp_files
from binpin.core.services.pinning.resolution import fetch_replace_directives, resolve_package
from binpin.core.services.pinning.toolchain import Toolchain, UpdatePolicy

logger = logging.getLogger(__name__)

# Names that cannot become a binary (or clash with the pin directory).
RESERVED_NAMES = ("cmd", ROOT_MOD_FILE.removesuffix(".mod"))


@dataclass
class InstallConfig:
    """What every ``get_package`` call of one run shares."""

    toolchain: Toolchain
    mod_dir: Path
    install_dir: Path
    mod_cache_dir: Path
    update: UpdatePolicy = UpdatePolicy.NONE
    link: bool = False


@dataclass(frozen=True)
class ManifestPaths:
    """File of record and its two scratch files for one array index."""

    out: Path
    tmp: Path
    tmp_empty: Path

    @classmethod
    def for_index(cls, mod_dir: Path, name: str, index: int) -> ManifestPaths:
        stem = name if index == 0 else f"{name}.{index}"
        return cls(
            out=mod_dir / f"{stem}.mod",
            tmp=mod_dir / f"{stem}.tmp.mod",
            tmp_empty=mod_dir / f"{stem}-e.tmp.mod",
        )


def validate_target_name(name: str) -> None:
    """Reject names that cannot be installed."""
    if name == "cmd":
        raise PinError(
            f"package would be installed with ambiguous name {name}. This is a common, but slightly "
            "annoying package layout. It's advised to choose unique name with -n flag"
        )
    if name in RESERVED_NAMES:
        raise PinError(f"requested binary with name {name!r}. This is impossible, choose different name using -n flag")


def needs_resolution(target: Package, update: UpdatePolicy) -> bool:
    """Whether module path and version must be (re)resolved."""
    return (
        not target.module.version
        or not is_tagged_version(target.module.version)
        or not target.module.path
        or update is not UpdatePolicy.NONE
    )


def get_package(config: InstallConfig, index: int, name: str, target: Package) -> Package:
    """Pin ``target`` as array entry ``index`` of tool ``name`` and build it.

    Args:
        config: Shared run configuration.
        index: Array index (0 for ``<name>.mod``).
        name: Tool name; also the binary name.
        target: Package to pin; module path and version may be empty.

    Returns:
        The package as pinned.

    Raises:
        PinError: Resolution, staging, build or commit failed.
    """
    validate_target_name(name)
    logger.info("getting target %s (module %s)", target, target.module.path or "unknown")

    paths = ManifestPaths.for_index(config.mod_dir, name, index)
    target = target.model_copy(deep=True)
    replaces: list[tuple[ModuleVersion, ModuleVersion]] = []

    if needs_resolution(target, config.update):
        # A totally empty module file makes the go get result unambiguous.
        with create_from_existing_or_new(config.toolchain, None, paths.tmp_empty) as empty:
            target = resolve_package(
                config.toolchain, empty.file_name, config.update, target, config.mod_cache_dir
            )
        replaces = fetch_replace_directives(config.toolchain, target)
        logger.debug("resolved %s; %d replace directive(s) upstream", target, len(replaces))

    clean_tmp_files(config.mod_dir)
    existing = paths.out if paths.out.exists() else None
    staged = create_from_existing_or_new(config.toolchain, existing, paths.tmp)
    with staged:
        if replaces:
            staged.set_replaces(replaces)

        # Build overrides are only ever edited by hand in the module file.
        previous = staged.direct_package
        if previous is not None:
            target.build_envs = previous.build_envs
            target.build_flags = previous.build_flags
        staged.set_direct_require(target)
        staged.flush()

        binary = _install(config, name, staged)

    # Closed (and flushed) above; the rename is the commit point.
    try:
        os.replace(paths.tmp, paths.out)
    except OSError as e:
        raise PinError(f"rename {paths.tmp} to {paths.out}: {e}") from e

    logger.info("pinned %s in %s, binary %s", target, paths.out.name, binary)
    return target


def _install(config: InstallConfig, name: str, staged: ManifestFile) -> Path:
    pkg = staged.direct_package
    if pkg is None:
        raise PinError(f"{staged.file_name}: no direct package to install")

    # -mod=mod completes the module file, which the build needs.
    listed = config.toolchain.package_name(staged.file_name, pkg.path, pkg.build_flags)
    if not listed.strip().endswith("main"):
        raise NotInstallable(
            f"package {pkg.path} is non-main (go list output {listed.strip()!r}), nothing to get and build"
        )

    binary = config.install_dir / f"{name}-{pkg.module.version}"
    try:
        config.install_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise PinError(f"create install dir {config.install_dir}: {e}") from e
    config.toolchain.build(staged.file_name, pkg.path, binary, pkg.build_flags, pkg.build_envs)

    if config.link:
        link = config.install_dir / name
        try:
            link.unlink(missing_ok=True)
            link.symlink_to(binary)
        except OSError as e:
            raise PinError(f"link {link} to {binary}: {e}") from e
    return binary
