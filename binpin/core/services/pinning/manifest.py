"""
Pinned module files — one per tool (or per version of an array install).

A pinned module file is a regular go.mod with three extra conventions:

* the module line carries ``MARKER_COMMENT``, proving binpin owns it;
* exactly one direct ``require`` whose trailing comment encodes the
  package's relative path, build env vars and build flags::

      require github.com/x/tool v1.2.3 // cmd/tool CGO_ENABLED=0 -tags=netgo

* an optional ``binpin:no_replace_fetch`` comment anywhere in the file,
  which stops binpin from syncing replace directives from upstream.

``ManifestFile`` keeps the file open while it is being staged; edits
are applied to the parsed document and written back with ``flush()``.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import TextIO

from binpin.core.errors import ManifestError, MissingMarker, PinError, UnparsableManifest
from binpin.core.models.package import ModuleVersion, Package
from binpin.core.services.pinning.modfile import ModFile, parse
from binpin.core.services.pinning.toolchain import Toolchain

logger = logging.getLogger(__name__)

MARKER_COMMENT = "// Auto generated by binpin. DO NOT EDIT"

NO_REPLACE_COMMAND = "binpin:no_replace_fetch"

# Fake root module kept in the pin directory so go accepts -modfile there.
ROOT_MOD_FILE = "go.mod"


def parse_direct_package_meta(line: str) -> tuple[str, list[str], list[str]]:
    """Decode ``[relPath] [ENV=VAL ...] [-flag ...]``.

    Everything from the first token starting with ``-`` onwards is a
    build flag.
    """
    rel_path = ""
    envs: list[str] = []
    elems = line.split()
    for i, elem in enumerate(elems):
        if elem.startswith("-"):
            return rel_path, envs, elems[i:]
        if "=" not in elem:
            rel_path = elem
            continue
        envs.append(elem)
    return rel_path, envs, []


def encode_direct_package_meta(pkg: Package) -> str:
    meta: list[str] = []
    if pkg.rel_path:
        meta.append(pkg.rel_path)
    meta.extend(pkg.build_envs)
    meta.extend(pkg.build_flags)
    return " ".join(meta)


class ManifestFile:
    """An open pinned module file.

    It's the caller's responsibility to ``close()`` the file (or use it
    as a context manager).
    """

    def __init__(self, path: Path, handle: TextIO, writable: bool = True):
        self._path = path
        self._fh = handle
        self._writable = writable
        self._mod = ModFile(str(path))
        self._direct: Package | None = None
        self._auto_replace_disabled = False

    @classmethod
    def open(
        cls,
        path: str | Path,
        *,
        created: bool = False,
        writable: bool = True,
    ) -> ManifestFile:
        """Open and parse a pinned module file.

        Args:
            path: Module file to open.
            created: The file was just created by binpin; insert the
                marker comment instead of requiring it.
            writable: Open for staging edits. Read-only files never
                write back on ``flush()``/``close()``.

        Raises:
            MissingMarker: A pre-existing file lacks the marker comment.
            UnparsableManifest: The file is not a valid module file.
        """
        path = Path(path)
        try:
            fh = open(path, "r+" if writable else "r", encoding="utf-8")
        except OSError as e:
            raise UnparsableManifest(str(path), f"open: {e}") from e

        mf = cls(path, fh, writable=writable)
        try:
            mf.reload()
            mf._ensure_marker(insert=created)
        except Exception:
            fh.close()
            raise
        return mf

    @property
    def file_name(self) -> Path:
        return self._path

    @property
    def direct_package(self) -> Package | None:
        return self._direct.model_copy(deep=True) if self._direct else None

    @property
    def auto_replace_disabled(self) -> bool:
        return self._auto_replace_disabled

    @property
    def replaces(self) -> list[tuple[ModuleVersion, ModuleVersion]]:
        return [(r.old, r.new) for r in self._mod.replaces]

    def _ensure_marker(self, insert: bool) -> None:
        line = self._mod.module_line
        if line is None:
            raise UnparsableManifest(str(self._path), "failed to parse; no module")
        if line.suffix.strip() == MARKER_COMMENT:
            return
        if insert:
            line.suffix = MARKER_COMMENT
            return
        found = f"found {line.suffix.strip()!r}" if line.suffix else "found no comment"
        raise MissingMarker(
            f"{self._path}: expected {MARKER_COMMENT!r} comment on top of module, {found}"
        )

    def reload(self) -> None:
        """Re-read the file, keeping only the first direct require."""
        self._fh.seek(0)
        self._mod = parse(str(self._path), self._fh.read())

        self._auto_replace_disabled = any(
            NO_REPLACE_COMMAND in c for c in self._mod.comments()
        )

        self._direct = None
        for req in self._mod.requires:
            if req.indirect:
                continue
            rel_path, envs, flags = parse_direct_package_meta(req.line.suffix[2:].strip())
            self._direct = Package(module=req.mod, rel_path=rel_path, build_envs=envs, build_flags=flags)
            break

        # Drop the rest.
        if self._direct is None:
            self._mod.drop_requires()
        else:
            self.set_direct_require(self._direct)

    def set_direct_require(self, target: Package) -> None:
        """Replace every require with ``target``. Call ``flush()`` to persist."""
        if not target.module.path or not target.module.version:
            raise PinError(f"cannot pin {target}: module path and version are required")

        meta = encode_direct_package_meta(target)
        self._mod.set_require(
            target.module.path,
            target.module.version,
            suffix=f"// {meta}" if meta else "",
        )
        self._direct = target.model_copy(deep=True)

    def set_replaces(
        self,
        replaces: list[tuple[ModuleVersion, ModuleVersion]],
        force: bool = False,
    ) -> bool:
        """Replace all replace directives.

        Skipped when the file carries the no-replace marker, unless
        ``force`` is set. Returns whether the directives were applied.
        """
        if self._auto_replace_disabled and not force:
            logger.debug("%s: %s set, keeping replace directives", self._path, NO_REPLACE_COMMAND)
            return False
        self._mod.set_replaces(replaces)
        return True

    def flush(self) -> None:
        """Write the document back and re-parse it from disk."""
        if not self._writable:
            return
        text = self._mod.format()
        try:
            self._fh.seek(0)
            self._fh.truncate()
            self._fh.write(text)
            self._fh.flush()
        except OSError as e:
            raise PinError(f"write {self._path}: {e}") from e
        self.reload()

    def close(self) -> None:
        """Flush changes and release the file; the first error wins."""
        first: Exception | None = None
        try:
            self.flush()
        except Exception as e:
            first = e
        try:
            self._fh.close()
        except OSError as e:
            first = first or e
        if first is not None:
            raise first

    def __enter__(self) -> ManifestFile:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.close()
            return
        try:
            self.close()
        except Exception as close_err:
            logger.debug("closing %s after failure: %s", self._path, close_err)


def create_from_existing_or_new(
    toolchain: Toolchain,
    existing: str | Path | None,
    new: str | Path,
) -> ManifestFile:
    """Create and open ``new``, seeded from ``existing`` when it is usable.

    An existing file that opens cleanly is copied verbatim, keeping its
    comments and replace directives. Otherwise a brand new module file
    is created with the toolchain.
    """
    new = Path(new)
    new.unlink(missing_ok=True)

    if existing is not None and Path(existing).exists():
        try:
            ManifestFile.open(existing, writable=False).close()
        except ManifestError as e:
            logger.warning("tool module file %s is malformed; it will be recreated; err: %s", existing, e)
        else:
            try:
                shutil.copyfile(existing, new)
            except OSError as e:
                raise PinError(f"copy {existing} to {new}: {e}") from e
            return ManifestFile.open(new)

    toolchain.mod_init(new, "_")
    return ManifestFile.open(new, created=True)


def direct_package_of(path: str | Path) -> Package:
    """The direct package pinned by a module file."""
    with ManifestFile.open(path, writable=False) as mf:
        pkg = mf.direct_package
    if pkg is None:
        raise ManifestError(f"no direct package found in {path}; empty module?")
    return pkg
