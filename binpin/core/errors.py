"""
Error taxonomy for pinning operations.

Every failure the engine can surface derives from ``PinError`` so the
CLI can print a single wrapped chain and exit non-zero. Layers add
context by raising a new error ``from`` the one they caught; nothing
is retried.
"""

from __future__ import annotations


class PinError(Exception):
    """Base class for every pinning failure."""


class MalformedTarget(PinError):
    """The ``name-or-path[@v1,v2]`` target string is invalid."""


class NameCollision(PinError):
    """Install-as or rename would clash with an existing tool."""


# ── Manifest ────────────────────────────────────────────────────


class ManifestError(PinError):
    """A pinned module file cannot be used as-is."""


class UnparsableManifest(ManifestError):
    """The module file is not syntactically valid."""

    def __init__(self, filename: str, message: str, line: int | None = None):
        self.filename = filename
        self.line = line
        where = f"{filename}:{line}" if line else filename
        super().__init__(f"{where}: {message}")


class MissingMarker(ManifestError):
    """The module header lacks the auto-generated marker comment."""


# ── Resolution ──────────────────────────────────────────────────


class ResolutionError(PinError):
    """Module and version could not be determined for a package."""


class NoIndirectModule(ResolutionError):
    """The toolchain succeeded but recorded no usable module."""


class NoCachedModule(ResolutionError):
    """No module in the local download cache contains the package."""


# ── Toolchain / install ─────────────────────────────────────────


class ToolchainError(PinError):
    """A toolchain invocation failed.

    ``output`` holds whatever the command printed, so callers can chain
    it into a later, more specific error.
    """

    def __init__(self, message: str, output: str = ""):
        self.output = output
        super().__init__(message)


class DeadlineExceeded(ToolchainError):
    """The overall time budget for one ``get`` ran out."""


class NotInstallable(PinError):
    """The package resolves but is not a ``main`` package."""
