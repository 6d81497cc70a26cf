"""
Package models — what a pinned module file records.

A ``Package`` is a module coordinate plus the package's path relative to
the module root, and the build overrides that travel with it. When the
module path is still unknown, ``rel_path`` holds the full package path
("unknown module mode") until resolution splits it.
"""

from __future__ import annotations

import posixpath

from pydantic import BaseModel, Field, field_validator


def join_path(module_path: str, rel_path: str) -> str:
    """Join a module path and a relative package path, cleaned."""
    parts = [p for p in (module_path, rel_path) if p]
    if not parts:
        return ""
    return posixpath.normpath(posixpath.join(*parts))


def trim_module_prefix(package_path: str, module_path: str) -> str:
    """Strip ``module_path`` (and the following slash) from a package path."""
    if module_path and package_path.startswith(module_path):
        package_path = package_path[len(module_path):]
    return package_path.lstrip("/")


def is_tagged_version(version: str) -> bool:
    """Tag-style versions (and pseudo-versions) start with ``v``."""
    return version.startswith("v")


class ModuleVersion(BaseModel):
    """A (module path, version) coordinate.

    ``version`` is empty when unresolved and ``none`` when the tool is
    being uninstalled.
    """

    path: str = ""
    version: str = ""

    def __str__(self) -> str:
        if not self.version:
            return self.path
        return f"{self.path}@{self.version}"


class Package(BaseModel):
    """A buildable package pinned by one module file."""

    module: ModuleVersion = Field(default_factory=ModuleVersion)

    # Together with module.path composes the package path, e.g. "cmd/tool".
    rel_path: str = ""

    build_envs: list[str] = Field(default_factory=list)
    build_flags: list[str] = Field(default_factory=list)

    @field_validator("rel_path", mode="before")
    @classmethod
    def _module_root_is_empty(cls, v: str) -> str:
        # "." and "" both name the module root; keep one spelling.
        return "" if v == "." else v

    @property
    def path(self) -> str:
        """Full package path."""
        return join_path(self.module.path, self.rel_path)

    def __str__(self) -> str:
        if not self.module.version:
            return self.path
        return f"{self.path}@{self.module.version}"


class PinnedVersion(BaseModel):
    """One pinned version of a tool and the module file holding it."""

    version: str
    mod_file: str


class PinnedTool(BaseModel):
    """A tool as seen in the pin directory, possibly with many versions."""

    name: str
    mod_path: str
    package_path: str
    env_var_name: str
    versions: list[PinnedVersion] = Field(default_factory=list)

    build_envs: list[str] = Field(default_factory=list)
    build_flags: list[str] = Field(default_factory=list)

    def to_packages(self) -> list[Package]:
        """One Package per pinned version, in array order."""
        rel_path = trim_module_prefix(self.package_path, self.mod_path)
        return [
            Package(
                module=ModuleVersion(path=self.mod_path, version=v.version),
                rel_path=rel_path,
            )
            for v in self.versions
        ]
