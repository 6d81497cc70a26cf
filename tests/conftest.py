"""
Shared test fixtures and configuration.

``FakeGo`` scripts a ``MockAdapter`` to behave like the parts of the
go binary binpin relies on: ``mod init`` creates a module file, ``get``
records the resolved module as an indirect require, ``list`` reports
the package name (and, like ``-mod=mod``, scribbles on the module
file), ``build`` writes a binary and ``env`` answers GOMODCACHE.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from binpin.adapters.base import ExecutionContext
from binpin.adapters.mock import MockAdapter
from binpin.core.models.action import Receipt
from binpin.core.observability.logging_config import PACKAGE_LOGGER
from binpin.core.services.pinning.installer import InstallConfig
from binpin.core.services.pinning.modfile import escape_module_path
from binpin.core.services.pinning.toolchain import Toolchain


class FakeGo:
    """In-memory module proxy behind a MockAdapter."""

    def __init__(self, root: Path):
        self.adapter = MockAdapter(adapter_name="go")
        self.gomodcache = root / "gomodcache"
        self.install_dir = root / "bin"
        self.modules: dict[str, list[str]] = {}
        self.main_packages: set[str] = set()
        self.builds: list[tuple[str, Path, dict[str, str]]] = []

        self.adapter.set_handler("go.mod_init", self._mod_init)
        self.adapter.set_handler("go.get", self._get)
        self.adapter.set_handler("go.list", self._list)
        self.adapter.set_handler("go.build", self._build)
        self.adapter.set_handler("go.env", self._env)

    # ── Scripting ──

    def publish(
        self,
        module_path: str,
        *versions: str,
        packages: tuple[str, ...] = ("",),
        upstream_gomod: str | None = None,
    ) -> None:
        """Make ``versions`` of a module resolvable; ``packages`` are main packages."""
        self.modules.setdefault(module_path, []).extend(versions)
        for rel in packages:
            self.main_packages.add(f"{module_path}/{rel}".rstrip("/"))
        if upstream_gomod is not None:
            for v in versions:
                gomod = self.gomodcache / escape_module_path(f"{module_path}@{v}") / "go.mod"
                gomod.parent.mkdir(parents=True, exist_ok=True)
                gomod.write_text(upstream_gomod)

    # ── Handlers ──

    @staticmethod
    def _ok(ctx: ExecutionContext, output: str = "") -> Receipt:
        return Receipt.success(adapter="go", action_id=ctx.action.id, output=output)

    @staticmethod
    def _fail(ctx: ExecutionContext, error: str) -> Receipt:
        return Receipt.failure(adapter="go", action_id=ctx.action.id, error=error)

    @staticmethod
    def _modfile(ctx: ExecutionContext) -> Path:
        return Path(ctx.working_dir) / ctx.modfile

    def _owner(self, package: str) -> str | None:
        owners = [m for m in self.modules if package == m or package.startswith(m + "/")]
        return max(owners, key=len) if owners else None

    def _mod_init(self, ctx: ExecutionContext) -> Receipt:
        self._modfile(ctx).write_text(f"module {ctx.action.params['args'][0]}\n")
        return self._ok(ctx)

    def _get(self, ctx: ExecutionContext) -> Receipt:
        args = ctx.action.params["args"]
        package, _, version = args[-1].partition("@")
        module = self._owner(package)
        if module is None:
            return self._fail(ctx, f"go: module lookup disabled; cannot find module providing package {package}")

        known = self.modules[module]
        if not version or args[0].startswith("-u"):
            version = known[-1]
        elif version not in known:
            revisions = [v for v in known if len(version) > 12 and v.endswith(version[:12])]
            if not revisions:
                return self._fail(ctx, f"go: {package}@{version}: invalid version: unknown revision {version}")
            version = revisions[0]

        with open(self._modfile(ctx), "a") as fh:
            fh.write(f"\nrequire {module} {version} // indirect\n")
        return self._ok(ctx)

    def _list(self, ctx: ExecutionContext) -> Receipt:
        package = ctx.action.params["args"][-1]
        with open(self._modfile(ctx), "a") as fh:
            fh.write("\nrequire golang.org/x/sys v0.1.0 // indirect\n")
        return self._ok(ctx, "main" if package in self.main_packages else package.rsplit("/", 1)[-1])

    def _build(self, ctx: ExecutionContext) -> Receipt:
        args = ctx.action.params["args"]
        out = Path(args[args.index("-o") + 1])
        out.write_text(f"#!binary {args[-1]}\n")
        self.builds.append((args[-1], out, dict(ctx.env_overrides)))
        return self._ok(ctx)

    def _env(self, ctx: ExecutionContext) -> Receipt:
        name = ctx.action.params["args"][0]
        return self._ok(ctx, str(self.gomodcache) if name == "GOMODCACHE" else "")


@pytest.fixture
def fake_go(tmp_path: Path) -> FakeGo:
    """A scripted go toolchain rooted in a temp directory."""
    return FakeGo(tmp_path)


@pytest.fixture
def mod_dir(tmp_path: Path) -> Path:
    """Pin directory (not created yet)."""
    return tmp_path / "project" / ".binpin"


@pytest.fixture
def install_config(fake_go: FakeGo, mod_dir: Path) -> InstallConfig:
    """Install configuration wired to the fake toolchain."""
    return InstallConfig(
        toolchain=Toolchain(fake_go.adapter, work_dir=mod_dir),
        mod_dir=mod_dir,
        install_dir=fake_go.install_dir,
        mod_cache_dir=fake_go.gomodcache,
    )


@pytest.fixture(autouse=True)
def _restore_package_logger():
    """Undo handlers installed by setup_logging (the CLI calls it)."""
    logger = logging.getLogger(PACKAGE_LOGGER)
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    for h in logger.handlers:
        if h not in handlers:
            h.close()
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate
