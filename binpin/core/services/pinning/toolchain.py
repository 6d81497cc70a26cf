"""
Toolchain facade — typed Go operations over the adapter protocol.

The adapter never raises; this layer turns failed receipts into
``ToolchainError`` (carrying the command output) so the pinning engine
can use ordinary exception flow. All calls made during one ``get``
share a single ``Deadline``: each subprocess gets the remaining time
as its timeout.
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from pathlib import Path

from binpin.adapters.base import Adapter, ExecutionContext
from binpin.core.errors import DeadlineExceeded, ToolchainError
from binpin.core.models.action import Action, Receipt

logger = logging.getLogger(__name__)

# Overall budget for one get invocation (resolve + build).
DEFAULT_TIMEOUT_SECONDS = 300.0


class UpdatePolicy(str, Enum):
    """How ``go get`` may move versions while resolving."""

    NONE = ""
    UPDATE = "-u"
    PATCH = "-u=patch"


class Deadline:
    """A fixed point in time shared by every toolchain call of one run."""

    def __init__(self, seconds: float = DEFAULT_TIMEOUT_SECONDS):
        self.seconds = seconds
        self._expires_at = time.monotonic() + seconds

    def remaining(self) -> float:
        """Seconds left; raises DeadlineExceeded once expired."""
        left = self._expires_at - time.monotonic()
        if left <= 0:
            raise DeadlineExceeded(f"deadline of {self.seconds:g}s exceeded")
        return left


def _combined_output(receipt: Receipt) -> str:
    parts = [
        receipt.output,
        receipt.stderr,
        receipt.error or "",
    ]
    return "\n".join(p for p in parts if p)


class Toolchain:
    """Go operations run from ``work_dir`` (the pin directory)."""

    def __init__(
        self,
        adapter: Adapter,
        work_dir: str | Path = ".",
        deadline: Deadline | None = None,
    ):
        self.adapter = adapter
        self.work_dir = Path(work_dir)
        self.deadline = deadline

    def _run(
        self,
        operation: str,
        args: list[str],
        modfile: str | Path | None = None,
        env: dict[str, str] | None = None,
    ) -> Receipt:
        timeout = self.deadline.remaining() if self.deadline else None
        action = Action(
            id=f"{self.adapter.name}.{operation}",
            adapter=self.adapter.name,
            params={"operation": operation, "args": args},
        )
        context = ExecutionContext(
            action=action,
            working_dir=str(self.work_dir),
            modfile=str(modfile) if modfile else None,
            env_overrides=env or {},
            timeout=timeout,
        )
        receipt = self.adapter.execute(context)
        logger.debug("%s %s → %s (%dms)", action.id, " ".join(args), receipt.status, receipt.duration_ms)

        if receipt.failed:
            description = f"{self.adapter.name} {operation} {' '.join(args)}".strip()
            if receipt.timed_out:
                raise DeadlineExceeded(f"{description}: {receipt.error}", _combined_output(receipt))
            raise ToolchainError(f"{description}: {receipt.error}", _combined_output(receipt))
        return receipt

    # ── Operations ──────────────────────────────────────────────

    def get(self, modfile: str | Path, update: UpdatePolicy, target: str) -> str:
        """Resolve ``target`` into ``modfile``; returns the command output."""
        args = [update.value] if update is not UpdatePolicy.NONE else []
        receipt = self._run("get", [*args, target], modfile=modfile)
        return _combined_output(receipt)

    def package_name(self, modfile: str | Path, package: str, flags: list[str] | None = None) -> str:
        """Declared Go package name (``main`` for buildable tools).

        Runs with ``-mod=mod`` so the module file is completed as a side
        effect, which ``go build`` needs.
        """
        args = [*(flags or []), "-mod=mod", "-f={{.Name}}", package]
        return self._run("list", args, modfile=modfile).output

    def build(
        self,
        modfile: str | Path,
        package: str,
        output: str | Path,
        flags: list[str] | None = None,
        envs: list[str] | None = None,
    ) -> None:
        """Build ``package`` into the binary at ``output``."""
        env = dict(e.split("=", 1) for e in (envs or []) if "=" in e)
        self._run("build", ["-o", str(output), *(flags or []), package], modfile=modfile, env=env)

    def env(self, name: str) -> str:
        """Value of one ``go env`` variable."""
        return self._run("env", [name]).output

    def mod_init(self, modfile: str | Path, module_name: str = "_") -> None:
        """Create an empty module file."""
        self._run("mod_init", [module_name], modfile=modfile)
