"""
Go adapter — Go toolchain operations.

Runs the ``go`` binary against an explicit module file (``-modfile``)
so that pinned tools never touch the host project's own go.mod.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import time

from binpin.adapters.base import Adapter, ExecutionContext
from binpin.core.models.action import Receipt

logger = logging.getLogger(__name__)

# operation → go subcommand
_SUBCOMMANDS: dict[str, list[str]] = {
    "get": ["get"],
    "list": ["list"],
    "build": ["build"],
    "env": ["env"],
    "mod_init": ["mod", "init"],
}

# Operations that accept -modfile.
_MODFILE_OPS = {"get", "list", "build", "mod_init"}


class GoAdapter(Adapter):
    """Go language toolchain adapter.

    Action params:
        operation (str): One of 'get', 'list', 'build', 'env', 'mod_init'.
        args (list[str]): Arguments after the subcommand and -modfile.
    """

    def __init__(self, go_binary: str = "go"):
        self._go = go_binary

    @property
    def name(self) -> str:
        return "go"

    def is_available(self) -> bool:
        return shutil.which(self._go) is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        operation = context.operation
        if not operation:
            return False, "Missing required param: 'operation'"
        if operation not in _SUBCOMMANDS:
            return False, f"Unknown operation '{operation}'. Valid: {', '.join(sorted(_SUBCOMMANDS))}"
        if operation in ("get", "list", "build", "env") and not context.action.params.get("args"):
            return False, f"Missing required param: 'args' for {operation} operation"
        if operation == "mod_init" and not context.modfile:
            return False, "mod_init requires a module file"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        valid, message = self.validate(context)
        if not valid:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=message,
            )
        return self._exec(context, self._command(context))

    # ── Helpers ─────────────────────────────────────────────────

    def _command(self, ctx: ExecutionContext) -> list[str]:
        operation = ctx.operation
        cmd = [self._go, *_SUBCOMMANDS[operation]]
        if ctx.modfile and operation in _MODFILE_OPS:
            cmd.append(f"-modfile={ctx.modfile}")
        cmd.extend(ctx.action.params.get("args", []))
        return cmd

    def _exec(self, ctx: ExecutionContext, cmd: list[str]) -> Receipt:
        env = os.environ.copy()
        for key, value in ctx.env_overrides.items():
            env[key] = os.path.expandvars(value)

        logger.debug("Executing: %s (cwd=%s)", " ".join(cmd), ctx.working_dir)
        start = time.monotonic()
        try:
            result = subprocess.run(
                cmd,
                cwd=ctx.working_dir,
                capture_output=True,
                text=True,
                timeout=ctx.timeout,
                env=env,
            )
        except subprocess.TimeoutExpired:
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=f"Command timed out after {ctx.timeout}s",
                command=" ".join(cmd),
                timed_out=True,
            )
        except OSError as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=f"Cannot run {self._go}: {e}",
                command=" ".join(cmd),
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        stdout = result.stdout.strip()
        stderr = result.stderr.strip()
        if result.returncode == 0:
            return Receipt.success(
                adapter=self.name,
                action_id=ctx.action.id,
                output=stdout,
                duration_ms=elapsed_ms,
                command=" ".join(cmd),
                return_code=0,
                stderr=stderr,
            )
        return Receipt.failure(
            adapter=self.name,
            action_id=ctx.action.id,
            error=stderr or f"Exit code {result.returncode}",
            duration_ms=elapsed_ms,
            command=" ".join(cmd),
            return_code=result.returncode,
            output=stdout,
        )
