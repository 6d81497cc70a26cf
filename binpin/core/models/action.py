"""
Action and Receipt models — one toolchain invocation and its outcome.

The toolchain facade builds an ``Action`` per go subcommand; adapters
answer with a ``Receipt`` and report failures in it instead of raising.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


class Action(BaseModel):
    """A go subcommand to run, e.g. ``go.get`` with its arguments."""

    id: str                         # "<adapter>.<operation>"
    adapter: str
    params: dict[str, Any] = Field(default_factory=dict)


class Receipt(BaseModel):
    """Outcome of one Action."""

    adapter: str
    action_id: str
    status: Literal["ok", "failed"] = "ok"
    duration_ms: int = 0

    command: str = ""
    return_code: int | None = None
    output: str = ""                # stdout
    stderr: str = ""                # stderr of a successful run
    error: str | None = None
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @classmethod
    def success(cls, adapter: str, action_id: str, output: str = "", **kwargs: Any) -> Receipt:
        return cls(adapter=adapter, action_id=action_id, status="ok", output=output, **kwargs)

    @classmethod
    def failure(cls, adapter: str, action_id: str, error: str, **kwargs: Any) -> Receipt:
        return cls(adapter=adapter, action_id=action_id, status="failed", error=error, **kwargs)
