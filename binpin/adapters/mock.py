"""
Mock adapter — universal test double for toolchain operations.

Used to simulate the toolchain without spawning processes.
Configurable per action ID with a fixed receipt, a failure, or a
handler callable that can also touch the filesystem (e.g. write the
module file a real ``go get`` would have updated).
"""

from __future__ import annotations

from collections.abc import Callable

from binpin.adapters.base import Adapter, ExecutionContext
from binpin.core.models.action import Receipt

Handler = Callable[[ExecutionContext], Receipt]


class MockAdapter(Adapter):
    """Universal mock adapter for testing.

    By default, returns success for everything. Can be configured
    with custom responses or handlers per action ID.
    """

    def __init__(
        self,
        adapter_name: str = "go",
        available: bool = True,
        default_output: str = "",
    ):
        self._name = adapter_name
        self._available = available
        self._default_output = default_output
        self._responses: dict[str, Receipt] = {}
        self._handlers: dict[str, Handler] = {}
        self._call_log: list[ExecutionContext] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[ExecutionContext]:
        """All execution contexts this mock has received."""
        return self._call_log

    @property
    def call_count(self) -> int:
        """Number of times execute has been called."""
        return len(self._call_log)

    def calls(self, action_id: str) -> list[ExecutionContext]:
        """Execution contexts received for one action ID."""
        return [c for c in self._call_log if c.action.id == action_id]

    def is_available(self) -> bool:
        return self._available

    def set_response(self, action_id: str, receipt: Receipt) -> None:
        """Set a custom response for a specific action ID."""
        self._handlers.pop(action_id, None)
        self._responses[action_id] = receipt

    def set_handler(self, action_id: str, handler: Handler) -> None:
        """Run ``handler`` for a specific action ID."""
        self._responses.pop(action_id, None)
        self._handlers[action_id] = handler

    def set_failure(self, action_id: str, error: str = "Mock failure") -> None:
        """Configure a specific action to fail."""
        self._handlers.pop(action_id, None)
        self._responses[action_id] = Receipt.failure(
            adapter=self._name,
            action_id=action_id,
            error=error,
        )

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        self._call_log.append(context)

        action_id = context.action.id
        if action_id in self._handlers:
            return self._handlers[action_id](context)
        if action_id in self._responses:
            return self._responses[action_id]

        return Receipt.success(
            adapter=self._name,
            action_id=action_id,
            output=self._default_output,
        )

    def reset(self) -> None:
        """Clear call log, custom responses and handlers."""
        self._call_log.clear()
        self._responses.clear()
        self._handlers.clear()
