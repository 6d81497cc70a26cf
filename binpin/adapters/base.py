"""
Adapter base — the protocol contract between the engine and tools.

This defines the abstract interface that every adapter must implement.
Pinning services only talk to the toolchain through this protocol,
never by spawning processes themselves.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel, Field

from binpin.core.models.action import Action, Receipt


class ExecutionContext(BaseModel):
    """Everything an adapter needs to execute an action.

    This is the adapter's view of the world: the action to perform,
    the directory to run in, the module file to operate on and any
    extra environment for the child process.
    """

    action: Action
    working_dir: str = "."
    modfile: str | None = None
    env_overrides: dict[str, str] = Field(default_factory=dict)
    timeout: float | None = None

    @property
    def operation(self) -> str:
        return self.action.params.get("operation", "")


class Adapter(ABC):
    """Abstract base class for all adapters.

    Adapters perform external side effects and return receipts.
    They NEVER raise exceptions — failures are captured in the Receipt.

    To create a new adapter:
        1. Subclass Adapter
        2. Implement name, is_available, validate, execute
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The adapter identifier (e.g., 'go')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this adapter's underlying tool is available.

        Should be fast and never raise.
        """

    @abstractmethod
    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        """Validate that the action can be executed.

        Returns:
            (is_valid, error_message). error_message is empty if valid.
        """

    @abstractmethod
    def execute(self, context: ExecutionContext) -> Receipt:
        """Execute the action and return a receipt.

        MUST never raise exceptions. All failures are captured
        in the Receipt with status='failed'.
        """

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
