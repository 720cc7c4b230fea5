"""Per-request context handed to every resolver."""

import threading
from typing import Any


class ExecutionContext:
    """Carries request values and the cancellation flag down to resolvers.

    Resolvers receive this object as their first argument. Cancelling stops
    the executor from starting new resolvers; resolvers already running are
    expected to check ``cancelled`` themselves if they want to stop early.

    Example:
        ctx = ExecutionContext(value={"user": current_user})
        result = await executor.execute(ctx, schema.query, None, document)
    """

    def __init__(self, value: Any = None, variables: dict[str, Any] | None = None):
        self.value = value
        self.variables = variables or {}
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        """Stop issuing new resolver calls. Safe to call from any thread."""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()
