"""In-memory registry of tracked operations."""

from __future__ import annotations

import logging
import math
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Callable, Iterable, List, Optional

from ..contracts import Operation, Status, new_operation_id, utcnow
from ..errors import OperationNotFoundError
from ..events import EventBus

logger = logging.getLogger(__name__)

OperationsListener = Callable[[List[Operation]], None]

# Fields owned by the lifecycle operations below; ``update`` refuses them.
_LIFECYCLE_FIELDS = frozenset(
    {"id", "status", "progress", "logs", "started_at", "completed_at"}
)


def _stamp(message: str) -> str:
    return f"[{datetime.now().strftime('%H:%M:%S')}] {message}"


def get_overall_progress(operations: Iterable[Operation]) -> int:
    """Average progress of pending and running operations.

    Returns 100 when nothing is active.
    """
    active = [op.progress for op in operations if not op.status.is_terminal]
    if not active:
        return 100
    return int(sum(active) / len(active) + 0.5)


class OperationStore:
    """Own every tracked operation and broadcast each change.

    Mutations addressed to an unknown id are silently ignored. Once an
    operation is terminal its status, progress and outcome are frozen; only
    log entries may still be appended. Subscribers are notified only when a
    call actually changed the state, so ignored calls publish nothing.
    """

    def __init__(self) -> None:
        self._operations: List[Operation] = []
        self._events: EventBus[List[Operation]] = EventBus("operations")

    # ------------------------------------------------------------------
    def subscribe(self, listener: OperationsListener) -> Callable[[], None]:
        """Receive a snapshot of all operations after each mutation."""
        return self._events.subscribe(listener)

    def _publish(self) -> None:
        self._events.publish(self.operations)

    def _find(self, operation_id: str) -> Optional[Operation]:
        return next((op for op in self._operations if op.id == operation_id), None)

    def _find_active(self, operation_id: str) -> Optional[Operation]:
        op = self._find(operation_id)
        if op is None:
            return None
        if op.status.is_terminal:
            logger.debug(
                f"Ignoring transition on terminal operation {operation_id} ({op.status.value})"
            )
            return None
        return op

    # ------------------------------------------------------------------
    @property
    def operations(self) -> List[Operation]:
        """Snapshot of all operations, most recent first."""
        return [op.model_copy(deep=True) for op in self._operations]

    @property
    def overall_progress(self) -> int:
        return get_overall_progress(self._operations)

    def get(self, operation_id: str) -> Optional[Operation]:
        op = self._find(operation_id)
        return op.model_copy(deep=True) if op else None

    def require(self, operation_id: str) -> Operation:
        """Like :meth:`get` but raise ``OperationNotFoundError`` for unknown ids."""
        op = self.get(operation_id)
        if op is None:
            raise OperationNotFoundError(operation_id)
        return op

    def __len__(self) -> int:
        return len(self._operations)

    # ------------------------------------------------------------------
    def add(self, name: str, description: str = "", category: str = "system") -> str:
        """Create a pending operation and return its id."""
        op = Operation(
            id=new_operation_id(),
            name=name,
            description=description,
            category=category,
            logs=[_stamp(f"Operation started: {name}")],
        )
        self._operations.insert(0, op)
        logger.debug(f"Added operation {op.id} ({name})")
        self._publish()
        return op.id

    def update(self, operation_id: str, **changes: Any) -> None:
        """Merge descriptive fields such as ``name`` or ``result``.

        Raises:
            ValueError: If a lifecycle field is passed; use the dedicated
                operations for those.
        """
        forbidden = _LIFECYCLE_FIELDS.intersection(changes)
        if forbidden:
            raise ValueError(
                f"Cannot update lifecycle fields directly: {', '.join(sorted(forbidden))}"
            )
        unknown = set(changes) - set(Operation.model_fields)
        if unknown:
            raise ValueError(f"Unknown operation fields: {', '.join(sorted(unknown))}")
        op = self._find(operation_id)
        if op is None:
            return
        for field, value in changes.items():
            setattr(op, field, value)
        self._publish()

    def append_log(self, operation_id: str, message: str) -> None:
        op = self._find(operation_id)
        if op is None:
            return
        op.logs.append(_stamp(message))
        self._publish()

    def set_progress(self, operation_id: str, value: float) -> None:
        """Clamp ``value`` into [0, 100] and mark the operation running.

        NaN counts as 0.
        """
        op = self._find_active(operation_id)
        if op is None:
            return
        if math.isnan(value):
            value = 0
        op.progress = int(round(min(100.0, max(0.0, value))))
        op.status = Status.RUNNING
        self._publish()

    def complete(self, operation_id: str, result: Any = None) -> None:
        op = self._find_active(operation_id)
        if op is None:
            return
        op.status = Status.COMPLETED
        op.progress = 100
        op.completed_at = utcnow()
        op.result = result
        op.logs.append(_stamp("Operation completed successfully"))
        self._publish()

    def fail(self, operation_id: str, error: str) -> None:
        op = self._find_active(operation_id)
        if op is None:
            return
        op.status = Status.FAILED
        op.completed_at = utcnow()
        op.error = error
        op.logs.append(_stamp(f"ERROR: {error}"))
        logger.error(f"Operation {operation_id} ({op.name}) failed: {error}")
        self._publish()

    def cancel(self, operation_id: str) -> None:
        op = self._find_active(operation_id)
        if op is None:
            return
        op.status = Status.CANCELLED
        op.completed_at = utcnow()
        op.logs.append(_stamp("Operation cancelled"))
        self._publish()

    def remove(self, operation_id: str) -> None:
        before = len(self._operations)
        self._operations = [op for op in self._operations if op.id != operation_id]
        if len(self._operations) != before:
            self._publish()

    def clear_terminal(self) -> None:
        """Drop every completed, failed or cancelled operation."""
        before = len(self._operations)
        self._operations = [op for op in self._operations if not op.status.is_terminal]
        if len(self._operations) != before:
            self._publish()

    # ------------------------------------------------------------------
    @asynccontextmanager
    async def track(
        self, name: str, description: str = "", category: str = "system"
    ) -> AsyncIterator[str]:
        """Track the body of an ``async with`` block as an operation.

        The operation completes when the block exits normally and fails with
        the exception message otherwise; the exception is re-raised.
        """
        operation_id = self.add(name, description, category)
        try:
            yield operation_id
        except Exception as exc:
            self.fail(operation_id, str(exc) or type(exc).__name__)
            raise
        else:
            op = self._find(operation_id)
            self.complete(operation_id, op.result if op else None)
