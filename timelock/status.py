"""Operation lifecycle: PENDING -> READY -> EXECUTED | CANCELLED.

Status is a pure function of the operation's timestamps and the current time.
Terminal fields are checked first, in strict priority: an operation with both
``executed_at`` and ``cancelled_at`` set is reported EXECUTED.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable


class OperationStatus(Enum):
    PENDING = "PENDING"
    READY = "READY"
    EXECUTED = "EXECUTED"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class Call:
    """One call of a scheduled operation."""

    target: str
    value: int
    data: str


@dataclass(frozen=True)
class Operation:
    """A scheduled timelock operation, as supplied by the event/subgraph layer.

    ``timestamp`` is the ready time (``scheduled_at + delay``), in unix seconds.
    """

    id: str
    timestamp: int
    scheduled_at: int = 0
    delay: int = 0
    executed_at: int | None = None
    cancelled_at: int | None = None
    calls: list[Call] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Operation":
        """Build an operation from a subgraph record (numbers may arrive as strings)."""

        def as_int(value: Any) -> int | None:
            return None if value is None else int(value)

        calls = [Call(c["target"], int(c.get("value") or 0), c.get("data") or "0x") for c in data.get("calls") or []]
        return cls(
            id=data["id"],
            timestamp=int(data["timestamp"]),
            scheduled_at=int(data.get("scheduledAt") or 0),
            delay=int(data.get("delay") or 0),
            executed_at=as_int(data.get("executedAt")),
            cancelled_at=as_int(data.get("cancelledAt")),
            calls=calls,
        )


def derive_status(operation: Operation, now: int) -> OperationStatus:
    if operation.executed_at is not None:
        return OperationStatus.EXECUTED
    if operation.cancelled_at is not None:
        return OperationStatus.CANCELLED
    if now >= operation.timestamp:
        return OperationStatus.READY
    return OperationStatus.PENDING


def is_operation_final(operation: Operation) -> bool:
    return operation.executed_at is not None or operation.cancelled_at is not None


def is_operation_executable(operation: Operation, now: int) -> bool:
    return derive_status(operation, now) == OperationStatus.READY


def seconds_until_ready(operation: Operation, now: int) -> int | None:
    """Seconds left before the operation can execute; 0 once ready, None for final operations."""
    if is_operation_final(operation):
        return None
    return max(0, operation.timestamp - now)


def operation_progress(operation: Operation, now: int) -> int:
    """Percentage (0-100) of the delay elapsed since scheduling."""
    if is_operation_final(operation):
        return 100
    total = operation.timestamp - operation.scheduled_at
    if total <= 0:
        return 100
    progress = (now - operation.scheduled_at) * 100 // total
    return max(0, min(100, progress))


def format_seconds_to_time(seconds: int) -> str:
    """Convert seconds to a countdown string like "2d 5h 30m" or "1m 30s"."""
    if seconds <= 0:
        return "Ready now"
    days = seconds // 86400
    hours = (seconds % 86400) // 3600
    minutes = (seconds % 3600) // 60
    secs = seconds % 60
    parts: list[str] = []
    if days > 0:
        parts.append(f"{days}d")
    if hours > 0 or days > 0:
        parts.append(f"{hours}h")
    if minutes > 0 or hours > 0 or days > 0:
        parts.append(f"{minutes}m")
    # Seconds only matter under a day
    if days == 0:
        parts.append(f"{secs}s")
    return " ".join(parts)


class OperationCountdown:
    """Client-side view of an operation's status with a live countdown.

    The displayed status flips from PENDING to READY as soon as the countdown
    reaches zero, ahead of the authoritative record. ``refresh`` swaps in the
    latest record from the data layer.
    """

    def __init__(self, operation: Operation, clock: Callable[[], float] = time.time):
        self.operation = operation
        self.clock = clock

    def now(self) -> int:
        return int(self.clock())

    @property
    def status(self) -> OperationStatus:
        return derive_status(self.operation, self.now())

    @property
    def seconds_until_ready(self) -> int | None:
        return seconds_until_ready(self.operation, self.now())

    @property
    def time_until_ready(self) -> str | None:
        remaining = self.seconds_until_ready
        return None if remaining is None else format_seconds_to_time(remaining)

    def refresh(self, operation: Operation) -> OperationStatus:
        if operation.id != self.operation.id:
            raise ValueError(f"Cannot refresh {self.operation.id} with {operation.id}")
        self.operation = operation
        return self.status
