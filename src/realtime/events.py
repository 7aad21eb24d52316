"""Change events: cache-invalidation signals for open admin sessions."""

from dataclasses import dataclass
from typing import Any

INSERT = "insert"
UPDATE = "update"
DELETE = "delete"
OPERATIONS = (INSERT, UPDATE, DELETE)

SCHEMA = "public"


@dataclass(frozen=True)
class ChangeEvent:
    """Something changed in ``table``.

    Subscribers must re-fetch current state; the event is a prompt, not a
    record of the change. ``count`` is how many mutations a coalesced event
    stands for.
    """

    table: str
    operation: str
    count: int = 1

    def as_message(self) -> dict[str, Any]:
        return {
            "event": "*",
            "schema": SCHEMA,
            "table": self.table,
            "operation": self.operation,
            "count": self.count,
        }

    @classmethod
    def from_message(cls, message: dict[str, Any]) -> "ChangeEvent":
        return cls(
            table=message["table"],
            operation=message.get("operation", UPDATE),
            count=int(message.get("count", 1)),
        )


__all__ = ["ChangeEvent", "INSERT", "UPDATE", "DELETE", "OPERATIONS"]
