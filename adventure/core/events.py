from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Literal

EventType = Literal[
    "SESSION_STARTED",
    "SESSION_LOADED",
    "TURN_COMMITTED",
    "GENERATION_FAILED",
    "IMAGE_ATTACHED",
]


@dataclass(frozen=True, slots=True)
class SessionEvent:
    type: EventType
    entry_id: int | None
    payload: dict[str, Any]
    ts: datetime

    @staticmethod
    def now(*, type: EventType, entry_id: int | None, payload: dict[str, Any]) -> "SessionEvent":
        return SessionEvent(type=type, entry_id=entry_id, payload=payload, ts=datetime.now(timezone.utc))

    def as_message(self) -> dict[str, object]:
        return {"type": self.type, "entry_id": self.entry_id, "ts": self.ts.isoformat(), **self.payload}
