from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventType(str, Enum):
    SEARCH = "search"
    PLANNING = "planning"
    RANKING = "ranking"
    IMAGES = "images"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass
class SSEEvent:
    event: EventType
    message: str = ""
    data: dict[str, Any] = field(default_factory=dict)

    def payload(self) -> dict[str, Any]:
        return {"message": self.message, **self.data}
