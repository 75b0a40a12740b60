from __future__ import annotations
from collections import deque
from datetime import datetime, timezone
from typing import Deque, Dict, List, Optional, Any

from pydantic import BaseModel


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ParsingError(BaseModel):
    type: str  # date | price | description | other
    field: str
    raw_value: str
    error: str
    event_id: Optional[str] = None
    event_title: Optional[str] = None
    timestamp: str


class ParseLog:
    """Bounded collector for parse failures, passed into the parsers explicitly."""

    def __init__(self, capacity: int = 1000):
        self.capacity = capacity
        self._entries: Deque[ParsingError] = deque(maxlen=capacity)

    def record(
        self,
        type: str,
        field: str,
        raw_value: Any,
        error: str,
        event_id: Optional[str] = None,
        event_title: Optional[str] = None,
    ) -> ParsingError:
        entry = ParsingError(
            type=type,
            field=field,
            raw_value=str(raw_value if raw_value is not None else "null"),
            error=error,
            event_id=event_id,
            event_title=event_title,
            timestamp=_now_iso(),
        )
        self._entries.append(entry)
        return entry

    def errors(self) -> List[ParsingError]:
        return list(self._entries)

    def by_type(self, type: str) -> List[ParsingError]:
        return [e for e in self._entries if e.type == type]

    def for_event(self, event_id: str) -> List[ParsingError]:
        return [e for e in self._entries if e.event_id == event_id]

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> Dict[str, Any]:
        by_type: Dict[str, int] = {}
        for e in self._entries:
            by_type[e.type] = by_type.get(e.type, 0) + 1
        return {
            "total": len(self._entries),
            "by_type": by_type,
            "recent": [e.model_dump() for e in list(self._entries)[-10:]],
        }

    def __len__(self) -> int:
        return len(self._entries)


class RawDataEntry(BaseModel):
    event_id: str
    event_title: str
    source: str
    url: str
    raw_date: Optional[str] = None
    raw_price: Optional[str] = None
    raw_price_amount: Optional[float] = None
    raw_description: Optional[str] = None
    timestamp: str


class RawDataLog:
    """Keeps the raw scraped values of records whose date or price did not parse."""

    def __init__(self, capacity: int = 500):
        self.capacity = capacity
        self._entries: Deque[RawDataEntry] = deque(maxlen=capacity)

    def record(
        self,
        event_id: str,
        event_title: str,
        source: str,
        url: str,
        raw_date: Optional[str] = None,
        raw_price: Optional[str] = None,
        raw_price_amount: Optional[float] = None,
        raw_description: Optional[str] = None,
    ) -> RawDataEntry:
        entry = RawDataEntry(
            event_id=event_id,
            event_title=event_title,
            source=source,
            url=url,
            raw_date=raw_date,
            raw_price=raw_price,
            raw_price_amount=raw_price_amount,
            # long descriptions are not useful for format analysis
            raw_description=raw_description[:500] if raw_description else None,
            timestamp=_now_iso(),
        )
        self._entries.append(entry)
        return entry

    def entries(self) -> List[RawDataEntry]:
        return list(self._entries)

    def by_source(self, source: str) -> List[RawDataEntry]:
        return [e for e in self._entries if e.source == source]

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
