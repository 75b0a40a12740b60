from __future__ import annotations
import hashlib
from typing import Dict, List
from urllib.parse import urlsplit, urlunsplit

from eventfeed.core.models import Event


def canonicalize_url(url: str) -> str:
    parts = urlsplit(url.strip())
    path = parts.path.rstrip("/")
    return urlunsplit((parts.scheme, parts.netloc, path, "", "")).lower()


def generate_event_id(url: str) -> str:
    basis = canonicalize_url(url)
    return hashlib.sha256(basis.encode("utf-8")).hexdigest()


def dedupe_events(events: List[Event], keep: str = "first") -> List[Event]:
    """Collapse records sharing an id.

    ``keep="first"`` keeps the earliest record, ``keep="last"`` the most
    recently merged one; either way the survivor takes the position of the
    first occurrence.
    """
    if keep not in ("first", "last"):
        raise ValueError(f"keep must be 'first' or 'last', got {keep!r}")
    chosen: Dict[str, Event] = {}
    order: List[str] = []
    for e in events:
        if e.id not in chosen:
            order.append(e.id)
            chosen[e.id] = e
        elif keep == "last":
            chosen[e.id] = e
    return [chosen[i] for i in order]
