from __future__ import annotations
from typing import Any, Dict, Iterator, List, Optional
import json
import logging

from bs4 import BeautifulSoup

from eventfeed.core.sanitize import clean_text

logger = logging.getLogger(__name__)

EVENT_TYPES = ("Event", "EventSeries", "MusicEvent", "SocialEvent", "ComedyEvent", "Festival")


def _types(node: Dict[str, Any]) -> List[str]:
    kind = node.get("@type")
    if isinstance(kind, list):
        return [str(k) for k in kind]
    return [str(kind)] if kind else []


def _walk(data: Any) -> Iterator[Dict[str, Any]]:
    if isinstance(data, list):
        for item in data:
            yield from _walk(item)
    elif isinstance(data, dict):
        yield data
        if "@graph" in data:
            yield from _walk(data["@graph"])


def iter_json_ld(soup: BeautifulSoup) -> Iterator[Dict[str, Any]]:
    """Every JSON-LD object on the page, flattening lists and @graph."""
    for script in soup.select('script[type="application/ld+json"]'):
        raw = script.string or script.get_text() or ""
        try:
            data = json.loads(raw)
        except ValueError:
            logger.debug("unreadable JSON-LD block skipped")
            continue
        yield from _walk(data)


def find_event_json_ld(soup: BeautifulSoup) -> Optional[Dict[str, Any]]:
    for node in iter_json_ld(soup):
        if any(kind in EVENT_TYPES for kind in _types(node)):
            return node
    return None


def has_event_json_ld(html: str) -> bool:
    return find_event_json_ld(BeautifulSoup(html, "lxml")) is not None


def node_text(soup: BeautifulSoup, selector: str) -> Optional[str]:
    node = soup.select_one(selector)
    return clean_text(node.get_text(" ")) if node else None

