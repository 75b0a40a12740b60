from __future__ import annotations
import json
import logging
from pathlib import Path
from typing import List, Union

from pydantic import ValidationError

from eventfeed.core.models import Event

logger = logging.getLogger(__name__)


def load_events(path: Union[str, Path]) -> List[Event]:
    """Read the whole collection. Records that fail validation are skipped."""
    path = Path(path)
    if not path.exists():
        return []
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, list):
        raise ValueError(f"{path} does not hold a list of events")
    events: List[Event] = []
    for index, item in enumerate(data):
        try:
            events.append(Event.model_validate(item))
        except ValidationError as exc:
            logger.warning("skipping record %d in %s: %s", index, path, exc.errors()[0].get("msg"))
    return events


def save_events(path: Union[str, Path], events: List[Event]) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = [e.model_dump(mode="json", by_alias=True) for e in events]
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)
        f.write("\n")
