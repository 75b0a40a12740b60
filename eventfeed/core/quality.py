from __future__ import annotations
import logging
import re
from datetime import datetime, timedelta
from typing import List, Optional

from pydantic import BaseModel, Field

from eventfeed.config import Settings
from eventfeed.core.dates import Clock, assume_civil_zone, normalize_date, parse_canonical, system_clock
from eventfeed.core.dedupe import dedupe_events
from eventfeed.core.models import Event
from eventfeed.core.prices import extract_prices

logger = logging.getLogger(__name__)

INVALID_DATE = "invalid_date"
PRICE_OVER_CEILING = "price_over_ceiling"
DESCRIPTION_PRICE_OVER_CEILING = "description_price_over_ceiling"
TOO_FAR_PAST = "too_far_past"
TOO_FAR_FUTURE = "too_far_future"
EXCLUDED_LOCATION = "excluded_location"


class QualityVerdict(BaseModel):
    accepted: bool
    reasons: List[str] = Field(default_factory=list)
    flags: List[str] = Field(default_factory=list)


class QualityGate:
    def __init__(self, settings: Optional[Settings] = None, clock: Optional[Clock] = None):
        self.settings = settings or Settings()
        self.clock = clock or system_clock

    def _now(self) -> datetime:
        return assume_civil_zone(self.clock())

    def _price_issue(self, event: Event) -> Optional[str]:
        ceiling = self.settings.price_ceiling
        if event.price_amount is not None:
            return PRICE_OVER_CEILING if event.price_amount > ceiling else None
        if event.description:
            if any(p > ceiling for p in extract_prices(event.description)):
                return DESCRIPTION_PRICE_OVER_CEILING
        return None

    def _location_issue(self, event: Event) -> Optional[str]:
        parts = [event.location]
        if event.location_details is not None:
            parts += [event.location_details.city, event.location_details.province]
        text = " ".join(p for p in parts if p).lower()
        # a location that names Toronto is kept whatever else it mentions
        if "toronto" in text:
            return None
        for place in self.settings.excluded_locations:
            if re.search(rf"\b{re.escape(place.lower())}\b", text):
                return EXCLUDED_LOCATION
        return None

    def start_of(self, event: Event) -> Optional[datetime]:
        return parse_canonical(event.date) or parse_canonical(normalize_date(event.date, clock=self.clock))

    def evaluate(self, event: Event) -> QualityVerdict:
        start = self.start_of(event)
        if start is None:
            # the only rejection no setting can relax
            return QualityVerdict(accepted=False, reasons=[INVALID_DATE])

        reasons: List[str] = []
        flags: List[str] = []

        location_issue = self._location_issue(event)
        if location_issue:
            reasons.append(location_issue)

        price_issue = self._price_issue(event)
        if price_issue:
            (reasons if self.settings.reject_expensive else flags).append(price_issue)

        now = self._now()
        if start < now - timedelta(days=self.settings.past_window_days):
            reasons.append(TOO_FAR_PAST)
        elif start > now + timedelta(days=self.settings.future_window_days):
            reasons.append(TOO_FAR_FUTURE)

        return QualityVerdict(accepted=not reasons, reasons=reasons, flags=flags)

    def accept(self, event: Event) -> bool:
        return self.evaluate(event).accepted


def prune_events(events: List[Event], gate: QualityGate, keep: str = "first") -> List[Event]:
    """Drop rejected and duplicate records; survivors are ordered by date."""
    survivors: List[Event] = []
    for event in dedupe_events(events, keep=keep):
        verdict = gate.evaluate(event)
        if verdict.accepted:
            survivors.append(event)
        else:
            logger.info("dropping %s (%s): %s", event.id[:12], event.title, ", ".join(verdict.reasons))
    survivors.sort(key=gate.start_of)
    return survivors
