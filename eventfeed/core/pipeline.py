from __future__ import annotations
import logging
from typing import Callable, Dict, List, Optional, Set, Tuple

from pydantic import BaseModel, Field

from eventfeed.core.dates import Clock, assume_civil_zone, format_canonical, is_multi_day, normalize_date, system_clock
from eventfeed.core.dedupe import generate_event_id
from eventfeed.core.models import (
    DEFAULT_LOCATION,
    MULTI_DAY,
    Event,
    EventStatus,
    RawEvent,
)
from eventfeed.core.parse_log import ParseLog, RawDataLog
from eventfeed.core.prices import parse_price
from eventfeed.core.quality import QualityGate
from eventfeed.core.sanitize import (
    categorize_event,
    clean_text,
    is_placeholder_image,
    is_valid_description,
    online_label,
)
from eventfeed.core.soldout import infer_sold_out, is_completely_sold_out

logger = logging.getLogger(__name__)


def build_event(
    raw: RawEvent,
    clock: Optional[Clock] = None,
    log: Optional[ParseLog] = None,
    raw_log: Optional[RawDataLog] = None,
) -> Event:
    clock = clock or system_clock
    event_id = generate_event_id(raw.url)
    title = clean_text(raw.title) or "Untitled event"

    date = normalize_date(raw.date, clock=clock, log=log, event_id=event_id, event_title=title)
    end_date = None
    if raw.end_date:
        end_date = normalize_date(
            raw.end_date, clock=clock, log=log, event_id=event_id, event_title=title, field="endDate"
        )
    price = parse_price(raw.price, raw.price_amount, log=log, event_id=event_id, event_title=title)

    if raw_log is not None and (date is None or not price.is_valid):
        raw_log.record(
            event_id=event_id,
            event_title=title,
            source=raw.source,
            url=raw.url,
            raw_date=raw.date,
            raw_price=None if raw.price is None else str(raw.price),
            raw_price_amount=raw.price_amount,
            raw_description=raw.description,
        )

    text = clean_text(raw.description)
    description = text if is_valid_description(text) else None
    location = clean_text(raw.location) or DEFAULT_LOCATION
    if raw.location_details is not None and raw.location_details.is_online:
        location = online_label(raw.location_details)

    categories = categorize_event(title, description, raw.categories)
    if is_multi_day(date, end_date):
        categories.append(MULTI_DAY)

    sold_out = infer_sold_out(f"{title} {text or ''}")

    return Event(
        id=event_id,
        title=title,
        date=date,
        end_date=end_date,
        location=location,
        location_details=raw.location_details,
        source=raw.source,
        url=raw.url,
        image=None if is_placeholder_image(raw.image) else raw.image,
        price=price.display_price,
        price_amount=price.numeric_amount,
        description=description,
        categories=categories,
        status=EventStatus.CANCELLED
        if is_completely_sold_out(sold_out.is_sold_out, sold_out.gender_sold_out)
        else EventStatus.UPCOMING,
        is_sold_out=sold_out.is_sold_out,
        gender_sold_out=sold_out.gender_sold_out,
        start_time=raw.date,
        end_time=raw.end_date,
        last_updated=format_canonical(assume_civil_zone(clock())),
    )


class IngestReport(BaseModel):
    total: int = 0
    added: int = 0
    updated: int = 0
    rejected: int = 0
    rejected_ids: List[str] = Field(default_factory=list)
    stale_checked: int = 0
    stale_cancelled: int = 0
    cancelled_ids: List[str] = Field(default_factory=list)

    def as_dict(self) -> Dict[str, object]:
        return self.model_dump()


def ingest(
    raws: List[RawEvent],
    existing: List[Event],
    gate: QualityGate,
    log: Optional[ParseLog] = None,
    raw_log: Optional[RawDataLog] = None,
    link_check: Optional[Callable[[str], bool]] = None,
) -> Tuple[List[Event], IngestReport]:
    """Fold freshly scraped records into a collection, keyed by id.

    Fresh data replaces stored data, except that a stored CANCELLED or MOVED
    status is kept. Records the gate rejects are not added.

    With ``link_check``, stored upcoming events the scrape no longer lists
    have their page checked; a page reported gone cancels the event.
    """
    report = IngestReport(total=len(raws))
    merged: Dict[str, Event] = {e.id: e for e in existing}
    order: List[str] = [e.id for e in existing]
    seen: Set[str] = set()

    for raw in raws:
        fresh = build_event(raw, clock=gate.clock, log=log, raw_log=raw_log)
        seen.add(fresh.id)
        verdict = gate.evaluate(fresh)
        if not verdict.accepted:
            logger.info("rejected %s: %s", raw.url, ", ".join(verdict.reasons))
            report.rejected += 1
            report.rejected_ids.append(fresh.id)
            continue
        previous = merged.get(fresh.id)
        if previous is None:
            order.append(fresh.id)
            report.added += 1
        else:
            if previous.status == EventStatus.CANCELLED:
                fresh.status = EventStatus.CANCELLED
            elif previous.status == EventStatus.MOVED and fresh.status == EventStatus.UPCOMING:
                fresh.status = EventStatus.MOVED
            report.updated += 1
        merged[fresh.id] = fresh

    if link_check is not None:
        _cancel_vanished(merged, order, seen, gate, link_check, report)

    return [merged[i] for i in order], report


def _cancel_vanished(
    merged: Dict[str, Event],
    order: List[str],
    seen: Set[str],
    gate: QualityGate,
    link_check: Callable[[str], bool],
    report: IngestReport,
) -> None:
    now = assume_civil_zone(gate.clock())
    for event_id in order:
        event = merged[event_id]
        if event_id in seen or event.status == EventStatus.CANCELLED:
            continue
        start = gate.start_of(event)
        # past events are left for prune
        if start is None or start < now:
            continue
        report.stale_checked += 1
        if link_check(event.url):
            continue
        logger.info("cancelling %s (%s): page is gone", event.id[:12], event.title)
        merged[event_id] = event.model_copy(
            update={"status": EventStatus.CANCELLED, "last_updated": format_canonical(now)}
        )
        report.stale_cancelled += 1
        report.cancelled_ids.append(event_id)
