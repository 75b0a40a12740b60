"""Maintenance passes over a stored collection.

``BatchRunner.enrich_all`` re-visits event pages in small groups and folds
what it finds into each record. ``audit_dates`` re-normalizes stored dates
without touching the network.

Neither pass takes a lock: run one maintenance process per collection file.
"""
from __future__ import annotations
import logging
import time
from typing import Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from eventfeed.adapters.detail_page import extract_enrichment
from eventfeed.config import Settings
from eventfeed.core.dates import Clock, is_canonical, normalize_date, system_clock
from eventfeed.core.merge import reconcile
from eventfeed.core.models import Event, EventStatus
from eventfeed.core.parse_log import ParseLog
from eventfeed.core.quality import QualityGate
from eventfeed.utils.fetch import PageFetcher

logger = logging.getLogger(__name__)

VALID = "valid"
FIXED = "fixed"
REJECTED = "rejected"
ENRICHED = "enriched"
UNCHANGED = "unchanged"
ERRORED = "errored"


class BatchItem(BaseModel):
    id: str
    title: str
    outcome: str
    before: Optional[str] = None
    after: Optional[str] = None
    changes: List[str] = Field(default_factory=list)
    error: Optional[str] = None


class BatchReport(BaseModel):
    total: int = 0
    valid: int = 0
    fixed: int = 0
    rejected: int = 0
    errored: int = 0
    cancelled: int = 0
    items: List[BatchItem] = Field(default_factory=list)

    def add(self, item: BatchItem) -> None:
        self.items.append(item)
        if item.outcome in (VALID, UNCHANGED):
            self.valid += 1
        elif item.outcome in (FIXED, ENRICHED):
            self.fixed += 1
        elif item.outcome == REJECTED:
            self.rejected += 1
        elif item.outcome == ERRORED:
            self.errored += 1

    def as_dict(self) -> Dict[str, object]:
        return self.model_dump()


def needs_enrichment(event: Event) -> bool:
    """Default selection: upcoming records that still miss detail."""
    if event.status != EventStatus.UPCOMING:
        return False
    return event.price_amount is None or not event.description or event.location_details is None


class BatchRunner:
    def __init__(
        self,
        fetcher: PageFetcher,
        gate: QualityGate,
        settings: Optional[Settings] = None,
        clock: Optional[Clock] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.fetcher = fetcher
        self.gate = gate
        self.settings = settings or gate.settings
        self.clock = clock or gate.clock or system_clock
        self.sleep = sleep

    def enrich_one(self, event: Event) -> Tuple[Event, List[str]]:
        """Fetch, extract and merge a single event. Fetch errors propagate."""
        html = self.fetcher.fetch(event.url)
        enrichment = extract_enrichment(event.url, html)
        outcome = reconcile(event, enrichment, self.gate, clock=self.clock)
        return outcome.event, outcome.changes

    def enrich_all(
        self,
        events: List[Event],
        predicate: Optional[Callable[[Event], bool]] = None,
        start: int = 0,
        limit: Optional[int] = None,
    ) -> BatchReport:
        """Enrich selected events in place, in groups of ``batch_size``.

        ``events`` is updated at the selected positions; every other record is
        left alone. A failed fetch is counted and the batch carries on.
        """
        predicate = predicate or needs_enrichment
        selected = [i for i, e in enumerate(events) if predicate(e)][start:]
        if limit is not None:
            selected = selected[:limit]

        report = BatchReport(total=len(selected))
        size = self.settings.batch_size
        batches = [selected[i:i + size] for i in range(0, len(selected), size)]
        logger.info("enriching %d events in %d batches", len(selected), len(batches))

        for number, batch in enumerate(batches, start=1):
            if number > 1:
                self.sleep(self.settings.batch_delay_seconds)
            for position, index in enumerate(batch):
                if position > 0:
                    self.sleep(self.settings.item_delay_seconds)
                event = events[index]
                try:
                    updated, changes = self.enrich_one(event)
                except Exception as exc:
                    logger.warning("fetch failed for %s: %s", event.url, exc)
                    report.add(BatchItem(id=event.id, title=event.title, outcome=ERRORED, error=str(exc)))
                    continue
                events[index] = updated
                if updated.status == EventStatus.CANCELLED and event.status != EventStatus.CANCELLED:
                    report.cancelled += 1
                report.add(BatchItem(
                    id=event.id,
                    title=event.title,
                    outcome=ENRICHED if changes else UNCHANGED,
                    before=event.status.value,
                    after=updated.status.value,
                    changes=changes,
                ))
            logger.info("batch %d/%d done", number, len(batches))

        logger.info(
            "enrichment finished: %d enriched, %d unchanged, %d errored, %d cancelled",
            report.fixed, report.valid, report.errored, report.cancelled,
        )
        return report


def audit_dates(
    events: List[Event],
    clock: Optional[Clock] = None,
    log: Optional[ParseLog] = None,
) -> BatchReport:
    """Re-normalize every stored date in place.

    Canonical values are counted as valid, repairable ones are rewritten and
    counted as fixed, and values no strategy can read become ``None`` and are
    counted as rejected (the Quality Gate drops them later).
    """
    report = BatchReport(total=len(events))
    for index, event in enumerate(events):
        if is_canonical(event.date):
            report.add(BatchItem(id=event.id, title=event.title, outcome=VALID, before=event.date, after=event.date))
            continue
        repaired = normalize_date(event.date, clock=clock, log=log, event_id=event.id, event_title=event.title)
        outcome = FIXED if repaired else REJECTED
        report.add(BatchItem(id=event.id, title=event.title, outcome=outcome, before=event.date, after=repaired))
        events[index] = event.model_copy(update={"date": repaired})
        if repaired is None:
            logger.warning("unreadable date on %s (%s): %r", event.id[:12], event.title, event.date)
    logger.info("date audit: %d valid, %d fixed, %d rejected", report.valid, report.fixed, report.rejected)
    return report
