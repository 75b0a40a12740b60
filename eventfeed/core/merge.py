"""Folding secondary extraction results into a canonical event.

Two passes:

``merge_fields``
    Field-by-field precedence. Pure data: it never changes ``status``
    except for an explicit "moved" signal carried by the source.
``apply_policies``
    Named policies that may cancel the merged event (complete sell-out,
    non-Latin description, failed quality re-check). CANCELLED is terminal.

``merge`` runs both. Applying the same enrichment twice gives the same
result as applying it once, provided the clock does not move.
"""
from __future__ import annotations
import logging
from typing import Callable, List, Optional, Sequence

from pydantic import BaseModel, Field

from eventfeed.core.dates import (
    Clock,
    assume_civil_zone,
    format_canonical,
    is_multi_day,
    normalize_date,
    system_clock,
)
from eventfeed.core.models import MULTI_DAY, PRICE_SENTINEL, Enrichment, Event, EventStatus
from eventfeed.core.prices import format_price, is_valid_price, parse_price
from eventfeed.core.quality import QualityGate
from eventfeed.core.sanitize import (
    categorize_event,
    clean_text,
    is_placeholder_location,
    is_probably_english,
    is_valid_description,
    location_parts,
    online_label,
)
from eventfeed.core.soldout import is_completely_sold_out

logger = logging.getLogger(__name__)

FieldRule = Callable[[Event, Enrichment, Optional[Clock]], Optional[str]]
Policy = Callable[[Event, QualityGate], Optional[str]]


class MergeResult(BaseModel):
    event: Event
    changes: List[str] = Field(default_factory=list)


class PolicyResult(BaseModel):
    event: Event
    reasons: List[str] = Field(default_factory=list)


class MergeOutcome(BaseModel):
    event: Event
    changes: List[str] = Field(default_factory=list)
    policy_reasons: List[str] = Field(default_factory=list)


def _enrichment_amount(enrichment: Enrichment) -> Optional[float]:
    if enrichment.price_amount is not None:
        return enrichment.price_amount if is_valid_price(enrichment.price_amount) else None
    if enrichment.price is not None:
        return parse_price(enrichment.price).numeric_amount
    return None


def merge_price(event: Event, enrichment: Enrichment, clock: Optional[Clock]) -> Optional[str]:
    amount = _enrichment_amount(enrichment)
    if amount is None:
        return None
    # a confident primary value only yields to a different confident value
    if event.price_amount is None or event.price == PRICE_SENTINEL or amount != event.price_amount:
        event.price_amount = amount
        event.price = format_price(amount)
        event.is_free = amount == 0
        return "price"
    return None


def merge_price_bounds(event: Event, enrichment: Enrichment, clock: Optional[Clock]) -> Optional[str]:
    changed = False
    if enrichment.min_price is not None and enrichment.min_price != event.min_price:
        event.min_price = enrichment.min_price
        changed = True
    if enrichment.max_price is not None and enrichment.max_price != event.max_price:
        event.max_price = enrichment.max_price
        changed = True
    if event.price_amount is None:
        bounds = [p for p in (event.min_price, event.max_price) if is_valid_price(p)]
        if bounds:
            event.price_amount = min(bounds)
            event.price = format_price(event.price_amount)
            event.is_free = event.price_amount == 0
            changed = True
    return "price range" if changed else None


def merge_ticket_types(event: Event, enrichment: Enrichment, clock: Optional[Clock]) -> Optional[str]:
    if not enrichment.ticket_types or enrichment.ticket_types == event.ticket_types:
        return None
    event.ticket_types = [t.model_copy() for t in enrichment.ticket_types]
    return f"{len(event.ticket_types)} ticket types"


def merge_times(event: Event, enrichment: Enrichment, clock: Optional[Clock]) -> Optional[str]:
    changed = []
    if enrichment.start_time:
        start = normalize_date(enrichment.start_time, clock=clock, event_id=event.id)
        if start and (start != event.date or enrichment.start_time != event.start_time):
            event.date = start
            event.start_time = enrichment.start_time
            changed.append("start time")
    if enrichment.end_time:
        end = normalize_date(enrichment.end_time, clock=clock, event_id=event.id, field="endDate")
        if end and (end != event.end_date or enrichment.end_time != event.end_time):
            event.end_date = end
            event.end_time = enrichment.end_time
            changed.append("end time")
    return ", ".join(changed) or None


def merge_description(event: Event, enrichment: Enrichment, clock: Optional[Clock]) -> Optional[str]:
    candidate = clean_text(enrichment.full_description)
    if not is_valid_description(candidate):
        return None
    # length is the only measure of completeness; a placeholder counts as nothing
    current = event.description if is_valid_description(event.description) else ""
    if len(candidate) <= len(current):
        return None
    event.description = candidate
    event.categories = categorize_event(event.title, event.description, event.categories)
    return "description"


def merge_location(event: Event, enrichment: Enrichment, clock: Optional[Clock]) -> Optional[str]:
    details = enrichment.location_details
    if details is None:
        return None
    before = (event.location, event.location_details)
    event.location_details = details.model_copy()
    if details.is_online:
        event.location = online_label(details)
    else:
        parts = location_parts(details)
        if is_placeholder_location(event.location) or event.location.startswith("Online"):
            if parts:
                event.location = ", ".join(parts)
        else:
            for part in parts:
                if part.lower() not in event.location.lower():
                    event.location = f"{event.location}, {part}"
    return "location details" if (event.location, event.location_details) != before else None


def merge_sold_out(event: Event, enrichment: Enrichment, clock: Optional[Clock]) -> Optional[str]:
    before = (event.is_sold_out, event.gender_sold_out)
    if enrichment.is_sold_out is not None:
        event.is_sold_out = enrichment.is_sold_out
    if enrichment.gender_sold_out is not None:
        event.gender_sold_out = enrichment.gender_sold_out
    return "sold out" if (event.is_sold_out, event.gender_sold_out) != before else None


def merge_moved(event: Event, enrichment: Enrichment, clock: Optional[Clock]) -> Optional[str]:
    if enrichment.moved and event.status == EventStatus.UPCOMING:
        event.status = EventStatus.MOVED
        return "moved"
    return None


def merge_multi_day(event: Event, enrichment: Enrichment, clock: Optional[Clock]) -> Optional[str]:
    if MULTI_DAY in event.categories:
        return None
    if enrichment.is_recurring or is_multi_day(event.date, event.end_date):
        event.categories = event.categories + [MULTI_DAY]
        return "multi-day"
    return None


FIELD_RULES: Sequence[FieldRule] = (
    merge_price,
    merge_price_bounds,
    merge_ticket_types,
    merge_times,
    merge_description,
    merge_location,
    merge_sold_out,
    merge_moved,
    merge_multi_day,
)


def merge_fields(base: Event, enrichment: Enrichment, clock: Optional[Clock] = None) -> MergeResult:
    event = base.model_copy(deep=True)
    changes: List[str] = []
    for rule in FIELD_RULES:
        change = rule(event, enrichment, clock)
        if change:
            changes.append(change)
    event.last_updated = format_canonical(assume_civil_zone((clock or system_clock)()))
    return MergeResult(event=event, changes=changes)


def complete_sold_out_policy(event: Event, gate: QualityGate) -> Optional[str]:
    if is_completely_sold_out(event.is_sold_out, event.gender_sold_out):
        return "sold_out"
    return None


def foreign_language_policy(event: Event, gate: QualityGate) -> Optional[str]:
    # content filtering riding on the status field; kept as-is, isolated here
    if event.description and not is_probably_english(event.description):
        return "foreign_language"
    return None


def quality_recheck_policy(event: Event, gate: QualityGate) -> Optional[str]:
    verdict = gate.evaluate(event)
    if not verdict.accepted:
        return "quality:" + ",".join(verdict.reasons)
    return None


POLICIES: Sequence[Policy] = (
    complete_sold_out_policy,
    foreign_language_policy,
    quality_recheck_policy,
)


def apply_policies(event: Event, gate: QualityGate, policies: Sequence[Policy] = POLICIES) -> PolicyResult:
    event = event.model_copy(deep=True)
    reasons = [reason for reason in (policy(event, gate) for policy in policies) if reason]
    if reasons and event.status != EventStatus.CANCELLED:
        logger.info("cancelling %s (%s): %s", event.id[:12], event.title, ", ".join(reasons))
        event.status = EventStatus.CANCELLED
    return PolicyResult(event=event, reasons=reasons)


def reconcile(
    base: Event,
    enrichment: Enrichment,
    gate: QualityGate,
    clock: Optional[Clock] = None,
    policies: Sequence[Policy] = POLICIES,
) -> MergeOutcome:
    merged = merge_fields(base, enrichment, clock or gate.clock)
    checked = apply_policies(merged.event, gate, policies)
    return MergeOutcome(event=checked.event, changes=merged.changes, policy_reasons=checked.reasons)


def merge(base: Event, enrichment: Enrichment, gate: QualityGate, clock: Optional[Clock] = None) -> Event:
    return reconcile(base, enrichment, gate, clock).event
