"""Secondary extraction from an event's own page.

Three passes, earlier passes win:

1. JSON-LD ``Event``/``EventSeries`` markup
2. CSS selectors commonly used by ticketing pages
3. Regular expressions over the visible body text
"""
from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from eventfeed.core.models import Enrichment, GenderSoldOut, LocationDetails, TicketType
from eventfeed.core.prices import extract_prices, parse_price
from eventfeed.core.sanitize import clean_text, is_valid_description
from eventfeed.core.soldout import infer_sold_out
from eventfeed.utils.parse import find_event_json_ld, node_text

logger = logging.getLogger(__name__)

DESCRIPTION_SELECTORS = (
    "[data-testid='event-description']",
    ".event-description",
    ".structured-content",
    "[itemprop='description']",
    ".description",
    "article",
)
PRICE_SELECTORS = ".ticket-price, .price, .prices, .cost, [data-testid='price']"
VENUE_SELECTORS = ".venue, .location-info__address-text, .place, .location"
ADDRESS_SELECTORS = ".address, .venue-address, [itemprop='streetAddress']"
START_SELECTORS = (
    ("time[datetime]", "datetime"),
    ("meta[itemprop='startDate']", "content"),
    ("meta[property='event:start_time']", "content"),
)
END_SELECTORS = (
    ("meta[itemprop='endDate']", "content"),
    ("meta[property='event:end_time']", "content"),
)

SOLD_OUT = "SoldOut"
MOVED_STATUSES = ("EventMovedOnline", "EventRescheduled", "EventPostponed")
ONLINE_MODE = "OnlineEventAttendanceMode"
KNOWN_PLATFORMS = {"zoom.us": "Zoom", "meet.google.com": "Google Meet", "teams.microsoft.com": "Teams",
                    "youtube.com": "YouTube", "twitch.tv": "Twitch"}


def _schema_name(value: Any) -> Optional[str]:
    """``https://schema.org/SoldOut`` -> ``SoldOut``."""
    if not value:
        return None
    return str(value).rstrip("/").rsplit("/", 1)[-1]


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    return value if isinstance(value, list) else [value]


def _amount(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    return parse_price(value if isinstance(value, (int, float)) else str(value)).numeric_amount


def _html_to_text(value: Any) -> Optional[str]:
    if not value:
        return None
    text = str(value)
    if "<" in text:
        text = BeautifulSoup(text, "lxml").get_text(" ")
    return clean_text(text)


def _platform(node: Dict[str, Any]) -> Optional[str]:
    if node.get("name"):
        return clean_text(node["name"])
    host = urlparse(str(node.get("url") or "")).netloc.lower()
    for domain, name in KNOWN_PLATFORMS.items():
        if host.endswith(domain):
            return name
    return None


def _location(node: Dict[str, Any], online_mode: bool) -> Optional[LocationDetails]:
    physical = None
    virtual = None
    for loc in _as_list(node.get("location")):
        if isinstance(loc, str):
            physical = physical or LocationDetails(venue=clean_text(loc))
            continue
        if not isinstance(loc, dict):
            continue
        if loc.get("@type") == "VirtualLocation":
            virtual = virtual or LocationDetails(is_online=True, online_platform=_platform(loc))
            continue
        address = loc.get("address")
        if isinstance(address, dict):
            physical = physical or LocationDetails(
                venue=clean_text(loc.get("name")),
                address=clean_text(address.get("streetAddress")),
                city=clean_text(address.get("addressLocality")),
                province=clean_text(address.get("addressRegion")),
                postal_code=clean_text(address.get("postalCode")),
            )
        else:
            physical = physical or LocationDetails(venue=clean_text(loc.get("name")), address=clean_text(address))
    if online_mode or (virtual is not None and physical is None):
        return virtual or LocationDetails(is_online=True)
    return physical


def _offers(node: Dict[str, Any], values: Dict[str, Any]) -> None:
    tickets: List[TicketType] = []
    amounts: List[float] = []
    availability: List[Optional[str]] = []
    for index, offer in enumerate(_as_list(node.get("offers")), start=1):
        if not isinstance(offer, dict):
            continue
        low = _amount(offer.get("lowPrice"))
        high = _amount(offer.get("highPrice"))
        price = _amount(offer.get("price"))
        status = _schema_name(offer.get("availability"))
        availability.append(status)
        amounts.extend(a for a in (price, low, high) if a is not None)
        if offer.get("@type") == "AggregateOffer" and price is None:
            continue
        tickets.append(TicketType(name=clean_text(offer.get("name")) or f"Ticket {index}",
                                  price=price, availability=status))

    if tickets:
        values["ticket_types"] = tickets
    if amounts:
        values["min_price"] = min(amounts)
        values["max_price"] = max(amounts)
        if len(set(amounts)) == 1:
            values["price_amount"] = amounts[0]
    if availability and all(status == SOLD_OUT for status in availability):
        values["is_sold_out"] = True


def from_json_ld(node: Dict[str, Any]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    if node.get("startDate"):
        values["start_time"] = str(node["startDate"])
    if node.get("endDate"):
        values["end_time"] = str(node["endDate"])
    description = _html_to_text(node.get("description"))
    if is_valid_description(description):
        values["full_description"] = description

    _offers(node, values)

    status = _schema_name(node.get("eventStatus"))
    online_mode = _schema_name(node.get("eventAttendanceMode")) == ONLINE_MODE or status == "EventMovedOnline"
    location = _location(node, online_mode)
    if location is not None:
        values["location_details"] = location
    if status in MOVED_STATUSES:
        values["moved"] = True

    kinds = _as_list(node.get("@type"))
    if "EventSeries" in kinds or node.get("eventSchedule") or len(_as_list(node.get("subEvent"))) > 1:
        values["is_recurring"] = True
    return values


def _attr(soup: BeautifulSoup, selectors) -> Optional[str]:
    for selector, attr in selectors:
        node = soup.select_one(selector)
        if node is not None and node.get(attr):
            return str(node[attr]).strip()
    return None


def from_selectors(soup: BeautifulSoup) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    start = _attr(soup, START_SELECTORS)
    if start:
        values["start_time"] = start
    end = _attr(soup, END_SELECTORS)
    if end:
        values["end_time"] = end

    for selector in DESCRIPTION_SELECTORS:
        text = node_text(soup, selector)
        if is_valid_description(text):
            values["full_description"] = text
            break
    else:
        meta = soup.select_one("meta[property='og:description'], meta[name='description']")
        text = clean_text(meta.get("content")) if meta is not None else None
        if is_valid_description(text):
            values["full_description"] = text

    price_text = node_text(soup, PRICE_SELECTORS)
    if price_text:
        parsed = parse_price(price_text)
        if parsed.is_valid:
            values["price"] = price_text
            values["price_amount"] = parsed.numeric_amount

    venue = node_text(soup, VENUE_SELECTORS)
    address = node_text(soup, ADDRESS_SELECTORS)
    if venue or address:
        values["location_details"] = LocationDetails(venue=venue, address=address if address != venue else None)
    return values


def _body_text(soup: BeautifulSoup) -> str:
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    root = soup.body or soup
    return clean_text(root.get_text(" ")) or ""


def from_body_text(text: str) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    prices = extract_prices(text)
    if prices:
        values["min_price"] = min(prices)
        values["max_price"] = max(prices)
        if len(set(prices)) == 1:
            values["price_amount"] = prices[0]
    sold_out = infer_sold_out(text)
    if sold_out.is_sold_out:
        values["is_sold_out"] = True
    if sold_out.gender_sold_out != GenderSoldOut.NONE:
        values["gender_sold_out"] = sold_out.gender_sold_out
    return values


def extract_enrichment(url: str, html: str) -> Enrichment:
    soup = BeautifulSoup(html, "lxml")
    values: Dict[str, Any] = {}

    node = find_event_json_ld(soup)
    passes = [from_json_ld(node) if node is not None else {}, from_selectors(soup)]
    passes.append(from_body_text(_body_text(soup)))
    for found in passes:
        for key, value in found.items():
            values.setdefault(key, value)

    logger.debug("extracted %s from %s", ", ".join(sorted(values)) or "nothing", url)
    return Enrichment(url=url, **values)
