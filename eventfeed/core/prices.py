from __future__ import annotations
import logging
import math
import re
from typing import List, Optional, Union

from pydantic import BaseModel, model_validator

from eventfeed.core.models import PRICE_SENTINEL
from eventfeed.core.parse_log import ParseLog

logger = logging.getLogger(__name__)

MAX_SANE_PRICE = 1_000_000
FREE_LABEL = "Free"

_FREE = re.compile(r"\bfree\b", re.IGNORECASE)
_UNAVAILABLE = ("see", "tba", "tbd")
_EMPTY_VALUES = {"", "null", "undefined", "none", "nan"}
_AMOUNT = r"(\d{1,3}(?:,\d{3})+|\d+)(?:\.(\d{1,2}))?"
_PRICE = re.compile(rf"(?:CA\$|CAD|C\$|\$)?\s*{_AMOUNT}", re.IGNORECASE)
_CURRENCY_PRICE = re.compile(rf"(?<!-)(?:CA\$|CAD|C\$|\$)\s*{_AMOUNT}", re.IGNORECASE)


class PriceParseResult(BaseModel):
    display_price: str
    numeric_amount: Optional[float] = None
    is_valid: bool
    error: Optional[str] = None
    raw_input: Optional[str] = None

    @model_validator(mode="after")
    def _valid_iff_amount(self) -> "PriceParseResult":
        if self.is_valid != (self.numeric_amount is not None):
            raise ValueError("is_valid must hold exactly when numeric_amount is set")
        return self


def is_valid_price(amount: Optional[float]) -> bool:
    if amount is None or isinstance(amount, bool):
        return False
    try:
        value = float(amount)
    except (TypeError, ValueError):
        return False
    return math.isfinite(value) and 0 <= value < MAX_SANE_PRICE


def format_price(amount: Optional[float]) -> str:
    if not is_valid_price(amount):
        return PRICE_SENTINEL
    if amount == 0:
        return FREE_LABEL
    if float(amount).is_integer():
        return f"${int(amount)}"
    return f"${amount:.2f}"


def format_price_range(min_price: Optional[float], max_price: Optional[float]) -> str:
    if min_price is None and max_price is None:
        return PRICE_SENTINEL
    if min_price is None:
        return format_price(max_price)
    if max_price is None or min_price == max_price:
        return format_price(min_price)
    return f"{format_price(min_price)} - {format_price(max_price)}"


def _to_amount(match: "re.Match[str]") -> float:
    whole = match.group(1).replace(",", "")
    cents = match.group(2)
    return float(f"{whole}.{cents}") if cents else float(whole)


def extract_prices(text: Optional[str]) -> List[float]:
    """Every currency-prefixed amount mentioned in free text, in order."""
    if not text:
        return []
    return [amount for amount in map(_to_amount, _CURRENCY_PRICE.finditer(text)) if is_valid_price(amount)]


def _valid(amount: float, raw: Optional[str] = None) -> PriceParseResult:
    return PriceParseResult(display_price=format_price(amount), numeric_amount=float(amount), is_valid=True, raw_input=raw)


def parse_price(
    price_text: Union[str, float, int, None],
    known_amount: Optional[float] = None,
    log: Optional[ParseLog] = None,
    event_id: Optional[str] = None,
    event_title: Optional[str] = None,
) -> PriceParseResult:
    def unavailable(error: str, raw: Optional[str], record: bool = True) -> PriceParseResult:
        if record and log is not None:
            log.record("price", "price", raw, error, event_id, event_title)
        return PriceParseResult(display_price=PRICE_SENTINEL, is_valid=False, error=error, raw_input=raw)

    if known_amount is not None and is_valid_price(known_amount):
        return _valid(known_amount)

    if price_text is None:
        return unavailable("Price input is empty", None, record=False)

    if isinstance(price_text, (int, float)) and not isinstance(price_text, bool):
        if is_valid_price(price_text):
            return _valid(price_text)
        return unavailable("Invalid price number", str(price_text))

    text = str(price_text).strip()
    lowered = text.lower()
    if _FREE.search(lowered):
        return _valid(0, text)
    if lowered in _EMPTY_VALUES or any(word in lowered for word in _UNAVAILABLE):
        return unavailable("Price not available", text, record=False)

    match = _PRICE.search(text)
    if match:
        amount = _to_amount(match)
        if text[: match.start()].endswith("-"):
            amount = -amount
        if is_valid_price(amount):
            return _valid(amount, text)
        logger.debug("price %s out of range in %r", amount, text)
        return unavailable("Price out of range", text)

    return unavailable("Could not parse price", text)
