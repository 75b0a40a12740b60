"""Date normalization.

Scraped dates come in dozens of shapes ("Sat, Jan 27 • 11:00 PM",
"2026-01-26T13:30:00.000Z", "Tomorrow at 7pm", ...). ``normalize_date`` turns
any of them into a canonical timestamp in the Toronto civil zone::

    2026-01-27T23:00:00-05:00

or returns ``None`` when the value cannot be resolved. ``None`` means "date
unknown"; callers must never substitute the current time for it.

Parsing is an ordered list of strategies (``STRATEGIES``); the first one that
yields a datetime with a year in [2001, 2099] wins. The order matters and is
part of the contract.
"""
from __future__ import annotations
import logging
import re
from datetime import date, datetime, time, timedelta
from typing import Callable, Optional, Sequence, Union

from dateutil import parser as dtparser
from dateutil import tz

from eventfeed.core.parse_log import ParseLog

logger = logging.getLogger(__name__)

CIVIL_TZ = tz.gettz("America/Toronto")
MIN_YEAR = 2001
MAX_YEAR = 2099
ROLL_FORWARD_AFTER = timedelta(days=182)
DEFAULT_TIME = time(12, 0)
TONIGHT_TIME = time(19, 0)

CANONICAL_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}[+-]\d{2}:\d{2}$")

Clock = Callable[[], datetime]
Strategy = Callable[[str, datetime], Optional[datetime]]
DateInput = Union[str, datetime, date, None]

TZINFOS = {
    "EST": -5 * 3600,
    "EDT": -4 * 3600,
    "ET": CIVIL_TZ,
    "PST": -8 * 3600,
    "PDT": -7 * 3600,
    "UTC": tz.UTC,
    "GMT": tz.UTC,
}

_EMPTY_VALUES = {"null", "undefined", "none", "nan", "invalid date"}

_SEPARATORS = re.compile(r"[|•⋅·]")
_RANGE = re.compile(r"\s*[–—]\s*|\s+-\s+")
_TIME_ONLY = re.compile(
    r"^(?:at\s+)?(?:\d{1,2}:\d{2}(?::\d{2})?\s*(?:[ap]\.?m\.?)?|\d{1,2}\s*[ap]\.?m\.?)(?:\s+[a-z]{2,4})?$",
    re.IGNORECASE,
)
_HAS_TIME = re.compile(r"\d{1,2}:\d{2}|\d\s*[ap]\.?m\b", re.IGNORECASE)
_LEADING_WORDS = re.compile(r"^(?:on|from)\s+", re.IGNORECASE)
_TRAILING_AT = re.compile(r"\s+at$", re.IGNORECASE)
_ORDINAL = re.compile(r"(\d{1,2})(?:st|nd|rd|th)\b", re.IGNORECASE)
_YEAR_TOKEN = re.compile(r"(?<!\d)\d{4}(?!\d)")

_ISO_DATE_ONLY = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_UTC_MIDNIGHT = re.compile(r"^(\d{4})-(\d{2})-(\d{2})T00:00:00(?:\.0+)?Z$")
_ISO_DATETIME = re.compile(r"^\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}")

_MONTHS = (
    r"jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?"
    r"|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?"
)
_WEEKDAYS = (
    r"mon(?:day)?|tue(?:s(?:day)?)?|wed(?:nesday)?|thu(?:r(?:s(?:day)?)?)?"
    r"|fri(?:day)?|sat(?:urday)?|sun(?:day)?"
)
_DAY_RANGE = re.compile(
    rf"\b(?P<start>(?:{_MONTHS})\.?\s+\d{{1,2}})(?:st|nd|rd|th)?-\d{{1,2}}(?:st|nd|rd|th)?\b(?!:|\s*[ap]\.?m\b)",
    re.IGNORECASE,
)
_YEARLESS = re.compile(
    rf"^(?:(?:{_WEEKDAYS})\.?,?\s+)?(?P<month>{_MONTHS})\.?\s+(?P<day>\d{{1,2}}),?"
    rf"(?:\s+(?:at\s+)?(?P<time>.+))?$",
    re.IGNORECASE,
)
_MONTH_NUMBERS = {
    name: number
    for number, name in enumerate(
        ["jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"], start=1
    )
}
_CLOCK_TIME = re.compile(
    r"^(?P<h>\d{1,2})(?::(?P<m>\d{2}))?(?::(?P<s>\d{2}))?\s*(?:(?P<ampm>[ap])\.?m\.?)?(?:\s+[a-z]{2,4})?$",
    re.IGNORECASE,
)
_RELATIVE = re.compile(
    r"^(?P<word>today|tonight|tomorrow)(?:\s*,?\s*(?:at\s+)?(?P<time>.+))?$", re.IGNORECASE
)

TEMPLATES = (
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y %I:%M %p",
    "%m/%d/%Y",
    "%B %d, %Y %H:%M",
    "%B %d, %Y %I:%M %p",
    "%B %d, %Y",
    "%b %d, %Y %H:%M",
    "%b %d, %Y %I:%M %p",
    "%b %d, %Y",
    "%A, %B %d, %Y at %I:%M %p",
    "%A, %b %d, %Y at %I:%M %p",
    "%A, %B %d, %Y at %H:%M",
    "%a, %b %d, %Y %I:%M %p",
    "%d %B %Y",
    "%d %b %Y",
)


def system_clock() -> datetime:
    return datetime.now(CIVIL_TZ)


def assume_civil_zone(dt: datetime) -> datetime:
    """Zone policy: naive values are Toronto wall-clock time, aware values are converted.

    A source that emits zoneless UTC would be misread by this rule; it is kept
    in one place so it can be swapped without touching the strategies.
    """
    if dt.tzinfo is None or dt.tzinfo.utcoffset(dt) is None:
        # wall times skipped by the spring-forward jump move ahead by the gap
        return tz.resolve_imaginary(dt.replace(tzinfo=CIVIL_TZ))
    return dt.astimezone(CIVIL_TZ)


def format_canonical(dt: datetime) -> str:
    return dt.astimezone(tz.UTC).astimezone(CIVIL_TZ).isoformat(timespec="seconds")


def _current(clock: Optional[Clock]) -> datetime:
    return assume_civil_zone((clock or system_clock)())


def _start_of_range(segment: str) -> str:
    parts = _RANGE.split(segment, maxsplit=1)
    start = parts[0].strip()
    if len(parts) > 1:
        rest = parts[1].strip()
        # "Jan 27, 2026 - 7:00 PM" is a date followed by its time, not a range
        if _TIME_ONLY.match(rest) and not _HAS_TIME.search(start):
            return f"{start} {rest}"
    return start


def clean_date_text(text: str) -> str:
    text = re.sub(r"\s+", " ", text).strip()
    text = _DAY_RANGE.sub(r"\g<start>", text)
    segments = [s.strip() for s in _SEPARATORS.split(text) if s.strip()]
    if not segments:
        return ""
    head = _start_of_range(segments[0])
    if len(segments) > 1:
        tail = _start_of_range(segments[1])
        if _TIME_ONLY.match(tail) and not _HAS_TIME.search(head):
            head = f"{head} {tail}"
    head = _LEADING_WORDS.sub("", head)
    head = _TRAILING_AT.sub("", head)
    return head.strip()


def parse_clock_time(text: str) -> Optional[time]:
    m = _CLOCK_TIME.match(text.strip())
    if not m:
        return None
    hour = int(m.group("h"))
    minute = int(m.group("m") or 0)
    second = int(m.group("s") or 0)
    ampm = (m.group("ampm") or "").lower()
    if not ampm and m.group("m") is None:
        return None
    if ampm:
        if not 1 <= hour <= 12:
            return None
        hour = hour % 12 + (12 if ampm == "p" else 0)
    if hour > 23 or minute > 59 or second > 59:
        return None
    return time(hour, minute, second)


def parse_machine(text: str, now: datetime) -> Optional[datetime]:
    """ISO 8601 values; bare dates and UTC midnights mean the day with no known time."""
    m = _ISO_DATE_ONLY.match(text) or _UTC_MIDNIGHT.match(text)
    if m:
        day = date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        return datetime.combine(day, DEFAULT_TIME)
    if _ISO_DATETIME.match(text):
        return dtparser.isoparse(text)
    return None


_NO_YEAR = datetime(1900, 1, 1)


def parse_direct(text: str, now: datetime) -> Optional[datetime]:
    dt = dtparser.parse(text, default=_NO_YEAR, tzinfos=TZINFOS)
    if dt.year == _NO_YEAR.year:
        return None
    # dateutil reads the "15" of "Feb 13-15" as a year
    if str(dt.year) not in _YEAR_TOKEN.findall(text):
        return None
    if not _HAS_TIME.search(text):
        dt = dt.replace(hour=DEFAULT_TIME.hour, minute=DEFAULT_TIME.minute, second=0, microsecond=0)
    return dt


def parse_yearless(text: str, now: datetime) -> Optional[datetime]:
    m = _YEARLESS.match(_ORDINAL.sub(r"\1", text))
    if not m:
        return None
    clock_time = DEFAULT_TIME
    if m.group("time"):
        clock_time = parse_clock_time(m.group("time"))
        if clock_time is None:
            return None
    month = _MONTH_NUMBERS[m.group("month")[:3].lower()]
    day = int(m.group("day"))
    local_now = now.astimezone(CIVIL_TZ).replace(tzinfo=None)
    # listings are near-future: a date well behind us belongs to a later year,
    # and Feb 29 to the next leap year
    for year in range(local_now.year, local_now.year + 9):
        try:
            candidate = datetime.combine(date(year, month, day), clock_time)
        except ValueError:
            continue
        if candidate >= local_now - ROLL_FORWARD_AFTER:
            return candidate
    return None


def parse_templates(text: str, now: datetime) -> Optional[datetime]:
    text = _ORDINAL.sub(r"\1", text)
    for fmt in TEMPLATES:
        try:
            dt = datetime.strptime(text, fmt)
        except ValueError:
            continue
        if "%H" not in fmt and "%I" not in fmt:
            dt = datetime.combine(dt.date(), DEFAULT_TIME)
        return dt
    return None


def parse_relative(text: str, now: datetime) -> Optional[datetime]:
    m = _RELATIVE.match(text)
    if not m:
        return None
    word = m.group("word").lower()
    local_now = now.astimezone(CIVIL_TZ)
    day = local_now.date() + (timedelta(days=1) if word == "tomorrow" else timedelta(0))
    clock_time = TONIGHT_TIME if word == "tonight" else DEFAULT_TIME
    if m.group("time"):
        clock_time = parse_clock_time(m.group("time"))
        if clock_time is None:
            return None
    return datetime.combine(day, clock_time)


STRATEGIES: Sequence[Strategy] = (
    parse_machine,
    parse_direct,
    parse_yearless,
    parse_templates,
    parse_relative,
)


def first_success(
    strategies: Sequence[Strategy],
    text: str,
    now: datetime,
    zone_policy: Callable[[datetime], datetime] = assume_civil_zone,
) -> Optional[datetime]:
    for strategy in strategies:
        try:
            result = strategy(text, now)
        except (ValueError, OverflowError) as exc:
            logger.debug("%s rejected %r: %s", strategy.__name__, text, exc)
            continue
        if result is None:
            continue
        zoned = zone_policy(result)
        if MIN_YEAR <= zoned.year <= MAX_YEAR:
            return zoned
    return None


def normalize_date(
    value: DateInput,
    clock: Optional[Clock] = None,
    log: Optional[ParseLog] = None,
    event_id: Optional[str] = None,
    event_title: Optional[str] = None,
    field: str = "date",
    zone_policy: Callable[[datetime], datetime] = assume_civil_zone,
) -> Optional[str]:
    def fail(error: str) -> None:
        logger.debug("date not resolved (%s): %r", error, value)
        if log is not None:
            log.record("date", field, value, error, event_id, event_title)
        return None

    if value is None:
        return fail("Date input is empty or null")
    if isinstance(value, datetime):
        dt = zone_policy(value)
        if not MIN_YEAR <= dt.year <= MAX_YEAR:
            return fail("Date outside plausible range")
        return format_canonical(dt)
    if isinstance(value, date):
        return format_canonical(zone_policy(datetime.combine(value, DEFAULT_TIME)))

    text = str(value).strip()
    if not text or text.lower() in _EMPTY_VALUES:
        return fail("Date string is empty or null")
    cleaned = clean_date_text(text)
    if not cleaned:
        return fail("Date string is only delimiters")

    dt = first_success(STRATEGIES, cleaned, _current(clock), zone_policy)
    if dt is None:
        return fail("Could not parse date in any known format")
    return format_canonical(dt)


def parse_canonical(value: Optional[str]) -> Optional[datetime]:
    """Read back a stored timestamp as an aware Toronto datetime."""
    if not value:
        return None
    try:
        dt = dtparser.isoparse(str(value).strip())
    except (ValueError, OverflowError):
        return None
    return assume_civil_zone(dt)


def is_canonical(value: Optional[str]) -> bool:
    """True only for the exact stored form, Toronto offset included."""
    if not value or not CANONICAL_PATTERN.match(value):
        return False
    dt = parse_canonical(value)
    if dt is None or not MIN_YEAR <= dt.year <= MAX_YEAR:
        return False
    return format_canonical(dt) == value


def _twelve_hour(dt: datetime, seconds: bool = False) -> str:
    hour = dt.hour % 12 or 12
    text = f"{hour}:{dt:%M}"
    if seconds:
        text += f":{dt:%S}"
    return f"{text} {'PM' if dt.hour >= 12 else 'AM'}"


def format_date_for_display(
    value: Union[str, datetime, None], include_time: bool = False, include_year: bool = False
) -> str:
    dt = value if isinstance(value, datetime) else parse_canonical(value)
    if dt is None:
        return "Invalid Date"
    dt = assume_civil_zone(dt)
    text = f"{dt:%b} {dt.day}"
    if include_year:
        text += f", {dt.year}"
    if include_time:
        text += f", {_twelve_hour(dt)}"
    return text


def format_time_for_display(value: Union[str, datetime, None]) -> str:
    dt = value if isinstance(value, datetime) else parse_canonical(value)
    if dt is None:
        return "Invalid Time"
    return _twelve_hour(assume_civil_zone(dt))


def to_display_form(value: Union[str, datetime, None]) -> Optional[str]:
    """Human-readable form that normalizes back to the same instant."""
    dt = value if isinstance(value, datetime) else parse_canonical(value)
    if dt is None:
        return None
    dt = assume_civil_zone(dt)
    return f"{dt:%b} {dt.day}, {dt.year}, {_twelve_hour(dt, seconds=bool(dt.second))}"


def is_multi_day(start: Optional[str], end: Optional[str], max_days: int = 30) -> bool:
    start_dt = parse_canonical(start)
    end_dt = parse_canonical(end)
    if start_dt is None or end_dt is None:
        return False
    span = end_dt - start_dt
    return timedelta(days=1) < span <= timedelta(days=max_days)
