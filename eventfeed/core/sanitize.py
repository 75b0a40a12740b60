from __future__ import annotations
import re
import unicodedata
from typing import Dict, Iterable, List, Optional
from urllib.parse import urlparse

from eventfeed.core.models import DEFAULT_LOCATION, GENERAL_CATEGORY, Event, LocationDetails

DESCRIPTION_FALLBACK = "Description not available. Please visit the event page for more details."
MIN_DESCRIPTION_LENGTH = 10
DESCRIPTION_PLACEHOLDERS = (
    "no description",
    "description coming soon",
    "to be announced",
    "tba",
    "tbd",
    "null",
    "undefined",
)

DEFAULT_EVENT_IMAGE = (
    "data:image/svg+xml;base64,PHN2ZyB3aWR0aD0iNDAwIiBoZWlnaHQ9IjIwMCIgeG1sbnM9Imh0dHA6Ly93d3cudzMub3Jn"
    "LzIwMDAvc3ZnIj48cmVjdCB3aWR0aD0iNDAwIiBoZWlnaHQ9IjIwMCIgZmlsbD0iIzFhMWIxZSIvPjx0ZXh0IHg9IjUwJSIgeT0i"
    "NTAlIiBmb250LWZhbWlseT0iQXJpYWwiIGZvbnQtc2l6ZT0iMTgiIGZpbGw9IiM2YjcyODAiIHRleHQtYW5jaG9yPSJtaWRkbGUi"
    "IGR5PSIuM2VtIj5FdmVudCBJbWFnZTwvdGV4dD48L3N2Zz4="
)
IMAGE_PLACEHOLDER_PATTERNS = (
    "placeholder",
    "no-image",
    "default",
    "missing",
    "null",
    "undefined",
    "1x1",
    "blank",
    "transparent",
)
IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg")

GENERIC_LOCATIONS = {"", "toronto", "toronto, on", "location tba", "tba", "tbd", "online"}

CATEGORY_KEYWORDS: Dict[str, List[str]] = {
    "Music": ["concert", "live music", "band", "dj", "musical", "karaoke", "jazz", "rock", "hip hop", "symphony", "rap"],
    "Food & Drink": ["food", "drink", "tasting", "wine", "beer", "culinary", "dinner", "cooking", "restaurant", "brunch", "cafe"],
    "Arts": ["art", "exhibition", "gallery", "painting", "museum", "theatre", "theater", "drama", "film", "movie", "screening", "creative"],
    "Tech": ["tech", "software", "coding", "ai", "blockchain", "startup", "web", "developer", "digital"],
    "Business": ["networking", "business", "workshop", "seminar", "conference", "entrepreneur", "marketing", "professional"],
    "Sports & Fitness": ["gym", "fitness", "yoga", "sports", "game", "tournament", "match", "running", "workout"],
    "Nightlife": ["party", "club", "nightlife", "bar", "celebration", "dance", "rave"],
    "Community": ["community", "volunteer", "local", "meeting", "neighborhood", "town hall"],
    "Family": ["family", "kids", "children", "toddler", "school", "parent"],
    "Comedy": ["comedy", "standup", "improv", "laugh", "funny"],
    "Dating": ["speed dating", "singles", "dating"],
}


def clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    text = re.sub(r"\s+", " ", str(value)).strip()
    return text or None


# --- descriptions ---------------------------------------------------------

def is_valid_description(description: Optional[str]) -> bool:
    if not description:
        return False
    desc = str(description).strip().lower()
    if len(desc) <= MIN_DESCRIPTION_LENGTH:
        return False
    return not any(re.search(rf"\b{re.escape(p)}\b", desc) for p in DESCRIPTION_PLACEHOLDERS)


def safe_get_description(description: Optional[str], fallback: str = DESCRIPTION_FALLBACK) -> str:
    text = clean_text(description)
    if not text or text.lower() in ("null", "undefined"):
        return fallback
    return text


def truncate_description(description: str, max_length: int = 200, suffix: str = "...") -> str:
    if not description or len(description) <= max_length:
        return description
    truncated = description[:max_length]
    last_space = truncated.rfind(" ")
    if last_space > max_length * 0.8:
        return truncated[:last_space] + suffix
    return truncated + suffix


# --- locations ------------------------------------------------------------

def is_placeholder_location(location: Optional[str]) -> bool:
    return (location or "").strip().lower() in GENERIC_LOCATIONS


def online_label(details: LocationDetails) -> str:
    if details.online_platform:
        return f"Online ({details.online_platform})"
    return "Online Event"


def location_parts(details: LocationDetails) -> List[str]:
    return [p for p in (details.venue, details.address, details.city, details.province) if p]


def format_location(event: Event) -> str:
    details = event.location_details
    if details is not None:
        if details.is_online:
            return online_label(details)
        parts = location_parts(details)
        if parts:
            return ", ".join(parts)

    loc = (event.location or "").strip()
    if not loc or loc == DEFAULT_LOCATION:
        return DEFAULT_LOCATION
    if loc.lower() in ("toronto", "toronto, on"):
        return "Toronto, ON (Location TBA)"
    if len(loc) < 10 or ("," not in loc and not any(w in loc for w in ("Street", "Avenue", "Road"))):
        return f"{loc} (Location TBA)"
    return loc


def get_short_location(event: Event) -> str:
    details = event.location_details
    if details is not None:
        if details.is_online:
            return "Online"
        if details.city:
            return details.city
        if details.venue:
            return details.venue
    m = re.search(r"([A-Za-z\s]+),?\s*(?:ON|Ontario)\b", event.location or "")
    if m:
        return m.group(1).strip()
    return "Toronto"


def is_location_complete(event: Event) -> bool:
    details = event.location_details
    if details is not None:
        if details.is_online:
            return True
        return bool(details.address and details.city)
    loc = event.location or ""
    return len(loc) > 15 and any(w in loc for w in ("Street", "Avenue", "Road", ","))


# --- images ---------------------------------------------------------------

def is_placeholder_image(url: Optional[str]) -> bool:
    if not url or not url.strip():
        return True
    low = url.lower()
    return any(p in low for p in IMAGE_PLACEHOLDER_PATTERNS)


def is_valid_image_url(url: Optional[str]) -> bool:
    if not url:
        return False
    if url.startswith("data:image"):
        return True
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return False
    return parsed.path.lower().endswith(IMAGE_EXTENSIONS)


def get_event_image(image: Optional[str]) -> str:
    if image and not is_placeholder_image(image):
        return image.strip()
    return DEFAULT_EVENT_IMAGE


# --- categories -----------------------------------------------------------

def categorize_event(title: str, description: Optional[str], existing: Iterable[str] = ()) -> List[str]:
    cats = [c for c in existing if c and c != GENERAL_CATEGORY]
    text = f"{title} {description or ''}".lower()
    for category, keywords in CATEGORY_KEYWORDS.items():
        if category in cats:
            continue
        if any(re.search(rf"\b{re.escape(k)}\b", text) for k in keywords):
            cats.append(category)
    return cats or [GENERAL_CATEGORY]


# --- language -------------------------------------------------------------

def latin_ratio(text: Optional[str]) -> float:
    letters = [ch for ch in (text or "") if ch.isalpha()]
    if not letters:
        return 1.0
    latin = sum(1 for ch in letters if "LATIN" in unicodedata.name(ch, ""))
    return latin / len(letters)


def is_probably_english(text: Optional[str], threshold: float = 0.5) -> bool:
    """Crude check: a majority of the letters are Latin script."""
    return latin_ratio(text) > threshold
