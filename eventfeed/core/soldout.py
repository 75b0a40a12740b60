from __future__ import annotations
import re
from typing import Optional

from pydantic import BaseModel

from eventfeed.core.models import GenderSoldOut

MALE_WORDS = ("male", "males", "men", "men's", "mens", "guys", "gentlemen")
FEMALE_WORDS = ("female", "females", "women", "women's", "womens", "ladies", "girls")

_SOLD_OUT = r"sold[\s-]*out"
# "not yet sold out", "isn't sold out", "almost sold out" all mean seats are left
_NEGATION = re.compile(
    r"(?:(?:\bnot|n't|\bnever)\b(?:\s+\w+){0,2}|\b(?:almost|nearly|close\s+to|about\s+to|soon\s+to\s+be))\s*$",
    re.IGNORECASE,
)


def _gender_pattern(words) -> "re.Pattern[str]":
    alternatives = "|".join(re.escape(w) for w in sorted(words, key=len, reverse=True))
    return re.compile(
        rf"\b(?:{alternatives})(?!\w)\s*(?:tickets?|spots?|seats?|spaces?|places?|side)?\s*"
        rf"(?:(?:are|is|have|has)\s+)?(?:(?:now|been)\s+)*{_SOLD_OUT}"
        rf"|{_SOLD_OUT}\s+(?:for\s+)?(?:the\s+)?(?:{alternatives})(?!\w)",
        re.IGNORECASE,
    )


_MALE = _gender_pattern(MALE_WORDS)
_FEMALE = _gender_pattern(FEMALE_WORDS)
_GENERAL = re.compile(rf"\b{_SOLD_OUT}\b", re.IGNORECASE)


class SoldOutInfo(BaseModel):
    is_sold_out: bool = False
    gender_sold_out: GenderSoldOut = GenderSoldOut.NONE


def _affirmed(pattern: "re.Pattern[str]", text: str) -> bool:
    for m in pattern.finditer(text):
        if not _NEGATION.search(text[: m.start()]):
            return True
    return False


def infer_sold_out(text: Optional[str]) -> SoldOutInfo:
    """Read sold-out state from free text.

    A gender-qualified phrase ("male tickets sold out") only marks that
    gender. Negated or hedged phrases ("not yet sold out", "almost sold
    out") never count.
    """
    if not text:
        return SoldOutInfo()
    male = _affirmed(_MALE, text)
    female = _affirmed(_FEMALE, text)
    # gender phrases must not also count as a general sold out
    remainder = _FEMALE.sub(" ", _MALE.sub(" ", text))
    general = _affirmed(_GENERAL, remainder)

    if male and female:
        return SoldOutInfo(is_sold_out=True, gender_sold_out=GenderSoldOut.BOTH)
    if male:
        return SoldOutInfo(is_sold_out=general, gender_sold_out=GenderSoldOut.MALE)
    if female:
        return SoldOutInfo(is_sold_out=general, gender_sold_out=GenderSoldOut.FEMALE)
    return SoldOutInfo(is_sold_out=general, gender_sold_out=GenderSoldOut.NONE)


def is_completely_sold_out(is_sold_out: bool, gender_sold_out: GenderSoldOut) -> bool:
    return bool(is_sold_out) or gender_sold_out == GenderSoldOut.BOTH
