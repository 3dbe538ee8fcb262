from __future__ import annotations

import datetime as dt
import re
from typing import Optional

from dateutil import parser

CURRENT_YEAR = dt.date.today().year
WHITESPACE_RE = re.compile(r"\s+")


def collapse_spaces(value: str) -> str:
    return WHITESPACE_RE.sub(" ", value).strip()


def title_word(word: str) -> str:
    # str.title() would also capitalise after apostrophes and hyphens.
    return word[:1].upper() + word[1:].lower()


def normalize_name(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    cleaned = collapse_spaces(value)
    if not cleaned:
        return None
    return " ".join(title_word(word) for word in cleaned.split(" "))


def clean_name(value: Optional[str]) -> Optional[str]:
    """Drop everything except letters, spaces, apostrophes and hyphens, then title-case."""
    if not value:
        return None
    kept = "".join(ch for ch in value if ch.isalpha() or ch.isspace() or ch in "'-")
    return normalize_name(kept)


def normalize_document_number(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    cleaned = WHITESPACE_RE.sub("", value.strip()).upper()
    return cleaned or None


def letter_ratio(value: str) -> float:
    if not value:
        return 0.0
    return sum(1 for ch in value if ch.isalpha()) / len(value)


def digit_count(value: str) -> int:
    return sum(1 for ch in value if ch.isdigit())


def is_date_like(digits: str) -> bool:
    """True for YYYYMMDD (years 1900-2099) or YYMMDD digit runs with plausible month/day."""
    if not digits.isdigit():
        return False
    if len(digits) == 8:
        year, month, day = int(digits[0:4]), int(digits[4:6]), int(digits[6:8])
        return 1900 <= year <= 2099 and 1 <= month <= 12 and 1 <= day <= 31
    if len(digits) == 6:
        month, day = int(digits[2:4]), int(digits[4:6])
        return 1 <= month <= 12 and 1 <= day <= 31
    return False


def mrz_date_to_iso(raw: Optional[str], *, field: str) -> Optional[str]:
    """Render an MRZ YYMMDD date as ISO-8601.

    Birth dates never land in the future; expiry dates prefer the nearest
    future century.
    """
    if not raw:
        return None
    cleaned = raw.strip()
    if not re.fullmatch(r"\d{6}", cleaned):
        return None
    year = int(cleaned[0:2])
    month = int(cleaned[2:4])
    day = int(cleaned[4:6])
    candidates = []
    for century in (2000, 1900):
        try:
            candidates.append(dt.date(century + year, month, day))
        except ValueError:
            continue
    if not candidates:
        return None
    today = dt.date.today()
    if field == "expiry":
        future = [c for c in candidates if c >= today]
        chosen = min(future) if future else max(candidates)
    else:
        past = [c for c in candidates if c <= today]
        chosen = max(past) if past else min(candidates)
    return chosen.isoformat()


def parse_date_text(value: Optional[str]) -> Optional[dt.date]:
    """Parse a free-form printed date, or None when the text is not a date."""
    if not value:
        return None
    raw = value.strip()
    if not re.search(r"\d", raw):
        return None
    try:
        parsed = parser.parse(raw, dayfirst=True, fuzzy=False)
    except (ValueError, OverflowError):
        return None
    if not 1900 <= parsed.year <= CURRENT_YEAR + 30:
        return None
    return parsed.date()
