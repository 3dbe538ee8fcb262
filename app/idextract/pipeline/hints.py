from __future__ import annotations

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional, Protocol

from .normalize import digit_count, parse_date_text

LOGGER = logging.getLogger(__name__)

DATE_CANDIDATE_PATTERNS = [
    re.compile(r"\b\d{1,2}\s*[A-Za-z]{3,9}\.?\s*\d{2,4}\b"),
    re.compile(r"\b[A-Za-z]{3,9}\.?\s*\d{1,2},?\s*\d{2,4}\b"),
    re.compile(r"\b\d{1,2}[/.-]\d{1,2}[/.-]\d{2,4}\b"),
    re.compile(r"\b\d{4}[/.-]\d{1,2}[/.-]\d{1,2}\b"),
]
PHONE_RE = re.compile(r"(?:\+\d{1,3}[\s.-]?)?(?:\(\d{2,4}\)[\s.-]?)?\d{3,4}[\s.-]\d{3,4}(?:[\s.-]\d{2,4})?")
ADDRESS_RE = re.compile(
    r"\b(calle|avenida|av\.|ave\.?|street|st\.|road|rd\.|blvd|boulevard|colonia|col\.|pasaje|barrio|residencial|apt|suite)\b",
    re.IGNORECASE,
)
MIN_PHONE_DIGITS = 8


@dataclass(frozen=True)
class EntityHints:
    date_lines: FrozenSet[str] = field(default_factory=frozenset)
    phone_lines: FrozenSet[str] = field(default_factory=frozenset)
    address_lines: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def empty(cls) -> "EntityHints":
        return cls()

    @property
    def non_name_lines(self) -> FrozenSet[str]:
        return self.date_lines | self.phone_lines

    @property
    def all_lines(self) -> FrozenSet[str]:
        return self.date_lines | self.phone_lines | self.address_lines


class HintExtractor(Protocol):
    def extract_hints(self, text: str) -> EntityHints:
        ...


class NullHintExtractor:
    def extract_hints(self, text: str) -> EntityHints:
        return EntityHints.empty()


def _looks_like_date(line: str) -> bool:
    for pattern in DATE_CANDIDATE_PATTERNS:
        for match in pattern.finditer(line):
            if parse_date_text(match.group(0)) is not None:
                return True
    return False


def _looks_like_phone(line: str) -> bool:
    for match in PHONE_RE.finditer(line):
        candidate = match.group(0)
        if digit_count(candidate) < MIN_PHONE_DIGITS:
            continue
        if parse_date_text(candidate) is not None:
            continue
        return True
    return False


def _looks_like_address(line: str) -> bool:
    return bool(ADDRESS_RE.search(line)) and any(ch.isdigit() for ch in line)


class RuleBasedHintExtractor:
    """Tags OCR lines that read as dates, phone numbers or street addresses."""

    def extract_hints(self, text: str) -> EntityHints:
        if not text or not text.strip():
            return EntityHints.empty()
        dates: List[str] = []
        phones: List[str] = []
        addresses: List[str] = []
        for raw in text.split("\n"):
            line = raw.strip()
            if not line:
                continue
            if _looks_like_date(line):
                dates.append(line)
            elif _looks_like_phone(line):
                phones.append(line)
            if _looks_like_address(line):
                addresses.append(line)
        return EntityHints(
            date_lines=frozenset(dates),
            phone_lines=frozenset(phones),
            address_lines=frozenset(addresses),
        )


_HINT_EXECUTOR = ThreadPoolExecutor(max_workers=2, thread_name_prefix="entity-hints")


def collect_hints(extractor: Optional[HintExtractor], text: str, timeout: float) -> EntityHints:
    """Run ``extractor`` with a deadline; any failure degrades to empty hints."""
    if extractor is None or isinstance(extractor, NullHintExtractor):
        return EntityHints.empty()
    future = _HINT_EXECUTOR.submit(extractor.extract_hints, text)
    try:
        hints = future.result(timeout=timeout)
    except FutureTimeout:
        future.cancel()
        LOGGER.warning("Entity hint extraction timed out after %.1fs; continuing without hints.", timeout)
        return EntityHints.empty()
    except Exception as exc:  # noqa: BLE001
        LOGGER.warning("Entity hint extraction failed: %s", exc)
        return EntityHints.empty()
    if not isinstance(hints, EntityHints):
        LOGGER.warning("Entity hint extractor returned %s; ignoring.", type(hints).__name__)
        return EntityHints.empty()
    return hints
