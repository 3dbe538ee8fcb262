"""Layered extractor used when the scoring engine leaves a field blank.

Layers run in order and the first one that produces anything wins:
MRZ, label-keyed fields, ALL-CAPS/structure heuristics, document number only.
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, computed_field

from ..schemas import MrzRecord, RawDocumentText
from . import mrz as mrz_parser
from .labels import (
    ALL_LABEL_TOKENS,
    FIRST_NAME_LABELS,
    LAST_NAME_LABELS,
    contains_any,
    is_id_label_line,
    is_label_line,
)
from .normalize import clean_name, digit_count, is_date_like, letter_ratio

LOGGER = logging.getLogger(__name__)

HIGH_MRZ_CONFIDENCE = 0.75
NAME_LOOKAHEAD = 5
DOC_LOOKAHEAD = 6
MAX_LABEL_SKIPS = 3

DUI_RE = re.compile(r"\b(\d{8}-\d)\b")
NINE_DIGITS_RE = re.compile(r"(?<!\d)(\d{9})(?!\d)")
HN_GROUPS_RE = re.compile(r"\b(\d{4})[\s\-](\d{4})[\s\-](\d{5})\b")
HN_INLINE_RE = re.compile(r"\b(\d{4}[\s\-]\d{4}[\s\-]\d{5})\b")
GT_GROUPS_RE = re.compile(r"\b(\d{4})\s(\d{5})\s(\d{4})\b")
PASSPORT_RE = re.compile(r"\b([A-Z]{1,2}\d{6,8})\b")
GENERIC_DIGITS_RE = re.compile(r"(?<!\d)(\d{7,12})(?!\d)")
DIGIT_LINE_RE = re.compile(r"[\d\s\-/]{4,18}")


class ExtractionSource(str, Enum):
    MRZ = "MRZ"
    OCR_KEYED = "OCR_KEYED"
    OCR_HEURISTIC = "OCR_HEURISTIC"
    NONE = "NONE"


class ConfidenceTier(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    NONE = "NONE"


class LegacyExtraction(BaseModel):
    model_config = ConfigDict(frozen=True)

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    document_number: Optional[str] = None
    date_of_birth: Optional[str] = None
    nationality: Optional[str] = None
    mrz: Optional[MrzRecord] = None
    source: ExtractionSource = ExtractionSource.NONE
    tier: ConfidenceTier = ConfidenceTier.NONE
    full_text: str = ""

    @computed_field
    @property
    def has_name(self) -> bool:
        return bool(self.first_name or self.last_name)

    @computed_field
    @property
    def auto_fill_reliable(self) -> bool:
        if self.source == ExtractionSource.MRZ:
            return True
        return self.source == ExtractionSource.OCR_KEYED and self.tier == ConfidenceTier.HIGH


NameTriple = Tuple[Optional[str], Optional[str], Optional[str]]


def _lines(text: str) -> List[str]:
    return [line.strip() for line in text.split("\n") if line.strip()]


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return value


def _is_name_value(text: str) -> bool:
    stripped = text.strip()
    if len(stripped) < 3 or len(stripped) > 80:
        return False
    if digit_count(stripped) > 2:
        return False
    if letter_ratio(stripped) < 0.50:
        return False
    return not is_label_line(stripped)


def _is_upper_name_line(text: str) -> bool:
    stripped = text.strip()
    if len(stripped) < 4 or len(stripped) > 80:
        return False
    if digit_count(stripped) > 1:
        return False
    letters = [ch for ch in stripped if ch.isalpha()]
    if len(letters) < 4 or len(letters) / len(stripped) < 0.70:
        return False
    return not any(ch.islower() for ch in letters)


def _is_relaxed_name(text: str) -> bool:
    stripped = text.strip()
    if len(stripped) < 4 or len(stripped) > 80:
        return False
    if digit_count(stripped) > 2:
        return False
    letters = sum(1 for ch in stripped if ch.isalpha())
    return letters >= 3 and letters / len(stripped) >= 0.55


def _inline_number(line: str, allow_long: bool = False) -> Optional[str]:
    stripped = line.strip()
    if not allow_long and len(stripped) > 40:
        return None
    if not any(ch.isdigit() for ch in stripped):
        return None
    match = DUI_RE.search(stripped)
    if match:
        return match.group(0)
    match = HN_INLINE_RE.search(stripped)
    if match:
        return re.sub(r"[\s\-]", "", match.group(0))
    match = PASSPORT_RE.search(stripped)
    if match and len(stripped) <= 20:
        return match.group(0)
    if DIGIT_LINE_RE.fullmatch(stripped):
        digits = re.sub(r"[\s\-/]", "", stripped)
        if 6 <= len(digits) <= 15 and not is_date_like(digits):
            if len(digits) == 9:
                return f"{digits[:8]}-{digits[8]}"
            return digits
    return None


def _label_adjacent_number(lines: Sequence[str]) -> Optional[str]:
    for index, line in enumerate(lines):
        if not is_id_label_line(line):
            continue
        digitless = 0
        for offset, candidate in enumerate(lines[index : index + DOC_LOOKAHEAD + 1]):
            if offset > 0 and is_id_label_line(candidate):
                continue
            has_digits = any(ch.isdigit() for ch in candidate)
            if offset > 0 and not has_digits:
                digitless += 1
                if digitless >= MAX_LABEL_SKIPS:
                    break
                continue
            digitless = 0
            value = _inline_number(candidate, allow_long=offset == 0)
            if value:
                return value
            if offset > 0:
                if contains_any(candidate, ALL_LABEL_TOKENS):
                    continue
                break
    return None


def extract_document_number(text: str) -> Optional[str]:
    """Document number by descending pattern priority."""
    if not text:
        return None
    adjacent = _label_adjacent_number(_lines(text))
    if adjacent:
        return adjacent
    match = DUI_RE.search(text)
    if match:
        return match.group(0)
    match = NINE_DIGITS_RE.search(text)
    if match:
        digits = match.group(1)
        return f"{digits[:8]}-{digits[8]}"
    match = HN_GROUPS_RE.search(text)
    if match:
        return "".join(match.groups())
    match = GT_GROUPS_RE.search(text)
    if match:
        return "".join(match.groups())
    match = PASSPORT_RE.search(text)
    if match:
        return match.group(0)
    runs = [run for run in GENERIC_DIGITS_RE.findall(text) if not is_date_like(run)]
    if runs:
        return max(runs, key=len)
    return None


def _find_name_after_label(lines: Sequence[str], label_set) -> Optional[str]:
    for index, line in enumerate(lines):
        if not contains_any(line, label_set):
            continue
        skips = 0
        for candidate in lines[index + 1 : index + 1 + NAME_LOOKAHEAD]:
            if is_label_line(candidate):
                skips += 1
                if skips >= MAX_LABEL_SKIPS:
                    break
                continue
            skips = 0
            if _is_name_value(candidate):
                return clean_name(candidate)
            break
    return None


def _split_full_name(full: str) -> Tuple[Optional[str], Optional[str]]:
    parts = full.split()
    if len(parts) >= 3:
        return " ".join(parts[:-2]), " ".join(parts[-2:])
    if len(parts) == 2:
        return parts[0], parts[1]
    return full, None


def _heuristic_names(lines: Sequence[str], document: Optional[RawDocumentText]) -> Optional[Tuple[Optional[str], Optional[str]]]:
    caps = [line for line in lines if _is_upper_name_line(line) and not is_label_line(line)]
    if len(caps) >= 2:
        last_name, first_name = clean_name(caps[0]), clean_name(caps[1])
        if last_name and first_name:
            return first_name, last_name
    if len(caps) == 1:
        full = clean_name(caps[0])
        if full:
            return _split_full_name(full)

    if document is not None and document.blocks:
        block_names = [
            line.strip()
            for line in document.block_lines()
            if _is_upper_name_line(line) and not is_label_line(line)
        ][:3]
        if len(block_names) >= 2:
            return clean_name(block_names[1]), clean_name(block_names[0])
        if len(block_names) == 1:
            return clean_name(block_names[0]), None

    relaxed = sorted(
        (line for line in lines if _is_relaxed_name(line) and not is_label_line(line)),
        key=lambda item: sum(1 for ch in item if ch.isalpha()),
        reverse=True,
    )[:2]
    if len(relaxed) >= 2:
        return clean_name(relaxed[1]), clean_name(relaxed[0])
    if len(relaxed) == 1:
        return clean_name(relaxed[0]), None
    return None


Layer = Callable[[str, List[str], Optional[RawDocumentText], Optional[MrzRecord]], Optional[LegacyExtraction]]


def _mrz_layer(text, lines, document, record) -> Optional[LegacyExtraction]:
    if record is None:
        return None
    return LegacyExtraction(
        first_name=_blank_to_none(record.first_name),
        last_name=_blank_to_none(record.last_name),
        document_number=_blank_to_none(record.document_number),
        date_of_birth=record.date_of_birth_iso,
        nationality=_blank_to_none(record.nationality),
        mrz=record,
        source=ExtractionSource.MRZ,
        tier=ConfidenceTier.HIGH if record.confidence >= HIGH_MRZ_CONFIDENCE else ConfidenceTier.MEDIUM,
        full_text=text,
    )


def _preferred_document_number(text: str, record: Optional[MrzRecord]) -> Optional[str]:
    # An unverified MRZ still reads the document number better than OCR text.
    if record is not None and record.document_number.strip():
        return record.document_number
    return extract_document_number(text)


def _keyed_layer(text, lines, document, record) -> Optional[LegacyExtraction]:
    first_name = _find_name_after_label(lines, FIRST_NAME_LABELS)
    last_name = _find_name_after_label(lines, LAST_NAME_LABELS)
    if record is not None:
        first_name = first_name or _blank_to_none(record.first_name)
        last_name = last_name or _blank_to_none(record.last_name)
    # A bare document number falls through so the heuristics still look for names.
    if not (first_name or last_name):
        return None
    return LegacyExtraction(
        first_name=first_name,
        last_name=last_name,
        document_number=_preferred_document_number(text, record),
        nationality=_blank_to_none(record.nationality) if record is not None else None,
        mrz=record,
        source=ExtractionSource.OCR_KEYED,
        tier=ConfidenceTier.HIGH if first_name and last_name else ConfidenceTier.MEDIUM,
        full_text=text,
    )


def _heuristic_layer(text, lines, document, record) -> Optional[LegacyExtraction]:
    names = _heuristic_names(lines, document)
    if names is None:
        return None
    first_name, last_name = names
    return LegacyExtraction(
        first_name=_blank_to_none(first_name),
        last_name=_blank_to_none(last_name),
        document_number=extract_document_number(text),
        source=ExtractionSource.OCR_HEURISTIC,
        tier=ConfidenceTier.LOW,
        full_text=text,
    )


def _document_only_layer(text, lines, document, record) -> Optional[LegacyExtraction]:
    document_number = _preferred_document_number(text, record)
    if not document_number:
        return None
    return LegacyExtraction(
        document_number=document_number,
        mrz=record,
        source=ExtractionSource.OCR_HEURISTIC,
        tier=ConfidenceTier.LOW,
        full_text=text,
    )


LAYERS: Tuple[Layer, ...] = (_mrz_layer, _keyed_layer, _heuristic_layer, _document_only_layer)


def extract_legacy(
    text: str,
    document: Optional[RawDocumentText] = None,
    mrz_threshold: Optional[float] = None,
) -> LegacyExtraction:
    if not text or not text.strip():
        return LegacyExtraction(full_text=text or "")
    lines = _lines(text)
    record = mrz_parser.parse(text)
    # The MRZ layer only sees records that pass the reliability gate.
    layers = LAYERS if record is not None and record.is_reliable(mrz_threshold) else LAYERS[1:]
    for layer in layers:
        result = layer(text, lines, document, record)
        if result is not None:
            LOGGER.debug("Legacy extraction resolved by %s (%s)", layer.__name__, result.source.value)
            return result
    LOGGER.debug("Legacy extraction found nothing in %d characters", len(text))
    return LegacyExtraction(full_text=text)
