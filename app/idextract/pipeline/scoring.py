from __future__ import annotations

import logging
import re
from typing import FrozenSet, Iterable, List, Optional, Sequence, Tuple

from ..country_profiles import GENERIC_NUMBER_PATTERNS, specific_number_patterns
from ..schemas import DocumentClassification, ExtractedField, FieldSource
from .confidence import Breakdown, build_field, score_breakdown
from .labels import FIRST_NAME_LABELS, LAST_NAME_LABELS, contains_any, is_id_label_line, is_label_line
from .normalize import clean_name, digit_count, is_date_like, letter_ratio, normalize_document_number

LOGGER = logging.getLogger(__name__)

NINE_DIGITS_RE = re.compile(r"\b(\d{9})\b")
LABEL_LOOKBACK = 3
LABEL_LOOKAHEAD = 6
MAX_DIGITLESS_SKIPS = 3
FALLBACK_MIN_SCORE = 0.20

LABEL_ADJACENT_BREAKDOWN: Breakdown = (
    ("label_adjacent", 0.40),
    ("regex_match", 0.30),
    ("digit_line", 0.20),
)


def _is_plausible_name_line(line: str) -> bool:
    stripped = line.strip()
    if len(stripped) < 2 or len(stripped) > 80:
        return False
    return letter_ratio(stripped) >= 0.40


def _is_all_caps(line: str) -> bool:
    letters = [ch for ch in line if ch.isalpha()]
    return bool(letters) and all(ch.isupper() for ch in letters)


def _name_breakdown(
    lines: Sequence[str],
    index: int,
    label_set: FrozenSet[str],
    entity_boost_lines: Iterable[str],
) -> Breakdown:
    line = lines[index]
    rules: List[Tuple[str, float]] = []

    for look_back in range(1, LABEL_LOOKBACK + 1):
        if index - look_back < 0:
            break
        if contains_any(lines[index - look_back], label_set):
            rules.append((f"label_proximity_{look_back}", 0.40 if look_back == 1 else 0.10))
            break

    if _is_all_caps(line):
        rules.append(("all_caps", 0.15))
    if 1 <= len(line.split()) <= 4:
        rules.append(("word_count_ok", 0.10))

    density = letter_ratio(line)
    if density >= 0.80:
        rules.append(("high_letter_density", 0.20))
    elif density >= 0.60:
        rules.append(("medium_letter_density", 0.10))

    lowered = line.lower()
    if any(hint and hint.lower() in lowered for hint in entity_boost_lines):
        rules.append(("entity_boost", 0.10))

    digits = digit_count(line)
    if digits >= 3:
        rules.append(("digit_penalty", -0.30))
    elif digits >= 1:
        rules.append(("digit_minor_penalty", -0.10))

    length = len(line.strip())
    if length < 2 or length > 60:
        rules.append(("length_penalty", -0.20))
    if density < 0.50:
        rules.append(("low_letter_density_penalty", -0.10))
    return tuple(rules)


def _score_name(
    lines: Sequence[str],
    label_set: FrozenSet[str],
    entity_boost_lines: Iterable[str],
    field_name: str,
) -> ExtractedField:
    boost = tuple(entity_boost_lines)
    best: Optional[ExtractedField] = None
    for index, line in enumerate(lines):
        if not _is_plausible_name_line(line) or is_label_line(line):
            continue
        breakdown = _name_breakdown(lines, index, label_set, boost)
        score = score_breakdown(breakdown)
        value = clean_name(line)
        if score <= 0 or not value:
            continue
        if best is None or score > best.confidence:
            best = build_field(value, breakdown, FieldSource.LABEL_OCR)
    if best is None:
        LOGGER.debug("[%s] no candidates found", field_name)
        return ExtractedField.empty()
    LOGGER.debug("[%s] best conf=%.2f breakdown=%s", field_name, best.confidence, best.breakdown)
    return best


def score_first_name(
    lines: Sequence[str],
    classification: DocumentClassification,
    entity_boost_lines: Iterable[str] = frozenset(),
) -> ExtractedField:
    return _score_name(lines, FIRST_NAME_LABELS, entity_boost_lines, "first_name")


def score_last_name(
    lines: Sequence[str],
    classification: DocumentClassification,
    entity_boost_lines: Iterable[str] = frozenset(),
) -> ExtractedField:
    return _score_name(lines, LAST_NAME_LABELS, entity_boost_lines, "last_name")


def extract_number_from_line(line: str, patterns: Sequence[re.Pattern]) -> Optional[str]:
    """First non-date pattern match in ``line``, whitespace removed."""
    stripped = line.strip()
    for pattern in patterns:
        match = pattern.search(stripped)
        if not match:
            continue
        value = normalize_document_number(match.group(0))
        if value and not is_date_like("".join(ch for ch in value if ch.isdigit())):
            return value
    match = NINE_DIGITS_RE.search(stripped)
    if match:
        digits = match.group(1)
        return f"{digits[:8]}-{digits[8]}"
    return None


def _label_adjacent_number(lines: Sequence[str], patterns: Sequence[re.Pattern]) -> Optional[str]:
    for index, line in enumerate(lines):
        if not is_id_label_line(line):
            continue
        digitless = 0
        for candidate in lines[index + 1 : index + 1 + LABEL_LOOKAHEAD]:
            if not any(ch.isdigit() for ch in candidate):
                digitless += 1
                if digitless >= MAX_DIGITLESS_SKIPS:
                    break
                continue
            if is_id_label_line(candidate):
                continue
            value = extract_number_from_line(candidate, patterns)
            if value:
                return value
    return None


def score_document_number(lines: Sequence[str], classification: DocumentClassification) -> ExtractedField:
    specific = specific_number_patterns(classification.country, classification.document_type)
    patterns = specific + GENERIC_NUMBER_PATTERNS

    adjacent = _label_adjacent_number(lines, patterns)
    if adjacent:
        LOGGER.debug("[document_number] label-adjacent match")
        return build_field(adjacent, LABEL_ADJACENT_BREAKDOWN, FieldSource.LABEL_OCR)

    best: Optional[ExtractedField] = None
    for line in lines:
        if not any(ch.isdigit() for ch in line):
            continue
        value = extract_number_from_line(line, patterns)
        if not value:
            continue
        rules: List[Tuple[str, float]] = []
        if any(pattern.search(line) for pattern in specific):
            rules.append(("country_regex", 0.35))
        else:
            rules.append(("generic_regex", 0.20))
        length = len(line.strip())
        if length <= 15:
            rules.append(("clean_line", 0.15))
        if length > 40:
            rules.append(("long_line_penalty", -0.10))
        candidate = build_field(value, tuple(rules), FieldSource.LABEL_OCR)
        if best is None or candidate.confidence > best.confidence:
            best = candidate
    if best is not None and best.confidence > FALLBACK_MIN_SCORE:
        LOGGER.debug("[document_number] pattern fallback conf=%.2f", best.confidence)
        return best
    LOGGER.debug("[document_number] not found")
    return ExtractedField.empty()
