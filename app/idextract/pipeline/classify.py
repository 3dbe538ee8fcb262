from __future__ import annotations

import logging
import re
from typing import List, Optional

from ..country_profiles import CountryProfile, iter_profiles
from ..schemas import UNKNOWN, DocumentClassification
from .labels import contains_phrase

LOGGER = logging.getLogger(__name__)

MRZ_RUN_RE = re.compile(r"[A-Z0-9<]{30,44}")
PASSPORT_KEYWORDS = ("passport", "pasaporte", "travel document", "mrp", "p<")
DRIVER_LICENSE_KEYWORDS = (
    "driver license",
    "driver's license",
    "licencia de conducir",
    "licencia de conducción",
    "permiso de conducir",
    "driving licence",
)
STRUCTURAL_LABELS = (
    "apellidos",
    "nombres",
    "surname",
    "given name",
    "fecha de nacimiento",
    "date of birth",
    "expiry",
    "vencimiento",
)

MRZ_WEIGHT = 0.30
PASSPORT_WEIGHT = 0.20
LICENSE_WEIGHT = 0.15
COUNTRY_KEYWORD_WEIGHT = 0.10
COUNTRY_PATTERN_WEIGHT = 0.25
COUNTRY_CAP = 0.50
STRUCTURAL_WEIGHT = 0.05
STRUCTURAL_CAP = 0.20
DENSITY_WEIGHT = 0.05
MIN_TEXT_LENGTH = 80


def _has_mrz_shape(text: str) -> bool:
    return len(MRZ_RUN_RE.findall(text)) >= 2


def _any_phrase(lower: str, phrases) -> bool:
    return any(contains_phrase(lower, phrase) for phrase in phrases)


def _profile_score(profile: CountryProfile, text: str, lower: str, signals: List[str]) -> float:
    score = sum(COUNTRY_KEYWORD_WEIGHT for keyword in profile.keywords if contains_phrase(lower, keyword))
    if profile.id_pattern is not None and profile.id_pattern.search(text):
        score += COUNTRY_PATTERN_WEIGHT
        signals.append(f"id_regex_{profile.code}(+{COUNTRY_PATTERN_WEIGHT:.2f})")
    return round(score, 4)


def classify(text: Optional[str]) -> DocumentClassification:
    """Score country and document type from raw OCR text."""
    if not text or not text.strip():
        return DocumentClassification.unknown()

    lower = text.lower()
    signals: List[str] = []
    total = 0.0

    if _has_mrz_shape(text):
        total += MRZ_WEIGHT
        signals.append(f"mrz_detected(+{MRZ_WEIGHT:.2f})")

    is_passport = _any_phrase(lower, PASSPORT_KEYWORDS)
    is_license = _any_phrase(lower, DRIVER_LICENSE_KEYWORDS)
    if is_passport:
        total += PASSPORT_WEIGHT
        signals.append(f"passport_keyword(+{PASSPORT_WEIGHT:.2f})")
    if is_license:
        total += LICENSE_WEIGHT
        signals.append(f"license_keyword(+{LICENSE_WEIGHT:.2f})")

    best_country = UNKNOWN
    best_score = 0.0
    best_profile: Optional[CountryProfile] = None
    for profile in iter_profiles():
        score = _profile_score(profile, text, lower, signals)
        if score > best_score:
            best_score = score
            best_country = profile.code
            best_profile = profile
    if best_score > 0:
        contribution = min(best_score, COUNTRY_CAP)
        total += contribution
        signals.append(f"country_{best_country}(+{contribution:.2f})")

    label_hits = sum(1 for label in STRUCTURAL_LABELS if contains_phrase(lower, label))
    label_score = min(label_hits * STRUCTURAL_WEIGHT, STRUCTURAL_CAP)
    if label_score > 0:
        total += label_score
        signals.append(f"structural_labels(hits={label_hits}, +{label_score:.2f})")

    if len(text) >= MIN_TEXT_LENGTH:
        total += DENSITY_WEIGHT
        signals.append(f"text_density_ok(+{DENSITY_WEIGHT:.2f})")

    if is_passport:
        document_type = "PASSPORT"
    elif is_license:
        document_type = "DRIVER_LICENSE"
    elif best_profile is not None and best_profile.document_types:
        document_type = best_profile.document_types[0].upper()
    else:
        document_type = "ID_CARD"

    classification = DocumentClassification(
        country=best_country,
        document_type=document_type,
        confidence=total,
        signals=tuple(signals),
    )
    LOGGER.debug(
        "classify -> country=%s type=%s conf=%.2f signals=%s",
        classification.country,
        classification.document_type,
        classification.confidence,
        classification.signals,
    )
    return classification
