from __future__ import annotations

from typing import Iterable, Optional, Tuple

from ..schemas import ExtractedField, FieldSource, clamp_confidence

Breakdown = Tuple[Tuple[str, float], ...]


def score_breakdown(breakdown: Iterable[Tuple[str, float]]) -> float:
    """Sum rule contributions and clamp into [0, 1]."""
    return clamp_confidence(sum(contribution for _, contribution in breakdown))


def build_field(value: Optional[str], breakdown: Breakdown, source: FieldSource) -> ExtractedField:
    if value is None:
        return ExtractedField.empty()
    return ExtractedField(
        value=value,
        confidence=score_breakdown(breakdown),
        source=source,
        breakdown=tuple(breakdown),
    )


def apply_penalty(field: ExtractedField, rule: str, amount: float) -> ExtractedField:
    """Return a copy of ``field`` lowered by ``amount`` (never below zero)."""
    return field.model_copy(
        update={
            "confidence": clamp_confidence(field.confidence - amount),
            "breakdown": field.breakdown + ((rule, -amount),),
        }
    )


def fixed_field(value: Optional[str], confidence: float, source: FieldSource, rule: str) -> ExtractedField:
    if not value:
        return ExtractedField.empty()
    return ExtractedField(
        value=value,
        confidence=clamp_confidence(confidence),
        source=source,
        breakdown=((rule, clamp_confidence(confidence)),),
    )
