from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from ..config import CONFIG, PipelineConfig
from ..schemas import (
    DocumentClassification,
    ExtractedField,
    FieldSource,
    MrzRecord,
    PipelineResult,
    RawDocumentText,
)
from . import mrz as mrz_parser
from .classify import classify
from .confidence import apply_penalty, fixed_field
from .hints import EntityHints, HintExtractor, NullHintExtractor, collect_hints
from .legacy import LegacyExtraction, extract_legacy
from .metrics import MetricsSink, NullMetricsSink
from .scoring import score_document_number, score_first_name, score_last_name

LOGGER = logging.getLogger(__name__)

ENTITY_PENALTY_RULE = "entity_nonname_penalty"
LEGACY_RULE = "legacy_fallback"


def split_lines(text: str) -> List[str]:
    return [line.strip() for line in text.split("\n") if line.strip()]


def _overlaps(value: str, hint_lines: Iterable[str]) -> bool:
    lowered = value.lower()
    for hint in hint_lines:
        hint_lower = hint.strip().lower()
        if not hint_lower:
            continue
        if hint_lower in lowered or lowered in hint_lower:
            return True
    return False


def _penalise_non_name(field: ExtractedField, hints: EntityHints, amount: float) -> ExtractedField:
    if field.value is None or len(field.value) < 2:
        return field
    if not _overlaps(field.value, hints.non_name_lines):
        return field
    LOGGER.debug("Name candidate overlaps a date/phone line; lowering confidence by %.2f", amount)
    return apply_penalty(field, ENTITY_PENALTY_RULE, amount)


def _mrz_field(value: str, record: MrzRecord) -> ExtractedField:
    if not value:
        return ExtractedField(value=None, confidence=0.0, source=FieldSource.MRZ)
    return ExtractedField(value=value, confidence=record.confidence, source=FieldSource.MRZ)


def _record_metrics(
    sink: MetricsSink,
    classification: DocumentClassification,
    first_name: ExtractedField,
    last_name: ExtractedField,
    document_number: ExtractedField,
    text: str,
    has_mrz: bool,
) -> Optional[str]:
    try:
        return sink.record(classification, first_name, last_name, document_number, text, has_mrz)
    except Exception as exc:  # noqa: BLE001
        LOGGER.warning("Metrics recording failed: %s", exc)
        return None


class _LegacyCache:
    """Runs the legacy extractor at most once per pipeline call."""

    def __init__(self, document: RawDocumentText, mrz_threshold: float) -> None:
        self._document = document
        self._mrz_threshold = mrz_threshold
        self._result: Optional[LegacyExtraction] = None

    def get(self) -> LegacyExtraction:
        if self._result is None:
            self._result = extract_legacy(self._document.text, self._document, mrz_threshold=self._mrz_threshold)
        return self._result


def process_document(
    document: RawDocumentText,
    hint_extractor: Optional[HintExtractor] = None,
    metrics_sink: Optional[MetricsSink] = None,
    config: Optional[PipelineConfig] = None,
    hint_timeout: Optional[float] = None,
) -> PipelineResult:
    """Classify, parse the MRZ, score fields and fall back for blanks."""
    settings = config or CONFIG.pipeline
    hints_source = hint_extractor or NullHintExtractor()
    sink = metrics_sink or NullMetricsSink()
    timeout = CONFIG.hints.timeout_seconds if hint_timeout is None else hint_timeout
    text = document.text or ""

    if not text.strip():
        LOGGER.info("Empty OCR text; returning an empty result.")
        return PipelineResult(full_text=text, autofill_threshold=settings.autofill_threshold)

    classification = classify(text)
    record = mrz_parser.parse(text)

    if record is not None and record.is_reliable(settings.mrz_reliability_threshold):
        LOGGER.info("Using %s MRZ (confidence %.2f)", record.mrz_format, record.confidence)
        first_name = _mrz_field(record.first_name, record)
        last_name = _mrz_field(record.last_name, record)
        document_number = _mrz_field(record.document_number, record)
        metric_id = _record_metrics(sink, classification, first_name, last_name, document_number, text, True)
        return PipelineResult(
            first_name=first_name,
            last_name=last_name,
            document_number=document_number,
            classification=classification,
            mrz=record,
            full_text=text,
            metric_id=metric_id,
            autofill_threshold=settings.autofill_threshold,
        )

    LOGGER.info("MRZ not found or unreliable. Falling back to label scoring.")
    hints = collect_hints(hints_source, text, timeout)
    lines = split_lines(text)

    first_name = score_first_name(lines, classification)
    last_name = score_last_name(lines, classification)
    document_number = score_document_number(lines, classification)

    first_name = _penalise_non_name(first_name, hints, settings.entity_penalty)
    last_name = _penalise_non_name(last_name, hints, settings.entity_penalty)

    legacy = _LegacyCache(document, settings.mrz_reliability_threshold)
    if first_name.value is None:
        first_name = fixed_field(
            legacy.get().first_name, settings.legacy_name_confidence, FieldSource.HEURISTIC, LEGACY_RULE
        )
    if last_name.value is None:
        last_name = fixed_field(
            legacy.get().last_name, settings.legacy_name_confidence, FieldSource.HEURISTIC, LEGACY_RULE
        )
    if document_number.value is None:
        document_number = fixed_field(
            legacy.get().document_number, settings.legacy_document_confidence, FieldSource.HEURISTIC, LEGACY_RULE
        )

    metric_id = _record_metrics(sink, classification, first_name, last_name, document_number, text, False)
    return PipelineResult(
        first_name=first_name,
        last_name=last_name,
        document_number=document_number,
        classification=classification,
        mrz=record,
        full_text=text,
        metric_id=metric_id,
        autofill_threshold=settings.autofill_threshold,
    )


def process_text(
    text: str,
    hint_extractor: Optional[HintExtractor] = None,
    metrics_sink: Optional[MetricsSink] = None,
    config: Optional[PipelineConfig] = None,
    hint_timeout: Optional[float] = None,
) -> PipelineResult:
    return process_document(
        RawDocumentText.from_text(text),
        hint_extractor=hint_extractor,
        metrics_sink=metrics_sink,
        config=config,
        hint_timeout=hint_timeout,
    )
