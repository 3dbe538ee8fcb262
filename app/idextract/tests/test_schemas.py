from __future__ import annotations

from idextract.pipeline.confidence import apply_penalty, build_field, fixed_field
from idextract.schemas import (
    DocumentClassification,
    ExtractedField,
    FieldSource,
    MrzRecord,
    PipelineResult,
    RawDocumentText,
    clamp_confidence,
)


def test_autofill_threshold_is_inclusive() -> None:
    below = ExtractedField(value="Ana", confidence=0.59, source=FieldSource.LABEL_OCR)
    at = ExtractedField(value="Ana", confidence=0.60, source=FieldSource.LABEL_OCR)
    assert not below.auto_fillable
    assert at.auto_fillable
    assert below.is_auto_fillable(threshold=0.5)


def test_summed_contributions_gate_exactly() -> None:
    field = build_field("Ana", (("a", 0.40), ("b", 0.10), ("c", 0.10)), FieldSource.LABEL_OCR)
    assert field.confidence == 0.60
    assert field.auto_fillable


def test_mrz_fields_always_auto_fill() -> None:
    field = ExtractedField(value="L898902C3", confidence=0.1, source=FieldSource.MRZ)
    assert field.auto_fillable
    assert not ExtractedField(value=None, confidence=1.0, source=FieldSource.MRZ).auto_fillable


def test_confidence_is_clamped() -> None:
    assert clamp_confidence(1.7) == 1.0
    assert clamp_confidence(-0.2) == 0.0
    assert ExtractedField(value="x", confidence=3).confidence == 1.0
    assert DocumentClassification(confidence=-1).confidence == 0.0


def test_penalty_is_recorded_in_breakdown() -> None:
    field = build_field("Ana", (("label_proximity_1", 0.40), ("all_caps", 0.15)), FieldSource.LABEL_OCR)
    lowered = apply_penalty(field, "entity_nonname_penalty", 0.20)
    assert lowered.confidence == 0.35
    assert lowered.breakdown[-1] == ("entity_nonname_penalty", -0.20)
    assert field.confidence == 0.55
    assert apply_penalty(lowered, "again", 1.0).confidence == 0.0


def test_fixed_field_blank_value_is_empty() -> None:
    assert fixed_field(None, 0.55, FieldSource.HEURISTIC, "legacy_fallback") == ExtractedField.empty()
    field = fixed_field("Perez", 0.55, FieldSource.HEURISTIC, "legacy_fallback")
    assert field.breakdown == (("legacy_fallback", 0.55),)
    assert not field.auto_fillable


def test_mrz_record_confidence_and_dates() -> None:
    record = MrzRecord(
        last_name="Smith",
        document_number="123456789",
        date_of_birth="850315",
        expiry_date="300101",
        mrz_format="TD3",
        check_digits_ok=4,
        check_digits_total=4,
    )
    assert record.confidence == 1.0
    assert record.reliable
    assert record.date_of_birth_iso == "1985-03-15"
    assert record.expiry_date_iso == "2030-01-01"


def test_mrz_record_without_checks() -> None:
    record = MrzRecord(mrz_format="TD3")
    assert record.check_ratio is None
    assert record.reliable
    assert record.confidence == 0.25
    assert record.date_of_birth_iso is None


def test_unreliable_mrz_record() -> None:
    record = MrzRecord(first_name="Ana", mrz_format="TD1", check_digits_ok=2, check_digits_total=4)
    assert not record.reliable
    assert record.confidence == 0.55


def test_pipeline_result_auto_values() -> None:
    result = PipelineResult(
        first_name=ExtractedField(value="Ana", confidence=0.85, source=FieldSource.LABEL_OCR),
        last_name=ExtractedField(value="Perez", confidence=0.55, source=FieldSource.HEURISTIC),
    )
    assert result.auto_first_name == "Ana"
    assert result.auto_last_name is None
    assert result.auto_document_number is None
    assert result.nationality is None
    payload = result.model_dump(mode="json")
    assert payload["first_name"]["source"] == "LABEL_OCR"
    assert payload["first_name"]["auto_fillable"] is True


def test_raw_document_from_lines() -> None:
    document = RawDocumentText.from_lines("A\nB\nC", (("A", "B"), ("C",)))
    assert document.block_lines() == ("A", "B", "C")
    assert RawDocumentText.from_text(None).text == ""


def test_mrz_reliability_accepts_an_explicit_threshold() -> None:
    record = MrzRecord(first_name="Ana", mrz_format="TD3", check_digits_ok=3, check_digits_total=4)
    assert record.reliable
    assert record.is_reliable(0.75)
    assert not record.is_reliable(1.0)


def test_result_threshold_is_applied_to_its_fields() -> None:
    result = PipelineResult(
        first_name=ExtractedField(value="Ana", confidence=0.55, source=FieldSource.LABEL_OCR),
        last_name={"value": "Perez", "confidence": 0.45, "source": "HEURISTIC"},
        autofill_threshold=0.5,
    )
    assert result.first_name.auto_fillable
    assert result.auto_first_name == "Ana"
    assert not result.last_name.auto_fillable
    assert result.auto_last_name is None
