from __future__ import annotations

from enum import Enum
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator

from .config import CONFIG
from .pipeline.normalize import mrz_date_to_iso

UNKNOWN = "UNKNOWN"
HIGH_CONFIDENCE_CLASSIFICATION = 0.75
RELIABLE_CLASSIFICATION = 0.50
HIGH_CONFIDENCE_FIELD = 0.80
EXTRACTED_FIELDS = ("first_name", "last_name", "document_number")


def clamp_confidence(value: float) -> float:
    """Clamp to [0, 1] and round so threshold comparisons are exact."""
    return round(max(0.0, min(1.0, float(value))), 4)


class FieldSource(str, Enum):
    MRZ = "MRZ"
    LABEL_OCR = "LABEL_OCR"
    HEURISTIC = "HEURISTIC"
    NONE = "NONE"


class OcrLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str


class OcrBlock(BaseModel):
    model_config = ConfigDict(frozen=True)

    lines: Tuple[OcrLine, ...] = ()


class RawDocumentText(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str = ""
    blocks: Tuple[OcrBlock, ...] = ()

    @classmethod
    def from_text(cls, text: str) -> "RawDocumentText":
        return cls(text=text or "")

    @classmethod
    def from_lines(cls, text: str, blocks: Tuple[Tuple[str, ...], ...]) -> "RawDocumentText":
        return cls(
            text=text or "",
            blocks=tuple(OcrBlock(lines=tuple(OcrLine(text=line) for line in block)) for block in blocks),
        )

    def block_lines(self) -> Tuple[str, ...]:
        return tuple(line.text for block in self.blocks for line in block.lines)


class DocumentClassification(BaseModel):
    model_config = ConfigDict(frozen=True)

    country: str = UNKNOWN
    document_type: str = UNKNOWN
    confidence: float = 0.0
    signals: Tuple[str, ...] = ()

    @field_validator("confidence")
    @classmethod
    def _clamp(cls, value: float) -> float:
        return clamp_confidence(value)

    @classmethod
    def unknown(cls) -> "DocumentClassification":
        return cls()

    @computed_field
    @property
    def reliable(self) -> bool:
        return self.confidence >= RELIABLE_CLASSIFICATION

    @computed_field
    @property
    def high_confidence(self) -> bool:
        return self.confidence >= HIGH_CONFIDENCE_CLASSIFICATION


class MrzRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    document_type: str = ""
    issuing_country: str = ""
    last_name: str = ""
    first_name: str = ""
    document_number: str = ""
    nationality: str = ""
    date_of_birth: str = ""
    sex: str = ""
    expiry_date: str = ""
    personal_number: str = ""
    mrz_format: str
    check_digits_ok: int = 0
    check_digits_total: int = 0
    raw_lines: Tuple[str, ...] = ()

    @property
    def check_ratio(self) -> Optional[float]:
        if self.check_digits_total == 0:
            return None
        return self.check_digits_ok / self.check_digits_total

    def is_reliable(self, threshold: Optional[float] = None) -> bool:
        ratio = self.check_ratio
        limit = CONFIG.pipeline.mrz_reliability_threshold if threshold is None else threshold
        return ratio is None or ratio >= limit

    @computed_field
    @property
    def reliable(self) -> bool:
        return self.is_reliable()

    @computed_field
    @property
    def confidence(self) -> float:
        ratio = self.check_ratio
        score = 0.5 * (0.5 if ratio is None else ratio)
        if self.last_name.strip() or self.first_name.strip():
            score += 0.3
        if self.document_number.strip():
            score += 0.2
        return clamp_confidence(score)

    @computed_field
    @property
    def date_of_birth_iso(self) -> Optional[str]:
        return mrz_date_to_iso(self.date_of_birth, field="birth")

    @computed_field
    @property
    def expiry_date_iso(self) -> Optional[str]:
        return mrz_date_to_iso(self.expiry_date, field="expiry")


class ExtractedField(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: Optional[str] = None
    confidence: float = 0.0
    source: FieldSource = FieldSource.NONE
    breakdown: Tuple[Tuple[str, float], ...] = ()
    # Set by PipelineResult so the field agrees with the result it belongs to.
    autofill_threshold: Optional[float] = Field(default=None, exclude=True)

    @field_validator("confidence")
    @classmethod
    def _clamp(cls, value: float) -> float:
        return clamp_confidence(value)

    @classmethod
    def empty(cls) -> "ExtractedField":
        return cls()

    def is_auto_fillable(self, threshold: Optional[float] = None) -> bool:
        if self.value is None:
            return False
        if self.source == FieldSource.MRZ:
            return True
        limit = threshold if threshold is not None else self.autofill_threshold
        if limit is None:
            limit = CONFIG.pipeline.autofill_threshold
        return self.confidence >= limit

    @computed_field
    @property
    def auto_fillable(self) -> bool:
        return self.is_auto_fillable()

    @computed_field
    @property
    def high_confidence(self) -> bool:
        return self.confidence >= HIGH_CONFIDENCE_FIELD

    def breakdown_map(self) -> Dict[str, float]:
        return dict(self.breakdown)


class PipelineResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    first_name: ExtractedField = Field(default_factory=ExtractedField.empty)
    last_name: ExtractedField = Field(default_factory=ExtractedField.empty)
    document_number: ExtractedField = Field(default_factory=ExtractedField.empty)
    classification: DocumentClassification = Field(default_factory=DocumentClassification.unknown)
    mrz: Optional[MrzRecord] = None
    full_text: str = ""
    metric_id: Optional[str] = None
    autofill_threshold: float = Field(default_factory=lambda: CONFIG.pipeline.autofill_threshold)

    @model_validator(mode="before")
    @classmethod
    def _bind_threshold(cls, data):
        if not isinstance(data, dict):
            return data
        threshold = data.get("autofill_threshold")
        if threshold is None:
            threshold = CONFIG.pipeline.autofill_threshold
        bound = dict(data)
        for name in EXTRACTED_FIELDS:
            item = bound.get(name)
            if isinstance(item, ExtractedField):
                bound[name] = item.model_copy(update={"autofill_threshold": threshold})
            elif isinstance(item, dict):
                bound[name] = {**item, "autofill_threshold": threshold}
        return bound

    def _auto(self, item: ExtractedField) -> Optional[str]:
        return item.value if item.is_auto_fillable(self.autofill_threshold) else None

    @computed_field
    @property
    def auto_first_name(self) -> Optional[str]:
        return self._auto(self.first_name)

    @computed_field
    @property
    def auto_last_name(self) -> Optional[str]:
        return self._auto(self.last_name)

    @computed_field
    @property
    def auto_document_number(self) -> Optional[str]:
        return self._auto(self.document_number)

    @computed_field
    @property
    def nationality(self) -> Optional[str]:
        if self.mrz is None:
            return None
        return self.mrz.nationality or None

    @computed_field
    @property
    def date_of_birth(self) -> Optional[str]:
        if self.mrz is None:
            return None
        return self.mrz.date_of_birth_iso


class MetricRecord(BaseModel):
    record_id: str
    timestamp: float
    detected_country: str
    detected_doc_type: str
    classification_confidence: float
    first_name_confidence: float = 0.0
    first_name_source: FieldSource = FieldSource.NONE
    first_name_auto_filled: bool = False
    first_name_corrected: bool = False
    last_name_confidence: float = 0.0
    last_name_source: FieldSource = FieldSource.NONE
    last_name_auto_filled: bool = False
    last_name_corrected: bool = False
    document_number_confidence: float = 0.0
    document_number_source: FieldSource = FieldSource.NONE
    document_number_auto_filled: bool = False
    document_number_corrected: bool = False
    ocr_char_count: int = 0
    ocr_line_count: int = 0
    has_mrz: bool = False


class ExtractRequest(BaseModel):
    text: str = ""
    blocks: Optional[Tuple[Tuple[str, ...], ...]] = None


class CorrectionsRequest(BaseModel):
    first_name_edited: bool = False
    last_name_edited: bool = False
    document_number_edited: bool = False
