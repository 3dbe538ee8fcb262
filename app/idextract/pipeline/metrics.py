from __future__ import annotations

import json
import logging
import re
import threading
import time
import uuid
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol

from ..schemas import DocumentClassification, ExtractedField, MetricRecord

LOGGER = logging.getLogger(__name__)

RECORD_ID_RE = re.compile(r"^[0-9a-f]{32}$")
SECONDS_PER_DAY = 24 * 60 * 60


class MetricsSink(Protocol):
    def record(
        self,
        classification: DocumentClassification,
        first_name: ExtractedField,
        last_name: ExtractedField,
        document_number: ExtractedField,
        ocr_text: str,
        has_mrz: bool,
    ) -> Optional[str]:
        ...

    def record_corrections(
        self,
        record_id: Optional[str],
        first_name_edited: bool,
        last_name_edited: bool,
        document_number_edited: bool,
    ) -> None:
        ...


class NullMetricsSink:
    def record(self, *args, **kwargs) -> Optional[str]:
        return None

    def record_corrections(self, *args, **kwargs) -> None:
        return None


def build_metric_record(
    classification: DocumentClassification,
    first_name: ExtractedField,
    last_name: ExtractedField,
    document_number: ExtractedField,
    ocr_text: str,
    has_mrz: bool,
    autofill_threshold: Optional[float] = None,
    record_id: Optional[str] = None,
    timestamp: Optional[float] = None,
) -> MetricRecord:
    text = ocr_text or ""
    return MetricRecord(
        record_id=record_id or uuid.uuid4().hex,
        timestamp=time.time() if timestamp is None else timestamp,
        detected_country=classification.country,
        detected_doc_type=classification.document_type,
        classification_confidence=classification.confidence,
        first_name_confidence=first_name.confidence,
        first_name_source=first_name.source,
        first_name_auto_filled=first_name.is_auto_fillable(autofill_threshold),
        last_name_confidence=last_name.confidence,
        last_name_source=last_name.source,
        last_name_auto_filled=last_name.is_auto_fillable(autofill_threshold),
        document_number_confidence=document_number.confidence,
        document_number_source=document_number.source,
        document_number_auto_filled=document_number.is_auto_fillable(autofill_threshold),
        ocr_char_count=len(text),
        ocr_line_count=sum(1 for line in text.split("\n") if line.strip()),
        has_mrz=has_mrz,
    )


class FileMetricsSink:
    """Stores one JSON file per scan; all disk work happens on a background thread."""

    def __init__(
        self,
        directory: Path,
        retention_days: int = 90,
        retention_cap: int = 1000,
        autofill_threshold: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.directory = Path(directory)
        self.retention_days = retention_days
        self.retention_cap = retention_cap
        self.autofill_threshold = autofill_threshold
        self._clock = clock
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="metrics-sink")

    def record(
        self,
        classification: DocumentClassification,
        first_name: ExtractedField,
        last_name: ExtractedField,
        document_number: ExtractedField,
        ocr_text: str,
        has_mrz: bool,
    ) -> Optional[str]:
        metric = build_metric_record(
            classification,
            first_name,
            last_name,
            document_number,
            ocr_text,
            has_mrz,
            autofill_threshold=self.autofill_threshold,
            timestamp=self._clock(),
        )
        if not self._submit(self._write_and_prune, metric):
            return None
        return metric.record_id

    def record_corrections(
        self,
        record_id: Optional[str],
        first_name_edited: bool,
        last_name_edited: bool,
        document_number_edited: bool,
    ) -> None:
        if not record_id or not RECORD_ID_RE.match(record_id):
            LOGGER.debug("Ignoring corrections for unknown metrics record %r", record_id)
            return
        self._submit(
            self._apply_corrections,
            record_id,
            first_name_edited,
            last_name_edited,
            document_number_edited,
        )

    def flush(self, timeout: Optional[float] = None) -> None:
        """Block until previously queued writes have finished."""
        self._executor.submit(lambda: None).result(timeout=timeout)

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    def load_records(self) -> List[MetricRecord]:
        records: List[MetricRecord] = []
        if not self.directory.exists():
            return records
        for path in self.directory.glob("*.json"):
            try:
                records.append(MetricRecord(**json.loads(path.read_text())))
            except (OSError, ValueError) as exc:
                LOGGER.warning("Skipping unreadable metrics file %s: %s", path.name, exc)
        records.sort(key=lambda item: item.timestamp)
        return records

    def summary(self) -> Dict[str, object]:
        self.flush()
        records = self.load_records()
        total = len(records)

        def _avg(values: List[float]) -> float:
            return round(sum(values) / len(values), 4) if values else 0.0

        return {
            "total": total,
            "avg_first_name_confidence": _avg([r.first_name_confidence for r in records]),
            "avg_last_name_confidence": _avg([r.last_name_confidence for r in records]),
            "avg_document_number_confidence": _avg([r.document_number_confidence for r in records]),
            "first_name_corrections": sum(1 for r in records if r.first_name_corrected),
            "last_name_corrections": sum(1 for r in records if r.last_name_corrected),
            "document_number_corrections": sum(1 for r in records if r.document_number_corrected),
            "mrz_scans": sum(1 for r in records if r.has_mrz),
            "by_country": dict(Counter(r.detected_country for r in records).most_common()),
        }

    def _submit(self, fn: Callable[..., None], *args) -> bool:
        try:
            self._executor.submit(self._run, fn, *args)
        except RuntimeError as exc:
            LOGGER.warning("Metrics sink unavailable: %s", exc)
            return False
        return True

    def _run(self, fn: Callable[..., None], *args) -> None:
        try:
            with self._lock:
                fn(*args)
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Metrics write failed: %s", exc)

    def _path_for(self, record_id: str) -> Path:
        return self.directory / f"{record_id}.json"

    def _write(self, metric: MetricRecord) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        self._path_for(metric.record_id).write_text(json.dumps(metric.model_dump(mode="json"), indent=2))

    def _write_and_prune(self, metric: MetricRecord) -> None:
        self._write(metric)
        self._prune()

    def _apply_corrections(
        self,
        record_id: str,
        first_name_edited: bool,
        last_name_edited: bool,
        document_number_edited: bool,
    ) -> None:
        path = self._path_for(record_id)
        if not path.exists():
            LOGGER.debug("Metrics record %s not found for corrections", record_id)
            return
        metric = MetricRecord(**json.loads(path.read_text()))
        updated = metric.model_copy(
            update={
                "first_name_corrected": first_name_edited,
                "last_name_corrected": last_name_edited,
                "document_number_corrected": document_number_edited,
            }
        )
        self._write(updated)

    def _prune(self) -> None:
        records = self.load_records()
        cutoff = self._clock() - self.retention_days * SECONDS_PER_DAY
        expired = [r for r in records if r.timestamp < cutoff]
        kept = [r for r in records if r.timestamp >= cutoff]
        overflow = max(0, len(kept) - self.retention_cap)
        for metric in expired + kept[:overflow]:
            self._path_for(metric.record_id).unlink(missing_ok=True)
        if expired or overflow:
            LOGGER.info("Pruned %d metrics records", len(expired) + overflow)
