from __future__ import annotations

import io
import logging
from typing import Dict, Optional

import anyio
from fastapi import FastAPI, File, Form, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from PIL import Image, UnidentifiedImageError

from .config import CONFIG
from .country_profiles import country_profiles_payload
from .pipeline.hints import HintExtractor, NullHintExtractor, RuleBasedHintExtractor
from .pipeline.metrics import FileMetricsSink
from .pipeline.ocr import ocr_image
from .pipeline.orchestrator import process_document
from .schemas import CorrectionsRequest, ExtractRequest, RawDocumentText

logging.basicConfig(level=CONFIG.log_level, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
LOGGER = logging.getLogger("idextract")

METRICS_SINK = FileMetricsSink(
    CONFIG.metrics.directory,
    retention_days=CONFIG.metrics.retention_days,
    retention_cap=CONFIG.metrics.retention_cap,
    autofill_threshold=CONFIG.pipeline.autofill_threshold,
)
HINT_EXTRACTOR: HintExtractor = RuleBasedHintExtractor() if CONFIG.hints.rule_based else NullHintExtractor()

app = FastAPI(title="ID Document Extractor")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/country_profiles")
async def country_profiles() -> Dict[str, object]:
    return country_profiles_payload()


async def _run_pipeline(document: RawDocumentText) -> Dict[str, object]:
    result = await anyio.to_thread.run_sync(
        lambda: process_document(document, hint_extractor=HINT_EXTRACTOR, metrics_sink=METRICS_SINK)
    )
    LOGGER.info(
        "Extraction complete: country=%s type=%s mrz=%s",
        result.classification.country,
        result.classification.document_type,
        result.mrz.mrz_format if result.mrz else None,
    )
    return {"result": result.model_dump(mode="json")}


@app.post("/extract")
async def extract(payload: ExtractRequest):
    if payload.blocks:
        document = RawDocumentText.from_lines(payload.text, payload.blocks)
    else:
        document = RawDocumentText.from_text(payload.text)
    return JSONResponse(await _run_pipeline(document))


@app.post("/extract_image")
async def extract_image(document: UploadFile = File(...), lang: Optional[str] = Form(None)):
    content = await document.read()
    try:
        image = Image.open(io.BytesIO(content))
        image.load()
    except (UnidentifiedImageError, OSError) as exc:
        LOGGER.warning("Rejected upload %s: %s", document.filename, exc)
        return JSONResponse({"error": f"Unreadable image: {exc}"}, status_code=400)
    raw = await anyio.to_thread.run_sync(lambda: ocr_image(image, lang=lang))
    return JSONResponse(await _run_pipeline(raw))


@app.post("/metrics/{record_id}/corrections")
async def record_corrections(record_id: str, payload: CorrectionsRequest):
    METRICS_SINK.record_corrections(
        record_id,
        payload.first_name_edited,
        payload.last_name_edited,
        payload.document_number_edited,
    )
    return JSONResponse({"record_id": record_id, "status": "queued"})


@app.get("/metrics/summary")
async def metrics_summary() -> Dict[str, object]:
    return await anyio.to_thread.run_sync(METRICS_SINK.summary)
