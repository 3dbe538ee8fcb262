from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import pytesseract
from PIL import Image
from pytesseract import Output

from ..schemas import OcrBlock, OcrLine, RawDocumentText

LOGGER = logging.getLogger(__name__)


def _column(data: Mapping[str, Sequence], key: str, index: int, default: int = 0) -> int:
    values = data.get(key) or []
    try:
        return int(values[index])
    except (IndexError, TypeError, ValueError):
        return default


def document_from_tesseract_data(data: Mapping[str, Sequence]) -> RawDocumentText:
    """Group Tesseract ``image_to_data`` words into blocks of lines."""
    words: Dict[Tuple[int, int, int], List[str]] = {}
    order: List[Tuple[int, int, int]] = []
    for index, token in enumerate(data.get("text", [])):
        if not token or not str(token).strip():
            continue
        key = (
            _column(data, "block_num", index),
            _column(data, "par_num", index),
            _column(data, "line_num", index),
        )
        if key not in words:
            words[key] = []
            order.append(key)
        words[key].append(str(token).strip())

    blocks: Dict[int, List[OcrLine]] = {}
    block_order: List[int] = []
    for key in order:
        block_num = key[0]
        if block_num not in blocks:
            blocks[block_num] = []
            block_order.append(block_num)
        blocks[block_num].append(OcrLine(text=" ".join(words[key])))

    ocr_blocks = tuple(OcrBlock(lines=tuple(blocks[num])) for num in block_order)
    text = "\n".join(line.text for block in ocr_blocks for line in block.lines)
    return RawDocumentText(text=text, blocks=ocr_blocks)


def _run_tesseract(image: Image.Image, lang: Optional[str]) -> Mapping[str, Sequence]:
    try:
        return pytesseract.image_to_data(image, output_type=Output.DICT, lang=lang)
    except pytesseract.TesseractError:
        if not lang:
            raise
        LOGGER.warning("OCR language %s failed; retrying default OCR.", lang)
        return pytesseract.image_to_data(image, output_type=Output.DICT)


def ocr_image(image: Image.Image, lang: Optional[str] = None) -> RawDocumentText:
    """Run OCR on a single image and return text with its block/line structure."""
    document = document_from_tesseract_data(_run_tesseract(image, lang))
    LOGGER.debug("OCR extracted %d blocks, %d characters", len(document.blocks), len(document.text))
    return document
