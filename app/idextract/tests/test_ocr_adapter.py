from __future__ import annotations

import pytesseract
from PIL import Image

from idextract.pipeline import ocr

TESSERACT_DATA = {
    "text": ["", "REPUBLICA", "DE", "EL", "SALVADOR", " ", "AREVALO", "DELGADO", "04567890-1"],
    "block_num": [0, 1, 1, 1, 1, 1, 2, 2, 2],
    "par_num": [0, 1, 1, 1, 1, 1, 1, 1, 1],
    "line_num": [0, 1, 1, 1, 1, 1, 1, 1, 2],
}


def test_words_are_grouped_into_blocks_and_lines() -> None:
    document = ocr.document_from_tesseract_data(TESSERACT_DATA)
    assert document.text == "REPUBLICA DE EL SALVADOR\nAREVALO DELGADO\n04567890-1"
    assert len(document.blocks) == 2
    assert [line.text for line in document.blocks[1].lines] == ["AREVALO DELGADO", "04567890-1"]
    assert document.block_lines()[0] == "REPUBLICA DE EL SALVADOR"


def test_empty_tesseract_output() -> None:
    document = ocr.document_from_tesseract_data({"text": []})
    assert document.text == ""
    assert document.blocks == ()


def test_ocr_image_retries_without_language(monkeypatch) -> None:
    calls = []

    def fake_image_to_data(image, output_type=None, lang=None):
        calls.append(lang)
        if lang:
            raise pytesseract.TesseractError(1, "Failed loading language 'xx'")
        return TESSERACT_DATA

    monkeypatch.setattr(ocr.pytesseract, "image_to_data", fake_image_to_data)
    document = ocr.ocr_image(Image.new("RGB", (10, 10)), lang="xx")
    assert calls == ["xx", None]
    assert document.text.startswith("REPUBLICA")
