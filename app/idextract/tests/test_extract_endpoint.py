import io

from fastapi.testclient import TestClient
from PIL import Image

from idextract import main
from idextract.schemas import RawDocumentText


class FakeSink:
    def __init__(self) -> None:
        self.corrections = []

    def record(self, *args, **kwargs):
        return "f" * 32

    def record_corrections(self, record_id, first_name_edited, last_name_edited, document_number_edited) -> None:
        self.corrections.append((record_id, first_name_edited, last_name_edited, document_number_edited))

    def summary(self):
        return {"total": 0}


def _png_bytes() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (20, 20), "white").save(buffer, format="PNG")
    return buffer.getvalue()


def test_health() -> None:
    client = TestClient(main.app)
    assert client.get("/health").json() == {"status": "ok"}


def test_country_profiles() -> None:
    client = TestClient(main.app)
    payload = client.get("/country_profiles").json()
    assert [country["code"] for country in payload["countries"]] == ["SV", "HN", "GT", "US", "MX", "CR", "NI"]
    assert "PASSPORT" in payload["document_type_patterns"]


def test_extract_text(monkeypatch, sv_dui_text) -> None:
    monkeypatch.setattr(main, "METRICS_SINK", FakeSink())
    client = TestClient(main.app)
    response = client.post("/extract", json={"text": sv_dui_text})
    assert response.status_code == 200
    result = response.json()["result"]
    assert result["first_name"]["value"] == "Christian Alexander"
    assert result["first_name"]["source"] == "LABEL_OCR"
    assert result["auto_document_number"] == "04567890-1"
    assert result["classification"]["country"] == "SV"
    assert result["metric_id"] == "f" * 32


def test_extract_blank_text(monkeypatch) -> None:
    monkeypatch.setattr(main, "METRICS_SINK", FakeSink())
    client = TestClient(main.app)
    result = client.post("/extract", json={"text": ""}).json()["result"]
    assert result["first_name"]["value"] is None
    assert result["classification"]["country"] == "UNKNOWN"
    assert result["metric_id"] is None


def test_extract_with_blocks(monkeypatch) -> None:
    monkeypatch.setattr(main, "METRICS_SINK", FakeSink())
    client = TestClient(main.app)
    payload = {"text": "555-0199", "blocks": [["PEREZ LOPEZ", "JUAN CARLOS"]]}
    result = client.post("/extract", json=payload).json()["result"]
    assert result["first_name"]["value"] == "Juan Carlos"
    assert result["auto_first_name"] is None


def test_extract_image(monkeypatch, sv_dui_text) -> None:
    monkeypatch.setattr(main, "METRICS_SINK", FakeSink())
    monkeypatch.setattr(main, "ocr_image", lambda image, lang=None: RawDocumentText.from_text(sv_dui_text))
    client = TestClient(main.app)
    response = client.post(
        "/extract_image",
        files={"document": ("dui.png", _png_bytes(), "image/png")},
        data={"lang": "spa"},
    )
    assert response.status_code == 200
    assert response.json()["result"]["last_name"]["value"] == "Arevalo Delgado"


def test_extract_image_rejects_garbage(monkeypatch) -> None:
    monkeypatch.setattr(main, "METRICS_SINK", FakeSink())
    client = TestClient(main.app)
    response = client.post("/extract_image", files={"document": ("x.png", b"not an image", "image/png")})
    assert response.status_code == 400
    assert "error" in response.json()


def test_corrections_are_forwarded(monkeypatch) -> None:
    sink = FakeSink()
    monkeypatch.setattr(main, "METRICS_SINK", sink)
    client = TestClient(main.app)
    record_id = "a" * 32
    response = client.post(f"/metrics/{record_id}/corrections", json={"last_name_edited": True})
    assert response.json() == {"record_id": record_id, "status": "queued"}
    assert sink.corrections == [(record_id, False, True, False)]


def test_metrics_summary(monkeypatch) -> None:
    monkeypatch.setattr(main, "METRICS_SINK", FakeSink())
    client = TestClient(main.app)
    assert client.get("/metrics/summary").json() == {"total": 0}
