from __future__ import annotations

import pytest

from idextract.country_profiles import COUNTRY_PROFILES, COUNTRY_REGISTRY, DOCUMENT_TYPE_NUMBER_PATTERNS
from idextract.pipeline.classify import classify


def test_blank_text_is_unknown() -> None:
    for text in (None, "", "   \n  "):
        result = classify(text)
        assert result.country == "UNKNOWN"
        assert result.document_type == "UNKNOWN"
        assert result.confidence == 0.0
        assert result.signals == ()
        assert not result.reliable


def test_salvadoran_dui(sv_dui_text) -> None:
    result = classify(sv_dui_text)
    assert result.country == "SV"
    assert result.document_type == "DUI"
    assert result.reliable
    assert result.high_confidence
    assert "id_regex_SV(+0.25)" in result.signals
    assert "country_SV(+0.50)" in result.signals
    assert any(signal.startswith("structural_labels(") for signal in result.signals)


def test_passport_with_mrz(build_td3) -> None:
    text = "PASSPORT\n" + "\n".join(build_td3("SMITH", "JOHN", "123456789"))
    result = classify(text)
    assert result.document_type == "PASSPORT"
    assert "mrz_detected(+0.30)" in result.signals
    assert "passport_keyword(+0.20)" in result.signals
    assert result.reliable


def test_driver_license_keyword() -> None:
    result = classify("STATE OF OREGON\nDRIVER LICENSE\nDL A1234567")
    assert result.document_type == "DRIVER_LICENSE"
    assert result.country == "US"


def test_keywords_match_at_word_start_only() -> None:
    # "ine" is a Mexican keyword but must not fire inside "line" or "online".
    result = classify("first line\nonline renewal")
    assert result.country == "UNKNOWN"
    assert result.document_type == "ID_CARD"


def test_confidence_is_clamped() -> None:
    text = "\n".join(
        [
            "PASSPORT PASAPORTE",
            "REPUBLICA DE EL SALVADOR DUI RNPN",
            "Apellidos Surname Nombres Given Name",
            "Fecha de Nacimiento Date of Birth Expiry Vencimiento",
            "04567890-1",
            "P<SLVPEREZ<<ANA<<<<<<<<<<<<<<<<<<<<<<<<<<<<<",
            "A123456780SLV9001011F3001011<<<<<<<<<<<<<<00",
        ]
    )
    result = classify(text)
    assert 0.0 <= result.confidence <= 1.0
    assert result.confidence == 1.0


def test_profile_tables_are_read_only() -> None:
    assert isinstance(COUNTRY_PROFILES, tuple)
    with pytest.raises(TypeError):
        COUNTRY_REGISTRY["XX"] = COUNTRY_PROFILES[0]
    with pytest.raises(TypeError):
        DOCUMENT_TYPE_NUMBER_PATTERNS["PASSPORT"] = ()
    assert COUNTRY_REGISTRY["SV"] is COUNTRY_PROFILES[0]
