from __future__ import annotations

from idextract.pipeline import mrz
from idextract.pipeline.mrz import compute_check_digit, extract_candidates, parse, verify_check_digit


def test_passport_mrz_parser(icao_td3) -> None:
    record = parse("\n".join(icao_td3))
    assert record is not None
    assert record.mrz_format == "TD3"
    assert record.last_name == "Eriksson"
    assert record.first_name == "Anna Maria"
    assert record.document_number == "L898902C3"
    assert record.issuing_country == "UTO"
    assert record.nationality == "UTO"
    assert record.sex == "F"
    assert record.personal_number == "ZE184226B"
    assert record.date_of_birth == "740812"
    assert record.date_of_birth_iso == "1974-08-12"
    assert record.expiry_date_iso == "2012-04-15"
    assert (record.check_digits_ok, record.check_digits_total) == (4, 4)
    assert record.reliable


def test_td2_and_td1_layouts(icao_td2, icao_td1) -> None:
    td2 = parse("\n".join(icao_td2))
    assert td2 is not None
    assert td2.mrz_format == "TD2"
    assert td2.document_number == "D23145890"
    assert (td2.last_name, td2.first_name) == ("Eriksson", "Anna Maria")
    assert td2.check_digits_ok == 4

    td1 = parse("\n".join(icao_td1))
    assert td1 is not None
    assert td1.mrz_format == "TD1"
    assert td1.document_number == "D23145890"
    assert td1.nationality == "UTO"
    assert (td1.last_name, td1.first_name) == ("Eriksson", "Anna Maria")
    assert (td1.check_digits_ok, td1.check_digits_total) == (4, 4)


def test_synthetic_td3_round_trip(build_td3) -> None:
    lines = build_td3("SMITH", "JOHN MICHAEL", "123456789")
    record = parse("REPUBLIC OF UTOPIA\nPASSPORT\n" + "\n".join(lines))
    assert record is not None
    assert record.last_name == "Smith"
    assert record.first_name == "John Michael"
    assert record.document_number == "123456789"
    assert record.check_digits_ok == 4
    assert record.reliable
    assert record.confidence >= 0.90


def test_flipping_a_document_digit_costs_exactly_one_check(build_td3) -> None:
    lines = build_td3("SMITH", "JOHN MICHAEL", "123456789")
    baseline = parse("\n".join(lines))
    flipped_line = lines[1][:2] + "4" + lines[1][3:]
    flipped = parse("\n".join([lines[0], flipped_line]))
    assert baseline is not None and flipped is not None
    assert flipped.check_digits_ok == baseline.check_digits_ok - 1


def test_numeric_zones_are_ocr_corrected(build_td3) -> None:
    lines = build_td3("SMITH", "JOHN", "123456789", birth="850315")
    # 8 -> B and 5 -> S are classic OCR confusions inside the birth date.
    noisy = lines[1][:13] + "BS0315" + lines[1][19:]
    record = parse("\n".join([lines[0], noisy]))
    assert record is not None
    assert record.date_of_birth == "850315"
    assert record.check_digits_ok == 4


def test_document_number_keeps_letters_when_check_digit_agrees(icao_td3) -> None:
    record = parse("\n".join(icao_td3))
    assert record is not None
    assert record.document_number.startswith("L")


def test_filler_check_digit_counts_as_passing() -> None:
    assert verify_check_digit("ANYTHING", "<")
    assert not verify_check_digit("740812", "X")
    assert compute_check_digit("740812") == 2
    assert compute_check_digit("L898902C3") == 6


def test_embedded_mrz_without_line_breaks(icao_td3) -> None:
    text = "PASSPORT " + " ".join(icao_td3)
    record = parse(text)
    assert record is not None
    assert record.document_number == "L898902C3"
    assert record.check_digits_ok == 4


def test_consecutive_candidates_come_before_embedded(icao_td3) -> None:
    candidates = extract_candidates("\n".join(icao_td3))
    assert candidates[0] == tuple(icao_td3)


def test_rejects_text_without_mrz() -> None:
    assert parse("") is None
    assert parse("REPUBLICA DE EL SALVADOR\nAREVALO DELGADO") is None


def test_candidate_without_names_or_valid_digits_is_rejected() -> None:
    line1 = "P<UTO" + "<" * 39
    line2 = "1234567891UTO8503151M3001011" + "<" * 14 + "12"
    assert mrz.parse_candidate((line1, line2)) is None


def test_non_ascii_digits_are_dropped_from_mrz_lines(build_td3) -> None:
    text = "\n".join(["AREA TOTAL DEL INMUEBLE 120m² REGISTRADO"] * 3)
    assert extract_candidates(text) == [("AREATOTALDELINMUEBLE120MREGIST",) * 3]
    parse(text)

    td3 = build_td3("SMITH", "JOHN", "123456789")
    superscript = td3[1][:9] + "²" + td3[1][10:]
    assert parse("\n".join([td3[0], superscript])) is None


def test_check_digits_only_accept_ascii_digits() -> None:
    assert not verify_check_digit("123456", "²")
    assert compute_check_digit("1²") == compute_check_digit("1<")


def test_embedded_windows_aligned_with_check_digits_come_first(icao_td3) -> None:
    candidates = extract_candidates("PASSPORT " + " ".join(icao_td3))
    assert len(candidates) > 1
    assert candidates[0] == tuple(icao_td3)
    assert any(candidate[0].startswith("PASSPORTP<UTO") for candidate in candidates[1:])
