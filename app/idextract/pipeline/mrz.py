from __future__ import annotations

import logging
import re
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from ..schemas import MrzRecord
from .normalize import normalize_name

LOGGER = logging.getLogger(__name__)

FILLER = "<"
TD1, TD2, TD3 = "TD1", "TD2", "TD3"
TD1_WIDTH, TD2_WIDTH, TD3_WIDTH = 30, 36, 44
MIN_MRZ_LINE = 30
MRZ_CHAR_RATIO = 0.85
# ISO 9303 document codes: passports and visas use TD3, cards use TD1.
TD3_CODES = frozenset("PV")
TD1_CODES = frozenset("IAC")

CHECK_WEIGHTS = (7, 3, 1)
TO_DIGIT: Dict[str, str] = {"O": "0", "I": "1", "L": "1", "S": "5", "B": "8", "G": "6", "Z": "2", "T": "7"}
TO_LETTER: Dict[str, str] = {"0": "O", "1": "I"}

FLAT_RE = re.compile(r"[^A-Z0-9<]")


def _positions(*spans: Tuple[int, int]) -> FrozenSet[int]:
    return frozenset(idx for start, end in spans for idx in range(start, end))


# (numeric positions, alphabetic positions) per line; anything else is left as read.
TD3_ZONES = (
    (frozenset(), _positions((0, 44))),
    (_positions((9, 10), (13, 20), (21, 28), (42, 44)), _positions((10, 13))),
)
TD2_ZONES = (
    (frozenset(), _positions((0, 36))),
    (_positions((9, 10), (13, 20), (21, 28), (35, 36)), _positions((10, 13))),
)
TD1_ZONES = (
    (_positions((14, 15)), _positions((0, 5))),
    (_positions((0, 7), (8, 15), (29, 30)), _positions((15, 18))),
    (frozenset(), _positions((0, 30))),
)


def _is_digit(char: str) -> bool:
    return "0" <= char <= "9"


def _char_value(char: str) -> int:
    if _is_digit(char):
        return int(char)
    if "A" <= char <= "Z":
        return ord(char) - 55
    return 0


def compute_check_digit(data: str) -> int:
    total = 0
    for i, char in enumerate(data):
        total += _char_value(char) * CHECK_WEIGHTS[i % 3]
    return total % 10


def verify_check_digit(data: str, check_digit: str) -> bool:
    if check_digit == FILLER:
        return True
    if not _is_digit(check_digit):
        return False
    return compute_check_digit(data) == int(check_digit)


def _clean_line(raw: str) -> str:
    return FLAT_RE.sub("", raw.upper())


def _is_mrz_like(line: str) -> bool:
    if len(line) < MIN_MRZ_LINE:
        return False
    mrz_chars = sum(1 for ch in line if "A" <= ch <= "Z" or _is_digit(ch) or ch == FILLER)
    return mrz_chars / len(line) >= MRZ_CHAR_RATIO


def _fit(line: str, width: int) -> str:
    return line[:width].ljust(width, FILLER)


def _consecutive_candidates(lines: List[str]) -> List[Tuple[str, ...]]:
    candidates: List[Tuple[str, ...]] = []
    for i, line in enumerate(lines):
        triple = lines[i : i + 3]
        if len(triple) == 3 and all(MIN_MRZ_LINE <= len(item) < TD2_WIDTH for item in triple):
            candidates.append(tuple(_fit(item, TD1_WIDTH) for item in triple))
        pair = lines[i : i + 2]
        if len(pair) < 2:
            continue
        if all(TD2_WIDTH <= len(item) < TD3_WIDTH for item in pair):
            candidates.append(tuple(_fit(item, TD2_WIDTH) for item in pair))
        elif all(len(item) >= TD3_WIDTH for item in pair):
            candidates.append(tuple(item[:TD3_WIDTH] for item in pair))
    return candidates


def _window(flat: str, start: int, width: int, count: int) -> Optional[Tuple[str, ...]]:
    end = start + width * count
    if end > len(flat):
        return None
    chunk = tuple(flat[start + width * n : start + width * (n + 1)] for n in range(count))
    if not all(FILLER in item and _is_mrz_like(item) for item in chunk):
        return None
    return chunk


def _alignment_score(window: Tuple[str, ...]) -> int:
    if len(window) == 2:
        line = window[1]
        checks = ((line[0:9], line[9]), (line[13:19], line[19]), (line[21:27], line[27]))
    else:
        checks = ((window[0][5:14], window[0][14]), (window[1][0:6], window[1][6]), (window[1][8:14], window[1][14]))
    return sum(1 for data, digit in checks if _is_digit(digit) and verify_check_digit(data, digit))


def _embedded_candidates(text: str) -> List[Tuple[str, ...]]:
    flat = FLAT_RE.sub("", text.upper())
    found: List[Tuple[int, int, Tuple[str, ...]]] = []
    for start, char in enumerate(flat):
        if char in TD3_CODES:
            window = _window(flat, start, TD3_WIDTH, 2)
        elif char in TD1_CODES:
            window = _window(flat, start, TD1_WIDTH, 3)
        else:
            continue
        if window:
            found.append((-_alignment_score(window), start, window))
    # Windows cut at the wrong offset rarely satisfy any check digit.
    found.sort(key=lambda item: (item[0], item[1]))
    return [window for _, _, window in found]


def extract_candidates(text: str) -> List[Tuple[str, ...]]:
    """Fixed-width MRZ line groups in the order they are tried."""
    if not text or not text.strip():
        return []
    lines = [line for line in (_clean_line(raw) for raw in text.splitlines()) if _is_mrz_like(line)]
    return _consecutive_candidates(lines) + _embedded_candidates(text)


def _correct(line: str, zones: Tuple[FrozenSet[int], FrozenSet[int]]) -> str:
    numeric, alpha = zones
    chars = list(line)
    for idx, char in enumerate(chars):
        if idx in numeric:
            chars[idx] = TO_DIGIT.get(char, char)
        elif idx in alpha:
            chars[idx] = TO_LETTER.get(char, char)
    return "".join(chars)


def _resolve_document_number(raw: str, check_digit: str) -> Tuple[str, bool]:
    # Document numbers are alphanumeric, so digit substitution is kept only
    # when it is what makes the check digit agree.
    if verify_check_digit(raw, check_digit):
        return raw, True
    corrected = "".join(TO_DIGIT.get(char, char) for char in raw)
    if corrected != raw and verify_check_digit(corrected, check_digit):
        return corrected, True
    return raw, False


def _tally(field_checks: Iterable[bool], composite_ok: bool) -> Tuple[int, int]:
    checks = list(field_checks)
    failed = checks.count(False)
    passed = len(checks) - failed
    # A composite mismatch explained by one failed field is counted once.
    if composite_ok or failed == 1:
        passed += 1
    return passed, len(checks) + 1


def _decode_names(zone: str) -> Tuple[str, str]:
    idx = zone.find(FILLER * 2)
    if idx >= 0:
        primary, secondary = zone[:idx], zone[idx + 2 :]
    else:
        primary, secondary = zone, ""
    return _decode_name(primary), _decode_name(secondary)


def _decode_name(raw: str) -> str:
    return normalize_name(raw.replace(FILLER, " ")) or ""


def _trim(value: str) -> str:
    return value.strip(FILLER)


def _parse_td3(raw_lines: Tuple[str, ...]) -> MrzRecord:
    line1 = _correct(raw_lines[0], TD3_ZONES[0])
    line2 = _correct(raw_lines[1], TD3_ZONES[1])
    document_number, doc_ok = _resolve_document_number(line2[0:9], line2[9])
    line2 = document_number + line2[9:]
    last_name, first_name = _decode_names(line1[5:44])
    passed, total = _tally(
        (doc_ok, verify_check_digit(line2[13:19], line2[19]), verify_check_digit(line2[21:27], line2[27])),
        verify_check_digit(line2[0:10] + line2[13:20] + line2[21:43], line2[43]),
    )
    return MrzRecord(
        document_type=_trim(line1[0:2]),
        issuing_country=_trim(line1[2:5]),
        last_name=last_name,
        first_name=first_name,
        document_number=_trim(document_number),
        nationality=_trim(line2[10:13]),
        date_of_birth=line2[13:19],
        sex=_trim(line2[20]),
        expiry_date=line2[21:27],
        personal_number=_trim(line2[28:42]),
        mrz_format=TD3,
        check_digits_ok=passed,
        check_digits_total=total,
        raw_lines=raw_lines,
    )


def _parse_td2(raw_lines: Tuple[str, ...]) -> MrzRecord:
    line1 = _correct(raw_lines[0], TD2_ZONES[0])
    line2 = _correct(raw_lines[1], TD2_ZONES[1])
    document_number, doc_ok = _resolve_document_number(line2[0:9], line2[9])
    line2 = document_number + line2[9:]
    last_name, first_name = _decode_names(line1[5:36])
    passed, total = _tally(
        (doc_ok, verify_check_digit(line2[13:19], line2[19]), verify_check_digit(line2[21:27], line2[27])),
        verify_check_digit(line2[0:10] + line2[13:20] + line2[21:35], line2[35]),
    )
    return MrzRecord(
        document_type=_trim(line1[0:2]),
        issuing_country=_trim(line1[2:5]),
        last_name=last_name,
        first_name=first_name,
        document_number=_trim(document_number),
        nationality=_trim(line2[10:13]),
        date_of_birth=line2[13:19],
        sex=_trim(line2[20]),
        expiry_date=line2[21:27],
        personal_number=_trim(line2[28:35]),
        mrz_format=TD2,
        check_digits_ok=passed,
        check_digits_total=total,
        raw_lines=raw_lines,
    )


def _parse_td1(raw_lines: Tuple[str, ...]) -> MrzRecord:
    line1 = _correct(raw_lines[0], TD1_ZONES[0])
    line2 = _correct(raw_lines[1], TD1_ZONES[1])
    line3 = _correct(raw_lines[2], TD1_ZONES[2])
    document_number, doc_ok = _resolve_document_number(line1[5:14], line1[14])
    line1 = line1[0:5] + document_number + line1[14:]
    last_name, first_name = _decode_names(line3)
    passed, total = _tally(
        (doc_ok, verify_check_digit(line2[0:6], line2[6]), verify_check_digit(line2[8:14], line2[14])),
        verify_check_digit(line1[5:30] + line2[0:7] + line2[8:15] + line2[18:29], line2[29]),
    )
    return MrzRecord(
        document_type=_trim(line1[0:2]),
        issuing_country=_trim(line1[2:5]),
        last_name=last_name,
        first_name=first_name,
        document_number=_trim(document_number),
        nationality=_trim(line2[15:18]),
        date_of_birth=line2[0:6],
        sex=_trim(line2[7]),
        expiry_date=line2[8:14],
        personal_number=_trim(line1[15:30]),
        mrz_format=TD1,
        check_digits_ok=passed,
        check_digits_total=total,
        raw_lines=raw_lines,
    )


def parse_candidate(lines: Tuple[str, ...]) -> Optional[MrzRecord]:
    """Parse one fixed-width line group, or None when it is not an acceptable MRZ."""
    widths = tuple(len(line) for line in lines)
    if widths == (TD3_WIDTH, TD3_WIDTH):
        record = _parse_td3(lines)
    elif widths == (TD2_WIDTH, TD2_WIDTH):
        record = _parse_td2(lines)
    elif widths == (TD1_WIDTH, TD1_WIDTH, TD1_WIDTH):
        record = _parse_td1(lines)
    else:
        LOGGER.debug("Skipping MRZ candidate with line widths %s", widths)
        return None
    if record.check_digits_ok == 0 and not record.last_name and not record.first_name:
        LOGGER.debug("Rejected %s candidate: no check digit passed and no name decoded", record.mrz_format)
        return None
    return record


def parse(text: str) -> Optional[MrzRecord]:
    """Return the first acceptable MRZ found in ``text``."""
    for candidate in extract_candidates(text):
        record = parse_candidate(candidate)
        if record is not None:
            LOGGER.info(
                "MRZ detected (%s, %d/%d check digits)",
                record.mrz_format,
                record.check_digits_ok,
                record.check_digits_total,
            )
            return record
    LOGGER.debug("No MRZ found in %d characters of text", len(text or ""))
    return None
