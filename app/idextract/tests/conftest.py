import sys
from pathlib import Path
from typing import Callable, List

import pytest

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from idextract.pipeline.mrz import compute_check_digit  # noqa: E402

ICAO_TD3 = [
    "P<UTOERIKSSON<<ANNA<MARIA<<<<<<<<<<<<<<<<<<<",
    "L898902C36UTO7408122F1204159ZE184226B<<<<<10",
]
ICAO_TD2 = [
    "I<UTOERIKSSON<<ANNA<MARIA<<<<<<<<<<<",
    "D231458907UTO7408122F1204159<<<<<<<6",
]
ICAO_TD1 = [
    "I<UTOD231458907<<<<<<<<<<<<<<<",
    "7408122F1204159UTO<<<<<<<<<<<6",
    "ERIKSSON<<ANNA<MARIA<<<<<<<<<<",
]

SV_DUI_TEXT = "\n".join(
    [
        "REPUBLICA DE EL SALVADOR",
        "DOCUMENTO UNICO DE IDENTIDAD",
        "Apellidos / Surname",
        "AREVALO DELGADO",
        "Nombres / Given Names",
        "CHRISTIAN ALEXANDER",
        "Fecha de Nacimiento / Date of Birth",
        "15/03/1990",
        "Número Único de Identidad / Unique ID Number",
        "04567890-1",
    ]
)


def _cd(data: str) -> str:
    return str(compute_check_digit(data))


def _build_td3(
    surname: str,
    given: str,
    document_number: str,
    nationality: str = "UTO",
    birth: str = "850315",
    sex: str = "M",
    expiry: str = "300101",
) -> List[str]:
    line1 = ("P<" + nationality + surname + "<<" + given.replace(" ", "<")).ljust(44, "<")[:44]
    doc = document_number.ljust(9, "<")
    line2 = doc + _cd(doc) + nationality + birth + _cd(birth) + sex + expiry + _cd(expiry) + "<" * 14 + "<"
    line2 += _cd(line2[0:10] + line2[13:20] + line2[21:43])
    return [line1, line2]


@pytest.fixture
def build_td3() -> Callable[..., List[str]]:
    return _build_td3


@pytest.fixture
def sv_dui_text() -> str:
    return SV_DUI_TEXT


@pytest.fixture
def icao_td3() -> List[str]:
    return list(ICAO_TD3)


@pytest.fixture
def icao_td2() -> List[str]:
    return list(ICAO_TD2)


@pytest.fixture
def icao_td1() -> List[str]:
    return list(ICAO_TD1)
