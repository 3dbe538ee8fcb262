from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable

# Printed field captions seen on Latin-American, US and European identity cards.
# Matching is case-insensitive and anchored at a word start, so "nombre" also
# covers "nombres" but "ine" never matches inside "line".
FIRST_NAME_LABELS = frozenset(
    {
        "nombres",
        "nombre",
        "primer nombre",
        "segundo nombre",
        "given names",
        "given name",
        "forenames",
        "forename",
        "first name",
        "first names",
        "firstname",
        "prenom",
        "prénom",
        "nome",
        "primeiro nome",
        "vorname",
    }
)

LAST_NAME_LABELS = frozenset(
    {
        "apellidos",
        "apellido",
        "primer apellido",
        "segundo apellido",
        "surname",
        "surnames",
        "last name",
        "family name",
        "lastname",
        "nom de famille",
        "apelido",
        "sobrenome",
        "nachname",
        "familienname",
    }
)

OTHER_LABEL_TOKENS = frozenset(
    {
        "nationality",
        "nacionalidad",
        "sexo",
        "sex",
        "gender",
        "genero",
        "género",
        "fecha",
        "date",
        "nacimiento",
        "birth",
        "expiry",
        "vencimiento",
        "expiration",
        "expedicion",
        "issuance",
        "lugar",
        "place",
        "estado civil",
        "civil status",
        "estatura",
        "height",
        "municipio",
        "departamento",
        "republica",
        "república",
        "ministerio",
        "gobierno",
        "registro",
        "identificacion",
        "identificación",
        "dui",
        "dni",
        "nui",
        "cedula",
        "cédula",
        "pasaporte",
        "passport",
        "firma",
        "signature",
        "huella",
        "registrador",
        "conocido",
        "known",
    }
)

NAME_LABEL_TOKENS = FIRST_NAME_LABELS | LAST_NAME_LABELS
ALL_LABEL_TOKENS = NAME_LABEL_TOKENS | OTHER_LABEL_TOKENS

# Captions announcing the document number, tolerant to common OCR confusions.
ID_LABEL_PATTERNS = (
    re.compile(r"n[uú]mero\s+[uú]nico", re.IGNORECASE),
    re.compile(r"unique\s+[il1]d", re.IGNORECASE),
    re.compile(r"[il1]dentity\s+number", re.IGNORECASE),
    re.compile(r"document[o]?\s+[uú]nico", re.IGNORECASE),
    re.compile(r"document\s+(?:number|n[o°º]\b)", re.IGNORECASE),
    re.compile(r"\bnui\b", re.IGNORECASE),
    re.compile(r"\bid\s+number\b", re.IGNORECASE),
    re.compile(r"c[eé]dula\s+de\s+id", re.IGNORECASE),
    re.compile(r"passport\s+n[o°º]", re.IGNORECASE),
    re.compile(r"pasaporte\s+n[o°º]", re.IGNORECASE),
    re.compile(r"n[uú]mero\s+de\s+identif", re.IGNORECASE),
)

_SEPARATORS_RE = re.compile(r"[/|\\]")


def normalise_line(line: str) -> str:
    lowered = _SEPARATORS_RE.sub(" ", line.lower())
    return re.sub(r"\s+", " ", lowered).strip()


@lru_cache(maxsize=None)
def _token_pattern(token: str) -> re.Pattern:
    return re.compile(r"(?<!\w)" + re.escape(token))


def contains_phrase(normalised: str, phrase: str) -> bool:
    """True when ``phrase`` occurs in ``normalised`` starting at a word boundary."""
    return _token_pattern(phrase).search(normalised) is not None


def contains_any(line: str, tokens: Iterable[str]) -> bool:
    normalised = normalise_line(line)
    return any(contains_phrase(normalised, token) for token in tokens)


def is_label_line(line: str) -> bool:
    return contains_any(line, ALL_LABEL_TOKENS)


def is_id_label_line(line: str) -> bool:
    return any(pattern.search(line) for pattern in ID_LABEL_PATTERNS)
