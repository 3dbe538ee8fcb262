from __future__ import annotations

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Tuple


@dataclass(frozen=True)
class CountryProfile:
    code: str
    keywords: Tuple[str, ...]
    id_pattern: Optional[re.Pattern] = None
    # Declaration order matters: the first type is the default for the country.
    document_types: Tuple[str, ...] = ()
    number_patterns: Tuple[re.Pattern, ...] = field(default_factory=tuple)


COUNTRY_PROFILES: Tuple[CountryProfile, ...] = (
    CountryProfile(
        code="SV",
        keywords=(
            "el salvador",
            "república de el salvador",
            "documento unico de identidad",
            "dui",
            "registro nacional de las personas",
            "rnpn",
            "numero unico de identidad",
            "unique id number",
        ),
        id_pattern=re.compile(r"\b\d{8}-\d\b"),
        document_types=("dui", "id_card"),
        number_patterns=(re.compile(r"\b\d{8}-\d\b"), re.compile(r"\b\d{9}\b")),
    ),
    CountryProfile(
        code="HN",
        keywords=(
            "honduras",
            "república de honduras",
            "registro nacional de las personas",
            "tarjeta de identidad",
            "identidad nacional",
        ),
        id_pattern=re.compile(r"\b\d{4}-\d{4}-\d{5}\b"),
        document_types=("id_card",),
        number_patterns=(re.compile(r"\b\d{4}-\d{4}-\d{5}\b"),),
    ),
    CountryProfile(
        code="GT",
        keywords=(
            "guatemala",
            "república de guatemala",
            "documento personal de identificación",
            "dpi",
            "renap",
        ),
        id_pattern=re.compile(r"\b\d{4}\s\d{5}\s\d{4}\b"),
        document_types=("dpi", "id_card"),
        number_patterns=(re.compile(r"\b\d{4}\s\d{5}\s\d{4}\b"),),
    ),
    CountryProfile(
        code="US",
        keywords=(
            "united states",
            "driver license",
            "driver's license",
            "state of",
            "department of motor vehicles",
            "dmv",
            "license no",
            "lic no",
            "id no",
        ),
        id_pattern=re.compile(r"\b[A-Z]\d{7,8}\b"),
        document_types=("driver_license", "id_card"),
    ),
    CountryProfile(
        code="MX",
        keywords=(
            "mexico",
            "méxico",
            "estados unidos mexicanos",
            "credencial para votar",
            "ine",
            "ife",
            "curp",
            "rfc",
            "clave de elector",
        ),
        # CURP
        id_pattern=re.compile(r"\b[A-Z]{4}\d{6}[HM][A-Z]{5}[A-Z0-9]\d\b"),
        document_types=("id_card", "voter_card"),
        number_patterns=(re.compile(r"\b[A-Z]{4}\d{6}[HM][A-Z]{5}[A-Z0-9]\d\b"),),
    ),
    CountryProfile(
        code="CR",
        keywords=(
            "costa rica",
            "república de costa rica",
            "tribunal supremo de elecciones",
            "cédula de identidad",
        ),
        id_pattern=re.compile(r"\b\d-\d{4}-\d{4}\b"),
        document_types=("cedula", "id_card"),
        number_patterns=(re.compile(r"\b\d-\d{4}-\d{4}\b"),),
    ),
    CountryProfile(
        code="NI",
        keywords=(
            "nicaragua",
            "república de nicaragua",
            "consejo supremo electoral",
            "cedula de identidad ciudadana",
        ),
        id_pattern=re.compile(r"\b\d{3}-\d{6}-\d{4}[A-Z]\b"),
        document_types=("cedula", "id_card"),
        number_patterns=(re.compile(r"\b\d{3}-\d{6}-\d{4}[A-Z]\b"),),
    ),
)

COUNTRY_REGISTRY: Mapping[str, CountryProfile] = MappingProxyType(
    {profile.code: profile for profile in COUNTRY_PROFILES}
)

DOCUMENT_TYPE_NUMBER_PATTERNS: Mapping[str, Tuple[re.Pattern, ...]] = MappingProxyType(
    {"PASSPORT": (re.compile(r"\b[A-Z]{1,2}\d{6,9}\b"),)}
)

GENERIC_NUMBER_PATTERNS: Tuple[re.Pattern, ...] = (
    re.compile(r"\b\d{8}-\d\b"),
    re.compile(r"\b[A-Z]{1,2}\d{6,9}\b"),
    re.compile(r"\b\d{7,13}\b"),
)


def iter_profiles() -> Iterable[CountryProfile]:
    return COUNTRY_PROFILES


def get_profile(code: str) -> Optional[CountryProfile]:
    return COUNTRY_REGISTRY.get(code)


def specific_number_patterns(country: str, document_type: str) -> Tuple[re.Pattern, ...]:
    """Country patterns followed by document-type patterns, without the generic fallbacks."""
    profile = get_profile(country)
    patterns: Tuple[re.Pattern, ...] = profile.number_patterns if profile else ()
    return patterns + DOCUMENT_TYPE_NUMBER_PATTERNS.get(document_type, ())


def country_profiles_payload() -> Dict[str, object]:
    return {
        "countries": [
            {
                "code": profile.code,
                "keywords": list(profile.keywords),
                "id_pattern": profile.id_pattern.pattern if profile.id_pattern else None,
                "document_types": list(profile.document_types),
                "number_patterns": [pattern.pattern for pattern in profile.number_patterns],
            }
            for profile in COUNTRY_PROFILES
        ],
        "document_type_patterns": {
            doc_type: [pattern.pattern for pattern in patterns]
            for doc_type, patterns in DOCUMENT_TYPE_NUMBER_PATTERNS.items()
        },
        "generic_patterns": [pattern.pattern for pattern in GENERIC_NUMBER_PATTERNS],
    }
