"""Language code normalization for the upstream JSON-RPC API."""

from typing import Optional

AUTO = "auto"

LANGUAGE_NAMES = {
    "chinese": "ZH",
    "english": "EN",
    "spanish": "ES",
    "french": "FR",
    "german": "DE",
    "italian": "IT",
    "japanese": "JA",
    "portuguese": "PT",
    "russian": "RU",
    "dutch": "NL",
    "polish": "PL",
    "swedish": "SV",
    "danish": "DA",
    "norwegian": "NB",
    "finnish": "FI",
    "czech": "CS",
    "slovak": "SK",
    "slovenian": "SL",
    "estonian": "ET",
    "latvian": "LV",
    "lithuanian": "LT",
    "hungarian": "HU",
    "romanian": "RO",
    "bulgarian": "BG",
    "greek": "EL",
    "turkish": "TR",
    "ukrainian": "UK",
    "korean": "KO",
    "indonesian": "ID",
}


def normalize_language_code(lang_code: Optional[str]) -> str:
    """Normalize a user supplied language to the upstream's code.

    Empty values and "auto" (any case) map to "auto", known English language
    names map to their ISO code, anything else is upper-cased verbatim.

    >>> normalize_language_code("German")
    'DE'
    >>> normalize_language_code("pt-br")
    'PT-BR'
    """
    if not lang_code:
        return AUTO
    normalized = str(lang_code).lower()
    if normalized == AUTO:
        return AUTO
    return LANGUAGE_NAMES.get(normalized, normalized.upper())
