"""String normalization shared by the field mapper and the matching funnel.

Every function here is total: it accepts any string (or None) and returns a
string, never raising. Empty string is the "no usable value" result.
"""

import re
from typing import Iterable

# Anything that is not a letter, digit or whitespace. \w admits "_", so it is
# listed explicitly.
_SYMBOLS_RE = re.compile(r"[^\w\s]|_")
_WHITESPACE_RE = re.compile(r"\s+")
_NON_DIGIT_RE = re.compile(r"[^0-9]")
_ALL_ZERO_RE = re.compile(r"^0+$")

NAME_STOP_WORDS = frozenset({"the", "and", "&"})

PHONE_MIN_DIGITS = 10
PHONE_MAX_DIGITS = 11


def _text(value: str | None) -> str:
    return value if isinstance(value, str) else ("" if value is None else str(value))


def remove_whitespace(value: str | None) -> str:
    """Remove every whitespace character."""
    return _WHITESPACE_RE.sub("", _text(value))


def remove_all_symbols(value: str | None) -> str:
    """Remove everything except letters, digits and whitespace."""
    return _SYMBOLS_RE.sub("", _text(value))


def filter_words(words: Iterable[str], stop_words: Iterable[str]) -> list[str]:
    """Drop empty tokens and any token found in *stop_words*."""
    stop = set(stop_words)
    return [w for w in words if w and w not in stop]


def city_keywords(value: str | None) -> list[str]:
    """Symbol-stripped, lower-cased whitespace tokens of a city."""
    return remove_all_symbols(value).lower().split()


def normalize_city(value: str | None) -> str:
    return remove_all_symbols(value).lower()


def name_keywords(value: str | None) -> list[str]:
    """Keywords of a venue name: symbols removed, lower-cased, stop-words dropped.

    >>> name_keywords("The Phase One Club")
    ['phase', 'one', 'club']
    """
    tokens = remove_all_symbols(value).lower().split()
    return filter_words(tokens, NAME_STOP_WORDS)


def normalize_postal_code(value: str | None) -> str:
    """Strip all whitespace from a postal code. Case is left unchanged."""
    return remove_whitespace(value)


def normalize_phone(value: str | None) -> str:
    """Clean a phone number to bare digits, or blank it when invalid.

    Whitespace and hyphens are removed. The result is ``""`` when the value
    is empty, still contains a non-digit, is all zeros, or has a digit count
    outside [10, 11]. Applying it twice gives the same result as once.
    """
    phone = remove_whitespace(value).replace("-", "")
    if not phone:
        return ""
    if _NON_DIGIT_RE.search(phone):
        return ""
    if _ALL_ZERO_RE.match(phone):
        return ""
    if not PHONE_MIN_DIGITS <= len(phone) <= PHONE_MAX_DIGITS:
        return ""
    return phone
