"""
Attribute normalization for parsed playlist entries.

Country codes are canonicalised to upper-case ISO-3166 alpha-2 (or the
"unknown" sentinel) and categories are lower-case tags, either taken from the
playlist or inferred from the channel name with an ordered rule table.
"""

import re
from typing import List, Optional, Pattern, Tuple

from services.records import UNKNOWN_COUNTRY

DEFAULT_CATEGORY = "general"

# Ordered (pattern, category) rules - first match wins.
# Rules are evaluated against the lower-cased channel name.
CATEGORY_RULES: List[Tuple[Pattern, str]] = [
    (
        re.compile(
            r"\b(news|cnn|bbc|reuters|al jazeera|fox news|msnbc|sky news|nbc news|abc news|cbs news|cnbc|bloomberg)\b",
            re.IGNORECASE,
        ),
        "news",
    ),
    # Major US networks without an explicit "news" word
    (re.compile(r"^(nbc|abc|cbs|fox|cnn|msnbc)\b", re.IGNORECASE), "news"),
    (
        re.compile(
            r"\b(sport|espn|fox sports|eurosport|nfl|nba|mlb|soccer|football|tennis|golf|nhl|ufc|wwe)\b",
            re.IGNORECASE,
        ),
        "sports",
    ),
    (re.compile(r"\b(movie|cinema|film|hbo|netflix|disney|showtime|starz|amc|fx|tnt)\b", re.IGNORECASE), "movies"),
    (re.compile(r"\b(music|mtv|vibe|vevo|radio|hit|top|billboard)\b", re.IGNORECASE), "music"),
    (re.compile(r"\b(kids|cartoon|disney|nickelodeon|nick|pbs kids|cartoon network)\b", re.IGNORECASE), "kids"),
    (
        re.compile(r"\b(documentary|discovery|national geographic|history|science|nat geo)\b", re.IGNORECASE),
        "documentary",
    ),
    (re.compile(r"\b(comedy|funny|humor|comedy central)\b", re.IGNORECASE), "comedy"),
    (re.compile(r"\b(religion|god|church|bible|gospel|prayer|christian)\b", re.IGNORECASE), "religion"),
    (re.compile(r"\b(shopping|qvc|hsn|shop)\b", re.IGNORECASE), "shopping"),
    (re.compile(r"\b(weather|climate|weather channel)\b", re.IGNORECASE), "weather"),
]

# Multi-word country names used in playlist file paths
COUNTRY_NAME_CODES = {
    "united-states": "US",
    "united-kingdom": "GB",
    "united-kingdom-england": "GB",
    "united-kingdom-scotland": "GB",
    "united-kingdom-wales": "GB",
    "united-kingdom-northern-ireland": "GB",
}

_FILENAME_CODE_PATTERN = re.compile(r"[/\\]([a-z]{2})\.m3u", re.IGNORECASE)
_PREFIX_CODE_PATTERN = re.compile(r"(?:^|[/\\])([a-z]{2})[._-]", re.IGNORECASE)
_COUNTRY_CODE_PATTERN = re.compile(r"^[A-Za-z]{2}$")
_COUNTRY_LIST_SEPARATOR = re.compile(r"[;,|]")


def extract_country_from_path(file_path: Optional[str]) -> Optional[str]:
    """
    Infer a 2-letter country code from a playlist path.

    Tried in order:
    1. ``/xx.m3u`` filename (``streams/us.m3u`` -> ``US``)
    2. ``xx`` opening a path segment, followed by ``.``, ``_`` or ``-`` (``us_streams.m3u`` -> ``US``)
    3. known multi-word country names (``united-kingdom`` -> ``GB``)

    Returns:
        Upper-case code, or None when nothing matched
    """
    if not file_path:
        return None

    for pattern in (_FILENAME_CODE_PATTERN, _PREFIX_CODE_PATTERN):
        match = pattern.search(file_path)
        if match:
            return match.group(1).upper()

    lower_path = file_path.lower()
    for name, code in COUNTRY_NAME_CODES.items():
        if name in lower_path:
            return code

    return None


def normalize_country(value: Optional[str], file_path: Optional[str] = None) -> str:
    """
    Explicit attribute first, then the origin path, else "unknown".

    The attribute may list several countries ("US;CA;GB"); the first
    two-letter code wins. Values without such a code are ignored.
    """
    for token in _COUNTRY_LIST_SEPARATOR.split(value or ""):
        token = token.strip()
        if _COUNTRY_CODE_PATTERN.match(token):
            return token.upper()
    inferred = extract_country_from_path(file_path)
    if inferred:
        return inferred
    return UNKNOWN_COUNTRY


def infer_category(channel_name: Optional[str]) -> str:
    if not channel_name:
        return DEFAULT_CATEGORY
    name = channel_name.lower()
    for pattern, category in CATEGORY_RULES:
        if pattern.search(name):
            return category
    return DEFAULT_CATEGORY


def normalize_category(value: Optional[str], channel_name: Optional[str] = None) -> str:
    """Explicit group title (lower-cased) wins over name-based inference."""
    if value and value.strip():
        return value.strip().lower()
    return infer_category(channel_name)
