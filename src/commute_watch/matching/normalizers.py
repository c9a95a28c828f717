import re
import unicodedata
from functools import lru_cache

from rapidfuzz import fuzz

# Swedish station-name abbreviations, applied to lowercased text
ABBREVIATION_PATTERNS = [
    (re.compile(r"\bs:t\b"), "sankt"),
    (re.compile(r"\bs:ta\b"), "sankta"),
    (re.compile(r"\bst\.\s"), "sankt "),
    (re.compile(r"\bc\.?$"), "central"),  # "Stockholm C"
    (re.compile(r"\bstn\b"), "station"),
    (re.compile(r"\bsthlm\b"), "stockholm"),
]

# Tokens that say nothing about which station is meant
GENERIC_TOKENS = frozenset({
    "station", "stationen", "centralstation", "terminal", "busstation",
    "t-bana", "tunnelbana", "pendeltag", "hallplats",
})

SEPARATORS = re.compile(r"[\s/\-,()]+")


@lru_cache(maxsize=4096)
def remove_accents(text: str) -> str:
    """Remove accents from text.

    Example: "Södra" -> "Sodra"
    """
    # Normalize to NFD (decomposes accented characters)
    normalized = unicodedata.normalize("NFD", text)
    # Remove combining diacritical marks
    return "".join(c for c in normalized if unicodedata.category(c) != "Mn")


@lru_cache(maxsize=4096)
def normalize_text(text: str) -> str:
    """Normalize a station query or name for caching and matching.

    - Converts to lowercase
    - Removes accents
    - Expands abbreviations
    - Normalizes whitespace

    Example: "  S:t Eriksplan " -> "sankt eriksplan"
    Example: "Stockholm Södra" -> "stockholm sodra"
    """
    result = remove_accents(text.lower().strip())

    for pattern, replacement in ABBREVIATION_PATTERNS:
        result = pattern.sub(replacement, result)

    return " ".join(result.split())


def meaningful_tokens(text: str) -> set[str]:
    """Tokens of the normalized text, minus generic station words.

    Example: "Flemingsberg station" -> {"flemingsberg"}
    """
    tokens = SEPARATORS.split(normalize_text(text))
    return {t for t in tokens if len(t) > 1 and t not in GENERIC_TOKENS}


def station_match_score(query: str, station_name: str) -> float:
    """Score how well a station name matches a free-text query (0-100).

    Blends token_set_ratio (word order) with partial_ratio (prefixes such as
    "flemings" for "Flemingsberg"). A query whose meaningful tokens all occur
    in the name scores 100.
    """
    query_normalized = normalize_text(query)
    name_normalized = normalize_text(station_name)
    if not query_normalized or not name_normalized:
        return 0.0

    query_tokens = meaningful_tokens(query)
    if query_tokens and query_tokens <= meaningful_tokens(station_name):
        return 100.0

    token_score = fuzz.token_set_ratio(query_normalized, name_normalized)
    partial_score = fuzz.partial_ratio(query_normalized, name_normalized)
    return token_score * 0.6 + partial_score * 0.4
