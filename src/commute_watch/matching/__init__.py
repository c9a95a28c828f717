"""Text normalization and fuzzy matching for station names."""

from commute_watch.matching.normalizers import normalize_text, remove_accents, station_match_score

__all__ = [
    "normalize_text",
    "remove_accents",
    "station_match_score",
]
