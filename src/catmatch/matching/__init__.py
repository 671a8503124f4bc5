"""Module de matching contre le catalogue."""

from catmatch.matching.matcher import MatchError, classify, match, select_best
from catmatch.matching.schema import (
    CatalogEntry,
    Classification,
    MatchCandidate,
    MaterialRecord,
    MatchResult,
)

__all__ = [
    "CatalogEntry",
    "Classification",
    "MatchCandidate",
    "MatchError",
    "MatchResult",
    "MaterialRecord",
    "classify",
    "match",
    "select_best",
]
