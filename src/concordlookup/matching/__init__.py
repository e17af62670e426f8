"""Module de matching : scores de similarité et moteur de recherche."""

from concordlookup.matching.engine import LookupMatchingEngine, perform_lookup
from concordlookup.matching.schema import LookupResult, LookupSuggestion, SimilarityMatch
from concordlookup.matching.scorers import (
    combined_similarity,
    find_best_matches,
    jaro_similarity,
    jaro_winkler_similarity,
    levenshtein_distance,
    levenshtein_similarity,
)

__all__ = [
    "LookupMatchingEngine",
    "LookupResult",
    "LookupSuggestion",
    "SimilarityMatch",
    "combined_similarity",
    "find_best_matches",
    "jaro_similarity",
    "jaro_winkler_similarity",
    "levenshtein_distance",
    "levenshtein_similarity",
    "perform_lookup",
]
