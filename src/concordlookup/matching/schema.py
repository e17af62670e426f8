"""Schémas et types pour le matching."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

MatchType = Literal["exact", "normalized", "fuzzy", "none"]


@dataclass(frozen=True)
class SimilarityMatch:
    """Un candidat retenu par find_best_matches."""

    value: str
    similarity: float
    index: int  # position dans la liste de candidats

    def __repr__(self) -> str:
        return f"SimilarityMatch(value={self.value!r}, similarity={self.similarity:.3f})"


@dataclass(frozen=True)
class SimilarityMetrics:
    """Mesure de performance d'un calcul de similarité."""

    algorithm: str
    score: float
    execution_time: float  # millisecondes
    comparisons: int = 1


@dataclass(frozen=True)
class LookupSuggestion:
    """Suggestion alternative pour un matching flou."""

    value: Any
    confidence: float
    reason: str
    source_row: dict[str, Any] | None = None


@dataclass(frozen=True)
class LookupMetrics:
    execution_time: float  # millisecondes
    comparisons: int


@dataclass(frozen=True)
class LookupResult:
    """Résultat d'une recherche d'une valeur dans un jeu de référence."""

    input_value: Any
    matched: bool
    confidence: float
    match_type: MatchType
    matched_value: Any = None
    derived_values: dict[str, Any] = field(default_factory=dict)
    suggestions: tuple[LookupSuggestion, ...] = ()
    matched_row: dict[str, Any] | None = None
    metrics: LookupMetrics | None = None


@dataclass(frozen=True)
class BatchMetrics:
    """Statistiques d'exécution d'un batch_lookup."""

    total_execution_time: float
    average_execution_time: float
    total_comparisons: int
    match_rate: float
    throughput: float  # opérations par seconde
