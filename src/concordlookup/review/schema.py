"""Types de la revue des correspondances floues."""

from __future__ import annotations

import re
from dataclasses import dataclass, field, fields, replace
from typing import Any, Literal

ReviewStatus = Literal["pending", "accepted", "rejected", "manual"]
EventKind = Literal["accept", "reject", "manual", "batchAccept", "batchReject"]

VALID_STATUSES: frozenset[str] = frozenset({"pending", "accepted", "rejected", "manual"})

# Bornes des tranches de confiance, de la plus haute à la plus basse
CONFIDENCE_BUCKETS: tuple[tuple[float, float], ...] = (
    (0.9, 1.0),
    (0.8, 0.9),
    (0.7, 0.8),
    (0.6, 0.7),
    (0.0, 0.6),
)

_ROW_ID_RE = re.compile(r"^row_(\d+)$")


@dataclass(frozen=True)
class FuzzyMatch:
    """Correspondance floue à faire valider (entrée d'une session de revue)."""

    row_id: str
    field_name: str
    input_value: Any
    suggested_value: Any
    confidence: float
    suggestions: tuple[Any, ...] = ()  # autres valeurs candidates


@dataclass(frozen=True)
class FuzzyMatchForReview:
    """Correspondance en cours de revue."""

    id: str
    row_id: str
    row_index: int
    field_name: str
    input_value: Any
    suggested_value: Any
    confidence: float
    status: ReviewStatus = "pending"
    manual_value: Any = None
    suggestions: tuple[Any, ...] = ()
    selected: bool = False  # renseigné à la lecture depuis ReviewState.selected

    @classmethod
    def from_match(cls, match: FuzzyMatch, ordinal: int) -> FuzzyMatchForReview:
        """Identifiant stable dérivé de (row_id, field_name, ordinal)."""
        m = _ROW_ID_RE.match(str(match.row_id))
        return cls(
            id=f"match_{match.row_id}_{match.field_name}_{ordinal}",
            row_id=str(match.row_id),
            row_index=int(m.group(1)) if m else ordinal,
            field_name=match.field_name,
            input_value=match.input_value,
            suggested_value=match.suggested_value,
            confidence=float(match.confidence),
            suggestions=tuple(match.suggestions),
        )


@dataclass(frozen=True)
class ReviewFilter:
    """
    Critères de filtrage de la revue.

    Une clé à None (ou un ensemble de statuts vide) ne contraint rien.
    """

    confidence_range: tuple[float, float] | None = None
    field_name: str | None = None
    status: frozenset[str] | None = None
    search_term: str | None = None

    def __post_init__(self) -> None:
        if self.status is not None:
            # Un statut seul (str) vaut un ensemble à un élément
            status = frozenset((self.status,)) if isinstance(self.status, str) else frozenset(self.status)
            unknown = status - VALID_STATUSES
            if unknown:
                raise ValueError(f"Statuts invalides: {sorted(unknown)}. Valides: {sorted(VALID_STATUSES)}")
            object.__setattr__(self, "status", status)
        if self.confidence_range is not None:
            lo, hi = self.confidence_range
            object.__setattr__(self, "confidence_range", (float(lo), float(hi)))

    @classmethod
    def from_criteria(cls, criteria: ReviewFilter | dict[str, Any] | None) -> ReviewFilter:
        if criteria is None:
            return cls()
        if isinstance(criteria, ReviewFilter):
            return criteria
        return cls().merge(criteria)

    def merge(self, changes: dict[str, Any]) -> ReviewFilter:
        """Fusionne des changements partiels ; une clé inconnue lève TypeError."""
        known = {f.name for f in fields(self)}
        unknown = set(changes) - known
        if unknown:
            raise TypeError(f"Critères de filtre inconnus: {sorted(unknown)}")
        return replace(self, **changes)

    def accepts(self, match: FuzzyMatchForReview) -> bool:
        if self.confidence_range is not None:
            lo, hi = self.confidence_range
            if not lo <= match.confidence <= hi:
                return False
        if self.field_name and match.field_name != self.field_name:
            return False
        if self.status and match.status not in self.status:
            return False
        if self.search_term:
            term = self.search_term.lower()
            haystack = (match.input_value, match.suggested_value, *match.suggestions)
            if not any(term in str(v).lower() for v in haystack):
                return False
        return True


@dataclass(frozen=True)
class ConfidenceBucket:
    range: tuple[float, float]
    count: int


@dataclass(frozen=True)
class ReviewStats:
    """Statistiques dérivées d'une session (jamais stockées)."""

    total_matches: int
    accepted: int
    rejected: int
    manual: int
    pending: int
    progress: int  # 0-100
    confidence_distribution: tuple[ConfidenceBucket, ...]


@dataclass(frozen=True)
class ReviewEvent:
    """Décision émise vers l'application hôte (audit, undo)."""

    kind: EventKind
    match_ids: tuple[str, ...]
    value: Any = None


@dataclass(frozen=True)
class ReviewState:
    """État complet d'une session de revue."""

    matches: tuple[FuzzyMatchForReview, ...] = ()
    selected: frozenset[str] = field(default_factory=frozenset)
    filter: ReviewFilter = field(default_factory=ReviewFilter)


@dataclass(frozen=True)
class Resolution:
    """Décision finale pour une correspondance traitée."""

    match_id: str
    row_id: str
    field_name: str
    status: ReviewStatus
    value: Any
