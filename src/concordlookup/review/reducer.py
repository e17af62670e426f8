"""Transitions de la revue : (ReviewState, action) -> ReviewState, et valeurs dérivées."""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from typing import Any, Union

from concordlookup.review.schema import (
    CONFIDENCE_BUCKETS,
    ConfidenceBucket,
    FuzzyMatch,
    FuzzyMatchForReview,
    ReviewEvent,
    ReviewFilter,
    ReviewState,
    ReviewStats,
)


@dataclass(frozen=True)
class AcceptMatch:
    match_id: str
    value: Any = None


@dataclass(frozen=True)
class RejectMatch:
    match_id: str


@dataclass(frozen=True)
class SetManualValue:
    match_id: str
    value: Any


@dataclass(frozen=True)
class ToggleSelection:
    match_id: str


@dataclass(frozen=True)
class SelectAll:
    criteria: ReviewFilter | dict[str, Any] | None = None


@dataclass(frozen=True)
class ClearSelection:
    pass


@dataclass(frozen=True)
class AcceptSelected:
    value: Any = None


@dataclass(frozen=True)
class RejectSelected:
    pass


@dataclass(frozen=True)
class UpdateFilter:
    changes: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ResetAll:
    pass


ReviewAction = Union[
    AcceptMatch,
    RejectMatch,
    SetManualValue,
    ToggleSelection,
    SelectAll,
    ClearSelection,
    AcceptSelected,
    RejectSelected,
    UpdateFilter,
    ResetAll,
]


@dataclass(frozen=True)
class Transition:
    """Nouvel état et, si une décision a été appliquée, l'événement correspondant."""

    state: ReviewState
    event: ReviewEvent | None = None


def initial_state(matches: Iterable[FuzzyMatch]) -> ReviewState:
    """Construit l'état initial : tout en attente, rien de sélectionné, aucun filtre."""
    return ReviewState(matches=tuple(FuzzyMatchForReview.from_match(m, i) for i, m in enumerate(matches)))


def _position(state: ReviewState, match_id: str) -> int | None:
    for i, m in enumerate(state.matches):
        if m.id == match_id:
            return i
    return None


def _with_match(state: ReviewState, pos: int, match: FuzzyMatchForReview) -> ReviewState:
    matches = state.matches[:pos] + (match,) + state.matches[pos + 1 :]
    return replace(state, matches=matches)


def _resolve_one(state: ReviewState, match_id: str, status: str, value: Any, kind: str) -> Transition:
    pos = _position(state, match_id)
    if pos is None:
        return Transition(state)
    m = state.matches[pos]
    if status == "accepted":
        value = value if value is not None else m.suggested_value
        updated = replace(m, status="accepted", manual_value=value)
    elif status == "rejected":
        updated = replace(m, status="rejected")
    else:
        updated = replace(m, status="manual", manual_value=value)
    return Transition(_with_match(state, pos, updated), ReviewEvent(kind=kind, match_ids=(m.id,), value=value))  # type: ignore[arg-type]


def _resolve_selected(state: ReviewState, accept: bool, value: Any) -> Transition:
    """Applique la décision aux sélectionnés en attente, en une seule transition."""
    applied: list[str] = []
    matches: list[FuzzyMatchForReview] = []
    for m in state.matches:
        if m.id in state.selected and m.status == "pending":
            applied.append(m.id)
            if accept:
                m = replace(m, status="accepted", manual_value=value if value is not None else m.suggested_value)
            else:
                m = replace(m, status="rejected")
        matches.append(m)

    new_state = replace(state, matches=tuple(matches), selected=frozenset())
    if not applied:
        return Transition(new_state)
    kind = "batchAccept" if accept else "batchReject"
    return Transition(new_state, ReviewEvent(kind=kind, match_ids=tuple(applied), value=value if accept else None))


def transition(state: ReviewState, action: ReviewAction) -> Transition:
    """Calcule la transition pour une action ; un identifiant inconnu ne change rien."""
    if isinstance(action, AcceptMatch):
        return _resolve_one(state, action.match_id, "accepted", action.value, "accept")
    if isinstance(action, RejectMatch):
        return _resolve_one(state, action.match_id, "rejected", None, "reject")
    if isinstance(action, SetManualValue):
        return _resolve_one(state, action.match_id, "manual", action.value, "manual")
    if isinstance(action, ToggleSelection):
        if _position(state, action.match_id) is None:
            return Transition(state)
        return Transition(replace(state, selected=state.selected ^ {action.match_id}))
    if isinstance(action, SelectAll):
        flt = state.filter if action.criteria is None else ReviewFilter.from_criteria(action.criteria)
        ids = frozenset(m.id for m in state.matches if m.status == "pending" and flt.accepts(m))
        return Transition(replace(state, selected=ids))
    if isinstance(action, ClearSelection):
        return Transition(replace(state, selected=frozenset()))
    if isinstance(action, AcceptSelected):
        return _resolve_selected(state, True, action.value)
    if isinstance(action, RejectSelected):
        return _resolve_selected(state, False, None)
    if isinstance(action, UpdateFilter):
        return Transition(replace(state, filter=state.filter.merge(action.changes), selected=frozenset()))
    if isinstance(action, ResetAll):
        matches = tuple(replace(m, status="pending", manual_value=None) for m in state.matches)
        return Transition(replace(state, matches=matches, selected=frozenset()))
    raise TypeError(f"Action inconnue: {action!r}")


def reduce(state: ReviewState, action: ReviewAction) -> ReviewState:
    return transition(state, action).state


def filter_matches(matches: Iterable[FuzzyMatchForReview], flt: ReviewFilter) -> list[FuzzyMatchForReview]:
    """Applique le filtre puis trie par confiance décroissante, puis nom de champ."""
    kept = [m for m in matches if flt.accepts(m)]
    kept.sort(key=lambda m: (-m.confidence, m.field_name))
    return kept


def calculate_stats(matches: Iterable[FuzzyMatchForReview]) -> ReviewStats:
    counts = {"pending": 0, "accepted": 0, "rejected": 0, "manual": 0}
    buckets = [0] * len(CONFIDENCE_BUCKETS)
    total = 0
    for m in matches:
        total += 1
        counts[m.status] += 1
        for i, (low, _high) in enumerate(CONFIDENCE_BUCKETS):
            if m.confidence >= low or i == len(CONFIDENCE_BUCKETS) - 1:
                buckets[i] += 1
                break

    done = counts["accepted"] + counts["rejected"] + counts["manual"]
    progress = math.floor(done / total * 100 + 0.5) if total else 0
    return ReviewStats(
        total_matches=total,
        accepted=counts["accepted"],
        rejected=counts["rejected"],
        manual=counts["manual"],
        pending=counts["pending"],
        progress=progress,
        confidence_distribution=tuple(
            ConfidenceBucket(range=rng, count=n) for rng, n in zip(CONFIDENCE_BUCKETS, buckets)
        ),
    )


def has_changes(state: ReviewState) -> bool:
    return any(m.status != "pending" for m in state.matches)


def is_complete(state: ReviewState) -> bool:
    return all(m.status != "pending" for m in state.matches)
