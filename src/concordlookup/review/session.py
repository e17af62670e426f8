"""Session de revue : état courant, décisions et notification de l'application hôte."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import replace
from typing import Any

from loguru import logger

from concordlookup.review import reducer
from concordlookup.review.reducer import (
    AcceptMatch,
    AcceptSelected,
    ClearSelection,
    RejectMatch,
    RejectSelected,
    ResetAll,
    ReviewAction,
    SelectAll,
    SetManualValue,
    ToggleSelection,
    UpdateFilter,
)
from concordlookup.review.schema import (
    FuzzyMatch,
    FuzzyMatchForReview,
    Resolution,
    ReviewEvent,
    ReviewFilter,
    ReviewState,
    ReviewStats,
)

EventSink = Callable[[ReviewEvent], None]


class ReviewSession:
    """
    Revue des correspondances floues à faible confiance.

    Chaque opération est une seule transition d'état : les statistiques et la
    vue filtrée sont recalculées au plus une fois par action utilisateur.
    Les décisions appliquées sont émises vers on_event (sans accusé de réception).
    """

    def __init__(self, matches: Iterable[FuzzyMatch] = (), on_event: EventSink | None = None) -> None:
        self._state = reducer.initial_state(matches)
        self._on_event = on_event
        self._cache: dict[str, Any] = {}
        logger.info(f"Review session started with {len(self._state.matches)} matches")

    @property
    def state(self) -> ReviewState:
        return self._state

    def dispatch(self, action: ReviewAction) -> ReviewState:
        """Applique une action, puis émet l'événement éventuel."""
        result = reducer.transition(self._state, action)
        if result.state is not self._state:
            self._state = result.state
            self._cache.clear()
        if result.event is not None:
            self._emit(result.event)
        return self._state

    def _emit(self, event: ReviewEvent) -> None:
        if self._on_event is None:
            return
        try:
            self._on_event(event)
        except Exception:
            logger.exception(f"Review event sink failed for {event.kind} {list(event.match_ids)}")

    # Décisions

    def accept_match(self, match_id: str, value: Any = None) -> None:
        self.dispatch(AcceptMatch(match_id, value))

    def reject_match(self, match_id: str) -> None:
        self.dispatch(RejectMatch(match_id))

    def set_manual_value(self, match_id: str, value: Any) -> None:
        self.dispatch(SetManualValue(match_id, value))

    def accept_selected(self, value: Any = None) -> None:
        self.dispatch(AcceptSelected(value))

    def reject_selected(self) -> None:
        self.dispatch(RejectSelected())

    def reset_all(self) -> None:
        self.dispatch(ResetAll())

    # Sélection et filtre

    def toggle_selection(self, match_id: str) -> None:
        self.dispatch(ToggleSelection(match_id))

    def select_all(self, criteria: ReviewFilter | dict[str, Any] | None = None) -> None:
        self.dispatch(SelectAll(criteria))

    def clear_selection(self) -> None:
        self.dispatch(ClearSelection())

    def update_filter(self, **changes: Any) -> None:
        self.dispatch(UpdateFilter(changes))

    # Valeurs dérivées

    def _cached(self, key: str, compute: Callable[[], Any]) -> Any:
        if key not in self._cache:
            self._cache[key] = compute()
        return self._cache[key]

    def _with_selection(self, matches: Iterable[FuzzyMatchForReview]) -> list[FuzzyMatchForReview]:
        selected = self._state.selected
        return [replace(m, selected=True) if m.id in selected else m for m in matches]

    @property
    def matches(self) -> list[FuzzyMatchForReview]:
        return self._cached("matches", lambda: self._with_selection(self._state.matches))

    @property
    def selected_matches(self) -> frozenset[str]:
        return self._state.selected

    @property
    def filter(self) -> ReviewFilter:
        return self._state.filter

    @property
    def filtered_matches(self) -> list[FuzzyMatchForReview]:
        return self._cached(
            "filtered",
            lambda: self._with_selection(reducer.filter_matches(self._state.matches, self._state.filter)),
        )

    @property
    def stats(self) -> ReviewStats:
        return self._cached("stats", lambda: reducer.calculate_stats(self._state.matches))

    @property
    def has_changes(self) -> bool:
        return reducer.has_changes(self._state)

    @property
    def is_complete(self) -> bool:
        return reducer.is_complete(self._state)

    @property
    def can_batch_operate(self) -> bool:
        return bool(self._state.selected)

    def get_match(self, match_id: str) -> FuzzyMatchForReview | None:
        for m in self.matches:
            if m.id == match_id:
                return m
        return None

    def resolutions(self) -> list[Resolution]:
        """Décisions des correspondances traitées (valeur None pour un rejet)."""
        return [
            Resolution(
                match_id=m.id,
                row_id=m.row_id,
                field_name=m.field_name,
                status=m.status,
                value=None if m.status == "rejected" else m.manual_value,
            )
            for m in self._state.matches
            if m.status != "pending"
        ]
