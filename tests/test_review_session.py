"""Tests de la session de revue."""

import pytest

from concordlookup.review import FuzzyMatch, ReviewEvent, ReviewSession


@pytest.fixture
def matches() -> list[FuzzyMatch]:
    return [
        FuzzyMatch("row_0", "department", "Enginering", "Engineering", 0.9),
        FuzzyMatch("row_1", "department", "Markting", "Marketing", 0.75),
        FuzzyMatch("row_2", "city", "Pariss", "Paris", 0.85),
    ]


@pytest.fixture
def events() -> list[ReviewEvent]:
    return []


@pytest.fixture
def session(matches: list[FuzzyMatch], events: list[ReviewEvent]) -> ReviewSession:
    return ReviewSession(matches, on_event=events.append)


def test_events_emitted(session: ReviewSession, events: list[ReviewEvent]) -> None:
    ids = [m.id for m in session.matches]
    session.accept_match(ids[0])
    session.reject_match(ids[1])
    session.set_manual_value(ids[2], "Paris 1er")
    assert [e.kind for e in events] == ["accept", "reject", "manual"]
    assert events[0].value == "Engineering"
    assert events[2].value == "Paris 1er"


def test_no_event_for_selection_filter_or_reset(session: ReviewSession, events: list[ReviewEvent]) -> None:
    session.select_all()
    session.clear_selection()
    session.update_filter(field_name="city")
    session.reset_all()
    session.accept_match("unknown")
    assert events == []


def test_batch_accept(session: ReviewSession, events: list[ReviewEvent]) -> None:
    session.select_all({"field_name": "department"})
    assert session.can_batch_operate is True
    session.accept_selected()
    assert len(events) == 1
    assert events[0].kind == "batchAccept"
    assert len(events[0].match_ids) == 2
    assert session.can_batch_operate is False
    assert session.stats.accepted == 2


def test_batch_reject_empty_selection(session: ReviewSession, events: list[ReviewEvent]) -> None:
    session.reject_selected()
    assert events == []
    assert session.has_changes is False


def test_selection_reflected_on_matches(session: ReviewSession) -> None:
    mid = session.matches[1].id
    session.toggle_selection(mid)
    assert session.selected_matches == {mid}
    assert session.get_match(mid).selected is True  # type: ignore[union-attr]
    assert [m.selected for m in session.matches] == [False, True, False]
    assert [m.id for m in session.filtered_matches if m.selected] == [mid]


def test_filtered_matches_example(session: ReviewSession) -> None:
    session.update_filter(confidence_range=(0.8, 1.0))
    assert [m.confidence for m in session.filtered_matches] == [0.9, 0.85]
    assert session.filter.confidence_range == (0.8, 1.0)
    # None lève la contrainte
    session.update_filter(confidence_range=None)
    assert len(session.filtered_matches) == 3


def test_derived_values_cached_per_state(session: ReviewSession) -> None:
    stats = session.stats
    filtered = session.filtered_matches
    assert session.stats is stats
    assert session.filtered_matches is filtered
    session.accept_match(session.matches[0].id)
    assert session.stats is not stats
    assert session.stats.accepted == 1


def test_noop_keeps_state(session: ReviewSession) -> None:
    before = session.state
    session.reject_match("unknown")
    assert session.state is before


def test_failing_event_sink_does_not_break_session(matches: list[FuzzyMatch]) -> None:
    def sink(event: ReviewEvent) -> None:
        raise RuntimeError("audit indisponible")

    session = ReviewSession(matches, on_event=sink)
    mid = session.matches[0].id
    session.accept_match(mid)
    assert session.get_match(mid).status == "accepted"  # type: ignore[union-attr]


def test_progress_and_completion(session: ReviewSession) -> None:
    assert session.is_complete is False
    assert session.stats.progress == 0
    session.select_all()
    session.reject_selected()
    assert session.is_complete is True
    assert session.stats.progress == 100
    session.reset_all()
    assert session.has_changes is False
    assert session.stats.pending == 3


def test_empty_session() -> None:
    session = ReviewSession()
    assert session.matches == []
    assert session.is_complete is True
    assert session.stats.progress == 0


def test_resolutions(session: ReviewSession) -> None:
    ids = [m.id for m in session.matches]
    session.accept_match(ids[0], "ENG")
    session.reject_match(ids[1])
    resolutions = session.resolutions()
    assert [(r.row_id, r.status, r.value) for r in resolutions] == [
        ("row_0", "accepted", "ENG"),
        ("row_1", "rejected", None),
    ]
    assert resolutions[0].field_name == "department"


def test_update_filter_with_single_status(session: ReviewSession) -> None:
    session.accept_match(session.matches[0].id)
    session.update_filter(status="pending")
    assert len(session.filtered_matches) == 2
    session.select_all()
    assert len(session.selected_matches) == 2
    with pytest.raises(ValueError):
        session.update_filter(status="skipped")
