"""Tests for mention extraction and coach classification."""

from coach_queue.domain.models import Coach
from coach_queue.services.mention_classifier import (
    classify,
    extract_mentioned_ids,
    mentioned_coaches,
)
from tests.conftest import COACH_ID, OTHER_COACH_ID, make_event


def test_extract_mentioned_ids() -> None:
    text = f"hey <@{COACH_ID}> and <@{OTHER_COACH_ID}|tugce>, also <#C123|general>"

    assert extract_mentioned_ids(text) == frozenset({COACH_ID, OTHER_COACH_ID})


def test_extract_ignores_plain_at_names() -> None:
    assert extract_mentioned_ids("ping @coach please") == frozenset()
    assert extract_mentioned_ids(None) == frozenset()


def test_classify_returns_matching_coach(roster: list[Coach]) -> None:
    coach = classify(make_event(mentioned=(OTHER_COACH_ID,)), roster)

    assert coach is not None
    assert coach.key == "tugce"


def test_classify_prefers_roster_order(roster: list[Coach]) -> None:
    coach = classify(make_event(mentioned=(OTHER_COACH_ID, COACH_ID)), roster)

    assert coach is not None
    assert coach.key == "coach"


def test_classify_none_without_roster_mention(roster: list[Coach]) -> None:
    assert classify(make_event(mentioned=("UNOBODY001",)), roster) is None
    assert classify(make_event(mentioned=()), roster) is None


def test_mentioned_coaches_lists_all_in_roster_order(roster: list[Coach]) -> None:
    coaches = mentioned_coaches(make_event(mentioned=(OTHER_COACH_ID, COACH_ID)), roster)

    assert [c.key for c in coaches] == ["coach", "tugce"]
