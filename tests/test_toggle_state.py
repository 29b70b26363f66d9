"""Tests for the per-coach queueing switch."""

import pytest

from coach_queue.domain.exceptions import UnknownCoachError
from coach_queue.services.toggle_state import QueueToggleState


def test_coaches_start_enabled() -> None:
    toggles = QueueToggleState(["coach", "tugce"])

    assert toggles.snapshot() == {"coach": True, "tugce": True}


def test_set_enabled_returns_previous_value() -> None:
    toggles = QueueToggleState(["coach"])

    assert toggles.set_enabled("coach", False) is True
    assert toggles.set_enabled("coach", False) is False
    assert toggles.is_enabled("coach") is False


def test_unknown_coach_raises() -> None:
    toggles = QueueToggleState(["coach"])

    with pytest.raises(UnknownCoachError):
        toggles.is_enabled("nobody")
    with pytest.raises(UnknownCoachError):
        toggles.set_enabled("nobody", True)
