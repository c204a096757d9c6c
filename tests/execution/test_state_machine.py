"""Tests for job states and the transition table."""

import itertools

import pytest

from ojs_lifecycle.core.errors import InvalidTransitionError
from ojs_lifecycle.execution.models import (
    INITIAL,
    STATE_LABELS,
    TERMINAL_STATES,
    TRANSITIONS,
    VALID_TRANSITIONS,
    JobState,
    SimulationEvent,
    is_terminal,
    is_valid_transition,
    validate_transition,
)

EXPECTED_EDGES = {
    ("initial", "scheduled"),
    ("initial", "available"),
    ("initial", "pending"),
    ("scheduled", "available"),
    ("pending", "available"),
    ("available", "active"),
    ("active", "completed"),
    ("active", "retryable"),
    ("active", "cancelled"),
    ("active", "discarded"),
    ("retryable", "available"),
    ("discarded", "available"),
}

ALL_SOURCES = ["initial"] + [s.value for s in JobState]


class TestTransitionTable:
    """Tests for VALID_TRANSITIONS."""

    def test_exact_edge_set(self):
        """Exactly the twelve documented edges are valid."""
        valid = {
            (src, dst.value)
            for src, dst in itertools.product(ALL_SOURCES, JobState)
            if is_valid_transition(src, dst.value)
        }
        assert valid == EXPECTED_EDGES

    def test_table_built_from_transitions(self):
        edges = {
            (getattr(t.from_state, "value", t.from_state), t.to_state.value) for t in TRANSITIONS
        }
        assert edges == EXPECTED_EDGES
        assert sum(len(targets) for targets in VALID_TRANSITIONS.values()) == 12

    def test_triggers(self):
        triggers = {t.trigger for t in TRANSITIONS}
        assert triggers == {"PUSH", "SCHEDULE", "ACTIVATE", "FETCH", "ACK", "FAIL", "CANCEL", "RETRY", "MANUAL_RETRY"}

    def test_accepts_enum_members(self):
        assert is_valid_transition(JobState.AVAILABLE, JobState.ACTIVE)
        assert not is_valid_transition(JobState.COMPLETED, JobState.ACTIVE)

    @pytest.mark.parametrize(("src", "dst"), [("bogus", "active"), ("available", "bogus"), ("active", "initial")])
    def test_unknown_states_are_invalid(self, src, dst):
        """Unknown names are reported invalid, never raised."""
        assert is_valid_transition(src, dst) is False


class TestTerminalStates:
    """Tests for TERMINAL_STATES."""

    def test_terminal_set(self):
        assert TERMINAL_STATES == {JobState.COMPLETED, JobState.CANCELLED, JobState.DISCARDED}

    def test_is_terminal(self):
        assert is_terminal("completed")
        assert not is_terminal("retryable")
        assert not is_terminal(INITIAL)

    def test_terminal_states_only_allow_manual_retry(self):
        for state in TERMINAL_STATES:
            targets = VALID_TRANSITIONS.get(state, frozenset())
            if state is JobState.DISCARDED:
                assert targets == {JobState.AVAILABLE}
            else:
                assert targets == frozenset()


class TestValidateTransition:
    """Tests for validate_transition."""

    def test_valid_passes(self):
        validate_transition("available", "active")

    def test_invalid_raises(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            validate_transition(JobState.COMPLETED, JobState.ACTIVE)
        assert exc_info.value.from_state == "completed"
        assert exc_info.value.to_state == "active"


class TestLabelsAndEvents:
    """Tests for STATE_LABELS and SimulationEvent."""

    def test_every_state_has_a_label(self):
        assert STATE_LABELS[JobState.RETRYABLE] == "Retryable"
        assert set(STATE_LABELS) == set(JobState)

    def test_event_to_dict_omits_unset_fields(self):
        event = SimulationEvent(INITIAL, JobState.AVAILABLE, 0, 0, "Job enqueued")
        assert event.to_dict() == {"from": "initial", "to": "available", "timestamp": 0, "attempt": 0, "label": "Job enqueued"}
        assert event.is_transition

    def test_in_place_update(self):
        event = SimulationEvent(JobState.ACTIVE, JobState.ACTIVE, 300, 1, "Progress: 20%", progress=0.2,
                                progress_message="Processing step 1/5")
        assert not event.is_transition
        payload = event.to_dict()
        assert payload["progress"] == 0.2
        assert payload["progressMessage"] == "Processing step 1/5"
