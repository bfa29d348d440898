"""Unit tests for StateMachine."""

import pytest

from trendpulse.core.state_machine import (
    InvalidTransitionError,
    StateMachine,
    create_trend_stage_machine,
    get_trend_stage_transitions,
)
from trendpulse.services.engine.base import TrendStage


class TestStateMachine:
    """Tests for generic StateMachine."""

    @pytest.fixture
    def state_machine(self):
        """Create state machine with simple transitions."""
        return StateMachine("start", {"start": ["middle", "end"], "middle": ["end"], "end": []})

    def test_initial_state(self, state_machine):
        """Test that initial state is set correctly."""
        assert state_machine.current == "start"

    def test_transition_valid(self, state_machine):
        """Test valid transition updates state."""
        assert state_machine.transition_to("middle") == "middle"
        assert state_machine.allowed_transitions == ["end"]

    def test_transition_invalid(self, state_machine):
        """Test invalid transition raises and keeps state."""
        state_machine.transition("end")
        with pytest.raises(InvalidTransitionError) as exc_info:
            state_machine.transition("start")

        assert exc_info.value.context["current"] == "end"
        assert state_machine.current == "end"

    def test_reset_bypasses_rules(self, state_machine):
        """Test reset sets any state."""
        state_machine.transition("end")
        state_machine.reset("start")
        assert state_machine.current == "start"


class TestTrendStageMachine:
    """Tests for the trend stage transition map."""

    def test_new_event_starts_stable(self):
        """Test default initial stage."""
        assert create_trend_stage_machine().current == TrendStage.STABLE

    def test_stable_cannot_decline(self):
        """Test a topic must be active before it can decline."""
        machine = create_trend_stage_machine(TrendStage.STABLE)
        assert machine.can_transition(TrendStage.DECLINING) is False
        with pytest.raises(InvalidTransitionError):
            machine.transition(TrendStage.DECLINING)

    @pytest.mark.parametrize(
        "stage", [TrendStage.EMERGING, TrendStage.SURGING, TrendStage.PEAKING]
    )
    def test_active_stage_can_decline(self, stage):
        """Test active stages may decline."""
        machine = create_trend_stage_machine(stage)
        assert machine.transition_to(TrendStage.DECLINING) == TrendStage.DECLINING

    def test_every_stage_may_stay(self):
        """Test self-transitions are always allowed."""
        transitions = get_trend_stage_transitions()
        for stage, targets in transitions.items():
            assert stage in targets

    def test_declining_recovers_or_settles(self):
        """Test declining can resurge or settle."""
        machine = create_trend_stage_machine(TrendStage.DECLINING)
        assert machine.can_transition(TrendStage.SURGING)
        assert machine.can_transition(TrendStage.STABLE)
