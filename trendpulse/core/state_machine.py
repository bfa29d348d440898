"""Generic state machine for lifecycle transitions.

Trend events move through an explicit stage enum. The stage classifier
decides the next stage from metrics; the state machine guards that the
decision is one the lifecycle allows.

Example:
    sm = StateMachine(TrendStage.STABLE, get_trend_stage_transitions())

    if sm.can_transition(TrendStage.SURGING):
        sm.transition(TrendStage.SURGING)

    sm.transition_to(TrendStage.PEAKING)
"""

from enum import Enum
from typing import Generic, TypeVar

from trendpulse.core.exceptions import TrendPulseError

T = TypeVar("T", bound=str | Enum)

# Type alias for transition maps
TransitionMap = dict[T, list[T]]


class InvalidTransitionError(TrendPulseError):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, current: T, target: T, allowed: list[T] | None = None):
        self.current = current
        self.target = target
        self.allowed = allowed or []
        self.error_code = "INVALID_TRANSITION"
        allowed_str = ", ".join(str(s) for s in self.allowed) if self.allowed else "none"
        super().__init__(
            message=f"Invalid transition from '{current}' to '{target}'. "
            f"Allowed transitions: {allowed_str}",
            context={
                "current": str(current),
                "target": str(target),
                "allowed": [str(s) for s in self.allowed],
            },
        )


class StateMachine(Generic[T]):
    """Generic state machine for status transitions.

    Attributes:
        current: Current state
        transitions: Map of allowed transitions from each state
    """

    def __init__(self, initial: T, transitions: TransitionMap[T]):
        """Initialize state machine.

        Args:
            initial: Initial state
            transitions: Map of state -> list of allowed target states
        """
        self._current = initial
        self._transitions = transitions

    @property
    def current(self) -> T:
        """Get current state."""
        return self._current

    @property
    def allowed_transitions(self) -> list[T]:
        """Get list of states we can transition to from current state."""
        return self._transitions.get(self._current, [])

    def can_transition(self, target: T) -> bool:
        """Check if transition to target state is allowed."""
        return target in self.allowed_transitions

    def transition(self, target: T) -> None:
        """Perform transition to target state.

        Raises:
            InvalidTransitionError: If transition is not allowed
        """
        if not self.can_transition(target):
            raise InvalidTransitionError(
                current=self._current,
                target=target,
                allowed=self.allowed_transitions,
            )
        self._current = target

    def transition_to(self, target: T) -> T:
        """Perform transition and return new state."""
        self.transition(target)
        return self._current

    def reset(self, state: T) -> None:
        """Reset state machine to a specific state (bypass transition rules).

        Used by administrative overrides only.
        """
        self._current = state

    def __str__(self) -> str:
        return f"StateMachine(current={self._current})"

    def __repr__(self) -> str:
        return f"StateMachine(current={self._current!r}, allowed={self.allowed_transitions!r})"


# ============================================
# Predefined Transition Maps
# ============================================


def get_trend_stage_transitions() -> TransitionMap:
    """Get transition map for TrendStage.

    A topic can only start declining after it has been active, so
    ``stable -> declining`` is the one forbidden move. Every stage may
    stay where it is.
    """
    from trendpulse.services.engine.base import TrendStage

    active = [TrendStage.EMERGING, TrendStage.SURGING, TrendStage.PEAKING]
    return {
        TrendStage.STABLE: [TrendStage.STABLE, *active],
        TrendStage.EMERGING: [TrendStage.STABLE, TrendStage.DECLINING, *active],
        TrendStage.SURGING: [TrendStage.STABLE, TrendStage.DECLINING, *active],
        TrendStage.PEAKING: [TrendStage.STABLE, TrendStage.DECLINING, *active],
        TrendStage.DECLINING: [TrendStage.STABLE, TrendStage.DECLINING, *active],
    }


def create_trend_stage_machine(initial=None) -> StateMachine:
    """Create a state machine for a trend event's stage.

    Args:
        initial: Starting stage (defaults to STABLE for a new event)
    """
    from trendpulse.services.engine.base import TrendStage

    return StateMachine(initial or TrendStage.STABLE, get_trend_stage_transitions())
