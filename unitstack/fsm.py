from __future__ import annotations

from statemachine import State, StateMachine
from statemachine.exceptions import TransitionNotAllowed

from unitstack.api.models import SessionState


class InvalidTransition(ValueError):
    """An action was attempted in a state that does not permit it."""

    def __init__(self, action: str, state: SessionState):
        super().__init__(f"Action '{action}' not allowed in state '{state.value}'")
        self.action = action
        self.state = state


class SessionFSM(StateMachine):
    """Lifecycle guard for a single play session.

    ready -> running <-> paused, running -> ended. `ended` is terminal; a new
    session object is needed to play again.
    """

    ready = State(SessionState.ready.value, value=SessionState.ready.value, initial=True)
    running = State(SessionState.running.value, value=SessionState.running.value)
    paused = State(SessionState.paused.value, value=SessionState.paused.value)
    ended = State(SessionState.ended.value, value=SessionState.ended.value, final=True)

    start = ready.to(running)
    pause = running.to(paused)
    resume = paused.to(running)
    finish = running.to(ended)

    def __init__(self, state: SessionState = SessionState.ready):
        super().__init__(start_value=state.value)

    @property
    def session_state(self) -> SessionState:
        return SessionState(str(self.current_state_value))

    def fire(self, event: str) -> SessionState:
        """Send `event`, translating library errors into InvalidTransition."""

        before = self.session_state
        try:
            self.send(event)
        except TransitionNotAllowed as e:
            raise InvalidTransition(event, before) from e
        return self.session_state
