from __future__ import annotations

from statemachine import State, StateMachine

from adventure.api.models import SessionPhase


class SessionFSM(StateMachine):
    """Guards the session lifecycle.

    no_session -> initializing -> idle <-> awaiting_turn, and game_over once a
    turn ends the game. The controller performs the work; the FSM only decides
    which transitions are legal.
    """

    no_session = State(SessionPhase.no_session.value, value=SessionPhase.no_session.value, initial=True)
    initializing = State(SessionPhase.initializing.value, value=SessionPhase.initializing.value)
    idle = State(SessionPhase.idle.value, value=SessionPhase.idle.value)
    awaiting_turn = State(SessionPhase.awaiting_turn.value, value=SessionPhase.awaiting_turn.value)
    game_over = State(SessionPhase.game_over.value, value=SessionPhase.game_over.value)

    new_game = no_session.to(initializing) | idle.to(initializing) | game_over.to(initializing)
    opening_received = initializing.to(idle)
    opening_ended = initializing.to(game_over)
    action_submitted = idle.to(awaiting_turn)
    turn_received = awaiting_turn.to(idle)
    turn_ended = awaiting_turn.to(game_over)
    loaded = no_session.to(idle) | idle.to.itself() | game_over.to(idle)
    loaded_game_over = no_session.to(game_over) | idle.to(game_over) | game_over.to.itself()
    load_failed = no_session.to.itself() | idle.to(no_session) | game_over.to(no_session)

    @property
    def phase(self) -> SessionPhase:
        return SessionPhase(str(self.current_state.value))
