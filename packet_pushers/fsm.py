from __future__ import annotations

from enum import StrEnum

from statemachine import State, StateMachine

from packet_pushers.api.models import Session


class SessionPhase(StrEnum):
    running = "running"
    encounter_pending = "encounter_pending"
    over = "over"


def phase_of(session: Session) -> SessionPhase:
    if session.over or not session.running:
        return SessionPhase.over
    if session.pending_encounter is not None:
        return SessionPhase.encounter_pending
    return SessionPhase.running


class SessionFSM(StateMachine):
    """Lifecycle guard around a Session.

    - running -> encounter_pending when a confrontation is drawn on travel
    - encounter_pending -> running once the player's choice is applied
    - either -> over when the day counter passes the last day

    The executor mutates the session; the FSM only decides whether a transition is legal
    and mirrors the result back into the `running`/`over` flags.
    """

    running = State(SessionPhase.running.value, value=SessionPhase.running.value, initial=True)
    encounter_pending = State(
        SessionPhase.encounter_pending.value,
        value=SessionPhase.encounter_pending.value,
    )
    over = State(SessionPhase.over.value, value=SessionPhase.over.value, final=True)

    encounter_drawn = running.to(encounter_pending)
    encounter_resolved = encounter_pending.to(running)
    finish = running.to(over) | encounter_pending.to(over)

    def __init__(self, session: Session):
        self.session = session
        super().__init__(start_value=phase_of(session).value)

    @property
    def phase(self) -> SessionPhase:
        return SessionPhase(str(self.current_state.value))

    def sync_phase_to_model(self) -> None:
        phase = self.phase
        self.session.running = phase != SessionPhase.over
        self.session.over = phase == SessionPhase.over
