from __future__ import annotations

import dataclasses
import logging
import math
import random
from dataclasses import dataclass, field
from uuid import UUID

import redis

from packet_pushers.api.models import (
    BuyPayload,
    Category,
    EncounterPayload,
    EventReport,
    GameAction,
    Message,
    PendingEncounter,
    SellPayload,
    Session,
    TravelPayload,
)
from packet_pushers.catalog import DAILY_INTEREST_RATE, MAX_DAYS
from packet_pushers.events import resolve_encounter, trigger_random_event
from packet_pushers.fsm import SessionFSM
from packet_pushers.lock import session_lock
from packet_pushers.market import generate_prices
from packet_pushers.session_store import require_session, save_session
from packet_pushers.turn_processing.validators import validate_action

logger = logging.getLogger(__name__)


BUY_FLAVOR_CHANCE = 0.10
SELL_FLAVOR_CHANCE = 0.15

BUY_FLAVOR: tuple[str, ...] = (
    "The supplier counts the bills twice and nods.",
    "Nobody saw a thing. Probably.",
    "You stash the goods in your coat lining.",
)

SELL_FLAVOR: tuple[str, ...] = (
    "The buyer vanishes into the crowd.",
    "Cash in hand. Time to keep moving.",
    "Word gets around that you deliver.",
)


@dataclass(frozen=True, slots=True)
class ActionOutcome:
    """Result of executing one action.

    On rejection `session` is the caller's untouched input and `reason` says why.
    """

    admissible: bool
    session: Session
    messages: list[Message] = field(default_factory=list)
    events: list[EventReport] = field(default_factory=list)
    reason: str | None = None


def _quoted_price(session: Session, commodity: str) -> int:
    price = session.price_of(commodity)
    if price is None:
        raise ValueError(f"Unknown commodity: {commodity}")
    return price


def _buy(session: Session, payload: BuyPayload, rng: random.Random) -> list[Message]:
    price = _quoted_price(session, payload.commodity)
    cost = price * payload.quantity

    player = session.player
    player.cash -= cost
    player.inventory[payload.commodity] = player.inventory.get(payload.commodity, 0) + payload.quantity

    messages = [Message(text=f"Bought {payload.quantity} {payload.commodity} for ${cost}.", category=Category.success)]
    if rng.random() < BUY_FLAVOR_CHANCE:
        messages.append(Message(text=rng.choice(BUY_FLAVOR)))
    return messages


def _sell(session: Session, payload: SellPayload, rng: random.Random) -> list[Message]:
    price = _quoted_price(session, payload.commodity)
    revenue = price * payload.quantity

    player = session.player
    player.cash += revenue
    remaining = player.inventory[payload.commodity] - payload.quantity
    if remaining > 0:
        player.inventory[payload.commodity] = remaining
    else:
        del player.inventory[payload.commodity]

    messages = [Message(text=f"Sold {payload.quantity} {payload.commodity} for ${revenue}.", category=Category.success)]
    if rng.random() < SELL_FLAVOR_CHANCE:
        messages.append(Message(text=rng.choice(SELL_FLAVOR)))
    return messages


def _finish_if_past_last_day(session: Session, fsm: SessionFSM, messages: list[Message]) -> bool:
    if session.day <= MAX_DAYS:
        return False
    session.pending_encounter = None
    fsm.finish()
    messages.append(Message(text="Your time is up. The game is over.", category=Category.warning))
    return True


def _travel(
    session: Session,
    payload: TravelPayload,
    fsm: SessionFSM,
    rng: random.Random,
) -> tuple[list[Message], list[EventReport]]:
    player = session.player
    player.location = payload.destination
    session.day += 1
    player.debt = math.floor(player.debt * (1 + DAILY_INTEREST_RATE))
    session.current_prices = generate_prices(session.day, player.location, rng=rng)

    messages = [Message(text=f"You arrive at {payload.destination}. Day {session.day}.")]
    events: list[EventReport] = []

    # A run that just ended draws no event.
    if _finish_if_past_last_day(session, fsm, messages):
        return messages, events

    report = trigger_random_event(session, rng)
    if report is not None:
        events.append(report)
        if report.requires_decision:
            session.pending_encounter = PendingEncounter.model_validate(report.context)
            fsm.encounter_drawn()
    return messages, events


def _encounter(session: Session, payload: EncounterPayload, fsm: SessionFSM, rng: random.Random) -> list[Message]:
    messages = resolve_encounter(session, payload.choice, rng)
    fsm.encounter_resolved()
    _finish_if_past_last_day(session, fsm, messages)
    return messages


def execute_action(session: Session, action: GameAction, *, rng: random.Random) -> ActionOutcome:
    """Validate then apply `action` to a copy of `session`.

    The input session is never mutated; callers only ever see a fully applied snapshot
    or the untouched input alongside a rejection reason.
    """

    verdict = validate_action(session, action)
    if not verdict.admissible:
        return ActionOutcome(admissible=False, session=session, reason=verdict.reason)

    working = session.model_copy(deep=True)
    fsm = SessionFSM(working)
    payload = verdict.payload
    events: list[EventReport] = []

    if isinstance(payload, BuyPayload):
        messages = _buy(working, payload, rng)
    elif isinstance(payload, SellPayload):
        messages = _sell(working, payload, rng)
    elif isinstance(payload, TravelPayload):
        messages, events = _travel(working, payload, fsm, rng)
    elif isinstance(payload, EncounterPayload):
        messages = _encounter(working, payload, fsm, rng)
    else:
        raise ValueError(f"Unknown action: {action.type}")

    fsm.sync_phase_to_model()
    return ActionOutcome(admissible=True, session=working, messages=messages, events=events)


def dispatch_action(
    *,
    r: redis.Redis,
    session_id: UUID,
    action: GameAction,
    rng: random.Random,
    lock_ttl_ms: int = 5_000,
) -> ActionOutcome:
    """Entry point for the action endpoint.

    Applies an action by:
    - acquiring a per-session lock
    - loading the stored snapshot
    - validating + executing against a copy
    - writing back admissible results with a version check

    Rejections are returned, not raised, and leave storage untouched.
    """

    with session_lock(r=r, session_id=str(session_id), ttl_ms=lock_ttl_ms):
        session = require_session(r=r, session_id=session_id)
        outcome = execute_action(session, action, rng=rng)
        if not outcome.admissible:
            return outcome

        stored = save_session(r=r, session=outcome.session, expected_version=session.version)
        logger.info(
            "applied action=%s session=%s day=%s events=%s",
            action.type,
            session_id,
            stored.day,
            [e.kind for e in outcome.events],
        )
        return dataclasses.replace(outcome, session=stored)
