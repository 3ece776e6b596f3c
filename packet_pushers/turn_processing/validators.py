from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import cast

from pydantic import BaseModel, ValidationError

from packet_pushers.api.models import (
    BuyPayload,
    EncounterPayload,
    GameAction,
    SellPayload,
    Session,
    TravelPayload,
)
from packet_pushers.catalog import MAX_DAYS, PRICE_TOLERANCE
from packet_pushers.errors import ValidationRejected

logger = logging.getLogger(__name__)


ActionPayload = BuyPayload | SellPayload | TravelPayload | EncounterPayload


@dataclass(frozen=True, slots=True)
class ValidationContext:
    """Inputs available to validators besides the session itself.

    Keep this tight and serializable-ish so we can safely log it.
    """

    session_id: str
    action: str


class SessionCheck(ABC):
    """An admissibility check over the session alone; runs before the payload is parsed."""

    @abstractmethod
    def check(self, *, ctx: ValidationContext, session: Session) -> None:
        raise NotImplementedError


class ActionValidator(ABC):
    """A small, composable admissibility check. Raises ValidationRejected; never mutates."""

    @abstractmethod
    def validate(self, *, ctx: ValidationContext, session: Session, payload: ActionPayload) -> None:
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class RunningSessionValidator(SessionCheck):
    """Deny every action once the run has ended."""

    max_days: int = MAX_DAYS

    def check(self, *, ctx: ValidationContext, session: Session) -> None:
        if not session.running or session.over:
            raise ValidationRejected("Game not running")
        if session.day > self.max_days:
            raise ValidationRejected("Game ended")


@dataclass(frozen=True, slots=True)
class NoPendingEncounterValidator(SessionCheck):
    def check(self, *, ctx: ValidationContext, session: Session) -> None:
        if session.pending_encounter is not None:
            raise ValidationRejected("Resolve the current encounter first")


@dataclass(frozen=True, slots=True)
class EncounterChoiceValidator(ActionValidator):
    def validate(self, *, ctx: ValidationContext, session: Session, payload: ActionPayload) -> None:
        choice = cast(EncounterPayload, payload).choice
        encounter = session.pending_encounter
        if encounter is None:
            raise ValidationRejected("No encounter to resolve")
        if choice not in encounter.options:
            raise ValidationRejected(f"Invalid choice (allowed: {','.join(encounter.options)})")


@dataclass(frozen=True, slots=True)
class PurchaseCostValidator(ActionValidator):
    """Recompute the purchase cost from the session's own prices.

    The client-declared figure is only compared against it; it is never used as the cost.
    """

    tolerance: int = PRICE_TOLERANCE

    def validate(self, *, ctx: ValidationContext, session: Session, payload: ActionPayload) -> None:
        buy = cast(BuyPayload, payload)
        price = session.price_of(buy.commodity)
        if price is None:
            raise ValidationRejected("Unknown commodity")

        actual_cost = price * buy.quantity
        if abs(actual_cost - buy.expected_cost) > self.tolerance:
            logger.info(
                "price mismatch session=%s commodity=%s server=%s client=%s",
                ctx.session_id,
                buy.commodity,
                actual_cost,
                buy.expected_cost,
            )
            raise ValidationRejected("Price mismatch - possible tampering")
        if session.player.cash < actual_cost:
            raise ValidationRejected("Insufficient funds")


@dataclass(frozen=True, slots=True)
class CapacityValidator(ActionValidator):
    def validate(self, *, ctx: ValidationContext, session: Session, payload: ActionPayload) -> None:
        quantity = cast(BuyPayload, payload).quantity
        player = session.player
        if player.inventory_size() + quantity > player.max_inventory:
            raise ValidationRejected("Insufficient inventory space")


@dataclass(frozen=True, slots=True)
class HoldingsValidator(ActionValidator):
    def validate(self, *, ctx: ValidationContext, session: Session, payload: ActionPayload) -> None:
        sell = cast(SellPayload, payload)
        if session.price_of(sell.commodity) is None:
            raise ValidationRejected("Unknown commodity")
        held = session.player.inventory.get(sell.commodity, 0)
        if held < sell.quantity:
            raise ValidationRejected("Insufficient inventory")


@dataclass(frozen=True, slots=True)
class ValidatorPipeline:
    payload_model: type[BaseModel]
    session_checks: tuple[SessionCheck, ...]
    validators: tuple[ActionValidator, ...] = ()

    def check_session(self, *, ctx: ValidationContext, session: Session) -> None:
        for c in self.session_checks:
            c.check(ctx=ctx, session=session)

    def parse(self, data: dict) -> ActionPayload:
        try:
            return self.payload_model.model_validate(data)  # type: ignore[return-value]
        except ValidationError as e:
            raise ValidationRejected("Invalid action data") from e

    def check_payload(self, *, ctx: ValidationContext, session: Session, payload: ActionPayload) -> None:
        for v in self.validators:
            v.validate(ctx=ctx, session=session, payload=payload)

    def validate(self, *, ctx: ValidationContext, session: Session, payload: ActionPayload) -> None:
        self.check_session(ctx=ctx, session=session)
        self.check_payload(ctx=ctx, session=session, payload=payload)


DEFAULT_ACTION_PIPELINES: dict[str, ValidatorPipeline] = {
    "buy": ValidatorPipeline(
        payload_model=BuyPayload,
        session_checks=(RunningSessionValidator(), NoPendingEncounterValidator()),
        validators=(PurchaseCostValidator(), CapacityValidator()),
    ),
    "sell": ValidatorPipeline(
        payload_model=SellPayload,
        session_checks=(RunningSessionValidator(), NoPendingEncounterValidator()),
        validators=(HoldingsValidator(),),
    ),
    "travel": ValidatorPipeline(
        payload_model=TravelPayload,
        session_checks=(RunningSessionValidator(), NoPendingEncounterValidator()),
    ),
    "encounter": ValidatorPipeline(
        payload_model=EncounterPayload,
        session_checks=(RunningSessionValidator(),),
        validators=(EncounterChoiceValidator(),),
    ),
}


def pipeline_for_action(action: str) -> ValidatorPipeline:
    pipe = DEFAULT_ACTION_PIPELINES.get(action)
    if pipe is None:
        raise ValidationRejected("Unknown action")
    return pipe


@dataclass(frozen=True, slots=True)
class Verdict:
    admissible: bool
    reason: str | None = None
    # Parsed payload, handed to the executor so it never re-reads raw client data.
    payload: ActionPayload | None = None


def validate_action(session: Session, action: GameAction) -> Verdict:
    """Decide whether `action` may be applied to `session`. Never mutates the session.

    Session checks run before the payload is parsed, so a finished game reports that
    even when the payload is malformed.
    """

    ctx = ValidationContext(session_id=str(session.session_id), action=action.type)
    try:
        pipe = pipeline_for_action(action.type)
        pipe.check_session(ctx=ctx, session=session)
        payload = pipe.parse(action.data)
        pipe.check_payload(ctx=ctx, session=session, payload=payload)
    except ValidationRejected as e:
        logger.info("rejected action=%s session=%s reason=%s", ctx.action, ctx.session_id, e)
        return Verdict(admissible=False, reason=str(e))
    return Verdict(admissible=True, payload=payload)
