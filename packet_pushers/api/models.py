from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Annotated, Any
from uuid import UUID

from pydantic import AfterValidator, AliasChoices, BaseModel, ConfigDict, Field, field_validator

from packet_pushers.catalog import BASE_INVENTORY, STARTING_HEALTH, is_location


def _check_location(value: str) -> str:
    if not is_location(value):
        raise ValueError(f"Unknown location: {value}")
    return value


LocationName = Annotated[str, AfterValidator(_check_location)]


class Category(StrEnum):
    info = "info"
    success = "success"
    warning = "warning"
    error = "error"


class Message(BaseModel):
    text: str
    category: Category = Category.info


class PriceQuote(BaseModel):
    name: str
    price: int = Field(..., ge=0)


class PlayerState(BaseModel):
    name: str = "Anonymous"
    cash: int
    debt: int
    location: LocationName
    # commodity name -> units held; zero-quantity entries are never stored.
    inventory: dict[str, int] = Field(default_factory=dict)
    max_inventory: int = BASE_INVENTORY
    health: int = Field(STARTING_HEALTH, ge=0, le=100)

    def inventory_size(self) -> int:
        return sum(self.inventory.values())


class EncounterKind(StrEnum):
    police = "police"
    mugging = "mugging"


class PendingEncounter(BaseModel):
    """A confrontation drawn on travel that waits for the player's choice."""

    kind: EncounterKind
    opponent: str
    opponent_type: str
    # Bribe asked by an officer, or cash demanded by a mugger.
    demand: int = Field(..., ge=0)
    options: list[str]


class Session(BaseModel):
    session_id: UUID
    created_at: datetime
    last_activity: datetime

    # Bumped on every persisted write; used for the optimistic check in the store.
    version: int = 0

    player: PlayerState
    day: int = 1
    current_prices: list[PriceQuote]

    running: bool = True
    over: bool = False

    pending_encounter: PendingEncounter | None = None

    def price_of(self, commodity: str) -> int | None:
        quote = next((q for q in self.current_prices if q.name == commodity), None)
        return quote.price if quote is not None else None


class GameAction(BaseModel):
    """Envelope for every player action: `{"type": "buy", "data": {...}}`."""

    type: str
    data: dict[str, Any] = Field(default_factory=dict)


class BuyPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    commodity: str
    quantity: int = Field(..., gt=0)
    # What the client believes the purchase costs, possibly fractional after client-side
    # rounding. Only used for the tamper check; the debit is always the server figure.
    expected_cost: float = Field(..., alias="expectedCost", allow_inf_nan=False)


class SellPayload(BaseModel):
    commodity: str
    quantity: int = Field(..., gt=0)


class TravelPayload(BaseModel):
    destination: LocationName


class EncounterPayload(BaseModel):
    choice: str


class EventReport(BaseModel):
    kind: str
    category: Category = Category.info
    text: list[str] = Field(default_factory=list)
    # True when the caller must collect a follow-up choice (see Session.pending_encounter).
    requires_decision: bool = False
    context: dict[str, Any] = Field(default_factory=dict)


class ActionResponse(BaseModel):
    admissible: bool
    session: Session
    messages: list[Message] = Field(default_factory=list)
    events: list[EventReport] = Field(default_factory=list)


class GameData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    score: int
    day: int
    # Milliseconds since the epoch, as reported by the client.
    start_time: int = Field(..., alias="startTime")
    end_time: int = Field(..., alias="endTime")
    # Kept as a raw mapping: the integrity hash covers it in the client's key order.
    player_stats: dict[str, Any] = Field(..., alias="playerStats")
    game_events: list[dict[str, Any]] | None = Field(None, alias="gameEvents")
    version: str | None = None

    @field_validator("player_stats")
    @classmethod
    def _stats_have_cash_and_debt(cls, value: dict[str, Any]) -> dict[str, Any]:
        for key in ("cash", "debt"):
            v = value.get(key)
            if isinstance(v, bool) or not isinstance(v, (int, float)):
                raise ValueError(f"playerStats.{key} must be a number")
        return value

    def net_worth(self) -> int:
        return int(self.player_stats["cash"] - self.player_stats["debt"])


class ScoreSubmission(BaseModel):
    player_name: str = Field(
        ...,
        min_length=1,
        max_length=50,
        validation_alias=AliasChoices("playerName", "player_name"),
    )
    game_data: GameData = Field(..., validation_alias=AliasChoices("gameData", "game_data"))
    integrity_hash: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("integrityHash", "clientHash", "integrity_hash"),
    )


class Timeframe(StrEnum):
    all = "all"
    daily = "daily"
    weekly = "weekly"


class LeaderboardEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    entry_id: UUID
    player_name: str
    score: int
    day: int
    net_worth: int
    game_duration_minutes: int
    verification_hash: str
    game_version: str
    user_agent: str
    created_at: datetime


class SubmitScoreResponse(BaseModel):
    success: bool = True
    message: str = "Score submitted successfully!"
    ranking: int
    score: int
    player: str
    timestamp: datetime


class LeaderboardResponse(BaseModel):
    success: bool = True
    leaderboard: list[LeaderboardEntry]
    timestamp: datetime
