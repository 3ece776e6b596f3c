from __future__ import annotations

import random
from datetime import UTC, datetime

from packet_pushers.api.models import EncounterKind, PendingEncounter, PriceQuote, Session
from packet_pushers.catalog import COMMODITY_NAMES
from packet_pushers.session_store import new_session


class ScriptedRandom(random.Random):
    """Seeded Random whose `random()` first replays values queued with `script()`.

    choice/sample/randrange keep drawing from getrandbits, so a script only steers the
    probability rolls and ranged draws.
    """

    def script(self, *values: float) -> ScriptedRandom:
        self._scripted = [*getattr(self, "_scripted", []), *values]
        return self

    def random(self) -> float:
        scripted = getattr(self, "_scripted", None)
        if scripted:
            return scripted.pop(0)
        return super().random()

    # Defining getrandbits keeps Random.__init_subclass__ from routing choice/randrange
    # through the overridden random(), which would consume scripted values.
    def getrandbits(self, k: int) -> int:
        return super().getrandbits(k)


def flat_prices(price: int = 300) -> list[PriceQuote]:
    return [PriceQuote(name=name, price=price) for name in COMMODITY_NAMES]


def make_session(*, price: int = 300, day: int = 1, **player: object) -> Session:
    """An in-memory session with every commodity priced at `price`."""

    session = new_session(rng=random.Random(7), now=datetime(2025, 1, 1, tzinfo=UTC))
    session.current_prices = flat_prices(price)
    session.day = day
    for key, value in player.items():
        setattr(session.player, key, value)
    return session


def police_encounter(*, opponent_type: str = "tough", demand: int = 300, options: list[str] | None = None) -> PendingEncounter:
    return PendingEncounter(
        kind=EncounterKind.police,
        opponent="Officer Hardnose",
        opponent_type=opponent_type,
        demand=demand,
        options=options or ["run", "surrender", "bribe"],
    )


def mugging_encounter(*, opponent_type: str = "shifty", demand: int = 150) -> PendingEncounter:
    return PendingEncounter(
        kind=EncounterKind.mugging,
        opponent="Sneaky Pete",
        opponent_type=opponent_type,
        demand=demand,
        options=["pay", "run"],
    )
