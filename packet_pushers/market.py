from __future__ import annotations

import math
import random
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Literal

from packet_pushers.api.models import PriceQuote
from packet_pushers.catalog import COMMODITIES, LOCATION_PRICE_MODIFIERS


BUST_MULTIPLIER = 3.0
SURGE_MULTIPLIER = 1.5


@dataclass(frozen=True, slots=True)
class MarketCondition:
    """An active market modifier applied while generating prices.

    - `bust`: supply seized, named commodities triple.
    - `surge`: demand up across the board.
    """

    kind: Literal["bust", "surge"]
    commodities: tuple[str, ...] = ()


def location_modifier(location: str) -> float:
    modifier = 1.0
    for marker, factor in LOCATION_PRICE_MODIFIERS.items():
        if marker in location:
            modifier *= factor
    return modifier


def generate_prices(
    day: int,
    location: str,
    active_events: Iterable[MarketCondition] = (),
    *,
    rng: random.Random,
) -> list[PriceQuote]:
    """Price every catalog commodity for a location/day.

    `day` does not move prices by itself; it is part of the contract so callers
    regenerate per day. One random draw per commodity, catalog order.
    """

    conditions = tuple(active_events)
    loc_mod = location_modifier(location)

    quotes: list[PriceQuote] = []
    for commodity in COMMODITIES:
        price = commodity.base_price * (0.5 + rng.random() * commodity.volatility)
        price *= loc_mod

        for cond in conditions:
            if cond.kind == "bust" and commodity.name in cond.commodities:
                price *= BUST_MULTIPLIER
            elif cond.kind == "surge":
                price *= SURGE_MULTIPLIER

        quotes.append(PriceQuote(name=commodity.name, price=math.floor(price)))
    return quotes
