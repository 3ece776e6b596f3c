from __future__ import annotations

from dataclasses import dataclass


STARTING_CASH = 2000
STARTING_DEBT = 5000
BASE_INVENTORY = 100
STARTING_HEALTH = 100
MAX_DAYS = 30
DAILY_INTEREST_RATE = 0.05

# Client-declared purchase cost may differ from the server's figure by at most this much.
PRICE_TOLERANCE = 1

MIN_HEALTH = 10
MAX_HEALTH = 100


@dataclass(frozen=True, slots=True)
class Commodity:
    name: str
    base_price: int
    # 0..1; higher means wider random swing around the base price.
    volatility: float


COMMODITIES: tuple[Commodity, ...] = (
    Commodity("Acid", 1000, 0.9),
    Commodity("Cocaine", 15000, 0.2),
    Commodity("Hash", 150, 0.7),
    Commodity("Heroin", 5000, 0.3),
    Commodity("Molly", 10, 0.9),
    Commodity("Ice", 311, 0.8),
    Commodity("Opium", 548, 0.7),
    Commodity("Crack", 1000, 0.6),
    Commodity("Peyote", 122, 0.9),
    Commodity("Mushrooms", 600, 0.8),
    Commodity("Speed", 70, 0.9),
    Commodity("Weed", 300, 0.8),
    Commodity("Special K", 471, 0.7),
)

COMMODITY_NAMES: tuple[str, ...] = tuple(c.name for c in COMMODITIES)

_CITY_DISTRICTS: dict[str, tuple[str, ...]] = {
    "New York": ("JFK Airport", "Brooklyn Docks", "Times Square", "Central Park"),
    "Los Angeles": ("LAX Airport", "Hollywood Hills", "Venice Beach", "Compton"),
    "Chicago": ("O'Hare Airport", "The Loop", "Wicker Park", "South Side"),
    "Miami": ("Miami Airport", "South Beach", "Little Havana", "Biscayne Bay"),
    "Detroit": ("Detroit Airport", "Corktown", "Greektown", "Belle Isle"),
    "Boston": ("Logan Airport", "Back Bay", "North End", "Fenway"),
}

LOCATIONS: tuple[str, ...] = tuple(
    f"{city} - {district}" for city, districts in _CITY_DISTRICTS.items() for district in districts
)

STARTING_LOCATION = "New York - JFK Airport"

# Substring of the location name -> price multiplier.
LOCATION_PRICE_MODIFIERS: dict[str, float] = {
    "Airport": 1.2,
    "Park": 0.8,
}


def get_commodity(name: str) -> Commodity | None:
    return next((c for c in COMMODITIES if c.name == name), None)


def is_location(name: str) -> bool:
    return name in LOCATIONS
