"""Random event engine.

Events are drawn once per day advance with a cumulative-weight roulette over a fixed
catalog. Each kind is a plain tag; all behavior lives in one dispatcher (`apply_event`)
that routes a tag to its handler.

Confrontations (police with contraband, muggings) are two-phase: the draw only
describes the encounter (`EventReport.requires_decision`), the executor parks it on
`Session.pending_encounter`, and a later `encounter` action carries the player's
choice into `resolve_encounter`.
"""

from __future__ import annotations

import logging
import math
import random
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import StrEnum

from packet_pushers.api.models import (
    Category,
    EncounterKind,
    EventReport,
    Message,
    PendingEncounter,
    Session,
)
from packet_pushers.catalog import MAX_HEALTH, MIN_HEALTH

logger = logging.getLogger(__name__)


class EventKind(StrEnum):
    police = "police"
    mugging = "mugging"
    market_surge = "market_surge"
    market_crash = "market_crash"
    drug_bust = "drug_bust"
    police_raid = "police_raid"
    supply_shortage = "supply_shortage"
    addicts = "addicts"
    police_dog = "police_dog"
    loan_shark = "loan_shark"
    find_cash = "find_cash"
    health_issue = "health_issue"
    dealer_encounter = "dealer_encounter"
    informant_tip = "informant_tip"
    nothing = "nothing"


# Catalog order matters: ties in the roulette resolve to the earlier kind.
EVENT_WEIGHTS: tuple[tuple[EventKind, int], ...] = (
    (EventKind.police, 10),
    (EventKind.mugging, 8),
    (EventKind.market_surge, 15),
    (EventKind.market_crash, 15),
    (EventKind.drug_bust, 12),
    (EventKind.police_raid, 8),
    (EventKind.supply_shortage, 10),
    (EventKind.addicts, 8),
    (EventKind.police_dog, 8),
    (EventKind.loan_shark, 8),
    (EventKind.find_cash, 12),
    (EventKind.health_issue, 4),
    (EventKind.dealer_encounter, 6),
    (EventKind.informant_tip, 5),
    (EventKind.nothing, 4),
)


@dataclass(frozen=True, slots=True)
class Character:
    name: str
    type: str


OFFICERS: tuple[Character, ...] = (
    Character("Officer Hardnose", "tough"),
    Character("Deputy Donut", "corrupt"),
    Character("Detective Persistent", "smart"),
    Character("Sergeant Brawny", "strong"),
    Character("Captain Straightlace", "by_the_book"),
)

DEALERS: tuple[Character, ...] = (
    Character("Slick Eddie", "smooth"),
    Character("Big Tony", "intimidating"),
    Character("Sneaky Pete", "shifty"),
    Character("Mad Dog Mike", "aggressive"),
    Character("Whisper Wilson", "secretive"),
)

INFORMANTS: tuple[Character, ...] = (
    Character("Chatty Charlie", "talkative"),
    Character("Nervous Nelly", "anxious"),
    Character("Wise Willie", "knowledgeable"),
    Character("Shifty Sam", "suspicious"),
)

LOAN_SHARKS: tuple[Character, ...] = (
    Character('Vinny "The Vise"', "pressure"),
    Character("Bones McGillicuddy", "threatening"),
    Character('Sal "Interest" Soprano', "greedy"),
    Character('Tommy "Two-Percent"', "calculating"),
)

DOCTORS: tuple[Character, ...] = (
    Character("Dr. Feelgood", "helpful"),
    Character("Doc Patchup", "quick"),
    Character("Nurse Painkiller", "medicated"),
    Character("Surgeon Steady", "precise"),
)

BUST_OPERATIONS: tuple[str, ...] = (
    "Operation Rubber Duck: Major bust shuts down a supplier!",
    "Operation Blue Thunder: Police seize a huge shipment at the border!",
    "Operation Clean Sweep: Feds raid a major distribution center!",
    "Operation Deep Current: Coast Guard intercepts a smuggling run!",
    "Operation Silent Partner: FBI breaks up a trafficking ring!",
)

SURGE_REASONS: tuple[str, ...] = (
    "Supply chain disruption hits the streets",
    "New club scene drives demand",
    "International shortage affects local prices",
    "Quality batch rumors spread through the underground",
)

RAID_TYPES: tuple[str, ...] = (
    "Police raid local dealers!",
    "SWAT team hits a stash house!",
    "Narcotics unit sweeps the area!",
    "Vice squad cracks down!",
)

SHORTAGE_TYPES: tuple[str, ...] = (
    "Lab explosion cuts supply!",
    "Cartel war disrupts shipments!",
    "Border crackdown stops imports!",
    "Key supplier arrested!",
)

HEALTH_ISSUES: tuple[str, ...] = ("Food Poisoning", "Flu", "Headache", "Fatigue", "Mysterious Rash", "Dizzy Spells")

DOG_NAMES: tuple[str, ...] = ("Rex", "Duke", "Bruno", "Max", "Ace", "Thor", "Ranger")

BRIBE_MIN_CASH = 200


def total_weight(table: Sequence[tuple[EventKind, int]] = EVENT_WEIGHTS) -> int:
    return sum(w for _, w in table)


def select_event_kind(rng: random.Random, table: Sequence[tuple[EventKind, int]] = EVENT_WEIGHTS) -> EventKind:
    """Cumulative-weight roulette: subtract weights in order until the draw goes non-positive."""

    remaining = rng.random() * total_weight(table)
    for kind, weight in table:
        remaining -= weight
        if remaining <= 0:
            return kind
    # Float drift only; the draw is strictly below the total.
    return table[-1][0]


def _between(rng: random.Random, low: float, high: float) -> float:
    return low + rng.random() * (high - low)


def _scale_price(session: Session, commodity: str, factor: float) -> None:
    for quote in session.current_prices:
        if quote.name == commodity:
            quote.price = math.floor(quote.price * factor)
            return


def _pick_commodities(session: Session, rng: random.Random, count: int) -> list[str]:
    names = [q.name for q in session.current_prices]
    return rng.sample(names, k=min(count, len(names)))


def _remove_units(session: Session, commodity: str, amount: int) -> int:
    inventory = session.player.inventory
    held = inventory.get(commodity, 0)
    amount = min(amount, held)
    if amount <= 0:
        return 0
    if held - amount > 0:
        inventory[commodity] = held - amount
    else:
        del inventory[commodity]
    return amount


def _lose_random_inventory(session: Session, rng: random.Random, fraction: float) -> Message | None:
    items = sorted(session.player.inventory)
    if not items:
        return None
    commodity = rng.choice(items)
    lost = _remove_units(session, commodity, math.floor(session.player.inventory[commodity] * fraction))
    if not lost:
        return None
    return Message(text=f"You lost {lost} {commodity} in the incident.", category=Category.warning)


def _take_cash(session: Session, amount: int) -> int:
    taken = max(0, min(amount, session.player.cash))
    session.player.cash -= taken
    return taken


def _clamp_health(value: int) -> int:
    return max(MIN_HEALTH, min(MAX_HEALTH, value))


# -- phase one handlers -------------------------------------------------------


def _police(session: Session, rng: random.Random) -> EventReport:
    officer = rng.choice(OFFICERS)
    if not session.player.inventory:
        return EventReport(
            kind=EventKind.police,
            category=Category.success,
            text=[f"{officer.name} spotted you!", "You have nothing illegal on you. The officer lets you go."],
        )

    bribe = math.floor(200 + rng.random() * 300)
    options = ["run", "surrender"]
    if session.player.cash >= BRIBE_MIN_CASH:
        options.append("bribe")

    return EventReport(
        kind=EventKind.police,
        category=Category.warning,
        text=[f"{officer.name} spotted you!", "What do you do?"],
        requires_decision=True,
        context={
            "kind": EncounterKind.police.value,
            "opponent": officer.name,
            "opponent_type": officer.type,
            "demand": bribe,
            "options": options,
        },
    )


def _mugging(session: Session, rng: random.Random) -> EventReport:
    mugger = rng.choice(DEALERS)
    demand = min(session.player.cash, math.floor(session.player.cash * 0.1 + rng.random() * 100))
    return EventReport(
        kind=EventKind.mugging,
        category=Category.warning,
        text=[f"{mugger.name} approaches you menacingly!", f"They want ${demand}."],
        requires_decision=True,
        context={
            "kind": EncounterKind.mugging.value,
            "opponent": mugger.name,
            "opponent_type": mugger.type,
            "demand": demand,
            "options": ["pay", "run"],
        },
    )


def _market_surge(session: Session, rng: random.Random) -> EventReport:
    factor = _between(rng, 1.5, 2.5)
    for quote in session.current_prices:
        quote.price = math.floor(quote.price * factor)
    reason = rng.choice(SURGE_REASONS)
    return EventReport(
        kind=EventKind.market_surge,
        category=Category.warning,
        text=[f"{reason} - prices skyrocket across the board!"],
        context={"factor": round(factor, 3)},
    )


def _market_crash(session: Session, rng: random.Random) -> EventReport:
    factor = _between(rng, 0.3, 0.7)
    for quote in session.current_prices:
        quote.price = math.floor(quote.price * factor)
    return EventReport(
        kind=EventKind.market_crash,
        category=Category.warning,
        text=["Market crash! Prices have plummeted!"],
        context={"factor": round(factor, 3)},
    )


def _drug_bust(session: Session, rng: random.Random) -> EventReport:
    affected = _pick_commodities(session, rng, 2 + rng.randrange(2))
    for name in affected:
        _scale_price(session, name, _between(rng, 2.0, 4.0))
    return EventReport(
        kind=EventKind.drug_bust,
        category=Category.warning,
        text=[rng.choice(BUST_OPERATIONS), f"Supply compromised for: {', '.join(affected)}"],
        context={"commodities": affected},
    )


def _police_raid(session: Session, rng: random.Random) -> EventReport:
    affected = _pick_commodities(session, rng, 2 + rng.randrange(2))
    for name in affected:
        _scale_price(session, name, _between(rng, 1.5, 2.5))
    return EventReport(
        kind=EventKind.police_raid,
        category=Category.warning,
        text=[f"{rng.choice(RAID_TYPES)} Supply is tight!", f"Prices up for: {', '.join(affected)}"],
        context={"commodities": affected},
    )


def _supply_shortage(session: Session, rng: random.Random) -> EventReport:
    (name,) = _pick_commodities(session, rng, 1)
    _scale_price(session, name, _between(rng, 3.0, 5.0))
    return EventReport(
        kind=EventKind.supply_shortage,
        category=Category.warning,
        text=[f"{rng.choice(SHORTAGE_TYPES)} {name} in short supply!"],
        context={"commodities": [name]},
    )


def _addicts(session: Session, rng: random.Random) -> EventReport:
    (name,) = _pick_commodities(session, rng, 1)
    _scale_price(session, name, 8.0)
    return EventReport(
        kind=EventKind.addicts,
        category=Category.success,
        text=[f"Desperate {name} users will pay anything!", "This is your chance to make serious money!"],
        context={"commodities": [name]},
    )


def _police_dog(session: Session, rng: random.Random) -> EventReport:
    if not session.player.inventory:
        return EventReport(
            kind=EventKind.police_dog,
            category=Category.success,
            text=["A police dog sniffs around but finds nothing!"],
        )

    dog = rng.choice(DOG_NAMES)
    load = session.player.inventory_size()
    if load > 50:
        drop_chance = 0.7
    elif load > 20:
        drop_chance = 0.5
    else:
        drop_chance = 0.3

    text = [f"Police dog {dog} catches your scent!"]
    if rng.random() >= drop_chance:
        text.append(f"You outran {dog}! Close call!")
        return EventReport(kind=EventKind.police_dog, category=Category.success, text=text)

    dropped: dict[str, int] = {}
    items = sorted(session.player.inventory)
    for name in rng.sample(items, k=min(len(items), 1 + rng.randrange(3))):
        held = session.player.inventory[name]
        lost = _remove_units(session, name, math.floor(held * _between(rng, 0.3, 0.7)))
        if lost:
            dropped[name] = lost
    if dropped:
        text.append("You dropped " + ", ".join(f"{n} {c}" for c, n in dropped.items()) + " while running!")

    cash_lost = 0
    if rng.random() < 0.2:
        cash_lost = _take_cash(session, math.floor(session.player.cash * 0.1))
        text.append(f"The handler catches up. You lost ${cash_lost} in the confusion.")
    else:
        text.append("You managed to lose them in the crowd!")

    return EventReport(
        kind=EventKind.police_dog,
        category=Category.warning,
        text=text,
        context={"dropped": dropped, "cash_lost": cash_lost},
    )


def _loan_shark(session: Session, rng: random.Random) -> EventReport:
    shark = rng.choice(LOAN_SHARKS)
    mode = rng.choice(("demand", "offer", "threat"))
    player = session.player
    text = [f"{shark.name} approaches you!"]

    if mode == "demand":
        demand = math.floor(player.debt * 0.1)
        if player.cash >= demand:
            player.cash -= demand
            player.debt -= demand
            text.append(f"You paid ${demand} to avoid trouble.")
            return EventReport(kind=EventKind.loan_shark, category=Category.info, text=text, context={"paid": demand})
        penalty = math.floor(demand * (0.8 if shark.type == "threatening" else 0.5))
        player.debt += penalty
        text.append(f"You could not pay ${demand}. Your debt grows by ${penalty}.")
        return EventReport(kind=EventKind.loan_shark, category=Category.warning, text=text, context={"penalty": penalty})

    if mode == "offer":
        offer = math.floor(500 + rng.random() * 1000)
        text.append(f"They offer you another ${offer} loan at a ruinous rate. You walk away.")
    else:
        text.append("Better pay up soon or face consequences...")
    return EventReport(kind=EventKind.loan_shark, category=Category.info, text=text)


def _find_cash(session: Session, rng: random.Random) -> EventReport:
    found = math.floor(50 + rng.random() * 200)
    session.player.cash += found
    return EventReport(
        kind=EventKind.find_cash,
        category=Category.success,
        text=[f"You found ${found} on the ground!"],
        context={"amount": found},
    )


def _health_issue(session: Session, rng: random.Random) -> EventReport:
    issue = rng.choice(HEALTH_ISSUES)
    doctor = rng.choice(DOCTORS)
    cost = math.floor(100 + rng.random() * 200)
    player = session.player
    text = [f"You got {issue}!", f"{doctor.name} offers treatment for ${cost}."]

    if player.cash >= cost:
        player.cash -= cost
        text.append(f"You paid ${cost} for treatment.")
        if doctor.type == "helpful" and rng.random() < 0.3:
            refund = math.floor(cost * 0.3)
            player.cash += refund
            text.append(f"{doctor.name} gives you ${refund} back for being a good patient.")
        return EventReport(kind=EventKind.health_issue, category=Category.info, text=text, context={"cost": cost})

    damage = 10 + rng.randrange(16)
    player.health = _clamp_health(player.health - damage)
    text.append("You could not afford treatment. You feel terrible.")
    return EventReport(
        kind=EventKind.health_issue,
        category=Category.warning,
        text=text,
        context={"health_lost": damage},
    )


def _dealer_encounter(session: Session, rng: random.Random) -> EventReport:
    dealer = rng.choice(DEALERS)
    text = [f"{dealer.name} approaches you."]
    roll = rng.random()

    if roll < 0.4:
        (name,) = _pick_commodities(session, rng, 1)
        _scale_price(session, name, _between(rng, 0.8, 1.2))
        text.append(f"{name} prices shifted after the tip.")
        return EventReport(
            kind=EventKind.dealer_encounter,
            category=Category.info,
            text=text,
            context={"commodities": [name]},
        )
    if roll < 0.6:
        text.append("They warn you the cops are busy today. You take extra care.")
        return EventReport(kind=EventKind.dealer_encounter, category=Category.info, text=text)

    player = session.player
    if player.inventory and rng.random() < 0.6:
        name = rng.choice(sorted(player.inventory))
        amount = rng.randrange(min(5, player.inventory[name])) + 1
        unit = math.floor((session.price_of(name) or 0) * 1.1)
        text.append(f"They offer to buy {amount} {name} for ${unit} each.")
        if rng.random() < 0.5:
            sold = _remove_units(session, name, amount)
            player.cash += unit * sold
            text.append(f"You sold {sold} {name} for ${unit * sold}!")
            return EventReport(
                kind=EventKind.dealer_encounter,
                category=Category.success,
                text=text,
                context={"commodity": name, "quantity": sold, "unit_price": unit},
            )
        text.append("You decided not to make the deal.")
    else:
        text.append("They don't have anything interesting to offer right now.")
    return EventReport(kind=EventKind.dealer_encounter, category=Category.info, text=text)


def _informant_tip(session: Session, rng: random.Random) -> EventReport:
    informant = rng.choice(INFORMANTS)
    text = [f"{informant.name} whispers to you."]
    roll = rng.random()

    if roll < 0.3:
        (name,) = _pick_commodities(session, rng, 1)
        factor = 1.3 if rng.random() < 0.5 else 0.7
        _scale_price(session, name, factor)
        text.append(f"{name} prices {'surged' if factor > 1 else 'dropped'} on the tip!")
        return EventReport(
            kind=EventKind.informant_tip,
            category=Category.info,
            text=text,
            context={"commodities": [name], "factor": factor},
        )
    if roll < 0.6:
        text.append("You'll be more careful about police today.")
        return EventReport(kind=EventKind.informant_tip, category=Category.info, text=text)

    windfall = math.floor(10 + rng.random() * 30)
    session.player.cash += windfall
    text.append(f"They slip you ${windfall} for keeping quiet.")
    return EventReport(
        kind=EventKind.informant_tip,
        category=Category.success,
        text=text,
        context={"amount": windfall},
    )


def _nothing(session: Session, rng: random.Random) -> None:
    return None


EventHandler = Callable[[Session, random.Random], EventReport | None]

_HANDLERS: dict[EventKind, EventHandler] = {
    EventKind.police: _police,
    EventKind.mugging: _mugging,
    EventKind.market_surge: _market_surge,
    EventKind.market_crash: _market_crash,
    EventKind.drug_bust: _drug_bust,
    EventKind.police_raid: _police_raid,
    EventKind.supply_shortage: _supply_shortage,
    EventKind.addicts: _addicts,
    EventKind.police_dog: _police_dog,
    EventKind.loan_shark: _loan_shark,
    EventKind.find_cash: _find_cash,
    EventKind.health_issue: _health_issue,
    EventKind.dealer_encounter: _dealer_encounter,
    EventKind.informant_tip: _informant_tip,
    EventKind.nothing: _nothing,
}


def apply_event(kind: EventKind, session: Session, rng: random.Random) -> EventReport | None:
    """Run the handler for `kind` against `session` (mutated in place)."""

    return _HANDLERS[kind](session, rng)


def trigger_random_event(
    session: Session,
    rng: random.Random,
    table: Sequence[tuple[EventKind, int]] = EVENT_WEIGHTS,
) -> EventReport | None:
    kind = select_event_kind(rng, table)
    report = apply_event(kind, session, rng)
    logger.debug("event session=%s day=%s kind=%s", session.session_id, session.day, kind.value)
    return report


# -- phase two: encounter resolution -----------------------------------------


def _arrest(session: Session, *, fine_rate: float, days: int, messages: list[Message]) -> None:
    session.player.inventory = {}
    fine = _take_cash(session, math.floor(session.player.cash * fine_rate))
    session.day += days
    messages.append(Message(text="You were arrested! All your inventory is confiscated.", category=Category.error))
    messages.append(Message(text=f"You spent {days} days in jail and paid a ${fine} fine.", category=Category.error))


def _resolve_police(session: Session, encounter: PendingEncounter, choice: str, rng: random.Random) -> list[Message]:
    messages: list[Message] = []

    if choice == "surrender":
        messages.append(Message(text="You surrender peacefully."))
        _arrest(session, fine_rate=0.15, days=2, messages=messages)
    elif choice == "run":
        escape_chance = 0.2 if encounter.opponent_type == "smart" else 0.3
        if rng.random() < escape_chance:
            messages.append(Message(text="You successfully escaped!", category=Category.success))
        else:
            messages.append(Message(text="You were caught while trying to escape!", category=Category.error))
            _arrest(session, fine_rate=0.3, days=4, messages=messages)
    elif choice == "bribe":
        if encounter.opponent_type == "by_the_book":
            messages.append(Message(text=f"{encounter.opponent} is offended by the bribe!", category=Category.error))
            _arrest(session, fine_rate=0.25, days=4, messages=messages)
        elif encounter.opponent_type == "corrupt" or rng.random() < 0.7:
            if session.player.cash >= encounter.demand:
                session.player.cash -= encounter.demand
                messages.append(
                    Message(
                        text=f"{encounter.opponent} accepts the ${encounter.demand} bribe and lets you go.",
                        category=Category.success,
                    )
                )
            else:
                messages.append(Message(text="You don't have enough cash for the bribe!", category=Category.error))
                _arrest(session, fine_rate=0.2, days=3, messages=messages)
        else:
            messages.append(Message(text=f"{encounter.opponent} rejects your bribe.", category=Category.error))
            _arrest(session, fine_rate=0.2, days=3, messages=messages)
    else:
        raise ValueError(f"Unknown police choice: {choice}")

    return messages


_MUGGER_INVENTORY_RISK: dict[str, tuple[float, float]] = {
    # type -> (chance to lose inventory, fraction lost)
    "aggressive": (0.5, 0.3),
    "smooth": (0.2, 0.1),
}


def _resolve_mugging(session: Session, encounter: PendingEncounter, choice: str, rng: random.Random) -> list[Message]:
    messages: list[Message] = []

    if choice == "pay":
        lost = _take_cash(session, encounter.demand)
        messages.append(Message(text=f"You handed over ${lost} to {encounter.opponent}.", category=Category.error))
        chance, fraction = _MUGGER_INVENTORY_RISK.get(encounter.opponent_type, (0.3, 0.2))
        if rng.random() < chance:
            msg = _lose_random_inventory(session, rng, fraction)
            if msg is not None:
                messages.append(msg)
    elif choice == "run":
        if rng.random() < 0.6:
            messages.append(Message(text="You successfully escaped!", category=Category.success))
        else:
            lost = _take_cash(session, math.floor(session.player.cash * 0.15 + rng.random() * 150))
            messages.append(Message(text=f"{encounter.opponent} caught you and took ${lost}!", category=Category.error))
            if rng.random() < 0.4:
                msg = _lose_random_inventory(session, rng, 0.3)
                if msg is not None:
                    messages.append(msg)
    else:
        raise ValueError(f"Unknown mugging choice: {choice}")

    return messages


def resolve_encounter(session: Session, choice: str, rng: random.Random) -> list[Message]:
    """Apply the player's choice to the pending confrontation and clear it.

    The caller is responsible for having validated `choice` against the offered options.
    """

    encounter = session.pending_encounter
    if encounter is None:
        raise ValueError("No encounter to resolve")

    if encounter.kind == EncounterKind.police:
        messages = _resolve_police(session, encounter, choice, rng)
    else:
        messages = _resolve_mugging(session, encounter, choice, rng)

    session.pending_encounter = None
    return messages
