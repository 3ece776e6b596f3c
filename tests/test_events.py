from __future__ import annotations

import math
import random
from collections import Counter

import pytest

from helpers import ScriptedRandom, make_session, mugging_encounter, police_encounter
from packet_pushers.events import (
    EVENT_WEIGHTS,
    EventKind,
    apply_event,
    resolve_encounter,
    select_event_kind,
    total_weight,
    trigger_random_event,
)


def test_catalog_weights() -> None:
    assert total_weight() == 133
    assert [kind for kind, _ in EVENT_WEIGHTS] == list(EventKind)


@pytest.mark.parametrize(
    ("draw", "expected"),
    [
        (0.0, EventKind.police),
        (15 / 133, EventKind.mugging),
        (30 / 133, EventKind.market_surge),
        (0.999, EventKind.nothing),
    ],
)
def test_roulette_walks_weights_in_catalog_order(draw: float, expected: EventKind) -> None:
    assert select_event_kind(ScriptedRandom(0).script(draw)) == expected


def test_roulette_with_custom_table() -> None:
    table = [(EventKind.find_cash, 1), (EventKind.nothing, 3)]
    assert select_event_kind(ScriptedRandom(0).script(0.2), table) == EventKind.find_cash
    assert select_event_kind(ScriptedRandom(0).script(0.3), table) == EventKind.nothing


def test_roulette_frequencies_converge_to_weights() -> None:
    rng = random.Random(2024)
    n = 40_000
    counts = Counter(select_event_kind(rng) for _ in range(n))

    total = total_weight()
    for kind, weight in EVENT_WEIGHTS:
        assert counts[kind] / n == pytest.approx(weight / total, abs=0.01)


def test_every_kind_has_a_handler() -> None:
    for kind in EventKind:
        session = make_session(inventory={"Weed": 10, "Hash": 5})
        report = apply_event(kind, session, random.Random(3))
        if kind == EventKind.nothing:
            assert report is None
        else:
            assert report is not None
            assert report.kind == kind


def test_trigger_random_event_uses_given_table() -> None:
    session = make_session(cash=100)
    report = trigger_random_event(session, ScriptedRandom(0).script(0.5, 0.0), [(EventKind.find_cash, 1)])

    assert report is not None
    assert report.kind == EventKind.find_cash
    assert session.player.cash == 150


def test_police_without_contraband_is_narrative_only() -> None:
    session = make_session()
    before = session.model_dump()

    report = apply_event(EventKind.police, session, random.Random(0))

    assert report is not None
    assert not report.requires_decision
    assert session.model_dump() == before


def test_police_with_contraband_requires_decision() -> None:
    session = make_session(cash=100, inventory={"Weed": 1})

    report = apply_event(EventKind.police, session, ScriptedRandom(0).script(0.5))

    assert report is not None
    assert report.requires_decision
    assert report.context["kind"] == "police"
    assert report.context["demand"] == 350
    # Too broke to offer a bribe.
    assert report.context["options"] == ["run", "surrender"]
    assert session.pending_encounter is None


def test_mugging_demand_never_exceeds_cash() -> None:
    session = make_session(cash=40)

    report = apply_event(EventKind.mugging, session, ScriptedRandom(0).script(0.9))

    assert report is not None
    assert report.requires_decision
    assert report.context["demand"] == 40
    assert report.context["options"] == ["pay", "run"]
    assert session.player.cash == 40


def test_market_surge_applies_one_factor_to_all() -> None:
    session = make_session(price=300)
    apply_event(EventKind.market_surge, session, ScriptedRandom(0).script(0.0))
    assert {q.price for q in session.current_prices} == {450}


def test_market_crash_applies_one_factor_to_all() -> None:
    session = make_session(price=300)
    apply_event(EventKind.market_crash, session, ScriptedRandom(0).script(0.0))
    assert {q.price for q in session.current_prices} == {math.floor(300 * 0.3)}


def test_addicts_multiply_one_commodity() -> None:
    session = make_session(price=300)
    report = apply_event(EventKind.addicts, session, random.Random(8))

    assert report is not None
    (name,) = report.context["commodities"]
    prices = {q.name: q.price for q in session.current_prices}
    assert prices.pop(name) == 2400
    assert set(prices.values()) == {300}


def test_supply_shortage_hits_one_commodity() -> None:
    session = make_session(price=300)
    apply_event(EventKind.supply_shortage, session, ScriptedRandom(0).script(0.0))
    assert sorted(q.price for q in session.current_prices) == [300] * 12 + [900]


@pytest.mark.parametrize("kind", [EventKind.drug_bust, EventKind.police_raid])
def test_bust_and_raid_raise_two_or_three_commodities(kind: EventKind) -> None:
    session = make_session(price=300)
    report = apply_event(kind, session, random.Random(21))

    assert report is not None
    affected = report.context["commodities"]
    assert 2 <= len(affected) <= 3
    for quote in session.current_prices:
        if quote.name in affected:
            assert quote.price > 300
        else:
            assert quote.price == 300


@pytest.mark.parametrize(("draw", "found"), [(0.0, 50), (0.999, 249)])
def test_find_cash(draw: float, found: int) -> None:
    session = make_session(cash=10)
    apply_event(EventKind.find_cash, session, ScriptedRandom(0).script(draw))
    assert session.player.cash == 10 + found


def test_health_issue_paid_when_affordable() -> None:
    session = make_session(cash=1000, health=80)
    apply_event(EventKind.health_issue, session, ScriptedRandom(0).script(0.0, 0.99))

    assert session.player.cash == 900
    assert session.player.health == 80


def test_untreated_health_issue_costs_health() -> None:
    session = make_session(cash=0, health=100)
    apply_event(EventKind.health_issue, session, random.Random(4))
    assert 75 <= session.player.health <= 90


def test_health_never_drops_below_floor() -> None:
    session = make_session(cash=0, health=15)
    apply_event(EventKind.health_issue, session, random.Random(4))
    assert session.player.health == 10


def test_police_dog_finds_nothing_on_clean_player() -> None:
    session = make_session()
    report = apply_event(EventKind.police_dog, session, random.Random(0))
    assert report is not None
    assert report.text == ["A police dog sniffs around but finds nothing!"]


def test_police_dog_escape_keeps_inventory() -> None:
    session = make_session(inventory={"Weed": 5})
    apply_event(EventKind.police_dog, session, ScriptedRandom(0).script(0.9))
    assert session.player.inventory == {"Weed": 5}


def test_police_dog_drop_only_removes_held_units() -> None:
    for seed in range(30):
        session = make_session(cash=1000, inventory={"Weed": 40, "Hash": 30})
        apply_event(EventKind.police_dog, session, ScriptedRandom(seed).script(0.0))

        inv = session.player.inventory
        assert inv.get("Weed", 0) <= 40
        assert inv.get("Hash", 0) <= 30
        assert all(qty > 0 for qty in inv.values())
        assert session.player.cash in (1000, 900)


def test_loan_shark_keeps_cash_nonnegative() -> None:
    for seed in range(40):
        session = make_session(cash=300, debt=5000)
        report = apply_event(EventKind.loan_shark, session, random.Random(seed))

        assert report is not None
        assert session.player.cash >= 0
        if "paid" in report.context:
            assert session.player.cash == 300 - report.context["paid"]
            assert session.player.debt == 5000 - report.context["paid"]
        if "penalty" in report.context:
            assert session.player.debt == 5000 + report.context["penalty"]


# -- encounter resolution -----------------------------------------------------


def test_resolve_without_encounter_raises() -> None:
    with pytest.raises(ValueError):
        resolve_encounter(make_session(), "run", random.Random(0))


def test_surrender_confiscates_and_jails() -> None:
    session = make_session(cash=2000, inventory={"Weed": 5}, day=10)
    session.pending_encounter = police_encounter()

    messages = resolve_encounter(session, "surrender", random.Random(0))

    assert session.player.inventory == {}
    assert session.player.cash == 1700
    assert session.day == 12
    assert session.pending_encounter is None
    assert messages


def test_running_from_police_can_succeed() -> None:
    session = make_session(inventory={"Weed": 5}, day=10)
    session.pending_encounter = police_encounter(opponent_type="tough")

    resolve_encounter(session, "run", ScriptedRandom(0).script(0.1))

    assert session.player.inventory == {"Weed": 5}
    assert session.day == 10


def test_caught_running_from_police() -> None:
    session = make_session(cash=1000, inventory={"Weed": 5}, day=10)
    session.pending_encounter = police_encounter(opponent_type="tough")

    resolve_encounter(session, "run", ScriptedRandom(0).script(0.5))

    assert session.player.inventory == {}
    assert session.player.cash == 700
    assert session.day == 14


def test_corrupt_officer_takes_bribe() -> None:
    session = make_session(cash=1000, inventory={"Weed": 5})
    session.pending_encounter = police_encounter(opponent_type="corrupt", demand=300)

    resolve_encounter(session, "bribe", random.Random(0))

    assert session.player.cash == 700
    assert session.player.inventory == {"Weed": 5}


def test_by_the_book_officer_refuses_bribe() -> None:
    session = make_session(cash=1000, inventory={"Weed": 5}, day=3)
    session.pending_encounter = police_encounter(opponent_type="by_the_book")

    resolve_encounter(session, "bribe", random.Random(0))

    assert session.player.inventory == {}
    assert session.player.cash == 750
    assert session.day == 7


def test_bribe_without_enough_cash() -> None:
    session = make_session(cash=300, inventory={"Weed": 5}, day=3)
    session.pending_encounter = police_encounter(opponent_type="corrupt", demand=400)

    resolve_encounter(session, "bribe", random.Random(0))

    assert session.player.cash == 240
    assert session.day == 6


def test_paying_mugger() -> None:
    session = make_session(cash=500, inventory={"Weed": 10})
    session.pending_encounter = mugging_encounter(demand=150)

    resolve_encounter(session, "pay", ScriptedRandom(0).script(0.99))

    assert session.player.cash == 350
    assert session.player.inventory == {"Weed": 10}
    assert session.pending_encounter is None


def test_outrunning_mugger() -> None:
    session = make_session(cash=500)
    session.pending_encounter = mugging_encounter()

    resolve_encounter(session, "run", ScriptedRandom(0).script(0.1))

    assert session.player.cash == 500


def test_caught_by_mugger() -> None:
    session = make_session(cash=1000, inventory={"Weed": 10})
    session.pending_encounter = mugging_encounter()

    resolve_encounter(session, "run", ScriptedRandom(0).script(0.9, 0.0, 0.9))

    assert session.player.cash == 1000 - math.floor(1000 * 0.15)
    assert session.player.inventory == {"Weed": 10}
