from __future__ import annotations

from collections import Counter

import pytest

from warband.enums import EquipmentSlot, NodeType
from warband.errors import InvalidRunStateError, RunNotStartedError
from warband.events import RunEvent
from warband.models import BattleResult, MapNode
from warband.run import EquipResult, RunManager


def record(run_manager, event_name):
    seen = []
    run_manager.events.subscribe(event_name, seen.append)
    return seen


def hp_of(run_manager, hero_id):
    return run_manager.get_hero_state(hero_id).current_hp


# ---------------------------
# Lifecycle
# ---------------------------

def test_operations_require_a_started_run(run_manager):
    assert run_manager.is_active is False
    with pytest.raises(RunNotStartedError):
        run_manager.add_gold(10)
    with pytest.raises(RunNotStartedError):
        run_manager.serialize()
    with pytest.raises(RunNotStartedError):
        _ = run_manager.heroes


def test_new_run_defaults(started_run):
    rm = started_run
    assert rm.seed == 12345
    assert [h.id for h in rm.heroes] == ["warrior", "archer"]
    assert rm.gold == 100
    assert rm.floor == 1
    assert rm.map == ()
    assert rm.current_node == -1
    assert rm.current_act == 0
    assert rm.relics == ()
    assert rm.difficulty == "normal"
    for hero in rm.heroes:
        assert hero.level == 1
        assert hero.exp == 0
        assert hero.current_hp == rm.get_max_hp(hero.id)
    assert hp_of(rm, "warrior") == 900
    assert hp_of(rm, "archer") == 550


def test_new_run_without_seed_uses_32_bit_seed(run_manager):
    run_manager.new_run()
    assert 0 <= run_manager.seed <= 0xFFFFFFFF


def test_new_run_custom_roster_and_difficulty(run_manager):
    run_manager.new_run(seed=1, difficulty="hard", starting_hero_ids=["mage", "priest", "knight"])
    assert run_manager.difficulty == "hard"
    assert [h.id for h in run_manager.heroes] == ["mage", "priest", "knight"]


@pytest.mark.parametrize(
    "hero_ids",
    [
        [],
        ["warrior", "warrior"],
        ["warrior", "nobody"],
        ["warrior", "archer", "mage", "priest", "rogue", "knight"],
    ],
)
def test_new_run_rejects_bad_roster(run_manager, hero_ids):
    with pytest.raises(ValueError):
        run_manager.new_run(seed=1, starting_hero_ids=hero_ids)
    assert run_manager.is_active is False


def test_new_run_rejects_unknown_difficulty(run_manager):
    with pytest.raises(ValueError):
        run_manager.new_run(seed=1, difficulty="impossible")


def test_new_run_replaces_previous_run(started_run):
    started_run.add_gold(500)
    started_run.new_run(seed=2)
    assert started_run.gold == 100
    assert started_run.seed == 2


def test_heroes_are_read_only_snapshots(started_run):
    hero = started_run.get_hero_state("warrior")
    with pytest.raises(AttributeError):
        hero.current_hp = 1  # frozen dataclass
    state = started_run.state
    state.heroes.clear()
    assert len(started_run.heroes) == 2


# ---------------------------
# Gold
# ---------------------------

def test_add_gold_clamps_at_zero(started_run):
    assert started_run.add_gold(50) == 150
    assert started_run.add_gold(-1000) == 0
    assert started_run.gold == 0


def test_spend_gold_never_overdraws(started_run):
    assert started_run.spend_gold(150) is False
    assert started_run.gold == 100
    assert started_run.spend_gold(40) is True
    assert started_run.gold == 60
    assert started_run.spend_gold(60) is True
    assert started_run.gold == 0
    assert started_run.spend_gold(1) is False
    assert started_run.gold == 0


def test_spend_gold_rejects_negative(started_run):
    with pytest.raises(ValueError):
        started_run.spend_gold(-5)
    assert started_run.gold == 100


@pytest.mark.parametrize("amount", [10.5, "10", True, None])
def test_gold_amounts_must_be_whole(started_run, amount):
    with pytest.raises(TypeError):
        started_run.spend_gold(amount)
    with pytest.raises(TypeError):
        started_run.add_gold(amount)
    assert started_run.gold == 100
    started_run.deserialize(started_run.serialize())


# ---------------------------
# Roster
# ---------------------------

def test_add_hero(started_run):
    added = record(started_run, RunEvent.HERO_ADD)
    assert started_run.add_hero("mage") is True
    assert [h.id for h in started_run.heroes] == ["warrior", "archer", "mage"]
    assert added[0].payload == {"hero_id": "mage"}
    mage = started_run.get_hero_state("mage")
    assert (mage.level, mage.exp, mage.current_hp) == (1, 0, 480)


def test_add_hero_failures(started_run):
    assert started_run.add_hero("nobody") is False
    assert started_run.add_hero("warrior") is False
    for hero_id in ("mage", "priest", "rogue"):
        assert started_run.add_hero(hero_id) is True
    assert len(started_run.heroes) == 5
    assert started_run.add_hero("knight") is False
    assert len(started_run.heroes) == 5


def test_roster_changes_recompute_synergies(started_run):
    assert started_run.get_active_synergies() == []
    started_run.add_hero("mage")
    assert [a.synergy_id for a in started_run.get_active_synergies()] == ["human"]
    assert started_run.synergies.get_synergy_bonuses("warrior") == {"attack": 5, "defense": 5}

    assert started_run.remove_hero("mage") is True
    assert started_run.get_active_synergies() == []


def test_remove_hero_failures(run_manager):
    run_manager.new_run(seed=1, starting_hero_ids=["warrior"])
    assert run_manager.remove_hero("archer") is False
    assert run_manager.remove_hero("warrior") is False
    assert [h.id for h in run_manager.heroes] == ["warrior"]


# ---------------------------
# HP
# ---------------------------

def test_damage_and_heal_use_floor_of_max_hp(started_run):
    started_run.damage_all_heroes(0.5)
    assert hp_of(started_run, "warrior") == 450
    assert hp_of(started_run, "archer") == 275

    started_run.heal_all_heroes(0.1)
    assert hp_of(started_run, "warrior") == 540
    assert hp_of(started_run, "archer") == 330

    started_run.heal_all_heroes(5.0)
    assert hp_of(started_run, "warrior") == 900


def test_damage_never_kills(started_run):
    started_run.damage_all_heroes(1.5)
    assert hp_of(started_run, "warrior") == 1
    assert hp_of(started_run, "archer") == 1


@pytest.mark.parametrize("percent", [-0.5, -2.0, float("nan")])
def test_negative_percent_is_rejected(started_run, percent):
    started_run.damage_all_heroes(0.5)
    with pytest.raises(ValueError):
        started_run.heal_all_heroes(percent)
    with pytest.raises(ValueError):
        started_run.damage_all_heroes(percent)
    assert hp_of(started_run, "warrior") == 450
    assert hp_of(started_run, "archer") == 275
    started_run.deserialize(started_run.serialize())


def test_rest_heals_by_configured_share(started_run):
    started_run.damage_all_heroes(0.9)
    assert hp_of(started_run, "warrior") == 90
    started_run.rest()
    assert hp_of(started_run, "warrior") == 90 + 270
    assert hp_of(started_run, "archer") == 55 + 165


def test_rest_uses_settings(content, settings):
    rm = RunManager(content=content, settings=settings.replace(rest_heal_percent=1.0))
    rm.new_run(seed=3)
    rm.damage_all_heroes(0.5)
    rm.rest()
    assert hp_of(rm, "warrior") == 900


def test_update_hero_hp_clamps(started_run):
    assert started_run.update_hero_hp("warrior", 5000) is True
    assert hp_of(started_run, "warrior") == 900
    assert started_run.update_hero_hp("warrior", -5) is True
    assert hp_of(started_run, "warrior") == 0
    assert started_run.update_hero_hp("nobody", 10) is False


def test_get_max_hp_unknown_hero(started_run):
    with pytest.raises(KeyError):
        started_run.get_max_hp("nobody")


# ---------------------------
# Battle results and levelling
# ---------------------------

def test_apply_battle_result_hp_and_gold(started_run):
    result = BattleResult(
        victory=True,
        gold_earned=25,
        exp_earned=0,
        survivors=("warrior",),
        hero_hp={"warrior": 300},
    )
    started_run.apply_battle_result(result)
    assert started_run.gold == 125
    assert hp_of(started_run, "warrior") == 300
    assert hp_of(started_run, "archer") == 1


def test_survivors_without_reported_hp_keep_current(started_run):
    started_run.update_hero_hp("archer", 200)
    started_run.apply_battle_result(BattleResult(victory=True, survivors=("warrior", "archer")))
    assert hp_of(started_run, "archer") == 200
    assert hp_of(started_run, "warrior") == 900


def test_reported_hp_is_clamped_to_max(started_run):
    started_run.apply_battle_result(
        BattleResult(victory=True, survivors=("warrior",), hero_hp={"warrior": 99999})
    )
    assert hp_of(started_run, "warrior") == 900


def test_level_up_heals_to_full(started_run):
    started_run.apply_battle_result(
        BattleResult(victory=True, exp_earned=150, survivors=("warrior",), hero_hp={"warrior": 10})
    )
    warrior = started_run.get_hero_state("warrior")
    archer = started_run.get_hero_state("archer")
    assert (warrior.level, warrior.exp) == (2, 0)
    assert warrior.current_hp == 990
    # Fallen heroes are revived at 1 HP, then the level-up heals them
    assert (archer.level, archer.current_hp) == (2, 600)


def test_multiple_level_ups_in_one_result(started_run):
    started_run.apply_battle_result(BattleResult(victory=True, exp_earned=349, survivors=("warrior", "archer")))
    assert started_run.get_hero_state("warrior").level == 2
    assert started_run.get_hero_state("warrior").exp == 199

    started_run.apply_battle_result(BattleResult(victory=True, exp_earned=1, survivors=("warrior", "archer")))
    assert started_run.get_hero_state("warrior").level == 3
    assert started_run.get_hero_state("warrior").exp == 0


def test_level_is_capped(content, settings):
    rm = RunManager(content=content, settings=settings.replace(max_level=2))
    rm.new_run(seed=1)
    rm.apply_battle_result(BattleResult(victory=True, exp_earned=10000, survivors=("warrior", "archer")))
    warrior = rm.get_hero_state("warrior")
    assert warrior.level == 2
    assert warrior.exp == 10000 - 150


# ---------------------------
# Equipment
# ---------------------------

def test_equip_and_replace(started_run, content):
    equipped = record(started_run, RunEvent.ITEM_EQUIP)
    result = started_run.equip_item("warrior", "health_amulet")
    assert result == EquipResult(ok=True, replaced=None)
    assert started_run.get_max_hp("warrior") == 1000
    assert hp_of(started_run, "warrior") == 900

    result = started_run.equip_item("warrior", content.items["swift_ring"])
    assert result.ok is True
    assert result.replaced == content.items["health_amulet"]
    assert started_run.get_hero_state("warrior").equipment.accessory.id == "swift_ring"
    assert [e.payload["item_id"] for e in equipped] == ["health_amulet", "swift_ring"]
    assert equipped[1].payload["replaced_id"] == "health_amulet"


def test_equip_not_found(started_run):
    assert started_run.equip_item("warrior", "no_such_item") == EquipResult(ok=False)
    assert started_run.equip_item("nobody", "iron_sword") == EquipResult(ok=False)


def test_unequip_clamps_hp(started_run, content):
    started_run.equip_item("warrior", "plate_armor")
    started_run.heal_all_heroes(1.0)
    assert hp_of(started_run, "warrior") == 1050

    result = started_run.unequip_item("warrior", EquipmentSlot.ARMOR)
    assert result == EquipResult(ok=True, replaced=content.items["plate_armor"])
    assert hp_of(started_run, "warrior") == 900
    assert started_run.get_hero_state("warrior").equipment.armor is None


def test_unequip_edge_cases(started_run):
    assert started_run.unequip_item("warrior", "weapon") == EquipResult(ok=True, replaced=None)
    assert started_run.unequip_item("nobody", "weapon") == EquipResult(ok=False)
    with pytest.raises(ValueError):
        started_run.unequip_item("warrior", "boots")


def test_hero_stats_include_equipment_and_synergy(started_run):
    started_run.equip_item("warrior", "iron_sword")
    stats = started_run.get_hero_stats("warrior")
    assert stats["attack"] == 60
    assert stats["hp"] == 900

    started_run.add_hero("mage")
    stats = started_run.get_hero_stats("warrior")
    assert stats["attack"] == 65
    assert stats["defense"] == 45


def test_hero_stats_scale_with_level(started_run):
    started_run.apply_battle_result(BattleResult(victory=True, exp_earned=150, survivors=("warrior", "archer")))
    stats = started_run.get_hero_stats("warrior")
    assert stats["attack"] == 55
    assert stats["max_hp"] == 990
    assert stats["speed"] == 60


# ---------------------------
# Map and navigation
# ---------------------------

def test_generate_map_scenario(started_run):
    nodes = started_run.generate_map()
    assert nodes == started_run.map
    assert Counter(n.type for n in nodes)[NodeType.BOSS] == 3
    incoming = {c for n in nodes for c in n.connections}
    assert 0 not in incoming
    assert started_run.current_node == -1


def test_same_seed_same_generated_map(content, settings):
    a = RunManager(content=content, settings=settings)
    b = RunManager(content=content, settings=settings)
    a.new_run(seed=2024)
    b.new_run(seed=2024)
    assert a.generate_map() == b.generate_map()


def test_mark_node_completed(started_run):
    completed = record(started_run, RunEvent.NODE_COMPLETE)
    started_run.generate_map()
    assert started_run.mark_node_completed(999) is False
    assert started_run.mark_node_completed(-1) is False
    assert started_run.mark_node_completed(0) is True
    assert started_run.map[0].completed is True
    assert started_run.mark_node_completed(0) is True
    assert len(completed) == 1
    assert completed[0].payload == {"node_index": 0, "node_type": "battle"}


def test_navigation(started_run):
    assert started_run.available_nodes() == []
    nodes = started_run.generate_map()
    assert started_run.available_nodes() == [0]

    assert started_run.advance_node() is True
    assert started_run.current_node == 0
    assert started_run.available_nodes() == list(nodes[0].connections)

    last = len(nodes) - 1
    assert started_run.set_current_node(last) is True
    assert started_run.current_act == nodes[last].act == 2
    assert started_run.advance_node() is False
    assert started_run.set_current_node(last + 1) is False
    assert started_run.current_node == last


def test_set_map_resets_navigation(started_run):
    started_run.generate_map()
    started_run.set_current_node(3)
    started_run.set_map([MapNode(index=0, type=NodeType.REST)])
    assert started_run.current_node == -1
    assert started_run.available_nodes() == [0]


def test_set_map_rejects_dangling_connections(started_run):
    nodes = started_run.generate_map()
    with pytest.raises(InvalidRunStateError):
        started_run.set_map(nodes[:1])
    assert started_run.map == nodes


def test_advance_floor(started_run):
    assert started_run.advance_floor() == 2
    assert started_run.floor == 2


# ---------------------------
# Relics and events
# ---------------------------

def test_relics(started_run):
    acquired = record(started_run, RunEvent.RELIC_ACQUIRE)
    assert started_run.has_relic("lucky_coin") is False
    assert started_run.add_relic("lucky_coin") is True
    assert started_run.add_relic("lucky_coin") is False
    assert started_run.has_relic("lucky_coin") is True
    assert len(acquired) == 1

    assert started_run.increment_relic_trigger("lucky_coin") is True
    assert started_run.increment_relic_trigger("lucky_coin") is True
    assert started_run.increment_relic_trigger("missing") is False
    assert started_run.relics[0].trigger_count == 2


def test_failing_subscriber_does_not_break_operation(started_run, caplog):
    def boom(event):
        raise RuntimeError("subscriber failure")

    started_run.events.subscribe(RunEvent.HERO_ADD, boom)
    assert started_run.add_hero("mage") is True
    assert any("Unhandled exception in event subscriber" in r.message for r in caplog.records)


def test_generate_shop_uses_run_rng(content, settings):
    a = RunManager(content=content, settings=settings)
    b = RunManager(content=content, settings=settings)
    a.new_run(seed=77)
    b.new_run(seed=77)
    stock = a.generate_shop()
    assert stock == b.generate_shop()
    assert 4 <= len(stock) <= 6
    assert a.rng.get_state() == b.rng.get_state()
    assert a.rng.get_state() != 77
