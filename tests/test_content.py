from __future__ import annotations

import json
import logging
from importlib import resources
from pathlib import Path

import pytest

from warband.content import (
    ActConfig,
    ContentError,
    ContentFileNotFoundError,
    ContentParseError,
    ContentReferenceError,
    ContentSchemaError,
    ContentValueError,
    DuplicateIdError,
    load_content,
)
from warband.content.tables import CONTENT_FILES
from warband.enums import EquipmentSlot, NodeType


@pytest.fixture()
def data_dir(tmp_path: Path) -> Path:
    """A writable copy of the bundled content tables."""
    d = tmp_path / "content"
    d.mkdir()
    for filename, _schema in CONTENT_FILES.values():
        text = resources.files("warband.data").joinpath(filename).read_text(encoding="utf-8")
        (d / filename).write_text(text, encoding="utf-8")
    return d


def _edit(data_dir: Path, filename: str, mutate) -> None:
    path = data_dir / filename
    data = json.loads(path.read_text(encoding="utf-8"))
    mutate(data)
    path.write_text(json.dumps(data), encoding="utf-8")


def test_bundled_content(content):
    assert len(content.heroes) == 13
    assert [a.id for a in content.acts] == ["act1_forest", "act2_volcano", "act3_abyss"]
    assert [a.difficulty_multiplier for a in content.acts] == [1.0, 1.3, 1.6]
    assert set(content.difficulties) == {"normal", "hard", "nightmare", "hell"}
    assert content.heroes["warrior"].hero_class == "warrior"
    assert content.heroes["mage"].element == "fire"
    assert content.items["plate_armor"].slot is EquipmentSlot.ARMOR
    assert set(content.boss_enemy_ids()) == {"ancient_treant", "fire_titan", "void_lord"}
    assert "wolf" in content.normal_enemy_ids()


def test_synergy_thresholds_are_sorted(content):
    for synergy in content.synergies:
        counts = [t.count for t in synergy.thresholds]
        assert counts == sorted(counts)


def test_load_from_directory(data_dir: Path, content):
    tables = load_content(data_dir)
    assert tables.heroes == content.heroes
    assert tables.acts == content.acts


def test_missing_file(data_dir: Path):
    (data_dir / "items.json").unlink()
    with pytest.raises(ContentFileNotFoundError):
        load_content(data_dir)


def test_invalid_json_reports_position(data_dir: Path):
    (data_dir / "events.json").write_text('[{"id": "x",}]', encoding="utf-8")
    with pytest.raises(ContentParseError) as info:
        load_content(data_dir)
    assert info.value.lineno == 1
    assert "events.json" in str(info.value)


def test_schema_violation(data_dir: Path):
    _edit(data_dir, "heroes.json", lambda heroes: heroes[0].pop("base_stats"))
    with pytest.raises(ContentSchemaError) as info:
        load_content(data_dir)
    assert "base_stats" in str(info.value)


def test_duplicate_ids(data_dir: Path):
    _edit(data_dir, "items.json", lambda items: items.append(dict(items[0])))
    with pytest.raises(DuplicateIdError) as info:
        load_content(data_dir)
    assert info.value.key == "iron_sword"


def test_unknown_skill_reference(data_dir: Path):
    def mutate(heroes):
        heroes[0]["skills"] = ["no_such_skill"]

    _edit(data_dir, "heroes.json", mutate)
    with pytest.raises(ContentReferenceError):
        load_content(data_dir)


def test_unknown_pool_entries_only_warn(data_dir: Path, caplog):
    def mutate(acts):
        acts[0]["enemy_pool"].append("ghost")

    _edit(data_dir, "acts.json", mutate)
    with caplog.at_level(logging.WARNING):
        tables = load_content(data_dir)
    assert "ghost" in tables.acts[0].enemy_pool
    assert "unknown ids" in caplog.text


def test_act_layer_types(content):
    act = content.acts[0]
    assert act.layer_count == 8
    assert [act.layer_type(layer) for layer in range(act.layer_count)] == [
        NodeType.BATTLE,
        NodeType.BATTLE,
        NodeType.EVENT,
        NodeType.ELITE,
        NodeType.SHOP,
        NodeType.BATTLE,
        NodeType.REST,
        NodeType.BOSS,
    ]


def test_act_rejects_early_boss():
    with pytest.raises(ValueError):
        ActConfig(
            id="bad",
            name="Bad",
            node_count=4,
            difficulty_multiplier=1.0,
            layer_template=(NodeType.BATTLE, NodeType.BOSS, NodeType.BOSS),
        )


def test_model_rejection_is_a_content_error(data_dir: Path):
    def mutate(acts):
        acts[0]["layer_template"] = ["battle", "boss", "rest"]

    _edit(data_dir, "acts.json", mutate)
    with pytest.raises(ContentValueError) as info:
        load_content(data_dir)
    assert isinstance(info.value, ContentError)
    assert info.value.key == "act1_forest"
    assert "boss" in str(info.value)
