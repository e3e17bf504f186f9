"""Tests for the builtin and custom rules catalog sources."""

import json
import logging

import pytest

from dm20_levelup.rulebooks.models import FeatFilter, FeatureChoiceType, SpellFilter
from dm20_levelup.rulebooks.source import (
    BuiltinCatalogSource,
    CatalogSourceError,
    CustomCatalogSource,
    read_content_file,
)


HOMEBREW_YAML = """\
$schema: dm20-levelup/rulebook-v1
name: Test Homebrew
content:
  spells:
    - {id: time-ripple, name: Time Ripple, level: 2, school: transmutation, classes: [Wizard]}
    - {id: fireball, name: Fireball (Homebrew), level: 3, school: evocation, classes: [Wizard, Warlock]}
    - {id: broken, name: Broken, level: 12}
  feats:
    - {id: chronal-shift, name: Chronal Shift, prerequisite_abilities: {intelligence: 13}}
  subclasses:
    - {class: Wizard, name: School of Chronurgy}
    - {class: Wizard, name: School of Evocation}
    - {name: Missing Class}
"""


@pytest.fixture
def builtin():
    return BuiltinCatalogSource()


# ─── Builtin source ────────────────────────────────────────────────────


class TestBuiltinSource:
    @pytest.mark.anyio
    async def test_lazy_load(self, builtin):
        assert not builtin.is_loaded
        await builtin.get_spell("fireball")
        assert builtin.is_loaded
        assert builtin.loaded_at is not None

    @pytest.mark.anyio
    async def test_class_rules(self, builtin):
        rules = await builtin.get_class_rules("wizard")
        assert rules.name == "Wizard"
        assert await builtin.get_class_rules("Artificer") is None

    @pytest.mark.anyio
    async def test_spell_lookup(self, builtin):
        fireball = await builtin.get_spell("fireball")
        assert fireball.level == 3
        assert "Wizard" in fireball.classes
        assert fireball.source == "srd"
        assert await builtin.get_spell("nope") is None

    @pytest.mark.anyio
    async def test_list_spells_by_class_and_level(self, builtin):
        spells = await builtin.list_spells(SpellFilter(class_name="Wizard", exact_level=3))
        ids = [s.id for s in spells]
        assert "fireball" in ids
        assert "counterspell" in ids
        assert "revivify" not in ids
        assert all(s.level == 3 for s in spells)

    @pytest.mark.anyio
    async def test_list_spells_sorted(self, builtin):
        spells = await builtin.list_spells(SpellFilter(class_name="warlock", min_level=0, max_level=2))
        assert [(s.level, s.name) for s in spells] == sorted((s.level, s.name) for s in spells)
        assert spells[0].level == 0
        assert "eldritch-blast" in {s.id for s in spells}

    @pytest.mark.anyio
    async def test_list_spells_any_class(self, builtin):
        spells = await builtin.list_spells(SpellFilter(max_level=1))
        classes = {c for s in spells for c in s.classes}
        assert {"Cleric", "Wizard", "Warlock"} <= classes

    @pytest.mark.anyio
    async def test_feat_prerequisites(self, builtin):
        weak = {f.id for f in await builtin.list_feats(FeatFilter(ability_scores={"strength": 10}))}
        strong = {f.id for f in await builtin.list_feats(FeatFilter(ability_scores={"strength": 13}))}
        assert "grappler" not in weak
        assert "grappler" in strong
        assert "alert" in weak

    @pytest.mark.anyio
    async def test_feat_either_ability(self, builtin):
        feats = {f.id for f in await builtin.list_feats(FeatFilter(ability_scores={"wisdom": 13}))}
        assert "ritual-caster" in feats

    @pytest.mark.anyio
    async def test_feat_spellcasting_and_proficiency(self, builtin):
        plain = {f.id for f in await builtin.list_feats(FeatFilter())}
        assert "war-caster" not in plain
        assert "heavily-armored" not in plain

        caster = {f.id for f in await builtin.list_feats(FeatFilter(is_spellcaster=True))}
        assert "war-caster" in caster

        armored = {f.id for f in await builtin.list_feats(FeatFilter(proficiencies=frozenset({"Medium Armor"})))}
        assert "heavily-armored" in armored

    @pytest.mark.anyio
    async def test_feature_choices_at_level(self, builtin):
        specs = await builtin.get_feature_choices_at_level("Warlock", 3)
        assert [s.type for s in specs] == [FeatureChoiceType.PACT_BOON]
        assert await builtin.get_feature_choices_at_level("Artificer", 3) == ()


# ─── Custom source ─────────────────────────────────────────────────────


class TestCustomSource:
    @pytest.fixture
    def homebrew(self, tmp_path):
        path = tmp_path / "my_homebrew.yaml"
        path.write_text(HOMEBREW_YAML, encoding="utf-8")
        return path

    def test_source_id_from_filename(self, homebrew):
        assert CustomCatalogSource(homebrew).source_id == "custom-my-homebrew"

    @pytest.mark.anyio
    async def test_adds_spells_over_base(self, homebrew):
        source = CustomCatalogSource(homebrew)
        ripple = await source.get_spell("time-ripple")
        assert ripple.source == "custom-my-homebrew"
        assert (await source.get_spell("misty-step")).source == "srd"

    @pytest.mark.anyio
    async def test_overrides_base_spell(self, homebrew):
        source = CustomCatalogSource(homebrew)
        fireball = await source.get_spell("fireball")
        assert fireball.name == "Fireball (Homebrew)"
        assert "Warlock" in fireball.classes

    @pytest.mark.anyio
    async def test_invalid_entries_are_skipped(self, homebrew, caplog):
        source = CustomCatalogSource(homebrew)
        with caplog.at_level(logging.WARNING, logger="dm20-levelup"):
            await source.load()
        assert await source.get_spell("broken") is None
        assert "Invalid spell definition" in caplog.text
        assert "Invalid subclass definition" in caplog.text

    @pytest.mark.anyio
    async def test_feats(self, homebrew):
        source = CustomCatalogSource(homebrew)
        feats = {f.id for f in await source.list_feats(FeatFilter(ability_scores={"intelligence": 14}))}
        assert "chronal-shift" in feats
        assert "alert" in feats

    @pytest.mark.anyio
    async def test_extra_subclasses(self, homebrew):
        source = CustomCatalogSource(homebrew)
        rules = await source.get_class_rules("Wizard")
        assert rules.subclasses[-1] == "School of Chronurgy"
        assert rules.subclasses.count("School of Evocation") == 1
        assert (await source.get_class_rules("Fighter")).subclasses == ("Champion", "Battle Master", "Eldritch Knight")
        assert await source.get_class_rules("Artificer") is None

    @pytest.mark.anyio
    async def test_json_file(self, tmp_path):
        path = tmp_path / "extra.json"
        path.write_text(json.dumps({
            "spells": [{"id": "zap", "name": "Zap", "level": 0, "classes": ["Sorcerer"]}],
        }), encoding="utf-8")
        source = CustomCatalogSource(path, source_id="zapper")
        zap = await source.get_spell("zap")
        assert zap.source == "zapper"
        cantrips = await source.list_spells(SpellFilter(class_name="Sorcerer", exact_level=0))
        assert "zap" in {s.id for s in cantrips}


# ─── Content files ─────────────────────────────────────────────────────


class TestReadContentFile:
    def test_missing(self, tmp_path):
        with pytest.raises(CatalogSourceError, match="not found"):
            read_content_file(tmp_path / "nope.yaml")

    def test_unsupported_extension(self, tmp_path):
        path = tmp_path / "rules.txt"
        path.write_text("spells: []", encoding="utf-8")
        with pytest.raises(CatalogSourceError, match="Unsupported file format"):
            read_content_file(path)

    def test_bad_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("spells: [unclosed", encoding="utf-8")
        with pytest.raises(CatalogSourceError, match="Failed to parse"):
            read_content_file(path)

    def test_top_level_must_be_object(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(CatalogSourceError, match="top level"):
            read_content_file(path)

    def test_flat_structure(self, tmp_path):
        path = tmp_path / "flat.yml"
        path.write_text("spells: []\nfeats: []\n", encoding="utf-8")
        assert read_content_file(path) == {"spells": [], "feats": []}

    def test_schema_mismatch_warns(self, tmp_path, caplog):
        path = tmp_path / "old.yaml"
        path.write_text("$schema: other/v0\ncontent: {spells: []}\n", encoding="utf-8")
        with caplog.at_level(logging.WARNING, logger="dm20-levelup"):
            assert read_content_file(path) == {"spells": []}
        assert "differs from current" in caplog.text
