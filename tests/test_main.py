"""
Tests for the MCP tool logic in main.py.

Tests cover:
- start / stage / navigate / commit / cancel for level-up sessions
- check_multiclass and show_derived_stats output
- open session eviction
- create_character, including level-1 creation sessions
- JSON argument parsing
"""

from unittest.mock import MagicMock, patch

import pytest

from dm20_levelup.derived_stats import apply_derived_stats
from dm20_levelup.level_up_engine import LevelUpEngine
from dm20_levelup.main import (
    _cancel_logic,
    _check_multiclass_logic,
    _commit_logic,
    _create_character_logic,
    _get_wizard,
    _navigate_logic,
    _parse_json_list,
    _parse_json_value,
    _register_wizard,
    _show_derived_stats_logic,
    _stage_choice_logic,
    _start_level_up_logic,
)
from dm20_levelup.models import AbilityScore, Character, CharacterClass
from dm20_levelup.rulebooks.source import BuiltinCatalogSource


# Test fixtures
@pytest.fixture
def engine(store) -> LevelUpEngine:
    return LevelUpEngine(store, BuiltinCatalogSource())


@pytest.fixture
def open_wizards() -> dict:
    return {}


def make_character(class_name: str, level: int, subclass: str | None = None, **abilities: int) -> Character:
    character = Character(
        name="Test",
        classes=[CharacterClass(name=class_name, level=level, subclass=subclass, is_primary=True)],
        abilities={ability: AbilityScore(score=score) for ability, score in abilities.items()},
        hit_points_max=20,
        hit_points_current=20,
    )
    return apply_derived_stats(character)


async def start(engine, open_wizards, character: Character, **kwargs) -> str:
    await engine.store.save_character(character)
    output = await _start_level_up_logic(engine, open_wizards, character.id, **kwargs)
    return output


# ─── Level-up session tools ────────────────────────────────────────────


class TestLevelUpTools:
    @pytest.mark.anyio
    async def test_start_defaults_to_next_level(self, engine, open_wizards):
        output = await start(engine, open_wizards, make_character("Fighter", 1))
        assert len(open_wizards) == 1
        session_id = next(iter(open_wizards))
        assert f"`{session_id}`" in output
        assert "(1 → 2, Fighter)" in output
        assert "Plan: 2:hp-roll, 2:features, 2:review" in output
        assert "**Step 1/3: 2:hp-roll** (Fighter 2)" in output
        assert "Issues: No selection made" in output

    @pytest.mark.anyio
    async def test_start_unknown_character(self, engine, open_wizards):
        output = await _start_level_up_logic(engine, open_wizards, "missing", 2)
        assert output.startswith("❌ Cannot start level-up:")
        assert "missing" in output
        assert open_wizards == {}

    @pytest.mark.anyio
    async def test_start_multiclass_prerequisites(self, engine, open_wizards):
        output = await start(engine, open_wizards, make_character("Fighter", 3, "Champion"), class_name="Wizard")
        assert output.startswith("❌ Cannot start level-up:")
        assert open_wizards == {}

    @pytest.mark.anyio
    async def test_spell_options_are_listed(self, engine, open_wizards):
        wizard = make_character("Wizard", 4, "School of Evocation", intelligence=16)
        await start(engine, open_wizards, wizard, target_level=5)
        session_id = next(iter(open_wizards))
        _navigate_logic(open_wizards, session_id, forward=True)
        await _stage_choice_logic(open_wizards, session_id, "5:hp-roll", "average")
        output = _navigate_logic(open_wizards, session_id, forward=True)
        assert "**Step 2/3: 5:spells**" in output
        assert "Choose: 2" in output
        assert "Max spell level: 3" in output
        assert "Options: " in output
        assert "more)" in output

    @pytest.mark.anyio
    async def test_full_flow(self, engine, open_wizards):
        fighter = make_character("Fighter", 1)
        await start(engine, open_wizards, fighter)
        session_id = next(iter(open_wizards))

        output = _navigate_logic(open_wizards, session_id, forward=True)
        assert output.startswith("⚠️ Current step is not complete.")

        output = await _stage_choice_logic(open_wizards, session_id, "2:hp-roll", "average")
        assert output.startswith("✅ Staged '2:hp-roll'")
        assert 'Staged: {"method":"average","roll":null}' in output
        assert "✅ Ready to advance" in output

        output = _navigate_logic(open_wizards, session_id, forward=True)
        assert "**Step 2/3: 2:features**" in output
        assert "Features gained: Action Surge (one use)" in output

        output = await _commit_logic(open_wizards, session_id)
        assert output.splitlines() == [
            "✅ Test is now level 2 (Fighter 2)",
            "HP: 26 (+6)",
            "Proficiency bonus: +2",
            "New features: Action Surge (one use)",
        ]
        assert session_id not in open_wizards
        assert (await engine.store.load_character(fighter.id)).total_level == 2

    @pytest.mark.anyio
    async def test_stage_with_issues(self, engine, open_wizards):
        await start(engine, open_wizards, make_character("Fighter", 1))
        session_id = next(iter(open_wizards))
        output = await _stage_choice_logic(open_wizards, session_id, "2:hp-roll", "11")
        assert output == "⚠️ Staged '2:hp-roll' with issues: Roll must be between 1 and 10"

    @pytest.mark.anyio
    async def test_stage_unknown_step(self, engine, open_wizards):
        await start(engine, open_wizards, make_character("Fighter", 1))
        session_id = next(iter(open_wizards))
        output = await _stage_choice_logic(open_wizards, session_id, "9:hp-roll", "average")
        assert output == "❌ Unknown step '9:hp-roll'"

    @pytest.mark.anyio
    async def test_retreat_at_first_step(self, engine, open_wizards):
        await start(engine, open_wizards, make_character("Fighter", 1))
        session_id = next(iter(open_wizards))
        output = _navigate_logic(open_wizards, session_id, forward=False)
        assert output.startswith("ℹ️ Already at the first step.")

    @pytest.mark.anyio
    async def test_advance_at_last_step(self, engine, open_wizards):
        await start(engine, open_wizards, make_character("Fighter", 1))
        session_id = next(iter(open_wizards))
        await _stage_choice_logic(open_wizards, session_id, "2:hp-roll", "average")
        _navigate_logic(open_wizards, session_id, forward=True)
        _navigate_logic(open_wizards, session_id, forward=True)
        output = _navigate_logic(open_wizards, session_id, forward=True)
        assert output.startswith("ℹ️ Already at the last step")

    @pytest.mark.anyio
    async def test_commit_incomplete(self, engine, open_wizards):
        await start(engine, open_wizards, make_character("Fighter", 1))
        session_id = next(iter(open_wizards))
        output = await _commit_logic(open_wizards, session_id)
        assert output == "❌ Commit failed: Step '2:hp-roll' is not complete: No selection made"
        assert session_id in open_wizards

    @pytest.mark.anyio
    async def test_cancel(self, engine, open_wizards):
        await start(engine, open_wizards, make_character("Fighter", 1))
        session_id = next(iter(open_wizards))
        output = _cancel_logic(open_wizards, session_id)
        assert output == f"🗑️ Cancelled level-up session `{session_id}`; nothing was saved."
        assert open_wizards == {}

    @pytest.mark.anyio
    async def test_unknown_session(self, open_wizards):
        assert await _commit_logic(open_wizards, "nope") == "❌ No open level-up session 'nope'"
        assert _cancel_logic(open_wizards, "nope") == "❌ No open level-up session 'nope'"
        assert _navigate_logic(open_wizards, "nope", forward=True) == "❌ No open level-up session 'nope'"
        output = await _stage_choice_logic(open_wizards, "nope", "2:hp-roll", "average")
        assert output == "❌ No open level-up session 'nope'"


# ─── Open session bookkeeping ──────────────────────────────────────────


class TestOpenSessions:
    def test_evicts_least_recently_used(self, open_wizards):
        for session_id in ("a", "b"):
            _register_wizard(open_wizards, MagicMock(session_id=session_id), limit=2)
        _get_wizard(open_wizards, "a")

        _register_wizard(open_wizards, MagicMock(session_id="c"), limit=2)
        assert list(open_wizards) == ["a", "c"]

    @pytest.mark.anyio
    async def test_start_respects_default_limit(self, engine, open_wizards):
        with patch("dm20_levelup.main.MAX_OPEN_SESSIONS", 1):
            await start(engine, open_wizards, make_character("Fighter", 1))
            first = next(iter(open_wizards))
            await start(engine, open_wizards, make_character("Wizard", 1))
        assert len(open_wizards) == 1
        assert first not in open_wizards
        assert await _commit_logic(open_wizards, first) == f"❌ No open level-up session '{first}'"


# ─── Character tools ───────────────────────────────────────────────────


class TestCharacterTools:
    @pytest.mark.anyio
    async def test_check_multiclass(self, engine):
        fighter = await engine.store.save_character(
            make_character("Fighter", 3, "Champion", strength=15, intelligence=13),
        )
        assert await _check_multiclass_logic(engine, fighter.id, "Wizard") == "✅ Can multiclass into Wizard"
        output = await _check_multiclass_logic(engine, fighter.id, "Sorcerer")
        assert output.startswith("❌ ")

    @pytest.mark.anyio
    async def test_check_multiclass_unknown_character(self, engine):
        output = await _check_multiclass_logic(engine, "missing", "Wizard")
        assert output.startswith("❌ ")

    @pytest.mark.anyio
    async def test_show_derived_stats(self, engine):
        wizard = await engine.store.save_character(make_character("Wizard", 1, intelligence=16))
        output = await _show_derived_stats_logic(engine, wizard.id)
        assert "**Test**: Wizard 1 (level 1)" in output
        assert "HP: 20/20" in output
        assert "Proficiency bonus: +2" in output
        assert "INT +3" in output
        assert "Spell save DC: 13, spell attack: +5" in output
        assert "Spell slots: L1: 2" in output
        assert "Arcane Recovery: 1/1 (long rest)" in output

    @pytest.mark.anyio
    async def test_show_pact_slots(self, engine):
        warlock = await engine.store.save_character(make_character("Warlock", 5, "The Fiend", charisma=16))
        output = await _show_derived_stats_logic(engine, warlock.id)
        assert "Pact slots: 2 × L3" in output
        assert "Spell slots" not in output

    @pytest.mark.anyio
    async def test_create_level_one(self, engine, open_wizards):
        output = await _create_character_logic(
            engine, open_wizards, {"name": "Elda", "class_name": "Wizard", "constitution": 14},
        )
        assert output.startswith("🌟 Created Elda (`")
        assert output.endswith("level 1 Wizard 1 with 8 HP")
        assert open_wizards == {}
        assert len(await engine.store.list_characters()) == 1

    @pytest.mark.anyio
    async def test_create_level_one_with_feature_choices_opens_session(self, engine, open_wizards):
        output = await _create_character_logic(
            engine, open_wizards, {"name": "Bruna", "class_name": "Fighter", "constitution": 14},
        )
        assert "level 1 Fighter 1 with 12 HP" in output
        assert "🎲 Creation session" in output
        assert "to level 1" in output
        assert "1:fighting-style" in output
        assert len(open_wizards) == 1

    @pytest.mark.anyio
    async def test_create_level_one_rogue_picks_expertise(self, engine, open_wizards):
        output = await _create_character_logic(
            engine, open_wizards,
            {"name": "Vex", "class_name": "Rogue", "skill_proficiencies": ["Stealth", "Perception", "Acrobatics"]},
        )
        assert "1:expertise" in output
        session_id = next(iter(open_wizards))

        staged = await _stage_choice_logic(open_wizards, session_id, "1:expertise", '["Stealth", "Perception"]')
        assert staged.startswith("✅ Staged '1:expertise'")

        output = await _commit_logic(open_wizards, session_id)
        assert output.startswith("✅ Vex is now level 1 (Rogue 1)")
        assert open_wizards == {}
        character_id = (await engine.store.list_characters())[0]
        character = await engine.store.load_character(character_id)
        assert character.skill_expertise == ["Stealth", "Perception"]
        assert character.level_history == []

    @pytest.mark.anyio
    async def test_create_with_cantrips(self, engine, open_wizards):
        output = await _create_character_logic(
            engine, open_wizards,
            {"name": "Elda", "class_name": "Wizard", "cantrips": ["fire-bolt", "light", "mage-hand"]},
        )
        assert output.startswith("🌟 Created Elda")
        character_id = (await engine.store.list_characters())[0]
        character = await engine.store.load_character(character_id)
        assert {s.name for s in character.spells_known} == {"Fire Bolt", "Light", "Mage Hand"}

    @pytest.mark.anyio
    async def test_create_above_level_one_opens_session(self, engine, open_wizards):
        output = await _create_character_logic(
            engine, open_wizards, {"name": "Bruna", "class_name": "Fighter"}, level=3,
        )
        assert "🎲 Creation session" in output
        assert "to level 3" in output
        assert "1:fighting-style" in output
        assert len(open_wizards) == 1

    @pytest.mark.anyio
    async def test_create_invalid(self, engine, open_wizards):
        output = await _create_character_logic(engine, open_wizards, {"name": "X", "class_name": "Artificer"})
        assert output == "❌ Cannot create character: Class 'Artificer' not found in the rules catalog"
        assert await engine.store.list_characters() == []


# ─── Argument parsing ──────────────────────────────────────────────────


class TestArgumentParsing:
    def test_json_value(self):
        assert _parse_json_value('["fire-bolt"]') == ["fire-bolt"]
        assert _parse_json_value("7") == 7
        assert _parse_json_value('{"feat_id": "alert"}') == {"feat_id": "alert"}

    def test_plain_string_value(self):
        assert _parse_json_value("Thief") == "Thief"
        assert _parse_json_value(None) is None

    def test_json_list(self):
        assert _parse_json_list('["Athletics", "Perception"]', "skills") == ["Athletics", "Perception"]
        assert _parse_json_list(None, "skills") is None

    def test_json_list_errors(self):
        with pytest.raises(ValueError, match="Invalid skills JSON"):
            _parse_json_list("[Athletics", "skills")
        with pytest.raises(ValueError, match="skills must be a JSON list"):
            _parse_json_list('"Athletics"', "skills")
