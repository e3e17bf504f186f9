"""Tests for the step planner."""

from dm20_levelup.models import AbilityScore, Character, CharacterClass
from dm20_levelup.rulebooks.catalog import get_class_rules
from dm20_levelup.step_planner import (
    HeldChoices,
    LEVEL_STEP_TABLE,
    StepKind,
    plan_creation_steps,
    plan_steps,
)


# ─── Helpers ───────────────────────────────────────────────────────────


def make_character(classes: list[tuple[str, int, str | None]], abilities: dict[str, int] | None = None, **kwargs) -> Character:
    """Create a Character from (class name, level, subclass) tuples."""
    data = dict(
        name="Test",
        classes=[
            CharacterClass(name=name, level=level, subclass=subclass, is_primary=(i == 0))
            for i, (name, level, subclass) in enumerate(classes)
        ],
        **kwargs,
    )
    if abilities:
        data["abilities"] = {ability: AbilityScore(score=score) for ability, score in abilities.items()}
    return Character(**data)


def keys(steps) -> list[str]:
    return [s.key for s in steps]


# ─── Single-class plans ────────────────────────────────────────────────


class TestSingleClassPlans:
    def test_fighter_one_to_five(self):
        fighter = make_character([("Fighter", 1, None)])
        steps = plan_steps(fighter, 1, 5)
        assert keys(steps) == [
            "2:hp-roll", "2:features",
            "3:hp-roll", "3:subclass", "3:features",
            "4:hp-roll", "4:asi-or-feat",
            "5:hp-roll", "5:features",
            "5:review",
        ]

    def test_wizard_with_held_subclass(self):
        wizard = make_character([("Wizard", 4, "School of Evocation")])
        steps = plan_steps(wizard, 4, 5)
        assert keys(steps) == ["5:hp-roll", "5:spells", "5:review"]
        assert steps[1].count == 2
        assert steps[1].max_spell_level == 3

    def test_wizard_without_subclass_is_asked_again(self):
        wizard = make_character([("Wizard", 4, None)])
        assert "5:subclass" in keys(plan_steps(wizard, 4, 5))

    def test_warlock_pact_boon(self):
        warlock = make_character([("Warlock", 2, "The Fiend")])
        steps = plan_steps(warlock, 2, 3)
        assert keys(steps) == ["3:hp-roll", "3:spells", "3:pact-boon", "3:features", "3:review"]
        boon = steps[2]
        assert boon.options == ("chain", "blade", "tome")
        assert steps[3].features == ("Pact Boon",)

    def test_pact_boon_not_planned_when_held(self):
        warlock = make_character([("Warlock", 3, "The Fiend")], pact_boon="tome")
        assert StepKind.PACT_BOON not in {s.kind for s in plan_steps(warlock, 3, 4)}

    def test_warlock_invocation_replacement(self):
        warlock = make_character([("Warlock", 4, "The Fiend")], pact_boon="blade")
        invocations = [s for s in plan_steps(warlock, 4, 5) if s.kind == StepKind.INVOCATIONS]
        assert len(invocations) == 1
        assert invocations[0].count == 1
        assert invocations[0].replace_count == 1

    def test_warlock_mystic_arcanum(self):
        warlock = make_character([("Warlock", 10, "The Fiend")], pact_boon="tome")
        steps = plan_steps(warlock, 10, 11)
        arcanum = [s for s in steps if s.kind == StepKind.MYSTIC_ARCANUM]
        assert len(arcanum) == 1
        assert arcanum[0].spell_level == 6
        assert "11:spells" in keys(steps)

    def test_held_arcanum_is_not_replanned(self):
        warlock = make_character(
            [("Warlock", 10, "The Fiend")], pact_boon="tome", mystic_arcanum={6: "eyebite"},
        )
        assert "11:mystic-arcanum" not in keys(plan_steps(warlock, 10, 11))

    def test_arcanum_levels_across_a_range(self):
        warlock = make_character([("Warlock", 10, "The Fiend")], pact_boon="tome")
        arcanum = [s for s in plan_steps(warlock, 10, 17) if s.kind == StepKind.MYSTIC_ARCANUM]
        assert [(s.level, s.spell_level) for s in arcanum] == [(11, 6), (13, 7), (15, 8), (17, 9)]

    def test_subclass_planned_once_across_range(self):
        fighter = make_character([("Fighter", 1, None)])
        subclass_steps = [s for s in plan_steps(fighter, 1, 8) if s.kind == StepKind.SUBCLASS]
        assert [s.level for s in subclass_steps] == [3]

    def test_fighter_extra_asi(self):
        fighter = make_character([("Fighter", 5, "Champion")])
        assert "6:asi-or-feat" in keys(plan_steps(fighter, 5, 6))

    def test_bard_magical_secrets(self):
        bard = make_character([("Bard", 9, "College of Lore")])
        steps = plan_steps(bard, 9, 10)
        secrets = next(s for s in steps if s.kind == StepKind.MAGICAL_SECRETS)
        assert secrets.count == 2
        assert secrets.max_spell_level == 5
        assert "10:expertise" in keys(steps)
        assert "10:cantrips" in keys(steps)

    def test_sorcerer_metamagic_options_default_to_catalog(self):
        sorcerer = make_character([("Sorcerer", 2, "Draconic Bloodline")])
        metamagic = next(s for s in plan_steps(sorcerer, 2, 3) if s.kind == StepKind.METAMAGIC)
        assert metamagic.count == 2
        assert "quickened" in metamagic.options

    def test_review_is_last_and_unique(self):
        steps = plan_steps(make_character([("Cleric", 1, "Life Domain")]), 1, 6)
        assert steps[-1].kind == StepKind.REVIEW
        assert [s.kind for s in steps].count(StepKind.REVIEW) == 1

    def test_step_keys_are_unique(self):
        steps = plan_steps(make_character([("Ranger", 1, None)]), 1, 20)
        assert len(keys(steps)) == len(set(keys(steps)))


# ─── Third casters ─────────────────────────────────────────────────────


class TestThirdCasters:
    def test_staged_eldritch_knight_adds_spell_steps(self):
        fighter = make_character([("Fighter", 2, None)])
        held = HeldChoices(staged_subclass="Eldritch Knight")
        steps = plan_steps(fighter, 2, 3, held=held)

        assert "3:subclass" in keys(steps)
        cantrips = next(s for s in steps if s.kind == StepKind.CANTRIPS)
        spells = next(s for s in steps if s.kind == StepKind.SPELLS)
        assert cantrips.count == 2
        assert spells.count == 3
        assert spells.max_spell_level == 1

    def test_champion_has_no_spell_steps(self):
        fighter = make_character([("Fighter", 2, None)])
        steps = plan_steps(fighter, 2, 3, held=HeldChoices(staged_subclass="Champion"))
        assert not {StepKind.CANTRIPS, StepKind.SPELLS} & {s.kind for s in steps}

    def test_held_arcane_trickster(self):
        rogue = make_character([("Rogue", 3, "Arcane Trickster")])
        steps = plan_steps(rogue, 3, 4)
        spells = next(s for s in steps if s.kind == StepKind.SPELLS)
        assert spells.count == 1


# ─── Multiclass plans ──────────────────────────────────────────────────


class TestMulticlassPlans:
    def test_new_rogue_level(self):
        fighter = make_character([("Fighter", 3, "Champion")])
        steps = plan_steps(fighter, 3, 4, class_name="Rogue")
        assert keys(steps) == [
            "4:class-select", "4:hp-roll", "4:multiclass-skill", "4:expertise", "4:features", "4:review",
        ]
        assert steps[0].class_name == "Rogue"
        assert steps[0].class_level == 1

    def test_multiclassed_character_gets_class_select(self):
        character = make_character([("Fighter", 3, "Champion"), ("Wizard", 1, None)])
        steps = plan_steps(character, 4, 5, class_name="Wizard")
        assert steps[0].kind == StepKind.CLASS_SELECT
        assert steps[1].class_level == 2

    def test_class_select_can_be_forced_off(self):
        character = make_character([("Fighter", 3, "Champion"), ("Wizard", 1, None)])
        steps = plan_steps(character, 4, 5, class_name="Wizard", offer_class_select=False)
        assert steps[0].kind != StepKind.CLASS_SELECT

    def test_class_levels_follow_the_levelled_class(self):
        character = make_character([("Fighter", 3, "Champion"), ("Wizard", 1, None)])
        steps = plan_steps(character, 4, 6, class_name="Wizard")
        hp_steps = [s for s in steps if s.kind == StepKind.HP_ROLL]
        assert [(s.level, s.class_level) for s in hp_steps] == [(5, 2), (6, 3)]


# ─── Creation plans ────────────────────────────────────────────────────


class TestCreationPlans:
    def test_fighter_created_at_three(self):
        fighter = make_character([("Fighter", 1, None)])
        assert keys(plan_creation_steps(fighter, 3)) == [
            "1:fighting-style",
            "2:hp-roll", "2:features",
            "3:hp-roll", "3:subclass", "3:features",
            "3:review",
        ]

    def test_level_one_creation_only_has_choices(self):
        rogue = make_character([("Rogue", 1, None)])
        assert keys(plan_creation_steps(rogue, 1)) == ["1:expertise", "1:review"]

    def test_level_one_subclass_is_not_a_step(self):
        cleric = make_character([("Cleric", 1, "Life Domain")])
        assert keys(plan_creation_steps(cleric, 2)) == ["2:hp-roll", "2:features", "2:review"]


# ─── Edge cases ────────────────────────────────────────────────────────


class TestPlannerEdgeCases:
    def test_unknown_class_yields_review_only(self):
        character = make_character([("Artificer", 2, None)])
        steps = plan_steps(character, 2, 3)
        assert keys(steps) == ["3:review"]

    def test_plan_is_deterministic(self):
        character = make_character([("Warlock", 1, "The Fiend")])
        assert plan_steps(character, 1, 12) == plan_steps(character, 1, 12)

    def test_explicit_rules_override_catalog(self):
        from dataclasses import replace

        rules = replace(get_class_rules("Wizard"), subclass_level=3)
        wizard = make_character([("Wizard", 1, None)])
        steps = plan_steps(wizard, 1, 2, rules=rules)
        assert "2:subclass" not in keys(steps)

    def test_step_table_order(self):
        kinds = [kind for kind, _ in LEVEL_STEP_TABLE]
        assert kinds[0] == StepKind.CLASS_SELECT
        assert kinds[-1] == StepKind.FEATURES
        assert kinds.index(StepKind.HP_ROLL) < kinds.index(StepKind.SUBCLASS) < kinds.index(StepKind.SPELLS)
