"""Tests for level-up session construction and reducers."""

import pytest

from dm20_levelup.choices import (
    ClassSelectChoice,
    FeatureChoice,
    HitPointsChoice,
    InvocationsChoice,
    SpellsChoice,
    SubclassChoice,
)
from dm20_levelup.errors import SessionStateError
from dm20_levelup.models import AbilityScore, Character, CharacterClass
from dm20_levelup.session import (
    StepOptions,
    advance,
    effective_ability_scores,
    effective_invocations,
    effective_subclass,
    jump_to,
    new_session,
    retreat,
    stage,
    staged_class_name,
    with_options,
)
from dm20_levelup.step_planner import StepKind


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


def keys(session) -> list[str]:
    return [s.key for s in session.steps]


# ─── Construction ──────────────────────────────────────────────────────


class TestNewSession:
    def test_basic_fields(self):
        fighter = make_character([("Fighter", 2, None)])
        session = new_session(fighter, 3)
        assert session.character_id == fighter.id
        assert session.from_level == 2
        assert session.to_level == 3
        assert session.levels_gained == 1
        assert session.class_to_level == "Fighter"
        assert session.class_level_from == 2
        assert not session.new_class
        assert session.cursor == 0
        assert session.staged == {}
        assert len(session.session_id) == 8

    def test_target_must_be_above_current(self):
        fighter = make_character([("Fighter", 3, None)])
        with pytest.raises(SessionStateError, match="must be above"):
            new_session(fighter, 3)
        with pytest.raises(SessionStateError):
            new_session(fighter, 2)

    def test_cannot_exceed_twenty(self):
        fighter = make_character([("Fighter", 19, "Champion")])
        with pytest.raises(SessionStateError, match="cannot exceed 20"):
            new_session(fighter, 21)

    def test_unknown_class(self):
        fighter = make_character([("Fighter", 3, None)])
        with pytest.raises(SessionStateError, match="Unknown class"):
            new_session(fighter, 4, "Artificer")

    def test_class_select_prestaged(self):
        fighter = make_character([("Fighter", 3, "Champion")], abilities={"dexterity": 14})
        session = new_session(fighter, 4, "rogue")
        assert session.new_class
        assert session.class_to_level == "Rogue"
        assert session.offers_class_select
        assert session.value("4:class-select") == ClassSelectChoice(class_name="Rogue")

    def test_creation_session_may_stay_at_level_one(self):
        rogue = make_character([("Rogue", 1, None)])
        session = new_session(rogue, 1, creation=True)
        assert keys(session) == ["1:expertise", "1:review"]
        assert not session.offers_class_select

    def test_creation_session_levels_existing_class(self):
        rogue = make_character([("Rogue", 1, None)])
        with pytest.raises(SessionStateError, match="existing class"):
            new_session(rogue, 2, "Wizard", creation=True)

    def test_snapshot_is_not_copied(self):
        fighter = make_character([("Fighter", 2, None)])
        assert new_session(fighter, 3).snapshot is fighter


# ─── Staging ───────────────────────────────────────────────────────────


class TestStage:
    def test_stage_returns_new_session(self):
        session = new_session(make_character([("Fighter", 1, None)]), 2)
        staged = stage(session, "2:hp-roll", HitPointsChoice())
        assert staged is not session
        assert session.staged == {}
        assert staged.value("2:hp-roll") == HitPointsChoice()

    def test_stage_none_clears(self):
        session = new_session(make_character([("Fighter", 1, None)]), 2)
        session = stage(session, "2:hp-roll", HitPointsChoice())
        session = stage(session, "2:hp-roll", None)
        assert "2:hp-roll" not in session.staged

    def test_unknown_step(self):
        session = new_session(make_character([("Fighter", 1, None)]), 2)
        with pytest.raises(SessionStateError, match="Unknown step"):
            stage(session, "3:hp-roll", HitPointsChoice())

    def test_wrong_variant(self):
        session = new_session(make_character([("Fighter", 1, None)]), 2)
        with pytest.raises(SessionStateError, match="expects a 'hit_points' value"):
            stage(session, "2:hp-roll", SubclassChoice(subclass="Champion"))

    def test_restaging_overwrites(self):
        session = new_session(make_character([("Fighter", 1, None)]), 2)
        session = stage(session, "2:hp-roll", HitPointsChoice(method="roll", roll=3))
        session = stage(session, "2:hp-roll", HitPointsChoice(method="roll", roll=9))
        assert session.value("2:hp-roll").roll == 9


class TestReplan:
    def test_eldritch_knight_adds_spell_steps(self):
        fighter = make_character([("Fighter", 2, None)])
        session = new_session(fighter, 3)
        assert keys(session) == ["3:hp-roll", "3:subclass", "3:features", "3:review"]

        session = stage(session, "3:subclass", SubclassChoice(subclass="Eldritch Knight"))
        assert keys(session) == ["3:hp-roll", "3:subclass", "3:cantrips", "3:spells", "3:features", "3:review"]
        assert effective_subclass(session) == "Eldritch Knight"

    def test_changing_subclass_drops_spell_steps_and_their_values(self):
        fighter = make_character([("Fighter", 2, None)])
        session = new_session(fighter, 3)
        session = stage(session, "3:hp-roll", HitPointsChoice())
        session = stage(session, "3:subclass", SubclassChoice(subclass="Eldritch Knight"))
        session = stage(session, "3:cantrips", SpellsChoice(spell_ids=("fire-bolt", "light")))
        session = with_options(session, {"3:cantrips": StepOptions()}, {})

        session = stage(session, "3:subclass", SubclassChoice(subclass="Champion"))
        assert "3:cantrips" not in keys(session)
        assert "3:cantrips" not in session.staged
        assert "3:cantrips" not in session.options
        assert session.value("3:hp-roll") == HitPointsChoice()

    def test_class_switch_drops_other_values(self):
        fighter = make_character([("Fighter", 3, "Champion")], abilities={"dexterity": 14, "intelligence": 14})
        session = new_session(fighter, 4, "Rogue")
        session = stage(session, "4:hp-roll", HitPointsChoice())
        session = stage(session, "4:multiclass-skill", FeatureChoice(values=("Stealth",)))

        session = stage(session, "4:class-select", ClassSelectChoice(class_name="Wizard"))
        assert session.class_to_level == "Wizard"
        assert session.rules.name == "Wizard"
        assert staged_class_name(session) == "Wizard"
        assert list(session.staged) == ["4:class-select"]
        assert keys(session) == ["4:class-select", "4:hp-roll", "4:cantrips", "4:spells", "4:features", "4:review"]

    def test_switch_back_to_existing_class(self):
        fighter = make_character([("Fighter", 3, "Champion")], abilities={"dexterity": 14})
        session = new_session(fighter, 4, "Rogue")
        session = stage(session, "4:class-select", ClassSelectChoice(class_name="Fighter"))
        assert not session.new_class
        assert session.class_level_from == 3
        assert "4:asi-or-feat" in keys(session)

    def test_switch_to_unknown_class(self):
        fighter = make_character([("Fighter", 3, "Champion")], abilities={"dexterity": 14})
        session = new_session(fighter, 4, "Rogue")
        with pytest.raises(SessionStateError, match="Unknown class"):
            stage(session, "4:class-select", ClassSelectChoice(class_name="Artificer"))

    def test_cursor_stays_on_replanned_step(self):
        fighter = make_character([("Fighter", 2, None)])
        session = new_session(fighter, 3)
        session = advance(stage(session, "3:hp-roll", HitPointsChoice()))
        session = stage(session, "3:subclass", SubclassChoice(subclass="Eldritch Knight"))
        assert session.current_step.key == "3:subclass"
        session = advance(session)
        assert session.current_step.key == "3:cantrips"


# ─── Effective state ───────────────────────────────────────────────────


class TestEffectiveState:
    def test_ability_scores_before_a_step(self):
        from dm20_levelup.choices import AsiChoice

        fighter = make_character([("Fighter", 3, "Champion")], abilities={"strength": 16})
        session = new_session(fighter, 6)
        session = stage(session, "4:asi-or-feat", AsiChoice(increases={"strength": 2}))
        session = stage(session, "6:asi-or-feat", AsiChoice(increases={"strength": 1, "dexterity": 1}))

        assert effective_ability_scores(session, before="4:asi-or-feat")["strength"] == 16
        assert effective_ability_scores(session, before="6:asi-or-feat")["strength"] == 18
        assert effective_ability_scores(session)["strength"] == 19
        assert effective_ability_scores(session)["dexterity"] == 11

    def test_feat_does_not_change_scores(self):
        from dm20_levelup.choices import AsiChoice

        fighter = make_character([("Fighter", 3, "Champion")], abilities={"strength": 16})
        session = stage(new_session(fighter, 4), "4:asi-or-feat", AsiChoice(feat_id="alert"))
        assert effective_ability_scores(session)["strength"] == 16

    def test_invocations_apply_swaps(self):
        warlock = make_character(
            [("Warlock", 4, "The Fiend")], pact_boon="blade", invocations=["armor_of_shadows", "devils_sight"],
        )
        session = new_session(warlock, 5)
        session = stage(session, "5:invocations", InvocationsChoice(
            added=("thirsting_blade", "mask_of_many_faces"), removed=("armor_of_shadows",),
        ))
        assert effective_invocations(session) == {"devils_sight", "thirsting_blade", "mask_of_many_faces"}
        assert effective_invocations(session, before="5:invocations") == {"armor_of_shadows", "devils_sight"}


# ─── Navigation ────────────────────────────────────────────────────────


class TestNavigation:
    def session(self):
        return new_session(make_character([("Fighter", 1, None)]), 3)

    def test_advance_blocked_by_invalid_step(self):
        session = self.session()
        assert advance(session) is session

    def test_advance_and_retreat(self):
        session = stage(self.session(), "2:hp-roll", HitPointsChoice())
        session = advance(session)
        assert session.current_step.key == "2:features"
        session = retreat(session)
        assert session.current_step.key == "2:hp-roll"

    def test_retreat_at_start(self):
        session = self.session()
        assert retreat(session) is session

    def test_retreat_keeps_staged_values(self):
        session = stage(self.session(), "2:hp-roll", HitPointsChoice())
        session = retreat(advance(session))
        assert session.value("2:hp-roll") == HitPointsChoice()

    def test_advance_stops_at_last_step(self):
        session = new_session(make_character([("Fighter", 1, None)]), 2)
        session = stage(session, "2:hp-roll", HitPointsChoice())
        session = advance(advance(session))
        assert session.current_step.kind == StepKind.REVIEW
        assert session.is_last_step
        assert advance(session) is session

    def test_jump_back(self):
        session = stage(self.session(), "2:hp-roll", HitPointsChoice())
        session = advance(advance(session))
        assert session.current_step.key == "3:hp-roll"
        session = jump_to(session, "2:hp-roll")
        assert session.cursor == 0

    def test_jump_forward_is_rejected(self):
        with pytest.raises(SessionStateError, match="Cannot jump forward"):
            jump_to(self.session(), "3:subclass")

    def test_jump_to_unknown(self):
        with pytest.raises(SessionStateError, match="Unknown step"):
            jump_to(self.session(), "9:review")
