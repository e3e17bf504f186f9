"""
Eligibility predicates.

Pure, total functions over class rules and class levels that answer "is X
needed at this transition". Levels here are CLASS levels; the step planner
translates them to character levels. Unknown tables or out-of-range levels
yield 0/False instead of raising.
"""

from collections.abc import Iterable, Mapping

from .catalog import (
    ELDRITCH_INVOCATIONS,
    INVOCATIONS_KNOWN,
    MYSTIC_ARCANUM_LEVELS,
    SPELLBOOK_STARTING_SPELLS,
    SPELLS_KNOWN_PROGRESSION,
    THIRD_CASTER_CANTRIPS,
    THIRD_CASTER_KNOWN,
    THIRD_CASTER_SUBCLASSES,
    normalize_index,
    pact_slot_level,
)
from .models import ClassRules, FeatureChoiceSpec, FeatureChoiceType, OptionDefinition, SpellcastingType


def _clamp(level: int) -> int:
    return max(0, min(level, 20))


def _threshold_lookup(progression: Mapping[int, int], level: int) -> int:
    """Value of the highest threshold at or below ``level`` (0 if none)."""
    value = 0
    for threshold in sorted(progression):
        if level >= threshold:
            value = progression[threshold]
    return value


def is_third_caster(rules: ClassRules, subclass: str | None) -> bool:
    expected = THIRD_CASTER_SUBCLASSES.get(normalize_index(rules.name))
    return expected is not None and subclass == expected


def spellcasting_type(rules: ClassRules, subclass: str | None = None) -> SpellcastingType:
    """Effective casting family, promoting Eldritch Knight / Arcane Trickster."""
    if rules.spellcasting_type == SpellcastingType.NONE and is_third_caster(rules, subclass):
        return SpellcastingType.THIRD_CASTER
    return rules.spellcasting_type


# ---------------------------------------------------------------------------
# Cantrips and spells
# ---------------------------------------------------------------------------

def cantrips_known(rules: ClassRules, level: int, subclass: str | None = None) -> int:
    level = _clamp(level)
    if spellcasting_type(rules, subclass) == SpellcastingType.THIRD_CASTER:
        return _threshold_lookup(THIRD_CASTER_CANTRIPS, level)
    return _threshold_lookup(rules.cantrip_progression, level)


def cantrip_gain(rules: ClassRules, level_from: int, level_to: int, subclass: str | None = None) -> int:
    """Cantrips learned between two class levels."""
    if level_to <= level_from:
        return 0
    return max(0, cantrips_known(rules, level_to, subclass) - cantrips_known(rules, level_from, subclass))


def spells_known(rules: ClassRules, level: int, subclass: str | None = None) -> int:
    """Spells known (or in the spellbook) at a class level.

    Prepared casters without a spellbook prepare from their whole list and
    report 0.
    """
    level = _clamp(level)
    casting = spellcasting_type(rules, subclass)
    if casting == SpellcastingType.THIRD_CASTER:
        return THIRD_CASTER_KNOWN[level] if level >= 3 else 0
    if rules.spells_per_level:
        if level < 1:
            return 0
        return SPELLBOOK_STARTING_SPELLS + rules.spells_per_level * (level - 1)
    table = SPELLS_KNOWN_PROGRESSION.get(normalize_index(rules.name))
    if table is None:
        return 0
    return table[level]


def spells_known_gain(rules: ClassRules, level_from: int, level_to: int, subclass: str | None = None) -> int:
    """New spells learned between two class levels.

    Third-casters key the lookup on ``level_to`` and never gain before class
    level 3, even when the subclass is picked in the same transition.
    """
    if level_to <= level_from:
        return 0
    if spellcasting_type(rules, subclass) == SpellcastingType.THIRD_CASTER:
        if level_to < 3:
            return 0
        before = THIRD_CASTER_KNOWN[_clamp(level_from)] if level_from >= 3 else 0
        return max(0, THIRD_CASTER_KNOWN[_clamp(level_to)] - before)
    return max(0, spells_known(rules, level_to, subclass) - spells_known(rules, level_from, subclass))


def max_spell_level(rules: ClassRules, level: int, subclass: str | None = None) -> int:
    """Highest spell level the class can learn at a class level."""
    level = _clamp(level)
    if level < 1:
        return 0
    casting = spellcasting_type(rules, subclass)
    if casting == SpellcastingType.NONE:
        return 0
    if casting == SpellcastingType.PACT:
        return pact_slot_level(level)
    if casting == SpellcastingType.THIRD_CASTER:
        return 0 if level < 3 else (level - 1) // 6 + 1
    if rules.caster_divisor == 2:
        return 0 if level < 2 else min(5, (level - 1) // 4 + 1)
    return min(9, (level + 1) // 2)


# ---------------------------------------------------------------------------
# Ability score improvements and subclasses
# ---------------------------------------------------------------------------

def is_asi_level(rules: ClassRules, level: int) -> bool:
    return level in rules.asi_levels


def needs_subclass(rules: ClassRules, level: int, subclass: str | None) -> bool:
    return level >= rules.subclass_level and not subclass


def needs_pact_boon(rules: ClassRules, level: int, pact_boon: str | None) -> bool:
    return rules.spellcasting_type == SpellcastingType.PACT and level >= 3 and not pact_boon


# ---------------------------------------------------------------------------
# Invocations and mystic arcanum
# ---------------------------------------------------------------------------

def invocations_known(level: int) -> int:
    for threshold, count in INVOCATIONS_KNOWN:
        if level >= threshold:
            return count
    return 0


def invocations_to_gain(level_from: int, level_to: int) -> int:
    return max(0, invocations_known(level_to) - invocations_known(level_from))


def invocation_replace_count(rules: ClassRules, level_from: int, level_to: int) -> int:
    """Invocations that may be swapped out over the transition."""
    return sum(
        spec.replace_count
        for level in range(level_from + 1, level_to + 1)
        for spec in rules.feature_choices_at(level)
        if spec.type == FeatureChoiceType.INVOCATION
    )


def mystic_arcanum_level(level: int) -> int | None:
    """Spell level of the arcanum granted at a class level, if any."""
    return MYSTIC_ARCANUM_LEVELS.get(level)


def needs_mystic_arcanum(
    rules: ClassRules,
    level: int,
    held: Mapping[int, str] | None = None,
) -> bool:
    """True at pact-caster levels 11/13/15/17 unless that arcanum is already held."""
    if rules.spellcasting_type != SpellcastingType.PACT:
        return False
    spell_level = mystic_arcanum_level(level)
    if spell_level is None:
        return False
    return not (held and spell_level in held)


def invocation_prerequisites_met(
    invocation: OptionDefinition,
    level: int,
    pact_boon: str | None,
    cantrips: Iterable[str],
) -> bool:
    if level < invocation.min_level:
        return False
    if invocation.pact_boon and invocation.pact_boon != pact_boon:
        return False
    if invocation.cantrip_required and invocation.cantrip_required not in set(cantrips):
        return False
    return True


def eligible_invocations(
    level: int,
    pact_boon: str | None = None,
    cantrips: Iterable[str] = (),
    held: Iterable[str] = (),
) -> list[OptionDefinition]:
    """Invocations whose prerequisites are met and that aren't already held."""
    cantrips = set(cantrips)
    held = set(held)
    return [
        inv for inv in ELDRITCH_INVOCATIONS
        if inv.id not in held and invocation_prerequisites_met(inv, level, pact_boon, cantrips)
    ]


# ---------------------------------------------------------------------------
# Feature choices and grants
# ---------------------------------------------------------------------------

def feature_choices_at(rules: ClassRules, level: int) -> tuple[FeatureChoiceSpec, ...]:
    return rules.feature_choices_at(level)


def actionable_feature_choices(rules: ClassRules, level: int) -> tuple[FeatureChoiceSpec, ...]:
    """Feature choices at a level, excluding subclass picks."""
    return tuple(spec for spec in rules.feature_choices_at(level) if not spec.type.is_subclass_pick)


def granted_features(rules: ClassRules, level: int) -> tuple[str, ...]:
    return rules.features_by_level.get(level, ())


__all__ = [
    "is_third_caster",
    "spellcasting_type",
    "cantrips_known",
    "cantrip_gain",
    "spells_known",
    "spells_known_gain",
    "max_spell_level",
    "is_asi_level",
    "needs_subclass",
    "needs_pact_boon",
    "invocations_known",
    "invocations_to_gain",
    "invocation_replace_count",
    "mystic_arcanum_level",
    "needs_mystic_arcanum",
    "invocation_prerequisites_met",
    "eligible_invocations",
    "feature_choices_at",
    "actionable_feature_choices",
    "granted_features",
]
