"""
Derived statistics.

Everything here is recomputed from primitive inputs (ability scores, levels,
proficiencies) and never patched incrementally, so calling any function twice
with the same inputs gives the same result.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from .models import ALL_ABILITIES, Character, CharacterClass, Resource, proficiency_bonus_for
from .rulebooks.catalog import FULL_CASTER_SLOTS, SKILLS, get_class_rules, pact_slot_count, pact_slot_level
from .rulebooks.models import SpellcastingType
from .rulebooks.predicates import is_third_caster, spellcasting_type


@dataclass(frozen=True)
class DerivedStats:
    """Result of ``derive_stats``."""
    ability_modifiers: dict[str, int]
    proficiency_bonus: int
    saving_throws: dict[str, int]
    skill_modifiers: dict[str, int] = field(default_factory=dict)
    passive_perception: int = 10
    spell_save_dc: int | None = None
    spell_attack_modifier: int | None = None


def ability_modifier(score: int) -> int:
    return (score - 10) // 2


def derive_stats(
    ability_scores: Mapping[str, int],
    level: int,
    saving_throw_proficiencies: Iterable[str],
    skill_proficiencies: Iterable[str],
    spell_ability: str | None = None,
    expertise: Iterable[str] = (),
) -> DerivedStats:
    """Compute modifiers, saves, passive perception and spellcasting numbers.

    Args:
        ability_scores: ``{ability: score}``; missing abilities count as 10
        level: Total character level
        saving_throw_proficiencies: Abilities the character is proficient in saving with
        skill_proficiencies: Proficient skill names
        spell_ability: Spellcasting ability, if the character casts spells
        expertise: Skills with doubled proficiency
    """
    pb = proficiency_bonus_for(level)
    mods = {ability: ability_modifier(ability_scores.get(ability, 10)) for ability in ALL_ABILITIES}

    save_profs = {s.lower() for s in saving_throw_proficiencies}
    saving_throws = {
        ability: mods[ability] + (pb if ability in save_profs else 0)
        for ability in ALL_ABILITIES
    }

    proficient = {s.lower() for s in skill_proficiencies}
    doubled = {s.lower() for s in expertise}
    skill_modifiers = {}
    for skill, ability in SKILLS.items():
        bonus = mods[ability]
        if skill.lower() in proficient:
            bonus += pb
        if skill.lower() in doubled:
            bonus += pb
        skill_modifiers[skill] = bonus

    spell_save_dc = None
    spell_attack = None
    if spell_ability:
        spell_mod = mods.get(spell_ability.lower(), 0)
        spell_save_dc = 8 + pb + spell_mod
        spell_attack = pb + spell_mod

    return DerivedStats(
        ability_modifiers=mods,
        proficiency_bonus=pb,
        saving_throws=saving_throws,
        skill_modifiers=skill_modifiers,
        passive_perception=10 + skill_modifiers["Perception"],
        spell_save_dc=spell_save_dc,
        spell_attack_modifier=spell_attack,
    )


# ---------------------------------------------------------------------------
# Hit points
# ---------------------------------------------------------------------------

def average_hit_die(hit_die: int) -> int:
    """Fixed hit point value taken instead of rolling: half the die plus one."""
    return hit_die // 2 + 1


def hit_point_gain(hit_die: int, con_mod: int, roll: int | None = None) -> int:
    """Hit points gained for one level; never less than 1."""
    value = roll if roll is not None else average_hit_die(hit_die)
    return max(1, value + con_mod)


def level_one_hit_points(hit_die: int, con_mod: int) -> int:
    """Maximum hit die plus CON modifier at first level."""
    return max(1, hit_die + con_mod)


def retroactive_con_adjustment(old_con_mod: int, new_con_mod: int, previous_level: int) -> int:
    """HP change for earlier levels when the CON modifier changes."""
    return (new_con_mod - old_con_mod) * previous_level


# ---------------------------------------------------------------------------
# Spell slots and resources
# ---------------------------------------------------------------------------

def caster_level(classes: Sequence[CharacterClass]) -> int:
    """Combined caster level for the shared spell slot table.

    Full casters count every level, half casters half (from level 2), and
    Eldritch Knight / Arcane Trickster a third (from level 3). A character
    with a single slot-casting class rounds up instead of down. Pact magic is
    separate and never counts.
    """
    contributions: list[tuple[int, int]] = []  # (level, divisor)
    for entry in classes:
        rules = get_class_rules(entry.name)
        if rules is None:
            continue
        casting = spellcasting_type(rules, entry.subclass)
        if casting in (SpellcastingType.NONE, SpellcastingType.PACT):
            continue
        if casting == SpellcastingType.THIRD_CASTER:
            if entry.level >= 3:
                contributions.append((entry.level, 3))
        elif rules.caster_divisor == 2:
            if entry.level >= 2:
                contributions.append((entry.level, 2))
        else:
            contributions.append((entry.level, 1))

    if len(contributions) == 1:
        level, divisor = contributions[0]
        return -(-level // divisor)
    return sum(level // divisor for level, divisor in contributions)


def spell_slots(classes: Sequence[CharacterClass]) -> dict[int, int]:
    """Spell slot maxima by spell level (pact slots excluded)."""
    level = min(caster_level(classes), 20)
    if level < 1:
        return {}
    return {i + 1: count for i, count in enumerate(FULL_CASTER_SLOTS[level])}


def pact_slots(warlock_level: int) -> dict[int, int]:
    """Pact magic slots as ``{slot level: count}``."""
    if warlock_level < 1:
        return {}
    return {pact_slot_level(warlock_level): pact_slot_count(warlock_level)}


def resource_maxima(
    classes: Sequence[CharacterClass],
    abilities: Mapping[str, int],
) -> dict[str, Resource]:
    """Class resources with their maxima; ``current`` starts full.

    When two classes grant the same resource key the larger maximum wins.
    """
    resources: dict[str, Resource] = {}
    for entry in classes:
        rules = get_class_rules(entry.name)
        if rules is None:
            continue
        for progression in rules.resources:
            mod = ability_modifier(abilities.get(progression.ability, 10)) if progression.ability else 0
            maximum = progression.maximum(entry.level, mod)
            if maximum <= 0:
                continue
            existing = resources.get(progression.key)
            if existing and existing.maximum >= maximum:
                continue
            resources[progression.key] = Resource(
                key=progression.key,
                label=progression.label,
                current=maximum,
                maximum=maximum,
                recharge=progression.recharge,
                source_class=rules.name,
            )
    return resources


def merge_resources(old: Mapping[str, Resource], new: Mapping[str, Resource]) -> dict[str, Resource]:
    """Carry spent uses over into recomputed maxima.

    A resource keeps its spent amount; any increase in maximum is added to
    ``current``.
    """
    merged = {}
    for key, resource in new.items():
        previous = old.get(key)
        if previous is None:
            merged[key] = resource
            continue
        spent = max(0, previous.maximum - previous.current)
        merged[key] = resource.model_copy(update={"current": max(0, resource.maximum - spent)})
    return merged


def warlock_level(classes: Sequence[CharacterClass]) -> int:
    for entry in classes:
        rules = get_class_rules(entry.name)
        if rules is not None and rules.spellcasting_type == SpellcastingType.PACT:
            return entry.level
    return 0


def spellcasting_ability_for(classes: Sequence[CharacterClass]) -> str | None:
    """Spellcasting ability of the first casting class, in class order."""
    for entry in classes:
        rules = get_class_rules(entry.name)
        if rules is None:
            continue
        if rules.spellcasting_ability:
            return rules.spellcasting_ability
        if is_third_caster(rules, entry.subclass):
            return "intelligence"
    return None


def apply_derived_stats(character: Character, previous_resources: Mapping[str, Resource] | None = None) -> Character:
    """Recompute every derived field of ``character`` in place from its primitives.

    Spent resource uses from ``previous_resources`` carry over.
    """
    abilities = character.ability_scores()
    spell_ability = character.spellcasting_ability or spellcasting_ability_for(character.classes)
    stats = derive_stats(
        abilities,
        character.total_level,
        character.saving_throw_proficiencies,
        character.skill_proficiencies,
        spell_ability=spell_ability,
        expertise=character.skill_expertise,
    )
    character.proficiency_bonus = stats.proficiency_bonus
    character.saving_throws = stats.saving_throws
    character.passive_perception = stats.passive_perception
    character.spellcasting_ability = spell_ability
    character.spell_save_dc = stats.spell_save_dc
    character.spell_attack_modifier = stats.spell_attack_modifier
    character.spell_slots = spell_slots(character.classes)
    character.pact_slots = pact_slots(warlock_level(character.classes))
    character.resources = merge_resources(previous_resources or {}, resource_maxima(character.classes, abilities))
    return character


__all__ = [
    "DerivedStats",
    "ability_modifier",
    "derive_stats",
    "average_hit_die",
    "hit_point_gain",
    "level_one_hit_points",
    "retroactive_con_adjustment",
    "caster_level",
    "spell_slots",
    "pact_slots",
    "resource_maxima",
    "merge_resources",
    "warlock_level",
    "spellcasting_ability_for",
    "apply_derived_stats",
]
