"""
Rulebook data models.

Class rules are static, code-defined tables (they carry resource formulas), so
they are frozen dataclasses. Spells and feats come from YAML/JSON content
files and are validated with pydantic.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from pydantic import BaseModel, Field


class SpellcastingType(str, Enum):
    """How a class gains and manages spells."""
    NONE = "none"
    KNOWN = "known"
    PREPARED = "prepared"
    PACT = "pact"
    THIRD_CASTER = "third-caster"


class FeatureChoiceType(str, Enum):
    """Closed set of feature-choice kinds a class can grant at a level."""
    FIGHTING_STYLE = "fighting_style"
    EXPERTISE = "expertise"
    METAMAGIC = "metamagic"
    PACT_BOON = "pact_boon"
    INVOCATION = "invocation"
    MAGICAL_SECRETS = "magical_secrets"
    FAVORED_ENEMY = "favored_enemy"
    FAVORED_TERRAIN = "favored_terrain"
    # Subclass picks, handled by the subclass step rather than their own step
    PRIMAL_PATH = "primal_path"
    BARD_COLLEGE = "bard_college"
    DIVINE_DOMAIN = "divine_domain"
    DRUID_CIRCLE = "druid_circle"
    MARTIAL_ARCHETYPE = "martial_archetype"
    MONASTIC_TRADITION = "monastic_tradition"
    SACRED_OATH = "sacred_oath"
    RANGER_ARCHETYPE = "ranger_archetype"
    ROGUISH_ARCHETYPE = "roguish_archetype"
    SORCEROUS_ORIGIN = "sorcerous_origin"
    OTHERWORLDLY_PATRON = "otherworldly_patron"
    ARCANE_TRADITION = "arcane_tradition"

    @property
    def is_subclass_pick(self) -> bool:
        return self in SUBCLASS_CHOICE_TYPES


SUBCLASS_CHOICE_TYPES = frozenset({
    FeatureChoiceType.PRIMAL_PATH,
    FeatureChoiceType.BARD_COLLEGE,
    FeatureChoiceType.DIVINE_DOMAIN,
    FeatureChoiceType.DRUID_CIRCLE,
    FeatureChoiceType.MARTIAL_ARCHETYPE,
    FeatureChoiceType.MONASTIC_TRADITION,
    FeatureChoiceType.SACRED_OATH,
    FeatureChoiceType.RANGER_ARCHETYPE,
    FeatureChoiceType.ROGUISH_ARCHETYPE,
    FeatureChoiceType.SORCEROUS_ORIGIN,
    FeatureChoiceType.OTHERWORLDLY_PATRON,
    FeatureChoiceType.ARCANE_TRADITION,
})


@dataclass(frozen=True)
class FeatureChoiceSpec:
    """A choice a class grants at a level.

    ``count`` choices must be made. ``replace_count`` allows swapping that many
    already-held values of the same type (invocations).
    """
    type: FeatureChoiceType
    count: int = 1
    options: tuple[str, ...] = ()
    replace_count: int = 0


@dataclass(frozen=True)
class ResourceProgression:
    """Limited-use resource whose maximum follows a formula of class level."""
    key: str
    label: str
    formula: Callable[[int, int], int]
    recharge: str = "long"
    start_level: int = 1
    ability: str | None = None  # ability whose modifier feeds the formula

    def maximum(self, level: int, ability_mod: int = 0) -> int:
        if level < self.start_level:
            return 0
        return self.formula(level, ability_mod)


@dataclass(frozen=True)
class MulticlassPrerequisite:
    """Minimum ability scores required to multiclass into or out of a class.

    ``any_of`` groups are disjunctive: at least one ability in each group must
    meet its minimum. A plain class has one single-ability group per ability.
    """
    any_of: tuple[tuple[tuple[str, int], ...], ...] = ()


@dataclass(frozen=True)
class MulticlassGrant:
    """Proficiencies gained when multiclassing into a class."""
    armor: tuple[str, ...] = ()
    weapons: tuple[str, ...] = ()
    tools: tuple[str, ...] = ()
    skill_count: int = 0
    skill_options: tuple[str, ...] = ()  # empty with skill_count > 0 means "any skill"


@dataclass(frozen=True)
class ClassRules:
    """Progression rules for one class."""
    name: str
    hit_die: int
    spellcasting_type: SpellcastingType = SpellcastingType.NONE
    spellcasting_ability: str | None = None
    subclass_level: int = 3
    subclasses: tuple[str, ...] = ()
    asi_levels: frozenset[int] = frozenset({4, 8, 12, 16, 19})
    cantrip_progression: dict[int, int] = field(default_factory=dict)
    spells_per_level: int = 0  # spellbook casters add this many spells per level
    caster_divisor: int = 0  # 1 full, 2 half; pact and third casters are handled apart
    resources: tuple[ResourceProgression, ...] = ()
    feature_choice_levels: dict[int, tuple[FeatureChoiceSpec, ...]] = field(default_factory=dict)
    features_by_level: dict[int, tuple[str, ...]] = field(default_factory=dict)
    saving_throws: tuple[str, ...] = ()
    armor_proficiencies: tuple[str, ...] = ()
    weapon_proficiencies: tuple[str, ...] = ()
    multiclass_prerequisite: MulticlassPrerequisite = MulticlassPrerequisite()
    multiclass_grant: MulticlassGrant = MulticlassGrant()

    @property
    def is_caster(self) -> bool:
        return self.spellcasting_type != SpellcastingType.NONE

    def feature_choices_at(self, level: int) -> tuple[FeatureChoiceSpec, ...]:
        return self.feature_choice_levels.get(level, ())


@dataclass(frozen=True)
class OptionDefinition:
    """A named option for a feature choice (invocation, metamagic, boon...)."""
    id: str
    name: str
    description: str = ""
    min_level: int = 0
    pact_boon: str | None = None
    cantrip_required: str | None = None


class SpellDefinition(BaseModel):
    """Spell reference data."""
    id: str
    name: str
    level: int = Field(ge=0, le=9)
    school: str = ""
    classes: list[str] = Field(default_factory=list)
    ritual: bool = False
    concentration: bool = False
    source: str = "srd"


class FeatDefinition(BaseModel):
    """Feat reference data with its prerequisites."""
    id: str
    name: str
    description: str = ""
    prerequisite_abilities: dict[str, int] = Field(
        default_factory=dict,
        description="Minimum scores, any one of which satisfies the prerequisite",
    )
    requires_spellcasting: bool = False
    requires_proficiency: str | None = None
    repeatable: bool = False
    source: str = "srd"


@dataclass(frozen=True)
class SpellFilter:
    """Query for ``list_spells``."""
    class_name: str | None = None
    min_level: int = 0
    max_level: int = 9
    exact_level: int | None = None

    def matches(self, spell: SpellDefinition) -> bool:
        if self.class_name and self.class_name.lower() not in (c.lower() for c in spell.classes):
            return False
        if self.exact_level is not None:
            return spell.level == self.exact_level
        return self.min_level <= spell.level <= self.max_level


@dataclass(frozen=True)
class FeatFilter:
    """Query for ``list_feats``: only feats whose prerequisites the character meets."""
    ability_scores: dict[str, int] = field(default_factory=dict)
    is_spellcaster: bool = False
    proficiencies: frozenset[str] = frozenset()

    def matches(self, feat: FeatDefinition) -> bool:
        if feat.prerequisite_abilities and not any(
            self.ability_scores.get(ability, 0) >= minimum
            for ability, minimum in feat.prerequisite_abilities.items()
        ):
            return False
        if feat.requires_spellcasting and not self.is_spellcaster:
            return False
        if feat.requires_proficiency and feat.requires_proficiency.lower() not in {
            p.lower() for p in self.proficiencies
        }:
            return False
        return True


__all__ = [
    "SpellcastingType",
    "FeatureChoiceType",
    "SUBCLASS_CHOICE_TYPES",
    "FeatureChoiceSpec",
    "ResourceProgression",
    "MulticlassPrerequisite",
    "MulticlassGrant",
    "ClassRules",
    "OptionDefinition",
    "SpellDefinition",
    "FeatDefinition",
    "SpellFilter",
    "FeatFilter",
]
