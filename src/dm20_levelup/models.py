"""
Data models for persisted character state.
"""

from datetime import datetime
from typing import Any, Annotated
from shortuuid import random
from pydantic import BaseModel, Field, model_validator


# Ability score abbreviation → full name mapping
ABILITY_ABBREV = {
    "STR": "strength",
    "DEX": "dexterity",
    "CON": "constitution",
    "INT": "intelligence",
    "WIS": "wisdom",
    "CHA": "charisma",
}

ALL_ABILITIES = list(ABILITY_ABBREV.values())

# Maximum ability score reachable through improvements (without magic items)
MAX_ABILITY_SCORE = 20

MAX_CHARACTER_LEVEL = 20


def normalize_ability(name: str) -> str:
    """Map 'STR', 'str' or 'Strength' to 'strength'. Unknown names are lowercased."""
    return ABILITY_ABBREV.get(name.strip().upper(), name.strip().lower())


def proficiency_bonus_for(level: int) -> int:
    """Proficiency bonus for a total character level."""
    return (max(level, 1) - 1) // 4 + 2


class AbilityScore(BaseModel):
    """D&D ability score with modifiers."""
    score: int = Field(ge=1, le=30, description="Raw ability score")

    @property
    def mod(self) -> int:
        """Calculate ability modifier."""
        return (self.score - 10) // 2


class CharacterClass(BaseModel):
    """One class entry of a (possibly multiclassed) character."""
    class_id: str = Field(default_factory=lambda: random(length=8))
    name: str
    level: int = Field(ge=0, le=20)
    is_primary: bool = False
    hit_dice: Annotated[str, "The hit dice for this class. E.g.. '3d8'"] = "1d8"
    subclass: Annotated[str | None, "The subclass chosen for this class."] = None


class Spell(BaseModel):
    """A spell the character knows, has in a spellbook, or always has prepared."""
    id: str
    name: str
    level: int = Field(ge=0, le=9)
    school: str = ""
    source_class: str | None = None
    prepared: bool = False
    mystic_arcanum: bool = False


class Feature(BaseModel):
    """Structured class/race/background feature."""
    name: str
    source: str  # e.g., "Ranger 1", "Fighter 3"
    description: str = ""
    level_gained: int = 1


class Resource(BaseModel):
    """A limited-use class resource (rage, ki, sorcery points...)."""
    key: str
    label: str
    current: int = 0
    maximum: int = 0
    recharge: str = "long"  # short, long
    source_class: str | None = None


class Feat(BaseModel):
    """A feat taken in place of an ability score improvement."""
    id: str
    name: str
    level_gained: int = 1


class LevelHistoryRecord(BaseModel):
    """Immutable record of one level transition."""
    id: str = Field(default_factory=lambda: random(length=8))
    previous_level: int
    new_level: int
    class_name: str
    class_level: int
    hp_gained: int
    choices_made: dict[str, Any] = Field(default_factory=dict)
    features_gained: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)

    model_config = {"frozen": True}


class Character(BaseModel):
    """Persisted character state owned by the character store."""
    # Basic Info
    id: str = Field(default_factory=lambda: random(length=8))
    name: str
    player_name: str | None = None
    classes: list[CharacterClass] = Field(min_length=1)
    race: str | None = None
    background: str | None = None

    # Core Stats
    abilities: dict[str, AbilityScore] = Field(
        default_factory=lambda: {name: AbilityScore(score=10) for name in ALL_ABILITIES}
    )

    # Combat Stats
    hit_points_max: int = 1
    hit_points_current: int = 1

    # Skills & Proficiencies
    proficiency_bonus: int = 2
    skill_proficiencies: list[str] = Field(default_factory=list)
    skill_expertise: list[str] = Field(default_factory=list)
    saving_throw_proficiencies: list[str] = Field(default_factory=list)
    saving_throws: dict[str, int] = Field(default_factory=dict)
    armor_proficiencies: list[str] = Field(default_factory=list)
    weapon_proficiencies: list[str] = Field(default_factory=list)
    tool_proficiencies: list[str] = Field(default_factory=list)
    passive_perception: int = 10

    # Spellcasting
    spellcasting_ability: str | None = None
    spell_save_dc: int | None = None
    spell_attack_modifier: int | None = None
    spell_slots: dict[int, int] = Field(default_factory=dict)  # level: max_slots
    pact_slots: dict[int, int] = Field(default_factory=dict)  # slot level: count
    spells_known: list[Spell] = Field(default_factory=list)
    mystic_arcanum: dict[int, str] = Field(default_factory=dict)  # spell level: spell id

    # Class options
    resources: dict[str, Resource] = Field(default_factory=dict)
    feats: list[Feat] = Field(default_factory=list)
    features: list[Feature] = Field(default_factory=list)
    fighting_styles: list[str] = Field(default_factory=list)
    metamagic: list[str] = Field(default_factory=list)
    pact_boon: str | None = None
    invocations: list[str] = Field(default_factory=list)
    favored_enemies: list[str] = Field(default_factory=list)
    favored_terrains: list[str] = Field(default_factory=list)

    # History
    level_history: list[LevelHistoryRecord] = Field(default_factory=list)
    version: int = 0
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @model_validator(mode="before")
    @classmethod
    def _migrate_character_class(cls, data: Any) -> Any:
        """Accept the single-class ``character_class`` shape used by older files."""
        if isinstance(data, dict):
            if "character_class" in data and "classes" not in data:
                cc = data.pop("character_class")
                data["classes"] = [cc]
        return data

    @model_validator(mode="after")
    def _check_classes(self) -> "Character":
        """Enforce class-list invariants and derive the proficiency bonus."""
        names = [c.name.lower() for c in self.classes]
        if len(set(names)) != len(names):
            raise ValueError("A character can hold each class at most once")
        ids = [c.class_id for c in self.classes]
        if len(set(ids)) != len(ids):
            raise ValueError("Duplicate class_id in classes")
        if self.total_level > MAX_CHARACTER_LEVEL:
            raise ValueError(
                f"Total level {self.total_level} exceeds {MAX_CHARACTER_LEVEL}"
            )
        if not any(c.is_primary for c in self.classes):
            self.classes[0].is_primary = True
        self.proficiency_bonus = proficiency_bonus_for(self.total_level)
        return self

    @property
    def primary_class(self) -> CharacterClass:
        """The class the character started with."""
        for entry in self.classes:
            if entry.is_primary:
                return entry
        return self.classes[0]

    @property
    def total_level(self) -> int:
        """Total character level across all classes."""
        return sum(c.level for c in self.classes)

    @property
    def is_multiclass(self) -> bool:
        """Whether the character has more than one class."""
        return len(self.classes) > 1

    def class_string(self) -> str:
        """Human-readable class string, e.g. 'Fighter 5 / Wizard 3'."""
        return " / ".join(f"{c.name} {c.level}" for c in self.classes)

    def get_class(self, class_name: str) -> CharacterClass | None:
        """Find a class entry by name (case-insensitive)."""
        wanted = class_name.strip().lower()
        for entry in self.classes:
            if entry.name.lower() == wanted:
                return entry
        return None

    def ability_scores(self) -> dict[str, int]:
        """Plain ``{ability: score}`` mapping, defaulting missing abilities to 10."""
        return {
            name: self.abilities.get(name, AbilityScore(score=10)).score
            for name in ALL_ABILITIES
        }

    def known_spell_ids(self) -> set[str]:
        return {s.id for s in self.spells_known}

    def feat_ids(self) -> set[str]:
        return {f.id for f in self.feats}


__all__ = [
    "ABILITY_ABBREV",
    "ALL_ABILITIES",
    "MAX_ABILITY_SCORE",
    "MAX_CHARACTER_LEVEL",
    "normalize_ability",
    "proficiency_bonus_for",
    "AbilityScore",
    "CharacterClass",
    "Spell",
    "Feature",
    "Resource",
    "Feat",
    "LevelHistoryRecord",
    "Character",
]
