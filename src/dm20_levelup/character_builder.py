"""Character Builder — create level-1 characters from the rules catalog.

Given a class and ability scores, the builder populates a Character with
saving throws, proficiencies, level-1 features, hit points, resources, spell
slots and derived stats. Characters above level 1 are taken there by a
creation session, one level at a time.
"""

from __future__ import annotations

from collections.abc import Mapping

from .derived_stats import ability_modifier, apply_derived_stats, level_one_hit_points
from .errors import LevelUpError
from .models import (
    ALL_ABILITIES,
    AbilityScore,
    Character,
    CharacterClass,
    Feature,
    Spell,
    normalize_ability,
)
from .rulebooks.catalog import SKILLS, get_class_rules
from .rulebooks.models import ClassRules, SpellDefinition
from .rulebooks.predicates import cantrips_known, granted_features, spells_known


# Standard Array values per PHB
STANDARD_ARRAY = [15, 14, 13, 12, 10, 8]

# Point Buy costs per PHB
POINT_BUY_COSTS = {8: 0, 9: 1, 10: 2, 11: 3, 12: 4, 13: 5, 14: 7, 15: 9}
POINT_BUY_BUDGET = 27


class CharacterBuilderError(LevelUpError):
    """Raised when the builder cannot create a character."""


class CharacterBuilder:
    """Build a level-1 Character from class rules.

    ``spell_lookup`` maps spell ids to catalog definitions so starting spells
    carry their names, levels and schools; unknown ids are rejected when a
    lookup is given.
    """

    def __init__(self, spell_lookup: Mapping[str, SpellDefinition] | None = None) -> None:
        self.spell_lookup = spell_lookup

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def build(
        self,
        name: str,
        class_name: str,
        *,
        subclass: str | None = None,
        race: str | None = None,
        background: str | None = None,
        player_name: str | None = None,
        ability_method: str = "manual",
        ability_assignments: dict[str, int] | None = None,
        skill_proficiencies: list[str] | None = None,
        cantrips: list[str] | None = None,
        spells: list[str] | None = None,
        # Raw ability scores for manual mode
        strength: int = 10,
        dexterity: int = 10,
        constitution: int = 10,
        intelligence: int = 10,
        wisdom: int = 10,
        charisma: int = 10,
    ) -> Character:
        """Build a level-1 Character.

        Args:
            name: Character name.
            class_name: Class name (e.g., "Fighter", "Wizard").
            subclass: Subclass, only for classes that choose it at level 1.
            race: Race name (free text).
            background: Background name (free text).
            player_name: Player name.
            ability_method: "manual", "standard_array", or "point_buy".
            ability_assignments: For standard_array/point_buy: {"strength": 15, ...}.
            skill_proficiencies: Skill names the character is proficient in.
            cantrips: Starting cantrip ids; must match the class's level-1 count.
            spells: Starting spell ids; must match the class's level-1 count.
            strength..charisma: Raw scores for manual mode.

        Returns:
            A populated level-1 Character with derived stats computed.

        Raises:
            CharacterBuilderError: If the class is unknown or input is invalid.
        """
        rules = self._get_class(class_name)
        subclass = self._check_subclass(rules, subclass)

        abilities = self._resolve_abilities(
            ability_method,
            ability_assignments,
            strength=strength,
            dexterity=dexterity,
            constitution=constitution,
            intelligence=intelligence,
            wisdom=wisdom,
            charisma=charisma,
        )

        skills = self._check_skills(skill_proficiencies or [])
        known = self._starting_spells(rules, subclass, cantrips or [], spells or [])

        con_mod = ability_modifier(abilities["constitution"].score)
        hp = level_one_hit_points(rules.hit_die, con_mod)

        features = [
            Feature(name=feature, source=f"{rules.name} 1", level_gained=1)
            for feature in granted_features(rules, 1)
        ]

        character = Character(
            name=name,
            player_name=player_name,
            race=race,
            background=background,
            classes=[CharacterClass(
                name=rules.name,
                level=1,
                is_primary=True,
                hit_dice=f"1d{rules.hit_die}",
                subclass=subclass,
            )],
            abilities=abilities,
            hit_points_max=hp,
            hit_points_current=hp,
            saving_throw_proficiencies=list(rules.saving_throws),
            skill_proficiencies=skills,
            armor_proficiencies=list(rules.armor_proficiencies),
            weapon_proficiencies=list(rules.weapon_proficiencies),
            features=features,
            spells_known=known,
        )
        return apply_derived_stats(character)

    # ------------------------------------------------------------------
    # Ability Score Methods
    # ------------------------------------------------------------------

    def _resolve_abilities(
        self,
        method: str,
        assignments: dict[str, int] | None,
        **manual_scores: int,
    ) -> dict[str, AbilityScore]:
        """Generate ability scores using the chosen method."""
        if method == "manual":
            for ability, score in manual_scores.items():
                if not 1 <= score <= 30:
                    raise CharacterBuilderError(f"{ability} must be 1-30 (got {score})")
            return {
                name: AbilityScore(score=manual_scores.get(name, 10))
                for name in ALL_ABILITIES
            }
        elif method == "standard_array":
            return self._standard_array(self._normalize_assignments(assignments))
        elif method == "point_buy":
            return self._point_buy(self._normalize_assignments(assignments))
        else:
            raise CharacterBuilderError(
                f"Unknown ability method: '{method}'. "
                "Use 'manual', 'standard_array', or 'point_buy'."
            )

    @staticmethod
    def _normalize_assignments(assignments: dict[str, int] | None) -> dict[str, int] | None:
        if not assignments:
            return assignments
        return {normalize_ability(k): v for k, v in assignments.items()}

    def _standard_array(
        self, assignments: dict[str, int] | None
    ) -> dict[str, AbilityScore]:
        """Assign Standard Array values [15, 14, 13, 12, 10, 8] to abilities."""
        if not assignments:
            raise CharacterBuilderError(
                "standard_array requires ability_assignments: "
                '{"strength": 15, "dexterity": 14, ...}'
            )
        if set(assignments.keys()) != set(ALL_ABILITIES):
            missing = set(ALL_ABILITIES) - set(assignments.keys())
            raise CharacterBuilderError(
                f"Must assign all 6 abilities. Missing: {sorted(missing)}"
            )
        assigned_values = sorted(assignments.values(), reverse=True)
        if assigned_values != sorted(STANDARD_ARRAY, reverse=True):
            raise CharacterBuilderError(
                f"Standard Array values must be exactly {STANDARD_ARRAY} "
                f"(got {list(assignments.values())})"
            )
        return {
            name: AbilityScore(score=assignments[name]) for name in ALL_ABILITIES
        }

    def _point_buy(
        self, assignments: dict[str, int] | None
    ) -> dict[str, AbilityScore]:
        """Validate and apply Point Buy scores (27 points, PHB costs)."""
        if not assignments:
            raise CharacterBuilderError(
                "point_buy requires ability_assignments: "
                '{"strength": 15, "dexterity": 13, ...}'
            )
        if set(assignments.keys()) != set(ALL_ABILITIES):
            missing = set(ALL_ABILITIES) - set(assignments.keys())
            raise CharacterBuilderError(
                f"Must assign all 6 abilities. Missing: {sorted(missing)}"
            )
        total_cost = 0
        for ability, score in assignments.items():
            if score < 8 or score > 15:
                raise CharacterBuilderError(
                    f"Point Buy scores must be 8-15 (got {ability}={score})"
                )
            total_cost += POINT_BUY_COSTS[score]

        if total_cost > POINT_BUY_BUDGET:
            raise CharacterBuilderError(
                f"Point Buy budget exceeded: {total_cost}/{POINT_BUY_BUDGET} points"
            )
        if total_cost < POINT_BUY_BUDGET:
            remaining = POINT_BUY_BUDGET - total_cost
            raise CharacterBuilderError(
                f"Point Buy has {remaining} unspent points ({total_cost}/{POINT_BUY_BUDGET})"
            )

        return {
            name: AbilityScore(score=assignments[name]) for name in ALL_ABILITIES
        }

    # ------------------------------------------------------------------
    # Class data
    # ------------------------------------------------------------------

    def _get_class(self, class_name: str) -> ClassRules:
        rules = get_class_rules(class_name)
        if rules is None:
            raise CharacterBuilderError(f"Class '{class_name}' not found in the rules catalog")
        return rules

    def _check_subclass(self, rules: ClassRules, subclass: str | None) -> str | None:
        if subclass is None:
            return None
        if rules.subclass_level > 1:
            raise CharacterBuilderError(
                f"{rules.name} chooses a subclass at level {rules.subclass_level}, not at level 1"
            )
        if subclass not in rules.subclasses:
            raise CharacterBuilderError(f"'{subclass}' is not a {rules.name} subclass")
        return subclass

    def _check_skills(self, skills: list[str]) -> list[str]:
        unknown = [s for s in skills if s not in SKILLS]
        if unknown:
            raise CharacterBuilderError(f"Unknown skill(s): {', '.join(unknown)}")
        return list(dict.fromkeys(skills))

    # ------------------------------------------------------------------
    # Spells
    # ------------------------------------------------------------------

    def _spell(self, spell_id: str, default_level: int, class_name: str) -> Spell:
        definition = self.spell_lookup.get(spell_id) if self.spell_lookup is not None else None
        if self.spell_lookup is not None and definition is None:
            raise CharacterBuilderError(f"Unknown spell '{spell_id}'")
        if definition is not None and (definition.level == 0) != (default_level == 0):
            kind = "a cantrip" if default_level == 0 else "a levelled spell"
            raise CharacterBuilderError(f"{definition.name} is not {kind}")
        return Spell(
            id=spell_id,
            name=definition.name if definition else spell_id,
            level=definition.level if definition else default_level,
            school=definition.school if definition else "",
            source_class=class_name,
        )

    def _starting_spells(
        self,
        rules: ClassRules,
        subclass: str | None,
        cantrips: list[str],
        spells: list[str],
    ) -> list[Spell]:
        """Validate and build the level-1 cantrips and spells."""
        for label, picked, allowed in (
            ("cantrip", cantrips, cantrips_known(rules, 1, subclass)),
            ("spell", spells, spells_known(rules, 1, subclass)),
        ):
            if not picked:
                continue
            if len(set(picked)) != len(picked):
                raise CharacterBuilderError(f"Duplicate {label} selected")
            if len(picked) != allowed:
                raise CharacterBuilderError(
                    f"{rules.name} starts with {allowed} {label}(s) (got {len(picked)})"
                )

        known = [self._spell(spell_id, 0, rules.name) for spell_id in cantrips]
        known += [self._spell(spell_id, 1, rules.name) for spell_id in spells]
        return known


__all__ = [
    "STANDARD_ARRAY",
    "POINT_BUY_COSTS",
    "POINT_BUY_BUDGET",
    "CharacterBuilderError",
    "CharacterBuilder",
]
