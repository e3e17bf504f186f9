"""
Multiclass eligibility.

Ability-score prerequisites for entering a class, the (separately
overridable) rule for continuing to advance the current class, and the
proficiencies gained by multiclassing into a class.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum

from ..errors import PrerequisiteError
from ..models import ABILITY_ABBREV, MAX_CHARACTER_LEVEL, Character
from .catalog import get_class_rules
from .models import ClassRules, MulticlassGrant


logger = logging.getLogger("dm20-levelup")

_ABBREV_BY_ABILITY = {full: abbrev for abbrev, full in ABILITY_ABBREV.items()}


class LeaveClassPolicy(str, Enum):
    """How ``can_leave_class`` failures affect adding a new class.

    ENFORCE rejects the new class, WARN allows it with a warning, IGNORE
    skips the check.
    """
    ENFORCE = "enforce"
    WARN = "warn"
    IGNORE = "ignore"


@dataclass
class MulticlassCheck:
    """Outcome of a multiclass eligibility check."""
    eligible: bool
    reason: str | None = None
    missing: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def prerequisite_labels(rules: ClassRules) -> list[str]:
    """Human-readable prerequisite groups, e.g. ``["STR 13 or DEX 13"]``."""
    return [
        " or ".join(f"{_ABBREV_BY_ABILITY.get(ability, ability.upper())} {minimum}" for ability, minimum in group)
        for group in rules.multiclass_prerequisite.any_of
    ]


def missing_prerequisites(rules: ClassRules, abilities: Mapping[str, int]) -> list[str]:
    """Labels of prerequisite groups that none of the scores satisfy."""
    missing = []
    for group, label in zip(rules.multiclass_prerequisite.any_of, prerequisite_labels(rules)):
        if not any(abilities.get(ability, 0) >= minimum for ability, minimum in group):
            missing.append(label)
    return missing


def can_leave_class(current_primary: str, abilities: Mapping[str, int]) -> MulticlassCheck:
    """Whether the character still meets its current class's own prerequisites."""
    rules = get_class_rules(current_primary)
    if rules is None:
        return MulticlassCheck(eligible=True)
    missing = missing_prerequisites(rules, abilities)
    if missing:
        return MulticlassCheck(
            eligible=False,
            reason=f"Cannot multiclass out of {rules.name}: requires {', '.join(missing)}",
            missing=missing,
        )
    return MulticlassCheck(eligible=True)


def can_add_class(
    character: Character,
    candidate: str,
    abilities: Mapping[str, int] | None = None,
    policy: LeaveClassPolicy = LeaveClassPolicy.ENFORCE,
) -> MulticlassCheck:
    """Check whether ``character`` may take its first level in ``candidate``."""
    rules = get_class_rules(candidate)
    if rules is None:
        return MulticlassCheck(eligible=False, reason=f"Unknown class: {candidate}")

    if character.get_class(rules.name) is not None:
        return MulticlassCheck(eligible=False, reason=f"Character already has levels in {rules.name}")

    if character.total_level + 1 > MAX_CHARACTER_LEVEL:
        return MulticlassCheck(
            eligible=False,
            reason=f"Total character level cannot exceed {MAX_CHARACTER_LEVEL}",
        )

    if abilities is None:
        abilities = character.ability_scores()

    missing = missing_prerequisites(rules, abilities)
    if missing:
        return MulticlassCheck(
            eligible=False,
            reason=f"Cannot multiclass into {rules.name}: requires {', '.join(missing)}",
            missing=missing,
        )

    check = MulticlassCheck(eligible=True)
    if policy != LeaveClassPolicy.IGNORE:
        leave = can_leave_class(character.primary_class.name, abilities)
        if not leave.eligible:
            if policy == LeaveClassPolicy.ENFORCE:
                return leave
            logger.warning(f"⚠️ {leave.reason}")
            check.warnings.append(leave.reason or "")
    return check


def require_can_add_class(
    character: Character,
    candidate: str,
    abilities: Mapping[str, int] | None = None,
    policy: LeaveClassPolicy = LeaveClassPolicy.ENFORCE,
) -> MulticlassCheck:
    """Like ``can_add_class`` but raises ``PrerequisiteError`` when ineligible."""
    check = can_add_class(character, candidate, abilities, policy)
    if not check.eligible:
        raise PrerequisiteError(candidate, check.missing, message=check.reason)
    return check


def multiclass_proficiencies(class_name: str) -> MulticlassGrant:
    """Proficiencies gained by multiclassing into a class (empty when unknown)."""
    rules = get_class_rules(class_name)
    if rules is None:
        return MulticlassGrant()
    return rules.multiclass_grant


__all__ = [
    "LeaveClassPolicy",
    "MulticlassCheck",
    "prerequisite_labels",
    "missing_prerequisites",
    "can_leave_class",
    "can_add_class",
    "require_can_add_class",
    "multiclass_proficiencies",
]
