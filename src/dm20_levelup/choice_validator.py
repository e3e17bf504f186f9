"""
Choice validator.

``validate_step`` returns the list of problems with a step's staged value;
an empty list means the step is complete. Validators never raise, and an
invalid step simply keeps the wizard where it is. ``require_valid_step`` is
the one raising entry point.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from .choices import (
    AsiChoice,
    ClassSelectChoice,
    FeatureChoice,
    HitPointsChoice,
    InvocationsChoice,
    MysticArcanumChoice,
    SpellsChoice,
    SubclassChoice,
    VALUE_TYPE_BY_KIND,
    merge_increases,
)
from .errors import ChoiceValidationError
from .models import ALL_ABILITIES, MAX_ABILITY_SCORE
from .rulebooks.catalog import SKILLS, get_invocation
from .rulebooks.multiclass import can_add_class
from .rulebooks.predicates import invocation_prerequisites_met
from .session import (
    effective_ability_scores,
    effective_cantrips,
    effective_invocations,
    effective_pact_boon,
    effective_skill_proficiencies,
)
from .step_planner import Step, StepKind

if TYPE_CHECKING:
    from .session import LevelUpSession


NO_SELECTION = "No selection made"


def _exact_count(values: tuple[str, ...] | list[str], count: int, what: str) -> list[str]:
    issues = []
    if len(values) != count:
        issues.append(f"Select exactly {count} {what} (selected {len(values)})")
    if len(set(values)) != len(values):
        issues.append(f"Duplicate {what} selected")
    return issues


def _staged_elsewhere(session: LevelUpSession, step: Step) -> set[str]:
    """Values staged at other steps of the same kind."""
    values: set[str] = set()
    for _, value in session.staged_of_kind(step.kind, exclude=step.key):
        if isinstance(value, FeatureChoice):
            values.update(value.values)
        elif isinstance(value, SpellsChoice):
            values.update(value.spell_ids)
    return values


# ---------------------------------------------------------------------------
# Per-kind validators: (step, value, session) -> issues
# ---------------------------------------------------------------------------

def _validate_class_select(step: Step, value: ClassSelectChoice, session: LevelUpSession) -> list[str]:
    if session.snapshot.get_class(value.class_name) is not None:
        return []
    check = can_add_class(session.snapshot, value.class_name, policy=session.leave_policy)
    return [] if check.eligible else [check.reason or f"Cannot add {value.class_name}"]


def _validate_hit_points(step: Step, value: HitPointsChoice, session: LevelUpSession) -> list[str]:
    if value.method == "average":
        return []
    hit_die = session.rules.hit_die
    if value.roll is None:
        return ["Enter the hit die roll or take the average"]
    if not 1 <= value.roll <= hit_die:
        return [f"Roll must be between 1 and {hit_die}"]
    return []


def _validate_multiclass_skill(step: Step, value: FeatureChoice, session: LevelUpSession) -> list[str]:
    issues = _exact_count(value.values, step.count, "skill(s)")
    allowed = step.options or tuple(SKILLS)
    held = {s.lower() for s in session.snapshot.skill_proficiencies}
    for skill in value.values:
        if skill not in allowed:
            issues.append(f"'{skill}' is not an available skill")
        elif skill.lower() in held:
            issues.append(f"Already proficient in {skill}")
    return issues


def _validate_subclass(step: Step, value: SubclassChoice, session: LevelUpSession) -> list[str]:
    if value.subclass not in session.rules.subclasses:
        return [f"'{value.subclass}' is not a {session.rules.name} subclass"]
    return []


def _validate_spells(step: Step, value: SpellsChoice, session: LevelUpSession) -> list[str]:
    what = "cantrip(s)" if step.kind == StepKind.CANTRIPS else "spell(s)"
    issues = _exact_count(value.spell_ids, step.count, what)
    options = session.options_for(step.key)
    known = session.snapshot.known_spell_ids()
    elsewhere = _staged_elsewhere(session, step)
    if step.kind != StepKind.CANTRIPS:
        # a cantrip and a spell step never share ids; magical secrets and spells may
        for kind in (StepKind.SPELLS, StepKind.MAGICAL_SECRETS):
            if kind != step.kind:
                for _, other in session.staged_of_kind(kind):
                    if isinstance(other, SpellsChoice):
                        elsewhere.update(other.spell_ids)
    for spell_id in value.spell_ids:
        spell = options.spell(spell_id)
        if spell is None:
            issues.append(f"'{spell_id}' is not an available option")
            continue
        if step.kind == StepKind.CANTRIPS and spell.level != 0:
            issues.append(f"{spell.name} is not a cantrip")
        elif step.kind == StepKind.SPELLS and not 1 <= spell.level <= step.max_spell_level:
            issues.append(f"{spell.name} must be between level 1 and {step.max_spell_level}")
        elif step.kind == StepKind.MAGICAL_SECRETS and spell.level > step.max_spell_level:
            issues.append(f"{spell.name} is above level {step.max_spell_level}")
        if spell_id in known:
            issues.append(f"{spell.name} is already known")
        elif spell_id in elsewhere:
            issues.append(f"{spell.name} is already selected in another step")
    return issues


def _held_feature_values(step: Step, session: LevelUpSession) -> set[str]:
    character = session.snapshot
    if step.kind == StepKind.FIGHTING_STYLE:
        return set(character.fighting_styles)
    if step.kind == StepKind.METAMAGIC:
        return set(character.metamagic)
    if step.kind == StepKind.FAVORED_ENEMY:
        return set(character.favored_enemies)
    if step.kind == StepKind.FAVORED_TERRAIN:
        return set(character.favored_terrains)
    if step.kind == StepKind.PACT_BOON:
        return {character.pact_boon} if character.pact_boon else set()
    return set()


def _validate_option_pick(step: Step, value: FeatureChoice, session: LevelUpSession) -> list[str]:
    """Fighting style, metamagic, favored enemy/terrain and pact boon picks."""
    label = step.kind.value.replace("-", " ")
    issues = _exact_count(value.values, step.count, label)
    held = _held_feature_values(step, session) | _staged_elsewhere(session, step)
    for option in value.values:
        if step.options and option not in step.options:
            issues.append(f"'{option}' is not an available {label}")
        elif option in held:
            issues.append(f"'{option}' is already chosen")
    return issues


def _validate_expertise(step: Step, value: FeatureChoice, session: LevelUpSession) -> list[str]:
    issues = _exact_count(value.values, step.count, "skill(s)")
    proficient = {s.lower() for s in effective_skill_proficiencies(session)}
    expertise = {s.lower() for s in session.snapshot.skill_expertise}
    expertise |= {s.lower() for s in _staged_elsewhere(session, step)}
    for skill in value.values:
        if skill.lower() not in proficient:
            issues.append(f"Not proficient in {skill}")
        elif skill.lower() in expertise:
            issues.append(f"Already have expertise in {skill}")
    return issues


def _validate_invocations(step: Step, value: InvocationsChoice, session: LevelUpSession) -> list[str]:
    issues = []
    held = effective_invocations(session, before=step.key)
    if len(value.removed) > step.replace_count:
        issues.append(f"At most {step.replace_count} invocation(s) can be replaced")
    for invocation_id in value.removed:
        if invocation_id not in held:
            issues.append(f"'{invocation_id}' is not a known invocation")

    issues += _exact_count(value.added, step.count + len(value.removed), "invocation(s)")
    pact_boon = effective_pact_boon(session)
    cantrips = effective_cantrips(session)
    for invocation_id in value.added:
        invocation = get_invocation(invocation_id)
        if invocation is None:
            issues.append(f"Unknown invocation '{invocation_id}'")
        elif invocation_id in held:
            issues.append(f"{invocation.name} is already known")
        elif not invocation_prerequisites_met(invocation, step.class_level, pact_boon, cantrips):
            issues.append(f"Prerequisites not met for {invocation.name}")
    return issues


def _validate_mystic_arcanum(step: Step, value: MysticArcanumChoice, session: LevelUpSession) -> list[str]:
    spell = session.options_for(step.key).spell(value.spell_id)
    if spell is None:
        return [f"'{value.spell_id}' is not an available option"]
    if spell.level != step.spell_level:
        return [f"Mystic Arcanum at this level must be a level {step.spell_level} spell"]
    if value.spell_id in session.snapshot.mystic_arcanum.values():
        return [f"{spell.name} is already a Mystic Arcanum"]
    return []


def _validate_asi(step: Step, value: AsiChoice, session: LevelUpSession) -> list[str]:
    if value.feat_id and value.increases:
        return ["Choose either ability increases or a feat, not both"]

    if value.feat_id:
        feat = session.options_for(step.key).feat(value.feat_id)
        if feat is None:
            return [f"'{value.feat_id}' is not an eligible feat"]
        taken = session.snapshot.feat_ids()
        for other_step, other in session.staged_of_kind(StepKind.ASI_OR_FEAT, exclude=step.key):
            if isinstance(other, AsiChoice) and other.feat_id:
                taken.add(other.feat_id)
        if feat.id in taken and not feat.repeatable:
            return [f"{feat.name} is already taken"]
        return []

    issues = []
    scores = effective_ability_scores(session, before=step.key)
    total = 0
    for name, amount in merge_increases(value.increases).items():
        if name not in ALL_ABILITIES:
            issues.append(f"Unknown ability '{name}'")
            continue
        if amount not in (1, 2):
            issues.append(f"Increase for {name} must be 1 or 2")
        total += amount
        if scores[name] + amount > MAX_ABILITY_SCORE:
            issues.append(f"{name.capitalize()} cannot exceed {MAX_ABILITY_SCORE}")
    if total != 2:
        issues.append(f"Ability increases must total exactly 2 (got {total})")
    return issues


def _always_valid(step: Step, value: Any, session: LevelUpSession) -> list[str]:
    return []


_VALIDATORS: dict[StepKind, Callable[[Step, Any, "LevelUpSession"], list[str]]] = {
    StepKind.CLASS_SELECT: _validate_class_select,
    StepKind.HP_ROLL: _validate_hit_points,
    StepKind.MULTICLASS_SKILL: _validate_multiclass_skill,
    StepKind.SUBCLASS: _validate_subclass,
    StepKind.CANTRIPS: _validate_spells,
    StepKind.SPELLS: _validate_spells,
    StepKind.FIGHTING_STYLE: _validate_option_pick,
    StepKind.EXPERTISE: _validate_expertise,
    StepKind.METAMAGIC: _validate_option_pick,
    StepKind.MAGICAL_SECRETS: _validate_spells,
    StepKind.FAVORED_ENEMY: _validate_option_pick,
    StepKind.FAVORED_TERRAIN: _validate_option_pick,
    StepKind.PACT_BOON: _validate_option_pick,
    StepKind.INVOCATIONS: _validate_invocations,
    StepKind.MYSTIC_ARCANUM: _validate_mystic_arcanum,
    StepKind.ASI_OR_FEAT: _validate_asi,
    StepKind.FEATURES: _always_valid,
    StepKind.REVIEW: _always_valid,
}

_missing = set(StepKind) - set(_VALIDATORS)
if _missing:
    raise RuntimeError(f"No validator for step kinds: {sorted(k.value for k in _missing)}")

# Steps that pass without a staged value
_OPTIONAL_VALUE_KINDS = frozenset({StepKind.FEATURES, StepKind.REVIEW})


def validate_step(step: Step, value: Any, session: LevelUpSession) -> list[str]:
    """Problems with ``value`` staged for ``step``; empty when complete."""
    if step.key in session.step_errors:
        return [session.step_errors[step.key]]
    if value is None:
        return [] if step.kind in _OPTIONAL_VALUE_KINDS else [NO_SELECTION]
    if not isinstance(value, VALUE_TYPE_BY_KIND[step.kind]):
        return [f"Wrong value type for step '{step.key}'"]
    return _VALIDATORS[step.kind](step, value, session)


def step_issues(session: LevelUpSession, step_key: str | None = None) -> list[str]:
    step = session.current_step if step_key is None else session.step(step_key)
    if step is None:
        return [f"Unknown step '{step_key}'"]
    return validate_step(step, session.value(step.key), session)


def can_advance(session: LevelUpSession) -> bool:
    """Whether the step under the cursor is complete."""
    return not step_issues(session)


def incomplete_steps(session: LevelUpSession) -> dict[str, list[str]]:
    """Issues for every step that does not validate, keyed by step key."""
    result = {}
    for step in session.steps:
        issues = validate_step(step, session.value(step.key), session)
        if issues:
            result[step.key] = issues
    return result


def can_commit(session: LevelUpSession) -> bool:
    return not incomplete_steps(session)


def require_valid_step(session: LevelUpSession, step_key: str | None = None) -> None:
    """Raise ``ChoiceValidationError`` when the step does not validate."""
    key = step_key or session.current_step.key
    issues = step_issues(session, key)
    if issues:
        raise ChoiceValidationError(key, issues)


__all__ = [
    "NO_SELECTION",
    "validate_step",
    "step_issues",
    "can_advance",
    "incomplete_steps",
    "can_commit",
    "require_valid_step",
]
