"""
Level-up session state and reducers.

``LevelUpSession`` is an immutable value. Every change goes through a reducer
that returns a new session, so retreating is just moving the cursor: the
staged map is never un-mutated. Sessions live in memory only and are never
persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from shortuuid import random

from .choices import (
    AsiChoice,
    ClassSelectChoice,
    FeatureChoice,
    InvocationsChoice,
    SpellsChoice,
    SubclassChoice,
    VALUE_TYPE_BY_KIND,
    merge_increases,
)
from .errors import SessionStateError
from .models import Character
from .rulebooks.catalog import get_class_rules
from .rulebooks.models import ClassRules, FeatDefinition, SpellDefinition
from .rulebooks.multiclass import LeaveClassPolicy
from .step_planner import HeldChoices, Step, StepKind, plan_creation_steps, plan_steps


@dataclass(frozen=True)
class StepOptions:
    """Catalog options loaded for a step at session start."""
    spells: tuple[SpellDefinition, ...] = ()
    feats: tuple[FeatDefinition, ...] = ()

    @property
    def spell_ids(self) -> tuple[str, ...]:
        return tuple(s.id for s in self.spells)

    @property
    def feat_ids(self) -> tuple[str, ...]:
        return tuple(f.id for f in self.feats)

    def spell(self, spell_id: str) -> SpellDefinition | None:
        for spell in self.spells:
            if spell.id == spell_id:
                return spell
        return None

    def feat(self, feat_id: str) -> FeatDefinition | None:
        for feat in self.feats:
            if feat.id == feat_id:
                return feat
        return None


@dataclass(frozen=True)
class LevelUpSession:
    """One wizard's transient state, from start to commit or cancel."""
    character_id: str
    from_level: int
    to_level: int
    class_to_level: str
    class_level_from: int
    new_class: bool
    rules: ClassRules
    snapshot: Character
    steps: tuple[Step, ...]
    cursor: int = 0
    staged: dict[str, Any] = field(default_factory=dict)
    options: dict[str, StepOptions] = field(default_factory=dict)
    step_errors: dict[str, str] = field(default_factory=dict)
    creation: bool = False
    offers_class_select: bool = False
    leave_policy: LeaveClassPolicy = LeaveClassPolicy.ENFORCE
    session_id: str = field(default_factory=lambda: random(length=8))

    @property
    def current_step(self) -> Step:
        return self.steps[self.cursor]

    @property
    def is_last_step(self) -> bool:
        return self.cursor >= len(self.steps) - 1

    @property
    def levels_gained(self) -> int:
        return self.to_level - self.from_level

    def step(self, step_key: str) -> Step | None:
        for step in self.steps:
            if step.key == step_key:
                return step
        return None

    def index_of(self, step_key: str) -> int:
        for index, step in enumerate(self.steps):
            if step.key == step_key:
                return index
        raise SessionStateError(f"Unknown step '{step_key}'")

    def value(self, step_key: str) -> Any:
        return self.staged.get(step_key)

    def steps_of_kind(self, kind: StepKind) -> list[Step]:
        return [s for s in self.steps if s.kind == kind]

    def staged_of_kind(self, kind: StepKind, exclude: str | None = None) -> list[tuple[Step, Any]]:
        """Staged (step, value) pairs of a kind, in plan order."""
        return [
            (s, self.staged[s.key]) for s in self.steps
            if s.kind == kind and s.key in self.staged and s.key != exclude
        ]

    def options_for(self, step_key: str) -> StepOptions:
        return self.options.get(step_key, StepOptions())


# ---------------------------------------------------------------------------
# Effective state: stored character plus staged choices
# ---------------------------------------------------------------------------

def effective_subclass(session: LevelUpSession) -> str | None:
    for _, value in session.staged_of_kind(StepKind.SUBCLASS):
        if isinstance(value, SubclassChoice):
            return value.subclass
    entry = session.snapshot.get_class(session.class_to_level)
    return entry.subclass if entry else None


def effective_pact_boon(session: LevelUpSession) -> str | None:
    for _, value in session.staged_of_kind(StepKind.PACT_BOON):
        if isinstance(value, FeatureChoice) and value.values:
            return value.values[0]
    return session.snapshot.pact_boon


def effective_cantrips(session: LevelUpSession) -> set[str]:
    known = {s.id for s in session.snapshot.spells_known if s.level == 0}
    for _, value in session.staged_of_kind(StepKind.CANTRIPS):
        if isinstance(value, SpellsChoice):
            known.update(value.spell_ids)
    return known


def effective_skill_proficiencies(session: LevelUpSession) -> set[str]:
    skills = set(session.snapshot.skill_proficiencies)
    for _, value in session.staged_of_kind(StepKind.MULTICLASS_SKILL):
        if isinstance(value, FeatureChoice):
            skills.update(value.values)
    return skills


def effective_invocations(session: LevelUpSession, before: str | None = None) -> set[str]:
    """Invocations held before the step ``before`` (all staged ones when None)."""
    held = set(session.snapshot.invocations)
    for step, value in session.staged_of_kind(StepKind.INVOCATIONS):
        if step.key == before:
            break
        if isinstance(value, InvocationsChoice):
            held.difference_update(value.removed)
            held.update(value.added)
    return held


def effective_ability_scores(session: LevelUpSession, before: str | None = None) -> dict[str, int]:
    """Ability scores after staged increases at steps planned before ``before``."""
    scores = session.snapshot.ability_scores()
    for step, value in session.staged_of_kind(StepKind.ASI_OR_FEAT):
        if step.key == before:
            break
        if isinstance(value, AsiChoice) and not value.feat_id:
            for name, amount in merge_increases(value.increases).items():
                if name in scores:
                    scores[name] += amount
    return scores


def staged_class_name(session: LevelUpSession) -> str:
    for _, value in session.staged_of_kind(StepKind.CLASS_SELECT):
        if isinstance(value, ClassSelectChoice):
            return value.class_name
    return session.class_to_level


# ---------------------------------------------------------------------------
# Construction and reducers
# ---------------------------------------------------------------------------

def _plan(
    character: Character,
    from_level: int,
    to_level: int,
    class_name: str,
    rules: ClassRules,
    creation: bool,
    offers_class_select: bool,
    held: HeldChoices | None = None,
) -> tuple[Step, ...]:
    if creation:
        return plan_creation_steps(character, to_level, class_name, held=held, rules=rules)
    return plan_steps(
        character, from_level, to_level, class_name,
        held=held, rules=rules, offer_class_select=offers_class_select,
    )


def new_session(
    character: Character,
    to_level: int,
    class_name: str | None = None,
    rules: ClassRules | None = None,
    creation: bool = False,
    leave_policy: LeaveClassPolicy = LeaveClassPolicy.ENFORCE,
) -> LevelUpSession:
    """Plan a fresh session for ``character``.

    Raises:
        SessionStateError: If the level range is empty or above 20
    """
    from_level = character.total_level
    # A creation session may stay at level 1 to make its level-1 feature choices
    if to_level < from_level or (to_level == from_level and not (creation and to_level == 1)):
        raise SessionStateError(
            f"Target level {to_level} must be above current level {from_level}"
        )
    if to_level > 20:
        raise SessionStateError("Character level cannot exceed 20")

    name = class_name or character.primary_class.name
    rules = rules or get_class_rules(name)
    if rules is None:
        raise SessionStateError(f"Unknown class: {name}")
    entry = character.get_class(rules.name)
    if creation and entry is None:
        raise SessionStateError(f"Creation sessions level an existing class, not {rules.name}")
    offers_class_select = not creation and (character.is_multiclass or entry is None)
    steps = _plan(character, from_level, to_level, rules.name, rules, creation, offers_class_select)

    # The class being levelled is pre-selected
    staged: dict[str, Any] = {}
    if steps[0].kind == StepKind.CLASS_SELECT:
        staged[steps[0].key] = ClassSelectChoice(class_name=rules.name)

    return LevelUpSession(
        character_id=character.id,
        from_level=from_level,
        to_level=to_level,
        class_to_level=rules.name,
        class_level_from=entry.level if entry else 0,
        new_class=entry is None,
        rules=rules,
        snapshot=character,
        steps=steps,
        staged=staged,
        creation=creation,
        offers_class_select=offers_class_select,
        leave_policy=leave_policy,
    )


def replan(session: LevelUpSession, class_name: str | None = None, rules: ClassRules | None = None) -> LevelUpSession:
    """Recompute the plan after the levelled class or its subclass changed.

    Switching class drops every staged value except the class pick itself.
    Values staged for steps that survive a subclass change are kept.
    """
    class_changed = class_name is not None and class_name.lower() != session.class_to_level.lower()
    if class_changed:
        rules = rules or get_class_rules(class_name)
        if rules is None:
            raise SessionStateError(f"Unknown class: {class_name}")
    else:
        rules = session.rules

    entry = session.snapshot.get_class(rules.name)
    held = HeldChoices.from_character(session.snapshot, rules.name)
    staged = dict(session.staged)
    if class_changed:
        staged = {k: v for k, v in staged.items() if isinstance(v, ClassSelectChoice)}
    else:
        held = replace(held, staged_subclass=effective_subclass(session))

    steps = _plan(
        session.snapshot, session.from_level, session.to_level, rules.name, rules,
        session.creation, session.offers_class_select, held,
    )
    keys = {s.key for s in steps}
    staged = {k: v for k, v in staged.items() if k in keys}
    return replace(
        session,
        class_to_level=rules.name,
        class_level_from=entry.level if entry else 0,
        new_class=entry is None,
        rules=rules,
        steps=steps,
        cursor=min(session.cursor, len(steps) - 1),
        staged=staged,
        options={k: v for k, v in session.options.items() if k in keys and not class_changed},
        step_errors={k: v for k, v in session.step_errors.items() if k in keys and not class_changed},
    )


def stage(
    session: LevelUpSession,
    step_key: str,
    value: Any,
    rules: ClassRules | None = None,
) -> LevelUpSession:
    """Stage ``value`` for a step; replans when the class or subclass changes.

    ``rules`` are the catalog rules for a newly selected class; the static
    tables are used when omitted.

    Raises:
        SessionStateError: Unknown step key or a value of the wrong variant
    """
    step = session.step(step_key)
    if step is None:
        raise SessionStateError(f"Unknown step '{step_key}'")
    expected = VALUE_TYPE_BY_KIND[step.kind]
    if value is not None and not isinstance(value, expected):
        raise SessionStateError(
            f"Step '{step_key}' expects a '{expected.model_fields['type'].default}' value"
        )

    staged = dict(session.staged)
    if value is None:
        staged.pop(step_key, None)
    else:
        staged[step_key] = value
    updated = replace(session, staged=staged)

    if isinstance(value, ClassSelectChoice):
        return replan(updated, class_name=value.class_name, rules=rules)
    if step.kind == StepKind.SUBCLASS:
        return replan(updated)
    return updated


def advance(session: LevelUpSession) -> LevelUpSession:
    """Move forward one step when the current step validates; otherwise stay."""
    from .choice_validator import can_advance

    if session.is_last_step or not can_advance(session):
        return session
    return replace(session, cursor=session.cursor + 1)


def retreat(session: LevelUpSession) -> LevelUpSession:
    if session.cursor == 0:
        return session
    return replace(session, cursor=session.cursor - 1)


def jump_to(session: LevelUpSession, step_key: str) -> LevelUpSession:
    """Move the cursor back to an earlier step (never past an invalid one)."""
    index = session.index_of(step_key)
    if index > session.cursor:
        raise SessionStateError("Cannot jump forward past unvalidated steps")
    return replace(session, cursor=index)


def with_options(
    session: LevelUpSession,
    options: dict[str, StepOptions],
    step_errors: dict[str, str],
) -> LevelUpSession:
    return replace(session, options=dict(options), step_errors=dict(step_errors))


__all__ = [
    "StepOptions",
    "LevelUpSession",
    "effective_subclass",
    "effective_pact_boon",
    "effective_cantrips",
    "effective_skill_proficiencies",
    "effective_invocations",
    "effective_ability_scores",
    "staged_class_name",
    "new_session",
    "replan",
    "stage",
    "advance",
    "retreat",
    "jump_to",
    "with_options",
]
