"""
Step planner for level transitions.

A plan is a pure function of (character, class, level range, held choices):
each character level in the range is expanded through the declared
``LEVEL_STEP_TABLE`` in order, and a single review step closes the plan.
Replanning with the same inputs always yields the same steps, so moving back
and forth through a wizard never reorders it.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable

from .models import Character
from .rulebooks.catalog import METAMAGIC_OPTIONS, get_class_rules, option_ids
from .rulebooks.models import ClassRules, FeatureChoiceType, SpellcastingType
from .rulebooks import predicates


class StepKind(str, Enum):
    """Closed set of wizard steps, in their single-level order."""
    CLASS_SELECT = "class-select"
    HP_ROLL = "hp-roll"
    MULTICLASS_SKILL = "multiclass-skill"
    SUBCLASS = "subclass"
    CANTRIPS = "cantrips"
    SPELLS = "spells"
    FIGHTING_STYLE = "fighting-style"
    EXPERTISE = "expertise"
    METAMAGIC = "metamagic"
    MAGICAL_SECRETS = "magical-secrets"
    FAVORED_ENEMY = "favored-enemy"
    FAVORED_TERRAIN = "favored-terrain"
    PACT_BOON = "pact-boon"
    INVOCATIONS = "invocations"
    MYSTIC_ARCANUM = "mystic-arcanum"
    ASI_OR_FEAT = "asi-or-feat"
    FEATURES = "features"
    REVIEW = "review"


# Step kinds driven by a FeatureChoiceSpec of the matching type
FEATURE_CHOICE_KINDS: dict[StepKind, FeatureChoiceType] = {
    StepKind.FIGHTING_STYLE: FeatureChoiceType.FIGHTING_STYLE,
    StepKind.EXPERTISE: FeatureChoiceType.EXPERTISE,
    StepKind.METAMAGIC: FeatureChoiceType.METAMAGIC,
    StepKind.MAGICAL_SECRETS: FeatureChoiceType.MAGICAL_SECRETS,
    StepKind.FAVORED_ENEMY: FeatureChoiceType.FAVORED_ENEMY,
    StepKind.FAVORED_TERRAIN: FeatureChoiceType.FAVORED_TERRAIN,
}

# Steps whose options come from the async rules catalog
CATALOG_OPTION_KINDS = frozenset({
    StepKind.CANTRIPS,
    StepKind.SPELLS,
    StepKind.MAGICAL_SECRETS,
    StepKind.MYSTIC_ARCANUM,
    StepKind.ASI_OR_FEAT,
})


@dataclass(frozen=True)
class Step:
    """One planned wizard step.

    ``level`` is the character level the step belongs to; ``class_level`` is
    the level the levelled class reaches at that point.
    """
    kind: StepKind
    level: int
    class_name: str
    class_level: int = 0
    count: int = 0
    options: tuple[str, ...] = ()
    replace_count: int = 0
    spell_level: int | None = None
    max_spell_level: int = 0
    features: tuple[str, ...] = ()

    @property
    def key(self) -> str:
        return f"{self.level}:{self.kind.value}"


@dataclass(frozen=True)
class HeldChoices:
    """Choices the planner treats as already made.

    Built from the stored character. A staged subclass is carried separately
    so third-caster spell steps appear without removing the subclass step.
    """
    subclass: str | None = None
    pact_boon: str | None = None
    mystic_arcanum: frozenset[int] = frozenset()
    staged_subclass: str | None = None  # feeds spell predicates only; the subclass step stays planned

    @classmethod
    def from_character(cls, character: Character, class_name: str) -> HeldChoices:
        entry = character.get_class(class_name)
        return cls(
            subclass=entry.subclass if entry else None,
            pact_boon=character.pact_boon,
            mystic_arcanum=frozenset(character.mystic_arcanum),
        )


@dataclass(frozen=True)
class LevelContext:
    """Everything a step-table entry needs to decide about one character level."""
    rules: ClassRules
    character_level: int
    class_level_from: int
    class_level_to: int
    new_class: bool
    offer_class_select: bool
    held: HeldChoices
    subclass_planned: bool = False
    pact_boon_planned: bool = False

    @property
    def subclass(self) -> str | None:
        return self.held.staged_subclass or self.held.subclass

    def step(self, kind: StepKind, **kwargs) -> Step:
        return Step(
            kind=kind,
            level=self.character_level,
            class_name=self.rules.name,
            class_level=self.class_level_to,
            **kwargs,
        )


def _class_select(ctx: LevelContext) -> Step | None:
    if not ctx.offer_class_select:
        return None
    return ctx.step(StepKind.CLASS_SELECT, count=1)


def _hp_roll(ctx: LevelContext) -> Step | None:
    if ctx.character_level < 2:
        return None
    return ctx.step(StepKind.HP_ROLL, count=1)


def _multiclass_skill(ctx: LevelContext) -> Step | None:
    grant = ctx.rules.multiclass_grant
    if not (ctx.new_class and ctx.class_level_to == 1 and grant.skill_count > 0):
        return None
    return ctx.step(StepKind.MULTICLASS_SKILL, count=grant.skill_count, options=grant.skill_options)


def _subclass(ctx: LevelContext) -> Step | None:
    if ctx.subclass_planned or not predicates.needs_subclass(ctx.rules, ctx.class_level_to, ctx.held.subclass):
        return None
    return ctx.step(StepKind.SUBCLASS, count=1, options=ctx.rules.subclasses)


def _cantrips(ctx: LevelContext) -> Step | None:
    gain = predicates.cantrip_gain(ctx.rules, ctx.class_level_from, ctx.class_level_to, ctx.subclass)
    if gain <= 0:
        return None
    return ctx.step(StepKind.CANTRIPS, count=gain, spell_level=0)


def _spells(ctx: LevelContext) -> Step | None:
    gain = predicates.spells_known_gain(ctx.rules, ctx.class_level_from, ctx.class_level_to, ctx.subclass)
    if gain <= 0:
        return None
    return ctx.step(
        StepKind.SPELLS,
        count=gain,
        max_spell_level=predicates.max_spell_level(ctx.rules, ctx.class_level_to, ctx.subclass),
    )


def _feature_choice(kind: StepKind) -> Callable[[LevelContext], Step | None]:
    choice_type = FEATURE_CHOICE_KINDS[kind]

    def plan(ctx: LevelContext) -> Step | None:
        specs = [s for s in ctx.rules.feature_choices_at(ctx.class_level_to) if s.type == choice_type]
        count = sum(s.count for s in specs)
        if count <= 0:
            return None
        options: tuple[str, ...] = ()
        for spec in specs:
            options += tuple(o for o in spec.options if o not in options)
        if kind == StepKind.METAMAGIC and not options:
            options = option_ids(METAMAGIC_OPTIONS)
        max_level = 0
        if kind == StepKind.MAGICAL_SECRETS:
            max_level = predicates.max_spell_level(ctx.rules, ctx.class_level_to, ctx.subclass)
        return ctx.step(kind, count=count, options=options, max_spell_level=max_level)

    plan.__name__ = f"_{kind.name.lower()}"
    return plan


def _pact_boon(ctx: LevelContext) -> Step | None:
    if ctx.pact_boon_planned or not predicates.needs_pact_boon(ctx.rules, ctx.class_level_to, ctx.held.pact_boon):
        return None
    specs = [s for s in ctx.rules.feature_choices_at(3) if s.type == FeatureChoiceType.PACT_BOON]
    options = specs[0].options if specs else ()
    return ctx.step(StepKind.PACT_BOON, count=1, options=options)


def _invocations(ctx: LevelContext) -> Step | None:
    if ctx.rules.spellcasting_type != SpellcastingType.PACT:
        return None
    gain = predicates.invocations_to_gain(ctx.class_level_from, ctx.class_level_to)
    if gain <= 0:
        return None
    return ctx.step(
        StepKind.INVOCATIONS,
        count=gain,
        replace_count=predicates.invocation_replace_count(ctx.rules, ctx.class_level_from, ctx.class_level_to),
    )


def _mystic_arcanum(ctx: LevelContext) -> Step | None:
    if not predicates.needs_mystic_arcanum(ctx.rules, ctx.class_level_to, dict.fromkeys(ctx.held.mystic_arcanum, "")):
        return None
    return ctx.step(
        StepKind.MYSTIC_ARCANUM,
        count=1,
        spell_level=predicates.mystic_arcanum_level(ctx.class_level_to),
    )


def _asi_or_feat(ctx: LevelContext) -> Step | None:
    if not predicates.is_asi_level(ctx.rules, ctx.class_level_to):
        return None
    return ctx.step(StepKind.ASI_OR_FEAT, count=2)


def _features(ctx: LevelContext) -> Step | None:
    granted = predicates.granted_features(ctx.rules, ctx.class_level_to)
    if not granted:
        return None
    return ctx.step(StepKind.FEATURES, features=granted)


# Evaluated top to bottom for every character level in a plan
LEVEL_STEP_TABLE: tuple[tuple[StepKind, Callable[[LevelContext], Step | None]], ...] = (
    (StepKind.CLASS_SELECT, _class_select),
    (StepKind.HP_ROLL, _hp_roll),
    (StepKind.MULTICLASS_SKILL, _multiclass_skill),
    (StepKind.SUBCLASS, _subclass),
    (StepKind.CANTRIPS, _cantrips),
    (StepKind.SPELLS, _spells),
    (StepKind.FIGHTING_STYLE, _feature_choice(StepKind.FIGHTING_STYLE)),
    (StepKind.EXPERTISE, _feature_choice(StepKind.EXPERTISE)),
    (StepKind.METAMAGIC, _feature_choice(StepKind.METAMAGIC)),
    (StepKind.MAGICAL_SECRETS, _feature_choice(StepKind.MAGICAL_SECRETS)),
    (StepKind.FAVORED_ENEMY, _feature_choice(StepKind.FAVORED_ENEMY)),
    (StepKind.FAVORED_TERRAIN, _feature_choice(StepKind.FAVORED_TERRAIN)),
    (StepKind.PACT_BOON, _pact_boon),
    (StepKind.INVOCATIONS, _invocations),
    (StepKind.MYSTIC_ARCANUM, _mystic_arcanum),
    (StepKind.ASI_OR_FEAT, _asi_or_feat),
    (StepKind.FEATURES, _features),
)

# Level-1 steps kept by a creation plan
CREATION_LEVEL_ONE_KINDS = frozenset(FEATURE_CHOICE_KINDS)


def plan_level(ctx: LevelContext, kinds: frozenset[StepKind] | None = None) -> tuple[Step, ...]:
    """Expand one character level through the step table."""
    steps = []
    for kind, plan in LEVEL_STEP_TABLE:
        if kinds is not None and kind not in kinds:
            continue
        step = plan(ctx)
        if step is not None:
            steps.append(step)
    return tuple(steps)


def _review(rules: ClassRules, to_level: int, class_level: int) -> Step:
    return Step(kind=StepKind.REVIEW, level=to_level, class_name=rules.name, class_level=class_level)


def _resolve(
    character: Character,
    class_name: str | None,
    rules: ClassRules | None,
) -> tuple[ClassRules | None, int, bool]:
    name = class_name or character.primary_class.name
    rules = rules or get_class_rules(name)
    entry = character.get_class(name)
    return rules, (entry.level if entry else 0), entry is None


def _expand_range(
    rules: ClassRules,
    character_levels: range,
    class_level_start: int,
    new_class: bool,
    held: HeldChoices,
    offer_class_select: bool,
    level_one_kinds: frozenset[StepKind] | None = None,
) -> list[Step]:
    steps: list[Step] = []
    subclass_planned = False
    pact_boon_planned = False
    arcanum = set(held.mystic_arcanum)
    for offset, character_level in enumerate(character_levels):
        class_level_to = class_level_start + offset + 1
        ctx = LevelContext(
            rules=rules,
            character_level=character_level,
            class_level_from=class_level_to - 1,
            class_level_to=class_level_to,
            new_class=new_class and offset == 0,
            offer_class_select=offer_class_select and offset == 0,
            held=replace(held, mystic_arcanum=frozenset(arcanum)),
            subclass_planned=subclass_planned,
            pact_boon_planned=pact_boon_planned,
        )
        kinds = level_one_kinds if character_level == 1 else None
        level_steps = plan_level(ctx, kinds)
        for step in level_steps:
            if step.kind == StepKind.SUBCLASS:
                subclass_planned = True
            elif step.kind == StepKind.PACT_BOON:
                pact_boon_planned = True
            elif step.kind == StepKind.MYSTIC_ARCANUM and step.spell_level is not None:
                arcanum.add(step.spell_level)
        steps.extend(level_steps)
    return steps


def plan_steps(
    character: Character,
    from_level: int,
    to_level: int,
    class_name: str | None = None,
    held: HeldChoices | None = None,
    rules: ClassRules | None = None,
    offer_class_select: bool | None = None,
) -> tuple[Step, ...]:
    """Plan the steps taking ``character`` from ``from_level`` to ``to_level``.

    Args:
        character: The character as currently stored
        from_level: Current total character level
        to_level: Target total character level
        class_name: Class to level (defaults to the primary class)
        held: Held choices overriding the character's own (e.g. a staged subclass)
        rules: Class rules to use instead of the static catalog
        offer_class_select: Force the class-select step on or off (defaults
            to on for multiclassed characters and new classes)

    Returns:
        Ordered, immutable step sequence ending with a review step. An unknown
        class yields only the review step.
    """
    rules, class_level, new_class = _resolve(character, class_name, rules)
    if rules is None:
        return (Step(kind=StepKind.REVIEW, level=to_level, class_name=class_name or ""),)
    if held is None:
        held = HeldChoices.from_character(character, rules.name)

    if offer_class_select is None:
        offer_class_select = character.is_multiclass or new_class
    steps = _expand_range(
        rules,
        range(from_level + 1, to_level + 1),
        class_level,
        new_class,
        held,
        offer_class_select,
    )
    steps.append(_review(rules, to_level, class_level + max(0, to_level - from_level)))
    return tuple(steps)


def plan_creation_steps(
    character: Character,
    to_level: int,
    class_name: str | None = None,
    held: HeldChoices | None = None,
    rules: ClassRules | None = None,
) -> tuple[Step, ...]:
    """Plan the steps for creating a character directly at ``to_level``.

    Level 1 contributes only its actionable (non-subclass) feature choices;
    hit points, spells and the rest of level 1 belong to the character
    builder. Levels 2..N expand as in ``plan_steps``.
    """
    name = class_name or character.primary_class.name
    rules = rules or get_class_rules(name)
    if rules is None:
        return (Step(kind=StepKind.REVIEW, level=to_level, class_name=name),)
    if held is None:
        held = HeldChoices.from_character(character, rules.name)

    steps = _expand_range(
        rules,
        range(1, to_level + 1),
        0,
        False,
        held,
        offer_class_select=False,
        level_one_kinds=CREATION_LEVEL_ONE_KINDS,
    )
    steps.append(_review(rules, to_level, to_level))
    return tuple(steps)


__all__ = [
    "StepKind",
    "FEATURE_CHOICE_KINDS",
    "CATALOG_OPTION_KINDS",
    "Step",
    "HeldChoices",
    "LevelContext",
    "LEVEL_STEP_TABLE",
    "plan_level",
    "plan_steps",
    "plan_creation_steps",
]
