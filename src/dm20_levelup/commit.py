"""
Commit engine.

``build_update`` reduces a fully staged session into the complete new
character state plus one history record per level gained. ``commit`` hands
that update to the character store as a single write: either everything is
visible afterwards or nothing is.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import BaseModel

from .choice_validator import incomplete_steps
from .choices import (
    AsiChoice,
    FeatureChoice,
    HitPointsChoice,
    InvocationsChoice,
    MysticArcanumChoice,
    SpellsChoice,
    SubclassChoice,
    dump_staged_value,
    merge_increases,
)
from .derived_stats import (
    ability_modifier,
    apply_derived_stats,
    hit_point_gain,
    retroactive_con_adjustment,
)
from .errors import CommitError, LevelUpError
from .models import (
    AbilityScore,
    Character,
    CharacterClass,
    Feat,
    Feature,
    LevelHistoryRecord,
    Spell,
)
from .rulebooks.models import ClassRules
from .rulebooks.multiclass import multiclass_proficiencies
from .rulebooks.predicates import granted_features
from .session import LevelUpSession, staged_class_name
from .step_planner import Step, StepKind


logger = logging.getLogger("dm20-levelup")


class CharacterUpdate(BaseModel):
    """Batched write description consumed atomically by the character store."""
    character_id: str
    base_version: int
    character: Character
    history: list[LevelHistoryRecord]


@dataclass
class CommitResult:
    """Outcome of ``commit``. The session survives a failed commit."""
    success: bool
    retryable: bool = False
    error: str | None = None
    character: Character | None = None
    history: list[LevelHistoryRecord] = field(default_factory=list)


def _add_unique(target: list[str], values) -> None:
    for value in values:
        if value not in target:
            target.append(value)


def _apply_spells(character: Character, session: LevelUpSession, step: Step, value: SpellsChoice, source_class: str) -> None:
    options = session.options_for(step.key)
    for spell_id in value.spell_ids:
        spell = options.spell(spell_id)
        character.spells_known.append(Spell(
            id=spell_id,
            name=spell.name if spell else spell_id,
            level=spell.level if spell else (0 if step.kind == StepKind.CANTRIPS else 1),
            school=spell.school if spell else "",
            source_class=source_class,
        ))


def _apply_step(
    character: Character,
    entry: CharacterClass,
    session: LevelUpSession,
    step: Step,
    value: Any,
) -> None:
    """Apply one staged value to the working character (HP and ASI are handled per level)."""
    kind = step.kind
    if isinstance(value, FeatureChoice):
        if kind == StepKind.MULTICLASS_SKILL:
            _add_unique(character.skill_proficiencies, value.values)
        elif kind == StepKind.FIGHTING_STYLE:
            _add_unique(character.fighting_styles, value.values)
        elif kind == StepKind.EXPERTISE:
            _add_unique(character.skill_expertise, value.values)
        elif kind == StepKind.METAMAGIC:
            _add_unique(character.metamagic, value.values)
        elif kind == StepKind.FAVORED_ENEMY:
            _add_unique(character.favored_enemies, value.values)
        elif kind == StepKind.FAVORED_TERRAIN:
            _add_unique(character.favored_terrains, value.values)
        elif kind == StepKind.PACT_BOON and value.values:
            character.pact_boon = value.values[0]
    elif isinstance(value, SubclassChoice):
        entry.subclass = value.subclass
    elif isinstance(value, SpellsChoice):
        _apply_spells(character, session, step, value, entry.name)
    elif isinstance(value, InvocationsChoice):
        character.invocations = [i for i in character.invocations if i not in value.removed]
        _add_unique(character.invocations, value.added)
    elif isinstance(value, MysticArcanumChoice):
        spell = session.options_for(step.key).spell(value.spell_id)
        level = step.spell_level or (spell.level if spell else 6)
        character.mystic_arcanum[level] = value.spell_id
        character.spells_known.append(Spell(
            id=value.spell_id,
            name=spell.name if spell else value.spell_id,
            level=level,
            school=spell.school if spell else "",
            source_class=entry.name,
            mystic_arcanum=True,
        ))
    elif isinstance(value, AsiChoice) and value.feat_id:
        feat = session.options_for(step.key).feat(value.feat_id)
        character.feats.append(Feat(
            id=value.feat_id,
            name=feat.name if feat else value.feat_id,
            level_gained=step.level,
        ))
    # class-select, hit points, ability increases and acknowledgements need nothing here


def _apply_increases(character: Character, value: AsiChoice) -> None:
    for name, amount in merge_increases(value.increases).items():
        current = character.abilities.get(name, AbilityScore(score=10)).score
        character.abilities[name] = AbilityScore(score=current + amount)


def _resolve_entry(character: Character, rules: ClassRules) -> CharacterClass:
    entry = character.get_class(rules.name)
    if entry is not None:
        return entry
    entry = CharacterClass(name=rules.name, level=0, hit_dice=f"0d{rules.hit_die}")
    character.classes.append(entry)
    grant = multiclass_proficiencies(rules.name)
    _add_unique(character.armor_proficiencies, grant.armor)
    _add_unique(character.weapon_proficiencies, grant.weapons)
    _add_unique(character.tool_proficiencies, grant.tools)
    return entry


def build_update(session: LevelUpSession) -> CharacterUpdate:
    """Reduce the staged choices into the complete new character state.

    Hit points for each level use the CON modifier after that level's
    ability increase; when the modifier changes, earlier levels are adjusted
    retroactively by the difference.

    Raises:
        LevelUpError: If the session's class no longer matches its plan
    """
    rules = session.rules
    if staged_class_name(session).lower() != rules.name.lower():
        raise LevelUpError("Staged class does not match the planned class; replan first")

    character = session.snapshot.model_copy(deep=True)
    previous_resources = dict(character.resources)
    entry = _resolve_entry(character, rules)

    steps_by_level: dict[int, list[Step]] = {}
    for step in session.steps:
        steps_by_level.setdefault(step.level, []).append(step)

    # Creation plans carry level-1 feature choices; they are applied in place
    carried_choices: dict[str, Any] = {}
    for step in steps_by_level.get(session.from_level, []) if session.creation else []:
        value = session.value(step.key)
        _apply_step(character, entry, session, step, value)
        if value is not None:
            carried_choices[step.key] = dump_staged_value(value)

    history: list[LevelHistoryRecord] = []
    hp_total = 0
    for level in range(session.from_level + 1, session.to_level + 1):
        level_steps = steps_by_level.get(level, [])
        con_before = ability_modifier(character.ability_scores()["constitution"])

        for step in level_steps:
            value = session.value(step.key)
            if step.kind == StepKind.ASI_OR_FEAT and isinstance(value, AsiChoice) and not value.feat_id:
                _apply_increases(character, value)

        entry.level += 1
        entry.hit_dice = f"{entry.level}d{rules.hit_die}"
        con_after = ability_modifier(character.ability_scores()["constitution"])

        hp_value = next(
            (session.value(s.key) for s in level_steps if s.kind == StepKind.HP_ROLL),
            None,
        )
        roll = hp_value.roll if isinstance(hp_value, HitPointsChoice) and hp_value.method == "roll" else None
        hp_gained = hit_point_gain(rules.hit_die, con_after, roll)
        hp_gained += retroactive_con_adjustment(con_before, con_after, level - 1)
        hp_total += hp_gained

        choices_made = dict(carried_choices)
        carried_choices = {}
        for step in level_steps:
            value = session.value(step.key)
            _apply_step(character, entry, session, step, value)
            if value is not None and step.kind not in (StepKind.FEATURES, StepKind.REVIEW):
                choices_made[step.key] = dump_staged_value(value)

        features = list(granted_features(rules, entry.level))
        for name in features:
            character.features.append(Feature(
                name=name,
                source=f"{rules.name} {entry.level}",
                level_gained=level,
            ))

        history.append(LevelHistoryRecord(
            previous_level=level - 1,
            new_level=level,
            class_name=rules.name,
            class_level=entry.level,
            hp_gained=hp_gained,
            choices_made=choices_made,
            features_gained=features,
        ))

    character.hit_points_max += hp_total
    character.hit_points_current = min(character.hit_points_max, character.hit_points_current + hp_total)
    apply_derived_stats(character, previous_resources)
    character.level_history = list(character.level_history) + history
    character.version += 1
    character.updated_at = datetime.now()

    # Revalidate so class-list invariants and the proficiency bonus are enforced
    character = Character.model_validate(character.model_dump())
    return CharacterUpdate(
        character_id=session.character_id,
        base_version=session.snapshot.version,
        character=character,
        history=history,
    )


async def commit(session: LevelUpSession, store) -> CommitResult:
    """Write the session's transition through ``store``.

    Never raises for a store failure: the stored character keeps its
    pre-commit value and the result is marked retryable.
    """
    pending = incomplete_steps(session)
    if pending:
        key, issues = next(iter(pending.items()))
        return CommitResult(
            success=False,
            retryable=False,
            error=f"Step '{key}' is not complete: {'; '.join(issues)}",
        )

    try:
        update = build_update(session)
    except LevelUpError as e:
        return CommitResult(success=False, retryable=False, error=str(e))

    try:
        character = await store.commit_transition(session.character_id, update)
    except (CommitError, OSError) as e:
        logger.error(f"❌ Commit failed for character {session.character_id}: {e}")
        return CommitResult(success=False, retryable=getattr(e, "retryable", True), error=str(e))

    logger.info(
        f"✅ {character.name} is now level {character.total_level} ({character.class_string()})"
    )
    return CommitResult(success=True, character=character, history=update.history)


__all__ = [
    "CharacterUpdate",
    "CommitResult",
    "build_update",
    "commit",
]
