"""
dm20-levelup MCP Server
Character progression wizard (level-up, multiclassing, creation above level 1)
exposed as FastMCP tools.
"""

import json
import logging
import os
from pathlib import Path
from typing import Annotated, Any

from dotenv import load_dotenv
from fastmcp import FastMCP
from pydantic import Field

from .character_builder import CharacterBuilder, CharacterBuilderError
from .derived_stats import derive_stats
from .errors import LevelUpError
from .level_up_engine import LevelUpEngine, LevelUpWizard
from .rulebooks.models import SpellFilter
from .rulebooks.multiclass import LeaveClassPolicy
from .rulebooks.predicates import actionable_feature_choices
from .rulebooks.source import BuiltinCatalogSource, CustomCatalogSource, RulesCatalogSource
from .storage import JsonCharacterStore

logger = logging.getLogger("dm20-levelup")

if not load_dotenv():
    logger.warning("❌ .env file invalid or not found! Using environment defaults.")

logging.basicConfig(
    level=os.getenv("DM20_LEVELUP_LOG_LEVEL", "INFO").upper(),
    )

data_path = Path(os.getenv("DM20_LEVELUP_STORAGE_DIR", "")).resolve()
logger.debug(f"📂 Data path: {data_path}")


def _leave_policy_from_env() -> LeaveClassPolicy:
    raw = os.getenv("DM20_LEVELUP_LEAVE_CLASS_POLICY", LeaveClassPolicy.ENFORCE.value)
    try:
        return LeaveClassPolicy(raw.strip().lower())
    except ValueError:
        logger.warning(f"⚠️ Unknown leave-class policy '{raw}', using 'enforce'")
        return LeaveClassPolicy.ENFORCE


def _source_from_env() -> RulesCatalogSource:
    rules_file = os.getenv("DM20_LEVELUP_RULES_FILE")
    if rules_file:
        logger.debug(f"📚 Homebrew rules file: {rules_file}")
        return CustomCatalogSource(Path(rules_file))
    return BuiltinCatalogSource()


# Initialize storage, engine and FastMCP server
store = JsonCharacterStore(data_path / "characters")
engine = LevelUpEngine(store, _source_from_env(), leave_policy=_leave_policy_from_env())
logger.debug("✅ Storage layer and level-up engine initialized")

# Open wizards by session id, least recently used first; in memory only
wizards: dict[str, LevelUpWizard] = {}
MAX_OPEN_SESSIONS = int(os.getenv("DM20_LEVELUP_MAX_SESSIONS", "32"))

mcp = FastMCP(
    name="dm20-levelup"
)


# ----------------------------------------------------------------------
# Formatting helpers
# ----------------------------------------------------------------------

_MAX_LISTED_OPTIONS = 25


def _parse_json_value(raw: str | None) -> Any:
    """Parse a tool argument as JSON, falling back to the raw string (e.g. ``Thief``)."""
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def _parse_json_list(raw: str | None, what: str) -> list[str] | None:
    if raw is None:
        return None
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid {what} JSON: {raw}") from e
    if not isinstance(value, list):
        raise ValueError(f"{what} must be a JSON list")
    return [str(v) for v in value]


def _format_step(wizard: LevelUpWizard) -> str:
    step = wizard.current_step
    position = wizard.session.cursor + 1
    lines = [f"**Step {position}/{len(wizard.steps)}: {step.key}** ({step.class_name} {step.class_level})"]
    if step.count:
        lines.append(f"Choose: {step.count}")
    if step.replace_count:
        lines.append(f"May replace up to {step.replace_count}")
    if step.spell_level is not None:
        lines.append(f"Spell level: {step.spell_level}")
    if step.max_spell_level:
        lines.append(f"Max spell level: {step.max_spell_level}")
    if step.features:
        lines.append(f"Features gained: {', '.join(step.features)}")

    options = list(step.options)
    catalog = wizard.options_for(step.key)
    options += list(catalog.spell_ids) + list(catalog.feat_ids)
    if options:
        shown = options[:_MAX_LISTED_OPTIONS]
        more = f" (+{len(options) - len(shown)} more)" if len(options) > len(shown) else ""
        lines.append(f"Options: {', '.join(shown)}{more}")

    value = wizard.session.value(step.key)
    if value is not None:
        lines.append(f"Staged: {value.model_dump_json(exclude={'type'})}")
    issues = wizard.issues()
    if issues:
        lines.append("Issues: " + "; ".join(issues))
    else:
        lines.append("✅ Ready to advance")
    return "\n".join(lines)


def _get_wizard(open_wizards: dict[str, LevelUpWizard], session_id: str) -> LevelUpWizard:
    wizard = open_wizards.pop(session_id, None)
    if wizard is None:
        raise LevelUpError(f"No open level-up session '{session_id}'")
    # Reinsert so the dict stays ordered least recently used first
    open_wizards[session_id] = wizard
    return wizard


def _register_wizard(
    open_wizards: dict[str, LevelUpWizard],
    wizard: LevelUpWizard,
    limit: int | None = None,
) -> None:
    """Track an open wizard, evicting the least recently used beyond ``limit``."""
    limit = MAX_OPEN_SESSIONS if limit is None else limit
    while open_wizards and len(open_wizards) >= limit:
        stale_id = next(iter(open_wizards))
        open_wizards.pop(stale_id)
        logger.warning(f"⚠️ Evicted abandoned level-up session {stale_id}")
    open_wizards[wizard.session_id] = wizard


# ----------------------------------------------------------------------
# Tool logic (kept apart from the decorated tools so it can be tested)
# ----------------------------------------------------------------------

async def _start_level_up_logic(
    engine: LevelUpEngine,
    open_wizards: dict[str, LevelUpWizard],
    character_id: str,
    target_level: int | None = None,
    class_name: str | None = None,
) -> str:
    try:
        if target_level is None:
            character = await engine.store.load_character(character_id)
            target_level = character.total_level + 1
        wizard = await engine.start_session(character_id, target_level, class_name)
    except LevelUpError as e:
        return f"❌ Cannot start level-up: {e}"

    _register_wizard(open_wizards, wizard)
    plan = ", ".join(step.key for step in wizard.steps)
    return (
        f"🎲 Level-up session `{wizard.session_id}` "
        f"({wizard.session.from_level} → {wizard.session.to_level}, {wizard.session.class_to_level})\n"
        f"Plan: {plan}\n\n{_format_step(wizard)}"
    )


async def _stage_choice_logic(
    open_wizards: dict[str, LevelUpWizard],
    session_id: str,
    step_key: str,
    value: str | None,
) -> str:
    try:
        wizard = _get_wizard(open_wizards, session_id)
        issues = await wizard.stage_choice(step_key, _parse_json_value(value))
    except LevelUpError as e:
        return f"❌ {e}"
    if issues:
        return f"⚠️ Staged '{step_key}' with issues: " + "; ".join(issues)
    return f"✅ Staged '{step_key}'\n\n{_format_step(wizard)}"


def _navigate_logic(open_wizards: dict[str, LevelUpWizard], session_id: str, forward: bool) -> str:
    try:
        wizard = _get_wizard(open_wizards, session_id)
        moved = wizard.advance() if forward else wizard.retreat()
    except LevelUpError as e:
        return f"❌ {e}"
    if not moved:
        if forward and wizard.session.is_last_step:
            return f"ℹ️ Already at the last step; commit when ready.\n\n{_format_step(wizard)}"
        if not forward:
            return f"ℹ️ Already at the first step.\n\n{_format_step(wizard)}"
        return f"⚠️ Current step is not complete.\n\n{_format_step(wizard)}"
    return _format_step(wizard)


async def _commit_logic(open_wizards: dict[str, LevelUpWizard], session_id: str) -> str:
    try:
        wizard = _get_wizard(open_wizards, session_id)
        result = await wizard.commit()
    except LevelUpError as e:
        return f"❌ {e}"
    if not result.success:
        hint = " (safe to retry)" if result.retryable else ""
        return f"❌ Commit failed{hint}: {result.error}"

    open_wizards.pop(session_id, None)
    character = result.character
    gained = sum(record.hp_gained for record in result.history)
    features = [f for record in result.history for f in record.features_gained]
    lines = [
        f"✅ {character.name} is now level {character.total_level} ({character.class_string()})",
        f"HP: {character.hit_points_max} (+{gained})",
        f"Proficiency bonus: +{character.proficiency_bonus}",
    ]
    if features:
        lines.append(f"New features: {', '.join(features)}")
    return "\n".join(lines)


def _cancel_logic(open_wizards: dict[str, LevelUpWizard], session_id: str) -> str:
    try:
        wizard = _get_wizard(open_wizards, session_id)
        wizard.cancel()
    except LevelUpError as e:
        return f"❌ {e}"
    open_wizards.pop(session_id, None)
    return f"🗑️ Cancelled level-up session `{session_id}`; nothing was saved."


async def _check_multiclass_logic(engine: LevelUpEngine, character_id: str, class_name: str) -> str:
    try:
        check = await engine.check_multiclass(character_id, class_name)
    except LevelUpError as e:
        return f"❌ {e}"
    if not check.eligible:
        return f"❌ {check.reason}"
    message = f"✅ Can multiclass into {class_name}"
    if check.warnings:
        message += "\n⚠️ " + "\n⚠️ ".join(check.warnings)
    return message


async def _show_derived_stats_logic(engine: LevelUpEngine, character_id: str) -> str:
    try:
        character = await engine.store.load_character(character_id)
    except LevelUpError as e:
        return f"❌ {e}"
    stats = derive_stats(
        character.ability_scores(),
        character.total_level,
        character.saving_throw_proficiencies,
        character.skill_proficiencies,
        spell_ability=character.spellcasting_ability,
        expertise=character.skill_expertise,
    )
    lines = [
        f"**{character.name}**: {character.class_string()} (level {character.total_level})",
        f"HP: {character.hit_points_current}/{character.hit_points_max}",
        f"Proficiency bonus: +{stats.proficiency_bonus}",
        "Saving throws: " + ", ".join(f"{k[:3].upper()} {v:+d}" for k, v in stats.saving_throws.items()),
        f"Passive Perception: {stats.passive_perception}",
    ]
    if stats.spell_save_dc is not None:
        lines.append(f"Spell save DC: {stats.spell_save_dc}, spell attack: {stats.spell_attack_modifier:+d}")
    if character.spell_slots:
        lines.append("Spell slots: " + ", ".join(f"L{k}: {v}" for k, v in sorted(character.spell_slots.items())))
    if character.pact_slots:
        lines.append("Pact slots: " + ", ".join(f"{v} × L{k}" for k, v in character.pact_slots.items()))
    for resource in character.resources.values():
        lines.append(f"{resource.label}: {resource.current}/{resource.maximum} ({resource.recharge} rest)")
    return "\n".join(lines)


async def _create_character_logic(
    engine: LevelUpEngine,
    open_wizards: dict[str, LevelUpWizard],
    build_args: dict[str, Any],
    level: int = 1,
) -> str:
    spell_lookup = None
    if build_args.get("cantrips") or build_args.get("spells"):
        spell_lookup = {s.id: s for s in await engine.source.list_spells(SpellFilter())}
    try:
        character = CharacterBuilder(spell_lookup).build(**build_args)
    except CharacterBuilderError as e:
        return f"❌ Cannot create character: {e}"

    await engine.store.save_character(character)
    message = (
        f"🌟 Created {character.name} (`{character.id}`), level 1 {character.class_string()} "
        f"with {character.hit_points_max} HP"
    )
    if level <= 1:
        rules = await engine.source.get_class_rules(character.primary_class.name)
        if rules is None or not actionable_feature_choices(rules, 1):
            return message

    try:
        wizard = await engine.start_creation_session(character.id, level)
    except LevelUpError as e:
        return f"{message}\n❌ Cannot continue to level {level}: {e}"
    _register_wizard(open_wizards, wizard)
    return (
        f"{message}\n🎲 Creation session `{wizard.session_id}` to level {level}\n\n"
        f"{_format_step(wizard)}"
    )


# ----------------------------------------------------------------------
# Tools
# ----------------------------------------------------------------------

@mcp.tool
async def start_level_up(
    character_id: Annotated[str, Field(description="Character ID")],
    target_level: Annotated[int | None, Field(description="Total character level to reach (default: one level up)", ge=2, le=20)] = None,
    class_name: Annotated[str | None, Field(description="Class gaining the levels (default: primary class). A new class multiclasses.")] = None,
) -> str:
    """Start a level-up wizard for a character.

    Returns the session id, the planned steps and the first step. Stage a
    value for each step with stage_level_up_choice, move with
    advance_level_up / retreat_level_up, and finish with commit_level_up.
    """
    return await _start_level_up_logic(engine, wizards, character_id, target_level, class_name)


@mcp.tool
async def stage_level_up_choice(
    session_id: Annotated[str, Field(description="Level-up session ID")],
    step_key: Annotated[str, Field(description="Step key, e.g. '5:hp-roll' or '4:asi-or-feat'")],
    value: Annotated[str | None, Field(description="""
        JSON value for the step, or a plain string. Examples: '"average"' or '7' for hit points,
        '"Thief"' for a subclass, '["fire-bolt"]' for cantrips, '{"increases": {"strength": 2}}'
        or '{"feat_id": "alert"}' for ASI, '{"added": ["agonizing_blast"], "removed": []}' for
        invocations. Omit to clear the step.
        """)] = None,
) -> str:
    """Stage (or clear) the choice for one step of an open level-up session."""
    return await _stage_choice_logic(wizards, session_id, step_key, value)


@mcp.tool
def advance_level_up(
    session_id: Annotated[str, Field(description="Level-up session ID")],
) -> str:
    """Move to the next step if the current one is complete."""
    return _navigate_logic(wizards, session_id, forward=True)


@mcp.tool
def retreat_level_up(
    session_id: Annotated[str, Field(description="Level-up session ID")],
) -> str:
    """Move back one step. Staged choices are kept."""
    return _navigate_logic(wizards, session_id, forward=False)


@mcp.tool
async def commit_level_up(
    session_id: Annotated[str, Field(description="Level-up session ID")],
) -> str:
    """Apply every staged choice and save the character in one write."""
    return await _commit_logic(wizards, session_id)


@mcp.tool
def cancel_level_up(
    session_id: Annotated[str, Field(description="Level-up session ID")],
) -> str:
    """Discard a level-up session without saving anything."""
    return _cancel_logic(wizards, session_id)


@mcp.tool
async def check_multiclass(
    character_id: Annotated[str, Field(description="Character ID")],
    class_name: Annotated[str, Field(description="Class to multiclass into")],
) -> str:
    """Check whether a character meets the prerequisites to multiclass into a class."""
    return await _check_multiclass_logic(engine, character_id, class_name)


@mcp.tool
async def show_derived_stats(
    character_id: Annotated[str, Field(description="Character ID")],
) -> str:
    """Show a character's derived statistics recomputed from ability scores and levels."""
    return await _show_derived_stats_logic(engine, character_id)


@mcp.tool
async def create_character(
    name: Annotated[str, Field(description="Character name")],
    class_name: Annotated[str, Field(description="Starting class")],
    level: Annotated[int, Field(description="Target level; above 1, or a class with level-1 feature choices, opens a creation session", ge=1, le=20)] = 1,
    subclass: Annotated[str | None, Field(description="Subclass (only for classes choosing it at level 1)")] = None,
    race: Annotated[str | None, Field(description="Race")] = None,
    background: Annotated[str | None, Field(description="Background")] = None,
    player_name: Annotated[str | None, Field(description="Player name")] = None,
    ability_method: Annotated[str, Field(description="'manual', 'standard_array' or 'point_buy'")] = "manual",
    ability_assignments: Annotated[str | None, Field(description='JSON dict for standard_array/point_buy: {"strength": 15, ...}')] = None,
    strength: Annotated[int, Field(description="Strength score (manual)", ge=1, le=30)] = 10,
    dexterity: Annotated[int, Field(description="Dexterity score (manual)", ge=1, le=30)] = 10,
    constitution: Annotated[int, Field(description="Constitution score (manual)", ge=1, le=30)] = 10,
    intelligence: Annotated[int, Field(description="Intelligence score (manual)", ge=1, le=30)] = 10,
    wisdom: Annotated[int, Field(description="Wisdom score (manual)", ge=1, le=30)] = 10,
    charisma: Annotated[int, Field(description="Charisma score (manual)", ge=1, le=30)] = 10,
    skill_proficiencies: Annotated[str | None, Field(description='JSON list of skills: ["Athletics", "Perception"]')] = None,
    cantrips: Annotated[str | None, Field(description='JSON list of starting cantrip ids')] = None,
    spells: Annotated[str | None, Field(description='JSON list of starting spell ids')] = None,
) -> str:
    """Create a level-1 character.

    A creation session opens to reach a higher level, or to pick level-1
    features such as a fighting style or expertise.
    """
    try:
        assignments = json.loads(ability_assignments) if ability_assignments else None
        build_args = {
            "name": name,
            "class_name": class_name,
            "subclass": subclass,
            "race": race,
            "background": background,
            "player_name": player_name,
            "ability_method": ability_method,
            "ability_assignments": assignments,
            "skill_proficiencies": _parse_json_list(skill_proficiencies, "skill_proficiencies"),
            "cantrips": _parse_json_list(cantrips, "cantrips"),
            "spells": _parse_json_list(spells, "spells"),
            "strength": strength,
            "dexterity": dexterity,
            "constitution": constitution,
            "intelligence": intelligence,
            "wisdom": wisdom,
            "charisma": charisma,
        }
    except (json.JSONDecodeError, ValueError) as e:
        return f"❌ {e}"
    return await _create_character_logic(engine, wizards, build_args, level)


def main() -> None:
    """Main entry point for the dm20-levelup MCP Server."""
    mcp.run()

if __name__ == "__main__":
    main()
