"""
Level-up wizard.

``LevelUpEngine`` opens sessions against a character store and a rules
catalog source; ``LevelUpWizard`` is the stateful facade a front end drives
step by step. The wizard only awaits I/O when a session starts, when a staged
class or subclass changes the plan (new steps need catalog options), and on
commit. Every other operation is a synchronous session reducer.
"""

import logging
from typing import Any

from pydantic import ValidationError

from . import session as reducers
from .choice_validator import can_advance, can_commit, incomplete_steps, step_issues
from .choices import ClassSelectChoice, parse_staged_value
from .commit import CommitResult, commit
from .errors import DataIntegrityError, SessionStateError
from .models import Character
from .rulebooks.catalog import THIRD_CASTER_SPELL_LIST, get_class_rules
from .rulebooks.models import FeatFilter, SpellFilter
from .rulebooks.multiclass import LeaveClassPolicy, MulticlassCheck, can_add_class, require_can_add_class
from .rulebooks.predicates import is_third_caster
from .rulebooks.source import BuiltinCatalogSource, RulesCatalogSource
from .session import LevelUpSession, StepOptions, effective_ability_scores, effective_subclass
from .step_planner import CATALOG_OPTION_KINDS, Step, StepKind
from .storage import CharacterStore


logger = logging.getLogger("dm20-levelup")


def _is_spellcaster(character: Character) -> bool:
    for entry in character.classes:
        rules = get_class_rules(entry.name)
        if rules is not None and (rules.is_caster or is_third_caster(rules, entry.subclass)):
            return True
    return False


def _spell_filter(step: Step, session: LevelUpSession) -> SpellFilter:
    rules = session.rules
    class_list = rules.name
    if is_third_caster(rules, effective_subclass(session)):
        class_list = THIRD_CASTER_SPELL_LIST

    if step.kind == StepKind.CANTRIPS:
        return SpellFilter(class_name=class_list, exact_level=0)
    if step.kind == StepKind.SPELLS:
        return SpellFilter(class_name=class_list, min_level=1, max_level=step.max_spell_level)
    if step.kind == StepKind.MAGICAL_SECRETS:
        # Any class's list
        return SpellFilter(min_level=0, max_level=step.max_spell_level)
    return SpellFilter(class_name=rules.name, exact_level=step.spell_level)


async def load_step_options(
    session: LevelUpSession,
    source: RulesCatalogSource,
) -> LevelUpSession:
    """Fetch catalog options for every planned step that has none yet.

    A spell step with an empty option list gets a step error instead of
    options; it can never validate until the catalog changes.
    """
    options = dict(session.options)
    step_errors = dict(session.step_errors)
    for step in session.steps:
        if step.kind not in CATALOG_OPTION_KINDS or step.key in options:
            continue

        if step.kind == StepKind.ASI_OR_FEAT:
            character = session.snapshot
            feat_filter = FeatFilter(
                ability_scores=effective_ability_scores(session, before=step.key),
                is_spellcaster=_is_spellcaster(character) or session.rules.is_caster,
                proficiencies=frozenset(character.armor_proficiencies + character.weapon_proficiencies),
            )
            feats = await source.list_feats(feat_filter)
            options[step.key] = StepOptions(feats=tuple(feats))
            continue

        spells = await source.list_spells(_spell_filter(step, session))
        if not spells:
            error = DataIntegrityError(f"No options available for step '{step.key}'")
            logger.warning(f"⚠️ {error}")
            step_errors[step.key] = str(error)
            continue
        options[step.key] = StepOptions(spells=tuple(spells))
        step_errors.pop(step.key, None)

    return reducers.with_options(session, options, step_errors)


class LevelUpWizard:
    """Drives one session from start to commit or cancel."""

    def __init__(self, session: LevelUpSession, store: CharacterStore, source: RulesCatalogSource):
        self._session = session
        self.store = store
        self.source = source
        self.closed = False

    def _ensure_open(self) -> None:
        if self.closed:
            raise SessionStateError(f"Wizard session {self._session.session_id} is closed")

    @property
    def session(self) -> LevelUpSession:
        return self._session

    @property
    def session_id(self) -> str:
        return self._session.session_id

    @property
    def steps(self) -> tuple[Step, ...]:
        return self._session.steps

    @property
    def current_step(self) -> Step:
        self._ensure_open()
        return self._session.current_step

    def issues(self, step_key: str | None = None) -> list[str]:
        """Problems with the current (or given) step; empty when it validates."""
        self._ensure_open()
        return step_issues(self._session, step_key)

    def incomplete_steps(self) -> dict[str, list[str]]:
        self._ensure_open()
        return incomplete_steps(self._session)

    def options_for(self, step_key: str | None = None) -> StepOptions:
        self._ensure_open()
        key = step_key or self._session.current_step.key
        return self._session.options_for(key)

    async def stage_choice(self, step_key: str, value: Any) -> list[str]:
        """Stage a value for a step and return that step's remaining issues.

        ``value`` may be a staged-value model, a dict with its fields, or a
        shorthand (see ``parse_staged_value``). ``None`` clears the step.

        Raises:
            SessionStateError: Unknown step or a value of the wrong shape
            DataIntegrityError: The selected class has no rules in the catalog
        """
        self._ensure_open()
        step = self._session.step(step_key)
        if step is None:
            raise SessionStateError(f"Unknown step '{step_key}'")

        if value is not None:
            try:
                value = parse_staged_value(step.kind, value)
            except ValidationError as e:
                raise SessionStateError(f"Invalid value for step '{step_key}': {e}") from e

        rules = None
        if isinstance(value, ClassSelectChoice):
            rules = await self.source.get_class_rules(value.class_name)
            if rules is None:
                raise DataIntegrityError(f"No rules for class '{value.class_name}'")

        previous_steps = self._session.steps
        session = reducers.stage(self._session, step_key, value, rules=rules)
        if session.steps != previous_steps:
            logger.debug(f"📋 Replanned session {session.session_id}: {len(session.steps)} steps")
            session = await load_step_options(session, self.source)
        self._session = session

        if session.step(step_key) is None:
            return []
        return step_issues(session, step_key)

    def can_advance(self) -> bool:
        self._ensure_open()
        return can_advance(self._session)

    def can_commit(self) -> bool:
        self._ensure_open()
        return can_commit(self._session)

    def advance(self) -> bool:
        """Move to the next step; returns False when the current step is invalid or last."""
        self._ensure_open()
        before = self._session.cursor
        self._session = reducers.advance(self._session)
        return self._session.cursor != before

    def retreat(self) -> bool:
        self._ensure_open()
        before = self._session.cursor
        self._session = reducers.retreat(self._session)
        return self._session.cursor != before

    def jump_to(self, step_key: str) -> Step:
        self._ensure_open()
        self._session = reducers.jump_to(self._session, step_key)
        return self._session.current_step

    async def commit(self) -> CommitResult:
        """Write the transition. The wizard stays open when the commit fails."""
        self._ensure_open()
        result = await commit(self._session, self.store)
        if result.success:
            self.closed = True
        return result

    def cancel(self) -> None:
        """Discard the session; nothing is written."""
        self._ensure_open()
        self.closed = True
        logger.debug(f"🗑️ Cancelled session {self._session.session_id}")


class LevelUpEngine:
    """Opens level-up and creation wizards."""

    def __init__(
        self,
        store: CharacterStore,
        source: RulesCatalogSource | None = None,
        leave_policy: LeaveClassPolicy = LeaveClassPolicy.ENFORCE,
    ):
        self.store = store
        self.source = source or BuiltinCatalogSource()
        self.leave_policy = leave_policy

    async def check_multiclass(self, character_id: str, class_name: str) -> MulticlassCheck:
        character = await self.store.load_character(character_id)
        return can_add_class(character, class_name, policy=self.leave_policy)

    async def start_session(
        self,
        character_id: str,
        target_level: int,
        class_name: str | None = None,
    ) -> LevelUpWizard:
        """Open a wizard levelling ``character_id`` up to ``target_level``.

        Args:
            character_id: Stored character id
            target_level: Total character level after the transition
            class_name: Class gaining the levels (defaults to the primary class)

        Raises:
            CharacterNotFoundError: The store has no such character
            DataIntegrityError: The catalog has no rules for the class
            PrerequisiteError: A new class's multiclass prerequisites are unmet
            SessionStateError: The level range is invalid
        """
        character = await self.store.load_character(character_id)
        name = class_name or character.primary_class.name
        rules = await self.source.get_class_rules(name)
        if rules is None:
            raise DataIntegrityError(f"No rules for class '{name}'")

        if character.get_class(rules.name) is None:
            require_can_add_class(character, rules.name, policy=self.leave_policy)

        session = reducers.new_session(
            character, target_level, rules.name, rules=rules, leave_policy=self.leave_policy
        )
        session = await load_step_options(session, self.source)
        logger.info(
            f"🎲 Started level-up for '{character.name}': {session.from_level} → {session.to_level} "
            f"({rules.name}, {len(session.steps)} steps)"
        )
        return LevelUpWizard(session, self.store, self.source)

    async def start_creation_session(self, character_id: str, target_level: int) -> LevelUpWizard:
        """Open a wizard taking a freshly built level-1 character to ``target_level``.

        Level 1 only contributes its feature choices; hit points, spells and
        the subclass of level 1 are set by the character builder.
        """
        character = await self.store.load_character(character_id)
        if character.total_level != 1:
            raise SessionStateError(
                f"Creation sessions start from a level 1 character, not level {character.total_level}"
            )
        name = character.primary_class.name
        rules = await self.source.get_class_rules(name)
        if rules is None:
            raise DataIntegrityError(f"No rules for class '{name}'")

        session = reducers.new_session(
            character, target_level, rules.name, rules=rules,
            creation=True, leave_policy=self.leave_policy,
        )
        session = await load_step_options(session, self.source)
        logger.info(
            f"🎲 Started creation of '{character.name}' at level {target_level} ({len(session.steps)} steps)"
        )
        return LevelUpWizard(session, self.store, self.source)


__all__ = [
    "LevelUpEngine",
    "LevelUpWizard",
    "load_step_options",
]
