"""
Error types raised by the progression engine.

Only the I/O boundaries (character store, rules catalog source) and explicit
``require_*`` helpers raise. Planner, predicate and validator functions report
problems as return values instead.
"""


class LevelUpError(Exception):
    """Base class for every progression engine error."""


class ChoiceValidationError(LevelUpError):
    """A staged choice is incomplete or breaks a rule.

    Normally recovered locally by keeping the wizard on the same step.
    """

    def __init__(self, step_key: str, issues: list[str]):
        self.step_key = step_key
        self.issues = list(issues)
        super().__init__(f"Step '{step_key}' is not complete: {'; '.join(self.issues)}")


class PrerequisiteError(LevelUpError):
    """Multiclass ability-score prerequisites are not met."""

    def __init__(self, class_name: str, missing: list[str], message: str | None = None):
        self.class_name = class_name
        self.missing = list(missing)
        super().__init__(
            message or f"Cannot multiclass into {class_name}: requires {', '.join(self.missing)}"
        )


class CommitError(LevelUpError):
    """Writing a transition to the character store failed.

    The stored character keeps its pre-commit value, so the commit can be
    retried with the same session.
    """

    retryable = True


class StaleCharacterError(CommitError):
    """The stored character changed after the session took its snapshot.

    Retrying the same session cannot succeed; start a new one.
    """

    retryable = False


class DataIntegrityError(LevelUpError):
    """The rules catalog has no data for a class, or a referenced id is gone."""


class SessionStateError(LevelUpError):
    """The session API was used out of order (unknown step, cancelled wizard...)."""


class CharacterNotFoundError(LevelUpError):
    """The character store has no character with the requested id."""


__all__ = [
    "LevelUpError",
    "ChoiceValidationError",
    "PrerequisiteError",
    "CommitError",
    "StaleCharacterError",
    "DataIntegrityError",
    "SessionStateError",
    "CharacterNotFoundError",
]
