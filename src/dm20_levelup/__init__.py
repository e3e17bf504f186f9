"""
dm20-levelup - A character progression rules engine for D&D 5e, built with FastMCP.
"""

from .errors import *
from .models import Character, CharacterClass, LevelHistoryRecord
from .level_up_engine import LevelUpEngine, LevelUpWizard
from .storage import CharacterStore, JsonCharacterStore

try:
    from importlib.metadata import PackageNotFoundError, version as _get_version
    __version__ = _get_version("dm20-levelup")
except PackageNotFoundError:
    __version__ = "0.1.0"  # Fallback if metadata unavailable
__all__ = [
    "Character",
    "CharacterClass",
    "LevelHistoryRecord",
    "LevelUpEngine",
    "LevelUpWizard",
    "CharacterStore",
    "JsonCharacterStore",
]
