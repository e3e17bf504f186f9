"""
Character storage.

``CharacterStore`` is the collaborator the engine loads characters from and
commits transitions to. ``JsonCharacterStore`` keeps one JSON file per
character and writes it atomically (temp file, then rename), so a failed
write leaves the previous file untouched.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from .errors import CharacterNotFoundError, CommitError, StaleCharacterError
from .models import Character, LevelHistoryRecord


logger = logging.getLogger("dm20-levelup")


class CharacterStore(ABC):
    """Async persistence interface for characters."""

    @abstractmethod
    async def load_character(self, character_id: str) -> Character:
        """Load a character snapshot.

        Raises:
            CharacterNotFoundError: If no character has this id
        """

    @abstractmethod
    async def commit_transition(self, character_id: str, update) -> Character:
        """Apply a ``CharacterUpdate`` as one atomic write and return the stored character.

        Raises:
            CommitError: If the write fails; the stored character is unchanged
        """

    @abstractmethod
    async def append_level_history(self, character_id: str, record: LevelHistoryRecord) -> Character:
        """Append one history record to a stored character."""

    @abstractmethod
    async def save_character(self, character: Character) -> Character:
        """Create or overwrite a character."""

    async def list_characters(self) -> list[str]:
        return []


class JsonCharacterStore(CharacterStore):
    """One ``<id>.json`` file per character under ``storage_dir``."""

    def __init__(self, storage_dir: Path | str):
        self.storage_dir = Path(storage_dir)
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        self._locks: dict[str, asyncio.Lock] = {}
        logger.debug(f"📂 Initializing JsonCharacterStore at {self.storage_dir.resolve()}")

    def _path(self, character_id: str) -> Path:
        return self.storage_dir / f"{character_id}.json"

    def _lock(self, character_id: str) -> asyncio.Lock:
        if character_id not in self._locks:
            self._locks[character_id] = asyncio.Lock()
        return self._locks[character_id]

    def _atomic_write(self, file_path: Path, data: dict) -> None:
        """Write data to file atomically (write to temp, then rename).

        Args:
            file_path: Path to the file to write
            data: Data to write (will be JSON serialized)
        """
        temp_file = file_path.with_suffix('.tmp')
        try:
            with open(temp_file, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, default=str)
            temp_file.replace(file_path)
            logger.debug(f"✅ Atomic write to {file_path.name} successful")
        except Exception as e:
            if temp_file.exists():
                temp_file.unlink()
            logger.error(f"❌ Error during atomic write to {file_path.name}: {e}")
            raise

    def _read(self, character_id: str) -> Character:
        path = self._path(character_id)
        if not path.exists():
            raise CharacterNotFoundError(f"Character '{character_id}' not found")
        logger.debug(f"📂 Loading character from {path.name}")
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return Character.model_validate(data)
        except (json.JSONDecodeError, ValidationError) as e:
            logger.error(f"❌ Error loading character '{character_id}': {e}")
            raise

    def _write(self, character: Character) -> None:
        self._atomic_write(self._path(character.id), character.model_dump(mode="json"))

    async def load_character(self, character_id: str) -> Character:
        async with self._lock(character_id):
            return self._read(character_id)

    async def commit_transition(self, character_id: str, update) -> Character:
        async with self._lock(character_id):
            if not self._path(character_id).exists():
                raise CommitError(f"Character '{character_id}' not found")
            character = update.character
            if character.id != character_id:
                raise CommitError(f"Update is for '{character.id}', not '{character_id}'")
            stored = self._read(character_id)
            if stored.version != update.base_version:
                raise StaleCharacterError(
                    f"Character '{character_id}' changed since the session started "
                    f"(version {stored.version}, session saw {update.base_version})"
                )
            try:
                self._write(character)
            except OSError as e:
                raise CommitError(f"Failed to write character '{character_id}': {e}") from e
            logger.info(
                f"💾 Committed {len(update.history)} level(s) for '{character.name}' "
                f"(version {character.version})"
            )
            return character

    async def append_level_history(self, character_id: str, record: LevelHistoryRecord) -> Character:
        async with self._lock(character_id):
            character = self._read(character_id)
            character.level_history.append(record)
            character.version += 1
            character.updated_at = datetime.now()
            try:
                self._write(character)
            except OSError as e:
                raise CommitError(f"Failed to append history for '{character_id}': {e}") from e
            return character

    async def save_character(self, character: Character) -> Character:
        async with self._lock(character.id):
            self._write(character)
            logger.debug(f"💾 Saved character '{character.name}' ({character.id})")
            return character

    async def list_characters(self) -> list[str]:
        return sorted(p.stem for p in self.storage_dir.glob("*.json"))


__all__ = [
    "CharacterStore",
    "JsonCharacterStore",
]
