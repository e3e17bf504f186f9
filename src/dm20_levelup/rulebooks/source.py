"""
Rules catalog sources.

A source answers the engine's rules queries (class rules, feature choices,
spell and feat lists). The builtin source serves the static class tables plus
the packaged SRD spell/feat files; a custom source layers homebrew JSON/YAML
content on top of another source.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from ..errors import LevelUpError
from .catalog import get_class_rules, normalize_index
from .models import (
    ClassRules,
    FeatDefinition,
    FeatFilter,
    FeatureChoiceSpec,
    SpellDefinition,
    SpellFilter,
)


logger = logging.getLogger("dm20-levelup")

DATA_DIR = Path(__file__).parent / "data"


class CatalogSourceError(LevelUpError):
    """Error loading or parsing a rules content file."""
    pass


def read_content_file(path: Path) -> dict[str, Any]:
    """Read a JSON or YAML rules file and return its ``content`` section."""
    if not path.exists():
        raise CatalogSourceError(f"Rules file not found: {path}")

    suffix = path.suffix.lower()
    if suffix not in RulesCatalogSource.SUPPORTED_EXTENSIONS:
        raise CatalogSourceError(
            f"Unsupported file format: {suffix}. "
            f"Supported: {', '.join(sorted(RulesCatalogSource.SUPPORTED_EXTENSIONS))}"
        )

    try:
        raw_content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise CatalogSourceError(f"Failed to read file: {e}") from e

    try:
        if suffix == ".json":
            data = json.loads(raw_content)
        else:  # .yaml or .yml
            data = yaml.safe_load(raw_content)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise CatalogSourceError(f"Failed to parse {suffix} file: {e}") from e

    if not isinstance(data, dict):
        raise CatalogSourceError("Rules file must be a JSON/YAML object at the top level")

    schema = data.get("$schema")
    if schema and schema != RulesCatalogSource.CURRENT_SCHEMA:
        logger.warning(
            f"⚠️ Rules schema '{schema}' differs from current "
            f"'{RulesCatalogSource.CURRENT_SCHEMA}'. Some content may be skipped."
        )

    # Support both nested and flat structure
    return data.get("content", data)


class RulesCatalogSource(ABC):
    """
    Abstract base class for rules catalog sources.

    The engine only awaits these methods at its I/O boundary (session start
    and class changes). Spells and feats are held in dicts keyed by id;
    subclasses fill them in ``load``.
    """

    SUPPORTED_EXTENSIONS = {".json", ".yaml", ".yml"}
    CURRENT_SCHEMA = "dm20-levelup/rulebook-v1"

    def __init__(self, source_id: str, name: str | None = None):
        self.source_id = source_id
        self.name = name or source_id
        self.loaded_at: datetime | None = None
        self._loaded = False
        self._spells: dict[str, SpellDefinition] = {}
        self._feats: dict[str, FeatDefinition] = {}

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    @abstractmethod
    async def load(self) -> None:
        """Read all content and mark the source loaded."""

    @abstractmethod
    async def get_class_rules(self, class_name: str) -> ClassRules | None:
        """Class rules by name, or None when the class is unknown."""

    async def ensure_loaded(self) -> None:
        if not self._loaded:
            await self.load()

    async def get_feature_choices_at_level(
        self, class_name: str, level: int
    ) -> tuple[FeatureChoiceSpec, ...]:
        rules = await self.get_class_rules(class_name)
        if rules is None:
            return ()
        return rules.feature_choices_at(level)

    async def list_spells(self, spell_filter: SpellFilter) -> list[SpellDefinition]:
        await self.ensure_loaded()
        spells = [s for s in self._spells.values() if spell_filter.matches(s)]
        return sorted(spells, key=lambda s: (s.level, s.name))

    async def list_feats(self, feat_filter: FeatFilter) -> list[FeatDefinition]:
        await self.ensure_loaded()
        feats = [f for f in self._feats.values() if feat_filter.matches(f)]
        return sorted(feats, key=lambda f: f.name)

    async def get_spell(self, spell_id: str) -> SpellDefinition | None:
        await self.ensure_loaded()
        return self._spells.get(spell_id)

    async def get_feat(self, feat_id: str) -> FeatDefinition | None:
        await self.ensure_loaded()
        return self._feats.get(feat_id)

    def _parse_content(self, content: dict[str, Any], origin: Path) -> None:
        for item in content.get("spells", []):
            try:
                spell = SpellDefinition.model_validate({"source": self.source_id, **item})
                self._spells[spell.id] = spell
            except ValidationError as e:
                logger.warning(f"⚠️ Invalid spell definition in {origin}: {e}")

        for item in content.get("feats", []):
            try:
                feat = FeatDefinition.model_validate({"source": self.source_id, **item})
                self._feats[feat.id] = feat
            except ValidationError as e:
                logger.warning(f"⚠️ Invalid feat definition in {origin}: {e}")

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(id={self.source_id!r})"


class BuiltinCatalogSource(RulesCatalogSource):
    """Static SRD class tables plus the packaged spell and feat files."""

    def __init__(self, data_dir: Path | None = None):
        super().__init__(source_id="srd", name="SRD 5.1")
        self.data_dir = data_dir or DATA_DIR

    async def load(self) -> None:
        for filename in ("srd_spells.yaml", "srd_feats.yaml"):
            path = self.data_dir / filename
            self._parse_content(read_content_file(path), path)
        self._loaded = True
        self.loaded_at = datetime.now()
        logger.debug(
            f"✅ Loaded builtin rules: {len(self._spells)} spells, {len(self._feats)} feats"
        )

    async def get_class_rules(self, class_name: str) -> ClassRules | None:
        return get_class_rules(class_name)


class CustomCatalogSource(RulesCatalogSource):
    """
    Homebrew content layered over another source.

    Expected file structure:
    ```yaml
    $schema: dm20-levelup/rulebook-v1
    name: My Homebrew
    content:
      spells: [...]
      feats: [...]
      subclasses:
        - {class: Wizard, name: School of Chronurgy}
    ```
    Custom spells and feats override base entries with the same id.
    """

    def __init__(
        self,
        path: Path | str,
        base: RulesCatalogSource | None = None,
        source_id: str | None = None,
    ):
        self.path = Path(path)
        if source_id is None:
            # "my_spells.yaml" -> "custom-my-spells"
            source_id = f"custom-{self.path.stem.replace('_', '-').lower()}"
        super().__init__(source_id=source_id)
        self.base = base or BuiltinCatalogSource()
        self._extra_subclasses: dict[str, list[str]] = {}

    async def load(self) -> None:
        await self.base.ensure_loaded()
        content = read_content_file(self.path)

        self._spells = dict(self.base._spells)
        self._feats = dict(self.base._feats)
        self._parse_content(content, self.path)

        self._extra_subclasses = {}
        for item in content.get("subclasses", []):
            if not isinstance(item, dict) or "class" not in item or "name" not in item:
                logger.warning(f"⚠️ Invalid subclass definition in {self.path}: {item!r}")
                continue
            key = normalize_index(str(item["class"]))
            self._extra_subclasses.setdefault(key, []).append(str(item["name"]))

        self._loaded = True
        self.loaded_at = datetime.now()
        logger.info(f"📂 Loaded custom rules '{self.source_id}' from {self.path}")

    async def get_class_rules(self, class_name: str) -> ClassRules | None:
        await self.ensure_loaded()
        rules = await self.base.get_class_rules(class_name)
        if rules is None:
            return None
        extra = [
            name for name in self._extra_subclasses.get(normalize_index(class_name), [])
            if name not in rules.subclasses
        ]
        if not extra:
            return rules
        return replace(rules, subclasses=rules.subclasses + tuple(extra))


__all__ = [
    "CatalogSourceError",
    "RulesCatalogSource",
    "BuiltinCatalogSource",
    "CustomCatalogSource",
    "read_content_file",
]
