"""
Staged choice values.

Every value a wizard step can hold is one variant of the ``StagedValue``
union, discriminated on ``type``. Each step kind accepts exactly one variant
(``VALUE_TYPE_BY_KIND``); the validator and commit engine match on it.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from .models import normalize_ability
from .step_planner import StepKind


class _StagedBase(BaseModel):
    model_config = ConfigDict(frozen=True)


class ClassSelectChoice(_StagedBase):
    type: Literal["class_select"] = "class_select"
    class_name: str


class HitPointsChoice(_StagedBase):
    """Hit point roll for the level. ``roll`` is required when method is "roll"."""
    type: Literal["hit_points"] = "hit_points"
    method: Literal["roll", "average"] = "average"
    roll: int | None = None


class SubclassChoice(_StagedBase):
    type: Literal["subclass"] = "subclass"
    subclass: str


class SpellsChoice(_StagedBase):
    """Spell ids for cantrip, spell and magical-secrets steps."""
    type: Literal["spells"] = "spells"
    spell_ids: tuple[str, ...] = ()


def merge_increases(increases: dict[str, int]) -> dict[str, int]:
    """Sum increases per ability, so 'STR' and 'strength' land on one key."""
    merged: dict[str, int] = {}
    for ability, amount in increases.items():
        name = normalize_ability(ability)
        merged[name] = merged.get(name, 0) + amount
    return merged


class AsiChoice(_StagedBase):
    """Either ability increases or a feat, never both."""
    type: Literal["asi"] = "asi"
    increases: dict[str, int] = Field(default_factory=dict)
    feat_id: str | None = None

    @field_validator("increases")
    @classmethod
    def merge_aliases(cls, v: dict[str, int]) -> dict[str, int]:
        return merge_increases(v)


class FeatureChoice(_StagedBase):
    """Picks for option-list steps (fighting style, expertise, metamagic...)."""
    type: Literal["feature"] = "feature"
    values: tuple[str, ...] = ()


class InvocationsChoice(_StagedBase):
    type: Literal["invocations"] = "invocations"
    added: tuple[str, ...] = ()
    removed: tuple[str, ...] = ()


class MysticArcanumChoice(_StagedBase):
    type: Literal["mystic_arcanum"] = "mystic_arcanum"
    spell_id: str


class AcknowledgeChoice(_StagedBase):
    type: Literal["acknowledge"] = "acknowledge"
    acknowledged: bool = True


StagedValue = Annotated[
    Union[
        ClassSelectChoice,
        HitPointsChoice,
        SubclassChoice,
        SpellsChoice,
        AsiChoice,
        FeatureChoice,
        InvocationsChoice,
        MysticArcanumChoice,
        AcknowledgeChoice,
    ],
    Field(discriminator="type"),
]

STAGED_VALUE_ADAPTER: TypeAdapter = TypeAdapter(StagedValue)

VALUE_TYPE_BY_KIND: dict[StepKind, type[_StagedBase]] = {
    StepKind.CLASS_SELECT: ClassSelectChoice,
    StepKind.HP_ROLL: HitPointsChoice,
    StepKind.MULTICLASS_SKILL: FeatureChoice,
    StepKind.SUBCLASS: SubclassChoice,
    StepKind.CANTRIPS: SpellsChoice,
    StepKind.SPELLS: SpellsChoice,
    StepKind.FIGHTING_STYLE: FeatureChoice,
    StepKind.EXPERTISE: FeatureChoice,
    StepKind.METAMAGIC: FeatureChoice,
    StepKind.MAGICAL_SECRETS: SpellsChoice,
    StepKind.FAVORED_ENEMY: FeatureChoice,
    StepKind.FAVORED_TERRAIN: FeatureChoice,
    StepKind.PACT_BOON: FeatureChoice,
    StepKind.INVOCATIONS: InvocationsChoice,
    StepKind.MYSTIC_ARCANUM: MysticArcanumChoice,
    StepKind.ASI_OR_FEAT: AsiChoice,
    StepKind.FEATURES: AcknowledgeChoice,
    StepKind.REVIEW: AcknowledgeChoice,
}

# Field a bare string / list is wrapped into, per variant
_SHORTHAND_FIELD: dict[type[_StagedBase], str] = {
    ClassSelectChoice: "class_name",
    SubclassChoice: "subclass",
    SpellsChoice: "spell_ids",
    FeatureChoice: "values",
    InvocationsChoice: "added",
    MysticArcanumChoice: "spell_id",
}


def parse_staged_value(kind: StepKind, raw: Any) -> Any:
    """Build the variant for ``kind`` from a model, dict or shorthand value.

    Shorthands: a string or list fills the variant's main field (``"Thief"``
    for a subclass, ``["fire-bolt"]`` for cantrips); an int is a hit point
    roll. Raises ``pydantic.ValidationError`` on malformed input.
    """
    expected = VALUE_TYPE_BY_KIND[kind]
    if isinstance(raw, _StagedBase):
        return raw
    if isinstance(raw, dict):
        data = dict(raw)
        data.setdefault("type", expected.model_fields["type"].default)
        return STAGED_VALUE_ADAPTER.validate_python(data)
    if expected is HitPointsChoice:
        if raw in (None, "average"):
            return HitPointsChoice(method="average")
        return HitPointsChoice(method="roll", roll=raw)
    if expected is AcknowledgeChoice:
        return AcknowledgeChoice(acknowledged=bool(raw) if raw is not None else True)
    field_name = _SHORTHAND_FIELD[expected]
    if isinstance(raw, str) and field_name in ("spell_ids", "values", "added"):
        raw = [raw]
    return expected.model_validate({field_name: raw})


def dump_staged_value(value: Any) -> dict[str, Any]:
    return value.model_dump(mode="json")


__all__ = [
    "ClassSelectChoice",
    "HitPointsChoice",
    "SubclassChoice",
    "SpellsChoice",
    "AsiChoice",
    "merge_increases",
    "FeatureChoice",
    "InvocationsChoice",
    "MysticArcanumChoice",
    "AcknowledgeChoice",
    "StagedValue",
    "STAGED_VALUE_ADAPTER",
    "VALUE_TYPE_BY_KIND",
    "parse_staged_value",
    "dump_staged_value",
]
