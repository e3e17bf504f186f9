"""
Rules catalog for dm20-levelup.

Static class progression tables, eligibility predicates, multiclass rules and
the async catalog sources the engine queries for spells and feats.
"""

from .models import (
    SpellcastingType,
    FeatureChoiceType,
    FeatureChoiceSpec,
    ResourceProgression,
    MulticlassPrerequisite,
    MulticlassGrant,
    ClassRules,
    OptionDefinition,
    SpellDefinition,
    FeatDefinition,
    SpellFilter,
    FeatFilter,
)
from .catalog import CLASS_RULES, get_class_rules
from .source import (
    CatalogSourceError,
    RulesCatalogSource,
    BuiltinCatalogSource,
    CustomCatalogSource,
)
from .multiclass import (
    LeaveClassPolicy,
    MulticlassCheck,
    can_add_class,
    can_leave_class,
    require_can_add_class,
    multiclass_proficiencies,
)

__all__ = [
    "SpellcastingType",
    "FeatureChoiceType",
    "FeatureChoiceSpec",
    "ResourceProgression",
    "MulticlassPrerequisite",
    "MulticlassGrant",
    "ClassRules",
    "OptionDefinition",
    "SpellDefinition",
    "FeatDefinition",
    "SpellFilter",
    "FeatFilter",
    "CLASS_RULES",
    "get_class_rules",
    "CatalogSourceError",
    "RulesCatalogSource",
    "BuiltinCatalogSource",
    "CustomCatalogSource",
    "LeaveClassPolicy",
    "MulticlassCheck",
    "can_add_class",
    "can_leave_class",
    "require_can_add_class",
    "multiclass_proficiencies",
]
