"""
Static class progression tables (SRD 5.1).

Pure lookup data: hit dice, spellcasting families, resource formulas,
feature-choice triggers, ASI levels, subclass unlock levels and the option
catalogs (fighting styles, metamagic, pact boons, invocations, favored
enemies and terrains). Nothing in here holds state.
"""

from __future__ import annotations

from .models import (
    ClassRules,
    FeatureChoiceSpec,
    FeatureChoiceType as FC,
    MulticlassGrant,
    MulticlassPrerequisite,
    OptionDefinition,
    ResourceProgression,
    SpellcastingType,
)


STANDARD_ASI_LEVELS = frozenset({4, 8, 12, 16, 19})

# Fighter gets extra ASI at levels 6 and 14
FIGHTER_EXTRA_ASI_LEVELS = frozenset({6, 14})

# Rogue gets extra ASI at level 10
ROGUE_EXTRA_ASI_LEVEL = frozenset({10})

SKILLS: dict[str, str] = {
    "Acrobatics": "dexterity",
    "Animal Handling": "wisdom",
    "Arcana": "intelligence",
    "Athletics": "strength",
    "Deception": "charisma",
    "History": "intelligence",
    "Insight": "wisdom",
    "Intimidation": "charisma",
    "Investigation": "intelligence",
    "Medicine": "wisdom",
    "Nature": "intelligence",
    "Perception": "wisdom",
    "Performance": "charisma",
    "Persuasion": "charisma",
    "Religion": "intelligence",
    "Sleight of Hand": "dexterity",
    "Stealth": "dexterity",
    "Survival": "wisdom",
}

# ---------------------------------------------------------------------------
# Option catalogs
# ---------------------------------------------------------------------------

FIGHTING_STYLES: dict[str, tuple[str, ...]] = {
    "fighter": ("Archery", "Defense", "Dueling", "Great Weapon Fighting", "Protection", "Two-Weapon Fighting"),
    "paladin": ("Defense", "Dueling", "Great Weapon Fighting", "Protection"),
    "ranger": ("Archery", "Defense", "Dueling", "Two-Weapon Fighting"),
}

METAMAGIC_OPTIONS: tuple[OptionDefinition, ...] = (
    OptionDefinition("careful", "Careful Spell", "Chosen creatures automatically succeed on the spell's saving throw."),
    OptionDefinition("distant", "Distant Spell", "Double the range of a spell."),
    OptionDefinition("empowered", "Empowered Spell", "Reroll a number of damage dice up to your CHA modifier."),
    OptionDefinition("extended", "Extended Spell", "Double the duration of a spell."),
    OptionDefinition("heightened", "Heightened Spell", "One target has disadvantage on its first save."),
    OptionDefinition("quickened", "Quickened Spell", "Cast a 1-action spell as a bonus action."),
    OptionDefinition("subtle", "Subtle Spell", "Cast without verbal or somatic components."),
    OptionDefinition("twinned", "Twinned Spell", "Target a second creature with a single-target spell."),
)

PACT_BOONS: tuple[OptionDefinition, ...] = (
    OptionDefinition("chain", "Pact of the Chain", "Learn find familiar and summon special familiars."),
    OptionDefinition("blade", "Pact of the Blade", "Create a pact weapon in your empty hand."),
    OptionDefinition("tome", "Pact of the Tome", "Receive a Book of Shadows with three cantrips."),
)

ELDRITCH_INVOCATIONS: tuple[OptionDefinition, ...] = (
    OptionDefinition("agonizing_blast", "Agonizing Blast", "Add CHA modifier to eldritch blast damage.", cantrip_required="eldritch-blast"),
    OptionDefinition("armor_of_shadows", "Armor of Shadows", "Cast mage armor on yourself at will."),
    OptionDefinition("ascendant_step", "Ascendant Step", "Cast levitate on yourself at will.", min_level=9),
    OptionDefinition("beast_speech", "Beast Speech", "Cast speak with animals at will."),
    OptionDefinition("beguiling_influence", "Beguiling Influence", "Gain proficiency in Deception and Persuasion."),
    OptionDefinition("bewitching_whispers", "Bewitching Whispers", "Cast compulsion once per long rest.", min_level=7),
    OptionDefinition("book_of_ancient_secrets", "Book of Ancient Secrets", "Inscribe rituals into your Book of Shadows.", pact_boon="tome"),
    OptionDefinition("chains_of_carceri", "Chains of Carceri", "Cast hold monster at will on celestials, fiends or elementals.", min_level=15, pact_boon="chain"),
    OptionDefinition("devils_sight", "Devil's Sight", "See normally in darkness up to 120 feet."),
    OptionDefinition("dreadful_word", "Dreadful Word", "Cast confusion once per long rest.", min_level=7),
    OptionDefinition("eldritch_sight", "Eldritch Sight", "Cast detect magic at will."),
    OptionDefinition("eldritch_spear", "Eldritch Spear", "Eldritch blast range becomes 300 feet.", cantrip_required="eldritch-blast"),
    OptionDefinition("eyes_of_the_rune_keeper", "Eyes of the Rune Keeper", "Read all writing."),
    OptionDefinition("fiendish_vigor", "Fiendish Vigor", "Cast false life on yourself at will."),
    OptionDefinition("gaze_of_two_minds", "Gaze of Two Minds", "Perceive through a willing humanoid's senses."),
    OptionDefinition("lifedrinker", "Lifedrinker", "Add CHA modifier to pact weapon damage.", min_level=12, pact_boon="blade"),
    OptionDefinition("mask_of_many_faces", "Mask of Many Faces", "Cast disguise self at will."),
    OptionDefinition("master_of_myriad_forms", "Master of Myriad Forms", "Cast alter self at will.", min_level=15),
    OptionDefinition("minions_of_chaos", "Minions of Chaos", "Cast conjure elemental once per long rest.", min_level=9),
    OptionDefinition("mire_the_mind", "Mire the Mind", "Cast slow once per long rest.", min_level=5),
    OptionDefinition("misty_visions", "Misty Visions", "Cast silent image at will."),
    OptionDefinition("one_with_shadows", "One with Shadows", "Become invisible in dim light or darkness.", min_level=5),
    OptionDefinition("otherworldly_leap", "Otherworldly Leap", "Cast jump on yourself at will.", min_level=9),
    OptionDefinition("repelling_blast", "Repelling Blast", "Push a creature 10 feet with eldritch blast.", cantrip_required="eldritch-blast"),
    OptionDefinition("sculptor_of_flesh", "Sculptor of Flesh", "Cast polymorph once per long rest.", min_level=7),
    OptionDefinition("sign_of_ill_omen", "Sign of Ill Omen", "Cast bestow curse once per long rest.", min_level=5),
    OptionDefinition("thief_of_five_fates", "Thief of Five Fates", "Cast bane once per long rest."),
    OptionDefinition("thirsting_blade", "Thirsting Blade", "Attack twice with your pact weapon.", min_level=5, pact_boon="blade"),
    OptionDefinition("visions_of_distant_realms", "Visions of Distant Realms", "Cast arcane eye at will.", min_level=15),
    OptionDefinition("voice_of_the_chain_master", "Voice of the Chain Master", "Perceive through and speak via your familiar.", pact_boon="chain"),
    OptionDefinition("whispers_of_the_grave", "Whispers of the Grave", "Cast speak with dead at will.", min_level=9),
    OptionDefinition("witch_sight", "Witch Sight", "See the true form of shapechangers.", min_level=15),
)

FAVORED_ENEMIES: tuple[str, ...] = (
    "aberrations", "beasts", "celestials", "constructs", "dragons", "elementals",
    "fey", "fiends", "giants", "monstrosities", "oozes", "plants", "undead",
    "humanoids",
)

FAVORED_TERRAINS: tuple[str, ...] = (
    "arctic", "coast", "desert", "forest", "grassland", "mountain", "swamp", "underdark",
)

# ---------------------------------------------------------------------------
# Spell progression tables
# ---------------------------------------------------------------------------

# Known-caster spells known, indexed by class level (index 0 unused)
SPELLS_KNOWN_PROGRESSION: dict[str, tuple[int, ...]] = {
    "bard": (0, 4, 5, 6, 7, 8, 9, 10, 11, 12, 14, 15, 15, 16, 18, 19, 19, 20, 22, 22, 22),
    "sorcerer": (0, 2, 3, 4, 5, 6, 7, 8, 9, 10, 11, 12, 12, 13, 13, 14, 14, 15, 15, 15, 15),
    "warlock": (0, 2, 3, 4, 5, 6, 7, 8, 9, 10, 10, 11, 11, 12, 12, 13, 13, 14, 14, 15, 15),
    "ranger": (0, 0, 2, 3, 3, 4, 4, 5, 5, 6, 6, 7, 7, 8, 8, 9, 9, 10, 10, 11, 11),
}

# Eldritch Knight / Arcane Trickster spells known, indexed by class level
THIRD_CASTER_KNOWN: tuple[int, ...] = (
    0, 0, 0, 3, 4, 4, 4, 5, 6, 6, 7, 8, 8, 9, 10, 10, 11, 11, 11, 12, 13,
)

# Subclasses that turn a non-casting class into a third-caster
THIRD_CASTER_SUBCLASSES: dict[str, str] = {
    "fighter": "Eldritch Knight",
    "rogue": "Arcane Trickster",
}

# Same for Eldritch Knight and Arcane Trickster
THIRD_CASTER_CANTRIPS: dict[int, int] = {3: 2, 10: 3}

# Third-casters learn from the wizard list
THIRD_CASTER_SPELL_LIST = "Wizard"

# Spellbook casters start with this many 1st-level spells
SPELLBOOK_STARTING_SPELLS = 6

FULL_CASTER_SLOTS: dict[int, tuple[int, ...]] = {
    1: (2,),
    2: (3,),
    3: (4, 2),
    4: (4, 3),
    5: (4, 3, 2),
    6: (4, 3, 3),
    7: (4, 3, 3, 1),
    8: (4, 3, 3, 2),
    9: (4, 3, 3, 3, 1),
    10: (4, 3, 3, 3, 2),
    11: (4, 3, 3, 3, 2, 1),
    12: (4, 3, 3, 3, 2, 1),
    13: (4, 3, 3, 3, 2, 1, 1),
    14: (4, 3, 3, 3, 2, 1, 1),
    15: (4, 3, 3, 3, 2, 1, 1, 1),
    16: (4, 3, 3, 3, 2, 1, 1, 1),
    17: (4, 3, 3, 3, 2, 1, 1, 1, 1),
    18: (4, 3, 3, 3, 3, 1, 1, 1, 1),
    19: (4, 3, 3, 3, 3, 2, 1, 1, 1),
    20: (4, 3, 3, 3, 3, 2, 2, 1, 1),
}

# Eldritch invocations known by warlock level (highest threshold reached)
INVOCATIONS_KNOWN: tuple[tuple[int, int], ...] = (
    (18, 8), (15, 7), (12, 6), (9, 5), (7, 4), (5, 3), (2, 2),
)

# Warlock level → Mystic Arcanum spell level
MYSTIC_ARCANUM_LEVELS: dict[int, int] = {11: 6, 13: 7, 15: 8, 17: 9}


def pact_slot_level(warlock_level: int) -> int:
    if warlock_level >= 9:
        return 5
    if warlock_level >= 7:
        return 4
    if warlock_level >= 5:
        return 3
    if warlock_level >= 3:
        return 2
    return 1 if warlock_level >= 1 else 0


def pact_slot_count(warlock_level: int) -> int:
    if warlock_level >= 17:
        return 4
    if warlock_level >= 11:
        return 3
    if warlock_level >= 2:
        return 2
    return 1 if warlock_level >= 1 else 0


# ---------------------------------------------------------------------------
# Resource formulas
# ---------------------------------------------------------------------------

def _rage_uses(level: int, _mod: int) -> int:
    if level >= 20:
        return 999
    if level >= 17:
        return 6
    if level >= 12:
        return 5
    if level >= 6:
        return 4
    if level >= 3:
        return 3
    return 2


def _channel_divinity_cleric(level: int, _mod: int) -> int:
    if level >= 18:
        return 3
    if level >= 6:
        return 2
    return 1


def _indomitable(level: int, _mod: int) -> int:
    if level >= 17:
        return 3
    if level >= 13:
        return 2
    return 1


# ---------------------------------------------------------------------------
# Class rules
# ---------------------------------------------------------------------------

_SUBCLASS_FEATURE = "{} feature"

CLASS_RULES: dict[str, ClassRules] = {
    "barbarian": ClassRules(
        name="Barbarian",
        hit_die=12,
        subclass_level=3,
        subclasses=("Path of the Berserker", "Path of the Totem Warrior"),
        resources=(
            ResourceProgression("rage", "Rage", _rage_uses, "long", 1),
        ),
        feature_choice_levels={3: (FeatureChoiceSpec(FC.PRIMAL_PATH),)},
        features_by_level={
            1: ("Rage", "Unarmored Defense"),
            2: ("Reckless Attack", "Danger Sense"),
            3: ("Primal Path",),
            5: ("Extra Attack", "Fast Movement"),
            6: ("Path feature",),
            7: ("Feral Instinct",),
            9: ("Brutal Critical (1 die)",),
            10: ("Path feature",),
            11: ("Relentless Rage",),
            13: ("Brutal Critical (2 dice)",),
            14: ("Path feature",),
            15: ("Persistent Rage",),
            17: ("Brutal Critical (3 dice)",),
            18: ("Indomitable Might",),
            20: ("Primal Champion",),
        },
        saving_throws=("strength", "constitution"),
        armor_proficiencies=("light armor", "medium armor", "shields"),
        weapon_proficiencies=("simple weapons", "martial weapons"),
        multiclass_prerequisite=MulticlassPrerequisite(((("strength", 13),),)),
        multiclass_grant=MulticlassGrant(
            armor=("shields",), weapons=("simple weapons", "martial weapons"),
        ),
    ),
    "bard": ClassRules(
        name="Bard",
        hit_die=8,
        spellcasting_type=SpellcastingType.KNOWN,
        spellcasting_ability="charisma",
        caster_divisor=1,
        subclass_level=3,
        subclasses=("College of Lore", "College of Valor"),
        cantrip_progression={1: 2, 4: 3, 10: 4},
        resources=(
            ResourceProgression(
                "bardic_inspiration", "Bardic Inspiration",
                lambda level, mod: max(1, mod), "long", 1, "charisma",
            ),
        ),
        feature_choice_levels={
            3: (FeatureChoiceSpec(FC.BARD_COLLEGE), FeatureChoiceSpec(FC.EXPERTISE, 2)),
            10: (FeatureChoiceSpec(FC.EXPERTISE, 2), FeatureChoiceSpec(FC.MAGICAL_SECRETS, 2)),
            14: (FeatureChoiceSpec(FC.MAGICAL_SECRETS, 2),),
            18: (FeatureChoiceSpec(FC.MAGICAL_SECRETS, 2),),
        },
        features_by_level={
            1: ("Spellcasting", "Bardic Inspiration (d6)"),
            2: ("Jack of All Trades", "Song of Rest (d6)"),
            3: ("Bard College", "Expertise"),
            5: ("Bardic Inspiration (d8)", "Font of Inspiration"),
            6: ("Countercharm", "Bard College feature"),
            9: ("Song of Rest (d8)",),
            10: ("Bardic Inspiration (d10)", "Expertise", "Magical Secrets"),
            13: ("Song of Rest (d10)",),
            14: ("Magical Secrets", "Bard College feature"),
            15: ("Bardic Inspiration (d12)",),
            17: ("Song of Rest (d12)",),
            18: ("Magical Secrets",),
            20: ("Superior Inspiration",),
        },
        saving_throws=("dexterity", "charisma"),
        armor_proficiencies=("light armor",),
        weapon_proficiencies=("simple weapons", "hand crossbows", "longswords", "rapiers", "shortswords"),
        multiclass_prerequisite=MulticlassPrerequisite(((("charisma", 13),),)),
        multiclass_grant=MulticlassGrant(armor=("light armor",), skill_count=1),
    ),
    "cleric": ClassRules(
        name="Cleric",
        hit_die=8,
        spellcasting_type=SpellcastingType.PREPARED,
        spellcasting_ability="wisdom",
        caster_divisor=1,
        subclass_level=1,
        subclasses=(
            "Knowledge Domain", "Life Domain", "Light Domain", "Nature Domain",
            "Tempest Domain", "Trickery Domain", "War Domain",
        ),
        cantrip_progression={1: 3, 4: 4, 10: 5},
        resources=(
            ResourceProgression("channel_divinity", "Channel Divinity", _channel_divinity_cleric, "short", 2),
        ),
        feature_choice_levels={1: (FeatureChoiceSpec(FC.DIVINE_DOMAIN),)},
        features_by_level={
            1: ("Spellcasting", "Divine Domain"),
            2: ("Channel Divinity (1/rest)", "Divine Domain feature"),
            5: ("Destroy Undead (CR 1/2)",),
            6: ("Channel Divinity (2/rest)", "Divine Domain feature"),
            8: ("Destroy Undead (CR 1)", "Divine Domain feature"),
            10: ("Divine Intervention",),
            11: ("Destroy Undead (CR 2)",),
            14: ("Destroy Undead (CR 3)",),
            17: ("Destroy Undead (CR 4)", "Divine Domain feature"),
            18: ("Channel Divinity (3/rest)",),
            20: ("Divine Intervention Improvement",),
        },
        saving_throws=("wisdom", "charisma"),
        armor_proficiencies=("light armor", "medium armor", "shields"),
        weapon_proficiencies=("simple weapons",),
        multiclass_prerequisite=MulticlassPrerequisite(((("wisdom", 13),),)),
        multiclass_grant=MulticlassGrant(armor=("light armor", "medium armor", "shields")),
    ),
    "druid": ClassRules(
        name="Druid",
        hit_die=8,
        spellcasting_type=SpellcastingType.PREPARED,
        spellcasting_ability="wisdom",
        caster_divisor=1,
        subclass_level=2,
        subclasses=("Circle of the Land", "Circle of the Moon"),
        cantrip_progression={1: 2, 4: 3, 10: 4},
        resources=(
            ResourceProgression("wild_shape", "Wild Shape", lambda level, mod: 2, "short", 2),
        ),
        feature_choice_levels={2: (FeatureChoiceSpec(FC.DRUID_CIRCLE),)},
        features_by_level={
            1: ("Druidic", "Spellcasting"),
            2: ("Wild Shape", "Druid Circle"),
            4: ("Wild Shape Improvement",),
            6: ("Druid Circle feature",),
            8: ("Wild Shape Improvement",),
            10: ("Druid Circle feature",),
            14: ("Druid Circle feature",),
            18: ("Timeless Body", "Beast Spells"),
            20: ("Archdruid",),
        },
        saving_throws=("intelligence", "wisdom"),
        armor_proficiencies=("light armor", "medium armor", "shields"),
        weapon_proficiencies=("clubs", "daggers", "darts", "javelins", "maces", "quarterstaffs", "scimitars", "sickles", "slings", "spears"),
        multiclass_prerequisite=MulticlassPrerequisite(((("wisdom", 13),),)),
        multiclass_grant=MulticlassGrant(armor=("light armor", "medium armor", "shields")),
    ),
    "fighter": ClassRules(
        name="Fighter",
        hit_die=10,
        subclass_level=3,
        subclasses=("Champion", "Battle Master", "Eldritch Knight"),
        asi_levels=STANDARD_ASI_LEVELS | FIGHTER_EXTRA_ASI_LEVELS,
        resources=(
            ResourceProgression("second_wind", "Second Wind", lambda level, mod: 1, "short", 1),
            ResourceProgression("action_surge", "Action Surge", lambda level, mod: 2 if level >= 17 else 1, "short", 2),
            ResourceProgression("indomitable", "Indomitable", _indomitable, "long", 9),
        ),
        feature_choice_levels={
            1: (FeatureChoiceSpec(FC.FIGHTING_STYLE, 1, FIGHTING_STYLES["fighter"]),),
            3: (FeatureChoiceSpec(FC.MARTIAL_ARCHETYPE),),
        },
        features_by_level={
            1: ("Fighting Style", "Second Wind"),
            2: ("Action Surge (one use)",),
            3: ("Martial Archetype",),
            5: ("Extra Attack",),
            7: ("Martial Archetype feature",),
            9: ("Indomitable (one use)",),
            10: ("Martial Archetype feature",),
            11: ("Extra Attack (2)",),
            13: ("Indomitable (two uses)",),
            15: ("Martial Archetype feature",),
            17: ("Action Surge (two uses)", "Indomitable (three uses)"),
            18: ("Martial Archetype feature",),
            20: ("Extra Attack (3)",),
        },
        saving_throws=("strength", "constitution"),
        armor_proficiencies=("light armor", "medium armor", "heavy armor", "shields"),
        weapon_proficiencies=("simple weapons", "martial weapons"),
        multiclass_prerequisite=MulticlassPrerequisite(
            ((("strength", 13), ("dexterity", 13)),),
        ),
        multiclass_grant=MulticlassGrant(
            armor=("light armor", "medium armor", "shields"),
            weapons=("simple weapons", "martial weapons"),
        ),
    ),
    "monk": ClassRules(
        name="Monk",
        hit_die=8,
        subclass_level=3,
        subclasses=("Way of the Open Hand", "Way of Shadow", "Way of the Four Elements"),
        resources=(
            ResourceProgression("ki_points", "Ki Points", lambda level, mod: level, "short", 2),
        ),
        feature_choice_levels={3: (FeatureChoiceSpec(FC.MONASTIC_TRADITION),)},
        features_by_level={
            1: ("Unarmored Defense", "Martial Arts"),
            2: ("Ki", "Unarmored Movement"),
            3: ("Monastic Tradition", "Deflect Missiles"),
            4: ("Slow Fall",),
            5: ("Extra Attack", "Stunning Strike"),
            6: ("Ki-Empowered Strikes", "Monastic Tradition feature"),
            7: ("Evasion", "Stillness of Mind"),
            9: ("Unarmored Movement improvement",),
            10: ("Purity of Body",),
            11: ("Monastic Tradition feature",),
            13: ("Tongue of the Sun and Moon",),
            14: ("Diamond Soul",),
            15: ("Timeless Body",),
            17: ("Monastic Tradition feature",),
            18: ("Empty Body",),
            20: ("Perfect Self",),
        },
        saving_throws=("strength", "dexterity"),
        weapon_proficiencies=("simple weapons", "shortswords"),
        multiclass_prerequisite=MulticlassPrerequisite(
            ((("dexterity", 13),), (("wisdom", 13),)),
        ),
        multiclass_grant=MulticlassGrant(weapons=("simple weapons", "shortswords")),
    ),
    "paladin": ClassRules(
        name="Paladin",
        hit_die=10,
        spellcasting_type=SpellcastingType.PREPARED,
        spellcasting_ability="charisma",
        caster_divisor=2,
        subclass_level=3,
        subclasses=("Oath of Devotion", "Oath of the Ancients", "Oath of Vengeance"),
        resources=(
            ResourceProgression("lay_on_hands", "Lay on Hands", lambda level, mod: level * 5, "long", 1),
            ResourceProgression("channel_divinity", "Channel Divinity", lambda level, mod: 1, "short", 3),
            ResourceProgression(
                "divine_sense", "Divine Sense",
                lambda level, mod: 1 + max(0, mod), "long", 1, "charisma",
            ),
        ),
        feature_choice_levels={
            2: (FeatureChoiceSpec(FC.FIGHTING_STYLE, 1, FIGHTING_STYLES["paladin"]),),
            3: (FeatureChoiceSpec(FC.SACRED_OATH),),
        },
        features_by_level={
            1: ("Divine Sense", "Lay on Hands"),
            2: ("Fighting Style", "Spellcasting", "Divine Smite"),
            3: ("Divine Health", "Sacred Oath"),
            5: ("Extra Attack",),
            6: ("Aura of Protection",),
            7: ("Sacred Oath feature",),
            10: ("Aura of Courage",),
            11: ("Improved Divine Smite",),
            14: ("Cleansing Touch",),
            15: ("Sacred Oath feature",),
            18: ("Aura improvements",),
            20: ("Sacred Oath feature",),
        },
        saving_throws=("wisdom", "charisma"),
        armor_proficiencies=("light armor", "medium armor", "heavy armor", "shields"),
        weapon_proficiencies=("simple weapons", "martial weapons"),
        multiclass_prerequisite=MulticlassPrerequisite(
            ((("strength", 13),), (("charisma", 13),)),
        ),
        multiclass_grant=MulticlassGrant(
            armor=("light armor", "medium armor", "shields"),
            weapons=("simple weapons", "martial weapons"),
        ),
    ),
    "ranger": ClassRules(
        name="Ranger",
        hit_die=10,
        spellcasting_type=SpellcastingType.KNOWN,
        spellcasting_ability="wisdom",
        caster_divisor=2,
        subclass_level=3,
        subclasses=("Hunter", "Beast Master"),
        feature_choice_levels={
            1: (FeatureChoiceSpec(FC.FAVORED_ENEMY, 1, FAVORED_ENEMIES),
                FeatureChoiceSpec(FC.FAVORED_TERRAIN, 1, FAVORED_TERRAINS)),
            2: (FeatureChoiceSpec(FC.FIGHTING_STYLE, 1, FIGHTING_STYLES["ranger"]),),
            3: (FeatureChoiceSpec(FC.RANGER_ARCHETYPE),),
            6: (FeatureChoiceSpec(FC.FAVORED_ENEMY, 1, FAVORED_ENEMIES),
                FeatureChoiceSpec(FC.FAVORED_TERRAIN, 1, FAVORED_TERRAINS)),
            10: (FeatureChoiceSpec(FC.FAVORED_TERRAIN, 1, FAVORED_TERRAINS),),
            14: (FeatureChoiceSpec(FC.FAVORED_ENEMY, 1, FAVORED_ENEMIES),),
        },
        features_by_level={
            1: ("Favored Enemy", "Natural Explorer"),
            2: ("Fighting Style", "Spellcasting"),
            3: ("Ranger Archetype", "Primeval Awareness"),
            5: ("Extra Attack",),
            6: ("Favored Enemy and Natural Explorer improvements",),
            7: ("Ranger Archetype feature",),
            8: ("Land's Stride",),
            10: ("Natural Explorer improvement", "Hide in Plain Sight"),
            11: ("Ranger Archetype feature",),
            14: ("Favored Enemy improvement", "Vanish"),
            15: ("Ranger Archetype feature",),
            18: ("Feral Senses",),
            20: ("Foe Slayer",),
        },
        saving_throws=("strength", "dexterity"),
        armor_proficiencies=("light armor", "medium armor", "shields"),
        weapon_proficiencies=("simple weapons", "martial weapons"),
        multiclass_prerequisite=MulticlassPrerequisite(
            ((("dexterity", 13),), (("wisdom", 13),)),
        ),
        multiclass_grant=MulticlassGrant(
            armor=("light armor", "medium armor", "shields"),
            weapons=("simple weapons", "martial weapons"),
            skill_count=1,
            skill_options=(
                "Animal Handling", "Athletics", "Insight", "Investigation",
                "Nature", "Perception", "Stealth", "Survival",
            ),
        ),
    ),
    "rogue": ClassRules(
        name="Rogue",
        hit_die=8,
        subclass_level=3,
        subclasses=("Thief", "Assassin", "Arcane Trickster"),
        asi_levels=STANDARD_ASI_LEVELS | ROGUE_EXTRA_ASI_LEVEL,
        feature_choice_levels={
            1: (FeatureChoiceSpec(FC.EXPERTISE, 2),),
            3: (FeatureChoiceSpec(FC.ROGUISH_ARCHETYPE),),
            6: (FeatureChoiceSpec(FC.EXPERTISE, 2),),
        },
        features_by_level={
            1: ("Expertise", "Sneak Attack", "Thieves' Cant"),
            2: ("Cunning Action",),
            3: ("Roguish Archetype",),
            5: ("Uncanny Dodge",),
            6: ("Expertise",),
            7: ("Evasion",),
            9: ("Roguish Archetype feature",),
            11: ("Reliable Talent",),
            13: ("Roguish Archetype feature",),
            14: ("Blindsense",),
            15: ("Slippery Mind",),
            17: ("Roguish Archetype feature",),
            18: ("Elusive",),
            20: ("Stroke of Luck",),
        },
        saving_throws=("dexterity", "intelligence"),
        armor_proficiencies=("light armor",),
        weapon_proficiencies=("simple weapons", "hand crossbows", "longswords", "rapiers", "shortswords"),
        multiclass_prerequisite=MulticlassPrerequisite(((("dexterity", 13),),)),
        multiclass_grant=MulticlassGrant(
            armor=("light armor",), tools=("thieves' tools",), skill_count=1,
        ),
    ),
    "sorcerer": ClassRules(
        name="Sorcerer",
        hit_die=6,
        spellcasting_type=SpellcastingType.KNOWN,
        spellcasting_ability="charisma",
        caster_divisor=1,
        subclass_level=1,
        subclasses=("Draconic Bloodline", "Wild Magic"),
        cantrip_progression={1: 4, 4: 5, 10: 6},
        resources=(
            ResourceProgression("sorcery_points", "Sorcery Points", lambda level, mod: level, "long", 2),
        ),
        feature_choice_levels={
            1: (FeatureChoiceSpec(FC.SORCEROUS_ORIGIN),),
            3: (FeatureChoiceSpec(FC.METAMAGIC, 2),),
            10: (FeatureChoiceSpec(FC.METAMAGIC, 1),),
            17: (FeatureChoiceSpec(FC.METAMAGIC, 1),),
        },
        features_by_level={
            1: ("Spellcasting", "Sorcerous Origin"),
            2: ("Font of Magic",),
            3: ("Metamagic",),
            6: ("Sorcerous Origin feature",),
            10: ("Metamagic",),
            14: ("Sorcerous Origin feature",),
            17: ("Metamagic",),
            18: ("Sorcerous Origin feature",),
            20: ("Sorcerous Restoration",),
        },
        saving_throws=("constitution", "charisma"),
        weapon_proficiencies=("daggers", "darts", "slings", "quarterstaffs", "light crossbows"),
        multiclass_prerequisite=MulticlassPrerequisite(((("charisma", 13),),)),
    ),
    "warlock": ClassRules(
        name="Warlock",
        hit_die=8,
        spellcasting_type=SpellcastingType.PACT,
        spellcasting_ability="charisma",
        subclass_level=1,
        subclasses=("The Archfey", "The Fiend", "The Great Old One"),
        cantrip_progression={1: 2, 4: 3, 10: 4},
        feature_choice_levels={
            1: (FeatureChoiceSpec(FC.OTHERWORLDLY_PATRON),),
            2: (FeatureChoiceSpec(FC.INVOCATION, 2),),
            3: (FeatureChoiceSpec(FC.PACT_BOON, 1, tuple(b.id for b in PACT_BOONS)),),
            5: (FeatureChoiceSpec(FC.INVOCATION, 1, replace_count=1),),
            7: (FeatureChoiceSpec(FC.INVOCATION, 1, replace_count=1),),
            9: (FeatureChoiceSpec(FC.INVOCATION, 1, replace_count=1),),
            12: (FeatureChoiceSpec(FC.INVOCATION, 1, replace_count=1),),
            15: (FeatureChoiceSpec(FC.INVOCATION, 1, replace_count=1),),
            18: (FeatureChoiceSpec(FC.INVOCATION, 1, replace_count=1),),
        },
        features_by_level={
            1: ("Otherworldly Patron", "Pact Magic"),
            2: ("Eldritch Invocations",),
            3: ("Pact Boon",),
            6: ("Otherworldly Patron feature",),
            10: ("Otherworldly Patron feature",),
            11: ("Mystic Arcanum (6th level)",),
            13: ("Mystic Arcanum (7th level)",),
            14: ("Otherworldly Patron feature",),
            15: ("Mystic Arcanum (8th level)",),
            17: ("Mystic Arcanum (9th level)",),
            20: ("Eldritch Master",),
        },
        saving_throws=("wisdom", "charisma"),
        armor_proficiencies=("light armor",),
        weapon_proficiencies=("simple weapons",),
        multiclass_prerequisite=MulticlassPrerequisite(((("charisma", 13),),)),
        multiclass_grant=MulticlassGrant(armor=("light armor",), weapons=("simple weapons",)),
    ),
    "wizard": ClassRules(
        name="Wizard",
        hit_die=6,
        spellcasting_type=SpellcastingType.PREPARED,
        spellcasting_ability="intelligence",
        caster_divisor=1,
        subclass_level=2,
        subclasses=(
            "School of Abjuration", "School of Conjuration", "School of Divination",
            "School of Enchantment", "School of Evocation", "School of Illusion",
            "School of Necromancy", "School of Transmutation",
        ),
        cantrip_progression={1: 3, 4: 4, 10: 5},
        spells_per_level=2,
        resources=(
            ResourceProgression(
                "arcane_recovery", "Arcane Recovery", lambda level, mod: 1, "long", 1,
            ),
        ),
        feature_choice_levels={2: (FeatureChoiceSpec(FC.ARCANE_TRADITION),)},
        features_by_level={
            1: ("Spellcasting", "Arcane Recovery"),
            2: ("Arcane Tradition",),
            6: ("Arcane Tradition feature",),
            10: ("Arcane Tradition feature",),
            14: ("Arcane Tradition feature",),
            18: ("Spell Mastery",),
            20: ("Signature Spells",),
        },
        saving_throws=("intelligence", "wisdom"),
        weapon_proficiencies=("daggers", "darts", "slings", "quarterstaffs", "light crossbows"),
        multiclass_prerequisite=MulticlassPrerequisite(((("intelligence", 13),),)),
    ),
}


def normalize_index(name: str) -> str:
    """Convert user-facing name to catalog index format (lowercase, hyphenated)."""
    return name.strip().lower().replace(" ", "-").replace("_", "-")


def get_class_rules(class_name: str) -> ClassRules | None:
    """Look up class rules by name. Returns None for unknown classes."""
    return CLASS_RULES.get(normalize_index(class_name))


def class_names() -> list[str]:
    return [rules.name for rules in CLASS_RULES.values()]


def fighting_styles_for(class_name: str) -> tuple[str, ...]:
    return FIGHTING_STYLES.get(normalize_index(class_name), ())


def get_invocation(invocation_id: str) -> OptionDefinition | None:
    for invocation in ELDRITCH_INVOCATIONS:
        if invocation.id == invocation_id:
            return invocation
    return None


def option_ids(options: tuple[OptionDefinition, ...]) -> tuple[str, ...]:
    return tuple(o.id for o in options)


__all__ = [
    "STANDARD_ASI_LEVELS",
    "FIGHTER_EXTRA_ASI_LEVELS",
    "ROGUE_EXTRA_ASI_LEVEL",
    "SKILLS",
    "FIGHTING_STYLES",
    "METAMAGIC_OPTIONS",
    "PACT_BOONS",
    "ELDRITCH_INVOCATIONS",
    "FAVORED_ENEMIES",
    "FAVORED_TERRAINS",
    "SPELLS_KNOWN_PROGRESSION",
    "THIRD_CASTER_KNOWN",
    "THIRD_CASTER_SUBCLASSES",
    "THIRD_CASTER_CANTRIPS",
    "THIRD_CASTER_SPELL_LIST",
    "SPELLBOOK_STARTING_SPELLS",
    "FULL_CASTER_SLOTS",
    "INVOCATIONS_KNOWN",
    "MYSTIC_ARCANUM_LEVELS",
    "CLASS_RULES",
    "pact_slot_level",
    "pact_slot_count",
    "normalize_index",
    "get_class_rules",
    "class_names",
    "fighting_styles_for",
    "get_invocation",
    "option_ids",
]
