""" Event command vocabulary and command line parsing.

Every command the engine can emit is a member of CommandType. Script authors
can also use a number of short aliases (e.g. "s" for speak, "kill" for
kill_unit) which are resolved before the tag is checked against the
vocabulary. Tags that don't resolve are dropped, not errors.

The engine only classifies commands. What they do is up to the host.
"""

import dataclasses
import enum
import logging
from typing import Any, Optional, Sequence

from eventscript import config, util

logger = logging.getLogger(__name__)


class CommandType(enum.Enum):
    # flow control
    COMMENT = "comment"
    IF = "if"
    ELIF = "elif"
    ELSE = "else"
    END = "end"
    FOR = "for"
    ENDF = "endf"
    FINISH = "finish"
    WAIT = "wait"
    END_SKIP = "end_skip"
    # music and sound
    MUSIC = "music"
    MUSIC_FADE_BACK = "music_fade_back"
    MUSIC_CLEAR = "music_clear"
    SOUND = "sound"
    STOP_SOUND = "stop_sound"
    CHANGE_MUSIC = "change_music"
    CHANGE_SPECIAL_MUSIC = "change_special_music"
    # portraits
    ADD_PORTRAIT = "add_portrait"
    MULTI_ADD_PORTRAIT = "multi_add_portrait"
    REMOVE_PORTRAIT = "remove_portrait"
    MULTI_REMOVE_PORTRAIT = "multi_remove_portrait"
    REMOVE_ALL_PORTRAITS = "remove_all_portraits"
    MOVE_PORTRAIT = "move_portrait"
    BOP_PORTRAIT = "bop_portrait"
    MIRROR_PORTRAIT = "mirror_portrait"
    EXPRESSION = "expression"
    # dialogue
    SPEAK_STYLE = "speak_style"
    SPEAK = "speak"
    SAY = "say"
    UNHOLD = "unhold"
    UNPAUSE = "unpause"
    NARRATE = "narrate"
    ALERT = "alert"
    LOCATION_CARD = "location_card"
    CREDITS = "credits"
    ENDING = "ending"
    PAIRED_ENDING = "paired_ending"
    POP_DIALOG = "pop_dialog"
    TOGGLE_NARRATION_MODE = "toggle_narration_mode"
    HIDE_COMBAT_UI = "hide_combat_ui"
    SHOW_COMBAT_UI = "show_combat_ui"
    # background and foreground
    TRANSITION = "transition"
    CHANGE_BACKGROUND = "change_background"
    PAUSE_BACKGROUND = "pause_background"
    UNPAUSE_BACKGROUND = "unpause_background"
    # cursor and camera
    DISP_CURSOR = "disp_cursor"
    MOVE_CURSOR = "move_cursor"
    CENTER_CURSOR = "center_cursor"
    FLICKER_CURSOR = "flicker_cursor"
    SCREEN_SHAKE = "screen_shake"
    SCREEN_SHAKE_END = "screen_shake_end"
    # game (session) variables and campaign state
    GAME_VAR = "game_var"
    INC_GAME_VAR = "inc_game_var"
    MODIFY_GAME_VAR = "modify_game_var"
    SET_NEXT_CHAPTER = "set_next_chapter"
    ENABLE_CONVOY = "enable_convoy"
    ENABLE_SUPPORTS = "enable_supports"
    ENABLE_TURNWHEEL = "enable_turnwheel"
    GIVE_MONEY = "give_money"
    GIVE_BEXP = "give_bexp"
    ADD_MARKET_ITEM = "add_market_item"
    REMOVE_MARKET_ITEM = "remove_market_item"
    ADD_LORE = "add_lore"
    # level variables and level state
    LEVEL_VAR = "level_var"
    INC_LEVEL_VAR = "inc_level_var"
    MODIFY_LEVEL_VAR = "modify_level_var"
    END_TURN = "end_turn"
    WIN_GAME = "win_game"
    LOSE_GAME = "lose_game"
    MAIN_MENU = "main_menu"
    SKIP_SAVE = "skip_save"
    ADD_TALK = "add_talk"
    REMOVE_TALK = "remove_talk"
    HIDE_TALK = "hide_talk"
    UNHIDE_TALK = "unhide_talk"
    CHANGE_OBJECTIVE_SIMPLE = "change_objective_simple"
    CHANGE_OBJECTIVE_WIN = "change_objective_win"
    CHANGE_OBJECTIVE_LOSS = "change_objective_loss"
    # tilemap
    CHANGE_TILEMAP = "change_tilemap"
    SHOW_LAYER = "show_layer"
    HIDE_LAYER = "hide_layer"
    ADD_WEATHER = "add_weather"
    REMOVE_WEATHER = "remove_weather"
    MAP_ANIM = "map_anim"
    REMOVE_MAP_ANIM = "remove_map_anim"
    # regions
    ADD_REGION = "add_region"
    REGION_CONDITION = "region_condition"
    REMOVE_REGION = "remove_region"
    # adding, removing and interacting units
    LOAD_UNIT = "load_unit"
    MAKE_GENERIC = "make_generic"
    CREATE_UNIT = "create_unit"
    ADD_UNIT = "add_unit"
    MOVE_UNIT = "move_unit"
    REMOVE_UNIT = "remove_unit"
    KILL_UNIT = "kill_unit"
    REMOVE_ALL_UNITS = "remove_all_units"
    REMOVE_ALL_ENEMIES = "remove_all_enemies"
    INTERACT_UNIT = "interact_unit"
    RESURRECT = "resurrect"
    OVERWORLD_MOVE_UNIT = "overworld_move_unit"
    # unit properties
    SET_NAME = "set_name"
    SET_CURRENT_HP = "set_current_hp"
    SET_CURRENT_MANA = "set_current_mana"
    RESET = "reset"
    HAS_ATTACKED = "has_attacked"
    HAS_TRADED = "has_traded"
    HAS_FINISHED = "has_finished"
    GIVE_ITEM = "give_item"
    EQUIP_ITEM = "equip_item"
    REMOVE_ITEM = "remove_item"
    MOVE_ITEM = "move_item"
    GIVE_EXP = "give_exp"
    SET_EXP = "set_exp"
    GIVE_WEXP = "give_wexp"
    SET_WEXP = "set_wexp"
    GIVE_SKILL = "give_skill"
    REMOVE_SKILL = "remove_skill"
    CHANGE_AI = "change_ai"
    CHANGE_ROAM_AI = "change_roam_ai"
    CHANGE_AI_GROUP = "change_ai_group"
    CHANGE_PARTY = "change_party"
    CHANGE_FACTION = "change_faction"
    CHANGE_TEAM = "change_team"
    CHANGE_PORTRAIT = "change_portrait"
    CHANGE_STATS = "change_stats"
    SET_STATS = "set_stats"
    CHANGE_GROWTHS = "change_growths"
    SET_GROWTHS = "set_growths"
    SET_UNIT_LEVEL = "set_unit_level"
    AUTOLEVEL_TO = "autolevel_to"
    PROMOTE = "promote"
    CHANGE_CLASS = "change_class"
    ADD_TAG = "add_tag"
    REMOVE_TAG = "remove_tag"
    # unit groups
    ADD_GROUP = "add_group"
    SPAWN_GROUP = "spawn_group"
    MOVE_GROUP = "move_group"
    REMOVE_GROUP = "remove_group"
    # misc
    BATTLE_SAVE = "battle_save"
    PREP = "prep"
    BASE = "base"
    SHOP = "shop"
    CHOICE = "choice"
    UNCHOICE = "unchoice"
    CHAPTER_TITLE = "chapter_title"
    SET_TILE = "set_tile"


COMMAND_ALIASES = {
    # portraits
    "u": "add_portrait",
    "uu": "multi_add_portrait",
    "r": "remove_portrait",
    "rr": "multi_remove_portrait",
    "rrr": "remove_all_portraits",
    "e": "expression",
    "bop": "bop_portrait",
    "mirror": "mirror_portrait",
    # dialogue
    "s": "speak",
    # background
    "t": "transition",
    "b": "change_background",
    # music
    "m": "music",
    "mf": "music_fade_back",
    # cursor
    "highlight": "flicker_cursor",
    "set_cursor": "move_cursor",
    # variables
    "gvar": "game_var",
    "ginc": "inc_game_var",
    "mgvar": "modify_game_var",
    "lvar": "level_var",
    "linc": "inc_level_var",
    "mlvar": "modify_level_var",
    # units
    "add": "add_unit",
    "move": "move_unit",
    "remove": "remove_unit",
    "kill": "kill_unit",
    "interact": "interact_unit",
    "reset_unit": "reset",
    "add_skill": "give_skill",
    "set_ai": "change_ai",
    "set_roam_ai": "change_roam_ai",
    "set_ai_group": "change_ai_group",
    "morph_group": "move_group",
    "resurrect_unit": "resurrect",
    "omove": "overworld_move_unit",
    # flow control
    "break": "finish",
    # misc
    "unlock_lore": "add_lore",
    # legacy spellings
    "set_game_var": "game_var",
    "change_objective": "change_objective_simple",
}

COMMANDS_BY_TAG = {c.value: c for c in CommandType}

# every alias must land in the vocabulary
assert all(v in COMMANDS_BY_TAG for v in COMMAND_ALIASES.values())


@dataclasses.dataclass(frozen=True)
class Command:
    kind: CommandType
    args: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "args": list(self.args)}

    @classmethod
    def from_dict(cls, data:dict[str, Any]) -> "Command":
        return cls(CommandType(data["kind"]), tuple(data.get("args", ())))

    def __str__(self) -> str:
        return ";".join((self.kind.value,) + self.args)


def resolve_command_type(tag:str) -> Optional[CommandType]:
    """ Maps a tag or alias (any case) to its CommandType, None if unknown. """
    tag = tag.strip().lower()
    tag = COMMAND_ALIASES.get(tag, tag)
    return COMMANDS_BY_TAG.get(tag)


def make_command(tag:str, args:Sequence[str]) -> Optional[Command]:
    kind = resolve_command_type(tag)
    if kind is None:
        logger.debug(f'dropping unknown command "{tag}"')
        return None
    return Command(kind, tuple(args))


def split_unescaped(line:str, delimiter:str) -> list[str]:
    """ Splits on delimiter except where it is escaped with a backslash.

    Escaped delimiters come back as plain delimiters, other backslashes are
    left alone.
    """
    fields:list[str] = []
    current:list[str] = []
    i = 0
    while i < len(line):
        if line.startswith("\\" + delimiter, i):
            current.append(delimiter)
            i += 1 + len(delimiter)
        elif line.startswith(delimiter, i):
            fields.append("".join(current))
            current = []
            i += len(delimiter)
        else:
            current.append(line[i])
            i += 1
    fields.append("".join(current))
    return fields


def parse_command(line:str) -> Optional[Command]:
    """ Parses one flat dialect line: "tag;arg1;arg2;..."

    Blank lines, comments and unknown tags give None.
    """
    settings = config.Settings.scripting
    stripped = line.strip()
    if stripped == "" or stripped.startswith(settings.COMMENT_MARKER):
        return None

    fields = split_unescaped(stripped, settings.FLAT_DELIMITER)
    return make_command(fields[0], [f.strip() for f in fields[1:]])


def tokenize_command_line(line:str) -> list[str]:
    """ Splits an indented dialect command on spaces.

    Quoted strings and parenthesized/bracketed groups stay single tokens
    (quoted tokens lose their outer quotes). A top level comma comes back as
    its own "," token, separating positional args from flags.
    """
    tokens:list[str] = []
    current:list[str] = []
    quote = ""
    depth = 0

    def flush() -> None:
        if current:
            tokens.append(util.strip_quotes("".join(current)))
            current.clear()

    for i, ch in enumerate(line):
        if quote:
            current.append(ch)
            if ch == quote and line[i-1] != "\\":
                quote = ""
            continue
        if ch in util.QUOTES:
            quote = ch
            current.append(ch)
        elif ch in "([":
            depth += 1
            current.append(ch)
        elif ch in ")]":
            depth -= 1
            current.append(ch)
        elif ch == " " and depth == 0:
            flush()
        elif ch == "," and depth == 0:
            flush()
            tokens.append(",")
        else:
            current.append(ch)
    flush()
    return tokens


def parse_script_command(text:str) -> Optional[Command]:
    """ Parses the body of an indented dialect command line (after the "$").

    "tag;arg;arg" lines split like the flat dialect. Otherwise the line is
    tokenized on spaces, "tag arg arg, flag flag", args first then flags.
    """
    text = text.strip()
    if text == "":
        return None

    delimiter = config.Settings.scripting.FLAT_DELIMITER
    if util.find_top_level(text, delimiter) >= 0:
        fields = split_unescaped(text, delimiter)
        return make_command(fields[0], [f.strip() for f in fields[1:]])

    tokens = tokenize_command_line(text)
    if not tokens or tokens[0] == ",":
        return None
    args = [t for t in tokens[1:] if t != ","]
    return make_command(tokens[0], args)
