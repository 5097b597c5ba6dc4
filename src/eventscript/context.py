""" Event context and reference resolution.

An EventContext carries everything a condition or script expression can see:
the game, the actors and objects named by the trigger, trigger specific local
arguments and the two variable stores.

resolve() turns a textual reference ("unit.team", "game.turncount", "'Seth'",
"3", "briefing_done") into a value. References that can't be resolved give
ABSENT, never an exception. Callers decide what absence means.
"""

from __future__ import annotations

import dataclasses
import re
from collections.abc import Mapping
from typing import Any, Optional, Sequence

from eventscript import util


class Absent:
    """ Marker for a reference that could not be resolved. """

    _instance:Optional[Absent] = None

    def __new__(cls) -> Absent:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"

    def __reduce__(self) -> str:
        return "ABSENT"

ABSENT = Absent()


# root name => EventContext field
ROOTS = {
    "game": "game",
    "unit": "unit1",
    "unit1": "unit1",
    "unit2": "unit2",
    "region": "region",
    "item": "item",
    "position": "position",
}

# fields some games spell without the underscore
FIELD_ALIASES = {
    "turncount": "turn_count",
    "turn_count": "turncount",
}

NUMBER_RE = re.compile(r'^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$')
INT_RE = re.compile(r'^[+-]?\d+$')
REFERENCE_RE = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*$')


@dataclasses.dataclass
class EventContext:
    game: Any = None
    unit1: Any = None
    unit2: Any = None
    position: Optional[Sequence[int]] = None
    region: Any = None
    item: Any = None
    local_args: dict[str, Any] = dataclasses.field(default_factory=dict)
    game_vars: Optional[Mapping[str, Any]] = None
    level_vars: Optional[Mapping[str, Any]] = None

    @classmethod
    def for_game(cls, game:Any, **kwargs:Any) -> EventContext:
        """ Context whose variable stores come from the game itself. """
        kwargs.setdefault("game_vars", getattr(game, "game_vars", None))
        kwargs.setdefault("level_vars", getattr(game, "level_vars", None))
        return cls(game=game, **kwargs)

    def merged(self, **overrides:Any) -> EventContext:
        """ Copy of this context with every non-None override applied.

        local_args are merged key by key, overrides winning.
        """
        values = {k: v for k, v in overrides.items() if v is not None}
        if "local_args" in values:
            local_args = dict(self.local_args)
            local_args.update(values["local_args"])
            values["local_args"] = local_args
        return dataclasses.replace(self, **values)

    def root(self, name:str) -> Any:
        return getattr(self, ROOTS[name])


def parse_literal(text:str) -> Any:
    """ Parses a string, number, boolean or null literal, else ABSENT. """
    text = text.strip()
    if util.is_quoted(text):
        return text[1:-1]
    if INT_RE.match(text):
        return int(text)
    if NUMBER_RE.match(text):
        return float(text)
    if text in ("True", "true"):
        return True
    if text in ("False", "false"):
        return False
    if text in ("None", "null"):
        return None
    return ABSENT


def get_field(obj:Any, name:str) -> Any:
    """ One step of dotted traversal: name as given, then camelCase. """
    if obj is None or obj is ABSENT:
        return ABSENT
    candidates = [name]
    camel = util.snake_to_camel(name)
    if camel != name:
        candidates.append(camel)
    if name in FIELD_ALIASES:
        candidates.append(FIELD_ALIASES[name])
        candidates.append(util.snake_to_camel(FIELD_ALIASES[name]))

    for candidate in candidates:
        if isinstance(obj, Mapping):
            if candidate in obj:
                return obj[candidate]
        else:
            value = getattr(obj, candidate, ABSENT)
            if value is not ABSENT:
                return value
    return ABSENT


def resolve_object(obj:Any, parts:Sequence[str]) -> Any:
    current = obj
    for part in parts:
        current = get_field(current, part)
        if current is ABSENT:
            return ABSENT
    return current


def lookup_variable(name:str, context:EventContext) -> Any:
    """ Looks name up in locals, then game (session) vars, then level vars. """
    if name in context.local_args:
        return context.local_args[name]
    if context.game_vars is not None and name in context.game_vars:
        return context.game_vars[name]
    if context.level_vars is not None and name in context.level_vars:
        return context.level_vars[name]
    return ABSENT


def resolve(path:str, context:EventContext) -> Any:
    """ Resolves a literal or dotted reference against context.

    Order: literal, context root (game, unit/unit1, unit2, region, item,
    position), local argument, game variable, level variable. A root whose
    value is None falls through to the variable lookups.
    """
    text = path.strip()
    if text == "":
        return ABSENT

    value = parse_literal(text)
    if value is not ABSENT:
        return value

    if not REFERENCE_RE.match(text):
        return ABSENT

    parts = text.split(".")
    if parts[0] in ROOTS:
        root = context.root(parts[0])
        if root is not None:
            return resolve_object(root, parts[1:])

    value = lookup_variable(parts[0], context)
    if value is ABSENT or len(parts) == 1:
        return value
    return resolve_object(value, parts[1:])
