""" Core types shared across the scripting engine.

The engine never mutates game state itself. It reads it through an
AbstractGamestate (units, teams, regions, the board and the two variable
stores) and hands Commands to the host to execute.
"""

import logging
from collections.abc import MutableMapping, Iterator, Mapping
from typing import Any, Optional, Sequence

from eventscript import util


class VariableStore(MutableMapping):
    """ A string keyed variable store.

    The game keeps two of these: game_vars, which persist for the whole
    session (campaign), and level_vars, which are cleared with each
    level/scenario.
    """

    def __init__(self, scope:str, initial:Optional[Mapping[str, Any]]=None) -> None:
        self.scope = scope
        self._values:dict[str, Any] = {}
        if initial:
            self.update(initial)

    def __getitem__(self, key:str) -> Any:
        return self._values[key]

    def __setitem__(self, key:str, value:Any) -> None:
        if not isinstance(key, str):
            raise TypeError(f'{self.scope} variable names must be strings, got {key!r}')
        self._values[key] = value

    def __delitem__(self, key:str) -> None:
        del self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def inc(self, key:str, amount:Any=1) -> Any:
        """ Adds amount to key (missing keys start at 0), returns new value. """
        self[key] = self._values.get(key, 0) + amount
        return self[key]

    def to_dict(self) -> dict[str, Any]:
        return dict(self._values)

    def __repr__(self) -> str:
        return f'VariableStore({self.scope!r}, {self._values!r})'


class AbstractGamestate:
    """ Accessors the scripting engine reads from the game.

    Units are duck typed. The engine looks for `nid`, `team`, `position`,
    `tags`, `items`, `skills` and either an `is_dead()` method or a `dead`
    attribute. Regions are duck typed with `nid`, `position` and `size`.

    Every accessor has a safe default so partially initialized games (or
    tests) degrade to absent values rather than errors.
    """

    def __init__(self) -> None:
        self.logger = logging.getLogger(util.fullname(self))
        self.turncount = 0
        self.money = 0
        self.game_vars = VariableStore("game")
        self.level_vars = VariableStore("level")

    def get_unit(self, nid:str) -> Optional[Any]:
        return None

    def get_all_units(self) -> Sequence[Any]:
        return []

    def get_team_units(self, team:str) -> Sequence[Any]:
        return [u for u in self.get_all_units() if getattr(u, "team", None) == team]

    def get_region(self, nid:str) -> Optional[Any]:
        return None

    def get_unit_at(self, position:tuple[int, int]) -> Optional[Any]:
        for unit in self.get_all_units():
            pos = getattr(unit, "position", None)
            if pos is not None and tuple(pos) == tuple(position):
                return unit
        return None

    def reset_level(self) -> None:
        """ Clears level scoped state, called on level transitions. """
        self.level_vars.clear()


def unit_is_dead(unit:Any) -> bool:
    """ Duck typed death check, an is_dead() method or a dead attribute. """
    is_dead = getattr(unit, "is_dead", None)
    if callable(is_dead):
        return bool(is_dead())
    return bool(getattr(unit, "dead", False))
