""" Game queries available to indented scripts.

Each helper is exposed under its snake_case name and a camelCase alias, e.g.
get_closest_allies and getClosestAllies. Units and regions can be passed as
objects or by nid. Missing game accessors give None, False or empty lists.
"""

import logging
from typing import Any, Callable, Optional, Sequence

import numpy as np
import numpy.typing as npt

from eventscript import util
from eventscript.core import unit_is_dead

DEFAULT_ALLIED_TEAMS = ("player",)


class GameQuery:
    def __init__(self, game:Any) -> None:
        self.logger = logging.getLogger(util.fullname(self))
        self.game = game

    def func_dict(self) -> dict[str, Callable[..., Any]]:
        """ Helpers to inject into an expression namespace. """
        funcs:dict[str, Callable[..., Any]] = {}
        for name in QUERY_FUNCTIONS:
            fn = getattr(self, name)
            funcs[name] = fn
            funcs[util.snake_to_camel(name)] = fn
        return funcs

    # units

    def u(self, nid:str) -> Optional[Any]:
        get_unit = getattr(self.game, "get_unit", None)
        if not callable(get_unit):
            return None
        return get_unit(nid)

    def resolve_unit(self, unit:Any) -> Optional[Any]:
        if not unit:
            return None
        if isinstance(unit, str):
            return self.u(unit)
        return unit

    def get_all_units(self, only_on_field:bool=False) -> list[Any]:
        get_all_units = getattr(self.game, "get_all_units", None)
        units = list(get_all_units()) if callable(get_all_units) else []
        if only_on_field:
            units = [u for u in units if getattr(u, "position", None) is not None and not unit_is_dead(u)]
        return units

    def get_team_units(self, team:str, only_on_field:bool=False) -> list[Any]:
        return [u for u in self.get_all_units(only_on_field) if getattr(u, "team", None) == team]

    def get_player_units(self, only_on_field:bool=False) -> list[Any]:
        return self.get_team_units("player", only_on_field)

    def get_enemy_units(self, only_on_field:bool=False) -> list[Any]:
        return self.get_team_units("enemy", only_on_field)

    def is_dead(self, unit:Any) -> bool:
        """ Units the game doesn't know about count as dead. """
        resolved = self.resolve_unit(unit)
        if resolved is None:
            return True
        return unit_is_dead(resolved)

    def check_alive(self, nid:str) -> bool:
        return not self.is_dead(nid)

    def check_dead(self, nid:str) -> bool:
        return self.is_dead(nid)

    # variables and resources

    def v(self, name:str, fallback:Any=None) -> Any:
        """ Level variable name, else game variable name, else fallback. """
        for store_name in ("level_vars", "game_vars"):
            store = getattr(self.game, store_name, None)
            if store is not None and name in store:
                return store[name]
        return fallback

    def get_money(self) -> Any:
        return getattr(self.game, "money", 0)

    # items and skills

    def get_item(self, unit:Any, item_nid:str) -> Optional[Any]:
        resolved = self.resolve_unit(unit)
        if resolved is None:
            return None
        for item in getattr(resolved, "items", None) or []:
            if getattr(item, "nid", item) == item_nid:
                return item
        return None

    def has_item(self, unit:Any, item_nid:str) -> bool:
        return self.get_item(unit, item_nid) is not None

    def has_skill(self, unit:Any, skill_nid:str) -> bool:
        resolved = self.resolve_unit(unit)
        if resolved is None:
            return False
        return any(getattr(s, "nid", s) == skill_nid for s in getattr(resolved, "skills", None) or [])

    # positions and regions

    def resolve_position(self, position:Any) -> Optional[tuple[int, int]]:
        if position is None:
            return None
        if isinstance(position, (tuple, list, np.ndarray)) and len(position) >= 2:
            return (int(position[0]), int(position[1]))
        if isinstance(position, str):
            position = self.u(position)
        unit_position = getattr(position, "position", None)
        if unit_position is None:
            return None
        return (int(unit_position[0]), int(unit_position[1]))

    def resolve_region(self, region:Any) -> Optional[Any]:
        if not region:
            return None
        if isinstance(region, str):
            get_region = getattr(self.game, "get_region", None)
            resolved = get_region(region) if callable(get_region) else None
            if resolved is None:
                self.logger.debug(f'unknown region {region}')
            return resolved
        return region

    def allied_teams(self) -> Sequence[str]:
        get_allied_teams = getattr(self.game, "get_allied_teams", None)
        if callable(get_allied_teams):
            return get_allied_teams()
        return DEFAULT_ALLIED_TEAMS

    def units_with_distance(self, position:Any, units:Sequence[Any]) -> tuple[list[Any], npt.NDArray[np.int64]]:
        """ Living placed units and their Manhattan distance to position. """
        origin = self.resolve_position(position)
        placed = [u for u in units if getattr(u, "position", None) is not None and not unit_is_dead(u)]
        if origin is None or len(placed) == 0:
            return [], np.zeros((0,), dtype=np.int64)
        positions = np.array([tuple(u.position)[:2] for u in placed], dtype=np.int64)
        distances = np.abs(positions - np.array(origin, dtype=np.int64)).sum(axis=1)
        return placed, distances

    def get_closest_allies(self, position:Any, num:int=1) -> list[tuple[Any, int]]:
        """ The num nearest allied units as (unit, distance), nearest first. """
        teams = self.allied_teams()
        allies = [u for u in self.get_all_units() if getattr(u, "team", None) in teams]
        units, distances = self.units_with_distance(position, allies)
        order = np.argsort(distances, kind="stable")[:num]
        return [(units[i], int(distances[i])) for i in order]

    def get_units_within_distance(self, position:Any, dist:int=1, nid:Optional[str]=None, team:Optional[str]=None, tag:Optional[str]=None) -> list[Any]:
        units, distances = self.units_with_distance(position, self.get_all_units())
        return [
            u for u, d in zip(units, distances)
            if d <= dist and self.matches_filter(u, nid, team, tag)
        ]

    def get_allies_within_distance(self, position:Any, dist:int=1) -> list[Any]:
        teams = self.allied_teams()
        return [u for u in self.get_units_within_distance(position, dist) if getattr(u, "team", None) in teams]

    def get_units_in_area(self, corner1:Sequence[int], corner2:Sequence[int]) -> list[Any]:
        """ Living units in the rectangle between the corners, inclusive. """
        lo = np.minimum(corner1[:2], corner2[:2])
        hi = np.maximum(corner1[:2], corner2[:2])
        result = []
        for unit in self.get_all_units():
            position = getattr(unit, "position", None)
            if position is None or unit_is_dead(unit):
                continue
            p = np.array(tuple(position)[:2])
            if np.all(p >= lo) and np.all(p <= hi):
                result.append(unit)
        return result

    def matches_filter(self, unit:Any, nid:Optional[str]=None, team:Optional[str]=None, tag:Optional[str]=None) -> bool:
        if nid is not None and getattr(unit, "nid", None) != nid:
            return False
        if team is not None and getattr(unit, "team", None) != team:
            return False
        if tag is not None and tag not in (getattr(unit, "tags", None) or []):
            return False
        return True

    def get_units_in_region(self, region:Any, nid:Optional[str]=None, team:Optional[str]=None, tag:Optional[str]=None) -> list[Any]:
        """ Living units inside region (position inclusive, size exclusive). """
        resolved = self.resolve_region(region)
        if resolved is None:
            return []
        rx, ry = tuple(resolved.position)[:2]
        rw, rh = tuple(getattr(resolved, "size", (1, 1)))[:2]
        result = []
        for unit in self.get_all_units():
            position = getattr(unit, "position", None)
            if position is None or unit_is_dead(unit):
                continue
            ux, uy = tuple(position)[:2]
            if rx <= ux < rx + rw and ry <= uy < ry + rh and self.matches_filter(unit, nid, team, tag):
                result.append(unit)
        return result

    def any_unit_in_region(self, region:Any, nid:Optional[str]=None, team:Optional[str]=None, tag:Optional[str]=None) -> bool:
        return len(self.get_units_in_region(region, nid, team, tag)) > 0


QUERY_FUNCTIONS = (
    "u",
    "v",
    "is_dead",
    "check_alive",
    "check_dead",
    "get_all_units",
    "get_team_units",
    "get_player_units",
    "get_enemy_units",
    "get_money",
    "get_item",
    "has_item",
    "has_skill",
    "get_closest_allies",
    "get_units_within_distance",
    "get_allies_within_distance",
    "get_units_in_area",
    "get_units_in_region",
    "any_unit_in_region",
)
