import dataclasses
from typing import Any, Iterable, Optional, Sequence

from eventscript import core


@dataclasses.dataclass
class MockUnit:
    nid: str
    team: str = "player"
    position: Optional[tuple[int, int]] = None
    dead: bool = False
    tags: list[str] = dataclasses.field(default_factory=list)
    items: list[str] = dataclasses.field(default_factory=list)
    skills: list[str] = dataclasses.field(default_factory=list)
    current_hp: int = 10

    def is_dead(self) -> bool:
        return self.dead


@dataclasses.dataclass
class MockRegion:
    nid: str
    position: tuple[int, int] = (0, 0)
    size: tuple[int, int] = (1, 1)


class MockGamestate(core.AbstractGamestate):
    def __init__(self, units:Iterable[MockUnit]=(), regions:Iterable[MockRegion]=()) -> None:
        super().__init__()
        self.units = {u.nid: u for u in units}
        self.regions = {r.nid: r for r in regions}

    def add_unit(self, unit:MockUnit) -> MockUnit:
        self.units[unit.nid] = unit
        return unit

    def get_unit(self, nid:str) -> Optional[Any]:
        return self.units.get(nid)

    def get_all_units(self) -> Sequence[Any]:
        return list(self.units.values())

    def get_region(self, nid:str) -> Optional[Any]:
        return self.regions.get(nid)


def drain(processor:Any, limit:int=1000) -> list[Any]:
    """ Every command a processor emits, in order. """
    commands = []
    for _ in range(limit):
        command = processor.fetch_next_command()
        if command is None:
            return commands
        commands.append(command)
    raise AssertionError(f'processor still emitting after {limit} commands')


def script(*lines:str) -> list[str]:
    """ An indented dialect script with the header prepended. """
    return ["#pyev1", *lines]
