""" Flat dialect scripts: one command per line, no control flow. """

import logging
from typing import Any, Iterable, Mapping, Optional, Union

from eventscript import util
from eventscript.commands import Command, parse_command
from eventscript.interpreter import as_lines


class FlatScript:
    """ A cursor over a parsed flat script.

    Exposes the same pull interface as ScriptInterpreter. Block commands
    (if/elif/else/end, for/endf) come through as plain commands, it is up to
    whoever executes them to honor them.
    """

    def __init__(self, source:Union[str, Iterable[str]]) -> None:
        self.logger = logging.getLogger(util.fullname(self))
        self.commands:list[Command] = []
        for line in as_lines(source):
            command = parse_command(line)
            if command is not None:
                self.commands.append(command)
        self.pointer = 0

    @property
    def finished(self) -> bool:
        return self.pointer >= len(self.commands)

    @property
    def has_content(self) -> bool:
        return len(self.commands) > 0

    def fetch_next_command(self) -> Optional[Command]:
        if self.pointer >= len(self.commands):
            return None
        command = self.commands[self.pointer]
        self.pointer += 1
        self.logger.debug(f'next command {command}')
        return command

    def save(self) -> dict[str, Any]:
        return {"pointer": self.pointer}

    @classmethod
    def restore(cls, state:Mapping[str, Any], source:Union[str, Iterable[str]]) -> "FlatScript":
        script = cls(source)
        pointer = state.get("pointer", 0)
        if not isinstance(pointer, int) or not 0 <= pointer <= len(script.commands):
            raise ValueError(f'saved script pointer {pointer!r} out of range')
        script.pointer = pointer
        return script
