""" Interpreter for the indented script dialect.

Indented scripts start with a header line ("#pyev1") and read like a small
subset of Python:

    #pyev1
    for name in ['Eirika', 'Seth']:
        if not check_dead(name):
            $s name "We hold the line."
    count = len(get_enemy_units())
    while count > 3:
        $kill;Bandit
        count -= 1

Lines starting with "$" are commands, everything else is control flow,
assignment or an expression evaluated for its side effects.

The interpreter is pull based. Each fetch_next_command() call runs control
flow until at least one command is pending and hands back the first one, so
a host can step a script one command per tick. Commands come out in program
order. The cursor, local variables and pending commands can be saved and
restored later against the same source.
"""

import collections
import dataclasses
import enum
import hashlib
import logging
import operator
import re
from typing import Any, Callable, Deque, Iterable, Mapping, Optional, Sequence, Union

import numpy as np

from eventscript import config, query, util
from eventscript.commands import Command, parse_script_command
from eventscript.context import EventContext
from eventscript.translate import ExpressionError, evaluate, floordiv

IF_RE = re.compile(r'^if\b\s*(.+?)\s*:$')
ELIF_RE = re.compile(r'^elif\b\s*(.+?)\s*:$')
ELSE_RE = re.compile(r'^else\s*:$')
FOR_RE = re.compile(r'^for\s+\(?\s*(\w+(?:\s*,\s*\w+)*)\s*\)?\s+in\s+(.+?)\s*:$')
WHILE_RE = re.compile(r'^while\b\s*(.+?)\s*:$')
ASSIGN_RE = re.compile(r'^(\w+)\s*(\+|-|\*|//|/)?=(?!=)\s*(.+)$')

AUGMENTED_OPS:Mapping[str, Callable[[Any, Any], Any]] = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": operator.truediv,
    "//": floordiv,
}

LITERAL_NAMES = {"true": True, "false": False, "null": None}


class LineType(enum.Enum):
    COMMAND = enum.auto()
    IF = enum.auto()
    ELIF = enum.auto()
    ELSE = enum.auto()
    FOR = enum.auto()
    WHILE = enum.auto()
    ASSIGN = enum.auto()
    EXPR = enum.auto()
    COMMENT = enum.auto()
    BLANK = enum.auto()


@dataclasses.dataclass(frozen=True)
class ScriptLine:
    type: LineType
    indent: int
    text: str
    command: Optional[Command] = None
    # if, elif and while
    condition: str = ""
    # for
    targets: tuple[str, ...] = ()
    iterable: str = ""
    # assignment, operator is "" for plain assignment
    target: str = ""
    operator: str = ""
    value: str = ""

    @property
    def in_any_block(self) -> bool:
        """ Blank and comment lines belong to whatever block surrounds them. """
        return self.type in (LineType.BLANK, LineType.COMMENT)


def as_lines(source:Union[str, Iterable[str]]) -> list[str]:
    if isinstance(source, str):
        return source.splitlines()
    return list(source)


def is_indented_script(source:Union[str, Iterable[str]]) -> bool:
    lines = as_lines(source)
    return len(lines) > 0 and lines[0].strip() == config.Settings.scripting.INDENTED_HEADER


def source_hash(lines:Sequence[str]) -> str:
    return hashlib.sha1("\n".join(lines).encode("utf-8")).hexdigest()


def classify_line(raw:str) -> ScriptLine:
    settings = config.Settings.scripting
    expanded = raw.expandtabs(settings.INDENT_WIDTH)
    content = expanded.strip()
    indent = (len(expanded) - len(expanded.lstrip())) // settings.INDENT_WIDTH

    if content == "":
        return ScriptLine(LineType.BLANK, indent, content)
    if content.startswith(settings.COMMENT_MARKER):
        return ScriptLine(LineType.COMMENT, indent, content)
    if content.startswith(settings.COMMAND_PREFIX):
        command = parse_script_command(content[len(settings.COMMAND_PREFIX):])
        return ScriptLine(LineType.COMMAND, indent, content, command=command)

    m = ELIF_RE.match(content)
    if m:
        return ScriptLine(LineType.ELIF, indent, content, condition=m.group(1))
    m = IF_RE.match(content)
    if m:
        return ScriptLine(LineType.IF, indent, content, condition=m.group(1))
    if ELSE_RE.match(content):
        return ScriptLine(LineType.ELSE, indent, content)
    m = FOR_RE.match(content)
    if m:
        targets = tuple(t.strip() for t in m.group(1).split(","))
        return ScriptLine(LineType.FOR, indent, content, targets=targets, iterable=m.group(2))
    m = WHILE_RE.match(content)
    if m:
        return ScriptLine(LineType.WHILE, indent, content, condition=m.group(1))
    m = ASSIGN_RE.match(content)
    if m:
        return ScriptLine(LineType.ASSIGN, indent, content, target=m.group(1), operator=m.group(2) or "", value=m.group(3))
    return ScriptLine(LineType.EXPR, indent, content)


def classify_lines(source:Union[str, Iterable[str]]) -> list[ScriptLine]:
    """ Classifies every line of an indented script, except the header. """
    lines = as_lines(source)
    if len(lines) > 0 and lines[0].strip() == config.Settings.scripting.INDENTED_HEADER:
        lines = lines[1:]
    return [classify_line(raw) for raw in lines]


class UnsaveableValue(TypeError):
    pass


def snapshot_value(value:Any) -> Any:
    """ Copies a local variable value into something save() can hold.

    Containers are copied all the way down so a saved state never shares
    them with a running interpreter. Game objects (anything with a string
    nid) are kept by reference, ranges become lists. Values that can't be
    saved, like functions or half consumed generators, raise
    UnsaveableValue.
    """
    if value is None or isinstance(value, (bool, int, float, str, bytes, Command)):
        return value
    if isinstance(getattr(value, "nid", None), str):
        return value
    if isinstance(value, np.ndarray):
        return value.copy()
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, Mapping):
        return {snapshot_value(k): snapshot_value(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return tuple(snapshot_value(v) for v in value)
    if isinstance(value, (list, range)):
        return [snapshot_value(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return {snapshot_value(v) for v in value}
    raise UnsaveableValue(f'cannot save a {util.fullname(value)}')


class ScriptInterpreter:
    def __init__(
            self,
            source:Union[str, Iterable[str]],
            context:Optional[EventContext]=None,
            game_getter:Optional[Callable[[], Any]]=None) -> None:
        self.logger = logging.getLogger(util.fullname(self))
        self.source = as_lines(source)
        self.lines = classify_lines(self.source)
        self.context = context if context is not None else EventContext()
        self.game_getter = game_getter

        self.pointer = 0
        self.local_vars:dict[str, Any] = {}
        self.pending:Deque[Command] = collections.deque()
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def has_content(self) -> bool:
        return any(not line.in_any_block for line in self.lines)

    @property
    def game(self) -> Any:
        if self.game_getter is not None:
            return self.game_getter()
        return self.context.game

    def fetch_next_command(self) -> Optional[Command]:
        """ Runs the script until a command is ready, None once finished. """
        if self.pending:
            return self.pending.popleft()

        while self.pointer < len(self.lines):
            self.process_line()
            if self.pending:
                return self.pending.popleft()

        self._finished = True
        return None

    def save(self) -> dict[str, Any]:
        return {
            "pointer": self.pointer,
            "local_vars": self.snapshot_locals(self.local_vars),
            "pending": [c.to_dict() for c in self.pending],
            "source_hash": source_hash(self.source),
        }

    @classmethod
    def restore(
            cls,
            state:Mapping[str, Any],
            source:Union[str, Iterable[str]],
            context:Optional[EventContext]=None,
            game_getter:Optional[Callable[[], Any]]=None) -> "ScriptInterpreter":
        """ Rebuilds an interpreter from save() output and the same source. """
        interpreter = cls(source, context=context, game_getter=game_getter)
        expected = state.get("source_hash")
        if expected is not None and expected != source_hash(interpreter.source):
            raise ValueError("saved script state does not match the script source")
        pointer = state.get("pointer", 0)
        if not isinstance(pointer, int) or not 0 <= pointer <= len(interpreter.lines):
            raise ValueError(f'saved script pointer {pointer!r} out of range')

        interpreter.pointer = pointer
        interpreter.local_vars = interpreter.snapshot_locals(state.get("local_vars", {}))
        interpreter.pending.extend(Command.from_dict(c) for c in state.get("pending", ()))
        return interpreter

    def snapshot_locals(self, local_vars:Mapping[str, Any]) -> dict[str, Any]:
        snapshot:dict[str, Any] = {}
        for name, value in local_vars.items():
            try:
                snapshot[name] = snapshot_value(value)
            except UnsaveableValue as e:
                self.logger.warning(f'not saving local "{name}": {e}')
        return snapshot

    def namespace(self) -> dict[str, Any]:
        """ Names visible to expressions, built fresh for each evaluation. """
        ns:dict[str, Any] = dict(LITERAL_NAMES)
        ctx = self.context
        ns.update({
            "unit": ctx.unit1,
            "unit1": ctx.unit1,
            "unit2": ctx.unit2,
            "region": ctx.region,
            "item": ctx.item,
            "position": ctx.position,
        })
        ns.update(ctx.local_args)
        game = self.game
        if game is not None:
            ns["game"] = game
            ns.update(query.GameQuery(game).func_dict())
        ns.update(self.local_vars)
        return ns

    def evaluate(self, expr:str) -> Any:
        return evaluate(expr, self.namespace())

    def evaluate_iterable(self, expr:str) -> list[Any]:
        """ Evaluates expr and runs it to the end, raising ExpressionError on any failure. """
        value = self.evaluate(expr)
        try:
            return list(value)
        except ExpressionError:
            raise
        except Exception as e:
            raise ExpressionError(f'error iterating over "{expr}": {e!r}') from e

    def evaluate_condition(self, condition:str) -> bool:
        try:
            return bool(self.evaluate(condition))
        except (ExpressionError, TypeError, ValueError) as e:
            self.logger.warning(f'condition "{condition}" failed, treating as false: {e}')
            return False

    def process_line(self) -> None:
        """ Executes the line at the pointer and advances past it. """
        line = self.lines[self.pointer]
        if line.type == LineType.COMMAND:
            if line.command is not None:
                self.pending.append(line.command)
            self.pointer += 1
        elif line.type == LineType.IF:
            self.handle_if()
        elif line.type == LineType.FOR:
            self.handle_for()
        elif line.type == LineType.WHILE:
            self.handle_while()
        elif line.type == LineType.ASSIGN:
            self.handle_assign(line)
            self.pointer += 1
        elif line.type == LineType.EXPR:
            try:
                self.evaluate(line.text)
            except ExpressionError as e:
                self.logger.warning(f'expression "{line.text}" failed: {e}')
            self.pointer += 1
        else:
            # blank, comment and stray elif/else lines
            self.pointer += 1

    def execute_block(self, parent_indent:int) -> None:
        while self.pointer < len(self.lines):
            line = self.lines[self.pointer]
            if not line.in_any_block and line.indent <= parent_indent:
                break
            self.process_line()

    def skip_block(self, parent_indent:int) -> None:
        while self.pointer < len(self.lines):
            line = self.lines[self.pointer]
            if not line.in_any_block and line.indent <= parent_indent:
                break
            self.pointer += 1

    def skip_remaining_branches(self, indent:int) -> None:
        while self.pointer < len(self.lines):
            line = self.lines[self.pointer]
            if line.type not in (LineType.ELIF, LineType.ELSE) or line.indent != indent:
                break
            self.pointer += 1
            self.skip_block(indent)

    def handle_if(self) -> None:
        start = self.lines[self.pointer]
        indent = start.indent
        self.pointer += 1

        if self.evaluate_condition(start.condition):
            self.execute_block(indent)
            self.skip_remaining_branches(indent)
            return
        self.skip_block(indent)

        while self.pointer < len(self.lines):
            line = self.lines[self.pointer]
            if line.indent != indent:
                break
            if line.type == LineType.ELIF:
                self.pointer += 1
                if self.evaluate_condition(line.condition):
                    self.execute_block(indent)
                    self.skip_remaining_branches(indent)
                    return
                self.skip_block(indent)
            elif line.type == LineType.ELSE:
                self.pointer += 1
                self.execute_block(indent)
                return
            else:
                break

    def bind_targets(self, targets:Sequence[str], value:Any) -> None:
        if len(targets) == 1:
            self.local_vars[targets[0]] = value
            return
        values = tuple(value)
        if len(values) != len(targets):
            raise ValueError(f'cannot unpack {len(values)} values into {", ".join(targets)}')
        self.local_vars.update(zip(targets, values))

    def handle_for(self) -> None:
        start = self.lines[self.pointer]
        indent = start.indent
        body = self.pointer + 1

        # iterated up front so the body can't see a half finished sequence
        try:
            values = self.evaluate_iterable(start.iterable)
        except ExpressionError as e:
            self.logger.warning(f'skipping "{start.text}": {e}')
            values = []

        for value in values:
            try:
                self.bind_targets(start.targets, value)
            except (TypeError, ValueError) as e:
                self.logger.warning(f'aborting "{start.text}": {e}')
                break
            self.pointer = body
            self.execute_block(indent)

        self.pointer = body
        self.skip_block(indent)

    def handle_while(self) -> None:
        start = self.lines[self.pointer]
        indent = start.indent
        body = self.pointer + 1
        max_iterations = config.Settings.scripting.WHILE_MAX_ITERATIONS

        iterations = 0
        while self.evaluate_condition(start.condition):
            if iterations >= max_iterations:
                self.logger.warning(f'"{start.text}" exceeded {max_iterations} iterations, aborting loop')
                break
            self.pointer = body
            self.execute_block(indent)
            iterations += 1

        self.pointer = body
        self.skip_block(indent)

    def handle_assign(self, line:ScriptLine) -> None:
        try:
            value = self.evaluate(line.value)
            if line.operator:
                value = AUGMENTED_OPS[line.operator](self.evaluate(line.target), value)
        except (ExpressionError, TypeError, ValueError, ArithmeticError) as e:
            self.logger.warning(f'assignment "{line.text}" failed: {e}')
            return
        self.local_vars[line.target] = value
