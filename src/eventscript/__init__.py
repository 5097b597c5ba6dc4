""" Event scripting for a turn based tactics game.

Level authors write scripts that react to things happening in the game (a
unit dies, a turn starts, two units talk). This package decides which
scripts run and steps through them one command at a time so the game loop
never blocks.

The pieces, leaves first:

 * context: resolves references like "unit.team" against the game and the
   trigger
 * conditions: parses and evaluates activation conditions, failing open
 * commands: the closed command vocabulary and the flat dialect parser
 * interpreter: the indented dialect with if/for/while, assignment and
   expressions (see translate)
 * event_manager: matches triggers to prefabs, orders them by priority,
   honors only_once and queues instances

The engine never executes commands. The host asks the EventManager for the
next command each tick and carries it out:

    manager = EventManager(prefabs.loads(data), game_getter=lambda: game)
    manager.trigger(Trigger("unit_death", level_nid="chapter_2", unit1=seth))
    while (command := manager.fetch_next_command()) is not None:
        host.execute(command)
"""

from eventscript.commands import Command, CommandType
from eventscript.context import ABSENT, EventContext
from eventscript.core import AbstractGamestate, VariableStore
from eventscript.event_manager import EventInstance, EventManager, ScriptPrefab, Trigger
from eventscript.interpreter import ScriptInterpreter
from eventscript.script import FlatScript
