""" Matches triggers to event scripts and runs them one command at a time.

Responsible for:
 * holding the registered ScriptPrefabs
 * finding prefabs for a trigger, gating them on their condition
 * ordering them by priority and honoring only_once
 * queuing EventInstances and handing their commands to the host
"""

import collections
import dataclasses
import logging
from typing import Any, Callable, Deque, Iterable, Optional, Union

from eventscript import util
from eventscript.commands import Command
from eventscript.conditions import evaluate_condition
from eventscript.context import EventContext
from eventscript.interpreter import ScriptInterpreter, is_indented_script
from eventscript.script import FlatScript

Processor = Union[FlatScript, ScriptInterpreter]


@dataclasses.dataclass(frozen=True)
class ScriptPrefab:
    """ An authored event script, immutable once loaded. """
    nid: str
    trigger: str
    level_nid: Optional[str] = None
    condition: str = ""
    priority: int = 0
    only_once: bool = False
    source: tuple[str, ...] = ()
    name: str = ""

    def matches(self, trigger:"Trigger") -> bool:
        if self.trigger != trigger.type:
            return False
        return not self.level_nid or self.level_nid == trigger.level_nid


@dataclasses.dataclass
class Trigger:
    """ Something that happened which scripts might respond to. """
    type: str
    level_nid: Optional[str] = None
    unit1: Any = None
    unit2: Any = None
    position: Any = None
    region: Any = None
    item: Any = None
    args: dict[str, Any] = dataclasses.field(default_factory=dict)

    def apply(self, context:EventContext) -> EventContext:
        """ context with this trigger's references laid over it. """
        return context.merged(
            unit1=self.unit1,
            unit2=self.unit2,
            position=self.position,
            region=self.region,
            item=self.item,
            local_args=self.args,
        )


class EventInstance:
    """ One run of a ScriptPrefab. """

    def __init__(self, prefab:ScriptPrefab, trigger:Trigger, context:EventContext, processor:Processor) -> None:
        self.prefab = prefab
        self.trigger = trigger
        self.context = context
        self.processor = processor

    @property
    def nid(self) -> str:
        return self.prefab.nid

    @property
    def finished(self) -> bool:
        return self.processor.finished

    def fetch_next_command(self) -> Optional[Command]:
        return self.processor.fetch_next_command()

    def __repr__(self) -> str:
        return f'EventInstance({self.prefab.nid!r}, {self.trigger.type!r})'


def build_processor(
        prefab:ScriptPrefab,
        context:EventContext,
        game_getter:Optional[Callable[[], Any]]=None) -> Processor:
    if is_indented_script(prefab.source):
        return ScriptInterpreter(prefab.source, context=context, game_getter=game_getter)
    return FlatScript(prefab.source)


def build_instance(
        prefab:ScriptPrefab,
        trigger:Trigger,
        context:EventContext,
        game_getter:Optional[Callable[[], Any]]=None) -> EventInstance:
    return EventInstance(prefab, trigger, context, build_processor(prefab, context, game_getter))


class EventState:
    """ The dynamic part of the event manager, what gets saved. """

    def __init__(self) -> None:
        self.event_queue:Deque[EventInstance] = collections.deque()
        self.already_triggered:set[str] = set()


class EventManager:
    def __init__(
            self,
            prefabs:Iterable[ScriptPrefab]=(),
            game_getter:Optional[Callable[[], Any]]=None) -> None:
        self.logger = logging.getLogger(util.fullname(self))
        self.game_getter = game_getter
        self.prefabs:dict[str, ScriptPrefab] = {}
        self.event_state = EventState()

        for prefab in prefabs:
            self.register(prefab)

    def register(self, prefab:ScriptPrefab) -> None:
        if prefab.nid in self.prefabs:
            raise ValueError(f'event script {prefab.nid} already registered')
        self.prefabs[prefab.nid] = prefab

    def base_context(self, context:Optional[EventContext]) -> EventContext:
        if context is not None:
            return context
        game = self.game_getter() if self.game_getter is not None else None
        return EventContext.for_game(game)

    def get_events_for_trigger(
            self,
            trigger:Trigger,
            context:Optional[EventContext]=None) -> list[ScriptPrefab]:
        """ Prefabs that would run for trigger, highest priority first.

        Does not mark anything as triggered or queue anything.
        """
        ctx = trigger.apply(self.base_context(context))
        candidates = [p for p in self.prefabs.values() if p.matches(trigger)]
        # sorted is stable, ties keep registration order
        candidates = sorted(candidates, key=lambda p: p.priority, reverse=True)
        return [
            p for p in candidates
            if not (p.only_once and p.nid in self.event_state.already_triggered)
            and evaluate_condition(p.condition, ctx)
        ]

    def trigger(self, trigger:Trigger, context:Optional[EventContext]=None) -> bool:
        """ Queues every prefab that passes for trigger.

        returns True iff anything was queued.
        """
        ctx = trigger.apply(self.base_context(context))
        queued = False
        for prefab in self.get_events_for_trigger(trigger, context):
            if prefab.only_once:
                self.event_state.already_triggered.add(prefab.nid)
            instance = build_instance(prefab, trigger, ctx, self.game_getter)
            if not instance.processor.has_content:
                self.logger.debug(f'skipping empty event script {prefab.nid}')
                continue
            self.logger.info(f'triggered event script {prefab.nid} for {trigger.type}')
            self.event_state.event_queue.append(instance)
            queued = True
        return queued

    def has_active_events(self) -> bool:
        return len(self.event_state.event_queue) > 0

    def current_event(self) -> Optional[EventInstance]:
        if not self.event_state.event_queue:
            return None
        return self.event_state.event_queue[0]

    def fetch_next_command(self) -> Optional[Command]:
        """ Next command from the head of the queue, None when idle.

        Exhausted instances are dequeued along the way.
        """
        while self.event_state.event_queue:
            command = self.event_state.event_queue[0].fetch_next_command()
            if command is not None:
                return command
            finished = self.event_state.event_queue.popleft()
            self.logger.debug(f'finished event script {finished.nid}')
        return None

    def dequeue_completed(self) -> int:
        """ Drops finished instances from the head of the queue. """
        count = 0
        while self.event_state.event_queue and self.event_state.event_queue[0].finished:
            self.event_state.event_queue.popleft()
            count += 1
        return count

    def dequeue_current_event(self) -> Optional[EventInstance]:
        if not self.event_state.event_queue:
            return None
        return self.event_state.event_queue.popleft()

    def clear(self) -> None:
        """ Cancels every queued instance, no cleanup is run. """
        self.event_state.event_queue.clear()

    def reset(self) -> None:
        """ New game: forget queued instances and only_once history. """
        self.event_state = EventState()

