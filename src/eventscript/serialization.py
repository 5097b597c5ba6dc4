""" Tools to save and load event state.

Saved state is a sequence of length prefixed fields with debug marker
strings between sections. Trigger references and interpreter state go
through msgpack, with hooks for commands, numpy arrays and game objects
(units, regions), which are saved by nid and looked up again on load.
"""

import enum
import io
import logging
import sys
from typing import Any, Callable, Optional

import numpy as np
import msgpack # type: ignore

from eventscript import util
from eventscript.commands import Command
from eventscript.context import EventContext
from eventscript.event_manager import EventInstance, EventManager, EventState, Trigger
from eventscript.interpreter import ScriptInterpreter, is_indented_script
from eventscript.script import FlatScript

ENCODER_SIG = Optional[Callable[[Any], Any]]
DECODER_SIG = Optional[Callable[[Any], Any]]


class STypes(enum.IntEnum):
    COMMAND = enum.auto()
    REF = enum.auto()
    SET = enum.auto()


def size_to_bytes(x:int) -> bytes:
    return x.to_bytes(4, byteorder="big", signed=False)

def size_to_f(x:int, f:io.IOBase) -> int:
    return f.write(size_to_bytes(x))

def size_from_f(f:io.IOBase) -> int:
    return int.from_bytes(f.read(4), byteorder="big")

def bytes_to_f(b:bytes, f:io.IOBase, blen:int=4) -> int:
    prefix = len(b).to_bytes(blen, byteorder="big")
    i = f.write(prefix)
    i += f.write(b)
    return i

def bytes_from_f(f:io.IOBase, blen:int=4) -> bytes:
    prefix = f.read(blen)
    l = int.from_bytes(prefix, byteorder="big")
    return f.read(l)

def to_len_pre_f(s:str, f:io.IOBase, blen:int=2) -> int:
    return bytes_to_f(s.encode("utf8"), f, blen=blen)

def from_len_pre_f(f:io.IOBase, blen:int=2) -> str:
    return bytes_from_f(f, blen=blen).decode("utf8")

def debug_string_w(s:str, f:io.IOBase) -> int:
    return to_len_pre_f(s, f)

def debug_string_r(s:str, f:io.IOBase) -> str:
    f_pos = f.tell()
    s_actual = from_len_pre_f(f)
    if s != s_actual:
        raise ValueError(f'expected section "{s}" at {f_pos}, found "{s_actual}"')
    return s_actual


# numpy support courtsey:
# https://github.com/lebedov/msgpack-numpy/blob/master/msgpack_numpy.py

def ndarray_to_bytes(obj:Any) -> Any:
    if sys.platform == 'darwin':
        return obj.tobytes()
    else:
        return obj.data if obj.flags['C_CONTIGUOUS'] else obj.tobytes()

def encode_matrix(obj:Any, chain:ENCODER_SIG=None) -> Any:
    if isinstance(obj, np.ndarray) and obj.dtype != 'O':
        return {
                b'nd': True,
                b'type': obj.dtype.str,
                b'shape': obj.shape,
                b'data': ndarray_to_bytes(obj)
        }
    elif isinstance(obj, np.generic):
        return obj.item()
    else:
        return obj if chain is None else chain(obj)

def decode_matrix(obj:Any, chain:DECODER_SIG=None) -> Any:
    if b'nd' in obj:
        return np.ndarray(buffer=obj[b'data'],
                          dtype=np.dtype(obj[b'type']),
                          shape=obj[b'shape']).copy()
    else:
        return obj if chain is None else chain(obj)


def encode_reference(obj:Any) -> Any:
    nid = getattr(obj, "nid", None)
    if isinstance(nid, str):
        return {"_es_t": int(STypes.REF), "nid": nid}
    raise TypeError(f'cannot serialize {util.fullname(obj)} in event state')

def encode_value(obj:Any) -> Any:
    if isinstance(obj, Command):
        return {"_es_t": int(STypes.COMMAND), "d": obj.to_dict()}
    elif isinstance(obj, (set, frozenset)):
        return {"_es_t": int(STypes.SET), "v": sorted(obj, key=repr)}
    return encode_matrix(obj, chain=encode_reference)


def make_decoder(game:Any) -> Callable[[Any], Any]:
    """ object_hook that looks game objects up again by nid. """

    def resolve_reference(nid:str) -> Any:
        for accessor in ("get_unit", "get_region"):
            get = getattr(game, accessor, None)
            found = get(nid) if callable(get) else None
            if found is not None:
                return found
        # the object is gone, the nid is the best we can do
        return nid

    def decode_value(obj:Any) -> Any:
        t = obj.get("_es_t")
        if t == int(STypes.COMMAND):
            return Command.from_dict(obj["d"])
        elif t == int(STypes.REF):
            return resolve_reference(obj["nid"])
        elif t == int(STypes.SET):
            return set(obj["v"])
        return decode_matrix(obj)

    return decode_value


def pack(data:Any) -> bytes:
    return msgpack.packb(data, default=encode_value)

def unpack(packed:bytes, game:Any=None) -> Any:
    return msgpack.unpackb(packed, object_hook=make_decoder(game), strict_map_key=False)


def trigger_to_dict(trigger:Trigger) -> dict[str, Any]:
    return {
        "type": trigger.type,
        "level_nid": trigger.level_nid,
        "unit1": trigger.unit1,
        "unit2": trigger.unit2,
        "position": trigger.position,
        "region": trigger.region,
        "item": trigger.item,
        "args": trigger.args,
    }


class EventStateSaver:
    """ Saves and loads an EventManager's queue and only_once history.

    Prefabs are not saved. Loading looks queued scripts up by id among the
    prefabs registered with the event manager.
    """

    def __init__(self) -> None:
        self.logger = logging.getLogger(util.fullname(self))

    def _save_instance(self, instance:EventInstance, f:io.IOBase) -> int:
        bytes_written = 0
        bytes_written += to_len_pre_f(instance.nid, f)
        bytes_written += bytes_to_f(pack({
            "trigger": trigger_to_dict(instance.trigger),
            "processor": instance.processor.save(),
        }), f)
        return bytes_written

    def _load_instance(self, f:io.IOBase, event_manager:EventManager, context:Optional[EventContext]) -> EventInstance:
        nid = from_len_pre_f(f)
        if nid not in event_manager.prefabs:
            raise ValueError(f'saved event script {nid} is not registered')
        prefab = event_manager.prefabs[nid]

        base = event_manager.base_context(context)
        data = unpack(bytes_from_f(f), base.game)
        trigger = Trigger(**data["trigger"])
        ctx = trigger.apply(base)

        processor:Any
        if is_indented_script(prefab.source):
            processor = ScriptInterpreter.restore(data["processor"], prefab.source, context=ctx, game_getter=event_manager.game_getter)
        else:
            processor = FlatScript.restore(data["processor"], prefab.source)
        return EventInstance(prefab, trigger, ctx, processor)

    def save(self, event_manager:EventManager, f:io.IOBase) -> int:
        event_state = event_manager.event_state
        bytes_written = 0

        bytes_written += debug_string_w("already triggered", f)
        bytes_written += size_to_f(len(event_state.already_triggered), f)
        for nid in sorted(event_state.already_triggered):
            bytes_written += to_len_pre_f(nid, f)

        bytes_written += debug_string_w("event queue", f)
        bytes_written += size_to_f(len(event_state.event_queue), f)
        for instance in event_state.event_queue:
            bytes_written += self._save_instance(instance, f)

        self.logger.debug(f'saved {len(event_state.event_queue)} queued event scripts in {bytes_written} bytes')
        return bytes_written

    def load(self, f:io.IOBase, event_manager:EventManager, context:Optional[EventContext]=None) -> EventState:
        """ Restores saved state into event_manager, returning it too. """
        event_state = EventState()

        debug_string_r("already triggered", f)
        count = size_from_f(f)
        for _ in range(count):
            event_state.already_triggered.add(from_len_pre_f(f))

        debug_string_r("event queue", f)
        count = size_from_f(f)
        for _ in range(count):
            event_state.event_queue.append(self._load_instance(f, event_manager, context))

        event_manager.event_state = event_state
        self.logger.debug(f'loaded {len(event_state.event_queue)} queued event scripts')
        return event_state
