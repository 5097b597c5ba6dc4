""" Event script prefab loading.

Prefabs are authored in toml, one table per script keyed by its id:

    [death_quote_seth]
    trigger = "unit_death"
    level_nid = "chapter_2"
    condition = "unit.nid == 'Seth'"
    priority = 10
    only_once = true
    source = '''
    #pyev1
    $s Seth "Forgive me, my lady..."
    '''

Game data exported by other tools (a json list of prefabs whose script lines
live under "_source") loads with load_json.
"""

import json
import logging
from collections.abc import Mapping, Sequence
from typing import Any, Optional

import toml # type: ignore

from eventscript.event_manager import ScriptPrefab

logger = logging.getLogger(__name__)


def parse_source(prefab_id:str, source:Any) -> tuple[str, ...]:
    if source is None:
        return ()
    if isinstance(source, str):
        # toml multi-line strings start with a newline when written naturally
        return tuple(source.lstrip("\n").splitlines())
    if isinstance(source, Sequence) and all(isinstance(x, str) for x in source):
        return tuple(source)
    raise ValueError(f'source for {prefab_id} must be a string or a list of strings')


def parse_prefab(prefab_id:str, data:Mapping[str, Any], source_key:str="source") -> ScriptPrefab:
    if not isinstance(data, Mapping):
        raise ValueError(f'event script {prefab_id} must be a table')

    if "trigger" not in data or not isinstance(data["trigger"], str) or not data["trigger"]:
        raise ValueError(f'no trigger in event script {prefab_id}')

    level_nid:Optional[str] = data.get("level_nid")
    if level_nid is not None and not isinstance(level_nid, str):
        raise ValueError(f'level_nid must be a string in {prefab_id}, got {level_nid!r}')

    condition = data.get("condition", "")
    if condition is None:
        condition = ""
    if not isinstance(condition, str):
        raise ValueError(f'condition must be a string in {prefab_id}, got {condition!r}')

    priority = data.get("priority", 0)
    if not isinstance(priority, int) or isinstance(priority, bool):
        raise ValueError(f'bad priority in event script {prefab_id}')

    only_once = data.get("only_once", False)
    if not isinstance(only_once, bool):
        raise ValueError(f'only_once must be a bool in {prefab_id}, got {only_once!r}')

    name = data.get("name", prefab_id)
    if not isinstance(name, str):
        raise ValueError(f'name must be a string in {prefab_id}, got {name!r}')

    return ScriptPrefab(
        nid=prefab_id,
        trigger=data["trigger"],
        level_nid=level_nid or None,
        condition=condition,
        priority=priority,
        only_once=only_once,
        source=parse_source(prefab_id, data.get(source_key)),
        name=name,
    )


def loads(data:str) -> list[ScriptPrefab]:
    """
    Loads event script prefabs from a toml string.

    Parameters
    ----------
    data : str
        toml encoded prefab data

    Returns
    -------
    out : list of ScriptPrefab
        the prefabs in file order
    """
    return loadd(toml.loads(data))


def loadd(prefab_data:Mapping[str, Any]) -> list[ScriptPrefab]:
    """
    Loads event script prefabs from a dict keyed by prefab id.

    Parameters
    ----------
    prefab_data : dict
        Keys are prefab ids. Values are the prefab data to decode.

    Returns
    -------
    out : list of ScriptPrefab
        the prefabs in insertion order
    """
    prefabs = [parse_prefab(prefab_id, data) for prefab_id, data in prefab_data.items()]
    logger.info(f'loaded {len(prefabs)} event scripts')
    return prefabs


def load_json(data:str) -> list[ScriptPrefab]:
    """ Loads prefabs from a json list of objects carrying their own nid. """
    prefab_list = json.loads(data)
    if not isinstance(prefab_list, list):
        raise ValueError("event script json must be a list")

    prefabs = []
    for i, entry in enumerate(prefab_list):
        if not isinstance(entry, Mapping) or not isinstance(entry.get("nid"), str):
            raise ValueError(f'event script at index {i} has no nid')
        prefabs.append(parse_prefab(entry["nid"], entry, source_key="_source"))
    logger.info(f'loaded {len(prefabs)} event scripts')
    return prefabs
