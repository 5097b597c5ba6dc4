""" Settings for the scripting engine.

Built-in values live in eventscript/data/config.toml. A deployment can point
EVENTSCRIPT_CONFIG at a toml file, or code can call load_config with a file
and/or a dict of overrides. Everything reads settings through
config.Settings at call time so a reload takes effect immediately.
"""

import os
import toml # type: ignore
import importlib.resources
import types
from typing import Dict, Optional, Any, List, TextIO, Mapping, Union

CONFIG_ENV_VAR = "EVENTSCRIPT_CONFIG"

def merge(a:Dict[str, Any], b:Mapping[str, Any], path:Optional[List[str]]=None) -> Dict[str, Any]:
    """ recursively merges b into a

    b[key] overrides a[key] if key present in both. raises ValueError if
    b[key] and a[key] are not of the same type (ints are accepted where a
    float is expected).
    """

    if path is None: path = []
    for key in b:
        if key in a:
            if isinstance(a[key], dict) and isinstance(b[key], Mapping):
                merge(a[key], b[key], path + [str(key)])
            elif a[key].__class__ == b[key].__class__:
                a[key] = b[key]
            elif isinstance(a[key], float) and isinstance(b[key], int) and not isinstance(b[key], bool):
                a[key] = float(b[key])
            else:
                raise ValueError(f'Conflict at {".".join(path + [str(key)])}: expected {a[key].__class__.__name__} got {b[key].__class__.__name__}')
        else:
            a[key] = b[key]
    return a

def dict_to_simplenamespace(d:Dict[str, Any]) -> types.SimpleNamespace:
    """ Converts a dict recursively to a SimpleNamespace. """
    d = d.copy()
    for key in d:
        if isinstance(d[key], dict):
            d[key] = dict_to_simplenamespace(d[key])

    return types.SimpleNamespace(**d)

def load_config(config_file:Optional[Union[str, TextIO]]=None, overrides:Optional[Mapping[str, Any]]=None) -> types.SimpleNamespace:
    """ (Re)loads Settings from the built-in config plus optional overrides.

    Overrides are applied in order: EVENTSCRIPT_CONFIG file, config_file,
    then the overrides dict.
    """
    config = toml.loads(importlib.resources.read_text("eventscript.data", "config.toml"))

    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        with open(env_path, "rt") as env_file:
            merge(config, toml.load(env_file))
    if config_file:
        merge(config, toml.load(config_file))
    if overrides:
        merge(config, overrides)

    global Settings
    Settings = dict_to_simplenamespace(config)

    return Settings

Settings = load_config()
