""" Utility methods broadly applicable across the codebase. """

from __future__ import annotations

import sys
import logging
import pdb
import re
from typing import Any, Iterator, List

QUOTES = ('"', "'")

def fullname(o:Any) -> str:
    # from https://stackoverflow.com/a/2020083/553580
    # Python makes no guarantees as to whether the __module__ special
    # attribute is defined, so we take a more circumspect approach.

    if isinstance(o, type):
        klass = o
    else:
        klass = o.__class__

    module = klass.__module__
    if module is None or module == str.__class__.__module__:
        return klass.__qualname__  # Avoid reporting __builtin__
    else:
        return module + '.' + klass.__qualname__

RE_SNAKE_TO_CAMEL = re.compile(r'_([a-z0-9])')
def snake_to_camel(name: str) -> str:
    """ e.g. current_hp => currentHp """
    return RE_SNAKE_TO_CAMEL.sub(lambda m: m.group(1).upper(), name)

def is_quoted(s:str) -> bool:
    return len(s) >= 2 and s[0] in QUOTES and s[-1] == s[0]

def strip_quotes(s:str) -> str:
    """ Strip one pair of matching outer quotes, if present. """
    if is_quoted(s):
        return s[1:-1]
    return s

def top_level_positions(text:str) -> Iterator[int]:
    """ Yields indices of characters outside of quotes and brackets.

    Quotes may contain backslash escaped quote characters. Brackets are (), []
    and {}. Opening brackets themselves are not yielded, closing brackets that
    return to the top level are not yielded either.
    """
    depth = 0
    in_string = ""
    escaped = False
    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == in_string:
                in_string = ""
            continue
        if ch in QUOTES:
            in_string = ch
            continue
        if ch in "([{":
            depth += 1
            continue
        if ch in ")]}":
            depth -= 1
            continue
        if depth == 0:
            yield i

def is_balanced(text:str) -> bool:
    """ True iff brackets balance and every quote is closed. """
    depth = 0
    in_string = ""
    escaped = False
    for ch in text:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == in_string:
                in_string = ""
            continue
        if ch in QUOTES:
            in_string = ch
        elif ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth -= 1
            if depth < 0:
                return False
    return depth == 0 and not in_string

def find_top_level(text:str, token:str, start:int=0) -> int:
    """ Index of the first top level occurrence of token, -1 if none. """
    for i in top_level_positions(text):
        if i >= start and text.startswith(token, i):
            return i
    return -1

def split_top_level(text:str, delimiter:str) -> List[str]:
    """ Split text on delimiter, ignoring delimiters in quotes or brackets. """
    parts:List[str] = []
    start = 0
    for i in top_level_positions(text):
        if i < start:
            continue
        if text.startswith(delimiter, i):
            parts.append(text[start:i])
            start = i + len(delimiter)
    parts.append(text[start:])
    return parts

def find_matching_paren(text:str, start:int) -> int:
    """ Index of the paren closing the one at text[start], -1 if none. """
    depth = 0
    in_string = ""
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == in_string:
                in_string = ""
            continue
        if ch in QUOTES:
            in_string = ch
        elif ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return i
    return -1

class PDBManager:
    def __init__(self) -> None:
        self.logger = logging.getLogger(fullname(self))

    def __enter__(self) -> PDBManager:
        self.logger.info("entering PDBManager")

        return self

    def __exit__(self, e:Any, m:Any, tb:Any) -> None:
        self.logger.info("exiting PDBManager")
        if e is not None:
            self.logger.info(f'handling exception {e} {m}')
            print(m.__repr__(), file=sys.stderr)
            pdb.post_mortem(tb)
