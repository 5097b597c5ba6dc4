""" Expression support for the indented script dialect.

Script expressions are mostly Python, with a few spellings borrowed from
other languages that authors reach for anyway. translate() rewrites those
into plain Python before evaluation:

    true / false / null       => True / False / None
    a && b, a || b, !a        => a and b, a or b, not a
    a ** b                    => power(a, b)      (right associative)
    a // b                    => floordiv(a, b)
    x in y, x not in y        => contains(y, x), not contains(y, x)
    {v:name}                  => v('name')
    {e:expr}                  => (expr)
    `text ${expr}`            => f"text {expr}"

Operands of the binary rewrites are primaries (names, dotted names, calls,
subscripts, literals and bracketed groups), so mixing precedence levels
without parentheses, e.g. "a * b // c", is not rewritten faithfully. String
literal contents are never rewritten.

evaluate() runs translated code with no builtins, against a namespace the
caller builds (see HELPERS for the functions scripts always get).
"""

import functools
import logging
import math
import re
from typing import Any, Mapping, Optional

from eventscript import config

script_logger = logging.getLogger("eventscript.script")

STRING_RE = re.compile(r'''([rRbBfFuU]{0,2})("""|\'\'\'|"|')((?:\\.|(?!\2).)*?)\2''', re.DOTALL)
BACKTICK_RE = re.compile(r'`([^`]*)`')
TEMPLATE_EXPR_RE = re.compile(r'\$\{(.*?)\}')
VAR_MARKER_RE = re.compile(r'\{v:\s*(\w+)\s*\}')
EXPR_MARKER_RE = re.compile(r'\{e:(.+?)\}')
PLACEHOLDER_RE = re.compile(r'__str(\d+)__')
IN_RE = re.compile(r'\bin\b')
FOR_TARGET_RE = re.compile(r'\bfor\s+\(?\s*\w+(?:\s*,\s*\w+)*\s*\)?\s*$')
NOT_BEFORE_RE = re.compile(r'\bnot\s+$')
# text that can come right before a unary sign
UNARY_CONTEXT_RE = re.compile(r'(?:^|[(\[{,=<>!:]|\b(?:and|or|not|if|else|in|return))\s*$')

LITERAL_SPELLINGS = {
    "true": "True",
    "false": "False",
    "null": "None",
}
LITERAL_RE = re.compile(r'(?<![\w.])(true|false|null)(?!\w)')

OPENERS = {"(": ")", "[": "]", "{": "}"}
CLOSERS = {")": "(", "]": "[", "}": "{"}


class ExpressionError(ValueError):
    """ A script expression that can't be translated, compiled or run. """


def contains(container:Any, item:Any) -> bool:
    if container is None:
        return False
    return item in container


def floordiv(a:Any, b:Any) -> Any:
    if b == 0:
        raise ExpressionError(f'integer division of {a!r} by zero')
    return a // b


def power(base:Any, exponent:Any) -> Any:
    max_exponent = config.Settings.scripting.MAX_EXPONENT
    if abs(exponent) > max_exponent:
        raise ExpressionError(f'exponent {exponent!r} exceeds {max_exponent}')
    return base ** exponent


def script_print(*args:Any) -> None:
    script_logger.info(" ".join(str(a) for a in args))


# lists rather than one-shot iterators, so a local holding one can be
# looped over twice and saved
def script_zip(*iterables:Any) -> list[tuple[Any, ...]]:
    return list(zip(*iterables))


def script_enumerate(iterable:Any, start:int=0) -> list[tuple[int, Any]]:
    return list(enumerate(iterable, start))


def script_reversed(sequence:Any) -> list[Any]:
    return list(reversed(sequence))


HELPERS:Mapping[str, Any] = {
    "len": len,
    "range": range,
    "min": min,
    "max": max,
    "sum": sum,
    "sorted": sorted,
    "reversed": script_reversed,
    "zip": script_zip,
    "enumerate": script_enumerate,
    "any": any,
    "all": all,
    "abs": abs,
    "round": round,
    "bool": bool,
    "int": int,
    "float": float,
    "str": str,
    "list": list,
    "tuple": tuple,
    "set": set,
    "dict": dict,
    "isinstance": isinstance,
    "math": math,
    "print": script_print,
    "contains": contains,
    "floordiv": floordiv,
    "power": power,
}


class Literals:
    """ String literals pulled out of an expression, replaced by placeholders. """

    def __init__(self) -> None:
        self.values:list[str] = []

    def add(self, literal:str) -> str:
        self.values.append(literal)
        return f'__str{len(self.values)-1}__'

    def mask(self, text:str) -> str:
        return STRING_RE.sub(lambda m: self.add(m.group(0)), text)

    def unmask(self, text:str) -> str:
        # literals can nest (templates hold masked text), so repeat
        while PLACEHOLDER_RE.search(text):
            text = PLACEHOLDER_RE.sub(lambda m: self.values[int(m.group(1))], text)
        return text


def match_forward(s:str, i:int) -> int:
    depth = 0
    for j in range(i, len(s)):
        if s[j] in OPENERS:
            depth += 1
        elif s[j] in CLOSERS:
            depth -= 1
            if depth == 0:
                return j
    return -1


def match_backward(s:str, i:int) -> int:
    depth = 0
    for j in range(i, -1, -1):
        if s[j] in CLOSERS:
            depth += 1
        elif s[j] in OPENERS:
            depth -= 1
            if depth == 0:
                return j
    return -1


def left_operand(s:str, end:int, signed:bool=False) -> tuple[int, str]:
    """ The primary ending just before end, as (start index, text).

    With signed, a unary sign in front of the primary is part of it.
    """
    i = end
    while i > 0 and s[i-1].isspace():
        i -= 1
    stop = i
    while i > 0:
        ch = s[i-1]
        if ch in CLOSERS:
            j = match_backward(s, i-1)
            if j < 0:
                break
            i = j
        elif ch.isalnum() or ch in "_.":
            i -= 1
        else:
            break
    if signed and i < stop:
        j = i
        while j > 0 and s[j-1].isspace():
            j -= 1
        if j > 0 and s[j-1] in "+-" and UNARY_CONTEXT_RE.search(s[:j-1]):
            i = j - 1
    return i, s[i:stop]


def right_operand(s:str, begin:int) -> tuple[int, str]:
    """ The primary (with any unary sign) starting at begin, as (end index, text). """
    i = begin
    n = len(s)
    while i < n and s[i].isspace():
        i += 1
    start = i
    while i < n and s[i] in "+-":
        i += 1
    primary = i
    while i < n:
        ch = s[i]
        if ch in OPENERS:
            j = match_forward(s, i)
            if j < 0:
                break
            i = j + 1
        elif ch.isalnum() or ch in "_.":
            i += 1
        else:
            break
    if i == primary:
        return begin, ""
    return i, s[start:i]


def rewrite_binary(s:str, op:str, func:str, rightmost_first:bool, signed_left:bool=False) -> str:
    """ Rewrites every "a OP b" as "func(a, b)". """
    search_end = len(s)
    search_start = 0
    while True:
        if rightmost_first:
            idx = s.rfind(op, 0, search_end)
        else:
            idx = s.find(op, search_start)
        if idx < 0:
            return s
        start, lhs = left_operand(s, idx, signed=signed_left)
        end, rhs = right_operand(s, idx + len(op))
        if lhs == "" or rhs == "":
            # e.g. f(**kwargs), leave it to the evaluator
            search_end = idx
            search_start = idx + len(op)
            continue
        replacement = f'{func}({lhs}, {rhs})'
        s = s[:start] + replacement + s[end:]
        search_end = start + len(replacement)
        search_start = start


def rewrite_membership(s:str) -> str:
    pos = 0
    while True:
        m = IN_RE.search(s, pos)
        if m is None:
            return s
        before = s[:m.start()]
        if FOR_TARGET_RE.search(before):
            pos = m.end()
            continue
        negated = NOT_BEFORE_RE.search(before)
        op_start = negated.start() if negated else m.start()
        start, lhs = left_operand(s, op_start, signed=True)
        end, rhs = right_operand(s, m.end())
        if lhs == "" or rhs == "":
            pos = m.end()
            continue
        replacement = f'{"not " if negated else ""}contains({rhs}, {lhs})'
        s = s[:start] + replacement + s[end:]
        pos = start


def template_to_fstring(content:str, literals:Literals) -> str:
    """ `text ${expr}` contents to an f-string literal. """
    pieces:list[str] = []
    last = 0
    for m in TEMPLATE_EXPR_RE.finditer(content):
        text = literals.unmask(content[last:m.start()])
        pieces.append(text.replace("{", "{{").replace("}", "}}"))
        pieces.append("{" + translate(literals.unmask(m.group(1))) + "}")
        last = m.end()
    text = literals.unmask(content[last:])
    pieces.append(text.replace("{", "{{").replace("}", "}}"))
    body = "".join(pieces)
    for quote in ('"', "'", '"""', "'''"):
        if quote not in body:
            return f'f{quote}{body}{quote}'
    raise ExpressionError(f'cannot quote template `{content}`')


@functools.lru_cache(maxsize=4096)
def translate(expr:str) -> str:
    """ Rewrites a script expression into Python source. """
    literals = Literals()
    s = literals.mask(expr.strip())

    s = BACKTICK_RE.sub(lambda m: literals.add(template_to_fstring(m.group(1), literals)), s)
    s = VAR_MARKER_RE.sub(lambda m: f'v({literals.add(repr(m.group(1)))})', s)
    s = EXPR_MARKER_RE.sub(lambda m: f'({m.group(1)})', s)

    s = s.replace("&&", " and ").replace("||", " or ")
    s = re.sub(r'!(?!=)\s*', 'not ', s)
    s = LITERAL_RE.sub(lambda m: LITERAL_SPELLINGS[m.group(1)], s)

    s = rewrite_binary(s, "**", "power", rightmost_first=True)
    s = rewrite_binary(s, "//", "floordiv", rightmost_first=False, signed_left=True)
    s = rewrite_membership(s)

    return literals.unmask(s)


@functools.lru_cache(maxsize=4096)
def compile_expression(expr:str) -> Any:
    source = translate(expr)
    try:
        return compile(source, "<script>", "eval")
    except SyntaxError as e:
        raise ExpressionError(f'cannot compile "{expr}" (as "{source}"): {e.msg}') from e


def evaluate(expr:str, namespace:Optional[Mapping[str, Any]]=None) -> Any:
    """ Evaluates a script expression against namespace.

    raises ExpressionError for anything that goes wrong, including errors
    raised by the expression itself.
    """
    code = compile_expression(expr)
    # names live in globals so comprehensions can see them
    scope = dict(HELPERS)
    if namespace:
        scope.update(namespace)
    scope["__builtins__"] = {}
    try:
        return eval(code, scope)
    except ExpressionError:
        raise
    except Exception as e:
        raise ExpressionError(f'error evaluating "{expr}": {e!r}') from e

