""" Event condition parsing and evaluation.

Conditions are small boolean expressions written by level authors, e.g.

    unit.team == 'player' and game.turncount >= 3
    check_pair('Eirika', 'Seth') or not briefing_done
    len(game.get_enemy_units()) == 0

Grammar, lowest precedence first:

    CONDITION  := AND_EXPR (" or " AND_EXPR)*
    AND_EXPR   := NOT_EXPR (" and " NOT_EXPR)*
    NOT_EXPR   := "not " NOT_EXPR | ATOM
    ATOM       := "(" CONDITION ")" | PREDICATE | COMPARISON | REF
    PREDICATE  := check_dead(ID) | check_pair(ID, ID)
                | check_default(ID, [ID, ...]) | len(POPULATION) OP INT
    COMPARISON := REF OP REF, OP in == != >= <= > <
    REF        := literal | dotted reference (see context.resolve)

Splitting on or/and/comparison operators only happens outside of quotes and
parens.

Conditions fail open: anything we can't parse, and any bare reference we
can't resolve, evaluates true with a warning. Skipping authored content
because of a typo is worse than occasionally running it.
"""

import functools
import logging
import re
from typing import Any, Optional, Sequence

from eventscript import predicates, util
from eventscript.context import ABSENT, REFERENCE_RE, EventContext, parse_literal, resolve
from eventscript.core import unit_is_dead

logger = logging.getLogger(__name__)

COMPARISON_OPS = ("==", "!=", ">=", "<=", ">", "<")

TRUE_LITERALS = ("True", "true", "1")
FALSE_LITERALS = ("False", "false", "0")

CHECK_DEAD_RE = re.compile(r'''^(?:game\.)?check_dead\s*\(\s*(['"])(.+?)\1\s*\)$''')
CHECK_PAIR_RE = re.compile(r'''^(?:game\.)?check_pair\s*\(\s*(['"])(.+?)\1\s*,\s*(['"])(.+?)\3\s*\)$''')
CHECK_DEFAULT_RE = re.compile(r'''^(?:game\.)?check_default\s*\(\s*(['"])(.+?)\1\s*,\s*\[(.*?)\]\s*\)$''')
POPULATION_RE = re.compile(r'''^len\s*\(\s*game\.get_(enemy|player|team)_units\s*\(\s*(?:(['"])(.+?)\2)?\s*\)\s*\)\s*(==|!=|>=|<=|>|<)\s*(\d+)$''')


class ConditionError(ValueError):
    """ A condition string that can't be parsed. """


def compare(lhs:Any, op:str, rhs:Any) -> bool:
    if op == "==":
        return lhs == rhs
    elif op == "!=":
        return lhs != rhs
    elif op == ">":
        return lhs > rhs
    elif op == "<":
        return lhs < rhs
    elif op == ">=":
        return lhs >= rhs
    elif op == "<=":
        return lhs <= rhs
    raise ValueError(f'unknown comparison operator {op}')


def as_number(value:Any) -> Optional[float]:
    if value is ABSENT or value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def is_unit_dead(nid:str, context:EventContext) -> bool:
    """ A unit is dead if the game says so or if the game doesn't know it. """
    game = context.game
    if game is None:
        return False
    get_unit = getattr(game, "get_unit", None)
    unit = get_unit(nid) if callable(get_unit) else None
    if unit is None:
        return True
    return unit_is_dead(unit)


def unit_nid(unit:Any) -> Optional[str]:
    if unit is None:
        return None
    if isinstance(unit, str):
        return unit
    if isinstance(unit, dict):
        return unit.get("nid")
    return getattr(unit, "nid", None)


class CompareCriteria(predicates.Criteria[EventContext]):
    def __init__(self, left:str, op:str, right:str) -> None:
        self.left = left
        self.op = op
        self.right = right

    def evaluate(self, context:EventContext) -> bool:
        lhs = resolve(self.left, context)
        rhs = resolve(self.right, context)

        lhs_num = as_number(lhs)
        rhs_num = as_number(rhs)
        if lhs_num is not None and rhs_num is not None:
            return compare(lhs_num, self.op, rhs_num)

        # unresolved sides compare as their raw text
        lhs_str = str(lhs) if lhs is not ABSENT else self.left
        rhs_str = str(rhs) if rhs is not ABSENT else self.right
        return compare(lhs_str, self.op, rhs_str)

    def __repr__(self) -> str:
        return f'CompareCriteria({self.left!r} {self.op} {self.right!r})'


class ReferenceCriteria(predicates.Criteria[EventContext]):
    def __init__(self, reference:str) -> None:
        self.reference = reference

    def evaluate(self, context:EventContext) -> bool:
        value = resolve(self.reference, context)
        if value is ABSENT:
            logger.warning(f'cannot resolve "{self.reference}" in condition, defaulting to true')
            return True
        return bool(value)

    def __repr__(self) -> str:
        return f'ReferenceCriteria({self.reference!r})'


class CheckDeadCriteria(predicates.Criteria[EventContext]):
    def __init__(self, nid:str) -> None:
        self.nid = nid

    def evaluate(self, context:EventContext) -> bool:
        return is_unit_dead(self.nid, context)


class CheckPairCriteria(predicates.Criteria[EventContext]):
    """ The two trigger actors are a and b, in either order. """

    def __init__(self, a:str, b:str) -> None:
        self.a = a
        self.b = b

    def evaluate(self, context:EventContext) -> bool:
        u1 = unit_nid(context.unit1)
        u2 = unit_nid(context.unit2)
        return (u1 == self.a and u2 == self.b) or (u1 == self.b and u2 == self.a)


class CheckDefaultCriteria(predicates.Criteria[EventContext]):
    """ unit2 is target and unit1 is not one of the exceptions.

    Used for default talk/visit conversations that specific pairings override.
    """

    def __init__(self, target:str, exceptions:Sequence[str]) -> None:
        self.target = target
        self.exceptions = list(exceptions)

    def evaluate(self, context:EventContext) -> bool:
        if unit_nid(context.unit2) != self.target:
            return False
        return (unit_nid(context.unit1) or "") not in self.exceptions


class PopulationCriteria(predicates.Criteria[EventContext]):
    """ Compares the number of living units on a team to a constant. """

    def __init__(self, team:str, op:str, count:int) -> None:
        self.team = team
        self.op = op
        self.count = count

    def evaluate(self, context:EventContext) -> bool:
        game = context.game
        get_team_units = getattr(game, "get_team_units", None)
        units = get_team_units(self.team) if callable(get_team_units) else []
        alive = sum(1 for unit in units or [] if not unit_is_dead(unit))
        return compare(alive, self.op, self.count)


def find_comparison(text:str) -> tuple[int, str]:
    """ First top level comparison operator in text as (index, op). """
    for i in util.top_level_positions(text):
        two = text[i:i+2]
        if two in COMPARISON_OPS:
            return i, two
        if text[i] in COMPARISON_OPS:
            return i, text[i]
    return -1, ""


def parse_predicate(text:str) -> Optional[predicates.Criteria[EventContext]]:
    m = CHECK_DEAD_RE.match(text)
    if m:
        return CheckDeadCriteria(m.group(2))

    m = CHECK_PAIR_RE.match(text)
    if m:
        return CheckPairCriteria(m.group(2), m.group(4))

    m = CHECK_DEFAULT_RE.match(text)
    if m:
        exceptions = [util.strip_quotes(x.strip()) for x in m.group(3).split(",") if x.strip()]
        return CheckDefaultCriteria(m.group(2), exceptions)

    m = POPULATION_RE.match(text)
    if m:
        kind, _, team, op, count = m.groups()
        if kind == "team":
            if team is None:
                raise ConditionError(f'get_team_units needs a team in "{text}"')
        else:
            team = kind
        return PopulationCriteria(team, op, int(count))

    return None


def parse_condition(text:str) -> predicates.Criteria[EventContext]:
    text = text.strip()

    if text == "" or text in TRUE_LITERALS:
        return predicates.Literal(True)
    if text in FALSE_LITERALS:
        return predicates.Literal(False)

    parts = util.split_top_level(text, " or ")
    if len(parts) > 1:
        return predicates.any_of([parse_operand(p, text) for p in parts])

    parts = util.split_top_level(text, " and ")
    if len(parts) > 1:
        return predicates.all_of([parse_operand(p, text) for p in parts])

    if text.lower().startswith("not ") or text.lower().startswith("not("):
        return predicates.Negation(parse_operand(text[3:], text))

    if text.startswith("(") and util.find_matching_paren(text, 0) == len(text) - 1:
        return parse_condition(text[1:-1])

    predicate = parse_predicate(text)
    if predicate is not None:
        return predicate

    idx, op = find_comparison(text)
    if idx >= 0:
        lhs = text[:idx].strip()
        rhs = text[idx+len(op):].strip()
        if lhs == "" or rhs == "":
            raise ConditionError(f'comparison missing an operand in "{text}"')
        if find_comparison(rhs)[0] >= 0:
            raise ConditionError(f'chained comparison in "{text}"')
        return CompareCriteria(lhs, op, rhs)

    if parse_literal(text) is not ABSENT:
        return ReferenceCriteria(text)
    if not REFERENCE_RE.match(text):
        raise ConditionError(f'"{text}" is not a reference')
    return ReferenceCriteria(text)


def parse_operand(operand:str, whole:str) -> predicates.Criteria[EventContext]:
    if operand.strip() == "":
        raise ConditionError(f'empty operand in "{whole}"')
    return parse_condition(operand)


@functools.lru_cache(maxsize=1024)
def load_condition(condition:str) -> predicates.Criteria[EventContext]:
    """ Parses condition into a predicate tree.

    raises ConditionError if the condition can't be parsed.
    """
    if not isinstance(condition, str):
        raise ConditionError(f'condition must be a string, got {condition!r}')
    if not util.is_balanced(condition):
        raise ConditionError(f'unbalanced quotes or brackets in "{condition}"')
    return parse_condition(condition)


def evaluate_condition(condition:Optional[str], context:EventContext) -> bool:
    """ Evaluates condition against context, failing open. """
    if condition is None:
        return True
    try:
        criteria = load_condition(condition)
    except ConditionError as e:
        logger.warning(f'cannot evaluate condition "{condition}": {e}, defaulting to true')
        return True

    try:
        return criteria.evaluate(context)
    except (TypeError, ValueError, AttributeError, KeyError) as e:
        logger.warning(f'error evaluating condition "{condition}": {e!r}, defaulting to true')
        return True
