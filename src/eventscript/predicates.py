""" A boolean logic predicate library

Condition strings are parsed into trees of these and evaluated against an
EventContext (the "universe").
"""

import abc
import functools
from typing import TypeVar, Generic, Sequence

T = TypeVar('T')

class Criteria(Generic[T], abc.ABC):
    @abc.abstractmethod
    def evaluate(self, universe:T) -> bool: ...

class Literal(Criteria[T]):
    def __init__(self, value:bool) -> None:
        self.value = value

    def evaluate(self, universe:T) -> bool:
        return self.value

    def __repr__(self) -> str:
        return f'Literal({self.value})'

class Negation(Criteria[T]):
    def __init__(self, inner:Criteria[T]) -> None:
        self.inner = inner

    def evaluate(self, universe:T) -> bool:
        return not self.inner.evaluate(universe)

    def __repr__(self) -> str:
        return f'Negation({self.inner!r})'

class Disjunction(Criteria[T]):
    def __init__(self, a:Criteria[T], b:Criteria[T]) -> None:
        self.a = a
        self.b = b

    def evaluate(self, universe:T) -> bool:
        return self.a.evaluate(universe) or self.b.evaluate(universe)

    def __repr__(self) -> str:
        return f'Disjunction({self.a!r}, {self.b!r})'

class Conjunction(Criteria[T]):
    def __init__(self, a:Criteria[T], b:Criteria[T]) -> None:
        self.a = a
        self.b = b

    def evaluate(self, universe:T) -> bool:
        return self.a.evaluate(universe) and self.b.evaluate(universe)

    def __repr__(self) -> str:
        return f'Conjunction({self.a!r}, {self.b!r})'

def any_of(criteria:Sequence[Criteria[T]]) -> Criteria[T]:
    """ Left folds criteria into nested Disjunctions, evaluated in order. """
    if len(criteria) == 0:
        raise ValueError("any_of needs at least one criteria")
    return functools.reduce(lambda a, b: Disjunction(a, b), criteria)

def all_of(criteria:Sequence[Criteria[T]]) -> Criteria[T]:
    """ Left folds criteria into nested Conjunctions, evaluated in order. """
    if len(criteria) == 0:
        raise ValueError("all_of needs at least one criteria")
    return functools.reduce(lambda a, b: Conjunction(a, b), criteria)
