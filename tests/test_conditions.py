import logging

import pytest

from eventscript import conditions, predicates
from eventscript.conditions import evaluate_condition, load_condition
from eventscript.context import EventContext
from . import MockGamestate, MockUnit

def test_team_and_turncount():
    condition = "unit.team == 'player' and game.turncount >= 3"
    context = EventContext(unit1={"team": "player"}, game={"turncount": 3})
    assert evaluate_condition(condition, context)
    context = EventContext(unit1={"team": "player"}, game={"turncount": 2})
    assert not evaluate_condition(condition, context)

def test_literals_short_circuit():
    context = EventContext()
    assert evaluate_condition("", context)
    assert evaluate_condition(None, context)
    assert evaluate_condition("True", context)
    assert evaluate_condition("true", context)
    assert not evaluate_condition("False", context)
    assert not evaluate_condition("false", context)
    assert isinstance(load_condition(""), predicates.Literal)

def test_or_binds_looser_than_and():
    context = EventContext(local_args={"a": True, "b": False, "c": False})
    # (a or b) and c would be false
    assert evaluate_condition("a or b and c", context)
    tree = load_condition("a or b and c")
    assert isinstance(tree, predicates.Disjunction)
    assert isinstance(tree.b, predicates.Conjunction)

def test_not_and_parens():
    context = EventContext(local_args={"a": True, "b": False})
    assert evaluate_condition("not b", context)
    assert not evaluate_condition("not a", context)
    assert evaluate_condition("not (a and b)", context)
    assert not evaluate_condition("(a and b)", context)
    assert evaluate_condition("(a or b) and not b", context)

def test_split_ignores_quotes():
    context = EventContext(local_args={"name": "this and that"})
    assert evaluate_condition("name == 'this and that'", context)
    assert evaluate_condition("name != 'this or that'", context)

def test_numeric_vs_string_compare():
    context = EventContext(local_args={"count": "10", "name": "b"})
    # numeric, "10" > 9 even though "10" < "9" as strings
    assert evaluate_condition("count > 9", context)
    assert evaluate_condition("count == 10.0", context)
    assert evaluate_condition("name > 'a'", context)
    assert not evaluate_condition("name < 'a'", context)

def test_unresolved_sides_compare_as_text():
    context = EventContext()
    assert evaluate_condition("mystery == mystery", context)
    assert not evaluate_condition("mystery == 'other'", context)

def test_bare_reference(caplog):
    game = MockGamestate()
    game.level_vars["briefing_done"] = 0
    game.game_vars["chapter_clear"] = True
    context = EventContext.for_game(game)
    assert not evaluate_condition("briefing_done", context)
    assert evaluate_condition("chapter_clear", context)
    assert evaluate_condition("not briefing_done", context)

    with caplog.at_level(logging.WARNING):
        assert evaluate_condition("never_set", context)
    assert "never_set" in caplog.text

def test_fail_open_on_garbage(caplog):
    context = EventContext()
    with caplog.at_level(logging.WARNING):
        assert evaluate_condition("unit.team == ", context)
        assert evaluate_condition("a == b == c", context)
        assert evaluate_condition("f(x", context)
        assert evaluate_condition("a and", context)
        assert evaluate_condition("x + 1", context)
    assert "defaulting to true" in caplog.text

def test_load_condition_raises():
    with pytest.raises(conditions.ConditionError):
        load_condition("a ==")
    with pytest.raises(conditions.ConditionError):
        load_condition("(a")
    with pytest.raises(ValueError):
        load_condition(42) # type: ignore[arg-type]

def test_idempotent():
    game = MockGamestate(units=[MockUnit("Seth")])
    context = EventContext.for_game(game, unit1=game.get_unit("Seth"))
    condition = "unit.nid == 'Seth' and not check_dead('Seth')"
    results = [evaluate_condition(condition, context) for _ in range(5)]
    assert results == [True] * 5
    assert load_condition(condition) is load_condition(condition)

def test_check_dead(game, context):
    assert evaluate_condition("check_dead('Franz')", context)
    assert not evaluate_condition("check_dead('Seth')", context)
    assert evaluate_condition("game.check_dead(\"Franz\")", context)
    # a unit the game has never heard of counts as dead
    assert evaluate_condition("check_dead('Lyon')", context)
    # no game at all, nothing is dead
    assert not evaluate_condition("check_dead('Lyon')", EventContext())

def test_check_pair(game):
    context = EventContext.for_game(game, unit1=game.get_unit("Eirika"), unit2=game.get_unit("Seth"))
    assert evaluate_condition("check_pair('Eirika', 'Seth')", context)
    assert evaluate_condition("check_pair('Seth', 'Eirika')", context)
    assert not evaluate_condition("check_pair('Seth', 'Franz')", context)

    context = EventContext(unit1="Eirika", unit2="Seth")
    assert evaluate_condition("check_pair('Seth', 'Eirika')", context)

def test_check_default(game):
    context = EventContext.for_game(game, unit1=game.get_unit("Eirika"), unit2=game.get_unit("Seth"))
    assert evaluate_condition("check_default('Seth', ['Franz'])", context)
    assert not evaluate_condition("check_default('Seth', ['Eirika', 'Franz'])", context)
    assert not evaluate_condition("check_default('Eirika', [])", context)

def test_population(game, context):
    # Bandit1, Bandit2 and Bone are alive
    assert evaluate_condition("len(game.get_enemy_units()) == 3", context)
    assert evaluate_condition("len(game.get_enemy_units()) > 2", context)
    # Franz is dead
    assert evaluate_condition("len(game.get_player_units()) == 2", context)
    assert evaluate_condition("len(game.get_team_units('enemy')) != 0", context)

    game.get_unit("Bone").dead = True
    assert evaluate_condition("len(game.get_enemy_units()) == 2", context)

def test_population_needs_team():
    with pytest.raises(conditions.ConditionError):
        load_condition("len(game.get_team_units()) == 0")
