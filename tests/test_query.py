import numpy as np

from eventscript.query import GameQuery
from . import MockGamestate, MockRegion, MockUnit

def nids(units):
    return [u.nid for u in units]

def test_func_dict_names(game):
    funcs = GameQuery(game).func_dict()
    assert funcs["get_closest_allies"] == funcs["getClosestAllies"]
    assert funcs["any_unit_in_region"] == funcs["anyUnitInRegion"]
    assert "u" in funcs and "v" in funcs

def test_units(game):
    q = GameQuery(game)
    assert q.u("Seth").nid == "Seth"
    assert q.u("Lyon") is None
    assert nids(q.get_player_units()) == ["Eirika", "Seth", "Franz"]
    assert nids(q.get_player_units(only_on_field=True)) == ["Eirika", "Seth"]
    assert nids(q.get_enemy_units()) == ["Bandit1", "Bandit2", "Bone"]
    assert nids(q.get_team_units("other")) == []

def test_dead_and_alive(game):
    q = GameQuery(game)
    assert q.is_dead("Franz")
    assert not q.is_dead(game.get_unit("Seth"))
    assert q.is_dead("Lyon")
    assert q.check_alive("Seth")
    assert q.check_dead("Franz")

def test_missing_game_accessors():
    q = GameQuery(object())
    assert q.u("Seth") is None
    assert q.get_all_units() == []
    assert q.v("x", 5) == 5
    assert q.get_money() == 0
    assert q.resolve_region("village") is None

def test_variables(game):
    game.game_vars["chapter"] = 2
    game.level_vars["chapter"] = 3
    game.game_vars["gold_found"] = True
    game.money = 500
    q = GameQuery(game)
    assert q.v("chapter") == 3
    assert q.v("gold_found")
    assert q.v("missing") is None
    assert q.v("missing", "default") == "default"
    assert q.get_money() == 500

def test_items_and_skills():
    class Item:
        def __init__(self, nid):
            self.nid = nid
    sword = Item("iron_sword")
    game = MockGamestate(units=[MockUnit("Seth", items=[sword, "vulnerary"], skills=["canto"])])
    q = GameQuery(game)
    assert q.get_item("Seth", "iron_sword") is sword
    assert q.has_item("Seth", "vulnerary")
    assert not q.has_item("Seth", "elixir")
    assert not q.has_item("Lyon", "elixir")
    assert q.has_skill("Seth", "canto")
    assert not q.has_skill("Seth", "luna")

def test_resolve_position(game):
    q = GameQuery(game)
    assert q.resolve_position((3, 4)) == (3, 4)
    assert q.resolve_position(np.array([3, 4])) == (3, 4)
    assert q.resolve_position("Seth") == (2, 1)
    assert q.resolve_position(game.get_unit("Eirika")) == (1, 1)
    assert q.resolve_position("Lyon") is None
    assert q.resolve_position(None) is None

def test_units_with_distance(game):
    q = GameQuery(game)
    units, distances = q.units_with_distance((0, 0), q.get_all_units())
    # Franz is dead
    assert nids(units) == ["Eirika", "Seth", "Bandit1", "Bandit2", "Bone"]
    assert distances.tolist() == [2, 3, 10, 11, 18]

    units, distances = q.units_with_distance(None, q.get_all_units())
    assert units == []
    assert distances.shape == (0,)

def test_closest_allies(game):
    q = GameQuery(game)
    closest = q.get_closest_allies((3, 1), num=2)
    assert [(u.nid, d) for u, d in closest] == [("Seth", 1), ("Eirika", 2)]
    # asking for more than there are
    closest = q.get_closest_allies((1, 2), num=5)
    assert [(u.nid, d) for u, d in closest] == [("Eirika", 1), ("Seth", 2)]

def test_allied_teams_from_game(game):
    game.get_allied_teams = lambda: ("player", "enemy")
    q = GameQuery(game)
    assert nids(u for u, _ in q.get_closest_allies((5, 4), num=2)) == ["Bandit1", "Bandit2"]

def test_units_within_distance(game):
    q = GameQuery(game)
    assert nids(q.get_units_within_distance((5, 5), 1)) == ["Bandit1", "Bandit2"]
    assert nids(q.get_units_within_distance((5, 5), 1, nid="Bandit2")) == ["Bandit2"]
    assert nids(q.get_units_within_distance("Bandit1", 8, team="enemy", tag="boss")) == ["Bone"]
    assert nids(q.get_allies_within_distance("Eirika", 1)) == ["Eirika", "Seth"]

def test_units_in_area(game):
    q = GameQuery(game)
    # corners in any order, inclusive
    assert nids(q.get_units_in_area((6, 5), (1, 1))) == ["Eirika", "Seth", "Bandit1", "Bandit2"]
    assert nids(q.get_units_in_area((8, 8), (8, 8))) == []

def test_units_in_region(game):
    q = GameQuery(game)
    # village covers x 4..6, y 4..5
    assert nids(q.get_units_in_region("village")) == ["Bandit1", "Bandit2"]
    assert nids(q.get_units_in_region(game.get_region("village"), nid="Bandit2")) == ["Bandit2"]
    assert q.any_unit_in_region("village", team="enemy")
    assert not q.any_unit_in_region("village", team="player")
    assert q.get_units_in_region("castle") == []

    # size is exclusive, x 7 is past the edge
    game.add_unit(MockUnit("Archer", team="enemy", position=(7, 4)))
    assert nids(q.get_units_in_region("village")) == ["Bandit1", "Bandit2"]
    game.regions["edge"] = MockRegion("edge", position=(7, 4))
    assert nids(q.get_units_in_region("edge")) == ["Archer"]
