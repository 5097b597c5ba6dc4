import json

import pytest

from eventscript import prefabs
from eventscript.event_manager import EventManager, Trigger
from . import drain

TEST_PREFABS = """
[intro]
trigger = "level_start"
level_nid = "chapter_2"
priority = 10
only_once = true
source = '''
#pyev1
if game.turncount == 0:
    $s Seth "Forgive me, my lady..."
'''

[seth_death]
trigger = "unit_death"
condition = "unit.nid == 'Seth'"
name = "Seth falls"
source = ["s;Eirika;Seth!", "m;sad_theme"]
"""

def test_loads():
    intro, death = prefabs.loads(TEST_PREFABS)

    assert intro.nid == "intro"
    assert intro.trigger == "level_start"
    assert intro.level_nid == "chapter_2"
    assert intro.priority == 10
    assert intro.only_once
    assert intro.condition == ""
    assert intro.name == "intro"
    assert intro.source == (
        "#pyev1",
        "if game.turncount == 0:",
        '    $s Seth "Forgive me, my lady..."',
    )

    assert death.level_nid is None
    assert death.condition == "unit.nid == 'Seth'"
    assert not death.only_once
    assert death.name == "Seth falls"
    assert death.source == ("s;Eirika;Seth!", "m;sad_theme")

def test_loaded_prefabs_run(game):
    manager = EventManager(prefabs.loads(TEST_PREFABS), game_getter=lambda: game)
    assert manager.trigger(Trigger("level_start", level_nid="chapter_2"))
    assert [str(c) for c in drain(manager)] == ["speak;Seth;Forgive me, my lady..."]

    assert manager.trigger(Trigger("unit_death", unit1=game.get_unit("Seth")))
    assert [str(c) for c in drain(manager)] == ["speak;Eirika;Seth!", "music;sad_theme"]

@pytest.mark.parametrize("data", [
    {"x": {"condition": "true"}},
    {"x": {"trigger": ""}},
    {"x": {"trigger": "a", "priority": "high"}},
    {"x": {"trigger": "a", "priority": True}},
    {"x": {"trigger": "a", "only_once": "yes"}},
    {"x": {"trigger": "a", "condition": 3}},
    {"x": {"trigger": "a", "level_nid": 2}},
    {"x": {"trigger": "a", "source": [1, 2]}},
    {"x": {"trigger": "a", "source": 5}},
    {"x": "not a table"},
])
def test_bad_prefabs(data):
    with pytest.raises(ValueError):
        prefabs.loadd(data)

def test_defaults():
    (prefab,) = prefabs.loadd({"bare": {"trigger": "turn_change"}})
    assert prefab.source == ()
    assert prefab.priority == 0
    assert not prefab.only_once
    assert prefab.level_nid is None

def test_load_json():
    data = json.dumps([
        {"nid": "a", "trigger": "level_start", "_source": ["s;hello"]},
        {"nid": "b", "trigger": "level_end", "priority": 2, "condition": None, "_source": []},
    ])
    a, b = prefabs.load_json(data)
    assert a.source == ("s;hello",)
    assert b.priority == 2
    assert b.condition == ""

    with pytest.raises(ValueError):
        prefabs.load_json(json.dumps({"nid": "a"}))
    with pytest.raises(ValueError):
        prefabs.load_json(json.dumps([{"trigger": "level_start"}]))
