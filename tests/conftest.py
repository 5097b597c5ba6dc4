import logging
from typing import Generator

import pytest

from eventscript import config
from eventscript.context import EventContext
from eventscript.event_manager import EventManager
from . import MockGamestate, MockUnit, MockRegion

# some logging to turn on if we like
#logging.getLogger("eventscript.interpreter").level = logging.DEBUG
#logging.getLogger("eventscript.event_manager").level = logging.DEBUG

@pytest.fixture(autouse=True)
def settings() -> Generator[None, None, None]:
    """ Tests that tweak settings get a fresh copy and leave no trace. """
    config.load_config()
    yield
    config.load_config()

@pytest.fixture
def game() -> MockGamestate:
    return MockGamestate(
        units=[
            MockUnit("Eirika", team="player", position=(1, 1)),
            MockUnit("Seth", team="player", position=(2, 1)),
            MockUnit("Franz", team="player", position=(8, 8), dead=True),
            MockUnit("Bandit1", team="enemy", position=(5, 5)),
            MockUnit("Bandit2", team="enemy", position=(6, 5)),
            MockUnit("Bone", team="enemy", position=(9, 9), tags=["boss"]),
        ],
        regions=[
            MockRegion("village", position=(4, 4), size=(3, 2)),
        ],
    )

@pytest.fixture
def context(game:MockGamestate) -> EventContext:
    return EventContext.for_game(game)

@pytest.fixture
def event_manager(game:MockGamestate) -> EventManager:
    return EventManager(game_getter=lambda: game)
