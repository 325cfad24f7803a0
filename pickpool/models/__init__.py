from pickpool import db  # noqa: F401 - imported for model imports

from .game import Game, GameStatus
from .pick import Pick

__all__ = [
    "Game",
    "GameStatus",
    "Pick",
]
