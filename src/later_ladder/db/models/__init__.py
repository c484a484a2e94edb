from later_ladder.db.models.core.game import Game

__all__ = [
    "Game",
]
