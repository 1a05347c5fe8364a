import logging
from typing import Dict

from config import HOLE_COUNT, MAX_STROKES
from errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def clamp_strokes(strokes: int) -> int:
    # Only the upper bound is enforced; negative values are stored as sent.
    return min(strokes, MAX_STROKES)


class ScoreLedger:
    """One stroke count per (player, hole), updated in place on resubmission."""

    def __init__(self, store):
        self.store = store

    def submit(self, player_id: int, hole_number: int, strokes: int) -> int:
        if not 1 <= hole_number <= HOLE_COUNT:
            raise ValidationError(f"Hole number must be between 1 and {HOLE_COUNT}")

        stored = clamp_strokes(strokes)
        if stored != strokes:
            logger.debug(f"Clamped {strokes} strokes to {stored} for player {player_id} on hole {hole_number}")

        with self.store.transaction() as conn:
            if self.store.get_player(conn, player_id) is None:
                raise NotFoundError(f"Player {player_id} not found")
            self.store.upsert_score(conn, player_id, hole_number, stored)
        return stored

    def scores_for(self, player_id: int) -> Dict[int, int]:
        with self.store.read() as conn:
            return self.store.scores_for_player(conn, player_id)
