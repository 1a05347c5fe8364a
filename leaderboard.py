from typing import Iterable, List

from models import Standing


def standing_from_row(row) -> Standing:
    handicap = row['handicap'] or 0.0
    gross = row['gross'] or 0
    return Standing(
        id=row['id'],
        name=row['name'] or '',
        surname=row['surname'] or '',
        handicap=handicap,
        gross=gross,
        net=gross - handicap,
        holes_played=row['holes_played'] or 0,
    )


def rank_standings(standings: Iterable[Standing]) -> List[Standing]:
    """Order by net score, players without a recorded hole always last.

    sorted() is stable, so equal nets keep the order they came in.
    """
    return sorted(standings, key=lambda s: (s.holes_played == 0, s.net if s.holes_played else 0))


class Leaderboard:

    def __init__(self, store):
        self.store = store

    def rank(self) -> List[Standing]:
        # Recomputed from the ledger on every call
        with self.store.read() as conn:
            rows = self.store.score_totals(conn)
        return rank_standings(standing_from_row(row) for row in rows)
