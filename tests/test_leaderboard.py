from leaderboard import Leaderboard, rank_standings
from ledger import ScoreLedger
from models import Standing


def _standing(pid, gross, handicap, holes):
    return Standing(id=pid, name=f'P{pid}', surname='', handicap=handicap,
                    gross=gross, net=gross - handicap, holes_played=holes)


def _play(ledger, player_id, strokes_per_hole, holes=18):
    for hole in range(1, holes + 1):
        ledger.submit(player_id, hole, strokes_per_hole[hole - 1])


def test_unstarted_player_ranks_last(store, add_player):
    ledger = ScoreLedger(store)
    a = add_player(name='A')
    b = add_player(name='B', handicap=10)
    c = add_player(name='C', handicap=5)
    _play(ledger, b, [4] * 10 + [5] * 8)     # 80
    _play(ledger, c, [5] * 18)               # 90

    standings = Leaderboard(store).rank()

    assert [s.id for s in standings] == [b, c, a]
    assert [s.net for s in standings] == [70.0, 85.0, 0.0]
    assert standings[0].gross == 80 and standings[0].holes_played == 18
    assert standings[2].holes_played == 0 and standings[2].gross == 0


def test_missing_handicap_means_net_equals_gross(store, add_player):
    ledger = ScoreLedger(store)
    player = add_player()
    ledger.submit(player, 1, 5)

    [standing] = Leaderboard(store).rank()
    assert standing.handicap == 0.0
    assert standing.net == standing.gross == 5


def test_partial_rounds_count_recorded_holes(store, add_player):
    ledger = ScoreLedger(store)
    player = add_player(handicap=2.5)
    ledger.submit(player, 1, 4)
    ledger.submit(player, 7, 6)

    [standing] = Leaderboard(store).rank()
    assert (standing.gross, standing.holes_played, standing.net) == (10, 2, 7.5)


def test_equal_nets_keep_incoming_order():
    standings = [_standing(1, 80, 5, 18), _standing(2, 75, 0, 18), _standing(3, 60, 0, 0)]
    assert [s.id for s in rank_standings(standings)] == [1, 2, 3]
    assert [s.id for s in rank_standings(reversed(standings))] == [2, 1, 3]


def test_negative_net_beats_unstarted_zero():
    standings = [_standing(1, 0, 0, 0), _standing(2, 3, 8, 1)]
    assert [s.id for s in rank_standings(standings)] == [2, 1]


def test_rank_reflects_latest_scores(store, add_player):
    ledger = ScoreLedger(store)
    board = Leaderboard(store)
    a, b = add_player(name='A'), add_player(name='B')
    ledger.submit(a, 1, 3)
    ledger.submit(b, 1, 4)
    assert [s.id for s in board.rank()] == [a, b]

    ledger.submit(a, 1, 6)
    assert [s.id for s in board.rank()] == [b, a]
