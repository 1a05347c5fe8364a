import pytest

from errors import NotFoundError, ValidationError
from ledger import ScoreLedger, clamp_strokes
from roster import FlightRoster


@pytest.fixture
def ledger(store):
    return ScoreLedger(store)


def _rows(store, player_id, hole):
    with store.read() as conn:
        return conn.execute(
            'SELECT strokes FROM scores WHERE player_id = ? AND hole_number = ?', (player_id, hole)
        ).fetchall()


def test_clamp_strokes():
    assert clamp_strokes(15) == 11
    assert clamp_strokes(11) == 11
    assert clamp_strokes(4) == 4
    assert clamp_strokes(-2) == -2


def test_submit_clamps_to_eleven(ledger, store, add_player):
    player = add_player()
    assert ledger.submit(player, 3, 15) == 11
    assert ledger.scores_for(player) == {3: 11}


def test_resubmission_updates_the_single_row(ledger, store, add_player):
    player = add_player()
    ledger.submit(player, 1, 5)
    ledger.submit(player, 1, 5)
    ledger.submit(player, 1, 6)

    assert [row['strokes'] for row in _rows(store, player, 1)] == [6]


def test_negative_strokes_are_kept(ledger, add_player):
    player = add_player()
    ledger.submit(player, 2, -1)
    assert ledger.scores_for(player) == {2: -1}


def test_scores_for_leaves_unplayed_holes_out(ledger, add_player):
    player = add_player()
    other = add_player(name='Other')
    ledger.submit(player, 1, 4)
    ledger.submit(player, 18, 3)
    ledger.submit(other, 2, 7)

    assert ledger.scores_for(player) == {1: 4, 18: 3}
    assert ledger.scores_for(12345) == {}


@pytest.mark.parametrize('hole', [0, 19])
def test_submit_rejects_holes_off_the_course(ledger, add_player, hole):
    with pytest.raises(ValidationError):
        ledger.submit(add_player(), hole, 4)


def test_submit_unknown_player(ledger):
    with pytest.raises(NotFoundError):
        ledger.submit(999, 1, 4)


def test_scores_survive_flight_changes(ledger, store, add_player):
    roster = FlightRoster(store)
    flight = roster.create_flight('A')
    player = add_player()
    ledger.submit(player, 1, 4)

    roster.assign(flight.id, player)
    roster.unassign(player)

    assert ledger.scores_for(player) == {1: 4}
