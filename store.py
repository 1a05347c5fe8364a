"""sqlite3-backed store for players, flights, memberships, scores and holes.

Every unit of work opens its own connection and closes it when done.
Mutations go through :meth:`Store.transaction`, which takes the database
write lock up front (``BEGIN IMMEDIATE``) so a check made inside the block
still holds when the block writes.
"""

import logging
import sqlite3
from contextlib import contextmanager
from typing import Dict, List, Optional

from config import HOLE_COUNT
from errors import StoreError
from models import Flight, Hole, Player

logger = logging.getLogger(__name__)


class Store:

    def __init__(self, path, timeout=10.0):
        self.path = str(path)
        self.timeout = timeout

    def connect(self):
        conn = sqlite3.connect(self.path, timeout=self.timeout, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute('PRAGMA foreign_keys = ON')
        return conn

    @contextmanager
    def transaction(self):
        """Yield a connection inside one write transaction.

        Commits when the block exits normally. Any exception rolls the whole
        block back; sqlite errors come out as :class:`StoreError`, domain
        errors are re-raised unchanged.
        """
        conn = self.connect()
        try:
            conn.execute('BEGIN IMMEDIATE')
            yield conn
            conn.execute('COMMIT')
        except sqlite3.Error as e:
            self._rollback(conn)
            logger.error(f"Transaction rolled back: {e}")
            raise StoreError(str(e)) from e
        except BaseException:
            self._rollback(conn)
            raise
        finally:
            conn.close()

    @contextmanager
    def read(self):
        conn = self.connect()
        try:
            yield conn
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e
        finally:
            conn.close()

    @staticmethod
    def _rollback(conn):
        if conn.in_transaction:
            conn.execute('ROLLBACK')

    # --- schema ---

    def init_db(self):
        conn = self.connect()
        try:
            conn.execute('''
                CREATE TABLE IF NOT EXISTS players (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    surname TEXT DEFAULT '',
                    reg_num TEXT DEFAULT '',
                    handicap REAL,
                    gender TEXT DEFAULT ''
                )
            ''')
            conn.execute('''
                CREATE TABLE IF NOT EXISTS flights (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    token TEXT UNIQUE,
                    name TEXT,
                    starting_hole INTEGER DEFAULT 1
                )
            ''')
            conn.execute('''
                CREATE TABLE IF NOT EXISTS flight_players (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    flight_id INTEGER NOT NULL,
                    player_id INTEGER NOT NULL,
                    FOREIGN KEY (flight_id) REFERENCES flights (id),
                    FOREIGN KEY (player_id) REFERENCES players (id)
                )
            ''')
            conn.execute('''
                CREATE TABLE IF NOT EXISTS scores (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    player_id INTEGER NOT NULL,
                    hole_number INTEGER NOT NULL,
                    strokes INTEGER,
                    FOREIGN KEY (player_id) REFERENCES players (id)
                )
            ''')
            conn.execute('''
                CREATE TABLE IF NOT EXISTS holes (
                    hole_number INTEGER PRIMARY KEY,
                    par INTEGER,
                    length_yellow INTEGER DEFAULT 0,
                    length_red INTEGER DEFAULT 0
                )
            ''')

            # Columns added after the first release
            for table, column in (
                ("players", "gender TEXT DEFAULT ''"),
                ('flights', 'token TEXT'),
                ('flights', 'starting_hole INTEGER DEFAULT 1'),
                ('holes', 'length_yellow INTEGER DEFAULT 0'),
                ('holes', 'length_red INTEGER DEFAULT 0'),
            ):
                try:
                    conn.execute(f'ALTER TABLE {table} ADD COLUMN {column}')
                    logger.info(f"Added column {column.split()[0]} to {table}")
                except sqlite3.OperationalError:
                    # Column already exists
                    pass

            # Older databases could hold duplicates; keep the latest row per key
            conn.execute('''
                DELETE FROM scores WHERE rowid NOT IN (
                    SELECT MAX(rowid) FROM scores GROUP BY player_id, hole_number
                )
            ''')
            conn.execute('''
                DELETE FROM flight_players WHERE rowid NOT IN (
                    SELECT MAX(rowid) FROM flight_players GROUP BY player_id
                )
            ''')
            conn.execute('CREATE UNIQUE INDEX IF NOT EXISTS idx_scores_player_hole ON scores(player_id, hole_number)')
            conn.execute('CREATE UNIQUE INDEX IF NOT EXISTS idx_flight_players_player ON flight_players(player_id)')
            conn.execute('CREATE INDEX IF NOT EXISTS idx_flight_players_flight ON flight_players(flight_id)')
            conn.execute('CREATE UNIQUE INDEX IF NOT EXISTS idx_flights_token ON flights(token)')

            count = conn.execute('SELECT COUNT(*) FROM holes').fetchone()[0]
            if count == 0:
                conn.executemany(
                    'INSERT INTO holes (hole_number, par, length_yellow, length_red) VALUES (?, ?, ?, ?)',
                    [(i, 4, 300, 300) for i in range(1, HOLE_COUNT + 1)]
                )
        finally:
            conn.close()

    # --- players ---

    def insert_player(self, conn, player: Player) -> int:
        cur = conn.execute(
            'INSERT INTO players (name, surname, reg_num, handicap, gender) VALUES (?, ?, ?, ?, ?)',
            (player.name, player.surname, player.reg_num, player.handicap, player.gender)
        )
        return cur.lastrowid

    def update_player(self, conn, player: Player) -> bool:
        cur = conn.execute(
            'UPDATE players SET name = ?, surname = ?, reg_num = ?, handicap = ?, gender = ? WHERE id = ?',
            (player.name, player.surname, player.reg_num, player.handicap, player.gender, player.id)
        )
        return cur.rowcount > 0

    def delete_player(self, conn, player_id: int):
        conn.execute('DELETE FROM flight_players WHERE player_id = ?', (player_id,))
        conn.execute('DELETE FROM scores WHERE player_id = ?', (player_id,))
        conn.execute('DELETE FROM players WHERE id = ?', (player_id,))

    def get_player(self, conn, player_id: int) -> Optional[Player]:
        row = conn.execute('SELECT * FROM players WHERE id = ?', (player_id,)).fetchone()
        return Player.from_row(row) if row else None

    def list_players(self, conn) -> List[Player]:
        rows = conn.execute('SELECT * FROM players ORDER BY id').fetchall()
        return [Player.from_row(row) for row in rows]

    def list_players_missing_handicap(self, conn) -> List[Player]:
        rows = conn.execute('''
            SELECT * FROM players
            WHERE (handicap = 0 OR handicap IS NULL)
              AND reg_num IS NOT NULL AND TRIM(reg_num) != ''
            ORDER BY id
        ''').fetchall()
        return [Player.from_row(row) for row in rows]

    def set_handicap(self, conn, player_id: int, handicap: float):
        conn.execute('UPDATE players SET handicap = ? WHERE id = ?', (handicap, player_id))

    # --- flights ---

    def insert_flight(self, conn, token: str, name: str, starting_hole: int) -> int:
        cur = conn.execute(
            'INSERT INTO flights (token, name, starting_hole) VALUES (?, ?, ?)',
            (token, name, starting_hole)
        )
        return cur.lastrowid

    def update_flight(self, conn, flight_id: int, name: str, starting_hole: int) -> bool:
        cur = conn.execute(
            'UPDATE flights SET name = ?, starting_hole = ? WHERE id = ?',
            (name, starting_hole, flight_id)
        )
        return cur.rowcount > 0

    def delete_flight(self, conn, flight_id: int) -> bool:
        cur = conn.execute('DELETE FROM flights WHERE id = ?', (flight_id,))
        return cur.rowcount > 0

    def token_exists(self, conn, token: str) -> bool:
        return conn.execute('SELECT 1 FROM flights WHERE token = ?', (token,)).fetchone() is not None

    def get_flight(self, conn, flight_id: int) -> Optional[Flight]:
        flights = self._flights_with_members(conn, 'WHERE f.id = ?', (flight_id,))
        return flights[0] if flights else None

    def get_flight_by_token(self, conn, token: str) -> Optional[Flight]:
        flights = self._flights_with_members(conn, 'WHERE f.token = ?', (token,))
        return flights[0] if flights else None

    def list_flights(self, conn) -> List[Flight]:
        return self._flights_with_members(conn)

    def _flights_with_members(self, conn, where='', params=()) -> List[Flight]:
        rows = conn.execute(f'''
            SELECT f.id AS f_id, f.token AS f_token, f.name AS f_name, f.starting_hole AS f_starting_hole,
                   p.id, p.name, p.surname, p.reg_num, p.handicap, p.gender
            FROM flights f
            LEFT JOIN flight_players fp ON f.id = fp.flight_id
            LEFT JOIN players p ON fp.player_id = p.id
            {where}
            ORDER BY f.id, fp.rowid
        ''', params).fetchall()

        # Rows arrive ordered by flight id, so insertion order is the flight order
        flights: Dict[int, Flight] = {}
        for row in rows:
            flight = flights.get(row['f_id'])
            if flight is None:
                flight = Flight(
                    id=row['f_id'],
                    token=row['f_token'] or '',
                    name=row['f_name'] or '',
                    starting_hole=row['f_starting_hole'] or 1,
                )
                flights[flight.id] = flight
            if row['id'] is not None:
                flight.players.append(Player.from_row(row))
        return list(flights.values())

    # --- memberships ---

    def insert_membership(self, conn, flight_id: int, player_id: int):
        conn.execute(
            'INSERT INTO flight_players (flight_id, player_id) VALUES (?, ?)',
            (flight_id, player_id)
        )

    def delete_membership_by_player(self, conn, player_id: int):
        conn.execute('DELETE FROM flight_players WHERE player_id = ?', (player_id,))

    def delete_memberships_by_flight(self, conn, flight_id: int):
        conn.execute('DELETE FROM flight_players WHERE flight_id = ?', (flight_id,))

    def count_members(self, conn, flight_id: int, exclude_player: Optional[int] = None) -> int:
        if exclude_player is None:
            row = conn.execute('SELECT COUNT(*) FROM flight_players WHERE flight_id = ?', (flight_id,)).fetchone()
        else:
            row = conn.execute(
                'SELECT COUNT(*) FROM flight_players WHERE flight_id = ? AND player_id != ?',
                (flight_id, exclude_player)
            ).fetchone()
        return row[0]

    # --- scores ---

    def upsert_score(self, conn, player_id: int, hole_number: int, strokes: int):
        conn.execute('''
            INSERT INTO scores (player_id, hole_number, strokes) VALUES (?, ?, ?)
            ON CONFLICT (player_id, hole_number) DO UPDATE SET strokes = excluded.strokes
        ''', (player_id, hole_number, strokes))

    def scores_for_player(self, conn, player_id: int) -> Dict[int, int]:
        rows = conn.execute(
            'SELECT hole_number, strokes FROM scores WHERE player_id = ? ORDER BY hole_number',
            (player_id,)
        ).fetchall()
        return {row['hole_number']: row['strokes'] for row in rows}

    def score_totals(self, conn):
        """One row per player: player fields plus summed strokes and recorded holes."""
        return conn.execute('''
            SELECT p.id, p.name, p.surname, p.handicap,
                   COALESCE(SUM(s.strokes), 0) AS gross,
                   COUNT(s.id) AS holes_played
            FROM players p
            LEFT JOIN scores s ON p.id = s.player_id
            GROUP BY p.id
            ORDER BY p.id
        ''').fetchall()

    # --- holes ---

    def list_holes(self, conn) -> List[Hole]:
        rows = conn.execute('SELECT * FROM holes ORDER BY hole_number').fetchall()
        return [Hole.from_row(row) for row in rows]

    def update_hole(self, conn, hole: Hole) -> bool:
        cur = conn.execute(
            'UPDATE holes SET par = ?, length_yellow = ?, length_red = ? WHERE hole_number = ?',
            (hole.par, hole.length_yellow, hole.length_red, hole.hole_number)
        )
        return cur.rowcount > 0


