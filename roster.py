"""Flight roster: creating flights and moving players between them.

A player belongs to at most one flight and a flight holds at most
``FLIGHT_CAPACITY`` players. Both rules are checked and applied inside a
single store transaction.
"""

import hashlib
import logging
import sqlite3
from datetime import datetime
from typing import List, Optional

from config import FLIGHT_CAPACITY, HOLE_COUNT
from errors import CapacityError, NotFoundError, StoreError, ValidationError
from models import Flight

logger = logging.getLogger(__name__)

TOKEN_LENGTH = 16
TOKEN_ATTEMPTS = 5


def generate_token(name: str, salt: str = '') -> str:
    """Opaque scorecard token: first 16 hex chars of sha256(name + timestamp)."""
    seed = f"{name}{datetime.now().isoformat()}{salt}"
    return hashlib.sha256(seed.encode('utf-8')).hexdigest()[:TOKEN_LENGTH]


def normalize_starting_hole(starting_hole) -> int:
    if starting_hole in (None, '', 0):
        return 1
    try:
        hole = int(starting_hole)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid starting hole: {starting_hole!r}")
    if not 1 <= hole <= HOLE_COUNT:
        raise ValidationError(f"Starting hole must be between 1 and {HOLE_COUNT}")
    return hole


class FlightRoster:

    def __init__(self, store, capacity: int = FLIGHT_CAPACITY):
        self.store = store
        self.capacity = capacity

    def create_flight(self, name: str, starting_hole=None) -> Flight:
        hole = normalize_starting_hole(starting_hole)

        for attempt in range(TOKEN_ATTEMPTS):
            token = generate_token(name, salt=str(attempt) if attempt else '')
            try:
                with self.store.transaction() as conn:
                    if self.store.token_exists(conn, token):
                        logger.warning(f"Token collision for flight '{name}', regenerating")
                        continue
                    flight_id = self.store.insert_flight(conn, token, name, hole)
            except StoreError as e:
                if isinstance(e.__cause__, sqlite3.IntegrityError):
                    logger.warning(f"Token collision for flight '{name}' on insert, regenerating")
                    continue
                raise
            logger.info(f"Created flight {flight_id} '{name}' starting on hole {hole}")
            return Flight(id=flight_id, token=token, name=name, starting_hole=hole)

        raise StoreError(f"Could not generate a unique token for flight '{name}'")

    def update_flight(self, flight_id: int, name: str, starting_hole=None):
        hole = normalize_starting_hole(starting_hole)
        with self.store.transaction() as conn:
            if not self.store.update_flight(conn, flight_id, name, hole):
                raise NotFoundError(f"Flight {flight_id} not found")

    def delete_flight(self, flight_id: int) -> bool:
        """Remove the flight and its memberships together. Unknown ids are a no-op."""
        with self.store.transaction() as conn:
            self.store.delete_memberships_by_flight(conn, flight_id)
            deleted = self.store.delete_flight(conn, flight_id)
        if deleted:
            logger.info(f"Deleted flight {flight_id}")
        return deleted

    def assign(self, flight_id: int, player_id: int):
        """Move the player into the flight, leaving any flight they were in before.

        The capacity count is taken under the write lock, so two concurrent
        assignments to the same flight cannot both see a free seat.
        Players already in the target flight do not count against it.
        """
        with self.store.transaction() as conn:
            if self.store.get_flight(conn, flight_id) is None:
                raise NotFoundError(f"Flight {flight_id} not found")
            if self.store.get_player(conn, player_id) is None:
                raise NotFoundError(f"Player {player_id} not found")

            members = self.store.count_members(conn, flight_id, exclude_player=player_id)
            if members >= self.capacity:
                raise CapacityError()

            self.store.delete_membership_by_player(conn, player_id)
            self.store.insert_membership(conn, flight_id, player_id)
        logger.info(f"Assigned player {player_id} to flight {flight_id}")

    def unassign(self, player_id: int):
        with self.store.transaction() as conn:
            self.store.delete_membership_by_player(conn, player_id)

    def flights(self) -> List[Flight]:
        with self.store.read() as conn:
            return self.store.list_flights(conn)

    def flight_by_token(self, token: str) -> Optional[Flight]:
        with self.store.read() as conn:
            return self.store.get_flight_by_token(conn, token)
