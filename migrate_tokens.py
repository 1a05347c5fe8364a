#!/usr/bin/env python3

import logging
import os
import sqlite3
import sys

from config import DATABASE
from roster import generate_token

logger = logging.getLogger(__name__)


def migrate_flight_tokens(database=DATABASE):
    """Add the token column to flights and give every flight without one a token.

    Returns the number of flights that received a new token.
    """

    logger.info("Starting flight token migration...")

    if not os.path.exists(database):
        logger.warning(f"Database file {database} not found. Please run the main application first.")
        return 0

    conn = sqlite3.connect(database)
    conn.row_factory = sqlite3.Row

    try:
        cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table' AND name='flights'")
        if not cursor.fetchone():
            logger.info("Flights table not found. Nothing to migrate.")
            return 0

        cursor = conn.execute("PRAGMA table_info(flights)")
        columns = [column[1] for column in cursor.fetchall()]

        if 'token' not in columns:
            logger.info("Adding token column to flights table...")
            conn.execute("ALTER TABLE flights ADD COLUMN token TEXT")

        flights_needing_tokens = conn.execute(
            "SELECT id, name FROM flights WHERE token IS NULL OR token = '' ORDER BY id"
        ).fetchall()

        used = {row['token'] for row in conn.execute('SELECT token FROM flights WHERE token IS NOT NULL')}
        for flight in flights_needing_tokens:
            token = generate_token(flight['name'] or '', salt=str(flight['id']))
            while token in used:
                token = generate_token(flight['name'] or '', salt=f"{flight['id']}-{len(used)}")
            used.add(token)
            conn.execute('UPDATE flights SET token = ? WHERE id = ?', (token, flight['id']))
            logger.info(f"Generated token for flight '{flight['name']}' (ID: {flight['id']}): {token[:8]}...")

        conn.execute("CREATE UNIQUE INDEX IF NOT EXISTS idx_flights_token ON flights(token)")
        conn.commit()
        logger.info(f"Migration completed: {len(flights_needing_tokens)} flights updated")
        return len(flights_needing_tokens)

    except sqlite3.Error as e:
        logger.error(f"Migration failed: {e}")
        conn.rollback()
        raise
    finally:
        conn.close()


def main():
    from utils import setup_logging

    setup_logging()
    migrate_flight_tokens(sys.argv[1] if len(sys.argv) > 1 else DATABASE)


if __name__ == '__main__':
    main()
