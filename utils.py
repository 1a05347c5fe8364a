# utils.py
# Logging setup and the CSV readers/writers behind the import and export routes.

import csv
import io
import logging
import os
from typing import List, Optional, Tuple

from config import HOLE_COUNT, LOG_FILE, LOG_LEVEL
from models import Hole, Player

COURSE_CSV_HEADER = ['Hole', 'Par', 'LengthYellow', 'LengthRed']


def setup_logging(level=LOG_LEVEL, log_file=LOG_FILE):

    # Clear any existing handlers to avoid duplicates
    root = logging.getLogger()
    root.handlers = []

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(
        '[%(asctime)s] [%(levelname)-7s] %(name)-12s : %(message)s', datefmt='%b %d %a %H:%M:%S'
    ))
    root.addHandler(console_handler)

    if log_file:
        log_dir = os.path.dirname(os.path.abspath(log_file))
        os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding='utf-8', mode='a')
        file_handler.setFormatter(logging.Formatter(
            '[%(asctime)s] %(levelname)-8s %(filename)-20.20s%(lineno)-5d%(funcName)-25.25s: %(message)s',
            datefmt='%b %d %a] [%H:%M:%S'
        ))
        root.addHandler(file_handler)

    root.setLevel(level)
    logging.info(f"Logging configured at level {level}" + (f" to {log_file}" if log_file else ""))


def safe_float(s) -> Optional[float]:
    try:
        return float(str(s).strip().replace(',', '.'))
    except (TypeError, ValueError):
        return None


def safe_int(s) -> Optional[int]:
    try:
        return int(str(s).strip())
    except (TypeError, ValueError):
        return None


def _decode(data) -> str:
    if isinstance(data, bytes):
        # Spreadsheet exports often carry a BOM
        return data.decode('utf-8-sig')
    return data


def read_players_csv(data) -> Tuple[List[Player], int]:
    """Parse name, surname, reg_num[, handicap[, gender]] rows.

    A first row starting with "name" is a header. Rows with fewer than three
    columns are skipped and counted.
    """
    players = []
    skipped = 0
    for i, record in enumerate(csv.reader(io.StringIO(_decode(data)))):
        if i == 0 and record and record[0].strip().lower() == 'name':
            continue
        if len(record) < 3:
            skipped += 1
            continue
        players.append(Player(
            name=record[0].strip(),
            surname=record[1].strip(),
            reg_num=record[2].strip(),
            handicap=safe_float(record[3]) if len(record) > 3 else None,
            gender=record[4].strip() if len(record) > 4 else '',
        ))
    return players, skipped


def read_course_csv(data) -> List[Hole]:
    """Parse Hole,Par,LengthYellow[,LengthRed]; the first row is always the header."""
    holes = []
    for i, record in enumerate(csv.reader(io.StringIO(_decode(data)))):
        if i == 0 or len(record) < 3:
            continue
        hole_number = safe_int(record[0])
        if hole_number is None or not 1 <= hole_number <= HOLE_COUNT:
            continue
        length_yellow = safe_int(record[2]) or 0
        # Red defaults to yellow only when the column is missing; garbage reads as 0
        length_red = (safe_int(record[3]) or 0) if len(record) > 3 else length_yellow
        holes.append(Hole(
            hole_number=hole_number,
            par=safe_int(record[1]) or 0,
            length_yellow=length_yellow,
            length_red=length_red,
        ))
    return holes


def write_course_csv(holes: List[Hole]) -> str:
    out = io.StringIO()
    writer = csv.writer(out, lineterminator='\n')
    writer.writerow(COURSE_CSV_HEADER)
    for hole in holes:
        writer.writerow([hole.hole_number, hole.par, hole.length_yellow, hole.length_red])
    return out.getvalue()
