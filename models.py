from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional


@dataclass
class Player:
    id:         Optional[int]   = None
    name:       str             = ''
    surname:    str             = ''
    reg_num:    str             = ''
    handicap:   Optional[float] = None     # None and 0 both mean "not set"
    gender:     str             = ''

    @staticmethod
    def from_row(row) -> "Player":
        return Player(
            id=row['id'],
            name=row['name'] or '',
            surname=row['surname'] or '',
            reg_num=row['reg_num'] or '',
            handicap=row['handicap'],
            gender=row['gender'] or '',
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Flight:
    id:             Optional[int]   = None
    token:          str             = ''
    name:           str             = ''
    starting_hole:  int             = 1
    players:        List[Player]    = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'token': self.token,
            'name': self.name,
            'starting_hole': self.starting_hole,
            'players': [p.to_dict() for p in self.players],
        }


@dataclass
class Hole:
    hole_number:    int
    par:            int = 4
    length_yellow:  int = 0
    length_red:     int = 0

    @staticmethod
    def from_row(row) -> "Hole":
        return Hole(
            hole_number=row['hole_number'],
            par=row['par'],
            length_yellow=row['length_yellow'] or 0,
            length_red=row['length_red'] or 0,
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Standing:
    id:             int
    name:           str
    surname:        str
    handicap:       float
    gross:          int
    net:            float
    holes_played:   int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class SyncReport:
    """Outcome of one handicap sync batch."""
    status:         str                 = 'completed'  # nothing_to_do | completed | cancelled
    candidates:     int                 = 0
    updated:        Dict[int, float]    = field(default_factory=dict)
    failed:         Dict[int, str]      = field(default_factory=dict)

    @property
    def nothing_to_do(self) -> bool:
        return self.status == 'nothing_to_do'

    def to_dict(self) -> dict:
        return {
            'status': self.status,
            'candidates': self.candidates,
            'updated': len(self.updated),
            'failed': len(self.failed),
        }
