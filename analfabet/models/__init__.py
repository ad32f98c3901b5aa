from analfabet import db  # noqa: F401 - imported for model imports

from .bet import Bet
from .league import League
from .league_member import LeagueMember
from .match import Match
from .user import User

__all__ = [
    "User",
    "Match",
    "Bet",
    "League",
    "LeagueMember",
]
