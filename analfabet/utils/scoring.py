"""
Scoring Engine for AnalfaBet

This module handles the points awarded to a single prediction.
For aggregated totals and leaderboards, see User.get_ranking() in
analfabet/models/user.py and analfabet/utils/ranking.py.

Rules (canonical values):
    3 points for the exact score
    1 point for the correct outcome (home win / draw / away win)
    0 points otherwise, or while the match result is not authoritative
"""

import logging
from dataclasses import dataclass

from analfabet.utils.match_status import MatchStatus

logger = logging.getLogger(__name__)

DEFAULT_EXACT_POINTS = 3
DEFAULT_CORRECT_OUTCOME_POINTS = 1

HOME_WIN = "home_win"
DRAW = "draw"
AWAY_WIN = "away_win"

# ScoreOutcome categories
EXACT = "exact"
OUTCOME = "outcome"
MISS = "miss"
PENDING = "pending"
INVALID = "invalid"


@dataclass(frozen=True)
class ScoringSettings:
    exact_points: int = DEFAULT_EXACT_POINTS
    correct_outcome_points: int = DEFAULT_CORRECT_OUTCOME_POINTS
    score_live_matches: bool = False

    @classmethod
    def from_mapping(cls, mapping):
        """Build settings from a config mapping (e.g. Flask app.config)"""
        return cls(
            exact_points=int(mapping.get("EXACT_SCORE_POINTS", DEFAULT_EXACT_POINTS)),
            correct_outcome_points=int(
                mapping.get("CORRECT_OUTCOME_POINTS", DEFAULT_CORRECT_OUTCOME_POINTS)
            ),
            score_live_matches=bool(mapping.get("SCORE_LIVE_MATCHES", False)),
        )

    def scorable_statuses(self):
        if self.score_live_matches:
            return (MatchStatus.FINISHED, MatchStatus.LIVE)
        return (MatchStatus.FINISHED,)


DEFAULT_SETTINGS = ScoringSettings()


@dataclass(frozen=True)
class Prediction:
    predicted_home_score: object
    predicted_away_score: object


@dataclass(frozen=True)
class MatchResult:
    actual_home_score: object
    actual_away_score: object
    status: str


@dataclass(frozen=True)
class ScoreOutcome:
    points: int
    is_exact: bool
    category: str

    @property
    def is_invalid(self):
        return self.category == INVALID


def _coerce_score(value):
    """Return value as int, or None when it is not a usable score"""
    # bool is an int subclass; a True/False score is corrupt data
    if isinstance(value, bool):
        return None
    try:
        return int(value.strip() if isinstance(value, str) else value)
    except (TypeError, ValueError, OverflowError):
        return None


def outcome_of(home_score, away_score):
    """Three-way outcome of a score line"""
    if home_score > away_score:
        return HOME_WIN
    if home_score < away_score:
        return AWAY_WIN
    return DRAW


def score(prediction, match_result, settings=None):
    """
    Calculate the outcome of a single prediction.

    Never raises for malformed scores: they produce zero points with the
    ``invalid`` category and a warning in the log.

    Args:
        prediction: Prediction (or any object with predicted_home_score /
            predicted_away_score)
        match_result: MatchResult (or any object with actual_home_score /
            actual_away_score / status)
        settings: ScoringSettings, defaults to 3/1 with finished-only scoring

    Returns:
        ScoreOutcome
    """
    settings = settings or DEFAULT_SETTINGS

    if match_result.status not in settings.scorable_statuses():
        return ScoreOutcome(points=0, is_exact=False, category=PENDING)

    bet_home = _coerce_score(prediction.predicted_home_score)
    bet_away = _coerce_score(prediction.predicted_away_score)
    actual_home = _coerce_score(match_result.actual_home_score)
    actual_away = _coerce_score(match_result.actual_away_score)

    if None in (bet_home, bet_away, actual_home, actual_away):
        logger.warning(
            "Unscorable data: prediction %r-%r, result %r-%r (%s)",
            prediction.predicted_home_score,
            prediction.predicted_away_score,
            match_result.actual_home_score,
            match_result.actual_away_score,
            match_result.status,
        )
        return ScoreOutcome(points=0, is_exact=False, category=INVALID)

    if bet_home == actual_home and bet_away == actual_away:
        return ScoreOutcome(points=settings.exact_points, is_exact=True, category=EXACT)

    if outcome_of(bet_home, bet_away) == outcome_of(actual_home, actual_away):
        return ScoreOutcome(
            points=settings.correct_outcome_points, is_exact=False, category=OUTCOME
        )

    return ScoreOutcome(points=0, is_exact=False, category=MISS)
