import logging
from datetime import datetime, timezone

from flask import current_app

from analfabet import db
from analfabet.utils.scoring import MatchResult, Prediction, ScoringSettings, score

logger = logging.getLogger(__name__)

# place_bet failure messages, mapped to HTTP statuses by the API layer
MATCH_NOT_FOUND = "Match not found"
BETTING_CLOSED = "Betting is closed for this match"
INVALID_SCORE = "Scores must be whole numbers between 0 and {max_score}"


def current_scoring_settings():
    """ScoringSettings from the application config"""
    return ScoringSettings.from_mapping(current_app.config)


def parse_predicted_score(value, max_score):
    """Return value as an int in 0..max_score, or None"""
    if isinstance(value, bool):
        return None
    if isinstance(value, float):
        if not value.is_integer():
            return None
        value = int(value)
    try:
        parsed = int(value.strip() if isinstance(value, str) else value)
    except (TypeError, ValueError):
        return None
    if parsed < 0 or parsed > max_score:
        return None
    return parsed


class Bet(db.Model):
    __tablename__ = "bets"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    match_id = db.Column(db.Integer, db.ForeignKey("matches.id"), nullable=False)

    # Predicted score
    home_score = db.Column(db.Integer, nullable=False)
    away_score = db.Column(db.Integer, nullable=False)

    # Results (recalculated whenever the match result changes)
    points = db.Column(db.Integer, default=0, nullable=False)
    is_exact = db.Column(db.Boolean, default=False, nullable=False)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Constraints and indexes
    __table_args__ = (
        db.UniqueConstraint("user_id", "match_id", name="unique_user_match_bet"),
        db.Index("idx_bet_match", "match_id"),
        db.Index("idx_bet_user", "user_id"),
    )

    def __repr__(self):
        return f"<Bet user_id={self.user_id} match_id={self.match_id} {self.home_score}-{self.away_score}>"

    def update_result(self, settings=None):
        """Apply the scoring rules to this bet; returns the ScoreOutcome"""
        if not self.match:
            return None

        outcome = score(
            Prediction(self.home_score, self.away_score),
            MatchResult(
                self.match.home_score, self.match.away_score, self.match.status
            ),
            settings or current_scoring_settings(),
        )
        self.points = outcome.points
        self.is_exact = outcome.is_exact
        return outcome

    @staticmethod
    def recalculate_for_match(match_id, commit=False):
        """
        Rescore every bet of a match.

        Returns:
            tuple: (number of bets rescored, round of the match or None)
        """
        from .match import Match

        match = db.session.get(Match, match_id)
        if not match:
            return 0, None

        settings = current_scoring_settings()
        bets = Bet.query.filter_by(match_id=match_id).all()
        for bet in bets:
            bet.update_result(settings)

        if commit:
            db.session.commit()

        logger.debug(f"Rescored {len(bets)} bets for match {match_id}")
        return len(bets), match.round

    @staticmethod
    def recalculate_all(round_number=None):
        """Rescore all bets, optionally only those of one round; returns the count"""
        from .match import Match

        query = Match.query
        if round_number is not None:
            query = query.filter_by(round=round_number)

        total = 0
        for match in query.all():
            count, _ = Bet.recalculate_for_match(match.id)
            total += count

        db.session.commit()
        return total

    @staticmethod
    def place_bet(user_id, match_id, home_score, away_score):
        """
        Create or update a user's bet on a match (last write wins).

        Returns:
            tuple: (bet or None, message)
        """
        from .match import Match

        match = db.session.get(Match, match_id)
        if not match:
            return None, MATCH_NOT_FOUND

        if not match.is_open_for_bets():
            return None, BETTING_CLOSED

        max_score = current_app.config.get("MAX_PREDICTED_SCORE", 20)
        home = parse_predicted_score(home_score, max_score)
        away = parse_predicted_score(away_score, max_score)
        if home is None or away is None:
            return None, INVALID_SCORE.format(max_score=max_score)

        bet = Bet.query.filter_by(user_id=user_id, match_id=match_id).first()
        if bet:
            bet.home_score = home
            bet.away_score = away
            bet.points = 0
            bet.is_exact = False
            return bet, "Bet updated successfully"

        bet = Bet(
            user_id=user_id,
            match_id=match_id,
            home_score=home,
            away_score=away,
            points=0,
            is_exact=False,
        )
        db.session.add(bet)
        return bet, "Bet placed successfully"

    @staticmethod
    def get_user_bets(user_id, round_number=None):
        """A user's bets joined with their matches, in kick-off order"""
        from .match import Match

        query = Bet.query.join(Match).filter(Bet.user_id == user_id)
        if round_number is not None:
            query = query.filter(Match.round == round_number)
        return query.order_by(Match.match_date, Match.id).all()

    def to_dict(self, include_match=False):
        """Convert bet to dictionary for API responses"""
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "match_id": self.match_id,
            "home_score": self.home_score,
            "away_score": self.away_score,
            "points": self.points,
            "is_exact": self.is_exact,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

        if include_match:
            data["match"] = self.match.to_dict() if self.match else None

        return data
