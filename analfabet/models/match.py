from datetime import datetime, timedelta, timezone

from analfabet import db
from analfabet.utils.match_status import MatchStatus

# How long after kick-off a match is considered possibly in play
LIVE_WINDOW = timedelta(hours=3)


class Match(db.Model):
    __tablename__ = "matches"

    id = db.Column(db.Integer, primary_key=True)

    # football-data.org identification
    api_id = db.Column(db.Integer, unique=True, index=True)
    competition = db.Column(db.String(10), nullable=False, default="BSA")
    season = db.Column(db.Integer)
    round = db.Column(db.Integer, nullable=False)

    # Teams
    home_team = db.Column(db.String(100), nullable=False)
    away_team = db.Column(db.String(100), nullable=False)
    home_crest = db.Column(db.String(500))
    away_crest = db.Column(db.String(500))

    # Kick-off, stored as naive UTC
    match_date = db.Column(db.DateTime, nullable=False)

    # Result
    home_score = db.Column(db.Integer)
    away_score = db.Column(db.Integer)
    status = db.Column(db.String(20), nullable=False, default=MatchStatus.SCHEDULED)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    bets = db.relationship(
        "Bet", backref="match", lazy="dynamic", cascade="all, delete-orphan"
    )

    # Indexes
    __table_args__ = (
        db.Index("idx_match_round", "round"),
        db.Index("idx_match_date", "match_date"),
        db.Index("idx_match_status", "status"),
    )

    def __repr__(self):
        return f"<Match {self.home_team} x {self.away_team} Round {self.round}>"

    def _kickoff_utc(self):
        if not self.match_date:
            return None
        # If match_date is timezone-naive, assume it's in UTC
        if self.match_date.tzinfo is None:
            return self.match_date.replace(tzinfo=timezone.utc)
        return self.match_date

    def has_started(self, now=None):
        """Check if the match has kicked off (or is reported live/finished)"""
        if self.status in (MatchStatus.LIVE, MatchStatus.FINISHED):
            return True
        kickoff = self._kickoff_utc()
        if kickoff is None:
            return False
        return (now or datetime.now(timezone.utc)) >= kickoff

    def is_open_for_bets(self, now=None):
        """Bets are accepted only for scheduled matches that have not kicked off"""
        return self.status == MatchStatus.SCHEDULED and not self.has_started(now)

    @property
    def is_finished(self):
        return self.status == MatchStatus.FINISHED

    def is_in_live_window(self, now=None):
        """Kicked off within LIVE_WINDOW and not settled yet"""
        if self.status in MatchStatus.SETTLED:
            return False
        kickoff = self._kickoff_utc()
        if kickoff is None:
            return False
        now = now or datetime.now(timezone.utc)
        return kickoff <= now <= kickoff + LIVE_WINDOW

    def update_result(self, home_score, away_score, status):
        """
        Update score and status; rescore every bet of the match when
        anything changed.

        Returns:
            bool: whether the match changed
        """
        changed = (
            self.home_score != home_score
            or self.away_score != away_score
            or self.status != status
        )
        if not changed:
            return False

        self.home_score = home_score
        self.away_score = away_score
        self.status = status

        # A correction after a false "finished" report must also reset points
        if self.id is not None:
            from .bet import Bet

            Bet.recalculate_for_match(self.id)
        return True

    def get_bets_count(self):
        return self.bets.count()

    @staticmethod
    def get_by_api_id(api_id):
        return Match.query.filter_by(api_id=api_id).first()

    @staticmethod
    def get_rounds():
        """Sorted list of known round numbers"""
        rows = db.session.query(Match.round).distinct().order_by(Match.round).all()
        return [row.round for row in rows]

    @staticmethod
    def get_for_round(round_number):
        """All matches of a round ordered by kick-off"""
        return (
            Match.query.filter_by(round=round_number)
            .order_by(Match.match_date, Match.id)
            .all()
        )

    @staticmethod
    def get_all_ordered():
        return Match.query.order_by(Match.round, Match.match_date, Match.id).all()

    @staticmethod
    def get_default_round(today=None):
        """Run the round selector over every stored match in the app timezone"""
        from analfabet.utils.rounds import determine_default_round
        from analfabet.utils.timezone_utils import (
            get_app_timezone,
            today_in_app_timezone,
        )

        rows = db.session.query(Match.round, Match.match_date, Match.status).all()
        return determine_default_round(
            rows,
            today=today or today_in_app_timezone(),
            tz=get_app_timezone(),
        )

    @staticmethod
    def get_live_window_matches(now=None):
        """Matches that kicked off within LIVE_WINDOW and are not settled"""
        now = now or datetime.now(timezone.utc)
        naive_now = now.astimezone(timezone.utc).replace(tzinfo=None)
        return (
            Match.query.filter(
                Match.match_date <= naive_now,
                Match.match_date >= naive_now - LIVE_WINDOW,
                Match.status.notin_(MatchStatus.SETTLED),
            )
            .order_by(Match.match_date)
            .all()
        )

    @staticmethod
    def get_pending_results(limit=5, now=None):
        """Kicked-off matches still waiting for a final result, oldest first"""
        now = now or datetime.now(timezone.utc)
        naive_now = now.astimezone(timezone.utc).replace(tzinfo=None)
        return (
            Match.query.filter(
                Match.match_date <= naive_now,
                Match.status.notin_(MatchStatus.SETTLED),
                Match.api_id.isnot(None),
            )
            .order_by(Match.match_date, Match.id)
            .limit(limit)
            .all()
        )

    def to_dict(self, include_bets_count=False):
        """Convert match to dictionary for API responses"""
        from analfabet.utils.timezone_utils import isoformat_utc

        data = {
            "id": self.id,
            "api_id": self.api_id,
            "competition": self.competition,
            "season": self.season,
            "round": self.round,
            "home_team": self.home_team,
            "away_team": self.away_team,
            "home_crest": self.home_crest,
            "away_crest": self.away_crest,
            "match_date": isoformat_utc(self.match_date),
            "home_score": self.home_score,
            "away_score": self.away_score,
            "status": self.status,
            "is_open_for_bets": self.is_open_for_bets(),
            "is_finished": self.is_finished,
        }

        if include_bets_count:
            data["bets_count"] = self.get_bets_count()

        return data
