import html
from datetime import datetime, timezone

from flask_login import UserMixin
from sqlalchemy import and_, case, func
from werkzeug.security import check_password_hash, generate_password_hash

from analfabet import db


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)

    # Profile information
    display_name = db.Column(db.String(100))

    # Account status
    is_active = db.Column(db.Boolean, default=True)
    is_admin = db.Column(db.Boolean, default=False)  # Site-wide admin privileges

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
    last_login = db.Column(db.DateTime)

    # Relationships
    bets = db.relationship(
        "Bet", backref="user", lazy="dynamic", cascade="all, delete-orphan"
    )
    league_memberships = db.relationship(
        "LeagueMember", backref="user", lazy="dynamic", cascade="all, delete-orphan"
    )
    created_leagues = db.relationship("League", backref="creator", lazy="dynamic")

    # Database indexes and constraints
    __table_args__ = (
        db.Index("idx_user_last_login", "last_login"),
        db.Index("idx_user_active_status", "is_active"),
    )

    def __repr__(self):
        return f"<User {self.username}>"

    def set_password(self, password):
        """Set password hash"""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Check password against hash"""
        return check_password_hash(self.password_hash, password)

    def set_display_name(self, display_name):
        """Set display name with sanitization"""
        if display_name:
            self.display_name = html.escape(display_name.strip())
        else:
            self.display_name = display_name

    @property
    def full_name(self):
        """Return display name or username"""
        return self.display_name or self.username

    def update_last_login(self):
        """Update last login timestamp"""
        self.last_login = datetime.now(timezone.utc)
        db.session.commit()

    def get_leagues(self):
        """Leagues this user is an active member of (inactive ones only for their creator)"""
        from .league_member import LeagueMember

        memberships = (
            LeagueMember.query.filter_by(user_id=self.id, is_active=True).all()
        )

        return [
            membership.league
            for membership in memberships
            if membership.league.is_active or membership.league.creator_id == self.id
        ]

    def get_stats(self, round_number=None):
        """Totals for this user (optionally for one round)"""
        for entry in User.get_ranking(round_number=round_number):
            if entry["user_id"] == self.id:
                return entry
        return {
            "user_id": self.id,
            "username": self.username,
            "name": self.full_name,
            "total_points": 0,
            "exact_scores": 0,
            "total_bets": 0,
            "position": None,
        }

    @staticmethod
    def _ranking_rows(league_id=None, round_number=None):
        """Aggregate points per user in one query; users without bets count as 0"""
        from .bet import Bet
        from .league_member import LeagueMember
        from .match import Match

        bet_join = Bet.user_id == User.id
        if round_number is not None:
            round_matches = db.select(Match.id).where(Match.round == round_number)
            bet_join = and_(bet_join, Bet.match_id.in_(round_matches))

        query = (
            db.session.query(
                User.id.label("user_id"),
                User.username,
                User.display_name,
                func.coalesce(func.sum(Bet.points), 0).label("total_points"),
                func.coalesce(
                    func.sum(case((Bet.is_exact.is_(True), 1), else_=0)), 0
                ).label("exact_scores"),
                func.count(Bet.id).label("total_bets"),
            )
            .outerjoin(Bet, bet_join)
            .filter(User.is_active.is_(True))
        )

        if league_id is not None:
            query = query.join(
                LeagueMember,
                and_(
                    LeagueMember.user_id == User.id,
                    LeagueMember.league_id == league_id,
                    LeagueMember.is_active.is_(True),
                ),
            )

        return query.group_by(User.id, User.username, User.display_name).all()

    @staticmethod
    def get_ranking(league_id=None, round_number=None):
        """
        Ranking of active users ordered by points, exact scores and name

        Args:
            league_id: Optional league ID to restrict to its active members
            round_number: Optional round to count only bets on its matches
        """
        from analfabet.utils.ranking import build_ranking

        entries = [
            {
                "user_id": row.user_id,
                "username": row.username,
                "name": row.display_name or row.username,
                "total_points": int(row.total_points or 0),
                "exact_scores": int(row.exact_scores or 0),
                "total_bets": int(row.total_bets or 0),
            }
            for row in User._ranking_rows(league_id, round_number)
        ]
        return build_ranking(entries)

    def to_dict(self, include_private=False):
        """Convert user to dictionary for API responses"""
        data = {
            "id": self.id,
            "username": self.username,
            "display_name": self.full_name,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

        if include_private:
            data["email"] = self.email
            data["is_admin"] = self.is_admin
            data["last_login"] = (
                self.last_login.isoformat() if self.last_login else None
            )

        return data
