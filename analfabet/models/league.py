import secrets
from datetime import datetime, timezone

from sqlalchemy import or_

from analfabet import db
from analfabet.utils.match_status import MatchStatus


class League(db.Model):
    __tablename__ = "leagues"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)

    # League settings
    is_public = db.Column(db.Boolean, default=False)
    is_active = db.Column(db.Boolean, default=True)
    max_members = db.Column(db.Integer, default=50)

    # League code for easy joining
    invite_code = db.Column(db.String(8), unique=True, nullable=False, index=True)

    # Creator and timestamps
    creator_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    members = db.relationship(
        "LeagueMember", backref="league", lazy="dynamic", cascade="all, delete-orphan"
    )

    __table_args__ = (
        db.Index("idx_league_creator", "creator_id"),
        db.Index("idx_league_active", "is_active"),
    )

    def __repr__(self):
        return f"<League {self.name}>"

    def __init__(self, **kwargs):
        super(League, self).__init__(**kwargs)
        if not self.invite_code:
            self.invite_code = self.generate_invite_code()

    @staticmethod
    def generate_invite_code():
        """Generate a unique 8-character invite code"""
        while True:
            code = secrets.token_hex(4).upper()
            if not League.query.filter_by(invite_code=code).first():
                return code

    @staticmethod
    def get_by_invite_code(code):
        if not code:
            return None
        return League.query.filter_by(invite_code=code.strip().upper()).first()

    @staticmethod
    def create_league(creator, name, description=None, is_public=False, max_members=None):
        """
        Create a league with its creator as the first (admin) member

        Returns:
            tuple: (league, message)
        """
        from flask import current_app

        league = League(
            name=name.strip(),
            description=(description or "").strip() or None,
            is_public=bool(is_public),
            max_members=max_members or current_app.config.get("MAX_LEAGUE_MEMBERS", 50),
            creator_id=creator.id,
        )
        db.session.add(league)
        db.session.flush()

        league.add_member(creator, is_admin=True)
        return league, "League created successfully"

    def get_active_members(self):
        """Get all active members of the league"""
        from sqlalchemy.orm import joinedload

        from .league_member import LeagueMember

        return (
            self.members.filter_by(is_active=True)
            .options(joinedload(LeagueMember.user))
            .order_by(LeagueMember.joined_at)
            .all()
        )

    def get_member_count(self):
        """Get count of active members"""
        return self.members.filter_by(is_active=True).count()

    def is_full(self):
        """Check if league has reached maximum capacity"""
        return self.get_member_count() >= self.max_members

    def is_user_member(self, user_id):
        """Check if user is an active member"""
        return (
            self.members.filter_by(user_id=user_id, is_active=True).first() is not None
        )

    def is_user_admin(self, user_id):
        """Check if user is an admin of this league"""
        member = self.members.filter_by(user_id=user_id, is_active=True).first()
        return bool(member and member.is_admin)

    def add_member(self, user, is_admin=False):
        """Add a user to the league"""
        from .league_member import LeagueMember

        if not self.is_active:
            return False, "League is not active"

        existing = self.members.filter_by(user_id=user.id).first()
        if existing and existing.is_active:
            return False, "User is already a member"

        if self.is_full():
            return False, "League is full"

        if existing:
            existing.reactivate()
            return True, "Membership reactivated"

        membership = LeagueMember(user_id=user.id, league_id=self.id, is_admin=is_admin)
        db.session.add(membership)
        return True, "User added successfully"

    def remove_member(self, user_id):
        """Remove a user from the league"""
        from .league_member import LeagueMember

        member = self.members.filter_by(user_id=user_id, is_active=True).first()
        if not member:
            return False, "User is not a member"

        if user_id == self.creator_id and member.is_admin:
            other_admins = (
                self.members.filter(LeagueMember.user_id != user_id)
                .filter_by(is_active=True, is_admin=True)
                .count()
            )
            if other_admins == 0:
                return False, "The league creator cannot leave while being its only admin"

        member.deactivate()
        return True, "User removed successfully"

    def get_ranking(self, round_number=None):
        """League ranking from the bets of its active members"""
        from .user import User

        return User.get_ranking(league_id=self.id, round_number=round_number)

    def get_visible_bets(self, viewer_id, round_number=None, now=None):
        """
        Members' bets, where another member's bet is only visible once
        its match has started
        """
        from .bet import Bet
        from .league_member import LeagueMember
        from .match import Match

        now = now or datetime.now(timezone.utc)
        naive_now = now.astimezone(timezone.utc).replace(tzinfo=None)

        query = (
            Bet.query.join(Match, Bet.match_id == Match.id)
            .join(LeagueMember, LeagueMember.user_id == Bet.user_id)
            .filter(
                LeagueMember.league_id == self.id,
                LeagueMember.is_active.is_(True),
                or_(
                    Bet.user_id == viewer_id,
                    Match.match_date <= naive_now,
                    Match.status.in_([MatchStatus.LIVE, MatchStatus.FINISHED]),
                ),
            )
        )
        if round_number is not None:
            query = query.filter(Match.round == round_number)

        return query.order_by(Match.match_date, Match.id, Bet.user_id).all()

    def to_dict(self, include_members=False, include_invite_code=False):
        """Convert league to dictionary for API responses"""
        data = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "is_public": self.is_public,
            "is_active": self.is_active,
            "member_count": self.get_member_count(),
            "max_members": self.max_members,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "creator": self.creator.username if self.creator else None,
        }

        if include_invite_code:
            data["invite_code"] = self.invite_code

        if include_members:
            data["members"] = [member.to_dict() for member in self.get_active_members()]

        return data
