from datetime import timedelta

import pytest

from analfabet import create_app, db
from analfabet.models import Bet, Match, User
from analfabet.utils.match_status import MatchStatus
from analfabet.utils.timezone_utils import utcnow_naive

PASSWORD = "Secret123"


@pytest.fixture
def app():
    app = create_app("testing")

    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make_user(username="torcedor", is_admin=False, is_active=True, display_name=None):
        user = User(
            username=username,
            email=f"{username}@analfabet.com.br",
            is_admin=is_admin,
            is_active=is_active,
        )
        user.set_display_name(display_name)
        user.set_password(PASSWORD)
        db.session.add(user)
        db.session.commit()
        return user

    return _make_user


@pytest.fixture
def make_match(app):
    counter = {"api_id": 1000}

    def _make_match(
        round_number=1,
        kickoff=None,
        status=MatchStatus.SCHEDULED,
        home_score=None,
        away_score=None,
        home_team="Flamengo",
        away_team="Palmeiras",
        api_id=None,
    ):
        counter["api_id"] += 1
        match = Match(
            api_id=api_id if api_id is not None else counter["api_id"],
            competition="BSA",
            season=2024,
            round=round_number,
            home_team=home_team,
            away_team=away_team,
            match_date=kickoff or utcnow_naive() + timedelta(days=2),
            home_score=home_score,
            away_score=away_score,
            status=status,
        )
        db.session.add(match)
        db.session.commit()
        return match

    return _make_match


@pytest.fixture
def make_bet(app):
    """Bets inserted directly, bypassing the betting window"""

    def _make_bet(user, match, home_score, away_score):
        bet = Bet(
            user_id=user.id,
            match_id=match.id,
            home_score=home_score,
            away_score=away_score,
            points=0,
            is_exact=False,
        )
        db.session.add(bet)
        db.session.commit()
        return bet

    return _make_bet


@pytest.fixture
def login(client):
    def _login(username, password=PASSWORD):
        response = client.post(
            "/auth/login", json={"username": username, "password": password}
        )
        assert response.status_code == 200, response.get_json()
        return response

    return _login
