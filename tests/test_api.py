from datetime import timedelta

from analfabet import db
from analfabet.models import Bet, League, Match
from analfabet.utils.match_status import MatchStatus
from analfabet.utils.timezone_utils import utcnow_naive


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.get_json()["status"] == "ok"


def test_security_headers(client):
    response = client.get("/api/health")
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"


def test_unknown_route_returns_json_404(client):
    response = client.get("/api/nothing-here")
    assert response.status_code == 404
    assert response.get_json() == {"error": "Resource not found"}


class TestMatches:
    def test_default_round_is_determined(self, client, make_match):
        make_match(
            round_number=1,
            kickoff=utcnow_naive() - timedelta(days=7),
            status=MatchStatus.FINISHED,
            home_score=2,
            away_score=2,
        )
        current = make_match(round_number=2, kickoff=utcnow_naive() - timedelta(hours=1))
        make_match(round_number=3, kickoff=utcnow_naive() + timedelta(days=6))

        body = client.get("/api/matches").get_json()

        assert body["determined_round"] == 2
        assert body["rounds"] == [1, 2, 3]
        assert [m["id"] for m in body["matches"]] == [current.id]
        assert body["matches"][0]["is_open_for_bets"] is False

    def test_explicit_round(self, client, make_match):
        make_match(round_number=1)
        second = make_match(round_number=2, home_team="Santos", away_team="Vasco")

        body = client.get("/api/matches?round=2").get_json()
        assert [m["id"] for m in body["matches"]] == [second.id]
        assert body["determined_round"] == 2

    def test_all_rounds(self, client, make_match):
        make_match(round_number=1)
        make_match(round_number=2)

        body = client.get("/api/matches?round=all").get_json()
        assert len(body["matches"]) == 2

    def test_invalid_round(self, client):
        for value in ("abc", "0", "-3"):
            response = client.get(f"/api/matches?round={value}")
            assert response.status_code == 400, value

    def test_no_matches_defaults_to_round_one(self, client):
        body = client.get("/api/matches").get_json()
        assert body == {"matches": [], "determined_round": 1, "rounds": []}

    def test_match_detail(self, client, make_match):
        match = make_match()
        response = client.get(f"/api/matches/{match.id}")
        assert response.status_code == 200
        assert response.get_json()["home_team"] == "Flamengo"

        assert client.get("/api/matches/9999").status_code == 404

    def test_rounds(self, client, make_match):
        make_match(round_number=4)
        body = client.get("/api/rounds").get_json()
        assert body == {"rounds": [4], "default_round": 4}


class TestBets:
    def test_requires_login(self, client, make_match):
        match = make_match()
        response = client.post(
            "/api/bets", json={"match_id": match.id, "home_score": 1, "away_score": 0}
        )
        assert response.status_code == 401

    def test_place_and_update_bet(self, client, make_user, make_match, login):
        make_user("ana")
        login("ana")
        match = make_match()

        created = client.post(
            "/api/bets", json={"match_id": match.id, "home_score": 0, "away_score": 0}
        )
        assert created.status_code == 201
        assert created.get_json()["bet"]["home_score"] == 0

        updated = client.post(
            "/api/bets", json={"match_id": match.id, "home_score": 3, "away_score": 1}
        )
        assert updated.status_code == 200
        assert updated.get_json()["message"] == "Bet updated successfully"
        assert Bet.query.count() == 1

        body = client.get(f"/api/bets?round={match.round}").get_json()
        assert [(b["home_score"], b["away_score"]) for b in body["bets"]] == [(3, 1)]
        assert body["bets"][0]["match"]["id"] == match.id

    def test_betting_closed(self, client, make_user, make_match, login):
        make_user("ana")
        login("ana")
        match = make_match(kickoff=utcnow_naive() - timedelta(minutes=1))

        response = client.post(
            "/api/bets", json={"match_id": match.id, "home_score": 1, "away_score": 0}
        )
        assert response.status_code == 403
        assert response.get_json()["error"] == "Betting is closed for this match"

    def test_unknown_match(self, client, make_user, login):
        make_user("ana")
        login("ana")
        response = client.post(
            "/api/bets", json={"match_id": 4242, "home_score": 1, "away_score": 0}
        )
        assert response.status_code == 404

    def test_invalid_payloads(self, client, make_user, make_match, login):
        make_user("ana")
        login("ana")
        match = make_match()

        for payload in (
            {"match_id": "1", "home_score": 1, "away_score": 0},
            {"match_id": match.id, "home_score": -1, "away_score": 0},
            {"match_id": match.id, "home_score": 1, "away_score": 99},
            {"match_id": match.id, "home_score": 1.5, "away_score": 0},
            {"match_id": match.id, "away_score": 0},
        ):
            response = client.post("/api/bets", json=payload)
            assert response.status_code == 400, payload

        assert Bet.query.count() == 0


class TestRankings:
    def test_overall_ranking_and_winners(self, client, make_user, make_match, make_bet):
        ana, bruno = make_user("ana"), make_user("bruno")
        match = make_match(
            kickoff=utcnow_naive() - timedelta(hours=3), status=MatchStatus.LIVE
        )
        make_bet(ana, match, 1, 0)
        make_bet(bruno, match, 2, 0)
        match.update_result(2, 0, MatchStatus.FINISHED)
        db.session.commit()

        body = client.get("/api/rankings").get_json()

        assert [e["username"] for e in body["ranking"]] == ["bruno", "ana"]
        assert [e["total_points"] for e in body["ranking"]] == [3, 1]
        assert [w["username"] for w in body["winners"]] == ["bruno"]

    def test_round_ranking(self, client, make_user):
        make_user("ana")
        body = client.get("/api/rankings?round=5").get_json()
        assert body["round"] == 5
        assert body["winners"] == []


class TestLeagues:
    def test_create_and_list(self, client, make_user, login):
        make_user("ana")
        login("ana")

        response = client.post(
            "/api/leagues", json={"name": "Resenha FC", "description": "Os de sempre"}
        )
        assert response.status_code == 201
        league = response.get_json()["league"]
        assert len(league["invite_code"]) == 8
        assert [m["username"] for m in league["members"]] == ["ana"]

        listed = client.get("/api/leagues").get_json()
        assert [league["name"] for league in listed] == ["Resenha FC"]

    def test_create_validation(self, client, make_user, login):
        make_user("ana")
        login("ana")

        response = client.post("/api/leagues", json={"name": "x"})
        assert response.status_code == 400
        assert "name" in response.get_json()["errors"]

    def test_join_and_leave(self, client, make_user, login):
        owner, friend = make_user("owner"), make_user("friend")
        league, _ = League.create_league(owner, "Resenha FC")
        db.session.commit()

        login("friend")
        bad = client.post("/api/leagues/join", json={"invite_code": "ZZZZZZZZ"})
        assert bad.status_code == 404

        joined = client.post(
            "/api/leagues/join", json={"invite_code": league.invite_code.lower()}
        )
        assert joined.status_code == 200
        assert "invite_code" not in joined.get_json()["league"]

        again = client.post("/api/leagues/join", json={"invite_code": league.invite_code})
        assert again.status_code == 400

        detail = client.get(f"/api/leagues/{league.id}").get_json()
        assert sorted(m["username"] for m in detail["members"]) == ["friend", "owner"]

        left = client.post(f"/api/leagues/{league.id}/leave")
        assert left.status_code == 200
        assert not league.is_user_member(friend.id)
        assert client.get(f"/api/leagues/{league.id}").status_code == 403

    def test_missing_league(self, client, make_user, login):
        make_user("ana")
        login("ana")
        assert client.get("/api/leagues/777").status_code == 404

    def test_league_ranking_and_bets(self, client, make_user, make_match, make_bet, login):
        owner, friend = make_user("owner"), make_user("friend")
        league, _ = League.create_league(owner, "Resenha FC")
        league.add_member(friend)
        db.session.commit()

        finished = make_match(
            round_number=1,
            kickoff=utcnow_naive() - timedelta(days=1),
            status=MatchStatus.FINISHED,
            home_score=1,
            away_score=1,
        )
        upcoming = make_match(round_number=1)
        make_bet(friend, finished, 1, 1)
        make_bet(friend, upcoming, 2, 0)
        Bet.recalculate_all()

        login("owner")
        ranking = client.get(f"/api/leagues/{league.id}/ranking").get_json()
        assert [e["username"] for e in ranking["ranking"]] == ["friend", "owner"]
        assert [w["username"] for w in ranking["winners"]] == ["friend"]

        bets = client.get(f"/api/leagues/{league.id}/bets?round=1").get_json()
        assert [b["match_id"] for b in bets["bets"]] == [finished.id]
        assert bets["bets"][0]["username"] == "friend"


class TestAdmin:
    def test_requires_admin(self, client, make_user, login, make_match):
        make_user("ana")
        login("ana")
        match = make_match()

        response = client.post(
            f"/api/admin/matches/{match.id}/result",
            json={"home_score": 1, "away_score": 0},
        )
        assert response.status_code == 403
        assert client.get("/api/admin/scheduler").status_code == 403

    def test_manual_result_rescores_bets(
        self, client, make_user, login, make_match, make_bet
    ):
        make_user("chefe", is_admin=True)
        player = make_user("ana")
        match = make_match(kickoff=utcnow_naive() - timedelta(hours=2), status=MatchStatus.LIVE)
        bet = make_bet(player, match, 0, 0)
        login("chefe")

        response = client.post(
            f"/api/admin/matches/{match.id}/result",
            json={"home_score": 0, "away_score": 0},
        )

        assert response.status_code == 200
        body = response.get_json()
        assert body["bets_rescored"] == 1
        assert body["match"]["status"] == MatchStatus.FINISHED
        assert db.session.get(Bet, bet.id).points == 3

    def test_manual_result_validation(self, client, make_user, login, make_match):
        make_user("chefe", is_admin=True)
        match = make_match()
        login("chefe")

        bad_score = client.post(
            f"/api/admin/matches/{match.id}/result",
            json={"home_score": 30, "away_score": 0},
        )
        assert bad_score.status_code == 400

        bad_status = client.post(
            f"/api/admin/matches/{match.id}/result",
            json={"home_score": 1, "away_score": 0, "status": "abandoned"},
        )
        assert bad_status.status_code == 400
        assert db.session.get(Match, match.id).status == MatchStatus.SCHEDULED

    def test_scheduler_status_and_unknown_sync(self, client, make_user, login):
        make_user("chefe", is_admin=True)
        login("chefe")

        status = client.get("/api/admin/scheduler").get_json()
        assert "stats" in status and "jobs" in status

        response = client.post("/api/admin/scheduler/sync", json={"type": "weekly"})
        assert response.status_code == 400
        assert "Unknown sync type" in response.get_json()["error"]
