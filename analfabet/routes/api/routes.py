import logging
from datetime import datetime, timezone
from functools import wraps

from flask import jsonify, request
from flask_login import current_user, login_required

from analfabet import db, limiter
from analfabet.forms import sanitize_input
from analfabet.forms.leagues import CreateLeagueForm, JoinLeagueForm
from analfabet.models import Bet, League, Match, User
from analfabet.models.bet import BETTING_CLOSED, MATCH_NOT_FOUND, parse_predicted_score
from analfabet.routes.api import bp
from analfabet.utils.cache_utils import cached_route, invalidate_model_cache
from analfabet.utils.match_status import MatchStatus
from analfabet.utils.ranking import determine_winners

logger = logging.getLogger(__name__)

# Upper bound for manually entered results
MAX_RESULT_SCORE = 20

PLACE_BET_ERROR_STATUS = {
    MATCH_NOT_FOUND: 404,
    BETTING_CLOSED: 403,
}


class InvalidRound(ValueError):
    pass


def parse_round_arg(allow_all=False):
    """
    Read the ``round`` query argument.

    Returns None when absent, "all" when allowed and requested, otherwise a
    positive int. Raises InvalidRound for anything else.
    """
    value = request.args.get("round")
    if value is None or value == "":
        return None
    if allow_all and value.lower() == "all":
        return "all"
    try:
        round_number = int(value)
    except ValueError:
        raise InvalidRound(value)
    if round_number < 1:
        raise InvalidRound(value)
    return round_number


@bp.errorhandler(InvalidRound)
def handle_invalid_round(error):
    return jsonify({"error": f"Invalid round: {error}"}), 400


def add_no_store_headers(f):
    """Mark per-user API responses as non-cacheable"""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        response = f(*args, **kwargs)
        if hasattr(response, "headers"):
            response.headers["Cache-Control"] = (
                "no-store, no-cache, must-revalidate, max-age=0"
            )
        return response

    return decorated_function


def admin_required(f):
    @wraps(f)
    @login_required
    def decorated_function(*args, **kwargs):
        if not current_user.is_admin:
            return jsonify({"error": "Admin privileges required"}), 403
        return f(*args, **kwargs)

    return decorated_function


def _get_member_league(league_id):
    """Return (league, None) for a member, else (None, error response)"""
    league = db.session.get(League, league_id)
    if not league:
        return None, (jsonify({"error": "League not found"}), 404)
    if not league.is_user_member(current_user.id):
        return None, (jsonify({"error": "Not a member of this league"}), 403)
    return league, None


@bp.route("/health")
@limiter.exempt
def health():
    """Health check endpoint - exempt from rate limiting for monitoring systems"""
    return jsonify(
        {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}
    )


# Matches and rounds


@bp.route("/matches")
@cached_route(timeout=60, key_prefix="matches")
def matches():
    """Matches of a round; without ?round= the default round is chosen"""
    round_arg = parse_round_arg(allow_all=True)
    default_round = Match.get_default_round()

    if round_arg == "all":
        match_list = Match.get_all_ordered()
        determined_round = default_round
    else:
        determined_round = round_arg or default_round
        match_list = Match.get_for_round(determined_round)

    return {
        "matches": [match.to_dict(include_bets_count=True) for match in match_list],
        "determined_round": determined_round,
        "rounds": Match.get_rounds(),
    }


@bp.route("/matches/<int:match_id>")
def match_detail(match_id):
    match = db.session.get(Match, match_id)
    if not match:
        return jsonify({"error": "Match not found"}), 404
    return jsonify(match.to_dict(include_bets_count=True))


@bp.route("/rounds")
@cached_route(timeout=60, key_prefix="rounds")
def rounds():
    return {"rounds": Match.get_rounds(), "default_round": Match.get_default_round()}


# Bets


@bp.route("/bets")
@login_required
@add_no_store_headers
def user_bets():
    """The current user's bets with their matches"""
    round_number = parse_round_arg()
    bets = Bet.get_user_bets(current_user.id, round_number)
    return jsonify(
        {
            "round": round_number,
            "bets": [bet.to_dict(include_match=True) for bet in bets],
            "total_points": sum(bet.points or 0 for bet in bets),
        }
    )


@bp.route("/bets", methods=["POST"])
@login_required
@limiter.limit("120 per minute")
def place_bet():
    data = request.get_json(silent=True) or {}

    match_id = data.get("match_id")
    if isinstance(match_id, bool) or not isinstance(match_id, int):
        return jsonify({"error": "match_id must be an integer"}), 400

    bet, message = Bet.place_bet(
        current_user.id, match_id, data.get("home_score"), data.get("away_score")
    )
    if bet is None:
        return jsonify({"error": message}), PLACE_BET_ERROR_STATUS.get(message, 400)

    created = bet.id is None
    db.session.commit()
    invalidate_model_cache("bets")
    logger.info(
        f"User {current_user.username} bet {bet.home_score}-{bet.away_score} on match {match_id}"
    )

    return (
        jsonify({"message": message, "bet": bet.to_dict(include_match=True)}),
        201 if created else 200,
    )


# Rankings


@bp.route("/rankings")
@cached_route(timeout=120, key_prefix="rankings")
def rankings():
    """Overall ranking (or one round's) with the current winners"""
    round_number = parse_round_arg()
    ranking = User.get_ranking(round_number=round_number)
    return {
        "round": round_number,
        "ranking": ranking,
        "winners": determine_winners(ranking),
    }


# Leagues


@bp.route("/leagues")
@login_required
@add_no_store_headers
def leagues():
    """Get user's leagues"""
    return jsonify(
        [
            league.to_dict(include_invite_code=league.is_user_admin(current_user.id))
            for league in current_user.get_leagues()
        ]
    )


@bp.route("/leagues", methods=["POST"])
@login_required
@limiter.limit("20 per hour")
def create_league():
    form = CreateLeagueForm()
    if not form.validate_on_submit():
        return jsonify({"error": "Validation failed", "errors": form.errors}), 400

    league, message = League.create_league(
        current_user,
        sanitize_input(form.name.data),
        description=sanitize_input(form.description.data),
        is_public=form.is_public.data,
        max_members=form.max_members.data,
    )
    db.session.commit()
    logger.info(f"League '{league.name}' created by {current_user.username}")

    return (
        jsonify(
            {
                "message": message,
                "league": league.to_dict(include_members=True, include_invite_code=True),
            }
        ),
        201,
    )


@bp.route("/leagues/join", methods=["POST"])
@login_required
@limiter.limit("30 per hour")
def join_league():
    form = JoinLeagueForm()
    if not form.validate_on_submit():
        return jsonify({"error": "Validation failed", "errors": form.errors}), 400

    league = League.get_by_invite_code(form.invite_code.data)
    if not league:
        return jsonify({"error": "Invalid invite code"}), 404

    success, message = league.add_member(current_user)
    if not success:
        return jsonify({"error": message}), 400

    db.session.commit()
    logger.info(f"{current_user.username} joined league '{league.name}'")
    return jsonify({"message": message, "league": league.to_dict()})


@bp.route("/leagues/<int:league_id>")
@login_required
def league_detail(league_id):
    league, error = _get_member_league(league_id)
    if error:
        return error
    return jsonify(
        league.to_dict(
            include_members=True,
            include_invite_code=league.is_user_admin(current_user.id),
        )
    )


@bp.route("/leagues/<int:league_id>/leave", methods=["POST"])
@login_required
def leave_league(league_id):
    league, error = _get_member_league(league_id)
    if error:
        return error

    success, message = league.remove_member(current_user.id)
    if not success:
        return jsonify({"error": message}), 400

    db.session.commit()
    return jsonify({"message": message})


@bp.route("/leagues/<int:league_id>/ranking")
@login_required
def league_ranking(league_id):
    league, error = _get_member_league(league_id)
    if error:
        return error

    round_number = parse_round_arg()
    ranking = league.get_ranking(round_number)
    return jsonify(
        {
            "league": league.to_dict(),
            "round": round_number,
            "ranking": ranking,
            "winners": determine_winners(ranking),
        }
    )


@bp.route("/leagues/<int:league_id>/bets")
@login_required
@add_no_store_headers
def league_bets(league_id):
    """Members' bets; other members' bets only once the match has started"""
    league, error = _get_member_league(league_id)
    if error:
        return error

    round_number = parse_round_arg()
    if round_number is None:
        round_number = Match.get_default_round()

    bets = league.get_visible_bets(current_user.id, round_number)
    return jsonify(
        {
            "league_id": league.id,
            "round": round_number,
            "bets": [
                dict(
                    bet.to_dict(),
                    username=bet.user.username,
                    display_name=bet.user.full_name,
                )
                for bet in bets
            ],
        }
    )


# Admin


@bp.route("/admin/scheduler")
@admin_required
def admin_scheduler():
    """Scheduler status"""
    from analfabet.services.scheduler_service import scheduler_service

    return jsonify(scheduler_service.get_status())


@bp.route("/admin/scheduler/sync", methods=["POST"])
@admin_required
def admin_scheduler_sync():
    """Force a sync run: {"type": "live" | "results" | "full"}"""
    from analfabet.services.scheduler_service import scheduler_service

    data = request.get_json(silent=True) or {}
    sync_type = data.get("type", "results")

    try:
        success, message = scheduler_service.force_sync(sync_type)
    except Exception as e:
        logger.error(f"Forced {sync_type} sync failed: {e}", exc_info=True)
        return jsonify({"error": f"Scheduler action failed: {str(e)}"}), 500

    if success:
        return jsonify({"message": message})
    return jsonify({"error": message}), 400


@bp.route("/admin/scheduler/jobs/<job_id>/<action>", methods=["POST"])
@admin_required
def admin_scheduler_job(job_id, action):
    from analfabet.services.scheduler_service import scheduler_service

    if action == "pause":
        success, message = scheduler_service.pause_job(job_id)
    elif action == "resume":
        success, message = scheduler_service.resume_job(job_id)
    else:
        return jsonify({"error": "Unknown action"}), 400

    if success:
        return jsonify({"message": message})
    return jsonify({"error": message}), 400


@bp.route("/admin/matches/<int:match_id>/result", methods=["POST"])
@admin_required
def admin_match_result(match_id):
    """Manually correct a match result and rescore its bets"""
    match = db.session.get(Match, match_id)
    if not match:
        return jsonify({"error": "Match not found"}), 404

    data = request.get_json(silent=True) or {}
    home_score = parse_predicted_score(data.get("home_score"), MAX_RESULT_SCORE)
    away_score = parse_predicted_score(data.get("away_score"), MAX_RESULT_SCORE)
    if home_score is None or away_score is None:
        return (
            jsonify(
                {"error": f"Scores must be whole numbers between 0 and {MAX_RESULT_SCORE}"}
            ),
            400,
        )

    status = data.get("status", MatchStatus.FINISHED)
    if not MatchStatus.is_valid(status):
        return (
            jsonify(
                {"error": f"Invalid status. Valid statuses: {', '.join(MatchStatus.ALL)}"}
            ),
            400,
        )

    changed = match.update_result(home_score, away_score, status)
    db.session.commit()

    if changed:
        invalidate_model_cache("matches")
        logger.info(
            f"Admin {current_user.username} set match {match.id} to "
            f"{home_score}-{away_score} ({status})"
        )

    return jsonify(
        {
            "message": "Result updated" if changed else "Result unchanged",
            "match": match.to_dict(include_bets_count=True),
            "bets_rescored": match.get_bets_count() if changed else 0,
        }
    )
