import logging

from flask import jsonify
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf.csrf import generate_csrf

from analfabet import db, limiter, login_manager
from analfabet.forms.auth import LoginForm, RegistrationForm
from analfabet.models import User
from analfabet.routes.auth import bp

logger = logging.getLogger(__name__)


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


def _validation_error(form, message="Validation failed"):
    return jsonify({"error": message, "errors": form.errors}), 400


@bp.route("/csrf-token")
def csrf_token():
    """Token the client sends back in the X-CSRFToken header"""
    return jsonify({"csrf_token": generate_csrf()})


@bp.route("/register", methods=["POST"])
@limiter.limit("5 per hour")
def register():
    if current_user.is_authenticated:
        return jsonify({"error": "Already logged in"}), 400

    form = RegistrationForm()
    if not form.validate_on_submit():
        return _validation_error(form)

    # Form validators already checked for duplicates
    user = User(username=form.username.data, email=form.email.data.lower())
    user.set_display_name(form.display_name.data)
    user.set_password(form.password.data)

    db.session.add(user)
    db.session.commit()

    login_user(user)
    logger.info(f"New user registered: {user.username}")

    return jsonify({"message": "Registration successful", "user": user.to_dict(include_private=True)}), 201


@bp.route("/login", methods=["POST"])
@limiter.limit("10 per minute")
def login():
    form = LoginForm()
    if not form.validate_on_submit():
        return _validation_error(form)

    user = User.query.filter_by(username=form.username.data).first()

    if not user or not user.check_password(form.password.data):
        logger.warning(f"Failed login attempt for username: {form.username.data}")
        return jsonify({"error": "Invalid username or password"}), 401

    if not user.is_active:
        return (
            jsonify({"error": "Your account has been deactivated. Please contact support."}),
            403,
        )

    login_user(user, remember=form.remember_me.data)
    user.update_last_login()

    return jsonify({"message": f"Welcome back, {user.full_name}!", "user": user.to_dict(include_private=True)})


@bp.route("/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    return jsonify({"message": "You have been logged out successfully."})


@bp.route("/me")
@login_required
def me():
    """Current user with overall totals"""
    stats = current_user.get_stats()
    return jsonify(
        {
            "user": current_user.to_dict(include_private=True),
            "stats": {
                "total_points": stats["total_points"],
                "exact_scores": stats["exact_scores"],
                "total_bets": stats["total_bets"],
                "position": stats["position"],
            },
            "leagues": [league.to_dict() for league in current_user.get_leagues()],
        }
    )
