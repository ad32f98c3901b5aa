#!/usr/bin/env python3
"""
AnalfaBet Management CLI

This script provides command-line management functionality for the AnalfaBet application.
"""

import logging
import os

import click
from flask.cli import with_appcontext
from flask_migrate import downgrade, migrate, upgrade
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from analfabet import create_app, db
from analfabet.models import Bet, League, Match, User
from analfabet.utils.data_sync import DataSync
from analfabet.utils.match_status import MatchStatus

app = create_app()


@click.group()
def cli():
    """AnalfaBet Management CLI"""
    pass


# Data Sync Commands
@cli.group()
def sync():
    """Data synchronization commands"""
    pass


@sync.command()
@click.option("--season", type=int, help="Season start year (default: current season)")
@click.option("--round", "round_number", type=int, help="Only sync this matchday")
@with_appcontext
def matches(season, round_number):
    """Sync fixtures and results from football-data.org"""
    try:
        click.echo("Syncing matches...")
        data_sync = DataSync()

        success, message = data_sync.sync_matches(season=season, matchday=round_number)

        if success:
            click.echo(f"✅ {message}")
        else:
            click.echo(f"❌ {message}")

    except Exception as e:
        click.echo(f"❌ Error syncing matches: {str(e)}")


@sync.command()
@click.option("--limit", default=5, show_default=True, help="Max matches to check")
@with_appcontext
def results(limit):
    """Update results of kicked-off matches"""
    try:
        click.echo("Updating results...")
        data_sync = DataSync()

        success, message = data_sync.update_results(limit=limit)

        if success:
            click.echo(f"✅ {message}")
        else:
            click.echo(f"❌ {message}")

    except Exception as e:
        click.echo(f"❌ Error updating results: {str(e)}")


@sync.command()
@with_appcontext
def matchday():
    """Show the competition's current matchday"""
    try:
        data_sync = DataSync()
        current = data_sync.get_current_matchday()
        if current is None:
            click.echo("⚠️  Current matchday not reported by the API")
        else:
            click.echo(f"📅 {data_sync.competition} current matchday: {current}")

    except Exception as e:
        click.echo(f"❌ Error fetching matchday: {str(e)}")


# Scoring Commands
@cli.command()
@click.option("--round", "round_number", type=int, help="Only rescore this round")
@with_appcontext
def rescore(round_number):
    """Recalculate points for every bet (after a scoring rule change)"""
    try:
        count = Bet.recalculate_all(round_number=round_number)
        scope = f"round {round_number}" if round_number else "all rounds"
        click.echo(f"✅ Rescored {count} bets ({scope})")

    except SQLAlchemyError as e:
        db.session.rollback()
        click.echo(f"❌ Database error rescoring bets: {str(e)}")
        logging.error(f"Rescore failed - SQL error: {e}")


# User Management Commands
@cli.group()
def user():
    """User management commands"""
    pass


@user.command()
@click.argument("username")
@click.argument("email")
@click.argument("password")
@click.option("--display-name", help="Display name")
@with_appcontext
def create_admin(username, email, password, display_name):
    """Create an admin user"""
    try:
        # Check if user exists
        existing = User.query.filter(
            (User.username == username) | (User.email == email.lower())
        ).first()

        if existing:
            click.echo(
                f"❌ User with username '{username}' or email '{email}' already exists!"
            )
            return

        user = User(
            username=username,
            email=email.lower(),
            is_active=True,
            is_admin=True,
        )
        user.set_display_name(display_name)
        user.set_password(password)

        db.session.add(user)
        db.session.commit()

        click.echo(f"✅ Created admin user '{username}' ({email})")

    except IntegrityError as e:
        db.session.rollback()
        click.echo(f"❌ User '{username}' already exists!")
        logging.error(f"Admin creation failed - integrity error: {e}")
    except Exception as e:
        db.session.rollback()
        click.echo(f"❌ Error creating user: {str(e)}")


@user.command()
@with_appcontext
def list_users():
    """List all users"""
    users = User.query.order_by(User.created_at.desc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("Users:")
    for u in users:
        status = "🟢" if u.is_active else "🔴"
        role = "👑" if u.is_admin else "  "
        click.echo(f"  {status} {role} {u.username} ({u.email}) - {u.full_name}")


# Database Commands
@cli.group()
def db_cmd():
    """Database commands"""
    pass


@db_cmd.command()
@with_appcontext
def init_db():
    """Initialize database tables"""
    try:
        db.create_all()
        click.echo("✅ Database tables created successfully!")
    except Exception as e:
        click.echo(f"❌ Error initializing database: {str(e)}")


@db_cmd.command()
@with_appcontext
def reset():
    """⚠️  DANGER: Drop and recreate all tables"""
    if not click.confirm("This will DELETE ALL DATA. Are you sure?"):
        click.echo("Cancelled.")
        return

    try:
        db.drop_all()
        db.create_all()
        click.echo("✅ Database reset successfully!")
    except Exception as e:
        click.echo(f"❌ Error resetting database: {str(e)}")


# Database Migration Commands
@cli.group()
def db_migrate():
    """Database migration commands"""
    pass


@db_migrate.command()
@with_appcontext
def init_migrations():
    """Initialize migrations repository"""
    try:
        if os.path.exists("migrations"):
            click.echo("❌ Migrations directory already exists!")
            return

        from flask_migrate import init as flask_migrate_init

        flask_migrate_init()
        click.echo("✅ Migrations repository initialized!")
    except Exception as e:
        click.echo(f"❌ Error initializing migrations: {str(e)}")


@db_migrate.command()
@click.option("-m", "--message", required=True, help="Migration message")
@with_appcontext
def create_migration(message):
    """Create a new migration"""
    try:
        migrate(message=message)
        click.echo(f"✅ Migration created: {message}")
    except Exception as e:
        click.echo(f"❌ Error creating migration: {str(e)}")


@db_migrate.command()
@click.option("--revision", default="head", help="Revision to upgrade to")
@with_appcontext
def apply_migrations(revision):
    """Apply migrations to database"""
    try:
        upgrade(revision=revision)
        click.echo(f"✅ Migrations applied to {revision}")
    except Exception as e:
        click.echo(f"❌ Error applying migrations: {str(e)}")


@db_migrate.command()
@click.option("--revision", required=True, help="Revision to downgrade to")
@with_appcontext
def rollback_migration(revision):
    """Rollback migrations to specific revision"""
    try:
        downgrade(revision=revision)
        click.echo(f"✅ Rolled back to {revision}")
    except Exception as e:
        click.echo(f"❌ Error rolling back: {str(e)}")


# Info Commands
@cli.command()
@with_appcontext
def status():
    """Show application status"""
    click.echo("⚽ AnalfaBet Application Status")
    click.echo("=" * 40)

    # Database connection
    try:
        db.session.execute(db.text("SELECT 1"))
        click.echo("✅ Database: Connected")
    except Exception as e:
        click.echo(f"❌ Database: Error - {str(e)}")
        return

    click.echo(
        f"🏆 Competition: {app.config.get('COMPETITION_CODE')} "
        f"(season {app.config.get('COMPETITION_SEASON') or 'current'})"
    )

    user_count = User.query.filter_by(is_active=True).count()
    click.echo(f"👥 Active Users: {user_count}")

    league_count = League.query.filter_by(is_active=True).count()
    click.echo(f"🤝 Active Leagues: {league_count}")

    match_count = Match.query.count()
    finished_count = Match.query.filter_by(status=MatchStatus.FINISHED).count()
    click.echo(f"⚽ Matches: {finished_count}/{match_count} finished")
    click.echo(f"🎯 Bets: {Bet.query.count()}")

    if match_count:
        click.echo(f"📅 Default Round: {Match.get_default_round()}")
    else:
        click.echo("⚠️  No matches yet - run 'sync matches' first")


if __name__ == "__main__":
    with app.app_context():
        cli()
