#!/usr/bin/env python3
"""
Score Predictor Management CLI

Administrative operations for the Score Predictor application: finalization,
score maintenance, leagues, manual score corrections and match imports.
"""

import json
import logging
import os

import click
from flask.cli import with_appcontext
from flask_migrate import downgrade, migrate, upgrade
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from predictor import create_app, db
from predictor.models import (
    AdminAction,
    Gameweek,
    League,
    Match,
    Prediction,
    ScoreOverride,
    User,
)
from predictor.models.league import LEAGUE_TYPES
from predictor.services.finalization_service import FinalizationService
from predictor.utils.cache_utils import invalidate_model_cache
from predictor.utils.data_sync import MatchSync
from predictor.utils.settings import current_season_settings

app = create_app()


@click.group()
def cli():
    """Score Predictor Management CLI"""
    pass


# Gameweek Commands
@cli.group()
def gameweek():
    """Gameweek finalization commands"""
    pass


@gameweek.command("status")
@click.argument("number", type=int)
@with_appcontext
def gameweek_status(number):
    """Show finalization status of a gameweek"""
    status = FinalizationService().get_status(number)
    state = "finalized" if status["is_finalized"] else "open"
    click.echo(f"Gameweek {number}: {state}")
    click.echo(f"  Matches finished: {status['finished_count']}/{status['match_count']}")
    click.echo(f"  Predictions: {status['prediction_count']}")
    click.echo(f"  {status['message']}")


@gameweek.command("finalize")
@click.argument("number", type=int)
@with_appcontext
def gameweek_finalize(number):
    """Finalize a completed gameweek"""
    try:
        applied, message = FinalizationService().finalize_gameweek(number)
        click.echo(f"{'✅' if applied else '⚠️ '} {message}")
    except SQLAlchemyError as e:
        click.echo(f"❌ Database error finalizing gameweek: {str(e)}")
        logging.error(f"Finalization failed - SQL error: {e}")


@gameweek.command("unfinalize")
@click.argument("number", type=int)
@click.option("--by", "performed_by", help="Operator name for the audit log")
@with_appcontext
def gameweek_unfinalize(number, performed_by):
    """Re-open a finalized gameweek and reverse its points"""
    if not click.confirm(f"Reverse all points awarded for gameweek {number}?"):
        click.echo("Cancelled.")
        return

    try:
        applied, message = FinalizationService().unfinalize_gameweek(
            number, performed_by=performed_by
        )
        click.echo(f"{'✅' if applied else '⚠️ '} {message}")
    except SQLAlchemyError as e:
        click.echo(f"❌ Database error re-opening gameweek: {str(e)}")
        logging.error(f"Un-finalize failed - SQL error: {e}")


# Score Commands
@cli.group()
def scores():
    """Season score maintenance"""
    pass


@scores.command("recalculate")
@click.option("--by", "performed_by", help="Operator name for the audit log")
@with_appcontext
def scores_recalculate(performed_by):
    """Rebuild totals from finalized gameweeks"""
    try:
        count = FinalizationService().recalculate_total_scores(performed_by=performed_by)
        click.echo(f"✅ Recalculated totals for {count} users")
    except SQLAlchemyError as e:
        click.echo(f"❌ Database error recalculating scores: {str(e)}")
        logging.error(f"Recalculation failed - SQL error: {e}")


@scores.command("reset")
@click.option("--by", "performed_by", help="Operator name for the audit log")
@with_appcontext
def scores_reset(performed_by):
    """⚠️  DANGER: Zero all totals and re-open every gameweek"""
    if not click.confirm("This will reset the whole season. Are you sure?"):
        click.echo("Cancelled.")
        return

    try:
        FinalizationService().reset_season_scores(performed_by=performed_by)
        click.echo("✅ Season scores reset")
    except SQLAlchemyError as e:
        click.echo(f"❌ Database error resetting scores: {str(e)}")
        logging.error(f"Season reset failed - SQL error: {e}")


# User Commands
@cli.group()
def user():
    """User management commands"""
    pass


@user.command("add")
@click.argument("user_id")
@click.option("--name", "display_name", help="Display name")
@with_appcontext
def user_add(user_id, display_name):
    """Register an account id from the auth provider"""
    try:
        account = User(id=user_id)
        account.set_display_name(display_name)
        db.session.add(account)
        db.session.commit()
        click.echo(f"✅ Added user {user_id}")
    except IntegrityError:
        db.session.rollback()
        click.echo(f"❌ User {user_id} already exists!")


@user.command("list")
@with_appcontext
def user_list():
    """List users by total score"""
    for row in User.get_overall_leaderboard():
        click.echo(f"{row['rank']:>3}. {row['name']} ({row['user_id']}) - {row['total_score']}")


# League Commands
@cli.group()
def league():
    """League management commands"""
    pass


@league.command("create")
@click.argument("name")
@click.option(
    "--type", "league_type", type=click.Choice(LEAGUE_TYPES), default="classic"
)
@with_appcontext
def league_create(name, league_type):
    """Create a league"""
    new_league = League(name=name, league_type=league_type)
    db.session.add(new_league)
    db.session.commit()
    click.echo(f"✅ Created {league_type} league {name} (id {new_league.id}, code {new_league.invite_code})")


@league.command("join")
@click.argument("league_id", type=int)
@click.argument("user_id")
@with_appcontext
def league_join(league_id, user_id):
    """Add a user to a league"""
    target = db.session.get(League, league_id)
    account = db.session.get(User, user_id)
    if not target or not account:
        click.echo("❌ League or user not found!")
        return

    ok, message = target.add_member(account)
    if ok:
        db.session.commit()
    click.echo(f"{'✅' if ok else '❌'} {message}")


@league.command("start")
@click.argument("league_id", type=int)
@with_appcontext
def league_start(league_id):
    """Lock members and generate Head-to-Head fixtures"""
    target = db.session.get(League, league_id)
    if not target:
        click.echo(f"❌ League {league_id} not found!")
        return

    ok, message = target.start_season(current_season_settings())
    if ok:
        db.session.commit()
        invalidate_model_cache("standings")
    click.echo(f"{'✅' if ok else '❌'} {message}")


@league.command("regenerate")
@click.argument("league_id", type=int)
@click.option("--from-gameweek", type=int, required=True, help="First gameweek to rewrite")
@click.option("--by", "performed_by", help="Operator name for the audit log")
@with_appcontext
def league_regenerate(league_id, from_gameweek, performed_by):
    """Rebuild fixtures from a gameweek onward, keeping earlier rounds"""
    target = db.session.get(League, league_id)
    if not target:
        click.echo(f"❌ League {league_id} not found!")
        return

    try:
        ok, message = target.regenerate_fixtures(from_gameweek, current_season_settings())
        if ok:
            AdminAction.log_fixture_regeneration(target, from_gameweek, performed_by)
            db.session.commit()
            invalidate_model_cache("standings")
        click.echo(f"{'✅' if ok else '❌'} {message}")
    except SQLAlchemyError as e:
        db.session.rollback()
        click.echo(f"❌ Database error regenerating fixtures: {str(e)}")
        logging.error(f"Fixture regeneration failed - SQL error: {e}")


@league.command("show")
@click.argument("league_id", type=int)
@with_appcontext
def league_show(league_id):
    """Show league members and fixtures"""
    target = db.session.get(League, league_id)
    if not target:
        click.echo(f"❌ League {league_id} not found!")
        return

    info = target.to_dict(include_members=True)
    click.echo(f"🏆 {info['name']} ({info['type']}, {info['status']}) code {info['invite_code']}")
    for member in info["members"]:
        click.echo(f"  {member['position'] + 1}. {member['display_name']} ({member['user_id']})")

    for number, pairs in sorted(target.get_fixtures().items()):
        line = ", ".join(f"{pair['player1']} v {pair['player2']}" for pair in pairs)
        click.echo(f"  GW{number}: {line}")


# Score Override Commands
@cli.group()
def override():
    """Manual score corrections"""
    pass


@override.command("set")
@click.argument("number", type=int)
@click.argument("match_id")
@click.argument("home", type=int)
@click.argument("away", type=int)
@click.option("--reason", help="Why the provider score is wrong")
@click.option("--by", "performed_by", help="Operator name for the audit log")
@with_appcontext
def override_set(number, match_id, home, away, reason, performed_by):
    """Correct the final score of a match"""
    if not db.session.get(Match, match_id):
        click.echo(f"⚠️  Match {match_id} is not in the match cache yet")

    corrected, message = ScoreOverride.set_override(number, match_id, home, away, reason)
    if not corrected:
        click.echo(f"❌ {message}")
        return

    AdminAction.log_override(corrected, performed_by)
    db.session.commit()
    click.echo(f"✅ {message}")


@override.command("clear")
@click.argument("number", type=int)
@click.argument("match_id")
@click.option("--by", "performed_by", help="Operator name for the audit log")
@with_appcontext
def override_clear(number, match_id, performed_by):
    """Remove a manual score correction"""
    removed, message = ScoreOverride.clear_override(number, match_id)
    if not removed:
        click.echo(f"❌ {message}")
        return

    AdminAction.log_override_cleared(removed, performed_by)
    db.session.commit()
    click.echo(f"✅ {message}")


# Match Import Commands
@cli.group()
def matches():
    """Match data commands"""
    pass


@matches.command("import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--gameweek", "number", type=int, help="Replace a single gameweek")
@with_appcontext
def matches_import(path, number):
    """Import matches from a JSON file ({"matches": [...]} or a list)"""
    with open(path, encoding="utf-8") as f:
        payload = json.load(f)

    raw_matches = payload.get("matches", []) if isinstance(payload, dict) else payload

    sync = MatchSync()
    try:
        if number is not None:
            ok, message = sync.sync_gameweek(number, raw_matches)
        else:
            ok, message = sync.sync_season(raw_matches)
    except SQLAlchemyError as e:
        click.echo(f"❌ Database error importing matches: {str(e)}")
        return

    click.echo(f"{'✅' if ok else '❌'} {message}")
    if sync.rejected:
        click.echo(f"⚠️  Rejected {sync.rejected} invalid match entries (see log)")


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
    except SQLAlchemyError as e:
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
    except SQLAlchemyError as e:
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
    if os.path.exists("migrations"):
        click.echo("❌ Migrations directory already exists!")
        return

    from flask_migrate import init as flask_migrate_init

    flask_migrate_init()
    click.echo("✅ Migrations repository initialized!")


@db_migrate.command()
@click.option("-m", "--message", required=True, help="Migration message")
@with_appcontext
def create_migration(message):
    """Create a new migration"""
    migrate(message=message)
    click.echo(f"✅ Migration created: {message}")


@db_migrate.command()
@click.option("--revision", default="head", help="Revision to upgrade to")
@with_appcontext
def apply_migrations(revision):
    """Apply migrations to database"""
    upgrade(revision=revision)
    click.echo(f"✅ Migrations applied to {revision}")


@db_migrate.command()
@click.option("--revision", required=True, help="Revision to downgrade to")
@with_appcontext
def rollback_migration(revision):
    """Rollback migrations to specific revision"""
    downgrade(revision=revision)
    click.echo(f"✅ Rolled back to {revision}")


# Info Commands
@cli.command()
@with_appcontext
def status():
    """Show application status"""
    click.echo("⚽ Score Predictor Application Status")
    click.echo("=" * 40)

    try:
        db.session.execute(text("SELECT 1"))
        click.echo("✅ Database: Connected")
    except SQLAlchemyError as e:
        click.echo(f"❌ Database: Error - {str(e)}")
        return

    settings = current_season_settings()
    current = Match.detect_current_gameweek(settings.total_gameweeks)
    click.echo(f"✅ Season {settings.season}, current gameweek {current}")

    finalized = sorted(Gameweek.finalized_numbers())
    click.echo(f"🏁 Finalized gameweeks: {len(finalized)}/{settings.total_gameweeks}")

    click.echo(f"👥 Users: {User.query.count()}")
    click.echo(f"🏆 Leagues: {League.query.count()}")
    click.echo(f"📝 Predictions: {Prediction.query.count()}")

    match_count = Match.query.count()
    finished = Match.query.filter_by(status="FINISHED").count()
    click.echo(f"⚽ Matches: {finished}/{match_count} finished")


if __name__ == "__main__":
    with app.app_context():
        cli()
