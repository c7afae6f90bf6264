import logging
from collections import defaultdict
from datetime import datetime, timezone

from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError

from predictor import db
from predictor.models.match import MATCH_STATUSES, Match
from predictor.utils.scoring import parse_goal_count
from predictor.utils.timezone_utils import parse_utc_datetime

logger = logging.getLogger(__name__)


class InvalidMatchData(ValueError):
    """A raw match payload that cannot be stored"""


def _team(raw, key, flat_crest_key):
    """Return (name, crest) from either a provider team object or a flat name"""
    value = raw.get(key)
    if isinstance(value, dict):
        return value.get("name") or value.get("shortName"), value.get("crest")
    return value, raw.get(flat_crest_key)


def normalize_match(raw, gameweek=None):
    """
    Validate one raw match and return the column values for a Match row.

    Accepts the provider payload (``utcDate``, ``matchday``, team objects) or
    the flattened cache shape (``timestamp`` in ms, team names as strings,
    ``homeLogo``/``awayLogo``). Both carry ``score.fullTime.home/away``.

    Provider statuses are kept verbatim (upper-cased), so POSTPONED or
    CANCELLED matches stay in the cache and keep the gameweek open.

    Raises:
        InvalidMatchData: missing id, teams or status, bad kickoff,
            or a score that is half present, negative or fractional
    """
    if not isinstance(raw, dict):
        raise InvalidMatchData("Match entry is not an object")

    match_id = raw.get("id")
    if match_id is None or str(match_id).strip() == "":
        raise InvalidMatchData("Match has no id")
    match_id = str(match_id)

    home_team, home_crest = _team(raw, "homeTeam", "homeLogo")
    away_team, away_crest = _team(raw, "awayTeam", "awayLogo")
    if not home_team or not away_team:
        raise InvalidMatchData(f"Match {match_id} is missing a team")

    status = raw.get("status")
    if not isinstance(status, str) or not status.strip() or len(status.strip()) > 20:
        raise InvalidMatchData(f"Match {match_id} has no usable status")
    status = status.strip().upper()
    if status not in MATCH_STATUSES:
        # Stored as-is; anything other than FINISHED holds finalization back
        logger.warning(f"Match {match_id} has unrecognised status {status!r}")

    matchday = raw.get("matchday", gameweek)
    try:
        matchday = int(matchday)
    except (TypeError, ValueError):
        raise InvalidMatchData(f"Match {match_id} has no gameweek")
    if gameweek is not None and matchday != gameweek:
        raise InvalidMatchData(
            f"Match {match_id} belongs to gameweek {matchday}, not {gameweek}"
        )

    try:
        kickoff = parse_utc_datetime(raw.get("utcDate", raw.get("timestamp")))
    except (TypeError, ValueError, OverflowError):
        raise InvalidMatchData(f"Match {match_id} has an invalid kickoff")
    if kickoff is None:
        raise InvalidMatchData(f"Match {match_id} has no kickoff")

    full_time = ((raw.get("score") or {}).get("fullTime")) or {}
    raw_home, raw_away = full_time.get("home"), full_time.get("away")
    home_score, away_score = parse_goal_count(raw_home), parse_goal_count(raw_away)

    if raw_home is None and raw_away is None:
        home_score = away_score = None
    elif home_score is None or away_score is None:
        raise InvalidMatchData(f"Match {match_id} has an invalid score")

    return {
        "id": match_id,
        "gameweek": matchday,
        "home_team": home_team,
        "away_team": away_team,
        "home_crest": home_crest,
        "away_crest": away_crest,
        "kickoff": kickoff,
        "status": status,
        "home_score": home_score,
        "away_score": away_score,
    }


class MatchSync:
    """
    Stores match payloads in the local match cache.

    Each gameweek is replaced wholesale, except that a stored match whose new
    payload was rejected keeps its previous row. Score overrides live in
    their own table and are never touched here.
    """

    def __init__(self):
        self.rejected = 0
        self.rejected_ids = set()

    def _normalize_all(self, raw_matches, gameweek=None):
        valid = []
        for raw in raw_matches:
            try:
                valid.append(normalize_match(raw, gameweek=gameweek))
            except InvalidMatchData as e:
                self.rejected += 1
                if isinstance(raw, dict) and raw.get("id") is not None:
                    self.rejected_ids.add(str(raw["id"]))
                logger.warning(f"Rejected match payload: {e}")
        return valid

    def _replace_gameweek(self, gameweek, rows):
        ids = [row["id"] for row in rows]
        kept = self.rejected_ids - set(ids)
        Match.query.filter(
            or_(
                and_(Match.gameweek == gameweek, Match.id.notin_(kept)),
                Match.id.in_(ids),
            )
        ).delete(synchronize_session="fetch")

        synced_at = datetime.now(timezone.utc)
        for row in rows:
            db.session.add(Match(synced_at=synced_at, **row))

    def sync_gameweek(self, gameweek, raw_matches):
        """
        Replace the cached matches of one gameweek.

        Returns:
            (ok, message)
        """
        if not raw_matches:
            return False, f"No match data supplied for gameweek {gameweek}"

        rows = self._normalize_all(raw_matches, gameweek=gameweek)
        if not rows:
            return False, f"No valid matches for gameweek {gameweek}"

        try:
            self._replace_gameweek(gameweek, rows)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error syncing gameweek {gameweek}: {e}")
            raise

        logger.info(f"Synced {len(rows)} matches for gameweek {gameweek}")
        return True, f"Synced {len(rows)} matches for gameweek {gameweek}"

    def sync_season(self, raw_matches):
        """
        Replace every gameweek present in a full-season payload.

        Returns:
            (ok, message)
        """
        rows = self._normalize_all(raw_matches or [])
        if not rows:
            return False, "No valid matches supplied"

        by_gameweek = defaultdict(list)
        for row in rows:
            by_gameweek[row["gameweek"]].append(row)

        try:
            for gameweek in sorted(by_gameweek):
                self._replace_gameweek(gameweek, by_gameweek[gameweek])
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error syncing season: {e}")
            raise

        logger.info(
            f"Synced {len(rows)} matches across {len(by_gameweek)} gameweeks "
            f"({self.rejected} rejected)"
        )
        return True, f"Synced {len(rows)} matches across {len(by_gameweek)} gameweeks"
