"""
Gameweek finalization

Finalizing a gameweek adds each player's points to their season total and
freezes those points on their prediction. It must happen exactly once even
when many clients notice a completed gameweek at the same moment, so the whole
transition runs in one transaction that starts by flipping the gameweek flag
with a conditional UPDATE. Whoever loses that compare-and-set backs out
without touching anything.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError

from predictor import db
from predictor.models import AdminAction, Gameweek, Match, Prediction, User
from predictor.services.standings_service import compute_gameweek_scores
from predictor.utils.cache_utils import invalidate_model_cache
from predictor.utils.settings import current_scoring_rules

logger = logging.getLogger(__name__)


class FinalizationService:
    """Applies and reverses gameweek finalization"""

    def __init__(self, rules=None):
        self.rules = rules

    def _get_rules(self):
        return self.rules or current_scoring_rules()

    def get_status(self, gameweek):
        """Finalization status and eligibility of a gameweek"""
        gameweek_row = db.session.get(Gameweek, gameweek)
        is_finalized = bool(gameweek_row and gameweek_row.is_finalized)

        matches = Match.get_for_gameweek(gameweek)
        finished = sum(1 for match in matches if match.is_finished)

        valid_ids = User.valid_ids()
        prediction_count = sum(
            1 for p in Prediction.get_for_gameweek(gameweek) if p.user_id in valid_ids
        )

        if is_finalized:
            eligible, message = False, "Gameweek is finalized"
        elif not matches:
            eligible, message = False, "Waiting for match data for this gameweek"
        elif finished < len(matches):
            eligible, message = False, f"{finished}/{len(matches)} matches finished"
        elif prediction_count == 0:
            eligible, message = False, "No one has made predictions yet"
        else:
            eligible, message = True, "Ready to finalize"

        return {
            "gameweek": gameweek,
            "is_finalized": is_finalized,
            "finalized_at": (
                gameweek_row.finalized_at.isoformat()
                if gameweek_row and gameweek_row.finalized_at
                else None
            ),
            "match_count": len(matches),
            "finished_count": finished,
            "prediction_count": prediction_count,
            "eligible": eligible,
            "message": message,
        }

    def check_eligibility(self, gameweek):
        """Return (eligible, message)"""
        status = self.get_status(gameweek)
        return status["eligible"], status["message"]

    def finalize_gameweek(self, gameweek):
        """
        Finalize a gameweek if it is ready.

        Safe to call from any number of observers; at most one call applies
        the transition.

        Returns:
            (applied, message)
        """
        eligible, message = self.check_eligibility(gameweek)
        if not eligible:
            return False, message

        return self.apply_finalization(gameweek)

    def apply_finalization(self, gameweek):
        """
        Run the finalization transaction.

        Eligibility is checked again inside the transaction after the flag has
        been claimed, so a caller acting on a stale check is harmless.

        Raises:
            SQLAlchemyError: storage failure, after the transaction was rolled back
        """
        Gameweek.get_or_create(gameweek)
        rules = self._get_rules()

        try:
            claimed = db.session.execute(
                update(Gameweek)
                .where(Gameweek.number == gameweek, Gameweek.is_finalized.is_(False))
                .values(is_finalized=True, finalized_at=datetime.now(timezone.utc))
                .execution_options(synchronize_session=False)
            ).rowcount

            if not claimed:
                db.session.rollback()
                logger.info(f"Gameweek {gameweek} already finalized, nothing to do")
                return False, "Gameweek is already finalized"

            matches = Match.get_for_gameweek(gameweek)
            if not matches or not all(match.is_finished for match in matches):
                db.session.rollback()
                return False, "Not all matches are finished"

            table = compute_gameweek_scores(gameweek, rules=rules)
            if not table:
                db.session.rollback()
                return False, "No one has made predictions yet"

            for row in table:
                db.session.execute(
                    update(User)
                    .where(User.id == row.user_id)
                    .values(total_score=User.total_score + row.total_points)
                    .execution_options(synchronize_session=False)
                )
                db.session.execute(
                    update(Prediction)
                    .where(
                        Prediction.gameweek == gameweek,
                        Prediction.user_id == row.user_id,
                    )
                    .values(points=row.total_points)
                    .execution_options(synchronize_session=False)
                )

            db.session.commit()

        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Finalization of gameweek {gameweek} failed: {e}")
            raise

        logger.info(f"Finalized gameweek {gameweek} for {len(table)} players")
        invalidate_model_cache("standings")
        return True, f"Finalized gameweek {gameweek} for {len(table)} players"

    def unfinalize_gameweek(self, gameweek, performed_by=None):
        """
        Re-open a finalized gameweek.

        Subtracts exactly the points that finalization added (the frozen
        prediction points) so a later re-finalization does not double count.

        Returns:
            (applied, message)
        """
        try:
            claimed = db.session.execute(
                update(Gameweek)
                .where(Gameweek.number == gameweek, Gameweek.is_finalized.is_(True))
                .values(is_finalized=False, finalized_at=None)
                .execution_options(synchronize_session=False)
            ).rowcount

            if not claimed:
                db.session.rollback()
                return False, f"Gameweek {gameweek} is not finalized"

            frozen = Prediction.query.filter(
                Prediction.gameweek == gameweek, Prediction.points.isnot(None)
            ).all()

            reversed_points = {}
            for prediction in frozen:
                db.session.execute(
                    update(User)
                    .where(User.id == prediction.user_id)
                    .values(total_score=User.total_score - prediction.points)
                    .execution_options(synchronize_session=False)
                )
                reversed_points[prediction.user_id] = prediction.points

            db.session.execute(
                update(Prediction)
                .where(Prediction.gameweek == gameweek)
                .values(points=None)
                .execution_options(synchronize_session=False)
            )

            AdminAction.log_unfinalize(gameweek, reversed_points, performed_by)
            db.session.commit()

        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Un-finalize of gameweek {gameweek} failed: {e}")
            raise

        logger.warning(
            f"Gameweek {gameweek} un-finalized, reversed totals for {len(reversed_points)} users"
        )
        invalidate_model_cache("standings")
        return True, f"Gameweek {gameweek} re-opened, {len(reversed_points)} totals reversed"

    def recalculate_total_scores(self, performed_by=None):
        """
        Rebuild every user's total from frozen points of finalized gameweeks.

        Returns:
            Number of users updated
        """
        try:
            totals = dict(
                db.session.query(Prediction.user_id, func.sum(Prediction.points))
                .join(Gameweek, Gameweek.number == Prediction.gameweek)
                .filter(Gameweek.is_finalized.is_(True), Prediction.points.isnot(None))
                .group_by(Prediction.user_id)
                .all()
            )

            users = User.query.all()
            changed = {}
            for user in users:
                new_total = int(totals.get(user.id) or 0)
                if user.total_score != new_total:
                    changed[user.id] = {"old": user.total_score, "new": new_total}
                user.total_score = new_total

            AdminAction.log_action(
                action_type="recalculate_scores",
                description=f"Recalculated totals for {len(users)} users ({len(changed)} changed)",
                performed_by=performed_by,
                action_metadata={"changed": changed},
            )
            db.session.commit()

        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Score recalculation failed: {e}")
            raise

        logger.info(f"Recalculated totals for {len(users)} users, {len(changed)} changed")
        invalidate_model_cache("standings")
        return len(users)

    def reset_season_scores(self, performed_by=None):
        """Zero every total, re-open every gameweek and clear frozen points"""
        try:
            db.session.execute(
                update(User).values(total_score=0).execution_options(synchronize_session=False)
            )
            db.session.execute(
                update(Gameweek)
                .values(is_finalized=False, finalized_at=None)
                .execution_options(synchronize_session=False)
            )
            db.session.execute(
                update(Prediction).values(points=None).execution_options(synchronize_session=False)
            )
            AdminAction.log_action(
                action_type="reset_season",
                description="Reset season scores and re-opened all gameweeks",
                performed_by=performed_by,
            )
            db.session.commit()

        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Season reset failed: {e}")
            raise

        logger.warning("Season scores reset")
        invalidate_model_cache("standings")
