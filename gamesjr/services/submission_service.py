"""
Game Submission Service
Moderation of user-submitted games: listing, approval, rejection and deployment.
"""
import logging
import os
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from gamesjr.config import DEMOS_DIR
from gamesjr.db.models import GameSubmission, SubmissionStatus, utcnow
from gamesjr.services.catalog_service import GameCatalog

logger = logging.getLogger(__name__)

# Fields an admin may change through a PATCH
EDITABLE_FIELDS = {
    "gameTitle": "game_title",
    "gameDescription": "game_description",
    "gameType": "game_type",
    "status": "status",
    "generatedCode": "generated_code",
    "reviewNotes": "review_notes",
}


# Rough build progress shown while a submission is being processed
PROGRESS_BY_STATUS = {
    SubmissionStatus.PENDING: 10,
    SubmissionStatus.BUILDING: 50,
    SubmissionStatus.REVIEW: 95,
    SubmissionStatus.APPROVED: 100,
    SubmissionStatus.REJECTED: 0,
    SubmissionStatus.LIVE: 100,
}


class DeploymentError(Exception):
    """Raised when an approved game could not be written to disk."""

    def __init__(self, message: str, submission: GameSubmission):
        super().__init__(message)
        self.submission = submission


class SubmissionService:
    """Service for the game submission moderation workflow."""

    @staticmethod
    def get_submission(db: Session, submission_id: str) -> Optional[GameSubmission]:
        return db.get(GameSubmission, submission_id)

    @staticmethod
    def status_summary(submission: GameSubmission) -> Dict[str, Any]:
        """What the submitter's status page polls for."""
        return {
            "submissionId": submission.id,
            "status": submission.status,
            "progress": PROGRESS_BY_STATUS.get(submission.status, 0),
            "createdAt": submission.created_at.isoformat() if submission.created_at else None,
            "gameTitle": submission.game_title,
        }

    @staticmethod
    def list_submissions(
        db: Session,
        status: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0
    ) -> Tuple[List[GameSubmission], int]:
        """
        List submissions, newest first.

        Args:
            db: Database session
            status: Only this status ("all" or None for every status)
            search: Case-insensitive match on title, creator name or email
            limit: Page size
            offset: Page start

        Returns:
            Tuple of (submissions page, total matching count)
        """
        query = db.query(GameSubmission)
        if status and status != "all":
            query = query.filter(GameSubmission.status == status)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(
                GameSubmission.game_title.ilike(pattern),
                GameSubmission.creator_email.ilike(pattern),
                GameSubmission.creator_name.ilike(pattern),
            ))
        total = query.count()
        submissions = (
            query.order_by(GameSubmission.created_at.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return submissions, total

    @staticmethod
    def update_submission(db: Session, submission_id: str, changes: Dict[str, Any]) -> GameSubmission:
        """
        Apply admin edits.

        Raises:
            ValueError: If submission not found or the status is unknown
        """
        submission = db.get(GameSubmission, submission_id)
        if not submission:
            raise ValueError(f"Submission not found: {submission_id}")
        if "status" in changes and changes["status"] not in SubmissionStatus.ALL:
            raise ValueError(f"Invalid status: {changes['status']}")

        try:
            for key, column in EDITABLE_FIELDS.items():
                if key in changes:
                    setattr(submission, column, changes[key])
            db.commit()
            db.refresh(submission)
            return submission
        except SQLAlchemyError as e:
            db.rollback()
            raise SQLAlchemyError(f"Database error while updating submission: {str(e)}")

    @staticmethod
    def approve(
        db: Session,
        submission_id: str,
        approved_by: Optional[str] = None,
        review_notes: Optional[str] = None
    ) -> GameSubmission:
        """
        Mark a submission as approved so the demo endpoint will serve it.

        Raises:
            ValueError: If submission not found
            SQLAlchemyError: If database operation fails
        """
        submission = db.get(GameSubmission, submission_id)
        if not submission:
            raise ValueError(f"Submission not found: {submission_id}")

        try:
            submission.status = SubmissionStatus.APPROVED
            submission.approved_by = approved_by or "admin"
            submission.approved_at = utcnow()
            if review_notes:
                submission.review_notes = review_notes
            db.commit()
            db.refresh(submission)
        except SQLAlchemyError as e:
            db.rollback()
            raise SQLAlchemyError(f"Database error while approving submission: {str(e)}")

        logger.info(f"[Admin] Approved submission: {submission_id} ({submission.game_slug})")
        return submission

    @staticmethod
    def reject(db: Session, submission_id: str, review_notes: str) -> GameSubmission:
        """
        Reject a submission; the notes are kept with a ``[REJECTED]`` prefix.

        Raises:
            ValueError: If submission not found
            SQLAlchemyError: If database operation fails
        """
        submission = db.get(GameSubmission, submission_id)
        if not submission:
            raise ValueError(f"Submission not found: {submission_id}")

        try:
            submission.status = SubmissionStatus.REJECTED
            submission.review_notes = f"[REJECTED] {review_notes}"
            db.commit()
            db.refresh(submission)
        except SQLAlchemyError as e:
            db.rollback()
            raise SQLAlchemyError(f"Database error while rejecting submission: {str(e)}")

        logger.info(f"[Admin] Rejected submission: {submission_id} ({submission.game_slug})")
        return submission

    @staticmethod
    def get_approved_demo(db: Session, slug: str) -> Optional[GameSubmission]:
        """Most recently approved submission for a slug, if it has code."""
        submission = (
            db.query(GameSubmission)
            .filter(
                GameSubmission.game_slug == slug,
                GameSubmission.status == SubmissionStatus.APPROVED,
            )
            .order_by(GameSubmission.approved_at.desc())
            .first()
        )
        if not submission or not submission.generated_code:
            return None
        return submission

    @staticmethod
    def catalog_entry(submission: GameSubmission) -> Dict[str, Any]:
        slug = submission.game_slug
        return {
            "slug": slug,
            "title": submission.game_title,
            "tags": [tag for tag in (submission.game_type, "user-generated") if tag],
            "description": submission.game_description,
            "description_it": submission.game_description,
            "hero": f"/games/{slug}/hero.svg",
            "screenshots": [f"/games/{slug}/s1.svg", f"/games/{slug}/s2.svg"],
            "demoPath": f"/demos/{slug}/index.html",
            "gameType": "html5",
            "engine": "vanilla-js",
            "version": "1.0.0",
            "status": "released",
            "submissionId": submission.id,
        }

    @staticmethod
    def deploy(db: Session, submission: GameSubmission, demos_dir: str = DEMOS_DIR) -> Dict[str, Any]:
        """
        Write the approved game to ``{demos_dir}/{slug}/index.html``, add it to
        the catalog and mark it live.

        Raises:
            DeploymentError: If the files could not be written; the submission
                stays approved with a ``[DEPLOYMENT_PENDING]`` note
        """
        slug = submission.game_slug
        demo_file = os.path.join(demos_dir, slug, "index.html")
        try:
            os.makedirs(os.path.dirname(demo_file), exist_ok=True)
            with open(demo_file, "w", encoding="utf-8") as f:
                f.write(submission.generated_code)
            logger.info(f"[Admin] Deployed game HTML: {demo_file}")
            GameCatalog.upsert_game(SubmissionService.catalog_entry(submission))
        except OSError as e:
            logger.error(f"[Admin] File system error during deployment: {e}")
            submission.status = SubmissionStatus.APPROVED
            submission.review_notes = f"[DEPLOYMENT_PENDING] Files need manual deployment. Error: {e}"
            db.commit()
            raise DeploymentError(str(e), submission)

        submission.status = SubmissionStatus.LIVE
        submission.live_url = f"/demos/{slug}/index.html"
        submission.approved_at = utcnow()
        db.commit()
        db.refresh(submission)

        return {"slug": slug, "demoPath": submission.live_url, "gamesJsonUpdated": True}

    @staticmethod
    def mark_deployment_required(db: Session, submission: GameSubmission) -> GameSubmission:
        """Serverless hosts cannot write files; leave instructions in the notes."""
        submission.status = SubmissionStatus.APPROVED
        submission.review_notes = (
            "[DEPLOYMENT_REQUIRED] Files need to be deployed locally. The hosting filesystem is read-only. "
            "Use the deployment scripts or manual git deployment."
        )
        db.commit()
        db.refresh(submission)
        return submission
