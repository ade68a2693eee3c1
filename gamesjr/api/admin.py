from fastapi import APIRouter, HTTPException, Query, Request
import logging

from gamesjr.config import DEMOS_DIR, SERVERLESS
from gamesjr.db.models import SubmissionStatus, get_session
from gamesjr.models.schemas import (
    ApproveSubmissionRequest,
    PromptOverrideRequest,
    RejectSubmissionRequest,
    UpdateSubmissionRequest,
)
from gamesjr.services.auth_service import is_admin
from gamesjr.services.imaginary_friends_service import get_service
from gamesjr.services.submission_service import DeploymentError, SubmissionService

logger = logging.getLogger(__name__)

router = APIRouter()


def require_admin(request: Request) -> None:
    if not is_admin(request.cookies):
        raise HTTPException(status_code=401, detail="Unauthorized")


@router.get("/games/list")
async def list_submissions(
    request: Request,
    status: str = Query(None),
    search: str = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0)
):
    """Paginated submission list for the moderation dashboard (without game code)"""
    require_admin(request)

    db = None
    try:
        db = get_session()
        submissions, total = SubmissionService.list_submissions(
            db=db,
            status=status,
            search=search,
            limit=limit,
            offset=offset
        )
        return {
            "success": True,
            "submissions": [s.to_dict(include_code=False) for s in submissions],
            "total": total,
            "limit": limit,
            "offset": offset,
            "hasMore": offset + limit < total
        }
    except Exception as e:
        logger.error(f"[Admin] Error listing submissions: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch submissions")
    finally:
        if db is not None:
            db.close()


@router.get("/games/{submission_id}")
async def get_submission(submission_id: str, request: Request):
    """Full submission including the generated code"""
    require_admin(request)

    db = None
    try:
        db = get_session()
        submission = SubmissionService.get_submission(db, submission_id)
        if not submission:
            raise HTTPException(status_code=404, detail="Submission not found")
        return {"success": True, "submission": submission.to_dict()}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[Admin] Error fetching submission {submission_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch submission")
    finally:
        if db is not None:
            db.close()


@router.patch("/games/{submission_id}")
async def update_submission(submission_id: str, update: UpdateSubmissionRequest, request: Request):
    """Edit a submission's title, description, status, code or notes"""
    require_admin(request)

    db = None
    try:
        db = get_session()
        submission = SubmissionService.update_submission(
            db, submission_id, update.model_dump(exclude_unset=True)
        )
        logger.info(f"[Admin] Updated submission: {submission_id}")
        return {"success": True, "submission": submission.to_dict()}
    except ValueError as e:
        status_code = 404 if "not found" in str(e) else 400
        raise HTTPException(status_code=status_code, detail=str(e))
    except Exception as e:
        logger.error(f"[Admin] Error updating submission {submission_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update submission")
    finally:
        if db is not None:
            db.close()


@router.post("/games/{submission_id}/approve")
async def approve_submission(submission_id: str, request: Request, body: ApproveSubmissionRequest = None):
    """
    Approve a submission.
    Once approved, the game is served by the public demo endpoint.
    """
    require_admin(request)
    body = body or ApproveSubmissionRequest()

    db = None
    try:
        db = get_session()
        submission = SubmissionService.approve(
            db=db,
            submission_id=submission_id,
            approved_by=body.adminEmail,
            review_notes=body.reviewNotes
        )
        return {"success": True, "submission": submission.to_dict()}
    except ValueError:
        raise HTTPException(status_code=404, detail="Submission not found")
    except Exception as e:
        logger.error(f"[Admin] Error approving submission {submission_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to approve submission")
    finally:
        if db is not None:
            db.close()


@router.post("/games/{submission_id}/reject")
async def reject_submission(submission_id: str, request: Request, body: RejectSubmissionRequest = None):
    """Reject a submission. Review notes are mandatory."""
    require_admin(request)
    notes = ((body.reviewNotes if body else None) or "").strip()
    if not notes:
        raise HTTPException(status_code=400, detail="Review notes are required for rejection")

    db = None
    try:
        db = get_session()
        submission = SubmissionService.reject(db, submission_id, notes)
        return {"success": True, "submission": submission.to_dict()}
    except ValueError:
        raise HTTPException(status_code=404, detail="Submission not found")
    except Exception as e:
        logger.error(f"[Admin] Error rejecting submission {submission_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to reject submission")
    finally:
        if db is not None:
            db.close()


@router.post("/games/{submission_id}/deploy")
async def deploy_submission(submission_id: str, request: Request):
    """
    Publish an approved game: write its HTML under the demos directory,
    add it to the catalog and mark it live.
    """
    require_admin(request)

    db = None
    try:
        db = get_session()
        submission = SubmissionService.get_submission(db, submission_id)
        if not submission:
            raise HTTPException(status_code=404, detail="Submission not found")

        if submission.status != SubmissionStatus.APPROVED or not submission.generated_code:
            raise HTTPException(
                status_code=400,
                detail="Only approved games with generated code can be deployed"
            )

        if SERVERLESS:
            game_data = SubmissionService.catalog_entry(submission)
            SubmissionService.mark_deployment_required(db, submission)
            logger.info(f"[Admin] Deployment of {submission.game_slug} requires a local deploy")
            raise HTTPException(
                status_code=400,
                detail={
                    "error": "Deployment not supported on a read-only filesystem",
                    "instructions": [
                        f"Write the game HTML to public/demos/{submission.game_slug}/index.html",
                        "Add the gameData entry to the games catalog",
                        "Commit and redeploy",
                    ],
                    "gameData": game_data,
                }
            )

        try:
            deployment = SubmissionService.deploy(db, submission, DEMOS_DIR)
        except DeploymentError as e:
            raise HTTPException(
                status_code=500,
                detail={
                    "error": "Deployment failed",
                    "message": str(e),
                    "submission": e.submission.to_dict(include_code=False),
                }
            )

        logger.info(f"[Admin] Game {submission.game_slug} is live at {submission.live_url}")
        return {
            "success": True,
            "submission": submission.to_dict(include_code=False),
            "deployed": deployment,
            "message": f"Game deployed to {submission.live_url}"
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[Admin] Error deploying submission {submission_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to deploy game")
    finally:
        if db is not None:
            db.close()


@router.get("/prompts")
async def get_prompts(request: Request):
    """Imaginary friend role prompts with admin overrides applied"""
    require_admin(request)
    try:
        return get_service().overrides.merged()
    except Exception as e:
        logger.error(f"[Admin] Error loading prompts: {e}")
        raise HTTPException(status_code=500, detail="Failed to load prompts")


@router.post("/prompts")
async def save_prompt(body: PromptOverrideRequest, request: Request):
    """Replace one character's role prompt"""
    require_admin(request)
    if not body.characterId or not isinstance(body.prompt, str):
        raise HTTPException(status_code=400, detail="Missing characterId or prompt must be a string")

    try:
        prompts = get_service().overrides.set(str(body.characterId), body.prompt)
        logger.info(f"[Admin] Updated role prompt for {body.characterId}")
        return {"success": True, "prompts": prompts}
    except Exception as e:
        logger.error(f"[Admin] Error saving prompt for {body.characterId}: {e}")
        raise HTTPException(status_code=500, detail="Failed to save prompt")
