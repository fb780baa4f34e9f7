"""
Achievement API routes.

REST endpoints for the achievement lifecycle.
All endpoints are prefixed with /achievements.

Routes are plain ``def`` functions so that FastAPI runs them in its threadpool;
the coordinator and stores are synchronous.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, Header, Request, UploadFile

from ..config import get_settings
from .coordinator import AchievementCoordinator
from .deadline import Deadline
from .enums import Role
from .errors import AccessDeniedError, StoreError, UnauthenticatedError
from .files import DEFAULT_MIME_TYPE, FileUpload
from .schemas import AchievementCreate, AchievementUpdate, Actor, RejectRequest

router = APIRouter(prefix="/achievements", tags=["achievements"])


# =============================================================================
# Dependencies
# =============================================================================


def get_actor(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Actor:
    """Caller identity as set by the upstream authentication layer."""
    user_id = (x_user_id or "").strip()
    role_name = (x_user_role or "").strip().lower()
    if not user_id or not role_name:
        raise UnauthenticatedError("Missing caller identity")
    try:
        role = Role(role_name)
    except ValueError:
        raise AccessDeniedError(f"Unknown role '{role_name}'") from None
    return Actor(role=role, user_id=user_id)


def get_coordinator(request: Request) -> AchievementCoordinator:
    coordinator = getattr(request.app.state, "coordinator", None)
    if coordinator is None:
        raise StoreError("Achievement stores are not initialized")
    return coordinator


def get_deadline() -> Deadline:
    return Deadline.after(get_settings().request_timeout_seconds)


# =============================================================================
# Achievement Endpoints
# =============================================================================


@router.post("", status_code=201)
def create_achievement(
    achievement: AchievementCreate,
    actor: Actor = Depends(get_actor),
    coordinator: AchievementCoordinator = Depends(get_coordinator),
    deadline: Deadline = Depends(get_deadline),
) -> Dict[str, Any]:
    """Create a draft achievement."""
    return coordinator.create(actor, achievement, deadline=deadline)


@router.get("")
def list_achievements(
    status: Optional[str] = None,
    page: int = 1,
    limit: Optional[int] = None,
    actor: Actor = Depends(get_actor),
    coordinator: AchievementCoordinator = Depends(get_coordinator),
    deadline: Deadline = Depends(get_deadline),
) -> Dict[str, Any]:
    """List achievements visible to the caller."""
    if limit is None:
        limit = get_settings().default_page_size
    return coordinator.list(
        actor, status=status, page=page, limit=limit, deadline=deadline
    )


@router.get("/{achievement_id}")
def get_achievement(
    achievement_id: str,
    actor: Actor = Depends(get_actor),
    coordinator: AchievementCoordinator = Depends(get_coordinator),
    deadline: Deadline = Depends(get_deadline),
) -> Dict[str, Any]:
    """Get one achievement with its content."""
    return coordinator.get(actor, achievement_id, deadline=deadline)


@router.patch("/{achievement_id}")
def update_achievement(
    achievement_id: str,
    update: AchievementUpdate,
    actor: Actor = Depends(get_actor),
    coordinator: AchievementCoordinator = Depends(get_coordinator),
    deadline: Deadline = Depends(get_deadline),
) -> Dict[str, Any]:
    """Partially update a draft achievement's content."""
    return coordinator.update(actor, achievement_id, update, deadline=deadline)


@router.delete("/{achievement_id}")
def delete_achievement(
    achievement_id: str,
    actor: Actor = Depends(get_actor),
    coordinator: AchievementCoordinator = Depends(get_coordinator),
    deadline: Deadline = Depends(get_deadline),
) -> Dict[str, Any]:
    """Soft-delete a draft achievement."""
    return coordinator.delete(actor, achievement_id, deadline=deadline)


@router.post("/{achievement_id}/attachments")
def upload_attachments(
    achievement_id: str,
    files: List[UploadFile] = File(...),
    actor: Actor = Depends(get_actor),
    coordinator: AchievementCoordinator = Depends(get_coordinator),
    deadline: Deadline = Depends(get_deadline),
) -> Dict[str, Any]:
    """Upload files and attach them to a draft achievement.

    At most one byte past the upload limit is read from each file, enough for
    the coordinator to reject it as oversized.
    """
    uploads = [
        FileUpload(
            file_name=upload.filename or "",
            content=upload.file.read(coordinator.max_upload_bytes + 1),
            mime_type=upload.content_type or DEFAULT_MIME_TYPE,
        )
        for upload in files
    ]
    return coordinator.attach(actor, achievement_id, uploads, deadline=deadline)


# =============================================================================
# Workflow Endpoints
# =============================================================================


@router.post("/{achievement_id}/submit")
def submit_achievement(
    achievement_id: str,
    actor: Actor = Depends(get_actor),
    coordinator: AchievementCoordinator = Depends(get_coordinator),
    deadline: Deadline = Depends(get_deadline),
) -> Dict[str, Any]:
    """Submit a draft for verification."""
    return coordinator.submit(actor, achievement_id, deadline=deadline)


@router.post("/{achievement_id}/verify")
def verify_achievement(
    achievement_id: str,
    actor: Actor = Depends(get_actor),
    coordinator: AchievementCoordinator = Depends(get_coordinator),
    deadline: Deadline = Depends(get_deadline),
) -> Dict[str, Any]:
    """Verify a submitted achievement."""
    return coordinator.verify(actor, achievement_id, deadline=deadline)


@router.post("/{achievement_id}/reject")
def reject_achievement(
    achievement_id: str,
    body: RejectRequest,
    actor: Actor = Depends(get_actor),
    coordinator: AchievementCoordinator = Depends(get_coordinator),
    deadline: Deadline = Depends(get_deadline),
) -> Dict[str, Any]:
    """Reject a submitted achievement with a note."""
    return coordinator.reject(
        actor, achievement_id, body.rejection_note, deadline=deadline
    )


@router.get("/{achievement_id}/history")
def get_achievement_history(
    achievement_id: str,
    actor: Actor = Depends(get_actor),
    coordinator: AchievementCoordinator = Depends(get_coordinator),
    deadline: Deadline = Depends(get_deadline),
) -> Dict[str, Any]:
    """Lifecycle history of one achievement."""
    return coordinator.history(actor, achievement_id, deadline=deadline)
