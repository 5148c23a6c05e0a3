from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from pydantic import BaseModel

from jeopardy_trainer.api.errors import to_http_exception
from jeopardy_trainer.api.security import require_admin
from jeopardy_trainer.core.exceptions import JeopardyTrainerException
from jeopardy_trainer.core.models import User
from jeopardy_trainer.core.services.auth import AuthService, get_auth_service
from jeopardy_trainer.core.services.notification_service import (
    get_notification_service,
)

router = APIRouter(prefix="/api/admin", tags=["admin"])


class ApproveRequest(BaseModel):
    user_id: Optional[int] = None


@router.get("/users")
async def list_users(
    current_user: User = Depends(require_admin),
    auth_service: AuthService = Depends(get_auth_service),
):
    """All accounts, pending approvals first."""
    return {"users": auth_service.list_users()}


@router.post("/approve")
async def approve_user(
    body: ApproveRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_admin),
    auth_service: AuthService = Depends(get_auth_service),
):
    if body.user_id is None:
        raise HTTPException(status_code=400, detail="User ID is required")
    try:
        user = auth_service.approve_user(body.user_id, approved_by=current_user.id)
    except JeopardyTrainerException as e:
        raise to_http_exception(e)

    background_tasks.add_task(
        get_notification_service().send_approval_notification,
        user["username"],
        user["email"],
    )
    return {"success": True, "user": user}
