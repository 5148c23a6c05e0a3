from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from jeopardy_trainer.api.errors import to_http_exception
from jeopardy_trainer.api.security import get_current_user
from jeopardy_trainer.core.exceptions import JeopardyTrainerException
from jeopardy_trainer.core.models import User
from jeopardy_trainer.core.services.auth import AuthService, get_auth_service

router = APIRouter(prefix="/api/preferences", tags=["preferences"])


class PreferencesUpdate(BaseModel):
    # Validated by the service so a non-list is a 400 with a clear message
    game_type_filters: Any = None


@router.get("")
async def get_preferences(
    current_user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
):
    try:
        return {"game_type_filters": auth_service.get_preferences(current_user.id)}
    except JeopardyTrainerException as e:
        raise to_http_exception(e, "Failed to fetch preferences")


@router.post("")
async def update_preferences(
    body: PreferencesUpdate,
    current_user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
):
    try:
        filters = auth_service.update_preferences(
            current_user.id, body.game_type_filters
        )
    except JeopardyTrainerException as e:
        raise to_http_exception(e, "Failed to update preferences")
    return {"success": True, "game_type_filters": filters}
