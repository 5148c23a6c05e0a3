from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from jeopardy_trainer.api.errors import to_http_exception
from jeopardy_trainer.api.security import get_current_user
from jeopardy_trainer.core.exceptions import JeopardyTrainerException
from jeopardy_trainer.core.models import User
from jeopardy_trainer.core.services.coryat_service import (
    CoryatService,
    get_coryat_service,
)

router = APIRouter(prefix="/api/coryat", tags=["coryat"])


class CellAnswer(BaseModel):
    round: str = ""
    col: Optional[int] = None
    row: Optional[int] = None
    response: str = ""


@router.post("/create")
async def create_game(
    current_user: User = Depends(get_current_user),
    coryat_service: CoryatService = Depends(get_coryat_service),
):
    """Build a fresh two-round board"""
    try:
        return coryat_service.create_game(current_user.id)
    except JeopardyTrainerException as e:
        raise to_http_exception(e, "Failed to create game")


@router.get("/history")
async def get_history(
    current_user: User = Depends(get_current_user),
    coryat_service: CoryatService = Depends(get_coryat_service),
):
    try:
        return coryat_service.get_history(current_user.id)
    except JeopardyTrainerException as e:
        raise to_http_exception(e, "Failed to fetch game history")


@router.get("/{game_id}")
async def get_game(
    game_id: int,
    current_user: User = Depends(get_current_user),
    coryat_service: CoryatService = Depends(get_coryat_service),
):
    try:
        return coryat_service.get_game(current_user.id, game_id)
    except JeopardyTrainerException as e:
        raise to_http_exception(e, "Failed to fetch game")


@router.post("/{game_id}/answer")
async def answer_cell(
    game_id: int,
    body: CellAnswer,
    current_user: User = Depends(get_current_user),
    coryat_service: CoryatService = Depends(get_coryat_service),
):
    try:
        return coryat_service.answer(
            current_user.id, game_id, body.round, body.col, body.row, body.response
        )
    except JeopardyTrainerException as e:
        raise to_http_exception(e, "Failed to record answer")


@router.post("/{game_id}/complete")
async def complete_game(
    game_id: int,
    current_user: User = Depends(get_current_user),
    coryat_service: CoryatService = Depends(get_coryat_service),
):
    try:
        return coryat_service.complete_game(current_user.id, game_id)
    except JeopardyTrainerException as e:
        raise to_http_exception(e, "Failed to complete game")
