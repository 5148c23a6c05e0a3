from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from jeopardy_trainer.api.errors import to_http_exception
from jeopardy_trainer.api.security import get_current_user
from jeopardy_trainer.core.exceptions import JeopardyTrainerException
from jeopardy_trainer.core.models import User
from jeopardy_trainer.core.services.mastery_service import (
    MasteryService,
    get_mastery_service,
)

router = APIRouter(prefix="/api", tags=["mastery"])


class MasteryReset(BaseModel):
    question_id: Optional[int] = None


@router.get("/review")
async def get_review_questions(
    category: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    mastery_service: MasteryService = Depends(get_mastery_service),
):
    """Missed clues that are not mastered yet"""
    questions = mastery_service.get_review_questions(current_user.id, category)
    return {"questions": questions, "total": len(questions)}


@router.get("/mastered")
async def get_mastered_question(
    category: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    mastery_service: MasteryService = Depends(get_mastery_service),
):
    try:
        return mastery_service.get_random_mastered(current_user.id, category)
    except JeopardyTrainerException as e:
        raise to_http_exception(e, "Failed to fetch mastered question")


@router.post("/mastery/reset")
async def reset_mastery(
    body: MasteryReset,
    current_user: User = Depends(get_current_user),
    mastery_service: MasteryService = Depends(get_mastery_service),
):
    try:
        return mastery_service.reset_mastery(current_user.id, body.question_id)
    except JeopardyTrainerException as e:
        raise to_http_exception(e, "Failed to reset mastery")
