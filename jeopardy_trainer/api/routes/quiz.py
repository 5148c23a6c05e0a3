from typing import Any, Optional

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
from jeopardy_trainer.core.services.question_service import (
    QuestionService,
    get_question_service,
)

router = APIRouter(prefix="/api/quiz", tags=["quiz"])


class AnswerSubmit(BaseModel):
    question_id: Optional[int] = None
    # Checked as a strict boolean by the service
    correct: Any = None
    session_id: Optional[int] = None
    is_review_session: bool = False


class SessionComplete(BaseModel):
    session_id: Optional[int] = None


@router.get("/random")
async def get_random_question(
    category: Optional[str] = Query(None, description="Classifier category or 'all'"),
    game_types: Optional[str] = Query(
        None, description="Comma-separated audience tags: kids, teen, college"
    ),
    current_user: User = Depends(get_current_user),
    question_service: QuestionService = Depends(get_question_service),
):
    """Recency-biased random clue"""
    try:
        return question_service.get_random_question(category, game_types)
    except JeopardyTrainerException as e:
        raise to_http_exception(e, "Failed to fetch question")


@router.post("/submit")
async def submit_answer(
    body: AnswerSubmit,
    current_user: User = Depends(get_current_user),
    mastery_service: MasteryService = Depends(get_mastery_service),
):
    try:
        return mastery_service.submit_answer(
            current_user.id,
            body.question_id,
            body.correct,
            session_id=body.session_id,
            is_review_session=body.is_review_session,
        )
    except JeopardyTrainerException as e:
        raise to_http_exception(e, "Failed to submit answer")


@router.post("/complete")
async def complete_session(
    body: SessionComplete,
    current_user: User = Depends(get_current_user),
    mastery_service: MasteryService = Depends(get_mastery_service),
):
    try:
        return mastery_service.complete_session(current_user.id, body.session_id)
    except JeopardyTrainerException as e:
        raise to_http_exception(e, "Failed to complete session")
