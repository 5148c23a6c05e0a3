from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from jeopardy_trainer.api.errors import to_http_exception
from jeopardy_trainer.api.security import get_current_user
from jeopardy_trainer.core.exceptions import JeopardyTrainerException
from jeopardy_trainer.core.models import User
from jeopardy_trainer.core.services.question_service import (
    QuestionService,
    get_question_service,
)

router = APIRouter(prefix="/api", tags=["questions"])


class ArchiveRequest(BaseModel):
    question_id: Optional[int] = None
    reason: Optional[str] = None


class UnarchiveRequest(BaseModel):
    question_id: Optional[int] = None


@router.get("/questions/{question_id}")
async def get_question(
    question_id: int,
    current_user: User = Depends(get_current_user),
    question_service: QuestionService = Depends(get_question_service),
):
    try:
        return question_service.get_question(question_id)
    except JeopardyTrainerException as e:
        raise to_http_exception(e, "Failed to fetch question")


@router.get("/categories")
async def list_categories(
    current_user: User = Depends(get_current_user),
    question_service: QuestionService = Depends(get_question_service),
):
    return question_service.list_categories()


@router.get("/archive")
async def list_archived(
    current_user: User = Depends(get_current_user),
    question_service: QuestionService = Depends(get_question_service),
):
    return question_service.list_archived()


@router.post("/archive")
async def archive_question(
    body: ArchiveRequest,
    current_user: User = Depends(get_current_user),
    question_service: QuestionService = Depends(get_question_service),
):
    """Hide a clue (missing media, unanswerable) from every quiz mode"""
    if body.question_id is None:
        raise HTTPException(status_code=400, detail="Missing question_id")
    try:
        question = question_service.archive_question(
            body.question_id, body.reason, user_id=current_user.id
        )
    except JeopardyTrainerException as e:
        raise to_http_exception(e, "Failed to archive question")
    return {
        "success": True,
        "message": "Question archived successfully",
        "question_id": question["id"],
        "question": question,
    }


@router.post("/unarchive")
async def unarchive_question(
    body: UnarchiveRequest,
    current_user: User = Depends(get_current_user),
    question_service: QuestionService = Depends(get_question_service),
):
    if body.question_id is None:
        raise HTTPException(status_code=400, detail="Missing question_id")
    try:
        question = question_service.unarchive_question(
            body.question_id, user_id=current_user.id
        )
    except JeopardyTrainerException as e:
        raise to_http_exception(e, "Failed to unarchive question")
    return {
        "success": True,
        "message": "Question unarchived successfully",
        "question_id": question["id"],
        "question": question,
    }
