from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from jeopardy_trainer.api.errors import to_http_exception
from jeopardy_trainer.api.security import get_current_user
from jeopardy_trainer.core.exceptions import JeopardyTrainerException
from jeopardy_trainer.core.models import User
from jeopardy_trainer.core.services.study_recommendation_service import (
    StudyRecommendationService,
    get_study_recommendation_service,
)

router = APIRouter(prefix="/api/study", tags=["study"])


class GenerateRequest(BaseModel):
    days: Any = None


@router.post("/generate")
def generate_recommendations(
    body: GenerateRequest,
    current_user: User = Depends(get_current_user),
    study_service: StudyRecommendationService = Depends(
        get_study_recommendation_service
    ),
):
    """Analyze recent misses with the configured LLM (runs in the threadpool)"""
    try:
        return study_service.generate(current_user.id, body.days)
    except JeopardyTrainerException as e:
        raise to_http_exception(e, "Failed to generate study recommendations")


@router.get("/history")
async def get_history(
    current_user: User = Depends(get_current_user),
    study_service: StudyRecommendationService = Depends(
        get_study_recommendation_service
    ),
):
    return study_service.history(current_user.id)


@router.get("/latest")
async def get_latest(
    current_user: User = Depends(get_current_user),
    study_service: StudyRecommendationService = Depends(
        get_study_recommendation_service
    ),
):
    return study_service.latest(current_user.id)
