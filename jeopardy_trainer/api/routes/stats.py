from fastapi import APIRouter, Depends, Query

from jeopardy_trainer.api.errors import to_http_exception
from jeopardy_trainer.api.security import get_current_user
from jeopardy_trainer.core.exceptions import JeopardyTrainerException
from jeopardy_trainer.core.models import User
from jeopardy_trainer.core.services.stats_service import (
    DEFAULT_DAYS,
    StatsService,
    get_stats_service,
)

router = APIRouter(prefix="/api/stats", tags=["stats"])


@router.get("")
async def get_stats(
    include_reviewed: bool = Query(False),
    days: int = Query(DEFAULT_DAYS),
    current_user: User = Depends(get_current_user),
    stats_service: StatsService = Depends(get_stats_service),
):
    """Dashboard figures for the current user"""
    try:
        return stats_service.get_stats(current_user.id, include_reviewed, days)
    except JeopardyTrainerException as e:
        raise to_http_exception(e, "Failed to fetch statistics")
