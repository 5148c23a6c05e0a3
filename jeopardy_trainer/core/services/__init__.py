"""
Core services for Jeopardy Trainer
"""

from .database import DatabaseService, get_db_service, init_db_service
from .auth import AuthService, get_auth_service
from .logging import LoggingService, get_logging_service, get_logger
from .ai_service import AIService, get_ai_service, init_ai_service

# Active Services
from .question_service import get_question_service
from .mastery_service import get_mastery_service
from .coryat_service import get_coryat_service
from .stats_service import get_stats_service
from .study_recommendation_service import get_study_recommendation_service
from .notification_service import get_notification_service

__all__ = [
    "DatabaseService",
    "get_db_service",
    "init_db_service",
    "AuthService",
    "get_auth_service",
    "LoggingService",
    "get_logging_service",
    "get_logger",
    "AIService",
    "get_ai_service",
    "init_ai_service",
    # Active Services
    "get_question_service",
    "get_mastery_service",
    "get_coryat_service",
    "get_stats_service",
    "get_study_recommendation_service",
    "get_notification_service",
]
