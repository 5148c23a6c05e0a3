"""
Core module for Jeopardy Trainer
"""

from .models import (
    Base,
    User,
    UserRole,
    GameType,
    AuthSession,
    Question,
    QuizSession,
    QuestionAttempt,
    QuestionMastery,
    CoryatGame,
    StudyRecommendation,
)
from .services import (
    DatabaseService,
    get_db_service,
    init_db_service,
    AuthService,
    get_auth_service,
    LoggingService,
    get_logging_service,
    get_logger,
)

__all__ = [
    # Models
    "Base",
    "User",
    "UserRole",
    "GameType",
    "AuthSession",
    "Question",
    "QuizSession",
    "QuestionAttempt",
    "QuestionMastery",
    "CoryatGame",
    "StudyRecommendation",
    # Services
    "DatabaseService",
    "get_db_service",
    "init_db_service",
    "AuthService",
    "get_auth_service",
    "LoggingService",
    "get_logging_service",
    "get_logger",
]
