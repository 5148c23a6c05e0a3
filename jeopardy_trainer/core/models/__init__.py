"""
Models package for Jeopardy Trainer

This package contains all database models and enums for the application.
"""

from .models import (
    Base,
    utcnow,
    UserRole,
    GameType,
    User,
    AuthSession,
    Question,
    QuizSession,
    QuestionAttempt,
    QuestionMastery,
    CoryatGame,
    StudyRecommendation,
)

__all__ = [
    "Base",
    "utcnow",
    "UserRole",
    "GameType",
    "User",
    "AuthSession",
    "Question",
    "QuizSession",
    "QuestionAttempt",
    "QuestionMastery",
    "CoryatGame",
    "StudyRecommendation",
]
