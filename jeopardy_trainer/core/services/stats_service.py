"""
Dashboard statistics

Accuracy figures are whole percentages. Attempts made in review sessions are
left out unless ``include_reviewed`` is set, so the dashboard reflects fresh
recall rather than drilling.
"""

import math
from collections import defaultdict
from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import case, func, select

from ..exceptions import ValidationError
from ..models import Question, QuestionAttempt, QuizSession, utcnow
from .database import DatabaseService, get_db_service

RECENT_SESSION_LIMIT = 10
DEFAULT_DAYS = 30


def round_half_up(value: float) -> int:
    """Nearest integer with halves rounded up (12.5 -> 13, -2.5 -> -2)"""
    return math.floor(value + 0.5)


def accuracy(correct: int, total: int) -> int:
    return round_half_up(correct / total * 100) if total else 0


class StatsService:
    def __init__(self, db_service: Optional[DatabaseService] = None):
        self._db_service = db_service

    @property
    def db(self) -> DatabaseService:
        return self._db_service or get_db_service()

    @staticmethod
    def _attempt_filter(user_id: int, include_reviewed: bool) -> List[Any]:
        conditions = [QuestionAttempt.user_id == user_id]
        if not include_reviewed:
            conditions.append(QuizSession.is_review_session.is_(False))
        return conditions

    def get_stats(
        self, user_id: int, include_reviewed: bool = False, days: int = DEFAULT_DAYS
    ) -> Dict[str, Any]:
        if days <= 0:
            raise ValidationError("days must be positive")

        correct_sum = func.coalesce(
            func.sum(case((QuestionAttempt.correct.is_(True), 1), else_=0)), 0
        )
        conditions = self._attempt_filter(user_id, include_reviewed)

        with self.db.get_session() as session:
            total, correct = session.execute(
                select(func.count(QuestionAttempt.id), correct_sum)
                .join(QuizSession, QuizSession.id == QuestionAttempt.session_id)
                .where(*conditions)
            ).one()

            category_rows = session.execute(
                select(
                    Question.classifier_category,
                    func.count(QuestionAttempt.id),
                    correct_sum,
                )
                .join(Question, Question.id == QuestionAttempt.question_id)
                .join(QuizSession, QuizSession.id == QuestionAttempt.session_id)
                .where(*conditions, Question.archived.is_(False))
                .group_by(Question.classifier_category)
                .order_by(Question.classifier_category)
            ).all()

            session_stmt = (
                select(
                    QuizSession,
                    func.count(QuestionAttempt.id),
                    correct_sum,
                )
                .outerjoin(QuestionAttempt, QuestionAttempt.session_id == QuizSession.id)
                .where(QuizSession.user_id == user_id)
                .group_by(QuizSession.id)
            )
            if not include_reviewed:
                session_stmt = session_stmt.where(QuizSession.is_review_session.is_(False))

            recent = session.execute(
                session_stmt.order_by(QuizSession.started_at.desc(), QuizSession.id.desc())
                .limit(RECENT_SESSION_LIMIT)
            ).all()

            since = utcnow() - timedelta(days=days)
            windowed = session.execute(
                session_stmt.where(QuizSession.started_at >= since)
            ).all()

            return {
                "overall": {
                    "total": total,
                    "correct": correct,
                    "accuracy": accuracy(correct, total),
                },
                "category_breakdown": [
                    {
                        "category": category,
                        "total": cat_total,
                        "correct": cat_correct,
                        "accuracy": accuracy(cat_correct, cat_total),
                    }
                    for category, cat_total, cat_correct in category_rows
                ],
                "recent_sessions": [
                    {
                        "id": quiz_session.id,
                        "started_at": quiz_session.started_at.isoformat(),
                        "completed_at": (
                            quiz_session.completed_at.isoformat()
                            if quiz_session.completed_at
                            else None
                        ),
                        "is_review_session": quiz_session.is_review_session,
                        "total": s_total,
                        "correct": s_correct,
                    }
                    for quiz_session, s_total, s_correct in recent
                ],
                "daily_stats": self._daily_stats(windowed),
            }

    @staticmethod
    def _daily_stats(rows) -> List[Dict[str, Any]]:
        """Average per-session accuracy by calendar day, oldest first"""
        by_day = defaultdict(list)
        for quiz_session, total, correct in rows:
            if not total:
                continue
            by_day[quiz_session.started_at.date()].append(correct / total * 100)

        return [
            {
                "date": day.isoformat(),
                "avg_percentage": round_half_up(sum(values) / len(values)),
                "session_count": len(values),
            }
            for day, values in sorted(by_day.items())
        ]


_stats_service: Optional[StatsService] = None


def get_stats_service() -> StatsService:
    global _stats_service
    if _stats_service is None:
        _stats_service = StatsService()
    return _stats_service
