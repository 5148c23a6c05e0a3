"""
Quiz and mastery service

Records answer submissions inside quiz sessions and keeps a per-user,
per-question mastery streak: a correct answer extends the streak and a
question is mastered once the streak reaches the threshold (3); any incorrect
answer resets the streak and clears mastery. Review and mastered pools are
derived from attempt history and the streaks.
"""

import random
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.exc import IntegrityError

from ..exceptions import ConflictError, NotFoundError, ValidationError
from ..models import (
    Question,
    QuestionAttempt,
    QuestionMastery,
    QuizSession,
    utcnow,
)
from .database import DatabaseService, get_db_service
from .logging import get_logging_service
from .question_service import serialize_question
from .settings_config_service import get_settings_service
from .stats_service import accuracy

MASTERY_THRESHOLD = 3


@dataclass(frozen=True)
class MasteryState:
    consecutive_correct: int = 0
    mastered: bool = False
    mastered_at: Optional[datetime] = None


def next_mastery_state(
    state: MasteryState,
    correct: bool,
    now: datetime,
    threshold: int = MASTERY_THRESHOLD,
) -> MasteryState:
    """Streak transition for one answer"""
    if not correct:
        return MasteryState()

    streak = state.consecutive_correct + 1
    if streak >= threshold:
        # mastered_at is stamped once per streak
        return MasteryState(streak, True, state.mastered_at or now)
    return MasteryState(streak, False, None)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class MasteryService:
    """Quiz submissions, quiz sessions and mastery streaks"""

    def __init__(
        self,
        db_service: Optional[DatabaseService] = None,
        rng: Optional[random.Random] = None,
        threshold: Optional[int] = None,
    ):
        self._db_service = db_service
        self.rng = rng or random.Random()
        self.threshold = threshold or get_settings_service().getint(
            "quiz", "mastery_threshold", MASTERY_THRESHOLD
        )
        self.logging_service = get_logging_service()
        self.logger = self.logging_service.get_logger("mastery_service")

    @property
    def db(self) -> DatabaseService:
        return self._db_service or get_db_service()

    def _progress(self, mastery: Optional[QuestionMastery]) -> Dict[str, Any]:
        return {
            "consecutive_correct": mastery.consecutive_correct if mastery else 0,
            "mastered": bool(mastery.mastered) if mastery else False,
            "mastered_at": _isoformat(mastery.mastered_at) if mastery else None,
            "required": self.threshold,
        }

    def submit_answer(
        self,
        user_id: int,
        question_id: int,
        correct: Any,
        session_id: Optional[int] = None,
        is_review_session: bool = False,
    ) -> Dict[str, Any]:
        """Record an attempt and update the streak for (user, question)"""
        if not isinstance(correct, bool) or question_id is None:
            raise ValidationError("Missing required fields")

        try:
            return self._submit_answer(
                user_id, question_id, correct, session_id, is_review_session
            )
        except IntegrityError:
            # A concurrent first answer created the mastery row; retry as update.
            self.logger.warning(
                "mastery.upsert_conflict", user_id=user_id, question_id=question_id
            )
            return self._submit_answer(
                user_id, question_id, correct, session_id, is_review_session
            )

    def _submit_answer(
        self,
        user_id: int,
        question_id: int,
        correct: bool,
        session_id: Optional[int],
        is_review_session: bool,
    ) -> Dict[str, Any]:
        with self.db.get_session() as session:
            if session.get(Question, question_id) is None:
                raise NotFoundError("Question not found")

            if session_id is not None:
                quiz_session = session.execute(
                    select(QuizSession).where(
                        QuizSession.id == session_id, QuizSession.user_id == user_id
                    )
                ).scalar_one_or_none()
                if quiz_session is None:
                    raise NotFoundError("Session not found")
                if quiz_session.completed_at is not None:
                    raise ConflictError("Session already completed")
            else:
                quiz_session = QuizSession(
                    user_id=user_id, is_review_session=bool(is_review_session)
                )
                session.add(quiz_session)
                session.flush()

            now = utcnow()
            attempt = QuestionAttempt(
                session_id=quiz_session.id,
                question_id=question_id,
                user_id=user_id,
                correct=correct,
                answered_at=now,
            )
            session.add(attempt)

            mastery = session.execute(
                select(QuestionMastery).where(
                    QuestionMastery.user_id == user_id,
                    QuestionMastery.question_id == question_id,
                )
            ).scalar_one_or_none()
            if mastery is None:
                mastery = QuestionMastery(user_id=user_id, question_id=question_id)
                session.add(mastery)
                current = MasteryState()
            else:
                current = MasteryState(
                    mastery.consecutive_correct, mastery.mastered, mastery.mastered_at
                )

            updated = next_mastery_state(current, correct, now, self.threshold)
            mastery.consecutive_correct = updated.consecutive_correct
            mastery.mastered = updated.mastered
            mastery.mastered_at = updated.mastered_at
            mastery.last_attempt_at = now

            session.commit()

            if updated.mastered and not current.mastered:
                self.logging_service.log_event(
                    "mastery",
                    "INFO",
                    "mastery.mastered",
                    user_id=user_id,
                    question_id=question_id,
                )

            return {
                "success": True,
                "attempt_id": attempt.id,
                "session_id": quiz_session.id,
                "mastery": self._progress(mastery),
            }

    def complete_session(self, user_id: int, session_id: Optional[int]) -> Dict[str, Any]:
        """Close a quiz session and summarize it"""
        if session_id is None:
            raise ValidationError("Session ID is required")

        with self.db.get_session() as session:
            quiz_session = session.execute(
                select(QuizSession).where(
                    QuizSession.id == session_id, QuizSession.user_id == user_id
                )
            ).scalar_one_or_none()
            if quiz_session is None:
                raise NotFoundError("Session not found")
            if quiz_session.completed_at is not None:
                raise ConflictError("Session already completed")

            quiz_session.completed_at = utcnow()
            session.commit()

            total, correct = session.execute(
                select(
                    func.count(QuestionAttempt.id),
                    func.coalesce(
                        func.sum(case((QuestionAttempt.correct.is_(True), 1), else_=0)),
                        0,
                    ),
                ).where(QuestionAttempt.session_id == session_id)
            ).one()

            return {
                "success": True,
                "summary": {
                    "session_id": quiz_session.id,
                    "total": total,
                    "correct": correct,
                    "incorrect": total - correct,
                    "accuracy": accuracy(correct, total),
                    "is_review_session": quiz_session.is_review_session,
                    "started_at": _isoformat(quiz_session.started_at),
                    "completed_at": _isoformat(quiz_session.completed_at),
                },
            }

    def reset_mastery(self, user_id: int, question_id: Optional[int]) -> Dict[str, Any]:
        """Return a question to the review pool regardless of its history"""
        if question_id is None:
            raise ValidationError("Question ID is required")

        with self.db.get_session() as session:
            mastery = session.execute(
                select(QuestionMastery).where(
                    QuestionMastery.user_id == user_id,
                    QuestionMastery.question_id == question_id,
                )
            ).scalar_one_or_none()
            if mastery is None:
                raise NotFoundError("No mastery record found for this question")

            mastery.consecutive_correct = 0
            mastery.mastered = False
            mastery.mastered_at = None
            mastery.last_attempt_at = utcnow()
            session.commit()

        self.logging_service.log_crud_operation(
            "reset", "question_mastery", question_id, user_id=user_id
        )
        return {
            "success": True,
            "message": "Mastery progress reset",
            "question_id": question_id,
        }

    def get_review_questions(
        self, user_id: int, category: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Missed, not yet mastered questions; closest to mastery first"""
        missed = (
            select(QuestionAttempt.question_id)
            .where(
                QuestionAttempt.user_id == user_id,
                QuestionAttempt.correct.is_(False),
            )
            .distinct()
        )
        streak = func.coalesce(QuestionMastery.consecutive_correct, 0)
        stmt = (
            select(Question, streak)
            .outerjoin(
                QuestionMastery,
                and_(
                    QuestionMastery.question_id == Question.id,
                    QuestionMastery.user_id == user_id,
                ),
            )
            .where(
                Question.id.in_(missed),
                Question.archived.is_(False),
                or_(QuestionMastery.id.is_(None), QuestionMastery.mastered.is_(False)),
            )
            .order_by(streak.desc(), Question.id.asc())
        )
        if category and category != "all":
            stmt = stmt.where(Question.classifier_category == category)

        with self.db.get_session() as session:
            rows = session.execute(stmt).all()
            return [
                {
                    "question": serialize_question(question),
                    "mastery_progress": {
                        "consecutive_correct": consecutive_correct,
                        "required": self.threshold,
                    },
                }
                for question, consecutive_correct in rows
            ]

    def get_random_mastered(
        self, user_id: int, category: Optional[str] = None
    ) -> Dict[str, Any]:
        """One mastered question, picked uniformly at random"""
        conditions = [
            QuestionMastery.user_id == user_id,
            QuestionMastery.mastered.is_(True),
            Question.archived.is_(False),
        ]
        if category and category != "all":
            conditions.append(Question.classifier_category == category)

        with self.db.get_session() as session:
            total = session.execute(
                select(func.count(QuestionMastery.id))
                .join(Question, Question.id == QuestionMastery.question_id)
                .where(*conditions)
            ).scalar_one()
            if total == 0:
                if category and category != "all":
                    raise NotFoundError("No mastered questions found in this category")
                raise NotFoundError("No mastered questions found")

            question, mastery = session.execute(
                select(Question, QuestionMastery)
                .join(QuestionMastery, Question.id == QuestionMastery.question_id)
                .where(*conditions)
                .order_by(QuestionMastery.id)
                .offset(self.rng.randrange(total))
                .limit(1)
            ).one()

            return {
                "question": serialize_question(question),
                "mastered_at": _isoformat(mastery.mastered_at),
                "total_mastered": total,
            }


_mastery_service: Optional[MasteryService] = None


def get_mastery_service() -> MasteryService:
    """Get or create singleton mastery service instance"""
    global _mastery_service
    if _mastery_service is None:
        _mastery_service = MasteryService()
    return _mastery_service


def reset_mastery_service() -> None:
    global _mastery_service
    _mastery_service = None
