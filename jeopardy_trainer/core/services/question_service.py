"""
Question catalog service

Recency-biased random selection, lookup, category listing and the
archive/unarchive toggle.

Selection draws ``u ~ Uniform(0, 1)``, maps it through an exponential
distribution (``offset = min(-ln(1 - u) / lambda, 1)``) and reads the row at
``floor(offset * count)`` of the filtered set ordered by air date descending.
Newer clues are therefore much more likely without materializing the
candidate set.
"""

import math
import random
from typing import Any, Dict, Iterable, List, Optional, Union

from sqlalchemy import func

from ..exceptions import NotFoundError, ValidationError
from ..models import GameType, Question, utcnow
from .count_cache import TTLCache
from .database import get_db_service
from .logging import get_logging_service
from .settings_config_service import get_settings_service

DEFAULT_ARCHIVE_REASON = "Missing media or unanswerable"
GAME_TYPES = tuple(game_type.value for game_type in GameType)


def normalize_game_types(values: Union[None, str, Iterable[str]]) -> List[str]:
    """Validate audience tags; accepts a list or a comma-separated string."""
    if values is None:
        return []
    if isinstance(values, str):
        values = values.split(",")

    tags = []
    for value in values:
        if not isinstance(value, str):
            raise ValidationError(f"Invalid filters: {value!r}")
        tag = value.strip().lower()
        if not tag:
            continue
        if tag not in GAME_TYPES:
            raise ValidationError(
                f"Invalid filters: {value}. Valid values are: {', '.join(GAME_TYPES)}"
            )
        if tag not in tags:
            tags.append(tag)
    return sorted(tags)


def exponential_offset(u: float, total: int, recency_lambda: float = 3.5) -> int:
    """Map a uniform draw to a recency-biased row index in ``[0, total)``."""
    if total <= 0:
        raise ValueError("total must be positive")
    offset = min(-math.log(1.0 - u) / recency_lambda, 1.0)
    return min(int(math.floor(offset * total)), total - 1)


def serialize_question(question: Question) -> Dict[str, Any]:
    return {
        "id": question.id,
        "clue": question.clue,
        "answer": question.answer,
        "category": question.category,
        "classifier_category": question.classifier_category,
        "clue_value": question.clue_value,
        "round": question.round,
        "air_date": question.air_date.isoformat() if question.air_date else None,
        "game_type": question.game_type,
    }


def _is_all(category: Optional[str]) -> bool:
    return not category or category == "all"


class QuestionService:
    """Reads and archives catalog questions"""

    def __init__(
        self,
        db_service=None,
        count_cache: Optional[TTLCache] = None,
        rng: Optional[random.Random] = None,
        recency_lambda: Optional[float] = None,
    ):
        settings = get_settings_service()
        self._db_service = db_service
        self.count_cache = count_cache or TTLCache(
            settings.getfloat("quiz", "count_cache_ttl_seconds", 300.0)
        )
        self.rng = rng or random.Random()
        self.recency_lambda = recency_lambda or settings.getfloat(
            "quiz", "recency_lambda", 3.5
        )
        self.logging_service = get_logging_service()
        self.logger = self.logging_service.get_logger("question_service")

    @property
    def db_service(self):
        return self._db_service or get_db_service()

    def _playable_query(self, session, category: Optional[str], game_types: List[str]):
        query = session.query(Question).filter(
            Question.clue.isnot(None),
            Question.answer.isnot(None),
            Question.classifier_category.isnot(None),
            Question.air_date.isnot(None),
            Question.archived.is_(False),
        )
        if not _is_all(category):
            query = query.filter(Question.classifier_category == category)
        if game_types:
            query = query.filter(Question.game_type.in_(game_types))
        return query

    @staticmethod
    def count_key(category: Optional[str], game_types: List[str]) -> str:
        base = "count_all" if _is_all(category) else f"count_{category}"
        if game_types:
            base += "|" + ",".join(game_types)
        return base

    def count_questions(
        self, category: Optional[str] = None, game_types: Optional[List[str]] = None
    ) -> int:
        """Size of the playable set for a filter, served from the count cache"""
        tags = normalize_game_types(game_types)

        def _load() -> int:
            with self.db_service.get_session() as session:
                return self._playable_query(session, category, tags).count()

        return self.count_cache.get_or_load(self.count_key(category, tags), _load)

    def get_random_question(
        self,
        category: Optional[str] = None,
        game_types: Union[None, str, List[str]] = None,
    ) -> Dict[str, Any]:
        """Pick a recency-biased random question matching the filter"""
        tags = normalize_game_types(game_types)
        key = self.count_key(category, tags)

        for _ in range(2):
            total = self.count_questions(category, tags)
            if total == 0:
                raise NotFoundError("No questions found")

            offset = exponential_offset(self.rng.random(), total, self.recency_lambda)
            with self.db_service.get_session() as session:
                question = (
                    self._playable_query(session, category, tags)
                    .order_by(Question.air_date.desc(), Question.id.desc())
                    .offset(offset)
                    .limit(1)
                    .first()
                )
                if question is not None:
                    return serialize_question(question)

            # Cached count is stale (rows archived since); recount once.
            self.count_cache.invalidate(key)

        raise NotFoundError("No questions found")

    def get_question(self, question_id: int) -> Dict[str, Any]:
        with self.db_service.get_session() as session:
            question = session.query(Question).filter_by(id=question_id).first()
            if question is None:
                raise NotFoundError("Question not found")
            return serialize_question(question)

    def list_categories(self) -> List[Dict[str, Any]]:
        """Classifier categories with question counts, ordered by name"""
        with self.db_service.get_session() as session:
            rows = (
                session.query(
                    Question.classifier_category, func.count(Question.id)
                )
                .filter(Question.classifier_category.isnot(None))
                .group_by(Question.classifier_category)
                .order_by(Question.classifier_category.asc())
                .all()
            )
            return [{"name": name, "count": count} for name, count in rows]

    def archive_question(
        self,
        question_id: int,
        reason: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Hide a question from every quiz mode"""
        with self.db_service.get_session() as session:
            question = session.query(Question).filter_by(id=question_id).first()
            if question is None:
                raise NotFoundError("Question not found")

            question.archived = True
            question.archived_reason = reason or DEFAULT_ARCHIVE_REASON
            question.archived_at = utcnow()
            session.commit()
            session.refresh(question)
            result = {
                **serialize_question(question),
                "archived": True,
                "archived_reason": question.archived_reason,
                "archived_at": question.archived_at.isoformat(),
            }

        self.count_cache.clear_all()
        self.logging_service.log_crud_operation(
            "archive",
            "question",
            question_id,
            user_id=user_id,
            reason=result["archived_reason"],
        )
        return result

    def unarchive_question(
        self, question_id: int, user_id: Optional[int] = None
    ) -> Dict[str, Any]:
        """Return an archived question to circulation"""
        with self.db_service.get_session() as session:
            question = session.query(Question).filter_by(id=question_id).first()
            if question is None:
                raise NotFoundError("Question not found")

            question.archived = False
            question.archived_reason = None
            question.archived_at = None
            session.commit()
            session.refresh(question)
            result = {
                **serialize_question(question),
                "archived": False,
                "archived_reason": None,
                "archived_at": None,
            }

        self.count_cache.clear_all()
        self.logging_service.log_crud_operation(
            "unarchive", "question", question_id, user_id=user_id
        )
        return result

    def list_archived(self) -> List[Dict[str, Any]]:
        with self.db_service.get_session() as session:
            questions = (
                session.query(Question)
                .filter(Question.archived.is_(True))
                .order_by(Question.archived_at.desc(), Question.id.desc())
                .all()
            )
            return [
                {
                    **serialize_question(q),
                    "archived_reason": q.archived_reason,
                    "archived_at": q.archived_at.isoformat() if q.archived_at else None,
                }
                for q in questions
            ]


_question_service: Optional[QuestionService] = None


def get_question_service() -> QuestionService:
    """Get the global question service (one count cache per process)"""
    global _question_service
    if _question_service is None:
        _question_service = QuestionService()
    return _question_service


def reset_question_service() -> None:
    global _question_service
    _question_service = None
