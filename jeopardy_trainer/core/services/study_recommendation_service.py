"""
Study recommendation service

Turns a user's recently missed clues into an LLM-written study plan. The
model's reply must be a JSON object matching ``StudyPlanPayload``; it is
parsed strictly and nothing is stored when it does not validate.
"""

import json
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select

from ..exceptions import NotFoundError, SchemaValidationError, ValidationError
from ..models import Question, QuestionAttempt, StudyRecommendation, utcnow
from ..security_utils import clean_text
from .ai_service import AIService, get_ai_service
from .database import DatabaseService, get_db_service
from .logging import get_logging_service

EXAMPLES_PER_CATEGORY = 10
UNCATEGORIZED = "Uncategorized"

SYSTEM_PROMPT = """You are a Jeopardy! training analyst with the wit and clarity of Ken Jennings. You produce error-free JSON only (no Markdown, no prose outside JSON). You turn the user's missed clues into a precise study plan with high-signal recommendations.

Guidelines:
- Output must be valid JSON matching the provided schema exactly.
- Be concrete and Jeopardy!-aware: clue archetypes, wordplay, eponyms, before-and-after, homophones, hidden capitals, and "pivot" facts that unlock families of clues.
- Group related gaps into 3 to 6 memorable umbrella topics rather than many tiny slivers.
- Keep the tone brisk, practical and kind.
- Sources: only list readings that actually exist; prefer compact, trustworthy, free material. Give 1 or 2 canonical Wikipedia links per topic.
- Strategies: concrete drills (flash prompts, cloze deletions, mini-timelines), mnemonics tuned to clue styles, and retrieval-speed practice.
- Pattern analysis: name clue-level failure modes such as misreading pivot words, ignoring dates, or missing wordplay.

Validation: no extra keys, no comments, no trailing commas, no Markdown."""

RESPONSE_FORMAT = """{
  "analysis": "Overall pattern summary (2-3 sentences) naming clue-level failure modes",
  "topics": [
    {
      "topic": "Memorable topic name (3-6 topics total)",
      "explanation": "Why this is a knowledge gap and which Jeopardy! patterns it follows",
      "readings": ["Specific existing source 1", "Specific existing source 2"],
      "wikipedia": ["https://en.wikipedia.org/wiki/CanonicalPage"],
      "strategies": ["Concrete drill or mnemonic", "Retrieval practice"]
    }
  ]
}"""


class StudyTopic(BaseModel):
    model_config = ConfigDict(extra="ignore")

    topic: str = Field(min_length=1)
    explanation: str = Field(min_length=1)
    readings: List[str] = Field(default_factory=list)
    wikipedia: List[str] = Field(default_factory=list)
    strategies: List[str] = Field(default_factory=list)


class StudyPlanPayload(BaseModel):
    """Expected shape of the model reply"""

    model_config = ConfigDict(extra="ignore")

    analysis: str = Field(min_length=1)
    topics: List[StudyTopic] = Field(min_length=3, max_length=6)


def parse_study_plan(raw: str) -> StudyPlanPayload:
    """Strict parse: no JSON repair, no fallback plan"""
    if not raw or not raw.strip():
        raise SchemaValidationError("Empty response from AI model")
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise SchemaValidationError(f"AI response is not valid JSON: {e}") from e
    try:
        return StudyPlanPayload.model_validate(data)
    except PydanticValidationError as e:
        raise SchemaValidationError(
            f"AI response does not match the study plan schema: {e.error_count()} error(s)"
        ) from e


def build_study_prompt(missed: "OrderedDict[str, List[Dict[str, str]]]", total: int, days: int) -> str:
    """Render grouped missed clues into the user prompt"""
    lines = [
        f"The user answered {total} Jeopardy! clues incorrectly in the past {days} day(s).",
        "",
        "Here are the missed clues, grouped by category:",
    ]
    for category, examples in missed.items():
        lines.append(f"\n## {category} ({len(examples)} questions)")
        for i, example in enumerate(examples[:EXAMPLES_PER_CATEGORY], start=1):
            lines.append(f'{i}. Clue: "{example["clue"]}"')
            lines.append(f'   Response: "{example["answer"]}"')
            lines.append(f"   Original Category: {example['category']}")
        if len(examples) > EXAMPLES_PER_CATEGORY:
            lines.append(f"   ... and {len(examples) - EXAMPLES_PER_CATEGORY} more questions")

    lines.append("")
    lines.append("Return your response as JSON in this exact format:")
    lines.append(RESPONSE_FORMAT)
    return "\n".join(lines)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_recommendation(rec: StudyRecommendation) -> Dict[str, Any]:
    return {
        "id": rec.id,
        "generated_at": _isoformat(rec.generated_at),
        "days_analyzed": rec.days_analyzed,
        "analysis": rec.analysis,
        "topics": rec.recommendations,
        "model": rec.model,
        "question_count": rec.question_count,
        "time_period_start": _isoformat(rec.time_period_start),
        "time_period_end": _isoformat(rec.time_period_end),
    }


class StudyRecommendationService:
    """Generate and list per-user study recommendations"""

    def __init__(
        self,
        db_service: Optional[DatabaseService] = None,
        ai_service: Optional[AIService] = None,
    ):
        self._db_service = db_service
        self._ai_service = ai_service
        self.logging_service = get_logging_service()
        self.logger = self.logging_service.get_logger("study_recommendation_service")

    @property
    def db(self) -> DatabaseService:
        return self._db_service or get_db_service()

    @property
    def ai(self) -> AIService:
        return self._ai_service or get_ai_service()

    def _missed_clues(self, user_id: int, start: datetime, end: datetime):
        with self.db.get_session() as session:
            rows = session.execute(
                select(
                    Question.clue,
                    Question.answer,
                    Question.category,
                    Question.classifier_category,
                )
                .join(QuestionAttempt, QuestionAttempt.question_id == Question.id)
                .where(
                    QuestionAttempt.user_id == user_id,
                    QuestionAttempt.correct.is_(False),
                    QuestionAttempt.answered_at >= start,
                    QuestionAttempt.answered_at <= end,
                )
                .order_by(QuestionAttempt.answered_at.desc(), QuestionAttempt.id.desc())
            ).all()

        grouped: "OrderedDict[str, List[Dict[str, str]]]" = OrderedDict()
        for clue, answer, category, classifier_category in rows:
            grouped.setdefault(classifier_category or UNCATEGORIZED, []).append(
                {
                    "clue": clean_text(clue or ""),
                    "answer": clean_text(answer or ""),
                    "category": category or "",
                }
            )
        return grouped, len(rows)

    def generate(self, user_id: int, days: Any) -> Dict[str, Any]:
        """Analyze misses in the last ``days`` days and store the plan"""
        if isinstance(days, bool) or not isinstance(days, int) or days <= 0:
            raise ValidationError("Invalid days parameter")

        end = utcnow()
        start = end - timedelta(days=days)
        missed, total = self._missed_clues(user_id, start, end)
        if total == 0:
            raise NotFoundError("No incorrect answers found in the specified time period")

        ai = self.ai
        ai.ensure_configured()
        prompt = build_study_prompt(missed, total, days)
        response = ai.generate_json(prompt, system_prompt=SYSTEM_PROMPT)

        try:
            plan = parse_study_plan(response.content)
        except SchemaValidationError as e:
            self.logging_service.log_ai_operation(
                "study_recommendation",
                response.provider.value,
                response.model,
                user_id=user_id,
                success=False,
                error=str(e),
            )
            raise

        with self.db.get_session() as session:
            rec = StudyRecommendation(
                user_id=user_id,
                generated_at=end,
                days_analyzed=days,
                analysis=plan.analysis,
                recommendations=[topic.model_dump() for topic in plan.topics],
                raw_response=response.content,
                model=response.model,
                question_count=total,
                time_period_start=start,
                time_period_end=end,
            )
            session.add(rec)
            session.commit()
            session.refresh(rec)
            result = serialize_recommendation(rec)

        self.logging_service.log_ai_operation(
            "study_recommendation",
            response.provider.value,
            response.model,
            user_id=user_id,
            duration_ms=int(response.response_time * 1000),
            tokens_used=response.tokens_used,
            question_count=total,
        )
        return {"success": True, "recommendation": result}

    def history(self, user_id: int) -> List[Dict[str, Any]]:
        with self.db.get_session() as session:
            recs = (
                session.execute(
                    select(StudyRecommendation)
                    .where(StudyRecommendation.user_id == user_id)
                    .order_by(
                        StudyRecommendation.generated_at.desc(),
                        StudyRecommendation.id.desc(),
                    )
                )
                .scalars()
                .all()
            )
            return [serialize_recommendation(rec) for rec in recs]

    def latest(self, user_id: int) -> Optional[Dict[str, Any]]:
        with self.db.get_session() as session:
            rec = session.execute(
                select(StudyRecommendation)
                .where(StudyRecommendation.user_id == user_id)
                .order_by(
                    StudyRecommendation.generated_at.desc(),
                    StudyRecommendation.id.desc(),
                )
                .limit(1)
            ).scalar_one_or_none()
            if rec is None:
                return None
            return {
                "generated_at": _isoformat(rec.generated_at),
                "days_analyzed": rec.days_analyzed,
                "question_count": rec.question_count,
            }


_study_service: Optional[StudyRecommendationService] = None


def get_study_recommendation_service() -> StudyRecommendationService:
    global _study_service
    if _study_service is None:
        _study_service = StudyRecommendationService()
    return _study_service


def reset_study_recommendation_service() -> None:
    global _study_service
    _study_service = None
