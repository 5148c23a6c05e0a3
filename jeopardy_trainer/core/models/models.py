"""
SQLAlchemy models for Jeopardy Trainer

Users and their server-side sessions, the clue catalog, quiz attempts and
mastery streaks, Coryat games and LLM study recommendations.
"""

import enum
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import (
    JSON,
    Column,
    Integer,
    String,
    DateTime,
    Boolean,
    ForeignKey,
    Text,
    Enum as SQLEnum,
    Index,
    Date,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import relationship

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp; every DateTime column stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class UserRole(enum.Enum):
    """User roles"""

    USER = "user"
    ADMIN = "admin"


class GameType(enum.Enum):
    """Audience tags for tournament-flavored clues"""

    KIDS = "kids"
    TEEN = "teen"
    COLLEGE = "college"


class User(Base):
    """Registered player; unapproved until an admin approves the account"""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    username = Column(String(50), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(SQLEnum(UserRole), default=UserRole.USER, nullable=False, index=True)
    approved = Column(Boolean, default=False, nullable=False, index=True)
    approved_at = Column(DateTime, nullable=True)
    game_type_filters = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    last_login = Column(DateTime, nullable=True)

    # Relationships
    auth_sessions = relationship(
        "AuthSession", back_populates="user", cascade="all, delete-orphan"
    )
    quiz_sessions = relationship("QuizSession", back_populates="user")
    coryat_games = relationship("CoryatGame", back_populates="user")

    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}', role={self.role}, approved={self.approved})>"


class AuthSession(Base):
    """Server-side session backing both signed tokens and remember-me tokens"""

    __tablename__ = "auth_sessions"

    id = Column(Integer, primary_key=True)
    session_token = Column(String(128), unique=True, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    expires = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    user = relationship("User", back_populates="auth_sessions")

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return self.expires <= (now or utcnow())

    def __repr__(self):
        return f"<AuthSession(id={self.id}, user_id={self.user_id}, expires={self.expires})>"


class Question(Base):
    """A single clue from the catalog"""

    __tablename__ = "jeopardy_questions"

    id = Column(Integer, primary_key=True)
    clue = Column(Text, nullable=True)
    answer = Column(Text, nullable=True)
    category = Column(String(255), nullable=True, index=True)
    classifier_category = Column(String(100), nullable=True, index=True)
    clue_value = Column(Integer, nullable=True)
    round = Column(Integer, nullable=True)  # 1, 2, 3 = Final Jeopardy
    air_date = Column(Date, nullable=True, index=True)
    game_type = Column(String(20), nullable=True, index=True)
    archived = Column(Boolean, default=False, nullable=False, index=True)
    archived_reason = Column(Text, nullable=True)
    archived_at = Column(DateTime, nullable=True)

    attempts = relationship("QuestionAttempt", back_populates="question")

    __table_args__ = (
        Index("idx_question_archived_air_date", "archived", "air_date"),
    )

    def __repr__(self):
        return f"<Question(id={self.id}, category='{self.category}', value={self.clue_value})>"


class QuizSession(Base):
    """A run of quiz answers, closed explicitly by the client"""

    __tablename__ = "quiz_sessions"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    started_at = Column(DateTime, default=utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    is_review_session = Column(Boolean, default=False, nullable=False)

    user = relationship("User", back_populates="quiz_sessions")
    attempts = relationship("QuestionAttempt", back_populates="session")

    def __repr__(self):
        return f"<QuizSession(id={self.id}, user_id={self.user_id}, review={self.is_review_session})>"


class QuestionAttempt(Base):
    """One answer submission (append-only)"""

    __tablename__ = "question_attempts"

    id = Column(Integer, primary_key=True)
    session_id = Column(
        Integer, ForeignKey("quiz_sessions.id"), nullable=False, index=True
    )
    question_id = Column(
        Integer, ForeignKey("jeopardy_questions.id"), nullable=False, index=True
    )
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    correct = Column(Boolean, nullable=False)
    answered_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    session = relationship("QuizSession", back_populates="attempts")
    question = relationship("Question", back_populates="attempts")

    def __repr__(self):
        return f"<QuestionAttempt(id={self.id}, question_id={self.question_id}, correct={self.correct})>"


class QuestionMastery(Base):
    """Per-user, per-question consecutive-correct streak"""

    __tablename__ = "question_mastery"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    question_id = Column(
        Integer, ForeignKey("jeopardy_questions.id"), nullable=False, index=True
    )
    consecutive_correct = Column(Integer, default=0, nullable=False)
    mastered = Column(Boolean, default=False, nullable=False, index=True)
    mastered_at = Column(DateTime, nullable=True)
    last_attempt_at = Column(DateTime, default=utcnow, nullable=False)

    question = relationship("Question")

    __table_args__ = (
        Index("idx_mastery_user_question", "user_id", "question_id", unique=True),
    )

    def __repr__(self):
        return f"<QuestionMastery(user_id={self.user_id}, question_id={self.question_id}, streak={self.consecutive_correct})>"


class CoryatGame(Base):
    """A full-board Coryat game; the board document is rewritten on every answer"""

    __tablename__ = "coryat_games"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    started_at = Column(DateTime, default=utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True, index=True)
    game_board = Column(JSON, nullable=False)
    jeopardy_score = Column(Integer, default=0, nullable=False)
    double_j_score = Column(Integer, default=0, nullable=False)
    final_score = Column(Integer, nullable=True)
    current_round = Column(Integer, default=1, nullable=False)
    questions_answered = Column(Integer, default=0, nullable=False)
    version = Column(Integer, nullable=False)

    user = relationship("User", back_populates="coryat_games")

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<CoryatGame(id={self.id}, user_id={self.user_id}, final_score={self.final_score})>"


class StudyRecommendation(Base):
    """LLM-generated study plan built from recent misses"""

    __tablename__ = "study_recommendations"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    generated_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    days_analyzed = Column(Integer, nullable=False)
    analysis = Column(Text, nullable=False)
    recommendations = Column(JSON, nullable=False)
    raw_response = Column(Text, nullable=False)
    model = Column(String(100), nullable=True)
    question_count = Column(Integer, nullable=False)
    time_period_start = Column(DateTime, nullable=False)
    time_period_end = Column(DateTime, nullable=False)

    def __repr__(self):
        return f"<StudyRecommendation(id={self.id}, user_id={self.user_id}, days={self.days_analyzed})>"
