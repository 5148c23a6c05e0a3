"""
Test configuration and setup for Jeopardy Trainer
"""

import copy
import json
import os
import tempfile
from datetime import date

import httpx
import pytest

# Set test environment variables before any service reads settings
os.environ["JT_TEST_MODE"] = "1"
os.environ["JWT_SECRET"] = "test-jwt-secret-not-for-production"
os.environ["EMAIL_BACKEND"] = "log"
os.environ.setdefault("JT_LOG_DIR", tempfile.mkdtemp(prefix="jeopardy_trainer_logs_"))
for _key in ("OPENAI_API_KEY", "OPENROUTER_API_KEY", "AI_PROVIDER", "JT_DATABASE_URL"):
    os.environ.pop(_key, None)

from jeopardy_trainer.core.services.settings_config_service import (  # noqa: E402
    reset_settings_service,
)

reset_settings_service()

TEST_PASSWORD = "Password123!"


def _reset_service_singletons():
    from jeopardy_trainer.core.services import (
        ai_service,
        auth,
        coryat_service,
        mastery_service,
        notification_service,
        question_service,
        study_recommendation_service,
    )

    auth.reset_auth_service()
    question_service.reset_question_service()
    mastery_service.reset_mastery_service()
    coryat_service.reset_coryat_service()
    study_recommendation_service.reset_study_recommendation_service()
    notification_service.reset_notification_service()
    ai_service.reset_ai_service()


@pytest.fixture
def test_db_path(tmp_path):
    """Create a test database path"""
    return tmp_path / "test.db"


@pytest.fixture(autouse=True)
def setup_test_env(test_db_path):
    """Fresh SQLite database and service singletons for every test"""
    from jeopardy_trainer.core.services.database import init_db_service

    _reset_service_singletons()
    service = init_db_service(str(test_db_path))

    yield

    _reset_service_singletons()
    service.close()


@pytest.fixture
def db_service():
    """Provide the database service the app uses"""
    from jeopardy_trainer.core.services.database import get_db_service

    return get_db_service()


@pytest.fixture
def db_session(db_service):
    """SQLAlchemy session fixture shared by fixtures and assertions."""
    return db_service.session


@pytest.fixture
def client(db_service):
    """FastAPI TestClient wired to the test database."""
    from fastapi.testclient import TestClient

    from jeopardy_trainer.api.main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_user(db_session):
    """Factory for users that already exist (approved unless told otherwise)."""
    from jeopardy_trainer.core.models import User, UserRole, utcnow
    from jeopardy_trainer.core.security import hash_password

    def _make_user(username, role=UserRole.USER, approved=True, password=TEST_PASSWORD):
        user = User(
            username=username,
            email=f"{username}@test.com",
            password_hash=hash_password(password),
            role=role,
            approved=approved,
            approved_at=utcnow() if approved else None,
            game_type_filters=[],
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def test_user(make_user):
    return make_user("quiz_player")


@pytest.fixture
def test_admin(make_user):
    from jeopardy_trainer.core.models import UserRole

    return make_user("site_admin", role=UserRole.ADMIN)


def login(client, username, password=TEST_PASSWORD):
    resp = client.post(
        "/api/auth/login", data={"username": username, "password": password}
    )
    assert resp.status_code == 200, resp.text
    # Tests authenticate with explicit headers only
    client.cookies.clear()
    return resp.json()["access_token"]


@pytest.fixture
def login_as(client):
    """Bearer headers for an existing, approved account"""

    def _login_as(username, password=TEST_PASSWORD):
        return {"Authorization": f"Bearer {login(client, username, password)}"}

    return _login_as


@pytest.fixture
def user_headers(client, test_user):
    return {"Authorization": f"Bearer {login(client, test_user.username)}"}


@pytest.fixture
def admin_headers(client, test_admin):
    return {"Authorization": f"Bearer {login(client, test_admin.username)}"}


@pytest.fixture
def make_question(db_session):
    """Factory for catalog questions with playable defaults."""
    from jeopardy_trainer.core.models import Question

    def _make_question(**overrides):
        values = {
            "clue": "This spirit is distilled from agave",
            "answer": "What is tequila?",
            "category": "POTENT POTABLES",
            "classifier_category": "Food & Drink",
            "clue_value": 200,
            "round": 1,
            "air_date": date(2020, 1, 6),
        }
        values.update(overrides)
        question = Question(**values)
        db_session.add(question)
        db_session.commit()
        db_session.refresh(question)
        return question

    return _make_question


@pytest.fixture
def board_catalog(db_session):
    """Twelve fully stocked categories plus one Final Jeopardy clue.

    Every category carries a clue for each value of both rounds, so any six
    of them fill a round completely. The Final Jeopardy clue has no
    classifier category and therefore never competes for a board column.
    """
    from jeopardy_trainer.core.coryat import DOUBLE_JEOPARDY_VALUES, JEOPARDY_VALUES
    from jeopardy_trainer.core.models import Question

    questions = []
    for c in range(12):
        category = f"CATEGORY {c:02d}"
        for round_number, values in ((1, JEOPARDY_VALUES), (2, DOUBLE_JEOPARDY_VALUES)):
            for value in values:
                questions.append(
                    Question(
                        clue=f"{category} round {round_number} clue for ${value}",
                        answer=f"What is answer {c}-{round_number}-{value}?",
                        category=category,
                        classifier_category="General",
                        clue_value=value,
                        round=round_number,
                        air_date=date(2021, 3, 1),
                    )
                )
    questions.append(
        Question(
            clue="The only U.S. state with a one-syllable name",
            answer="What is Maine?",
            category="U.S. STATES",
            classifier_category=None,
            clue_value=None,
            round=3,
            air_date=date(2021, 3, 1),
        )
    )
    db_session.add_all(questions)
    db_session.commit()
    return questions


def chat_completion_transport(
    content, model="gpt-4o-test", status_code=200, on_request=None
):
    """httpx transport that answers every request like a chat completions API."""
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(json.loads(request.content))
        if on_request is not None:
            on_request(request)
        if status_code != 200:
            return httpx.Response(status_code, json={"error": {"message": "boom"}})
        return httpx.Response(
            200,
            json={
                "model": model,
                "choices": [{"message": {"content": content}}],
                "usage": {"total_tokens": 321},
            },
        )

    transport = httpx.MockTransport(handler)
    transport.requests = requests
    return transport


@pytest.fixture
def fake_llm():
    """Install an AIService whose HTTP client never leaves the process."""
    from jeopardy_trainer.core.services.ai_service import RuntimeAIConfig, init_ai_service

    def _install(content, status_code=200, model="gpt-4o-test", on_request=None):
        transport = chat_completion_transport(
            content, model=model, status_code=status_code, on_request=on_request
        )
        config = RuntimeAIConfig(
            provider="openai",
            model="gpt-4o",
            api_key="sk-test",
            endpoint="https://llm.test/v1/chat/completions",
        )
        init_ai_service(config, client=httpx.Client(transport=transport))
        return transport

    return _install


VALID_STUDY_PLAN = {
    "analysis": "Misses cluster around wordplay and pre-1900 history.",
    "topics": [
        {
            "topic": "Classical Antiquity",
            "explanation": "Roman emperors appear often as pivot facts.",
            "readings": ["Mary Beard, SPQR"],
            "wikipedia": ["https://en.wikipedia.org/wiki/Roman_Empire"],
            "strategies": ["Build a ladder of emperors from Augustus onward"],
        },
        {
            "topic": "Wordplay",
            "explanation": "Before & After clues were missed repeatedly.",
            "readings": [],
            "wikipedia": [],
            "strategies": ["Drill compound phrases"],
        },
        {
            "topic": "Potent Potables",
            "explanation": "Spirits and their base ingredients.",
            "readings": ["The Oxford Companion to Spirits and Cocktails"],
            "wikipedia": ["https://en.wikipedia.org/wiki/Distilled_beverage"],
            "strategies": ["Flash cards: spirit to base ingredient"],
        },
    ],
}


@pytest.fixture
def study_plan_json():
    return json.dumps(VALID_STUDY_PLAN)


@pytest.fixture
def study_plan():
    return copy.deepcopy(VALID_STUDY_PLAN)
