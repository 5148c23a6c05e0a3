"""
Test cases for authentication functionality
"""

from datetime import timedelta

import jwt
import pytest

from jeopardy_trainer.core.exceptions import (
    AccountPendingApprovalError,
    AuthenticationError,
    NotFoundError,
    SessionExpiredError,
    ValidationError,
)
from jeopardy_trainer.core.models import AuthSession, User, utcnow
from jeopardy_trainer.core.services.auth import AuthService


class TestAuthService:
    """Test authentication service"""

    @pytest.fixture
    def auth_service(self):
        return AuthService()

    @pytest.fixture
    def sample_user_data(self):
        """Sample user data for testing"""
        return {
            "username": "testuser",
            "email": "Test@Example.com",
            "password": "TestPass123!",
        }

    def _register_approved(self, auth_service, data):
        user = auth_service.register_user(**data)
        auth_service.approve_user(user["id"])
        return user

    def test_user_registration_is_pending(self, auth_service, sample_user_data):
        user_data = auth_service.register_user(**sample_user_data)

        assert user_data["username"] == "testuser"
        assert user_data["email"] == "test@example.com"
        assert user_data["role"] == "user"
        assert user_data["approved"] is False
        assert "password_hash" not in user_data

        retrieved_user = auth_service.db_service.session.get(User, user_data["id"])
        assert retrieved_user is not None
        assert retrieved_user.password_hash != sample_user_data["password"]

    def test_duplicate_username_registration(self, auth_service, sample_user_data):
        auth_service.register_user(**sample_user_data)

        duplicate_data = dict(sample_user_data, email="different@example.com")
        with pytest.raises(ValidationError, match="Username is already taken"):
            auth_service.register_user(**duplicate_data)

    def test_duplicate_email_registration(self, auth_service, sample_user_data):
        auth_service.register_user(**sample_user_data)

        duplicate_data = dict(sample_user_data, username="differentuser")
        with pytest.raises(ValidationError, match="email already exists"):
            auth_service.register_user(**duplicate_data)

    def test_weak_password_rejected_at_registration(self, auth_service, sample_user_data):
        with pytest.raises(ValidationError):
            auth_service.register_user(**dict(sample_user_data, password="weak"))

    def test_pending_user_cannot_login(self, auth_service, sample_user_data):
        auth_service.register_user(**sample_user_data)

        with pytest.raises(AccountPendingApprovalError):
            auth_service.login_user("testuser", sample_user_data["password"])

    def test_user_login_success(self, auth_service, sample_user_data):
        user_data = self._register_approved(auth_service, sample_user_data)

        login_result = auth_service.login_user(
            username="testuser", password=sample_user_data["password"]
        )

        assert login_result["user"]["id"] == user_data["id"]
        assert login_result["user"]["last_login"] is not None
        assert login_result["session_token"]

        payload = jwt.decode(
            login_result["token"],
            auth_service.jwt_secret,
            algorithms=[auth_service.jwt_algorithm],
        )
        assert payload["user_id"] == user_data["id"]
        assert payload["role"] == "user"
        assert payload["sid"]

    def test_login_accepts_email(self, auth_service, sample_user_data):
        self._register_approved(auth_service, sample_user_data)

        result = auth_service.login_user("test@example.com", sample_user_data["password"])
        assert result["user"]["username"] == "testuser"

    def test_user_login_invalid_password(self, auth_service, sample_user_data):
        self._register_approved(auth_service, sample_user_data)

        with pytest.raises(AuthenticationError):
            auth_service.login_user(username="testuser", password="WrongPassword123!")

    def test_user_login_invalid_username(self, auth_service):
        with pytest.raises(AuthenticationError):
            auth_service.login_user(username="nonexistent", password="SomePassword123!")

    def test_password_validation(self, auth_service):
        weak_passwords = [
            "short",  # Too short
            "alllowercase",  # No uppercase, numbers, or special chars
            "ALLUPPERCASE",  # No lowercase, numbers, or special chars
            "NoSpecial123",  # No special characters
            "NoNumbers!@#",  # No numbers
        ]

        for password in weak_passwords:
            assert not auth_service.validate_password(password)

        assert auth_service.validate_password("StrongPass123!") is True

    def test_validate_token_round_trip(self, auth_service, sample_user_data):
        self._register_approved(auth_service, sample_user_data)
        result = auth_service.login_user("testuser", sample_user_data["password"])

        user = auth_service.validate_token(result["token"])
        assert user is not None
        assert user.username == "testuser"

    def test_validate_token_rejects_garbage(self, auth_service):
        assert auth_service.validate_token("not-a-jwt") is None

    def test_logout_revokes_token(self, auth_service, sample_user_data):
        self._register_approved(auth_service, sample_user_data)
        result = auth_service.login_user("testuser", sample_user_data["password"])

        assert auth_service.logout(result["token"]) is True
        assert auth_service.validate_token(result["token"]) is None
        # Second logout finds nothing to delete
        assert auth_service.logout(result["token"]) is False

    def test_expired_session_invalidates_token(self, auth_service, sample_user_data, db_service):
        self._register_approved(auth_service, sample_user_data)
        result = auth_service.login_user("testuser", sample_user_data["password"])

        with db_service.get_session() as session:
            auth_session = session.query(AuthSession).one()
            auth_session.expires = utcnow() - timedelta(minutes=1)
            session.commit()

        assert auth_service.validate_token(result["token"]) is None
        with db_service.get_session() as session:
            assert session.query(AuthSession).count() == 0

    def test_session_extended_near_expiry(self, auth_service, sample_user_data, db_service):
        self._register_approved(auth_service, sample_user_data)
        result = auth_service.login_user("testuser", sample_user_data["password"])

        near_expiry = utcnow() + timedelta(days=1)
        with db_service.get_session() as session:
            session.query(AuthSession).one().expires = near_expiry
            session.commit()

        assert auth_service.validate_token(result["token"]) is not None
        with db_service.get_session() as session:
            assert session.query(AuthSession).one().expires > near_expiry + timedelta(days=20)

    def test_login_purges_expired_sessions(self, auth_service, sample_user_data, db_service):
        user = self._register_approved(auth_service, sample_user_data)
        with db_service.get_session() as session:
            session.add(
                AuthSession(
                    session_token="stale-token",
                    user_id=user["id"],
                    expires=utcnow() - timedelta(days=1),
                )
            )
            session.commit()

        auth_service.login_user("testuser", sample_user_data["password"])

        with db_service.get_session() as session:
            tokens = [s.session_token for s in session.query(AuthSession).all()]
        assert "stale-token" not in tokens
        assert len(tokens) == 1

    def test_persistent_token_reused_and_restored(self, auth_service, sample_user_data):
        user = self._register_approved(auth_service, sample_user_data)
        login_result = auth_service.login_user("testuser", sample_user_data["password"])

        first = auth_service.get_or_create_persistent_token(user["id"])
        second = auth_service.get_or_create_persistent_token(user["id"])
        assert first["token"] == second["token"] == login_result["session_token"]

        restored = auth_service.restore_session(first["token"])
        assert restored["user"]["id"] == user["id"]
        assert auth_service.validate_token(restored["token"]).id == user["id"]

    def test_restore_session_rejects_unknown_token(self, auth_service):
        with pytest.raises(AuthenticationError, match="Invalid token"):
            auth_service.restore_session("does-not-exist")

    def test_restore_session_rejects_expired_token(
        self, auth_service, sample_user_data, db_service
    ):
        user = self._register_approved(auth_service, sample_user_data)
        token = auth_service.get_or_create_persistent_token(user["id"])["token"]
        with db_service.get_session() as session:
            session.query(AuthSession).one().expires = utcnow() - timedelta(seconds=1)
            session.commit()

        with pytest.raises(SessionExpiredError):
            auth_service.restore_session(token)

    def test_approve_user_is_idempotent(self, auth_service, sample_user_data):
        user = auth_service.register_user(**sample_user_data)

        approved = auth_service.approve_user(user["id"], approved_by=None)
        again = auth_service.approve_user(user["id"])

        assert approved["approved"] is True
        assert again["approved_at"] == approved["approved_at"]

    def test_approve_unknown_user(self, auth_service):
        with pytest.raises(NotFoundError):
            auth_service.approve_user(12345)

    def test_list_users_pending_first(self, auth_service, test_admin):
        auth_service.register_user("newcomer", "newcomer@example.com", "TestPass123!")

        users = auth_service.list_users()
        assert users[0]["username"] == "newcomer"
        assert users[0]["approved"] is False

    def test_preferences_round_trip(self, auth_service, test_user):
        saved = auth_service.update_preferences(test_user.id, ["TEEN", "kids", "kids"])
        assert saved == ["kids", "teen"]
        assert auth_service.get_preferences(test_user.id) == ["kids", "teen"]

    def test_preferences_reject_unknown_tag(self, auth_service, test_user):
        with pytest.raises(ValidationError, match="Invalid filters"):
            auth_service.update_preferences(test_user.id, ["seniors"])

    def test_preferences_require_list(self, auth_service, test_user):
        with pytest.raises(ValidationError, match="must be a list"):
            auth_service.update_preferences(test_user.id, "kids")

    def test_unapproved_user_token_rejected(self, auth_service, sample_user_data, db_service):
        self._register_approved(auth_service, sample_user_data)
        result = auth_service.login_user("testuser", sample_user_data["password"])

        with db_service.get_session() as session:
            session.query(User).filter_by(username="testuser").one().approved = False
            session.commit()

        assert auth_service.validate_token(result["token"]) is None
