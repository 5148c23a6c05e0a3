"""
Authentication service for Jeopardy Trainer

Login creates a server-side ``AuthSession`` and issues a short-lived JWT that
carries the session id (``sid``). Every token validation re-reads that session,
so deleting it (logout, admin action) revokes the JWT immediately. The same
session's opaque token doubles as the 30-day "remember me" token.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, List
import jwt
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..exceptions import (
    AccountPendingApprovalError,
    AuthenticationError,
    NotFoundError,
    SessionExpiredError,
    ValidationError,
)
from ..models import AuthSession, User, UserRole, utcnow
from ..roles import role_str
from ..security import hash_password, verify_password
from ..security_utils import generate_session_token, get_or_create_jwt_secret
from .database import get_db_service
from .logging import get_logging_service
from .question_service import normalize_game_types
from .settings_config_service import get_settings_service


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_user(user: User) -> Dict[str, Any]:
    """User as returned by the API (never includes the password hash)."""
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "role": role_str(user),
        "approved": bool(user.approved),
        "approved_at": _isoformat(user.approved_at),
        "created_at": _isoformat(user.created_at),
        "last_login": _isoformat(user.last_login),
    }


class AuthService:
    """Authentication and authorization service"""

    def __init__(self):
        settings = get_settings_service()
        self.jwt_secret = get_or_create_jwt_secret()
        self.jwt_algorithm = "HS256"
        self.token_expiry_minutes = settings.getint("auth", "token_expiry_minutes", 30)
        self.session_days = settings.getint("auth", "session_days", 30)
        self.refresh_threshold_days = settings.getint(
            "auth", "session_refresh_threshold_days", 29
        )
        self.logging_service = get_logging_service()

    @property
    def db_service(self):
        # Not cached: tests replace the global DatabaseService between runs.
        return get_db_service()

    def register_user(self, username: str, email: str, password: str) -> Dict[str, Any]:
        """Register a new, unapproved user"""
        username = (username or "").strip()
        email = (email or "").strip().lower()
        if not username or not email or not password:
            raise ValidationError("Username, email, and password are required")
        if not 3 <= len(username) <= 50:
            raise ValidationError("Username must be between 3 and 50 characters")
        if not self.validate_password(password):
            raise ValidationError(
                "Password must be at least 8 characters and contain uppercase, "
                "lowercase, digit, and special character"
            )

        with self.db_service.get_session() as session:
            if session.query(User).filter_by(email=email).first():
                raise ValidationError("User with this email already exists")
            if session.query(User).filter_by(username=username).first():
                raise ValidationError("Username is already taken")

            user = User(
                username=username,
                email=email,
                password_hash=hash_password(password),
                role=UserRole.USER,
                approved=False,
                game_type_filters=[],
            )
            session.add(user)
            session.commit()
            session.refresh(user)

            self._log_event("register", user_id=user.id, username=username)
            return serialize_user(user)

    def login_user(
        self, username: str, password: str, ip_address: Optional[str] = None
    ) -> Dict[str, Any]:
        """Authenticate by username or email and open a server-side session."""
        login = (username or "").strip()
        with self.db_service.get_session() as session:
            user = (
                session.query(User)
                .filter(or_(User.username == login, User.email == login.lower()))
                .first()
            )
            if not user or not verify_password(password, user.password_hash):
                self._log_event(
                    "failed_login",
                    user_id=user.id if user else None,
                    username=login,
                    ip_address=ip_address,
                    success=False,
                )
                raise AuthenticationError("Invalid username or password")

            if not user.approved:
                self._log_event(
                    "pending_login",
                    user_id=user.id,
                    username=user.username,
                    ip_address=ip_address,
                    success=False,
                )
                raise AccountPendingApprovalError(
                    "Your account is pending approval. Please wait for an administrator to approve your account."
                )

            now = utcnow()
            self._purge_expired_sessions(session, user.id, now)
            auth_session = self._create_auth_session(session, user.id, now)
            user.last_login = now
            session.commit()
            session.refresh(user)
            session.refresh(auth_session)

            token, expires_at = self._generate_jwt_token(user, auth_session.id)
            self._log_event(
                "login", user_id=user.id, username=user.username, ip_address=ip_address
            )
            return {
                "user": serialize_user(user),
                "token": token,
                "expires_at": expires_at,
                "session_token": auth_session.session_token,
            }

    def validate_token(self, token: str) -> Optional[User]:
        """Validate a JWT and the server-side session it references"""
        try:
            payload = jwt.decode(
                token,
                self.jwt_secret,
                algorithms=[self.jwt_algorithm],
                options={"require": ["exp"]},
            )
        except jwt.InvalidTokenError:
            return None

        user_id = payload.get("user_id")
        sid = payload.get("sid")
        if not user_id or not sid:
            return None

        with self.db_service.get_session() as session:
            auth_session = (
                session.query(AuthSession).filter_by(id=sid, user_id=user_id).first()
            )
            if auth_session is None:
                return None

            now = utcnow()
            if auth_session.is_expired(now):
                session.delete(auth_session)
                session.commit()
                return None

            if self._extend_if_needed(auth_session, now):
                session.commit()

            user = session.query(User).filter_by(id=user_id).first()
            if user is None or not user.approved:
                return None
            return user

    def decode_session_id(self, token: str) -> Optional[int]:
        """Return the ``sid`` claim of a token, ignoring its expiry."""
        try:
            payload = jwt.decode(
                token,
                self.jwt_secret,
                algorithms=[self.jwt_algorithm],
                options={"verify_exp": False},
            )
        except jwt.InvalidTokenError:
            return None
        return payload.get("sid")

    def logout(self, token: str) -> bool:
        """Delete the server-side session referenced by a JWT"""
        sid = self.decode_session_id(token)
        if sid is None:
            return False

        with self.db_service.get_session() as session:
            auth_session = session.query(AuthSession).filter_by(id=sid).first()
            if auth_session is None:
                return False
            user_id = auth_session.user_id
            session.delete(auth_session)
            session.commit()

        self._log_event("logout", user_id=user_id)
        return True

    def get_or_create_persistent_token(self, user_id: int) -> Dict[str, Any]:
        """Return the newest live session token for a user, creating one if needed"""
        with self.db_service.get_session() as session:
            now = utcnow()
            auth_session = (
                session.query(AuthSession)
                .filter(AuthSession.user_id == user_id, AuthSession.expires > now)
                .order_by(AuthSession.expires.desc())
                .first()
            )
            if auth_session is None:
                auth_session = self._create_auth_session(session, user_id, now)
                session.commit()
                session.refresh(auth_session)
                self._log_event("persistent_token_issued", user_id=user_id)

            return {
                "token": auth_session.session_token,
                "expires": auth_session.expires.isoformat(),
            }

    def restore_session(
        self, persistent_token: str, ip_address: Optional[str] = None
    ) -> Dict[str, Any]:
        """Exchange a remember-me token for a fresh JWT"""
        if not persistent_token:
            raise AuthenticationError("Token is required")

        with self.db_service.get_session() as session:
            auth_session = (
                session.query(AuthSession)
                .filter_by(session_token=persistent_token)
                .first()
            )
            if auth_session is None:
                raise AuthenticationError("Invalid token")

            now = utcnow()
            if auth_session.is_expired(now):
                session.delete(auth_session)
                session.commit()
                raise SessionExpiredError("Token expired")

            user = session.query(User).filter_by(id=auth_session.user_id).first()
            if user is None:
                raise AuthenticationError("Invalid token")
            if not user.approved:
                raise AccountPendingApprovalError("Account pending approval")

            auth_session.expires = now + timedelta(days=self.session_days)
            user.last_login = now
            session.commit()
            session.refresh(user)
            session.refresh(auth_session)

            token, expires_at = self._generate_jwt_token(user, auth_session.id)
            self._log_event(
                "session_restored",
                user_id=user.id,
                username=user.username,
                ip_address=ip_address,
            )
            return {
                "user": serialize_user(user),
                "token": token,
                "expires_at": expires_at,
            }

    def list_users(self) -> List[Dict[str, Any]]:
        """All users, pending approvals first, then newest"""
        with self.db_service.get_session() as session:
            users = (
                session.query(User)
                .order_by(User.approved.asc(), User.created_at.desc(), User.id.desc())
                .all()
            )
            return [serialize_user(u) for u in users]

    def approve_user(self, user_id: int, approved_by: Optional[int] = None) -> Dict[str, Any]:
        """Approve a pending account"""
        with self.db_service.get_session() as session:
            user = session.query(User).filter_by(id=user_id).first()
            if user is None:
                raise NotFoundError("User not found")

            if not user.approved:
                user.approved = True
                user.approved_at = utcnow()
                session.commit()
                session.refresh(user)
                self.logging_service.log_crud_operation(
                    "approve", "user", user.id, user_id=approved_by
                )

            return serialize_user(user)

    def get_preferences(self, user_id: int) -> List[str]:
        """Saved audience-tag filters"""
        with self.db_service.get_session() as session:
            user = session.query(User).filter_by(id=user_id).first()
            if user is None:
                raise NotFoundError("User not found")
            return list(user.game_type_filters or [])

    def update_preferences(self, user_id: int, game_type_filters: Any) -> List[str]:
        """Replace saved audience-tag filters"""
        if not isinstance(game_type_filters, list):
            raise ValidationError("game_type_filters must be a list")
        filters = normalize_game_types(game_type_filters)

        with self.db_service.get_session() as session:
            user = session.query(User).filter_by(id=user_id).first()
            if user is None:
                raise NotFoundError("User not found")
            user.game_type_filters = filters
            session.commit()

        self.logging_service.log_crud_operation(
            "update", "preferences", user_id, user_id=user_id, filters=filters
        )
        return filters

    def validate_password(self, password: str) -> bool:
        """Validate password strength"""
        if len(password) < 8:
            return False

        if not any(c.isupper() for c in password):
            return False

        if not any(c.islower() for c in password):
            return False

        if not any(c.isdigit() for c in password):
            return False

        if not any(c in "!@#$%^&*()_+-=[]{}|;:,.<>?" for c in password):
            return False

        return True

    def _create_auth_session(
        self, session: Session, user_id: int, now: datetime
    ) -> AuthSession:
        auth_session = AuthSession(
            session_token=generate_session_token(),
            user_id=user_id,
            expires=now + timedelta(days=self.session_days),
        )
        session.add(auth_session)
        session.flush()
        return auth_session

    def _extend_if_needed(self, auth_session: AuthSession, now: datetime) -> bool:
        """Slide the expiry forward once less than the threshold remains"""
        if auth_session.expires - now < timedelta(days=self.refresh_threshold_days):
            auth_session.expires = now + timedelta(days=self.session_days)
            return True
        return False

    def _purge_expired_sessions(self, session: Session, user_id: int, now: datetime):
        session.query(AuthSession).filter(
            AuthSession.user_id == user_id, AuthSession.expires <= now
        ).delete(synchronize_session=False)

    def _generate_jwt_token(self, user: User, session_id: int):
        """Generate JWT token for user, bound to a server-side session"""
        issued_at = datetime.now(timezone.utc)
        expires_at = issued_at + timedelta(minutes=self.token_expiry_minutes)
        payload = {
            "user_id": user.id,
            "username": user.username,
            "role": role_str(user),
            "sid": session_id,
            "exp": expires_at,
            "iat": issued_at,
        }
        token = jwt.encode(payload, self.jwt_secret, algorithm=self.jwt_algorithm)
        return token, expires_at

    def _log_event(
        self,
        event: str,
        user_id: Optional[int] = None,
        username: Optional[str] = None,
        ip_address: Optional[str] = None,
        success: bool = True,
    ):
        """Log authentication event"""
        self.logging_service.log_auth_event(
            event,
            user_id=user_id,
            username=username,
            ip_address=ip_address,
            success=success,
        )


# Global auth service instance
_auth_service: Optional[AuthService] = None


def get_auth_service() -> AuthService:
    """Get the global authentication service instance"""
    global _auth_service
    if _auth_service is None:
        _auth_service = AuthService()
    return _auth_service


def reset_auth_service() -> None:
    """Drop the global auth service so the next call re-reads settings."""
    global _auth_service
    _auth_service = None
