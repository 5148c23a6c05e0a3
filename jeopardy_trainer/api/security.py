"""
FastAPI authentication + authorization helpers.

This centralizes:
- Token -> current user dependency (bearer header, then the login cookie)
- The admin route guard
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from jeopardy_trainer.core.models import User
from jeopardy_trainer.core.roles import is_admin
from jeopardy_trainer.core.services.auth import AuthService, get_auth_service
from jeopardy_trainer.core.services.settings_config_service import (
    get_settings_service,
)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def cookie_name() -> str:
    return get_settings_service().get("auth", "cookie_name", "jt_access_token")


def get_request_token(
    request: Request, bearer: Optional[str] = Depends(oauth2_scheme)
) -> Optional[str]:
    """Bearer header wins; browsers fall back to the httpOnly cookie."""
    return bearer or request.cookies.get(cookie_name())


def get_current_user(
    token: Optional[str] = Depends(get_request_token),
    auth_service: AuthService = Depends(get_auth_service),
) -> User:
    user = auth_service.validate_token(token) if token else None
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    """Route guard for account administration"""
    if not is_admin(current_user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return current_user
