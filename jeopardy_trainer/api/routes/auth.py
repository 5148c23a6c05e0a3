from typing import Optional

from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    HTTPException,
    Request,
    Response,
    status,
)
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import BaseModel, EmailStr

from jeopardy_trainer.api.dependencies import client_ip
from jeopardy_trainer.api.errors import to_http_exception
from jeopardy_trainer.api.security import (
    cookie_name,
    get_current_user,
    get_request_token,
)
from jeopardy_trainer.core.exceptions import JeopardyTrainerException
from jeopardy_trainer.core.models import User
from jeopardy_trainer.core.services.auth import (
    AuthService,
    get_auth_service,
    serialize_user,
)
from jeopardy_trainer.core.services.notification_service import (
    get_notification_service,
)
from jeopardy_trainer.core.services.settings_config_service import (
    get_settings_service,
)

# Models


class UserRegister(BaseModel):
    username: str
    email: EmailStr
    password: str


class PersistentTokenRestore(BaseModel):
    token: Optional[str] = None


router = APIRouter(prefix="/api/auth", tags=["auth"])


def _set_auth_cookie(response: Response, token: str, auth_service: AuthService) -> None:
    response.set_cookie(
        key=cookie_name(),
        value=token,
        httponly=True,
        samesite="lax",
        secure=get_settings_service().getboolean("auth", "cookie_secure", False),
        max_age=auth_service.token_expiry_minutes * 60,
    )


def _token_body(result: dict) -> dict:
    return {
        "access_token": result["token"],
        "token_type": "bearer",
        "expires_at": result["expires_at"].isoformat(),
        "user": result["user"],
    }


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserRegister,
    background_tasks: BackgroundTasks,
    auth_service: AuthService = Depends(get_auth_service),
):
    try:
        user = auth_service.register_user(
            username=user_data.username,
            email=str(user_data.email),
            password=user_data.password,
        )
    except JeopardyTrainerException as e:
        raise to_http_exception(e)

    background_tasks.add_task(
        get_notification_service().send_new_user_notification,
        user["username"],
        user["email"],
        user["id"],
    )
    return {
        "message": "Registration successful! Your account is pending approval. "
        "You'll be able to log in once an administrator approves your account.",
        "user_id": user["id"],
        "pending_approval": True,
    }


@router.post("/login")
async def login(
    request: Request,
    response: Response,
    form_data: OAuth2PasswordRequestForm = Depends(),
    auth_service: AuthService = Depends(get_auth_service),
):
    # Compatible with OAuth2 standard form data; username may also be an email
    try:
        result = auth_service.login_user(
            form_data.username, form_data.password, ip_address=client_ip(request)
        )
    except JeopardyTrainerException as e:
        raise to_http_exception(e)

    _set_auth_cookie(response, result["token"], auth_service)
    return _token_body(result)


@router.post("/logout")
async def logout(
    response: Response,
    token: Optional[str] = Depends(get_request_token),
    auth_service: AuthService = Depends(get_auth_service),
):
    revoked = auth_service.logout(token) if token else False
    response.delete_cookie(cookie_name())
    return {"success": True, "revoked": revoked}


@router.get("/me")
async def read_users_me(current_user: User = Depends(get_current_user)):
    return {
        **serialize_user(current_user),
        "game_type_filters": list(current_user.game_type_filters or []),
    }


@router.get("/persistent-token")
async def get_persistent_token(
    current_user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
):
    """Remember-me token for the signed-in user"""
    try:
        return auth_service.get_or_create_persistent_token(current_user.id)
    except JeopardyTrainerException as e:
        raise to_http_exception(e)


@router.post("/persistent-token")
async def restore_persistent_token(
    body: PersistentTokenRestore,
    request: Request,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
):
    """Exchange a remember-me token for a fresh access token"""
    if not body.token:
        raise HTTPException(status_code=400, detail="Token is required")
    try:
        result = auth_service.restore_session(body.token, ip_address=client_ip(request))
    except JeopardyTrainerException as e:
        raise to_http_exception(e)

    _set_auth_cookie(response, result["token"], auth_service)
    return _token_body(result)
