"""
Account roles

Players hold ``user``; administrators hold ``admin`` and may list accounts
and approve pending registrations. Roles are stored as ``UserRole`` and cross
the API (JWT claims, JSON bodies) as lowercase strings.
"""

from typing import Any, Optional

from .models import UserRole


def parse_user_role(value: Any) -> Optional[UserRole]:
    """``UserRole`` from an enum, ``"admin"``, ``" ADMIN "`` or ``"UserRole.ADMIN"``.

    Anything else (unknown names, ``None``, other types) gives ``None``.
    """
    if isinstance(value, UserRole):
        return value
    if not isinstance(value, str):
        return None
    name = value.strip().rsplit(".", 1)[-1].lower()
    try:
        return UserRole(name)
    except ValueError:
        return None


def _role_of(user_or_role: Any) -> Optional[UserRole]:
    return parse_user_role(getattr(user_or_role, "role", user_or_role))


def role_str(user_or_role: Any) -> str:
    """Lowercase role of a user or role value; "" when it is not a known role"""
    role = _role_of(user_or_role)
    return role.value if role else ""


def is_admin(user_or_role: Any) -> bool:
    return _role_of(user_or_role) == UserRole.ADMIN
