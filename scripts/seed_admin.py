#!/usr/bin/env python3
"""
Create or promote the initial admin account.

Security behavior:
- If JT_INITIAL_ADMIN_PASSWORD is set, that value is used (min length: 12).
- Otherwise, a cryptographically random password is generated and printed once.
- The admin is always approved; an existing account is promoted in place.
"""

import os
import secrets
import string

from jeopardy_trainer.core.models import User, UserRole, utcnow
from jeopardy_trainer.core.security import hash_password
from jeopardy_trainer.core.services.database import DatabaseService

SPECIALS = "!@#$%^&*()-_=+"


def _generate_password(length: int = 20) -> str:
    # One of each class so the password also satisfies the login policy
    required = [
        secrets.choice(string.ascii_uppercase),
        secrets.choice(string.ascii_lowercase),
        secrets.choice(string.digits),
        secrets.choice(SPECIALS),
    ]
    alphabet = string.ascii_letters + string.digits + SPECIALS
    rest = [secrets.choice(alphabet) for _ in range(length - len(required))]
    chars = required + rest
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)


def _resolve_admin_password() -> tuple[str, bool]:
    configured = os.getenv("JT_INITIAL_ADMIN_PASSWORD", "").strip()
    if configured:
        if len(configured) < 12:
            raise ValueError("JT_INITIAL_ADMIN_PASSWORD must be at least 12 characters.")
        return configured, True
    return _generate_password(), False


def seed_admin_user() -> int:
    """Ensure an approved admin exists."""
    print("Seeding database with initial admin user...")

    username = os.getenv("JT_INITIAL_ADMIN_USERNAME", "admin").strip() or "admin"
    email = (
        os.getenv("JT_INITIAL_ADMIN_EMAIL", "admin@example.invalid").strip().lower()
        or "admin@example.invalid"
    )

    db_service = DatabaseService()
    session = db_service.get_session()

    try:
        initial_password, password_from_env = _resolve_admin_password()
        admin_user = session.query(User).filter(User.username == username).first()

        if admin_user:
            admin_user.role = UserRole.ADMIN
            if not admin_user.approved:
                admin_user.approved = True
                admin_user.approved_at = utcnow()
            if password_from_env:
                admin_user.password_hash = hash_password(initial_password)
                admin_user.email = email
            session.commit()
            print(f"[OK] Existing user '{username}' is an approved admin.")
            if password_from_env:
                print("  Password: (from JT_INITIAL_ADMIN_PASSWORD)")
            return 0

        admin_user = User(
            username=username,
            email=email,
            password_hash=hash_password(initial_password),
            role=UserRole.ADMIN,
            approved=True,
            approved_at=utcnow(),
            game_type_filters=[],
        )
        session.add(admin_user)
        session.commit()

        print("[OK] Initial admin user created successfully!")
        print(f"  Username: {username}")
        if password_from_env:
            print("  Password: (from JT_INITIAL_ADMIN_PASSWORD)")
        else:
            print(f"  Generated Password: {initial_password}")
        print(f"  Email: {email}")
        print("  Action Required: Sign in and rotate credentials immediately.")
        return 0

    except Exception as e:
        print(f"[FAIL] Error creating admin user: {e}")
        import traceback

        traceback.print_exc()
        session.rollback()
        return 1
    finally:
        session.close()
        db_service.close()


if __name__ == "__main__":
    raise SystemExit(seed_admin_user())
