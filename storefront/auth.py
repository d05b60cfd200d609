from __future__ import annotations

import hmac

import bcrypt
from fastapi import Request

from .config import get_settings
from .errors import AuthenticationError


def verify_password(plain: str, stored: str) -> bool:
    stored = stored or ""
    plain = plain or ""
    try:
        if stored.startswith("$2"):
            return bcrypt.checkpw(plain.encode("utf-8"), stored.encode("utf-8"))
        return hmac.compare_digest(plain.encode("utf-8"), stored.encode("utf-8"))
    except ValueError:
        # malformed hash
        return False


def check_credentials(username: str, password: str) -> bool:
    settings = get_settings()
    user_ok = hmac.compare_digest((username or "").encode("utf-8"), settings.admin_user.encode("utf-8"))
    return user_ok and verify_password(password, settings.admin_password)


def is_admin(request: Request) -> bool:
    return bool(request.session.get("is_admin"))


def require_admin(request: Request) -> None:
    """Dependency for admin-only routes."""
    if not is_admin(request):
        raise AuthenticationError("Admin login required")
