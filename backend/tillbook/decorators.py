# Overview: Request and permission decorators for API routes.

from __future__ import annotations

from dataclasses import dataclass
from functools import wraps

from flask import request, jsonify

from .services import session_service


@dataclass(frozen=True)
class RequestContext:
    """
    Who is making the request.

    Passed to the view as the `ctx` keyword argument; services receive the
    fields they need as plain arguments.
    """
    user_id: int
    username: str
    is_admin: bool


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid bearer session.

    Returns 401 if the Authorization header is missing, or the token is
    unknown, expired, revoked or belongs to a deactivated user.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        user = session_service.validate_session(token)
        if not user:
            return jsonify({"error": "Invalid or expired token"}), 401

        kwargs["ctx"] = RequestContext(user_id=user.id, username=user.username, is_admin=bool(user.is_admin))
        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """Must be stacked under @require_auth."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        ctx = kwargs.get("ctx")
        if ctx is None:
            return jsonify({"error": "Authentication required"}), 401
        if not ctx.is_admin:
            return jsonify({"error": "Admin access required"}), 403
        return f(*args, **kwargs)

    return decorated_function
