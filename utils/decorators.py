from __future__ import annotations
from functools import wraps
from flask import request, g, current_app

from services.exceptions import Forbidden


def get_auth_service():
    return current_app.extensions["auth_service"]


def get_presented_token() -> str:
    """The Authorization header is taken verbatim as the token."""
    return request.headers.get("Authorization", "").strip()


def jwt_required():
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            token = get_presented_token()
            # Unauthorized propagates to the error handlers
            claims = get_auth_service().authenticate(token)
            g.current_token = token
            g.current_claims = claims
            g.current_user_id = claims.get("sub")
            g.current_user_role = claims.get("role")
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def roles_required(required_roles: list[str]):
    """
    Allow access if the token's role is one of the required roles.
    """
    req = set(required_roles or [])

    def decorator(fn):
        @wraps(fn)
        @jwt_required()
        def wrapper(*args, **kwargs):
            if getattr(g, "current_user_role", None) not in req:
                raise Forbidden("Insufficient role")
            return fn(*args, **kwargs)

        return wrapper

    return decorator
