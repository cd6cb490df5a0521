# Overview: Request decorators establishing the caller identity and enforcing role permissions.

from functools import wraps
from flask import request, g, current_app

from .errors import AuthenticationRequired, PermissionDenied
from .permissions import ALL_ROLES, role_has_permission, validate_permission_code


ACTOR_ID_HEADER = "X-Actor-Id"
ACTOR_ROLE_HEADER = "X-Actor-Role"


def _is_authenticated() -> bool:
    return hasattr(g, "actor_id") and hasattr(g, "actor_role")


def require_actor(f):
    """
    Establish caller context from the upstream auth gateway.

    Sets the following Flask g attributes:
    - g.actor_id: opaque integer id of the caller
    - g.actor_role: role string (one of permissions.ALL_ROLES)

    Raises AuthenticationRequired (401) if either header is missing or malformed.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw_id = (request.headers.get(ACTOR_ID_HEADER) or "").strip()
        role = (request.headers.get(ACTOR_ROLE_HEADER) or "").strip().upper()

        if not raw_id.isdigit() or not role:
            raise AuthenticationRequired("Authentication required")

        if role not in ALL_ROLES:
            raise AuthenticationRequired(f"Unknown role: {role}")

        g.actor_id = int(raw_id)
        g.actor_role = role
        return f(*args, **kwargs)

    return decorated_function


def require_permission(permission_code: str):
    """Require the caller's role to grant permission_code; raises PermissionDenied (403)."""
    validate_permission_code(permission_code)

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                raise AuthenticationRequired("Authentication required")

            if not role_has_permission(g.actor_role, permission_code):
                current_app.logger.warning(
                    "Permission denied: actor=%s role=%s permission=%s path=%s",
                    g.actor_id, g.actor_role, permission_code, request.path,
                )
                raise PermissionDenied("Permission denied", required_permission=permission_code)

            return f(*args, **kwargs)

        return decorated_function
    return decorator
