# compreg/utils/decorators.py
from dataclasses import dataclass
from functools import wraps

from flask import current_app, jsonify
from flask_jwt_extended import get_jwt, get_jwt_identity, jwt_required

from compreg.registration.roles import has_permission, parse_role


@dataclass(frozen=True)
class Identity:
    user_id: int
    role: str


def inject_identity(view_func):
    """
    Verify the JWT and pass the caller's Identity(user_id, role) to the view
    as the ``identity`` keyword argument.
    """
    @wraps(view_func)
    @jwt_required()
    def wrapper(*args, **kwargs):
        try:
            user_id = int(get_jwt_identity())
        except (TypeError, ValueError):
            return jsonify({"success": False, "error": "Invalid token subject"}), 401
        role = get_jwt().get(current_app.config.get("JWT_ROLE_CLAIM", "role"), "")
        kwargs["identity"] = Identity(user_id=user_id, role=role)
        return view_func(*args, **kwargs)
    return wrapper


def permission_required(permission):
    """Reject callers whose role lacks ``permission`` with a 403."""
    def decorator(view_func):
        @wraps(view_func)
        @inject_identity
        def wrapper(*args, **kwargs):
            identity = kwargs["identity"]
            if parse_role(identity.role) is None or not has_permission(identity.role, permission):
                return jsonify({"success": False, "error": "Insufficient permissions",
                                "code": "PERMISSION_DENIED"}), 403
            return view_func(*args, **kwargs)
        return wrapper
    return decorator
