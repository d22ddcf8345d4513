# Overview: Permission decorator for API routes.

from functools import wraps
from flask import current_app, jsonify, request


def current_actor() -> str:
    """Identity recorded on sync notifications; set by the upstream auth layer."""
    return request.headers.get("X-User-Id") or "system"


def require_permission(permission_code: str):
    """
    Require a specific permission.

    Authorization itself lives outside this service: the check is delegated to
    the PERMISSION_CHECKER callable in app config, called as
    checker(permission_code) -> bool. With no checker configured, every
    request is allowed.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            checker = current_app.config.get("PERMISSION_CHECKER")
            if checker is not None and not checker(permission_code):
                current_app.logger.warning(
                    "Permission denied: %s %s requires %s (actor=%s)",
                    request.method, request.path, permission_code, current_actor(),
                )
                return jsonify({
                    "error": "Permission denied",
                    "required_permission": permission_code,
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
