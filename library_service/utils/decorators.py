from functools import wraps

from flask import jsonify
from flask_jwt_extended import current_user, verify_jwt_in_request

from library_service.utils.policy import Principal, is_allowed


def current_principal() -> Principal:
    """Principal of the verified request; the user row is re-loaded per request."""
    return Principal(current_user.id, current_user.role)


def permission_required(action):
    """Rejects callers whose role does not grant ``action`` outright.

    Ownership-dependent actions are checked in the service once the record is loaded.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            if not is_allowed(current_principal(), action):
                return jsonify({"error": "Insufficient permissions"}), 403
            return fn(*args, **kwargs)
        return wrapper
    return decorator
