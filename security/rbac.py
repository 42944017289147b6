from functools import wraps
from flask import g, jsonify


def is_elevated() -> bool:
    actor = getattr(g, "actor", None)
    return bool(actor and actor.is_elevated)


def require_elevated(fn):
    """
    Usage: @require_elevated
    """
    @wraps(fn)
    def wrapper(*args, **kwargs):
        actor = getattr(g, "actor", None)
        if actor is None:
            return jsonify(error="Authentication required"), 401
        if not actor.is_elevated:
            return jsonify(error="Forbidden"), 403
        return fn(*args, **kwargs)
    return wrapper
