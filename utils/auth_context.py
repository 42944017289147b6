from functools import wraps

from flask import current_app, g, jsonify, request

from services.actor import Actor

TRUE_VALUES = {"1", "true", "yes", "on"}


def load_current_actor():
    """
    The gateway in front of this service authenticates the caller and passes
    who they are in trusted headers. Nothing here verifies them.
    """
    id_header = current_app.config.get("ACTOR_ID_HEADER", "X-Actor-Id")
    elevated_header = current_app.config.get("ACTOR_ELEVATED_HEADER", "X-Actor-Elevated")

    actor_id = (request.headers.get(id_header) or "").strip()
    if not actor_id:
        g.actor = None
        return
    elevated = (request.headers.get(elevated_header) or "").strip().lower() in TRUE_VALUES
    g.actor = Actor(actor_id=actor_id, is_elevated=elevated)


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "actor", None) is None:
            return jsonify(error="Authentication required"), 401
        return fn(*args, **kwargs)
    return wrapper
