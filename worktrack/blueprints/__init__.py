"""
Shared plumbing for the JSON API blueprints.

Layer contract:
    - No ORM calls in blueprints — all data access goes through the managers.
    - No db.session.commit() in blueprints; each manager call is its own unit
      of work.
    - owner_id always comes from g (set by owner_context middleware).
"""

from flask import current_app, g, jsonify, request

from worktrack.core.exceptions import ValidationError
from worktrack.models import db
from worktrack.services.registry import build_services


def get_services():
    """Managers for the current request, built once around db.session."""
    if "services" not in g:
        g.services = build_services(
            db.session, impact_strategy=current_app.config.get("IMPACT_STRATEGY", "completion_ratio"),
        )
    return g.services


def current_owner() -> str:
    return g.owner_id


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def ok(data, status: int = 200, **extra):
    body = {"success": True, "data": data, **extra}
    return jsonify(body), status


def bool_arg(name: str):
    """Parse an optional true/false query parameter; None when absent."""
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    if raw.lower() in ("true", "1", "yes"):
        return True
    if raw.lower() in ("false", "0", "no"):
        return False
    raise ValidationError(f"Invalid {name}", details={name: "must be true or false"})
