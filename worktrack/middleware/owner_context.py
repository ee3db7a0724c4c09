"""
Owner Context Middleware — resolves the calling identity for API requests.

Authentication happens upstream (gateway / identity provider). The
authenticated identity arrives in a trusted header (config OWNER_HEADER,
default ``X-Owner-Id``); this middleware copies it to ``g.owner_id`` so every
service call can be owner-scoped.

Requests under /api/v1/ without the header are rejected with 401, except the
paths in OWNER_SKIP_PREFIXES.

Chain order:
  timing.py  →  owner_context.py  →  route handler
"""

import logging

from flask import g, request

from worktrack.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# Paths that skip owner context (unauthenticated paths only)
OWNER_SKIP_PREFIXES = (
    "/api/v1/health",
)


def init_owner_context(app):
    """Register owner context middleware as a before_request hook."""
    header = app.config.get("OWNER_HEADER", "X-Owner-Id")

    @app.before_request
    def _owner_context():
        g.owner_id = None

        if not request.path.startswith("/api/v1/"):
            return None
        for prefix in OWNER_SKIP_PREFIXES:
            if request.path.startswith(prefix):
                return None

        owner_id = (request.headers.get(header) or "").strip()
        if not owner_id:
            logger.info("Rejected request without %s header: %s %s", header, request.method, request.path)
            return api_error(E.UNAUTHORIZED, "Owner identity is required")

        g.owner_id = owner_id
        return None
