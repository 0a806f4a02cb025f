"""
Session Context Middleware — who is acting, and under which role.

The acting role is chosen locally by the user (a demo/testing convenience)
and is independent of the authenticated identity, so it travels as its own
header. This middleware only builds the context; services receive it as an
explicit argument and never read ``flask.g`` themselves.

Headers:
  X-User         — identity email (from the identity provider)
  X-User-Name    — display name
  X-Acting-Role  — role key into the capability table

Chain order:
  timing.py  →  session_context.py  →  route handler
"""

import logging
from dataclasses import dataclass

from flask import g, request

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionContext:
    """Identity plus the acting role for one request or UI session."""
    email: str = ""
    full_name: str = ""
    acting_role: str = ""

    def to_dict(self) -> dict:
        return {
            "email": self.email,
            "full_name": self.full_name,
            "acting_role": self.acting_role,
        }


def context_from_headers(headers) -> SessionContext:
    """Build a SessionContext from request headers."""
    return SessionContext(
        email=(headers.get("X-User") or "").strip(),
        full_name=(headers.get("X-User-Name") or "").strip(),
        acting_role=(headers.get("X-Acting-Role") or "").strip(),
    )


def current_context() -> SessionContext:
    """Return the context for the active request (empty outside a request)."""
    return getattr(g, "session_ctx", None) or SessionContext()


def init_session_context(app):
    """Register session context middleware as a before_request hook."""

    @app.before_request
    def _session_context():
        g.session_ctx = None
        if not request.path.startswith("/api/v1/"):
            return None
        g.session_ctx = context_from_headers(request.headers)
        return None

    logger.info("Session context middleware installed")
