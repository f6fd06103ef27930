"""
Audit logging — records account events (sign up, sign in, sign out).

Events go to a dedicated "audit" logger so deployments can route them
separately from access logs.
"""

from __future__ import annotations

import logging

from flask import has_request_context, request

logger = logging.getLogger("audit")


def log_event(action: str, email: str | None = None, detail: str = "") -> None:
    """Emit a structured audit log line for *action*."""
    ip = (request.remote_addr or "") if has_request_context() else ""
    logger.info("audit: %s email=%s detail=%s ip=%s", action, email or "-", detail, ip)
