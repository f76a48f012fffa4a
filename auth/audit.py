"""
auth/audit.py -- Fire-and-forget activity audit sink.

The auth core reports session events (login, login_failed, token_refreshed,
refresh_denied, logout) to an AuditSink. The sink is a collaborator the core
never depends on for correctness: notify() logs and drops any exception the
sink raises, so a broken audit pipeline cannot fail a login.

Events never carry tokens, passwords or hashes. Failed logins carry the email
domain only, never the full address.

LoggingAuditSink is the default: one structured log line per event on the
"sessionauth.audit" logger, which deployments can route to their log pipeline.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

logger = logging.getLogger("sessionauth.audit")


class AuditSink(Protocol):
    def record(self, event: str, user_id: str | None, **details: Any) -> None: ...


class LoggingAuditSink:
    """Write each event as a single INFO line."""

    def record(self, event: str, user_id: str | None, **details: Any) -> None:
        extras = " ".join(f"{k}={v}" for k, v in sorted(details.items()))
        logger.info("audit event=%s user_id=%s %s", event, user_id or "-", extras)


def notify(sink: AuditSink | None, event: str, user_id: str | None, **details: Any) -> None:
    """Deliver an event to sink without letting sink failures propagate."""
    if sink is None:
        return
    try:
        sink.record(event, user_id, **details)
    except Exception:
        logger.exception("Audit sink failed to record %s; continuing", event)


def email_domain(email: str) -> str:
    _, _, domain = email.rpartition("@")
    return domain.lower() or "-"
