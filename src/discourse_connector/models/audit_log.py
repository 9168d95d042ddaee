"""Audit log model."""

from datetime import UTC, datetime

from discourse_connector.db import get_db


def audit_log(
    action: str,
    target: str | None = None,
    details: str | None = None,
    actor: str | None = None,
) -> None:
    """Write to the audit log.

    Inside a request the actor defaults to the current host user.
    """
    if actor is None:
        from flask import g, has_request_context

        if has_request_context() and g.get("user") is not None:
            actor = g.user.username

    db = get_db()
    now = datetime.now(UTC).isoformat()
    db.execute(
        "INSERT INTO audit_log (timestamp, actor, action, target, details) VALUES (?, ?, ?, ?, ?)",
        (now, actor, action, target, details),
    )


def recent_entries(limit: int = 50) -> list[dict]:
    """Return the newest audit entries first."""
    db = get_db()
    rows = db.execute(
        "SELECT id, timestamp, actor, action, target, details "
        "FROM audit_log ORDER BY id DESC LIMIT ?",
        (limit,),
    ).fetchall()
    return [
        {
            "id": r[0],
            "timestamp": r[1],
            "actor": r[2],
            "action": r[3],
            "target": r[4],
            "details": r[5],
        }
        for r in rows
    ]
