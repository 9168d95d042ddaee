"""Connector user model: links a host user to a Discourse account."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

from discourse_connector.db import get_db, transaction

_COLUMNS = "user_id, connector_id, unique_id, connector_name, created_at, updated_at"


@dataclass
class ConnectorUser:
    user_id: int
    connector_id: str
    unique_id: str
    connector_name: str
    created_at: str
    updated_at: str

    @staticmethod
    def _from_row(row: tuple) -> ConnectorUser:
        return ConnectorUser(
            user_id=int(row[0]),
            connector_id=str(row[1]),
            unique_id=row[2],
            connector_name=row[3],
            created_at=row[4],
            updated_at=row[5],
        )

    @staticmethod
    def get(user_id: int) -> ConnectorUser | None:
        """Get the Discourse identity of a host user."""
        db = get_db()
        row = db.execute(
            f"SELECT {_COLUMNS} FROM connector_user WHERE user_id = ?", (user_id,)
        ).fetchone()
        return ConnectorUser._from_row(row) if row else None

    @staticmethod
    def get_by_connector_id(connector_id: str) -> ConnectorUser | None:
        """Get the host link for a Discourse user ID."""
        db = get_db()
        row = db.execute(
            f"SELECT {_COLUMNS} FROM connector_user WHERE connector_id = ?", (str(connector_id),)
        ).fetchone()
        return ConnectorUser._from_row(row) if row else None

    @staticmethod
    def get_all() -> list[ConnectorUser]:
        """Get every linked identity, ordered by host user."""
        db = get_db()
        rows = db.execute(f"SELECT {_COLUMNS} FROM connector_user ORDER BY user_id").fetchall()
        return [ConnectorUser._from_row(row) for row in rows]

    @staticmethod
    def update_or_create(
        user_id: int, connector_id: str, unique_id: str, connector_name: str
    ) -> ConnectorUser:
        """Create the link for a host user, or refresh it if one exists."""
        now = datetime.now(UTC).isoformat()
        with transaction() as cursor:
            cursor.execute(
                "INSERT INTO connector_user (user_id, connector_id, unique_id, connector_name, "
                "created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?) "
                "ON CONFLICT(user_id) DO UPDATE SET connector_id = excluded.connector_id, "
                "unique_id = excluded.unique_id, connector_name = excluded.connector_name, "
                "updated_at = excluded.updated_at",
                (user_id, str(connector_id), unique_id, connector_name, now, now),
            )
        user = ConnectorUser.get(user_id)
        assert user is not None
        return user

    def rename(self, connector_name: str) -> None:
        """Record a new Discourse username for this link."""
        now = datetime.now(UTC).isoformat()
        with transaction() as cursor:
            cursor.execute(
                "UPDATE connector_user SET connector_name = ?, updated_at = ? WHERE user_id = ?",
                (connector_name, now, self.user_id),
            )
        self.connector_name = connector_name
        self.updated_at = now
