"""Set mapping model: which Discourse groups host users may hold."""

from discourse_connector.db import get_db, transaction

PUBLIC = "public"
USER = "user"


class SetMapping:
    @staticmethod
    def grant_public(set_id: str) -> bool:
        """Allow every host user to hold a set. Returns False if already granted."""
        return SetMapping._grant(PUBLIC, 0, set_id)

    @staticmethod
    def grant_user(user_id: int, set_id: str) -> bool:
        """Allow a single host user to hold a set. Returns False if already granted."""
        return SetMapping._grant(USER, user_id, set_id)

    @staticmethod
    def _grant(entity_type: str, entity_id: int, set_id: str) -> bool:
        with transaction() as cursor:
            cursor.execute(
                "INSERT OR IGNORE INTO set_mapping (entity_type, entity_id, set_id) VALUES (?, ?, ?)",
                (entity_type, entity_id, str(set_id)),
            )
            row = cursor.execute("SELECT changes()").fetchone()
            return bool(row and row[0] > 0)

    @staticmethod
    def revoke(entity_type: str, entity_id: int, set_id: str) -> bool:
        """Drop a grant. Returns True if one was removed."""
        with transaction() as cursor:
            cursor.execute(
                "DELETE FROM set_mapping WHERE entity_type = ? AND entity_id = ? AND set_id = ?",
                (entity_type, entity_id, str(set_id)),
            )
            row = cursor.execute("SELECT changes()").fetchone()
            return bool(row and row[0] > 0)

    @staticmethod
    def allowed_sets(user_id: int) -> list[str]:
        """Get the set IDs a host user may hold (public grants plus their own)."""
        db = get_db()
        rows = db.execute(
            "SELECT DISTINCT set_id FROM set_mapping "
            "WHERE entity_type = ? OR (entity_type = ? AND entity_id = ?) ORDER BY set_id",
            (PUBLIC, USER, user_id),
        ).fetchall()
        return [str(row[0]) for row in rows]

    @staticmethod
    def get_all() -> list[dict]:
        """List every grant, public ones first."""
        db = get_db()
        rows = db.execute(
            "SELECT entity_type, entity_id, set_id FROM set_mapping "
            "ORDER BY entity_type, entity_id, set_id"
        ).fetchall()
        return [{"entity_type": r[0], "entity_id": r[1], "set_id": r[2]} for r in rows]
