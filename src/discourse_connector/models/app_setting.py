"""App settings model (key-value store)."""

from discourse_connector.config import DRIVER_SETTINGS
from discourse_connector.db import get_db, transaction


class AppSetting:
    @staticmethod
    def get(key: str) -> str | None:
        """Get a setting value by key."""
        db = get_db()
        row = db.execute("SELECT value FROM app_setting WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    @staticmethod
    def set(key: str, value: str, description: str | None = None) -> None:
        """Set a setting value, creating or updating as needed."""
        with transaction() as cursor:
            if description is not None:
                cursor.execute(
                    "INSERT INTO app_setting (key, value, description) VALUES (?, ?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value, "
                    "description = excluded.description",
                    (key, value, description),
                )
            else:
                cursor.execute(
                    "INSERT INTO app_setting (key, value, description) VALUES (?, ?, '') "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                    (key, value),
                )

    @staticmethod
    def get_driver_settings() -> dict[str, str | None] | None:
        """Get the stored Discourse connection settings.

        Returns None when none of them has ever been stored.
        """
        settings = {name: AppSetting.get(key) for name, key in DRIVER_SETTINGS.items()}
        if all(value is None for value in settings.values()):
            return None
        return settings
