"""Database connection and transaction handling using APSW."""

from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path

import apsw

SCHEMA_PATH = Path(__file__).parent / "schema.sql"


def get_db_path() -> str:
    """Resolve the database path.

    Priority:
      1. DISCOURSE_CONNECTOR_DB environment variable
      2. Flask current_app.config["DATABASE_PATH"] (if in app context)
      3. instance/discourse_connector.sqlite3 relative to project root (fallback)
    """
    import os

    db_path = os.environ.get("DISCOURSE_CONNECTOR_DB")
    if db_path:
        return db_path

    try:
        from flask import current_app

        return current_app.config["DATABASE_PATH"]
    except (RuntimeError, KeyError):
        pass

    source_root = Path(__file__).parent.parent.parent
    return str(source_root / "instance" / "discourse_connector.sqlite3")


def _configure_connection(conn: apsw.Connection) -> None:
    """Apply standard PRAGMAs to a connection."""
    conn.execute("PRAGMA busy_timeout = 5000;")
    conn.execute("PRAGMA foreign_keys = ON;")
    conn.execute("PRAGMA journal_mode = WAL;")


def get_db() -> apsw.Connection:
    """Get the database connection for the current request (Flask context)."""
    from flask import g

    if "db" not in g:
        db_path = get_db_path()
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        g.db = apsw.Connection(db_path)
        _configure_connection(g.db)
    return g.db


def close_db(e: BaseException | None = None) -> None:
    """Close the database connection at the end of the request."""
    from flask import g

    db = g.pop("db", None)
    if db is not None:
        db.close()


# ---------------------------------------------------------------------------
# Flask-context transactions
# ---------------------------------------------------------------------------


@contextmanager
def transaction() -> Generator[apsw.Cursor]:
    """Context manager for database transactions.

    Automatically commits on success, rolls back on exception.
    """
    db = get_db()
    cursor = db.cursor()
    cursor.execute("BEGIN IMMEDIATE;")
    try:
        yield cursor
        cursor.execute("COMMIT;")
    except Exception:
        cursor.execute("ROLLBACK;")
        raise


# ---------------------------------------------------------------------------
# Schema initialisation
# ---------------------------------------------------------------------------


def init_db_at(db_path: str) -> None:
    """Initialize the database schema at the given path.

    Safe to run repeatedly. Works without Flask context.
    """
    import secrets

    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = apsw.Connection(db_path)
    _configure_connection(conn)

    with open(SCHEMA_PATH) as f:
        for _ in conn.execute(f.read()):
            pass

    # Generate secret_key if not exists
    row = conn.execute("SELECT value FROM app_setting WHERE key = 'secret_key'").fetchone()
    if not row:
        new_key = secrets.token_urlsafe(32)
        conn.execute(
            "INSERT OR IGNORE INTO app_setting (key, value, description) VALUES (?, ?, ?)",
            ("secret_key", new_key, "Secret key for signing host session tokens"),
        )

    conn.close()


def init_db() -> None:
    """Initialize the database with the schema (Flask context)."""
    init_db_at(get_db_path())
