"""Migration: Add enrichment columns to posture and gait sessions.

Adds raw_data/data_points to posture_sessions, the IMU phase and force
columns to gait_sessions, and the (subject_id, timestamp) indexes used by
history queries.

Idempotent: safe to run multiple times.

Run with: python -m backend.migrations.001_session_enrichment
"""
import sqlite3
import sys
from pathlib import Path

# Database path at repo root
REPO_ROOT = Path(__file__).resolve().parent.parent.parent
DB_PATH = REPO_ROOT / "biomech.db"

NEW_COLUMNS = {
    "posture_sessions": [
        ("raw_data", "TEXT"),
        ("data_points", "INTEGER"),
    ],
    "gait_sessions": [
        ("stance_phase", "REAL"),
        ("swing_phase", "REAL"),
        ("double_support_phase", "REAL"),
        ("heel_strike_force", "REAL"),
        ("toe_off_force", "REAL"),
    ],
}

NEW_INDEXES = {
    "ix_posture_sessions_subject_ts": ("posture_sessions", "subject_id, timestamp"),
    "ix_gait_sessions_subject_ts": ("gait_sessions", "subject_id, timestamp"),
}


def column_exists(cursor: sqlite3.Cursor, table_name: str, column_name: str) -> bool:
    """Check if a column exists in a table."""
    cursor.execute(f"PRAGMA table_info({table_name})")
    columns = [row[1] for row in cursor.fetchall()]
    return column_name in columns


def table_exists(cursor: sqlite3.Cursor, table_name: str) -> bool:
    """Check if a table exists."""
    cursor.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
        (table_name,),
    )
    return cursor.fetchone() is not None


def index_exists(cursor: sqlite3.Cursor, index_name: str) -> bool:
    """Check if an index exists."""
    cursor.execute(
        "SELECT name FROM sqlite_master WHERE type='index' AND name=?",
        (index_name,),
    )
    return cursor.fetchone() is not None


def migrate(db_path: Path | None = None):
    """Run the migration against the given DB file (defaults to DB_PATH)."""
    path = db_path or DB_PATH

    if not path.exists():
        print(f"Database not found at {path}")
        print("No migration needed; database will be created with the new schema on first run.")
        return

    conn = sqlite3.connect(str(path))
    cursor = conn.cursor()

    try:
        for table, columns in NEW_COLUMNS.items():
            if not table_exists(cursor, table):
                print(f"Table {table} does not exist; will be created on app startup.")
                continue
            for column, column_type in columns:
                if column_exists(cursor, table, column):
                    print(f"Column {column} already exists in {table}, skipping.")
                    continue
                print(f"Adding {column} column to {table}...")
                cursor.execute(f"ALTER TABLE {table} ADD COLUMN {column} {column_type}")
                print("  Done.")

        for index_name, (table, columns) in NEW_INDEXES.items():
            if not table_exists(cursor, table):
                continue
            if index_exists(cursor, index_name):
                print(f"Index {index_name} already exists, skipping.")
                continue
            print(f"Creating index {index_name}...")
            cursor.execute(f"CREATE INDEX {index_name} ON {table} ({columns})")
            print("  Done.")

        conn.commit()
        print("\nMigration 001_session_enrichment completed successfully!")

    except Exception as e:
        conn.rollback()
        print(f"Migration failed: {e}")
        sys.exit(1)
    finally:
        conn.close()


if __name__ == "__main__":
    migrate()
