# scripts/maintenance/reset_visitors.py
"""
Out-of-band maintenance: delete every visitor record and restart ids at 1.
Not reachable over HTTP. Stop the backend before running it.
Usage: python scripts/maintenance/reset_visitors.py [--yes]
"""

import argparse
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from sqlalchemy import inspect, text
from app.config import settings
from app.database import SessionLocal, create_tables, engine
from app.models.visitor import Visitor


def reset_visitors(db) -> int:
    """Delete all visitors and reset the autoincrement sequence. Returns rows deleted."""
    deleted = db.query(Visitor).delete()
    if engine.dialect.name == "sqlite":
        if "sqlite_sequence" in inspect(engine).get_table_names():
            db.execute(text("DELETE FROM sqlite_sequence WHERE name = 'visitors'"))
    elif engine.dialect.name == "postgresql":
        db.execute(text("ALTER SEQUENCE visitors_id_seq RESTART WITH 1"))
    db.commit()
    return deleted


def main():
    parser = argparse.ArgumentParser(description="Delete all visitor entries")
    parser.add_argument("--yes", action="store_true", help="skip the confirmation prompt")
    args = parser.parse_args()

    print(f"📡 Database: {settings.DATABASE_URL}")
    if not args.yes and input("Delete ALL visitor entries? [y/N] ").strip().lower() != "y":
        print("Aborted.")
        return

    create_tables()
    db = SessionLocal()
    try:
        deleted = reset_visitors(db)
    except Exception as e:
        db.rollback()
        print(f"❌ Error deleting entries: {e}")
        sys.exit(1)
    finally:
        db.close()
    print(f"✅ Deleted {deleted} visitor entries; ids restart at 1")


if __name__ == "__main__":
    main()
