"""Utility script to reset the local grocery bot database.

Usage:
    python scripts/reset_local_db.py

Environment:
    Ensure DATABASE_URL (and other required settings) are available in
    the current shell before running this script.
"""

from __future__ import annotations

from slack_grocery_bot import models  # noqa: F401  (register mappers)
from slack_grocery_bot.db import Base, get_engine


def reset_database() -> None:
    engine = get_engine()
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    print(f"Dropped and recreated {len(Base.metadata.tables)} tables.")


if __name__ == "__main__":
    reset_database()
