#!/usr/bin/env python3
"""
One-shot database initialisation script.

Creates all tables defined in the ORM models.  Safe to run multiple times —
``create_all`` is a no-op for tables that already exist.

Usage:
    python -m scripts.init_db          # from backend/
    python backend/scripts/init_db.py  # from project root
"""

from sqlalchemy import inspect
from sqlalchemy.engine import make_url

from storefront.db.connection import get_engine
from storefront.db.models import Base


def main() -> None:
    engine = get_engine()
    print(f"Database URL: {make_url(engine.url).render_as_string(hide_password=True)}")

    print("Creating tables …")
    Base.metadata.create_all(bind=engine)

    inspector = inspect(engine)
    tables = inspector.get_table_names()
    print(f"Tables present ({len(tables)}):")
    for t in sorted(tables):
        print(f"  • {t}")

    print("\nDatabase initialisation complete.")


if __name__ == "__main__":
    main()
