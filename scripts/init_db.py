#!/usr/bin/env python3
"""Create database tables and seed the category and zone lookups."""
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from marketplace import create_app
from marketplace.extensions import db
from marketplace.models import Category, Zone

DEFAULT_CATEGORIES = ["Fitness", "Yoga", "Pilates", "Running", "Nutrition", "Functional training"]
DEFAULT_ZONES = ["Online", "Palermo", "Belgrano", "Recoleta", "Caballito", "Nunez"]


def seed_lookups() -> None:
    existing_categories = {name for (name,) in db.session.query(Category.name)}
    existing_zones = {name for (name,) in db.session.query(Zone.name)}

    db.session.add_all(
        Category(name=name) for name in DEFAULT_CATEGORIES if name not in existing_categories
    )
    db.session.add_all(Zone(name=name) for name in DEFAULT_ZONES if name not in existing_zones)
    db.session.commit()


def init_database():
    app = create_app()
    with app.app_context():
        db.create_all()
        seed_lookups()
        print("Database tables initialized and lookups seeded")


if __name__ == "__main__":
    init_database()
