"""
Database initialization, migration, and seeding utilities.
"""
import json
import sys
import argparse
from pathlib import Path
from shared.models.entities import Base, Student, TutorAvailability, TutorBreak, User
from database import get_db_manager


def migrate():
    """Create all database tables."""
    print("Creating database tables...")
    db_manager = get_db_manager()

    try:
        Base.metadata.create_all(bind=db_manager.engine)
        print("✓ Tables created")
    except Exception as e:
        print(f"Error during migration: {e}")
        raise


def seed(seed_file_path: str):
    """
    Load users, students and tutor schedules from a JSON file.

    Expected keys: users, students, availability, breaks; each a list of
    row dicts using the column names of the matching table. Existing rows
    with the same id are replaced.
    """
    print(f"Loading seed data from {seed_file_path}...")

    path = Path(seed_file_path)
    if not path.exists():
        print(f"Error: Seed file not found: {seed_file_path}")
        return

    with open(path, 'r') as f:
        data = json.load(f)

    db = get_db_manager().get_session()
    tables = (
        ("users", User),
        ("students", Student),
        ("availability", TutorAvailability),
        ("breaks", TutorBreak),
    )

    try:
        for key, model in tables:
            for item in data.get(key, []):
                db.merge(model(**item))
            db.flush()
            print(f"✓ {key}: {len(data.get(key, []))} rows")
        db.commit()
    except Exception as e:
        print(f"Error seeding data: {e}")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Database management CLI")
    parser.add_argument("--migrate", action="store_true", help="Create database tables")
    parser.add_argument("--seed", type=str, help="Seed users, students and schedules from JSON file")

    args = parser.parse_args()

    if args.migrate:
        migrate()
    elif args.seed:
        seed(args.seed)
    else:
        print("Usage:")
        print("  python db.py --migrate            # Create tables")
        print("  python db.py --seed <json_file>   # Load users, students and schedules")
        sys.exit(1)
