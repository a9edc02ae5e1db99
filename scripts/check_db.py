"""
Database Health Check Script
Verifies that the review scheduler tables exist and reports row counts
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import create_app
from models import db
from models.activity_event import ActivityEvent
from models.learner import Learner
from models.schedule_entry import ScheduleEntry
from services.clock import utc_now
from sqlalchemy import inspect


def check_database():
    """Check if database is working correctly"""
    app = create_app(os.getenv("FLASK_ENV", "development"))

    with app.app_context():
        try:
            print("=" * 60)
            print("DATABASE HEALTH CHECK")
            print("=" * 60)

            inspector = inspect(db.engine)
            tables = inspector.get_table_names()

            expected_tables = ['learners', 'schedule_entries', 'activity_events']

            missing_tables = set(expected_tables) - set(tables)
            if missing_tables:
                print(f"\n❌ MISSING TABLES: {missing_tables}")
                print("   Run: flask db upgrade")
                return False

            print(f"\n✅ All {len(expected_tables)} expected tables exist")

            print("\n📊 Record Counts:")
            counts = {
                'Learners': Learner.query.count(),
                'Schedule entries': ScheduleEntry.query.count(),
                'Due now': ScheduleEntry.query.filter(ScheduleEntry.next_review_at <= utc_now()).count(),
                'Activity events': ActivityEvent.query.count(),
            }

            for name, count in counts.items():
                print(f"  - {name}: {count}")

            print("\n" + "=" * 60)
            print("✅ DATABASE IS HEALTHY!")
            print("=" * 60)
            return True

        except Exception as e:
            print("\n" + "=" * 60)
            print(f"❌ DATABASE ERROR: {e}")
            print("=" * 60)
            return False


if __name__ == '__main__':
    sys.exit(0 if check_database() else 1)
