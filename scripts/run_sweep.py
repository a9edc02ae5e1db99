"""
Notification Sweep Script
Runs one due-review notification sweep; schedule it from crontab, e.g.

    */15 * * * * cd /srv/review-scheduler && python scripts/run_sweep.py
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import create_app
from services.clock import utc_now
from services.errors import StoreUnavailable
from services.notification_sweep import NotificationSweep


def run_sweep():
    app = create_app(os.getenv("FLASK_ENV", "development"))

    with app.app_context():
        sweep = NotificationSweep.from_config(
            app.config,
            channel=app.extensions.get('review_delivery_channel')
        )
        try:
            report = sweep.run(utc_now())
        except StoreUnavailable as e:
            print(f"❌ Sweep failed: {e}")
            return False

        print(
            f"🔔 {report.items_due} items due for {report.learners_with_due_items} learners, "
            f"{report.notifications_sent} notifications sent in {report.duration_ms}ms"
        )
        for result in report.results:
            if not result.delivered:
                print(f"  ⏭️ learner {result.learner_id}: {result.reason}")
        return True


if __name__ == '__main__':
    sys.exit(0 if run_sweep() else 1)
