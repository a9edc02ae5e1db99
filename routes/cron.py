"""
Cron Routes - entry point for the externally scheduled notification sweep.

Recommended schedule: every 15 minutes. The caller authenticates with the
CRON_SECRET_TOKEN either as "Authorization: Bearer <token>" or ?token=<token>.
"""

import hmac
import logging

from flask import Blueprint, current_app, jsonify, request

from services.clock import utc_now
from services.errors import StoreUnavailable
from services.notification_sweep import NotificationSweep

logger = logging.getLogger(__name__)

bp = Blueprint('cron', __name__, url_prefix='/cron')


@bp.route('/review-notifications', methods=['GET', 'POST'])
def review_notifications():
    """
    Run one notification sweep.

    Returns:
        200: {"success": true, "items_due": int, "learners_with_due_items": int,
              "notifications_sent": int, "results": [...], "duration_ms": int}
        401: Missing or wrong token
        500: Token not configured, or the due query failed
    """
    expected_token = current_app.config.get('CRON_SECRET_TOKEN')
    if not expected_token:
        logger.error("CRON_SECRET_TOKEN not configured")
        return jsonify({'success': False, 'error': 'Server configuration error'}), 500

    auth_header = request.headers.get('Authorization', '')
    provided = auth_header.replace('Bearer ', '', 1) if auth_header else request.args.get('token', '')
    if not provided or not hmac.compare_digest(provided, expected_token):
        logger.warning("Unauthorized cron access attempt")
        return jsonify({'success': False, 'error': 'Unauthorized'}), 401

    sweep = NotificationSweep.from_config(
        current_app.config,
        channel=current_app.extensions.get('review_delivery_channel')
    )

    try:
        report = sweep.run(utc_now())
        return jsonify({'success': True, **report.model_dump(mode='json')}), 200

    except StoreUnavailable as e:
        logger.exception("Notification sweep failed")
        return jsonify({
            'success': False,
            'error': 'Failed to send notifications',
            'details': str(e)
        }), 500
