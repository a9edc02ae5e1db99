"""
Progress Routes - streaks, daily goals, badges and the activity calendar.

Every view is derived from the same activity log, so they always agree.
"""

import logging
from datetime import date, timedelta

from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required, current_user

from services.activity_tracker import ActivityTracker
from services.clock import parse_timestamp, utc_now
from services.errors import NotFound, StoreUnavailable

logger = logging.getLogger(__name__)

bp = Blueprint('progress', __name__, url_prefix='/progress')


def _tracker() -> ActivityTracker:
    return ActivityTracker.from_config(current_app.config)


@bp.route('/test')
def test():
    return jsonify({'message': 'Progress blueprint working'})


@bp.route('/activity', methods=['POST'])
@login_required
def record_activity():
    """
    Record a study activity.

    Request Body:
        {
            "kind": "minute-studied",   # word-reviewed, minute-studied, question-answered, lesson-completed
            "quantity": 10,             # optional, default 1
            "occurred_at": "2024-01-01T10:00:00Z"   # optional, default now
        }

    Returns:
        201: {"success": true}
        400: Unknown kind, bad quantity, or future-dated timestamp
    """
    data = request.get_json(silent=True)
    if not data or not data.get('kind'):
        return jsonify({'success': False, 'error': 'Missing required field: kind'}), 400

    now = utc_now()
    try:
        occurred_at = parse_timestamp(data['occurred_at']) if data.get('occurred_at') else now
        _tracker().record_activity(
            current_user.id,
            data['kind'],
            data.get('quantity', 1),
            occurred_at,
            now
        )
        return jsonify({'success': True}), 201

    except ValueError as e:
        return jsonify({'success': False, 'error': str(e)}), 400
    except NotFound as e:
        return jsonify({'success': False, 'error': str(e)}), 404
    except StoreUnavailable:
        logger.exception(f"Failed to record activity for learner_id={current_user.id}")
        return jsonify({'success': False, 'error': "Couldn't save activity. Please try again."}), 503


@bp.route('/streak', methods=['GET'])
@login_required
def get_streak():
    try:
        stats = _tracker().get_streak_stats(current_user.id, utc_now())
        return jsonify({'success': True, 'data': stats.model_dump(mode='json')}), 200

    except NotFound as e:
        return jsonify({'success': False, 'error': str(e)}), 404
    except StoreUnavailable:
        logger.exception(f"Failed to load streak for learner_id={current_user.id}")
        return jsonify({'success': False, 'error': "Couldn't load streak"}), 503


@bp.route('/daily-goals', methods=['GET'])
@login_required
def get_daily_goals():
    try:
        progress = _tracker().get_daily_goal_progress(current_user.id, utc_now())
        return jsonify({'success': True, 'data': progress.model_dump(mode='json')}), 200

    except NotFound as e:
        return jsonify({'success': False, 'error': str(e)}), 404
    except StoreUnavailable:
        logger.exception(f"Failed to load daily goals for learner_id={current_user.id}")
        return jsonify({'success': False, 'error': "Couldn't load daily goals"}), 503


@bp.route('/badges', methods=['GET'])
@login_required
def get_badges():
    """
    Earned badges.

    Returns:
        200: {"success": true, "data": {"total": int, "by_category": {...},
              "recent_badges": [...], "badges": [...]}}
    """
    try:
        stats = _tracker().get_badge_stats(current_user.id, utc_now())
        return jsonify({'success': True, 'data': stats.model_dump(mode='json')}), 200

    except NotFound as e:
        return jsonify({'success': False, 'error': str(e)}), 404
    except StoreUnavailable:
        logger.exception(f"Failed to load badges for learner_id={current_user.id}")
        return jsonify({'success': False, 'error': "Couldn't load badges"}), 503


@bp.route('/calendar', methods=['GET'])
@login_required
def get_calendar():
    """
    Per-day activity totals.

    Query Parameters:
        start (YYYY-MM-DD, optional): Defaults to 29 days before today
        end (YYYY-MM-DD, optional): Defaults to today

    Returns:
        200: {"success": true, "data": {"2024-01-01": {"word-reviewed": 3, ...}, ...}}
    """
    today = utc_now().date()
    try:
        end = date.fromisoformat(request.args['end']) if request.args.get('end') else today
        start = date.fromisoformat(request.args['start']) if request.args.get('start') else end - timedelta(days=29)
        if (end - start).days > 366:
            return jsonify({'success': False, 'error': 'Date range must not exceed one year'}), 400

        calendar = _tracker().get_activity_calendar(current_user.id, start, end)
        return jsonify({
            'success': True,
            'data': {day.isoformat(): totals for day, totals in calendar.items()}
        }), 200

    except ValueError as e:
        return jsonify({'success': False, 'error': str(e)}), 400
    except NotFound as e:
        return jsonify({'success': False, 'error': str(e)}), 404
    except StoreUnavailable:
        logger.exception(f"Failed to load activity calendar for learner_id={current_user.id}")
        return jsonify({'success': False, 'error': "Couldn't load activity calendar"}), 503
