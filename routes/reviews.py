"""
Review Routes - Endpoints for the spaced-repetition review schedule.

This module provides API endpoints for:
- POST /reviews/record - Record a review and reschedule the item
- GET /reviews/due - Items due now, hardest first
- GET /reviews/upcoming - Items becoming due within the next N hours
- GET /reviews/stats - Review dashboard counts
- POST /reviews/sync - Create due-now entries for items never seen before
- POST /reviews/uncomplete - Undo an accidental review
"""

import logging
from datetime import timedelta

from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user

from services.clock import utc_now
from services.errors import NotFound, StoreUnavailable
from services.scheduler import get_scheduler

logger = logging.getLogger(__name__)

bp = Blueprint('reviews', __name__, url_prefix='/reviews')


@bp.route('/test')
def test():
    return jsonify({'message': 'Reviews blueprint working'})


@bp.route('/record', methods=['POST'])
@login_required
def record_review():
    """
    Record a review outcome.

    Request Body:
        {
            "item_key": "lucid",
            "difficulty": 2,            # 0-3 or "wait"/"easy"/"medium"/"hard"
            "item_kind": "word",        # optional, "word" or "lesson"
            "recalled": true            # optional, JSON boolean or a JSON number in [0, 1];
                                        # strings such as "1" are rejected
        }

    Returns:
        200: {"success": true, "entry": {...}}
        400: Invalid difficulty / item / outcome
        404: Unknown learner
        503: Store unavailable; the review was NOT saved
    """
    data = request.get_json(silent=True)
    if not data:
        return jsonify({'success': False, 'error': 'No JSON data provided'}), 400

    item_key = data.get('item_key')
    difficulty = data.get('difficulty')
    if not item_key or difficulty is None:
        return jsonify({'success': False, 'error': 'Missing required fields: item_key, difficulty'}), 400

    try:
        entry = get_scheduler().record_review(
            learner_id=current_user.id,
            item_key=item_key,
            difficulty=difficulty,
            now=utc_now(),
            item_kind=data.get('item_kind', 'word'),
            recalled=data.get('recalled')
        )
        return jsonify({'success': True, 'entry': entry.to_dict()}), 200

    except ValueError as e:
        return jsonify({'success': False, 'error': str(e)}), 400
    except NotFound as e:
        return jsonify({'success': False, 'error': str(e)}), 404
    except StoreUnavailable:
        logger.exception(f"Failed to record review for learner_id={current_user.id}")
        return jsonify({'success': False, 'error': "Couldn't save your review. Please try again."}), 503


@bp.route('/due', methods=['GET'])
@login_required
def get_due_reviews():
    """
    Get items due for review now.

    Returns:
        200: {"success": true, "count": int, "items": [...]}  (count may be 0)
        503: {"success": false, "error": "Couldn't load reviews"}
    """
    try:
        entries = get_scheduler().get_due_items(current_user.id, utc_now())
        return jsonify({
            'success': True,
            'count': len(entries),
            'items': [entry.to_dict() for entry in entries]
        }), 200

    except NotFound as e:
        return jsonify({'success': False, 'error': str(e)}), 404
    except StoreUnavailable:
        logger.exception(f"Failed to load due reviews for learner_id={current_user.id}")
        return jsonify({'success': False, 'error': "Couldn't load reviews"}), 503


@bp.route('/upcoming', methods=['GET'])
@login_required
def get_upcoming_reviews():
    """
    Get items becoming due soon.

    Query Parameters:
        hours (int, optional): Look-ahead window, 1-168, default 24
    """
    hours = request.args.get('hours', default=24, type=int)
    if hours is None or not (1 <= hours <= 168):
        return jsonify({'success': False, 'error': 'hours must be between 1 and 168'}), 400

    try:
        entries = get_scheduler().get_upcoming_reviews(
            current_user.id, utc_now(), within=timedelta(hours=hours)
        )
        return jsonify({
            'success': True,
            'count': len(entries),
            'items': [entry.to_dict() for entry in entries]
        }), 200

    except NotFound as e:
        return jsonify({'success': False, 'error': str(e)}), 404
    except StoreUnavailable:
        logger.exception(f"Failed to load upcoming reviews for learner_id={current_user.id}")
        return jsonify({'success': False, 'error': "Couldn't load reviews"}), 503


@bp.route('/stats', methods=['GET'])
@login_required
def get_review_stats():
    try:
        stats = get_scheduler().get_review_stats(current_user.id, utc_now())
        return jsonify({'success': True, 'data': stats.model_dump(mode='json')}), 200

    except NotFound as e:
        return jsonify({'success': False, 'error': str(e)}), 404
    except StoreUnavailable:
        logger.exception(f"Failed to load review stats for learner_id={current_user.id}")
        return jsonify({'success': False, 'error': "Couldn't load review stats"}), 503


@bp.route('/sync', methods=['POST'])
@login_required
def sync_missing_schedules():
    """
    Make sure every listed item has a schedule entry.

    Request Body:
        {
            "item_keys": ["lucid", "candid"],
            "item_kind": "word"         # optional
        }

    Returns:
        200: {"success": true, "created": int, "items": [...created entries]}
    """
    data = request.get_json(silent=True)
    if not data or not isinstance(data.get('item_keys'), list):
        return jsonify({'success': False, 'error': 'item_keys must be a list'}), 400

    try:
        created = get_scheduler().sync_missing_schedules(
            current_user.id,
            data['item_keys'],
            utc_now(),
            item_kind=data.get('item_kind', 'word')
        )
        return jsonify({
            'success': True,
            'created': len(created),
            'items': [entry.to_dict() for entry in created]
        }), 200

    except ValueError as e:
        return jsonify({'success': False, 'error': str(e)}), 400
    except NotFound as e:
        return jsonify({'success': False, 'error': str(e)}), 404
    except StoreUnavailable:
        logger.exception(f"Failed to sync schedules for learner_id={current_user.id}")
        return jsonify({'success': False, 'error': "Couldn't sync review schedule"}), 503


@bp.route('/uncomplete', methods=['POST'])
@login_required
def uncomplete():
    """
    Reset an item to never-reviewed.

    Request Body:
        {"item_key": "lucid", "item_kind": "word"}
    """
    data = request.get_json(silent=True)
    if not data or not data.get('item_key'):
        return jsonify({'success': False, 'error': 'Missing required field: item_key'}), 400

    try:
        entry = get_scheduler().uncomplete(
            current_user.id,
            data['item_key'],
            utc_now(),
            item_kind=data.get('item_kind', 'word')
        )
        return jsonify({'success': True, 'entry': entry.to_dict()}), 200

    except ValueError as e:
        return jsonify({'success': False, 'error': str(e)}), 400
    except NotFound as e:
        return jsonify({'success': False, 'error': str(e)}), 404
    except StoreUnavailable:
        logger.exception(f"Failed to reset schedule for learner_id={current_user.id}")
        return jsonify({'success': False, 'error': "Couldn't undo the review. Please try again."}), 503
