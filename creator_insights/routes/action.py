"""
Action route: runs the option a user clicked on a briefing card.
"""
import logging
from flask import Blueprint, request, jsonify

from creator_insights.services.action_runner import ActionError, action_message, execute_action
from creator_insights.services.tenant_data import TenantDataError

logger = logging.getLogger('routes.action')

bp = Blueprint('action', __name__)


@bp.route('/api/action', methods=['POST'])
def run_action():
    data = request.get_json(silent=True) or {}
    user_id = (data.get('user') or '').strip()
    action = (data.get('action') or '').strip()
    params = data.get('params')

    if not user_id or not action:
        return jsonify({'success': False, 'error': 'User and action required'}), 400
    if not isinstance(params, dict):
        params = {}

    try:
        result = execute_action(user_id, action, params)
    except ActionError as e:
        return jsonify({'success': False, 'error': str(e)}), 400
    except TenantDataError as e:
        logger.error("Action %s failed for %s: %s", action, user_id, e)
        return jsonify({'success': False, 'error': str(e)}), 500

    return jsonify({
        'success': True,
        'action': action,
        'result': result,
        'message': action_message(action, params, result),
    })
