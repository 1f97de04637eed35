"""
Ask route: conversational Q&A over the user's own data.
"""
import logging
from flask import Blueprint, request, jsonify

from creator_insights.services.narrative import answer_question
from creator_insights.services.tenant_data import TenantDataError, get_tenant_data

logger = logging.getLogger('routes.ask')

bp = Blueprint('ask', __name__)


@bp.route('/api/ask', methods=['POST'])
def ask():
    data = request.get_json(silent=True) or {}
    user_id = (data.get('user') or '').strip()
    question = (data.get('question') or '').strip()
    context = data.get('context')

    if not user_id or not question:
        return jsonify({'success': False, 'error': 'User and question required'}), 400
    if context is not None and not isinstance(context, dict):
        context = None

    try:
        tenant = get_tenant_data(user_id)
    except TenantDataError as e:
        logger.error("Ask failed for %s: %s", user_id, e)
        return jsonify({'success': False, 'error': str(e)}), 500

    return jsonify({'success': True, 'answer': answer_question(tenant, question, context)})
