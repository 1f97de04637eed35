"""
Briefing route: the widget's main payload for a user.
"""
import logging
from flask import Blueprint, request, jsonify

from creator_insights.config import CRON_SECRET
from creator_insights.services.briefings import get_briefing, pregenerate_briefings
from creator_insights.services.tenant_data import TenantDataError

logger = logging.getLogger('routes.briefing')

bp = Blueprint('briefing', __name__)


@bp.route('/api/briefing')
def briefing():
    user_id = (request.args.get('user') or '').strip()
    if not user_id:
        return jsonify({'success': False, 'error': 'User required'}), 400

    refresh = request.args.get('refresh') == 'true'
    page = request.args.get('page', '')

    try:
        result = get_briefing(user_id, refresh=refresh, page=page)
    except TenantDataError as e:
        logger.error("Briefing failed for %s: %s", user_id, e)
        return jsonify({'success': False, 'error': str(e)}), 500

    return jsonify({
        'success': True,
        'cached': result.cached,
        'briefing': result.briefing,
        'benchmarks': {
            'segment': result.benchmarks.segment,
            'cpa_p50': result.benchmarks.cpa_p50,
            'sample_size': result.benchmarks.sample_size,
        },
    })


@bp.route('/api/briefing/generate')
def generate_all():
    """Cron: pre-generate and cache briefings for every tenant with creators."""
    if CRON_SECRET and request.headers.get('Authorization') != f'Bearer {CRON_SECRET}':
        return jsonify({'success': False, 'error': 'Unauthorized'}), 401

    if request.args.get('enqueue') == 'true':
        from creator_insights.jobs import enqueue_pregenerate
        if not enqueue_pregenerate():
            return jsonify({'success': False, 'error': 'Failed to enqueue job'}), 503
        return jsonify({'success': True, 'enqueued': True}), 202

    try:
        results = pregenerate_briefings()
    except TenantDataError as e:
        logger.error("Briefing pre-generation failed: %s", e)
        return jsonify({'success': False, 'error': str(e)}), 500

    generated = sum(results.values())
    return jsonify({
        'success': True,
        'generated': generated,
        'failed': len(results) - generated,
        'results': [{'user': key, 'success': ok} for key, ok in results.items()],
    })
