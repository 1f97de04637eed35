"""
Benchmark routes: internal lookup and scheduler-driven refresh.

GET is restricted to same-origin callers (X-Internal-Request carrying
INTERNAL_SECRET) and the scheduler (X-Scheduler-Cron: 1), which refreshes
before reading. POST refresh requires the CRON_SECRET bearer token when one
is configured.
"""
import logging
from datetime import datetime
from flask import Blueprint, request, jsonify

from creator_insights.config import INTERNAL_SECRET, CRON_SECRET
from creator_insights.services.benchmarks import get_benchmarks, refresh_benchmarks

logger = logging.getLogger('routes.benchmarks')

bp = Blueprint('benchmarks', __name__)


def _is_internal():
    supplied = request.headers.get('X-Internal-Request')
    return bool(INTERNAL_SECRET) and supplied == INTERNAL_SECRET


def _is_scheduler():
    return request.headers.get('X-Scheduler-Cron') == '1'


@bp.route('/api/benchmarks')
def lookup():
    platform = request.args.get('platform') or None
    tier = request.args.get('tier') or None

    scheduled = _is_scheduler()
    if not scheduled and not _is_internal():
        return jsonify({'success': False, 'error': 'Not authorized'}), 403

    if scheduled:
        logger.info("Scheduler: refreshing benchmarks")
        refresh_benchmarks()

    benchmarks = get_benchmarks(platform, tier)
    return jsonify({
        'success': True,
        'benchmarks': benchmarks.to_dict(),
        'context': {
            'platform': platform or 'all',
            'tier': tier or 'all',
            'refreshed': scheduled,
        },
    })


@bp.route('/api/benchmarks/refresh', methods=['POST'])
def refresh():
    if CRON_SECRET and request.headers.get('Authorization') != f'Bearer {CRON_SECRET}':
        return jsonify({'success': False, 'error': 'Unauthorized'}), 401

    results = refresh_benchmarks()
    return jsonify({
        'success': True,
        'message': 'Benchmarks refreshed successfully',
        'segments': results,
        'benchmarks': get_benchmarks().to_dict(),
        'refreshed_at': datetime.now().isoformat(),
    })
