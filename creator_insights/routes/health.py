"""
Health routes: liveness plus text-generation circuit breaker states.
"""
import logging
from flask import Blueprint, jsonify

from creator_insights.services.circuit_breaker import get_all_breakers

logger = logging.getLogger('routes.health')

bp = Blueprint('health', __name__)


@bp.route('/health')
def health_check():
    return jsonify({'status': 'healthy'}), 200


@bp.route('/api/health')
def api_health():
    """Breaker state for each text-generation backend."""
    services = {name: cb.get_health() for name, cb in get_all_breakers().items()}
    degraded = any(s['state'] == 'open' for s in services.values())
    return jsonify({'status': 'degraded' if degraded else 'healthy', 'services': services}), 200


@bp.route('/api/health/<service>/reset', methods=['POST'])
def reset_breaker(service):
    cb = get_all_breakers().get(service)
    if cb is None:
        return jsonify({'ok': False, 'error': f'Unknown service: {service}'}), 404
    cb.reset()
    logger.info("Breaker '%s' reset via API", service)
    return jsonify({'ok': True, 'service': service}), 200
