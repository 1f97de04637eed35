"""
Background jobs on the shared RQ queue.

Benchmark contribution runs off the request path: the briefing handler
enqueues a plain-dict payload and returns. The scheduled refresh runs here
too when it is triggered through a worker instead of the HTTP route, as does
the nightly briefing pre-generation.
"""
import logging
from typing import Any, Dict

from creator_insights.services.benchmarks import contribute_to_benchmarks, refresh_benchmarks
from creator_insights.services.metrics import CreatorRecord, MetricSnapshot

logger = logging.getLogger('jobs')

CONTRIBUTION_JOB_TIMEOUT = 120
REFRESH_JOB_TIMEOUT = 600
PREGENERATE_JOB_TIMEOUT = 1800

_queue = None


def _get_queue():
    global _queue
    if _queue is None:
        from creator_insights.extensions import redis_client
        from rq import Queue
        _queue = Queue(connection=redis_client)
    return _queue


def contribution_payload(tenant) -> Dict[str, Any]:
    """The subset of tenant data the privacy filter needs, as plain dicts."""
    return {
        'platforms': [snap.to_dict() for snap in tenant.platforms.values()],
        'creators': [
            {'id': c.id, 'channel_url': c.channel_url, 'content_count': c.content_items}
            for c in tenant.creators
        ],
    }


def enqueue_contribution(tenant) -> bool:
    """Hand the tenant's contribution to a worker. Never raises."""
    try:
        _get_queue().enqueue(run_contribution, contribution_payload(tenant),
                             job_timeout=CONTRIBUTION_JOB_TIMEOUT)
        return True
    except Exception as e:
        logger.warning("Failed to enqueue benchmark contribution for %s: %s",
                       getattr(tenant, 'key', '?'), e)
        return False


def enqueue_refresh() -> bool:
    try:
        _get_queue().enqueue(run_refresh, job_timeout=REFRESH_JOB_TIMEOUT)
        return True
    except Exception as e:
        logger.error("Failed to enqueue benchmark refresh: %s", e)
        return False


def enqueue_pregenerate() -> bool:
    try:
        _get_queue().enqueue(run_pregenerate, job_timeout=PREGENERATE_JOB_TIMEOUT)
        return True
    except Exception as e:
        logger.error("Failed to enqueue briefing pre-generation: %s", e)
        return False


# ── Worker side ──────────────────────────────────────────────────────────────

def _job_id():
    from rq import get_current_job
    job = get_current_job()
    return job.id if job is not None else None


def run_contribution(payload: Dict[str, Any]) -> int:
    platforms = {}
    for data in payload.get('platforms') or []:
        snap = MetricSnapshot.from_dict(data)
        platforms[snap.platform] = snap
    creators = [
        CreatorRecord(id=c.get('id'), channel_url=c.get('channel_url'),
                      content_count=c.get('content_count'))
        for c in payload.get('creators') or []
    ]
    written = contribute_to_benchmarks(platforms, creators)
    logger.info("Contribution job finished: %d rows", written, extra={'job_id': _job_id()})
    return written


def run_refresh() -> Dict[str, bool]:
    results = refresh_benchmarks()
    logger.info("Refresh job finished: %d/%d segments written",
                sum(results.values()), len(results), extra={'job_id': _job_id()})
    return results


def run_pregenerate() -> Dict[str, bool]:
    from creator_insights.services.briefings import pregenerate_briefings
    results = pregenerate_briefings()
    logger.info("Pre-generation job finished: %d/%d briefings cached",
                sum(results.values()), len(results), extra={'job_id': _job_id()})
    return results
