"""
Briefing orchestration: score, summary, actions and suggested prompts.

Briefings are cached per user for BRIEFING_TTL_HOURS in ai_briefings. A cache
hit still recomputes actions and prompts from fresh tenant data; only the
score, summary and headline metrics are reused.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from creator_insights.config import BRIEFING_TTL_HOURS
from creator_insights.database import get_session
from creator_insights.models.briefing import AiBriefing
from creator_insights.services.actions import detect_actions
from creator_insights.services.benchmarks import Benchmarks, get_benchmarks
from creator_insights.services.metrics import format_money, format_number
from creator_insights.services.narrative import generate_prompts, generate_summary
from creator_insights.services.scoring import NEUTRAL_SCORE, calculate_score
from creator_insights.services.tenant_data import TenantData, get_tenant_data, list_tenant_keys

logger = logging.getLogger('services.briefings')

ONBOARDING_SUMMARY = ('Welcome! Add your first creator to start tracking performance '
                      'and get personalized insights.')
ONBOARDING_PROMPTS = [
    'How do I add my first creator?',
    'What can I track here?',
    'How does the health score work?',
]


@dataclass
class BriefingResult:
    cached: bool
    briefing: Dict[str, Any]
    benchmarks: Benchmarks


# ── Cache ────────────────────────────────────────────────────────────────────

def get_cached_briefing(user_id: str, now: Optional[datetime] = None) -> Optional[Dict[str, Any]]:
    """Unexpired cached briefing for user_id, or None."""
    now = now or datetime.now()
    try:
        session = get_session()
    except Exception as e:
        logger.error("Failed to get session: %s", e)
        return None
    try:
        row = session.query(AiBriefing).filter(
            AiBriefing.user_id == user_id,
            AiBriefing.expires_at > now,
        ).first()
        if row is None:
            return None
        return {
            'score': row.score,
            'summary': row.summary,
            'metrics': row.metrics or [],
            'actions': row.actions or [],
            'generated_at': row.generated_at.isoformat() if row.generated_at else None,
        }
    except Exception as e:
        logger.error("Failed to read cached briefing for %s: %s", user_id, e)
        return None
    finally:
        session.close()


def save_briefing(user_id: str, briefing: Dict[str, Any], now: Optional[datetime] = None) -> bool:
    """Upsert the cached briefing for user_id with a fresh expiry."""
    now = now or datetime.now()
    try:
        session = get_session()
    except Exception as e:
        logger.error("Failed to get session: %s", e)
        return False
    try:
        row = session.query(AiBriefing).filter(AiBriefing.user_id == user_id).first()
        if row is None:
            row = AiBriefing(user_id=user_id)
            session.add(row)
        row.score = briefing['score']
        row.summary = briefing['summary']
        row.metrics = briefing['metrics']
        row.actions = briefing['actions']
        row.generated_at = now
        row.expires_at = now + timedelta(hours=BRIEFING_TTL_HOURS)
        session.commit()
        return True
    except Exception as e:
        session.rollback()
        logger.error("Failed to save briefing for %s: %s", user_id, e)
        return False
    finally:
        session.close()


# ── Assembly ─────────────────────────────────────────────────────────────────

def headline_metrics(tenant: TenantData):
    totals = tenant.totals
    return [
        {'label': 'Spent', 'value': format_money(totals.total_spent)},
        {'label': 'Conversions', 'value': format_number(totals.total_conversions)},
        {'label': 'Views', 'value': format_number(totals.total_views)},
    ]


def build_briefing(tenant: TenantData, benchmarks: Benchmarks, page: str = '') -> Dict[str, Any]:
    actions = [a.to_dict() for a in detect_actions(tenant, benchmarks)]

    if not tenant.creators:
        return {
            'score': NEUTRAL_SCORE,
            'summary': ONBOARDING_SUMMARY,
            'metrics': [
                {'label': 'Creators', 'value': '0'},
                {'label': 'Campaigns', 'value': str(len(tenant.campaigns))},
                {'label': 'Spent', 'value': '$0'},
            ],
            'actions': actions,
            'suggested_prompts': list(ONBOARDING_PROMPTS),
        }

    score_result = calculate_score(tenant, benchmarks)
    return {
        'score': score_result.score,
        'summary': generate_summary(tenant, score_result, benchmarks),
        'metrics': headline_metrics(tenant),
        'actions': actions,
        'suggested_prompts': generate_prompts(tenant, page),
        'issues': score_result.issues,
        'insights': score_result.insights,
        'trends': tenant.trends.to_dict(),
    }


def get_briefing(user_id: str, refresh: bool = False, page: str = '',
                 now: Optional[datetime] = None) -> BriefingResult:
    """Cached or freshly generated briefing for a user.

    A fresh briefing is saved, then the tenant's anonymized metrics are handed
    to the background queue; the caller never waits on that contribution.

    Raises:
        TenantDataError: the tenant's creator rows could not be read.
    """
    from creator_insights.jobs import enqueue_contribution

    now = now or datetime.now()
    benchmarks = get_benchmarks()
    cached = None if refresh else get_cached_briefing(user_id, now)
    tenant = get_tenant_data(user_id, now=now)

    if cached is not None:
        logger.info("Serving cached briefing for %s", user_id)
        briefing = dict(cached)
        briefing['actions'] = [a.to_dict() for a in detect_actions(tenant, benchmarks)]
        briefing['suggested_prompts'] = (generate_prompts(tenant, page) if tenant.creators
                                         else list(ONBOARDING_PROMPTS))
        return BriefingResult(cached=True, briefing=briefing, benchmarks=benchmarks)

    briefing = build_briefing(tenant, benchmarks, page)
    save_briefing(user_id, briefing, now)
    if tenant.creators:
        enqueue_contribution(tenant)

    logger.info("Generated briefing for %s (score=%d)", user_id, briefing['score'])
    return BriefingResult(cached=False, briefing=briefing, benchmarks=benchmarks)


# ── Scheduled pre-generation ─────────────────────────────────────────────────

def pregenerate_briefings(now: Optional[datetime] = None) -> Dict[str, bool]:
    """Build and cache a fresh briefing for every tenant that owns creators.

    One tenant failing is logged and recorded as False; the rest still run.

    Raises:
        TenantDataError: the tenant list itself could not be read.
    """
    now = now or datetime.now()
    benchmarks = get_benchmarks()
    results = {}
    for key in list_tenant_keys():
        try:
            tenant = get_tenant_data(key, now=now)
            briefing = build_briefing(tenant, benchmarks)
            results[key] = save_briefing(key, briefing, now)
        except Exception as e:
            logger.error("Failed to pre-generate briefing for %s: %s", key, e,
                         extra={'tenant': key})
            results[key] = False

    logger.info("Pre-generated %d/%d briefings", sum(results.values()), len(results))
    return results
