"""
Tenant data loader: identity resolution plus everything a briefing needs.

The tenant is resolved to one canonical key up front; every later query
filters on that key only. Reading the creator rows is the one failure that
propagates (as TenantDataError). Every other sub-query degrades to empty.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_

from creator_insights.config import NO_CONTENT_GRACE_DAYS
from creator_insights.database import get_session
from creator_insights.models.tenant import (
    User, Campaign, Influencer, Deliverable, ContentStat,
)
from creator_insights.services.metrics import (
    CreatorRecord, MetricSnapshot, Totals,
    build_platform_breakdown, compute_totals,
    find_no_content, find_no_conversions, find_top_performers,
)
from creator_insights.services.trends import (
    ContentGrowth, ContentSnapshot, HistoricalTrends,
    analyze_content_growth, calculate_historical_trends, to_datetime,
)

logger = logging.getLogger('services.tenant_data')

CONTENT_GROWTH_DAYS = 7


class TenantDataError(Exception):
    """The tenant's own creator rows could not be read."""


@dataclass
class TenantIdentity:
    key: str
    user: Dict[str, Any]


@dataclass
class TenantData:
    identity: TenantIdentity
    creators: List[CreatorRecord]
    campaigns: List[Dict[str, Any]] = field(default_factory=list)
    totals: Totals = field(default_factory=Totals)
    no_content: List[CreatorRecord] = field(default_factory=list)
    no_conversions: List[CreatorRecord] = field(default_factory=list)
    top_performers: List[CreatorRecord] = field(default_factory=list)
    platforms: Dict[str, MetricSnapshot] = field(default_factory=dict)
    content_growth: ContentGrowth = field(default_factory=ContentGrowth)
    trends: HistoricalTrends = field(default_factory=HistoricalTrends)
    loaded_at: Optional[datetime] = None

    @property
    def key(self) -> str:
        return self.identity.key

    @property
    def user_name(self) -> str:
        return self.identity.user.get('name') or 'there'


def resolve_tenant(user_id: str) -> TenantIdentity:
    """Map an email or user id to the canonical tenant key (stored user_id, else email)."""
    fallback = TenantIdentity(key=user_id, user={'email': user_id, 'name': user_id.split('@')[0]})
    try:
        session = get_session()
    except Exception as e:
        logger.error("Failed to get session: %s", e)
        return fallback
    try:
        user = session.query(User).filter(
            or_(User.email == user_id, User.user_id == user_id),
        ).first()
        if user is None:
            return fallback
        key = user.user_id or user.email or user_id
        if key != user_id:
            logger.info("Resolved tenant %s -> %s", user_id, key)
        return TenantIdentity(key=key, user={
            'email': user.email or fallback.user['email'],
            'name': user.name or fallback.user['name'],
        })
    except Exception as e:
        session.rollback()
        logger.warning("User lookup failed for %s: %s", user_id, e)
        return fallback
    finally:
        session.close()


def list_tenant_keys() -> List[str]:
    """Tenant keys that own at least one creator.

    Raises:
        TenantDataError: the creator table could not be read.
    """
    try:
        session = get_session()
    except Exception as e:
        raise TenantDataError(f'Database unavailable: {e}') from e
    try:
        rows = session.query(Influencer.user_id).filter(
            Influencer.user_id.isnot(None),
        ).distinct().order_by(Influencer.user_id).all()
        return [r.user_id for r in rows]
    except Exception as e:
        session.rollback()
        raise TenantDataError(f'Failed to list tenants: {e}') from e
    finally:
        session.close()


# ── Sub-queries ──────────────────────────────────────────────────────────────

def _load_campaigns(session, key: str) -> List[Dict[str, Any]]:
    try:
        rows = session.query(Campaign).filter(Campaign.user_id == key).all()
    except Exception as e:
        session.rollback()
        logger.warning("Campaign query failed for %s: %s", key, e)
        return []
    return [
        {'id': c.id, 'name': c.campaign_name, 'client': c.client,
         'influencer_count': c.influencer_count}
        for c in rows
    ]


def _load_deliverable_stats(session, influencer_ids: List[int]) -> Dict[int, Any]:
    if not influencer_ids:
        return {}
    posted = func.coalesce(Deliverable.post_date, Deliverable.created_at)
    try:
        rows = session.query(
            Deliverable.influencer_id,
            func.sum(func.coalesce(Deliverable.views, 0)).label('total_views'),
            func.sum(func.coalesce(Deliverable.likes, 0)).label('total_likes'),
            func.count(Deliverable.id).label('content_count'),
            func.min(posted).label('first_post_date'),
            func.max(posted).label('last_post_date'),
        ).filter(
            Deliverable.influencer_id.in_(influencer_ids),
        ).group_by(Deliverable.influencer_id).all()
    except Exception as e:
        session.rollback()
        logger.error("Deliverable stats query failed: %s", e)
        return {}
    return {r.influencer_id: r for r in rows}


def _load_content_snapshots(session, key: str, now: datetime) -> List[ContentSnapshot]:
    try:
        rows = session.query(ContentStat).filter(
            ContentStat.user_id == key,
            ContentStat.recorded_at > now - timedelta(days=CONTENT_GROWTH_DAYS),
        ).order_by(ContentStat.recorded_at.desc()).all()
    except Exception as e:
        session.rollback()
        logger.warning("Content stats query failed for %s: %s", key, e)
        return []
    return [
        ContentSnapshot(r.content_id, r.influencer_name, r.content_title,
                        r.content_url, r.views, r.recorded_at)
        for r in rows
    ]


def _to_creator(row: Influencer, stats) -> CreatorRecord:
    return CreatorRecord(
        id=row.id,
        name=row.influencer,
        channel_url=row.channel_url,
        price=row.price,
        total_conversions=row.total_conversions,
        conversions=row.conversions,
        clicks=row.clicks,
        views=row.views,
        total_views=stats.total_views if stats else 0,
        total_likes=stats.total_likes if stats else 0,
        content_count=stats.content_count if stats else 0,
        created_at=to_datetime(row.created_at),
        first_post_date=to_datetime(stats.first_post_date) if stats else None,
        last_post_date=to_datetime(stats.last_post_date) if stats else None,
    )


def get_tenant_data(user_id: str, now: Optional[datetime] = None) -> TenantData:
    """Load and derive a tenant's full dataset.

    Raises:
        TenantDataError: the creator rows could not be read.
    """
    now = now or datetime.now()
    identity = resolve_tenant(user_id)
    key = identity.key

    try:
        session = get_session()
    except Exception as e:
        raise TenantDataError(f'Database unavailable: {e}') from e
    try:
        campaigns = _load_campaigns(session, key)

        try:
            rows = session.query(Influencer).filter(Influencer.user_id == key).all()
        except Exception as e:
            session.rollback()
            logger.error("Influencer query failed for %s: %s", key, e)
            raise TenantDataError(f'Failed to load creators for {key}') from e

        stats = _load_deliverable_stats(session, [r.id for r in rows])
        creators = [_to_creator(r, stats.get(r.id)) for r in rows]
        snapshots = _load_content_snapshots(session, key, now)
    finally:
        session.close()

    logger.info("Loaded tenant %s: %d creators, %d campaigns", key, len(creators), len(campaigns),
                extra={'tenant': key})

    return TenantData(
        identity=identity,
        creators=creators,
        campaigns=campaigns,
        totals=compute_totals(creators, campaign_count=len(campaigns)),
        no_content=find_no_content(creators, now=now, grace_days=NO_CONTENT_GRACE_DAYS),
        no_conversions=find_no_conversions(creators),
        top_performers=find_top_performers(creators),
        platforms=build_platform_breakdown(creators),
        content_growth=analyze_content_growth(snapshots),
        trends=calculate_historical_trends(key, now=now),
        loaded_at=now,
    )
