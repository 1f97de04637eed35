"""
Trend engine: rolling-window period deltas and per-creator momentum.

All windows are rolling and fixed-length, not calendar-aligned:
current = [now - N days, now], previous = [now - 2N days, now - N days).

The pure builders take day-grouped rows; calculate_historical_trends() is the
only function here that touches the store.
"""
import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func

from creator_insights.config import (
    TREND_DEADBAND_PERCENT, TREND_WINDOWS, MOMENTUM_LOOKBACK_DAYS,
    MOMENTUM_RISING_PERCENT, MOMENTUM_COOLING_PERCENT, MOMENTUM_STALLED_DAYS,
    MOMENTUM_BUCKET_LIMIT, VIRAL_GROWTH_PERCENT,
)
from creator_insights.database import get_session
from creator_insights.models.tenant import ConversionStat, ContentStat
from creator_insights.services.metrics import to_number, round_half_up

logger = logging.getLogger('services.trends')

INSUFFICIENT_DATA = 'Insufficient historical data for trend analysis'


def to_datetime(value: Any) -> Optional[datetime]:
    """Normalise a store day value (date, datetime or ISO string) to a naive datetime."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    try:
        parsed = datetime.fromisoformat(str(value).strip().replace('Z', '+00:00'))
    except ValueError:
        return None
    return parsed.replace(tzinfo=None)


# ── Input rows ───────────────────────────────────────────────────────────────

@dataclass
class ConversionDay:
    day: Any
    conversions: float = 0
    clicks: float = 0
    cost: float = 0


@dataclass
class ContentDay:
    day: Any
    views: float = 0
    likes: float = 0


@dataclass
class CreatorDay:
    creator_id: Any
    name: Optional[str]
    day: Any
    conversions: float = 0
    clicks: float = 0


@dataclass
class ContentSnapshot:
    content_id: Any
    influencer_name: Optional[str]
    content_title: Optional[str]
    content_url: Optional[str]
    views: float
    recorded_at: Any


# ── Result types ─────────────────────────────────────────────────────────────

@dataclass
class TrendWindow:
    current: float
    previous: float
    percent: int
    direction: str      # 'up' | 'down' | 'flat'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'current': self.current,
            'previous': self.previous,
            'percent': self.percent,
            'direction': self.direction,
        }


@dataclass
class CpaTrend:
    percent: int
    direction: str      # 'improving' | 'worsening' | 'stable' | 'new' | 'lost' | 'flat'
    current: Optional[float]
    previous: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'current': self.current,
            'previous': self.previous,
            'percent': self.percent,
            'direction': self.direction,
        }


@dataclass
class PeriodComparison:
    conversions: TrendWindow
    views: TrendWindow
    spend: TrendWindow
    cpa: CpaTrend
    current: Dict[str, float]
    previous: Dict[str, float]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'conversions': self.conversions.to_dict(),
            'views': self.views.to_dict(),
            'spend': self.spend.to_dict(),
            'cpa': self.cpa.to_dict(),
            'current': dict(self.current),
            'previous': dict(self.previous),
        }


@dataclass
class MomentumEntry:
    creator_id: Any
    name: Optional[str]
    this_week: float
    last_week: float
    change: Optional[int] = None
    days_since_conversion: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {'name': self.name, 'this_week': self.this_week, 'last_week': self.last_week}
        if self.change is not None:
            data['change'] = self.change
        if self.days_since_conversion is not None:
            data['days_since_conversion'] = self.days_since_conversion
        return data


@dataclass
class CreatorMomentum:
    rising: List[MomentumEntry] = field(default_factory=list)
    cooling: List[MomentumEntry] = field(default_factory=list)
    stalled: List[MomentumEntry] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'rising': [e.to_dict() for e in self.rising],
            'cooling': [e.to_dict() for e in self.cooling],
            'stalled': [e.to_dict() for e in self.stalled],
        }


@dataclass
class HistoricalTrends:
    weekly: Optional[PeriodComparison] = None
    monthly: Optional[PeriodComparison] = None
    yearly: Optional[PeriodComparison] = None
    creator_momentum: CreatorMomentum = field(default_factory=CreatorMomentum)
    summary: str = INSUFFICIENT_DATA

    @property
    def has_data(self) -> bool:
        return self.weekly is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'weekly': self.weekly.to_dict() if self.weekly else None,
            'monthly': self.monthly.to_dict() if self.monthly else None,
            'yearly': self.yearly.to_dict() if self.yearly else None,
            'creator_momentum': self.creator_momentum.to_dict(),
            'summary': self.summary,
        }


@dataclass
class ContentGrowth:
    top_growing: Optional[Dict[str, Any]] = None
    alerts: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {'top_growing': self.top_growing, 'alerts': list(self.alerts)}


# ── Deltas ───────────────────────────────────────────────────────────────────

def calculate_change(current: float, previous: float) -> TrendWindow:
    """Percent change with a ±5% flat deadband. Growth from zero counts as +100%."""
    if previous == 0 and current == 0:
        return TrendWindow(current, previous, 0, 'flat')
    if previous == 0:
        return TrendWindow(current, previous, 100, 'up')

    percent = round_half_up((current - previous) / previous * 100)
    if percent > TREND_DEADBAND_PERCENT:
        direction = 'up'
    elif percent < -TREND_DEADBAND_PERCENT:
        direction = 'down'
    else:
        direction = 'flat'
    return TrendWindow(current, previous, percent, direction)


def calculate_cpa_change(current_spend: float, current_conversions: float,
                         previous_spend: float, previous_conversions: float) -> CpaTrend:
    """CPA delta. A lower CPA is an improvement, so polarity is inverted."""
    current_cpa = current_spend / current_conversions if current_conversions > 0 else None
    previous_cpa = previous_spend / previous_conversions if previous_conversions > 0 else None

    if current_cpa is None and previous_cpa is None:
        return CpaTrend(0, 'flat', None, None)
    if previous_cpa is None:
        return CpaTrend(0, 'new', current_cpa, None)
    if current_cpa is None:
        return CpaTrend(-100, 'lost', None, previous_cpa)
    # Conversions with no tracked cost
    if previous_cpa == 0:
        if current_cpa == 0:
            return CpaTrend(0, 'stable', 0.0, 0.0)
        return CpaTrend(100, 'worsening', round(current_cpa, 2), 0.0)

    percent = round_half_up((current_cpa - previous_cpa) / previous_cpa * 100)
    if percent < -TREND_DEADBAND_PERCENT:
        direction = 'improving'
    elif percent > TREND_DEADBAND_PERCENT:
        direction = 'worsening'
    else:
        direction = 'stable'
    return CpaTrend(percent, direction, round(current_cpa, 2), round(previous_cpa, 2))


# ── Rolling windows ──────────────────────────────────────────────────────────

def _sum_current(rows: Iterable, attr: str, start: datetime, end: datetime) -> float:
    total = 0.0
    for row in rows:
        day = to_datetime(row.day)
        if day is not None and start <= day <= end:
            total += to_number(getattr(row, attr))
    return total


def _sum_previous(rows: Iterable, attr: str, start: datetime, end: datetime) -> float:
    total = 0.0
    for row in rows:
        day = to_datetime(row.day)
        if day is not None and start <= day < end:
            total += to_number(getattr(row, attr))
    return total


def compare_periods(conversion_history: List[ConversionDay], content_history: List[ContentDay],
                    days: int, now: datetime) -> PeriodComparison:
    """This window vs the one before it, for conversions, views, spend and CPA."""
    window_start = now - timedelta(days=days)
    previous_start = now - timedelta(days=days * 2)

    current = {
        'conversions': _sum_current(conversion_history, 'conversions', window_start, now),
        'views': _sum_current(content_history, 'views', window_start, now),
        'spend': _sum_current(conversion_history, 'cost', window_start, now),
    }
    previous = {
        'conversions': _sum_previous(conversion_history, 'conversions', previous_start, window_start),
        'views': _sum_previous(content_history, 'views', previous_start, window_start),
        'spend': _sum_previous(conversion_history, 'cost', previous_start, window_start),
    }

    return PeriodComparison(
        conversions=calculate_change(current['conversions'], previous['conversions']),
        views=calculate_change(current['views'], previous['views']),
        spend=calculate_change(current['spend'], previous['spend']),
        cpa=calculate_cpa_change(current['spend'], current['conversions'],
                                 previous['spend'], previous['conversions']),
        current=current,
        previous=previous,
    )


# ── Momentum ─────────────────────────────────────────────────────────────────

def classify_momentum(creator_history: List[CreatorDay], now: datetime) -> CreatorMomentum:
    """Bucket each creator into at most one of rising / cooling / stalled."""
    week_ago = now - timedelta(days=7)
    two_weeks_ago = now - timedelta(days=14)

    stats: Dict[Any, Dict[str, Any]] = {}
    for row in creator_history:
        day = to_datetime(row.day)
        if day is None:
            continue
        key = row.creator_id if row.creator_id is not None else row.name
        entry = stats.setdefault(key, {
            'name': row.name,
            'this_week': 0.0,
            'last_week': 0.0,
            'last_conversion': None,
        })
        conversions = to_number(row.conversions)
        if day >= week_ago:
            entry['this_week'] += conversions
        elif day >= two_weeks_ago:
            entry['last_week'] += conversions
        if conversions > 0 and (entry['last_conversion'] is None or day > entry['last_conversion']):
            entry['last_conversion'] = day

    momentum = CreatorMomentum()
    for key, entry in stats.items():
        change = calculate_change(entry['this_week'], entry['last_week'])
        days_since = None
        if entry['last_conversion'] is not None:
            days_since = math.floor((now - entry['last_conversion']).total_seconds() / 86400)

        if change.percent > MOMENTUM_RISING_PERCENT and entry['this_week'] > 0:
            momentum.rising.append(MomentumEntry(
                key, entry['name'], entry['this_week'], entry['last_week'], change=change.percent))
        elif change.percent < MOMENTUM_COOLING_PERCENT and entry['last_week'] > 0:
            momentum.cooling.append(MomentumEntry(
                key, entry['name'], entry['this_week'], entry['last_week'], change=change.percent))
        elif days_since is not None and days_since > MOMENTUM_STALLED_DAYS and entry['last_week'] > 0:
            momentum.stalled.append(MomentumEntry(
                key, entry['name'], entry['this_week'], entry['last_week'],
                days_since_conversion=days_since))

    momentum.rising.sort(key=lambda e: e.change, reverse=True)
    momentum.cooling.sort(key=lambda e: e.change)
    momentum.stalled.sort(key=lambda e: e.days_since_conversion, reverse=True)

    momentum.rising = momentum.rising[:MOMENTUM_BUCKET_LIMIT]
    momentum.cooling = momentum.cooling[:MOMENTUM_BUCKET_LIMIT]
    momentum.stalled = momentum.stalled[:MOMENTUM_BUCKET_LIMIT]
    return momentum


# ── Summary ──────────────────────────────────────────────────────────────────

def summarize_trends(trends: HistoricalTrends) -> str:
    """Short deterministic digest of the weekly picture and creator momentum."""
    parts = []

    weekly = trends.weekly
    if weekly is not None:
        if weekly.conversions.direction == 'up':
            parts.append(f'Conversions up {weekly.conversions.percent}% this week')
        elif weekly.conversions.direction == 'down':
            parts.append(f'Conversions down {abs(weekly.conversions.percent)}% this week')

        if weekly.cpa.direction == 'improving':
            parts.append(f'CPA improved {abs(weekly.cpa.percent)}%')
        elif weekly.cpa.direction == 'worsening':
            parts.append(f'CPA worsened {weekly.cpa.percent}%')

    momentum = trends.creator_momentum
    if momentum.rising:
        parts.append(f'{len(momentum.rising)} creator(s) trending up')
    if momentum.cooling:
        parts.append(f'{len(momentum.cooling)} creator(s) cooling off')
    if momentum.stalled:
        parts.append(f'{len(momentum.stalled)} creator(s) stalled')

    return '. '.join(parts) or INSUFFICIENT_DATA


def build_historical_trends(conversion_history: List[ConversionDay], content_history: List[ContentDay],
                            creator_history: List[CreatorDay], now: datetime) -> HistoricalTrends:
    trends = HistoricalTrends(
        weekly=compare_periods(conversion_history, content_history, TREND_WINDOWS['weekly'], now),
        monthly=compare_periods(conversion_history, content_history, TREND_WINDOWS['monthly'], now),
        yearly=compare_periods(conversion_history, content_history, TREND_WINDOWS['yearly'], now),
        creator_momentum=classify_momentum(creator_history, now),
    )
    trends.summary = summarize_trends(trends)
    return trends


def calculate_historical_trends(tenant_key: str, now: Optional[datetime] = None) -> HistoricalTrends:
    """Load day-grouped history for a tenant and build its trends.

    Store failures are logged and yield an empty HistoricalTrends.
    """
    now = now or datetime.now()
    try:
        session = get_session()
    except Exception as e:
        logger.error("Failed to get session: %s", e)
        return HistoricalTrends()
    try:
        conv_day = func.date(ConversionStat.recorded_at)
        conversion_rows = session.query(
            conv_day.label('day'),
            func.sum(func.coalesce(ConversionStat.conversions, 0)).label('conversions'),
            func.sum(func.coalesce(ConversionStat.clicks, 0)).label('clicks'),
            func.sum(func.coalesce(ConversionStat.cost, 0)).label('cost'),
        ).filter(
            ConversionStat.user_id == tenant_key,
        ).group_by(conv_day).all()

        content_day = func.date(ContentStat.recorded_at)
        content_rows = session.query(
            content_day.label('day'),
            func.sum(func.coalesce(ContentStat.views, 0)).label('views'),
            func.sum(func.coalesce(ContentStat.likes, 0)).label('likes'),
        ).filter(
            ContentStat.user_id == tenant_key,
        ).group_by(content_day).all()

        creator_rows = session.query(
            ConversionStat.influencer_id,
            ConversionStat.influencer_name,
            conv_day.label('day'),
            func.sum(func.coalesce(ConversionStat.conversions, 0)).label('conversions'),
            func.sum(func.coalesce(ConversionStat.clicks, 0)).label('clicks'),
        ).filter(
            ConversionStat.user_id == tenant_key,
            ConversionStat.recorded_at > now - timedelta(days=MOMENTUM_LOOKBACK_DAYS),
        ).group_by(
            ConversionStat.influencer_id, ConversionStat.influencer_name, conv_day,
        ).all()

        return build_historical_trends(
            [ConversionDay(r.day, r.conversions, r.clicks, r.cost) for r in conversion_rows],
            [ContentDay(r.day, r.views, r.likes) for r in content_rows],
            [CreatorDay(r.influencer_id, r.influencer_name, r.day, r.conversions, r.clicks)
             for r in creator_rows],
            now,
        )
    except Exception as e:
        logger.error("Failed to calculate historical trends for %s: %s", tenant_key, e)
        return HistoricalTrends()
    finally:
        session.close()


# ── Content growth ───────────────────────────────────────────────────────────

def analyze_content_growth(snapshots: List[ContentSnapshot]) -> ContentGrowth:
    """View growth per content item across its snapshots; flags viral items."""
    growth = ContentGrowth()
    if len(snapshots) < 2:
        return growth

    by_content: Dict[Any, Dict[str, Any]] = {}
    for snap in snapshots:
        item = by_content.setdefault(snap.content_id, {
            'name': snap.influencer_name,
            'title': snap.content_title,
            'url': snap.content_url,
            'points': [],
        })
        recorded_at = to_datetime(snap.recorded_at)
        if recorded_at is not None:
            item['points'].append((recorded_at, to_number(snap.views)))

    candidates = []
    for item in by_content.values():
        points = sorted(item.pop('points'), key=lambda p: p[0])
        if len(points) < 2:
            continue
        oldest, newest = points[0][1], points[-1][1]
        pct = (newest - oldest) / oldest * 100 if oldest > 0 else 0.0
        item['growth'] = pct

        if pct > VIRAL_GROWTH_PERCENT:
            growth.alerts.append({
                'type': 'viral',
                'message': f"{item['name']}'s content grew {round_half_up(pct)}% in views",
                'content': item['title'],
            })
        if pct > 0:
            candidates.append(item)

    if candidates:
        growth.top_growing = max(candidates, key=lambda c: c['growth'])
    return growth
