"""
Benchmarks service: anonymized contributions, percentile segments, lookups.

Write path: contribute_to_benchmarks() appends noised rows to benchmark_data
(best-effort, never raises). refresh_benchmarks() recomputes a fixed set of
segments from the trailing 90 days and upserts each one that has at least
BENCHMARK_MIN_SAMPLE rows.

Read path: get_benchmarks() walks from the most specific segment to
'overall' and falls back to DEFAULT_BENCHMARKS, so callers always get a
comparison baseline.
"""
import logging
import math
import random
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
from sqlalchemy import func
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from creator_insights.config import (
    BENCHMARK_RETENTION_DAYS, BENCHMARK_MIN_SAMPLE,
    BENCHMARK_PLATFORMS, BENCHMARK_TIERS,
    BENCHMARK_COMBO_PLATFORMS, BENCHMARK_COMBO_TIERS,
)
from creator_insights.database import get_session, dialect_name
from creator_insights.models.benchmark import BenchmarkContribution, BenchmarkSegment
from creator_insights.services.metrics import CreatorRecord, MetricSnapshot
from creator_insights.services.privacy import build_contributions

logger = logging.getLogger('services.benchmarks')


# ── Snapshot type ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Benchmarks:
    """Read-only benchmark baseline passed explicitly into scoring and actions."""
    segment: str
    sample_size: int = 0
    cpa_p25: Optional[float] = None
    cpa_p50: Optional[float] = None
    cpa_p75: Optional[float] = None
    cpc_p50: Optional[float] = None
    cpm_p50: Optional[float] = None
    conversion_rate_p50: Optional[float] = None
    days_to_content_p50: Optional[int] = None
    content_delivery_rate_p50: Optional[float] = None
    views_per_dollar_p50: Optional[float] = None
    updated_at: Optional[datetime] = None

    @property
    def has_data(self) -> bool:
        return self.sample_size > 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['updated_at'] = self.updated_at.isoformat() if self.updated_at else None
        return data

    @classmethod
    def from_row(cls, row: BenchmarkSegment) -> 'Benchmarks':
        return cls(
            segment=row.segment,
            sample_size=row.sample_size or 0,
            cpa_p25=row.cpa_p25,
            cpa_p50=row.cpa_p50,
            cpa_p75=row.cpa_p75,
            cpc_p50=row.cpc_p50,
            cpm_p50=row.cpm_p50,
            conversion_rate_p50=row.conversion_rate_p50,
            days_to_content_p50=row.days_to_content_p50,
            content_delivery_rate_p50=row.content_delivery_rate_p50,
            views_per_dollar_p50=row.views_per_dollar_p50,
            updated_at=row.updated_at,
        )


# Industry rules of thumb used until enough tenants have contributed
DEFAULT_BENCHMARKS = Benchmarks(
    segment='default',
    sample_size=0,
    cpa_p25=15,
    cpa_p50=30,
    cpa_p75=60,
    cpc_p50=0.50,
    cpm_p50=5,
    conversion_rate_p50=0.001,
    content_delivery_rate_p50=80,
    views_per_dollar_p50=200,
)


@dataclass(frozen=True)
class Thresholds:
    cpa_excellent: float
    cpa_good: float
    cpa_concern: float
    cpa_critical: float
    content_delivery_good: float
    content_delivery_poor: float
    content_deadline_days: int
    views_per_dollar_good: float
    min_conversion_rate: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


DEFAULT_THRESHOLDS = Thresholds(
    cpa_excellent=15,
    cpa_good=30,
    cpa_concern=60,
    cpa_critical=60,
    content_delivery_good=80,
    content_delivery_poor=50,
    content_deadline_days=7,
    views_per_dollar_good=200,
    min_conversion_rate=0.0005,
)


def _positive_or(value: Optional[float], default: float) -> float:
    if value is None or value <= 0:
        return default
    return float(value)


def get_dynamic_thresholds(benchmarks: Benchmarks) -> Thresholds:
    """Scoring thresholds derived from benchmark percentiles.

    Without real samples (sample_size == 0) the static DEFAULT_THRESHOLDS apply.
    """
    if not benchmarks.has_data:
        return DEFAULT_THRESHOLDS

    cpa_good = _positive_or(benchmarks.cpa_p50, 30)
    delivery_good = _positive_or(benchmarks.content_delivery_rate_p50, 80)
    return Thresholds(
        cpa_excellent=_positive_or(benchmarks.cpa_p25, 15),
        cpa_good=cpa_good,
        cpa_concern=_positive_or(benchmarks.cpa_p75, 60),
        cpa_critical=cpa_good * 2,
        content_delivery_good=delivery_good,
        content_delivery_poor=delivery_good * 0.6,
        content_deadline_days=math.ceil((100 - delivery_good) / 10) + 7,
        views_per_dollar_good=_positive_or(benchmarks.views_per_dollar_p50, 200),
        min_conversion_rate=_positive_or(benchmarks.conversion_rate_p50, 0.001) * 0.5,
    )


# ── Write path: contributions ────────────────────────────────────────────────

def contribute_to_benchmarks(platform_breakdown: Dict[str, MetricSnapshot],
                             creators: List[CreatorRecord],
                             rng: Optional[random.Random] = None) -> int:
    """Append this tenant's anonymized rows to the pool. Returns rows written.

    Best-effort: any failure is logged and reported as 0 rows, never raised.
    """
    try:
        rows = build_contributions(platform_breakdown, creators, rng)
    except Exception as e:
        logger.warning("Failed to build benchmark contribution: %s", e)
        return 0
    if not rows:
        return 0

    try:
        session = get_session()
    except Exception as e:
        logger.warning("Failed to get session for contribution: %s", e)
        return 0
    try:
        recorded_at = datetime.now()
        for row in rows:
            session.add(BenchmarkContribution(recorded_at=recorded_at, **row))
        session.commit()
        logger.info("Contributed %d benchmark rows (%s)",
                    len(rows), ', '.join(r['platform'] for r in rows))
        return len(rows)
    except Exception as e:
        session.rollback()
        logger.warning("Failed to write benchmark contribution: %s", e)
        return 0
    finally:
        session.close()


# ── Percentile engine ────────────────────────────────────────────────────────

def percentile_cont(values, fraction: float) -> Optional[float]:
    """Linear-interpolated percentile, same as Postgres PERCENTILE_CONT. Nulls ignored."""
    clean = [float(v) for v in values if v is not None]
    if not clean:
        return None
    return float(np.percentile(clean, fraction * 100, method='linear'))


# (segment column, contribution column, fraction, decimals)
_PERCENTILE_COLUMNS = [
    ('cpa_p25', 'cpa', 0.25, 2),
    ('cpa_p50', 'cpa', 0.50, 2),
    ('cpa_p75', 'cpa', 0.75, 2),
    ('cpc_p50', 'cpc', 0.50, 2),
    ('cpm_p50', 'cpm', 0.50, 2),
    ('conversion_rate_p50', 'conversion_rate', 0.50, 6),
    ('content_delivery_rate_p50', 'content_delivery_rate', 0.50, 2),
    ('views_per_dollar_p50', 'views_per_dollar', 0.50, 2),
]


def _aggregate_in_database(session, filters) -> Dict[str, Any]:
    """COUNT + PERCENTILE_CONT computed by Postgres."""
    columns = [func.count(BenchmarkContribution.id).label('sample_size')]
    for target, source, fraction, _ in _PERCENTILE_COLUMNS:
        col = getattr(BenchmarkContribution, source)
        columns.append(func.percentile_cont(fraction).within_group(col.asc()).label(target))
    row = session.query(*columns).filter(*filters).one()
    return dict(row._mapping)


def _aggregate_in_process(session, filters) -> Dict[str, Any]:
    """Same aggregate for stores without ordered-set aggregates (SQLite)."""
    sources = sorted({source for _, source, _, _ in _PERCENTILE_COLUMNS})
    rows = session.query(
        *[getattr(BenchmarkContribution, s) for s in sources]
    ).filter(*filters).all()

    stats: Dict[str, Any] = {'sample_size': len(rows)}
    for target, source, fraction, _ in _PERCENTILE_COLUMNS:
        stats[target] = percentile_cont([getattr(r, source) for r in rows], fraction)
    return stats


def _round_stats(stats: Dict[str, Any]) -> Dict[str, Any]:
    rounded = {'sample_size': int(stats.get('sample_size') or 0)}
    for target, _, _, decimals in _PERCENTILE_COLUMNS:
        value = stats.get(target)
        rounded[target] = round(float(value), decimals) if value is not None else None
    return rounded


def _upsert_segment(session, values: Dict[str, Any]):
    """Atomic upsert keyed by segment name."""
    dialect = dialect_name(session)
    if dialect in ('postgresql', 'sqlite'):
        insert = pg_insert if dialect == 'postgresql' else sqlite_insert
        stmt = insert(BenchmarkSegment).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=['segment'],
            set_={k: stmt.excluded[k] for k in values if k != 'segment'},
        )
        session.execute(stmt)
        return

    existing = session.query(BenchmarkSegment).filter(
        BenchmarkSegment.segment == values['segment'],
    ).first()
    if existing:
        for key, value in values.items():
            setattr(existing, key, value)
    else:
        session.add(BenchmarkSegment(**values))


def compute_segment_benchmarks(segment: str, platform: Optional[str] = None,
                               price_tier: Optional[str] = None,
                               now: Optional[datetime] = None) -> bool:
    """Recompute one segment from the retention window. Returns True if written.

    Segments below BENCHMARK_MIN_SAMPLE are left untouched (absent or stale),
    which makes readers fall back to a broader segment.
    """
    now = now or datetime.now()
    try:
        session = get_session()
    except Exception as e:
        logger.error("Failed to get session: %s", e)
        return False
    try:
        filters = [BenchmarkContribution.recorded_at > now - timedelta(days=BENCHMARK_RETENTION_DAYS)]
        if platform:
            filters.append(BenchmarkContribution.platform == platform)
        if price_tier:
            filters.append(BenchmarkContribution.price_tier == price_tier)

        if dialect_name(session) == 'postgresql':
            stats = _aggregate_in_database(session, filters)
        else:
            stats = _aggregate_in_process(session, filters)
        stats = _round_stats(stats)

        if stats['sample_size'] < BENCHMARK_MIN_SAMPLE:
            logger.debug("Segment %s skipped: %d samples (< %d)",
                         segment, stats['sample_size'], BENCHMARK_MIN_SAMPLE)
            return False

        _upsert_segment(session, {'segment': segment, 'updated_at': now, **stats})
        session.commit()
        return True

    except Exception as e:
        session.rollback()
        logger.error("Benchmark computation error for %s: %s", segment, e, extra={'segment': segment})
        return False
    finally:
        session.close()


def benchmark_segments() -> List[Tuple[str, Optional[str], Optional[str]]]:
    """The fixed set of (segment, platform, price_tier) refreshed on each cycle."""
    segments = [('overall', None, None)]
    segments += [(f'platform:{p}', p, None) for p in BENCHMARK_PLATFORMS]
    segments += [(f'tier:{t}', None, t) for t in BENCHMARK_TIERS]
    segments += [
        (f'{p}:{t}', p, t)
        for p in BENCHMARK_COMBO_PLATFORMS
        for t in BENCHMARK_COMBO_TIERS
    ]
    return segments


def refresh_benchmarks(now: Optional[datetime] = None) -> Dict[str, bool]:
    """Recompute every segment independently. One failure never blocks the rest."""
    now = now or datetime.now()
    results = {}
    for segment, platform, tier in benchmark_segments():
        results[segment] = compute_segment_benchmarks(segment, platform=platform,
                                                      price_tier=tier, now=now)
    written = sum(1 for ok in results.values() if ok)
    logger.info("Benchmark refresh complete: %d/%d segments written", written, len(results))
    return results


# ── Read path ────────────────────────────────────────────────────────────────

def candidate_segments(platform: Optional[str] = None, price_tier: Optional[str] = None) -> List[str]:
    """Segments to try, most specific first."""
    segments = []
    if platform and price_tier:
        segments.append(f'{platform}:{price_tier}')
    if platform:
        segments.append(f'platform:{platform}')
    if price_tier:
        segments.append(f'tier:{price_tier}')
    segments.append('overall')
    return segments


def get_benchmarks(platform: Optional[str] = None, price_tier: Optional[str] = None) -> Benchmarks:
    """First stored segment on the fallback chain, else DEFAULT_BENCHMARKS."""
    try:
        session = get_session()
    except Exception as e:
        logger.error("Failed to get session: %s", e)
        return DEFAULT_BENCHMARKS
    try:
        for segment in candidate_segments(platform, price_tier):
            row = session.query(BenchmarkSegment).filter(
                BenchmarkSegment.segment == segment,
            ).first()
            if row is not None:
                return Benchmarks.from_row(row)
        return DEFAULT_BENCHMARKS
    except Exception as e:
        logger.error("Failed to load benchmarks: %s", e)
        return DEFAULT_BENCHMARKS
    finally:
        session.close()


# ── Comparison ───────────────────────────────────────────────────────────────

def compare_to_benchmarks(cpa: Optional[float], content_delivery: Optional[float],
                          views_per_dollar: Optional[float],
                          benchmarks: Benchmarks) -> Dict[str, Dict[str, Any]]:
    """Rate a tenant's headline metrics against the benchmark medians."""
    comparisons = {}

    if cpa is not None and benchmarks.cpa_p50:
        ratio = cpa / benchmarks.cpa_p50
        if ratio < 0.5:
            percentile = 'top10'
        elif ratio < 0.75:
            percentile = 'top25'
        elif ratio < 1:
            percentile = 'above_avg'
        elif ratio < 1.5:
            percentile = 'below_avg'
        else:
            percentile = 'bottom25'

        if ratio < 0.75:
            insight = f'Your CPA (${cpa:.2f}) is in the top 25% - outperforming most campaigns'
        elif ratio > 1.5:
            insight = (f'Your CPA (${cpa:.2f}) is 50%+ above benchmark '
                       f'(${benchmarks.cpa_p50:g}) - optimization needed')
        else:
            insight = f'Your CPA (${cpa:.2f}) is near benchmark (${benchmarks.cpa_p50:g})'

        comparisons['cpa'] = {
            'value': cpa,
            'benchmark': benchmarks.cpa_p50,
            'percentile': percentile,
            'rating': 'good' if ratio < 1 else 'average' if ratio < 1.5 else 'poor',
            'insight': insight,
        }

    if content_delivery is not None and benchmarks.content_delivery_rate_p50:
        ratio = content_delivery / benchmarks.content_delivery_rate_p50
        if ratio < 0.8:
            insight = (f'Only {content_delivery:.0f}% of creators delivered - '
                       f'below {benchmarks.content_delivery_rate_p50:g}% benchmark')
        else:
            insight = f'{content_delivery:.0f}% delivery rate meets industry standard'
        comparisons['content_delivery'] = {
            'value': content_delivery,
            'benchmark': benchmarks.content_delivery_rate_p50,
            'rating': 'good' if ratio >= 1 else 'average' if ratio >= 0.8 else 'poor',
            'insight': insight,
        }

    if views_per_dollar is not None and benchmarks.views_per_dollar_p50:
        ratio = views_per_dollar / benchmarks.views_per_dollar_p50
        comparisons['efficiency'] = {
            'value': views_per_dollar,
            'benchmark': benchmarks.views_per_dollar_p50,
            'rating': 'good' if ratio >= 1.25 else 'average' if ratio >= 0.75 else 'poor',
        }

    return comparisons
