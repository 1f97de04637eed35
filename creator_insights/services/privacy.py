"""
Privacy filter + noise injection for benchmark contributions.

Decides whether a tenant's metrics may enter the shared benchmark pool and
perturbs every value before it is stored:

  1. Cohort gate: ≥2 converting platforms and ≥5 creators overall
  2. Platform gate: ≥3 creators on the platform, major platforms only
  3. Coarsening: spend is reduced to a small/medium/large tier
  4. Noise: each value × uniform(0.9, 1.1), then bucket-rounded

This is best-effort obfuscation. The random source is not cryptographic and
the gates do not bound reconstruction across repeated contributions over time;
it is not differential privacy.
"""
import logging
import random
from typing import Any, Dict, List, Optional

from creator_insights.config import (
    MIN_CONVERTING_PLATFORMS, MIN_TOTAL_CREATORS, MIN_PLATFORM_CREATORS,
    CONTRIBUTION_PLATFORMS, NOISE_LOW, NOISE_HIGH, BUCKET_WIDTHS,
    PRICE_TIER_BOUNDS, PRICE_TIER_TOP,
)
from creator_insights.services.metrics import (
    CreatorRecord, MetricSnapshot, round_half_up, safe_ratio,
)

logger = logging.getLogger('services.privacy')

_rng = random.Random()


def should_contribute(platform_breakdown: Dict[str, MetricSnapshot], total_creator_count: int) -> bool:
    """Cohort gate: only tenants with enough spread across platforms and creators."""
    converting = sum(1 for s in platform_breakdown.values() if s.conversions > 0)
    return converting >= MIN_CONVERTING_PLATFORMS and total_creator_count >= MIN_TOTAL_CREATORS


def is_platform_eligible(platform: str, snapshot: MetricSnapshot) -> bool:
    return (
        snapshot.count >= MIN_PLATFORM_CREATORS
        and (platform or '').lower() in CONTRIBUTION_PLATFORMS
    )


def price_tier_for(snapshot: MetricSnapshot) -> str:
    """Coarse tier from average spend per creator."""
    avg_price = safe_ratio(snapshot.spent, snapshot.count) or 0.0
    for upper_bound, tier in PRICE_TIER_BOUNDS:
        if avg_price < upper_bound:
            return tier
    return PRICE_TIER_TOP


def add_noise(value: Optional[float], rng: Optional[random.Random] = None) -> Optional[float]:
    if value is None:
        return None
    rng = rng or _rng
    return value * rng.uniform(NOISE_LOW, NOISE_HIGH)


def round_to_bucket(value: Optional[float], width: float) -> Optional[float]:
    if value is None:
        return None
    return round(round_half_up(value / width) * width, 6)


def platform_delivery_rate(platform: str, creators: List[CreatorRecord]) -> Optional[float]:
    """Share (0–100) of the platform's creators that have delivered content."""
    needle = (platform or '').lower()
    on_platform = [c for c in creators if needle in (c.channel_url or '').lower()]
    if not on_platform:
        return None
    delivered = sum(1 for c in on_platform if c.content_items > 0)
    return delivered / len(on_platform) * 100


def anonymize_platform(platform: str, snapshot: MetricSnapshot, creators: List[CreatorRecord],
                       rng: Optional[random.Random] = None) -> Optional[Dict[str, Any]]:
    """Noised, bucketed row for one platform, or None if there is nothing to contribute."""
    if snapshot.cpa is None and snapshot.conversion_rate is None:
        return None

    raw = {
        'cpa': snapshot.cpa,
        'cpc': snapshot.cpc,
        'cpm': snapshot.cpm,
        'conversion_rate': snapshot.conversion_rate,
        'content_delivery_rate': platform_delivery_rate(platform, creators),
        'views_per_dollar': snapshot.views_per_dollar,
    }
    row = {
        'platform': platform,
        'price_tier': price_tier_for(snapshot),
    }
    for metric, value in raw.items():
        row[metric] = round_to_bucket(add_noise(value, rng), BUCKET_WIDTHS[metric])
    return row


def build_contributions(platform_breakdown: Dict[str, MetricSnapshot], creators: List[CreatorRecord],
                        rng: Optional[random.Random] = None) -> List[Dict[str, Any]]:
    """Rows this tenant may contribute, after every gate. Empty list when gated out."""
    if not should_contribute(platform_breakdown, len(creators)):
        logger.debug("Contribution skipped: cohort too small (%d creators)", len(creators))
        return []

    rows = []
    for platform, snapshot in platform_breakdown.items():
        if not is_platform_eligible(platform, snapshot):
            continue
        row = anonymize_platform(platform, snapshot, creators, rng)
        if row is not None:
            rows.append(row)
    return rows
