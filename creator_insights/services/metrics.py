"""
Metric aggregation: per-creator rows → per-platform snapshots and tenant totals.

Pure functions over in-memory rows; no I/O. Every derived ratio is either a
finite non-negative float or None when its denominator is zero.
"""
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

PLATFORM_PATTERNS = [
    ('youtube', 'YouTube'),
    ('tiktok', 'TikTok'),
    ('instagram', 'Instagram'),
    ('twitch', 'Twitch'),
    ('kick', 'Kick'),
]
OTHER_PLATFORM = 'Other'


def to_number(value: Any) -> float:
    """Coerce a store value (None, str, Decimal, int, float) to a finite float ≥ 0."""
    if value is None:
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number) or number < 0:
        return 0.0
    return number


def round_half_up(value: float) -> int:
    """Round .5 toward +infinity, the way dashboard percentages are shown."""
    return int(math.floor(value + 0.5))


def safe_ratio(numerator: float, denominator: float, scale: float = 1.0) -> Optional[float]:
    """numerator / denominator * scale, or None when the denominator is zero."""
    if denominator <= 0:
        return None
    result = numerator / denominator * scale
    if not math.isfinite(result):
        return None
    return result


def detect_platform(channel_url: Optional[str]) -> str:
    """Map a channel URL to its platform tag."""
    url = (channel_url or '').lower()
    for needle, platform in PLATFORM_PATTERNS:
        if needle in url:
            return platform
    return OTHER_PLATFORM


# ── Types ────────────────────────────────────────────────────────────────────

@dataclass
class MetricSnapshot:
    """Aggregate spend/outcome counters for one platform segment."""
    platform: str
    spent: float = 0.0
    conversions: float = 0.0
    clicks: float = 0.0
    views: float = 0.0
    count: int = 0

    @property
    def cpa(self) -> Optional[float]:
        return safe_ratio(self.spent, self.conversions)

    @property
    def cpc(self) -> Optional[float]:
        return safe_ratio(self.spent, self.clicks)

    @property
    def cpm(self) -> Optional[float]:
        return safe_ratio(self.spent, self.views, scale=1000)

    @property
    def conversion_rate(self) -> Optional[float]:
        return safe_ratio(self.conversions, self.views)

    @property
    def views_per_dollar(self) -> Optional[float]:
        return safe_ratio(self.views, self.spent)

    def add(self, spent=0.0, conversions=0.0, clicks=0.0, views=0.0):
        self.count += 1
        self.spent += to_number(spent)
        self.conversions += to_number(conversions)
        self.clicks += to_number(clicks)
        self.views += to_number(views)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'platform': self.platform,
            'spent': self.spent,
            'conversions': self.conversions,
            'clicks': self.clicks,
            'views': self.views,
            'count': self.count,
            'cpa': self.cpa,
            'cpc': self.cpc,
            'cpm': self.cpm,
            'conversion_rate': self.conversion_rate,
            'views_per_dollar': self.views_per_dollar,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MetricSnapshot':
        return cls(
            platform=data.get('platform') or OTHER_PLATFORM,
            spent=to_number(data.get('spent')),
            conversions=to_number(data.get('conversions')),
            clicks=to_number(data.get('clicks')),
            views=to_number(data.get('views')),
            count=int(to_number(data.get('count'))),
        )


@dataclass
class CreatorRecord:
    """One paid creator with deliverable stats merged in. Every metric may be null."""
    id: Any
    name: Optional[str] = None
    channel_url: Optional[str] = None
    price: Optional[float] = None
    total_conversions: Optional[float] = None
    conversions: Optional[float] = None
    clicks: Optional[float] = None
    views: Optional[float] = None
    total_views: Optional[float] = None
    total_likes: Optional[float] = None
    content_count: Optional[int] = None
    created_at: Optional[datetime] = None
    first_post_date: Optional[datetime] = None
    last_post_date: Optional[datetime] = None

    @property
    def display_name(self) -> str:
        return self.name or f'Creator {self.id}'

    @property
    def spent(self) -> float:
        return to_number(self.price)

    @property
    def conversion_count(self) -> float:
        # total_conversions is authoritative; legacy rows only fill conversions
        if self.total_conversions is not None and to_number(self.total_conversions) > 0:
            return to_number(self.total_conversions)
        return to_number(self.conversions)

    @property
    def view_count(self) -> float:
        if self.total_views is not None and to_number(self.total_views) > 0:
            return to_number(self.total_views)
        return to_number(self.views)

    @property
    def click_count(self) -> float:
        return to_number(self.clicks)

    @property
    def content_items(self) -> int:
        return int(to_number(self.content_count))

    @property
    def platform(self) -> str:
        return detect_platform(self.channel_url)

    @property
    def cpa(self) -> Optional[float]:
        return safe_ratio(self.spent, self.conversion_count)


@dataclass
class Totals:
    campaigns: int = 0
    creators: int = 0
    total_spent: float = 0.0
    total_conversions: float = 0.0
    total_views: float = 0.0
    total_clicks: float = 0.0

    @property
    def cpa(self) -> Optional[float]:
        return safe_ratio(self.total_spent, self.total_conversions)

    @property
    def conversion_rate(self) -> Optional[float]:
        return safe_ratio(self.total_conversions, self.total_views)

    @property
    def views_per_dollar(self) -> Optional[float]:
        return safe_ratio(self.total_views, self.total_spent)


# ── Aggregation ──────────────────────────────────────────────────────────────

def build_platform_breakdown(creators: List[CreatorRecord]) -> Dict[str, MetricSnapshot]:
    """Group creators by platform and sum their counters."""
    platforms: Dict[str, MetricSnapshot] = {}
    for creator in creators:
        platform = creator.platform
        if platform not in platforms:
            platforms[platform] = MetricSnapshot(platform=platform)
        platforms[platform].add(
            spent=creator.spent,
            conversions=creator.conversion_count,
            clicks=creator.click_count,
            views=creator.view_count,
        )
    return platforms


def compute_totals(creators: List[CreatorRecord], campaign_count: int = 0) -> Totals:
    return Totals(
        campaigns=campaign_count,
        creators=len(creators),
        total_spent=sum(c.spent for c in creators),
        total_conversions=sum(c.conversion_count for c in creators),
        total_views=sum(c.view_count for c in creators),
        total_clicks=sum(c.click_count for c in creators),
    )


def find_no_content(creators: List[CreatorRecord], now: Optional[datetime] = None,
                    grace_days: int = 7) -> List[CreatorRecord]:
    """Paid creators with no tracked content after the grace period."""
    now = now or datetime.now()
    result = []
    for creator in creators:
        days_since_added = 0
        if creator.created_at is not None:
            days_since_added = (now - creator.created_at).days
        if creator.spent > 0 and creator.content_items == 0 and days_since_added >= grace_days:
            result.append(creator)
    return result


def find_no_conversions(creators: List[CreatorRecord]) -> List[CreatorRecord]:
    """Paid creators whose content is live but has produced zero conversions."""
    return [
        c for c in creators
        if c.content_items > 0 and c.spent > 0 and c.conversion_count == 0
    ]


def find_top_performers(creators: List[CreatorRecord], limit: int = 5) -> List[CreatorRecord]:
    converting = [c for c in creators if c.conversion_count > 0]
    converting.sort(key=lambda c: c.conversion_count, reverse=True)
    return converting[:limit]


def content_delivery_rate(creators: List[CreatorRecord]) -> float:
    """Percentage of creators with at least one tracked piece of content."""
    if not creators:
        return 100.0
    delivered = sum(1 for c in creators if c.content_items > 0)
    return delivered / len(creators) * 100


def wasted_spend(creators: List[CreatorRecord]) -> float:
    return sum(c.spent for c in find_no_conversions(creators))


# ── Formatting ───────────────────────────────────────────────────────────────

def format_number(num: float) -> str:
    num = to_number(num)
    if num >= 1_000_000:
        return f'{num / 1_000_000:.1f}M'
    if num >= 1000:
        return f'{num / 1000:.1f}K'
    if num == int(num):
        return str(int(num))
    return str(num)


def format_money(amount: float) -> str:
    amount = to_number(amount)
    if amount == int(amount):
        return f'${int(amount):,}'
    return f'${amount:,.2f}'
