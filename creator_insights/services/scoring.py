"""
Health score (0–100) for a tenant, measured against benchmark thresholds.

Pure: takes already-loaded tenant data and a Benchmarks snapshot. When the
snapshot has no real samples the static default thresholds apply, so the
score behaves the same with or without a populated benchmark table.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List

from creator_insights.services.benchmarks import (
    Benchmarks, compare_to_benchmarks, get_dynamic_thresholds,
)
from creator_insights.services.metrics import round_half_up, safe_ratio

NEUTRAL_SCORE = 50
SIGNIFICANT_SPEND = 500


@dataclass
class ScoreResult:
    score: int
    issues: List[str] = field(default_factory=list)
    insights: List[str] = field(default_factory=list)
    breakdown: Dict[str, Any] = field(default_factory=dict)
    benchmark_comparison: Dict[str, Any] = field(default_factory=dict)
    thresholds: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'score': self.score,
            'issues': list(self.issues),
            'insights': list(self.insights),
            'breakdown': dict(self.breakdown),
            'benchmark_comparison': dict(self.benchmark_comparison),
            'thresholds': dict(self.thresholds),
        }


def calculate_score(tenant, benchmarks: Benchmarks) -> ScoreResult:
    """Start at 100 and subtract capped penalties per category.

    CPA up to 30, content delivery up to 25, wasted spend up to 20,
    platform diversification up to 15, low activity 5.
    """
    creators = tenant.creators
    if not creators:
        return ScoreResult(score=NEUTRAL_SCORE)

    has_benchmark_data = benchmarks.has_data
    thresholds = get_dynamic_thresholds(benchmarks)
    totals = tenant.totals

    score = 100
    issues: List[str] = []
    insights: List[str] = []

    cpa = totals.cpa
    delivery_rate = (len(creators) - len(tenant.no_content)) / len(creators) * 100
    views_per_dollar = totals.views_per_dollar or 0.0

    # CPA
    if cpa is not None and totals.total_spent > SIGNIFICANT_SPEND:
        if cpa > thresholds.cpa_critical:
            score -= 30
            issues.append(f'CPA (${cpa:.2f}) is 2x above benchmark (${thresholds.cpa_good:g})'
                          if has_benchmark_data else f'CPA (${cpa:.2f}) is very high')
        elif cpa > thresholds.cpa_concern:
            score -= 20
            issues.append(f'CPA (${cpa:.2f}) above 75th percentile benchmark'
                          if has_benchmark_data else f'CPA (${cpa:.2f}) is high')
        elif cpa > thresholds.cpa_good:
            score -= 10
            issues.append(f'CPA (${cpa:.2f}) could be improved')
        elif cpa <= thresholds.cpa_excellent:
            insights.append('Excellent CPA - top 25% performance'
                            if has_benchmark_data else 'Strong CPA performance')
    elif totals.total_spent > SIGNIFICANT_SPEND and totals.total_conversions == 0:
        score -= 30
        issues.append('No conversions despite significant spend')

    # Content delivery
    if tenant.no_content:
        if delivery_rate < thresholds.content_delivery_poor:
            score -= 25
            issues.append(f'Only {delivery_rate:.0f}% of creators delivered content')
        elif delivery_rate < thresholds.content_delivery_good:
            score -= min(15, round_half_up((thresholds.content_delivery_good - delivery_rate) / 2))
            issues.append(f"{len(tenant.no_content)} creators haven't delivered yet")

    # Wasted spend
    wasted = sum(c.spent for c in tenant.no_conversions)
    waste_ratio = safe_ratio(wasted, totals.total_spent) or 0.0
    if waste_ratio > 0.5:
        score -= 20
        issues.append('More than half of spend has zero conversions')
    elif waste_ratio > 0.3:
        score -= 15
        issues.append('Significant spend with no conversions')
    elif waste_ratio > 0.1:
        score -= 10

    # Diversification
    platform_count = len(tenant.platforms)
    converting_platforms = sum(1 for s in tenant.platforms.values() if s.conversions > 0)
    if platform_count > 1 and converting_platforms == 1:
        score -= 10
        issues.append('Only one platform is converting')
    elif platform_count > 2 and converting_platforms == 0:
        score -= 15
        issues.append('No platforms are converting')

    # Activity
    if len(creators) < 3 and totals.campaigns > 0:
        score -= 5
        issues.append('Few creators tracked')

    score = max(0, min(100, score))

    comparison = compare_to_benchmarks(cpa, delivery_rate, views_per_dollar or None, benchmarks)
    comparison['sample_size'] = benchmarks.sample_size

    return ScoreResult(
        score=score,
        issues=issues,
        insights=insights,
        breakdown={
            'cpa': round(cpa, 2) if cpa is not None else None,
            'cpa_benchmark': thresholds.cpa_good,
            'content_delivery_rate': round_half_up(delivery_rate),
            'content_delivery_benchmark': thresholds.content_delivery_good,
            'waste_ratio': round_half_up(waste_ratio * 100),
            'converting_platforms': converting_platforms,
            'total_platforms': platform_count,
            'views_per_dollar': round_half_up(views_per_dollar),
        },
        benchmark_comparison=comparison,
        thresholds=thresholds.to_dict(),
    )
