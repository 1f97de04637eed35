"""Tests for creator_insights.services.privacy: cohort gates, tiers, noise."""
import random

import pytest

from creator_insights.config import BUCKET_WIDTHS
from creator_insights.services.metrics import MetricSnapshot, build_platform_breakdown
from creator_insights.services.privacy import (
    add_noise, anonymize_platform, build_contributions, is_platform_eligible,
    platform_delivery_rate, price_tier_for, round_to_bucket, should_contribute,
)


def _creators(make_creator, platform_counts, converting=True, price=1000):
    creators = []
    for domain, count in platform_counts.items():
        for _ in range(count):
            creators.append(make_creator(
                channel_url=f'https://{domain}.com/someone',
                price=price,
                total_conversions=10 if converting else 0,
            ))
    return creators


# ---------------------------------------------------------------------------
# should_contribute
# ---------------------------------------------------------------------------

class TestShouldContribute:

    def test_four_creators_never_contribute(self, make_creator):
        creators = _creators(make_creator, {'youtube': 2, 'tiktok': 1, 'instagram': 1})
        breakdown = build_platform_breakdown(creators)
        assert should_contribute(breakdown, len(creators)) is False

    def test_one_converting_platform_is_not_enough(self, make_creator):
        creators = (_creators(make_creator, {'youtube': 3})
                    + _creators(make_creator, {'tiktok': 3}, converting=False))
        breakdown = build_platform_breakdown(creators)
        assert should_contribute(breakdown, len(creators)) is False

    def test_two_converting_platforms_and_five_creators(self, make_creator):
        creators = _creators(make_creator, {'youtube': 3, 'tiktok': 3})
        breakdown = build_platform_breakdown(creators)
        assert should_contribute(breakdown, len(creators)) is True


# ---------------------------------------------------------------------------
# Platform eligibility + tiers
# ---------------------------------------------------------------------------

class TestPlatformEligibility:

    def test_needs_three_creators(self):
        assert is_platform_eligible('YouTube', MetricSnapshot('YouTube', count=3)) is True
        assert is_platform_eligible('YouTube', MetricSnapshot('YouTube', count=2)) is False

    def test_kick_and_other_not_allow_listed(self):
        assert is_platform_eligible('Kick', MetricSnapshot('Kick', count=10)) is False
        assert is_platform_eligible('Other', MetricSnapshot('Other', count=10)) is False


class TestPriceTier:

    @pytest.mark.parametrize('spent,count,tier', [
        (2999, 3, 'small'),
        (3000, 3, 'medium'),
        (15000, 3, 'large'),
        (0, 0, 'small'),
    ])
    def test_tier_from_average_spend(self, spent, count, tier):
        assert price_tier_for(MetricSnapshot('YouTube', spent=spent, count=count)) == tier


# ---------------------------------------------------------------------------
# Noise
# ---------------------------------------------------------------------------

class TestNoise:

    def test_none_passes_through(self):
        assert add_noise(None) is None
        assert round_to_bucket(None, 5) is None

    def test_noise_stays_within_ten_percent(self):
        rng = random.Random(7)
        for _ in range(500):
            noised = add_noise(100.0, rng)
            assert 90.0 <= noised <= 110.0

    def test_bucket_rounding(self):
        assert round_to_bucket(27.4, 5) == 25
        assert round_to_bucket(27.5, 5) == 30
        assert round_to_bucket(0.23, 0.1) == 0.2
        assert round_to_bucket(0.00234, 0.0001) == 0.0023

    def test_stored_values_within_noise_and_bucket_tolerance(self, make_creator):
        rng = random.Random(11)
        creators = _creators(make_creator, {'youtube': 4, 'tiktok': 3})
        breakdown = build_platform_breakdown(creators)
        for _ in range(50):
            for row in build_contributions(breakdown, creators, rng):
                raw = breakdown[row['platform']]
                for metric, original in (('cpa', raw.cpa), ('cpm', raw.cpm),
                                         ('views_per_dollar', raw.views_per_dollar)):
                    tolerance = original * 0.1 + BUCKET_WIDTHS[metric] / 2
                    assert abs(row[metric] - original) <= tolerance + 1e-9


# ---------------------------------------------------------------------------
# anonymize_platform / build_contributions
# ---------------------------------------------------------------------------

class TestAnonymizePlatform:

    def test_nothing_to_contribute(self):
        snap = MetricSnapshot('YouTube', spent=100, count=3)
        assert anonymize_platform('YouTube', snap, []) is None

    def test_row_never_contains_raw_spend(self, make_creator):
        creators = _creators(make_creator, {'youtube': 3})
        snap = build_platform_breakdown(creators)['YouTube']
        row = anonymize_platform('YouTube', snap, creators, random.Random(1))
        assert set(row) == {'platform', 'price_tier', 'cpa', 'cpc', 'cpm',
                            'conversion_rate', 'content_delivery_rate', 'views_per_dollar'}
        assert row['price_tier'] == 'medium'

    def test_delivery_rate_matches_platform(self, make_creator):
        creators = [make_creator(channel_url='https://youtube.com/a', content_count=1),
                    make_creator(channel_url='https://youtube.com/b', content_count=0),
                    make_creator(channel_url='https://tiktok.com/c', content_count=0)]
        assert platform_delivery_rate('YouTube', creators) == 50.0
        assert platform_delivery_rate('Twitch', creators) is None


class TestBuildContributions:

    def test_gated_out_tenant_yields_nothing(self, make_creator):
        creators = _creators(make_creator, {'youtube': 4})
        assert build_contributions(build_platform_breakdown(creators), creators) == []

    def test_only_eligible_platforms_contribute(self, make_creator):
        creators = _creators(make_creator, {'youtube': 3, 'tiktok': 3, 'kick': 3, 'twitch': 2})
        rows = build_contributions(build_platform_breakdown(creators), creators, random.Random(3))
        assert sorted(r['platform'] for r in rows) == ['TikTok', 'YouTube']
