"""Tests for creator_insights.services.benchmarks: percentile engine, fallback, contributions."""
import random
from datetime import datetime, timedelta
from unittest.mock import patch

import pytest

from creator_insights.models.benchmark import BenchmarkContribution, BenchmarkSegment
from creator_insights.services.benchmarks import (
    Benchmarks, DEFAULT_BENCHMARKS, DEFAULT_THRESHOLDS,
    benchmark_segments, candidate_segments, compare_to_benchmarks,
    compute_segment_benchmarks, contribute_to_benchmarks, get_benchmarks,
    get_dynamic_thresholds, percentile_cont, refresh_benchmarks,
)
from creator_insights.services.metrics import build_platform_breakdown


def _add_contributions(session, n, now, platform='YouTube', price_tier='small',
                       cpa_start=10.0, age_days=1):
    for i in range(n):
        session.add(BenchmarkContribution(
            recorded_at=now - timedelta(days=age_days),
            platform=platform,
            price_tier=price_tier,
            cpa=cpa_start + i * 5,
            cpc=0.5,
            cpm=4 + i,
            conversion_rate=0.001,
            content_delivery_rate=80,
            views_per_dollar=150 + i * 10,
        ))
    session.commit()


def _add_segment(session, segment, cpa_p50=25.0, sample_size=12):
    session.add(BenchmarkSegment(
        segment=segment, sample_size=sample_size,
        cpa_p25=cpa_p50 / 2, cpa_p50=cpa_p50, cpa_p75=cpa_p50 * 2,
        content_delivery_rate_p50=75, views_per_dollar_p50=180,
        updated_at=datetime(2026, 3, 1),
    ))
    session.commit()


# ---------------------------------------------------------------------------
# percentile_cont
# ---------------------------------------------------------------------------

class TestPercentileCont:

    def test_linear_interpolation(self):
        assert percentile_cont([1, 2, 3, 4], 0.5) == 2.5
        assert percentile_cont([1, 2, 3, 4], 0.25) == 1.75
        assert percentile_cont([4, 1, 3, 2], 0.75) == 3.25

    def test_nulls_ignored(self):
        assert percentile_cont([None, 10, None, 20], 0.5) == 15

    def test_empty_is_none(self):
        assert percentile_cont([], 0.5) is None
        assert percentile_cont([None], 0.5) is None


# ---------------------------------------------------------------------------
# compute_segment_benchmarks
# ---------------------------------------------------------------------------

class TestComputeSegmentBenchmarks:

    def test_nine_rows_leave_segment_absent(self, db_session, now):
        _add_contributions(db_session, 9, now)
        assert compute_segment_benchmarks('overall', now=now) is False
        assert db_session.query(BenchmarkSegment).count() == 0

    def test_ten_rows_write_segment(self, db_session, now):
        _add_contributions(db_session, 10, now)
        assert compute_segment_benchmarks('overall', now=now) is True

        row = db_session.query(BenchmarkSegment).filter_by(segment='overall').one()
        assert row.sample_size == 10
        assert row.cpa_p25 <= row.cpa_p50 <= row.cpa_p75
        # cpa values 10, 15, ..., 55
        assert row.cpa_p50 == 32.5
        assert row.cpa_p25 == 21.25
        assert row.cpc_p50 == 0.5

    def test_rows_outside_retention_window_ignored(self, db_session, now):
        _add_contributions(db_session, 6, now)
        _add_contributions(db_session, 6, now, age_days=91)
        assert compute_segment_benchmarks('overall', now=now) is False

    def test_filters_by_platform_and_tier(self, db_session, now):
        _add_contributions(db_session, 10, now, platform='YouTube', price_tier='small')
        _add_contributions(db_session, 10, now, platform='TikTok', price_tier='small')

        assert compute_segment_benchmarks('platform:TikTok', platform='TikTok', now=now) is True
        assert compute_segment_benchmarks('TikTok:large', platform='TikTok',
                                          price_tier='large', now=now) is False
        row = db_session.query(BenchmarkSegment).filter_by(segment='platform:TikTok').one()
        assert row.sample_size == 10

    def test_recompute_replaces_segment(self, db_session, now):
        _add_contributions(db_session, 10, now)
        compute_segment_benchmarks('overall', now=now)
        _add_contributions(db_session, 10, now, cpa_start=100)
        compute_segment_benchmarks('overall', now=now)

        rows = db_session.query(BenchmarkSegment).filter_by(segment='overall').all()
        assert len(rows) == 1
        db_session.refresh(rows[0])
        assert rows[0].sample_size == 20

    def test_failure_is_logged_not_raised(self, now):
        with patch('creator_insights.services.benchmarks._aggregate_in_process',
                   side_effect=RuntimeError('boom')):
            assert compute_segment_benchmarks('overall', now=now) is False


# ---------------------------------------------------------------------------
# refresh_benchmarks
# ---------------------------------------------------------------------------

class TestRefreshBenchmarks:

    def test_segment_set_is_fixed(self):
        names = [s[0] for s in benchmark_segments()]
        assert names[0] == 'overall'
        assert 'platform:Kick' in names
        assert 'tier:large' in names
        assert 'Instagram:medium' in names
        assert 'Twitch:small' not in names
        assert len(names) == 1 + 5 + 3 + 9

    def test_refresh_writes_qualifying_segments(self, db_session, now):
        _add_contributions(db_session, 10, now, platform='YouTube', price_tier='small')
        results = refresh_benchmarks(now=now)

        assert results['overall'] is True
        assert results['platform:YouTube'] is True
        assert results['tier:small'] is True
        assert results['YouTube:small'] is True
        assert results['platform:TikTok'] is False

    def test_one_failing_segment_does_not_block_others(self, db_session, now):
        _add_contributions(db_session, 10, now)
        from creator_insights.services import benchmarks as svc
        real = svc._aggregate_in_process
        calls = {'n': 0}

        def flaky(session, filters):
            calls['n'] += 1
            if calls['n'] == 1:
                raise RuntimeError('percentile function missing')
            return real(session, filters)

        with patch.object(svc, '_aggregate_in_process', side_effect=flaky):
            results = refresh_benchmarks(now=now)

        assert results['overall'] is False
        assert results['platform:YouTube'] is True


# ---------------------------------------------------------------------------
# get_benchmarks
# ---------------------------------------------------------------------------

class TestGetBenchmarks:

    def test_candidate_order(self):
        assert candidate_segments('YouTube', 'small') == [
            'YouTube:small', 'platform:YouTube', 'tier:small', 'overall']
        assert candidate_segments() == ['overall']

    def test_defaults_when_table_empty(self):
        result = get_benchmarks('YouTube', 'small')
        assert result is DEFAULT_BENCHMARKS
        assert result.has_data is False
        assert result.cpa_p50 == 30

    def test_falls_back_to_overall(self, db_session):
        _add_segment(db_session, 'overall', cpa_p50=22)
        result = get_benchmarks(platform='Kick', price_tier='micro')
        assert result.segment == 'overall'
        assert result.cpa_p50 == 22
        assert result.has_data is True

    def test_most_specific_wins(self, db_session):
        _add_segment(db_session, 'overall', cpa_p50=22)
        _add_segment(db_session, 'platform:YouTube', cpa_p50=18)
        _add_segment(db_session, 'YouTube:small', cpa_p50=12)
        assert get_benchmarks('YouTube', 'small').segment == 'YouTube:small'
        assert get_benchmarks('YouTube', 'large').segment == 'platform:YouTube'

    def test_session_failure_returns_defaults(self):
        with patch('creator_insights.services.benchmarks.get_session',
                   side_effect=RuntimeError('db down')):
            assert get_benchmarks() is DEFAULT_BENCHMARKS

    def test_to_dict_serializes_timestamp(self, db_session):
        _add_segment(db_session, 'overall')
        data = get_benchmarks().to_dict()
        assert data['updated_at'] == '2026-03-01T00:00:00'
        assert data['segment'] == 'overall'


# ---------------------------------------------------------------------------
# contribute_to_benchmarks
# ---------------------------------------------------------------------------

class TestContributeToBenchmarks:

    def _eligible_creators(self, make_creator):
        return ([make_creator(channel_url='https://youtube.com/x') for _ in range(3)]
                + [make_creator(channel_url='https://tiktok.com/x') for _ in range(3)])

    def test_writes_one_row_per_eligible_platform(self, db_session, make_creator):
        creators = self._eligible_creators(make_creator)
        written = contribute_to_benchmarks(build_platform_breakdown(creators), creators,
                                           rng=random.Random(5))
        assert written == 2
        rows = db_session.query(BenchmarkContribution).all()
        assert sorted(r.platform for r in rows) == ['TikTok', 'YouTube']
        assert all(r.price_tier == 'small' or r.price_tier == 'medium' for r in rows)

    def test_gated_tenant_writes_nothing(self, db_session, make_creator):
        creators = [make_creator() for _ in range(4)]
        assert contribute_to_benchmarks(build_platform_breakdown(creators), creators) == 0
        assert db_session.query(BenchmarkContribution).count() == 0

    def test_write_failure_is_swallowed(self, db_session, make_creator):
        creators = self._eligible_creators(make_creator)
        with patch.object(db_session, 'commit', side_effect=RuntimeError('disk full')):
            assert contribute_to_benchmarks(build_platform_breakdown(creators), creators) == 0


# ---------------------------------------------------------------------------
# thresholds + comparison
# ---------------------------------------------------------------------------

class TestDynamicThresholds:

    def test_defaults_without_samples(self):
        assert get_dynamic_thresholds(DEFAULT_BENCHMARKS) is DEFAULT_THRESHOLDS

    def test_derived_from_percentiles(self):
        b = Benchmarks(segment='overall', sample_size=40, cpa_p25=10, cpa_p50=20, cpa_p75=35,
                       content_delivery_rate_p50=70, views_per_dollar_p50=150,
                       conversion_rate_p50=0.002)
        t = get_dynamic_thresholds(b)
        assert t.cpa_excellent == 10
        assert t.cpa_good == 20
        assert t.cpa_concern == 35
        assert t.cpa_critical == 40
        assert t.content_delivery_good == 70
        assert t.content_delivery_poor == pytest.approx(42)
        assert t.content_deadline_days == 10
        assert t.views_per_dollar_good == 150
        assert t.min_conversion_rate == 0.001

    def test_missing_percentiles_use_constants(self):
        t = get_dynamic_thresholds(Benchmarks(segment='overall', sample_size=10))
        assert t.cpa_good == 30
        assert t.cpa_critical == 60
        assert t.content_delivery_poor == pytest.approx(48)


class TestCompareToBenchmarks:

    def test_cpa_bands(self):
        b = Benchmarks(segment='overall', sample_size=10, cpa_p50=40,
                       content_delivery_rate_p50=80, views_per_dollar_p50=200)
        assert compare_to_benchmarks(15, None, None, b)['cpa']['percentile'] == 'top10'
        assert compare_to_benchmarks(25, None, None, b)['cpa']['percentile'] == 'top25'
        assert compare_to_benchmarks(35, None, None, b)['cpa']['rating'] == 'good'
        assert compare_to_benchmarks(50, None, None, b)['cpa']['rating'] == 'average'
        poor = compare_to_benchmarks(80, None, None, b)['cpa']
        assert poor['percentile'] == 'bottom25'
        assert 'optimization needed' in poor['insight']

    def test_delivery_and_efficiency(self):
        b = Benchmarks(segment='overall', sample_size=10, cpa_p50=40,
                       content_delivery_rate_p50=80, views_per_dollar_p50=200)
        result = compare_to_benchmarks(None, 50, 260, b)
        assert 'cpa' not in result
        assert result['content_delivery']['rating'] == 'poor'
        assert result['efficiency']['rating'] == 'good'
