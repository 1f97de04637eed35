"""
Benchmark models: anonymized cross-tenant contributions and the percentile
segments computed from them.

BenchmarkContribution rows are append-only: never updated, only excluded from
computation once older than the retention window. BenchmarkSegment rows are
replaced wholesale per segment on every refresh.
"""
from datetime import datetime

from sqlalchemy import Column, Integer, Text, Float, DateTime, Index

from creator_insights.database import Base


class BenchmarkContribution(Base):
    __tablename__ = 'benchmark_data'
    __table_args__ = (
        Index('ix_benchmark_data_recorded_at', 'recorded_at'),
        Index('ix_benchmark_data_platform_tier', 'platform', 'price_tier'),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    recorded_at = Column(DateTime, nullable=False, default=datetime.now)
    platform = Column(Text, nullable=False)
    niche = Column(Text, nullable=True)
    price_tier = Column(Text, nullable=False)       # small | medium | large
    cpa = Column(Float, nullable=True)
    cpc = Column(Float, nullable=True)
    cpm = Column(Float, nullable=True)
    conversion_rate = Column(Float, nullable=True)
    days_to_first_content = Column(Integer, nullable=True)
    content_delivery_rate = Column(Float, nullable=True)
    views_per_dollar = Column(Float, nullable=True)


class BenchmarkSegment(Base):
    __tablename__ = 'benchmarks'

    id = Column(Integer, primary_key=True, autoincrement=True)
    segment = Column(Text, nullable=False, unique=True)  # overall | platform:X | tier:Y | X:Y
    sample_size = Column(Integer, nullable=False, default=0)
    cpa_p25 = Column(Float, nullable=True)
    cpa_p50 = Column(Float, nullable=True)
    cpa_p75 = Column(Float, nullable=True)
    cpc_p50 = Column(Float, nullable=True)
    cpm_p50 = Column(Float, nullable=True)
    conversion_rate_p50 = Column(Float, nullable=True)
    days_to_content_p50 = Column(Integer, nullable=True)
    content_delivery_rate_p50 = Column(Float, nullable=True)
    views_per_dollar_p50 = Column(Float, nullable=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.now)
