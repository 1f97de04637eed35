"""Shared test fixtures."""
from contextlib import ExitStack
from datetime import datetime

import pytest
from unittest.mock import patch, MagicMock
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from creator_insights.database import Base
from creator_insights.services.metrics import CreatorRecord

# Every module that calls get_session() imports it by name
SESSION_CONSUMERS = [
    'creator_insights.database.get_session',
    'creator_insights.services.benchmarks.get_session',
    'creator_insights.services.trends.get_session',
    'creator_insights.services.tenant_data.get_session',
    'creator_insights.services.briefings.get_session',
]

NOW = datetime(2026, 3, 15, 12, 0, 0)


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with schema created."""
    engine = create_engine('sqlite:///:memory:')
    import creator_insights.models.benchmark
    import creator_insights.models.briefing
    import creator_insights.models.tenant
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """SQLAlchemy session bound to in-memory SQLite. Rolls back after each test."""
    Session = sessionmaker(bind=db_engine)
    session = Session()
    yield session
    session.rollback()
    session.close()


@pytest.fixture(autouse=True)
def patch_get_session(db_session):
    """Route all get_session() calls to the test session.

    close() is disabled so services calling session.close() in their
    finally blocks don't invalidate the shared test session.
    """
    _real_close = db_session.close
    db_session.close = lambda: None
    with ExitStack() as stack:
        for target in SESSION_CONSUMERS:
            stack.enter_context(patch(target, return_value=db_session))
        yield db_session
    db_session.close = _real_close


@pytest.fixture
def mock_redis():
    """Mock Redis client. Returns a MagicMock with common Redis methods."""
    mock = MagicMock()
    mock.get.return_value = None
    mock.hgetall.return_value = {}
    with patch('creator_insights.extensions.redis_client', mock):
        yield mock


@pytest.fixture
def no_llm():
    """No Anthropic client and an unreachable Ollama: every narrative falls back."""
    with patch('creator_insights.extensions.anthropic_client', None), \
         patch('creator_insights.services.llm._call_ollama', side_effect=ConnectionError('offline')):
        yield


@pytest.fixture
def app(mock_redis):
    """Flask test app."""
    from creator_insights import create_app
    app = create_app()
    app.config['TESTING'] = True
    yield app


@pytest.fixture
def client(app):
    """Flask test client."""
    with app.test_client() as c:
        yield c


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_creator():
    """Factory fixture: CreatorRecord with sensible defaults."""
    counter = {'next': 1}

    def _make(**overrides):
        defaults = dict(
            id=counter['next'],
            name=f"Creator {counter['next']}",
            channel_url='https://youtube.com/@creator',
            price=1000,
            total_conversions=10,
            clicks=200,
            total_views=50000,
            content_count=2,
            created_at=datetime(2026, 1, 1),
        )
        counter['next'] += 1
        defaults.update(overrides)
        return CreatorRecord(**defaults)
    return _make


@pytest.fixture
def make_tenant(now):
    """Factory fixture: TenantData derived from a list of CreatorRecords."""
    from creator_insights.services.metrics import (
        build_platform_breakdown, compute_totals,
        find_no_content, find_no_conversions, find_top_performers,
    )
    from creator_insights.services.tenant_data import TenantData, TenantIdentity
    from creator_insights.services.trends import HistoricalTrends

    def _make(creators=(), campaigns=None, trends=None, key='user-1', name='Dana'):
        creators = list(creators)
        if campaigns is None:
            campaigns = [{'id': 1, 'name': 'Spring Launch', 'client': 'Acme', 'influencer_count': len(creators)}]
        return TenantData(
            identity=TenantIdentity(key=key, user={'email': f'{key}@example.com', 'name': name}),
            creators=creators,
            campaigns=campaigns,
            totals=compute_totals(creators, campaign_count=len(campaigns)),
            no_content=find_no_content(creators, now=now),
            no_conversions=find_no_conversions(creators),
            top_performers=find_top_performers(creators),
            platforms=build_platform_breakdown(creators),
            trends=trends or HistoricalTrends(),
            loaded_at=now,
        )
    return _make


class FakeRedis:
    """Minimal in-memory Redis fake for circuit breaker tests."""

    def __init__(self):
        self.hash_store = {}

    def delete(self, *keys):
        for k in keys:
            self.hash_store.pop(k, None)

    def hset(self, key, field=None, value=None, mapping=None):
        h = self.hash_store.setdefault(key, {})
        if field is not None:
            h[field] = str(value)
        for k, v in (mapping or {}).items():
            h[k] = str(v)

    def hincrby(self, key, field, amount=1):
        h = self.hash_store.setdefault(key, {})
        h[field] = str(int(h.get(field, 0)) + amount)
        return int(h[field])

    def hgetall(self, key):
        return dict(self.hash_store.get(key, {}))

    def pipeline(self):
        return FakePipeline(self)


class FakePipeline:
    """Fake Redis pipeline that replays queued commands on execute()."""

    def __init__(self, redis):
        self._redis = redis
        self._ops = []

    def hset(self, *args, **kwargs):
        self._ops.append(('hset', args, kwargs))
        return self

    def hincrby(self, *args, **kwargs):
        self._ops.append(('hincrby', args, kwargs))
        return self

    def execute(self):
        results = [getattr(self._redis, name)(*args, **kwargs) for name, args, kwargs in self._ops]
        self._ops = []
        return results


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def breakers(fake_redis):
    """Fresh breaker registry backed by FakeRedis."""
    from creator_insights.services.circuit_breaker import _registry, init_breakers
    saved = dict(_registry)
    _registry.clear()
    init_breakers(fake_redis)
    yield _registry
    _registry.clear()
    _registry.update(saved)
