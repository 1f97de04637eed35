"""Tests for health routes."""
import time

import pytest

from creator_insights.services.circuit_breaker import init_breakers


@pytest.fixture
def registry(app, fake_redis, breakers):
    """Breakers backed by FakeRedis, registered after the app factory ran."""
    init_breakers(fake_redis)
    return fake_redis


class TestHealth:

    def test_liveness(self, client):
        resp = client.get('/health')
        assert resp.status_code == 200
        assert resp.get_json() == {'status': 'healthy'}

    def test_api_health_lists_breakers(self, client, registry):
        resp = client.get('/api/health')
        data = resp.get_json()
        assert resp.status_code == 200
        assert data['status'] == 'healthy'
        assert set(data['services']) == {'anthropic', 'ollama'}
        assert data['services']['ollama']['failure_threshold'] == 3

    def test_open_breaker_is_degraded(self, client, registry):
        registry.hset('breaker:anthropic', mapping={'state': 'open', 'opened_at': time.time()})
        data = client.get('/api/health').get_json()
        assert data['status'] == 'degraded'
        assert data['services']['anthropic']['state'] == 'open'

    def test_reset(self, client, registry):
        registry.hset('breaker:anthropic', mapping={'state': 'open', 'opened_at': time.time()})
        resp = client.post('/api/health/anthropic/reset')
        assert resp.status_code == 200
        assert resp.get_json() == {'ok': True, 'service': 'anthropic'}
        assert registry.hgetall('breaker:anthropic') == {}

    def test_reset_unknown_service(self, client, registry):
        assert client.post('/api/health/openai/reset').status_code == 404

    def test_cors_headers_on_api(self, client, registry):
        resp = client.get('/api/health')
        assert resp.headers['Access-Control-Allow-Origin'] == '*'
        assert 'Access-Control-Allow-Origin' not in client.get('/health').headers
