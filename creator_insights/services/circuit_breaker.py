"""
Redis-backed circuit breakers for the text-generation backends.

Each breaker keeps its state in one Redis hash (`breaker:<name>`):

  state       closed | open | half_open
  failures    consecutive failures since the last success
  opened_at   epoch seconds when the breaker last opened
  successes / total_failures / last_error    health counters for /api/health

If Redis is unreachable the breaker reports CLOSED and lets calls through.
"""
import logging
import time

logger = logging.getLogger('services.circuit_breaker')

CLOSED = 'closed'
OPEN = 'open'
HALF_OPEN = 'half_open'


class CircuitOpenError(Exception):
    """Raised instead of calling a backend whose breaker is open."""
    def __init__(self, name, retry_after=None):
        self.name = name
        self.retry_after = retry_after
        super().__init__(f"Circuit breaker '{name}' is open")


class CircuitBreaker:

    def __init__(self, name, redis_client, failure_threshold=5, reset_timeout=60):
        self.name = name
        self.redis = redis_client
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout

    @property
    def key(self):
        return f'breaker:{self.name}'

    def _read(self):
        try:
            return self.redis.hgetall(self.key) or {}
        except Exception as e:
            logger.debug("Breaker '%s' state unavailable: %s", self.name, e)
            return None

    def _retry_after(self, data):
        opened_at = float(data.get('opened_at') or 0)
        return max(0.0, self.reset_timeout - (time.time() - opened_at))

    @property
    def state(self):
        data = self._read()
        if not data:
            return CLOSED
        state = data.get('state', CLOSED)
        if state == OPEN and self._retry_after(data) == 0:
            return HALF_OPEN
        return state

    def call(self, func, *args, **kwargs):
        """Run func unless the breaker is open. Failures are counted and re-raised."""
        data = self._read() or {}
        if data.get('state') == OPEN:
            retry_after = self._retry_after(data)
            if retry_after > 0:
                raise CircuitOpenError(self.name, retry_after=retry_after)

        try:
            result = func(*args, **kwargs)
        except Exception as e:
            self._on_failure(e)
            raise
        self._on_success()
        return result

    def _on_success(self):
        try:
            pipe = self.redis.pipeline()
            pipe.hset(self.key, mapping={'state': CLOSED, 'failures': 0,
                                         'last_success': str(time.time())})
            pipe.hincrby(self.key, 'successes', 1)
            pipe.execute()
        except Exception as e:
            logger.debug("Breaker '%s' success not recorded: %s", self.name, e)

    def _on_failure(self, error):
        try:
            failures = self.redis.hincrby(self.key, 'failures', 1)
            pipe = self.redis.pipeline()
            pipe.hincrby(self.key, 'total_failures', 1)
            pipe.hset(self.key, 'last_error', str(error)[:200])
            if failures >= self.failure_threshold:
                pipe.hset(self.key, mapping={'state': OPEN, 'opened_at': str(time.time())})
            pipe.execute()
        except Exception as e:
            logger.debug("Breaker '%s' failure not recorded: %s", self.name, e)
            return

        if failures >= self.failure_threshold:
            logger.warning("Circuit '%s' opened after %d failures: %s", self.name, failures, error)
        else:
            logger.info("Circuit '%s' failure %d/%d: %s",
                        self.name, failures, self.failure_threshold, error)

    def reset(self):
        try:
            self.redis.delete(self.key)
            logger.info("Circuit '%s' reset", self.name)
        except Exception as e:
            logger.error("Failed to reset circuit '%s': %s", self.name, e)

    def get_health(self):
        data = self._read()
        if data is None:
            return {'name': self.name, 'state': 'unknown', 'failures': 0,
                    'failure_threshold': self.failure_threshold,
                    'successes': 0, 'total_failures': 0, 'last_error': ''}
        return {
            'name': self.name,
            'state': self.state,
            'failures': int(data.get('failures', 0)),
            'failure_threshold': self.failure_threshold,
            'successes': int(data.get('successes', 0)),
            'total_failures': int(data.get('total_failures', 0)),
            'last_error': data.get('last_error', ''),
        }


# ── Registry ─────────────────────────────────────────────────────────────────

_registry = {}


def get_breaker(name, redis_client=None, **kwargs):
    """Named breaker, created on first use."""
    if name not in _registry:
        if redis_client is None:
            from creator_insights.extensions import redis_client
        _registry[name] = CircuitBreaker(name, redis_client, **kwargs)
    return _registry[name]


def get_all_breakers():
    return dict(_registry)


def init_breakers(redis_client):
    """Register the breakers for both text-generation backends."""
    breakers = {
        'anthropic': CircuitBreaker('anthropic', redis_client, failure_threshold=5, reset_timeout=60),
        'ollama': CircuitBreaker('ollama', redis_client, failure_threshold=3, reset_timeout=120),
    }
    _registry.update(breakers)
    return breakers
