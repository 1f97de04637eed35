"""
Shared client instances: Redis, Anthropic.

Importing this module never opens a connection: redis-py connects on first
command and the Anthropic client is only built when a key is configured.
"""
import logging
import redis

from creator_insights.config import REDIS_URL, ANTHROPIC_API_KEY

logger = logging.getLogger('creator_insights.extensions')

# ── Redis ─────────────────────────────────────────────────────────────────────
redis_client = redis.from_url(REDIS_URL, decode_responses=True)

# ── Anthropic ─────────────────────────────────────────────────────────────────
anthropic_client = None
if ANTHROPIC_API_KEY:
    try:
        from anthropic import Anthropic
        anthropic_client = Anthropic(api_key=ANTHROPIC_API_KEY)
        logger.info("Anthropic client initialized successfully")
    except Exception as e:
        logger.error("Error initializing Anthropic client: %s", e)
else:
    logger.warning("ANTHROPIC_API_KEY not set; narratives will use Ollama or deterministic fallbacks")
