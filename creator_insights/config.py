"""
Centralized configuration: env vars, benchmark policy, trend thresholds.
"""
import os


# ── Redis ─────────────────────────────────────────────────────────────────────
REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')

# ── PostgreSQL ────────────────────────────────────────────────────────────────
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///local.db')

# ── Anthropic ─────────────────────────────────────────────────────────────────
ANTHROPIC_API_KEY = os.getenv('ANTHROPIC_API_KEY')
ANTHROPIC_MODEL = os.getenv('ANTHROPIC_MODEL', 'claude-sonnet-4-20250514')
ANTHROPIC_FAST_MODEL = os.getenv('ANTHROPIC_FAST_MODEL', 'claude-haiku-4-5-20251001')
LLM_TIMEOUT_SECONDS = float(os.getenv('LLM_TIMEOUT_SECONDS', '20'))

# ── Ollama (local LLM) ──────────────────────────────────────────────────────
OLLAMA_URL = os.getenv('OLLAMA_URL', 'http://localhost:11434')
OLLAMA_MODEL = os.getenv('OLLAMA_MODEL', 'gemma3:1b')

# ── Auth (shared secrets for internal + scheduler calls) ─────────────────────
INTERNAL_SECRET = os.getenv('INTERNAL_SECRET')
CRON_SECRET = os.getenv('CRON_SECRET')

# ── Dashboard links used in action cards ─────────────────────────────────────
APP_BASE_URL = os.getenv('APP_BASE_URL', 'https://app.envisioner.io')

# ── Benchmark contribution policy ────────────────────────────────────────────
# Heuristic cohort gate. Not a formal anonymity guarantee.
MIN_CONVERTING_PLATFORMS = 2
MIN_TOTAL_CREATORS = 5
MIN_PLATFORM_CREATORS = 3
CONTRIBUTION_PLATFORMS = ['youtube', 'tiktok', 'instagram', 'twitch']

NOISE_LOW = 0.9
NOISE_HIGH = 1.1

# Values are rounded to these widths after noise is applied
BUCKET_WIDTHS = {
    'cpa': 5,
    'cpc': 0.1,
    'cpm': 1,
    'conversion_rate': 0.0001,
    'content_delivery_rate': 5,
    'views_per_dollar': 10,
}

# Average spend per creator → coarse tier
PRICE_TIER_BOUNDS = [
    (1000, 'small'),
    (5000, 'medium'),
]
PRICE_TIER_TOP = 'large'

# ── Benchmark computation ────────────────────────────────────────────────────
BENCHMARK_RETENTION_DAYS = 90
BENCHMARK_MIN_SAMPLE = 10

BENCHMARK_PLATFORMS = ['YouTube', 'TikTok', 'Instagram', 'Twitch', 'Kick']
BENCHMARK_TIERS = ['small', 'medium', 'large']
BENCHMARK_COMBO_PLATFORMS = ['YouTube', 'TikTok', 'Instagram']
BENCHMARK_COMBO_TIERS = ['small', 'medium', 'large']

# ── Trend engine ─────────────────────────────────────────────────────────────
TREND_DEADBAND_PERCENT = 5
TREND_WINDOWS = {
    'weekly': 7,
    'monthly': 30,
    'yearly': 365,
}
MOMENTUM_LOOKBACK_DAYS = 30
MOMENTUM_RISING_PERCENT = 20
MOMENTUM_COOLING_PERCENT = -30
MOMENTUM_STALLED_DAYS = 7
MOMENTUM_BUCKET_LIMIT = 5
VIRAL_GROWTH_PERCENT = 100

# ── Briefings ────────────────────────────────────────────────────────────────
BRIEFING_TTL_HOURS = 24
NO_CONTENT_GRACE_DAYS = 7
