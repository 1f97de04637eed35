"""
Narrative layer: prompts for the text generator plus deterministic fallbacks.

Every LLM-backed function here has a non-generative twin built from the same
structured data, and substitutes it on any TextGenerationError so a briefing
or answer is always returned.
"""
import logging
import re
from typing import Any, Dict, List, Optional

from creator_insights.config import ANTHROPIC_FAST_MODEL, APP_BASE_URL
from creator_insights.services.benchmarks import Benchmarks
from creator_insights.services.llm import TextGenerationError, generate_text
from creator_insights.services.metrics import (
    format_money, format_number, round_half_up, safe_ratio,
)
from creator_insights.services.trends import HistoricalTrends

logger = logging.getLogger('services.narrative')

SUMMARY_MAX_TOKENS = 200
PROMPTS_MAX_TOKENS = 100
ANSWER_MAX_TOKENS = 300

GENERIC_PROMPTS = ['What should I focus on today?', 'Which creators have the best ROI?']

PAGE_CONTEXTS = [
    ('influencer', 'influencers list'),
    ('campaign', 'campaigns list'),
    ('deliverable', 'deliverables/content list'),
    ('postback', 'conversion tracking setup'),
    ('subscription', 'billing/subscription'),
    ('faq', 'FAQ/settings'),
]


def _signed(percent: int) -> str:
    return f'+{percent}%' if percent > 0 else f'{percent}%'


def _arrow(direction: str) -> str:
    return {'up': 'up', 'down': 'down', 'improving': 'down (better)',
            'worsening': 'up (worse)'}.get(direction, 'flat')


def _best_platform(tenant):
    converting = [s for s in tenant.platforms.values() if s.conversions > 0]
    return min(converting, key=lambda s: s.cpa) if converting else None


def page_context(page: str) -> str:
    page = (page or '').lower()
    for needle, label in PAGE_CONTEXTS:
        if needle in page:
            return label
    return 'dashboard'


# ── Deterministic builders ───────────────────────────────────────────────────

def build_trends_section(trends: Optional[HistoricalTrends]) -> str:
    """Plain-text trend block embedded in prompts."""
    if trends is None or not trends.has_data:
        return 'PERFORMANCE TRENDS:\nNo historical data available yet.'

    lines = ['PERFORMANCE TRENDS:']
    weekly = trends.weekly
    lines.append('Weekly (vs last week):')
    lines.append(f'  - Conversions: {format_number(weekly.conversions.previous)} -> '
                 f'{format_number(weekly.conversions.current)} '
                 f'({_arrow(weekly.conversions.direction)} {_signed(weekly.conversions.percent)})')
    if weekly.cpa.current is not None:
        previous = f'${weekly.cpa.previous:.2f}' if weekly.cpa.previous is not None else 'N/A'
        lines.append(f'  - CPA: {previous} -> ${weekly.cpa.current:.2f} '
                     f'({_arrow(weekly.cpa.direction)} {_signed(weekly.cpa.percent)})')
    lines.append(f'  - Views: {_arrow(weekly.views.direction)} {_signed(weekly.views.percent)}')

    for label, period in (('Monthly (vs last month)', trends.monthly),
                          ('Year-over-year', trends.yearly)):
        if period is None or (period.conversions.current == 0 and period.conversions.previous == 0):
            continue
        lines.append(f'{label}:')
        lines.append(f'  - Conversions: {_arrow(period.conversions.direction)} '
                     f'{_signed(period.conversions.percent)}')
        if period.cpa.current is not None and period.cpa.previous is not None:
            lines.append(f'  - CPA: {_arrow(period.cpa.direction)} {_signed(period.cpa.percent)}')

    momentum = trends.creator_momentum
    if momentum.rising:
        lines.append('\nCREATOR MOMENTUM - Rising:')
        lines += [f'  - {e.name}: {format_number(e.last_week)} -> {format_number(e.this_week)} conv '
                  f'({_signed(e.change)})' for e in momentum.rising[:3]]
    if momentum.cooling:
        lines.append('\nCREATOR MOMENTUM - Cooling off:')
        lines += [f'  - {e.name}: {format_number(e.last_week)} -> {format_number(e.this_week)} conv '
                  f'({_signed(e.change)})' for e in momentum.cooling[:3]]
    if momentum.stalled:
        lines.append('\nCREATOR MOMENTUM - Stalled (no recent conversions):')
        lines += [f'  - {e.name}: last conversion {e.days_since_conversion} days ago'
                  for e in momentum.stalled[:3]]

    return '\n'.join(lines)


def build_fallback_summary(tenant, benchmarks: Benchmarks) -> str:
    """Bullet summary computed straight from the numbers."""
    totals = tenant.totals

    if totals.total_conversions == 0 and totals.total_spent > 0:
        follow_up = (f"{len(tenant.no_content)} creators still haven't posted content."
                     if tenant.no_content else 'Check if your tracking is set up correctly.')
        return (f"You've spent {format_money(totals.total_spent)} but haven't gotten "
                f"any conversions yet. {follow_up}")

    if totals.total_conversions > 0:
        cpa = round_half_up(totals.total_spent / totals.total_conversions)
        cpa_line = f'• ${cpa} CPA'
        if benchmarks.has_data and benchmarks.cpa_p50:
            if cpa < benchmarks.cpa_p50:
                cpa_line += f' - {round_half_up((1 - cpa / benchmarks.cpa_p50) * 100)}% below benchmark'
            else:
                cpa_line += f' - {round_half_up((cpa / benchmarks.cpa_p50 - 1) * 100)}% above benchmark'

        lines = [cpa_line,
                 f'• {format_number(totals.total_conversions)} conversions from '
                 f'{len(tenant.creators)} creators']
        converting = [s for s in tenant.platforms.values() if s.conversions > 0]
        if converting:
            most = max(converting, key=lambda s: s.conversions)
            lines.append(f'• {most.platform} is your best platform')
        if tenant.trends is not None and tenant.trends.has_data:
            lines.append(f'• {tenant.trends.summary}')
        return '\n'.join(lines)

    return (f"You're tracking {len(tenant.creators)} creators across {len(tenant.campaigns)} "
            f"campaigns with {format_number(totals.total_views)} total views.")


def fallback_prompts(tenant) -> List[str]:
    """Three suggested questions derived from the tenant's situation."""
    prompts = []
    if tenant.no_content:
        prompts.append(f"Why haven't {len(tenant.no_content)} creators posted yet?")
    if tenant.totals.total_conversions == 0 and tenant.totals.total_spent > 0:
        prompts.append('Why am I not getting conversions?')
    best = _best_platform(tenant)
    if best is not None:
        prompts.append(f'Should I invest more in {best.platform}?')
    if tenant.top_performers:
        prompts.append(f'Should I book more with {tenant.top_performers[0].display_name}?')
    prompts += GENERIC_PROMPTS
    return prompts[:3]


def fallback_answer(tenant, question: str) -> str:
    totals = tenant.totals
    parts = [f"I couldn't analyze that question right now. Here's where things stand: "
             f"{format_money(totals.total_spent)} spent across {len(tenant.creators)} creators, "
             f"{format_number(totals.total_conversions)} conversions"]
    if totals.cpa is not None:
        parts.append(f' at ${totals.cpa:.2f} CPA')
    parts.append('.')
    if tenant.trends is not None and tenant.trends.has_data:
        parts.append(f' {tenant.trends.summary}.')
    return ''.join(parts)


def parse_prompts(text: str) -> List[str]:
    """One question per line; drop blanks and numbered list items."""
    lines = [line.strip() for line in (text or '').splitlines()]
    return [line for line in lines if line and not re.match(r'^\d+[\.\)]', line)][:3]


# ── Prompt construction ──────────────────────────────────────────────────────

def _platform_lines(tenant) -> str:
    lines = []
    for snap in tenant.platforms.values():
        cpa = f'${snap.cpa:.2f}' if snap.cpa is not None else 'N/A'
        rate = f'{snap.conversion_rate * 100:.3f}%' if snap.conversion_rate is not None else '0%'
        lines.append(f'{snap.platform}: {snap.count} creators, {format_money(snap.spent)} spent, '
                     f'{format_number(snap.conversions)} conv, CPA {cpa}, CR {rate}')
    return '\n'.join(lines) or 'No platform data'


def _summary_prompt(tenant, score_result, benchmarks: Benchmarks) -> str:
    totals = tenant.totals
    creators = tenant.creators
    delivered = len(creators) - len(tenant.no_content)
    delivery_rate = round_half_up(delivered / len(creators) * 100) if creators else 0
    wasted = sum(c.spent for c in tenant.no_conversions)
    pending = sum(c.spent for c in tenant.no_content)
    conversion_rate = safe_ratio(totals.total_conversions, totals.total_views, scale=100)
    has_benchmarks = benchmarks.has_data

    benchmark_section = ''
    if has_benchmarks:
        standing = 'N/A'
        if totals.cpa is not None and benchmarks.cpa_p50:
            standing = 'below benchmark (good)' if totals.cpa < benchmarks.cpa_p50 else 'above benchmark'
        delivery_benchmark = benchmarks.content_delivery_rate_p50 or 0
        benchmark_section = (
            f'INDUSTRY BENCHMARKS (from {benchmarks.sample_size} campaigns):\n'
            f'- CPA benchmark (median): ${benchmarks.cpa_p50}\n'
            f'- Your CPA vs benchmark: {standing}\n'
            f'- Content delivery benchmark: {delivery_benchmark}%\n'
            f'- Your delivery vs benchmark: {delivery_rate}% '
            f"({'meets standard' if delivery_rate >= delivery_benchmark else 'below standard'})"
        )

    top = '\n'.join(f'{i + 1}. {c.display_name}: {format_number(c.conversion_count)} conversions'
                    for i, c in enumerate(tenant.top_performers[:3])) or 'None yet'

    return f"""You are a senior influencer marketing strategist analyzing a client's campaign data{' against INDUSTRY BENCHMARKS' if has_benchmarks else ''} and HISTORICAL TRENDS. Think step by step about what the data reveals, then provide a sharp executive insight.

CLIENT: {tenant.user_name.split(' ')[0]}

RAW METRICS (CURRENT SNAPSHOT):
- Total invested: {format_money(totals.total_spent)}
- Total conversions: {format_number(totals.total_conversions)}
- Total views: {format_number(totals.total_views)}
- Active creators: {len(creators)}

CALCULATED METRICS:
- Cost per acquisition (CPA): {f'${totals.cpa:.2f}' if totals.cpa is not None else 'No conversions yet'}
- View-to-conversion rate: {f'{conversion_rate:.3f}%' if conversion_rate is not None else 'N/A'}
- Content delivery rate: {delivery_rate}% ({delivered}/{len(creators)} delivered)

{build_trends_section(tenant.trends)}
{benchmark_section}

MONEY AT RISK:
- Pending content (paid, no posts): {format_money(pending)} across {len(tenant.no_content)} creators
- Underperforming (paid, has content, no conversions): {format_money(wasted)} across {len(tenant.no_conversions)} creators

PLATFORM BREAKDOWN:
{_platform_lines(tenant)}

TOP PERFORMERS:
{top}

HEALTH SCORE: {score_result.score}/100
ISSUES DETECTED: {', '.join(score_result.issues) or 'None'}

---

Write 2-3 SHORT bullet points:
- Each bullet is ONE line max (under 12 words)
- PRIORITIZE trend insights (e.g., "Conversions up 40% this week")
- Include creator momentum when relevant{chr(10) + '- Include benchmark comparisons if significantly above/below' if has_benchmarks else ''}
- Be direct, no fluff
- Format: "• [insight]" on each line

Write ONLY the bullets, nothing else."""


def _prompts_prompt(tenant, page: str) -> str:
    totals = tenant.totals
    best = _best_platform(tenant)
    top = tenant.top_performers[0].display_name if tenant.top_performers else 'N/A'
    return f"""Generate exactly 3 short questions a user would ask an AI assistant about their influencer marketing data.

USER'S CURRENT PAGE: {page_context(page)}

USER'S DATA:
- {len(tenant.creators)} creators across {len(tenant.campaigns)} campaigns
- {format_money(totals.total_spent)} spent, {format_number(totals.total_conversions)} conversions
- CPA: {f'${totals.cpa:.2f}' if totals.cpa is not None else 'no conversions yet'}
- Platforms: {', '.join(tenant.platforms) or 'none'}
- Best platform: {best.platform if best else 'N/A'}
- Top creator: {top}
- {len(tenant.no_content)} creators haven't posted yet
- {len(tenant.no_conversions)} creators have content but no conversions

RULES:
1. Questions must be relevant to the PAGE they're on
2. Questions should reference their ACTUAL data (names, numbers, platforms)
3. Each question under 10 words
4. Format: one question per line, no numbering or bullets

Write 3 questions:"""


def _answer_prompt(tenant, question: str, context: Optional[Dict[str, Any]]) -> str:
    totals = tenant.totals
    creators = '\n'.join(
        f'{c.display_name} ({c.platform}): {format_money(c.spent)} spent, '
        f'{format_number(c.conversion_count)} conv, {format_number(c.view_count)} views, '
        f"{f'${c.cpa:.2f} CPA' if c.cpa is not None else 'no conversions'}"
        for c in tenant.creators[:15]
    ) or 'None'
    campaigns = '\n'.join(
        f"{c['name']} ({c['client']}): {c['influencer_count'] or 0} creators"
        for c in tenant.campaigns
    ) or 'None'
    no_content = ', '.join(f'{c.display_name} ({format_money(c.spent)})'
                           for c in tenant.no_content) or 'none'

    if context:
        recent = ' -> '.join(context.get('recentPages') or context.get('recent_pages') or []) or 'None'
        user_context = (f"- Currently on: {context.get('currentPage') or context.get('current_page') or 'Unknown'}\n"
                        f"- Viewing: {context.get('viewing') or 'Nothing specific'}\n"
                        f'- Recent pages: {recent}')
    else:
        user_context = 'No context'

    return f"""You are a senior influencer marketing strategist. Answer questions with data-driven insights and trend analysis, not generic advice.

CLIENT: {tenant.user_name}

CURRENT PERFORMANCE:
- Total invested: {format_money(totals.total_spent)}
- Total conversions: {format_number(totals.total_conversions)}
- Overall CPA: {f'${totals.cpa:.2f}' if totals.cpa is not None else 'No conversions yet'}
- Views: {format_number(totals.total_views)}

{build_trends_section(tenant.trends)}

CAMPAIGNS:
{campaigns}

CREATORS (with efficiency):
{creators}

PLATFORMS (with CPA):
{_platform_lines(tenant)}

PROBLEMS:
- No content yet: {no_content}
- No conversions: {len(tenant.no_conversions)} creators

USER CONTEXT:
{user_context}

PAGES (link when relevant):
- [Influencers]({APP_BASE_URL}/influencers): View and manage creators
- [Campaigns]({APP_BASE_URL}/campaigns): Organize creators by client/project
- [Deliverables]({APP_BASE_URL}/deliverables): Track content posts
- [Conversions Setup]({APP_BASE_URL}/postbacks): Conversion tracking and postbacks

---

QUESTION: {question}

Answer in 2-4 sentences with specific numbers and names from the data, trend context when relevant, and a link to a relevant page if helpful.

Answer:"""


# ── LLM-backed, with fallback ────────────────────────────────────────────────

def generate_summary(tenant, score_result, benchmarks: Benchmarks) -> str:
    try:
        return generate_text(_summary_prompt(tenant, score_result, benchmarks), SUMMARY_MAX_TOKENS)
    except TextGenerationError as e:
        logger.info("Summary fallback for %s: %s", tenant.key, e)
        return build_fallback_summary(tenant, benchmarks)


def generate_prompts(tenant, page: str = '') -> List[str]:
    try:
        text = generate_text(_prompts_prompt(tenant, page), PROMPTS_MAX_TOKENS,
                             model=ANTHROPIC_FAST_MODEL)
    except TextGenerationError as e:
        logger.info("Prompt suggestions fallback for %s: %s", tenant.key, e)
        return fallback_prompts(tenant)

    prompts = parse_prompts(text)
    if len(prompts) < 3:
        return fallback_prompts(tenant)
    return prompts


def answer_question(tenant, question: str, context: Optional[Dict[str, Any]] = None) -> str:
    try:
        return generate_text(_answer_prompt(tenant, question, context), ANSWER_MAX_TOKENS)
    except TextGenerationError as e:
        logger.info("Answer fallback for %s: %s", tenant.key, e)
        return fallback_answer(tenant, question)
