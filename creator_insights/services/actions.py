"""
Action detection: turns tenant data into a short ranked list of action cards.

Each detector adds at most one card. Cards are ranked high → medium → low
(stable within a priority) and the top `limit` are returned.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from creator_insights.config import APP_BASE_URL
from creator_insights.services.benchmarks import Benchmarks
from creator_insights.services.metrics import format_money, format_number, round_half_up

logger = logging.getLogger('services.actions')

PRIORITY_ORDER = {'high': 0, 'medium': 1, 'low': 2}
UNDERPERFORMER_MIN_SPEND = 500


@dataclass
class Action:
    id: str
    type: str
    priority: str       # 'high' | 'medium' | 'low'
    icon: str
    title: str
    description: str
    options: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'type': self.type,
            'priority': self.priority,
            'icon': self.icon,
            'title': self.title,
            'description': self.description,
            'options': [dict(o) for o in self.options],
        }


def _navigate(label: str, path: str) -> Dict[str, Any]:
    return {'label': label, 'action': 'navigate', 'variant': 'primary',
            'params': {'url': f'{APP_BASE_URL}{path}'}}


def _dismiss(action_id: str) -> Dict[str, Any]:
    return {'label': 'Dismiss', 'action': 'dismiss', 'variant': 'ghost',
            'params': {'action_id': action_id}}


def _plural(count: int, word: str) -> str:
    return f'{count} {word}' + ('' if count == 1 else 's')


def _platforms_by_cpa(platforms) -> list:
    converting = [s for s in platforms.values() if s.conversions > 0 and s.spent > 0]
    return sorted(converting, key=lambda s: s.cpa)


# ── Detectors ────────────────────────────────────────────────────────────────

def _no_content(tenant, now: datetime) -> Optional[Action]:
    if not tenant.no_content:
        return None
    creator = tenant.no_content[0]
    action_id = f'no_content_{creator.id}'
    paid = f'{format_money(creator.spent)} paid'
    if creator.created_at is not None:
        days = (now - creator.created_at).days
        if days:
            paid += f', {days} days ago'
    return Action(
        id=action_id,
        type='no_content',
        priority='high',
        icon='alert',
        title=f"{creator.display_name} hasn't posted",
        description=f'{paid}. No content delivered yet.',
        options=[_dismiss(action_id)],
    )


def _best_platform(tenant, benchmarks: Benchmarks) -> Optional[Action]:
    ranked = _platforms_by_cpa(tenant.platforms)
    if not ranked:
        return None
    best = ranked[0]
    action_id = f'scale_platform_{best.platform.lower()}'

    context = ''
    if benchmarks.has_data and benchmarks.cpa_p50 and best.cpa < benchmarks.cpa_p50:
        context = f' ({round_half_up((1 - best.cpa / benchmarks.cpa_p50) * 100)}% below benchmark)'

    return Action(
        id=action_id,
        type='scale_platform',
        priority='medium',
        icon='trending',
        title=f'{best.platform} is your best platform',
        description=(f'${best.cpa:.2f} CPA{context} with {format_number(best.conversions)} conversions '
                     f'from {_plural(best.count, "creator")}.'),
        options=[_navigate('View creators', '/influencers'), _dismiss(action_id)],
    )


def _underperformers(tenant) -> Optional[Action]:
    significant = [c for c in tenant.no_conversions if c.spent >= UNDERPERFORMER_MIN_SPEND]
    if not significant:
        return None
    at_risk = sum(c.spent for c in significant)
    return Action(
        id='review_underperformers',
        type='underperformers',
        priority='high',
        icon='warning',
        title=f'{_plural(len(significant), "creator")} with no conversions',
        description=f'{format_money(at_risk)} at risk. Content is live but zero conversions.',
        options=[_navigate('Review list', '/influencers'), _dismiss('review_underperformers')],
    )


def _high_cpa(tenant, benchmarks: Benchmarks) -> Optional[Action]:
    # Only meaningful against real benchmark samples
    if not benchmarks.has_data or not benchmarks.cpa_p75 or not benchmarks.cpa_p50:
        return None
    expensive = [s for s in _platforms_by_cpa(tenant.platforms) if s.cpa > benchmarks.cpa_p75]
    if not expensive:
        return None
    worst = expensive[-1]
    action_id = f'high_cpa_{worst.platform.lower()}'
    over = round_half_up((worst.cpa - benchmarks.cpa_p50) / benchmarks.cpa_p50 * 100)
    return Action(
        id=action_id,
        type='high_cpa',
        priority='medium',
        icon='warning',
        title=f'{worst.platform} CPA is {over}% above benchmark',
        description=(f'${worst.cpa:.2f} CPA vs ${benchmarks.cpa_p50:g} benchmark. '
                     'Consider optimization or reallocation.'),
        options=[_navigate('Review creators', '/influencers'), _dismiss(action_id)],
    )


def _cooling_creator(tenant) -> Optional[Action]:
    trends = tenant.trends
    if trends is None or not trends.creator_momentum.cooling:
        return None
    entry = trends.creator_momentum.cooling[0]
    action_id = f'cooling_creator_{entry.creator_id}'
    return Action(
        id=action_id,
        type='cooling_creator',
        priority='medium',
        icon='trending-down',
        title=f'{entry.name or "A creator"} is cooling off',
        description=(f'Conversions down {abs(entry.change)}% week over week '
                     f'({format_number(entry.last_week)} to {format_number(entry.this_week)}).'),
        options=[_navigate('View creator', '/influencers'), _dismiss(action_id)],
    )


def _top_performer(tenant, benchmarks: Benchmarks) -> Optional[Action]:
    if not tenant.top_performers:
        return None
    top = tenant.top_performers[0]
    action_id = f'top_performer_{top.id}'

    context = ''
    top_cpa = top.cpa
    if top_cpa is not None:
        context = f' at ${top_cpa:.2f} CPA'
        if benchmarks.has_data and benchmarks.cpa_p50 and top_cpa < benchmarks.cpa_p50:
            context += ' (top 50% performance)'

    return Action(
        id=action_id,
        type='top_performer',
        priority='low',
        icon='star',
        title=f'{top.display_name} is crushing it',
        description=(f'{format_number(top.conversion_count)} conversions{context}. '
                     'Consider expanding partnership.'),
        options=[_navigate('View profile', '/influencers'), _dismiss(action_id)],
    )


def _onboarding(tenant) -> Optional[Action]:
    if not tenant.creators:
        return Action(
            id='onboarding_add_creator',
            type='onboarding',
            priority='high',
            icon='plus',
            title='Add your first creator',
            description='Start tracking influencer performance and get AI insights.',
            options=[_navigate('Add creator', '/page-to-add-influencer'),
                     _dismiss('onboarding_add_creator')],
        )
    if not tenant.campaigns:
        return Action(
            id='onboarding_add_campaign',
            type='onboarding',
            priority='medium',
            icon='folder',
            title='Organize with campaigns',
            description=(f'You have {_plural(len(tenant.creators), "creator")} but no campaigns. '
                         'Group them by client or project.'),
            options=[_navigate('Create campaign', '/create-campaign'),
                     _dismiss('onboarding_add_campaign')],
        )
    return None


def detect_actions(tenant, benchmarks: Benchmarks, limit: int = 3) -> List[Action]:
    """Top `limit` recommended actions for a tenant, most urgent first."""
    now = getattr(tenant, 'loaded_at', None) or datetime.now()

    underperformers = _underperformers(tenant)
    candidates = [
        _no_content(tenant, now),
        _best_platform(tenant, benchmarks),
        underperformers,
        # The underperformer card already covers the spend problem
        _high_cpa(tenant, benchmarks) if underperformers is None else None,
        _cooling_creator(tenant),
        _top_performer(tenant, benchmarks),
        _onboarding(tenant),
    ]
    actions = [a for a in candidates if a is not None]

    logger.debug("Detected %d actions (creators=%d, campaigns=%d)",
                 len(actions), len(tenant.creators), len(tenant.campaigns))

    actions.sort(key=lambda a: PRIORITY_ORDER[a.priority])
    return actions[:limit]
