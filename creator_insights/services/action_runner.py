"""
Action runner: executes the buttons on briefing action cards.

Each action type maps to one handler that returns a result dict with a
`type` the widget knows how to render. Handlers that draft text use the
text generator and fall back to a fixed template on TextGenerationError.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional
from urllib.parse import quote

from creator_insights.config import APP_BASE_URL
from creator_insights.services.llm import TextGenerationError, generate_text
from creator_insights.services.metrics import format_money, format_number
from creator_insights.services.tenant_data import get_tenant_data

logger = logging.getLogger('services.action_runner')

REMINDER_MAX_TOKENS = 300
SUGGESTIONS_MAX_TOKENS = 400
DEFAULT_EXTENSION_DAYS = 7

HELP_CONTENT = {
    'getting_started': (
        '**Getting Started**\n\n'
        '1. **Add Creators**: Go to Influencers and add your first creator with their '
        'channel URL and deal terms.\n\n'
        '2. **Track Deliverables**: When creators post, add their content as deliverables '
        'to track views and performance.\n\n'
        '3. **Log Conversions**: Connect your tracking to log conversions attributed to '
        'each creator.\n\n'
        '4. **Get Insights**: Check your AI briefing daily for personalized recommendations.'
    ),
}
DEFAULT_HELP = 'Visit our help center for more information.'


class ActionError(Exception):
    """The action's parameters are missing or malformed."""


def _require(params: Dict[str, Any], name: str) -> Any:
    value = params.get(name)
    if value is None or value == '':
        raise ActionError(f'{name} required')
    return value


def _find_creator(tenant, creator_id):
    for creator in tenant.creators:
        if str(creator.id) == str(creator_id):
            return creator
    return None


def _plural(count: int, word: str) -> str:
    return f'{count} {word}' + ('' if count == 1 else 's')


# ── Handlers ─────────────────────────────────────────────────────────────────

def _send_reminder(user_id, params, now):
    creator_id = _require(params, 'influencer_id')
    tenant = get_tenant_data(user_id, now=now)
    creator = _find_creator(tenant, creator_id)
    if creator is None:
        return {'type': 'error', 'message': 'Creator not found'}

    days = f'{(now - creator.created_at).days}' if creator.created_at else 'a few'
    prompt = (
        f'Write a brief, friendly but professional reminder message to an influencer named '
        f"{creator.display_name} who was paid {format_money(creator.spent)} {days} days ago but "
        f"hasn't delivered their content yet.\n\n"
        'Keep it:\n'
        '- Professional but warm\n'
        '- Direct about the ask (content delivery)\n'
        '- Under 100 words\n'
        '- No subject line, just the message body\n\n'
        'Message:'
    )
    try:
        template = generate_text(prompt, REMINDER_MAX_TOKENS)
    except TextGenerationError as e:
        logger.info("Reminder template fallback for %s: %s", user_id, e)
        template = (
            f'Hi {creator.display_name},\n\n'
            "Hope you're doing well! Just checking in on the content we discussed. "
            f'We paid {format_money(creator.spent)} and are excited to see what you create.\n\n'
            'Could you share an update on the timeline? '
            'Let us know if you need anything from our side.\n\nThanks!'
        )
    return {
        'type': 'reminder',
        'template': template,
        'creator': {
            'name': creator.display_name,
            'price': creator.spent,
            'channel': creator.channel_url,
        },
    }


def _extend_deadline(user_id, params, now):
    creator_id = _require(params, 'influencer_id')
    try:
        days = int(params.get('days') or DEFAULT_EXTENSION_DAYS)
    except (TypeError, ValueError):
        raise ActionError('days must be a whole number')
    if days <= 0:
        raise ActionError('days must be positive')
    # Deliverable deadlines live in the dashboard's tables; only the new date is computed here
    return {
        'type': 'deadline_extended',
        'influencer_id': creator_id,
        'new_deadline': (now + timedelta(days=days)).date().isoformat(),
        'days_extended': days,
    }


def _schedule_call(user_id, params, now):
    name = _require(params, 'influencer_name')
    return {
        'type': 'calendar',
        'url': ('https://calendar.google.com/calendar/render?action=TEMPLATE'
                f'&text=Call%20with%20{quote(str(name))}'
                '&details=Follow%20up%20on%20content%20delivery'),
    }


def _find_similar(user_id, params, now):
    platform = str(_require(params, 'platform'))
    tenant = get_tenant_data(user_id, now=now)
    on_platform = [c for c in tenant.creators if c.platform.lower() == platform.lower()]
    on_platform.sort(key=lambda c: c.conversion_count, reverse=True)
    top = on_platform[0] if on_platform else None

    prompt = (
        f'Based on this top-performing {platform} creator profile:\n'
        f"Name: {top.display_name if top else 'N/A'}\n"
        f'Conversions: {format_number(top.conversion_count) if top else 0}\n'
        f'Views: {format_number(top.view_count) if top else 0}\n'
        f'Price: {format_money(top.spent) if top else "$0"}\n\n'
        f'Suggest 3 types of similar creators to look for on {platform}. For each:\n'
        '- Niche/category\n'
        '- Follower range to target\n'
        '- Content style that converts\n\n'
        'Format as brief bullet points.'
    )
    result = {
        'type': 'recommendations',
        'platform': platform,
        'reference_creator': top.display_name if top else None,
    }
    try:
        result['suggestions'] = generate_text(prompt, SUGGESTIONS_MAX_TOKENS)
    except TextGenerationError as e:
        logger.info("Similar-creator fallback for %s: %s", user_id, e)
        result['suggestions'] = (
            f'Look for {platform} creators with:\n'
            '- Similar audience demographics to your top performers\n'
            '- Engagement rates above 3%\n'
            '- Content style that matches your brand'
        )
    return result


def _find_similar_creator(user_id, params, now):
    creator_id = _require(params, 'influencer_id')
    tenant = get_tenant_data(user_id, now=now)
    creator = _find_creator(tenant, creator_id)
    if creator is None:
        return {'type': 'error', 'message': 'Creator not found'}

    prompt = (
        'This influencer is performing exceptionally well:\n'
        f'Name: {creator.display_name}\n'
        f"Platform: {creator.channel_url or 'Unknown'}\n"
        f'Conversions: {format_number(creator.conversion_count)}\n'
        f'Views: {format_number(creator.view_count)}\n'
        f'Price: {format_money(creator.spent)}\n\n'
        'Suggest how to find 3 similar creators. Include:\n'
        '- What makes this creator effective (hypothesis)\n'
        '- Search criteria for finding similar creators\n'
        '- Platforms/tools to use\n\n'
        'Brief bullet points.'
    )
    try:
        suggestions = generate_text(prompt, SUGGESTIONS_MAX_TOKENS)
    except TextGenerationError as e:
        logger.info("Similar-creator fallback for %s: %s", user_id, e)
        suggestions = (
            f'To find creators similar to {creator.display_name}:\n'
            '- Search same platform with similar follower count\n'
            '- Look for overlapping audience interests\n'
            '- Check creator marketplaces filtered by niche'
        )
    return {'type': 'similar_creator_search', 'original': creator.display_name,
            'suggestions': suggestions}


def _book_content(user_id, params, now):
    creator_id = _require(params, 'influencer_id')
    return {'type': 'navigate',
            'url': f'{APP_BASE_URL}/deliverables?influencer={quote(str(creator_id))}&action=add'}


def _navigate(user_id, params, now):
    return {'type': 'navigate', 'url': _require(params, 'url'), 'filter': params.get('filter')}


def _dismiss(user_id, params, now):
    # Dismissed cards are remembered by the widget, not stored server-side
    return {'type': 'dismissed', 'action_id': _require(params, 'action_id')}


def _influencer_ids(params):
    ids = params.get('influencer_ids') or []
    if not isinstance(ids, list):
        raise ActionError('influencer_ids must be a list')
    return ids


def _bulk_reminder(user_id, params, now):
    count = len(_influencer_ids(params))
    return {
        'type': 'bulk_action',
        'count': count,
        'message': (f'Ready to send reminders to {_plural(count, "creator")}. Would you like to '
                    'customize the message or use the default template?'),
    }


def _pause_underperformers(user_id, params, now):
    count = len(_influencer_ids(params))
    return {
        'type': 'confirmation',
        'message': (f'Pausing {count} underperforming creators. '
                    "They won't appear in active lists."),
        'requiresConfirmation': True,
    }


def _increase_budget(user_id, params, now):
    platform = _require(params, 'platform')
    return {
        'type': 'suggestion',
        'message': (f'Consider allocating 20-30% more budget to {platform}. Based on current CPA, '
                    'this could yield significant additional conversions.'),
    }


def _auto_organize(user_id, params, now):
    tenant = get_tenant_data(user_id, now=now)
    by_platform: Dict[str, list] = {}
    for creator in tenant.creators:
        by_platform.setdefault(creator.platform, []).append(creator.display_name)

    suggestions = [
        {'name': f'{platform} Campaign', 'count': len(names), 'creators': names}
        for platform, names in by_platform.items()
    ]
    return {
        'type': 'organization_suggestions',
        'suggestions': suggestions,
        'message': (f'I can organize your {len(tenant.creators)} creators into '
                    f'{len(suggestions)} campaigns by platform. Want me to create these?'),
    }


def _import_csv(user_id, params, now):
    return {'type': 'navigate', 'url': f'{APP_BASE_URL}/influencers?action=import'}


def _help(user_id, params, now):
    topic = params.get('topic')
    return {'type': 'help', 'topic': topic, 'content': HELP_CONTENT.get(topic, DEFAULT_HELP)}


HANDLERS: Dict[str, Callable[[str, Dict[str, Any], datetime], Dict[str, Any]]] = {
    'send_reminder': _send_reminder,
    'extend_deadline': _extend_deadline,
    'schedule_call': _schedule_call,
    'find_similar': _find_similar,
    'find_similar_creator': _find_similar_creator,
    'book_content': _book_content,
    'navigate': _navigate,
    'dismiss': _dismiss,
    'bulk_reminder': _bulk_reminder,
    'pause_underperformers': _pause_underperformers,
    'increase_budget': _increase_budget,
    'auto_organize': _auto_organize,
    'import_csv': _import_csv,
    'help': _help,
}


def execute_action(user_id: str, action: str, params: Optional[Dict[str, Any]] = None,
                   now: Optional[datetime] = None) -> Dict[str, Any]:
    """Run one card action for a user.

    Unknown action types return an `unknown` result rather than failing.

    Raises:
        ActionError: required parameters are missing or malformed.
        TenantDataError: the action needed the tenant's rows and they could not be read.
    """
    handler = HANDLERS.get(action)
    if handler is None:
        logger.info("Unknown action %r from %s", action, user_id)
        return {'type': 'unknown', 'message': 'Action not recognized'}
    return handler(user_id, params or {}, now or datetime.now())


def action_message(action: str, params: Optional[Dict[str, Any]], result: Dict[str, Any]) -> str:
    """One-line confirmation shown in the widget after an action runs."""
    params = params or {}
    name = params.get('influencer_name') or 'this creator'

    if action == 'send_reminder':
        follow = ("Here's a suggested message you can customize." if result.get('template')
                  else 'Ready to send when you are.')
        return f"I've drafted a reminder for {name}. {follow}"
    if action == 'extend_deadline':
        return (f"Extended the deadline for {name} by {result.get('days_extended')} days. "
                f"New deadline: {result.get('new_deadline') or 'TBD'}.")
    if action == 'schedule_call':
        return f'Opening your calendar to schedule a call with {name}.'
    if action == 'find_similar':
        return f"Found {result.get('count') or 'several'} creators similar to your top {params.get('platform')} performers."
    if action == 'navigate':
        suffix = f" (filtered by {params['filter']})" if params.get('filter') else ''
        return f"Taking you to {params.get('url')}{suffix}."
    if action == 'dismiss':
        return "Got it, I won't show this recommendation again."
    if action == 'book_content':
        return f"Let's book more content with {name}. Opening the deliverables form."
    if action == 'bulk_reminder':
        return f"Sending reminders to {_plural(result.get('count', 0), 'creator')}."
    return 'Action completed successfully.'
