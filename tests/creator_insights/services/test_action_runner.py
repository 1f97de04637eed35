"""Tests for creator_insights.services.action_runner: card actions and their messages."""
from unittest.mock import patch

import pytest

from creator_insights.services.action_runner import (
    DEFAULT_HELP, HANDLERS, ActionError, action_message, execute_action,
)
from creator_insights.services.llm import TextGenerationError

RUNNER = 'creator_insights.services.action_runner'


@pytest.fixture
def tenant(make_tenant, make_creator):
    return make_tenant([
        make_creator(id=1, name='Ana', channel_url='https://youtube.com/ana',
                     price=1000, total_conversions=40, total_views=80000),
        make_creator(id=2, name='Ben', channel_url='https://youtube.com/ben',
                     price=600, total_conversions=5),
        make_creator(id=3, name='Cy', channel_url='https://tiktok.com/cy',
                     price=400, total_conversions=0),
    ])


@pytest.fixture
def loaded(tenant):
    with patch(f'{RUNNER}.get_tenant_data', return_value=tenant) as loader:
        yield loader


class TestReminder:

    def test_drafted_by_generator(self, loaded, now):
        with patch(f'{RUNNER}.generate_text', return_value='Hi Ana, any update?') as gen:
            result = execute_action('u1', 'send_reminder', {'influencer_id': 1}, now=now)

        assert result['type'] == 'reminder'
        assert result['template'] == 'Hi Ana, any update?'
        assert result['creator'] == {'name': 'Ana', 'price': 1000,
                                     'channel': 'https://youtube.com/ana'}
        prompt = gen.call_args.args[0]
        assert 'named Ana who was paid $1,000 73 days ago' in prompt

    def test_string_id_matches(self, loaded, now):
        with patch(f'{RUNNER}.generate_text', return_value='Hi'):
            result = execute_action('u1', 'send_reminder', {'influencer_id': '2'}, now=now)
        assert result['creator']['name'] == 'Ben'

    def test_template_fallback(self, loaded, now):
        with patch(f'{RUNNER}.generate_text', side_effect=TextGenerationError('down')):
            result = execute_action('u1', 'send_reminder', {'influencer_id': 1}, now=now)
        assert result['template'].startswith('Hi Ana,')
        assert 'We paid $1,000' in result['template']

    def test_unknown_creator(self, loaded, now):
        result = execute_action('u1', 'send_reminder', {'influencer_id': 99}, now=now)
        assert result == {'type': 'error', 'message': 'Creator not found'}

    def test_missing_id(self, loaded):
        with pytest.raises(ActionError):
            execute_action('u1', 'send_reminder', {})


class TestDeadline:

    def test_default_extension(self, now):
        result = execute_action('u1', 'extend_deadline', {'influencer_id': 1}, now=now)
        assert result == {'type': 'deadline_extended', 'influencer_id': 1,
                          'new_deadline': '2026-03-22', 'days_extended': 7}

    def test_custom_extension(self, now):
        result = execute_action('u1', 'extend_deadline', {'influencer_id': 1, 'days': '3'}, now=now)
        assert result['new_deadline'] == '2026-03-18'

    @pytest.mark.parametrize('days', ['soon', -2])
    def test_bad_days(self, days):
        with pytest.raises(ActionError):
            execute_action('u1', 'extend_deadline', {'influencer_id': 1, 'days': days})


class TestSimilar:

    def test_platform_reference_is_top_converter(self, loaded):
        with patch(f'{RUNNER}.generate_text', return_value='- Tech reviewers') as gen:
            result = execute_action('u1', 'find_similar', {'platform': 'youtube'})
        assert result == {'type': 'recommendations', 'platform': 'youtube',
                          'reference_creator': 'Ana', 'suggestions': '- Tech reviewers'}
        assert 'Conversions: 40' in gen.call_args.args[0]

    def test_platform_fallback(self, loaded):
        with patch(f'{RUNNER}.generate_text', side_effect=TextGenerationError('down')):
            result = execute_action('u1', 'find_similar', {'platform': 'Twitch'})
        assert result['reference_creator'] is None
        assert result['suggestions'].startswith('Look for Twitch creators with:')

    def test_similar_to_creator_fallback(self, loaded):
        with patch(f'{RUNNER}.generate_text', side_effect=TextGenerationError('down')):
            result = execute_action('u1', 'find_similar_creator', {'influencer_id': 3})
        assert result['type'] == 'similar_creator_search'
        assert result['original'] == 'Cy'
        assert result['suggestions'].startswith('To find creators similar to Cy:')


class TestStaticActions:

    def test_navigate(self):
        result = execute_action('u1', 'navigate', {'url': '/influencers', 'filter': 'no_content'})
        assert result == {'type': 'navigate', 'url': '/influencers', 'filter': 'no_content'}

    def test_dismiss(self):
        assert execute_action('u1', 'dismiss', {'action_id': 'review_underperformers'}) == {
            'type': 'dismissed', 'action_id': 'review_underperformers'}

    def test_schedule_call_escapes_name(self):
        result = execute_action('u1', 'schedule_call', {'influencer_name': 'Ana B'})
        assert 'text=Call%20with%20Ana%20B' in result['url']

    def test_bulk_reminder(self):
        result = execute_action('u1', 'bulk_reminder', {'influencer_ids': [1, 2]})
        assert result['count'] == 2
        assert result['message'].startswith('Ready to send reminders to 2 creators.')

    def test_bulk_reminder_rejects_non_list(self):
        with pytest.raises(ActionError):
            execute_action('u1', 'bulk_reminder', {'influencer_ids': 'all'})

    def test_pause_requires_confirmation(self):
        result = execute_action('u1', 'pause_underperformers', {'influencer_ids': [3]})
        assert result['requiresConfirmation'] is True

    def test_help_topics(self):
        assert execute_action('u1', 'help', {'topic': 'getting_started'})['content'].startswith(
            '**Getting Started**')
        assert execute_action('u1', 'help', {'topic': 'other'})['content'] == DEFAULT_HELP

    def test_unknown_action(self):
        assert execute_action('u1', 'teleport', {}) == {
            'type': 'unknown', 'message': 'Action not recognized'}

    def test_card_actions_are_handled(self, tenant):
        from creator_insights.services.actions import detect_actions
        from creator_insights.services.benchmarks import DEFAULT_BENCHMARKS

        for card in detect_actions(tenant, DEFAULT_BENCHMARKS):
            for option in card.options:
                assert option['action'] in HANDLERS


def test_auto_organize_groups_by_platform(loaded):
    result = execute_action('u1', 'auto_organize')
    assert result['suggestions'] == [
        {'name': 'YouTube Campaign', 'count': 2, 'creators': ['Ana', 'Ben']},
        {'name': 'TikTok Campaign', 'count': 1, 'creators': ['Cy']},
    ]
    assert result['message'].startswith('I can organize your 3 creators into 2 campaigns')


class TestMessages:

    def test_reminder(self):
        assert action_message('send_reminder', {'influencer_name': 'Ana'}, {'template': 'Hi'}) == (
            "I've drafted a reminder for Ana. Here's a suggested message you can customize.")

    def test_deadline(self):
        result = {'days_extended': 7, 'new_deadline': '2026-03-22'}
        assert action_message('extend_deadline', {'influencer_name': 'Ana'}, result) == (
            'Extended the deadline for Ana by 7 days. New deadline: 2026-03-22.')

    def test_navigate_with_filter(self):
        assert action_message('navigate', {'url': '/influencers', 'filter': 'tiktok'}, {}) == (
            'Taking you to /influencers (filtered by tiktok).')

    def test_bulk_reminder_singular(self):
        assert action_message('bulk_reminder', {}, {'count': 1}) == 'Sending reminders to 1 creator.'

    def test_default(self):
        assert action_message('import_csv', {}, {}) == 'Action completed successfully.'
