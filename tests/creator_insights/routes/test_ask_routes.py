"""Tests for the ask route."""
from unittest.mock import patch

import pytest

from creator_insights.services.tenant_data import TenantDataError


class TestAskRoute:

    @pytest.mark.parametrize('body', [{}, {'user': 'u1'}, {'question': 'Why?'}, {'user': ' ', 'question': 'Why?'}])
    def test_user_and_question_required(self, client, body):
        resp = client.post('/api/ask', json=body)
        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'User and question required'

    def test_answer(self, client):
        with patch('creator_insights.routes.ask.answer_question', return_value='Ana is best.') as answer:
            resp = client.post('/api/ask', json={
                'user': 'new@example.com',
                'question': 'Who is best?',
                'context': {'currentPage': '/influencers'},
            })
        assert resp.status_code == 200
        assert resp.get_json() == {'success': True, 'answer': 'Ana is best.'}
        tenant, question, context = answer.call_args.args
        assert tenant.key == 'new@example.com'
        assert question == 'Who is best?'
        assert context == {'currentPage': '/influencers'}

    def test_non_dict_context_ignored(self, client):
        with patch('creator_insights.routes.ask.answer_question', return_value='ok') as answer:
            client.post('/api/ask', json={'user': 'u1', 'question': 'Hi?', 'context': 'junk'})
        assert answer.call_args.args[2] is None

    def test_fallback_answer_without_llm(self, client, no_llm):
        resp = client.post('/api/ask', json={'user': 'u1', 'question': 'How am I doing?'})
        assert resp.status_code == 200
        assert resp.get_json()['answer'].startswith("I couldn't analyze that question right now.")

    def test_tenant_data_error_is_500(self, client):
        with patch('creator_insights.routes.ask.get_tenant_data', side_effect=TenantDataError('boom')):
            resp = client.post('/api/ask', json={'user': 'u1', 'question': 'Hi?'})
        assert resp.status_code == 500
