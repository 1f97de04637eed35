"""
Text generation: Anthropic in production, local Ollama in development.

generate_text() is the only entry point. Every backend problem (open circuit,
HTTP error, timeout, empty completion) surfaces as TextGenerationError so
callers can substitute their deterministic fallback with one except clause.
"""
import logging
from typing import Optional

import requests

from creator_insights.config import (
    ANTHROPIC_MODEL, LLM_TIMEOUT_SECONDS, OLLAMA_URL, OLLAMA_MODEL,
)
from creator_insights.services.circuit_breaker import get_breaker

logger = logging.getLogger('services.llm')


class TextGenerationError(Exception):
    """No usable text came back from the generation backend."""


def _call_anthropic(prompt, max_tokens, model, timeout, system=None):
    from creator_insights.extensions import anthropic_client
    kwargs = dict(
        model=model,
        max_tokens=max_tokens,
        messages=[{'role': 'user', 'content': prompt}],
        timeout=timeout,
    )
    if system:
        kwargs['system'] = system
    response = get_breaker('anthropic').call(anthropic_client.messages.create, **kwargs)
    if not response.content:
        return ''
    return response.content[0].text


def _call_ollama(prompt, max_tokens, timeout, system=None):
    messages = []
    if system:
        messages.append({'role': 'system', 'content': system})
    messages.append({'role': 'user', 'content': prompt})

    def _post():
        resp = requests.post(
            f'{OLLAMA_URL}/api/chat',
            json={
                'model': OLLAMA_MODEL,
                'messages': messages,
                'stream': False,
                'options': {'num_predict': max_tokens},
            },
            timeout=timeout,
        )
        resp.raise_for_status()
        return resp.json()['message']['content']

    return get_breaker('ollama').call(_post)


def generate_text(prompt: str, max_tokens: int, model: Optional[str] = None,
                  timeout: Optional[float] = None, system: Optional[str] = None) -> str:
    """Generate a completion for prompt, bounded by LLM_TIMEOUT_SECONDS.

    Raises:
        TextGenerationError: backend failure or empty output.
    """
    from creator_insights.extensions import anthropic_client

    timeout = timeout or LLM_TIMEOUT_SECONDS
    backend = 'anthropic' if anthropic_client is not None else 'ollama'
    try:
        if backend == 'anthropic':
            text = _call_anthropic(prompt, max_tokens, model or ANTHROPIC_MODEL, timeout, system)
        else:
            text = _call_ollama(prompt, max_tokens, timeout, system)
    except Exception as e:
        logger.warning("Text generation via %s failed: %s", backend, e)
        raise TextGenerationError(f'{backend} generation failed: {e}') from e

    text = (text or '').strip()
    if not text:
        raise TextGenerationError(f'{backend} returned an empty completion')
    return text
