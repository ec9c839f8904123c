"""
Thin wrapper over the Anthropic Messages API used by the AI endpoints.

Failures after the retries are exhausted surface as LLMError, which the views
answer with 502.
"""
import json
import logging
import re
import time

import anthropic
from django.conf import settings

from greenleaf.core.exceptions import DomainError

logger = logging.getLogger('greenleaf.storefront')

DEFAULT_MAX_TOKENS = 4000
DEFAULT_TEMPERATURE = 0.7


class LLMError(DomainError):
    status_code = 502


def _strip_markdown_fences(text):
    s = (text or '').strip()
    s = re.sub(r'^```(?:json)?\s*', '', s, flags=re.IGNORECASE).strip()
    s = re.sub(r'\s*```$', '', s).strip()
    return s


def extract_json(text):
    """
    Parse JSON out of model output: bare JSON, JSON in markdown fences, or the
    first object/array embedded in prose. Raises ValueError when there is none.
    """
    if not isinstance(text, str):
        raise ValueError('LLM output is not a string')
    s = _strip_markdown_fences(text)
    try:
        return json.loads(s)
    except ValueError:
        pass

    starts = [i for i in (s.find('{'), s.find('[')) if i >= 0]
    if starts:
        decoder = json.JSONDecoder()
        try:
            value, _ = decoder.raw_decode(s[min(starts):])
            return value
        except ValueError:
            pass
    raise ValueError(f'Could not parse JSON from LLM output: {text[:300]}')


def _retry_call(fn, retries, backoff_base=0.6):
    last_err = None
    for attempt in range(retries + 1):
        try:
            return fn()
        except (anthropic.APIConnectionError, anthropic.RateLimitError, anthropic.InternalServerError) as e:
            last_err = e
            if attempt >= retries:
                break
            sleep_s = backoff_base * (2 ** attempt)
            logger.warning(f"LLM call failed, retry {attempt + 1}/{retries} in {sleep_s:.2f}s: {e}")
            time.sleep(sleep_s)
    raise last_err


class AnthropicClient:
    def __init__(self, api_key=None, max_retries=None):
        self.api_key = api_key if api_key is not None else settings.ANTHROPIC_API_KEY
        self.max_retries = settings.AI_MAX_RETRIES if max_retries is None else max_retries
        if not self.api_key:
            raise LLMError('AI is not configured: ANTHROPIC_API_KEY is missing', status_code=503)
        # Retries are handled here so backoff is logged in one place
        self._client = anthropic.Anthropic(api_key=self.api_key, max_retries=0)

    def generate_text(self, system, messages, model=None, max_tokens=DEFAULT_MAX_TOKENS,
                      temperature=DEFAULT_TEMPERATURE):
        """Send a conversation and return the concatenated text of the reply"""
        model = model or settings.AI_DEFAULT_MODEL

        def call():
            return self._client.messages.create(
                model=model,
                system=system,
                messages=messages,
                max_tokens=int(max_tokens),
                temperature=float(temperature),
            )

        started = time.monotonic()
        try:
            response = _retry_call(call, self.max_retries)
        except anthropic.APIError as e:
            logger.error(f"LLM request to {model} failed: {e}", exc_info=True)
            raise LLMError('AI service request failed')

        text = ''.join(block.text for block in response.content if getattr(block, 'type', '') == 'text').strip()
        logger.info(f"LLM {model} replied in {time.monotonic() - started:.1f}s "
                    f"({response.usage.input_tokens} in / {response.usage.output_tokens} out tokens)")
        if not text:
            raise LLMError('AI service returned an empty response')
        return text


def get_llm_client():
    return AnthropicClient()
