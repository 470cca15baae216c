import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import litellm
import pytest
from tenacity import wait_none

from shotcraft._core.environment import settings
from shotcraft._core.error import CompletionFailure
from shotcraft.completion import (
    CompletionClient,
    LiteLLMCompletionClient,
    calculate_retry_wait,
)
from shotcraft.llm_registry import LLMRegistry


def create_mock_response(content):
    """Create a mock LiteLLM response."""
    mock_response = MagicMock()
    mock_response.choices = [MagicMock()]
    mock_response.choices[0].message.content = content
    return mock_response


def rate_limit_error(message='Rate limit exceeded'):
    return litellm.exceptions.RateLimitError(
        message=message, llm_provider='openai', model='gpt-4o-mini'
    )


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(settings, 'api_base_url', None)
    return LiteLLMCompletionClient(
        registry=LLMRegistry(provider='openai', api_key='test-key'),
        timeout=5.0,
        max_retries=3,
        max_concurrent=4,
        wait=wait_none(),
    )


class TestLiteLLMCompletionClient:
    def test_satisfies_protocol(self, client):
        assert isinstance(client, CompletionClient)

    @pytest.mark.asyncio
    async def test_returns_text(self, client):
        """A successful call returns the message content."""
        with patch('litellm.acompletion', new_callable=AsyncMock) as mock_acompletion:
            mock_acompletion.return_value = create_mock_response('4')
            text = await client.complete('2+2?', model='gpt-4o-mini', temperature=0.0)

        assert text == '4'
        kwargs = mock_acompletion.call_args.kwargs
        assert kwargs['model'] == 'gpt-4o-mini'
        assert kwargs['temperature'] == 0.0

    @pytest.mark.asyncio
    async def test_retries_transient_errors(self, client):
        """Rate limit errors are retried until a call succeeds."""
        with patch('litellm.acompletion', new_callable=AsyncMock) as mock_acompletion:
            mock_acompletion.side_effect = [
                rate_limit_error(),
                rate_limit_error(),
                create_mock_response('ok'),
            ]
            text = await client.complete('hi', model='gpt-4o-mini', temperature=0.0)

        assert text == 'ok'
        assert mock_acompletion.call_count == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, client):
        """Exhausted retries surface as CompletionFailure."""
        with patch('litellm.acompletion', new_callable=AsyncMock) as mock_acompletion:
            mock_acompletion.side_effect = rate_limit_error()
            with pytest.raises(CompletionFailure) as exc_info:
                await client.complete('hi', model='gpt-4o-mini', temperature=0.0)

        assert mock_acompletion.call_count == 3
        assert exc_info.value.model == 'gpt-4o-mini'
        assert isinstance(exc_info.value.__cause__, litellm.exceptions.RateLimitError)

    @pytest.mark.asyncio
    async def test_non_transient_errors_are_not_retried(self, client):
        with patch('litellm.acompletion', new_callable=AsyncMock) as mock_acompletion:
            mock_acompletion.side_effect = ValueError('bad request')
            with pytest.raises(CompletionFailure, match='bad request'):
                await client.complete('hi', model='gpt-4o-mini', temperature=0.0)

        assert mock_acompletion.call_count == 1

    @pytest.mark.asyncio
    async def test_timeout_becomes_completion_failure(self):
        """A stalled request is cut off by the per-request timeout."""
        client = LiteLLMCompletionClient(
            registry=LLMRegistry(provider='openai', api_key='test-key'),
            timeout=0.05,
            max_retries=1,
            wait=wait_none(),
        )

        async def stall(**kwargs):
            await asyncio.sleep(1)

        with patch('litellm.acompletion', new=stall):
            with pytest.raises(CompletionFailure, match='timed out'):
                await client.complete('hi', model='gpt-4o-mini', temperature=0.0)

    @pytest.mark.asyncio
    async def test_llm_wrappers_are_cached_per_model(self, client):
        assert client.get_llm('gpt-4o-mini') is client.get_llm('gpt-4o-mini')
        assert client.get_llm('gpt-4o-mini') is not client.get_llm('gpt-4o')

    @pytest.mark.parametrize('option', ['max_retries', 'max_concurrent'])
    def test_zero_limits_are_rejected(self, option):
        with pytest.raises(ValueError, match=f'{option} must be >= 1'):
            LiteLLMCompletionClient(
                registry=LLMRegistry(provider='openai', api_key='test-key'),
                **{option: 0},
            )

    def test_explicit_limits_win_over_settings(self, monkeypatch):
        monkeypatch.setattr(settings, 'max_retries', 5)
        monkeypatch.setattr(settings, 'max_concurrent_requests', 9)

        client = LiteLLMCompletionClient(
            registry=LLMRegistry(provider='openai', api_key='test-key'),
            max_retries=1,
            max_concurrent=2,
        )

        assert client.max_retries == 1
        assert client.max_concurrent == 2


class TestRetryWait:
    def _state(self, exception, attempt):
        state = MagicMock()
        state.outcome.exception.return_value = exception
        state.attempt_number = attempt
        return state

    def test_uses_rate_limit_reset_time(self):
        error = Exception('429 Please try again in 3s')
        assert calculate_retry_wait(self._state(error, 1)) == 4.0

    def test_exponential_backoff_is_capped(self):
        error = Exception('connection reset')
        assert calculate_retry_wait(self._state(error, 1)) == 1.0
        assert calculate_retry_wait(self._state(error, 3)) == 4.0
        assert calculate_retry_wait(self._state(error, 10)) == 10.0
