"""
Unit tests for the text-generation providers.

WHAT: OpenAI-compatible client, LM Studio specifics, provider factory
WHY: Provider failures must surface as typed ProviderError subclasses
HOW: respx mocks of the chat-completions and models endpoints
"""

import httpx
import pytest
import respx

from negotiator.llm.base import OpenAICompatibleProvider
from negotiator.llm.lm_studio import LMStudioProvider
from negotiator.llm.openai_provider import OpenAIProvider
from negotiator.llm.provider_factory import create_provider
from negotiator.llm.types import (
    ProviderDisabledError,
    ProviderResponseError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)

BASE_URL = "http://llm.test/v1"

MOCK_COMPLETION = {
    "choices": [{"message": {"content": "Test response"}}],
    "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
    "model": "test-model"
}

MOCK_MODELS_RESPONSE = {
    "data": [
        {"id": "model-1", "object": "model"},
        {"id": "model-2", "object": "model"}
    ]
}

MESSAGES = [
    {"role": "system", "content": "You are a mediator."},
    {"role": "user", "content": "{}"},
]


def make_provider(max_retries=1):
    return OpenAICompatibleProvider(
        base_url=BASE_URL,
        default_model="test-model",
        timeout=1.0,
        max_retries=max_retries,
        retry_delay=0.0,
    )


@pytest.mark.unit
class TestOpenAICompatibleProvider:

    @pytest.mark.asyncio
    @respx.mock
    async def test_generate_success(self):
        route = respx.post(f"{BASE_URL}/chat/completions").mock(
            return_value=httpx.Response(200, json=MOCK_COMPLETION)
        )
        provider = make_provider()

        result = await provider.generate(MESSAGES, temperature=0.2, max_tokens=64)
        await provider.close()

        assert result.text == "Test response"
        assert result.model == "test-model"
        assert result.usage["total_tokens"] == 15
        payload = route.calls.last.request.read()
        assert b'"stream":false' in payload.replace(b" ", b"")

    @pytest.mark.asyncio
    @respx.mock
    async def test_server_error_after_retries(self):
        route = respx.post(f"{BASE_URL}/chat/completions").mock(return_value=httpx.Response(503))
        provider = make_provider(max_retries=2)

        with pytest.raises(ProviderResponseError):
            await provider.generate(MESSAGES, temperature=0.2, max_tokens=64)
        await provider.close()

        assert route.call_count == 2

    @pytest.mark.asyncio
    @respx.mock
    async def test_client_error_is_not_retried(self):
        route = respx.post(f"{BASE_URL}/chat/completions").mock(return_value=httpx.Response(401, text="nope"))
        provider = make_provider(max_retries=3)

        with pytest.raises(ProviderResponseError):
            await provider.generate(MESSAGES, temperature=0.2, max_tokens=64)
        await provider.close()

        assert route.call_count == 1

    @pytest.mark.asyncio
    @respx.mock
    async def test_connection_refused(self):
        respx.post(f"{BASE_URL}/chat/completions").mock(side_effect=httpx.ConnectError("refused"))
        provider = make_provider()

        with pytest.raises(ProviderUnavailableError):
            await provider.generate(MESSAGES, temperature=0.2, max_tokens=64)
        await provider.close()

    @pytest.mark.asyncio
    @respx.mock
    async def test_timeout(self):
        respx.post(f"{BASE_URL}/chat/completions").mock(side_effect=httpx.ReadTimeout("slow"))
        provider = make_provider()

        with pytest.raises(ProviderTimeoutError):
            await provider.generate(MESSAGES, temperature=0.2, max_tokens=64)
        await provider.close()

    @pytest.mark.asyncio
    @respx.mock
    async def test_malformed_body(self):
        respx.post(f"{BASE_URL}/chat/completions").mock(return_value=httpx.Response(200, json={"choices": []}))
        provider = make_provider()

        with pytest.raises(ProviderResponseError):
            await provider.generate(MESSAGES, temperature=0.2, max_tokens=64)
        await provider.close()

    @pytest.mark.asyncio
    @respx.mock
    async def test_ping(self):
        respx.get(f"{BASE_URL}/models").mock(return_value=httpx.Response(200, json=MOCK_MODELS_RESPONSE))
        provider = make_provider()

        status = await provider.ping()
        await provider.close()

        assert status.available is True
        assert status.models == ["model-1", "model-2"]

    @pytest.mark.asyncio
    @respx.mock
    async def test_ping_unreachable(self):
        respx.get(f"{BASE_URL}/models").mock(side_effect=httpx.ConnectError("refused"))
        provider = make_provider()

        status = await provider.ping()
        await provider.close()

        assert status.available is False
        assert status.error == "Connection refused"


@pytest.mark.unit
class TestLMStudioProvider:

    @pytest.mark.asyncio
    @respx.mock
    async def test_no_think_directive_and_think_stripping(self, settings):
        cfg = settings.model_copy(update={"LLM_PROVIDER": "lm_studio", "LM_STUDIO_BASE_URL": BASE_URL})
        body = dict(MOCK_COMPLETION, choices=[{"message": {"content": "<think>hmm</think>\n{\"ok\": 1}"}}])
        route = respx.post(f"{BASE_URL}/chat/completions").mock(return_value=httpx.Response(200, json=body))
        provider = LMStudioProvider(cfg)

        original = [dict(m) for m in MESSAGES]
        result = await provider.generate(MESSAGES, temperature=0.2, max_tokens=64)
        await provider.close()

        assert result.text == '{"ok": 1}'
        assert MESSAGES == original
        sent = route.calls.last.request.read().decode()
        assert "/no_think" in sent
        assert '"enable_thinking": false' in sent or '"enable_thinking":false' in sent


@pytest.mark.unit
class TestProviderFactory:

    def test_none_means_templates_only(self, settings):
        assert create_provider(settings) is None

    def test_openai_requires_key(self, settings):
        cfg = settings.model_copy(update={"LLM_PROVIDER": "openai", "OPENAI_API_KEY": ""})
        with pytest.raises(ProviderDisabledError):
            create_provider(cfg)

    @pytest.mark.asyncio
    async def test_openai_with_key(self, settings):
        cfg = settings.model_copy(update={"LLM_PROVIDER": "openai", "OPENAI_API_KEY": "sk-test"})
        provider = create_provider(cfg)
        assert isinstance(provider, OpenAIProvider)
        assert provider.client.headers["Authorization"] == "Bearer sk-test"
        await provider.close()

    @pytest.mark.asyncio
    async def test_lm_studio(self, settings):
        provider = create_provider(settings.model_copy(update={"LLM_PROVIDER": "lm_studio"}))
        assert isinstance(provider, LMStudioProvider)
        await provider.close()
