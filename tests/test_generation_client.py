"""Tests for the Gemini generation client with a mocked SDK client."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from google.genai import types

from heo.core.config import Settings
from heo.core.errors import ConfigurationError, UpstreamServiceError
from heo.services.generation import GenerationClient, GenerationConfig, normalize_contents


@pytest.fixture
def mock_genai_client():
    """SDK client whose generate_content resolves to a response with `.text`."""

    def _create(text="1. Alpha statement here", side_effect=None):
        client = MagicMock()
        response = MagicMock()
        response.text = text
        client.aio.models.generate_content = AsyncMock(return_value=response, side_effect=side_effect)
        return client

    return _create


def test_missing_api_key_raises():
    with pytest.raises(ConfigurationError, match="API key"):
        GenerationClient(api_key=None, model_name="gemini-1.5-flash-latest", client=MagicMock())


def test_missing_model_name_raises():
    with pytest.raises(ConfigurationError, match="model name"):
        GenerationClient(api_key="key", model_name="", client=MagicMock())


def test_from_settings_without_key_raises():
    settings = Settings(GEMINI_API_KEY=None)
    with pytest.raises(ConfigurationError):
        GenerationClient.from_settings(settings)


@pytest.mark.asyncio
async def test_generate_returns_text(mock_genai_client):
    sdk = mock_genai_client(text="1. Alpha statement here\n2. Beta statement here")
    client = GenerationClient(api_key="key", model_name="gemini-test", client=sdk)

    text = await client.generate("Generate hypotheses", GenerationConfig(temperature=0.2, max_output_tokens=256))

    assert text == "1. Alpha statement here\n2. Beta statement here"
    kwargs = sdk.aio.models.generate_content.call_args.kwargs
    assert kwargs["model"] == "gemini-test"
    assert kwargs["contents"][0].parts[0].text == "Generate hypotheses"
    assert kwargs["config"].temperature == 0.2
    assert kwargs["config"].max_output_tokens == 256


@pytest.mark.asyncio
async def test_generate_model_override(mock_genai_client):
    sdk = mock_genai_client()
    client = GenerationClient(api_key="key", model_name="gemini-test", client=sdk)

    await client.generate("prompt", model_name="gemini-other")

    assert sdk.aio.models.generate_content.call_args.kwargs["model"] == "gemini-other"


@pytest.mark.asyncio
async def test_sdk_failure_raises_upstream_error(mock_genai_client):
    sdk = mock_genai_client(side_effect=RuntimeError("503 unavailable"))
    client = GenerationClient(api_key="key", model_name="gemini-test", client=sdk)

    with pytest.raises(UpstreamServiceError) as exc_info:
        await client.generate("prompt")

    assert exc_info.value.service == "generation"
    assert "503 unavailable" in str(exc_info.value)


@pytest.mark.asyncio
async def test_non_text_payload_raises_upstream_error(mock_genai_client):
    sdk = mock_genai_client(text=None)
    client = GenerationClient(api_key="key", model_name="gemini-test", client=sdk)

    with pytest.raises(UpstreamServiceError, match="expected a text string"):
        await client.generate("prompt")


def test_normalize_contents():
    turn = types.Content(role="user", parts=[types.Part(text="already built")])

    assert normalize_contents("hi")[0].parts[0].text == "hi"
    assert normalize_contents(turn) == [turn]
    mixed = normalize_contents(["first", turn])
    assert mixed[0].parts[0].text == "first"
    assert mixed[1] is turn
