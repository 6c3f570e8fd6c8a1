"""Tests for Gemini text generation."""

import json

import httpx
import pytest

from notesync.services import AIGenerationType, AIService
from notesync.utils.exceptions import ApiError, NetworkError, NoAPIKey


def _service(handler) -> AIService:
    return AIService(api_key="test-key", transport=httpx.MockTransport(handler))


def _answer(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}, "finishReason": "STOP"}]}


async def test_generate_sends_prompt_and_config():
    """Test the request shape and the returned candidate text."""
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=_answer("A short summary"))

    text = await _service(handler).generate("Summarize this")

    assert text == "A short summary"
    request = requests[0]
    assert request.url.path.endswith("/gemini-pro:generateContent")
    assert request.url.params["key"] == "test-key"
    body = json.loads(request.content)
    assert body["contents"][0]["parts"][0]["text"] == "Summarize this"
    assert body["generationConfig"] == {
        "temperature": 0.7,
        "topK": 40,
        "topP": 0.95,
        "maxOutputTokens": 2048,
    }


async def test_missing_key():
    """Test generation without a key."""
    service = AIService(api_key="")
    assert service.check_configured() is False
    with pytest.raises(NoAPIKey):
        await service.generate("prompt")


async def test_api_error_message():
    """Test the error message from the response body is surfaced."""
    service = _service(
        lambda request: httpx.Response(400, json={"error": {"code": 400, "message": "API key not valid"}})
    )
    with pytest.raises(ApiError) as exc_info:
        await service.generate("prompt")
    assert exc_info.value.message == "API key not valid"


async def test_api_error_without_body():
    """Test the status code is used when the body has no error message."""
    service = _service(lambda request: httpx.Response(503, text="unavailable"))
    with pytest.raises(ApiError) as exc_info:
        await service.generate("prompt")
    assert exc_info.value.message == "HTTP 503"


async def test_no_candidates():
    """Test an answer without text."""
    service = _service(lambda request: httpx.Response(200, json={"candidates": []}))
    with pytest.raises(ApiError) as exc_info:
        await service.generate("prompt")
    assert exc_info.value.message == "No content generated"


async def test_network_error():
    """Test transport failures."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(NetworkError):
        await _service(handler).generate("prompt")


async def test_templates_include_content():
    """Test the prompt templates and the custom instruction."""
    prompts: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        prompts.append(json.loads(request.content)["contents"][0]["parts"][0]["text"])
        return httpx.Response(200, json=_answer("ok"))

    service = _service(handler)
    await service.generate_flashcards("cells divide")
    await service.generate_custom("cells divide", "Translate to French")
    await service.generate_for(AIGenerationType.CUSTOM, "cells divide")

    assert "flashcards" in prompts[0] and "cells divide" in prompts[0]
    assert prompts[1].startswith("Translate to French")
    assert prompts[2].startswith("Please create a concise summary")
