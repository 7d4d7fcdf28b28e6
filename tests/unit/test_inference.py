"""Unit tests for openstax_mcp.inference."""

from __future__ import annotations

import json

import httpx
import pytest
import respx

from openstax_mcp.config import ModelSettings
from openstax_mcp.errors import ErrorCode, OpenStaxError
from openstax_mcp.inference import ModelClient

BASE = "https://models.example.com/v1"


def _settings(**overrides: object) -> ModelSettings:
    return ModelSettings(base_url=BASE, api_key="key", **overrides)


class TestEmbed:
    async def test_returns_vectors_in_input_order(self) -> None:
        with respx.mock:
            route = respx.post(f"{BASE}/embeddings").mock(
                return_value=httpx.Response(
                    200,
                    json={
                        "data": [
                            {"index": 1, "embedding": [0.0, 1.0]},
                            {"index": 0, "embedding": [1.0, 0.0]},
                        ]
                    },
                )
            )
            async with httpx.AsyncClient() as client:
                vectors = await ModelClient(client, _settings()).embed(["a", "b"])
            assert vectors == [[1.0, 0.0], [0.0, 1.0]]
            request = route.calls.last.request
            assert request.headers["Authorization"] == "Bearer key"
            body = json.loads(request.content)
            assert body == {"model": ModelSettings().embedding_model, "input": ["a", "b"]}

    async def test_count_mismatch_fails(self) -> None:
        with respx.mock:
            respx.post(f"{BASE}/embeddings").mock(
                return_value=httpx.Response(200, json={"data": [{"index": 0, "embedding": [1]}]})
            )
            async with httpx.AsyncClient() as client:
                with pytest.raises(OpenStaxError) as exc_info:
                    await ModelClient(client, _settings()).embed(["a", "b"])
            assert exc_info.value.code == ErrorCode.MODEL_CALL_FAILED

    async def test_malformed_response_fails(self) -> None:
        with respx.mock:
            respx.post(f"{BASE}/embeddings").mock(
                return_value=httpx.Response(200, json={"result": []})
            )
            async with httpx.AsyncClient() as client:
                with pytest.raises(OpenStaxError) as exc_info:
                    await ModelClient(client, _settings()).embed(["a"])
            assert exc_info.value.code == ErrorCode.MODEL_CALL_FAILED


class TestGenerate:
    async def test_returns_message_content(self) -> None:
        with respx.mock:
            route = respx.post(f"{BASE}/chat/completions").mock(
                return_value=httpx.Response(
                    200,
                    json={"choices": [{"message": {"role": "assistant", "content": "Problem 1"}}]},
                )
            )
            async with httpx.AsyncClient() as client:
                text = await ModelClient(client, _settings()).generate("Write problems")
            assert text == "Problem 1"
            body = json.loads(route.calls.last.request.content)
            assert body["messages"] == [{"role": "user", "content": "Write problems"}]

    async def test_http_error_is_recoverable(self) -> None:
        with respx.mock:
            respx.post(f"{BASE}/chat/completions").mock(return_value=httpx.Response(503))
            async with httpx.AsyncClient() as client:
                with pytest.raises(OpenStaxError) as exc_info:
                    await ModelClient(client, _settings()).generate("x")
            assert exc_info.value.code == ErrorCode.MODEL_CALL_FAILED
            assert exc_info.value.recoverable is True

    async def test_network_error(self) -> None:
        with respx.mock:
            respx.post(f"{BASE}/chat/completions").mock(side_effect=httpx.ConnectError("down"))
            async with httpx.AsyncClient() as client:
                with pytest.raises(OpenStaxError) as exc_info:
                    await ModelClient(client, _settings()).generate("x")
            assert exc_info.value.code == ErrorCode.MODEL_CALL_FAILED


async def test_unconfigured_endpoint_raises_without_network() -> None:
    async with httpx.AsyncClient() as client:
        models = ModelClient(client, ModelSettings())
        with pytest.raises(OpenStaxError) as exc_info:
            await models.embed(["a"])
    assert exc_info.value.code == ErrorCode.MODEL_NOT_CONFIGURED


async def test_no_api_key_sends_no_authorization() -> None:
    with respx.mock:
        route = respx.post(f"{BASE}/embeddings").mock(
            return_value=httpx.Response(200, json={"data": [{"index": 0, "embedding": [1.0]}]})
        )
        async with httpx.AsyncClient() as client:
            await ModelClient(client, ModelSettings(base_url=BASE)).embed(["a"])
        assert "Authorization" not in route.calls.last.request.headers
