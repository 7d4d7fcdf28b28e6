"""Embedding and text-generation client for an OpenAI-compatible endpoint.

Two calls only: ``embed`` (``POST /embeddings``) and ``generate``
(``POST /chat/completions``). Works against OpenAI, Cloudflare Workers AI's
``/ai/v1`` endpoint, or any local server speaking the same protocol.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx
import structlog

from openstax_mcp.errors import ErrorCode, OpenStaxError

if TYPE_CHECKING:
    from openstax_mcp.config import ModelSettings

log = structlog.get_logger()


class ModelClient:
    """Thin async wrapper implementing ModelProtocol."""

    def __init__(self, client: httpx.AsyncClient, settings: ModelSettings) -> None:
        self._client = client
        self._settings = settings

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Return one embedding vector per input text, in input order."""
        data = await self._post(
            "/embeddings",
            {"model": self._settings.embedding_model, "input": texts},
        )
        try:
            items = sorted(data["data"], key=lambda item: item.get("index", 0))
            vectors = [[float(x) for x in item["embedding"]] for item in items]
        except (KeyError, TypeError, ValueError) as exc:
            raise OpenStaxError(
                code=ErrorCode.MODEL_CALL_FAILED,
                message="Embedding response did not contain vectors",
                suggestion="Check that models.embedding_model names an embedding model.",
            ) from exc
        if len(vectors) != len(texts):
            raise OpenStaxError(
                code=ErrorCode.MODEL_CALL_FAILED,
                message=f"Expected {len(texts)} embeddings, received {len(vectors)}",
            )
        return vectors

    async def generate(self, prompt: str) -> str:
        """Send a single-turn user prompt and return the reply text."""
        data = await self._post(
            "/chat/completions",
            {
                "model": self._settings.generation_model,
                "messages": [{"role": "user", "content": prompt}],
            },
        )
        try:
            return data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as exc:
            raise OpenStaxError(
                code=ErrorCode.MODEL_CALL_FAILED,
                message="Generation response did not contain a message",
                suggestion="Check that models.generation_model names a chat model.",
            ) from exc

    async def _post(self, path: str, payload: dict[str, Any]) -> Any:
        if not self._settings.base_url:
            raise OpenStaxError(
                code=ErrorCode.MODEL_NOT_CONFIGURED,
                message="No model endpoint configured",
                suggestion="Set OPENSTAX__MODELS__BASE_URL to an OpenAI-compatible API.",
            )

        url = self._settings.base_url.rstrip("/") + path
        headers = {"Content-Type": "application/json"}
        if self._settings.api_key:
            headers["Authorization"] = f"Bearer {self._settings.api_key}"

        try:
            response = await self._client.post(
                url,
                json=payload,
                headers=headers,
                timeout=self._settings.timeout_seconds,
            )
        except httpx.HTTPError as exc:
            raise OpenStaxError(
                code=ErrorCode.MODEL_CALL_FAILED,
                message=f"Network error calling model endpoint {url}: {exc}",
                recoverable=True,
            ) from exc

        if not response.is_success:
            raise OpenStaxError(
                code=ErrorCode.MODEL_CALL_FAILED,
                message=f"HTTP {response.status_code} from model endpoint {url}",
                suggestion="The model service may be unavailable or the API key invalid.",
                recoverable=True,
            )

        log.debug("model_call_complete", url=url, model=payload.get("model"))
        try:
            return response.json()
        except ValueError as exc:
            raise OpenStaxError(
                code=ErrorCode.MODEL_CALL_FAILED,
                message=f"Invalid JSON returned by model endpoint {url}",
            ) from exc
