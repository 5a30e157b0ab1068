"""
Adapter de Ollama (servidor local, API nativa).

- POST `{base_url}/api/chat` con `stream: false`.
- En las operaciones JSON se pide `format: "json"`; el documento final va sin él.
- La respuesta es un sobre `{"message": {"content": "..."}}`; el contenido
  se pasa por el normalizer igual que con Azure.
"""

from __future__ import annotations

import logging
import time
from functools import partial
from typing import Any, Dict, List, Optional

import httpx

from ..config import AiConfig
from ..domain_models import ChatMessage, ChatRefinement, ProcessFlow, SourceDocument
from ..exceptions import ConfigurationError, ProtocolError, TransportError
from .chat_completion import ChatCompletionFlows

logger = logging.getLogger(__name__)


class OllamaProvider:
    """
    Proveedor Ollama.

    Args:
        transport: Transporte httpx opcional (p.ej. `httpx.MockTransport` en tests).
    """

    name = "ollama"
    supports_file_attachments = False

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._transport = transport

    async def _complete(self, config: AiConfig, system: str, user: str, json_mode: bool = True) -> str:
        ollama = config.ollama
        if not ollama.base_url or not ollama.model:
            raise ConfigurationError("Ollama is not configured. Please check settings.")

        url = f"{ollama.base_url.rstrip('/')}/api/chat"
        payload: Dict[str, Any] = {
            "model": ollama.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            "stream": False,
        }
        if json_mode:
            payload["format"] = "json"

        start = time.perf_counter()
        async with httpx.AsyncClient(transport=self._transport, timeout=config.request_timeout_s) as client:
            try:
                response = await client.post(url, json=payload)
            except httpx.TimeoutException as e:
                raise TransportError(
                    f"Ollama API request timed out after {config.request_timeout_s:.0f}s."
                ) from e
            except httpx.RequestError as e:
                raise TransportError(f"Could not connect to Ollama at {ollama.base_url}: {e}") from e

        if not response.is_success:
            body = response.text
            raise TransportError(
                f"Ollama API request failed with status {response.status_code}: {body}",
                status=response.status_code,
                body=body,
            )

        logger.info(
            "Ollama completado model=%s ms=%.1f json=%s",
            ollama.model, (time.perf_counter() - start) * 1000, json_mode,
        )

        try:
            envelope = response.json()
        except ValueError as e:
            raise ProtocolError("Invalid response from Ollama API: body is not JSON.") from e

        message = envelope.get("message") if isinstance(envelope, dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str):
            raise ProtocolError("Invalid response from Ollama API: missing message content.")
        return content

    def _flows(self, config: AiConfig) -> ChatCompletionFlows:
        return ChatCompletionFlows(partial(self._complete, config), label="Ollama")

    async def generate_initial_flow(self, source: SourceDocument, config: AiConfig) -> ProcessFlow:
        return await self._flows(config).generate_initial_flow(source)

    async def refine_flow_with_chat(
        self, transcript: List[ChatMessage], flow: ProcessFlow, config: AiConfig
    ) -> ChatRefinement:
        return await self._flows(config).refine_flow_with_chat(transcript, flow)

    async def enrich_step(
        self, flow: ProcessFlow, task_id: str, step_description: str, config: AiConfig
    ) -> ProcessFlow:
        return await self._flows(config).enrich_step(flow, task_id, step_description)

    async def generate_final_document(self, flow: ProcessFlow, config: AiConfig) -> str:
        return await self._flows(config).generate_final_document(flow)
