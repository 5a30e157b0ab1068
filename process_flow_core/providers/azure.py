"""
Adapter de Azure OpenAI (chat-completion remoto).

- Llama al deployment configurado:
  `{endpoint}/openai/deployments/{deployment}/chat/completions?api-version=...`
- Pide `response_format={"type": "json_object"}` en las operaciones JSON,
  pero NO asume que el texto venga limpio: todo pasa por el normalizer.
- Sin reintentos automáticos (`max_retries=0`): reintentar es decisión del llamador.
"""

from __future__ import annotations

import logging
import time
from functools import partial
from typing import Callable, List, Optional

import httpx
import openai
from openai import AsyncAzureOpenAI

from ..config import AiConfig
from ..domain_models import ChatMessage, ChatRefinement, ProcessFlow, SourceDocument
from ..exceptions import ConfigurationError, ProtocolError, TransportError
from .chat_completion import ChatCompletionFlows

logger = logging.getLogger(__name__)

TEMPERATURE = 0.2
MAX_TOKENS = 4096


class AzureOpenAIProvider:
    """
    Proveedor Azure OpenAI.

    Args:
        http_client_factory:
            Fábrica opcional de `httpx.AsyncClient` que se le pasa al SDK.
            Permite inyectar un transporte falso en tests.
    """

    name = "azure"
    supports_file_attachments = False

    def __init__(self, http_client_factory: Optional[Callable[[], httpx.AsyncClient]] = None) -> None:
        self._http_client_factory = http_client_factory

    # ------------------------------------------------------------
    # Transporte
    # ------------------------------------------------------------

    def _client(self, config: AiConfig) -> AsyncAzureOpenAI:
        azure = config.azure
        if not azure.endpoint or not azure.deployment or not azure.api_key:
            raise ConfigurationError("Azure OpenAI is not configured. Please check settings.")

        return AsyncAzureOpenAI(
            api_key=azure.api_key,
            azure_endpoint=azure.endpoint.rstrip("/"),
            api_version=azure.api_version,
            timeout=config.request_timeout_s,
            max_retries=0,
            http_client=self._http_client_factory() if self._http_client_factory else None,
        )

    async def _complete(self, config: AiConfig, system: str, user: str, json_mode: bool = True) -> str:
        client = self._client(config)

        kwargs = {
            "model": config.azure.deployment,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            "temperature": TEMPERATURE,
            "max_tokens": MAX_TOKENS,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        start = time.perf_counter()
        async with client:
            try:
                completion = await client.chat.completions.create(**kwargs)
            except openai.APIStatusError as e:
                body = e.response.text if e.response is not None else ""
                raise TransportError(
                    f"Azure API request failed with status {e.status_code}: {body}",
                    status=e.status_code,
                    body=body,
                ) from e
            except openai.APITimeoutError as e:
                raise TransportError(
                    f"Azure API request timed out after {config.request_timeout_s:.0f}s."
                ) from e
            except openai.APIConnectionError as e:
                raise TransportError(f"Could not connect to Azure OpenAI: {e}") from e

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "Azure OpenAI completado deployment=%s ms=%.1f json=%s",
            config.azure.deployment, elapsed_ms, json_mode,
        )

        if not completion.choices:
            raise ProtocolError("Invalid response from Azure API: No choices returned.")
        content = completion.choices[0].message.content
        if content is None:
            raise ProtocolError("Invalid response from Azure API: the first choice has no content.")
        return content

    def _flows(self, config: AiConfig) -> ChatCompletionFlows:
        return ChatCompletionFlows(partial(self._complete, config), label="Azure OpenAI")

    # ------------------------------------------------------------
    # Contrato FlowProvider
    # ------------------------------------------------------------

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
