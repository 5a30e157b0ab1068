"""
Adapter de Gemini (salida restringida por esquema).

A diferencia de los adapters de chat-completion, acá el esquema viaja como
`response_schema` en la configuración de la llamada: el modelo devuelve JSON
puro y se parsea directo, sin buscar bloques ```json.

Es el único proveedor que acepta adjuntos binarios (PDF, DOCX, imágenes)
en el análisis inicial.
"""

from __future__ import annotations

import base64
import logging
import time
from typing import Any, Callable, Dict, List, Optional

import httpx
from google import genai
from google.genai import errors, types

from ..config import AiConfig
from ..domain_models import ChatMessage, ChatRefinement, ProcessFlow, SourceDocument
from ..exceptions import ConfigurationError, DomainError, ProtocolError, TransportError
from ..flow_parser import decode_chat_refinement, decode_process_flow
from ..prompts import (
    ANALYZE_FILE_INSTRUCTION,
    ENRICH_SYSTEM_PROMPT,
    REFINE_RULES,
    build_document_prompt,
    build_enrich_prompt,
    build_initial_prompt,
    build_refine_prompt,
)
from ..schemas import CHAT_REFINEMENT_SCHEMA, PROCESS_FLOW_SCHEMA

logger = logging.getLogger(__name__)

ClientFactory = Callable[[AiConfig], Any]


def _default_client(config: AiConfig) -> genai.Client:
    return genai.Client(
        api_key=config.gemini.api_key,
        http_options=types.HttpOptions(timeout=int(config.request_timeout_s * 1000)),
    )


class GeminiProvider:
    """
    Proveedor Gemini.

    Args:
        client_factory: Construye el cliente a partir de la config. En tests se
            reemplaza por un cliente falso con la forma `client.aio.models.generate_content`
            y `client.aio.aclose()`. Se crea un cliente por llamada y se cierra al terminar.
    """

    name = "gemini"
    supports_file_attachments = True

    def __init__(self, client_factory: Optional[ClientFactory] = None) -> None:
        self._client_factory = client_factory or _default_client

    async def _generate(
        self,
        config: AiConfig,
        contents: Any,
        *,
        system_instruction: Optional[str] = None,
        response_schema: Optional[Dict[str, Any]] = None,
    ) -> str:
        if not config.gemini.api_key:
            raise ConfigurationError("Gemini API key is not configured. Please check settings.")

        call_config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            response_mime_type="application/json" if response_schema is not None else None,
            response_schema=response_schema,
        )

        client = self._client_factory(config)
        start = time.perf_counter()
        try:
            response = await client.aio.models.generate_content(
                model=config.gemini.model,
                contents=contents,
                config=call_config,
            )
        except errors.APIError as e:
            raise TransportError(
                f"Gemini API request failed with status {e.code}: {e.message}",
                status=e.code,
                body=str(e.message or ""),
            ) from e
        except httpx.TimeoutException as e:
            raise TransportError(
                f"Gemini API request timed out after {config.request_timeout_s:.0f}s."
            ) from e
        except httpx.RequestError as e:
            raise TransportError(f"Could not connect to Gemini: {e}") from e
        finally:
            await client.aio.aclose()

        logger.info(
            "Gemini completado model=%s ms=%.1f schema=%s",
            config.gemini.model, (time.perf_counter() - start) * 1000, response_schema is not None,
        )

        text = response.text
        if text is None:
            raise ProtocolError("Invalid response from Gemini API: no text returned.")
        return text

    # ------------------------------------------------------------
    # Contrato FlowProvider
    # ------------------------------------------------------------

    async def generate_initial_flow(self, source: SourceDocument, config: AiConfig) -> ProcessFlow:
        if source.file is not None:
            contents: Any = [
                types.Part.from_text(text=ANALYZE_FILE_INSTRUCTION),
                types.Part.from_bytes(
                    data=base64.b64decode(source.file.data),
                    mime_type=source.file.mime_type,
                ),
            ]
        elif (source.text or "").strip():
            contents = build_initial_prompt(source.text or "")
        else:
            raise DomainError("No document source provided.")

        raw = await self._generate(config, contents, response_schema=PROCESS_FLOW_SCHEMA)
        return decode_process_flow(raw, fenced=False)

    async def refine_flow_with_chat(
        self, transcript: List[ChatMessage], flow: ProcessFlow, config: AiConfig
    ) -> ChatRefinement:
        raw = await self._generate(
            config,
            build_refine_prompt(flow, transcript),
            system_instruction=REFINE_RULES,
            response_schema=CHAT_REFINEMENT_SCHEMA,
        )
        return decode_chat_refinement(raw, fenced=False)

    async def enrich_step(
        self, flow: ProcessFlow, task_id: str, step_description: str, config: AiConfig
    ) -> ProcessFlow:
        raw = await self._generate(
            config,
            build_enrich_prompt(flow, task_id, step_description),
            system_instruction=ENRICH_SYSTEM_PROMPT,
            response_schema=PROCESS_FLOW_SCHEMA,
        )
        return decode_process_flow(raw, fenced=False)

    async def generate_final_document(self, flow: ProcessFlow, config: AiConfig) -> str:
        return await self._generate(config, build_document_prompt(flow))
