"""
Operaciones compartidas por los adapters de chat-completion (Azure, Ollama).

Ambos proveedores solo aceptan chat libre: el esquema va embebido como texto
en el mensaje de usuario y la respuesta se pasa por el normalizer (puede
venir envuelta en ```json o con prosa alrededor).

No hay herencia: cada adapter le entrega a `ChatCompletionFlows` su propia
corrutina `complete(system, user, json_mode) -> str` y delega acá el armado
de prompts y el parseo.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, List

from ..domain_models import ChatMessage, ChatRefinement, ProcessFlow, SourceDocument
from ..exceptions import CapabilityError, DomainError
from ..flow_parser import decode_chat_refinement, decode_process_flow
from ..prompts import (
    ANALYST_SYSTEM_PROMPT,
    ENRICH_SYSTEM_PROMPT,
    TECHNICAL_WRITER_SYSTEM_PROMPT,
    build_document_prompt,
    build_enrich_prompt,
    build_initial_prompt,
    build_refine_prompt,
    get_refine_system_prompt,
)
from ..schemas import CHAT_REFINEMENT_PROMPT_SCHEMA, PROCESS_FLOW_PROMPT_SCHEMA

logger = logging.getLogger(__name__)

CompleteFn = Callable[[str, str, bool], Awaitable[str]]


class ChatCompletionFlows:
    """
    Las cuatro operaciones del contrato sobre un `complete` genérico.

    Args:
        complete: Corrutina que envía (system, user) y devuelve el texto crudo.
            El tercer argumento pide formato JSON si el endpoint lo soporta.
        label: Nombre del proveedor (para mensajes y logs).
    """

    def __init__(self, complete: CompleteFn, label: str) -> None:
        self._complete = complete
        self._label = label

    async def generate_initial_flow(self, source: SourceDocument) -> ProcessFlow:
        if source.file is not None:
            raise CapabilityError(f"File uploads are not supported by the {self._label} provider.")
        if not (source.text or "").strip():
            raise DomainError("No document source provided.")

        logger.debug("%s: análisis inicial (%d caracteres de documento)", self._label, len(source.text or ""))
        user = build_initial_prompt(source.text or "", schema=PROCESS_FLOW_PROMPT_SCHEMA)
        raw = await self._complete(ANALYST_SYSTEM_PROMPT, user, True)
        return decode_process_flow(raw)

    async def refine_flow_with_chat(self, transcript: List[ChatMessage], flow: ProcessFlow) -> ChatRefinement:
        user = build_refine_prompt(flow, transcript, schema=CHAT_REFINEMENT_PROMPT_SCHEMA)
        raw = await self._complete(get_refine_system_prompt(json_envelope=True), user, True)
        return decode_chat_refinement(raw)

    async def enrich_step(self, flow: ProcessFlow, task_id: str, step_description: str) -> ProcessFlow:
        user = build_enrich_prompt(flow, task_id, step_description)
        raw = await self._complete(ENRICH_SYSTEM_PROMPT, user, True)
        return decode_process_flow(raw)

    async def generate_final_document(self, flow: ProcessFlow) -> str:
        # Prosa libre: sin pista de formato JSON.
        return await self._complete(TECHNICAL_WRITER_SYSTEM_PROMPT, build_document_prompt(flow), False)
