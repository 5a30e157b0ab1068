"""
process_flow_core.ai_service
============================

Router de proveedores de LLM.

Expone las mismas cuatro operaciones que cada adapter y decide, a partir de
`AiConfig.provider`, a cuál delegar. La selección es pura (no hay estado
global más allá de la tabla de despacho) y el llamador puede pasar su
propia tabla `providers` (así se testea sin red).

Chequeos que agrega el router antes de cualquier llamada:
- Documento vacío (sin texto ni archivo) -> `DomainError`.
- Archivo adjunto con un proveedor que no soporta adjuntos -> `CapabilityError`.
- Enriquecimiento sobre una tarea inexistente -> `DomainError`.

Y después de la llamada, sobre la respuesta del modelo:
- Enriquecimiento: el árbol vuelve con todos sus ids y exactamente un paso
  nuevo al final de la tarea pedida (`flow_ops.check_enrichment`).
- Refinamiento: ningún id existente pasa a nombrar otro tipo de nodo
  (`flow_ops.check_refinement`).
Las violaciones son `ParseError`: el store las reporta y conserva el árbol.
"""

from __future__ import annotations

import logging
from typing import List, Mapping, Optional

from .config import AiConfig
from .core.abstractions import FlowProvider
from .domain_models import ChatMessage, ChatRefinement, ProcessFlow, SourceDocument
from .exceptions import CapabilityError, DomainError
from .flow_ops import check_enrichment, check_refinement, find_task
from .providers import AzureOpenAIProvider, GeminiProvider, OllamaProvider

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER = "gemini"

PROVIDERS: Mapping[str, FlowProvider] = {
    "gemini": GeminiProvider(),
    "azure": AzureOpenAIProvider(),
    "ollama": OllamaProvider(),
}


def get_provider(config: AiConfig, providers: Optional[Mapping[str, FlowProvider]] = None) -> FlowProvider:
    """
    Devuelve el adapter para `config.provider`.

    Un proveedor desconocido cae en Gemini (con warning).
    """
    table = providers if providers is not None else PROVIDERS
    provider = table.get(config.provider)
    if provider is None:
        logger.warning("Proveedor de IA desconocido '%s', usando '%s'", config.provider, DEFAULT_PROVIDER)
        provider = table[DEFAULT_PROVIDER]
    return provider


async def generate_initial_flow(
    source: SourceDocument,
    config: AiConfig,
    providers: Optional[Mapping[str, FlowProvider]] = None,
) -> ProcessFlow:
    if source.is_empty:
        raise DomainError("No document source provided.")

    provider = get_provider(config, providers)
    if source.file is not None and not provider.supports_file_attachments:
        raise CapabilityError("File uploads are only supported by the Gemini provider.")

    logger.info("Análisis inicial con proveedor=%s adjunto=%s", provider.name, source.file is not None)
    return await provider.generate_initial_flow(source, config)


async def refine_flow_with_chat(
    transcript: List[ChatMessage],
    flow: ProcessFlow,
    config: AiConfig,
    providers: Optional[Mapping[str, FlowProvider]] = None,
) -> ChatRefinement:
    provider = get_provider(config, providers)
    refinement = await provider.refine_flow_with_chat(transcript, flow, config)
    check_refinement(flow, refinement.updated_flow)
    return refinement


async def enrich_step(
    flow: ProcessFlow,
    task_id: str,
    step_description: str,
    config: AiConfig,
    providers: Optional[Mapping[str, FlowProvider]] = None,
) -> ProcessFlow:
    if find_task(flow, task_id) is None:
        raise DomainError(f"Task '{task_id}' was not found in the process flow.")

    provider = get_provider(config, providers)
    enriched = await provider.enrich_step(flow, task_id, step_description, config)
    added = check_enrichment(flow, enriched, task_id)
    logger.info("Paso %s agregado a la tarea %s", added.id, task_id)
    return enriched


async def generate_final_document(
    flow: ProcessFlow,
    config: AiConfig,
    providers: Optional[Mapping[str, FlowProvider]] = None,
) -> str:
    provider = get_provider(config, providers)
    return await provider.generate_final_document(flow, config)
