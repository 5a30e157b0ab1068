"""
process_flow_core.store
=======================

Estado de la aplicación: el árbol actual, el transcript del chat, el último
documento generado y los flags de carga.

Operaciones respaldadas por el LLM (`analyze`, `refine`, `enrich_step`,
`render_document`) siguen siempre la misma secuencia:

1. marcar el flag de carga correspondiente,
2. llamar al router (`ai_service`),
3. si sale bien, reemplazar el estado y agregar un mensaje al transcript,
4. si falla, agregar un mensaje del modelo con el texto del error SIN tocar
   el árbol,
5. limpiar el flag en `finally`.

Ningún error de estas operaciones se propaga al llamador: devuelven `True`
o `False` según el resultado y el detalle queda en el transcript.

Las operaciones locales (`update_step`, `reorder`) no pasan por el LLM y
son totales: ids inexistentes o movimientos entre padres distintos se
ignoran.

Concurrencia: un solo event loop y last-write-wins. Si dos operaciones
corren a la vez, la que termina última pisa el árbol de la otra.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import replace
from typing import Iterator, List, Mapping, Optional

from . import ai_service
from .config import AiConfig
from .core.abstractions import FlowProvider
from .domain_models import ChatMessage, LoadingStates, ProcessFlow, SourceDocument, Step
from .exceptions import DomainError, ProcessFlowError
from .flow_ops import find_step, reorder as reorder_flow, update_step as update_flow_step, ReorderKind

logger = logging.getLogger(__name__)

ANALYZED_MESSAGE = (
    "I've analyzed the document and created an initial process flow. You can now review it "
    "and use this chat to make refinements or ask me to fill in any gaps."
)
STEP_ADDED_MESSAGE = "I've added the new step you requested to the process flow."
DOCUMENT_READY_MESSAGE = "I've generated the final SOP document from the current process flow."
NOT_INITIALIZED = "Cannot refine flow, process is not initialized."


class ProcessFlowStore:
    """
    Dueño exclusivo del árbol y del transcript.

    Args:
        providers: Tabla de despacho opcional que se le pasa al router
            (por defecto `ai_service.PROVIDERS`).
    """

    def __init__(self, providers: Optional[Mapping[str, FlowProvider]] = None) -> None:
        self._providers = providers
        self._flow: Optional[ProcessFlow] = None
        self._transcript: List[ChatMessage] = []
        self._document: Optional[str] = None
        self._loading = LoadingStates()

    # ------------------------------------------------------------
    # Vistas de solo lectura
    # ------------------------------------------------------------

    @property
    def flow(self) -> Optional[ProcessFlow]:
        """Árbol vigente. Sus nodos son `frozen`; sus listas no deben editarse."""
        return self._flow

    @property
    def transcript(self) -> List[ChatMessage]:
        return list(self._transcript)

    @property
    def document(self) -> Optional[str]:
        return self._document

    @property
    def loading(self) -> LoadingStates:
        return replace(self._loading)

    # ------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------

    @contextmanager
    def _loading_flag(self, key: str) -> Iterator[None]:
        setattr(self._loading, key, True)
        try:
            yield
        finally:
            setattr(self._loading, key, False)

    def _say(self, content: str) -> None:
        self._transcript.append(ChatMessage(role="model", content=content))

    def _report_failure(self, operation: str, exc: Exception, message: str) -> None:
        if isinstance(exc, ProcessFlowError):
            logger.warning("Falló %s: %s", operation, exc)
        else:
            logger.exception("Error inesperado en %s", operation)
        self._say(f"{message}: {exc}")

    # ------------------------------------------------------------
    # Operaciones con LLM
    # ------------------------------------------------------------

    async def analyze(self, source: SourceDocument, config: AiConfig) -> bool:
        """Analiza un documento nuevo. Borra árbol, transcript y documento previos."""
        with self._loading_flag("flow"):
            self._flow = None
            self._transcript = []
            self._document = None
            try:
                flow = await ai_service.generate_initial_flow(source, config, self._providers)
            except Exception as e:
                self._report_failure(
                    "el análisis inicial", e,
                    "I'm sorry, I encountered an error while analyzing the document",
                )
                return False

            self._flow = flow
            self._say(ANALYZED_MESSAGE)
            return True

    async def refine(self, message: str, config: AiConfig) -> bool:
        """Agrega el mensaje del usuario y pide al modelo que refine el árbol."""
        self._transcript.append(ChatMessage(role="user", content=message))
        with self._loading_flag("chat"):
            try:
                if self._flow is None:
                    raise DomainError(NOT_INITIALIZED)
                result = await ai_service.refine_flow_with_chat(
                    list(self._transcript), self._flow, config, self._providers
                )
            except Exception as e:
                self._report_failure("el refinamiento", e, "Sorry, I had trouble processing that")
                return False

            self._flow = result.updated_flow
            self._say(result.ai_response)
            return True

    async def enrich_step(self, task_id: str, step_description: str, config: AiConfig) -> bool:
        """Pide al modelo un paso nuevo al final de la tarea `task_id`."""
        with self._loading_flag("chat"):
            try:
                if self._flow is None:
                    raise DomainError("Cannot add a step, process is not initialized.")
                flow = await ai_service.enrich_step(
                    self._flow, task_id, step_description, config, self._providers
                )
            except Exception as e:
                self._report_failure("el enriquecimiento", e, "I'm sorry, I had trouble adding that step")
                return False

            self._flow = flow
            self._say(STEP_ADDED_MESSAGE)
            return True

    async def render_document(self, config: AiConfig) -> bool:
        """Genera el documento SOP final (Markdown) a partir del árbol actual."""
        with self._loading_flag("doc"):
            try:
                if self._flow is None:
                    raise DomainError("Cannot generate a document, process is not initialized.")
                document = await ai_service.generate_final_document(self._flow, config, self._providers)
            except Exception as e:
                self._report_failure(
                    "la generación del documento", e,
                    "An error occurred while generating the final document",
                )
                return False

            self._document = document
            self._say(DOCUMENT_READY_MESSAGE)
            return True

    # ------------------------------------------------------------
    # Operaciones locales (totales)
    # ------------------------------------------------------------

    def update_step(self, step: Step) -> bool:
        """Reemplaza el paso con el mismo id. Id desconocido -> sin cambios."""
        if self._flow is None or find_step(self._flow, step.id) is None:
            return False
        self._flow = update_flow_step(self._flow, step)
        self._say(f'I\'ve updated the step: "{step.name}". You can review the changes in the visualizer.')
        return True

    def reorder(
        self,
        source_parent_id: str,
        source_index: int,
        dest_parent_id: str,
        dest_index: int,
        kind: ReorderKind,
    ) -> bool:
        """Mueve un hermano dentro del mismo padre. Devuelve si hubo cambio."""
        if self._flow is None:
            return False
        new_flow = reorder_flow(self._flow, source_parent_id, source_index, dest_parent_id, dest_index, kind)
        changed = new_flow is not self._flow
        self._flow = new_flow
        return changed

    def close_document(self) -> None:
        self._document = None

    def reset(self) -> None:
        self._flow = None
        self._transcript = []
        self._document = None
        self._loading = LoadingStates()
