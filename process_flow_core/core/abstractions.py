"""
Abstracciones (Protocols) para los proveedores de LLM.

Los tres backends (Gemini, Azure OpenAI, Ollama) implementan la misma
interfaz de cuatro operaciones. No hay herencia: cada adapter es una clase
independiente que cumple este Protocol, y el router los elige desde una
tabla de despacho (`ai_service.PROVIDERS`).
"""

from __future__ import annotations

from typing import List, Protocol

from ..config import AiConfig
from ..domain_models import ChatMessage, ChatRefinement, ProcessFlow, SourceDocument


class FlowProvider(Protocol):
    """
    Interfaz de un proveedor de LLM.

    Cada operación es asíncrona, hace I/O de red saliente y no guarda estado
    entre llamadas. La configuración llega explícita en cada llamada.

    Attributes:
        name: Identificador del proveedor ("gemini" | "azure" | "ollama").
        supports_file_attachments: Si acepta adjuntos binarios en el análisis inicial.
    """

    name: str
    supports_file_attachments: bool

    async def generate_initial_flow(self, source: SourceDocument, config: AiConfig) -> ProcessFlow:
        """
        Analiza el documento fuente y devuelve el árbol inicial.

        Args:
            source: Texto pegado y/o archivo adjunto.
            config: Configuración de IA resuelta.

        Returns:
            `ProcessFlow` completo y validado.
        """
        ...

    async def refine_flow_with_chat(
        self,
        transcript: List[ChatMessage],
        flow: ProcessFlow,
        config: AiConfig,
    ) -> ChatRefinement:
        """
        Aplica el último mensaje del usuario sobre el árbol actual.

        Returns:
            `ChatRefinement` con el árbol completo actualizado y la respuesta
            conversacional del modelo.
        """
        ...

    async def enrich_step(
        self,
        flow: ProcessFlow,
        task_id: str,
        step_description: str,
        config: AiConfig,
    ) -> ProcessFlow:
        """
        Agrega un paso nuevo (inferido desde `step_description`) al final de
        la tarea `task_id` y devuelve el árbol completo.
        """
        ...

    async def generate_final_document(self, flow: ProcessFlow, config: AiConfig) -> str:
        """Genera el documento SOP final en Markdown (prosa libre, sin esquema)."""
        ...
