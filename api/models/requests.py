"""
Modelos de request/response para la API.

Estos modelos definen la estructura esperada de los requests HTTP,
validando tipos y valores antes de pasarlos al core. Las conversiones
desde/hacia los dataclasses del core viven acá también.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from process_flow_core.config import AiConfig, AzureConfig, GeminiConfig, OllamaConfig
from process_flow_core.domain_models import Step
from process_flow_core.flow_parser import flow_to_dict
from process_flow_core.store import ProcessFlowStore


class AutomationPotentialModel(str, Enum):
    """Potencial de automatización de un paso."""

    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"
    NONE = "None"


class ReorderKindModel(str, Enum):
    """Qué se reordena: tareas de un sub-proceso o pasos de una tarea."""

    TASK = "task"
    STEP = "step"


# ============================================================
# Requests del flow
# ============================================================

class ChatRequest(BaseModel):
    """Mensaje del usuario para refinar el árbol."""

    message: str = Field(..., min_length=1, description="Mensaje del usuario al analista")


class EnrichStepRequest(BaseModel):
    """Pedido de un paso nuevo al final de una tarea."""

    task_id: str = Field(..., description="ID de la tarea donde se agrega el paso")
    description: str = Field(..., min_length=1, description="Descripción libre del paso nuevo")


class StepUpdateRequest(BaseModel):
    """
    Edición manual de un paso.

    El id viaja en el path (`PUT /flow/steps/{step_id}`), no en el body.
    """

    name: str = Field(..., description="Título corto del paso")
    description: str = Field(default="", description="Descripción del paso")
    automation_potential: AutomationPotentialModel = Field(..., description="High|Medium|Low|None")
    automation_suggestion: Optional[str] = Field(default=None, description="Sugerencia de automatización")
    responsible_role: Optional[str] = Field(default=None, description="Rol responsable")

    def to_step(self, step_id: str) -> Step:
        return Step(
            id=step_id,
            name=self.name,
            description=self.description,
            automation_potential=self.automation_potential.value,
            automation_suggestion=self.automation_suggestion,
            responsible_role=self.responsible_role,
        )


class ReorderRequest(BaseModel):
    """Movimiento de un hermano dentro del mismo padre."""

    kind: ReorderKindModel = Field(..., description="task | step")
    source_parent_id: str = Field(..., description="ID del padre de origen")
    source_index: int = Field(..., ge=0, description="Índice de origen")
    dest_parent_id: str = Field(..., description="ID del padre de destino (debe ser el mismo)")
    dest_index: int = Field(..., ge=0, description="Índice de destino")


# ============================================================
# Responses del flow
# ============================================================

class ChatMessageModel(BaseModel):
    role: Literal["user", "model"]
    content: str


class LoadingStatesModel(BaseModel):
    flow: bool = False
    chat: bool = False
    doc: bool = False


class FlowStateResponse(BaseModel):
    """
    Snapshot del estado del store.

    `flow` es el árbol serializado con los mismos nombres de campo del
    contrato JSON (`process_name`, `sub_processes`, ...).
    """

    flow: Optional[dict] = Field(default=None, description="Árbol actual (o null)")
    transcript: List[ChatMessageModel] = Field(default_factory=list, description="Transcript del chat")
    loading: LoadingStatesModel = Field(default_factory=LoadingStatesModel)
    document: Optional[str] = Field(default=None, description="Último documento SOP generado (Markdown)")
    ok: bool = Field(default=True, description="Resultado de la última operación")

    @classmethod
    def from_store(cls, store: ProcessFlowStore, ok: bool = True) -> "FlowStateResponse":
        loading = store.loading
        return cls(
            flow=flow_to_dict(store.flow) if store.flow is not None else None,
            transcript=[ChatMessageModel(role=m.role, content=m.content) for m in store.transcript],
            loading=LoadingStatesModel(flow=loading.flow, chat=loading.chat, doc=loading.doc),
            document=store.document,
            ok=ok,
        )


class FilterResponse(BaseModel):
    """Árbol filtrado + roles disponibles para la barra de filtros."""

    flow: Optional[dict] = Field(default=None, description="Árbol podado (o null si no hay flow)")
    roles: List[str] = Field(default_factory=list, description="Roles responsables distintos")


class OutlineResponse(BaseModel):
    markdown: str = Field(..., description="Esquema Markdown del árbol")


# ============================================================
# Settings
# ============================================================

class GeminiSettingsModel(BaseModel):
    api_key: str = ""
    model: str = "gemini-2.5-flash"


class AzureSettingsModel(BaseModel):
    endpoint: str = ""
    deployment: str = ""
    api_key: str = ""
    api_version: str = "2024-02-01"


class OllamaSettingsModel(BaseModel):
    base_url: str = "http://localhost:11434"
    model: str = ""


class SettingsModel(BaseModel):
    """
    Configuración de IA editable desde la UI.

    Al leer, las API keys se devuelven enmascaradas. Al escribir, una key
    enmascarada (o vacía) conserva el valor guardado.
    """

    provider: Literal["gemini", "azure", "ollama"] = Field(default="gemini", description="Proveedor activo")
    gemini: GeminiSettingsModel = Field(default_factory=GeminiSettingsModel)
    azure: AzureSettingsModel = Field(default_factory=AzureSettingsModel)
    ollama: OllamaSettingsModel = Field(default_factory=OllamaSettingsModel)
    request_timeout_s: float = Field(default=120.0, gt=0, description="Timeout por llamada al LLM (segundos)")

    @classmethod
    def from_config(cls, config: AiConfig, mask_keys: bool = True) -> "SettingsModel":
        def _key(value: str) -> str:
            return mask_secret(value) if mask_keys else value

        return cls(
            provider=config.provider if config.provider in ("gemini", "azure", "ollama") else "gemini",
            gemini=GeminiSettingsModel(api_key=_key(config.gemini.api_key), model=config.gemini.model),
            azure=AzureSettingsModel(
                endpoint=config.azure.endpoint,
                deployment=config.azure.deployment,
                api_key=_key(config.azure.api_key),
                api_version=config.azure.api_version,
            ),
            ollama=OllamaSettingsModel(base_url=config.ollama.base_url, model=config.ollama.model),
            request_timeout_s=config.request_timeout_s,
        )

    def to_config(self, current: AiConfig) -> AiConfig:
        def _key(value: str, saved: str) -> str:
            return saved if not value or is_masked(value) else value

        return AiConfig(
            provider=self.provider,
            gemini=GeminiConfig(
                api_key=_key(self.gemini.api_key, current.gemini.api_key),
                model=self.gemini.model,
            ),
            azure=AzureConfig(
                endpoint=self.azure.endpoint,
                deployment=self.azure.deployment,
                api_key=_key(self.azure.api_key, current.azure.api_key),
                api_version=self.azure.api_version,
            ),
            ollama=OllamaConfig(base_url=self.ollama.base_url, model=self.ollama.model),
            request_timeout_s=self.request_timeout_s,
        )


MASK = "****"


def mask_secret(value: str) -> str:
    """`"sk-abcdef1234"` -> `"****1234"`; vacío queda vacío."""
    if not value:
        return ""
    return MASK + value[-4:] if len(value) > 4 else MASK


def is_masked(value: str) -> bool:
    return value.startswith(MASK)
