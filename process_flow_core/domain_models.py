from __future__ import annotations

"""
process_flow_core.domain_models
===============================

Modelos de dominio (dataclasses) usados a lo largo del core.

Objetivo
--------
Este módulo define las estructuras de datos "neutras" del sistema:

- El árbol de proceso (`ProcessFlow` → `SubProcess` → `Task` → `Step`)
- La conversación de refinamiento (`ChatMessage`, `ChatRefinement`)
- La fuente a analizar (`SourceDocument`, `FileAttachment`)
- Los flags de carga del store (`LoadingStates`)

Principios de diseño
--------------------
- Dataclasses sin lógica pesada: este módulo NO habla con proveedores, HTTP ni IO.
- Inmutabilidad por reemplazo: los nodos del árbol son `frozen` y ninguna
  operación del core edita un árbol en el lugar; siempre se devuelve un valor
  nuevo (`dataclasses.replace`). Las listas siguen siendo `List` para que el
  JSON de ida y vuelta sea directo, así que quien recibe un árbol no debe
  editarlas.
- El formato de cable (JSON) vive en `flow_parser`, no acá.
"""

from dataclasses import dataclass, field
from typing import List, Literal, Optional


# ============================================================
# Tipos base
# ============================================================

AutomationPotential = Literal["High", "Medium", "Low", "None"]
"""
Evaluación cerrada de qué tan automatizable es un paso.

Cualquier otro valor devuelto por el modelo es una violación de contrato y se
trata como respuesta mal formada (ver `flow_parser`).
"""

ChatRole = Literal["user", "model"]


# ============================================================
# Árbol de proceso
# ============================================================

@dataclass(frozen=True)
class Step:
    """
    Unidad hoja de trabajo. Lleva la evaluación de automatización.

    Attributes:
        id:
            Identificador único en todo el árbol (ej. "step_1_1_1").
            Una vez asignado no cambia entre rondas de refinamiento.
        automation_suggestion:
            Sugerencia concreta cuando el potencial es High o Medium.
        responsible_role:
            Rol o puesto responsable (ej. "HR Coordinator").
    """
    id: str
    name: str
    description: str
    automation_potential: AutomationPotential
    automation_suggestion: Optional[str] = None
    responsible_role: Optional[str] = None


@dataclass(frozen=True)
class Task:
    """Unidad discreta de trabajo dentro de un sub-proceso."""
    id: str
    name: str
    description: str
    steps: List[Step] = field(default_factory=list)


@dataclass(frozen=True)
class SubProcess:
    """Fase del proceso general."""
    id: str
    name: str
    description: str
    tasks: List[Task] = field(default_factory=list)


@dataclass(frozen=True)
class ProcessFlow:
    """
    Raíz del árbol. Hay exactamente uno por sesión.

    Se crea con el análisis inicial, se reemplaza completo con cada
    refinamiento o enriquecimiento exitoso y se limpia al iniciar un análisis nuevo.
    """
    process_name: str
    description: str
    version: str = ""
    sub_processes: List[SubProcess] = field(default_factory=list)


# ============================================================
# Conversación
# ============================================================

@dataclass(frozen=True)
class ChatMessage:
    """Mensaje del transcript. Nunca se edita: solo se agrega."""
    role: ChatRole
    content: str


@dataclass(frozen=True)
class ChatRefinement:
    """Resultado de un refinamiento: árbol actualizado + respuesta conversacional."""
    updated_flow: ProcessFlow
    ai_response: str


# ============================================================
# Fuente del análisis inicial
# ============================================================

@dataclass(frozen=True)
class FileAttachment:
    """
    Archivo binario adjunto (imagen, PDF, DOC).

    `data` va en base64, tal como lo espera el transporte multi-parte del
    proveedor con salida restringida.
    """
    mime_type: str
    data: str


@dataclass(frozen=True)
class SourceDocument:
    """
    Insumo del análisis inicial: texto pegado, archivo adjunto, o ambos.

    Solo el proveedor con salida restringida acepta `file`; el router lo valida
    antes de cualquier llamada de red.
    """
    text: Optional[str] = None
    file: Optional[FileAttachment] = None

    @property
    def is_empty(self) -> bool:
        return self.file is None and not (self.text or "").strip()


# ============================================================
# Estado de UI
# ============================================================

@dataclass
class LoadingStates:
    """Flags de carga por operación ("flow", "chat", "doc")."""
    flow: bool = False
    chat: bool = False
    doc: bool = False
