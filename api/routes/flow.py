"""
Endpoints del process flow.

Este router maneja:
- GET    /api/v1/flow: Snapshot del estado (árbol, transcript, flags, documento)
- POST   /api/v1/flow/analyze: Analizar un documento (texto y/o archivo)
- POST   /api/v1/flow/sample: Analizar el SOP de ejemplo
- POST   /api/v1/flow/chat: Refinar el árbol conversando
- POST   /api/v1/flow/steps: Agregar un paso inferido por el modelo
- PUT    /api/v1/flow/steps/{step_id}: Edición manual de un paso
- POST   /api/v1/flow/reorder: Reordenar tareas o pasos dentro del mismo padre
- POST   /api/v1/flow/document: Generar el documento SOP final
- DELETE /api/v1/flow/document: Cerrar el documento generado
- GET    /api/v1/flow/outline: Esquema Markdown local (sin LLM)
- GET    /api/v1/flow/filter: Árbol filtrado + roles disponibles

Las operaciones con LLM responden siempre 200: un error del proveedor queda
como mensaje del modelo en el transcript y `ok=false`.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile

from process_flow_core.config import AiConfig
from process_flow_core.domain_models import SourceDocument
from process_flow_core.exceptions import DomainError
from process_flow_core.flow_ops import filter_flow, find_step, list_roles
from process_flow_core.flow_parser import flow_to_dict
from process_flow_core.ingest import source_from_upload
from process_flow_core.renderer import render_flow_markdown
from process_flow_core.samples import SAMPLE_SOP
from process_flow_core.store import ProcessFlowStore

from ..dependencies import get_ai_config, get_store
from ..models.requests import (
    AutomationPotentialModel,
    ChatRequest,
    EnrichStepRequest,
    FilterResponse,
    FlowStateResponse,
    OutlineResponse,
    ReorderRequest,
    StepUpdateRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/flow", tags=["flow"])


@router.get("", response_model=FlowStateResponse)
async def get_flow_state(store: ProcessFlowStore = Depends(get_store)):
    """Devuelve el estado actual del store."""
    return FlowStateResponse.from_store(store)


@router.post("/analyze", response_model=FlowStateResponse)
async def analyze_document(
    text: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    store: ProcessFlowStore = Depends(get_store),
    config: AiConfig = Depends(get_ai_config),
):
    """
    Analiza un documento nuevo y reemplaza el árbol actual.

    Args:
        text: Texto pegado del procedimiento (opcional)
        file: Archivo subido (.txt, .md, .pdf, .docx, imagen) (opcional)

    Returns:
        FlowStateResponse con el árbol inicial (o el error en el transcript)
    """
    attachment = None
    pasted = text
    if file is not None and file.filename:
        data = await file.read()
        try:
            uploaded = source_from_upload(file.filename, file.content_type, data)
        except DomainError as e:
            raise HTTPException(status_code=400, detail=str(e))
        # Un archivo de texto se suma al texto pegado
        if uploaded.text is not None:
            pasted = "\n\n".join(t for t in (text, uploaded.text) if t)
        attachment = uploaded.file

    source = SourceDocument(text=pasted, file=attachment)
    if source.is_empty:
        raise HTTPException(status_code=400, detail="Se requiere texto o un archivo para analizar")

    ok = await store.analyze(source, config)
    return FlowStateResponse.from_store(store, ok=ok)


@router.post("/sample", response_model=FlowStateResponse)
async def analyze_sample(
    store: ProcessFlowStore = Depends(get_store),
    config: AiConfig = Depends(get_ai_config),
):
    """Analiza el SOP de ejemplo (onboarding de empleados)."""
    ok = await store.analyze(SourceDocument(text=SAMPLE_SOP), config)
    return FlowStateResponse.from_store(store, ok=ok)


@router.post("/chat", response_model=FlowStateResponse)
async def send_chat_message(
    request: ChatRequest,
    store: ProcessFlowStore = Depends(get_store),
    config: AiConfig = Depends(get_ai_config),
):
    """Refina el árbol con el mensaje del usuario."""
    ok = await store.refine(request.message, config)
    return FlowStateResponse.from_store(store, ok=ok)


@router.post("/steps", response_model=FlowStateResponse)
async def add_step(
    request: EnrichStepRequest,
    store: ProcessFlowStore = Depends(get_store),
    config: AiConfig = Depends(get_ai_config),
):
    """Agrega un paso (inferido por el modelo) al final de la tarea indicada."""
    ok = await store.enrich_step(request.task_id, request.description, config)
    return FlowStateResponse.from_store(store, ok=ok)


@router.put("/steps/{step_id}", response_model=FlowStateResponse)
async def update_step(
    step_id: str,
    request: StepUpdateRequest,
    store: ProcessFlowStore = Depends(get_store),
):
    """
    Edita un paso a mano (sin LLM).

    Raises:
        HTTPException 404: si no hay flow o el paso no existe
    """
    if store.flow is None or find_step(store.flow, step_id) is None:
        raise HTTPException(status_code=404, detail=f"Paso {step_id} no encontrado")

    ok = store.update_step(request.to_step(step_id))
    return FlowStateResponse.from_store(store, ok=ok)


@router.post("/reorder", response_model=FlowStateResponse)
async def reorder(
    request: ReorderRequest,
    store: ProcessFlowStore = Depends(get_store),
):
    """
    Reordena tareas o pasos dentro del mismo padre.

    Un movimiento entre padres distintos o fuera de rango se ignora
    (`ok=false`, árbol sin cambios).
    """
    ok = store.reorder(
        request.source_parent_id,
        request.source_index,
        request.dest_parent_id,
        request.dest_index,
        request.kind.value,
    )
    return FlowStateResponse.from_store(store, ok=ok)


@router.post("/document", response_model=FlowStateResponse)
async def generate_document(
    store: ProcessFlowStore = Depends(get_store),
    config: AiConfig = Depends(get_ai_config),
):
    """Genera el documento SOP final en Markdown."""
    ok = await store.render_document(config)
    return FlowStateResponse.from_store(store, ok=ok)


@router.delete("/document", response_model=FlowStateResponse)
async def close_document(store: ProcessFlowStore = Depends(get_store)):
    """Descarta el documento generado."""
    store.close_document()
    return FlowStateResponse.from_store(store)


@router.get("/outline", response_model=OutlineResponse)
async def get_outline(store: ProcessFlowStore = Depends(get_store)):
    """Esquema Markdown del árbol actual (render local)."""
    if store.flow is None:
        raise HTTPException(status_code=404, detail="Todavía no hay un process flow")
    return OutlineResponse(markdown=render_flow_markdown(store.flow))


@router.get("/filter", response_model=FilterResponse)
async def get_filtered_flow(
    query: str = Query("", description="Texto a buscar en los pasos"),
    role: Optional[str] = Query(None, description="Rol responsable ('all' = sin filtro)"),
    potential: List[AutomationPotentialModel] = Query(default=[], description="Potenciales admitidos"),
    store: ProcessFlowStore = Depends(get_store),
):
    """Devuelve el árbol podado según los filtros y los roles disponibles."""
    if store.flow is None:
        return FilterResponse(flow=None, roles=[])

    filtered = filter_flow(store.flow, query=query, role=role, potentials=[p.value for p in potential])
    return FilterResponse(flow=flow_to_dict(filtered), roles=list_roles(store.flow))
