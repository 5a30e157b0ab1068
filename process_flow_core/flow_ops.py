"""
process_flow_core.flow_ops
==========================

Operaciones locales sobre el árbol (sin LLM).

Todas son funciones puras: reciben un `ProcessFlow` y devuelven uno nuevo
(o el mismo objeto si no hubo cambios). Nunca editan la entrada.

Las de mutación (`update_step`, `reorder`) son totales: ids inexistentes,
índices fuera de rango o movimientos entre padres distintos se ignoran en
silencio. Representan carreras de UI, no violaciones de dominio.

Los `check_*` validan que un árbol devuelto por el modelo respete los ids
del árbol enviado; ahí sí una violación es `ParseError`.
"""

from __future__ import annotations

import copy
from dataclasses import replace
from typing import Dict, Iterable, Iterator, List, Literal, Optional, Tuple

from .domain_models import ProcessFlow, Step, SubProcess, Task
from .exceptions import ParseError

ReorderKind = Literal["task", "step"]


# ============================================================
# Lecturas
# ============================================================

def iter_steps(flow: ProcessFlow) -> Iterator[Tuple[SubProcess, Task, Step]]:
    for sp in flow.sub_processes:
        for task in sp.tasks:
            for step in task.steps:
                yield sp, task, step


def collect_ids(flow: ProcessFlow) -> List[str]:
    """Todos los ids del árbol, en orden de visualización."""
    ids: List[str] = []
    for sp in flow.sub_processes:
        ids.append(sp.id)
        for task in sp.tasks:
            ids.append(task.id)
            ids.extend(step.id for step in task.steps)
    return ids


def find_task(flow: ProcessFlow, task_id: str) -> Optional[Task]:
    for sp in flow.sub_processes:
        for task in sp.tasks:
            if task.id == task_id:
                return task
    return None


def find_step(flow: ProcessFlow, step_id: str) -> Optional[Step]:
    for _, _, step in iter_steps(flow):
        if step.id == step_id:
            return step
    return None


def list_roles(flow: ProcessFlow) -> List[str]:
    """Roles responsables distintos, ordenados (opciones del filtro por rol)."""
    roles = {step.responsible_role for _, _, step in iter_steps(flow) if step.responsible_role}
    return sorted(roles)


# ============================================================
# Mutaciones (devuelven un árbol nuevo)
# ============================================================

def update_step(flow: ProcessFlow, updated: Step) -> ProcessFlow:
    """
    Reemplaza el paso con el mismo id, esté donde esté.

    Si el id no existe devuelve `flow` sin cambios (mismo objeto).
    """
    if find_step(flow, updated.id) is None:
        return flow

    return replace(
        flow,
        sub_processes=[
            replace(
                sp,
                tasks=[
                    replace(
                        task,
                        steps=[updated if step.id == updated.id else step for step in task.steps],
                    )
                    for task in sp.tasks
                ],
            )
            for sp in flow.sub_processes
        ],
    )


def reorder(
    flow: ProcessFlow,
    source_parent_id: str,
    source_index: int,
    dest_parent_id: str,
    dest_index: int,
    kind: ReorderKind,
) -> ProcessFlow:
    """
    Mueve un elemento entre hermanos del mismo padre.

    - kind="task": el padre es un sub-proceso y se reordenan sus `tasks`.
    - kind="step": el padre es una tarea y se reordenan sus `steps`.

    Mover entre padres distintos NO está soportado: se devuelve `flow` sin
    cambios. Lo mismo si el padre no existe o algún índice está fuera de rango.

    Implementación: copia profunda del árbol y pop/insert sobre la lista
    destino (los árboles son chicos: documentos, no datasets).
    """
    if source_parent_id != dest_parent_id:
        return flow

    new_flow = copy.deepcopy(flow)
    siblings = _sibling_list(new_flow, source_parent_id, kind)
    if siblings is None:
        return flow
    if not (0 <= source_index < len(siblings)) or not (0 <= dest_index < len(siblings)):
        return flow
    if source_index == dest_index:
        return flow

    moved = siblings.pop(source_index)
    siblings.insert(dest_index, moved)
    return new_flow


def _sibling_list(flow: ProcessFlow, parent_id: str, kind: ReorderKind) -> Optional[list]:
    if kind == "task":
        for sp in flow.sub_processes:
            if sp.id == parent_id:
                return sp.tasks
        return None
    if kind == "step":
        task = find_task(flow, parent_id)
        return task.steps if task is not None else None
    return None


# ============================================================
# Filtro (barra de búsqueda)
# ============================================================

def _step_matches(step: Step, query: str, role: Optional[str], potentials: set[str]) -> bool:
    if role and step.responsible_role != role:
        return False
    if potentials and step.automation_potential not in potentials:
        return False
    if query:
        haystack = " ".join(
            part for part in (
                step.name,
                step.description,
                step.responsible_role or "",
                step.automation_suggestion or "",
            )
        ).lower()
        if query not in haystack:
            return False
    return True


def filter_flow(
    flow: ProcessFlow,
    query: str = "",
    role: Optional[str] = None,
    potentials: Iterable[str] = (),
) -> ProcessFlow:
    """
    Devuelve una copia podada con solo los pasos que cumplen los filtros.

    - `query`: búsqueda de texto (sin distinguir mayúsculas) sobre nombre,
      descripción, rol y sugerencia de automatización del paso.
    - `role`: rol responsable exacto ("all" o vacío = sin filtro).
    - `potentials`: potenciales de automatización admitidos (vacío = todos).

    Tareas y sub-procesos que quedan sin pasos se descartan.
    """
    q = (query or "").strip().lower()
    r = None if role in (None, "", "all") else role
    wanted = set(potentials or ())

    if not q and r is None and not wanted:
        return flow

    sub_processes: List[SubProcess] = []
    for sp in flow.sub_processes:
        tasks: List[Task] = []
        for task in sp.tasks:
            steps = [s for s in task.steps if _step_matches(s, q, r, wanted)]
            if steps:
                tasks.append(replace(task, steps=steps))
        if tasks:
            sub_processes.append(replace(sp, tasks=tasks))

    return replace(flow, sub_processes=sub_processes)


# ============================================================
# Contratos de ids sobre respuestas del modelo
# ============================================================

def _ids_by_kind(flow: ProcessFlow) -> Dict[str, str]:
    kinds: Dict[str, str] = {}
    for sp in flow.sub_processes:
        kinds[sp.id] = "sub_process"
        for task in sp.tasks:
            kinds[task.id] = "task"
            for step in task.steps:
                kinds[step.id] = "step"
    return kinds


def check_enrichment(before: ProcessFlow, after: ProcessFlow, task_id: str) -> Step:
    """
    Valida que `after` sea `before` más exactamente un paso nuevo al final de
    `task_id`, con un id que no existía. Devuelve ese paso.

    Cualquier otra forma (ids renombrados o perdidos, ningún paso nuevo, pasos
    de más, paso insertado en el medio) -> `ParseError`.
    """
    old_task = find_task(before, task_id)
    new_task = find_task(after, task_id)
    if old_task is None or new_task is None:
        raise ParseError(f"Malformed response: task '{task_id}' is missing from the enriched flow.")

    old_ids = [s.id for s in old_task.steps]
    new_ids = [s.id for s in new_task.steps]
    if len(new_ids) != len(old_ids) + 1 or new_ids[:-1] != old_ids:
        raise ParseError(
            f"Malformed response: task '{task_id}' must keep its steps and gain exactly one trailing step."
        )

    added = new_task.steps[-1]
    before_ids = set(collect_ids(before))
    if added.id in before_ids:
        raise ParseError(f"Malformed response: new step id '{added.id}' is already in use.")

    missing = sorted(before_ids - set(collect_ids(after)))
    if missing:
        raise ParseError(f"Malformed response: enrichment dropped or renamed ids: {', '.join(missing)}.")

    extra = sorted(set(collect_ids(after)) - before_ids - {added.id})
    if extra:
        raise ParseError(f"Malformed response: enrichment added unexpected ids: {', '.join(extra)}.")
    return added


def check_refinement(before: ProcessFlow, after: ProcessFlow) -> None:
    """
    Un refinamiento puede agregar o quitar nodos, pero un id que sobrevive
    sigue nombrando el mismo tipo de nodo (sub-proceso, tarea o paso).
    """
    old = _ids_by_kind(before)
    moved = sorted(
        node_id for node_id, kind in _ids_by_kind(after).items()
        if node_id in old and old[node_id] != kind
    )
    if moved:
        raise ParseError(f"Malformed response: refinement reused existing ids for other nodes: {', '.join(moved)}.")
