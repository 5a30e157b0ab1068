"""
process_flow_core.flow_parser
=============================

Conversión entre el formato de cable (JSON del LLM) y los dataclasses del
dominio.

Responsabilidad
---------------
- `parse_process_flow(data)` / `parse_chat_refinement(data)`:
  validan un dict ya parseado y construyen el modelo tipado.
- `decode_process_flow(raw)` / `decode_chat_refinement(raw)`:
  texto crudo → normalizer → modelo tipado.
- `flow_to_dict(flow)` / `flow_to_json(flow)`:
  modelo tipado → forma de cable (la que describen `schemas`).

Reglas de validación
--------------------
- `id` y `name` son obligatorios y deben ser strings.
- Las listas (`sub_processes`, `tasks`, `steps`) son obligatorias.
- `description` y `version` ausentes se leen como "".
- `automation_potential` debe estar en el enum cerrado.
- Los ids deben ser únicos en todo el árbol.

Cualquier violación es una respuesta mal formada → `ParseError`, con la ruta
del campo problemático (ej. `sub_processes[0].tasks[1].steps[2].id`).
"""

from __future__ import annotations

import json
from collections import Counter
from dataclasses import asdict
from typing import Any, Dict, List, Optional

from .domain_models import ChatRefinement, ProcessFlow, Step, SubProcess, Task
from .exceptions import ParseError
from .normalizer import load_json, parse_json_response
from .schemas import AUTOMATION_POTENTIALS


# ============================================================
# Helpers de validación
# ============================================================

def _require_object(value: Any, path: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise ParseError(f"Malformed response: '{path}' must be an object.")
    return value


def _require_list(obj: Dict[str, Any], key: str, path: str) -> List[Any]:
    value = obj.get(key)
    if not isinstance(value, list):
        raise ParseError(f"Malformed response: '{path}{key}' must be an array.")
    return value


def _require_str(obj: Dict[str, Any], key: str, path: str) -> str:
    value = obj.get(key)
    if not isinstance(value, str):
        raise ParseError(f"Malformed response: '{path}{key}' must be a string.")
    return value


def _optional_str(obj: Dict[str, Any], key: str, path: str, default: Optional[str] = None) -> Optional[str]:
    value = obj.get(key)
    if value is None:
        return default
    if not isinstance(value, str):
        raise ParseError(f"Malformed response: '{path}{key}' must be a string.")
    return value


# ============================================================
# Parsing
# ============================================================

def _parse_step(raw: Any, path: str) -> Step:
    obj = _require_object(raw, path)
    prefix = f"{path}."
    potential = obj.get("automation_potential")
    if potential not in AUTOMATION_POTENTIALS:
        raise ParseError(
            f"Malformed response: '{prefix}automation_potential' must be one of "
            f"{', '.join(AUTOMATION_POTENTIALS)} (got {potential!r})."
        )
    return Step(
        id=_require_str(obj, "id", prefix),
        name=_require_str(obj, "name", prefix),
        description=_optional_str(obj, "description", prefix, default="") or "",
        automation_potential=potential,
        automation_suggestion=_optional_str(obj, "automation_suggestion", prefix),
        responsible_role=_optional_str(obj, "responsible_role", prefix),
    )


def _parse_task(raw: Any, path: str) -> Task:
    obj = _require_object(raw, path)
    prefix = f"{path}."
    return Task(
        id=_require_str(obj, "id", prefix),
        name=_require_str(obj, "name", prefix),
        description=_optional_str(obj, "description", prefix, default="") or "",
        steps=[
            _parse_step(s, f"{prefix}steps[{i}]")
            for i, s in enumerate(_require_list(obj, "steps", prefix))
        ],
    )


def _parse_sub_process(raw: Any, path: str) -> SubProcess:
    obj = _require_object(raw, path)
    prefix = f"{path}."
    return SubProcess(
        id=_require_str(obj, "id", prefix),
        name=_require_str(obj, "name", prefix),
        description=_optional_str(obj, "description", prefix, default="") or "",
        tasks=[
            _parse_task(t, f"{prefix}tasks[{i}]")
            for i, t in enumerate(_require_list(obj, "tasks", prefix))
        ],
    )


def _check_unique_ids(flow: ProcessFlow) -> None:
    ids: List[str] = []
    for sp in flow.sub_processes:
        ids.append(sp.id)
        for task in sp.tasks:
            ids.append(task.id)
            ids.extend(step.id for step in task.steps)
    duplicated = sorted(i for i, n in Counter(ids).items() if n > 1)
    if duplicated:
        raise ParseError(f"Malformed response: duplicated ids in process flow: {', '.join(duplicated)}.")


def parse_process_flow(data: Any) -> ProcessFlow:
    """
    Valida un dict (JSON ya parseado) y devuelve un `ProcessFlow`.

    Raises
    ------
    ParseError
        Si el dict no respeta el esquema del process flow.
    """
    obj = _require_object(data, "$")
    flow = ProcessFlow(
        process_name=_require_str(obj, "process_name", ""),
        description=_optional_str(obj, "description", "", default="") or "",
        version=_optional_str(obj, "version", "", default="") or "",
        sub_processes=[
            _parse_sub_process(sp, f"sub_processes[{i}]")
            for i, sp in enumerate(_require_list(obj, "sub_processes", ""))
        ],
    )
    _check_unique_ids(flow)
    return flow


def parse_chat_refinement(data: Any) -> ChatRefinement:
    """Valida el sobre `{updatedFlow, aiResponse}` de un refinamiento."""
    obj = _require_object(data, "$")
    if "updatedFlow" not in obj:
        raise ParseError("Malformed response: 'updatedFlow' is missing.")
    return ChatRefinement(
        updated_flow=parse_process_flow(obj["updatedFlow"]),
        ai_response=_require_str(obj, "aiResponse", ""),
    )


def _with_raw(exc: ParseError, raw_text: str) -> ParseError:
    if exc.raw_text is None:
        exc.raw_text = raw_text
    return exc


def decode_process_flow(raw_text: str, *, fenced: bool = True) -> ProcessFlow:
    """
    Texto crudo del modelo → `ProcessFlow`.

    `fenced=False` parsea el texto directamente (proveedor con salida
    restringida); `fenced=True` pasa antes por la extracción del normalizer.
    """
    try:
        data = parse_json_response(raw_text) if fenced else load_json(raw_text.strip())
        return parse_process_flow(data)
    except ParseError as e:
        raise _with_raw(e, raw_text)


def decode_chat_refinement(raw_text: str, *, fenced: bool = True) -> ChatRefinement:
    """Texto crudo del modelo → `ChatRefinement`."""
    try:
        data = parse_json_response(raw_text) if fenced else load_json(raw_text.strip())
        return parse_chat_refinement(data)
    except ParseError as e:
        raise _with_raw(e, raw_text)


# ============================================================
# Serialización
# ============================================================

def step_to_dict(step: Step) -> Dict[str, Any]:
    """Los opcionales en None se omiten (forma de cable)."""
    return {k: v for k, v in asdict(step).items() if v is not None}


def flow_to_dict(flow: ProcessFlow) -> Dict[str, Any]:
    return {
        "process_name": flow.process_name,
        "description": flow.description,
        "version": flow.version,
        "sub_processes": [
            {
                "id": sp.id,
                "name": sp.name,
                "description": sp.description,
                "tasks": [
                    {
                        "id": task.id,
                        "name": task.name,
                        "description": task.description,
                        "steps": [step_to_dict(step) for step in task.steps],
                    }
                    for task in sp.tasks
                ],
            }
            for sp in flow.sub_processes
        ],
    }


def flow_to_json(flow: ProcessFlow, indent: Optional[int] = 2) -> str:
    return json.dumps(flow_to_dict(flow), indent=indent, ensure_ascii=False)
