"""
process_flow_core.schemas
=========================

Fuente única de verdad sobre la forma de un process flow y del sobre de
refinamiento por chat.

Se expresa dos veces, pero se escribe UNA sola:

1) Forma "structured output" (`PROCESS_FLOW_SCHEMA`, `CHAT_REFINEMENT_SCHEMA`)
   - tags de tipo en mayúscula (OBJECT / ARRAY / STRING), como los espera
     el proveedor con decodificación restringida (`response_schema`);
   - incluye `propertyOrdering`, metadata propia de ese proveedor.

2) Forma "prompt" (`PROCESS_FLOW_PROMPT_SCHEMA`, `CHAT_REFINEMENT_PROMPT_SCHEMA`)
   - JSON-schema plano para embeber como texto en el prompt de proveedores
     sin decodificación restringida;
   - se DERIVA de la forma 1 con `to_prompt_schema()`, así las dos nunca
     divergen (mismos campos, tipos, enums y `required`).

Las descripciones se conservan en ambas: son las que guían al modelo.
"""

from __future__ import annotations

from typing import Any, Dict, List

AUTOMATION_POTENTIALS = ("High", "Medium", "Low", "None")

# Claves que solo entiende el proveedor con salida restringida.
_INTERNAL_KEYS = {"propertyOrdering"}


# ============================================================
# Helpers de construcción
# ============================================================

def _string(description: str, enum: List[str] | None = None) -> Dict[str, Any]:
    node: Dict[str, Any] = {"type": "STRING", "description": description}
    if enum:
        node["enum"] = list(enum)
    return node


def _array(description: str, items: Dict[str, Any]) -> Dict[str, Any]:
    return {"type": "ARRAY", "description": description, "items": items}


def _object(properties: Dict[str, Dict[str, Any]], required: List[str]) -> Dict[str, Any]:
    return {
        "type": "OBJECT",
        "properties": properties,
        "required": list(required),
        "propertyOrdering": list(properties.keys()),
    }


# ============================================================
# Forma structured output
# ============================================================

STEP_SCHEMA = _object(
    {
        "id": _string("A unique identifier for the step (e.g., 'step_1_1_1')."),
        "name": _string("A short name for the step, like a heading."),
        "description": _string("A detailed description of the action to be taken in this step."),
        "automation_potential": _string(
            "An assessment of how easily this step could be automated.",
            enum=list(AUTOMATION_POTENTIALS),
        ),
        "automation_suggestion": _string(
            "If automation potential is High or Medium, a brief suggestion on how "
            "(e.g., 'Automated email notification', 'RPA bot for data entry')."
        ),
        "responsible_role": _string(
            "The job title or role responsible for this step (e.g., 'HR Coordinator', 'IT Technician')."
        ),
    },
    required=["id", "name", "description", "automation_potential", "responsible_role"],
)

TASK_SCHEMA = _object(
    {
        "id": _string("A unique identifier for the task (e.g., 'task_1_1')."),
        "name": _string("The name of the task."),
        "description": _string("A brief description of the task."),
        "steps": _array("An array of individual steps to complete the task.", STEP_SCHEMA),
    },
    required=["id", "name", "description", "steps"],
)

SUB_PROCESS_SCHEMA = _object(
    {
        "id": _string("A unique identifier for the sub-process (e.g., 'sub_1')."),
        "name": _string("The name of this sub-process or phase."),
        "description": _string("A brief description of this sub-process."),
        "tasks": _array("An array of distinct tasks within this sub-process.", TASK_SCHEMA),
    },
    required=["id", "name", "description", "tasks"],
)

PROCESS_FLOW_SCHEMA = _object(
    {
        "process_name": _string("The overall name of the business process."),
        "description": _string("A brief, one-sentence summary of the process's objective."),
        "version": _string("The version number of the document, if available."),
        "sub_processes": _array(
            "An array of the main phases or sub-processes within the overall process.",
            SUB_PROCESS_SCHEMA,
        ),
    },
    required=["process_name", "description", "sub_processes"],
)

CHAT_REFINEMENT_SCHEMA = _object(
    {
        "updatedFlow": PROCESS_FLOW_SCHEMA,
        "aiResponse": _string(
            "A conversational, friendly response to the user explaining the changes made "
            "to the flow or asking a clarifying question."
        ),
    },
    required=["updatedFlow", "aiResponse"],
)


# ============================================================
# Derivación a forma "prompt"
# ============================================================

def to_prompt_schema(schema: Any) -> Any:
    """
    Convierte la forma structured output en JSON-schema embebible en texto.

    - `type` se pasa a minúscula ("OBJECT" → "object").
    - Se eliminan claves internas del proveedor (`propertyOrdering`).
    - Todo lo demás (descripciones, enums, required) se copia tal cual.

    Es una función pura: devuelve estructuras nuevas y no toca la entrada.
    """
    if isinstance(schema, list):
        return [to_prompt_schema(item) for item in schema]
    if not isinstance(schema, dict):
        return schema

    out: Dict[str, Any] = {}
    for key, value in schema.items():
        if key in _INTERNAL_KEYS:
            continue
        if key == "type" and isinstance(value, str):
            out[key] = value.lower()
        elif key == "properties" and isinstance(value, dict):
            out[key] = {name: to_prompt_schema(prop) for name, prop in value.items()}
        else:
            out[key] = to_prompt_schema(value)
    return out


PROCESS_FLOW_PROMPT_SCHEMA = to_prompt_schema(PROCESS_FLOW_SCHEMA)
CHAT_REFINEMENT_PROMPT_SCHEMA = to_prompt_schema(CHAT_REFINEMENT_SCHEMA)
