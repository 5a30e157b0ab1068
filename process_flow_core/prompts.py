# process_flow_core/prompts.py

"""
Prompts e instrucciones para analizar, refinar y documentar process flows.

Todos los prompts se construyen de forma determinista a partir de sus
argumentos (sin estado oculto):

- Las instrucciones de sistema fijan la persona del modelo y las reglas de
  edición: devolver el objeto COMPLETO, no cambiar ids existentes y
  preguntar cuando algo es ambiguo.
- El mensaje de usuario lleva el esquema (solo para proveedores sin salida
  restringida), el árbol actual serializado y, en el refinamiento, el
  transcript como líneas "role: content".

Los textos están en inglés: es el idioma de trabajo del modelo y del chat.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Sequence

from .domain_models import ChatMessage, ProcessFlow
from .flow_parser import flow_to_json


# ============================================================
# Instrucciones de sistema
# ============================================================

ANALYST_SYSTEM_PROMPT = (
    "You are a business process analyst. Your task is to analyze the provided document "
    "and convert it into a structured JSON object that adheres to the provided JSON schema. "
    "Your entire response must be a single, valid JSON object, with no other text."
)

REFINE_RULES = """You are a helpful and brilliant business process analyst. Your goal is to refine a JSON representation of a business process based on a conversation with a Subject Matter Expert (SME).
- You will be given the current process flow as a JSON object and the recent chat history.
- Analyze the user's latest message in the context of the chat history and the current process flow.
- If the user provides new information or a correction, update the JSON object accordingly. Ensure you return the *entire*, valid JSON object.
- If the user's request is ambiguous or you identify a gap, ask a specific, targeted clarifying question.
- Always provide a conversational response to the SME to confirm your changes or to ask your question.
- Do not change any 'id' fields. You may add new items with new unique ids."""

REFINE_OUTPUT_RULE = (
    '- Your final output must be a single JSON object with two keys: "updatedFlow" '
    '(the complete, modified process flow) and "aiResponse" (your text response to the user).'
)

ENRICH_SYSTEM_PROMPT = (
    "You are a business process analyst AI. Your task is to update a process flow JSON object "
    "by adding a new step to a specific task and returning the complete, updated flow. "
    "Do not change any existing 'id' fields. "
    "Your entire response must be a single, valid JSON object."
)

TECHNICAL_WRITER_SYSTEM_PROMPT = "You are an expert technical writer."


def get_refine_system_prompt(json_envelope: bool = False) -> str:
    """
    Reglas de refinamiento.

    `json_envelope=True` agrega la regla explícita del sobre
    `{updatedFlow, aiResponse}`, necesaria cuando el proveedor no aplica
    el esquema por sí mismo.
    """
    if json_envelope:
        return f"{REFINE_RULES}\n{REFINE_OUTPUT_RULE}"
    return REFINE_RULES


# ============================================================
# Helpers
# ============================================================

def format_transcript(messages: Sequence[ChatMessage]) -> str:
    """Transcript como líneas alternadas "role: content"."""
    return "\n".join(f"{m.role}: {m.content}" for m in messages)


def _schema_block(title: str, schema: Dict[str, Any]) -> str:
    return f"{title}\n```json\n{json.dumps(schema, indent=2)}\n```\n"


# ============================================================
# Prompts de usuario
# ============================================================

ANALYZE_INSTRUCTION = (
    "Analyze the provided Standard Operating Procedure (SOP) document and convert it into a "
    "structured JSON object representing the process flow. Identify all sub-processes, tasks, "
    "and individual steps. For each step, determine the responsible role and assess its "
    "potential for automation."
)

ANALYZE_FILE_INSTRUCTION = (
    "Analyze the provided document and convert it into a structured JSON object representing "
    "the process flow. Identify all sub-processes, tasks, and individual steps. For each step, "
    "determine the responsible role and assess its potential for automation. The document can "
    "be of various formats like TXT, PDF, or DOCX. Extract the content and perform the analysis."
)


def build_initial_prompt(document_text: str, schema: Optional[Dict[str, Any]] = None) -> str:
    """
    Prompt del análisis inicial.

    Con `schema` (proveedores sin salida restringida) el esquema se embebe
    como bloque ```json antes del documento.
    """
    parts: List[str] = []
    if schema is not None:
        parts.append(_schema_block("JSON Schema to follow:", schema))
    else:
        parts.append(ANALYZE_INSTRUCTION + "\n")
    parts.append(f"Document to analyze:\n---\n{document_text}\n---\n")
    if schema is not None:
        parts.append("Generate the JSON object now.")
    return "\n".join(parts)


def build_refine_prompt(
    flow: ProcessFlow,
    transcript: Sequence[ChatMessage],
    schema: Optional[Dict[str, Any]] = None,
) -> str:
    """Prompt de refinamiento: (esquema) + árbol actual + transcript."""
    parts: List[str] = []
    if schema is not None:
        parts.append(_schema_block("Your required output format is this JSON schema:", schema))
    parts.append(f"Current Process Flow JSON:\n---\n{flow_to_json(flow)}\n---\n")
    parts.append(f"Chat History:\n---\n{format_transcript(transcript)}\n---\n")
    if schema is not None:
        parts.append(
            "Based on the last user message, generate the required JSON object with the "
            "updated flow and your AI response."
        )
    else:
        parts.append(
            "Based on the last user message, update the process flow JSON and provide a "
            "response to the user."
        )
    return "\n".join(parts)


def build_enrich_prompt(flow: ProcessFlow, task_id: str, step_description: str) -> str:
    """Prompt para agregar UN paso nuevo al final de la tarea `task_id`."""
    return f"""Current Process Flow JSON:
---
{flow_to_json(flow)}
---

Task to modify:
- Task ID: "{task_id}"

New step to add:
- Step Description: "{step_description}"

Instructions:
1. Create a complete JSON object for the new step. Infer the 'name' (a short title), 'responsible_role', and 'automation_potential' based on the provided description and the context of the other steps in the task.
2. Generate a new unique ID for the step that is not used anywhere else in the process flow (e.g., if the last step was 'step_x_y_z', the new one could be 'step_x_y_{{z+1}}').
3. Add this new step object to the end of the "steps" array within the task that has the ID "{task_id}".
4. Return the *entire*, updated JSON object for the process flow. The returned JSON must be valid and adhere to the schema. Do not change any other part of the process flow.
"""


def build_document_prompt(flow: ProcessFlow) -> str:
    """Prompt del documento final (Markdown libre, sin esquema)."""
    return f"""Based on the following JSON process flow, generate a comprehensive, well-structured Standard Operating Procedure (SOP) document in Markdown format. The document should be professional, clear, and easy to follow. Include all details such as process name, description, sub-processes, tasks, steps, responsible roles, and automation notes.

Process Flow JSON:
---
{flow_to_json(flow)}
---
"""
