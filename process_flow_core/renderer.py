"""
Renderer local del árbol de proceso.

Genera un esquema Markdown determinista a partir del `ProcessFlow` (sin LLM).
Lo usan el CLI (`process-flow outline`) y el endpoint `/flow/outline`.
No reemplaza al documento SOP final, que lo redacta el modelo.
"""

from __future__ import annotations

from typing import List

from .domain_models import ProcessFlow, Step


def _step_block(index: int, step: Step) -> List[str]:
    lines = [f"{index}. **{step.name}** (`{step.id}`)\n"]
    if step.description.strip():
        lines.append(f"   - {step.description.strip()}\n")
    if step.responsible_role:
        lines.append(f"   - Responsible: {step.responsible_role}\n")
    automation = f"   - Automation potential: {step.automation_potential}"
    if step.automation_suggestion:
        automation += f" ({step.automation_suggestion.strip()})"
    lines.append(automation + "\n")
    return lines


def render_flow_markdown(flow: ProcessFlow) -> str:
    """
    Renderiza el árbol como esquema Markdown.

    Estructura:
        # Proceso (versión)
        ## Sub-proceso
        ### Tarea
        1. **Paso** (`id`) + rol y automatización
    """
    lines: List[str] = []
    title = flow.process_name.strip() or "Process flow"
    if flow.version:
        title += f" (v{flow.version})"
    lines.append(f"# {title}\n\n")
    if flow.description.strip():
        lines.append(f"{flow.description.strip()}\n\n")

    for sp in flow.sub_processes:
        lines.append(f"## {sp.name}\n\n")
        if sp.description.strip():
            lines.append(f"{sp.description.strip()}\n\n")

        for task in sp.tasks:
            lines.append(f"### {task.name}\n\n")
            if task.description.strip():
                lines.append(f"{task.description.strip()}\n\n")
            if not task.steps:
                lines.append("_No steps yet._\n\n")
                continue
            for i, step in enumerate(task.steps, start=1):
                lines.extend(_step_block(i, step))
            lines.append("\n")

    return "".join(lines).rstrip() + "\n"
