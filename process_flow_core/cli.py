"""
process_flow_core.cli
=====================

Punto de entrada de línea de comandos (`process-flow`).

Subcomandos
-----------
- `analyze <documento>`: analiza un documento (texto o binario) y guarda el
  árbol resultante como JSON en `OUTPUT_DIR`.
- `document <flow.json>`: pide al modelo el documento SOP final (Markdown).
- `outline <flow.json>`: renderiza localmente el esquema Markdown del árbol,
  sin LLM.

Todos respetan la configuración de IA guardada (`ai_config.json`) o, si no
existe, la del entorno (.env). `--provider` la pisa solo para esa corrida.

Pensado para:
- demo local rápida,
- smoke tests manuales contra un proveedor real.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from . import ai_service
from .config import AI_PROVIDERS, AiConfig, get_settings, load_ai_config
from .domain_models import ProcessFlow
from .exceptions import ProcessFlowError
from .flow_parser import decode_process_flow, flow_to_json
from .ingest import load_source_document
from .renderer import render_flow_markdown
from .store import ProcessFlowStore


def _resolve_config(provider: Optional[str]) -> AiConfig:
    config = load_ai_config()
    if provider:
        config = replace(config, provider=provider)
    return config


def _output_dir(explicit: Optional[str]) -> Path:
    out = Path(explicit or get_settings().output_dir)
    out.mkdir(parents=True, exist_ok=True)
    return out


def _read_flow(path: str) -> ProcessFlow:
    p = Path(path)
    if not p.is_file():
        raise FileNotFoundError(f"No existe el archivo: {p}")
    return decode_process_flow(p.read_text(encoding="utf-8"), fenced=False)


# ============================================================
# Subcomandos
# ============================================================

def cmd_analyze(args: argparse.Namespace) -> int:
    config = _resolve_config(args.provider)
    source = load_source_document(args.document)

    print(f"🔎 Analizando {args.document} con proveedor '{config.provider}'...")
    store = ProcessFlowStore()
    ok = asyncio.run(store.analyze(source, config))

    last = store.transcript[-1].content if store.transcript else ""
    if not ok or store.flow is None:
        print(f"❌ {last}")
        return 1

    out = _output_dir(args.output_dir)
    json_path = out / f"{Path(args.document).stem}.flow.json"
    json_path.write_text(flow_to_json(store.flow), encoding="utf-8")

    print(f"✅ Process flow generado en: {json_path.resolve()}")
    print(f"💬 {last}")
    return 0


def cmd_document(args: argparse.Namespace) -> int:
    config = _resolve_config(args.provider)
    flow = _read_flow(args.flow)

    print(f"📝 Generando documento final con proveedor '{config.provider}'...")
    try:
        markdown = asyncio.run(ai_service.generate_final_document(flow, config))
    except ProcessFlowError as e:
        print(f"❌ No se pudo generar el documento: {e}")
        return 1

    out = _output_dir(args.output_dir)
    md_path = out / f"{Path(args.flow).name.split('.')[0]}_sop.md"
    md_path.write_text(markdown, encoding="utf-8")
    print(f"✅ Documento generado en: {md_path.resolve()}")
    return 0


def cmd_outline(args: argparse.Namespace) -> int:
    flow = _read_flow(args.flow)
    markdown = render_flow_markdown(flow)

    if args.output:
        Path(args.output).write_text(markdown, encoding="utf-8")
        print(f"✅ Esquema generado en: {Path(args.output).resolve()}")
    else:
        print(markdown, end="")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="process-flow",
        description="Convierte documentos de procedimientos en process flows estructurados.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Logging en nivel DEBUG")
    sub = parser.add_subparsers(dest="command", required=True)

    p_analyze = sub.add_parser("analyze", help="Analiza un documento y guarda el árbol como JSON")
    p_analyze.add_argument("document", help="Ruta al documento (.txt, .md, .pdf, .docx, imagen)")
    p_analyze.add_argument("--provider", choices=AI_PROVIDERS, help="Pisa el proveedor configurado")
    p_analyze.add_argument("--output-dir", help="Directorio de salida (default: OUTPUT_DIR)")
    p_analyze.set_defaults(func=cmd_analyze)

    p_doc = sub.add_parser("document", help="Genera el documento SOP final a partir de un flow JSON")
    p_doc.add_argument("flow", help="Ruta al JSON generado por 'analyze'")
    p_doc.add_argument("--provider", choices=AI_PROVIDERS, help="Pisa el proveedor configurado")
    p_doc.add_argument("--output-dir", help="Directorio de salida (default: OUTPUT_DIR)")
    p_doc.set_defaults(func=cmd_document)

    p_outline = sub.add_parser("outline", help="Renderiza el esquema Markdown del flow (sin LLM)")
    p_outline.add_argument("flow", help="Ruta al JSON generado por 'analyze'")
    p_outline.add_argument("-o", "--output", help="Archivo de salida (default: stdout)")
    p_outline.set_defaults(func=cmd_outline)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        return args.func(args)
    except (FileNotFoundError, ProcessFlowError) as e:
        print(f"❌ {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
