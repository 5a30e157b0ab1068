# tools/run_demo.py
from __future__ import annotations

import argparse
import asyncio
import logging
from dataclasses import replace
from pathlib import Path
from typing import List

from process_flow_core.config import AI_PROVIDERS, get_settings, load_ai_config
from process_flow_core.domain_models import SourceDocument
from process_flow_core.flow_parser import flow_to_json
from process_flow_core.ingest import load_source_document
from process_flow_core.renderer import render_flow_markdown
from process_flow_core.samples import SAMPLE_SOP
from process_flow_core.store import ProcessFlowStore

"""
tools.run_demo
==============

Demo end-to-end del store contra un proveedor real.

Recorre el mismo camino que la UI:

1) Analizar un documento (por defecto el SOP de onboarding de ejemplo)
2) Enviar uno o más mensajes de refinamiento por el chat
3) Generar el documento SOP final

Salida
------
En output_dir (por defecto: OUTPUT_DIR o ./output) se generan:

- demo_flow.json      (árbol final)
- demo_outline.md     (esquema local, sin LLM)
- demo_sop.md         (documento redactado por el modelo, si no se usa --no-doc)
- demo_transcript.md  (conversación completa)
"""


def _write_transcript(store: ProcessFlowStore, path: Path) -> None:
    lines: List[str] = []
    for m in store.transcript:
        who = "🧑 user" if m.role == "user" else "🤖 model"
        lines.append(f"**{who}**: {m.content}\n\n")
    path.write_text("".join(lines), encoding="utf-8")


async def run_demo(
    source: SourceDocument,
    messages: List[str],
    output_dir: Path,
    provider: str | None,
    with_document: bool,
) -> int:
    config = load_ai_config()
    if provider:
        config = replace(config, provider=provider)

    store = ProcessFlowStore()
    output_dir.mkdir(parents=True, exist_ok=True)

    print(f"🔎 Analizando documento con proveedor '{config.provider}'...")
    if not await store.analyze(source, config):
        print(f"❌ {store.transcript[-1].content}")
        return 1
    print(f"✅ Flow inicial: {store.flow.process_name}")

    for message in messages:
        print(f"💬 {message}")
        await store.refine(message, config)
        print(f"🤖 {store.transcript[-1].content}")

    if with_document:
        print("📝 Generando documento final...")
        if await store.render_document(config):
            sop_path = output_dir / "demo_sop.md"
            sop_path.write_text(store.document or "", encoding="utf-8")
            print(f"✅ Documento generado en: {sop_path.resolve()}")
        else:
            print(f"⚠️ {store.transcript[-1].content}")

    json_path = output_dir / "demo_flow.json"
    json_path.write_text(flow_to_json(store.flow), encoding="utf-8")
    outline_path = output_dir / "demo_outline.md"
    outline_path.write_text(render_flow_markdown(store.flow), encoding="utf-8")
    _write_transcript(store, output_dir / "demo_transcript.md")

    print(f"✅ JSON generado en: {json_path.resolve()}")
    print(f"✅ Esquema generado en: {outline_path.resolve()}")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Demo end-to-end de process-flow-core")
    parser.add_argument("--document", help="Documento a analizar (default: SOP de ejemplo)")
    parser.add_argument(
        "--message",
        action="append",
        default=[],
        help="Mensaje de refinamiento (repetible)",
    )
    parser.add_argument("--provider", choices=AI_PROVIDERS, help="Pisa el proveedor configurado")
    parser.add_argument("--output-dir", default=None, help="Directorio de salida")
    parser.add_argument("--no-doc", action="store_true", help="No generar el documento SOP final")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    source = load_source_document(args.document) if args.document else SourceDocument(text=SAMPLE_SOP)
    messages = args.message or ["The IT technician also needs to enroll the laptop in the MDM system."]
    output_dir = Path(args.output_dir or get_settings().output_dir)

    raise SystemExit(
        asyncio.run(run_demo(source, messages, output_dir, args.provider, not args.no_doc))
    )


if __name__ == "__main__":
    main()
