"""
process_flow_core.normalizer
============================

Extrae y parsea el JSON que devuelve un modelo.

Los proveedores de chat-completion no garantizan JSON limpio: a veces lo
envuelven en un bloque ```json ... ``` o lo rodean de prosa. Regla:

- si hay un bloque cercado ```json, se usa SOLO su contenido;
- si no, se usa el texto completo.

No hay recuperación parcial ni extracción "best effort" de campos: o el
texto es JSON válido, o se lanza `ParseError` con el texto crudo adjunto.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from .exceptions import ParseError

logger = logging.getLogger(__name__)

_FENCED_JSON_RE = re.compile(r"```json\s*([\s\S]*?)\s*```")


def extract_json_text(raw_text: str) -> str:
    """Devuelve el contenido del primer bloque ```json, o el texto completo."""
    match = _FENCED_JSON_RE.search(raw_text or "")
    extracted = match.group(1) if match else (raw_text or "")
    return extracted.strip()


def load_json(text: str) -> Any:
    """
    Parsea `text` directamente (sin buscar bloques cercados).

    Es el camino del proveedor con salida restringida, cuyo payload ya
    viene como JSON puro.
    """
    try:
        return json.loads(text)
    except (TypeError, json.JSONDecodeError) as e:
        logger.error("No se pudo parsear JSON de la respuesta del modelo: %s", (text or "")[:200])
        raise ParseError("Could not parse the JSON from the model's response.", raw_text=text) from e


def parse_json_response(raw_text: str) -> Any:
    """Extrae el JSON de una respuesta cruda y lo parsea."""
    try:
        return load_json(extract_json_text(raw_text))
    except ParseError as e:
        e.raw_text = raw_text
        raise
