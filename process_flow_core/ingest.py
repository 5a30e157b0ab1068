from __future__ import annotations

import base64
import mimetypes
from pathlib import Path
from typing import Optional

from .domain_models import FileAttachment, SourceDocument
from .exceptions import DomainError

"""
process_flow_core.ingest
========================

Ingestión del documento fuente (archivo → SourceDocument).

Responsabilidad
----------------
- Los archivos de texto (`.txt`, `.md`) se leen y viajan como texto pegado.
- Los binarios (PDF, DOC, DOCX, imágenes) se adjuntan en base64 con su
  mime type. Solo el proveedor con salida restringida los acepta; el router
  lo valida antes de llamar.

NO hace:
---------
- Extracción de texto de PDF/DOCX (la hace el modelo)
- Llamadas a LLM
"""

# ============================================================
# Extensiones soportadas
# ============================================================

TEXT_EXT = {".txt", ".md"}
DOCUMENT_EXT = {".pdf", ".doc", ".docx"}
IMAGE_EXT = {".png", ".jpg", ".jpeg", ".webp", ".gif"}

_FALLBACK_MIME = {
    ".md": "text/markdown",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".webp": "image/webp",
}


def _guess_mime(suffix: str) -> str:
    mime, _ = mimetypes.guess_type(f"file{suffix}")
    return mime or _FALLBACK_MIME.get(suffix, "application/octet-stream")


def _source_from_bytes(suffix: str, data: bytes, content_type: Optional[str] = None) -> SourceDocument:
    if suffix in TEXT_EXT:
        return SourceDocument(text=data.decode("utf-8", errors="replace"))

    if suffix in DOCUMENT_EXT or suffix in IMAGE_EXT:
        mime = content_type or _guess_mime(suffix)
        encoded = base64.b64encode(data).decode("ascii")
        return SourceDocument(file=FileAttachment(mime_type=mime, data=encoded))

    raise DomainError(f"Unsupported document type: '{suffix or '(none)'}'.")


# ============================================================
# API pública
# ============================================================

def load_source_document(path: str | Path) -> SourceDocument:
    """
    Carga un archivo local como documento fuente.

    Raises:
        FileNotFoundError: si el archivo no existe.
        DomainError: si la extensión no está soportada.
    """
    p = Path(path)
    if not p.is_file():
        raise FileNotFoundError(f"No existe el archivo: {p}")
    return _source_from_bytes(p.suffix.lower(), p.read_bytes())


def source_from_upload(filename: str, content_type: Optional[str], data: bytes) -> SourceDocument:
    """
    Igual que `load_source_document`, pero para bytes subidos por HTTP.

    El `content_type` del upload se respeta para binarios salvo que sea el
    genérico `application/octet-stream`.
    """
    suffix = Path(filename or "").suffix.lower()
    if content_type in (None, "", "application/octet-stream"):
        content_type = None
    return _source_from_bytes(suffix, data, content_type)
