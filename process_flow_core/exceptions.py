"""
process_flow_core.exceptions
============================

Taxonomía de errores del core.

Todas las fallas que pueden ocurrir al hablar con un proveedor de LLM (o al
interpretar su respuesta) se expresan con estas clases, para que la capa que
llama (store, API, CLI) pueda distinguirlas sin inspeccionar mensajes.

Jerarquía
---------
ProcessFlowError (RuntimeError)
├── ConfigurationError   faltan campos de conexión obligatorios
├── CapabilityError      el proveedor elegido no soporta lo pedido (ej. archivos)
├── TransportError       respuesta HTTP no exitosa / timeout / conexión caída
├── ProtocolError        el sobre de respuesta no trae lo esperado (ej. sin choices)
├── ParseError           el cuerpo no es JSON recuperable o no respeta el esquema
└── DomainError          invariante del llamador violado (ej. refinar sin flujo)

Notas
-----
- Los mensajes están en inglés porque terminan embebidos en el chat que ve
  el usuario final.
- Ningún adapter reintenta: el reintento es decisión del llamador.
"""

from __future__ import annotations

from typing import Optional


class ProcessFlowError(RuntimeError):
    """Base de todos los errores del core."""


class ConfigurationError(ProcessFlowError):
    """Faltan (o son inválidos) los datos de conexión del proveedor."""


class CapabilityError(ProcessFlowError):
    """El proveedor seleccionado no soporta la operación pedida."""


class TransportError(ProcessFlowError):
    """
    Falla a nivel transporte.

    Attributes
    ----------
    status:
        Código HTTP devuelto, o None si no hubo respuesta (timeout, conexión).
    body:
        Cuerpo crudo de la respuesta (útil para diagnóstico).
    """

    def __init__(self, message: str, status: Optional[int] = None, body: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class ProtocolError(ProcessFlowError):
    """El sobre de respuesta no tiene los campos esperados."""


class ParseError(ProcessFlowError):
    """
    La respuesta no pudo convertirse en un valor válido del modelo.

    `raw_text` conserva el texto original del modelo para diagnóstico.
    """

    def __init__(self, message: str, raw_text: Optional[str] = None) -> None:
        super().__init__(message)
        self.raw_text = raw_text


class DomainError(ProcessFlowError):
    """Se pidió una operación que no tiene sentido con el estado actual."""
