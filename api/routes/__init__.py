"""Rutas de la API."""

from . import flow, settings

__all__ = ["flow", "settings"]
