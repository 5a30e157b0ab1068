"""
Dependencias de FastAPI.

- `get_store()`: store único del proceso (un usuario interactivo, sin
  persistencia más allá de la configuración local).
- `get_ai_config()`: configuración de IA resuelta en cada request, así un
  `PUT /settings` aplica a la próxima llamada sin reiniciar.
- `get_ai_config_path()`: archivo donde se guarda la configuración.

En tests se reemplazan con `app.dependency_overrides`.
"""

import logging
from functools import lru_cache

from fastapi import Depends

from process_flow_core.config import AiConfig, get_settings, load_ai_config
from process_flow_core.store import ProcessFlowStore

logger = logging.getLogger(__name__)


@lru_cache
def get_store() -> ProcessFlowStore:
    logger.info("Creando ProcessFlowStore de la API")
    return ProcessFlowStore()


def get_ai_config_path() -> str:
    return get_settings().ai_config_path


def get_ai_config(path: str = Depends(get_ai_config_path)) -> AiConfig:
    return load_ai_config(path)
