"""
Endpoints de configuración de IA.

- GET /api/v1/settings: Configuración actual (API keys enmascaradas)
- PUT /api/v1/settings: Guardar configuración (único camino de escritura)
"""

import logging

from fastapi import APIRouter, Depends

from process_flow_core.config import AiConfig, save_ai_config

from ..dependencies import get_ai_config, get_ai_config_path
from ..models.requests import SettingsModel

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/settings", tags=["settings"])


@router.get("", response_model=SettingsModel)
async def get_ai_settings(config: AiConfig = Depends(get_ai_config)):
    """Devuelve la configuración de IA con las keys enmascaradas."""
    return SettingsModel.from_config(config)


@router.put("", response_model=SettingsModel)
async def update_ai_settings(
    request: SettingsModel,
    current: AiConfig = Depends(get_ai_config),
    path: str = Depends(get_ai_config_path),
):
    """
    Guarda la configuración de IA.

    Una API key enmascarada o vacía conserva la guardada.
    """
    config = request.to_config(current)
    save_ai_config(config, path)
    logger.info(f"⚙️  Proveedor de IA activo: {config.provider}")
    return SettingsModel.from_config(config)
