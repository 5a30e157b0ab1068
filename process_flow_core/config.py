from dataclasses import asdict, dataclass, field
from functools import lru_cache
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Literal, Optional

from dotenv import load_dotenv

"""
process_flow_core.config
========================

Gestión centralizada de configuración de la aplicación.

Este módulo define:
- La configuración de proceso (`Settings`), resuelta desde entorno (.env)
- La configuración de IA editable por el usuario (`AiConfig`)
- La persistencia local de `AiConfig` en un archivo JSON

Objetivos de diseño
-------------------
1. **Fuente única de verdad**
   Los valores por defecto salen siempre de `get_settings()`.

2. **Configuración explícita en cada llamada**
   `AiConfig` NO se lee como estado global desde los adapters: el llamador
   resuelve un valor (`load_ai_config()`) y lo pasa a cada operación. Así el
   core se puede testear sin singletons.

3. **Un solo camino de escritura**
   `AiConfig` solo se escribe con `save_ai_config()` (pantalla de settings).

Notas importantes
-----------------
- `load_dotenv()` se ejecuta al importar el módulo.
- Si falta una credencial NO se falla acá: el adapter lanza
  `ConfigurationError` antes de intentar la llamada.
"""

# Cargar variables de entorno desde .env (si existe)
load_dotenv()

logger = logging.getLogger(__name__)

AiProvider = Literal["gemini", "azure", "ollama"]
AI_PROVIDERS = ("gemini", "azure", "ollama")


@dataclass
class Settings:
    """
    Contenedor tipado de configuración global (solo lectura de entorno).

    Attributes
    ----------
    ai_provider:
        Proveedor por defecto cuando no hay archivo de settings guardado.
    gemini_api_key / gemini_model:
        Credencial y modelo del proveedor con salida restringida.
    azure_endpoint / azure_deployment / azure_api_key / azure_api_version:
        Datos de conexión de Azure OpenAI.
    ollama_base_url / ollama_model:
        Endpoint local de Ollama y modelo elegido.
    llm_timeout_s:
        Timeout por llamada al LLM, en segundos.
    ai_config_path:
        Archivo JSON donde se persiste la configuración editada por el usuario.
    output_dir:
        Directorio base para los artefactos del CLI (JSON, Markdown).
    """

    ai_provider: str
    gemini_api_key: str
    gemini_model: str

    azure_endpoint: str
    azure_deployment: str
    azure_api_key: str
    azure_api_version: str

    ollama_base_url: str
    ollama_model: str

    llm_timeout_s: float = 120.0
    ai_config_path: str = "ai_config.json"
    output_dir: str = "output"


@lru_cache
def get_settings() -> Settings:
    """
    Devuelve una instancia única y cacheada de `Settings`.

    Variables de entorno utilizadas
    -------------------------------
    - AI_PROVIDER (default: "gemini")
    - GEMINI_API_KEY (fallback: API_KEY), GEMINI_MODEL (default: "gemini-2.5-flash")
    - AZURE_OPENAI_ENDPOINT, AZURE_OPENAI_DEPLOYMENT, AZURE_OPENAI_API_KEY
    - AZURE_OPENAI_API_VERSION (default: "2024-02-01")
    - OLLAMA_BASE_URL (default: "http://localhost:11434"), OLLAMA_MODEL
    - LLM_TIMEOUT_S (default: 120)
    - AI_CONFIG_PATH (default: "ai_config.json")
    - OUTPUT_DIR (default: "output")
    """
    return Settings(
        ai_provider=os.getenv("AI_PROVIDER", "gemini"),
        gemini_api_key=os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY", ""),
        gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),

        azure_endpoint=os.getenv("AZURE_OPENAI_ENDPOINT", ""),
        azure_deployment=os.getenv("AZURE_OPENAI_DEPLOYMENT", ""),
        azure_api_key=os.getenv("AZURE_OPENAI_API_KEY", ""),
        azure_api_version=os.getenv("AZURE_OPENAI_API_VERSION", "2024-02-01"),

        ollama_base_url=os.getenv("OLLAMA_BASE_URL", "http://localhost:11434"),
        ollama_model=os.getenv("OLLAMA_MODEL", ""),

        llm_timeout_s=float(os.getenv("LLM_TIMEOUT_S", "120")),
        ai_config_path=os.getenv("AI_CONFIG_PATH", "ai_config.json"),
        output_dir=os.getenv("OUTPUT_DIR", "output"),
    )


# ============================================================
# AiConfig (editable por el usuario)
# ============================================================

@dataclass
class GeminiConfig:
    api_key: str = ""
    model: str = "gemini-2.5-flash"


@dataclass
class AzureConfig:
    endpoint: str = ""
    deployment: str = ""
    api_key: str = ""
    api_version: str = "2024-02-01"


@dataclass
class OllamaConfig:
    base_url: str = "http://localhost:11434"
    model: str = ""


@dataclass
class AiConfig:
    """
    Configuración de IA resuelta que consume el core.

    `provider` elige el adapter; cada sección trae los datos de conexión de
    su proveedor. Un campo obligatorio vacío se trata como error de
    configuración en el adapter, nunca se intenta la llamada.
    """
    provider: str = "gemini"
    gemini: GeminiConfig = field(default_factory=GeminiConfig)
    azure: AzureConfig = field(default_factory=AzureConfig)
    ollama: OllamaConfig = field(default_factory=OllamaConfig)
    request_timeout_s: float = 120.0


def default_ai_config(settings: Optional[Settings] = None) -> AiConfig:
    """Construye un `AiConfig` a partir del entorno."""
    s = settings or get_settings()
    return AiConfig(
        provider=s.ai_provider,
        gemini=GeminiConfig(api_key=s.gemini_api_key, model=s.gemini_model),
        azure=AzureConfig(
            endpoint=s.azure_endpoint,
            deployment=s.azure_deployment,
            api_key=s.azure_api_key,
            api_version=s.azure_api_version,
        ),
        ollama=OllamaConfig(base_url=s.ollama_base_url, model=s.ollama_model),
        request_timeout_s=s.llm_timeout_s,
    )


def ai_config_to_dict(config: AiConfig) -> Dict[str, Any]:
    return asdict(config)


def ai_config_from_dict(data: Dict[str, Any], base: Optional[AiConfig] = None) -> AiConfig:
    """
    Construye un `AiConfig` desde un dict (archivo o request HTTP).

    Las claves ausentes conservan el valor de `base` (por defecto, el entorno),
    de modo que un archivo viejo o parcial sigue siendo válido.
    """
    b = base or default_ai_config()

    def _section(name: str) -> Dict[str, Any]:
        value = data.get(name) or {}
        return value if isinstance(value, dict) else {}

    gemini = _section("gemini")
    azure = _section("azure")
    ollama = _section("ollama")

    return AiConfig(
        provider=str(data.get("provider") or b.provider),
        gemini=GeminiConfig(
            api_key=str(gemini.get("api_key", b.gemini.api_key) or ""),
            model=str(gemini.get("model", b.gemini.model) or b.gemini.model),
        ),
        azure=AzureConfig(
            endpoint=str(azure.get("endpoint", b.azure.endpoint) or ""),
            deployment=str(azure.get("deployment", b.azure.deployment) or ""),
            api_key=str(azure.get("api_key", b.azure.api_key) or ""),
            api_version=str(azure.get("api_version", b.azure.api_version) or b.azure.api_version),
        ),
        ollama=OllamaConfig(
            base_url=str(ollama.get("base_url", b.ollama.base_url) or ""),
            model=str(ollama.get("model", b.ollama.model) or ""),
        ),
        request_timeout_s=float(data.get("request_timeout_s", b.request_timeout_s)),
    )


def load_ai_config(path: str | Path | None = None) -> AiConfig:
    """
    Lee la configuración guardada por el usuario.

    Reglas:
    -------
    - Si el archivo no existe → configuración del entorno.
    - Si el JSON está mal formado → configuración del entorno (con warning).
      Un archivo roto no debe impedir usar la app.
    """
    p = Path(path or get_settings().ai_config_path)
    if not p.exists():
        return default_ai_config()

    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("⚠️  No se pudo leer %s (%s); se usa la configuración del entorno", p, e)
        return default_ai_config()

    if not isinstance(data, dict):
        logger.warning("⚠️  %s no contiene un objeto JSON; se usa la configuración del entorno", p)
        return default_ai_config()

    return ai_config_from_dict(data)


def save_ai_config(config: AiConfig, path: str | Path | None = None) -> Path:
    """Persiste `AiConfig` como JSON. Es el único camino de escritura."""
    p = Path(path or get_settings().ai_config_path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(ai_config_to_dict(config), indent=2), encoding="utf-8")
    logger.info("Configuración de IA guardada en %s (proveedor=%s)", p, config.provider)
    return p
