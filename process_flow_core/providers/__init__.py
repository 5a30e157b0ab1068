"""
Adapters de proveedores de LLM.

Cada módulo implementa `core.abstractions.FlowProvider`:
- `gemini`: salida restringida por esquema, acepta adjuntos.
- `azure`: chat-completion remoto (Azure OpenAI).
- `ollama`: chat-completion local.
"""

from .azure import AzureOpenAIProvider
from .gemini import GeminiProvider
from .ollama import OllamaProvider

__all__ = ["AzureOpenAIProvider", "GeminiProvider", "OllamaProvider"]
