"""
API HTTP de process-flow-core.

Expone el store del core (un único proceso en memoria) bajo `/api/v1`:
análisis, chat de refinamiento, edición de pasos, documento final y settings.

Uso:
    uvicorn api.main:app --reload --port 8000
"""

import logging
import os

from dotenv import load_dotenv
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from process_flow_core.store import ProcessFlowStore

from .dependencies import get_store
from .routes import flow, settings

load_dotenv()

logging.basicConfig(
    level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

SERVICE = "process-flow-core-api"
VERSION = "0.1.0"

app = FastAPI(
    title="Process Flow Core API",
    description="Convierte procedimientos en process flows estructurados y refinables con IA",
    version=VERSION,
)

cors_origins = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",")
    if origin.strip()
]
logger.info("🌐 CORS origins: %s", cors_origins)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(flow.router)
app.include_router(settings.router)


@app.get("/")
async def root():
    return {"service": SERVICE, "version": VERSION, "docs": "/docs"}


@app.get("/health")
async def health(store: ProcessFlowStore = Depends(get_store)):
    """Estado del servicio y del proceso cargado en memoria."""
    loading = store.loading
    return {
        "status": "ok",
        "flow_loaded": store.flow is not None,
        "busy": loading.flow or loading.chat or loading.doc,
    }
