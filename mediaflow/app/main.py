# mediaflow/app/main.py
from __future__ import annotations
import logging
import sys
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mediaflow import __version__
from mediaflow.app.config import settings
from mediaflow.app.routers.creators import router as creators_router
from mediaflow.app.routers.extract import router as extract_router
from mediaflow.app.routers.metrics import router as metrics_router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

app = FastAPI(title="Mediaflow Admin API", version=__version__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.FRONTEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(extract_router)
app.include_router(metrics_router)
app.include_router(creators_router)


@app.get("/health")
def health():
    return {"ok": True}
