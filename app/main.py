"""FastAPI Application Entry Point.

Configures the app, lifespan, CORS, and includes all route modules.
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from invoiceflow.logging_config import get_api_logger
from invoiceflow.notify import close_default_notifier

from .database import close_db, init_db

# Ensure node types are registered at import time
import invoiceflow.nodes  # noqa: F401

logger = get_api_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage database and export notifier lifecycle."""
    await init_db()
    logger.info("Invoice workflow API started")
    yield
    close_default_notifier()
    await close_db()


app = FastAPI(title="Invoice Workflow API", version="1.0.0", lifespan=lifespan)

# CORS origins from CORS_ORIGINS (comma-separated)
_default_origins = "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173"
CORS_ORIGINS = [
    o.strip() for o in os.getenv("CORS_ORIGINS", _default_origins).split(",") if o.strip()
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
from .routes.workflows import router as workflows_router  # noqa: E402
from .routes.runs import router as runs_router  # noqa: E402

app.include_router(workflows_router)
app.include_router(runs_router)


@app.get("/health")
async def health_check():
    """Health check endpoint for container orchestration."""
    return {"status": "ok"}
