"""
InsureDocs Engine — FastAPI Application Factory.

Registers the document controller router and configures CORS,
logging, and lifespan events (temp storage check on startup).
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from insuredocs.config import LOG_LEVEL, TMP_ROOT
from insuredocs.controllers.document_controller import router as document_router

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
)
logger = logging.getLogger("insuredocs")


# ---------------------------------------------------------------------------
# Lifespan (startup / shutdown)
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.
    - **Startup**: Make sure the temp directory for generated files exists.
    - **Shutdown**: Placeholder for cleanup.
    """
    logger.info("InsureDocs Engine starting up …")
    TMP_ROOT.mkdir(parents=True, exist_ok=True)
    logger.info("Generated files are staged under %s", TMP_ROOT)
    yield
    logger.info("InsureDocs Engine shutting down")


# ---------------------------------------------------------------------------
# App instance
# ---------------------------------------------------------------------------

app = FastAPI(
    title="InsureDocs Engine",
    description=(
        "Insurance business document generator. "
        "Post receipt, tax invoice or report payloads and receive paginated PDFs, "
        "or policy records and receive the monthly Excel export."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

# CORS – allow all origins during development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount the document controller
app.include_router(document_router)


# Root redirect to docs
@app.get("/", include_in_schema=False)
async def root():
    return {"message": "InsureDocs Engine v1.0.0", "docs": "/docs"}
