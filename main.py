"""FastAPI entry point for the compliance audit engine."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.settings import get_settings
from services.audit_store import get_audit_store

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle — open/close the audit store."""
    store = get_audit_store()
    await store.start()
    logger.info("Audit engine ready (store=%s)", type(store).__name__)

    yield

    await store.close()


app = FastAPI(
    title="Compliance Audit Engine",
    description="Form evaluation, scoring and audit lifecycle for compliance audits",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Register routers ────────────────────────────────────────
from api.audits import router as audits_router  # noqa: E402
from api.compliance import router as compliance_router  # noqa: E402
from api.forms import router as forms_router  # noqa: E402
from api.health import router as health_router  # noqa: E402

app.include_router(health_router)
app.include_router(compliance_router)
app.include_router(forms_router)
app.include_router(audits_router)


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.service_port,
        reload=settings.debug,
    )
