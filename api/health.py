"""Health check endpoint."""

from fastapi import APIRouter, Depends

from services.audit_store import AuditStore, get_audit_store

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
async def health(store: AuditStore = Depends(get_audit_store)):
    return {"status": "healthy", "store": type(store).__name__}
