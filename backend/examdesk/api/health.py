"""Health check endpoints."""

from fastapi import APIRouter, Depends

from ..storage.store import Store
from .deps import get_store

router = APIRouter()


@router.get("/health")
async def health(store: Store = Depends(get_store)) -> dict[str, str]:
    """Return service health and the active storage backend."""
    return {"status": "ok", "storage": store.backend.kind}
