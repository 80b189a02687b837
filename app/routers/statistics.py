from fastapi import APIRouter, Depends

from app.dependencies import get_storage
from models.schemas import Statistics
from services.storage import Storage

router = APIRouter(prefix="/api", tags=["statistics"])


@router.get("/statistics", response_model=Statistics)
async def get_statistics(storage: Storage = Depends(get_storage)):
    """Live counts, recomputed on every call."""
    return await storage.statistics()


@router.get("/health")
async def health(storage: Storage = Depends(get_storage)):
    return {"status": "ok", "storage": type(storage).__name__}
