from fastapi import APIRouter, Depends, HTTPException, Response, status

from app.dependencies import get_storage
from core.context import require_permission
from models.schemas import Ubs, UbsCreate, UbsUpdate
from services.storage import Storage

router = APIRouter(prefix="/api/ubs", tags=["ubs"])

NOT_FOUND = "UBS não encontrada"


@router.get("", response_model=list[Ubs])
async def list_ubs(storage: Storage = Depends(get_storage)):
    return await storage.list_ubs()


@router.get("/{ubs_id}", response_model=Ubs)
async def get_ubs(ubs_id: int, storage: Storage = Depends(get_storage)):
    ubs = await storage.get_ubs(ubs_id)
    if not ubs:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return ubs


@router.post(
    "",
    response_model=Ubs,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permission("ubs", "create"))],
)
async def create_ubs(payload: UbsCreate, storage: Storage = Depends(get_storage)):
    return await storage.create_ubs(payload)


@router.put(
    "/{ubs_id}",
    response_model=Ubs,
    dependencies=[Depends(require_permission("ubs", "update"))],
)
async def update_ubs(ubs_id: int, payload: UbsUpdate, storage: Storage = Depends(get_storage)):
    ubs = await storage.update_ubs(ubs_id, payload)
    if not ubs:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return ubs


@router.delete(
    "/{ubs_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_permission("ubs", "delete"))],
)
async def delete_ubs(ubs_id: int, storage: Storage = Depends(get_storage)):
    if not await storage.delete_ubs(ubs_id):
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
