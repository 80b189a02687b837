from fastapi import APIRouter, Depends, HTTPException, Response, status

from app.dependencies import get_storage
from core.context import require_permission
from models.schemas import Disease, DiseaseCreate, DiseaseUpdate
from services.storage import Storage

router = APIRouter(prefix="/api/diseases", tags=["diseases"])

NOT_FOUND = "Doença não encontrada"


@router.get("", response_model=list[Disease])
async def list_diseases(storage: Storage = Depends(get_storage)):
    return await storage.list_diseases()


@router.get("/{disease_id}", response_model=Disease)
async def get_disease(disease_id: int, storage: Storage = Depends(get_storage)):
    disease = await storage.get_disease(disease_id)
    if not disease:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return disease


@router.post(
    "",
    response_model=Disease,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permission("disease", "create"))],
)
async def create_disease(payload: DiseaseCreate, storage: Storage = Depends(get_storage)):
    return await storage.create_disease(payload)


@router.put(
    "/{disease_id}",
    response_model=Disease,
    dependencies=[Depends(require_permission("disease", "update"))],
)
async def update_disease(
    disease_id: int, payload: DiseaseUpdate, storage: Storage = Depends(get_storage)
):
    disease = await storage.update_disease(disease_id, payload)
    if not disease:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return disease


@router.delete(
    "/{disease_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_permission("disease", "delete"))],
)
async def delete_disease(disease_id: int, storage: Storage = Depends(get_storage)):
    if not await storage.delete_disease(disease_id):
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
