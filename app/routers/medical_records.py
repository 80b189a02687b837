from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from app.dependencies import get_storage
from core.context import require_permission
from models.schemas import (
    DanglingReference,
    MedicalRecord,
    MedicalRecordCreate,
    MedicalRecordUpdate,
)
from services.storage import Storage

router = APIRouter(prefix="/api/medical-records", tags=["medical-records"])

NOT_FOUND = "Prontuário não encontrado"


@router.get("", response_model=list[MedicalRecord])
async def list_medical_records(
    ubs_id: Optional[int] = Query(default=None, alias="ubsId"),
    disease_id: Optional[int] = Query(default=None, alias="diseaseId"),
    storage: Storage = Depends(get_storage),
):
    """Most recent first; both filters may be combined."""
    return await storage.list_medical_records(ubs_id=ubs_id, disease_id=disease_id)


@router.get("/dangling-references", response_model=list[DanglingReference])
async def list_dangling_references(storage: Storage = Depends(get_storage)):
    """Records whose UBS, disease or employee was deleted after they were written."""
    return await storage.dangling_references()


@router.get("/{record_id}", response_model=MedicalRecord)
async def get_medical_record(record_id: int, storage: Storage = Depends(get_storage)):
    record = await storage.get_medical_record(record_id)
    if not record:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return record


@router.post(
    "",
    response_model=MedicalRecord,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permission("medical_record", "create"))],
)
async def create_medical_record(
    payload: MedicalRecordCreate, storage: Storage = Depends(get_storage)
):
    return await storage.create_medical_record(payload)


@router.put(
    "/{record_id}",
    response_model=MedicalRecord,
    dependencies=[Depends(require_permission("medical_record", "update"))],
)
async def update_medical_record(
    record_id: int, payload: MedicalRecordUpdate, storage: Storage = Depends(get_storage)
):
    record = await storage.update_medical_record(record_id, payload)
    if not record:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return record


@router.delete(
    "/{record_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_permission("medical_record", "delete"))],
)
async def delete_medical_record(record_id: int, storage: Storage = Depends(get_storage)):
    if not await storage.delete_medical_record(record_id):
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
