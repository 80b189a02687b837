from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from app.dependencies import get_storage
from core.context import require_permission
from models.schemas import Employee, EmployeeCreate, EmployeeRole, EmployeeUpdate
from services.storage import Storage

router = APIRouter(prefix="/api/employees", tags=["employees"])

NOT_FOUND = "Funcionário não encontrado"


@router.get("", response_model=list[Employee])
async def list_employees(
    ubs_id: Optional[int] = Query(default=None, alias="ubsId"),
    role: Optional[EmployeeRole] = None,
    storage: Storage = Depends(get_storage),
):
    return await storage.list_employees(ubs_id=ubs_id, role=role)


@router.get("/{employee_id}", response_model=Employee)
async def get_employee(employee_id: int, storage: Storage = Depends(get_storage)):
    employee = await storage.get_employee(employee_id)
    if not employee:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return employee


@router.post(
    "",
    response_model=Employee,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permission("employee", "create"))],
)
async def create_employee(payload: EmployeeCreate, storage: Storage = Depends(get_storage)):
    return await storage.create_employee(payload)


@router.put(
    "/{employee_id}",
    response_model=Employee,
    dependencies=[Depends(require_permission("employee", "update"))],
)
async def update_employee(
    employee_id: int, payload: EmployeeUpdate, storage: Storage = Depends(get_storage)
):
    employee = await storage.update_employee(employee_id, payload)
    if not employee:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return employee


@router.delete(
    "/{employee_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_permission("employee", "delete"))],
)
async def delete_employee(employee_id: int, storage: Storage = Depends(get_storage)):
    if not await storage.delete_employee(employee_id):
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
