"""
models/schemas.py — Pydantic Models
UBS Manager v1.0
Insert / Patch / Read shapes for every aggregate (camelCase on the wire)
"""

from datetime import datetime
from typing import Any, ClassVar, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from models.clinical import ClinicalPayload


EmployeeRole = Literal["doctor", "nurse", "administrative"]
UserRole = Literal["admin", "doctor", "nurse", "staff"]
RecordStatus = Literal["active", "completed", "critical", "follow-up"]

EMPLOYEE_ROLES = ("doctor", "nurse", "administrative")
RECORD_STATUSES = ("active", "completed", "critical", "follow-up")


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class PatchModel(CamelModel):
    """
    Every field optional. Fields the caller did not send are absent from
    model_fields_set; explicit null is refused for columns that cannot be null.
    """

    NON_NULLABLE: ClassVar[tuple[str, ...]] = ()

    @model_validator(mode="after")
    def _reject_nulls(self):
        for name in self.NON_NULLABLE:
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{to_camel(name)} não pode ser nulo")
        return self

    def changes(self) -> dict[str, Any]:
        """Only the fields that were provided (merge-patch)."""
        return {name: getattr(self, name) for name in self.model_fields_set}


# ══════════════════════════════════════
# UBS (Health Unit)
# ══════════════════════════════════════

class UbsCreate(CamelModel):
    name: str = Field(min_length=1)
    address: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    zip_code: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    district: Optional[str] = None


class UbsUpdate(PatchModel):
    NON_NULLABLE = ("name", "address", "city", "state")

    name: Optional[str] = Field(default=None, min_length=1)
    address: Optional[str] = Field(default=None, min_length=1)
    city: Optional[str] = Field(default=None, min_length=1)
    state: Optional[str] = Field(default=None, min_length=1)
    zip_code: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    district: Optional[str] = None


class Ubs(UbsCreate):
    id: int
    created_at: datetime


# ══════════════════════════════════════
# Employee
# ══════════════════════════════════════

class EmployeeCreate(CamelModel):
    name: str = Field(min_length=1)
    role: EmployeeRole
    email: str = Field(min_length=1)
    specialty: Optional[str] = None
    license_number: Optional[str] = None
    ubs_id: Optional[int] = None
    phone: Optional[str] = None
    is_active: bool = True


class EmployeeUpdate(PatchModel):
    NON_NULLABLE = ("name", "role", "email", "is_active")

    name: Optional[str] = Field(default=None, min_length=1)
    role: Optional[EmployeeRole] = None
    email: Optional[str] = Field(default=None, min_length=1)
    specialty: Optional[str] = None
    license_number: Optional[str] = None
    ubs_id: Optional[int] = None
    phone: Optional[str] = None
    is_active: Optional[bool] = None


class Employee(EmployeeCreate):
    id: int
    created_at: datetime


# ══════════════════════════════════════
# Disease
# ══════════════════════════════════════

class DiseaseCreate(CamelModel):
    name: str = Field(min_length=1)
    icd10_code: Optional[str] = None
    description: Optional[str] = None
    symptoms: Optional[str] = None
    treatment_info: Optional[str] = None
    prevention_info: Optional[str] = None


class DiseaseUpdate(PatchModel):
    NON_NULLABLE = ("name",)

    name: Optional[str] = Field(default=None, min_length=1)
    icd10_code: Optional[str] = None
    description: Optional[str] = None
    symptoms: Optional[str] = None
    treatment_info: Optional[str] = None
    prevention_info: Optional[str] = None


class Disease(DiseaseCreate):
    id: int
    created_at: datetime


# ══════════════════════════════════════
# User (auth layer owns hashing)
# ══════════════════════════════════════

class UserCreate(CamelModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)
    name: str
    role: UserRole
    email: str
    phone: Optional[str] = None


class User(UserCreate):
    id: int
    created_at: datetime


# ══════════════════════════════════════
# Medical Record
# ══════════════════════════════════════

class MedicalRecordCreate(CamelModel):
    patient_name: str = Field(min_length=1)
    patient_birth_date: datetime
    disease_id: Optional[int] = None
    ubs_id: Optional[int] = None
    employee_id: Optional[int] = None
    status: RecordStatus = "active"
    data: ClinicalPayload


class MedicalRecordUpdate(PatchModel):
    NON_NULLABLE = ("patient_name", "patient_birth_date", "status", "data")

    patient_name: Optional[str] = Field(default=None, min_length=1)
    patient_birth_date: Optional[datetime] = None
    disease_id: Optional[int] = None
    ubs_id: Optional[int] = None
    employee_id: Optional[int] = None
    status: Optional[RecordStatus] = None
    data: Optional[ClinicalPayload] = None


class MedicalRecord(CamelModel):
    id: int
    patient_name: str
    patient_birth_date: datetime
    disease_id: Optional[int] = None
    ubs_id: Optional[int] = None
    employee_id: Optional[int] = None
    status: str
    # Stored document, returned as-is.
    data: dict[str, Any]
    created_at: datetime
    updated_at: datetime


# ══════════════════════════════════════
# Statistics / integrity report
# ══════════════════════════════════════

class Statistics(CamelModel):
    unit_count: int
    active_doctor_count: int
    total_record_count: int
    active_record_count: int


class DanglingReference(CamelModel):
    record_id: int
    field: Literal["ubsId", "diseaseId", "employeeId"]
    target_id: int
