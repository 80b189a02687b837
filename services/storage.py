"""
services/storage.py — Record Store
UBS Manager v1.0
Storage contract shared by every backend + the in-memory implementation
"""

import unicodedata
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Iterable, Optional, TypeVar

from core.errors import ConstraintError
from core.logging_config import get_logger
from models.schemas import (
    DanglingReference,
    Disease,
    DiseaseCreate,
    DiseaseUpdate,
    Employee,
    EmployeeCreate,
    EmployeeUpdate,
    MedicalRecord,
    MedicalRecordCreate,
    MedicalRecordUpdate,
    Statistics,
    Ubs,
    UbsCreate,
    UbsUpdate,
    User,
    UserCreate,
)

logger = get_logger("storage")

T = TypeVar("T")


def utcnow() -> datetime:
    """Naive UTC timestamp (the timestamp columns carry no zone)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def collation_key(name: str) -> tuple[str, str]:
    """
    Accent- and case-insensitive ordering key, so "Área" sorts next to "area"
    and before "Bairro". Ties fall back to the raw string.
    """
    decomposed = unicodedata.normalize("NFKD", name)
    base = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return (base.casefold(), name)


def sort_by_name(items: Iterable[T]) -> list[T]:
    return sorted(items, key=lambda item: collation_key(item.name))


def sort_recent_first(records: Iterable[MedicalRecord]) -> list[MedicalRecord]:
    return sorted(records, key=lambda r: (r.created_at, r.id), reverse=True)


def naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def record_values(record: MedicalRecordCreate) -> dict:
    """Column values for a new record; the payload becomes a plain JSON document."""
    values = record.model_dump(exclude={"data"})
    values["patient_birth_date"] = naive_utc(record.patient_birth_date)
    values["data"] = record.data.to_document()
    return values


def record_changes(patch: MedicalRecordUpdate) -> dict:
    changes = patch.changes()
    if "patient_birth_date" in changes:
        changes["patient_birth_date"] = naive_utc(changes["patient_birth_date"])
    if "data" in changes:
        changes["data"] = patch.data.to_document()
    return changes


# ══════════════════════════════════════════════════════════════
# Contract
# ══════════════════════════════════════════════════════════════

class Storage(ABC):
    """
    Every backend must behave identically:
      - get_* returns None and update_* returns None for unknown ids
      - delete_* returns False for unknown ids
      - unique and reference violations raise ConstraintError
      - deleting a UBS removes its employees; deleting a UBS, disease or
        employee never touches medical records (see dangling_references)
    """

    async def init(self) -> None:
        """Prepare the backend (create tables, etc.)."""

    async def close(self) -> None:
        """Release backend resources."""

    # ── Users ──
    @abstractmethod
    async def create_user(self, user: UserCreate) -> User: ...

    @abstractmethod
    async def get_user(self, user_id: int) -> Optional[User]: ...

    @abstractmethod
    async def get_user_by_username(self, username: str) -> Optional[User]: ...

    # ── UBS ──
    @abstractmethod
    async def create_ubs(self, ubs: UbsCreate) -> Ubs: ...

    @abstractmethod
    async def get_ubs(self, ubs_id: int) -> Optional[Ubs]: ...

    @abstractmethod
    async def list_ubs(self) -> list[Ubs]: ...

    @abstractmethod
    async def update_ubs(self, ubs_id: int, patch: UbsUpdate) -> Optional[Ubs]: ...

    @abstractmethod
    async def delete_ubs(self, ubs_id: int) -> bool: ...

    # ── Employees ──
    @abstractmethod
    async def create_employee(self, employee: EmployeeCreate) -> Employee: ...

    @abstractmethod
    async def get_employee(self, employee_id: int) -> Optional[Employee]: ...

    @abstractmethod
    async def list_employees(
        self, ubs_id: Optional[int] = None, role: Optional[str] = None
    ) -> list[Employee]: ...

    @abstractmethod
    async def update_employee(
        self, employee_id: int, patch: EmployeeUpdate
    ) -> Optional[Employee]: ...

    @abstractmethod
    async def delete_employee(self, employee_id: int) -> bool: ...

    # ── Diseases ──
    @abstractmethod
    async def create_disease(self, disease: DiseaseCreate) -> Disease: ...

    @abstractmethod
    async def get_disease(self, disease_id: int) -> Optional[Disease]: ...

    @abstractmethod
    async def list_diseases(self) -> list[Disease]: ...

    @abstractmethod
    async def update_disease(self, disease_id: int, patch: DiseaseUpdate) -> Optional[Disease]: ...

    @abstractmethod
    async def delete_disease(self, disease_id: int) -> bool: ...

    # ── Medical records ──
    @abstractmethod
    async def create_medical_record(self, record: MedicalRecordCreate) -> MedicalRecord: ...

    @abstractmethod
    async def get_medical_record(self, record_id: int) -> Optional[MedicalRecord]: ...

    @abstractmethod
    async def list_medical_records(
        self, ubs_id: Optional[int] = None, disease_id: Optional[int] = None
    ) -> list[MedicalRecord]: ...

    @abstractmethod
    async def update_medical_record(
        self, record_id: int, patch: MedicalRecordUpdate
    ) -> Optional[MedicalRecord]: ...

    @abstractmethod
    async def delete_medical_record(self, record_id: int) -> bool: ...

    # ── Aggregates ──
    @abstractmethod
    async def statistics(self) -> Statistics: ...

    async def dangling_references(self) -> list[DanglingReference]:
        """Records pointing at a UBS, disease or employee that no longer exists."""
        units = {u.id for u in await self.list_ubs()}
        diseases = {d.id for d in await self.list_diseases()}
        employees = {e.id for e in await self.list_employees()}
        return find_dangling(await self.list_medical_records(), units, diseases, employees)


def find_dangling(
    records: Iterable[MedicalRecord],
    units: set[int],
    diseases: set[int],
    employees: set[int],
) -> list[DanglingReference]:
    dangling = []
    for record in sorted(records, key=lambda r: r.id):
        for field, target, known in (
            ("ubsId", record.ubs_id, units),
            ("diseaseId", record.disease_id, diseases),
            ("employeeId", record.employee_id, employees),
        ):
            if target is not None and target not in known:
                dangling.append(DanglingReference(record_id=record.id, field=field, target_id=target))
    return dangling


def warn_if_referenced(kind: str, target_id: int, record_ids: list[int]) -> None:
    if record_ids:
        logger.warning(
            f"⚠️ {kind} {target_id} removido, mas ainda referenciado por prontuários {record_ids}"
        )


# ══════════════════════════════════════════════════════════════
# In-memory backend
# ══════════════════════════════════════════════════════════════

class MemoryStorage(Storage):
    """Dict-backed store used when no DATABASE_URL is configured, and in tests."""

    def __init__(self):
        self._users: dict[int, User] = {}
        self._ubs: dict[int, Ubs] = {}
        self._employees: dict[int, Employee] = {}
        self._diseases: dict[int, Disease] = {}
        self._records: dict[int, MedicalRecord] = {}
        self._next_id = {"users": 1, "ubs": 1, "employees": 1, "diseases": 1, "records": 1}

    def _allocate(self, table: str) -> int:
        new_id = self._next_id[table]
        self._next_id[table] += 1
        return new_id

    @staticmethod
    def _copy(item: Optional[T]) -> Optional[T]:
        return item.model_copy(deep=True) if item is not None else None

    def _check_ubs(self, ubs_id: Optional[int]) -> None:
        if ubs_id is not None and ubs_id not in self._ubs:
            raise ConstraintError(f"UBS {ubs_id} não existe")

    def _check_record_refs(self, values: dict) -> None:
        self._check_ubs(values.get("ubs_id"))
        disease_id = values.get("disease_id")
        if disease_id is not None and disease_id not in self._diseases:
            raise ConstraintError(f"Doença {disease_id} não existe")
        employee_id = values.get("employee_id")
        if employee_id is not None and employee_id not in self._employees:
            raise ConstraintError(f"Funcionário {employee_id} não existe")

    def _check_disease_name(self, name: str, exclude_id: Optional[int] = None) -> None:
        for disease in self._diseases.values():
            if disease.name == name and disease.id != exclude_id:
                raise ConstraintError(f"Doença '{name}' já cadastrada")

    def _referencing_records(self, field: str, target_id: int) -> list[int]:
        return sorted(r.id for r in self._records.values() if getattr(r, field) == target_id)

    # ── Users ──
    async def create_user(self, user: UserCreate) -> User:
        if any(u.username == user.username for u in self._users.values()):
            raise ConstraintError(f"Usuário '{user.username}' já existe")
        created = User(id=self._allocate("users"), created_at=utcnow(), **user.model_dump())
        self._users[created.id] = created
        return self._copy(created)

    async def get_user(self, user_id: int) -> Optional[User]:
        return self._copy(self._users.get(user_id))

    async def get_user_by_username(self, username: str) -> Optional[User]:
        match = next((u for u in self._users.values() if u.username == username), None)
        return self._copy(match)

    # ── UBS ──
    async def create_ubs(self, ubs: UbsCreate) -> Ubs:
        created = Ubs(id=self._allocate("ubs"), created_at=utcnow(), **ubs.model_dump())
        self._ubs[created.id] = created
        logger.info(f"UBS ✅ id={created.id} criada")
        return self._copy(created)

    async def get_ubs(self, ubs_id: int) -> Optional[Ubs]:
        return self._copy(self._ubs.get(ubs_id))

    async def list_ubs(self) -> list[Ubs]:
        return [self._copy(u) for u in sort_by_name(self._ubs.values())]

    async def update_ubs(self, ubs_id: int, patch: UbsUpdate) -> Optional[Ubs]:
        current = self._ubs.get(ubs_id)
        if current is None:
            return None
        updated = current.model_copy(update=patch.changes())
        self._ubs[ubs_id] = updated
        return self._copy(updated)

    async def delete_ubs(self, ubs_id: int) -> bool:
        if self._ubs.pop(ubs_id, None) is None:
            return False
        for employee_id in [e.id for e in self._employees.values() if e.ubs_id == ubs_id]:
            del self._employees[employee_id]
            warn_if_referenced(
                "Funcionário", employee_id, self._referencing_records("employee_id", employee_id)
            )
        warn_if_referenced("UBS", ubs_id, self._referencing_records("ubs_id", ubs_id))
        logger.info(f"UBS 🗑️ id={ubs_id} removida")
        return True

    # ── Employees ──
    async def create_employee(self, employee: EmployeeCreate) -> Employee:
        self._check_ubs(employee.ubs_id)
        created = Employee(
            id=self._allocate("employees"), created_at=utcnow(), **employee.model_dump()
        )
        self._employees[created.id] = created
        return self._copy(created)

    async def get_employee(self, employee_id: int) -> Optional[Employee]:
        return self._copy(self._employees.get(employee_id))

    async def list_employees(
        self, ubs_id: Optional[int] = None, role: Optional[str] = None
    ) -> list[Employee]:
        employees = [
            e for e in self._employees.values()
            if (ubs_id is None or e.ubs_id == ubs_id) and (role is None or e.role == role)
        ]
        return [self._copy(e) for e in sort_by_name(employees)]

    async def update_employee(
        self, employee_id: int, patch: EmployeeUpdate
    ) -> Optional[Employee]:
        current = self._employees.get(employee_id)
        if current is None:
            return None
        changes = patch.changes()
        self._check_ubs(changes.get("ubs_id"))
        updated = current.model_copy(update=changes)
        self._employees[employee_id] = updated
        return self._copy(updated)

    async def delete_employee(self, employee_id: int) -> bool:
        if self._employees.pop(employee_id, None) is None:
            return False
        warn_if_referenced(
            "Funcionário", employee_id, self._referencing_records("employee_id", employee_id)
        )
        return True

    # ── Diseases ──
    async def create_disease(self, disease: DiseaseCreate) -> Disease:
        self._check_disease_name(disease.name)
        created = Disease(
            id=self._allocate("diseases"), created_at=utcnow(), **disease.model_dump()
        )
        self._diseases[created.id] = created
        return self._copy(created)

    async def get_disease(self, disease_id: int) -> Optional[Disease]:
        return self._copy(self._diseases.get(disease_id))

    async def list_diseases(self) -> list[Disease]:
        return [self._copy(d) for d in sort_by_name(self._diseases.values())]

    async def update_disease(self, disease_id: int, patch: DiseaseUpdate) -> Optional[Disease]:
        current = self._diseases.get(disease_id)
        if current is None:
            return None
        changes = patch.changes()
        if "name" in changes:
            self._check_disease_name(changes["name"], exclude_id=disease_id)
        updated = current.model_copy(update=changes)
        self._diseases[disease_id] = updated
        return self._copy(updated)

    async def delete_disease(self, disease_id: int) -> bool:
        if self._diseases.pop(disease_id, None) is None:
            return False
        warn_if_referenced(
            "Doença", disease_id, self._referencing_records("disease_id", disease_id)
        )
        return True

    # ── Medical records ──
    async def create_medical_record(self, record: MedicalRecordCreate) -> MedicalRecord:
        values = record_values(record)
        self._check_record_refs(values)
        now = utcnow()
        created = MedicalRecord(
            id=self._allocate("records"), created_at=now, updated_at=now, **values
        )
        self._records[created.id] = created
        logger.info(f"Prontuário ✅ id={created.id} status={created.status}")
        return self._copy(created)

    async def get_medical_record(self, record_id: int) -> Optional[MedicalRecord]:
        return self._copy(self._records.get(record_id))

    async def list_medical_records(
        self, ubs_id: Optional[int] = None, disease_id: Optional[int] = None
    ) -> list[MedicalRecord]:
        records = [
            r for r in self._records.values()
            if (ubs_id is None or r.ubs_id == ubs_id)
            and (disease_id is None or r.disease_id == disease_id)
        ]
        return [self._copy(r) for r in sort_recent_first(records)]

    async def update_medical_record(
        self, record_id: int, patch: MedicalRecordUpdate
    ) -> Optional[MedicalRecord]:
        current = self._records.get(record_id)
        if current is None:
            return None
        changes = record_changes(patch)
        self._check_record_refs(changes)
        changes["updated_at"] = utcnow()
        updated = current.model_copy(update=changes)
        self._records[record_id] = updated
        logger.info(f"Prontuário ✏️ id={record_id} campos={sorted(patch.model_fields_set)}")
        return self._copy(updated)

    async def delete_medical_record(self, record_id: int) -> bool:
        if self._records.pop(record_id, None) is None:
            return False
        logger.info(f"Prontuário 🗑️ id={record_id} removido")
        return True

    # ── Aggregates ──
    async def statistics(self) -> Statistics:
        return Statistics(
            unit_count=len(self._ubs),
            active_doctor_count=sum(
                1 for e in self._employees.values() if e.role == "doctor" and e.is_active
            ),
            total_record_count=len(self._records),
            active_record_count=sum(1 for r in self._records.values() if r.status == "active"),
        )
