"""
services/sql_storage.py — Relational Record Store
UBS Manager v1.0
Storage contract over SQLAlchemy 2.0 Async
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from app import database as orm
from core.errors import ConstraintError
from core.logging_config import get_logger
from models.schemas import (
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
from services.storage import (
    Storage,
    record_changes,
    record_values,
    sort_by_name,
    utcnow,
    warn_if_referenced,
)

logger = get_logger("storage.sql")


class DatabaseStorage(Storage):
    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._sessionmaker = orm.create_sessionmaker(engine)

    @classmethod
    def from_url(cls, database_url: str, echo: bool = False, **engine_kwargs) -> "DatabaseStorage":
        return cls(orm.create_engine(database_url, echo=echo, **engine_kwargs))

    async def init(self) -> None:
        await orm.init_db(self.engine)
        logger.info("✅ Database tables created/verified")

    async def close(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        async with self._sessionmaker() as session:
            yield session

    async def _commit(self, session: AsyncSession, what: str) -> None:
        try:
            await session.commit()
        except IntegrityError as exc:
            await session.rollback()
            logger.warning(f"❌ Constraint violation on {what}: {exc.orig}")
            raise ConstraintError(f"Violação de restrição em {what}") from exc

    async def _ensure_exists(self, session: AsyncSession, model, target_id: Optional[int], label: str) -> None:
        if target_id is not None and await session.get(model, target_id) is None:
            raise ConstraintError(f"{label} {target_id} não existe")

    async def _ensure_record_refs(self, session: AsyncSession, values: dict) -> None:
        await self._ensure_exists(session, orm.Ubs, values.get("ubs_id"), "UBS")
        await self._ensure_exists(session, orm.Disease, values.get("disease_id"), "Doença")
        await self._ensure_exists(session, orm.Employee, values.get("employee_id"), "Funcionário")

    async def _referencing_records(self, session: AsyncSession, column, target_id: int) -> list[int]:
        result = await session.execute(
            select(orm.MedicalRecord.id).where(column == target_id).order_by(orm.MedicalRecord.id)
        )
        return list(result.scalars().all())

    async def _insert(self, session: AsyncSession, row, what: str):
        session.add(row)
        await self._commit(session, what)
        await session.refresh(row)
        return row

    async def _apply(self, session: AsyncSession, row, changes: dict, what: str):
        for name, value in changes.items():
            setattr(row, name, value)
        await self._commit(session, what)
        await session.refresh(row)
        return row

    # ── Users ──
    async def create_user(self, user: UserCreate) -> User:
        async with self._session() as session:
            row = orm.User(created_at=utcnow(), **user.model_dump())
            return User.model_validate(await self._insert(session, row, "users"))

    async def get_user(self, user_id: int) -> Optional[User]:
        async with self._session() as session:
            row = await session.get(orm.User, user_id)
            return User.model_validate(row) if row else None

    async def get_user_by_username(self, username: str) -> Optional[User]:
        async with self._session() as session:
            result = await session.execute(select(orm.User).where(orm.User.username == username))
            row = result.scalar_one_or_none()
            return User.model_validate(row) if row else None

    # ── UBS ──
    async def create_ubs(self, ubs: UbsCreate) -> Ubs:
        async with self._session() as session:
            row = await self._insert(session, orm.Ubs(created_at=utcnow(), **ubs.model_dump()), "ubs")
            logger.info(f"UBS ✅ id={row.id} criada")
            return Ubs.model_validate(row)

    async def get_ubs(self, ubs_id: int) -> Optional[Ubs]:
        async with self._session() as session:
            row = await session.get(orm.Ubs, ubs_id)
            return Ubs.model_validate(row) if row else None

    async def list_ubs(self) -> list[Ubs]:
        async with self._session() as session:
            result = await session.execute(select(orm.Ubs))
            return sort_by_name(Ubs.model_validate(row) for row in result.scalars().all())

    async def update_ubs(self, ubs_id: int, patch: UbsUpdate) -> Optional[Ubs]:
        async with self._session() as session:
            row = await session.get(orm.Ubs, ubs_id)
            if row is None:
                return None
            return Ubs.model_validate(await self._apply(session, row, patch.changes(), "ubs"))

    async def delete_ubs(self, ubs_id: int) -> bool:
        async with self._session() as session:
            row = await session.get(orm.Ubs, ubs_id)
            if row is None:
                return False
            referencing = await self._referencing_records(session, orm.MedicalRecord.ubs_id, ubs_id)
            staff = (
                await session.execute(select(orm.Employee.id).where(orm.Employee.ubs_id == ubs_id))
            ).scalars().all()
            staff_referencing = {
                employee_id: await self._referencing_records(
                    session, orm.MedicalRecord.employee_id, employee_id
                )
                for employee_id in staff
            }
            # Not every engine enforces ON DELETE CASCADE (SQLite needs a pragma).
            await session.execute(delete(orm.Employee).where(orm.Employee.ubs_id == ubs_id))
            await session.delete(row)
            await self._commit(session, "ubs")
        warn_if_referenced("UBS", ubs_id, referencing)
        for employee_id, record_ids in staff_referencing.items():
            warn_if_referenced("Funcionário", employee_id, record_ids)
        logger.info(f"UBS 🗑️ id={ubs_id} removida")
        return True

    # ── Employees ──
    async def create_employee(self, employee: EmployeeCreate) -> Employee:
        async with self._session() as session:
            await self._ensure_exists(session, orm.Ubs, employee.ubs_id, "UBS")
            row = orm.Employee(created_at=utcnow(), **employee.model_dump())
            return Employee.model_validate(await self._insert(session, row, "employees"))

    async def get_employee(self, employee_id: int) -> Optional[Employee]:
        async with self._session() as session:
            row = await session.get(orm.Employee, employee_id)
            return Employee.model_validate(row) if row else None

    async def list_employees(
        self, ubs_id: Optional[int] = None, role: Optional[str] = None
    ) -> list[Employee]:
        query = select(orm.Employee)
        if ubs_id is not None:
            query = query.where(orm.Employee.ubs_id == ubs_id)
        if role is not None:
            query = query.where(orm.Employee.role == role)
        async with self._session() as session:
            result = await session.execute(query)
            return sort_by_name(Employee.model_validate(row) for row in result.scalars().all())

    async def update_employee(
        self, employee_id: int, patch: EmployeeUpdate
    ) -> Optional[Employee]:
        async with self._session() as session:
            row = await session.get(orm.Employee, employee_id)
            if row is None:
                return None
            changes = patch.changes()
            await self._ensure_exists(session, orm.Ubs, changes.get("ubs_id"), "UBS")
            return Employee.model_validate(await self._apply(session, row, changes, "employees"))

    async def delete_employee(self, employee_id: int) -> bool:
        async with self._session() as session:
            row = await session.get(orm.Employee, employee_id)
            if row is None:
                return False
            referencing = await self._referencing_records(
                session, orm.MedicalRecord.employee_id, employee_id
            )
            await session.delete(row)
            await self._commit(session, "employees")
        warn_if_referenced("Funcionário", employee_id, referencing)
        return True

    # ── Diseases ──
    async def create_disease(self, disease: DiseaseCreate) -> Disease:
        async with self._session() as session:
            row = orm.Disease(created_at=utcnow(), **disease.model_dump())
            return Disease.model_validate(await self._insert(session, row, "diseases"))

    async def get_disease(self, disease_id: int) -> Optional[Disease]:
        async with self._session() as session:
            row = await session.get(orm.Disease, disease_id)
            return Disease.model_validate(row) if row else None

    async def list_diseases(self) -> list[Disease]:
        async with self._session() as session:
            result = await session.execute(select(orm.Disease))
            return sort_by_name(Disease.model_validate(row) for row in result.scalars().all())

    async def update_disease(self, disease_id: int, patch: DiseaseUpdate) -> Optional[Disease]:
        async with self._session() as session:
            row = await session.get(orm.Disease, disease_id)
            if row is None:
                return None
            return Disease.model_validate(await self._apply(session, row, patch.changes(), "diseases"))

    async def delete_disease(self, disease_id: int) -> bool:
        async with self._session() as session:
            row = await session.get(orm.Disease, disease_id)
            if row is None:
                return False
            referencing = await self._referencing_records(
                session, orm.MedicalRecord.disease_id, disease_id
            )
            await session.delete(row)
            await self._commit(session, "diseases")
        warn_if_referenced("Doença", disease_id, referencing)
        return True

    # ── Medical records ──
    async def create_medical_record(self, record: MedicalRecordCreate) -> MedicalRecord:
        values = record_values(record)
        async with self._session() as session:
            await self._ensure_record_refs(session, values)
            now = utcnow()
            row = orm.MedicalRecord(created_at=now, updated_at=now, **values)
            row = await self._insert(session, row, "medical_records")
            logger.info(f"Prontuário ✅ id={row.id} status={row.status}")
            return MedicalRecord.model_validate(row)

    async def get_medical_record(self, record_id: int) -> Optional[MedicalRecord]:
        async with self._session() as session:
            row = await session.get(orm.MedicalRecord, record_id)
            return MedicalRecord.model_validate(row) if row else None

    async def list_medical_records(
        self, ubs_id: Optional[int] = None, disease_id: Optional[int] = None
    ) -> list[MedicalRecord]:
        query = select(orm.MedicalRecord).order_by(
            orm.MedicalRecord.created_at.desc(), orm.MedicalRecord.id.desc()
        )
        if ubs_id is not None:
            query = query.where(orm.MedicalRecord.ubs_id == ubs_id)
        if disease_id is not None:
            query = query.where(orm.MedicalRecord.disease_id == disease_id)
        async with self._session() as session:
            result = await session.execute(query)
            return [MedicalRecord.model_validate(row) for row in result.scalars().all()]

    async def update_medical_record(
        self, record_id: int, patch: MedicalRecordUpdate
    ) -> Optional[MedicalRecord]:
        async with self._session() as session:
            row = await session.get(orm.MedicalRecord, record_id)
            if row is None:
                return None
            changes = record_changes(patch)
            await self._ensure_record_refs(session, changes)
            changes["updated_at"] = utcnow()
            row = await self._apply(session, row, changes, "medical_records")
            logger.info(f"Prontuário ✏️ id={record_id} campos={sorted(patch.model_fields_set)}")
            return MedicalRecord.model_validate(row)

    async def delete_medical_record(self, record_id: int) -> bool:
        async with self._session() as session:
            row = await session.get(orm.MedicalRecord, record_id)
            if row is None:
                return False
            await session.delete(row)
            await self._commit(session, "medical_records")
        logger.info(f"Prontuário 🗑️ id={record_id} removido")
        return True

    # ── Aggregates ──
    async def statistics(self) -> Statistics:
        async with self._session() as session:
            async def count(query) -> int:
                return (await session.execute(query)).scalar_one()

            return Statistics(
                unit_count=await count(select(func.count()).select_from(orm.Ubs)),
                active_doctor_count=await count(
                    select(func.count()).select_from(orm.Employee).where(
                        orm.Employee.role == "doctor", orm.Employee.is_active.is_(True)
                    )
                ),
                total_record_count=await count(select(func.count()).select_from(orm.MedicalRecord)),
                active_record_count=await count(
                    select(func.count()).select_from(orm.MedicalRecord).where(
                        orm.MedicalRecord.status == "active"
                    )
                ),
            )
