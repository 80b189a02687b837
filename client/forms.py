"""
client/forms.py — Medical Record Form Controller
UBS Manager v1.0
Create / edit / view of a prontuário, section by section
"""

import copy
import inspect
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

from pydantic import ValidationError

from client.api import ApiClient, ApiError, ApiNotFound, NetworkError
from client.cache import QueryCache, record_key
from core.errors import AppError, ValidationFailed
from core.logging_config import get_logger
from models.clinical import (
    DATE_PATHS,
    SECTIONS,
    FieldPath,
    LeafKind,
    empty_payload,
    get_leaf,
    issues_from_error,
    leaf_spec,
    parse_date_like,
    set_leaf,
)
from models.schemas import RECORD_STATUSES, MedicalRecordCreate
from services.storage import utcnow

logger = get_logger("client.forms")

RECORDS_PREFIX = "/api/medical-records"
UBS_KEY = ("/api/ubs",)
DISEASES_KEY = ("/api/diseases",)

ROOT_FIELDS = ("status", "disease_id", "ubs_id", "employee_id")
ID_FIELDS = ("disease_id", "ubs_id", "employee_id")

OnComplete = Callable[[dict], Union[None, Awaitable[None]]]


class FormMode(str, Enum):
    CREATE = "create"
    EDIT = "edit"
    VIEW = "view"


class FormState(str, Enum):
    LOADING = "loading"
    READY = "ready"
    SUBMITTING = "submitting"
    DONE = "done"


class ReadOnlyFormError(AppError):
    pass


# ══════════════════════════════════════
# Value helpers
# ══════════════════════════════════════

def _merge(base: dict, incoming: dict) -> dict:
    for key, value in incoming.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


def _coerce(path: FieldPath, value: Any) -> Any:
    kind = leaf_spec(path).kind
    if kind is LeafKind.INTEGER and isinstance(value, str):
        text = value.strip()
        try:
            return int(text) if text else 0
        except ValueError:
            # Left as typed; validation reports it next to the field.
            return value
    if kind is LeafKind.DATE and hasattr(value, "isoformat"):
        return value.isoformat()
    return value


def _coerce_id(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


def _now_iso() -> str:
    return utcnow().isoformat()


# ══════════════════════════════════════
# Controller
# ══════════════════════════════════════

class MedicalRecordForm:
    """
    LOADING → READY → SUBMITTING → DONE, with SUBMITTING falling back to
    READY on any error. Create starts READY; edit and view start LOADING
    until load() has fetched the record.
    """

    def __init__(
        self,
        api: ApiClient,
        cache: QueryCache,
        mode: FormMode = FormMode.CREATE,
        record_id: Optional[int] = None,
        on_complete: Optional[OnComplete] = None,
    ):
        mode = FormMode(mode)
        if mode is not FormMode.CREATE and record_id is None:
            raise ValueError(f"record_id é obrigatório no modo {mode.value}")

        self.api = api
        self.cache = cache
        self.mode = mode
        self.record_id = record_id
        self.on_complete = on_complete

        self.state = FormState.READY if mode is FormMode.CREATE else FormState.LOADING
        self.active_section = SECTIONS[0]
        self.values: dict[str, Any] = {
            "patient_name": "",
            "patient_birth_date": "",
            "disease_id": None,
            "ubs_id": None,
            "employee_id": None,
            "status": "active",
            "data": empty_payload(),
        }
        self.errors: dict[str, str] = {}
        self.error_message: Optional[str] = None
        self.not_found = False
        self.result: Optional[dict] = None
        self.ubs_options: list[dict] = []
        self.disease_options: list[dict] = []

    @property
    def read_only(self) -> bool:
        return self.mode is FormMode.VIEW

    @property
    def can_submit(self) -> bool:
        return not self.read_only and self.state is FormState.READY

    # ── Loading ──
    async def load(self) -> None:
        self.ubs_options = await self.cache.fetch(UBS_KEY, self.api.list_ubs)
        self.disease_options = await self.cache.fetch(DISEASES_KEY, self.api.list_diseases)

        if self.mode is FormMode.CREATE:
            self.state = FormState.READY
            return

        try:
            record = await self.cache.fetch(
                record_key(self.record_id),
                lambda: self.api.get_medical_record(self.record_id),
            )
        except ApiNotFound as exc:
            self.not_found = True
            self.error_message = exc.message
            self.state = FormState.READY
            return

        self.values.update(
            patient_name=record["patientName"],
            patient_birth_date=record["patientBirthDate"],
            disease_id=record.get("diseaseId"),
            ubs_id=record.get("ubsId"),
            employee_id=record.get("employeeId"),
            status=record["status"],
            data=_merge(empty_payload(), copy.deepcopy(record["data"])),
        )
        self.state = FormState.READY

    # ── Field access ──
    def get(self, path: FieldPath) -> Any:
        return get_leaf(self.values["data"], FieldPath(path))

    def set(self, path: FieldPath, value: Any) -> None:
        self._ensure_writable()
        path = FieldPath(path)
        value = _coerce(path, value)
        set_leaf(self.values["data"], path, value)
        self.errors.pop(f"data.{path.value}", None)

        # One-way sync: the nested identity drives the root columns.
        if path is FieldPath.MONITORAMENTO_NOME:
            self.values["patient_name"] = value
        elif path is FieldPath.MONITORAMENTO_DATA_NASCIMENTO:
            self.values["patient_birth_date"] = value

    def set_field(self, name: str, value: Any) -> None:
        self._ensure_writable()
        if name not in ROOT_FIELDS:
            raise KeyError(name)
        if name in ID_FIELDS:
            value = _coerce_id(value)
        self.values[name] = value

    def options(self, path: FieldPath) -> tuple[str, ...]:
        return leaf_spec(FieldPath(path)).choices

    @property
    def status_options(self) -> tuple[str, ...]:
        return RECORD_STATUSES

    def error_for(self, path: Union[FieldPath, str]) -> Optional[str]:
        if isinstance(path, FieldPath):
            return self.errors.get(f"data.{path.value}")
        return self.errors.get(path)

    @property
    def warnings(self) -> dict[str, str]:
        """Select leaves holding a value outside their offered list."""
        found = {}
        for path in FieldPath:
            choices = leaf_spec(path).choices
            value = self.get(path)
            if choices and value and value not in choices:
                found[path.value] = f"'{value}' não está entre as opções"
        return found

    # ── Section navigation (never validates) ──
    def go_to(self, section: str) -> None:
        if section not in SECTIONS:
            raise ValueError(f"Seção desconhecida: {section}")
        self.active_section = section

    def next_section(self) -> str:
        index = SECTIONS.index(self.active_section)
        self.active_section = SECTIONS[min(index + 1, len(SECTIONS) - 1)]
        return self.active_section

    def previous_section(self) -> str:
        index = SECTIONS.index(self.active_section)
        self.active_section = SECTIONS[max(index - 1, 0)]
        return self.active_section

    # ── Submission ──
    def normalized(self) -> dict:
        """
        Copy of the current values with every date made parseable: a value
        that already reads as a date is kept, anything else becomes now.
        """
        values = copy.deepcopy(self.values)
        now = _now_iso()
        for path in DATE_PATHS:
            if parse_date_like(get_leaf(values["data"], path)) is None:
                set_leaf(values["data"], path, now)

        # The root column mirrors the nested birth date.
        birth = get_leaf(values["data"], FieldPath.MONITORAMENTO_DATA_NASCIMENTO)
        values["patient_birth_date"] = parse_date_like(birth).isoformat()
        return values

    def _body(self, values: dict) -> dict:
        return {
            "patientName": values["patient_name"],
            "patientBirthDate": values["patient_birth_date"],
            "diseaseId": values["disease_id"],
            "ubsId": values["ubs_id"],
            "employeeId": values["employee_id"],
            "status": values["status"],
            "data": values["data"],
        }

    def check(self, values: dict) -> MedicalRecordCreate:
        """Pre-submit validation of already-normalized values."""
        try:
            return MedicalRecordCreate.model_validate(self._body(values))
        except ValidationError as exc:
            raise ValidationFailed(issues_from_error(exc)) from exc

    async def submit(self) -> Optional[dict]:
        self._ensure_writable()
        if self.state is not FormState.READY:
            return None

        values = self.normalized()
        try:
            payload = self.check(values)
        except ValidationFailed as exc:
            self.errors = {issue.path: issue.reason for issue in exc.issues}
            logger.info(f"⚠️ Formulário inválido: {len(self.errors)} campo(s)")
            return None

        self.values = values
        self.errors = {}
        self.error_message = None
        self.state = FormState.SUBMITTING
        body = payload.model_dump(mode="json", by_alias=True)

        try:
            if self.mode is FormMode.CREATE:
                result = await self.api.create_medical_record(body)
            else:
                result = await self.api.update_medical_record(self.record_id, body)
        except ApiError as exc:
            self.error_message = exc.message
            self.errors = {e["path"]: e["reason"] for e in exc.errors if "path" in e}
            self.state = FormState.READY
            return None
        except NetworkError as exc:
            self.error_message = exc.message
            self.state = FormState.READY
            return None

        self.cache.invalidate(RECORDS_PREFIX)
        if self.mode is FormMode.EDIT:
            self.cache.invalidate(*record_key(self.record_id))

        self.result = result
        self.state = FormState.DONE
        logger.info(f"✅ Prontuário salvo id={result.get('id')}")

        if self.on_complete is not None:
            outcome = self.on_complete(result)
            if inspect.isawaitable(outcome):
                await outcome
        return result

    def _ensure_writable(self) -> None:
        if self.read_only:
            raise ReadOnlyFormError("Prontuário aberto somente para leitura")
