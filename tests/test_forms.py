from datetime import datetime

import httpx
import pytest
from httpx import ASGITransport

from app.main import create_app
from client.api import ApiClient
from client.cache import QueryCache, record_key, records_key
from client.forms import FormMode, FormState, MedicalRecordForm, ReadOnlyFormError
from client.lists import MedicalRecordList
from models.clinical import FieldPath, parse_date_like
from services.storage import MemoryStorage


@pytest.fixture
def memory_app(settings):
    return create_app(settings=settings, storage=MemoryStorage())


@pytest.fixture
async def api(memory_app):
    async with ApiClient(base_url="http://test", role="nurse", transport=ASGITransport(app=memory_app)) as c:
        yield c


@pytest.fixture
async def admin_api(memory_app):
    async with ApiClient(base_url="http://test", role="admin", transport=ASGITransport(app=memory_app)) as c:
        yield c


@pytest.fixture
def cache():
    return QueryCache()


async def saved_record(api, cache, nome="Maria Souza") -> dict:
    form = MedicalRecordForm(api, cache)
    form.set(FieldPath.MONITORAMENTO_NOME, nome)
    form.set(FieldPath.MONITORAMENTO_DATA_NASCIMENTO, "2024-02-20")
    return await form.submit()


async def test_create_form_starts_ready_with_blank_payload(api, cache):
    form = MedicalRecordForm(api, cache)
    assert form.state is FormState.READY
    assert form.active_section == "monitoramento"
    assert form.get(FieldPath.MATERNA_IDADE) == 0
    assert form.get(FieldPath.ACOMP_ALTA) == ""
    assert form.values["status"] == "active"


async def test_edit_mode_requires_record_id(api, cache):
    with pytest.raises(ValueError):
        MedicalRecordForm(api, cache, mode=FormMode.EDIT)


async def test_identity_fields_sync_to_root(api, cache):
    form = MedicalRecordForm(api, cache)
    form.set(FieldPath.MONITORAMENTO_NOME, "João Lima")
    form.set(FieldPath.MONITORAMENTO_DATA_NASCIMENTO, "2024-01-05")
    assert form.values["patient_name"] == "João Lima"
    assert form.values["patient_birth_date"] == "2024-01-05"

    form.set(FieldPath.MATERNA_NOME_MAE, "Rita Lima")
    assert form.values["patient_name"] == "João Lima"


async def test_field_coercion(api, cache):
    form = MedicalRecordForm(api, cache)
    form.set(FieldPath.MATERNA_IDADE, "27")
    assert form.get(FieldPath.MATERNA_IDADE) == 27
    form.set(FieldPath.MATERNA_NUMERO_CONSULTAS, "")
    assert form.get(FieldPath.MATERNA_NUMERO_CONSULTAS) == 0
    form.set(FieldPath.ACOMP_1_MES_DATA, datetime(2024, 4, 1, 9, 0))
    assert form.get(FieldPath.ACOMP_1_MES_DATA) == "2024-04-01T09:00:00"

    form.set_field("ubs_id", "3")
    assert form.values["ubs_id"] == 3
    form.set_field("ubs_id", "")
    assert form.values["ubs_id"] is None
    with pytest.raises(KeyError):
        form.set_field("patient_name", "x")


async def test_section_navigation_does_not_validate(api, cache):
    form = MedicalRecordForm(api, cache)
    form.set(FieldPath.MATERNA_IDADE, "abc")
    assert form.next_section() == "historia_materna"
    form.go_to("acompanhamento")
    assert form.next_section() == "acompanhamento"
    assert form.previous_section() == "triagem_neonatal"
    assert form.errors == {}
    with pytest.raises(ValueError):
        form.go_to("exames")


async def test_submit_normalizes_blank_dates(api, cache, memory_app):
    completed = []
    form = MedicalRecordForm(api, cache, on_complete=completed.append)
    form.set(FieldPath.MONITORAMENTO_NOME, "Maria Souza")
    form.set(FieldPath.MONITORAMENTO_DATA, "data errada")

    result = await form.submit()

    assert form.state is FormState.DONE
    assert completed == [result]
    assert result["patientName"] == "Maria Souza"
    data = result["data"]
    assert parse_date_like(data["monitoramento"]["data"]) is not None
    assert parse_date_like(data["acompanhamento"]["primeiro_mes"]["data"]) is not None
    assert parse_date_like(result["patientBirthDate"]) is not None

    stored = await memory_app.state.storage.get_medical_record(result["id"])
    assert stored.data == data


async def test_submit_keeps_valid_dates_as_written(api, cache):
    form = MedicalRecordForm(api, cache)
    form.set(FieldPath.MONITORAMENTO_NOME, "Maria Souza")
    form.set(FieldPath.MONITORAMENTO_DATA, "01/03/2024")
    result = await form.submit()
    assert result["data"]["monitoramento"]["data"] == "01/03/2024"


async def test_invalid_form_stays_ready_with_inline_errors(api, cache, memory_app):
    form = MedicalRecordForm(api, cache)
    form.set(FieldPath.MATERNA_IDADE, "vinte")

    assert await form.submit() is None
    assert form.state is FormState.READY
    assert form.error_for(FieldPath.MATERNA_IDADE)
    assert form.error_for("patientName")
    assert await memory_app.state.storage.list_medical_records() == []

    form.set(FieldPath.MATERNA_IDADE, "20")
    assert form.error_for(FieldPath.MATERNA_IDADE) is None


async def test_successful_create_invalidates_lists(api, cache):
    listing = MedicalRecordList(api, cache)
    assert await listing.load() == []
    assert records_key() in cache

    await saved_record(api, cache)
    assert records_key() not in cache
    assert [r["patientName"] for r in await listing.refresh()] == ["Maria Souza"]


async def test_edit_loads_and_updates(api, cache):
    created = await saved_record(api, cache)
    form = MedicalRecordForm(api, cache, mode=FormMode.EDIT, record_id=created["id"])
    assert form.state is FormState.LOADING

    await form.load()
    assert form.state is FormState.READY
    assert form.get(FieldPath.MONITORAMENTO_NOME) == "Maria Souza"
    assert form.values["patient_name"] == "Maria Souza"
    assert record_key(created["id"]) in cache

    form.set_field("status", "critical")
    form.set(FieldPath.HOSPITALAR_TIPO_PARTO, "Cesárea")
    result = await form.submit()

    assert form.state is FormState.DONE
    assert result["id"] == created["id"]
    assert result["status"] == "critical"
    assert result["data"]["historico_hospitalar"]["tipo_parto"] == "Cesárea"
    assert record_key(created["id"]) not in cache


async def test_edit_unknown_record_reports_not_found(api, cache):
    form = MedicalRecordForm(api, cache, mode=FormMode.EDIT, record_id=999)
    await form.load()
    assert form.not_found
    assert form.error_message == "Prontuário não encontrado"


async def test_view_mode_is_read_only(api, cache):
    created = await saved_record(api, cache)
    form = MedicalRecordForm(api, cache, mode=FormMode.VIEW, record_id=created["id"])
    await form.load()

    assert form.read_only
    assert not form.can_submit
    assert form.get(FieldPath.MONITORAMENTO_NOME) == "Maria Souza"
    with pytest.raises(ReadOnlyFormError):
        form.set(FieldPath.MONITORAMENTO_NOME, "Outra")
    with pytest.raises(ReadOnlyFormError):
        form.set_field("status", "completed")
    with pytest.raises(ReadOnlyFormError):
        await form.submit()
    assert form.state is FormState.READY


async def test_server_rejection_is_shown_verbatim(memory_app, cache):
    async with ApiClient(base_url="http://test", role="staff", transport=ASGITransport(app=memory_app)) as staff:
        form = MedicalRecordForm(staff, cache)
        form.set(FieldPath.MONITORAMENTO_NOME, "Maria Souza")
        assert await form.submit() is None

    assert form.state is FormState.READY
    assert form.error_message == "Acesso negado: staff não pode create medical_record"


async def test_network_failure_returns_to_ready(cache):
    def refuse(request):
        raise httpx.ConnectError("conexão recusada", request=request)

    async with ApiClient(base_url="http://test", transport=httpx.MockTransport(refuse)) as offline:
        form = MedicalRecordForm(offline, cache)
        form.set(FieldPath.MONITORAMENTO_NOME, "Maria Souza")
        assert await form.submit() is None

    assert form.state is FormState.READY
    assert form.error_message == "conexão recusada"


async def test_out_of_list_choice_is_a_warning(api, cache):
    form = MedicalRecordForm(api, cache)
    form.set(FieldPath.HOSPITALAR_TIPO_PARTO, "Domiciliar")
    form.set(FieldPath.TRIAGEM_OLHO_DIREITO, "Normal")
    assert list(form.warnings) == [FieldPath.HOSPITALAR_TIPO_PARTO.value]
    assert "Cesárea" in form.options(FieldPath.HOSPITALAR_TIPO_PARTO)


async def test_async_on_complete_is_awaited(api, cache):
    seen = []

    async def done(record):
        seen.append(record["id"])

    form = MedicalRecordForm(api, cache, on_complete=done)
    form.set(FieldPath.MONITORAMENTO_NOME, "Maria Souza")
    result = await form.submit()
    assert seen == [result["id"]]


async def test_list_delete_refreshes(admin_api, cache):
    created = await saved_record(admin_api, cache)
    listing = MedicalRecordList(admin_api, cache)
    assert len(await listing.load()) == 1
    assert await listing.delete(created["id"]) == []


async def test_unreadable_birth_date_mirrors_one_timestamp(api, cache):
    form = MedicalRecordForm(api, cache)
    form.set(FieldPath.MONITORAMENTO_NOME, "Maria Souza")
    form.set(FieldPath.MONITORAMENTO_DATA_NASCIMENTO, "não sei")

    values = form.normalized()
    nested = values["data"]["monitoramento"]["data_nascimento"]
    assert parse_date_like(values["patient_birth_date"]) == parse_date_like(nested)
    assert values["data"]["monitoramento"]["data"] == nested

    result = await form.submit()
    stored_nested = result["data"]["monitoramento"]["data_nascimento"]
    assert parse_date_like(result["patientBirthDate"]) == parse_date_like(stored_nested)


async def test_root_birth_date_follows_nested_value(api, cache):
    form = MedicalRecordForm(api, cache)
    form.set(FieldPath.MONITORAMENTO_NOME, "Maria Souza")
    form.set(FieldPath.MONITORAMENTO_DATA_NASCIMENTO, "20/02/2024")
    values = form.normalized()
    assert values["data"]["monitoramento"]["data_nascimento"] == "20/02/2024"
    assert values["patient_birth_date"] == "2024-02-20T00:00:00"
