import copy
from datetime import date, datetime

import pytest

from models.clinical import (
    DATE_PATHS,
    LEAVES,
    SECTIONS,
    FieldPath,
    LeafKind,
    empty_payload,
    get_leaf,
    leaf_spec,
    parse_date_like,
    set_leaf,
    validate,
)


def test_valid_document_is_preserved(payload):
    doc = payload()
    result = validate(doc)
    assert result.ok
    assert result.errors == []
    assert result.document.to_document() == doc


def test_sections_in_form_order():
    assert SECTIONS == (
        "monitoramento",
        "historia_materna",
        "historico_hospitalar",
        "triagem_neonatal",
        "acompanhamento",
    )


def test_every_field_path_is_a_leaf():
    assert {p.value for p in FieldPath} == set(LEAVES)
    assert leaf_spec(FieldPath.MATERNA_IDADE).kind is LeafKind.INTEGER
    assert leaf_spec(FieldPath.ACOMP_OFTALMOLOGICO).kind is LeafKind.BOOLEAN
    assert leaf_spec(FieldPath.MONITORAMENTO_DATA_NASCIMENTO).kind is LeafKind.DATE
    assert leaf_spec(FieldPath.HOSPITALAR_TIPO_PARTO).choices == ("Normal", "Cesárea", "Fórceps")
    assert FieldPath.ACOMP_1_MES_DATA in DATE_PATHS


def test_missing_leaf_is_reported_with_its_path(payload):
    doc = payload()
    del doc["monitoramento"]["nome"]
    result = validate(doc)
    assert not result.ok
    assert [e.path for e in result.errors] == ["monitoramento.nome"]


def test_missing_section_is_reported(payload):
    doc = payload()
    del doc["triagem_neonatal"]
    result = validate(doc)
    assert not result.ok
    assert "triagem_neonatal" in [e.path for e in result.errors]


@pytest.mark.parametrize(
    "path, value",
    [
        (FieldPath.MATERNA_IDADE, "24"),
        (FieldPath.MATERNA_IDADE, True),
        (FieldPath.MATERNA_NUMERO_CONSULTAS, 6.5),
        (FieldPath.ACOMP_OFTALMOLOGICO, "Sim"),
        (FieldPath.ACOMP_NEUROLOGICO, 1),
        (FieldPath.MONITORAMENTO_NOME, 42),
        (FieldPath.TRIAGEM_OLHO_DIREITO, None),
    ],
)
def test_wrong_leaf_type_is_rejected(payload, path, value):
    doc = payload()
    set_leaf(doc, path, value)
    result = validate(doc)
    assert not result.ok
    assert [e.path for e in result.errors] == [path.value]


@pytest.mark.parametrize("value", ["", "not a date", "31/02/2024", False])
def test_unparseable_date_is_rejected(payload, value):
    doc = payload()
    set_leaf(doc, FieldPath.ACOMP_6_MES_DATA, value)
    result = validate(doc)
    assert not result.ok
    assert result.errors[0].path == FieldPath.ACOMP_6_MES_DATA.value


@pytest.mark.parametrize("value", ["2024-03-01", "2024-03-01T10:30:00", "01/03/2024"])
def test_date_strings_are_kept_as_written(payload, value):
    doc = payload()
    set_leaf(doc, FieldPath.MONITORAMENTO_DATA, value)
    result = validate(doc)
    assert result.ok
    assert get_leaf(result.document.to_document(), FieldPath.MONITORAMENTO_DATA) == value


def test_choice_outside_list_is_accepted(payload):
    doc = payload()
    set_leaf(doc, FieldPath.HOSPITALAR_TIPO_PARTO, "Domiciliar")
    assert validate(doc).ok


def test_unknown_keys_are_dropped(payload):
    doc = payload()
    doc["monitoramento"]["apelido"] = "Mari"
    doc["extra"] = {"x": 1}
    result = validate(doc)
    assert result.ok
    stored = result.document.to_document()
    assert "apelido" not in stored["monitoramento"]
    assert "extra" not in stored


def test_long_section_names_are_accepted(payload):
    doc = payload()
    legacy = copy.deepcopy(doc)
    legacy["monitoramento_sifilis_congenita"] = legacy.pop("monitoramento")
    legacy["acompanhamento_ambulatorio_alto_risco"] = legacy.pop("acompanhamento")
    result = validate(legacy)
    assert result.ok
    assert result.document.to_document() == doc


def test_empty_payload_fails_only_on_dates():
    doc = empty_payload()
    assert get_leaf(doc, FieldPath.MATERNA_IDADE) == 0
    assert get_leaf(doc, FieldPath.ACOMP_AUDIOLOGICO) is False
    assert get_leaf(doc, FieldPath.ACOMP_UBS_REFERENCIA) == ""

    result = validate(doc)
    assert not result.ok
    assert {e.path for e in result.errors} == {p.value for p in DATE_PATHS}


def test_parse_date_like():
    assert parse_date_like("2024-03-01") == datetime(2024, 3, 1)
    assert parse_date_like("01/03/2024") == datetime(2024, 3, 1)
    assert parse_date_like(date(2024, 3, 1)) == datetime(2024, 3, 1)
    assert parse_date_like("   ") is None
    assert parse_date_like(20240301) is None
