"""
models/clinical.py — Clinical Payload (Sífilis Congênita)
UBS Manager v1.0
Nested Pydantic tree for MedicalRecord.data + structural validator
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Annotated, Any, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    PlainValidator,
    StrictBool,
    StrictInt,
    StrictStr,
    ValidationError,
    WithJsonSchema,
)


# ══════════════════════════════════════
# Choice lists (offered by the form, stored as plain strings)
# ══════════════════════════════════════

ENCAMINHADO_POR = ("UBS", "Hospital", "Maternidade", "Outro")
TRATAMENTO_MATERNO = ("Adequado", "Inadequado", "Não realizado")
TRATOU_PARCEIRO = ("Sim", "Não", "Parcialmente")
TIPO_PARTO = ("Normal", "Cesárea", "Fórceps")
RESULTADO_TRIAGEM = ("Normal", "Alterado", "Não realizado")
LIQUOR_ALTERADO = ("Sim", "Não", "Não realizado")
SIM_NAO = ("Sim", "Não")


# ══════════════════════════════════════
# Date leaves
# ══════════════════════════════════════

_DATE_FORMATS = ("%d/%m/%Y", "%d/%m/%Y %H:%M")


def parse_date_like(value: Any) -> Optional[datetime]:
    """
    Best-effort conversion of a leaf value to a datetime.
    Accepts date/datetime objects, ISO-8601 strings and dd/mm/yyyy.
    Returns None when the value is not a calendar date.
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def _date_like(value: Any) -> Union[datetime, date, str]:
    # Bool is an int subclass; neither is a date.
    if isinstance(value, bool) or parse_date_like(value) is None:
        raise ValueError("valor deve ser uma data válida")
    return value


DateLike = Annotated[
    Union[datetime, date, str],
    PlainValidator(_date_like),
    WithJsonSchema({"type": "string", "format": "date-time"}),
]


def _choice(options: tuple[str, ...]) -> Any:
    return Field(json_schema_extra={"choices": list(options)})


class _Section(BaseModel):
    model_config = ConfigDict(extra="ignore")


# ══════════════════════════════════════
# 1. Monitoramento
# ══════════════════════════════════════

class Monitoramento(_Section):
    matricula: StrictStr
    data: DateLike
    nome: StrictStr
    data_nascimento: DateLike
    encaminhado_por: StrictStr = _choice(ENCAMINHADO_POR)


# ══════════════════════════════════════
# 2. História materna
# ══════════════════════════════════════

class HistoriaMaterna(_Section):
    nome_mae: StrictStr
    idade: StrictInt
    anos_pre_natal_ubs: StrictStr
    numero_consultas: StrictInt
    tratamento: StrictStr = _choice(TRATAMENTO_MATERNO)
    tratou_parceiro: StrictStr = _choice(TRATOU_PARCEIRO)
    observacoes: StrictStr


# ══════════════════════════════════════
# 3. Histórico hospitalar
# ══════════════════════════════════════

class HistoricoHospitalar(_Section):
    local_nascimento: StrictStr
    tipo_parto: StrictStr = _choice(TIPO_PARTO)
    idade_gestacional: StrictStr
    semanas_apgar: StrictStr
    teste_sorologico: StrictStr
    tratamento: StrictStr
    exames_radiologicos: StrictStr
    liquor: StrictStr


# ══════════════════════════════════════
# 4. Triagem neonatal
# ══════════════════════════════════════

class ReflexoVermelho(_Section):
    olho_direito: StrictStr = _choice(RESULTADO_TRIAGEM)
    olho_esquerdo: StrictStr = _choice(RESULTADO_TRIAGEM)


class TriagemAuditiva(_Section):
    emissao_otoacustica_evocada: StrictStr = _choice(RESULTADO_TRIAGEM)
    potencial_evocado_auditivo_tronco: StrictStr = _choice(RESULTADO_TRIAGEM)
    ouvido_direito: StrictStr = _choice(RESULTADO_TRIAGEM)
    ouvido_esquerdo: StrictStr = _choice(RESULTADO_TRIAGEM)


class OximetriaPulso(_Section):
    msd: StrictStr
    mid: StrictStr


class TriagemNeonatal(_Section):
    reflexo_vermelho: ReflexoVermelho
    triagem_auditiva: TriagemAuditiva
    oximetria_pulso: OximetriaPulso
    teste_linguinha: StrictStr = _choice(RESULTADO_TRIAGEM)
    observacoes: StrictStr


# ══════════════════════════════════════
# 5. Acompanhamento ambulatorial de alto risco
# ══════════════════════════════════════

class Checkpoint(_Section):
    data: DateLike
    resultado: StrictStr
    tratamento: StrictStr


class Acompanhamentos(_Section):
    oftalmologico: StrictBool
    neurologico: StrictBool
    audiologico: StrictBool
    outros: StrictStr


class Acompanhamento(_Section):
    data_primeira_consulta: DateLike
    exame_sorologia: StrictStr
    primeiro_mes: Checkpoint
    terceiro_mes: Checkpoint
    sexto_mes: Checkpoint
    decimo_oito_mes: Checkpoint
    liquor_alterado: StrictStr = _choice(LIQUOR_ALTERADO)
    acompanhamentos: Acompanhamentos
    observacoes: StrictStr
    alta_ambulatorio_alto_risco: StrictStr = _choice(SIM_NAO)
    ubs_referencia: StrictStr


# ══════════════════════════════════════
# Payload root
# ══════════════════════════════════════

class ClinicalPayload(_Section):
    """
    The five-section document stored in MedicalRecord.data.
    Older clients send the long section names; both spellings are accepted
    and the short ones are written back.
    """

    monitoramento: Monitoramento = Field(
        validation_alias=AliasChoices("monitoramento", "monitoramento_sifilis_congenita"),
    )
    historia_materna: HistoriaMaterna
    historico_hospitalar: HistoricoHospitalar
    triagem_neonatal: TriagemNeonatal
    acompanhamento: Acompanhamento = Field(
        validation_alias=AliasChoices("acompanhamento", "acompanhamento_ambulatorio_alto_risco"),
    )

    def to_document(self) -> dict:
        """JSON-ready dict, as persisted in the data column."""
        return self.model_dump(mode="json")


SECTIONS = tuple(ClinicalPayload.model_fields)


# ══════════════════════════════════════
# Leaf paths
# ══════════════════════════════════════

class FieldPath(str, Enum):
    MONITORAMENTO_MATRICULA = "monitoramento.matricula"
    MONITORAMENTO_DATA = "monitoramento.data"
    MONITORAMENTO_NOME = "monitoramento.nome"
    MONITORAMENTO_DATA_NASCIMENTO = "monitoramento.data_nascimento"
    MONITORAMENTO_ENCAMINHADO_POR = "monitoramento.encaminhado_por"

    MATERNA_NOME_MAE = "historia_materna.nome_mae"
    MATERNA_IDADE = "historia_materna.idade"
    MATERNA_ANOS_PRE_NATAL_UBS = "historia_materna.anos_pre_natal_ubs"
    MATERNA_NUMERO_CONSULTAS = "historia_materna.numero_consultas"
    MATERNA_TRATAMENTO = "historia_materna.tratamento"
    MATERNA_TRATOU_PARCEIRO = "historia_materna.tratou_parceiro"
    MATERNA_OBSERVACOES = "historia_materna.observacoes"

    HOSPITALAR_LOCAL_NASCIMENTO = "historico_hospitalar.local_nascimento"
    HOSPITALAR_TIPO_PARTO = "historico_hospitalar.tipo_parto"
    HOSPITALAR_IDADE_GESTACIONAL = "historico_hospitalar.idade_gestacional"
    HOSPITALAR_SEMANAS_APGAR = "historico_hospitalar.semanas_apgar"
    HOSPITALAR_TESTE_SOROLOGICO = "historico_hospitalar.teste_sorologico"
    HOSPITALAR_TRATAMENTO = "historico_hospitalar.tratamento"
    HOSPITALAR_EXAMES_RADIOLOGICOS = "historico_hospitalar.exames_radiologicos"
    HOSPITALAR_LIQUOR = "historico_hospitalar.liquor"

    TRIAGEM_OLHO_DIREITO = "triagem_neonatal.reflexo_vermelho.olho_direito"
    TRIAGEM_OLHO_ESQUERDO = "triagem_neonatal.reflexo_vermelho.olho_esquerdo"
    TRIAGEM_EOA = "triagem_neonatal.triagem_auditiva.emissao_otoacustica_evocada"
    TRIAGEM_PEATE = "triagem_neonatal.triagem_auditiva.potencial_evocado_auditivo_tronco"
    TRIAGEM_OUVIDO_DIREITO = "triagem_neonatal.triagem_auditiva.ouvido_direito"
    TRIAGEM_OUVIDO_ESQUERDO = "triagem_neonatal.triagem_auditiva.ouvido_esquerdo"
    TRIAGEM_OXIMETRIA_MSD = "triagem_neonatal.oximetria_pulso.msd"
    TRIAGEM_OXIMETRIA_MID = "triagem_neonatal.oximetria_pulso.mid"
    TRIAGEM_TESTE_LINGUINHA = "triagem_neonatal.teste_linguinha"
    TRIAGEM_OBSERVACOES = "triagem_neonatal.observacoes"

    ACOMP_DATA_PRIMEIRA_CONSULTA = "acompanhamento.data_primeira_consulta"
    ACOMP_EXAME_SOROLOGIA = "acompanhamento.exame_sorologia"
    ACOMP_1_MES_DATA = "acompanhamento.primeiro_mes.data"
    ACOMP_1_MES_RESULTADO = "acompanhamento.primeiro_mes.resultado"
    ACOMP_1_MES_TRATAMENTO = "acompanhamento.primeiro_mes.tratamento"
    ACOMP_3_MES_DATA = "acompanhamento.terceiro_mes.data"
    ACOMP_3_MES_RESULTADO = "acompanhamento.terceiro_mes.resultado"
    ACOMP_3_MES_TRATAMENTO = "acompanhamento.terceiro_mes.tratamento"
    ACOMP_6_MES_DATA = "acompanhamento.sexto_mes.data"
    ACOMP_6_MES_RESULTADO = "acompanhamento.sexto_mes.resultado"
    ACOMP_6_MES_TRATAMENTO = "acompanhamento.sexto_mes.tratamento"
    ACOMP_18_MES_DATA = "acompanhamento.decimo_oito_mes.data"
    ACOMP_18_MES_RESULTADO = "acompanhamento.decimo_oito_mes.resultado"
    ACOMP_18_MES_TRATAMENTO = "acompanhamento.decimo_oito_mes.tratamento"
    ACOMP_LIQUOR_ALTERADO = "acompanhamento.liquor_alterado"
    ACOMP_OFTALMOLOGICO = "acompanhamento.acompanhamentos.oftalmologico"
    ACOMP_NEUROLOGICO = "acompanhamento.acompanhamentos.neurologico"
    ACOMP_AUDIOLOGICO = "acompanhamento.acompanhamentos.audiologico"
    ACOMP_OUTROS = "acompanhamento.acompanhamentos.outros"
    ACOMP_OBSERVACOES = "acompanhamento.observacoes"
    ACOMP_ALTA = "acompanhamento.alta_ambulatorio_alto_risco"
    ACOMP_UBS_REFERENCIA = "acompanhamento.ubs_referencia"

    @property
    def section(self) -> str:
        return self.value.split(".", 1)[0]

    @property
    def parts(self) -> tuple[str, ...]:
        return tuple(self.value.split("."))


class LeafKind(str, Enum):
    TEXT = "text"
    CHOICE = "choice"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    DATE = "date"


@dataclass(frozen=True)
class LeafSpec:
    path: str
    kind: LeafKind
    choices: tuple[str, ...] = ()


def _walk(model: type[BaseModel], prefix: str = "") -> list[LeafSpec]:
    leaves = []
    for name, info in model.model_fields.items():
        path = f"{prefix}{name}"
        annotation = info.annotation
        if isinstance(annotation, type) and issubclass(annotation, BaseModel):
            leaves.extend(_walk(annotation, f"{path}."))
            continue

        extra = info.json_schema_extra if isinstance(info.json_schema_extra, dict) else {}
        if annotation is bool:
            leaves.append(LeafSpec(path, LeafKind.BOOLEAN))
        elif annotation is int:
            leaves.append(LeafSpec(path, LeafKind.INTEGER))
        elif annotation is str and "choices" in extra:
            leaves.append(LeafSpec(path, LeafKind.CHOICE, tuple(extra["choices"])))
        elif annotation is str:
            leaves.append(LeafSpec(path, LeafKind.TEXT))
        else:
            leaves.append(LeafSpec(path, LeafKind.DATE))
    return leaves


LEAVES: dict[str, LeafSpec] = {leaf.path: leaf for leaf in _walk(ClinicalPayload)}

DATE_PATHS = tuple(FieldPath(p) for p, leaf in LEAVES.items() if leaf.kind is LeafKind.DATE)


def leaf_spec(path: FieldPath) -> LeafSpec:
    return LEAVES[path.value]


def empty_payload() -> dict:
    """Blank document in the shape of ClinicalPayload (what a new form starts from)."""
    blank = {
        LeafKind.TEXT: "",
        LeafKind.CHOICE: "",
        LeafKind.DATE: "",
        LeafKind.INTEGER: 0,
        LeafKind.BOOLEAN: False,
    }
    document: dict = {}
    for leaf in LEAVES.values():
        *parents, last = leaf.path.split(".")
        node = document
        for part in parents:
            node = node.setdefault(part, {})
        node[last] = blank[leaf.kind]
    return document


# ══════════════════════════════════════
# Validator
# ══════════════════════════════════════

@dataclass(frozen=True)
class FieldIssue:
    path: str
    reason: str


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    document: Optional[ClinicalPayload] = None
    errors: list[FieldIssue] = field(default_factory=list)


def issues_from_error(exc: ValidationError, prefix: tuple = ()) -> list[FieldIssue]:
    """Flattens a Pydantic error into (dotted path, message) pairs."""
    issues = []
    for err in exc.errors():
        loc = prefix + tuple(err.get("loc", ()))
        issues.append(FieldIssue(".".join(str(part) for part in loc), err["msg"]))
    return issues


def validate(candidate: Any) -> ValidationResult:
    """
    Structural check of a clinical payload: every leaf present, every leaf
    of the right type, every date leaf parseable. Values are kept as given.
    """
    try:
        payload = ClinicalPayload.model_validate(candidate)
    except ValidationError as exc:
        return ValidationResult(ok=False, errors=issues_from_error(exc))
    return ValidationResult(ok=True, document=payload)


def get_leaf(document: dict, path: FieldPath) -> Any:
    node: Any = document
    for part in path.parts:
        node = node[part]
    return node


def set_leaf(document: dict, path: FieldPath, value: Any) -> None:
    *parents, last = path.parts
    node = document
    for part in parents:
        node = node[part]
    node[last] = value
