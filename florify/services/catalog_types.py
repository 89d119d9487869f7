from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from datetime import date, datetime
from typing import Any, Union


@dataclass
class CatalogRecord:
    """
    One product of the CVH catalog.

    codbarra is the identity. item_code travels with the record for display
    but two feeds may disagree on it, so nothing keys on it.
    """
    codbarra: str
    descricao: str
    item_code: str = ""
    descricao_curta: str | None = None
    cod_categoria: str | None = None
    descricao_categoria: str | None = None
    cod_grupo: str | None = None
    descricao_grupo: str | None = None
    data_cadastro: str | None = None  # YYYY-MM-DD
    ncm: str | None = None
    class_cond: str | None = None
    grupo_com: str | None = None
    grupo_log: str | None = None
    cst_sp: str | None = None
    peso: float | None = None
    cpc: str | None = None
    epc: str | None = None
    upc: str | None = None
    cor: str | None = None
    foto: str | None = None
    preco_unitario: float = 0.0
    unidade_medida: str = ""
    id: int | None = None
    importacao_id: str | None = None
    lastupdatedate: datetime | None = None

    def as_payload(self) -> dict[str, Any]:
        """JSON-safe dict, used for audit snapshots and API responses."""
        out = asdict(self)
        for k, v in out.items():
            if isinstance(v, (datetime, date)):
                out[k] = v.isoformat()
        return out

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "CatalogRecord":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


CATALOG_FIELDS: tuple[str, ...] = tuple(f.name for f in fields(CatalogRecord))

# internal or volatile columns; never part of a diff
NON_COMPARED_FIELDS = frozenset({"id", "importacao_id", "lastupdatedate", "unidade_medida"})

COMPARED_FIELDS: tuple[str, ...] = tuple(f for f in CATALOG_FIELDS if f not in NON_COMPARED_FIELDS)


@dataclass(frozen=True)
class FieldDiff:
    before: Any
    after: Any

    def as_dict(self) -> dict[str, Any]:
        return {"de": _jsonable(self.before), "para": _jsonable(self.after)}


@dataclass(frozen=True)
class New:
    line: int
    record: CatalogRecord

    @property
    def codbarra(self) -> str:
        return self.record.codbarra


@dataclass(frozen=True)
class Changed:
    line: int
    existing: CatalogRecord
    incoming: CatalogRecord
    diffs: dict[str, FieldDiff] = field(default_factory=dict)

    @property
    def codbarra(self) -> str:
        return self.existing.codbarra

    def diff_payload(self) -> dict[str, dict[str, Any]]:
        return {k: d.as_dict() for k, d in self.diffs.items()}


@dataclass(frozen=True)
class Unchanged:
    line: int
    existing: CatalogRecord

    @property
    def codbarra(self) -> str:
        return self.existing.codbarra


@dataclass(frozen=True)
class Invalid:
    line: int
    reason: str

    def as_dict(self) -> dict[str, Any]:
        return {"linha": self.line, "erro": self.reason}


ReconciliationOutcome = Union[New, Changed, Unchanged, Invalid]


def _jsonable(v: Any) -> Any:
    if isinstance(v, (datetime, date)):
        return v.isoformat()
    return v
