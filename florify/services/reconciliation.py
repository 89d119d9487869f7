from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping

from florify.core.telemetry import get_tracer
from florify.services.catalog_csv import CatalogCsvParser, ParsedRow
from florify.services.catalog_store import CatalogStore, index_by_barcode
from florify.services.catalog_types import (
    COMPARED_FIELDS,
    CatalogRecord,
    Changed,
    FieldDiff,
    Invalid,
    New,
    ReconciliationOutcome,
    Unchanged,
)


log = logging.getLogger(__name__)
tracer = get_tracer(__name__)

_NUMERIC_RE = re.compile(r"^\s*[+-]?(\d+([.,]\d*)?|[.,]\d+)\s*$")


def _is_blank(v: Any) -> bool:
    return v is None or (isinstance(v, str) and not v.strip())


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float, Decimal)) and not isinstance(v, bool)


def _as_decimal(v: Any) -> Decimal | None:
    if _is_number(v):
        return Decimal(str(v))
    if isinstance(v, str) and _NUMERIC_RE.match(v):
        try:
            return Decimal(v.strip().replace(",", "."))
        except InvalidOperation:
            return None
    return None


def _as_iso(v: Any) -> Any:
    if isinstance(v, (datetime, date)):
        return v.isoformat()
    return v


def values_equal(a: Any, b: Any) -> bool:
    """
    Equality used when diffing a CSV row against the stored product.

    None / "" / whitespace all mean "no value". A number equals a numeric
    string with the same value (5 == "5"). Dates compare as ISO strings.
    """
    if _is_blank(a) and _is_blank(b):
        return True
    if _is_blank(a) or _is_blank(b):
        return False

    if _is_number(a) or _is_number(b):
        da, db = _as_decimal(a), _as_decimal(b)
        if da is not None and db is not None:
            return da == db

    return _as_iso(a) == _as_iso(b)


def diff_records(existing: CatalogRecord, incoming: CatalogRecord) -> dict[str, FieldDiff]:
    diffs: dict[str, FieldDiff] = {}
    for name in COMPARED_FIELDS:
        before = getattr(existing, name)
        after = getattr(incoming, name)
        if not values_equal(before, after):
            diffs[name] = FieldDiff(before=before, after=after)
    return diffs


def classify_row(row: ParsedRow, existing_by_barcode: Mapping[str, CatalogRecord]) -> ReconciliationOutcome:
    incoming = row.record
    barcode = (incoming.codbarra or "").strip()
    if not barcode:
        return Invalid(row.line, "Formato inválido para o campo codbarra")

    existing = existing_by_barcode.get(barcode)
    if existing is None:
        return New(row.line, incoming)

    diffs = diff_records(existing, incoming)
    if not diffs:
        return Unchanged(row.line, existing)
    return Changed(row.line, existing, incoming, diffs)


def reconcile(rows: Iterable[ParsedRow], existing: Iterable[CatalogRecord]) -> list[ReconciliationOutcome]:
    """One outcome per row; a row's outcome depends only on itself and the snapshot."""
    by_barcode = index_by_barcode(existing)
    out: list[ReconciliationOutcome] = []
    for row in rows:
        try:
            out.append(classify_row(row, by_barcode))
        except Exception as e:
            log.warning("reconcile: line %d failed: %s", row.line, e, exc_info=True)
            out.append(Invalid(row.line, f"Erro ao processar linha: {str(e) or 'Erro desconhecido'}"))
    return out


@dataclass
class CatalogAnalysis:
    outcomes: list[ReconciliationOutcome] = field(default_factory=list)

    @property
    def novos(self) -> list[New]:
        return [o for o in self.outcomes if isinstance(o, New)]

    @property
    def alterados(self) -> list[Changed]:
        return [o for o in self.outcomes if isinstance(o, Changed)]

    @property
    def sem_alteracao(self) -> list[Unchanged]:
        return [o for o in self.outcomes if isinstance(o, Unchanged)]

    @property
    def erros(self) -> list[Invalid]:
        return sorted((o for o in self.outcomes if isinstance(o, Invalid)), key=lambda o: o.line)

    @property
    def total_rows(self) -> int:
        return len(self.outcomes)

    @property
    def classified_rows(self) -> int:
        return self.total_rows - len(self.erros)

    def summary(self) -> dict[str, int]:
        return {
            "total": self.total_rows,
            "novos": len(self.novos),
            "alterados": len(self.alterados),
            "sem_alteracao": len(self.sem_alteracao),
            "erros": len(self.erros),
        }


def analyze_rows(parser: CatalogCsvParser, existing: Iterable[CatalogRecord]) -> CatalogAnalysis:
    outcomes = reconcile(parser.rows(), existing)
    outcomes.extend(parser.errors)
    outcomes.sort(key=lambda o: o.line)
    return CatalogAnalysis(outcomes=outcomes)


async def analyze_catalog_csv(store: CatalogStore, content: bytes | str) -> CatalogAnalysis:
    """
    Parse the upload and classify every row against one snapshot of the catalog.
    Raises CatalogCsvError when the file has no header or no rows.
    """
    with tracer.start_as_current_span("catalog.analyze"):
        parser = CatalogCsvParser(content)
        existing = await store.list_products()
        analysis = analyze_rows(parser, existing)

    s = analysis.summary()
    log.info(
        "catalog analyze: total=%d novos=%d alterados=%d sem_alteracao=%d erros=%d",
        s["total"], s["novos"], s["alterados"], s["sem_alteracao"], s["erros"],
    )
    for err in analysis.erros:
        log.debug("catalog analyze: line %d: %s", err.line, err.reason)
    return analysis
