from __future__ import annotations

import csv
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from io import StringIO
from typing import Iterator

from florify.core.config import settings
from florify.services.catalog_types import CatalogRecord, Invalid


log = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("codbarra", "descricao")
MISSING_REQUIRED = "Campos obrigatórios ausentes (codbarra, descricao)"
EMPTY_FILE = "Arquivo CSV vazio ou sem dados válidos"
TOO_MANY_CELLS = "Número de colunas inconsistente com o cabeçalho"
NOT_UTF8 = "Arquivo CSV deve estar em UTF-8"

# first data row is line 2 (header is line 1)
FIRST_DATA_LINE = 2

_TEXT_COLUMNS = (
    "descricao_curta", "cod_categoria", "descricao_categoria", "cod_grupo", "descricao_grupo",
    "ncm", "class_cond", "grupo_com", "grupo_log", "cst_sp", "cpc", "epc", "upc", "cor", "foto",
)

_COLUMN_ALIASES = {"itemcode": "item_code"}

_NUMBER_RE = re.compile(r"^[+-]?\d+(\.\d+)?$")


class CatalogCsvError(Exception):
    """The file cannot be analyzed at all (empty, no header, no rows)."""


@dataclass(frozen=True)
class ParsedRow:
    line: int
    record: CatalogRecord


def parse_decimal(raw: str | None) -> float | None:
    """
    "2,50" -> 2.5, "1.234,56" -> 1234.56, "3.5" -> 3.5.
    Returns None for blank or unparsable input.
    """
    if raw is None:
        return None
    s = str(raw).strip().replace(" ", "")
    if not s:
        return None
    if "," in s:
        s = s.replace(".", "").replace(",", ".")
    if not _NUMBER_RE.match(s):
        return None
    return float(s)


def parse_date(raw: str | None) -> str | None:
    """DD/MM/YYYY -> YYYY-MM-DD. ISO dates pass through; anything else is absent."""
    if raw is None:
        return None
    s = str(raw).strip()
    if not s:
        return None
    for fmt in ("%d/%m/%Y", "%Y-%m-%d"):
        try:
            return datetime.strptime(s, fmt).date().isoformat()
        except ValueError:
            continue
    return None


def _blank(v: str | None) -> bool:
    return v is None or not str(v).strip()


def _text(v: str | None) -> str | None:
    return None if _blank(v) else v


def normalize_header(name: str | None) -> str:
    key = (name or "").strip().lower()
    return _COLUMN_ALIASES.get(key, key)


def normalize_row(raw: dict[str, str | None]) -> dict[str, str | None]:
    out: dict[str, str | None] = {}
    for k, v in raw.items():
        if k is None:
            continue
        key = normalize_header(k)
        # item_code and itemcode may both be present; keep the first non-blank
        if key in out and not _blank(out[key]):
            continue
        out[key] = v
    return out


def build_record(row: dict[str, str | None]) -> CatalogRecord:
    """Coerce one normalized CSV row into a CatalogRecord. Required fields must be checked first."""
    preco = parse_decimal(row.get("preco_unitario"))
    return CatalogRecord(
        codbarra=str(row.get("codbarra") or "").strip(),
        descricao=str(row.get("descricao")),
        item_code=(row.get("item_code") or "").strip(),
        data_cadastro=parse_date(row.get("data_cadastro")),
        peso=parse_decimal(row.get("peso")),
        preco_unitario=preco if preco is not None else 0.0,
        unidade_medida=(row.get("unidade_medida") or "").strip(),
        **{c: _text(row.get(c)) for c in _TEXT_COLUMNS},
    )


def missing_required(row: dict[str, str | None]) -> bool:
    return any(_blank(row.get(c)) for c in REQUIRED_COLUMNS)


class CatalogCsvParser:
    """
    Single-pass reader over a ';'-separated catalog export.

    rows() yields ParsedRow for every usable line; everything else lands in
    self.errors as Invalid(line, reason). The header check happens eagerly
    so a fatal CatalogCsvError surfaces before any row is processed.
    """

    def __init__(self, content: bytes | str, *, delimiter: str | None = None):
        if isinstance(content, bytes):
            try:
                text = content.decode("utf-8-sig")
            except UnicodeDecodeError as e:
                raise CatalogCsvError(NOT_UTF8) from e
        else:
            text = content.lstrip("\ufeff")
        self.delimiter = delimiter or settings.csv_delimiter
        self.errors: list[Invalid] = []
        self.total_rows = 0
        self._consumed = False

        if not text.strip():
            raise CatalogCsvError(EMPTY_FILE)

        self._reader = csv.DictReader(StringIO(text, newline=""), delimiter=self.delimiter, strict=True)
        try:
            header = self._reader.fieldnames
        except csv.Error as e:
            raise CatalogCsvError(f"Erro ao analisar arquivo CSV: {e}") from e
        if not header or not any(normalize_header(h) for h in header):
            raise CatalogCsvError(EMPTY_FILE)

        self.columns = [normalize_header(h) for h in header]

    def rows(self) -> Iterator[ParsedRow]:
        if self._consumed:
            raise RuntimeError("CatalogCsvParser.rows() can only be iterated once")
        self._consumed = True

        line = FIRST_DATA_LINE - 1
        while True:
            try:
                raw = next(self._reader)
            except StopIteration:
                break
            except csv.Error as e:
                line += 1
                self.total_rows += 1
                log.warning("catalog csv: parse aborted at line %d: %s", line, e)
                self.errors.append(Invalid(line, f"Erro ao analisar arquivo CSV: {e}"))
                break

            line += 1
            self.total_rows += 1

            # DictReader stores surplus cells under the None key; trailing ';' is tolerated
            if any(not _blank(v) for v in raw.get(None) or ()):
                self.errors.append(Invalid(line, TOO_MANY_CELLS))
                continue

            row = normalize_row(raw)
            if missing_required(row):
                self.errors.append(Invalid(line, MISSING_REQUIRED))
                continue

            yield ParsedRow(line=line, record=build_record(row))

        if self.total_rows == 0:
            raise CatalogCsvError(EMPTY_FILE)

    def batches(self, size: int = 500) -> Iterator[list[ParsedRow]]:
        batch: list[ParsedRow] = []
        for row in self.rows():
            batch.append(row)
            if len(batch) >= size:
                yield batch
                batch = []
        if batch:
            yield batch
