from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Iterable, Iterator, Protocol

from sqlalchemy import insert, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from florify.models.catalog_history import CatalogHistoryEntry
from florify.models.catalog_product import CatalogProduct
from florify.models.import_batch import ImportBatch
from florify.services.catalog_types import CATALOG_FIELDS, CatalogRecord


log = logging.getLogger(__name__)


class CatalogStore(Protocol):
    """
    Everything the import pipeline needs from persistence.

    Each mutating call is its own unit of work: it either lands or raises,
    and a raise leaves the store usable for the next call (batch status
    updates after a failed upsert depend on that).
    """

    async def list_products(self) -> list[CatalogRecord]: ...

    async def get_by_barcode(self, codbarra: str) -> CatalogRecord | None: ...

    async def get_by_item_code(self, item_code: str) -> CatalogRecord | None: ...

    async def upsert_products(self, rows: list[dict[str, Any]]) -> None: ...

    async def update_product(self, codbarra: str, values: dict[str, Any]) -> None: ...

    async def create_batch(self, values: dict[str, Any]) -> str: ...

    async def update_batch(self, batch_id: str, values: dict[str, Any]) -> None: ...

    async def get_batch(self, batch_id: str) -> dict[str, Any] | None: ...

    async def list_batches(self, *, limit: int = 100) -> list[dict[str, Any]]: ...

    async def insert_history(self, entries: list[dict[str, Any]]) -> None: ...


_PRODUCT_COLUMNS = tuple(c for c in CATALOG_FIELDS if c != "id")

# asyncpg refuses statements with more bind parameters than this
MAX_BIND_PARAMS = 32767
UPSERT_CHUNK_ROWS = 500

_BATCH_COLUMNS = (
    "id", "nome_arquivo", "arquivo_path", "total_linhas", "novos", "alterados",
    "status", "usuario_id", "diff_preview", "created_at", "updated_at",
)


def product_to_record(row: CatalogProduct) -> CatalogRecord:
    data = {c: getattr(row, c) for c in CATALOG_FIELDS}
    if isinstance(data["data_cadastro"], date):
        data["data_cadastro"] = data["data_cadastro"].isoformat()
    return CatalogRecord(**data)


def batch_to_dict(row: ImportBatch) -> dict[str, Any]:
    return {c: getattr(row, c) for c in _BATCH_COLUMNS}


def _to_columns(values: dict[str, Any]) -> dict[str, Any]:
    """Drop unknown keys and convert domain scalars to column types."""
    out = {k: v for k, v in values.items() if k in _PRODUCT_COLUMNS}
    dc = out.get("data_cadastro")
    if isinstance(dc, str):
        out["data_cadastro"] = date.fromisoformat(dc)
    lu = out.get("lastupdatedate")
    if isinstance(lu, str):
        out["lastupdatedate"] = datetime.fromisoformat(lu)
    return out


def upsert_statements(rows: list[dict[str, Any]], *, max_params: int = MAX_BIND_PARAMS) -> Iterator[Any]:
    """
    INSERT ... ON CONFLICT (codbarra) DO UPDATE, split so no statement
    binds more than max_params values.
    """
    values = [_to_columns(r) for r in rows]
    # column defaults are bound per row too, so size by the whole table
    width = len(CatalogProduct.__table__.columns)
    chunk_rows = max(1, min(UPSERT_CHUNK_ROWS, max_params // width))

    for i in range(0, len(values), chunk_rows):
        chunk = values[i:i + chunk_rows]
        stmt = pg_insert(CatalogProduct).values(chunk)
        updatable = {c for v in chunk for c in v} - {"codbarra"}
        yield stmt.on_conflict_do_update(
            index_elements=[CatalogProduct.codbarra],
            set_={c: stmt.excluded[c] for c in sorted(updatable)},
        )


def _history_columns(entry: dict[str, Any]) -> dict[str, Any]:
    out = dict(entry)
    if "metadata" in out:
        out["meta"] = out.pop("metadata")
    return out


class SqlCatalogStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _commit_or_rollback(self) -> None:
        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

    async def list_products(self) -> list[CatalogRecord]:
        rows = (await self.db.execute(
            select(CatalogProduct).order_by(CatalogProduct.descricao.asc())
        )).scalars().all()
        return [product_to_record(r) for r in rows]

    async def get_by_barcode(self, codbarra: str) -> CatalogRecord | None:
        row = (await self.db.execute(
            select(CatalogProduct).where(CatalogProduct.codbarra == codbarra)
        )).scalar_one_or_none()
        return product_to_record(row) if row else None

    async def get_by_item_code(self, item_code: str) -> CatalogRecord | None:
        # item_code is not unique; first match is good enough for display
        row = (await self.db.execute(
            select(CatalogProduct).where(CatalogProduct.item_code == item_code).order_by(CatalogProduct.id).limit(1)
        )).scalar_one_or_none()
        return product_to_record(row) if row else None

    async def upsert_products(self, rows: list[dict[str, Any]]) -> None:
        """All chunks land in one transaction: either every row is written or none."""
        if not rows:
            return
        try:
            for stmt in upsert_statements(rows):
                await self.db.execute(stmt)
        except Exception:
            await self.db.rollback()
            raise
        await self._commit_or_rollback()

    async def update_product(self, codbarra: str, values: dict[str, Any]) -> None:
        cols = _to_columns(values)
        try:
            result = await self.db.execute(
                update(CatalogProduct).where(CatalogProduct.codbarra == codbarra).values(**cols)
            )
        except Exception:
            await self.db.rollback()
            raise
        if result.rowcount == 0:
            await self.db.rollback()
            raise LookupError(f"produto com codbarra {codbarra} não encontrado")
        await self._commit_or_rollback()

    async def create_batch(self, values: dict[str, Any]) -> str:
        batch = ImportBatch(**values)
        self.db.add(batch)
        try:
            await self.db.flush()
        except Exception:
            await self.db.rollback()
            raise
        batch_id = batch.id
        await self._commit_or_rollback()
        return batch_id

    async def update_batch(self, batch_id: str, values: dict[str, Any]) -> None:
        try:
            await self.db.execute(update(ImportBatch).where(ImportBatch.id == batch_id).values(**values))
        except Exception:
            await self.db.rollback()
            raise
        await self._commit_or_rollback()

    async def get_batch(self, batch_id: str) -> dict[str, Any] | None:
        row = (await self.db.execute(select(ImportBatch).where(ImportBatch.id == batch_id))).scalar_one_or_none()
        return batch_to_dict(row) if row else None

    async def list_batches(self, *, limit: int = 100) -> list[dict[str, Any]]:
        rows = (await self.db.execute(
            select(ImportBatch).order_by(ImportBatch.created_at.desc()).limit(limit)
        )).scalars().all()
        return [batch_to_dict(r) for r in rows]

    async def insert_history(self, entries: list[dict[str, Any]]) -> None:
        if not entries:
            return
        try:
            await self.db.execute(insert(CatalogHistoryEntry), [_history_columns(e) for e in entries])
        except Exception:
            await self.db.rollback()
            raise
        await self._commit_or_rollback()


def index_by_barcode(records: Iterable[CatalogRecord]) -> dict[str, CatalogRecord]:
    out: dict[str, CatalogRecord] = {}
    for r in records:
        key = (r.codbarra or "").strip()
        if not key:
            continue
        if key in out:
            log.warning("catalog: duplicate codbarra %s in snapshot (ids %s, %s)", key, out[key].id, r.id)
        out[key] = r
    return out
