from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable

from florify.core.telemetry import get_tracer
from florify.services.audit import (
    AuditReport,
    changed_product_entry,
    import_error_entry,
    import_success_entry,
    new_product_entry,
    write_audit_entries,
)
from florify.services.catalog_store import CatalogStore
from florify.services.catalog_types import Changed, New
from florify.services.reconciliation import CatalogAnalysis
from florify.services.storage import ObjectStore, import_archive_key


log = logging.getLogger(__name__)
tracer = get_tracer(__name__)

IDENTITY_KEY = "codbarra"

# columns an import may write; everything else on the payload is dropped
WRITABLE_COLUMNS = (
    "item_code", "codbarra", "descricao", "descricao_curta", "cod_categoria",
    "descricao_categoria", "cod_grupo", "descricao_grupo", "data_cadastro",
    "ncm", "class_cond", "grupo_com", "grupo_log", "cst_sp", "peso", "cpc", "epc",
    "upc", "cor", "foto", "preco_unitario", "unidade_medida", "importacao_id", "lastupdatedate",
)


class ImportApplyError(Exception):
    """An apply step failed; the batch has been marked failed (best effort)."""

    def __init__(self, message: str, *, batch_id: str | None, audit: AuditReport | None = None):
        super().__init__(message)
        self.message = message
        self.batch_id = batch_id
        self.audit = audit or AuditReport()


@dataclass
class CatalogImportOutcome:
    batch_id: str
    status: str
    arquivo_path: str
    new_applied: int
    changed_applied: int
    audit: AuditReport = field(default_factory=AuditReport)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def select_outcomes(
    analysis: CatalogAnalysis,
    *,
    new_barcodes: Iterable[str] | None = None,
    changed_barcodes: Iterable[str] | None = None,
) -> tuple[list[New], list[Changed]]:
    """Resolve an operator selection (by codbarra, None = everything) into outcomes."""
    novos = analysis.novos
    alterados = analysis.alterados
    if new_barcodes is not None:
        wanted = {b.strip() for b in new_barcodes}
        novos = [o for o in novos if o.codbarra in wanted]
    if changed_barcodes is not None:
        wanted = {b.strip() for b in changed_barcodes}
        alterados = [o for o in alterados if o.codbarra in wanted]
    return novos, alterados


def build_diff_preview(analysis: CatalogAnalysis, novos: list[New], alterados: list[Changed]) -> dict[str, Any]:
    return {
        "novos": len(novos),
        "alterados": [
            {"item_code": o.existing.item_code, "codbarra": o.codbarra, "diferencas": o.diff_payload()}
            for o in alterados
        ],
        "erros": [e.as_dict() for e in analysis.erros],
    }


def new_row_payload(outcome: New, *, batch_id: str, stamp: datetime) -> dict[str, Any]:
    data = outcome.record.as_payload()
    row = {k: data.get(k) for k in WRITABLE_COLUMNS}
    row["importacao_id"] = batch_id
    row["lastupdatedate"] = stamp.isoformat()
    return row


def changed_row_payload(outcome: Changed, *, batch_id: str, stamp: datetime) -> dict[str, Any]:
    """
    Fields the CSV left blank are not written, unless the blank is the change itself.
    codbarra always comes from the stored record.
    """
    data = outcome.incoming.as_payload()
    row = {
        k: data.get(k) for k in WRITABLE_COLUMNS
        if data.get(k) is not None or k in outcome.diffs
    }
    row[IDENTITY_KEY] = outcome.existing.codbarra
    row["importacao_id"] = batch_id
    row["lastupdatedate"] = stamp.isoformat()
    return row


def dedupe_new_outcomes(novos: list[New]) -> list[New]:
    """One New per codbarra; the last row of the file wins."""
    by_key: dict[str, New] = {}
    for o in novos:
        if o.codbarra in by_key:
            log.warning("import: codbarra %s selected twice, keeping line %d", o.codbarra, o.line)
            del by_key[o.codbarra]
        by_key[o.codbarra] = o
    return list(by_key.values())


class CatalogImporter:
    """
    Applies a reviewed selection of New/Changed outcomes.

    Order matters: archive the file, open the batch as pending, upsert new
    rows, update changed rows one by one, write the audit trail, close the
    batch. The first apply failure marks the batch failed and is re-raised
    as ImportApplyError.
    """

    def __init__(self, store: CatalogStore, object_store: ObjectStore, *, audit_batch_size: int | None = None):
        self.store = store
        self.object_store = object_store
        self.audit_batch_size = audit_batch_size

    def archive_file(self, *, filename: str, data: bytes, user_id: str | None) -> str:
        key = import_archive_key(filename, user_id)
        path = self.object_store.put_bytes(key=key, data=data)
        log.info("import: archived %s as %s", filename, path)
        return path

    async def create_batch(
        self,
        *,
        filename: str,
        arquivo_path: str,
        analysis: CatalogAnalysis,
        novos: list[New],
        alterados: list[Changed],
        user_id: str | None,
    ) -> tuple[str, dict[str, Any]]:
        preview = build_diff_preview(analysis, novos, alterados)
        batch_id = await self.store.create_batch({
            "nome_arquivo": filename,
            "arquivo_path": arquivo_path,
            "total_linhas": analysis.classified_rows,
            "novos": len(novos),
            "alterados": len(alterados),
            "status": "pending",
            "usuario_id": user_id,
            "diff_preview": preview,
        })
        return batch_id, preview

    async def apply(
        self,
        *,
        filename: str,
        data: bytes,
        analysis: CatalogAnalysis,
        novos: list[New],
        alterados: list[Changed],
        user_id: str | None = None,
    ) -> CatalogImportOutcome:
        novos = dedupe_new_outcomes(novos)

        # archive and batch creation fail before anything is mutated; let them raise as-is
        arquivo_path = self.archive_file(filename=filename, data=data, user_id=user_id)
        batch_id, preview = await self.create_batch(
            filename=filename,
            arquivo_path=arquivo_path,
            analysis=analysis,
            novos=novos,
            alterados=alterados,
            user_id=user_id,
        )
        log.info("import %s: pending (novos=%d alterados=%d)", batch_id, len(novos), len(alterados))

        audit_entries: list[dict[str, Any]] = []
        new_applied = changed_applied = 0

        with tracer.start_as_current_span("catalog.import.apply") as span:
            span.set_attribute("florify.import.batch_id", batch_id)
            try:
                if novos:
                    stamp = _now()
                    rows = [new_row_payload(o, batch_id=batch_id, stamp=stamp) for o in novos]
                    await self.store.upsert_products(rows)
                    new_applied = len(novos)
                    audit_entries.extend(
                        new_product_entry(batch_id=batch_id, user_id=user_id, filename=filename, outcome=o)
                        for o in novos
                    )
                    log.info("import %s: %d new products upserted", batch_id, new_applied)

                for o in alterados:
                    values = changed_row_payload(o, batch_id=batch_id, stamp=_now())
                    await self.store.update_product(o.existing.codbarra, values)
                    changed_applied += 1
                    audit_entries.append(changed_product_entry(
                        batch_id=batch_id, user_id=user_id, filename=filename, outcome=o, applied=values,
                    ))
                if alterados:
                    log.info("import %s: %d changed products updated", batch_id, changed_applied)

                await self.store.update_batch(batch_id, {
                    "status": "completed",
                    "diff_preview": {
                        **preview,
                        "resumo_final": {
                            "novos_processados": new_applied,
                            "alterados_processados": changed_applied,
                            "timestamp": _now().isoformat(),
                            "chave_identificacao": IDENTITY_KEY,
                        },
                    },
                })
            except Exception as exc:
                span.record_exception(exc)
                message = str(exc) or type(exc).__name__
                log.error("import %s: failed after %d new / %d changed: %s", batch_id, new_applied, changed_applied, message)

                await self._mark_failed(batch_id, preview, message)

                audit_entries.append(import_error_entry(
                    batch_id=batch_id, user_id=user_id, filename=filename,
                    message="Falha ao aplicar importação", error=exc,
                    metadata={"novos_processados": new_applied, "alterados_processados": changed_applied},
                ))
                audit = await write_audit_entries(self.store, audit_entries, batch_size=self.audit_batch_size)
                raise ImportApplyError(f"Falha na importação: {message}", batch_id=batch_id, audit=audit) from exc

        audit_entries.append(import_success_entry(
            batch_id=batch_id, user_id=user_id, filename=filename, novos=new_applied, alterados=changed_applied,
        ))
        audit = await write_audit_entries(self.store, audit_entries, batch_size=self.audit_batch_size)
        if not audit.ok:
            log.warning("import %s: audit trail incomplete (%d of %d entries failed)",
                        batch_id, audit.failed, audit.failed + audit.written)

        log.info("import %s: completed", batch_id)
        return CatalogImportOutcome(
            batch_id=batch_id,
            status="completed",
            arquivo_path=arquivo_path,
            new_applied=new_applied,
            changed_applied=changed_applied,
            audit=audit,
        )

    async def _mark_failed(self, batch_id: str, preview: dict[str, Any], message: str) -> None:
        try:
            await self.store.update_batch(batch_id, {
                "status": "failed",
                "diff_preview": {**preview, "erro": message, "timestamp": _now().isoformat()},
            })
        except Exception:
            log.exception("import %s: could not mark batch as failed", batch_id)
