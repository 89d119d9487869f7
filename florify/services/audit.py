from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from florify.core.config import settings
from florify.services.catalog_store import CatalogStore
from florify.services.catalog_types import Changed, New


log = logging.getLogger(__name__)


@dataclass
class AuditReport:
    written: int = 0
    failed: int = 0

    @property
    def ok(self) -> bool:
        return self.failed == 0

    def as_dict(self) -> dict[str, Any]:
        return {"written": self.written, "failed": self.failed}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_product_entry(*, batch_id: str, user_id: str | None, filename: str, outcome: New) -> dict[str, Any]:
    rec = outcome.record
    return {
        "importacao_id": batch_id,
        "usuario_id": user_id,
        "dados_novos": rec.as_payload(),
        "item_code": rec.item_code or "",
        "codbarra": rec.codbarra,
        "tipo_operacao": "insercao",
        "status": "sucesso",
        "metadata": {"arquivo": filename, "timestamp": _now_iso(), "operacao": "novo_produto"},
    }


def changed_product_entry(
    *, batch_id: str, user_id: str | None, filename: str, outcome: Changed, applied: dict[str, Any],
) -> dict[str, Any]:
    return {
        "importacao_id": batch_id,
        "usuario_id": user_id,
        "dados_anteriores": outcome.existing.as_payload(),
        "dados_novos": applied,
        "item_code": outcome.existing.item_code or "",
        "codbarra": outcome.existing.codbarra,
        "tipo_operacao": "alteracao",
        "status": "sucesso",
        "metadata": {
            "arquivo": filename,
            "timestamp": _now_iso(),
            "campos_alterados": sorted(outcome.diffs),
            "operacao": "atualizacao_produto",
        },
    }


def import_success_entry(
    *, batch_id: str, user_id: str | None, filename: str, novos: int, alterados: int,
) -> dict[str, Any]:
    return {
        "importacao_id": batch_id,
        "usuario_id": user_id,
        "tipo_operacao": "importacao",
        "status": "sucesso",
        "metadata": {
            "arquivo": filename,
            "timestamp": _now_iso(),
            "novos": novos,
            "alterados": alterados,
            "total": novos + alterados,
        },
    }


def import_error_entry(
    *, batch_id: str, user_id: str | None, filename: str, message: str, error: BaseException,
    metadata: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return {
        "importacao_id": batch_id,
        "usuario_id": user_id,
        "tipo_operacao": "importacao",
        "status": "erro",
        "mensagem_erro": message,
        "metadata": {
            "arquivo": filename,
            "timestamp": _now_iso(),
            "erro_tecnico": str(error) or type(error).__name__,
            **(metadata or {}),
        },
    }


def _normalize_entry(entry: dict[str, Any]) -> dict[str, Any]:
    out = dict(entry)
    # legacy producers sent "itemcode"
    legacy = out.pop("itemcode", None)
    if not out.get("item_code") and legacy:
        out["item_code"] = legacy
    if not out.get("codbarra") and out.get("item_code"):
        log.warning("audit: entry without codbarra (item_code=%s)", out["item_code"])
    out["item_code"] = out.get("item_code") or ""
    out["codbarra"] = out.get("codbarra") or ""
    out["tipo_operacao"] = out.get("tipo_operacao") or "desconhecido"
    out["status"] = out.get("status") or "desconhecido"
    out.setdefault("metadata", {})
    return out


async def write_audit_entries(
    store: CatalogStore,
    entries: list[dict[str, Any]],
    *,
    batch_size: int | None = None,
) -> AuditReport:
    """
    Best-effort: a failing chunk is logged and counted, never raised.
    The audit trail must not decide whether an import succeeded.
    """
    size = batch_size or settings.audit_batch_size
    report = AuditReport()
    rows = [_normalize_entry(e) for e in entries]

    for i in range(0, len(rows), size):
        chunk = rows[i:i + size]
        try:
            await store.insert_history(chunk)
            report.written += len(chunk)
        except Exception:
            report.failed += len(chunk)
            log.exception("audit: failed to write history chunk %d-%d", i, i + len(chunk))

    return report
