import logging

from fastapi import APIRouter, Depends, HTTPException

from florify.core.config import settings
from florify.schemas.catalog_import import (
    CatalogAnalysisResponse,
    CatalogImportRequest,
    CatalogImportResponse,
    ImportBatchResponse,
)
from florify.services.catalog_csv import CatalogCsvError
from florify.services.catalog_importer import CatalogImporter, ImportApplyError, select_outcomes
from florify.services.catalog_store import CatalogStore
from florify.services.internal_admin import (
    current_user_id,
    get_catalog_store,
    get_object_store,
    require_internal_admin,
)
from florify.services.reconciliation import analyze_catalog_csv
from florify.services.storage import ObjectStore


log = logging.getLogger(__name__)

router = APIRouter()


def _require_csv(filename: str) -> None:
    if not filename.strip().lower().endswith(".csv"):
        raise HTTPException(status_code=415, detail="Por favor, selecione um arquivo CSV válido")


async def _analyze(store: CatalogStore, body: CatalogImportRequest, data: bytes):
    _require_csv(body.filename)
    try:
        return await analyze_catalog_csv(store, data)
    except CatalogCsvError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.post(
    "/admin/catalog/imports:analyze",
    response_model=CatalogAnalysisResponse,
    dependencies=[Depends(require_internal_admin)],
)
async def analyze_import(body: CatalogImportRequest, store: CatalogStore = Depends(get_catalog_store)):
    analysis = await _analyze(store, body, body.raw_bytes())
    return CatalogAnalysisResponse.from_analysis(analysis)


@router.post(
    "/admin/catalog/imports:apply",
    response_model=CatalogImportResponse,
    dependencies=[Depends(require_internal_admin)],
)
async def apply_import(
    body: CatalogImportRequest,
    store: CatalogStore = Depends(get_catalog_store),
    object_store: ObjectStore = Depends(get_object_store),
    user_id: str | None = Depends(current_user_id),
):
    data = body.raw_bytes()
    analysis = await _analyze(store, body, data)
    novos, alterados = select_outcomes(
        analysis,
        new_barcodes=body.selected_new,
        changed_barcodes=body.selected_changed,
    )

    importer = CatalogImporter(store, object_store, audit_batch_size=settings.audit_batch_size)
    try:
        outcome = await importer.apply(
            filename=body.filename,
            data=data,
            analysis=analysis,
            novos=novos,
            alterados=alterados,
            user_id=user_id,
        )
    except ImportApplyError as e:
        log.warning("apply_import: batch %s failed: %s", e.batch_id, e.message)
        raise HTTPException(status_code=500, detail={"message": e.message, "batch_id": e.batch_id})

    return CatalogImportResponse.from_outcome(outcome)


@router.get(
    "/admin/catalog/imports",
    response_model=list[ImportBatchResponse],
    dependencies=[Depends(require_internal_admin)],
)
async def list_imports(limit: int = 100, store: CatalogStore = Depends(get_catalog_store)):
    return [ImportBatchResponse(**b) for b in await store.list_batches(limit=limit)]


@router.get(
    "/admin/catalog/imports/{batch_id}",
    response_model=ImportBatchResponse,
    dependencies=[Depends(require_internal_admin)],
)
async def get_import(batch_id: str, store: CatalogStore = Depends(get_catalog_store)):
    batch = await store.get_batch(batch_id)
    if not batch:
        raise HTTPException(status_code=404, detail="Importação não encontrada")
    return ImportBatchResponse(**batch)
