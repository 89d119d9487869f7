from fastapi import APIRouter, Depends, HTTPException

from florify.schemas.catalog_import import CatalogProductResponse
from florify.services.catalog_store import CatalogStore
from florify.services.internal_admin import get_catalog_store, require_internal_admin

router = APIRouter()


@router.get(
    "/admin/catalog/products",
    response_model=list[CatalogProductResponse],
    dependencies=[Depends(require_internal_admin)],
)
async def list_products(store: CatalogStore = Depends(get_catalog_store)):
    return [CatalogProductResponse.from_record(r) for r in await store.list_products()]


@router.get(
    "/admin/catalog/products/by-barcode/{codbarra}",
    response_model=CatalogProductResponse,
    dependencies=[Depends(require_internal_admin)],
)
async def get_product_by_barcode(codbarra: str, store: CatalogStore = Depends(get_catalog_store)):
    record = await store.get_by_barcode(codbarra.strip())
    if not record:
        raise HTTPException(status_code=404, detail="Produto não encontrado")
    return CatalogProductResponse.from_record(record)


# display lookup only: item_code is not unique and never identifies a product on import
@router.get(
    "/admin/catalog/products/by-item-code/{item_code}",
    response_model=CatalogProductResponse,
    dependencies=[Depends(require_internal_admin)],
)
async def get_product_by_item_code(item_code: str, store: CatalogStore = Depends(get_catalog_store)):
    record = await store.get_by_item_code(item_code.strip())
    if not record:
        raise HTTPException(status_code=404, detail="Produto não encontrado")
    return CatalogProductResponse.from_record(record)
