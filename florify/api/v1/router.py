from fastapi import APIRouter

from florify.api.v1.endpoints.health import router as health_router
from florify.api.v1.endpoints.catalog_import_admin import router as catalog_import_router
from florify.api.v1.endpoints.catalog_products import router as catalog_products_router


router = APIRouter(prefix="/v1")
router.include_router(health_router, tags=["health"])
router.include_router(catalog_import_router, tags=["catalog-import"])
router.include_router(catalog_products_router, tags=["catalog"])
