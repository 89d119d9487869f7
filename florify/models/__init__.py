from florify.models.base import Base  # noqa: F401

from florify.models.catalog_product import CatalogProduct  # noqa: F401
from florify.models.import_batch import ImportBatch  # noqa: F401
from florify.models.catalog_history import CatalogHistoryEntry  # noqa: F401
