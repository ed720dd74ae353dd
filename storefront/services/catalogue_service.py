from decimal import Decimal
from typing import List, Optional

from pydantic import ValidationError

from storefront.adapters.backend_api import BackendClient
from storefront.schemas.product_schema import ProductOut
from storefront.utils.log import get_logger

log = get_logger("catalogue")


class CatalogueService:
    def __init__(self, backend: BackendClient):
        self.backend = backend

    def list_products(
        self,
        search: Optional[str] = None,
        min_price: Optional[Decimal] = None,
        max_price: Optional[Decimal] = None,
        limit: int = 100,
    ) -> List[ProductOut]:
        """
        search and min_price are applied by the backend; max_price is
        applied here against the discounted price the customer will pay.
        """
        raw = self.backend.list_products(
            limit=limit,
            search=search,
            min_price=float(min_price) if min_price is not None else None,
        )
        products = []
        for entry in raw:
            try:
                products.append(ProductOut.model_validate(entry))
            except ValidationError as e:
                log.warning(f"skipping malformed product {entry.get('id') if isinstance(entry, dict) else entry!r}: {e.error_count()} error(s)")
        if max_price is not None:
            products = [p for p in products if p.discounted_price <= max_price]
        return products

    def get_product(self, product_id: str) -> ProductOut:
        return ProductOut.model_validate(self.backend.get_product(product_id))
