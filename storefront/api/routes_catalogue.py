from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import ValidationError

from storefront.adapters.backend_api import BackendError
from storefront.api.deps import get_catalogue
from storefront.services.catalogue_service import CatalogueService

router = APIRouter(tags=["catalogue"])


@router.get("", summary="List products")
def list_products(
    search: Optional[str] = Query(None, description="search term"),
    min_price: Optional[Decimal] = Query(None, ge=0),
    max_price: Optional[Decimal] = Query(None, ge=0),
    limit: int = Query(100, ge=1, le=200),
    svc: CatalogueService = Depends(get_catalogue),
):
    try:
        items = svc.list_products(search=search, min_price=min_price, max_price=max_price, limit=limit)
    except BackendError:
        raise HTTPException(status_code=502, detail="Catalogue unavailable")
    return {
        "items": [p.model_dump(mode="json") for p in items],
        "total": len(items),
    }


@router.get("/{product_id}", summary="Get product by id")
def get_product(product_id: str, svc: CatalogueService = Depends(get_catalogue)):
    try:
        p = svc.get_product(product_id)
    except BackendError as e:
        if e.status_code == 404:
            raise HTTPException(status_code=404, detail="Product not found")
        raise HTTPException(status_code=502, detail="Catalogue unavailable")
    except ValidationError:
        raise HTTPException(status_code=502, detail="Malformed product from backend")
    return p.model_dump(mode="json")
