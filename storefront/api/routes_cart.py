from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError

from storefront.adapters.backend_api import BackendError
from storefront.api.deps import get_cart_store, get_catalogue
from storefront.schemas.cart_schema import AddItemIn, CartLineItem, UpdateItemIn
from storefront.services.cart_service import CartStore
from storefront.services.catalogue_service import CatalogueService
from storefront.utils.money import format_money

router = APIRouter(prefix="/api/cart", tags=["cart"])

HELD_DETAIL = "Cart is locked while a checkout is in progress"


def _cart_out(store: CartStore, items: Optional[List[CartLineItem]] = None) -> dict:
    items = store.get_cart() if items is None else items
    total = sum((it.line_total for it in items), Decimal("0"))
    return {
        "items": [
            {**it.to_record(), "line_total": format_money(it.line_total)} for it in items
        ],
        "count": sum(it.quantity for it in items),
        "total": str(total),
        "total_display": format_money(total),
        "held": store.held,
    }


def _ensure_not_held(store: CartStore):
    if store.held:
        raise HTTPException(status_code=409, detail=HELD_DETAIL)


@router.get("", summary="Get cart")
def get_cart(store: CartStore = Depends(get_cart_store)):
    return _cart_out(store)


@router.get("/count", summary="Item count for the cart badge")
def get_count(store: CartStore = Depends(get_cart_store)):
    return {"count": store.get_count()}


@router.post("/items", summary="Add item to cart")
def add_item(
    payload: AddItemIn,
    store: CartStore = Depends(get_cart_store),
    catalogue: CatalogueService = Depends(get_catalogue),
):
    _ensure_not_held(store)
    if payload.quantity < 1:
        raise HTTPException(status_code=400, detail="Quantity must be positive")
    try:
        product = catalogue.get_product(payload.product_id)
    except BackendError as e:
        if e.status_code == 404:
            raise HTTPException(status_code=404, detail="Product not found")
        raise HTTPException(status_code=502, detail="Catalogue unavailable")
    except ValidationError:
        raise HTTPException(status_code=502, detail="Malformed product from backend")
    return _cart_out(store, store.add_item(product, payload.quantity))


@router.put("/items/{product_id}", summary="Set item quantity (0 removes)")
def update_item(product_id: str, payload: UpdateItemIn, store: CartStore = Depends(get_cart_store)):
    _ensure_not_held(store)
    return _cart_out(store, store.update_quantity(product_id, payload.quantity))


@router.delete("/items/{product_id}", summary="Remove item")
def remove_item(product_id: str, store: CartStore = Depends(get_cart_store)):
    _ensure_not_held(store)
    return _cart_out(store, store.remove_item(product_id))


@router.delete("", summary="Empty the cart")
def clear_cart(store: CartStore = Depends(get_cart_store)):
    _ensure_not_held(store)
    return _cart_out(store, store.clear())
