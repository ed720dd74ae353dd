from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError

from storefront.adapters.backend_api import BackendError
from storefront.api.deps import get_tracking
from storefront.services.order_tracking_service import OrderTrackingService

router = APIRouter(tags=["orders"])


@router.get("/track/{order_number}", summary="Track an order by its number")
def track_order(order_number: str, svc: OrderTrackingService = Depends(get_tracking)):
    if not order_number.strip():
        raise HTTPException(status_code=400, detail="Order number required")
    try:
        return svc.track(order_number).model_dump(mode="json")
    except BackendError as e:
        if e.status_code == 404:
            raise HTTPException(status_code=404, detail="Order not found")
        raise HTTPException(status_code=502, detail="Order service unavailable")
    except ValidationError:
        raise HTTPException(status_code=502, detail="Malformed order from backend")
