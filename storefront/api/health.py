from fastapi import APIRouter, Depends

from storefront.adapters.backend_api import BackendClient
from storefront.adapters.payment_widget import PaymentWidget
from storefront.adapters.storage import SlotStorage
from storefront.api.deps import get_backend, get_storage, get_widget

router = APIRouter()


@router.get("/health", tags=["health"])
def health(
    storage: SlotStorage = Depends(get_storage),
    backend: BackendClient = Depends(get_backend),
    widget: PaymentWidget = Depends(get_widget),
):
    storage_ok = storage.health_check()
    backend_ok = backend.health_check()
    payment_ok = widget.health_check()
    return {
        "status": "ok" if storage_ok and backend_ok and payment_ok else "degraded",
        "storage": storage_ok,
        "backend": backend_ok,
        "payment_widget": payment_ok,
    }
