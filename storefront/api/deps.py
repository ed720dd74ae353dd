from functools import lru_cache

from storefront.adapters.backend_api import AdminClient, BackendClient
from storefront.adapters.payment_widget import PaymentWidget
from storefront.adapters.storage import SlotStorage, build_storage
from storefront.config import settings
from storefront.db import init_db
from storefront.services.admin_service import AdminService
from storefront.services.cart_service import CartStore
from storefront.services.catalogue_service import CatalogueService
from storefront.services.checkout_service import CheckoutOrchestrator
from storefront.services.order_tracking_service import OrderTrackingService

# Process-wide singletons: one client-local store, one cart, one checkout.
# Tests replace them through app.dependency_overrides.


@lru_cache
def get_storage() -> SlotStorage:
    if settings.STORAGE_BACKEND == "sql":
        init_db()
    return build_storage(settings.STORAGE_BACKEND, path=settings.STORAGE_FILE)


@lru_cache
def get_backend() -> BackendClient:
    return BackendClient(settings.BACKEND_URL, timeout=settings.REQUEST_TIMEOUT_SECONDS)


@lru_cache
def get_widget() -> PaymentWidget:
    return PaymentWidget(
        key=settings.PAYMENT_KEY_ID,
        currency=settings.PAYMENT_CURRENCY,
        store_name=settings.STORE_NAME,
    )


@lru_cache
def get_cart_store() -> CartStore:
    return CartStore(get_storage(), slot=settings.CART_SLOT)


@lru_cache
def get_checkout() -> CheckoutOrchestrator:
    return CheckoutOrchestrator(get_cart_store(), get_backend(), get_widget())


def get_catalogue() -> CatalogueService:
    return CatalogueService(get_backend())


def get_tracking() -> OrderTrackingService:
    return OrderTrackingService(get_backend())


def get_admin() -> AdminService:
    return AdminService(AdminClient(get_backend(), get_storage(), token_slot=settings.TOKEN_SLOT))
