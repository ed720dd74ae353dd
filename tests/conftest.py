import pytest
from fastapi.testclient import TestClient

from fake_backend import FakeShop, build_app
from storefront.adapters.backend_api import AdminClient, BackendClient
from storefront.adapters.mock_payment import MockPaymentWidget
from storefront.adapters.storage import MemorySlotStorage
from storefront.services.admin_service import AdminService
from storefront.services.cart_service import CartStore
from storefront.services.catalogue_service import CatalogueService
from storefront.services.checkout_service import CheckoutOrchestrator

SHIPPING = {
    "customer_name": "Asha Rao",
    "customer_email": "asha@example.com",
    "customer_phone": "9876543210",
    "shipping_address": "12 MG Road",
    "shipping_city": "Bengaluru",
    "shipping_state": "Karnataka",
    "shipping_pincode": "560001",
}


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def shop():
    return FakeShop()


@pytest.fixture
def backend(shop):
    return BackendClient("http://testserver", session=TestClient(build_app(shop)))


@pytest.fixture
def storage():
    return MemorySlotStorage()


@pytest.fixture
def cart(storage):
    return CartStore(storage)


@pytest.fixture
def catalogue(backend):
    return CatalogueService(backend)


@pytest.fixture
def widget():
    return MockPaymentWidget()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def checkout(cart, backend, widget, clock):
    return CheckoutOrchestrator(cart, backend, widget, clock=clock)


@pytest.fixture
def admin(backend, storage):
    return AdminService(AdminClient(backend, storage))


@pytest.fixture
def client(storage, backend, widget, cart, checkout, catalogue, admin):
    """The storefront client app wired to the fake backend and in-memory storage."""
    from storefront.api import deps
    from storefront.main import app
    from storefront.services.order_tracking_service import OrderTrackingService

    app.dependency_overrides.update(
        {
            deps.get_storage: lambda: storage,
            deps.get_backend: lambda: backend,
            deps.get_widget: lambda: widget,
            deps.get_cart_store: lambda: cart,
            deps.get_checkout: lambda: checkout,
            deps.get_catalogue: lambda: catalogue,
            deps.get_tracking: lambda: OrderTrackingService(backend),
            deps.get_admin: lambda: admin,
        }
    )
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
