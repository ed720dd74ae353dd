from storefront.adapters.backend_api import BackendClient
from storefront.schemas.order_schema import OrderTrackingOut


class OrderTrackingService:
    def __init__(self, backend: BackendClient):
        self.backend = backend

    def track(self, order_number: str) -> OrderTrackingOut:
        return OrderTrackingOut.model_validate(self.backend.track_order(order_number))
