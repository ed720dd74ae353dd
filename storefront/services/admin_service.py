from decimal import Decimal
from typing import Dict, List, Optional

from storefront.adapters.backend_api import AdminClient
from storefront.schemas.admin_schema import ORDER_STATUSES, PAYMENT_STATUSES
from storefront.schemas.product_schema import ProductIn
from storefront.utils.log import get_logger
from storefront.utils.money import format_money, to_decimal

log = get_logger("admin")


class AdminException(Exception):
    pass


class AdminService:
    """Admin console operations on top of the authenticated AdminClient."""

    def __init__(self, client: AdminClient):
        self.client = client

    # session

    def login(self, username: str, password: str) -> str:
        if not username or not password:
            raise AdminException("Username and password are required")
        token = self.client.login(username, password)
        log.info(f"admin {username} logged in")
        return token

    def logout(self):
        self.client.logout()

    def is_logged_in(self) -> bool:
        return self.client.token is not None

    # products

    def list_products(self) -> List[Dict]:
        return self.client.list_products()

    def save_product(self, form: Dict, product_id: Optional[str] = None) -> Dict:
        """Create (no id) or update a product from raw admin form fields."""
        try:
            product = ProductIn.from_form(form)
        except (TypeError, ValueError) as e:
            raise AdminException(f"Invalid product form: {e}")
        data = product.model_dump()
        if product_id:
            return self.client.update_product(product_id, data)
        return self.client.create_product(data)

    def delete_product(self, product_id: str):
        return self.client.delete_product(product_id)

    # orders and shipping

    def list_orders(self) -> List[Dict]:
        return self.client.list_orders()

    def update_order_status(self, order_id: str, order_status: str, tracking_id: str = "") -> Dict:
        if order_status not in ORDER_STATUSES:
            raise AdminException(f"Unknown order status: {order_status}")
        return self.client.update_order(
            order_id, {"order_status": order_status, "tracking_id": tracking_id or ""}
        )

    def create_shipment(self, order_id: str) -> Dict:
        """Create a shipping label; only for paid orders without one."""
        order = next((o for o in self.client.list_orders() if str(o.get("id")) == str(order_id)), None)
        if order is None:
            raise AdminException("Order not found")
        if order.get("payment_status") != "paid":
            raise AdminException("Order is not paid")
        if order.get("shiprocket_order_id"):
            raise AdminException("Shipment already created for this order")
        return self.client.create_shipment(order_id)

    def stats(self) -> Dict:
        return self.client.stats()

    # payments

    def payment_ledger(self, status_filter: str = "all") -> Dict:
        if status_filter != "all" and status_filter not in PAYMENT_STATUSES:
            raise AdminException(f"Unknown payment status filter: {status_filter}")
        orders = self.client.list_orders()

        def _total(o) -> Decimal:
            try:
                return to_decimal(o.get("total", 0))
            except ValueError:
                return Decimal("0")

        revenue = sum((_total(o) for o in orders if o.get("payment_status") == "paid"), Decimal("0"))
        pending = sum((_total(o) for o in orders if o.get("payment_status") == "pending"), Decimal("0"))
        counts = {s: sum(1 for o in orders if o.get("payment_status") == s) for s in PAYMENT_STATUSES}
        counts["all"] = len(orders)
        shown = orders if status_filter == "all" else [o for o in orders if o.get("payment_status") == status_filter]
        return {
            "filter": status_filter,
            "orders": shown,
            "counts": counts,
            "total_revenue": format_money(revenue),
            "pending_amount": format_money(pending),
        }

    # settings

    def change_password(self, old_password: str, new_password: str, confirm_password: str) -> Dict:
        if new_password != confirm_password:
            raise AdminException("New passwords do not match")
        if len(new_password) < 6:
            raise AdminException("Password must be at least 6 characters")
        return self.client.change_password(old_password, new_password) or {}
