from typing import Any, Dict, List, Optional

import requests

from storefront.adapters.storage import SlotStorage, StorageUnavailable
from storefront.utils.log import get_logger

log = get_logger("backend")


class BackendError(Exception):
    """
    A call to the shop backend failed.

    status_code is None for transport failures (connection refused, timeout)
    and the HTTP status otherwise.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, detail: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail

    @property
    def is_client_error(self) -> bool:
        return self.status_code is not None and 400 <= self.status_code < 500


class AdminSessionExpired(BackendError):
    """The admin bearer token was rejected (401)."""
    pass


class BackendClient:
    """
    Thin JSON client for the shop backend's public API.

    `session` is anything exposing requests.Session.request(method, url, ...);
    tests pass a TestClient bound to a fake backend app.
    """

    def __init__(self, base_url: str, session=None, timeout: float = 15.0):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def _url(self, path: str) -> str:
        return f"{self.base_url}/api{path}"

    def request(self, method: str, path: str, headers: Optional[Dict] = None, **kwargs):
        try:
            r = self.session.request(
                method, self._url(path), headers=headers, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            log.warning(f"{method} {path} failed: {type(e).__name__}: {e}")
            raise BackendError(f"Backend unreachable: {type(e).__name__}")
        if r.status_code >= 400:
            try:
                detail = r.json().get("detail")
            except (ValueError, AttributeError):
                detail = r.text
            log.info(f"{method} {path} -> {r.status_code} {detail}")
            raise BackendError(
                f"{method} {path} returned {r.status_code}",
                status_code=r.status_code,
                detail=detail,
            )
        if r.status_code == 204 or not r.content:
            return None
        try:
            return r.json()
        except ValueError:
            raise BackendError(f"{method} {path} returned invalid JSON", status_code=r.status_code)

    # catalogue

    def list_products(
        self, limit: int = 100, search: Optional[str] = None, min_price: Optional[float] = None
    ) -> List[Dict]:
        params: Dict[str, Any] = {"limit": limit}
        if search:
            params["search"] = search
        if min_price is not None:
            params["min_price"] = min_price
        return self.request("GET", "/products", params=params) or []

    def get_product(self, product_id: str) -> Dict:
        return self.request("GET", f"/products/{product_id}")

    # orders

    def create_order(self, payload: Dict) -> Dict:
        return self.request("POST", "/orders", json=payload)

    def verify_payment(self, order_session_id: str, payment_id: str, signature: str) -> Dict:
        return self.request(
            "POST",
            "/orders/verify-payment",
            json={
                "razorpay_order_id": order_session_id,
                "razorpay_payment_id": payment_id,
                "razorpay_signature": signature,
            },
        ) or {}

    def track_order(self, order_number: str) -> Dict:
        return self.request("GET", f"/orders/track/{order_number.strip().upper()}")

    def health_check(self) -> bool:
        try:
            self.list_products(limit=1)
            return True
        except BackendError:
            return False


class AdminClient:
    """
    Admin console calls. The bearer token lives in its own storage slot and
    is attached to admin requests only.
    """

    def __init__(self, backend: BackendClient, storage: SlotStorage, token_slot: str = "admin_token"):
        self.backend = backend
        self.storage = storage
        self.token_slot = token_slot

    @property
    def token(self) -> Optional[str]:
        try:
            value = self.storage.read(self.token_slot)
        except StorageUnavailable:
            return None
        return value if isinstance(value, str) and value else None

    def _forget_token(self):
        try:
            self.storage.delete(self.token_slot)
        except StorageUnavailable as e:
            log.warning(f"could not drop admin token: {e}")

    def _call(self, method: str, path: str, **kwargs):
        token = self.token
        if not token:
            raise AdminSessionExpired("Not logged in", status_code=401)
        headers = {"Authorization": f"Bearer {token}"}
        try:
            return self.backend.request(method, f"/admin{path}", headers=headers, **kwargs)
        except BackendError as e:
            if e.status_code == 401:
                self._forget_token()
                raise AdminSessionExpired("Session expired", status_code=401, detail=e.detail)
            raise

    def login(self, username: str, password: str) -> str:
        body = self.backend.request(
            "POST", "/admin/login", json={"username": username, "password": password}
        )
        token = (body or {}).get("access_token")
        if not token:
            raise BackendError("Login response carried no access token", status_code=502)
        try:
            self.storage.write(self.token_slot, token)
        except StorageUnavailable as e:
            log.warning(f"admin token not persisted: {e}")
        return token

    def logout(self):
        self._forget_token()

    def list_products(self) -> List[Dict]:
        return self._call("GET", "/products") or []

    def create_product(self, data: Dict) -> Dict:
        return self._call("POST", "/products", json=data)

    def update_product(self, product_id: str, data: Dict) -> Dict:
        return self._call("PUT", f"/products/{product_id}", json=data)

    def delete_product(self, product_id: str):
        return self._call("DELETE", f"/products/{product_id}")

    def list_orders(self) -> List[Dict]:
        return self._call("GET", "/orders") or []

    def update_order(self, order_id: str, data: Dict) -> Dict:
        return self._call("PUT", f"/orders/{order_id}", json=data)

    def stats(self) -> Dict:
        return self._call("GET", "/stats") or {}

    def create_shipment(self, order_id: str) -> Dict:
        return self._call("POST", "/shiprocket/create-order", params={"order_id": order_id})

    def change_password(self, old_password: str, new_password: str) -> Dict:
        return self._call(
            "POST",
            "/change-password",
            data={"old_password": old_password, "new_password": new_password},
        )
