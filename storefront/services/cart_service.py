import threading
from decimal import Decimal
from typing import Callable, List, Optional

from pydantic import ValidationError

from storefront.adapters.storage import SlotStorage, StorageUnavailable
from storefront.schemas.cart_schema import CartLineItem
from storefront.schemas.product_schema import ProductOut
from storefront.utils.log import get_logger

log = get_logger("cart")

CartListener = Callable[[List[CartLineItem]], None]


class CartStore:
    """
    The customer's intended purchases, persisted to a named slot after every
    mutation.

    Reads go to the persisted copy so several stores over the same storage
    (badge, drawer) agree. When storage is unavailable the store falls back
    to the last cart it saw and never raises to the caller. A change that
    could not be saved is served from memory and saved again on the next
    read or mutation.
    """

    def __init__(self, storage: SlotStorage, slot: str = "cart"):
        self.storage = storage
        self.slot = slot
        self._cache: List[CartLineItem] = []
        self._listeners: List[CartListener] = []
        self._held_by: Optional[str] = None
        self._dirty = False
        self._lock = threading.RLock()

    # -- reads ---------------------------------------------------------------

    def _decode(self, raw) -> List[CartLineItem]:
        if raw is None:
            return []
        if not isinstance(raw, list):
            log.warning(f"slot {self.slot!r} holds {type(raw).__name__}, treating cart as empty")
            return []
        items: List[CartLineItem] = []
        seen = set()
        try:
            for rec in raw:
                item = CartLineItem.model_validate(rec)
                if item.product_id in seen:
                    raise ValueError(f"duplicate line for {item.product_id}")
                seen.add(item.product_id)
                items.append(item)
        except (ValidationError, ValueError, TypeError) as e:
            log.warning(f"malformed cart in slot {self.slot!r}, treating as empty: {e}")
            return []
        return items

    def get_cart(self) -> List[CartLineItem]:
        with self._lock:
            if self._dirty:
                # an unsaved change outranks the persisted copy until a save succeeds
                self._save()
                return list(self._cache)
            try:
                raw = self.storage.read(self.slot)
            except StorageUnavailable as e:
                log.warning(f"cart read failed, serving in-memory copy: {e}")
                return list(self._cache)
            self._cache = self._decode(raw)
            return list(self._cache)

    def get_total(self) -> Decimal:
        return sum((it.line_total for it in self.get_cart()), Decimal("0"))

    def get_count(self) -> int:
        return sum(it.quantity for it in self.get_cart())

    # -- writes --------------------------------------------------------------

    def _save(self) -> bool:
        try:
            self.storage.write(self.slot, [it.to_record() for it in self._cache])
        except StorageUnavailable as e:
            log.warning(f"cart write failed, change kept in memory until storage recovers: {e}")
            self._dirty = True
            return False
        if self._dirty:
            log.info("pending cart change saved")
        self._dirty = False
        return True

    def _commit(self, items: List[CartLineItem]) -> List[CartLineItem]:
        self._cache = list(items)
        self._save()
        self._notify(items)
        return list(items)

    @property
    def dirty(self) -> bool:
        """True while the in-memory cart holds a change storage has not accepted."""
        return self._dirty

    def _notify(self, items: List[CartLineItem]):
        for listener in list(self._listeners):
            try:
                listener(list(items))
            except Exception:
                log.exception("cart listener failed")

    def _blocked(self, op: str) -> bool:
        if self._held_by:
            log.info(f"{op} ignored: cart held by checkout {self._held_by}")
            return True
        return False

    def add_item(self, product: ProductOut, quantity: int = 1) -> List[CartLineItem]:
        with self._lock:
            cart = self.get_cart()
            if quantity < 1 or self._blocked("add_item"):
                return cart
            for i, it in enumerate(cart):
                if it.product_id == product.id:
                    cart[i] = it.model_copy(update={"quantity": it.quantity + quantity})
                    break
            else:
                cart.append(
                    CartLineItem(
                        product_id=product.id,
                        product_name=product.name,
                        price=product.discounted_price,
                        quantity=quantity,
                        image=product.primary_image,
                    )
                )
            return self._commit(cart)

    def update_quantity(self, product_id: str, quantity: int) -> List[CartLineItem]:
        with self._lock:
            cart = self.get_cart()
            if not any(it.product_id == product_id for it in cart):
                return cart
            if self._blocked("update_quantity"):
                return cart
            if quantity <= 0:
                return self.remove_item(product_id)
            cart = [
                it.model_copy(update={"quantity": quantity}) if it.product_id == product_id else it
                for it in cart
            ]
            return self._commit(cart)

    def remove_item(self, product_id: str) -> List[CartLineItem]:
        with self._lock:
            cart = self.get_cart()
            if self._blocked("remove_item"):
                return cart
            return self._commit([it for it in cart if it.product_id != product_id])

    def clear(self) -> List[CartLineItem]:
        with self._lock:
            if self._blocked("clear"):
                return self.get_cart()
            return self._commit([])

    # -- observers and checkout hold ----------------------------------------

    def subscribe(self, listener: CartListener) -> Callable[[], None]:
        """Register `listener` for cart changes; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def held(self) -> bool:
        return self._held_by is not None

    def hold(self, owner: str):
        with self._lock:
            self._held_by = owner

    def release(self, owner: str):
        with self._lock:
            if self._held_by == owner:
                self._held_by = None
