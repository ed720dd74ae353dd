#!/usr/bin/env python3
"""
Inspect or reset the client-local slots (persisted cart, admin token).

Usage:
    python scripts/cart_slot.py show
    python scripts/cart_slot.py clear-cart
    python scripts/cart_slot.py forget-token
"""
import argparse
import json
import os
import sys

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from storefront.adapters.storage import StorageUnavailable, build_storage
from storefront.config import settings
from storefront.db import init_db
from storefront.services.cart_service import CartStore
from storefront.utils.money import format_money


def _storage(backend: str, path: str):
    if backend == "sql":
        init_db()
    return build_storage(backend, path=path)


def show(storage):
    store = CartStore(storage, slot=settings.CART_SLOT)
    try:
        raw = storage.read(settings.CART_SLOT)
    except StorageUnavailable as e:
        print("storage unavailable:", e)
        return 1
    print(f"=== Slot {settings.CART_SLOT!r} (raw) ===")
    print(json.dumps(raw, indent=2))
    print(f"\n=== Cart ({store.get_count()} item(s), total {format_money(store.get_total())}) ===")
    for it in store.get_cart():
        print(f"{it.product_id:<16} {it.quantity:>3} x {format_money(it.price):>10}  {it.product_name}")
    token = storage.read(settings.TOKEN_SLOT)
    print(f"\nadmin token stored: {'yes' if token else 'no'}")
    return 0


def main():
    parser = argparse.ArgumentParser(description="Client-local slot utility.")
    parser.add_argument("--backend", default=settings.STORAGE_BACKEND, choices=["sql", "file"])
    parser.add_argument("--file", default=settings.STORAGE_FILE, help="slot file for the file backend")
    parser.add_argument("command", choices=["show", "clear-cart", "forget-token"])
    args = parser.parse_args()

    storage = _storage(args.backend, args.file)
    if args.command == "show":
        return show(storage)
    if args.command == "clear-cart":
        CartStore(storage, slot=settings.CART_SLOT).clear()
        print("cart cleared")
    elif args.command == "forget-token":
        storage.delete(settings.TOKEN_SLOT)
        print("admin token removed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
