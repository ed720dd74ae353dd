import argparse
import concurrent.futures
import os

import requests

BASE = os.environ.get("STOREFRONT_BASE", "http://127.0.0.1:8000")

FORM = {
    "customer_name": "Load Test",
    "customer_email": "load@example.com",
    "customer_phone": "9999999999",
    "shipping_address": "1 Test Street",
    "shipping_city": "Pune",
    "shipping_state": "MH",
    "shipping_pincode": "411001",
}


def add_task(product_id, qty):
    r = requests.post(f"{BASE}/api/cart/items", json={"product_id": product_id, "quantity": qty}, timeout=10)
    return (r.status_code, r.json())


def submit_task(i):
    try:
        r = requests.post(f"{BASE}/api/checkout", json=FORM, timeout=20)
        return (i, r.status_code, r.json())
    except Exception as e:
        return (i, "ERR", str(e))


def run(workers, product_id, qty):
    print("add:", add_task(product_id, qty))
    print(f"Submitting checkout from {workers} workers at once")
    with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as ex:
        results = list(ex.map(submit_task, range(workers)))
    for r in results:
        print(r)
    accepted = [r for r in results if r[1] == 200]
    busy = [r for r in results if r[1] == 409]
    print(f"accepted={len(accepted)} rejected_busy={len(busy)}")
    # cancel the surviving attempt so the cart is usable again
    print("cancel:", requests.post(f"{BASE}/api/checkout/cancel", timeout=10).json())


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Fire concurrent checkout submits; only one may be in flight.")
    parser.add_argument("--workers", type=int, default=8)
    parser.add_argument("--product", required=True)
    parser.add_argument("--qty", type=int, default=1)
    args = parser.parse_args()
    run(args.workers, args.product, args.qty)
