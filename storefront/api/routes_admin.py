from fastapi import APIRouter, Depends, HTTPException, Query

from storefront.adapters.backend_api import AdminSessionExpired, BackendError
from storefront.api.deps import get_admin
from storefront.schemas.admin_schema import ChangePasswordIn, LoginIn, OrderStatusIn
from storefront.services.admin_service import AdminException, AdminService

router = APIRouter(prefix="/api/admin", tags=["admin"])


def _call(fn, *args, **kwargs):
    """Run an admin operation, mapping failures onto HTTP errors."""
    try:
        return fn(*args, **kwargs)
    except AdminSessionExpired:
        raise HTTPException(status_code=401, detail="Session expired")
    except AdminException as e:
        raise HTTPException(status_code=400, detail=str(e))
    except BackendError as e:
        if e.status_code in (400, 404, 422):
            raise HTTPException(status_code=e.status_code, detail=e.detail or str(e))
        raise HTTPException(status_code=502, detail="Admin service unavailable")


@router.post("/login", summary="Log in and store the admin token")
def login(payload: LoginIn, svc: AdminService = Depends(get_admin)):
    try:
        svc.login(payload.username, payload.password)
    except AdminException as e:
        raise HTTPException(status_code=400, detail=str(e))
    except BackendError as e:
        if e.status_code in (400, 401, 403):
            raise HTTPException(status_code=401, detail="Invalid credentials")
        raise HTTPException(status_code=502, detail="Admin service unavailable")
    return {"logged_in": True}


@router.post("/logout", summary="Forget the admin token")
def logout(svc: AdminService = Depends(get_admin)):
    svc.logout()
    return {"logged_in": False}


@router.get("/session", summary="Whether an admin token is stored")
def session(svc: AdminService = Depends(get_admin)):
    return {"logged_in": svc.is_logged_in()}


@router.get("/stats", summary="Dashboard statistics")
def stats(svc: AdminService = Depends(get_admin)):
    return _call(svc.stats)


@router.get("/products", summary="List products (admin)")
def list_products(svc: AdminService = Depends(get_admin)):
    return _call(svc.list_products)


@router.post("/products", summary="Create product")
def create_product(form: dict, svc: AdminService = Depends(get_admin)):
    return _call(svc.save_product, form)


@router.put("/products/{product_id}", summary="Update product")
def update_product(product_id: str, form: dict, svc: AdminService = Depends(get_admin)):
    return _call(svc.save_product, form, product_id=product_id)


@router.delete("/products/{product_id}", summary="Delete product")
def delete_product(product_id: str, svc: AdminService = Depends(get_admin)):
    _call(svc.delete_product, product_id)
    return {"ok": True}


@router.get("/orders", summary="List orders")
def list_orders(svc: AdminService = Depends(get_admin)):
    return _call(svc.list_orders)


@router.put("/orders/{order_id}", summary="Update order status / tracking id")
def update_order(order_id: str, payload: OrderStatusIn, svc: AdminService = Depends(get_admin)):
    return _call(svc.update_order_status, order_id, payload.order_status, payload.tracking_id or "")


@router.post("/orders/{order_id}/shipment", summary="Create a shipping label for a paid order")
def create_shipment(order_id: str, svc: AdminService = Depends(get_admin)):
    return _call(svc.create_shipment, order_id)


@router.get("/payments", summary="Payment ledger")
def payments(
    status: str = Query("all", description="all | paid | pending | failed"),
    svc: AdminService = Depends(get_admin),
):
    return _call(svc.payment_ledger, status)


@router.post("/change-password", summary="Change the admin password")
def change_password(payload: ChangePasswordIn, svc: AdminService = Depends(get_admin)):
    _call(svc.change_password, payload.old_password, payload.new_password, payload.confirm_password)
    return {"ok": True}
