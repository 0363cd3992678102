from fastapi import APIRouter, Depends, HTTPException

from campus_market import storage
from campus_market.auth.dependencies import get_current_user
from campus_market.db import get_session
from campus_market.models.user_db import User as DBUser
from campus_market.models.wallet import OrderCreate, OrderStatusUpdate

router = APIRouter(prefix="/api/orders", tags=["Orders"])


@router.get("/my-orders")
def get_my_orders(user: DBUser = Depends(get_current_user)):
    with get_session() as session:
        return [o.model_dump(mode="json") for o in storage.get_buyer_orders(session, user.id)]


@router.get("/my-sales")
def get_my_sales(user: DBUser = Depends(get_current_user)):
    with get_session() as session:
        return [o.model_dump(mode="json") for o in storage.get_seller_sales(session, user.id)]


@router.get("/{order_id}")
def get_order(order_id: int, user: DBUser = Depends(get_current_user)):
    with get_session() as session:
        order = storage.get_order(session, order_id)
        if not order:
            raise HTTPException(status_code=404, detail="Order not found")
        if user.id not in (order.buyer_id, order.seller_id):
            raise HTTPException(status_code=403, detail="You don't have permission to view this order")
        return order.model_dump(mode="json")


@router.post("", status_code=201)
def create_order(data: OrderCreate, user: DBUser = Depends(get_current_user)):
    with get_session() as session:
        order = storage.create_order(session, user.id, data.listing_id)
        return order.model_dump(mode="json")


@router.put("/{order_id}/status")
def update_order_status(order_id: int, data: OrderStatusUpdate, user: DBUser = Depends(get_current_user)):
    with get_session() as session:
        order = storage.update_order_status(session, order_id, user.id, data.status)
        return order.model_dump(mode="json")
