"""
Order Routes
==============
Customer side: place a pay-on-delivery order, list own orders.
"""

from typing import Optional, Dict, Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from config.database import get_db
from common.exceptions import AuthorizationError
from modules.auth.deps import require_login
from modules.checkout.service import checkout_service
from modules.order.service import order_service, serialize_order

router = APIRouter(prefix="/api/orders", tags=["orders"])


class PlaceOrderRequest(BaseModel):
    address: Optional[Dict[str, Any]] = None


@router.post("", status_code=201)
async def place_order(
    data: Optional[PlaceOrderRequest] = None,
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    """Pay-on-delivery order from the current cart."""
    order = checkout_service.place_cod_order(db, me, shipping_address=(data.address if data else None))
    db.commit()
    return {"message": "Order created successfully", "order": serialize_order(order)}


@router.get("/user/{user_id}")
async def user_orders(
    user_id: int,
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    if me.id != user_id and not me.is_admin:
        raise AuthorizationError("Access denied")
    orders = order_service.get_user_orders(db, user_id)
    return [serialize_order(o, include_user=True) for o in orders]
