"""
Order Module - Admin Routes
==============================
Order management for admin: list all orders, set fulfillment status.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from config.database import get_db
from modules.auth.deps import require_admin
from modules.checkout.service import checkout_service
from modules.order.service import order_service, serialize_order

router = APIRouter(prefix="/api/orders", tags=["order-admin"])


class StatusUpdate(BaseModel):
    status: str


@router.get("/admin")
async def admin_orders(
    status: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    user=Depends(require_admin),
):
    orders = order_service.get_all_orders(db, status=status)
    return [serialize_order(o, include_user=True) for o in orders]


@router.put("/{order_id}/status")
async def update_order_status(
    order_id: int,
    data: StatusUpdate,
    db: Session = Depends(get_db),
    user=Depends(require_admin),
):
    order = checkout_service.update_order_status(db, order_id, data.status, user)
    db.commit()
    return {"success": True, "order": serialize_order(order, include_user=True)}
