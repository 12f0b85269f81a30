"""
Payment Routes
================
UPI initiate/verify, payment status, gateway callback, refund.
"""

from typing import Optional, Dict, Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from config.database import get_db
from modules.auth.deps import require_login
from modules.checkout.service import checkout_service

router = APIRouter(prefix="/api/payments", tags=["payment"])


# ==========================================
# Schemas
# ==========================================

class InitiateRequest(BaseModel):
    upiId: Optional[str] = None
    address: Optional[Dict[str, Any]] = None


class VerifyRequest(BaseModel):
    transactionId: str = Field(..., min_length=1)


class RefundRequest(BaseModel):
    orderId: int
    amount: Optional[float] = Field(None, gt=0)
    reason: Optional[str] = ""


# ==========================================
# 🏦 UPI: Initiate
# ==========================================

@router.post("/upi/initiate")
async def initiate_upi_payment(
    data: Optional[InitiateRequest] = None,
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    data = data or InitiateRequest()
    result = checkout_service.initiate_checkout(
        db, me, upi_id=data.upiId, shipping_address=data.address,
    )
    db.commit()
    return result


# ==========================================
# 🏦 UPI: Verify
# ==========================================

@router.post("/upi/verify")
def verify_upi_payment(
    data: VerifyRequest,
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    """Runs in the threadpool: the gateway call may block while it settles."""
    result = checkout_service.verify_payment(db, data.transactionId, me.id)
    db.commit()
    return result


# ==========================================
# 🔎 Payment Status
# ==========================================

@router.get("/status/{transaction_id}")
async def payment_status(
    transaction_id: str,
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    return checkout_service.get_payment_status(db, transaction_id, me.id)


# ==========================================
# 🏦 Gateway Callback (server-to-server, signed)
# ==========================================

@router.post("/callback")
async def payment_callback(
    payload: Dict[str, Any],
    db: Session = Depends(get_db),
):
    result = checkout_service.apply_callback(db, payload)
    db.commit()
    return result


# ==========================================
# 🔄 Refund
# ==========================================

@router.post("/refund")
async def refund_payment(
    data: RefundRequest,
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    result = checkout_service.refund_order(
        db, data.orderId, me, amount=data.amount, reason=data.reason or "",
    )
    db.commit()
    return result
