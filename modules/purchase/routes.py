"""
Purchase & Report Routes
==========================
Purchase history and stats for the current user; top-selling books;
admin sales summary.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from config.database import get_db
from modules.auth.deps import require_login, require_admin
from modules.purchase.service import purchase_service

router = APIRouter(tags=["purchases"])


@router.get("/api/purchases/history")
async def purchase_history(
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    return {"history": purchase_service.get_history(db, me.id)}


@router.get("/api/purchases/stats")
async def purchase_stats(
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    return {"stats": purchase_service.get_stats(db, me.id)}


@router.get("/api/reports/top-selling")
async def top_selling(
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
):
    return {"books": purchase_service.get_top_selling(db, limit=limit)}


@router.get("/api/reports/summary")
async def sales_summary(
    db: Session = Depends(get_db),
    user=Depends(require_admin),
):
    return purchase_service.get_sales_summary(db)
