"""
Purchase Module - Service Layer
=================================
Ledger writes after a completed order, and the reporting views built on it:
per-user history and stats, top-selling books, admin sales summary.
"""

import logging
from collections import Counter, OrderedDict
from decimal import Decimal
from typing import Dict, Any, List

from sqlalchemy.orm import Session
from sqlalchemy import func, desc, distinct

from common.helpers import now_utc, ensure_utc, money, isoformat
from modules.order.models import Order
from modules.purchase.models import Purchase

logger = logging.getLogger("bookmart.purchase")

MONTHLY_STATS_MONTHS = 6


def serialize_purchase(p: Purchase) -> Dict[str, Any]:
    return {
        "id": p.id,
        "orderId": p.order_id,
        "bookId": p.book_id,
        "title": p.title,
        "author": p.author,
        "price": money(p.price),
        "quantity": p.quantity,
        "date": isoformat(p.purchased_at),
    }


def _months_back(year: int, month: int, n: int):
    """(year, month) n months before the given one."""
    index = year * 12 + (month - 1) - n
    return index // 12, index % 12 + 1


class PurchaseService:

    # ==========================================
    # Ledger
    # ==========================================

    def record_order(self, db: Session, order: Order) -> List[Purchase]:
        """
        One Purchase per order line, quantity 1. Does nothing if the order
        already has ledger rows.
        """
        already = db.query(Purchase.id).filter(Purchase.order_id == order.id).first()
        if already:
            logger.warning(f"Purchases for order #{order.id} already recorded, skipping")
            return []

        rows = [
            Purchase(
                user_id=order.user_id,
                order_id=order.id,
                book_id=oi.book_id,
                title=oi.title,
                author=oi.author,
                price=oi.price,
                quantity=1,
            )
            for oi in order.items
        ]
        db.add_all(rows)
        db.flush()
        logger.info(f"Recorded {len(rows)} purchases for order #{order.id}")
        return rows

    def get_user_purchases(self, db: Session, user_id: int) -> List[Purchase]:
        return (
            db.query(Purchase)
            .filter(Purchase.user_id == user_id)
            .order_by(desc(Purchase.purchased_at), desc(Purchase.id))
            .all()
        )

    # ==========================================
    # User reports
    # ==========================================

    def get_history(self, db: Session, user_id: int) -> List[Dict[str, Any]]:
        """Purchases grouped by calendar day (UTC), newest day first."""
        groups: "OrderedDict[str, List[Purchase]]" = OrderedDict()
        for p in self.get_user_purchases(db, user_id):
            day = ensure_utc(p.purchased_at).date().isoformat()
            groups.setdefault(day, []).append(p)

        return [
            {
                "date": day,
                "purchases": [serialize_purchase(p) for p in rows],
                "itemCount": len(rows),
                "totalSpent": money(sum((p.price * p.quantity for p in rows), Decimal("0.00"))),
            }
            for day, rows in groups.items()
        ]

    def get_stats(self, db: Session, user_id: int) -> Dict[str, Any]:
        purchases = self.get_user_purchases(db, user_id)

        total_spent = sum((p.price * p.quantity for p in purchases), Decimal("0.00"))
        authors = Counter(p.author for p in purchases if p.author)
        favorite_author = authors.most_common(1)[0][0] if authors else None

        now = now_utc()
        start = _months_back(now.year, now.month, MONTHLY_STATS_MONTHS - 1)
        monthly: Dict[tuple, Dict[str, Any]] = {}
        for p in purchases:
            ts = ensure_utc(p.purchased_at)
            key = (ts.year, ts.month)
            if key < start:
                continue
            bucket = monthly.setdefault(key, {"count": 0, "totalSpent": Decimal("0.00")})
            bucket["count"] += p.quantity
            bucket["totalSpent"] += p.price * p.quantity

        return {
            "totalPurchases": sum(p.quantity for p in purchases),
            "totalSpent": money(total_spent),
            "favoriteAuthor": favorite_author,
            "monthlyStats": [
                {"year": y, "month": m, "count": b["count"], "totalSpent": money(b["totalSpent"])}
                for (y, m), b in sorted(monthly.items())
            ],
        }

    # ==========================================
    # Global reports
    # ==========================================

    def get_top_selling(self, db: Session, limit: int = 10) -> List[Dict[str, Any]]:
        total_sold = func.sum(Purchase.quantity).label("total_sold")
        rows = (
            db.query(
                Purchase.book_id,
                func.max(Purchase.title),
                func.max(Purchase.author),
                total_sold,
                func.sum(Purchase.price * Purchase.quantity),
            )
            .group_by(Purchase.book_id)
            .order_by(desc(total_sold), Purchase.book_id)
            .limit(limit)
            .all()
        )
        return [
            {
                "bookId": book_id,
                "title": title,
                "author": author,
                "totalSold": int(sold or 0),
                "revenue": money(revenue),
            }
            for book_id, title, author, sold, revenue in rows
        ]

    def get_sales_summary(self, db: Session) -> Dict[str, Any]:
        revenue, units, buyers = db.query(
            func.coalesce(func.sum(Purchase.price * Purchase.quantity), 0),
            func.coalesce(func.sum(Purchase.quantity), 0),
            func.count(distinct(Purchase.user_id)),
        ).one()

        by_status = dict(
            db.query(Order.status, func.count(Order.id)).group_by(Order.status).all()
        )
        return {
            "totalRevenue": money(revenue),
            "totalUnits": int(units or 0),
            "uniqueBuyers": int(buyers or 0),
            "ordersByStatus": by_status,
        }


# Singleton
purchase_service = PurchaseService()
