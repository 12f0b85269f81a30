from datetime import timedelta
from decimal import Decimal

from common.helpers import now_utc
from modules.cart.service import cart_service
from modules.checkout.service import checkout_service
from modules.purchase.models import Purchase
from modules.purchase.service import purchase_service, _months_back


def _purchase(db, user, book_id, price, author="", days_ago=0, title=None):
    row = Purchase(
        user_id=user.id,
        book_id=book_id,
        title=title or f"Book {book_id}",
        author=author,
        price=Decimal(str(price)),
        quantity=1,
        purchased_at=now_utc() - timedelta(days=days_ago),
    )
    db.add(row)
    db.flush()
    return row


def test_months_back_wraps_year():
    assert _months_back(2024, 3, 0) == (2024, 3)
    assert _months_back(2024, 3, 2) == (2024, 1)
    assert _months_back(2024, 3, 5) == (2023, 10)


def test_record_order_is_written_once(db, alice, admin):
    cart_service.add_item(db, alice.id, "OL-A", "Book A", 200)
    cart_service.add_item(db, alice.id, "OL-B", "Book B", 150)
    order = checkout_service.place_cod_order(db, alice)

    rows = purchase_service.record_order(db, order)
    assert len(rows) == 2
    assert purchase_service.record_order(db, order) == []
    assert db.query(Purchase).filter(Purchase.order_id == order.id).count() == 2


def test_history_groups_by_day_newest_first(db, alice, bob):
    _purchase(db, alice, "A", 100, days_ago=3)
    _purchase(db, alice, "B", 50, days_ago=3)
    _purchase(db, alice, "C", 20, days_ago=0)
    _purchase(db, bob, "D", 999, days_ago=0)

    history = purchase_service.get_history(db, alice.id)

    assert [day["itemCount"] for day in history] == [1, 2]
    assert history[0]["date"] == now_utc().date().isoformat()
    assert history[1]["totalSpent"] == 150.0
    assert {p["bookId"] for p in history[1]["purchases"]} == {"A", "B"}


def test_stats(db, alice):
    _purchase(db, alice, "A", 100, author="Tolkien")
    _purchase(db, alice, "B", 50, author="Tolkien")
    _purchase(db, alice, "C", 30, author="Herbert")
    _purchase(db, alice, "OLD", 500, author="Rowling", days_ago=400)

    stats = purchase_service.get_stats(db, alice.id)

    assert stats["totalPurchases"] == 4
    assert stats["totalSpent"] == 680.0
    assert stats["favoriteAuthor"] == "Tolkien"
    # The 400-day-old purchase falls outside the monthly window
    assert sum(m["count"] for m in stats["monthlyStats"]) == 3
    assert stats["monthlyStats"][-1]["month"] == now_utc().month


def test_stats_for_user_without_purchases(db, alice):
    stats = purchase_service.get_stats(db, alice.id)
    assert stats == {"totalPurchases": 0, "totalSpent": 0.0, "favoriteAuthor": None, "monthlyStats": []}


def test_top_selling(db, alice, bob):
    _purchase(db, alice, "DUNE", 420, title="Dune")
    _purchase(db, bob, "DUNE", 420, title="Dune")
    _purchase(db, bob, "EMMA", 150, title="Emma")

    top = purchase_service.get_top_selling(db, limit=5)

    assert [(b["bookId"], b["totalSold"], b["revenue"]) for b in top] == [
        ("DUNE", 2, 840.0),
        ("EMMA", 1, 150.0),
    ]
    assert len(purchase_service.get_top_selling(db, limit=1)) == 1


def test_sales_summary(db, alice, bob):
    cart_service.add_item(db, alice.id, "OL-A", "Book A", 200)
    checkout_service.place_cod_order(db, alice)
    _purchase(db, alice, "A", 100)
    _purchase(db, bob, "B", 50)

    summary = purchase_service.get_sales_summary(db)

    assert summary["totalRevenue"] == 150.0
    assert summary["totalUnits"] == 2
    assert summary["uniqueBuyers"] == 2
    assert summary["ordersByStatus"] == {"pending": 1}
