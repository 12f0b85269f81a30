"""
Bookmart - Demo Data Seeder
=============================
Seeds demo users, a few cart items and one paid order so the
reports have something to show. Prints a bearer token per user.

Usage:
    python scripts/seed.py          # Seed (idempotent)
    python scripts/seed.py --reset  # Drop all tables and reseed
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config.database import SessionLocal, Base, engine
from common.helpers import now_utc, generate_transaction_id
from common.security import create_token
from modules.user.models import User, UserRole
from modules.cart.models import CartItem  # noqa: F401
from modules.cart.service import cart_service
from modules.order.models import Order, OrderItem, OrderStatusLog, PaymentMethod  # noqa: F401
from modules.order.service import order_service
from modules.purchase.models import Purchase  # noqa: F401
from modules.purchase.service import purchase_service


USERS = [
    {"username": "admin", "email": "admin@bookmart.local", "role": UserRole.ADMIN},
    {"username": "reader", "email": "reader@bookmart.local", "role": UserRole.USER},
    {"username": "critic", "email": "critic@bookmart.local", "role": UserRole.USER},
]

BOOKS = [
    {"book_id": "OL27448W", "title": "The Lord of the Rings", "author": "J.R.R. Tolkien", "price": 499},
    {"book_id": "OL82563W", "title": "Harry Potter and the Philosopher's Stone", "author": "J.K. Rowling", "price": 350},
    {"book_id": "OL1168083W", "title": "Dune", "author": "Frank Herbert", "price": 420},
    {"book_id": "OL45883W", "title": "The Hobbit", "author": "J.R.R. Tolkien", "price": 299},
]


def seed(reset=False):
    if reset:
        print("Dropping all tables...")
        Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        print("=" * 50)
        print("  Bookmart - Demo Seeder")
        print("=" * 50)

        # ==========================================
        # 1. Users
        # ==========================================
        print("\n[1/3] Users")
        users = {}
        for data in USERS:
            user = db.query(User).filter(User.username == data["username"]).first()
            if not user:
                user = User(**data, is_active=True)
                db.add(user)
                db.flush()
                print(f"  + {data['role']}: {data['username']} (#{user.id})")
            else:
                print(f"  = exists: {data['username']}")
            users[data["username"]] = user

        # ==========================================
        # 2. Paid order for "reader"
        # ==========================================
        print("\n[2/3] Orders")
        reader = users["reader"]
        if not db.query(Order).filter(Order.user_id == reader.id).first():
            items = [
                cart_service.add_item(db, reader.id, b["book_id"], b["title"], b["price"], author=b["author"])
                for b in BOOKS[:2]
            ]
            order = order_service.create_from_cart(
                db, reader.id, items,
                payment_method=PaymentMethod.UPI.value,
                transaction_id=generate_transaction_id(),
            )
            order_service.transition_payment(db, order, {
                "payment_status": "completed",
                "status": "completed",
                "payment_gateway": "UPI (simulated)",
                "paid_at": now_utc(),
            })
            purchase_service.record_order(db, order)
            cart_service.clear(db, reader.id)
            print(f"  + order #{order.id} for {reader.username}: {order.total_amount}")
        else:
            print(f"  = {reader.username} already has orders")

        # ==========================================
        # 3. Open cart for "critic"
        # ==========================================
        print("\n[3/3] Carts")
        critic = users["critic"]
        for b in BOOKS[2:]:
            cart_service.add_item(db, critic.id, b["book_id"], b["title"], b["price"], author=b["author"])
        print(f"  ~ {critic.username} cart: {cart_service.count_items(db, critic.id)} items")

        db.commit()

        print("\nBearer tokens:")
        for user in users.values():
            print(f"  {user.username:8s} {create_token({'userId': user.id, 'role': user.role})}")
        print("\nSeed complete!")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed(reset="--reset" in sys.argv)
