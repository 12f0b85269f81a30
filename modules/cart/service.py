"""
Cart Module - Service Layer
==============================
Cart management: idempotent add, list, remove, clear.
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from common.exceptions import ValidationError, NotFoundError
from common.helpers import to_decimal, money, isoformat
from modules.cart.models import CartItem

logger = logging.getLogger("bookmart.cart")


def serialize_item(item: CartItem) -> dict:
    return {
        "id": item.id,
        "userId": item.user_id,
        "bookId": item.book_id,
        "title": item.title,
        "author": item.author,
        "price": money(item.price),
        "imageUrl": item.image_url,
        "purchased": item.purchased,
        "createdAt": isoformat(item.created_at),
    }


class CartService:

    def add_item(
        self,
        db: Session,
        user_id: int,
        book_id,
        title,
        price,
        author: Optional[str] = "",
        image_url: Optional[str] = "",
    ) -> CartItem:
        """
        Upsert keyed by (user, book). An existing unpurchased row is returned
        as-is: repeated adds never update price or details.
        """
        if not user_id or not book_id or not title or price is None:
            raise ValidationError("Missing required fields: bookId, title, price")
        if not isinstance(book_id, str) or not isinstance(title, str):
            raise ValidationError("bookId and title must be strings")
        if not isinstance(author, (str, type(None))) or not isinstance(image_url, (str, type(None))):
            raise ValidationError("author and imageUrl must be strings")

        amount = to_decimal(price)
        if amount is None:
            raise ValidationError("Price must be a number")
        if amount < 0:
            raise ValidationError("Price must not be negative")

        existing = self._find(db, user_id, book_id)
        if existing:
            logger.info(f"Book {book_id} already in cart of user #{user_id}")
            return existing

        item = CartItem(
            user_id=user_id,
            book_id=book_id,
            title=title,
            author=author or "",
            price=amount,
            image_url=image_url or "",
            purchased=False,
        )
        try:
            # Savepoint: a lost race undoes this insert only
            with db.begin_nested():
                db.add(item)
        except IntegrityError:
            # Concurrent add won the unique constraint; hand back its row
            existing = self._find(db, user_id, book_id)
            if not existing:
                raise
            return existing

        logger.info(f"Book {book_id} added to cart of user #{user_id} (item #{item.id})")
        return item

    def list_items(self, db: Session, user_id: int) -> List[CartItem]:
        return (
            db.query(CartItem)
            .filter(CartItem.user_id == user_id, CartItem.purchased == False)
            .order_by(CartItem.created_at, CartItem.id)
            .all()
        )

    def count_items(self, db: Session, user_id: int) -> int:
        return db.query(CartItem).filter(
            CartItem.user_id == user_id, CartItem.purchased == False,
        ).count()

    def remove_item(self, db: Session, user_id: int, item_id: int) -> None:
        """Delete one item; items owned by someone else are reported as missing."""
        item = db.query(CartItem).filter(
            CartItem.id == item_id,
            CartItem.user_id == user_id,
        ).first()
        if not item:
            raise NotFoundError("Item not found in cart")
        db.delete(item)
        db.flush()
        logger.info(f"Cart item #{item_id} removed by user #{user_id}")

    def clear(self, db: Session, user_id: int, book_ids: Optional[List[str]] = None) -> int:
        """
        Remove unpurchased items for the user, or only those for `book_ids`.
        Returns number deleted.
        """
        q = db.query(CartItem).filter(
            CartItem.user_id == user_id,
            CartItem.purchased == False,
        )
        if book_ids is not None:
            q = q.filter(CartItem.book_id.in_(book_ids))
        deleted = q.delete(synchronize_session=False)
        db.flush()
        return deleted

    # ==========================================
    # Private helpers
    # ==========================================

    def _find(self, db: Session, user_id: int, book_id: str) -> Optional[CartItem]:
        return db.query(CartItem).filter(
            CartItem.user_id == user_id,
            CartItem.book_id == book_id,
            CartItem.purchased == False,
        ).first()


# Singleton
cart_service = CartService()
