"""
Cart Routes
=============
JSON API: add to cart, list, remove.
"""

from typing import Dict, Any

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from config.database import get_db
from modules.auth.deps import require_login
from modules.cart.service import cart_service, serialize_item

router = APIRouter(prefix="/api/cart", tags=["cart"])


# ==========================================
# ➕ Add to Cart
# ==========================================

@router.post("/add")
async def add_to_cart(
    data: Dict[str, Any],
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    item = cart_service.add_item(
        db, me.id,
        book_id=data.get("bookId"),
        title=data.get("title"),
        price=data.get("price"),
        author=data.get("author", ""),
        image_url=data.get("imageUrl", ""),
    )
    db.commit()
    return {"success": True, "item": serialize_item(item)}


# ==========================================
# 🛒 View Cart
# ==========================================

@router.get("")
async def list_cart(
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    items = cart_service.list_items(db, me.id)
    return {"items": [serialize_item(i) for i in items]}


# ==========================================
# ➖ Remove Item
# ==========================================

@router.delete("/{item_id}")
async def remove_from_cart(
    item_id: int,
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    cart_service.remove_item(db, me.id, item_id)
    db.commit()
    return {"success": True, "message": "Item removed from cart"}
