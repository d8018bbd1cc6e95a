# app/repositories/cart_repo.py
import uuid
from datetime import datetime, timezone

from sqlmodel import Session, select

from app.models.cart import CartItem
from app.models.medicine import Medicine


class CartRepository:
    """
    Data access layer for cart_items.

    Every write commits; the caller decides what to do on failure.
    """

    def list_for_user(self, session: Session, user_id: uuid.UUID) -> list[CartItem]:
        stmt = (
            select(CartItem)
            .where(CartItem.user_id == user_id)
            .order_by(CartItem.created_at)
        )
        return session.exec(stmt).all()

    def list_with_medicines(
        self, session: Session, user_id: uuid.UUID
    ) -> list[tuple[CartItem, Medicine]]:
        """
        Cart lines joined with the current medicine rows, oldest line first.
        """
        stmt = (
            select(CartItem, Medicine)
            .join(Medicine, Medicine.id == CartItem.medicine_id)
            .where(CartItem.user_id == user_id)
            .order_by(CartItem.created_at)
        )
        return session.exec(stmt).all()

    def get_item(
        self, session: Session, user_id: uuid.UUID, medicine_id: uuid.UUID
    ) -> CartItem | None:
        stmt = select(CartItem).where(
            CartItem.user_id == user_id, CartItem.medicine_id == medicine_id
        )
        return session.exec(stmt).first()

    def get_for_user(
        self, session: Session, user_id: uuid.UUID, line_id: uuid.UUID
    ) -> CartItem | None:
        stmt = select(CartItem).where(
            CartItem.id == line_id, CartItem.user_id == user_id
        )
        return session.exec(stmt).first()

    # CRUD
    def create(self, session: Session, item: CartItem) -> CartItem:
        session.add(item)
        session.commit()
        session.refresh(item)
        return item

    def set_quantity(self, session: Session, item: CartItem, quantity: int) -> CartItem:
        item.quantity = quantity
        item.updated_at = datetime.now(timezone.utc)
        session.add(item)
        session.commit()
        session.refresh(item)
        return item

    def delete(self, session: Session, item: CartItem) -> None:
        session.delete(item)
        session.commit()

    def clear_user_cart(self, session: Session, user_id: uuid.UUID) -> int:
        """
        Delete every line of the user; returns the number of rows removed.
        """
        rows = self.list_for_user(session, user_id)
        for row in rows:
            session.delete(row)
        session.commit()
        return len(rows)

    def delete_for_medicine(self, session: Session, medicine_id: uuid.UUID) -> None:
        """
        Drop every user's line for a medicine that is being deleted.
        No commit; the caller commits together with the medicine delete.
        """
        stmt = select(CartItem).where(CartItem.medicine_id == medicine_id)
        for row in session.exec(stmt).all():
            session.delete(row)
