# app/services/cart_sync.py
from __future__ import annotations

import logging
import uuid
from typing import Callable

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.core.currency import format_inr
from app.models.cart import CartItem
from app.models.medicine import Medicine
from app.repositories.cart_repo import CartRepository
from app.repositories.medicine_repo import MedicineRepository
from app.schemas.cart import (
    CartChangeEvent,
    CartLine,
    CartView,
    MedicineSnapshot,
    Notice,
    NoticeLevel,
)
from app.services.cart_feed import CartChangeFeed

logger = logging.getLogger(__name__)


class CartSynchronizer:
    """
    Keeps an in-memory list of cart lines in step with the cart_items table.

    One instance serves one user session:
      - open(user_id) binds the user (None = guest),
      - close() drops the cached lines and the user.

    The database is the source of truth. Every mutation, successful or
    not, ends with refresh(), so `lines` always reflects the last rows
    read back from the store and is never updated optimistically.
    Store failures are rolled back, logged and turned into notices;
    they never propagate to the caller.

    Concurrent writes to the same line are last-write-wins.
    """

    def __init__(
        self,
        session: Session,
        cart_repo: CartRepository,
        medicine_repo: MedicineRepository,
        feed: CartChangeFeed | None = None,
    ):
        self.session = session
        self.cart_repo = cart_repo
        self.medicine_repo = medicine_repo
        self.feed = feed

        self.user_id: uuid.UUID | None = None
        self.lines: list[CartLine] = []
        self.auth_required = False
        self.load_failed = False
        self._notices: list[Notice] = []

    # ---- lifecycle ----

    def open(self, user_id: uuid.UUID | None) -> CartSynchronizer:
        self.user_id = user_id
        self.lines = []
        self.auth_required = False
        self.load_failed = False
        self._notices = []
        return self

    def close(self) -> None:
        self.user_id = None
        self.lines = []
        self.auth_required = False
        self.load_failed = False
        self._notices = []

    # ---- derived state ----

    @property
    def total(self) -> float:
        return sum(line.line_total for line in self.lines)

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    def drain_notices(self) -> list[Notice]:
        notices, self._notices = self._notices, []
        return notices

    def view(self) -> CartView:
        total = self.total
        return CartView(
            items=list(self.lines),
            item_count=self.item_count,
            total=total,
            total_display=format_inr(total),
            notices=self.drain_notices(),
        )

    # ---- reads ----

    def refresh(self) -> list[CartLine]:
        """
        Re-read the user's lines with live medicine snapshots.

        On a read failure the last known lines are kept and `load_failed`
        is set until the next successful read.
        """
        if self.user_id is None:
            self.lines = []
            self.load_failed = False
            return self.lines

        try:
            rows = self.cart_repo.list_with_medicines(self.session, self.user_id)
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception("Error fetching cart items for user %s", self.user_id)
            self._notify("error", "Failed to load cart items")
            self.load_failed = True
            return self.lines

        self.load_failed = False
        self.lines = [self._to_line(item, medicine) for item, medicine in rows]
        return self.lines

    def list(self) -> list[CartLine]:
        return list(self.refresh())

    # ---- mutations ----

    def add(self, medicine_id: uuid.UUID, quantity: int = 1) -> list[CartLine]:
        """
        Increment the medicine's line by `quantity`, creating it if needed.
        """
        self._check_quantity(quantity, minimum=1)
        if not self._require_user("Please sign in to add items to cart"):
            return self.lines

        def write() -> CartChangeEvent | None:
            medicine = self.medicine_repo.get_by_id(self.session, medicine_id)
            if medicine is None:
                self._notify("error", "Product not found")
                return None
            if not medicine.in_stock:
                self._notify("warning", f"{medicine.name} is out of stock")
                return None

            existing = self.cart_repo.get_item(self.session, self.user_id, medicine_id)
            if existing is not None:
                item = self.cart_repo.set_quantity(
                    self.session, existing, existing.quantity + quantity
                )
                event = "UPDATE"
            else:
                item = self.cart_repo.create(
                    self.session,
                    CartItem(
                        user_id=self.user_id,
                        medicine_id=medicine_id,
                        quantity=quantity,
                    ),
                )
                event = "INSERT"

            self._notify("success", "Item added to cart")
            return CartChangeEvent(event=event, user_id=self.user_id, line_id=item.id)

        return self._mutate(write, "Failed to add item to cart")

    def update_quantity(self, line_id: uuid.UUID, quantity: int) -> list[CartLine]:
        """
        Overwrite a line's quantity; zero or less removes the line.
        """
        self._check_quantity(quantity)
        if not self._require_user("Please sign in to update your cart"):
            return self.lines

        if quantity <= 0:
            return self.remove(line_id)

        def write() -> CartChangeEvent | None:
            item = self.cart_repo.get_for_user(self.session, self.user_id, line_id)
            if item is None:
                return None
            self.cart_repo.set_quantity(self.session, item, quantity)
            return CartChangeEvent(event="UPDATE", user_id=self.user_id, line_id=line_id)

        return self._mutate(write, "Failed to update quantity")

    def remove(self, line_id: uuid.UUID) -> list[CartLine]:
        """
        Delete a line. Removing an absent line is a no-op.
        """
        if not self._require_user("Please sign in to update your cart"):
            return self.lines

        def write() -> CartChangeEvent | None:
            item = self.cart_repo.get_for_user(self.session, self.user_id, line_id)
            if item is None:
                return None
            self.cart_repo.delete(self.session, item)
            self._notify("success", "Item removed from cart")
            return CartChangeEvent(event="DELETE", user_id=self.user_id, line_id=line_id)

        return self._mutate(write, "Failed to remove item")

    def clear(self) -> list[CartLine]:
        """
        Delete every line of the user.
        """
        if not self._require_user("Please sign in to update your cart"):
            return self.lines

        def write() -> CartChangeEvent | None:
            removed = self.cart_repo.clear_user_cart(self.session, self.user_id)
            self._notify("success", "Cart cleared")
            if not removed:
                return None
            return CartChangeEvent(event="DELETE", user_id=self.user_id)

        return self._mutate(write, "Failed to clear cart")

    # ---- internal helpers ----

    def _mutate(
        self,
        write: Callable[[], CartChangeEvent | None],
        failure_message: str,
    ) -> list[CartLine]:
        try:
            change = write()
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception("%s (user %s)", failure_message, self.user_id)
            self._notify("error", failure_message)
        else:
            if change is not None and self.feed is not None:
                self.feed.publish(change)

        return self.refresh()

    def _require_user(self, message: str) -> bool:
        if self.user_id is not None:
            return True
        self.auth_required = True
        self._notify("warning", message)
        return False

    def _notify(self, level: NoticeLevel, message: str) -> None:
        self._notices.append(Notice(level=level, message=message))

    @staticmethod
    def _check_quantity(quantity: int, minimum: int | None = None) -> None:
        # bool is an int subclass; reject it along with floats
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Quantity must be a whole number",
            )
        if minimum is not None and quantity < minimum:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Quantity must be at least {minimum}",
            )

    @staticmethod
    def _to_line(item: CartItem, medicine: Medicine) -> CartLine:
        return CartLine(
            id=item.id,
            medicine_id=item.medicine_id,
            quantity=item.quantity,
            medicine=MedicineSnapshot(
                id=medicine.id,
                name=medicine.name,
                price=medicine.price,
                image_url=medicine.image_url,
                dosage=medicine.dosage,
                prescription_required=medicine.prescription_required,
                in_stock=medicine.in_stock,
            ),
            line_total=item.quantity * medicine.price,
        )
