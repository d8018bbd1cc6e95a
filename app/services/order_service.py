# app/services/order_service.py
import logging
import uuid
from datetime import datetime, timezone

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.core.currency import format_inr
from app.core.storage_utils import upload_to_storage
from app.models.order import Order, OrderItem
from app.repositories.medicine_repo import MedicineRepository
from app.repositories.order_repo import OrderRepository
from app.schemas.order import (
    OrderCreate,
    OrderItemRead,
    OrderStatusUpdate,
    OrderWithItemsRead,
)
from app.services.cart_sync import CartSynchronizer
from app.services.medicine_service import MAX_IMAGE_BYTES, validate_upload

logger = logging.getLogger(__name__)

ALLOWED_PRESCRIPTION_CONTENT_TYPES: dict[str, str] = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "application/pdf": "pdf",
}

# pending    -> processing, cancelled
# processing -> completed, cancelled
# completed / cancelled are terminal
ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"processing", "cancelled"},
    "processing": {"completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}


class OrderService:
    """
    Business logic for orders.

    Responsibilities:
      - Create an order from the synchronized cart
      - Freeze quantity and price-at-purchase into order_items
      - Clear the cart after the order is committed
      - Prescription upload for the order owner
      - Enforce status transitions (admin)
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        medicine_repo: MedicineRepository,
    ):
        self.order_repo = order_repo
        self.medicine_repo = medicine_repo

    # -------- User-facing operations --------

    def checkout(
        self,
        session: Session,
        cart: CartSynchronizer,
        payload: OrderCreate,
    ) -> OrderWithItemsRead:
        """
        Convert the user's cart into an Order.

        Steps:
          1. Re-read the cart from the store; 503 if unreadable, 400 if empty.
          2. Reject lines whose medicine is out of stock.
          3. Create Order (status='pending') and OrderItem rows, commit.
          4. Clear the cart through the synchronizer.
        """
        if cart.user_id is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Please sign in to place an order",
            )

        lines = cart.list()
        if cart.load_failed:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Failed to load cart. Please try again.",
            )
        if not lines:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cart is empty",
            )

        errors = [
            {
                "medicine_id": str(line.medicine_id),
                "reason": f"{line.medicine.name} is out of stock",
            }
            for line in lines
            if not line.medicine.in_stock
        ]
        if errors:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"message": "Cart validation failed", "items": errors},
            )

        total_amount = sum(line.line_total for line in lines)

        try:
            order = self.order_repo.create_order(
                session,
                Order(
                    user_id=cart.user_id,
                    total_amount=total_amount,
                    status="pending",
                    customer_info=payload.customer_info.model_dump(mode="json"),
                ),
            )
            items = self.order_repo.create_items(
                session,
                [
                    OrderItem(
                        order_id=order.id,
                        medicine_id=line.medicine_id,
                        quantity=line.quantity,
                        price=line.medicine.price,
                    )
                    for line in lines
                ],
            )
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            logger.exception("Error creating order for user %s", cart.user_id)
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Failed to create order. Please try again.",
            )

        session.refresh(order)
        for item in items:
            session.refresh(item)

        cart.clear()
        logger.info("Order %s placed by user %s", order.id, cart.user_id)

        return self._build_order_with_items_dto(session, order, items)

    def list_user_orders(
        self,
        session: Session,
        user_id: uuid.UUID,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Order]:
        """
        Order history for the user, newest first (without items).
        """
        return self.order_repo.list_for_user(session, user_id, skip, limit)

    def get_user_order(
        self,
        session: Session,
        user_id: uuid.UUID,
        order_id: uuid.UUID,
    ) -> OrderWithItemsRead:
        """
        404 if order not found or does not belong to this user.
        """
        order = self._get_owned_order(session, user_id, order_id)
        items = self.order_repo.list_items_for_order(session, order.id)
        return self._build_order_with_items_dto(session, order, items)

    def attach_prescription(
        self,
        session: Session,
        user_id: uuid.UUID,
        order_id: uuid.UUID,
        content_type: str,
        file_bytes: bytes,
    ) -> OrderWithItemsRead:
        """
        Upload a prescription for one of the user's orders.

        Path pattern:
            prescriptions/<user_id>/<order_id>.<ext>
        """
        order = self._get_owned_order(session, user_id, order_id)
        if order.status in ("completed", "cancelled"):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Cannot attach a prescription to a {order.status} order",
            )

        ext = validate_upload(
            content_type,
            file_bytes,
            ALLOWED_PRESCRIPTION_CONTENT_TYPES,
            max_bytes=MAX_IMAGE_BYTES,
        )
        path = f"prescriptions/{user_id}/{order.id}.{ext}"
        order.prescription_file_url = upload_to_storage(path, file_bytes, content_type)
        order.updated_at = datetime.now(timezone.utc)

        self.order_repo.update_order(session, order)
        session.commit()
        session.refresh(order)

        items = self.order_repo.list_items_for_order(session, order.id)
        return self._build_order_with_items_dto(session, order, items)

    # -------- Admin operations --------

    def list_all_orders(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
        status_filter: str | None = None,
    ) -> list[Order]:
        return self.order_repo.list_all(session, skip, limit, status=status_filter)

    def get_order_admin(
        self,
        session: Session,
        order_id: uuid.UUID,
    ) -> OrderWithItemsRead:
        order = self.order_repo.get_by_id(session, order_id)
        if not order:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Order not found",
            )
        items = self.order_repo.list_items_for_order(session, order.id)
        return self._build_order_with_items_dto(session, order, items)

    def update_status(
        self,
        session: Session,
        order_id: uuid.UUID,
        payload: OrderStatusUpdate,
    ) -> Order:
        """
        Admin-only status update; see ALLOWED_TRANSITIONS.

        Setting the current status again is a no-op.
        Any invalid transition raises 400.
        """
        order = self.order_repo.get_by_id(session, order_id)
        if not order:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Order not found",
            )

        current = order.status
        new = payload.status

        if current == new:
            return order

        if new not in ALLOWED_TRANSITIONS.get(current, set()):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid status transition: {current} -> {new}",
            )

        order.status = new
        order.updated_at = datetime.now(timezone.utc)
        self.order_repo.update_order(session, order)
        session.commit()
        session.refresh(order)
        logger.info("Order %s moved %s -> %s", order.id, current, new)
        return order

    # -------- Helpers --------

    def _get_owned_order(
        self,
        session: Session,
        user_id: uuid.UUID,
        order_id: uuid.UUID,
    ) -> Order:
        order = self.order_repo.get_by_id(session, order_id)
        if not order or order.user_id != user_id:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Order not found",
            )
        return order

    def _build_order_with_items_dto(
        self,
        session: Session,
        order: Order,
        items: list[OrderItem],
    ) -> OrderWithItemsRead:
        """
        Compose OrderWithItemsRead from ORM rows; medicine names are
        looked up for display only.
        """
        medicines = self.medicine_repo.get_many(
            session, [it.medicine_id for it in items]
        )

        item_dtos: list[OrderItemRead] = []
        requires_prescription = False
        for it in items:
            medicine = medicines.get(it.medicine_id)
            if medicine is not None and medicine.prescription_required:
                requires_prescription = True
            item_dtos.append(
                OrderItemRead(
                    id=it.id,
                    order_id=it.order_id,
                    medicine_id=it.medicine_id,
                    medicine_name=medicine.name if medicine else None,
                    quantity=it.quantity,
                    price=it.price,
                    line_total=it.quantity * it.price,
                )
            )

        return OrderWithItemsRead(
            id=order.id,
            user_id=order.user_id,
            total_amount=order.total_amount,
            status=order.status,
            customer_info=order.customer_info,
            prescription_file_url=order.prescription_file_url,
            created_at=order.created_at,
            updated_at=order.updated_at,
            items=item_dtos,
            requires_prescription=requires_prescription,
            total_display=format_inr(order.total_amount),
        )
