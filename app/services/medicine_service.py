# app/services/medicine_service.py
import logging
import uuid
from datetime import datetime, timezone

from fastapi import HTTPException, status
from sqlmodel import Session

from app.core.currency import discount_percentage, format_inr
from app.core.storage_utils import delete_public_url, upload_to_storage
from app.models.medicine import Category, Medicine
from app.repositories.cart_repo import CartRepository
from app.repositories.medicine_repo import MedicineRepository
from app.repositories.order_repo import OrderRepository
from app.schemas.medicine import (
    CategoryCreate,
    MedicineCreate,
    MedicineFilters,
    MedicineRead,
    MedicineUpdate,
    SearchSuggestion,
)
from app.services.search_history import RecentSearches

logger = logging.getLogger(__name__)

# --- Image config ---

MAX_IMAGE_BYTES = 5 * 1024 * 1024  # 5MB per image

ALLOWED_IMAGE_CONTENT_TYPES: dict[str, str] = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}

MIN_SEARCH_LENGTH = 2
SUGGESTION_LIMIT = 8
SEARCH_RESULT_LIMIT = 50

NON_NULLABLE_FIELDS = ("name", "price", "in_stock", "prescription_required")


def validate_upload(
    content_type: str,
    file_bytes: bytes,
    allowed: dict[str, str],
    max_bytes: int = MAX_IMAGE_BYTES,
) -> str:
    """
    Check type and size of an uploaded file and return its extension.
    """
    if content_type not in allowed:
        kinds = ", ".join(ext.upper() for ext in allowed.values())
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported file type. Allowed: {kinds}.",
        )

    if len(file_bytes) > max_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File too large (max {max_bytes // (1024 * 1024)}MB).",
        )

    return allowed[content_type]


class MedicineService:
    """
    Business logic for the catalog.

    Responsibilities:
      - filtered listing and search suggestions
      - recent-search bookkeeping for signed-in users
      - admin CRUD and image upload orchestration with Supabase Storage
    """

    def __init__(
        self,
        repo: MedicineRepository,
        cart_repo: CartRepository,
        order_repo: OrderRepository,
        recent_searches: RecentSearches,
    ):
        self.repo = repo
        self.cart_repo = cart_repo
        self.order_repo = order_repo
        self.recent_searches = recent_searches

    # ----- Helpers -----

    @staticmethod
    def to_read(medicine: Medicine) -> MedicineRead:
        return MedicineRead(
            **medicine.model_dump(),
            price_display=format_inr(medicine.price),
            discount_percentage=discount_percentage(medicine.mrp, medicine.price),
        )

    def _ensure_category(self, session: Session, category_id: uuid.UUID | None) -> None:
        if category_id is not None and self.repo.get_category(session, category_id) is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Category not found",
            )

    # ----- Catalog -----

    def list_medicines(
        self,
        session: Session,
        filters: MedicineFilters,
        skip: int = 0,
        limit: int = 50,
    ) -> list[MedicineRead]:
        if (
            filters.min_price is not None
            and filters.max_price is not None
            and filters.min_price > filters.max_price
        ):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="min_price cannot exceed max_price",
            )
        medicines = self.repo.list_medicines(session, filters, skip=skip, limit=limit)
        return [self.to_read(m) for m in medicines]

    def get_medicine(self, session: Session, medicine_id: uuid.UUID) -> Medicine:
        medicine = self.repo.get_by_id(session, medicine_id)
        if not medicine:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Medicine not found",
            )
        return medicine

    def suggest(self, session: Session, query: str) -> list[SearchSuggestion]:
        """
        Type-ahead suggestions: in-stock matches only, at most 8.
        """
        query = query.strip()
        if len(query) < MIN_SEARCH_LENGTH:
            return []

        rows = self.repo.search(session, query, limit=SUGGESTION_LIMIT)
        return [
            SearchSuggestion(
                id=m.id,
                name=m.name,
                manufacturer=m.manufacturer,
                price=m.price,
                image_url=m.image_url,
                category_name=category_name,
            )
            for m, category_name in rows
        ]

    def search(
        self,
        session: Session,
        query: str,
        user_id: uuid.UUID | None = None,
    ) -> list[MedicineRead]:
        """
        Submitted search. Signed-in users get the query remembered.
        """
        query = query.strip()
        if user_id is not None:
            self.recent_searches.record(user_id, query)
        if len(query) < MIN_SEARCH_LENGTH:
            return []

        rows = self.repo.search(
            session, query, limit=SEARCH_RESULT_LIMIT, in_stock_only=False
        )
        return [self.to_read(m) for m, _ in rows]

    # ----- Admin: medicines -----

    def create_medicine(self, session: Session, payload: MedicineCreate) -> Medicine:
        self._ensure_category(session, payload.category_id)
        medicine = Medicine(**payload.model_dump())
        return self.repo.create(session, medicine)

    def update_medicine(
        self,
        session: Session,
        medicine_id: uuid.UUID,
        payload: MedicineUpdate,
    ) -> Medicine:
        """
        Partial update; only fields present in the payload change.
        """
        medicine = self.get_medicine(session, medicine_id)
        changes = payload.model_dump(exclude_unset=True)

        if "category_id" in changes:
            self._ensure_category(session, changes["category_id"])
        for field in NON_NULLABLE_FIELDS:
            if field in changes and changes[field] is None:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"{field} cannot be null",
                )

        for field, value in changes.items():
            setattr(medicine, field, value)
        medicine.updated_at = datetime.now(timezone.utc)

        return self.repo.update(session, medicine)

    def delete_medicine(self, session: Session, medicine_id: uuid.UUID) -> None:
        """
        Delete a medicine that was never ordered, its cart lines, and its image.
        """
        medicine = self.get_medicine(session, medicine_id)

        if self.order_repo.count_items_for_medicine(session, medicine_id):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Medicine appears in orders; mark it out of stock instead",
            )

        if medicine.image_url:
            self._delete_image_best_effort(medicine.image_url)

        self.cart_repo.delete_for_medicine(session, medicine_id)
        self.repo.delete(session, medicine)

    def set_image(
        self,
        session: Session,
        medicine_id: uuid.UUID,
        content_type: str,
        file_bytes: bytes,
    ) -> Medicine:
        """
        Upload or replace the medicine image.

        Path pattern:
            medicines/<medicine_id>/image.<ext>
        """
        medicine = self.get_medicine(session, medicine_id)
        ext = validate_upload(content_type, file_bytes, ALLOWED_IMAGE_CONTENT_TYPES)

        if medicine.image_url:
            self._delete_image_best_effort(medicine.image_url)

        path = f"medicines/{medicine.id}/image.{ext}"
        medicine.image_url = upload_to_storage(path, file_bytes, content_type)
        medicine.updated_at = datetime.now(timezone.utc)

        return self.repo.update(session, medicine)

    @staticmethod
    def _delete_image_best_effort(url: str) -> None:
        try:
            delete_public_url(url)
        except Exception:
            logger.warning("Could not delete stored image %s", url, exc_info=True)

    # ----- Categories -----

    def list_categories(self, session: Session) -> list[Category]:
        return self.repo.list_categories(session)

    def create_category(self, session: Session, payload: CategoryCreate) -> Category:
        if self.repo.get_category_by_name(session, payload.name) is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Category already exists",
            )
        return self.repo.create_category(session, Category(**payload.model_dump()))
