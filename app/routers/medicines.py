# app/routers/medicines.py
import uuid

from fastapi import (
    APIRouter,
    Depends,
    File,
    HTTPException,
    Query,
    UploadFile,
    status,
)
from sqlmodel import Session

from app.core.auth import get_current_user, require_admin, require_auth
from app.database import get_session
from app.models.user import User
from app.repositories.cart_repo import CartRepository
from app.repositories.medicine_repo import MedicineRepository
from app.repositories.order_repo import OrderRepository
from app.schemas.medicine import (
    MedicineCreate,
    MedicineFilters,
    MedicineRead,
    MedicineUpdate,
    RecentSearches,
    SearchSuggestion,
    SortBy,
    SortOrder,
)
from app.services.medicine_service import MedicineService
from app.services.search_history import recent_searches

router = APIRouter(prefix="/medicines", tags=["Medicines"])

repo = MedicineRepository()
service = MedicineService(repo, CartRepository(), OrderRepository(), recent_searches)


# -------- Public endpoints --------


@router.get("", response_model=list[MedicineRead])
def list_medicines(
    session: Session = Depends(get_session),
    category_id: uuid.UUID | None = None,
    min_price: float | None = Query(default=None, ge=0),
    max_price: float | None = Query(default=None, ge=0),
    in_stock: bool | None = None,
    prescription_required: bool | None = None,
    manufacturer: str | None = None,
    sort_by: SortBy = "name",
    sort_order: SortOrder = "asc",
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
):
    """
    Browse the catalog with optional filters and sorting.
    """
    filters = MedicineFilters(
        category_id=category_id,
        min_price=min_price,
        max_price=max_price,
        in_stock=in_stock,
        prescription_required=prescription_required,
        manufacturer=manufacturer,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return service.list_medicines(session, filters, skip=skip, limit=limit)


@router.get("/suggestions", response_model=list[SearchSuggestion])
def search_suggestions(
    q: str = "",
    session: Session = Depends(get_session),
):
    """
    Type-ahead suggestions (in-stock only, max 8). Needs 2+ characters.
    """
    return service.suggest(session, q)


@router.get("/search", response_model=list[MedicineRead])
def search_medicines(
    q: str = "",
    session: Session = Depends(get_session),
    current_user: User | None = Depends(get_current_user),
):
    """
    Full search by name, manufacturer or active ingredient.

    Signed-in users get the query added to their recent searches.
    """
    return service.search(session, q, current_user.id if current_user else None)


@router.get("/search/recent", response_model=RecentSearches)
def get_recent_searches(current_user: User = Depends(require_auth)):
    """
    The caller's last few distinct searches, newest first.
    """
    return RecentSearches(items=recent_searches.get(current_user.id))


@router.delete("/search/recent", status_code=status.HTTP_204_NO_CONTENT)
def clear_recent_searches(current_user: User = Depends(require_auth)):
    recent_searches.clear(current_user.id)
    return None


@router.get("/{medicine_id}", response_model=MedicineRead)
def get_medicine(
    medicine_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """
    Get a single medicine by id.
    """
    return service.to_read(service.get_medicine(session, medicine_id))


# -------- Admin endpoints --------


@router.post(
    "",
    response_model=MedicineRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def create_medicine(
    payload: MedicineCreate,
    session: Session = Depends(get_session),
):
    """
    Create a new medicine (admin only).
    """
    return service.to_read(service.create_medicine(session, payload))


@router.patch(
    "/{medicine_id}",
    response_model=MedicineRead,
    dependencies=[Depends(require_admin)],
)
def update_medicine(
    medicine_id: uuid.UUID,
    payload: MedicineUpdate,
    session: Session = Depends(get_session),
):
    """
    Update an existing medicine (admin only).
    """
    return service.to_read(service.update_medicine(session, medicine_id, payload))


@router.delete(
    "/{medicine_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin)],
)
def delete_medicine(
    medicine_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """
    Delete a never-ordered medicine and its image (admin only).
    """
    service.delete_medicine(session, medicine_id)
    return None


@router.post(
    "/{medicine_id}/image",
    response_model=MedicineRead,
    dependencies=[Depends(require_admin)],
    summary="Upload or replace the image of a medicine",
)
def upload_image(
    medicine_id: uuid.UUID,
    file: UploadFile = File(...),
    session: Session = Depends(get_session),
):
    """
    Accepts JPEG, PNG, WEBP up to 5MB; overwrites any previous image.
    """
    if not file.content_type:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing content-type for uploaded file",
        )

    medicine = service.set_image(
        session=session,
        medicine_id=medicine_id,
        content_type=file.content_type,
        file_bytes=file.file.read(),
    )
    return service.to_read(medicine)
