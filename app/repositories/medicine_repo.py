# app/repositories/medicine_repo.py
import uuid

from sqlalchemy import or_
from sqlmodel import Session, select

from app.models.medicine import Category, Medicine
from app.schemas.medicine import MedicineFilters

LIKE_ESCAPE = "\\"


def contains_pattern(text: str) -> str:
    """
    `%text%` with LIKE wildcards in `text` matched literally.
    """
    escaped = (
        text.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"


class MedicineRepository:
    """
    Data access layer for Medicine & Category.

    - Pure DB operations (CRUD + queries).
    - No FastAPI, no business logic.
    """

    # ----- Medicines -----

    def get_by_id(self, session: Session, medicine_id: uuid.UUID) -> Medicine | None:
        return session.get(Medicine, medicine_id)

    def get_many(
        self, session: Session, medicine_ids: list[uuid.UUID]
    ) -> dict[uuid.UUID, Medicine]:
        if not medicine_ids:
            return {}
        stmt = select(Medicine).where(Medicine.id.in_(medicine_ids))
        return {m.id: m for m in session.exec(stmt).all()}

    def list_medicines(
        self,
        session: Session,
        filters: MedicineFilters,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Medicine]:
        stmt = select(Medicine)

        if filters.category_id is not None:
            stmt = stmt.where(Medicine.category_id == filters.category_id)
        if filters.min_price is not None:
            stmt = stmt.where(Medicine.price >= filters.min_price)
        if filters.max_price is not None:
            stmt = stmt.where(Medicine.price <= filters.max_price)
        if filters.in_stock is not None:
            stmt = stmt.where(Medicine.in_stock == filters.in_stock)
        if filters.prescription_required is not None:
            stmt = stmt.where(
                Medicine.prescription_required == filters.prescription_required
            )
        if filters.manufacturer:
            stmt = stmt.where(
                Medicine.manufacturer.ilike(
                    contains_pattern(filters.manufacturer), escape=LIKE_ESCAPE
                )
            )

        column = {
            "name": Medicine.name,
            "price": Medicine.price,
            "newest": Medicine.created_at,
        }[filters.sort_by]
        stmt = stmt.order_by(column.desc() if filters.sort_order == "desc" else column.asc())

        stmt = stmt.offset(skip).limit(limit)
        return session.exec(stmt).all()

    def search(
        self,
        session: Session,
        query: str,
        limit: int = 8,
        in_stock_only: bool = True,
    ) -> list[tuple[Medicine, str | None]]:
        """
        Medicines whose name, manufacturer or active ingredient contains
        `query` (case-insensitive), with their category name.
        """
        pattern = contains_pattern(query)
        stmt = (
            select(Medicine, Category.name)
            .join(Category, Category.id == Medicine.category_id, isouter=True)
            .where(
                or_(
                    Medicine.name.ilike(pattern, escape=LIKE_ESCAPE),
                    Medicine.manufacturer.ilike(pattern, escape=LIKE_ESCAPE),
                    Medicine.active_ingredient.ilike(pattern, escape=LIKE_ESCAPE),
                )
            )
        )
        if in_stock_only:
            stmt = stmt.where(Medicine.in_stock == True)  # noqa: E712
        stmt = stmt.order_by(Medicine.name).limit(limit)
        return session.exec(stmt).all()

    def create(self, session: Session, medicine: Medicine) -> Medicine:
        session.add(medicine)
        session.commit()
        session.refresh(medicine)
        return medicine

    def update(self, session: Session, medicine: Medicine) -> Medicine:
        session.add(medicine)
        session.commit()
        session.refresh(medicine)
        return medicine

    def delete(self, session: Session, medicine: Medicine) -> None:
        session.delete(medicine)
        session.commit()

    # ----- Categories -----

    def list_categories(self, session: Session) -> list[Category]:
        return session.exec(select(Category).order_by(Category.name)).all()

    def get_category(self, session: Session, category_id: uuid.UUID) -> Category | None:
        return session.get(Category, category_id)

    def get_category_by_name(self, session: Session, name: str) -> Category | None:
        stmt = select(Category).where(Category.name == name)
        return session.exec(stmt).first()

    def create_category(self, session: Session, category: Category) -> Category:
        session.add(category)
        session.commit()
        session.refresh(category)
        return category
