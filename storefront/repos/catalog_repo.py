# storefront/repos/catalog_repo.py
from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from storefront.data.models.catalog import VariantModel


class CatalogRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_variant(self, variant_id: int) -> VariantModel | None:
        return self.db.execute(
            select(VariantModel)
            .options(selectinload(VariantModel.product), selectinload(VariantModel.prices))
            .where(VariantModel.id == variant_id)
        ).scalar_one_or_none()

    def adjust_stock(self, variant_id: int, delta: int) -> int:
        """Atomic stock change; untracked variants (NULL stock) are left alone."""
        result = self.db.execute(
            update(VariantModel)
            .where(VariantModel.id == variant_id, VariantModel.stock_on_hand.is_not(None))
            .values(stock_on_hand=VariantModel.stock_on_hand + delta)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
