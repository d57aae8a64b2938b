# storefront/repos/cart_repo.py
from datetime import datetime, timezone
from typing import List

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session, selectinload

from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel
from storefront.data.models.catalog import VariantModel


class CartRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_cart(self, cart_id: int) -> CartModel | None:
        return self.db.get(CartModel, cart_id)

    def get_cart_by_customer(self, customer_id: int) -> CartModel | None:
        return self.db.execute(
            select(CartModel).where(CartModel.customer_id == customer_id)
        ).scalar_one_or_none()

    def create_cart(self, cart: CartModel) -> CartModel:
        self.db.add(cart)
        self.db.commit()
        self.db.refresh(cart)
        return cart

    def get_cart_items(self, cart_id: int) -> List[CartItemModel]:
        return list(
            self.db.execute(
                select(CartItemModel)
                .options(
                    selectinload(CartItemModel.variant).selectinload(VariantModel.product),
                    selectinload(CartItemModel.variant).selectinload(VariantModel.prices),
                )
                .where(CartItemModel.cart_id == cart_id)
                .order_by(CartItemModel.id)
                .execution_options(populate_existing=True)
            ).scalars()
        )

    def get_cart_item(self, item_id: int) -> CartItemModel | None:
        return self.db.get(CartItemModel, item_id)

    def get_cart_item_by_variant(self, cart_id: int, variant_id: int) -> CartItemModel | None:
        return self.db.execute(
            select(CartItemModel)
            .where(CartItemModel.cart_id == cart_id, CartItemModel.variant_id == variant_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def count_quantity(self, cart_id: int) -> int:
        total = self.db.execute(
            select(func.coalesce(func.sum(CartItemModel.quantity), 0)).where(
                CartItemModel.cart_id == cart_id
            )
        ).scalar_one()
        return int(total)

    def upsert_item(self, cart_id: int, variant_id: int, quantity: int) -> CartItemModel:
        """
        INSERT ... ON CONFLICT (cart_id, variant_id) DO UPDATE quantity = quantity + n.
        The unique constraint decides, so two concurrent adds never produce two rows.
        """
        dialect = self.db.get_bind().dialect.name
        insert_fn = pg_insert if dialect == "postgresql" else sqlite_insert

        stmt = insert_fn(CartItemModel).values(
            cart_id=cart_id,
            variant_id=variant_id,
            quantity=quantity,
            created_at=datetime.now(timezone.utc),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["cart_id", "variant_id"],
            set_={"quantity": CartItemModel.quantity + stmt.excluded.quantity},
        )
        self.db.execute(stmt)
        return self.get_cart_item_by_variant(cart_id, variant_id)

    def set_item_quantity(self, item: CartItemModel, quantity: int) -> CartItemModel:
        item.quantity = quantity
        self.db.add(item)
        self.db.flush()
        return item

    def delete_cart_item(self, item: CartItemModel) -> None:
        self.db.delete(item)
        self.db.flush()

    def clear_items(self, cart_id: int) -> int:
        result = self.db.execute(
            delete(CartItemModel)
            .where(CartItemModel.cart_id == cart_id)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    def touch(self, cart: CartModel) -> None:
        cart.updated_at = datetime.now(timezone.utc)
        self.db.add(cart)

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
