# storefront/repos/order_repo.py
from typing import Any, Dict, List, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, selectinload

from storefront.data.models.order import OrderModel


def _with_details(stmt):
    return stmt.options(
        selectinload(OrderModel.items),
        selectinload(OrderModel.billing_address),
        selectinload(OrderModel.shipping_address),
    )


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def create_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.flush()
        return order

    def get_order(self, order_id: int) -> OrderModel | None:
        return self.db.execute(
            _with_details(select(OrderModel))
            .where(OrderModel.id == order_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def get_order_by_number(self, order_no: str) -> OrderModel | None:
        return self.db.execute(
            _with_details(select(OrderModel)).where(OrderModel.order_no == order_no)
        ).scalar_one_or_none()

    def latest_order_no(self, prefix: str) -> str | None:
        return self.db.execute(
            select(OrderModel.order_no)
            .where(OrderModel.order_no.startswith(prefix))
            .order_by(OrderModel.order_no.desc())
            .limit(1)
        ).scalar_one_or_none()

    def list_orders(
        self,
        filters: Dict[str, Any],
        page: int,
        limit: int,
    ) -> Tuple[List[OrderModel], int]:
        conditions = []
        if filters.get("customer_id") is not None:
            conditions.append(OrderModel.customer_id == filters["customer_id"])
        if filters.get("status"):
            conditions.append(OrderModel.status == filters["status"])
        if filters.get("payment_status"):
            conditions.append(OrderModel.payment_status == filters["payment_status"])
        if filters.get("fulfillment_status"):
            conditions.append(OrderModel.fulfillment_status == filters["fulfillment_status"])
        if filters.get("order_no"):
            conditions.append(OrderModel.order_no.ilike(f"%{filters['order_no']}%"))

        total = self.db.execute(
            select(func.count(OrderModel.id)).where(*conditions)
        ).scalar_one()

        orders = list(
            self.db.execute(
                _with_details(select(OrderModel))
                .where(*conditions)
                .order_by(OrderModel.placed_at.desc(), OrderModel.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            ).scalars()
        )
        return orders, int(total)

    def update_order_version(self, order_id: int, old_version: int, new_data: Dict[str, Any]) -> int:
        # UPDATE orders SET ..., version = old + 1 WHERE id = :id AND version = :old
        result = self.db.execute(
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.version == old_version)
            .values(**new_data, version=old_version + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    def refresh(self, order: OrderModel) -> OrderModel:
        self.db.refresh(order)
        return order
