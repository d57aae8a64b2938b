# storefront/repos/payment_repo.py
from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session

from storefront.data.models.payment import PaymentModel


class PaymentRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_by_provider_ref(self, provider: str, provider_ref: str) -> PaymentModel | None:
        return self.db.execute(
            select(PaymentModel).where(
                PaymentModel.provider == provider,
                PaymentModel.provider_ref == provider_ref,
            )
        ).scalar_one_or_none()

    def find_for_order(self, order_id: int, method: str | None = None) -> List[PaymentModel]:
        stmt = select(PaymentModel).where(PaymentModel.order_id == order_id)
        if method is not None:
            stmt = stmt.where(PaymentModel.method == method)
        return list(self.db.execute(stmt.order_by(PaymentModel.id)).scalars())

    def add_payment(self, payment: PaymentModel) -> PaymentModel:
        # flush so a duplicate (provider, provider_ref) surfaces as IntegrityError here
        self.db.add(payment)
        self.db.flush()
        return payment
