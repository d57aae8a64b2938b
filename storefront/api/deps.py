# storefront/api/deps.py
from functools import lru_cache

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.domain.errors import UnauthorizedError
from storefront.services.customer_service import CustomerService
from storefront.services.lock_service import LockService
from storefront.services.notification_service import NotificationService
from storefront.services.payment_providers import PaymentProvider, build_payment_provider
from storefront.utils import settings


@lru_cache(maxsize=1)
def get_payment_provider() -> PaymentProvider:
    return build_payment_provider()


@lru_cache(maxsize=1)
def get_lock_service() -> LockService:
    return LockService()


def get_notification_service() -> NotificationService:
    return NotificationService()


def get_current_customer_id(
    x_customer_id: str | None = Header(default=None),
    db: Session = Depends(get_db),
) -> int:
    """Customer identity is issued upstream and forwarded as X-Customer-Id."""
    if not x_customer_id:
        raise UnauthorizedError("Authentication required")
    try:
        customer_id = int(x_customer_id)
    except ValueError:
        raise UnauthorizedError("Invalid customer identity")
    return CustomerService(db).authenticate(customer_id).id


def require_admin(x_admin_token: str | None = Header(default=None)) -> None:
    if not x_admin_token or x_admin_token != settings.ADMIN_API_TOKEN:
        raise UnauthorizedError("Admin token required")
