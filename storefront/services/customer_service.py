# storefront/services/customer_service.py
from typing import List

from sqlalchemy.orm import Session

from storefront.data.models.customer import AddressModel, CustomerModel
from storefront.domain.errors import NotFoundError, UnauthorizedError
from storefront.domain.schemas import AddressCreate, AddressRead, CustomerCreate, CustomerRead
from storefront.repos.customer_repo import CustomerRepo
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class CustomerService:
    def __init__(self, db: Session):
        self.repo = CustomerRepo(db)

    def create_customer(self, payload: CustomerCreate) -> CustomerRead:
        existing = self.repo.get_customer_by_email(payload.email)
        if existing:
            return CustomerRead.model_validate(existing)

        created = self.repo.create_customer(CustomerModel(name=payload.name, email=payload.email))
        logger.info(f"Created customer {created.id}")
        return CustomerRead.model_validate(created)

    def get_customer(self, customer_id: int) -> CustomerRead:
        customer = self.repo.get_customer(customer_id)
        if not customer:
            raise NotFoundError("Customer not found")
        return CustomerRead.model_validate(customer)

    def authenticate(self, customer_id: int) -> CustomerModel:
        customer = self.repo.get_customer(customer_id)
        if not customer:
            raise UnauthorizedError("Unknown customer")
        return customer

    def add_address(self, customer_id: int, payload: AddressCreate) -> AddressRead:
        address = self.repo.create_address(AddressModel(customer_id=customer_id, **payload.model_dump()))
        return AddressRead.model_validate(address)

    def list_addresses(self, customer_id: int) -> List[AddressRead]:
        return [AddressRead.model_validate(a) for a in self.repo.list_addresses(customer_id)]
