# all models imported here so SQLAlchemy registers them in Base.metadata

from storefront.data.models.customer import CustomerModel, AddressModel
from storefront.data.models.catalog import ProductModel, VariantModel, VariantPriceModel
from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel
from storefront.data.models.order import OrderModel, OrderItemModel, OrderAddressModel
from storefront.data.models.payment import PaymentModel

__all__ = [
    "CustomerModel",
    "AddressModel",
    "ProductModel",
    "VariantModel",
    "VariantPriceModel",
    "CartModel",
    "CartItemModel",
    "OrderModel",
    "OrderItemModel",
    "OrderAddressModel",
    "PaymentModel",
]
