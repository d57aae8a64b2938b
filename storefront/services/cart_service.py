# storefront/services/cart_service.py
from decimal import Decimal
from typing import Dict, Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel
from storefront.domain.errors import ForbiddenError, NotFoundError, ValidationError
from storefront.repos.cart_repo import CartRepo
from storefront.repos.catalog_repo import CatalogRepo
from storefront.utils.settings import DEFAULT_CURRENCY
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def _is_positive_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


class CartService:
    """
    Cart use cases.
    commands (get_or_create, add, update, remove, clear) change state,
    queries (get, count) only read.
    Every command leaves at most one row per variant and no row with qty <= 0.
    """

    def __init__(self, db: Session):
        self.repo = CartRepo(db)
        self.catalog = CatalogRepo(db)

    # =====================================================
    # QUERY
    # =====================================================
    def get_cart(self, customer_id: int, currency: str = DEFAULT_CURRENCY) -> Dict[str, Any]:
        cart = self.repo.get_cart_by_customer(customer_id)
        if not cart:
            raise NotFoundError("Cart not found")
        return self._to_dict(cart, currency)

    def count_items(self, customer_id: int) -> int:
        cart = self.repo.get_cart_by_customer(customer_id)
        if not cart:
            return 0
        return self.repo.count_quantity(cart.id)

    def get_owned_cart(self, customer_id: int, cart_id: int) -> CartModel:
        cart = self.repo.get_cart(cart_id)
        if not cart:
            raise NotFoundError("Cart not found")
        if cart.customer_id != customer_id:
            raise ForbiddenError("Cart belongs to another customer")
        return cart

    # =====================================================
    # COMMANDS
    # =====================================================
    def get_or_create_cart(self, customer_id: int, currency: str = DEFAULT_CURRENCY) -> Dict[str, Any]:
        return self._to_dict(self.ensure_cart(customer_id), currency)

    def ensure_cart(self, customer_id: int) -> CartModel:
        existing = self.repo.get_cart_by_customer(customer_id)
        if existing:
            return existing

        try:
            created = self.repo.create_cart(CartModel(customer_id=customer_id))
        except IntegrityError:
            # concurrent first add for the same customer, the other request won
            self.repo.rollback()
            created = self.repo.get_cart_by_customer(customer_id)
            if created is None:
                raise
            return created

        logger.info(f"Created cart {created.id} for customer {customer_id}")
        return created

    def add_item(
        self,
        customer_id: int,
        cart_id: int,
        variant_id: int,
        qty: int,
        currency: str = DEFAULT_CURRENCY,
    ) -> Dict[str, Any]:
        if not _is_positive_int(qty):
            raise ValidationError("Quantity must be a positive integer")

        cart = self.get_owned_cart(customer_id, cart_id)

        variant = self.catalog.get_variant(variant_id)
        if not variant or not variant.is_available:
            raise NotFoundError("Product variant not found")

        existing = self.repo.get_cart_item_by_variant(cart.id, variant_id)
        current_qty = existing.quantity if existing else 0
        self._check_stock(variant, current_qty + qty)

        item = self.repo.upsert_item(cart.id, variant_id, qty)
        self.repo.touch(cart)
        self.repo.commit()

        logger.info(
            f"Variant {variant_id} in cart {cart.id}: quantity {current_qty} -> {item.quantity}"
        )
        return self._to_dict(cart, currency)

    def update_item_qty(
        self,
        customer_id: int,
        item_id: int,
        qty: int,
        currency: str = DEFAULT_CURRENCY,
    ) -> Dict[str, Any]:
        if not isinstance(qty, int) or isinstance(qty, bool) or qty < 0:
            raise ValidationError("Quantity must be zero or a positive integer")

        item = self._get_owned_item(customer_id, item_id)
        cart = item.cart

        if qty == 0:
            logger.info(f"Quantity 0 for cart item {item_id}, removing it")
            return self.remove_item(customer_id, item_id, currency)

        variant = self.catalog.get_variant(item.variant_id)
        if variant is not None:
            self._check_stock(variant, qty)

        self.repo.set_item_quantity(item, qty)
        self.repo.touch(cart)
        self.repo.commit()

        logger.info(f"Cart item {item_id} quantity set to {qty}")
        return self._to_dict(cart, currency)

    def remove_item(
        self,
        customer_id: int,
        item_id: int,
        currency: str = DEFAULT_CURRENCY,
    ) -> Dict[str, Any]:
        item = self._get_owned_item(customer_id, item_id)
        cart = item.cart

        self.repo.delete_cart_item(item)
        self.repo.touch(cart)
        self.repo.commit()

        logger.info(f"Removed item {item_id} from cart {cart.id}")
        return self._to_dict(cart, currency)

    def clear(self, customer_id: int, cart_id: int, currency: str = DEFAULT_CURRENCY) -> Dict[str, Any]:
        cart = self.get_owned_cart(customer_id, cart_id)
        removed = self.repo.clear_items(cart.id)
        self.repo.touch(cart)
        self.repo.commit()

        logger.info(f"Cleared {removed} items from cart {cart.id}")
        return self._to_dict(cart, currency)

    def clear_after_payment(self, cart_id: int | None) -> None:
        """Empties the cart an order was placed from. The caller owns the transaction."""
        if cart_id is None:
            return
        removed = self.repo.clear_items(cart_id)
        logger.info(f"Cleared {removed} items from cart {cart_id} after payment")

    # =====================================================
    # HELPERS
    # =====================================================
    def _get_owned_item(self, customer_id: int, item_id: int) -> CartItemModel:
        item = self.repo.get_cart_item(item_id)
        # another customer's item is reported as missing
        if not item or item.cart.customer_id != customer_id:
            raise NotFoundError("Cart item not found")
        return item

    @staticmethod
    def _check_stock(variant, wanted: int) -> None:
        if variant.stock_on_hand is not None and variant.stock_on_hand < wanted:
            raise ValidationError(f"Only {variant.stock_on_hand} units available")

    def _to_dict(self, cart: CartModel, currency: str) -> Dict[str, Any]:
        items = self.repo.get_cart_items(cart.id)

        rows = []
        subtotal = Decimal("0.00")
        for i in items:
            unit_price = i.variant.price_for(currency) if i.variant else None
            line_total = unit_price * i.quantity if unit_price is not None else None
            if line_total is not None:
                subtotal += line_total
            rows.append(
                {
                    "id": i.id,
                    "variant_id": i.variant_id,
                    "sku": i.variant.sku if i.variant else "",
                    "name": i.variant.product.name if i.variant and i.variant.product else "",
                    "quantity": i.quantity,
                    "unit_price": unit_price,
                    "line_total": line_total,
                }
            )

        return {
            "cart_id": cart.id,
            "customer_id": cart.customer_id,
            "currency": currency,
            "items": rows,
            "total_items": sum(i.quantity for i in items),
            "subtotal": subtotal,
        }
