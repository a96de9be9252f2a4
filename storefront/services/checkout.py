import logging
from typing import Optional, Tuple

from sqlalchemy.ext.asyncio import async_sessionmaker

from shared.utils import NotFoundError, Settings, UnavailableError, ValidationError, settings, unit_of_work
from storefront.cart import Cart
from storefront.models import Order, PaymentMethod
from storefront.pricing import CheckoutTotals, price_lines
from storefront.schemas import AddressCreate
from storefront.services.orders import OrderService, load_products

logger = logging.getLogger("storefront.checkout")


class CheckoutService:
    """Glue between the cart value, the price calculator and order creation."""

    def __init__(self, session_factory: async_sessionmaker, orders: Optional[OrderService] = None, config: Settings = settings):
        self.session_factory = session_factory
        self.config = config
        self.orders = orders or OrderService(session_factory, config)

    async def preview(self, cart: Cart) -> CheckoutTotals:
        async with unit_of_work(self.session_factory) as session:
            products = await load_products(session, cart.product_ids)
        return price_lines(cart.lines, products, config=self.config)

    async def validate_line(self, product_id: int, quantity: int) -> None:
        """Check a cart line before it goes into the cart."""
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1", context={"quantity": quantity})
        async with unit_of_work(self.session_factory) as session:
            product = (await load_products(session, [product_id])).get(product_id)
        if product is None:
            raise NotFoundError("Product not found", context={"product_id": product_id})
        if not product.is_active:
            raise UnavailableError("Product is not available", context={"product_id": product_id})
        if product.stock_quantity < quantity:
            raise UnavailableError(
                "Insufficient stock",
                context={"product_id": product_id, "requested": quantity, "available": product.stock_quantity},
            )

    async def add_to_cart(self, cart: Cart, product_id: int, quantity: int = 1) -> Cart:
        await self.validate_line(product_id, cart.quantity_of(product_id) + quantity)
        return cart.add(product_id, quantity)

    async def update_cart_line(self, cart: Cart, product_id: int, quantity: int) -> Cart:
        if quantity > 0:
            await self.validate_line(product_id, quantity)
        return cart.update(product_id, quantity)

    async def place_order(
        self,
        user_id: int,
        cart: Cart,
        payment_method: PaymentMethod,
        address_id: Optional[int] = None,
        new_address: Optional[AddressCreate] = None,
        notes: Optional[str] = None,
    ) -> Tuple[Order, Cart]:
        """
        Turn the cart into an order.

        Returns the order and the cart to keep afterwards, which is empty. If
        anything fails the exception propagates and the caller keeps its
        original cart untouched.
        """
        order, _ = await self.orders.create_order(
            user_id,
            cart,
            payment_method,
            address_id=address_id,
            new_address=new_address,
            notes=notes,
        )
        logger.info(
            "Checkout completed",
            extra={"user_id": user_id, "entity": "Order", "entity_id": order.id, "action": "checkout"},
        )
        return order, cart.clear()
