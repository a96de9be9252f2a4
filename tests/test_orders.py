import re
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from shared.utils import EmptyCartError, NotFoundError, ProductUnavailableError, StateError, ValidationError, unit_of_work
from storefront.cart import Cart
from storefront.models import Lifecycle, Order, OrderStatus, Payment, PaymentMethod, PaymentStatus, Product, ShippingAddress
from storefront.schemas import AddressCreate
from storefront.services.checkout import CheckoutService
from storefront.services.orders import OrderService, is_valid_transition, new_order_number, valid_next_statuses
from storefront.services.payments import PaymentService

NEW_ADDRESS = AddressCreate(
    first_name="Alice",
    last_name="Smith",
    address_line="1 Main St",
    city="Springfield",
    state="IL",
    country="US",
    zip_code="62701",
)


@pytest.fixture
def orders(session_factory):
    return OrderService(session_factory)


async def stock_of(session_factory, product_id):
    async with unit_of_work(session_factory) as session:
        return (await session.get(Product, product_id)).stock_quantity


async def count(session_factory, model):
    async with unit_of_work(session_factory) as session:
        return await session.scalar(select(func.count()).select_from(model))


async def place(orders, user, *products, method=PaymentMethod.CREDIT_CARD):
    cart = Cart()
    for product in products:
        cart = cart.add(product.id, 2)
    order, _ = await orders.create_order(user.id, cart, method, new_address=NEW_ADDRESS)
    return order


def test_order_number_format():
    assert re.fullmatch(r"ORD-\d{8}-[0-9A-F]{8}", new_order_number())


def test_transition_table():
    assert is_valid_transition(OrderStatus.PENDING, OrderStatus.PROCESSING)
    assert is_valid_transition(OrderStatus.SHIPPED, OrderStatus.RETURNED)
    assert not is_valid_transition(OrderStatus.PENDING, OrderStatus.DELIVERED)
    assert not is_valid_transition(OrderStatus.CANCELLED, OrderStatus.PENDING)
    assert valid_next_statuses(OrderStatus.PROCESSING) == [OrderStatus.SHIPPED, OrderStatus.CANCELLED]


async def test_create_order_persists_everything(session_factory, orders, customer, make_product):
    widget = await make_product("Widget", "10.00", stock=5)
    gizmo = await make_product("Gizmo", "15.00", stock=5)

    order, totals = await orders.create_order(
        customer.id, Cart().add(widget.id, 2).add(gizmo.id), PaymentMethod.PAYPAL, new_address=NEW_ADDRESS
    )

    assert order.status == OrderStatus.PENDING
    assert order.total_amount == totals.total_amount == Decimal("47.79")
    assert [item.product_name for item in order.items] == ["Widget", "Gizmo"]
    assert order.payment.status == PaymentStatus.PENDING
    assert order.payment.amount == order.total_amount
    assert await stock_of(session_factory, widget.id) == 3
    assert await stock_of(session_factory, gizmo.id) == 4

    fetched = await orders.get_order_for_user(order.id, customer.id)
    assert fetched.order_number == order.order_number


async def test_empty_cart_is_rejected(session_factory, orders, customer):
    with pytest.raises(EmptyCartError):
        await orders.create_order(customer.id, Cart(), PaymentMethod.PAYPAL, new_address=NEW_ADDRESS)

    for model in (Order, Payment, ShippingAddress):
        assert await count(session_factory, model) == 0


async def test_exactly_one_address_source(orders, customer, make_product):
    product = await make_product()

    with pytest.raises(ValidationError):
        await orders.create_order(customer.id, Cart().add(product.id), PaymentMethod.PAYPAL)


async def test_unavailable_products_abort_the_order(session_factory, orders, customer, make_product):
    ok = await make_product("Ok", stock=5)
    short = await make_product("Short", stock=1)
    hidden = await make_product("Hidden", lifecycle=Lifecycle.DISABLED)

    with pytest.raises(ProductUnavailableError) as exc:
        await orders.create_order(
            customer.id, Cart().add(ok.id).add(short.id, 3).add(hidden.id), PaymentMethod.PAYPAL, new_address=NEW_ADDRESS
        )

    assert {u["product_id"] for u in exc.value.unavailable} == {short.id, hidden.id}
    assert await count(session_factory, Order) == 0
    assert await stock_of(session_factory, ok.id) == 5


async def test_failure_midway_leaves_nothing_behind(session_factory, orders, customer, make_product, monkeypatch):
    product = await make_product(stock=5)

    async def broken_payment(self, session, order, method):
        raise RuntimeError("payment store down")

    monkeypatch.setattr(OrderService, "_insert_payment", broken_payment)

    with pytest.raises(RuntimeError):
        await orders.create_order(customer.id, Cart().add(product.id, 2), PaymentMethod.PAYPAL, new_address=NEW_ADDRESS)

    assert await stock_of(session_factory, product.id) == 5
    for model in (Order, Payment, ShippingAddress):
        assert await count(session_factory, model) == 0


async def test_checkout_clears_cart_only_on_success(session_factory, customer, make_product):
    checkout = CheckoutService(session_factory)
    product = await make_product(stock=1)
    cart = Cart().add(product.id, 2)

    with pytest.raises(ProductUnavailableError):
        await checkout.place_order(customer.id, cart, PaymentMethod.PAYPAL, new_address=NEW_ADDRESS)
    assert cart.quantity_of(product.id) == 2

    order, kept = await checkout.place_order(customer.id, cart.update(product.id, 1), PaymentMethod.PAYPAL, new_address=NEW_ADDRESS)
    assert kept.is_empty
    assert order.items[0].quantity == 1


async def test_cancel_restores_stock(session_factory, orders, customer, make_product):
    product = await make_product(stock=5)
    order = await place(orders, customer, product)

    cancelled = await orders.cancel_order(order.id, "Changed my mind", user_id=customer.id)

    assert cancelled.status == OrderStatus.CANCELLED
    assert await stock_of(session_factory, product.id) == 5
    with pytest.raises(StateError):
        await orders.cancel_order(order.id, "Again")


async def test_cancel_is_owner_only(orders, customer, make_user, make_product):
    other = await make_user("bob")
    order = await place(orders, customer, await make_product())

    with pytest.raises(NotFoundError):
        await orders.cancel_order(order.id, "Not mine", user_id=other.id)


async def test_cancel_refunds_completed_payment(session_factory, orders, customer, make_product):
    order = await place(orders, customer, await make_product())
    await PaymentService(session_factory).change_status(order.payment.id, PaymentStatus.COMPLETED)

    cancelled = await orders.cancel_order(order.id, "Out of budget")

    assert cancelled.payment.status == PaymentStatus.REFUNDED
    assert cancelled.payment.refunded_amount == order.total_amount


async def test_status_walk_and_invalid_jump(orders, customer, make_product):
    order = await place(orders, customer, await make_product())

    with pytest.raises(StateError):
        await orders.update_status(order.id, OrderStatus.DELIVERED)

    await orders.update_status(order.id, OrderStatus.PROCESSING)
    shipped = await orders.update_status(order.id, OrderStatus.SHIPPED, tracking_number="TRK1")
    assert shipped.shipped_date is not None
    assert shipped.tracking_number == "TRK1"

    delivered = await orders.update_status(order.id, OrderStatus.DELIVERED)
    assert delivered.delivered_date is not None
    with pytest.raises(StateError):
        await orders.cancel_order(order.id, "Too late")


async def test_refund_requires_completed_payment(session_factory, orders, customer, make_product):
    order = await place(orders, customer, await make_product())

    with pytest.raises(StateError):
        await orders.refund_order(order.id, Decimal("5.00"), "Damaged")

    await PaymentService(session_factory).change_status(order.payment.id, PaymentStatus.COMPLETED)
    with pytest.raises(ValidationError):
        await orders.refund_order(order.id, order.total_amount + 1, "Too much")

    refunded = await orders.refund_order(order.id, Decimal("5.00"), "Damaged")
    assert refunded.payment.status == PaymentStatus.REFUNDED
    assert refunded.payment.refunded_amount == Decimal("5.00")


async def test_statistics_count_delivered_revenue(orders, customer, make_product):
    first = await place(orders, customer, await make_product("A", "30.00"))
    await place(orders, customer, await make_product("B", "5.00"))
    for status in (OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED):
        await orders.update_status(first.id, status)

    stats = await orders.get_statistics()

    assert stats.total_orders == 2
    assert stats.counts_by_status["delivered"] == 1
    assert stats.counts_by_status["pending"] == 1
    assert stats.total_revenue == first.total_amount
