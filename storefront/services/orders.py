import logging
import secrets
from datetime import datetime, time
from decimal import Decimal
from typing import Dict, FrozenSet, List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shared.logging_config import log_change
from shared.utils import (
    ConflictError, EmptyCartError, NotFoundError, ProductUnavailableError, Settings, StateError,
    ValidationError, settings, unit_of_work, utcnow,
)
from storefront.cart import Cart
from storefront.models import (
    AppUser, Order, OrderItem, OrderStatus, Payment, PaymentMethod, PaymentStatus, Product, ShippingAddress,
)
from storefront.pricing import CheckoutTotals, price_lines, to_cents
from storefront.querying import OrderSort, SortDirection, apply_sort, contains, end_of_day, paginate
from storefront.schemas import AddressCreate, OrderMetrics, OrderStatistics
from storefront.services.addresses import insert_address, load_owned_address
from storefront.services.payments import apply_refund

logger = logging.getLogger("storefront.orders")

ORDER_NUMBER_ATTEMPTS = 10

ORDER_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.RETURNED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.RETURNED}),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.RETURNED: frozenset(),
}

CANCELLABLE = frozenset({OrderStatus.PENDING, OrderStatus.PROCESSING})

ORDER_SORT_COLUMNS = {
    OrderSort.ORDER_DATE: Order.order_date,
    OrderSort.TOTAL_AMOUNT: Order.total_amount,
    OrderSort.STATUS: Order.status,
    OrderSort.ORDER_NUMBER: Order.order_number,
}


def valid_next_statuses(status: OrderStatus) -> List[OrderStatus]:
    return sorted(ORDER_TRANSITIONS[status], key=lambda s: list(OrderStatus).index(s))


def is_valid_transition(current: OrderStatus, new: OrderStatus) -> bool:
    return new in ORDER_TRANSITIONS[current]


def new_order_number(now: Optional[datetime] = None) -> str:
    now = now or utcnow()
    return f"ORD-{now:%Y%m%d}-{secrets.token_hex(4).upper()}"


async def load_products(session: AsyncSession, product_ids, for_update: bool = False) -> Dict[int, Product]:
    if not product_ids:
        return {}
    stmt = select(Product).where(Product.id.in_(list(product_ids)))
    if for_update:
        stmt = stmt.with_for_update()
    return {p.id: p for p in (await session.scalars(stmt)).all()}


class OrderService:
    """
    Order creation and fulfilment.

    Creation is all-or-nothing: the order, its line items, its pending payment,
    any new shipping address and the stock decrements commit together or not
    at all.
    """

    def __init__(self, session_factory: async_sessionmaker, config: Settings = settings):
        self.session_factory = session_factory
        self.config = config

    # --- Creation ---
    async def create_order(
        self,
        user_id: int,
        cart: Cart,
        payment_method: PaymentMethod,
        address_id: Optional[int] = None,
        new_address: Optional[AddressCreate] = None,
        notes: Optional[str] = None,
    ) -> Tuple[Order, CheckoutTotals]:
        if cart.is_empty:
            raise EmptyCartError()
        if (address_id is None) == (new_address is None):
            raise ValidationError("Provide exactly one of an existing address or a new address")
        payment_method = PaymentMethod(payment_method)

        async with unit_of_work(self.session_factory) as session:
            if address_id is not None:
                address = await load_owned_address(session, address_id, user_id)

            # Re-check against current stock inside the transaction
            products = await load_products(session, cart.product_ids, for_update=True)
            totals = price_lines(cart.lines, products, config=self.config)
            if totals.excluded:
                raise ProductUnavailableError([line.model_dump(mode="json") for line in totals.excluded])

            if new_address is not None:
                address = await insert_address(session, user_id, new_address)

            order = Order(
                user_id=user_id,
                order_number=await self._unique_order_number(session),
                order_date=utcnow(),
                sub_total=totals.sub_total,
                shipping_cost=totals.shipping_cost,
                tax_amount=totals.tax_amount,
                discount_amount=totals.discount_amount,
                total_amount=totals.total_amount,
                status=OrderStatus.PENDING,
                shipping_address_id=address.id,
                notes=notes,
                items=[],
                payment=None,
            )
            session.add(order)
            await session.flush()

            await self._insert_items(session, order, totals, products)
            await self._insert_payment(session, order, payment_method)

        log_change(
            logger, "created", "Order", order.id,
            order_number=order.order_number, user_id=user_id, total=str(order.total_amount),
        )
        return order, totals

    async def _unique_order_number(self, session: AsyncSession) -> str:
        for _ in range(ORDER_NUMBER_ATTEMPTS):
            candidate = new_order_number()
            taken = await session.scalar(select(Order.id).where(Order.order_number == candidate))
            if taken is None:
                return candidate
        raise ConflictError("Could not allocate a unique order number")

    async def _insert_items(self, session: AsyncSession, order: Order, totals: CheckoutTotals, products: Dict[int, Product]):
        for line in totals.lines:
            order.items.append(OrderItem(
                product_id=line.product_id,
                quantity=line.quantity,
                unit_price=line.unit_price,
                product_name=line.name,
                product_sku=line.sku,
            ))
            product = products[line.product_id]
            product.stock_quantity -= line.quantity
            product.touch()
        await session.flush()

    async def _insert_payment(self, session: AsyncSession, order: Order, method: PaymentMethod):
        order.payment = Payment(
            method=method,
            status=PaymentStatus.PENDING,
            amount=order.total_amount,
            payment_date=utcnow(),
        )
        await session.flush()

    # --- Reads ---
    async def list_orders(
        self,
        search: Optional[str] = None,
        status: Optional[OrderStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
        sort: OrderSort = OrderSort.ORDER_DATE,
        direction: SortDirection = SortDirection.DESC,
        page: int = 1,
        page_size: int = 10,
        user_id: Optional[int] = None,
    ) -> Tuple[List[Order], int]:
        stmt = select(Order)
        if user_id is not None:
            stmt = stmt.where(Order.user_id == user_id)
        if search:
            stmt = (
                stmt.join(AppUser, AppUser.id == Order.user_id)
                .outerjoin(ShippingAddress, ShippingAddress.id == Order.shipping_address_id)
                .where(or_(
                    contains(Order.order_number, search),
                    contains(AppUser.username, search),
                    contains(AppUser.email, search),
                    contains(ShippingAddress.address_line, search),
                    contains(ShippingAddress.city, search),
                ))
            )
        if status is not None:
            stmt = stmt.where(Order.status == status)
        if payment_status is not None:
            stmt = stmt.join(Payment, Payment.order_id == Order.id).where(Payment.status == payment_status)
        if from_date is not None:
            stmt = stmt.where(Order.order_date >= from_date)
        if to_date is not None:
            stmt = stmt.where(Order.order_date < end_of_day(to_date))
        stmt = apply_sort(stmt, ORDER_SORT_COLUMNS, sort, direction, Order.id)
        async with unit_of_work(self.session_factory) as session:
            return await paginate(session, stmt, page, page_size)

    async def list_orders_for_user(self, user_id: int, page: int = 1, page_size: int = 10) -> Tuple[List[Order], int]:
        return await self.list_orders(user_id=user_id, page=page, page_size=page_size)

    async def get_order(self, order_id: int) -> Order:
        async with unit_of_work(self.session_factory) as session:
            return await self._load(session, order_id)

    async def get_order_for_user(self, order_id: int, user_id: int) -> Order:
        async with unit_of_work(self.session_factory) as session:
            return await self._load(session, order_id, user_id)

    async def get_order_by_number(self, order_number: str) -> Order:
        async with unit_of_work(self.session_factory) as session:
            order = await session.scalar(select(Order).where(Order.order_number == order_number))
            if order is None:
                raise NotFoundError("Order not found", context={"order_number": order_number})
            return order

    async def _load(self, session: AsyncSession, order_id: int, user_id: Optional[int] = None) -> Order:
        stmt = select(Order).where(Order.id == order_id)
        if user_id is not None:
            stmt = stmt.where(Order.user_id == user_id)
        order = await session.scalar(stmt)
        if order is None:
            raise NotFoundError("Order not found", context={"order_id": order_id})
        return order

    # --- Fulfilment ---
    async def update_status(self, order_id: int, new_status: OrderStatus, tracking_number: Optional[str] = None) -> Order:
        async with unit_of_work(self.session_factory) as session:
            order = await self._load(session, order_id)
            old_status = order.status
            if not is_valid_transition(old_status, new_status):
                raise StateError(
                    f"Order cannot move from {old_status.value} to {new_status.value}",
                    context={"order_id": order_id, "allowed": [s.value for s in valid_next_statuses(old_status)]},
                )
            if new_status == OrderStatus.CANCELLED:
                await self._cancel(session, order, "Status changed to cancelled")
            else:
                order.status = new_status
                if new_status == OrderStatus.SHIPPED:
                    order.shipped_date = utcnow()
                    if tracking_number:
                        order.tracking_number = tracking_number
                elif new_status == OrderStatus.DELIVERED:
                    order.delivered_date = utcnow()
            order.touch()
        log_change(logger, "status_changed", "Order", order_id, old=old_status.value, new=new_status.value)
        return order

    async def cancel_order(self, order_id: int, reason: str, user_id: Optional[int] = None) -> Order:
        """Cancel a pending or processing order; `user_id` restricts it to the owner."""
        async with unit_of_work(self.session_factory) as session:
            order = await self._load(session, order_id, user_id)
            if order.status not in CANCELLABLE:
                raise StateError(
                    f"Only pending or processing orders can be cancelled (order is {order.status.value})",
                    context={"order_id": order_id},
                )
            await self._cancel(session, order, reason)
            order.touch()
        log_change(logger, "cancelled", "Order", order_id, reason=reason)
        return order

    async def _cancel(self, session: AsyncSession, order: Order, reason: str):
        order.status = OrderStatus.CANCELLED
        await self._restore_stock(session, order)
        if order.payment is not None and order.payment.status == PaymentStatus.COMPLETED:
            apply_refund(order.payment, order.payment.amount, f"Order cancellation: {reason}")

    async def _restore_stock(self, session: AsyncSession, order: Order):
        products = await load_products(session, {item.product_id for item in order.items})
        for item in order.items:
            product = products.get(item.product_id)
            if product is not None:
                product.stock_quantity += item.quantity
                product.touch()

    async def refund_order(self, order_id: int, amount: Decimal, reason: str) -> Order:
        async with unit_of_work(self.session_factory) as session:
            order = await self._load(session, order_id)
            if order.payment is None:
                raise StateError("Order has no payment to refund", context={"order_id": order_id})
            if amount <= 0 or amount > order.total_amount:
                raise ValidationError(
                    "Refund amount must be positive and not exceed the order total",
                    context={"amount": str(amount), "total": str(order.total_amount)},
                )
            apply_refund(order.payment, amount, reason)
            order.touch()
        log_change(logger, "refunded", "Order", order_id, amount=str(amount))
        return order

    # --- Reporting ---
    async def get_statistics(self) -> OrderStatistics:
        today = datetime.combine(utcnow().date(), time.min)
        async with unit_of_work(self.session_factory) as session:
            rows = (await session.execute(select(Order.status, func.count(Order.id)).group_by(Order.status))).all()
            revenue = await session.scalar(
                select(func.coalesce(func.sum(Order.total_amount), 0)).where(Order.status == OrderStatus.DELIVERED)
            )
            today_orders = await session.scalar(select(func.count(Order.id)).where(Order.order_date >= today))
            today_revenue = await session.scalar(
                select(func.coalesce(func.sum(Order.total_amount), 0))
                .where(Order.order_date >= today, Order.status == OrderStatus.DELIVERED)
            )
        counts = {s.value: 0 for s in OrderStatus}
        for status, count in rows:
            counts[status.value] = count
        return OrderStatistics(
            total_orders=sum(counts.values()),
            counts_by_status=counts,
            total_revenue=to_cents(Decimal(str(revenue))),
            today_orders=today_orders or 0,
            today_revenue=to_cents(Decimal(str(today_revenue))),
        )

    async def get_order_count(self) -> int:
        async with unit_of_work(self.session_factory) as session:
            return await session.scalar(select(func.count(Order.id))) or 0

    async def get_recent_orders(self, count: int = 10) -> List[Order]:
        async with unit_of_work(self.session_factory) as session:
            result = await session.scalars(select(Order).order_by(Order.order_date.desc(), Order.id.desc()).limit(count))
            return list(result.all())

    async def get_orders_by_status(self, status: OrderStatus) -> List[Order]:
        async with unit_of_work(self.session_factory) as session:
            result = await session.scalars(
                select(Order).where(Order.status == status).order_by(Order.order_date.desc(), Order.id.desc())
            )
            return list(result.all())

    async def get_orders_needing_attention(self) -> List[Order]:
        async with unit_of_work(self.session_factory) as session:
            result = await session.scalars(
                select(Order).where(Order.status.in_(CANCELLABLE)).order_by(Order.order_date.asc(), Order.id.asc())
            )
            return list(result.all())

    async def get_metrics(self, from_date: datetime, to_date: datetime) -> OrderMetrics:
        async with unit_of_work(self.session_factory) as session:
            orders = (await session.scalars(
                select(Order).where(Order.order_date >= from_date, Order.order_date <= to_date)
            )).all()

        by_status: Dict[str, int] = {}
        by_payment: Dict[str, int] = {}
        revenue = Decimal("0.00")
        for order in orders:
            by_status[order.status.value] = by_status.get(order.status.value, 0) + 1
            if order.payment is not None:
                key = order.payment.status.value
                by_payment[key] = by_payment.get(key, 0) + 1
            if order.status == OrderStatus.DELIVERED:
                revenue += order.total_amount
        count = len(orders)
        return OrderMetrics(
            order_count=count,
            total_revenue=revenue,
            average_order_value=to_cents(revenue / count) if count else Decimal("0.00"),
            orders_by_status=by_status,
            orders_by_payment_status=by_payment,
        )
