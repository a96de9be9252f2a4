import logging
import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import async_sessionmaker

from shared.logging_config import log_change
from shared.utils import NotFoundError, StateError, ValidationError, unit_of_work, utcnow
from storefront.models import AppUser, Order, Payment, PaymentMethod, PaymentStatus
from storefront.pricing import to_cents
from storefront.querying import PaymentSort, SortDirection, apply_sort, contains, end_of_day, paginate
from storefront.schemas import PaymentStatistics

logger = logging.getLogger("storefront.payments")

PAYMENT_SORT_COLUMNS = {
    PaymentSort.PAYMENT_DATE: Payment.payment_date,
    PaymentSort.AMOUNT: Payment.amount,
    PaymentSort.STATUS: Payment.status,
    PaymentSort.METHOD: Payment.method,
}


def apply_refund(payment: Payment, amount: Decimal, reason: str) -> Payment:
    """Mark a completed payment refunded. Raises before touching anything on bad input."""
    if payment.status != PaymentStatus.COMPLETED:
        raise StateError(
            f"Only completed payments can be refunded (payment is {payment.status.value})",
            context={"payment_id": payment.id},
        )
    if amount <= 0 or amount > payment.amount:
        raise ValidationError(
            "Refund amount must be positive and not exceed the amount paid",
            context={"amount": str(amount), "paid": str(payment.amount)},
        )
    payment.status = PaymentStatus.REFUNDED
    payment.refunded_amount = amount
    payment.failure_reason = f"Refunded: {reason}"
    payment.touch()
    return payment


class PaymentService:
    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def list_payments(
        self,
        search: Optional[str] = None,
        status: Optional[PaymentStatus] = None,
        method: Optional[PaymentMethod] = None,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
        sort: PaymentSort = PaymentSort.PAYMENT_DATE,
        direction: SortDirection = SortDirection.DESC,
        page: int = 1,
        page_size: int = 10,
    ) -> Tuple[List[Payment], int]:
        stmt = select(Payment)
        if search:
            stmt = (
                stmt.join(Order, Order.id == Payment.order_id)
                .join(AppUser, AppUser.id == Order.user_id)
                .where(or_(
                    contains(Order.order_number, search),
                    contains(Payment.transaction_id, search),
                    contains(AppUser.username, search),
                    contains(AppUser.email, search),
                ))
            )
        if status is not None:
            stmt = stmt.where(Payment.status == status)
        if method is not None:
            stmt = stmt.where(Payment.method == method)
        if from_date is not None:
            stmt = stmt.where(Payment.payment_date >= from_date)
        if to_date is not None:
            stmt = stmt.where(Payment.payment_date < end_of_day(to_date))
        stmt = apply_sort(stmt, PAYMENT_SORT_COLUMNS, sort, direction, Payment.id)
        async with unit_of_work(self.session_factory) as session:
            return await paginate(session, stmt, page, page_size)

    async def get_payment(self, payment_id: int) -> Payment:
        async with unit_of_work(self.session_factory) as session:
            payment = await session.get(Payment, payment_id)
            if payment is None:
                raise NotFoundError("Payment not found", context={"payment_id": payment_id})
            return payment

    async def get_by_order(self, order_id: int) -> Payment:
        async with unit_of_work(self.session_factory) as session:
            payment = await session.scalar(select(Payment).where(Payment.order_id == order_id))
            if payment is None:
                raise NotFoundError("Payment not found for order", context={"order_id": order_id})
            return payment

    async def change_status(self, payment_id: int, new_status: PaymentStatus, reason: Optional[str] = None) -> Payment:
        if new_status == PaymentStatus.REFUNDED:
            raise ValidationError("Use the refund operation to refund a payment")
        async with unit_of_work(self.session_factory) as session:
            payment = await session.get(Payment, payment_id)
            if payment is None:
                raise NotFoundError("Payment not found", context={"payment_id": payment_id})
            if payment.status == PaymentStatus.REFUNDED:
                raise StateError("Refunded payments cannot change status", context={"payment_id": payment_id})
            old_status = payment.status
            payment.status = new_status
            if new_status == PaymentStatus.COMPLETED:
                payment.processed_date = utcnow()
                if not payment.transaction_id:
                    payment.transaction_id = f"TXN-{uuid.uuid4().hex[:12].upper()}"
                payment.failure_reason = None
            elif new_status == PaymentStatus.FAILED and reason:
                payment.failure_reason = reason
            payment.touch()
        log_change(logger, "status_changed", "Payment", payment_id, old=old_status.value, new=new_status.value)
        return payment

    async def refund(self, payment_id: int, amount: Decimal, reason: str) -> Payment:
        async with unit_of_work(self.session_factory) as session:
            payment = await session.get(Payment, payment_id)
            if payment is None:
                raise NotFoundError("Payment not found", context={"payment_id": payment_id})
            apply_refund(payment, amount, reason)
        log_change(logger, "refunded", "Payment", payment_id, amount=str(amount))
        return payment

    async def get_pending(self) -> List[Payment]:
        return await self._by_status(PaymentStatus.PENDING)

    async def get_failed(self) -> List[Payment]:
        return await self._by_status(PaymentStatus.FAILED)

    async def _by_status(self, status: PaymentStatus) -> List[Payment]:
        async with unit_of_work(self.session_factory) as session:
            result = await session.scalars(
                select(Payment).where(Payment.status == status).order_by(Payment.payment_date.desc(), Payment.id.desc())
            )
            return list(result.all())

    async def get_statistics(self) -> PaymentStatistics:
        async with unit_of_work(self.session_factory) as session:
            by_status = (await session.execute(
                select(Payment.status, func.count(Payment.id), func.coalesce(func.sum(Payment.amount), 0))
                .group_by(Payment.status)
            )).all()
            by_method = (await session.execute(
                select(Payment.method, func.coalesce(func.sum(Payment.amount), 0)).group_by(Payment.method)
            )).all()
            refunded = await session.scalar(select(func.coalesce(func.sum(Payment.refunded_amount), 0)))

        counts = {s.value: 0 for s in PaymentStatus}
        amounts = {s.value: Decimal("0.00") for s in PaymentStatus}
        for status, count, amount in by_status:
            counts[status.value] = count
            amounts[status.value] = to_cents(Decimal(str(amount)))
        total = sum(counts.values())
        settled = counts[PaymentStatus.COMPLETED.value] + counts[PaymentStatus.REFUNDED.value]
        return PaymentStatistics(
            total_payments=total,
            total_amount=sum(amounts.values(), Decimal("0.00")),
            completed_amount=amounts[PaymentStatus.COMPLETED.value],
            refunded_amount=to_cents(Decimal(str(refunded))),
            counts_by_status=counts,
            amounts_by_method={m.value: to_cents(Decimal(str(a))) for m, a in by_method},
            success_rate=round(settled / total * 100, 2) if total else 0.0,
        )
