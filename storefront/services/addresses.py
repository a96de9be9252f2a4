import logging
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shared.logging_config import log_change
from shared.utils import NotFoundError, StateError, unit_of_work
from storefront.models import Order, ShippingAddress
from storefront.schemas import AddressCreate, AddressUpdate

logger = logging.getLogger("storefront.addresses")


def _newest_first():
    return (ShippingAddress.created_date.desc(), ShippingAddress.id.desc())


async def load_owned_address(session: AsyncSession, address_id: int, user_id: int) -> ShippingAddress:
    # Foreign addresses look exactly like missing ones
    address = await session.scalar(
        select(ShippingAddress).where(ShippingAddress.id == address_id, ShippingAddress.user_id == user_id)
    )
    if address is None:
        raise NotFoundError("Address not found", context={"address_id": address_id})
    return address


async def insert_address(session: AsyncSession, user_id: int, data: AddressCreate) -> ShippingAddress:
    """Add an address while keeping exactly one default per user."""
    has_any = await session.scalar(
        select(ShippingAddress.id).where(ShippingAddress.user_id == user_id).limit(1)
    )
    is_default = True if has_any is None else data.is_default
    if has_any is not None and is_default:
        await _clear_defaults(session, user_id)

    address = ShippingAddress(user_id=user_id, **data.model_dump(exclude={"is_default"}), is_default=is_default)
    session.add(address)
    await session.flush()
    return address


async def _clear_defaults(session: AsyncSession, user_id: int, keep_id: Optional[int] = None):
    stmt = update(ShippingAddress).where(ShippingAddress.user_id == user_id, ShippingAddress.is_default.is_(True))
    if keep_id is not None:
        stmt = stmt.where(ShippingAddress.id != keep_id)
    await session.execute(stmt.values(is_default=False).execution_options(synchronize_session="fetch"))


async def _promote_successor(session: AsyncSession, user_id: int, leaving_id: int) -> Optional[ShippingAddress]:
    """Make the most recently created other address the default, if there is one."""
    successor = await session.scalar(
        select(ShippingAddress)
        .where(ShippingAddress.user_id == user_id, ShippingAddress.id != leaving_id)
        .order_by(*_newest_first())
        .limit(1)
    )
    if successor is not None:
        successor.is_default = True
        successor.touch()
    return successor


class AddressService:
    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def list_addresses(self, user_id: int) -> List[ShippingAddress]:
        async with unit_of_work(self.session_factory) as session:
            result = await session.scalars(
                select(ShippingAddress)
                .where(ShippingAddress.user_id == user_id)
                .order_by(ShippingAddress.is_default.desc(), *_newest_first())
            )
            return list(result.all())

    async def get_address(self, address_id: int, user_id: int) -> ShippingAddress:
        async with unit_of_work(self.session_factory) as session:
            return await load_owned_address(session, address_id, user_id)

    async def get_default_address(self, user_id: int) -> Optional[ShippingAddress]:
        async with unit_of_work(self.session_factory) as session:
            return await session.scalar(
                select(ShippingAddress).where(ShippingAddress.user_id == user_id, ShippingAddress.is_default.is_(True))
            )

    async def add_address(self, user_id: int, data: AddressCreate) -> ShippingAddress:
        async with unit_of_work(self.session_factory) as session:
            address = await insert_address(session, user_id, data)
        log_change(logger, "created", "ShippingAddress", address.id, user_id=user_id, is_default=address.is_default)
        return address

    async def update_address(self, address_id: int, user_id: int, data: AddressUpdate) -> ShippingAddress:
        async with unit_of_work(self.session_factory) as session:
            address = await load_owned_address(session, address_id, user_id)
            changes = data.model_dump(exclude_unset=True, exclude={"is_default"})
            for field, value in changes.items():
                setattr(address, field, value)

            if data.is_default is True and not address.is_default:
                await _clear_defaults(session, user_id, keep_id=address.id)
                address.is_default = True
            elif data.is_default is False and address.is_default:
                # Only give up the default when someone can take it over
                if await _promote_successor(session, user_id, address.id) is not None:
                    address.is_default = False
            address.touch()
        log_change(logger, "updated", "ShippingAddress", address.id, user_id=user_id)
        return address

    async def set_default_address(self, address_id: int, user_id: int) -> ShippingAddress:
        async with unit_of_work(self.session_factory) as session:
            address = await load_owned_address(session, address_id, user_id)
            if not address.is_default:
                await _clear_defaults(session, user_id, keep_id=address.id)
                address.is_default = True
                address.touch()
        log_change(logger, "set_default", "ShippingAddress", address.id, user_id=user_id)
        return address

    async def delete_address(self, address_id: int, user_id: int) -> None:
        async with unit_of_work(self.session_factory) as session:
            address = await load_owned_address(session, address_id, user_id)
            used = await session.scalar(select(Order.id).where(Order.shipping_address_id == address.id).limit(1))
            if used is not None:
                raise StateError("Address is referenced by an order and cannot be deleted", context={"address_id": address_id})
            if address.is_default:
                await _promote_successor(session, user_id, address.id)
            await session.delete(address)
        log_change(logger, "deleted", "ShippingAddress", address_id, user_id=user_id)
