import logging
from datetime import datetime, time, timedelta
from typing import List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shared.logging_config import log_change
from shared.utils import NotFoundError, StateError, unit_of_work, utcnow
from storefront.lifecycle import transition
from storefront.models import ContactMessage, Lifecycle
from storefront.querying import ContactMessageSort, SortDirection, apply_sort, contains, end_of_day, paginate
from storefront.schemas import ContactMessageCreate, ContactStatistics

logger = logging.getLogger("storefront.contact")

CONTACT_SORT_COLUMNS = {
    ContactMessageSort.CREATED: ContactMessage.created_date,
    ContactMessageSort.NAME: ContactMessage.name,
    ContactMessageSort.SUBJECT: ContactMessage.subject,
}


class ContactService:
    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def create_message(self, data: ContactMessageCreate) -> ContactMessage:
        async with unit_of_work(self.session_factory) as session:
            message = ContactMessage(**data.model_dump())
            message.email = message.email.strip().lower()
            session.add(message)
            await session.flush()
        log_change(logger, "received", "ContactMessage", message.id)
        return message

    async def list_messages(
        self,
        search: Optional[str] = None,
        is_read: Optional[bool] = None,
        is_replied: Optional[bool] = None,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
        include_deleted: bool = False,
        sort: ContactMessageSort = ContactMessageSort.CREATED,
        direction: SortDirection = SortDirection.DESC,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[ContactMessage], int]:
        stmt = select(ContactMessage)
        if not include_deleted:
            stmt = stmt.where(ContactMessage.lifecycle != Lifecycle.DELETED)
        if search:
            stmt = stmt.where(or_(
                contains(ContactMessage.name, search),
                contains(ContactMessage.email, search),
                contains(ContactMessage.subject, search),
                contains(ContactMessage.message, search),
            ))
        if is_read is not None:
            stmt = stmt.where(ContactMessage.is_read.is_(is_read))
        if is_replied is not None:
            stmt = stmt.where(ContactMessage.is_replied.is_(is_replied))
        if from_date:
            stmt = stmt.where(ContactMessage.created_date >= from_date)
        if to_date:
            stmt = stmt.where(ContactMessage.created_date < end_of_day(to_date))
        stmt = apply_sort(stmt, CONTACT_SORT_COLUMNS, sort, direction, ContactMessage.id)
        async with unit_of_work(self.session_factory) as session:
            return await paginate(session, stmt, page, page_size)

    async def get_message(self, message_id: int) -> ContactMessage:
        async with unit_of_work(self.session_factory) as session:
            return await self._load(session, message_id)

    async def _load(self, session: AsyncSession, message_id: int) -> ContactMessage:
        message = await session.get(ContactMessage, message_id)
        if message is None:
            raise NotFoundError("Contact message not found", context={"message_id": message_id})
        return message

    async def _load_many(self, session: AsyncSession, ids: List[int]) -> List[ContactMessage]:
        """All the named messages or a NotFoundError naming the missing ones."""
        wanted = set(ids)
        rows = (await session.scalars(select(ContactMessage).where(ContactMessage.id.in_(wanted)))).all()
        missing = sorted(wanted - {m.id for m in rows})
        if missing:
            raise NotFoundError("Contact message not found", context={"ids": missing})
        return list(rows)

    async def _set_read(self, message_id: int, value: Optional[bool]) -> ContactMessage:
        async with unit_of_work(self.session_factory) as session:
            message = await self._load(session, message_id)
            message.is_read = (not message.is_read) if value is None else value
            message.touch()
        log_change(logger, "read" if message.is_read else "unread", "ContactMessage", message_id)
        return message

    async def mark_read(self, message_id: int) -> ContactMessage:
        return await self._set_read(message_id, True)

    async def mark_unread(self, message_id: int) -> ContactMessage:
        return await self._set_read(message_id, False)

    async def toggle_read(self, message_id: int) -> ContactMessage:
        return await self._set_read(message_id, None)

    async def bulk_mark(self, ids: List[int], is_read: bool) -> int:
        async with unit_of_work(self.session_factory) as session:
            messages = await self._load_many(session, ids)
            for message in messages:
                message.is_read = is_read
                message.touch()
        log_change(logger, "bulk_read" if is_read else "bulk_unread", "ContactMessage", None, ids=sorted(set(ids)))
        return len(messages)

    async def bulk_delete(self, ids: List[int]) -> int:
        async with unit_of_work(self.session_factory) as session:
            messages = await self._load_many(session, ids)
            for message in messages:
                transition(message, Lifecycle.DELETED)
        log_change(logger, "bulk_deleted", "ContactMessage", None, ids=sorted(set(ids)))
        return len(messages)

    async def bulk_hard_delete(self, ids: List[int]) -> int:
        async with unit_of_work(self.session_factory) as session:
            messages = await self._load_many(session, ids)
            for message in messages:
                await session.delete(message)
        log_change(logger, "bulk_hard_deleted", "ContactMessage", None, ids=sorted(set(ids)))
        return len(messages)

    async def delete_message(self, message_id: int) -> ContactMessage:
        async with unit_of_work(self.session_factory) as session:
            message = transition(await self._load(session, message_id), Lifecycle.DELETED)
        log_change(logger, "deleted", "ContactMessage", message_id)
        return message

    async def restore_message(self, message_id: int) -> ContactMessage:
        async with unit_of_work(self.session_factory) as session:
            message = transition(await self._load(session, message_id), Lifecycle.ACTIVE)
        log_change(logger, "restored", "ContactMessage", message_id)
        return message

    async def hard_delete(self, message_id: int) -> None:
        async with unit_of_work(self.session_factory) as session:
            await session.delete(await self._load(session, message_id))
        log_change(logger, "hard_deleted", "ContactMessage", message_id)

    async def reply(self, message_id: int, reply: str, admin_id: int) -> ContactMessage:
        async with unit_of_work(self.session_factory) as session:
            message = await self._load(session, message_id)
            if message.lifecycle == Lifecycle.DELETED:
                raise StateError("Cannot reply to a deleted message", context={"message_id": message_id})
            message.admin_reply = reply
            message.is_replied = True
            message.is_read = True
            message.replied_date = utcnow()
            message.replied_by_user_id = admin_id
            message.touch()
        log_change(logger, "replied", "ContactMessage", message_id, admin_id=admin_id)
        return message

    async def get_statistics(self) -> ContactStatistics:
        live = ContactMessage.lifecycle != Lifecycle.DELETED
        today = datetime.combine(utcnow().date(), time.min)

        async def count(*criteria) -> int:
            return await session.scalar(select(func.count(ContactMessage.id)).where(*criteria)) or 0

        async with unit_of_work(self.session_factory) as session:
            return ContactStatistics(
                total_messages=await count(live),
                unread_messages=await count(live, ContactMessage.is_read.is_(False)),
                replied_messages=await count(live, ContactMessage.is_replied.is_(True)),
                pending_replies=await count(live, ContactMessage.is_replied.is_(False)),
                today_messages=await count(
                    live, ContactMessage.created_date >= today, ContactMessage.created_date < today + timedelta(days=1)
                ),
                deleted_messages=await count(ContactMessage.lifecycle == Lifecycle.DELETED),
            )
