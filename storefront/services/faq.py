import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shared.logging_config import log_change
from shared.utils import ConflictError, NotFoundError, unit_of_work
from storefront.lifecycle import ensure_editable, toggle, transition
from storefront.models import FAQ, FAQCategory, Lifecycle
from storefront.ordering import apply_display_orders, resolve_display_order
from storefront.querying import FAQSort, SortDirection, apply_sort, contains, paginate
from storefront.schemas import FAQCategoryCreate, FAQCategoryUpdate, FAQCreate, FAQStatistics, FAQUpdate

logger = logging.getLogger("storefront.faq")

FAQ_SORT_COLUMNS = {
    FAQSort.DISPLAY_ORDER: FAQ.display_order,
    FAQSort.QUESTION: FAQ.question,
    FAQSort.VIEWS: FAQ.view_count,
    FAQSort.HELPFUL: FAQ.helpful_count - FAQ.not_helpful_count,
    FAQSort.CREATED: FAQ.created_date,
}


class FAQService:
    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    # --- FAQs ---
    async def list_faqs(
        self,
        search: Optional[str] = None,
        category_id: Optional[int] = None,
        lifecycle: Optional[Lifecycle] = None,
        sort: FAQSort = FAQSort.DISPLAY_ORDER,
        direction: SortDirection = SortDirection.ASC,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[FAQ], int]:
        stmt = select(FAQ)
        if lifecycle is not None:
            stmt = stmt.where(FAQ.lifecycle == lifecycle)
        else:
            stmt = stmt.where(FAQ.lifecycle != Lifecycle.DELETED)
        if search:
            stmt = stmt.where(or_(contains(FAQ.question, search), contains(FAQ.answer, search), contains(FAQ.tags, search)))
        if category_id is not None:
            stmt = stmt.where(FAQ.category_id == category_id)
        stmt = apply_sort(stmt, FAQ_SORT_COLUMNS, sort, direction, FAQ.id)
        async with unit_of_work(self.session_factory) as session:
            return await paginate(session, stmt, page, page_size)

    async def list_active(self, category_id: Optional[int] = None, limit: Optional[int] = None) -> List[FAQ]:
        stmt = (
            select(FAQ)
            .outerjoin(FAQCategory, FAQCategory.id == FAQ.category_id)
            .where(FAQ.lifecycle == Lifecycle.ACTIVE)
            .where(or_(FAQ.category_id.is_(None), FAQCategory.lifecycle == Lifecycle.ACTIVE))
        )
        if category_id is not None:
            stmt = stmt.where(FAQ.category_id == category_id)
        stmt = stmt.order_by(FAQCategory.display_order, FAQ.display_order, FAQ.id)
        if limit:
            stmt = stmt.limit(limit)
        async with unit_of_work(self.session_factory) as session:
            return list((await session.scalars(stmt)).all())

    async def get_faq(self, faq_id: int) -> FAQ:
        async with unit_of_work(self.session_factory) as session:
            return await self._load_faq(session, faq_id)

    async def _load_faq(self, session: AsyncSession, faq_id: int) -> FAQ:
        faq = await session.get(FAQ, faq_id)
        if faq is None:
            raise NotFoundError("FAQ not found", context={"faq_id": faq_id})
        return faq

    async def create_faq(self, data: FAQCreate) -> FAQ:
        async with unit_of_work(self.session_factory) as session:
            if data.category_id is not None:
                await self._load_category(session, data.category_id)
            faq = FAQ(**data.model_dump(exclude={"display_order"}))
            faq.display_order = await resolve_display_order(
                session, FAQ, data.display_order, FAQ.category_id, data.category_id
            )
            session.add(faq)
            await session.flush()
        log_change(logger, "created", "FAQ", faq.id, display_order=faq.display_order)
        return faq

    async def update_faq(self, faq_id: int, data: FAQUpdate) -> FAQ:
        async with unit_of_work(self.session_factory) as session:
            faq = ensure_editable(await self._load_faq(session, faq_id))
            changes = data.model_dump(exclude_unset=True)
            moving = "category_id" in changes and changes["category_id"] != faq.category_id
            if moving and changes["category_id"] is not None:
                await self._load_category(session, changes["category_id"])
            requested_order = changes.pop("display_order", None)
            for field, value in changes.items():
                setattr(faq, field, value)
            if requested_order is not None or moving:
                faq.display_order = await resolve_display_order(
                    session, FAQ, requested_order, FAQ.category_id, faq.category_id, exclude_id=faq.id
                )
            faq.touch()
        log_change(logger, "updated", "FAQ", faq_id)
        return faq

    async def delete_faq(self, faq_id: int) -> FAQ:
        async with unit_of_work(self.session_factory) as session:
            faq = transition(await self._load_faq(session, faq_id), Lifecycle.DELETED)
        log_change(logger, "deleted", "FAQ", faq_id)
        return faq

    async def hard_delete_faq(self, faq_id: int) -> None:
        async with unit_of_work(self.session_factory) as session:
            await session.delete(await self._load_faq(session, faq_id))
        log_change(logger, "hard_deleted", "FAQ", faq_id)

    async def toggle_faq(self, faq_id: int) -> FAQ:
        async with unit_of_work(self.session_factory) as session:
            faq = toggle(await self._load_faq(session, faq_id))
        log_change(logger, "toggled", "FAQ", faq_id, lifecycle=faq.lifecycle.value)
        return faq

    async def update_display_order(self, faq_id: int, display_order: int) -> FAQ:
        async with unit_of_work(self.session_factory) as session:
            faq = ensure_editable(await self._load_faq(session, faq_id))
            faq.display_order = await resolve_display_order(
                session, FAQ, display_order, FAQ.category_id, faq.category_id, exclude_id=faq.id
            )
            faq.touch()
        return faq

    async def reorder(self, orders: Dict[int, int]) -> int:
        async with unit_of_work(self.session_factory) as session:
            updated = await apply_display_orders(session, FAQ, orders)
        log_change(logger, "reordered", "FAQ", None, count=updated)
        return updated

    async def record_view(self, faq_id: int) -> FAQ:
        async with unit_of_work(self.session_factory) as session:
            faq = await self._load_faq(session, faq_id)
            if not faq.is_active:
                raise NotFoundError("FAQ not found", context={"faq_id": faq_id})
            faq.view_count += 1
        return faq

    async def mark_helpful(self, faq_id: int, helpful: bool) -> FAQ:
        async with unit_of_work(self.session_factory) as session:
            faq = await self._load_faq(session, faq_id)
            if not faq.is_active:
                raise NotFoundError("FAQ not found", context={"faq_id": faq_id})
            if helpful:
                faq.helpful_count += 1
            else:
                faq.not_helpful_count += 1
        return faq

    async def search(self, keyword: str, category_id: Optional[int] = None, limit: int = 10) -> List[FAQ]:
        stmt = select(FAQ).where(
            FAQ.lifecycle == Lifecycle.ACTIVE,
            or_(contains(FAQ.question, keyword), contains(FAQ.answer, keyword)),
        )
        if category_id is not None:
            stmt = stmt.where(FAQ.category_id == category_id)
        stmt = stmt.order_by(FAQ.display_order, FAQ.id).limit(limit)
        async with unit_of_work(self.session_factory) as session:
            return list((await session.scalars(stmt)).all())

    async def get_most_viewed(self, count: int = 5) -> List[FAQ]:
        return await self._top(FAQ.view_count.desc(), count)

    async def get_most_helpful(self, count: int = 5) -> List[FAQ]:
        return await self._top((FAQ.helpful_count - FAQ.not_helpful_count).desc(), count)

    async def _top(self, ordering, count: int) -> List[FAQ]:
        async with unit_of_work(self.session_factory) as session:
            result = await session.scalars(
                select(FAQ).where(FAQ.lifecycle == Lifecycle.ACTIVE).order_by(ordering, FAQ.id).limit(count)
            )
            return list(result.all())

    async def get_statistics(self) -> FAQStatistics:
        live = FAQ.lifecycle != Lifecycle.DELETED
        async with unit_of_work(self.session_factory) as session:
            total = await session.scalar(select(func.count(FAQ.id)).where(live))
            active = await session.scalar(select(func.count(FAQ.id)).where(FAQ.lifecycle == Lifecycle.ACTIVE))
            categories = await session.scalar(
                select(func.count(FAQCategory.id)).where(FAQCategory.lifecycle != Lifecycle.DELETED)
            )
            active_categories = await session.scalar(
                select(func.count(FAQCategory.id)).where(FAQCategory.lifecycle == Lifecycle.ACTIVE)
            )
            views, helpful, not_helpful = (await session.execute(
                select(
                    func.coalesce(func.sum(FAQ.view_count), 0),
                    func.coalesce(func.sum(FAQ.helpful_count), 0),
                    func.coalesce(func.sum(FAQ.not_helpful_count), 0),
                ).where(live)
            )).one()
            uncategorized = await session.scalar(select(func.count(FAQ.id)).where(live, FAQ.category_id.is_(None)))
        return FAQStatistics(
            total_faqs=total or 0,
            active_faqs=active or 0,
            total_categories=categories or 0,
            active_categories=active_categories or 0,
            total_views=views,
            total_helpful=helpful,
            total_not_helpful=not_helpful,
            uncategorized_faqs=uncategorized or 0,
        )

    # --- Categories ---
    async def list_categories(self, include_inactive: bool = False) -> List[Tuple[FAQCategory, int]]:
        """Categories in display order, each with the number of live FAQs it holds."""
        faq_count = (
            select(func.count(FAQ.id))
            .where(FAQ.category_id == FAQCategory.id, FAQ.lifecycle != Lifecycle.DELETED)
            .scalar_subquery()
        )
        stmt = select(FAQCategory, faq_count)
        if include_inactive:
            stmt = stmt.where(FAQCategory.lifecycle != Lifecycle.DELETED)
        else:
            stmt = stmt.where(FAQCategory.lifecycle == Lifecycle.ACTIVE)
        stmt = stmt.order_by(FAQCategory.display_order, FAQCategory.name)
        async with unit_of_work(self.session_factory) as session:
            return [(category, count) for category, count in (await session.execute(stmt)).all()]

    async def get_category(self, category_id: int) -> FAQCategory:
        async with unit_of_work(self.session_factory) as session:
            return await self._load_category(session, category_id)

    async def _load_category(self, session: AsyncSession, category_id: int) -> FAQCategory:
        category = await session.get(FAQCategory, category_id)
        if category is None:
            raise NotFoundError("FAQ category not found", context={"category_id": category_id})
        return category

    async def _ensure_unique_name(self, session: AsyncSession, name: str, exclude_id: Optional[int] = None):
        stmt = select(FAQCategory.id).where(func.lower(FAQCategory.name) == name.strip().lower())
        if exclude_id is not None:
            stmt = stmt.where(FAQCategory.id != exclude_id)
        if await session.scalar(stmt.limit(1)) is not None:
            raise ConflictError("FAQ category name already exists", context={"name": name})

    async def is_category_name_unique(self, name: str, exclude_id: Optional[int] = None) -> bool:
        async with unit_of_work(self.session_factory) as session:
            try:
                await self._ensure_unique_name(session, name, exclude_id)
            except ConflictError:
                return False
            return True

    async def create_category(self, data: FAQCategoryCreate) -> FAQCategory:
        async with unit_of_work(self.session_factory) as session:
            await self._ensure_unique_name(session, data.name)
            category = FAQCategory(**data.model_dump(exclude={"display_order"}))
            category.name = data.name.strip()
            category.display_order = await resolve_display_order(session, FAQCategory, data.display_order)
            session.add(category)
            await session.flush()
        log_change(logger, "created", "FAQCategory", category.id, display_order=category.display_order)
        return category

    async def update_category(self, category_id: int, data: FAQCategoryUpdate) -> FAQCategory:
        async with unit_of_work(self.session_factory) as session:
            category = ensure_editable(await self._load_category(session, category_id))
            changes = data.model_dump(exclude_unset=True)
            if "name" in changes:
                await self._ensure_unique_name(session, changes["name"], exclude_id=category_id)
                changes["name"] = changes["name"].strip()
            requested_order = changes.pop("display_order", None)
            for field, value in changes.items():
                setattr(category, field, value)
            if requested_order is not None:
                category.display_order = await resolve_display_order(
                    session, FAQCategory, requested_order, exclude_id=category.id
                )
            category.touch()
        log_change(logger, "updated", "FAQCategory", category_id)
        return category

    async def _detach_faqs(self, session: AsyncSession, category_id: int) -> int:
        result = await session.execute(
            update(FAQ).where(FAQ.category_id == category_id).values(category_id=None)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    async def delete_category(self, category_id: int) -> FAQCategory:
        async with unit_of_work(self.session_factory) as session:
            category = transition(await self._load_category(session, category_id), Lifecycle.DELETED)
            detached = await self._detach_faqs(session, category_id)
        log_change(logger, "deleted", "FAQCategory", category_id, detached_faqs=detached)
        return category

    async def hard_delete_category(self, category_id: int) -> None:
        async with unit_of_work(self.session_factory) as session:
            category = await self._load_category(session, category_id)
            detached = await self._detach_faqs(session, category_id)
            await session.delete(category)
        log_change(logger, "hard_deleted", "FAQCategory", category_id, detached_faqs=detached)

    async def toggle_category(self, category_id: int) -> FAQCategory:
        async with unit_of_work(self.session_factory) as session:
            category = toggle(await self._load_category(session, category_id))
        log_change(logger, "toggled", "FAQCategory", category_id, lifecycle=category.lifecycle.value)
        return category

    async def reorder_categories(self, orders: Dict[int, int]) -> int:
        async with unit_of_work(self.session_factory) as session:
            updated = await apply_display_orders(session, FAQCategory, orders)
        log_change(logger, "reordered", "FAQCategory", None, count=updated)
        return updated
