import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shared.logging_config import log_change
from shared.utils import NotFoundError, ValidationError, unit_of_work, utcnow
from storefront.lifecycle import ensure_editable, toggle, transition
from storefront.models import Lifecycle, Slider
from storefront.ordering import apply_display_orders, resolve_display_order
from storefront.querying import SliderSort, SortDirection, apply_sort, contains, paginate
from storefront.schemas import SliderCreate, SliderStatistics, SliderUpdate

logger = logging.getLogger("storefront.sliders")

SLIDER_SORT_COLUMNS = {
    SliderSort.DISPLAY_ORDER: Slider.display_order,
    SliderSort.TITLE: Slider.title,
    SliderSort.CREATED: Slider.created_date,
}


def check_window(start_date: Optional[datetime], end_date: Optional[datetime]) -> None:
    if start_date and end_date and end_date < start_date:
        raise ValidationError(
            "End date cannot be before start date",
            context={"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
        )


def _showing(now: datetime):
    return (
        (Slider.lifecycle == Lifecycle.ACTIVE)
        & or_(Slider.start_date.is_(None), Slider.start_date <= now)
        & or_(Slider.end_date.is_(None), Slider.end_date >= now)
    )


class SliderService:
    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def list_sliders(
        self,
        search: Optional[str] = None,
        lifecycle: Optional[Lifecycle] = None,
        sort: SliderSort = SliderSort.DISPLAY_ORDER,
        direction: SortDirection = SortDirection.ASC,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[Slider], int]:
        stmt = select(Slider)
        if lifecycle is not None:
            stmt = stmt.where(Slider.lifecycle == lifecycle)
        else:
            stmt = stmt.where(Slider.lifecycle != Lifecycle.DELETED)
        if search:
            stmt = stmt.where(or_(contains(Slider.title, search), contains(Slider.description, search)))
        stmt = apply_sort(stmt, SLIDER_SORT_COLUMNS, sort, direction, Slider.id)
        async with unit_of_work(self.session_factory) as session:
            return await paginate(session, stmt, page, page_size)

    async def list_active(self) -> List[Slider]:
        """Sliders to show right now, in display order."""
        stmt = select(Slider).where(_showing(utcnow())).order_by(Slider.display_order, Slider.id)
        async with unit_of_work(self.session_factory) as session:
            return list((await session.scalars(stmt)).all())

    async def get_slider(self, slider_id: int) -> Slider:
        async with unit_of_work(self.session_factory) as session:
            return await self._load(session, slider_id)

    async def _load(self, session: AsyncSession, slider_id: int) -> Slider:
        slider = await session.get(Slider, slider_id)
        if slider is None:
            raise NotFoundError("Slider not found", context={"slider_id": slider_id})
        return slider

    async def create_slider(self, data: SliderCreate) -> Slider:
        check_window(data.start_date, data.end_date)
        async with unit_of_work(self.session_factory) as session:
            slider = Slider(**data.model_dump(exclude={"display_order"}))
            slider.display_order = await resolve_display_order(session, Slider, data.display_order)
            session.add(slider)
            await session.flush()
        log_change(logger, "created", "Slider", slider.id, display_order=slider.display_order)
        return slider

    async def update_slider(self, slider_id: int, data: SliderUpdate) -> Slider:
        async with unit_of_work(self.session_factory) as session:
            slider = ensure_editable(await self._load(session, slider_id))
            changes = data.model_dump(exclude_unset=True)
            requested_order = changes.pop("display_order", None)
            check_window(changes.get("start_date", slider.start_date), changes.get("end_date", slider.end_date))
            for field, value in changes.items():
                setattr(slider, field, value)
            if requested_order is not None:
                slider.display_order = await resolve_display_order(
                    session, Slider, requested_order, exclude_id=slider.id
                )
            slider.touch()
        log_change(logger, "updated", "Slider", slider_id)
        return slider

    async def delete_slider(self, slider_id: int) -> Slider:
        async with unit_of_work(self.session_factory) as session:
            slider = transition(await self._load(session, slider_id), Lifecycle.DELETED)
        log_change(logger, "deleted", "Slider", slider_id)
        return slider

    async def hard_delete_slider(self, slider_id: int) -> None:
        async with unit_of_work(self.session_factory) as session:
            await session.delete(await self._load(session, slider_id))
        log_change(logger, "hard_deleted", "Slider", slider_id)

    async def toggle_slider(self, slider_id: int) -> Slider:
        async with unit_of_work(self.session_factory) as session:
            slider = toggle(await self._load(session, slider_id))
        log_change(logger, "toggled", "Slider", slider_id, lifecycle=slider.lifecycle.value)
        return slider

    async def update_display_order(self, slider_id: int, display_order: int) -> Slider:
        async with unit_of_work(self.session_factory) as session:
            slider = ensure_editable(await self._load(session, slider_id))
            slider.display_order = await resolve_display_order(session, Slider, display_order, exclude_id=slider.id)
            slider.touch()
        return slider

    async def reorder(self, orders: Dict[int, int]) -> int:
        async with unit_of_work(self.session_factory) as session:
            updated = await apply_display_orders(session, Slider, orders)
        log_change(logger, "reordered", "Slider", None, count=updated)
        return updated

    async def get_statistics(self) -> SliderStatistics:
        now = utcnow()
        active = Slider.lifecycle == Lifecycle.ACTIVE
        async with unit_of_work(self.session_factory) as session:
            total = await session.scalar(select(func.count(Slider.id)).where(Slider.lifecycle != Lifecycle.DELETED))
            showing = await session.scalar(select(func.count(Slider.id)).where(_showing(now)))
            disabled = await session.scalar(select(func.count(Slider.id)).where(Slider.lifecycle == Lifecycle.DISABLED))
            scheduled = await session.scalar(select(func.count(Slider.id)).where(active, Slider.start_date > now))
            expired = await session.scalar(select(func.count(Slider.id)).where(active, Slider.end_date < now))
        return SliderStatistics(
            total_sliders=total or 0,
            active_sliders=showing or 0,
            disabled_sliders=disabled or 0,
            scheduled_sliders=scheduled or 0,
            expired_sliders=expired or 0,
        )
