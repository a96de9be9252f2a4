from typing import Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from shared.utils import NotFoundError, ValidationError

UNSET = object()


async def next_display_order(
    session: AsyncSession, model, scope_column=None, scope_value=UNSET, exclude_id: Optional[int] = None
) -> int:
    """
    max(display_order) + 1 inside the scope, or 1 for an empty scope.

    With `scope_column` given, the scope is the rows whose column equals
    `scope_value`; a None value is a scope of its own (rows with NULL).
    `exclude_id` leaves the row being re-ordered out of its own scope.
    """
    stmt = select(func.max(model.display_order))
    if scope_column is not None:
        if scope_value is None:
            stmt = stmt.where(scope_column.is_(None))
        else:
            stmt = stmt.where(scope_column == scope_value)
    if exclude_id is not None:
        stmt = stmt.where(model.id != exclude_id)
    current = await session.scalar(stmt)
    return (current or 0) + 1


async def resolve_display_order(
    session: AsyncSession,
    model,
    requested: Optional[int],
    scope_column=None,
    scope_value=UNSET,
    exclude_id: Optional[int] = None,
) -> int:
    """The caller's order when given, else the next free one. 0 means "not given"."""
    if requested:
        if requested < 0:
            raise ValidationError("Display order cannot be negative", context={"display_order": requested})
        return requested
    return await next_display_order(session, model, scope_column, scope_value, exclude_id)


async def apply_display_orders(session: AsyncSession, model, orders: Dict[int, int]) -> int:
    """
    Bulk reorder inside the caller's transaction.

    Rows not named keep their order; nothing is compacted. An unknown id
    fails the whole batch.
    """
    if not orders:
        return 0
    if any(value < 0 for value in orders.values()):
        raise ValidationError("Display order cannot be negative")
    rows = (await session.scalars(select(model).where(model.id.in_(orders.keys())))).all()
    found = {row.id: row for row in rows}
    missing = sorted(set(orders) - set(found))
    if missing:
        raise NotFoundError(f"{model.__name__} not found", context={"ids": missing})
    for entity_id, display_order in orders.items():
        row = found[entity_id]
        row.display_order = display_order
        row.touch()
    return len(orders)
