from datetime import datetime, time, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


# Closed sort keys per listing. FastAPI rejects anything else with a 422.
class ProductSort(str, Enum):
    NAME = "name"
    PRICE = "price"
    STOCK = "stock"
    CREATED = "created"
    VIEWS = "views"

class OrderSort(str, Enum):
    ORDER_DATE = "order_date"
    TOTAL_AMOUNT = "total_amount"
    STATUS = "status"
    ORDER_NUMBER = "order_number"

class PaymentSort(str, Enum):
    PAYMENT_DATE = "payment_date"
    AMOUNT = "amount"
    STATUS = "status"
    METHOD = "method"

class BlogPostSort(str, Enum):
    CREATED = "created"
    PUBLISHED = "published"
    TITLE = "title"
    VIEWS = "views"

class FAQSort(str, Enum):
    DISPLAY_ORDER = "display_order"
    QUESTION = "question"
    VIEWS = "views"
    HELPFUL = "helpful"
    CREATED = "created"

class SliderSort(str, Enum):
    DISPLAY_ORDER = "display_order"
    TITLE = "title"
    CREATED = "created"

class UserSort(str, Enum):
    USERNAME = "username"
    EMAIL = "email"
    CREATED = "created"
    LAST_LOGIN = "last_login"

class ContactMessageSort(str, Enum):
    CREATED = "created"
    NAME = "name"
    SUBJECT = "subject"


def apply_sort(stmt: Select, column_map: Dict[Enum, Any], key: Enum, direction: SortDirection, tiebreak) -> Select:
    column = column_map[key]
    ordered = column.desc() if direction == SortDirection.DESC else column.asc()
    tie = tiebreak.desc() if direction == SortDirection.DESC else tiebreak.asc()
    return stmt.order_by(ordered, tie)


async def paginate(session: AsyncSession, stmt: Select, page: int, page_size: int) -> Tuple[List[Any], int]:
    """Run `stmt` for one page and return (rows, total matching rows)."""
    page = max(page, 1)
    page_size = max(page_size, 1)
    total = await session.scalar(select(func.count()).select_from(stmt.order_by(None).subquery()))
    result = await session.scalars(stmt.offset((page - 1) * page_size).limit(page_size))
    return list(result.all()), total or 0


def end_of_day(value: Optional[datetime]) -> Optional[datetime]:
    """Inclusive upper bound for a date filter: the start of the next day."""
    if value is None:
        return None
    return datetime.combine(value.date(), time.min) + timedelta(days=1)


def contains(column, term: str):
    return column.ilike(f"%{term.strip()}%")
