import logging
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shared.logging_config import log_change
from shared.utils import ConflictError, NotFoundError, Settings, ValidationError, settings, unit_of_work
from storefront.lifecycle import ensure_editable, toggle, transition
from storefront.models import Category, Lifecycle, OrderItem, Product
from storefront.ordering import apply_display_orders, resolve_display_order
from storefront.querying import ProductSort, SortDirection, apply_sort, contains, paginate
from storefront.schemas import CategoryCreate, CategoryUpdate, ProductCreate, ProductUpdate

logger = logging.getLogger("storefront.catalog")

PRODUCT_SORT_COLUMNS = {
    ProductSort.NAME: Product.name,
    ProductSort.PRICE: Product.price,
    ProductSort.STOCK: Product.stock_quantity,
    ProductSort.CREATED: Product.created_date,
    ProductSort.VIEWS: Product.view_count,
}


def check_discount(price: Decimal, discount_price: Optional[Decimal]) -> None:
    if discount_price is not None and discount_price >= price:
        raise ValidationError(
            "Discount price must be lower than the price",
            context={"price": str(price), "discount_price": str(discount_price)},
        )


class ProductService:
    def __init__(self, session_factory: async_sessionmaker, config: Settings = settings):
        self.session_factory = session_factory
        self.config = config

    async def list_products(
        self,
        search: Optional[str] = None,
        category_id: Optional[int] = None,
        lifecycle: Optional[Lifecycle] = None,
        featured: Optional[bool] = None,
        min_price: Optional[Decimal] = None,
        max_price: Optional[Decimal] = None,
        in_stock: Optional[bool] = None,
        sort: ProductSort = ProductSort.NAME,
        direction: SortDirection = SortDirection.ASC,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[Product], int]:
        stmt = select(Product)
        if lifecycle is not None:
            stmt = stmt.where(Product.lifecycle == lifecycle)
        else:
            stmt = stmt.where(Product.lifecycle != Lifecycle.DELETED)
        if search:
            stmt = stmt.where(or_(
                contains(Product.name, search),
                contains(Product.description, search),
                contains(Product.brand, search),
                contains(Product.sku, search),
            ))
        if category_id is not None:
            stmt = stmt.where(Product.category_id == category_id)
        if featured is not None:
            stmt = stmt.where(Product.is_featured.is_(featured))
        if min_price is not None:
            stmt = stmt.where(Product.price >= min_price)
        if max_price is not None:
            stmt = stmt.where(Product.price <= max_price)
        if in_stock is True:
            stmt = stmt.where(Product.stock_quantity > 0)
        elif in_stock is False:
            stmt = stmt.where(Product.stock_quantity <= 0)
        stmt = apply_sort(stmt, PRODUCT_SORT_COLUMNS, sort, direction, Product.id)
        async with unit_of_work(self.session_factory) as session:
            return await paginate(session, stmt, page, page_size)

    async def get_product(self, product_id: int) -> Product:
        async with unit_of_work(self.session_factory) as session:
            return await self._load(session, product_id)

    async def get_active_product(self, product_id: int) -> Product:
        """Storefront product page: counts as a view and hides anything not active."""
        async with unit_of_work(self.session_factory) as session:
            product = await session.get(Product, product_id)
            if product is None or not product.is_active:
                raise NotFoundError("Product not found", context={"product_id": product_id})
            product.view_count += 1
            return product

    async def _load(self, session: AsyncSession, product_id: int) -> Product:
        product = await session.get(Product, product_id)
        if product is None:
            raise NotFoundError("Product not found", context={"product_id": product_id})
        return product

    async def _check_category(self, session: AsyncSession, category_id: int) -> Category:
        category = await session.get(Category, category_id)
        if category is None or category.lifecycle == Lifecycle.DELETED:
            raise NotFoundError("Category not found", context={"category_id": category_id})
        return category

    async def _ensure_unique(self, session: AsyncSession, name: Optional[str], sku: Optional[str],
                             exclude_id: Optional[int] = None):
        if name:
            stmt = select(Product.id).where(func.lower(Product.name) == name.strip().lower())
            if exclude_id is not None:
                stmt = stmt.where(Product.id != exclude_id)
            if await session.scalar(stmt.limit(1)) is not None:
                raise ConflictError("Product name already exists", context={"name": name})
        if sku:
            stmt = select(Product.id).where(func.lower(Product.sku) == sku.strip().lower())
            if exclude_id is not None:
                stmt = stmt.where(Product.id != exclude_id)
            if await session.scalar(stmt.limit(1)) is not None:
                raise ConflictError("SKU already exists", context={"sku": sku})

    async def create_product(self, data: ProductCreate) -> Product:
        check_discount(data.price, data.discount_price)
        async with unit_of_work(self.session_factory) as session:
            await self._check_category(session, data.category_id)
            await self._ensure_unique(session, data.name, data.sku)
            product = Product(**data.model_dump())
            product.name = data.name.strip()
            product.sku = data.sku.strip() if data.sku else None
            session.add(product)
            await session.flush()
        log_change(logger, "created", "Product", product.id, sku=product.sku)
        return product

    async def update_product(self, product_id: int, data: ProductUpdate) -> Product:
        async with unit_of_work(self.session_factory) as session:
            product = ensure_editable(await self._load(session, product_id))
            changes = data.model_dump(exclude_unset=True)
            if changes.get("category_id") is not None:
                await self._check_category(session, changes["category_id"])
            await self._ensure_unique(session, changes.get("name"), changes.get("sku"), exclude_id=product_id)
            check_discount(
                changes.get("price") or product.price,
                changes["discount_price"] if "discount_price" in changes else product.discount_price,
            )
            for field, value in changes.items():
                if value is None and field in ("name", "price", "stock_quantity", "category_id", "is_featured"):
                    continue
                setattr(product, field, value)
            product.touch()
        log_change(logger, "updated", "Product", product_id, fields=sorted(changes))
        return product

    async def delete_product(self, product_id: int) -> Product:
        async with unit_of_work(self.session_factory) as session:
            product = transition(await self._load(session, product_id), Lifecycle.DELETED)
        log_change(logger, "deleted", "Product", product_id)
        return product

    async def hard_delete_product(self, product_id: int) -> bool:
        """
        Remove the product row. Products that appear on an order are soft
        deleted instead so order history keeps resolving.

        Returns True when the row was removed.
        """
        async with unit_of_work(self.session_factory) as session:
            product = await self._load(session, product_id)
            ordered = await session.scalar(
                select(OrderItem.id).where(OrderItem.product_id == product_id).limit(1)
            )
            if ordered is not None:
                transition(product, Lifecycle.DELETED)
                removed = False
            else:
                await session.delete(product)
                removed = True
        log_change(logger, "hard_deleted" if removed else "deleted", "Product", product_id, has_orders=not removed)
        return removed

    async def toggle_status(self, product_id: int) -> Product:
        async with unit_of_work(self.session_factory) as session:
            product = toggle(await self._load(session, product_id))
        log_change(logger, "toggled", "Product", product_id, lifecycle=product.lifecycle.value)
        return product

    async def update_stock(self, product_id: int, stock_quantity: int) -> Product:
        if stock_quantity < 0:
            raise ValidationError("Stock cannot be negative", context={"stock_quantity": stock_quantity})
        async with unit_of_work(self.session_factory) as session:
            product = ensure_editable(await self._load(session, product_id))
            previous = product.stock_quantity
            product.stock_quantity = stock_quantity
            product.touch()
        log_change(logger, "stock_updated", "Product", product_id, previous=previous, stock_quantity=stock_quantity)
        return product

    async def get_low_stock(self, threshold: Optional[int] = None) -> List[Product]:
        limit = self.config.LOW_STOCK_THRESHOLD if threshold is None else threshold
        async with unit_of_work(self.session_factory) as session:
            result = await session.scalars(
                select(Product)
                .where(Product.lifecycle == Lifecycle.ACTIVE, Product.stock_quantity <= limit)
                .order_by(Product.stock_quantity, Product.name)
            )
            return list(result.all())

    async def get_featured(self, count: int = 8) -> List[Product]:
        async with unit_of_work(self.session_factory) as session:
            result = await session.scalars(
                select(Product)
                .where(Product.lifecycle == Lifecycle.ACTIVE, Product.is_featured.is_(True))
                .order_by(Product.created_date.desc(), Product.id.desc())
                .limit(count)
            )
            return list(result.all())

    async def count_active(self) -> int:
        async with unit_of_work(self.session_factory) as session:
            return await session.scalar(
                select(func.count(Product.id)).where(Product.lifecycle == Lifecycle.ACTIVE)
            ) or 0


class CategoryService:
    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def list_categories(self, include_inactive: bool = False) -> List[Tuple[Category, int]]:
        product_count = (
            select(func.count(Product.id))
            .where(Product.category_id == Category.id, Product.lifecycle != Lifecycle.DELETED)
            .scalar_subquery()
        )
        stmt = select(Category, product_count)
        if include_inactive:
            stmt = stmt.where(Category.lifecycle != Lifecycle.DELETED)
        else:
            stmt = stmt.where(Category.lifecycle == Lifecycle.ACTIVE)
        stmt = stmt.order_by(Category.display_order, Category.name)
        async with unit_of_work(self.session_factory) as session:
            return [(category, count) for category, count in (await session.execute(stmt)).all()]

    async def get_category(self, category_id: int) -> Category:
        async with unit_of_work(self.session_factory) as session:
            return await self._load(session, category_id)

    async def _load(self, session: AsyncSession, category_id: int) -> Category:
        category = await session.get(Category, category_id)
        if category is None:
            raise NotFoundError("Category not found", context={"category_id": category_id})
        return category

    async def _ensure_unique_name(self, session: AsyncSession, name: str, exclude_id: Optional[int] = None):
        stmt = select(Category.id).where(func.lower(Category.name) == name.strip().lower())
        if exclude_id is not None:
            stmt = stmt.where(Category.id != exclude_id)
        if await session.scalar(stmt.limit(1)) is not None:
            raise ConflictError("Category name already exists", context={"name": name})

    async def create_category(self, data: CategoryCreate) -> Category:
        async with unit_of_work(self.session_factory) as session:
            await self._ensure_unique_name(session, data.name)
            category = Category(**data.model_dump(exclude={"display_order"}))
            category.name = data.name.strip()
            category.display_order = await resolve_display_order(session, Category, data.display_order)
            session.add(category)
            await session.flush()
        log_change(logger, "created", "Category", category.id, display_order=category.display_order)
        return category

    async def update_category(self, category_id: int, data: CategoryUpdate) -> Category:
        async with unit_of_work(self.session_factory) as session:
            category = ensure_editable(await self._load(session, category_id))
            changes = data.model_dump(exclude_unset=True)
            if changes.get("name"):
                await self._ensure_unique_name(session, changes["name"], exclude_id=category_id)
                changes["name"] = changes["name"].strip()
            requested_order = changes.pop("display_order", None)
            for field, value in changes.items():
                if value is None and field == "name":
                    continue
                setattr(category, field, value)
            if requested_order is not None:
                category.display_order = await resolve_display_order(
                    session, Category, requested_order, exclude_id=category.id
                )
            category.touch()
        log_change(logger, "updated", "Category", category_id)
        return category

    async def delete_category(self, category_id: int) -> bool:
        """
        Soft delete while any product still points at the category, remove it
        otherwise. Returns True when the row was removed.
        """
        async with unit_of_work(self.session_factory) as session:
            category = await self._load(session, category_id)
            in_use = await session.scalar(
                select(Product.id).where(Product.category_id == category_id).limit(1)
            )
            if in_use is not None:
                transition(category, Lifecycle.DELETED)
                removed = False
            else:
                await session.delete(category)
                removed = True
        log_change(logger, "hard_deleted" if removed else "deleted", "Category", category_id)
        return removed

    async def toggle_status(self, category_id: int) -> Category:
        async with unit_of_work(self.session_factory) as session:
            category = toggle(await self._load(session, category_id))
        log_change(logger, "toggled", "Category", category_id, lifecycle=category.lifecycle.value)
        return category

    async def reorder(self, orders: Dict[int, int]) -> int:
        async with unit_of_work(self.session_factory) as session:
            updated = await apply_display_orders(session, Category, orders)
        log_change(logger, "reordered", "Category", None, count=updated)
        return updated
