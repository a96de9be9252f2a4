from decimal import Decimal

import pytest

from shared.utils import ConflictError, NotFoundError, Settings, StateError, ValidationError
from storefront.cart import Cart
from storefront.models import Lifecycle, PaymentMethod
from storefront.querying import ProductSort, SortDirection
from storefront.schemas import AddressCreate, CategoryCreate, ProductCreate, ProductUpdate
from storefront.services.catalog import CategoryService, ProductService
from storefront.services.orders import OrderService


@pytest.fixture
def products(session_factory):
    return ProductService(session_factory, Settings(LOW_STOCK_THRESHOLD=3))


@pytest.fixture
def categories(session_factory):
    return CategoryService(session_factory)


def new_product(category, name="Lamp", price="25.00", **fields):
    return ProductCreate(name=name, price=Decimal(price), category_id=category.id, **fields)


async def test_create_checks_category_and_uniqueness(products, category):
    created = await products.create_product(new_product(category, sku="LMP-1", stock_quantity=4))
    assert created.stock_quantity == 4

    with pytest.raises(ConflictError):
        await products.create_product(new_product(category, name="lamp "))
    with pytest.raises(ConflictError):
        await products.create_product(new_product(category, name="Other", sku="lmp-1"))
    with pytest.raises(NotFoundError):
        await products.create_product(ProductCreate(name="Ghost", price=Decimal("1.00"), category_id=999))


async def test_discount_must_be_below_price(products, category):
    with pytest.raises(ValidationError):
        await products.create_product(new_product(category, discount_price=Decimal("25.00")))

    product = await products.create_product(new_product(category, discount_price=Decimal("20.00")))
    with pytest.raises(ValidationError):
        await products.update_product(product.id, ProductUpdate(price=Decimal("19.00")))


async def test_list_filters_and_sorts(products, make_product):
    await make_product("Cheap", "5.00", stock=0)
    await make_product("Mid", "15.00")
    await make_product("Pricey", "50.00")
    await make_product("Hidden", "20.00", lifecycle=Lifecycle.DELETED)

    rows, total = await products.list_products(
        min_price=Decimal("10.00"), sort=ProductSort.PRICE, direction=SortDirection.DESC
    )
    assert total == 2
    assert [p.name for p in rows] == ["Pricey", "Mid"]

    rows, total = await products.list_products(in_stock=False)
    assert [p.name for p in rows] == ["Cheap"]

    rows, total = await products.list_products(search="pri", page=1, page_size=1)
    assert total == 1


async def test_storefront_reads_count_views_and_hide_inactive(products, make_product):
    shown = await make_product("Shown")
    off = await make_product("Off", lifecycle=Lifecycle.DISABLED)

    assert (await products.get_active_product(shown.id)).view_count == 1
    with pytest.raises(NotFoundError):
        await products.get_active_product(off.id)


async def test_low_stock_uses_configured_threshold(products, make_product):
    await make_product("Plenty", stock=50)
    await make_product("Few", stock=3)
    await make_product("None", stock=0)

    assert [p.name for p in await products.get_low_stock()] == ["None", "Few"]
    assert [p.name for p in await products.get_low_stock(threshold=0)] == ["None"]


async def test_stock_update_and_deleted_products(products, make_product):
    product = await make_product(stock=1)

    assert (await products.update_stock(product.id, 9)).stock_quantity == 9
    with pytest.raises(ValidationError):
        await products.update_stock(product.id, -1)

    await products.delete_product(product.id)
    with pytest.raises(StateError):
        await products.update_stock(product.id, 2)


async def test_hard_delete_keeps_ordered_products(session_factory, products, customer, make_product):
    ordered = await make_product("Ordered")
    loose = await make_product("Loose")
    address = AddressCreate(
        first_name="A", last_name="B", address_line="1 Main St",
        city="X", state="Y", country="US", zip_code="00001",
    )
    await OrderService(session_factory).create_order(customer.id, Cart().add(ordered.id), PaymentMethod.PAYPAL, new_address=address)

    assert await products.hard_delete_product(ordered.id) is False
    assert (await products.get_product(ordered.id)).lifecycle == Lifecycle.DELETED

    assert await products.hard_delete_product(loose.id) is True
    with pytest.raises(NotFoundError):
        await products.get_product(loose.id)


async def test_category_delete_is_soft_while_in_use(categories, category, make_product):
    spare = await categories.create_category(CategoryCreate(name="Spare"))
    await make_product()

    assert spare.display_order == 2
    assert await categories.delete_category(category.id) is False
    assert (await categories.get_category(category.id)).lifecycle == Lifecycle.DELETED
    assert await categories.delete_category(spare.id) is True

    with pytest.raises(ConflictError):
        await categories.create_category(CategoryCreate(name="gadgets"))


async def test_category_listing_counts_products(categories, category, make_product):
    await make_product("One")
    await make_product("Two")
    await categories.create_category(CategoryCreate(name="Empty"))

    listed = {c.name: count for c, count in await categories.list_categories()}

    assert listed == {"Gadgets": 2, "Empty": 0}
