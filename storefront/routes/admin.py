"""Back-office endpoints. Every route requires the admin role."""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from shared.utils import Page, SuccessResponse
from storefront.deps import Services, admin_user, get_services, page_of, user_id_of
from storefront.models import Lifecycle, OrderStatus, PaymentMethod, PaymentStatus, UserRole
from storefront.querying import (
    BlogPostSort, ContactMessageSort, FAQSort, OrderSort, PaymentSort, ProductSort, SliderSort, SortDirection, UserSort,
)
from storefront.schemas import (
    BlogPostCreate, BlogPostResponse, BlogPostUpdate, BulkIds, CategoryCreate, CategoryResponse, CategoryUpdate,
    ContactMessageResponse, ContactReply, DashboardResponse, DeletionEligibility, DisplayOrderUpdate,
    FAQCategoryCreate, FAQCategoryResponse, FAQCategoryUpdate, FAQCreate, FAQResponse, FAQUpdate, OrderCancel,
    OrderMetrics, OrderResponse, OrderStatusUpdate, PasswordReset, PaymentResponse, PaymentStatusUpdate,
    ProductCreate, ProductResponse, ProductUpdate, RefundRequest, ReorderRequest, RoleChange, SliderCreate,
    SliderResponse, SliderUpdate, StockUpdate, UserActivitySummary, UserCreate, UserResponse, UserUpdate,
)

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(admin_user)])


@router.get("/dashboard", response_model=SuccessResponse[DashboardResponse])
async def dashboard(services: Services = Depends(get_services)):
    return SuccessResponse(data=await services.dashboard.get_dashboard())


# --- Users ---
@router.get("/users", response_model=SuccessResponse[Page[UserResponse]])
async def list_users(
    search: Optional[str] = None,
    role: Optional[UserRole] = None,
    lifecycle: Optional[Lifecycle] = None,
    sort: UserSort = UserSort.CREATED,
    direction: SortDirection = SortDirection.DESC,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    services: Services = Depends(get_services),
):
    users, total = await services.users.list_users(search, role, lifecycle, sort, direction, page, page_size)
    return SuccessResponse(data=page_of(UserResponse, users, total, page, page_size))


@router.post("/users", response_model=SuccessResponse[UserResponse], status_code=status.HTTP_201_CREATED)
async def create_user(user: UserCreate, services: Services = Depends(get_services)):
    created = await services.users.create_user(user, user.role)
    return SuccessResponse(data=UserResponse.model_validate(created), message="User created")


@router.get("/users/{user_id}", response_model=SuccessResponse[UserResponse])
async def get_user(user_id: int, services: Services = Depends(get_services)):
    return SuccessResponse(data=UserResponse.model_validate(await services.users.get_user(user_id)))


@router.put("/users/{user_id}", response_model=SuccessResponse[UserResponse])
async def update_user(user_id: int, user: UserUpdate, services: Services = Depends(get_services)):
    updated = await services.users.update_user(user_id, user)
    return SuccessResponse(data=UserResponse.model_validate(updated), message="User updated")


@router.post("/users/{user_id}/role", response_model=SuccessResponse[UserResponse])
async def change_role(user_id: int, body: RoleChange, services: Services = Depends(get_services)):
    user = await services.users.change_role(user_id, body.role)
    return SuccessResponse(data=UserResponse.model_validate(user), message="Role changed")


@router.post("/users/{user_id}/reset-password", response_model=SuccessResponse[dict])
async def reset_password(user_id: int, body: PasswordReset, services: Services = Depends(get_services)):
    await services.users.reset_password(user_id, body.new_password)
    return SuccessResponse(data={"id": user_id}, message="Password reset")


@router.post("/users/{user_id}/toggle", response_model=SuccessResponse[UserResponse])
async def toggle_user(user_id: int, services: Services = Depends(get_services)):
    user = await services.users.toggle_status(user_id)
    return SuccessResponse(data=UserResponse.model_validate(user))


@router.get("/users/{user_id}/deletion-eligibility", response_model=SuccessResponse[DeletionEligibility])
async def deletion_eligibility(user_id: int, services: Services = Depends(get_services)):
    return SuccessResponse(data=await services.users.check_deletion_eligibility(user_id))


@router.get("/users/{user_id}/activity", response_model=SuccessResponse[UserActivitySummary])
async def user_activity(user_id: int, services: Services = Depends(get_services)):
    return SuccessResponse(data=await services.users.get_activity_summary(user_id))


@router.delete("/users/{user_id}", response_model=SuccessResponse[UserResponse])
async def delete_user(user_id: int, services: Services = Depends(get_services)):
    user = await services.users.delete_user(user_id)
    return SuccessResponse(data=UserResponse.model_validate(user), message="User deleted")


@router.delete("/users/{user_id}/permanent", response_model=SuccessResponse[dict])
async def hard_delete_user(user_id: int, services: Services = Depends(get_services)):
    await services.users.hard_delete_user(user_id)
    return SuccessResponse(data={"id": user_id}, message="User permanently deleted")


# --- Products ---
@router.get("/products", response_model=SuccessResponse[Page[ProductResponse]])
async def list_products(
    search: Optional[str] = None,
    category_id: Optional[int] = None,
    lifecycle: Optional[Lifecycle] = None,
    featured: Optional[bool] = None,
    min_price: Optional[Decimal] = None,
    max_price: Optional[Decimal] = None,
    in_stock: Optional[bool] = None,
    sort: ProductSort = ProductSort.NAME,
    direction: SortDirection = SortDirection.ASC,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    services: Services = Depends(get_services),
):
    products, total = await services.products.list_products(
        search, category_id, lifecycle, featured, min_price, max_price, in_stock, sort, direction, page, page_size
    )
    return SuccessResponse(data=page_of(ProductResponse, products, total, page, page_size))


@router.get("/products/low-stock", response_model=SuccessResponse[List[ProductResponse]])
async def low_stock(threshold: Optional[int] = Query(None, ge=0), services: Services = Depends(get_services)):
    products = await services.products.get_low_stock(threshold)
    return SuccessResponse(data=[ProductResponse.model_validate(p) for p in products])


@router.post("/products", response_model=SuccessResponse[ProductResponse], status_code=status.HTTP_201_CREATED)
async def create_product(product: ProductCreate, services: Services = Depends(get_services)):
    created = await services.products.create_product(product)
    return SuccessResponse(data=ProductResponse.model_validate(created), message="Product created successfully")


@router.get("/products/{product_id}", response_model=SuccessResponse[ProductResponse])
async def get_product(product_id: int, services: Services = Depends(get_services)):
    return SuccessResponse(data=ProductResponse.model_validate(await services.products.get_product(product_id)))


@router.put("/products/{product_id}", response_model=SuccessResponse[ProductResponse])
async def update_product(product_id: int, product: ProductUpdate, services: Services = Depends(get_services)):
    updated = await services.products.update_product(product_id, product)
    return SuccessResponse(data=ProductResponse.model_validate(updated), message="Product updated successfully")


@router.put("/products/{product_id}/stock", response_model=SuccessResponse[ProductResponse])
async def update_stock(product_id: int, body: StockUpdate, services: Services = Depends(get_services)):
    product = await services.products.update_stock(product_id, body.stock_quantity)
    return SuccessResponse(data=ProductResponse.model_validate(product))


@router.post("/products/{product_id}/toggle", response_model=SuccessResponse[ProductResponse])
async def toggle_product(product_id: int, services: Services = Depends(get_services)):
    product = await services.products.toggle_status(product_id)
    return SuccessResponse(data=ProductResponse.model_validate(product))


@router.delete("/products/{product_id}", response_model=SuccessResponse[ProductResponse])
async def delete_product(product_id: int, services: Services = Depends(get_services)):
    product = await services.products.delete_product(product_id)
    return SuccessResponse(data=ProductResponse.model_validate(product), message="Product deleted successfully")


@router.delete("/products/{product_id}/permanent", response_model=SuccessResponse[dict])
async def hard_delete_product(product_id: int, services: Services = Depends(get_services)):
    removed = await services.products.hard_delete_product(product_id)
    message = "Product permanently deleted" if removed else "Product has order history and was soft deleted"
    return SuccessResponse(data={"id": product_id, "removed": removed}, message=message)


# --- Categories ---
@router.get("/categories", response_model=SuccessResponse[List[CategoryResponse]])
async def list_categories(services: Services = Depends(get_services)):
    rows = await services.categories.list_categories(include_inactive=True)
    return SuccessResponse(data=[
        CategoryResponse.model_validate(category).model_copy(update={"product_count": count})
        for category, count in rows
    ])


@router.post("/categories", response_model=SuccessResponse[CategoryResponse], status_code=status.HTTP_201_CREATED)
async def create_category(category: CategoryCreate, services: Services = Depends(get_services)):
    created = await services.categories.create_category(category)
    return SuccessResponse(data=CategoryResponse.model_validate(created), message="Category created successfully")


@router.put("/categories/reorder", response_model=SuccessResponse[dict])
async def reorder_categories(body: ReorderRequest, services: Services = Depends(get_services)):
    return SuccessResponse(data={"updated": await services.categories.reorder(body.orders)})


@router.get("/categories/{category_id}", response_model=SuccessResponse[CategoryResponse])
async def get_category(category_id: int, services: Services = Depends(get_services)):
    return SuccessResponse(data=CategoryResponse.model_validate(await services.categories.get_category(category_id)))


@router.put("/categories/{category_id}", response_model=SuccessResponse[CategoryResponse])
async def update_category(category_id: int, category: CategoryUpdate, services: Services = Depends(get_services)):
    updated = await services.categories.update_category(category_id, category)
    return SuccessResponse(data=CategoryResponse.model_validate(updated))


@router.post("/categories/{category_id}/toggle", response_model=SuccessResponse[CategoryResponse])
async def toggle_category(category_id: int, services: Services = Depends(get_services)):
    category = await services.categories.toggle_status(category_id)
    return SuccessResponse(data=CategoryResponse.model_validate(category))


@router.delete("/categories/{category_id}", response_model=SuccessResponse[dict])
async def delete_category(category_id: int, services: Services = Depends(get_services)):
    removed = await services.categories.delete_category(category_id)
    return SuccessResponse(data={"id": category_id, "removed": removed}, message="Category deleted")


# --- Orders ---
@router.get("/orders", response_model=SuccessResponse[Page[OrderResponse]])
async def list_orders(
    search: Optional[str] = None,
    order_status: Optional[OrderStatus] = Query(None, alias="status"),
    payment_status: Optional[PaymentStatus] = None,
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
    sort: OrderSort = OrderSort.ORDER_DATE,
    direction: SortDirection = SortDirection.DESC,
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    services: Services = Depends(get_services),
):
    orders, total = await services.orders.list_orders(
        search, order_status, payment_status, from_date, to_date, sort, direction, page, page_size
    )
    return SuccessResponse(data=page_of(OrderResponse, orders, total, page, page_size))


@router.get("/orders/attention", response_model=SuccessResponse[List[OrderResponse]])
async def orders_needing_attention(services: Services = Depends(get_services)):
    orders = await services.orders.get_orders_needing_attention()
    return SuccessResponse(data=[OrderResponse.model_validate(o) for o in orders])


@router.get("/orders/metrics", response_model=SuccessResponse[OrderMetrics])
async def order_metrics(from_date: datetime, to_date: datetime, services: Services = Depends(get_services)):
    return SuccessResponse(data=await services.orders.get_metrics(from_date, to_date))


@router.get("/orders/by-number/{order_number}", response_model=SuccessResponse[OrderResponse])
async def order_by_number(order_number: str, services: Services = Depends(get_services)):
    return SuccessResponse(data=OrderResponse.model_validate(await services.orders.get_order_by_number(order_number)))


@router.get("/orders/{order_id}", response_model=SuccessResponse[OrderResponse])
async def get_order(order_id: int, services: Services = Depends(get_services)):
    return SuccessResponse(data=OrderResponse.model_validate(await services.orders.get_order(order_id)))


@router.put("/orders/{order_id}/status", response_model=SuccessResponse[OrderResponse])
async def update_order_status(order_id: int, body: OrderStatusUpdate, services: Services = Depends(get_services)):
    order = await services.orders.update_status(order_id, body.status, body.tracking_number)
    return SuccessResponse(data=OrderResponse.model_validate(order), message=f"Order status updated to {body.status.value}")


@router.post("/orders/{order_id}/cancel", response_model=SuccessResponse[OrderResponse])
async def cancel_order(order_id: int, body: OrderCancel, services: Services = Depends(get_services)):
    order = await services.orders.cancel_order(order_id, body.reason)
    return SuccessResponse(data=OrderResponse.model_validate(order), message="Order cancelled")


@router.post("/orders/{order_id}/refund", response_model=SuccessResponse[OrderResponse])
async def refund_order(order_id: int, body: RefundRequest, services: Services = Depends(get_services)):
    order = await services.orders.refund_order(order_id, body.amount, body.reason)
    return SuccessResponse(data=OrderResponse.model_validate(order), message="Refund recorded")


# --- Payments ---
@router.get("/payments", response_model=SuccessResponse[Page[PaymentResponse]])
async def list_payments(
    search: Optional[str] = None,
    payment_status: Optional[PaymentStatus] = Query(None, alias="status"),
    method: Optional[PaymentMethod] = None,
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
    sort: PaymentSort = PaymentSort.PAYMENT_DATE,
    direction: SortDirection = SortDirection.DESC,
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    services: Services = Depends(get_services),
):
    payments, total = await services.payments.list_payments(
        search, payment_status, method, from_date, to_date, sort, direction, page, page_size
    )
    return SuccessResponse(data=page_of(PaymentResponse, payments, total, page, page_size))


@router.get("/payments/pending", response_model=SuccessResponse[List[PaymentResponse]])
async def pending_payments(services: Services = Depends(get_services)):
    return SuccessResponse(data=[PaymentResponse.model_validate(p) for p in await services.payments.get_pending()])


@router.get("/payments/failed", response_model=SuccessResponse[List[PaymentResponse]])
async def failed_payments(services: Services = Depends(get_services)):
    return SuccessResponse(data=[PaymentResponse.model_validate(p) for p in await services.payments.get_failed()])


@router.get("/payments/{payment_id}", response_model=SuccessResponse[PaymentResponse])
async def get_payment(payment_id: int, services: Services = Depends(get_services)):
    return SuccessResponse(data=PaymentResponse.model_validate(await services.payments.get_payment(payment_id)))


@router.put("/payments/{payment_id}/status", response_model=SuccessResponse[PaymentResponse])
async def update_payment_status(payment_id: int, body: PaymentStatusUpdate, services: Services = Depends(get_services)):
    payment = await services.payments.change_status(payment_id, body.status, body.reason)
    return SuccessResponse(data=PaymentResponse.model_validate(payment))


@router.post("/payments/{payment_id}/refund", response_model=SuccessResponse[PaymentResponse])
async def refund_payment(payment_id: int, body: RefundRequest, services: Services = Depends(get_services)):
    payment = await services.payments.refund(payment_id, body.amount, body.reason)
    return SuccessResponse(data=PaymentResponse.model_validate(payment), message="Payment refunded")


# --- Blog ---
@router.get("/blog", response_model=SuccessResponse[Page[BlogPostResponse]])
async def list_posts(
    search: Optional[str] = None,
    category: Optional[str] = None,
    author: Optional[str] = None,
    tag: Optional[str] = None,
    published: Optional[bool] = None,
    featured: Optional[bool] = None,
    lifecycle: Optional[Lifecycle] = None,
    sort: BlogPostSort = BlogPostSort.PUBLISHED,
    direction: SortDirection = SortDirection.DESC,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    services: Services = Depends(get_services),
):
    posts, total = await services.blog.list_posts(
        search, category, author, tag, published, featured, lifecycle, sort, direction, page, page_size
    )
    return SuccessResponse(data=page_of(BlogPostResponse, posts, total, page, page_size))


@router.post("/blog", response_model=SuccessResponse[BlogPostResponse], status_code=status.HTTP_201_CREATED)
async def create_post(post: BlogPostCreate, services: Services = Depends(get_services)):
    created = await services.blog.create_post(post)
    return SuccessResponse(data=BlogPostResponse.model_validate(created), message="Post created")


@router.get("/blog/{post_id}", response_model=SuccessResponse[BlogPostResponse])
async def get_post(post_id: int, services: Services = Depends(get_services)):
    return SuccessResponse(data=BlogPostResponse.model_validate(await services.blog.get_post(post_id)))


@router.put("/blog/{post_id}", response_model=SuccessResponse[BlogPostResponse])
async def update_post(post_id: int, post: BlogPostUpdate, services: Services = Depends(get_services)):
    updated = await services.blog.update_post(post_id, post)
    return SuccessResponse(data=BlogPostResponse.model_validate(updated), message="Post updated")


@router.post("/blog/{post_id}/toggle", response_model=SuccessResponse[BlogPostResponse])
async def toggle_post(post_id: int, services: Services = Depends(get_services)):
    return SuccessResponse(data=BlogPostResponse.model_validate(await services.blog.toggle_status(post_id)))


@router.post("/blog/{post_id}/publish", response_model=SuccessResponse[BlogPostResponse])
async def toggle_published(post_id: int, services: Services = Depends(get_services)):
    return SuccessResponse(data=BlogPostResponse.model_validate(await services.blog.toggle_published(post_id)))


@router.post("/blog/{post_id}/feature", response_model=SuccessResponse[BlogPostResponse])
async def toggle_featured(post_id: int, services: Services = Depends(get_services)):
    return SuccessResponse(data=BlogPostResponse.model_validate(await services.blog.toggle_featured(post_id)))


@router.post("/blog/{post_id}/restore", response_model=SuccessResponse[BlogPostResponse])
async def restore_post(post_id: int, services: Services = Depends(get_services)):
    return SuccessResponse(data=BlogPostResponse.model_validate(await services.blog.restore_post(post_id)))


@router.delete("/blog/{post_id}", response_model=SuccessResponse[BlogPostResponse])
async def delete_post(post_id: int, services: Services = Depends(get_services)):
    return SuccessResponse(data=BlogPostResponse.model_validate(await services.blog.delete_post(post_id)))


@router.delete("/blog/{post_id}/permanent", response_model=SuccessResponse[dict])
async def hard_delete_post(post_id: int, services: Services = Depends(get_services)):
    await services.blog.hard_delete_post(post_id)
    return SuccessResponse(data={"id": post_id}, message="Post permanently deleted")


# --- FAQ ---
@router.get("/faq", response_model=SuccessResponse[Page[FAQResponse]])
async def list_faqs(
    search: Optional[str] = None,
    category_id: Optional[int] = None,
    lifecycle: Optional[Lifecycle] = None,
    sort: FAQSort = FAQSort.DISPLAY_ORDER,
    direction: SortDirection = SortDirection.ASC,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    services: Services = Depends(get_services),
):
    faqs, total = await services.faq.list_faqs(search, category_id, lifecycle, sort, direction, page, page_size)
    return SuccessResponse(data=page_of(FAQResponse, faqs, total, page, page_size))


@router.post("/faq", response_model=SuccessResponse[FAQResponse], status_code=status.HTTP_201_CREATED)
async def create_faq(faq: FAQCreate, services: Services = Depends(get_services)):
    return SuccessResponse(data=FAQResponse.model_validate(await services.faq.create_faq(faq)), message="FAQ created")


@router.put("/faq/reorder", response_model=SuccessResponse[dict])
async def reorder_faqs(body: ReorderRequest, services: Services = Depends(get_services)):
    return SuccessResponse(data={"updated": await services.faq.reorder(body.orders)})


@router.get("/faq/categories", response_model=SuccessResponse[List[FAQCategoryResponse]])
async def list_faq_categories(services: Services = Depends(get_services)):
    rows = await services.faq.list_categories(include_inactive=True)
    return SuccessResponse(data=[
        FAQCategoryResponse.model_validate(category).model_copy(update={"faq_count": count})
        for category, count in rows
    ])


@router.post("/faq/categories", response_model=SuccessResponse[FAQCategoryResponse], status_code=status.HTTP_201_CREATED)
async def create_faq_category(category: FAQCategoryCreate, services: Services = Depends(get_services)):
    created = await services.faq.create_category(category)
    return SuccessResponse(data=FAQCategoryResponse.model_validate(created), message="FAQ category created")


@router.put("/faq/categories/reorder", response_model=SuccessResponse[dict])
async def reorder_faq_categories(body: ReorderRequest, services: Services = Depends(get_services)):
    return SuccessResponse(data={"updated": await services.faq.reorder_categories(body.orders)})


@router.get("/faq/categories/{category_id}", response_model=SuccessResponse[FAQCategoryResponse])
async def get_faq_category(category_id: int, services: Services = Depends(get_services)):
    return SuccessResponse(data=FAQCategoryResponse.model_validate(await services.faq.get_category(category_id)))


@router.put("/faq/categories/{category_id}", response_model=SuccessResponse[FAQCategoryResponse])
async def update_faq_category(category_id: int, category: FAQCategoryUpdate, services: Services = Depends(get_services)):
    updated = await services.faq.update_category(category_id, category)
    return SuccessResponse(data=FAQCategoryResponse.model_validate(updated))


@router.post("/faq/categories/{category_id}/toggle", response_model=SuccessResponse[FAQCategoryResponse])
async def toggle_faq_category(category_id: int, services: Services = Depends(get_services)):
    return SuccessResponse(data=FAQCategoryResponse.model_validate(await services.faq.toggle_category(category_id)))


@router.delete("/faq/categories/{category_id}", response_model=SuccessResponse[FAQCategoryResponse])
async def delete_faq_category(category_id: int, services: Services = Depends(get_services)):
    return SuccessResponse(data=FAQCategoryResponse.model_validate(await services.faq.delete_category(category_id)))


@router.delete("/faq/categories/{category_id}/permanent", response_model=SuccessResponse[dict])
async def hard_delete_faq_category(category_id: int, services: Services = Depends(get_services)):
    await services.faq.hard_delete_category(category_id)
    return SuccessResponse(data={"id": category_id}, message="FAQ category permanently deleted")


@router.get("/faq/{faq_id}", response_model=SuccessResponse[FAQResponse])
async def get_faq(faq_id: int, services: Services = Depends(get_services)):
    return SuccessResponse(data=FAQResponse.model_validate(await services.faq.get_faq(faq_id)))


@router.put("/faq/{faq_id}", response_model=SuccessResponse[FAQResponse])
async def update_faq(faq_id: int, faq: FAQUpdate, services: Services = Depends(get_services)):
    return SuccessResponse(data=FAQResponse.model_validate(await services.faq.update_faq(faq_id, faq)))


@router.put("/faq/{faq_id}/order", response_model=SuccessResponse[FAQResponse])
async def update_faq_order(faq_id: int, body: DisplayOrderUpdate, services: Services = Depends(get_services)):
    faq = await services.faq.update_display_order(faq_id, body.display_order)
    return SuccessResponse(data=FAQResponse.model_validate(faq))


@router.post("/faq/{faq_id}/toggle", response_model=SuccessResponse[FAQResponse])
async def toggle_faq(faq_id: int, services: Services = Depends(get_services)):
    return SuccessResponse(data=FAQResponse.model_validate(await services.faq.toggle_faq(faq_id)))


@router.delete("/faq/{faq_id}", response_model=SuccessResponse[FAQResponse])
async def delete_faq(faq_id: int, services: Services = Depends(get_services)):
    return SuccessResponse(data=FAQResponse.model_validate(await services.faq.delete_faq(faq_id)))


@router.delete("/faq/{faq_id}/permanent", response_model=SuccessResponse[dict])
async def hard_delete_faq(faq_id: int, services: Services = Depends(get_services)):
    await services.faq.hard_delete_faq(faq_id)
    return SuccessResponse(data={"id": faq_id}, message="FAQ permanently deleted")


# --- Sliders ---
@router.get("/sliders", response_model=SuccessResponse[Page[SliderResponse]])
async def list_sliders(
    search: Optional[str] = None,
    lifecycle: Optional[Lifecycle] = None,
    sort: SliderSort = SliderSort.DISPLAY_ORDER,
    direction: SortDirection = SortDirection.ASC,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    services: Services = Depends(get_services),
):
    sliders, total = await services.sliders.list_sliders(search, lifecycle, sort, direction, page, page_size)
    return SuccessResponse(data=page_of(SliderResponse, sliders, total, page, page_size))


@router.post("/sliders", response_model=SuccessResponse[SliderResponse], status_code=status.HTTP_201_CREATED)
async def create_slider(slider: SliderCreate, services: Services = Depends(get_services)):
    created = await services.sliders.create_slider(slider)
    return SuccessResponse(data=SliderResponse.model_validate(created), message="Slider created")


@router.put("/sliders/reorder", response_model=SuccessResponse[dict])
async def reorder_sliders(body: ReorderRequest, services: Services = Depends(get_services)):
    return SuccessResponse(data={"updated": await services.sliders.reorder(body.orders)})


@router.get("/sliders/{slider_id}", response_model=SuccessResponse[SliderResponse])
async def get_slider(slider_id: int, services: Services = Depends(get_services)):
    return SuccessResponse(data=SliderResponse.model_validate(await services.sliders.get_slider(slider_id)))


@router.put("/sliders/{slider_id}", response_model=SuccessResponse[SliderResponse])
async def update_slider(slider_id: int, slider: SliderUpdate, services: Services = Depends(get_services)):
    return SuccessResponse(data=SliderResponse.model_validate(await services.sliders.update_slider(slider_id, slider)))


@router.put("/sliders/{slider_id}/order", response_model=SuccessResponse[SliderResponse])
async def update_slider_order(slider_id: int, body: DisplayOrderUpdate, services: Services = Depends(get_services)):
    slider = await services.sliders.update_display_order(slider_id, body.display_order)
    return SuccessResponse(data=SliderResponse.model_validate(slider))


@router.post("/sliders/{slider_id}/toggle", response_model=SuccessResponse[SliderResponse])
async def toggle_slider(slider_id: int, services: Services = Depends(get_services)):
    return SuccessResponse(data=SliderResponse.model_validate(await services.sliders.toggle_slider(slider_id)))


@router.delete("/sliders/{slider_id}", response_model=SuccessResponse[SliderResponse])
async def delete_slider(slider_id: int, services: Services = Depends(get_services)):
    return SuccessResponse(data=SliderResponse.model_validate(await services.sliders.delete_slider(slider_id)))


@router.delete("/sliders/{slider_id}/permanent", response_model=SuccessResponse[dict])
async def hard_delete_slider(slider_id: int, services: Services = Depends(get_services)):
    await services.sliders.hard_delete_slider(slider_id)
    return SuccessResponse(data={"id": slider_id}, message="Slider permanently deleted")


# --- Contact messages ---
@router.get("/contact", response_model=SuccessResponse[Page[ContactMessageResponse]])
async def list_messages(
    search: Optional[str] = None,
    is_read: Optional[bool] = None,
    is_replied: Optional[bool] = None,
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
    include_deleted: bool = False,
    sort: ContactMessageSort = ContactMessageSort.CREATED,
    direction: SortDirection = SortDirection.DESC,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    services: Services = Depends(get_services),
):
    messages, total = await services.contact.list_messages(
        search, is_read, is_replied, from_date, to_date, include_deleted, sort, direction, page, page_size
    )
    return SuccessResponse(data=page_of(ContactMessageResponse, messages, total, page, page_size))


@router.post("/contact/bulk/read", response_model=SuccessResponse[dict])
async def bulk_read(body: BulkIds, services: Services = Depends(get_services)):
    return SuccessResponse(data={"updated": await services.contact.bulk_mark(body.ids, True)})


@router.post("/contact/bulk/unread", response_model=SuccessResponse[dict])
async def bulk_unread(body: BulkIds, services: Services = Depends(get_services)):
    return SuccessResponse(data={"updated": await services.contact.bulk_mark(body.ids, False)})


@router.post("/contact/bulk/delete", response_model=SuccessResponse[dict])
async def bulk_delete(body: BulkIds, services: Services = Depends(get_services)):
    return SuccessResponse(data={"deleted": await services.contact.bulk_delete(body.ids)})


@router.post("/contact/bulk/permanent-delete", response_model=SuccessResponse[dict])
async def bulk_hard_delete(body: BulkIds, services: Services = Depends(get_services)):
    return SuccessResponse(data={"deleted": await services.contact.bulk_hard_delete(body.ids)})


@router.get("/contact/{message_id}", response_model=SuccessResponse[ContactMessageResponse])
async def get_message(message_id: int, services: Services = Depends(get_services)):
    return SuccessResponse(data=ContactMessageResponse.model_validate(await services.contact.get_message(message_id)))


@router.post("/contact/{message_id}/read", response_model=SuccessResponse[ContactMessageResponse])
async def mark_read(message_id: int, services: Services = Depends(get_services)):
    return SuccessResponse(data=ContactMessageResponse.model_validate(await services.contact.mark_read(message_id)))


@router.post("/contact/{message_id}/unread", response_model=SuccessResponse[ContactMessageResponse])
async def mark_unread(message_id: int, services: Services = Depends(get_services)):
    return SuccessResponse(data=ContactMessageResponse.model_validate(await services.contact.mark_unread(message_id)))


@router.post("/contact/{message_id}/toggle-read", response_model=SuccessResponse[ContactMessageResponse])
async def toggle_read(message_id: int, services: Services = Depends(get_services)):
    return SuccessResponse(data=ContactMessageResponse.model_validate(await services.contact.toggle_read(message_id)))


@router.post("/contact/{message_id}/reply", response_model=SuccessResponse[ContactMessageResponse])
async def reply(
    message_id: int,
    body: ContactReply,
    payload: dict = Depends(admin_user),
    services: Services = Depends(get_services),
):
    message = await services.contact.reply(message_id, body.reply, user_id_of(payload))
    return SuccessResponse(data=ContactMessageResponse.model_validate(message), message="Reply saved")


@router.post("/contact/{message_id}/restore", response_model=SuccessResponse[ContactMessageResponse])
async def restore_message(message_id: int, services: Services = Depends(get_services)):
    return SuccessResponse(data=ContactMessageResponse.model_validate(await services.contact.restore_message(message_id)))


@router.delete("/contact/{message_id}", response_model=SuccessResponse[ContactMessageResponse])
async def delete_message(message_id: int, services: Services = Depends(get_services)):
    return SuccessResponse(data=ContactMessageResponse.model_validate(await services.contact.delete_message(message_id)))


@router.delete("/contact/{message_id}/permanent", response_model=SuccessResponse[dict])
async def hard_delete_message(message_id: int, services: Services = Depends(get_services)):
    await services.contact.hard_delete(message_id)
    return SuccessResponse(data={"id": message_id}, message="Message permanently deleted")
