from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator
from typing import Optional, List, Dict
from decimal import Decimal
from datetime import datetime
from shared.security_config import sanitize_input, validate_password_strength
from storefront.models import Lifecycle, OrderStatus, PaymentMethod, PaymentStatus, UserRole
from storefront.pricing import CheckoutTotals


def _strong_password(v: str) -> str:
    check = validate_password_strength(v)
    if not check.is_valid:
        raise ValueError("; ".join(check.errors))
    return v


class ORMModel(BaseModel):
    class Config:
        from_attributes = True


# --- Users ---
class UserRegister(BaseModel):
    username: str = Field(..., min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_.-]+$")
    email: EmailStr
    password: str = Field(..., min_length=8)
    first_name: Optional[str] = Field(None, max_length=50)
    last_name: Optional[str] = Field(None, max_length=50)
    phone_number: Optional[str] = Field(None, max_length=20)

    @field_validator('password')
    def password_complexity(cls, v):
        return _strong_password(v)

    @field_validator('first_name', 'last_name', 'phone_number')
    def sanitize_names(cls, v):
        return sanitize_input(v)

class UserCreate(UserRegister):
    role: UserRole = UserRole.CUSTOMER

class UserLogin(BaseModel):
    login: str = Field(..., description="Username or email")
    password: str

class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"

class RefreshTokenRequest(BaseModel):
    refresh_token: str

class ProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(None, max_length=50)
    last_name: Optional[str] = Field(None, max_length=50)
    phone_number: Optional[str] = Field(None, max_length=20)

    @field_validator('first_name', 'last_name', 'phone_number')
    def sanitize_fields(cls, v):
        return sanitize_input(v)

class UserUpdate(ProfileUpdate):
    username: Optional[str] = Field(None, min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_.-]+$")
    email: Optional[EmailStr] = None
    role: Optional[UserRole] = None

class PasswordChange(BaseModel):
    current_password: str
    new_password: str

    @field_validator('new_password')
    def password_complexity(cls, v):
        return _strong_password(v)

class PasswordReset(BaseModel):
    new_password: str

class RoleChange(BaseModel):
    role: UserRole

class UserResponse(ORMModel):
    id: int
    username: str
    email: str
    role: UserRole
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone_number: Optional[str] = None
    lifecycle: Lifecycle
    created_date: datetime
    last_login_date: Optional[datetime] = None
    login_count: int = 0

class DeletionEligibility(BaseModel):
    user_id: int
    can_be_deleted: bool
    can_be_hard_deleted: bool
    reason: str
    order_count: int = 0
    total_spent: Decimal = Decimal("0.00")
    dependencies: List[str] = []

class UserStatistics(BaseModel):
    total_users: int
    active_users: int
    disabled_users: int
    deleted_users: int
    admin_users: int
    customer_users: int
    new_users_this_month: int

class UserActivitySummary(BaseModel):
    user_id: int
    order_count: int
    total_spent: Decimal
    last_order_date: Optional[datetime] = None
    address_count: int
    last_login_date: Optional[datetime] = None
    login_count: int


# --- Addresses ---
class AddressCreate(BaseModel):
    first_name: str = Field(..., max_length=50)
    last_name: str = Field(..., max_length=50)
    address_line: str = Field(..., max_length=200)
    address_line2: Optional[str] = Field(None, max_length=200)
    city: str = Field(..., max_length=100)
    state: str = Field(..., max_length=100)
    country: str = Field(..., max_length=100)
    zip_code: str = Field(..., max_length=20)
    phone_number: Optional[str] = Field(None, max_length=20)
    is_default: bool = False

    @field_validator('first_name', 'last_name', 'address_line', 'address_line2', 'city', 'state', 'country', 'zip_code', 'phone_number')
    def sanitize_fields(cls, v):
        return sanitize_input(v)

class AddressUpdate(BaseModel):
    first_name: Optional[str] = Field(None, max_length=50)
    last_name: Optional[str] = Field(None, max_length=50)
    address_line: Optional[str] = Field(None, max_length=200)
    address_line2: Optional[str] = Field(None, max_length=200)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    country: Optional[str] = Field(None, max_length=100)
    zip_code: Optional[str] = Field(None, max_length=20)
    phone_number: Optional[str] = Field(None, max_length=20)
    is_default: Optional[bool] = None

    @field_validator('first_name', 'last_name', 'address_line', 'address_line2', 'city', 'state', 'country', 'zip_code', 'phone_number')
    def sanitize_fields(cls, v):
        return sanitize_input(v)

class AddressResponse(ORMModel):
    id: int
    user_id: int
    first_name: str
    last_name: str
    address_line: str
    address_line2: Optional[str] = None
    city: str
    state: str
    country: str
    zip_code: str
    phone_number: Optional[str] = None
    is_default: bool
    created_date: datetime


# --- Catalog ---
class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    image_url: Optional[str] = Field(None, max_length=255)
    display_order: int = Field(0, ge=0)

class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    image_url: Optional[str] = Field(None, max_length=255)
    display_order: Optional[int] = Field(None, ge=0)

class CategoryResponse(ORMModel):
    id: int
    name: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    display_order: int
    lifecycle: Lifecycle
    product_count: Optional[int] = None

class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    price: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    discount_price: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    stock_quantity: int = Field(0, ge=0)
    category_id: int
    image_url: Optional[str] = Field(None, max_length=255)
    sku: Optional[str] = Field(None, max_length=100)
    brand: Optional[str] = Field(None, max_length=100)
    is_featured: bool = False

class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    price: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    discount_price: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    stock_quantity: Optional[int] = Field(None, ge=0)
    category_id: Optional[int] = None
    image_url: Optional[str] = Field(None, max_length=255)
    sku: Optional[str] = Field(None, max_length=100)
    brand: Optional[str] = Field(None, max_length=100)
    is_featured: Optional[bool] = None

class StockUpdate(BaseModel):
    stock_quantity: int = Field(..., ge=0)

class ProductResponse(ORMModel):
    id: int
    name: str
    description: Optional[str] = None
    price: Decimal
    discount_price: Optional[Decimal] = None
    effective_price: Decimal
    stock_quantity: int
    category_id: int
    image_url: Optional[str] = None
    sku: Optional[str] = None
    brand: Optional[str] = None
    is_featured: bool
    view_count: int
    lifecycle: Lifecycle
    created_date: datetime


# --- Cart / Checkout ---
class CartItemAdd(BaseModel):
    product_id: int
    quantity: int = Field(1, gt=0)

class CartItemUpdate(BaseModel):
    quantity: int = Field(..., ge=0)

class CartResponse(CheckoutTotals):
    item_count: int = 0

class CheckoutRequest(BaseModel):
    address_id: Optional[int] = None
    new_address: Optional[AddressCreate] = None
    payment_method: PaymentMethod
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator('notes')
    def sanitize_notes(cls, v):
        return sanitize_input(v)

    @model_validator(mode="after")
    def one_address(self):
        if (self.address_id is None) == (self.new_address is None):
            raise ValueError("Provide exactly one of address_id or new_address")
        return self


# --- Orders & Payments ---
class OrderItemResponse(ORMModel):
    id: int
    product_id: int
    product_name: str
    product_sku: Optional[str] = None
    quantity: int
    unit_price: Decimal
    line_total: Decimal

class PaymentResponse(ORMModel):
    id: int
    order_id: int
    method: PaymentMethod
    status: PaymentStatus
    amount: Decimal
    refunded_amount: Optional[Decimal] = None
    payment_date: datetime
    transaction_id: Optional[str] = None
    failure_reason: Optional[str] = None
    processed_date: Optional[datetime] = None

class OrderResponse(ORMModel):
    id: int
    order_number: str
    user_id: int
    order_date: datetime
    status: OrderStatus
    sub_total: Decimal
    shipping_cost: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    shipping_address_id: int
    notes: Optional[str] = None
    tracking_number: Optional[str] = None
    shipped_date: Optional[datetime] = None
    delivered_date: Optional[datetime] = None
    items: List[OrderItemResponse]
    payment: Optional[PaymentResponse] = None

class CheckoutResponse(BaseModel):
    order: OrderResponse
    excluded: List[dict] = []

class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    tracking_number: Optional[str] = Field(None, max_length=100)

    @field_validator('tracking_number')
    def sanitize_tracking(cls, v):
        return sanitize_input(v)

class OrderCancel(BaseModel):
    reason: str = Field("Cancelled", max_length=500)

    @field_validator('reason')
    def sanitize_reason(cls, v):
        return sanitize_input(v)

class RefundRequest(BaseModel):
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    reason: str = Field(..., min_length=1, max_length=400)

    @field_validator('reason')
    def sanitize_reason(cls, v):
        return sanitize_input(v)

class OrderStatistics(BaseModel):
    total_orders: int
    counts_by_status: Dict[str, int]
    total_revenue: Decimal
    today_orders: int
    today_revenue: Decimal

class OrderMetrics(BaseModel):
    order_count: int
    total_revenue: Decimal
    average_order_value: Decimal
    orders_by_status: Dict[str, int]
    orders_by_payment_status: Dict[str, int]

class PaymentStatusUpdate(BaseModel):
    status: PaymentStatus
    reason: Optional[str] = Field(None, max_length=500)

class PaymentStatistics(BaseModel):
    total_payments: int
    total_amount: Decimal
    completed_amount: Decimal
    refunded_amount: Decimal
    counts_by_status: Dict[str, int]
    amounts_by_method: Dict[str, Decimal]
    success_rate: float


# --- Blog ---
class BlogPostCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    author: str = Field(..., min_length=1, max_length=100)
    image_url: Optional[str] = Field(None, max_length=255)
    summary: Optional[str] = Field(None, max_length=500)
    slug: Optional[str] = Field(None, max_length=200)
    meta_description: Optional[str] = Field(None, max_length=160)
    meta_keywords: Optional[str] = Field(None, max_length=200)
    is_published: bool = True
    is_featured: bool = False
    category: Optional[str] = Field(None, max_length=100)
    tags: Optional[str] = Field(None, max_length=500)

class BlogPostUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    content: Optional[str] = Field(None, min_length=1)
    author: Optional[str] = Field(None, min_length=1, max_length=100)
    image_url: Optional[str] = Field(None, max_length=255)
    summary: Optional[str] = Field(None, max_length=500)
    slug: Optional[str] = Field(None, max_length=200)
    meta_description: Optional[str] = Field(None, max_length=160)
    meta_keywords: Optional[str] = Field(None, max_length=200)
    is_published: Optional[bool] = None
    is_featured: Optional[bool] = None
    category: Optional[str] = Field(None, max_length=100)
    tags: Optional[str] = Field(None, max_length=500)

class BlogPostResponse(ORMModel):
    id: int
    title: str
    slug: Optional[str] = None
    content: str
    author: str
    image_url: Optional[str] = None
    summary: Optional[str] = None
    meta_description: Optional[str] = None
    meta_keywords: Optional[str] = None
    is_published: bool
    is_featured: bool
    published_date: Optional[datetime] = None
    view_count: int
    category: Optional[str] = None
    tags: Optional[str] = None
    lifecycle: Lifecycle
    created_date: datetime

class BlogStatistics(BaseModel):
    total_posts: int
    published_posts: int
    draft_posts: int
    featured_posts: int
    total_views: int
    posts_this_month: int
    categories: int


# --- FAQ ---
class FAQCategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    icon: Optional[str] = Field(None, max_length=100)
    display_order: int = Field(0, ge=0)

class FAQCategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    icon: Optional[str] = Field(None, max_length=100)
    display_order: Optional[int] = Field(None, ge=0)

class FAQCategoryResponse(ORMModel):
    id: int
    name: str
    description: Optional[str] = None
    icon: Optional[str] = None
    display_order: int
    lifecycle: Lifecycle
    faq_count: Optional[int] = None

class FAQCreate(BaseModel):
    question: str = Field(..., min_length=1, max_length=500)
    answer: str = Field(..., min_length=1)
    category_id: Optional[int] = None
    display_order: int = Field(0, ge=0)
    tags: Optional[str] = Field(None, max_length=200)
    author: Optional[str] = Field(None, max_length=100)

class FAQUpdate(BaseModel):
    question: Optional[str] = Field(None, min_length=1, max_length=500)
    answer: Optional[str] = Field(None, min_length=1)
    category_id: Optional[int] = None
    display_order: Optional[int] = Field(None, ge=0)
    tags: Optional[str] = Field(None, max_length=200)
    author: Optional[str] = Field(None, max_length=100)

class FAQResponse(ORMModel):
    id: int
    question: str
    answer: str
    category_id: Optional[int] = None
    display_order: int
    view_count: int
    helpful_count: int
    not_helpful_count: int
    tags: Optional[str] = None
    author: Optional[str] = None
    lifecycle: Lifecycle
    created_date: datetime

class HelpfulnessVote(BaseModel):
    helpful: bool

class DisplayOrderUpdate(BaseModel):
    display_order: int = Field(..., ge=0)

class ReorderRequest(BaseModel):
    orders: Dict[int, int] = Field(..., min_length=1)

class FAQStatistics(BaseModel):
    total_faqs: int
    active_faqs: int
    total_categories: int
    active_categories: int
    total_views: int
    total_helpful: int
    total_not_helpful: int
    uncategorized_faqs: int


# --- Sliders ---
class SliderCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=500)
    image_url: str = Field(..., min_length=1, max_length=255)
    link: Optional[str] = Field(None, max_length=255)
    button_text: Optional[str] = Field(None, max_length=50)
    display_order: int = Field(0, ge=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

class SliderUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=500)
    image_url: Optional[str] = Field(None, min_length=1, max_length=255)
    link: Optional[str] = Field(None, max_length=255)
    button_text: Optional[str] = Field(None, max_length=50)
    display_order: Optional[int] = Field(None, ge=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

class SliderResponse(ORMModel):
    id: int
    title: str
    description: Optional[str] = None
    image_url: str
    link: Optional[str] = None
    button_text: Optional[str] = None
    display_order: int
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    lifecycle: Lifecycle
    created_date: datetime

class SliderStatistics(BaseModel):
    total_sliders: int
    active_sliders: int
    disabled_sliders: int
    scheduled_sliders: int
    expired_sliders: int


# --- Contact ---
class ContactMessageCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone_number: Optional[str] = Field(None, max_length=20)
    subject: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=1000)

    @field_validator('name', 'phone_number', 'subject', 'message')
    def sanitize_fields(cls, v):
        return sanitize_input(v)

class ContactReply(BaseModel):
    reply: str = Field(..., min_length=1, max_length=1000)

    @field_validator('reply')
    def sanitize_reply(cls, v):
        return sanitize_input(v)

class BulkIds(BaseModel):
    ids: List[int] = Field(..., min_length=1)

class ContactMessageResponse(ORMModel):
    id: int
    name: str
    email: str
    phone_number: Optional[str] = None
    subject: str
    message: str
    is_read: bool
    is_replied: bool
    admin_reply: Optional[str] = None
    replied_date: Optional[datetime] = None
    lifecycle: Lifecycle
    created_date: datetime

class ContactStatistics(BaseModel):
    total_messages: int
    unread_messages: int
    replied_messages: int
    pending_replies: int
    today_messages: int
    deleted_messages: int


# --- Dashboard ---
class DashboardResponse(BaseModel):
    orders: OrderStatistics
    payments: PaymentStatistics
    users: UserStatistics
    contact: ContactStatistics
    blog: BlogStatistics
    faq: FAQStatistics
    sliders: SliderStatistics
    active_products: int
    low_stock_products: List[ProductResponse]
    recent_orders: List[OrderResponse]
