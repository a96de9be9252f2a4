from typing import Any, Iterable, Type

from fastapi import Depends, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import async_sessionmaker

from shared.utils import Page, Settings, require_admin, require_auth
from storefront.cart import Cart, CartTokenStore
from storefront.services import (
    AddressService, BlogPostService, CategoryService, CheckoutService, ContactService, DashboardService,
    FAQService, OrderService, PaymentService, ProductService, SliderService, UserService,
)


class Services:
    """Every service the routers use, sharing one session factory."""

    def __init__(self, session_factory: async_sessionmaker, config: Settings):
        self.users = UserService(session_factory)
        self.addresses = AddressService(session_factory)
        self.products = ProductService(session_factory, config)
        self.categories = CategoryService(session_factory)
        self.orders = OrderService(session_factory, config)
        self.checkout = CheckoutService(session_factory, self.orders, config)
        self.payments = PaymentService(session_factory)
        self.blog = BlogPostService(session_factory)
        self.faq = FAQService(session_factory)
        self.sliders = SliderService(session_factory)
        self.contact = ContactService(session_factory)
        self.dashboard = DashboardService(session_factory, config)


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_cart_store(request: Request) -> CartTokenStore:
    return request.app.state.cart_store


def read_cart(request: Request, store: CartTokenStore = Depends(get_cart_store)) -> Cart:
    return store.load(request.cookies.get(request.app.state.config.CART_COOKIE_NAME))


async def current_user(request: Request, payload: dict = Depends(require_auth)) -> dict:
    request.state.user_id = payload.get("sub")
    return payload


async def admin_user(request: Request, payload: dict = Depends(require_admin)) -> dict:
    request.state.user_id = payload.get("sub")
    return payload


def user_id_of(payload: dict) -> int:
    return int(payload["sub"])


def page_of(schema: Type[BaseModel], rows: Iterable[Any], total: int, page: int, page_size: int) -> Page:
    return Page[schema].build([schema.model_validate(row) for row in rows], total, page, page_size)
