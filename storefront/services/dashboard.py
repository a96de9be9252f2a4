from sqlalchemy.ext.asyncio import async_sessionmaker

from shared.utils import Settings, settings
from storefront.schemas import DashboardResponse, OrderResponse, ProductResponse
from storefront.services.blog import BlogPostService
from storefront.services.catalog import ProductService
from storefront.services.contact import ContactService
from storefront.services.faq import FAQService
from storefront.services.orders import OrderService
from storefront.services.payments import PaymentService
from storefront.services.sliders import SliderService
from storefront.services.users import UserService


class DashboardService:
    """Back-office landing page: one read model built from every service's statistics."""

    def __init__(self, session_factory: async_sessionmaker, config: Settings = settings):
        self.orders = OrderService(session_factory, config)
        self.payments = PaymentService(session_factory)
        self.users = UserService(session_factory)
        self.contact = ContactService(session_factory)
        self.blog = BlogPostService(session_factory)
        self.faq = FAQService(session_factory)
        self.sliders = SliderService(session_factory)
        self.products = ProductService(session_factory, config)

    async def get_dashboard(self, recent: int = 5) -> DashboardResponse:
        low_stock = await self.products.get_low_stock()
        recent_orders = await self.orders.get_recent_orders(recent)
        return DashboardResponse(
            orders=await self.orders.get_statistics(),
            payments=await self.payments.get_statistics(),
            users=await self.users.get_statistics(),
            contact=await self.contact.get_statistics(),
            blog=await self.blog.get_statistics(),
            faq=await self.faq.get_statistics(),
            sliders=await self.sliders.get_statistics(),
            active_products=await self.products.count_active(),
            low_stock_products=[ProductResponse.model_validate(p) for p in low_stock],
            recent_orders=[OrderResponse.model_validate(o) for o in recent_orders],
        )
