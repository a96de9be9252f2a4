from storefront.services.addresses import AddressService
from storefront.services.blog import BlogPostService
from storefront.services.catalog import CategoryService, ProductService
from storefront.services.checkout import CheckoutService
from storefront.services.contact import ContactService
from storefront.services.dashboard import DashboardService
from storefront.services.faq import FAQService
from storefront.services.orders import OrderService
from storefront.services.payments import PaymentService
from storefront.services.sliders import SliderService
from storefront.services.users import UserService

__all__ = [
    "AddressService",
    "BlogPostService",
    "CategoryService",
    "CheckoutService",
    "ContactService",
    "DashboardService",
    "FAQService",
    "OrderService",
    "PaymentService",
    "ProductService",
    "SliderService",
    "UserService",
]
