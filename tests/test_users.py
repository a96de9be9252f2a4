import pytest
from pydantic import ValidationError as SchemaValidationError

from conftest import PASSWORD
from shared.utils import ConflictError, StateError, UnauthorizedException, ValidationError, verify_token
from storefront.cart import Cart
from storefront.models import Lifecycle, PaymentMethod, UserRole
from storefront.schemas import AddressCreate, ProfileUpdate, UserRegister
from storefront.services.addresses import AddressService
from storefront.services.orders import OrderService
from storefront.services.users import UserService

ADDRESS = AddressCreate(
    first_name="Alice", last_name="Smith", address_line="1 Main St",
    city="Springfield", state="IL", country="US", zip_code="62701",
)


@pytest.fixture
def users(session_factory):
    return UserService(session_factory)


def registration(username="carol", email="carol@example.com"):
    return UserRegister(username=username, email=email, password=PASSWORD, first_name="Carol")


async def test_register_creates_customer(users):
    user = await users.register(registration(email="Carol@Example.com"))

    assert user.role == UserRole.CUSTOMER
    assert user.email == "carol@example.com"
    assert user.password_hash != PASSWORD


async def test_username_and_email_are_unique_ignoring_case(users):
    await users.register(registration())

    with pytest.raises(ConflictError):
        await users.register(registration(username="CAROL", email="other@example.com"))
    with pytest.raises(ConflictError):
        await users.register(registration(username="carol2", email="CAROL@example.com"))


def test_weak_password_is_rejected_by_schema():
    with pytest.raises(SchemaValidationError):
        UserRegister(username="dave", email="dave@example.com", password="alllowercase1")


async def test_authenticate_by_username_or_email(users, customer):
    user, tokens = await users.authenticate("ALICE", PASSWORD)
    again, _ = await users.authenticate("alice@example.com", PASSWORD)

    assert user.id == customer.id
    assert again.login_count == 2
    assert again.last_login_date is not None
    claims = verify_token(tokens.access_token)
    assert claims["sub"] == str(customer.id)
    assert claims["role"] == "customer"


@pytest.mark.parametrize("login, password", [
    ("alice", "Wrong123!"),
    ("nobody", PASSWORD),
])
async def test_bad_credentials_fail_alike(users, customer, login, password):
    with pytest.raises(UnauthorizedException) as exc:
        await users.authenticate(login, password)
    assert exc.value.detail == "Incorrect username/email or password"


async def test_disabled_account_cannot_log_in(users, make_user):
    await make_user("eve", lifecycle=Lifecycle.DISABLED)

    with pytest.raises(UnauthorizedException):
        await users.authenticate("eve", PASSWORD)


async def test_change_password_checks_current(users, customer):
    with pytest.raises(ValidationError):
        await users.change_password(customer.id, "Wrong123!", "NewSecret1!")

    await users.change_password(customer.id, PASSWORD, "NewSecret1!")
    user, _ = await users.authenticate("alice", "NewSecret1!")
    assert user.id == customer.id


async def test_profile_update_sanitizes(users, customer):
    updated = await users.update_profile(customer.id, ProfileUpdate(first_name="<b>Alice</b>"))

    assert "<" not in updated.first_name


async def test_deleted_user_stays_deleted(users, customer):
    await users.delete_user(customer.id)

    with pytest.raises(StateError):
        await users.toggle_status(customer.id)


async def test_hard_delete_only_without_orders(session_factory, users, customer, make_user, make_product):
    quiet = await make_user("quiet")
    await AddressService(session_factory).add_address(quiet.id, ADDRESS)
    product = await make_product()
    await OrderService(session_factory).create_order(customer.id, Cart().add(product.id), PaymentMethod.PAYPAL, new_address=ADDRESS)

    busy = await users.check_deletion_eligibility(customer.id)
    assert not busy.can_be_hard_deleted
    assert busy.order_count == 1
    with pytest.raises(StateError):
        await users.hard_delete_user(customer.id)

    assert (await users.check_deletion_eligibility(quiet.id)).can_be_hard_deleted
    await users.hard_delete_user(quiet.id)
    assert (await users.get_statistics()).total_users == 1


async def test_activity_summary_skips_cancelled_orders(session_factory, users, customer, make_product):
    orders = OrderService(session_factory)
    product = await make_product(price="20.00")
    kept, _ = await orders.create_order(customer.id, Cart().add(product.id), PaymentMethod.PAYPAL, new_address=ADDRESS)
    dropped, _ = await orders.create_order(customer.id, Cart().add(product.id), PaymentMethod.PAYPAL, new_address=ADDRESS)
    await orders.cancel_order(dropped.id, "Duplicate")

    summary = await users.get_activity_summary(customer.id)

    assert summary.order_count == 1
    assert summary.total_spent == kept.total_amount
    assert summary.address_count == 2
