import pytest

from shared.utils import StateError
from storefront.lifecycle import can_transition, ensure_editable, toggle, transition
from storefront.models import AppUser, ContactMessage, Lifecycle, Product


def product(lifecycle=Lifecycle.ACTIVE):
    return Product(id=1, name="Lamp", lifecycle=lifecycle)


def test_toggle_flips_active_and_disabled():
    item = product()

    assert toggle(item).lifecycle == Lifecycle.DISABLED
    assert toggle(item).lifecycle == Lifecycle.ACTIVE
    assert item.updated_date is not None


def test_toggle_refuses_deleted():
    with pytest.raises(StateError):
        toggle(product(Lifecycle.DELETED))


def test_deleted_content_can_be_restored():
    item = transition(product(), Lifecycle.DELETED)

    assert transition(item, Lifecycle.ACTIVE).lifecycle == Lifecycle.ACTIVE


def test_deleted_user_is_terminal():
    user = AppUser(id=7, username="gone", email="gone@example.com", password_hash="x", lifecycle=Lifecycle.DELETED)

    with pytest.raises(StateError) as exc:
        transition(user, Lifecycle.ACTIVE)
    assert exc.value.context["from"] == "deleted"


@pytest.mark.parametrize("entity_type, current, target, allowed", [
    (Product, Lifecycle.ACTIVE, Lifecycle.ACTIVE, True),
    (Product, Lifecycle.DELETED, Lifecycle.DISABLED, False),
    (AppUser, Lifecycle.DISABLED, Lifecycle.ACTIVE, True),
    (AppUser, Lifecycle.DELETED, Lifecycle.DISABLED, False),
    (ContactMessage, Lifecycle.ACTIVE, Lifecycle.DISABLED, False),
    (ContactMessage, Lifecycle.DELETED, Lifecycle.ACTIVE, True),
])
def test_transition_table(entity_type, current, target, allowed):
    assert can_transition(entity_type, current, target) is allowed


def test_ensure_editable():
    assert ensure_editable(product()).name == "Lamp"
    with pytest.raises(StateError):
        ensure_editable(product(Lifecycle.DELETED))
