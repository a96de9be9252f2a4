from datetime import timedelta

import pytest
from jose import jwt

from shared.utils import Settings, ValidationError
from storefront.cart import Cart, CartTokenStore


def test_add_merges_quantities():
    cart = Cart().add(1, 2).add(2).add(1, 3)

    assert cart.quantity_of(1) == 5
    assert cart.quantity_of(2) == 1
    assert cart.item_count == 6
    assert cart.product_ids == (1, 2)


def test_operations_return_new_carts():
    original = Cart().add(1)
    changed = original.add(1)

    assert original.quantity_of(1) == 1
    assert changed.quantity_of(1) == 2


def test_add_rejects_non_positive_quantity():
    with pytest.raises(ValidationError):
        Cart().add(1, 0)


def test_update_to_zero_removes_line():
    cart = Cart().add(1, 2).add(2, 1)

    assert cart.update(1, 0).product_ids == (2,)
    assert cart.update(1, 7).quantity_of(1) == 7
    assert cart.update(3, 2).quantity_of(3) == 2


def test_remove_and_clear():
    cart = Cart().add(1).add(2).add(3)

    assert cart.remove(2).product_ids == (1, 3)
    assert cart.without([1, 3]).product_ids == (2,)
    assert cart.clear().is_empty


def test_token_store_keeps_lines():
    store = CartTokenStore(Settings())
    cart = Cart().add(4, 2).add(9, 1)

    restored = store.load(store.dump(cart))

    assert restored == cart


@pytest.mark.parametrize("token", [None, "", "not-a-token"])
def test_token_store_starts_fresh_on_bad_token(token):
    assert CartTokenStore(Settings()).load(token).is_empty


def test_token_store_rejects_foreign_signature_and_type():
    store = CartTokenStore(Settings())
    forged = jwt.encode({"typ": "cart", "lines": [[1, 1]]}, "other-key", algorithm="HS256")
    wrong_type = jwt.encode({"typ": "access", "lines": [[1, 1]]}, Settings().SECRET_KEY, algorithm="HS256")

    assert store.load(forged).is_empty
    assert store.load(wrong_type).is_empty


def test_token_store_drops_malformed_lines():
    config = Settings()
    token = jwt.encode(
        {"typ": "cart", "lines": [[1, 2], [2, 0], ["x", 1], [3]]},
        config.SECRET_KEY,
        algorithm=config.ALGORITHM,
    )

    assert CartTokenStore(config).load(token) == Cart().add(1, 2)


def test_expired_token_is_empty():
    config = Settings(CART_TOKEN_EXPIRE_DAYS=1)
    store = CartTokenStore(config)
    store.ttl = timedelta(days=-1)

    assert store.load(store.dump(Cart().add(1))).is_empty
