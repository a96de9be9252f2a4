"""
The shopping cart as a value.

A `Cart` is an immutable list of (product_id, quantity) lines rebuilt on
every request; each operation returns a new cart. Where the cart is kept
between requests is the concern of `CartTokenStore`, which turns a cart into
a signed token and back.
"""
from datetime import timedelta
from typing import Optional, Tuple

from jose import JWTError, jwt
from pydantic import BaseModel, Field

from shared.utils import Settings, ValidationError, settings, utcnow

CART_TOKEN_TYPE = "cart"


class CartLine(BaseModel):
    product_id: int = Field(..., gt=0)
    quantity: int = Field(..., ge=1)

    class Config:
        frozen = True


class Cart(BaseModel):
    lines: Tuple[CartLine, ...] = ()

    class Config:
        frozen = True

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def product_ids(self) -> Tuple[int, ...]:
        return tuple(line.product_id for line in self.lines)

    def quantity_of(self, product_id: int) -> int:
        for line in self.lines:
            if line.product_id == product_id:
                return line.quantity
        return 0

    def add(self, product_id: int, quantity: int = 1) -> "Cart":
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1", context={"quantity": quantity})
        if product_id not in self.product_ids:
            return Cart(lines=self.lines + (CartLine(product_id=product_id, quantity=quantity),))
        return Cart(lines=tuple(
            CartLine(product_id=line.product_id, quantity=line.quantity + quantity)
            if line.product_id == product_id else line
            for line in self.lines
        ))

    def update(self, product_id: int, quantity: int) -> "Cart":
        """Set a line's quantity; zero or less drops the line."""
        if quantity <= 0:
            return self.remove(product_id)
        if product_id not in self.product_ids:
            return self.add(product_id, quantity)
        return Cart(lines=tuple(
            CartLine(product_id=line.product_id, quantity=quantity)
            if line.product_id == product_id else line
            for line in self.lines
        ))

    def remove(self, product_id: int) -> "Cart":
        return Cart(lines=tuple(line for line in self.lines if line.product_id != product_id))

    def without(self, product_ids) -> "Cart":
        drop = set(product_ids)
        return Cart(lines=tuple(line for line in self.lines if line.product_id not in drop))

    def clear(self) -> "Cart":
        return Cart()


class CartTokenStore:
    """Serializes carts into signed, expiring tokens (JWT) and back."""

    def __init__(self, config: Settings = settings):
        self.secret = config.SECRET_KEY
        self.algorithm = config.ALGORITHM
        self.ttl = timedelta(days=config.CART_TOKEN_EXPIRE_DAYS)

    def dump(self, cart: Cart) -> str:
        claims = {
            "typ": CART_TOKEN_TYPE,
            "lines": [[line.product_id, line.quantity] for line in cart.lines],
            "exp": utcnow() + self.ttl,
        }
        return jwt.encode(claims, self.secret, algorithm=self.algorithm)

    def load(self, token: Optional[str]) -> Cart:
        # Missing, expired or tampered tokens start a fresh cart
        if not token:
            return Cart()
        try:
            claims = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except JWTError:
            return Cart()
        if claims.get("typ") != CART_TOKEN_TYPE:
            return Cart()
        cart = Cart()
        for entry in claims.get("lines") or []:
            if not isinstance(entry, list) or len(entry) != 2:
                continue
            product_id, quantity = entry
            if isinstance(product_id, int) and isinstance(quantity, int) and product_id > 0 and quantity > 0:
                cart = cart.add(product_id, quantity)
        return cart
