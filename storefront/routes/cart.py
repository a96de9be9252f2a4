"""
Cart endpoints.

The cart lives in a signed cookie; every handler reads it, computes the new
cart and writes it back. Checkout clears it only after the order commits.
"""
from fastapi import APIRouter, Depends, Request, Response

from shared.utils import SuccessResponse
from storefront.cart import Cart, CartTokenStore
from storefront.deps import Services, current_user, get_cart_store, get_services, read_cart, user_id_of
from storefront.schemas import CartItemAdd, CartItemUpdate, CartResponse, CheckoutRequest, CheckoutResponse, OrderResponse

router = APIRouter(prefix="/api/cart", tags=["cart"])


def write_cart(request: Request, response: Response, store: CartTokenStore, cart: Cart):
    config = request.app.state.config
    response.set_cookie(
        config.CART_COOKIE_NAME,
        store.dump(cart),
        max_age=config.CART_TOKEN_EXPIRE_DAYS * 24 * 3600,
        httponly=True,
        samesite="lax",
    )


async def cart_view(services: Services, cart: Cart) -> CartResponse:
    totals = await services.checkout.preview(cart)
    return CartResponse(**totals.model_dump(), item_count=cart.item_count)


@router.get("", response_model=SuccessResponse[CartResponse])
async def view_cart(cart: Cart = Depends(read_cart), services: Services = Depends(get_services)):
    return SuccessResponse(data=await cart_view(services, cart))


@router.post("/items", response_model=SuccessResponse[CartResponse])
async def add_item(
    item: CartItemAdd,
    request: Request,
    response: Response,
    cart: Cart = Depends(read_cart),
    store: CartTokenStore = Depends(get_cart_store),
    services: Services = Depends(get_services),
):
    cart = await services.checkout.add_to_cart(cart, item.product_id, item.quantity)
    write_cart(request, response, store, cart)
    return SuccessResponse(data=await cart_view(services, cart), message="Item added to cart")


@router.put("/items/{product_id}", response_model=SuccessResponse[CartResponse])
async def update_item(
    product_id: int,
    item: CartItemUpdate,
    request: Request,
    response: Response,
    cart: Cart = Depends(read_cart),
    store: CartTokenStore = Depends(get_cart_store),
    services: Services = Depends(get_services),
):
    cart = await services.checkout.update_cart_line(cart, product_id, item.quantity)
    write_cart(request, response, store, cart)
    return SuccessResponse(data=await cart_view(services, cart), message="Cart updated")


@router.delete("/items/{product_id}", response_model=SuccessResponse[CartResponse])
async def remove_item(
    product_id: int,
    request: Request,
    response: Response,
    cart: Cart = Depends(read_cart),
    store: CartTokenStore = Depends(get_cart_store),
    services: Services = Depends(get_services),
):
    cart = cart.remove(product_id)
    write_cart(request, response, store, cart)
    return SuccessResponse(data=await cart_view(services, cart), message="Item removed")


@router.delete("", response_model=SuccessResponse[CartResponse])
async def clear_cart(
    request: Request,
    response: Response,
    cart: Cart = Depends(read_cart),
    store: CartTokenStore = Depends(get_cart_store),
):
    write_cart(request, response, store, cart.clear())
    return SuccessResponse(data=CartResponse(), message="Cart cleared")


@router.post("/checkout", response_model=SuccessResponse[CheckoutResponse])
async def checkout(
    body: CheckoutRequest,
    request: Request,
    response: Response,
    payload: dict = Depends(current_user),
    cart: Cart = Depends(read_cart),
    store: CartTokenStore = Depends(get_cart_store),
    services: Services = Depends(get_services),
):
    order, remaining = await services.checkout.place_order(
        user_id_of(payload),
        cart,
        body.payment_method,
        address_id=body.address_id,
        new_address=body.new_address,
        notes=body.notes,
    )
    write_cart(request, response, store, remaining)
    return SuccessResponse(
        data=CheckoutResponse(order=OrderResponse.model_validate(order)),
        message=f"Order {order.order_number} placed",
    )
