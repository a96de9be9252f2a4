from typing import List

from fastapi import APIRouter, Depends, Query

from shared.utils import Page, SuccessResponse
from storefront.deps import Services, current_user, get_services, page_of, user_id_of
from storefront.schemas import (
    AddressCreate, AddressResponse, AddressUpdate, OrderCancel, OrderResponse, UserActivitySummary,
)

router = APIRouter(prefix="/api/account", tags=["account"])


# --- Addresses ---
@router.get("/addresses", response_model=SuccessResponse[List[AddressResponse]])
async def list_addresses(payload: dict = Depends(current_user), services: Services = Depends(get_services)):
    addresses = await services.addresses.list_addresses(user_id_of(payload))
    return SuccessResponse(data=[AddressResponse.model_validate(a) for a in addresses])


@router.post("/addresses", response_model=SuccessResponse[AddressResponse])
async def add_address(address: AddressCreate, payload: dict = Depends(current_user), services: Services = Depends(get_services)):
    created = await services.addresses.add_address(user_id_of(payload), address)
    return SuccessResponse(data=AddressResponse.model_validate(created), message="Address added")


@router.get("/addresses/{address_id}", response_model=SuccessResponse[AddressResponse])
async def get_address(address_id: int, payload: dict = Depends(current_user), services: Services = Depends(get_services)):
    address = await services.addresses.get_address(address_id, user_id_of(payload))
    return SuccessResponse(data=AddressResponse.model_validate(address))


@router.put("/addresses/{address_id}", response_model=SuccessResponse[AddressResponse])
async def update_address(
    address_id: int,
    address: AddressUpdate,
    payload: dict = Depends(current_user),
    services: Services = Depends(get_services),
):
    updated = await services.addresses.update_address(address_id, user_id_of(payload), address)
    return SuccessResponse(data=AddressResponse.model_validate(updated), message="Address updated")


@router.post("/addresses/{address_id}/default", response_model=SuccessResponse[AddressResponse])
async def set_default_address(address_id: int, payload: dict = Depends(current_user), services: Services = Depends(get_services)):
    address = await services.addresses.set_default_address(address_id, user_id_of(payload))
    return SuccessResponse(data=AddressResponse.model_validate(address), message="Default address set")


@router.delete("/addresses/{address_id}", response_model=SuccessResponse[dict])
async def delete_address(address_id: int, payload: dict = Depends(current_user), services: Services = Depends(get_services)):
    await services.addresses.delete_address(address_id, user_id_of(payload))
    return SuccessResponse(data={"id": address_id}, message="Address deleted")


# --- Orders ---
@router.get("/orders", response_model=SuccessResponse[Page[OrderResponse]])
async def my_orders(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    payload: dict = Depends(current_user),
    services: Services = Depends(get_services),
):
    orders, total = await services.orders.list_orders_for_user(user_id_of(payload), page, page_size)
    return SuccessResponse(data=page_of(OrderResponse, orders, total, page, page_size))


@router.get("/orders/{order_id}", response_model=SuccessResponse[OrderResponse])
async def my_order(order_id: int, payload: dict = Depends(current_user), services: Services = Depends(get_services)):
    order = await services.orders.get_order_for_user(order_id, user_id_of(payload))
    return SuccessResponse(data=OrderResponse.model_validate(order))


@router.post("/orders/{order_id}/cancel", response_model=SuccessResponse[OrderResponse])
async def cancel_my_order(
    order_id: int,
    body: OrderCancel,
    payload: dict = Depends(current_user),
    services: Services = Depends(get_services),
):
    order = await services.orders.cancel_order(order_id, body.reason, user_id=user_id_of(payload))
    return SuccessResponse(data=OrderResponse.model_validate(order), message="Order cancelled")


@router.get("/activity", response_model=SuccessResponse[UserActivitySummary])
async def my_activity(payload: dict = Depends(current_user), services: Services = Depends(get_services)):
    return SuccessResponse(data=await services.users.get_activity_summary(user_id_of(payload)))
