from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request

from shared.security_config import limiter
from shared.utils import Page, SuccessResponse
from storefront.deps import Services, get_services, page_of
from storefront.models import Lifecycle
from storefront.querying import ProductSort, SortDirection
from storefront.schemas import CategoryResponse, ProductResponse

router = APIRouter(prefix="/api/catalog", tags=["catalog"])


@router.get("/products", response_model=SuccessResponse[Page[ProductResponse]])
@limiter.limit("60/minute")
async def list_products(
    request: Request,
    page: int = Query(1, ge=1),
    page_size: int = Query(12, ge=1, le=100),
    category_id: Optional[int] = None,
    min_price: Optional[Decimal] = None,
    max_price: Optional[Decimal] = None,
    search: Optional[str] = None,
    in_stock: Optional[bool] = None,
    sort: ProductSort = ProductSort.NAME,
    direction: SortDirection = SortDirection.ASC,
    services: Services = Depends(get_services),
):
    products, total = await services.products.list_products(
        search=search,
        category_id=category_id,
        lifecycle=Lifecycle.ACTIVE,
        min_price=min_price,
        max_price=max_price,
        in_stock=in_stock,
        sort=sort,
        direction=direction,
        page=page,
        page_size=page_size,
    )
    return SuccessResponse(data=page_of(ProductResponse, products, total, page, page_size))


@router.get("/products/featured", response_model=SuccessResponse[List[ProductResponse]])
async def featured_products(count: int = Query(8, ge=1, le=50), services: Services = Depends(get_services)):
    products = await services.products.get_featured(count)
    return SuccessResponse(data=[ProductResponse.model_validate(p) for p in products])


@router.get("/products/{product_id}", response_model=SuccessResponse[ProductResponse])
@limiter.limit("60/minute")
async def get_product(product_id: int, request: Request, services: Services = Depends(get_services)):
    product = await services.products.get_active_product(product_id)
    return SuccessResponse(data=ProductResponse.model_validate(product))


@router.get("/categories", response_model=SuccessResponse[List[CategoryResponse]])
async def list_categories(services: Services = Depends(get_services)):
    rows = await services.categories.list_categories()
    return SuccessResponse(data=[
        CategoryResponse.model_validate(category).model_copy(update={"product_count": count})
        for category, count in rows
    ])
