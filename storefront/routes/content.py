from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, status

from shared.security_config import limiter
from shared.utils import SuccessResponse
from storefront.deps import Services, get_services
from storefront.schemas import (
    BlogPostResponse, ContactMessageCreate, FAQCategoryResponse, FAQResponse, HelpfulnessVote, SliderResponse,
)

router = APIRouter(prefix="/api/content", tags=["content"])


# --- Blog ---
@router.get("/blog", response_model=SuccessResponse[List[BlogPostResponse]])
async def published_posts(
    category: Optional[str] = None,
    featured: Optional[bool] = None,
    limit: int = Query(10, ge=1, le=100),
    services: Services = Depends(get_services),
):
    posts = await services.blog.list_published(category=category, featured=featured, limit=limit)
    return SuccessResponse(data=[BlogPostResponse.model_validate(p) for p in posts])


@router.get("/blog/categories", response_model=SuccessResponse[List[str]])
async def blog_categories(services: Services = Depends(get_services)):
    return SuccessResponse(data=await services.blog.get_categories())


@router.get("/blog/tags", response_model=SuccessResponse[List[str]])
async def blog_tags(services: Services = Depends(get_services)):
    return SuccessResponse(data=await services.blog.get_tags())


@router.get("/blog/authors", response_model=SuccessResponse[List[str]])
async def blog_authors(services: Services = Depends(get_services)):
    return SuccessResponse(data=await services.blog.get_authors())


@router.get("/blog/posts/{post_id}/related", response_model=SuccessResponse[List[BlogPostResponse]])
async def related_posts(post_id: int, count: int = Query(5, ge=1, le=20), services: Services = Depends(get_services)):
    posts = await services.blog.get_related_posts(post_id, count)
    return SuccessResponse(data=[BlogPostResponse.model_validate(p) for p in posts])


@router.get("/blog/{slug}", response_model=SuccessResponse[BlogPostResponse])
async def post_by_slug(slug: str, services: Services = Depends(get_services)):
    post = await services.blog.get_published_post_by_slug(slug)
    return SuccessResponse(data=BlogPostResponse.model_validate(post))


# --- FAQ ---
@router.get("/faq", response_model=SuccessResponse[List[FAQResponse]])
async def active_faqs(category_id: Optional[int] = None, services: Services = Depends(get_services)):
    faqs = await services.faq.list_active(category_id=category_id)
    return SuccessResponse(data=[FAQResponse.model_validate(f) for f in faqs])


@router.get("/faq/categories", response_model=SuccessResponse[List[FAQCategoryResponse]])
async def faq_categories(services: Services = Depends(get_services)):
    rows = await services.faq.list_categories()
    return SuccessResponse(data=[
        FAQCategoryResponse.model_validate(category).model_copy(update={"faq_count": count})
        for category, count in rows
    ])


@router.get("/faq/search", response_model=SuccessResponse[List[FAQResponse]])
async def search_faqs(
    q: str = Query(..., min_length=1),
    category_id: Optional[int] = None,
    limit: int = Query(10, ge=1, le=50),
    services: Services = Depends(get_services),
):
    faqs = await services.faq.search(q, category_id=category_id, limit=limit)
    return SuccessResponse(data=[FAQResponse.model_validate(f) for f in faqs])


@router.get("/faq/popular", response_model=SuccessResponse[List[FAQResponse]])
async def popular_faqs(count: int = Query(5, ge=1, le=20), services: Services = Depends(get_services)):
    faqs = await services.faq.get_most_viewed(count)
    return SuccessResponse(data=[FAQResponse.model_validate(f) for f in faqs])


@router.get("/faq/helpful", response_model=SuccessResponse[List[FAQResponse]])
async def helpful_faqs(count: int = Query(5, ge=1, le=20), services: Services = Depends(get_services)):
    faqs = await services.faq.get_most_helpful(count)
    return SuccessResponse(data=[FAQResponse.model_validate(f) for f in faqs])


@router.post("/faq/{faq_id}/view", response_model=SuccessResponse[FAQResponse])
async def view_faq(faq_id: int, services: Services = Depends(get_services)):
    faq = await services.faq.record_view(faq_id)
    return SuccessResponse(data=FAQResponse.model_validate(faq))


@router.post("/faq/{faq_id}/vote", response_model=SuccessResponse[FAQResponse])
async def vote_faq(faq_id: int, vote: HelpfulnessVote, services: Services = Depends(get_services)):
    faq = await services.faq.mark_helpful(faq_id, vote.helpful)
    return SuccessResponse(data=FAQResponse.model_validate(faq), message="Thanks for your feedback")


# --- Sliders ---
@router.get("/sliders", response_model=SuccessResponse[List[SliderResponse]])
async def active_sliders(services: Services = Depends(get_services)):
    sliders = await services.sliders.list_active()
    return SuccessResponse(data=[SliderResponse.model_validate(s) for s in sliders])


# --- Contact ---
@router.post("/contact", response_model=SuccessResponse[dict], status_code=status.HTTP_201_CREATED)
@limiter.limit("3/minute")
async def contact(message: ContactMessageCreate, request: Request, services: Services = Depends(get_services)):
    created = await services.contact.create_message(message)
    return SuccessResponse(data={"id": created.id}, message="Thank you for contacting us")
