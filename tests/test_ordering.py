from datetime import datetime, timedelta

import pytest

from shared.utils import ConflictError, NotFoundError, ValidationError
from storefront.models import Lifecycle
from storefront.schemas import FAQCategoryCreate, FAQCreate, FAQUpdate, SliderCreate
from storefront.services.faq import FAQService
from storefront.services.sliders import SliderService


@pytest.fixture
def faqs(session_factory):
    return FAQService(session_factory)


async def test_faq_orders_count_up_per_category(faqs):
    general = await faqs.create_category(FAQCategoryCreate(name="General"))
    shipping = await faqs.create_category(FAQCategoryCreate(name="Shipping"))

    first = await faqs.create_faq(FAQCreate(question="Q1", answer="A", category_id=general.id))
    second = await faqs.create_faq(FAQCreate(question="Q2", answer="A", category_id=general.id))
    other = await faqs.create_faq(FAQCreate(question="Q3", answer="A", category_id=shipping.id))
    loose = await faqs.create_faq(FAQCreate(question="Q4", answer="A"))

    assert (first.display_order, second.display_order) == (1, 2)
    assert other.display_order == 1
    assert loose.display_order == 1
    assert (general.display_order, shipping.display_order) == (1, 2)


async def test_explicit_order_is_kept(faqs):
    faq = await faqs.create_faq(FAQCreate(question="Q", answer="A", display_order=7))
    nxt = await faqs.create_faq(FAQCreate(question="Q2", answer="A"))

    assert faq.display_order == 7
    assert nxt.display_order == 8


async def test_moving_category_takes_next_order_there(faqs):
    general = await faqs.create_category(FAQCategoryCreate(name="General"))
    billing = await faqs.create_category(FAQCategoryCreate(name="Billing"))
    await faqs.create_faq(FAQCreate(question="B1", answer="A", category_id=billing.id))
    await faqs.create_faq(FAQCreate(question="B2", answer="A", category_id=billing.id))
    faq = await faqs.create_faq(FAQCreate(question="G1", answer="A", category_id=general.id))

    moved = await faqs.update_faq(faq.id, FAQUpdate(category_id=billing.id))

    assert moved.category_id == billing.id
    assert moved.display_order == 3


async def test_moving_into_empty_category_starts_at_one(faqs):
    general = await faqs.create_category(FAQCategoryCreate(name="General"))
    empty = await faqs.create_category(FAQCategoryCreate(name="Empty"))
    for question in ("Q1", "Q2"):
        await faqs.create_faq(FAQCreate(question=question, answer="A", category_id=general.id))
    faq = await faqs.create_faq(FAQCreate(question="Q3", answer="A", category_id=general.id))
    assert faq.display_order == 3

    moved = await faqs.update_faq(faq.id, FAQUpdate(category_id=empty.id))

    assert moved.category_id == empty.id
    assert moved.display_order == 1


async def test_resetting_order_does_not_count_itself(faqs):
    only = await faqs.create_faq(FAQCreate(question="Only", answer="A", display_order=5))

    reset = await faqs.update_display_order(only.id, 0)

    assert reset.display_order == 1


async def test_reorder_is_all_or_nothing(faqs):
    a = await faqs.create_faq(FAQCreate(question="A", answer="x"))
    b = await faqs.create_faq(FAQCreate(question="B", answer="x"))

    with pytest.raises(NotFoundError):
        await faqs.reorder({a.id: 5, 999: 1})
    assert (await faqs.get_faq(a.id)).display_order == 1

    assert await faqs.reorder({a.id: 2, b.id: 1}) == 2
    active = await faqs.list_active()
    assert [f.question for f in active] == ["B", "A"]


async def test_negative_order_rejected(faqs):
    faq = await faqs.create_faq(FAQCreate(question="A", answer="x"))

    with pytest.raises(ValidationError):
        await faqs.reorder({faq.id: -1})


async def test_category_names_are_unique_case_insensitively(faqs):
    await faqs.create_category(FAQCategoryCreate(name="Returns"))

    with pytest.raises(ConflictError):
        await faqs.create_category(FAQCategoryCreate(name="returns "))
    assert not await faqs.is_category_name_unique("RETURNS")


async def test_deleting_category_uncategorizes_its_faqs(faqs):
    category = await faqs.create_category(FAQCategoryCreate(name="Old"))
    faq = await faqs.create_faq(FAQCreate(question="Q", answer="A", category_id=category.id))

    deleted = await faqs.delete_category(category.id)

    assert deleted.lifecycle == Lifecycle.DELETED
    assert (await faqs.get_faq(faq.id)).category_id is None
    stats = await faqs.get_statistics()
    assert stats.uncategorized_faqs == 1
    assert stats.total_categories == 0


async def test_helpfulness_and_views(faqs):
    faq = await faqs.create_faq(FAQCreate(question="Q", answer="A"))
    await faqs.record_view(faq.id)
    await faqs.mark_helpful(faq.id, True)
    await faqs.mark_helpful(faq.id, True)
    updated = await faqs.mark_helpful(faq.id, False)

    assert (updated.view_count, updated.helpful_count, updated.not_helpful_count) == (1, 2, 1)

    await faqs.toggle_faq(faq.id)
    with pytest.raises(NotFoundError):
        await faqs.record_view(faq.id)


async def test_slider_orders_and_window(session_factory):
    sliders = SliderService(session_factory)
    first = await sliders.create_slider(SliderCreate(title="One", image_url="/1.jpg"))
    second = await sliders.create_slider(SliderCreate(title="Two", image_url="/2.jpg"))

    assert (first.display_order, second.display_order) == (1, 2)

    start = datetime(2030, 1, 2)
    with pytest.raises(ValidationError):
        await sliders.create_slider(SliderCreate(title="Bad", image_url="/b.jpg", start_date=start, end_date=start - timedelta(days=1)))

    await sliders.create_slider(SliderCreate(title="Later", image_url="/l.jpg", start_date=start))
    assert [s.title for s in await sliders.list_active()] == ["One", "Two"]
    stats = await sliders.get_statistics()
    assert stats.scheduled_sliders == 1
    assert stats.active_sliders == 2


async def test_lone_slider_reset_takes_first_place(session_factory):
    sliders = SliderService(session_factory)
    only = await sliders.create_slider(SliderCreate(title="Only", image_url="/o.jpg"))

    reset = await sliders.update_display_order(only.id, 0)

    assert reset.display_order == 1
