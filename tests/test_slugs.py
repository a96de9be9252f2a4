import pytest

from shared.utils import SlugGenerationExhausted, unit_of_work
from storefront.models import BlogPost
from storefront.schemas import BlogPostCreate, BlogPostUpdate
from storefront.services.blog import BlogPostService
from storefront.slugs import generate_unique_slug, slugify


@pytest.mark.parametrize("title, expected", [
    ("Hello, World!", "hello-world"),
    ("  Spaces   and--dashes  ", "spaces-and-dashes"),
    ("Ünïcödé ☃", "ncd"),
    ("!!!", "untitled"),
    ("", "untitled"),
])
def test_slugify(title, expected):
    assert slugify(title) == expected


def test_slugify_truncates_without_trailing_dash():
    slug = slugify("a" * 99 + " bcd")

    assert len(slug) <= 100
    assert not slug.endswith("-")


def post(title, slug):
    return BlogPost(title=title, content="...", author="Ann", slug=slug)


async def test_unique_slug_counts_up(session_factory, add_rows):
    await add_rows(post("Hello", "hello"), post("Hello again", "hello-1"))

    async with unit_of_work(session_factory) as session:
        assert await generate_unique_slug(session, BlogPost, "Hello!") == "hello-2"
        assert await generate_unique_slug(session, BlogPost, "Fresh title") == "fresh-title"


async def test_unique_slug_ignores_the_row_being_updated(session_factory, add_rows):
    existing = await add_rows(post("Hello", "hello"))

    async with unit_of_work(session_factory) as session:
        assert await generate_unique_slug(session, BlogPost, "Hello", exclude_id=existing.id) == "hello"


async def test_unique_slug_gives_up_after_ceiling(session_factory, add_rows):
    await add_rows(post("Hi", "hi"), post("Hi", "hi-1"), post("Hi", "hi-2"))

    async with unit_of_work(session_factory) as session:
        with pytest.raises(SlugGenerationExhausted):
            await generate_unique_slug(session, BlogPost, "Hi", max_attempts=3)


async def test_blog_posts_get_distinct_slugs(session_factory):
    service = BlogPostService(session_factory)
    first = await service.create_post(BlogPostCreate(title="Launch Day", content="x", author="Ann", tags="news, News, ,launch"))
    second = await service.create_post(BlogPostCreate(title="Launch day", content="y", author="Bob"))

    assert first.slug == "launch-day"
    assert second.slug == "launch-day-1"
    assert first.tags == "news, launch"
    assert first.published_date is not None

    kept = await service.update_post(first.id, BlogPostUpdate(summary="Short"))
    assert kept.slug == "launch-day"


async def test_title_edit_keeps_published_url(session_factory):
    service = BlogPostService(session_factory)
    post = await service.create_post(BlogPostCreate(title="Launch Dya", content="x", author="Ann"))

    retitled = await service.update_post(post.id, BlogPostUpdate(title="Launch Day"))
    assert retitled.title == "Launch Day"
    assert retitled.slug == "launch-dya"

    moved = await service.update_post(post.id, BlogPostUpdate(slug="Post-launch notes"))
    assert moved.slug == "post-launch-notes"


async def test_same_title_twice(session_factory):
    service = BlogPostService(session_factory)

    first = await service.create_post(BlogPostCreate(title="Hello, World!", content="x", author="Ann"))
    second = await service.create_post(BlogPostCreate(title="Hello, World!", content="y", author="Ann"))

    assert (first.slug, second.slug) == ("hello-world", "hello-world-1")
