import logging
from datetime import datetime, time
from typing import List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shared.logging_config import log_change
from shared.security_config import clean_tags
from shared.utils import NotFoundError, unit_of_work, utcnow
from storefront.lifecycle import ensure_editable, toggle, transition
from storefront.models import BlogPost, Lifecycle
from storefront.querying import BlogPostSort, SortDirection, apply_sort, contains, paginate
from storefront.schemas import BlogPostCreate, BlogPostUpdate, BlogStatistics
from storefront.slugs import generate_unique_slug

logger = logging.getLogger("storefront.blog")

BLOG_SORT_COLUMNS = {
    BlogPostSort.CREATED: BlogPost.created_date,
    BlogPostSort.PUBLISHED: func.coalesce(BlogPost.published_date, BlogPost.created_date),
    BlogPostSort.TITLE: BlogPost.title,
    BlogPostSort.VIEWS: BlogPost.view_count,
}


def _published():
    return (BlogPost.lifecycle == Lifecycle.ACTIVE) & BlogPost.is_published.is_(True)


class BlogPostService:
    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def list_posts(
        self,
        search: Optional[str] = None,
        category: Optional[str] = None,
        author: Optional[str] = None,
        tag: Optional[str] = None,
        published: Optional[bool] = None,
        featured: Optional[bool] = None,
        lifecycle: Optional[Lifecycle] = None,
        sort: BlogPostSort = BlogPostSort.PUBLISHED,
        direction: SortDirection = SortDirection.DESC,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[BlogPost], int]:
        stmt = select(BlogPost)
        if lifecycle is not None:
            stmt = stmt.where(BlogPost.lifecycle == lifecycle)
        else:
            stmt = stmt.where(BlogPost.lifecycle != Lifecycle.DELETED)
        if search:
            stmt = stmt.where(or_(
                contains(BlogPost.title, search),
                contains(BlogPost.content, search),
                contains(BlogPost.author, search),
                contains(BlogPost.summary, search),
            ))
        if category:
            stmt = stmt.where(BlogPost.category == category)
        if author:
            stmt = stmt.where(contains(BlogPost.author, author))
        if tag:
            stmt = stmt.where(contains(BlogPost.tags, tag))
        if published is not None:
            stmt = stmt.where(BlogPost.is_published.is_(published))
        if featured is not None:
            stmt = stmt.where(BlogPost.is_featured.is_(featured))
        stmt = apply_sort(stmt, BLOG_SORT_COLUMNS, sort, direction, BlogPost.id)
        async with unit_of_work(self.session_factory) as session:
            return await paginate(session, stmt, page, page_size)

    async def list_published(self, category: Optional[str] = None, featured: Optional[bool] = None, limit: int = 10) -> List[BlogPost]:
        stmt = select(BlogPost).where(_published())
        if category:
            stmt = stmt.where(BlogPost.category == category)
        if featured is not None:
            stmt = stmt.where(BlogPost.is_featured.is_(featured))
        stmt = stmt.order_by(BlogPost.published_date.desc(), BlogPost.id.desc()).limit(limit)
        async with unit_of_work(self.session_factory) as session:
            return list((await session.scalars(stmt)).all())

    async def get_post(self, post_id: int) -> BlogPost:
        async with unit_of_work(self.session_factory) as session:
            return await self._load(session, post_id)

    async def get_published_post_by_slug(self, slug: str) -> BlogPost:
        """Public read: counts as a view."""
        async with unit_of_work(self.session_factory) as session:
            post = await session.scalar(select(BlogPost).where(BlogPost.slug == slug, _published()))
            if post is None:
                raise NotFoundError("Blog post not found", context={"slug": slug})
            post.view_count += 1
            return post

    async def _load(self, session: AsyncSession, post_id: int) -> BlogPost:
        post = await session.get(BlogPost, post_id)
        if post is None:
            raise NotFoundError("Blog post not found", context={"post_id": post_id})
        return post

    async def create_post(self, data: BlogPostCreate) -> BlogPost:
        async with unit_of_work(self.session_factory) as session:
            values = data.model_dump(exclude={"slug", "tags"})
            post = BlogPost(**values, tags=clean_tags(data.tags) if data.tags else None)
            post.slug = await generate_unique_slug(session, BlogPost, data.slug or data.title)
            if post.is_published:
                post.published_date = utcnow()
            session.add(post)
            await session.flush()
        log_change(logger, "created", "BlogPost", post.id, slug=post.slug)
        return post

    async def update_post(self, post_id: int, data: BlogPostUpdate) -> BlogPost:
        async with unit_of_work(self.session_factory) as session:
            post = ensure_editable(await self._load(session, post_id))
            changes = data.model_dump(exclude_unset=True, exclude={"slug", "tags"})
            for field, value in changes.items():
                setattr(post, field, value)
            if "tags" in data.model_fields_set:
                post.tags = clean_tags(data.tags) if data.tags else None

            if data.slug:
                post.slug = await generate_unique_slug(session, BlogPost, data.slug, exclude_id=post.id)
            elif not post.slug:
                post.slug = await generate_unique_slug(session, BlogPost, post.title, exclude_id=post.id)

            if post.is_published and post.published_date is None:
                post.published_date = utcnow()
            post.touch()
        log_change(logger, "updated", "BlogPost", post_id, slug=post.slug)
        return post

    async def delete_post(self, post_id: int) -> BlogPost:
        async with unit_of_work(self.session_factory) as session:
            post = transition(await self._load(session, post_id), Lifecycle.DELETED)
        log_change(logger, "deleted", "BlogPost", post_id)
        return post

    async def restore_post(self, post_id: int) -> BlogPost:
        async with unit_of_work(self.session_factory) as session:
            post = transition(await self._load(session, post_id), Lifecycle.ACTIVE)
        log_change(logger, "restored", "BlogPost", post_id)
        return post

    async def hard_delete_post(self, post_id: int) -> None:
        async with unit_of_work(self.session_factory) as session:
            await session.delete(await self._load(session, post_id))
        log_change(logger, "hard_deleted", "BlogPost", post_id)

    async def toggle_status(self, post_id: int) -> BlogPost:
        async with unit_of_work(self.session_factory) as session:
            post = toggle(await self._load(session, post_id))
        log_change(logger, "toggled", "BlogPost", post_id, lifecycle=post.lifecycle.value)
        return post

    async def toggle_published(self, post_id: int) -> BlogPost:
        async with unit_of_work(self.session_factory) as session:
            post = ensure_editable(await self._load(session, post_id))
            post.is_published = not post.is_published
            if post.is_published and post.published_date is None:
                post.published_date = utcnow()
            post.touch()
        log_change(logger, "publish_toggled", "BlogPost", post_id, is_published=post.is_published)
        return post

    async def toggle_featured(self, post_id: int) -> BlogPost:
        async with unit_of_work(self.session_factory) as session:
            post = ensure_editable(await self._load(session, post_id))
            post.is_featured = not post.is_featured
            post.touch()
        log_change(logger, "feature_toggled", "BlogPost", post_id, is_featured=post.is_featured)
        return post

    async def get_categories(self) -> List[str]:
        async with unit_of_work(self.session_factory) as session:
            result = await session.scalars(
                select(BlogPost.category).where(BlogPost.category.is_not(None), BlogPost.category != "", _published())
                .distinct().order_by(BlogPost.category)
            )
            return list(result.all())

    async def get_authors(self) -> List[str]:
        async with unit_of_work(self.session_factory) as session:
            result = await session.scalars(
                select(BlogPost.author).where(_published()).distinct().order_by(BlogPost.author)
            )
            return list(result.all())

    async def get_tags(self) -> List[str]:
        async with unit_of_work(self.session_factory) as session:
            rows = (await session.scalars(
                select(BlogPost.tags).where(BlogPost.tags.is_not(None), _published())
            )).all()
        tags = {}
        for raw in rows:
            for tag in raw.split(","):
                tag = tag.strip()
                if tag:
                    tags.setdefault(tag.lower(), tag)
        return sorted(tags.values(), key=str.lower)

    async def get_related_posts(self, post_id: int, count: int = 5) -> List[BlogPost]:
        """
        Same category first, then posts sharing a tag, newest published first.
        An untagged post is topped up with the latest posts instead.
        """
        async with unit_of_work(self.session_factory) as session:
            post = await self._load(session, post_id)
            base = select(BlogPost).where(BlogPost.id != post_id, _published())
            newest = (BlogPost.published_date.desc(), BlogPost.id.desc())

            related: List[BlogPost] = []
            if post.category:
                related = list((await session.scalars(
                    base.where(BlogPost.category == post.category).order_by(*newest).limit(count)
                )).all())
            if len(related) >= count:
                return related

            taken = [p.id for p in related]
            remaining = base.where(BlogPost.id.not_in(taken)) if taken else base
            tags = post.tag_list
            if tags:
                remaining = remaining.where(or_(*(contains(BlogPost.tags, t) for t in tags)))
            related.extend((await session.scalars(remaining.order_by(*newest).limit(count - len(related)))).all())
            return related

    async def get_statistics(self) -> BlogStatistics:
        month_start = datetime.combine(utcnow().date().replace(day=1), time.min)
        live = BlogPost.lifecycle != Lifecycle.DELETED
        async with unit_of_work(self.session_factory) as session:
            total = await session.scalar(select(func.count(BlogPost.id)).where(live))
            published = await session.scalar(select(func.count(BlogPost.id)).where(live, BlogPost.is_published.is_(True)))
            featured = await session.scalar(select(func.count(BlogPost.id)).where(live, BlogPost.is_featured.is_(True)))
            views = await session.scalar(select(func.coalesce(func.sum(BlogPost.view_count), 0)).where(live))
            this_month = await session.scalar(select(func.count(BlogPost.id)).where(live, BlogPost.created_date >= month_start))
            categories = await session.scalar(
                select(func.count(func.distinct(BlogPost.category))).where(live, BlogPost.category.is_not(None))
            )
        return BlogStatistics(
            total_posts=total or 0,
            published_posts=published or 0,
            draft_posts=(total or 0) - (published or 0),
            featured_posts=featured or 0,
            total_views=views or 0,
            posts_this_month=this_month or 0,
            categories=categories or 0,
        )
