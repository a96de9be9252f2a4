import re
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shared.utils import SlugGenerationExhausted

SLUG_MAX_LENGTH = 100
SLUG_FALLBACK = "untitled"
SLUG_MAX_ATTEMPTS = 1000

_DISALLOWED = re.compile(r"[^a-z0-9\s-]")
_SEPARATORS = re.compile(r"[\s-]+")


def slugify(title: str) -> str:
    """
    Turn free text into a URL-safe slug.

    >>> slugify("Hello, World!")
    'hello-world'
    """
    slug = _DISALLOWED.sub("", (title or "").lower())
    slug = _SEPARATORS.sub("-", slug).strip("-")
    if not slug:
        return SLUG_FALLBACK
    return slug[:SLUG_MAX_LENGTH].rstrip("-")


async def slug_taken(session: AsyncSession, model, slug: str, exclude_id: Optional[int] = None) -> bool:
    stmt = select(model.id).where(model.slug == slug)
    if exclude_id is not None:
        stmt = stmt.where(model.id != exclude_id)
    return (await session.scalar(stmt.limit(1))) is not None


async def generate_unique_slug(
    session: AsyncSession,
    model,
    title: str,
    exclude_id: Optional[int] = None,
    max_attempts: int = SLUG_MAX_ATTEMPTS,
) -> str:
    """
    First free slug among `base`, `base-1`, `base-2`, ... for `model`.

    `exclude_id` is the row being updated, so it never collides with itself.
    Deterministic for a given title and set of stored slugs.
    """
    base = slugify(title)
    candidate = base
    for counter in range(1, max_attempts + 1):
        if not await slug_taken(session, model, candidate, exclude_id):
            return candidate
        candidate = f"{base}-{counter}"
    raise SlugGenerationExhausted(base, max_attempts)
