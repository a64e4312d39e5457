"""
sitepress/features/sites/fetchers.py

Public reads for pages served on a site's hostname.

Results are memoized in a RequestCache that lives for exactly one request
(see `request_cache` dependency); there is no process-wide cache, so one
tenant's data can never be served from another request's lookups.
"""

from typing import Any, Callable, Dict, Hashable, Iterator, Optional, Tuple

from sitepress.core.database import get_db_session
from sitepress.features.plans.persistence import PlanPersistence
from sitepress.features.sites.persistence import SitePersistence, row_to_site
from sitepress.features.users.service import find_user
from sitepress.models.plan import AdjacentPlan, PlanData, PublicSite, SiteData
from sitepress.models.user import PublicOwner

_MISSING = object()


class RequestCache:
    """Memo for a single request, keyed by (kind, site identifier, slug)."""

    def __init__(self):
        self._entries: Dict[Tuple[Hashable, ...], Any] = {}

    def get_or_load(self, key: Tuple[Hashable, ...], loader: Callable[[], Any]) -> Any:
        value = self._entries.get(key, _MISSING)
        if value is _MISSING:
            value = loader()
            self._entries[key] = value
        return value

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()


def request_cache() -> Iterator[RequestCache]:
    """FastAPI dependency: one cache per request, dropped when the request ends."""
    cache = RequestCache()
    try:
        yield cache
    finally:
        cache.clear()


def _load_public_site(session, site: str) -> Optional[PublicSite]:
    row = SitePersistence.find_by_host(session, site)
    if not row:
        return None
    owner = find_user(session, row.user_id)
    return PublicSite(
        **row_to_site(row).model_dump(),
        user=PublicOwner.from_user(owner) if owner else None,
    )


def _fetch_site_data(site: str) -> Optional[SiteData]:
    with get_db_session() as session:
        public_site = _load_public_site(session, site)
        if public_site is None:
            return None
        published = PlanPersistence.list_published(session, public_site.id)
        return SiteData(**public_site.model_dump(), plans=published)


def _fetch_plan_data(site: str, slug: str) -> Optional[PlanData]:
    with get_db_session() as session:
        public_site = _load_public_site(session, site)
        if public_site is None:
            return None
        plan = PlanPersistence.find_published_plan(session, public_site.id, slug)
        if plan is None:
            return None
        others = PlanPersistence.list_published(session, public_site.id, exclude_plan_id=plan.id)
        adjacent = [
            AdjacentPlan(
                slug=other.slug,
                title=other.title,
                created_at=other.created_at,
                description=other.description,
                image=other.image,
                image_blurhash=other.image_blurhash,
            )
            for other in others
        ]
        return PlanData(plan=plan, site=public_site, adjacent_plans=adjacent)


def get_site_data(site: str, cache: RequestCache) -> Optional[SiteData]:
    """Site by subdomain (or custom domain if it contains a dot) with its published plans."""
    return cache.get_or_load(("site", site, None), lambda: _fetch_site_data(site))


def get_plan_data(site: str, slug: str, cache: RequestCache) -> Optional[PlanData]:
    """Published plan by slug, with its site, owner and the site's other published plans."""
    return cache.get_or_load(("plan", site, slug), lambda: _fetch_plan_data(site, slug))
