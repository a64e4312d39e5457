"""
sitepress/api/public.py
Public read API used by the hostname-served pages. No session required.
"""

from fastapi import APIRouter, Depends

from sitepress.core.errors import NotFoundError
from sitepress.features.sites.fetchers import RequestCache, get_plan_data, get_site_data, request_cache

router = APIRouter(prefix="/api/public", tags=["public"])


@router.get("/sites/{site}")
def get_site_endpoint(site: str, cache: RequestCache = Depends(request_cache)):
    """Site by subdomain or custom domain with its published plans."""
    data = get_site_data(site, cache)
    if data is None:
        raise NotFoundError("Site not found")
    return {"data": data.model_dump(mode="json")}


@router.get("/sites/{site}/plans/{slug}")
def get_public_plan_endpoint(site: str, slug: str, cache: RequestCache = Depends(request_cache)):
    """Published plan with its site and adjacent published plans."""
    data = get_plan_data(site, slug, cache)
    if data is None:
        raise NotFoundError("Plan not found")
    return {"data": data.model_dump(mode="json")}
