"""
sitepress/models/plan.py

Plan models: markdown documents owned by a site.

A plan is created unpublished with a placeholder cover image and is only
served on public hostnames once published.
"""

from datetime import datetime
from typing import Generic, List, Optional, TypeVar
from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr

from sitepress.models.site import Site
from sitepress.models.user import PublicOwner

T = TypeVar("T")

UPDATABLE_FIELDS = ("title", "description", "content", "slug", "image", "published")


class Plan(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    site_id: str
    title: Optional[str] = None
    description: Optional[str] = None
    content: Optional[str] = None
    slug: str
    image: Optional[str] = None
    image_blurhash: Optional[str] = None
    published: bool = False
    created_at: datetime
    updated_at: datetime


class PlanWithSite(Plan):
    site: Site


class AdjacentPlan(BaseModel):
    """Card data for the other published plans of the same site."""

    model_config = ConfigDict(frozen=True)

    slug: str
    title: Optional[str] = None
    created_at: datetime
    description: Optional[str] = None
    image: Optional[str] = None
    image_blurhash: Optional[str] = None


class PublicSite(Site):
    user: Optional[PublicOwner] = None


class PlanData(BaseModel):
    """Published plan as served on a public hostname."""

    model_config = ConfigDict(frozen=True)

    plan: Plan
    site: PublicSite
    adjacent_plans: List[AdjacentPlan] = Field(default_factory=list)


class PlanUpdateRequest(BaseModel):
    """PUT body. Fields left out are not touched."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[StrictStr] = None
    title: Optional[StrictStr] = None
    description: Optional[StrictStr] = None
    content: Optional[StrictStr] = None
    slug: Optional[StrictStr] = Field(default=None, min_length=1, max_length=255)
    image: Optional[StrictStr] = None
    published: Optional[StrictBool] = None

    def changed_fields(self) -> dict:
        return self.model_dump(include=set(UPDATABLE_FIELDS), exclude_unset=True)


class MutationResult(BaseModel, Generic[T]):
    """Outcome of a committed write plus any non-fatal invalidation warnings."""

    data: Optional[T] = None
    warnings: List[dict] = Field(default_factory=list)


class SiteData(PublicSite):
    """Public view of a site with its owner and published plans."""

    plans: List[Plan] = Field(default_factory=list)
