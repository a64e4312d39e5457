"""
sitepress/features/plans/gateway.py

Tenant-scoped access to plans.

Every operation takes the caller's user id and checks it against the
plan -> site -> user ownership chain inside the query that reads or writes
the row. Missing and not-owned resources both raise the same NotFoundError.
Committed updates and deletes are followed by a best-effort invalidation of
the site's public hostnames; failures come back as warnings on the result.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from sitepress.core.errors import BadRequestError, NotFoundError, PersistenceError
from sitepress.core.logging import log_event
from sitepress.features.images.placeholder import PLACEHOLDER_BLURHASH, PlaceholderGenerator
from sitepress.features.plans.persistence import PlanPersistence
from sitepress.features.revalidation.service import HostInvalidator
from sitepress.features.sites.persistence import SitePersistence
from sitepress.models.plan import Plan, PlanWithSite, MutationResult, UPDATABLE_FIELDS
from sitepress.models.site import Site

logger = logging.getLogger("sitepress")

MAX_ID_LENGTH = 100
SITE_NOT_FOUND = "Site not found"
PLAN_NOT_FOUND = "Plan not found"


def _require_caller(caller_id: Any) -> str:
    if not isinstance(caller_id, str) or not caller_id.strip():
        raise BadRequestError("Missing or misconfigured session ID")
    return caller_id


def _require_id(value: Any, name: str) -> str:
    if not isinstance(value, str) or not value.strip() or len(value) > MAX_ID_LENGTH:
        raise BadRequestError(f"Missing or misconfigured {name}")
    return value


def _validate_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    unknown = set(fields) - set(UPDATABLE_FIELDS)
    if unknown:
        raise BadRequestError(f"Unknown plan fields: {', '.join(sorted(unknown))}")

    values = dict(fields)
    if "slug" in values:
        slug = values["slug"]
        if slug is None:
            values.pop("slug")
        elif not isinstance(slug, str) or not slug.strip():
            raise BadRequestError("slug must be a non-empty string")
    if "published" in values:
        if values["published"] is None:
            values.pop("published")
        elif not isinstance(values["published"], bool):
            raise BadRequestError("published must be a boolean")
    for key in ("title", "description", "content", "image"):
        if key in values and values[key] is not None and not isinstance(values[key], str):
            raise BadRequestError(f"{key} must be a string")
    return values


@contextmanager
def _store_errors(operation: str, *, user_id: str, site_id: Optional[str] = None, plan_id: Optional[str] = None):
    """Log store failures with context and hide their detail from callers."""
    try:
        yield
    except SQLAlchemyError as e:
        log_event(
            "error",
            f"store.{operation}.failed",
            user_id=user_id,
            site_id=site_id,
            plan_id=plan_id,
            error_code="internal_error",
            extra={"error": repr(e)},
            exc_info=True,
        )
        raise PersistenceError(f"{operation} failed") from e


class AuthorizedMutationGateway:
    def __init__(
        self,
        plans: Optional[PlanPersistence] = None,
        invalidator: Optional[HostInvalidator] = None,
        placeholders: Optional[PlaceholderGenerator] = None,
    ):
        self.plans = plans or PlanPersistence()
        self.invalidator = invalidator or HostInvalidator()
        self.placeholders = placeholders or PlaceholderGenerator()

    def authorize_site_access(self, caller_id: str, site_id: str) -> Site:
        """Return the site if caller_id owns it.

        Raises:
            BadRequestError: caller or site id missing/malformed
            NotFoundError: site missing or owned by someone else
        """
        _require_caller(caller_id)
        _require_id(site_id, "site ID")
        with _store_errors("authorize_site", user_id=caller_id, site_id=site_id):
            site = SitePersistence.get_owned_site(site_id, caller_id)
        if site is None:
            log_event("info", "site.not_found", user_id=caller_id, site_id=site_id)
            raise NotFoundError(SITE_NOT_FOUND)
        return site

    def authorize_plan_access(self, caller_id: str, plan_id: str) -> PlanWithSite:
        """Return the plan with its site if caller_id owns the site.

        Raises:
            BadRequestError: caller or plan id missing/malformed
            NotFoundError: plan missing or its site owned by someone else
        """
        _require_caller(caller_id)
        _require_id(plan_id, "plan ID")
        with _store_errors("authorize_plan", user_id=caller_id, plan_id=plan_id):
            plan = self.plans.get_owned_plan(plan_id, caller_id)
        if plan is None:
            log_event("info", "plan.not_found", user_id=caller_id, plan_id=plan_id)
            raise NotFoundError(PLAN_NOT_FOUND)
        return plan

    def create_plan_for_site(self, caller_id: str, site_id: str) -> Plan:
        """Create an unpublished plan with placeholder cover under an owned site."""
        _require_caller(caller_id)
        _require_id(site_id, "site ID")
        with _store_errors("create_plan", user_id=caller_id, site_id=site_id):
            plan = self.plans.create_plan(site_id, caller_id, image_blurhash=PLACEHOLDER_BLURHASH)
        if plan is None:
            log_event("info", "site.not_found", user_id=caller_id, site_id=site_id)
            raise NotFoundError(SITE_NOT_FOUND)
        log_event("info", "plan.created", user_id=caller_id, site_id=site_id, plan_id=plan.id)
        return plan

    async def update_plan(self, caller_id: str, plan_id: str, fields: Dict[str, Any]) -> MutationResult:
        """Apply a partial update and invalidate the site's public pages.

        A changed image gets a fresh blur placeholder before the write.

        Raises:
            BadRequestError: malformed ids or field values
            NotFoundError: plan missing or not owned
            ConflictError: slug already used on the same site
        """
        values = _validate_fields(fields or {})
        current = self.authorize_plan_access(caller_id, plan_id)

        if "image" in values and values["image"] != current.image:
            blurhash = await self.placeholders.blur_data_url(values["image"])
            values["image_blurhash"] = blurhash or PLACEHOLDER_BLURHASH

        with _store_errors("update_plan", user_id=caller_id, plan_id=plan_id):
            updated = self.plans.update_owned_plan(plan_id, caller_id, values)
        if updated is None:
            # Ownership or existence changed between the read and the write
            raise NotFoundError(PLAN_NOT_FOUND)

        log_event(
            "info",
            "plan.updated",
            user_id=caller_id,
            site_id=updated.site_id,
            plan_id=plan_id,
            extra={"fields": ",".join(sorted(values))},
        )
        warnings = await self.invalidator.invalidate(updated.site, updated.slug)
        plan = Plan(**updated.model_dump(exclude={"site"}))
        return MutationResult[Plan](data=plan, warnings=[w.to_dict() for w in warnings])

    async def delete_plan(self, caller_id: str, plan_id: str) -> MutationResult:
        """Delete an owned plan, then invalidate the hostnames that served it."""
        _require_caller(caller_id)
        _require_id(plan_id, "plan ID")
        with _store_errors("delete_plan", user_id=caller_id, plan_id=plan_id):
            snapshot = self.plans.delete_owned_plan(plan_id, caller_id)
        if snapshot is None:
            log_event("info", "plan.not_found", user_id=caller_id, plan_id=plan_id)
            raise NotFoundError(PLAN_NOT_FOUND)

        log_event("info", "plan.deleted", user_id=caller_id, site_id=snapshot.site_id, plan_id=plan_id)
        warnings = await self.invalidator.invalidate(snapshot.site, snapshot.slug)
        return MutationResult[dict](data={"planId": plan_id}, warnings=[w.to_dict() for w in warnings])

    def list_plans(self, caller_id: str, site_id: str, published: Optional[bool] = None) -> Tuple[List[Plan], Optional[Site]]:
        """Plans of an owned site, newest first; ([], None) when the site isn't the caller's."""
        _require_caller(caller_id)
        _require_id(site_id, "site ID")
        with _store_errors("list_plans", user_id=caller_id, site_id=site_id):
            site = SitePersistence.get_owned_site(site_id, caller_id)
            if site is None:
                return [], None
            plans = self.plans.list_site_plans(site.id, published=True if published is None else published)
        return plans, site
