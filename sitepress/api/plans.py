"""
sitepress/api/plans.py
Plan API: one `/api/plan` endpoint routed by method, session required.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request, Response

from sitepress.core.auth import get_current_user_id
from sitepress.core.errors import BadRequestError, MethodNotAllowedError
from sitepress.features.plans.gateway import AuthorizedMutationGateway
from sitepress.models.plan import MutationResult, PlanUpdateRequest

router = APIRouter(prefix="/api", tags=["plans"])

ALLOWED_METHODS = ["GET", "POST", "DELETE", "PUT"]
WARNINGS_HEADER = "x-invalidation-warnings"


def get_gateway() -> AuthorizedMutationGateway:
    return AuthorizedMutationGateway()


def _query_param(request: Request, name: str) -> Optional[str]:
    values = request.query_params.getlist(name)
    if len(values) > 1:
        raise BadRequestError("Bad request. Query parameters are not valid.")
    return values[0] if values else None


def _parse_published(raw: Optional[str]) -> bool:
    if raw is None or raw == "":
        return True
    lowered = raw.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    raise BadRequestError("Bad request. Query parameters are not valid.")


def _with_warnings(response: Response, result: MutationResult) -> list:
    if result.warnings:
        response.headers[WARNINGS_HEADER] = str(len(result.warnings))
    return result.warnings


@router.get("/plan")
def get_plan_endpoint(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    gateway: AuthorizedMutationGateway = Depends(get_gateway),
):
    """Fetch one plan (`planId`) or the plans of a site (`siteId`, `published`)."""
    plan_id = _query_param(request, "planId")
    site_id = _query_param(request, "siteId")
    published = _parse_published(_query_param(request, "published"))

    if plan_id:
        plan = gateway.authorize_plan_access(user_id, plan_id)
        return {"data": plan.model_dump(mode="json")}

    plans, site = gateway.list_plans(user_id, site_id, published)
    return {
        "data": [p.model_dump(mode="json") for p in plans],
        "count": len(plans),
        "site": site.model_dump(mode="json") if site else None,
    }


@router.post("/plan", status_code=201)
def create_plan_endpoint(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    gateway: AuthorizedMutationGateway = Depends(get_gateway),
):
    """Create an empty draft plan under `siteId`."""
    site_id = _query_param(request, "siteId")
    plan = gateway.create_plan_for_site(user_id, site_id)
    return {"data": {"planId": plan.id}}


@router.put("/plan")
async def update_plan_endpoint(
    body: PlanUpdateRequest,
    response: Response,
    user_id: str = Depends(get_current_user_id),
    gateway: AuthorizedMutationGateway = Depends(get_gateway),
):
    """Update a plan's content, metadata or publish flag."""
    result = await gateway.update_plan(user_id, body.id, body.changed_fields())
    return {
        "data": result.data.model_dump(mode="json"),
        "warnings": _with_warnings(response, result),
    }


@router.delete("/plan")
async def delete_plan_endpoint(
    request: Request,
    response: Response,
    user_id: str = Depends(get_current_user_id),
    gateway: AuthorizedMutationGateway = Depends(get_gateway),
):
    """Delete a plan (`planId`)."""
    plan_id = _query_param(request, "planId")
    result = await gateway.delete_plan(user_id, plan_id)
    return {"data": result.data, "warnings": _with_warnings(response, result)}


async def plan_method_not_allowed(request: Request):
    """Any method without its own route: session first, then 405 with the full Allow list."""
    await get_current_user_id(request, request.headers.get("x-user-id"))
    raise MethodNotAllowedError(
        f"Method {request.method} Not Allowed",
        headers={"Allow": ", ".join(ALLOWED_METHODS)},
    )


# Registered last and without a method list so it matches every method the
# routes above do not handle
router.add_route(f"{router.prefix}/plan", plan_method_not_allowed, include_in_schema=False)
