"""
sitepress/features/plans/persistence.py

Plan storage over SQLAlchemy Core.

Owner-facing reads and writes embed the plan -> site -> user relation in the
statement's WHERE clause, so the ownership check and the write are one
conditional operation. A plan that exists under someone else's site looks
exactly like a plan that does not exist.
"""

from typing import Optional, List, Dict, Any
from datetime import datetime, timezone
from uuid import uuid4
from sqlalchemy import select, insert, update, delete, and_
from sqlalchemy.exc import IntegrityError

from sitepress.core.database import get_db_session, plans, sites
from sitepress.core.errors import ConflictError
from sitepress.features.sites.persistence import SitePersistence
from sitepress.models.plan import Plan, PlanWithSite
from sitepress.models.site import Site

PLACEHOLDER_IMAGE = "/placeholder.png"

_SITE_PREFIX = "site__"


def _site_columns():
    return [c.label(f"{_SITE_PREFIX}{c.name}") for c in sites.c]


def owned_plan_filter(plan_id: str, user_id: str):
    """WHERE clause for 'plan exists and its site belongs to user'."""
    owned_sites = select(sites.c.id).where(sites.c.user_id == user_id)
    return and_(plans.c.id == plan_id, plans.c.site_id.in_(owned_sites))


def row_to_plan(row) -> Plan:
    return Plan(
        id=row.id,
        site_id=row.site_id,
        title=row.title,
        description=row.description,
        content=row.content,
        slug=row.slug,
        image=row.image,
        image_blurhash=row.image_blurhash,
        published=row.published,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def row_to_plan_with_site(row) -> PlanWithSite:
    mapping = row._mapping
    site = Site(**{
        key[len(_SITE_PREFIX):]: value
        for key, value in mapping.items()
        if key.startswith(_SITE_PREFIX)
    })
    plan = row_to_plan(row)
    return PlanWithSite(**plan.model_dump(), site=site)


def _is_slug_collision(error: IntegrityError) -> bool:
    text = str(error.orig).lower()
    return "uq_plans_site_slug" in text or ("unique" in text and "slug" in text)


class PlanPersistence:
    """SQLAlchemy Core access to the plans table."""

    @staticmethod
    def find_owned_plan(session, plan_id: str, user_id: str, *, for_update: bool = False) -> Optional[PlanWithSite]:
        stmt = (
            select(plans, *_site_columns())
            .join(sites, plans.c.site_id == sites.c.id)
            .where(and_(plans.c.id == plan_id, sites.c.user_id == user_id))
        )
        if for_update:
            stmt = stmt.with_for_update()
        row = session.execute(stmt).first()
        return row_to_plan_with_site(row) if row else None

    @staticmethod
    def get_owned_plan(plan_id: str, user_id: str) -> Optional[PlanWithSite]:
        with get_db_session() as session:
            return PlanPersistence.find_owned_plan(session, plan_id, user_id)

    @staticmethod
    def create_plan(site_id: str, user_id: str, *, image_blurhash: Optional[str]) -> Optional[Plan]:
        """
        Insert an unpublished plan under site_id if user_id owns it.

        The owner lookup locks the site row and shares the insert's transaction.

        Returns:
            The new Plan, or None if the site is missing or not owned
        """
        with get_db_session() as session:
            site = SitePersistence.find_owned_site(session, site_id, user_id, for_update=True)
            if site is None:
                return None

            now = datetime.now(timezone.utc)
            row = {
                'id': uuid4().hex,
                'site_id': site.id,
                'title': None,
                'description': None,
                'content': None,
                'slug': uuid4().hex,
                'image': PLACEHOLDER_IMAGE,
                'image_blurhash': image_blurhash,
                'published': False,
                'created_at': now,
                'updated_at': now,
            }
            session.execute(insert(plans).values(**row))
            return Plan(**row)

    @staticmethod
    def update_owned_plan(plan_id: str, user_id: str, values: Dict[str, Any]) -> Optional[PlanWithSite]:
        """
        Apply values to the plan if user_id owns its site.

        Returns:
            The updated plan with its current site, or None if not found/not owned

        Raises:
            ConflictError: new slug collides with another plan of the same site
        """
        values = dict(values)
        values['updated_at'] = datetime.now(timezone.utc)
        try:
            with get_db_session() as session:
                result = session.execute(
                    update(plans)
                    .where(owned_plan_filter(plan_id, user_id))
                    .values(**values)
                )
                if result.rowcount == 0:
                    return None
                return PlanPersistence.find_owned_plan(session, plan_id, user_id)
        except IntegrityError as e:
            if _is_slug_collision(e):
                raise ConflictError(f"Slug '{values.get('slug')}' is already used by another plan on this site")
            raise

    @staticmethod
    def delete_owned_plan(plan_id: str, user_id: str) -> Optional[PlanWithSite]:
        """
        Delete the plan if user_id owns its site.

        Returns:
            Snapshot of the plan and its site taken before the row was removed,
            or None if not found/not owned
        """
        with get_db_session() as session:
            snapshot = PlanPersistence.find_owned_plan(session, plan_id, user_id, for_update=True)
            if snapshot is None:
                return None
            result = session.execute(delete(plans).where(owned_plan_filter(plan_id, user_id)))
            if result.rowcount == 0:
                return None
            return snapshot

    @staticmethod
    def list_site_plans(site_id: str, *, published: bool) -> List[Plan]:
        """Plans of one site with the given publish state, newest first."""
        with get_db_session() as session:
            rows = session.execute(
                select(plans)
                .where(and_(plans.c.site_id == site_id, plans.c.published == published))
                .order_by(plans.c.created_at.desc(), plans.c.id)
            ).all()
            return [row_to_plan(row) for row in rows]

    @staticmethod
    def find_published_plan(session, site_id: str, slug: str) -> Optional[Plan]:
        row = session.execute(
            select(plans).where(
                and_(plans.c.site_id == site_id, plans.c.slug == slug, plans.c.published.is_(True))
            )
        ).first()
        return row_to_plan(row) if row else None

    @staticmethod
    def list_published(session, site_id: str, *, exclude_plan_id: Optional[str] = None) -> List[Plan]:
        conditions = [plans.c.site_id == site_id, plans.c.published.is_(True)]
        if exclude_plan_id:
            conditions.append(plans.c.id != exclude_plan_id)
        rows = session.execute(
            select(plans).where(and_(*conditions)).order_by(plans.c.created_at.desc(), plans.c.id)
        ).all()
        return [row_to_plan(row) for row in rows]
