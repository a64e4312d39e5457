"""
sitepress/features/sites/persistence.py

Site storage. Every owner-facing lookup carries the `user_id` filter in the
query itself; public lookups go by subdomain or custom domain.
"""

from typing import Optional
from datetime import datetime, timezone
from uuid import uuid4
from sqlalchemy import select, insert, and_
from sqlalchemy.exc import IntegrityError

from sitepress.core.database import get_db_session, sites
from sitepress.core.errors import ConflictError
from sitepress.models.site import Site


def row_to_site(row) -> Site:
    return Site(
        id=row.id,
        user_id=row.user_id,
        name=row.name,
        description=row.description,
        subdomain=row.subdomain,
        custom_domain=row.custom_domain,
        image=row.image,
        image_blurhash=row.image_blurhash,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def owned_site_filter(site_id: str, user_id: str):
    """WHERE clause for 'site exists and belongs to user'."""
    return and_(sites.c.id == site_id, sites.c.user_id == user_id)


def host_filter(site: str):
    """Identifiers containing a dot are custom domains, anything else a subdomain."""
    if "." in site:
        return sites.c.custom_domain == site
    return sites.c.subdomain == site


class SitePersistence:
    """SQLAlchemy Core access to the sites table."""

    @staticmethod
    def create_site(
        user_id: str,
        *,
        name: Optional[str] = None,
        description: Optional[str] = None,
        subdomain: Optional[str] = None,
        custom_domain: Optional[str] = None,
        site_id: Optional[str] = None,
    ) -> Site:
        """
        Insert a site owned by user_id.

        Raises:
            ConflictError: subdomain or custom domain already taken
        """
        now = datetime.now(timezone.utc)
        row = {
            'id': site_id or uuid4().hex,
            'user_id': user_id,
            'name': name,
            'description': description,
            'subdomain': subdomain or None,
            'custom_domain': custom_domain or None,
            'image': None,
            'image_blurhash': None,
            'created_at': now,
            'updated_at': now,
        }
        try:
            with get_db_session() as session:
                session.execute(insert(sites).values(**row))
        except IntegrityError:
            raise ConflictError("Subdomain or custom domain is already in use")
        return Site(**row)

    @staticmethod
    def find_owned_site(session, site_id: str, user_id: str, *, for_update: bool = False) -> Optional[Site]:
        stmt = select(sites).where(owned_site_filter(site_id, user_id))
        if for_update:
            stmt = stmt.with_for_update()
        row = session.execute(stmt).first()
        return row_to_site(row) if row else None

    @staticmethod
    def get_owned_site(site_id: str, user_id: str) -> Optional[Site]:
        with get_db_session() as session:
            return SitePersistence.find_owned_site(session, site_id, user_id)

    @staticmethod
    def find_by_host(session, site: str):
        return session.execute(select(sites).where(host_filter(site))).first()
