"""
On-demand revalidation of public pages.

After a committed write, every public hostname serving the site gets one
POST to its revalidate endpoint. Calls run concurrently and are isolated:
a failure or timeout on one hostname is logged and reported as an
InvalidationWarning; it never blocks the others and never undoes the write.
Nothing is retried.
"""
from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

import httpx

from sitepress.core.config import settings
from sitepress.core.errors import InvalidationWarning
from sitepress.core.logging import log_event
from sitepress.models.site import Site

logger = logging.getLogger("sitepress")


def revalidate_path(tenant_key: str, slug: Optional[str]) -> str:
    if slug:
        return f"/_sites/{tenant_key}/{slug}"
    return f"/_sites/{tenant_key}"


class RevalidationClient:
    """HTTP client for a public host's `/api/revalidate` endpoint."""

    def __init__(
        self,
        scheme: Optional[str] = None,
        secret: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.scheme = scheme or settings.REVALIDATE_SCHEME
        self.secret = secret if secret is not None else settings.REVALIDATE_SECRET
        self.timeout_seconds = timeout_seconds or settings.REVALIDATE_TIMEOUT_SECONDS

    def url_for(self, hostname: str) -> str:
        return f"{self.scheme}://{hostname}/api/revalidate"

    async def revalidate(self, hostname: str, tenant_key: str, slug: Optional[str]) -> None:
        """Ask hostname to rebuild the page for (tenant_key, slug).

        Raises:
            httpx.HTTPError: transport failure or non-2xx response
        """
        headers = {}
        if self.secret:
            headers["x-revalidate-secret"] = self.secret
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            response = await client.post(
                self.url_for(hostname),
                json={"urlPath": revalidate_path(tenant_key, slug)},
                headers=headers,
            )
            response.raise_for_status()


class HostInvalidator:
    """Fans one invalidation out to every public hostname of a site."""

    def __init__(
        self,
        client: Optional[RevalidationClient] = None,
        public_domain: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.client = client or RevalidationClient()
        self.public_domain = public_domain or settings.PUBLIC_DOMAIN
        self.timeout_seconds = timeout_seconds or settings.REVALIDATE_TIMEOUT_SECONDS

    async def _invalidate_host(self, hostname: str, tenant_key: str, slug: Optional[str]) -> Optional[InvalidationWarning]:
        try:
            await asyncio.wait_for(
                self.client.revalidate(hostname, tenant_key, slug),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            reason = f"timed out after {self.timeout_seconds}s"
        except httpx.HTTPStatusError as e:
            reason = f"revalidate endpoint returned {e.response.status_code}"
        except httpx.HTTPError as e:
            reason = f"{type(e).__name__}: {e}"
        except Exception as e:
            logger.exception("revalidate.unexpected_error", extra={"hostname": hostname})
            reason = f"{type(e).__name__}: {e}"
        else:
            logger.info("revalidate.ok", extra={"hostname": hostname})
            return None

        log_event(
            "warning",
            "revalidate.failed",
            event_type="invalidation_warning",
            extra={"hostname": hostname, "slug": slug, "reason": reason},
        )
        return InvalidationWarning(hostname=hostname, slug=slug, reason=reason)

    async def invalidate(self, site: Site, slug: Optional[str]) -> List[InvalidationWarning]:
        """Invalidate (site, slug) on every hostname; returns one warning per failed host."""
        hosts = site.public_hosts(self.public_domain)
        if not hosts:
            return []
        results = await asyncio.gather(
            *(self._invalidate_host(hostname, tenant_key, slug) for hostname, tenant_key in hosts)
        )
        return [warning for warning in results if warning is not None]
