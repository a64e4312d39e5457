"""
Blur placeholders for cover images.

A placeholder is a tiny blurred rendition of the image, inlined as a data
URL so pages can show it while the full image loads. Renditions come from an
external image proxy; any failure yields None.
"""
from __future__ import annotations

import base64
import logging
from typing import Optional
from urllib.parse import urlparse

import httpx

from sitepress.core.config import settings

logger = logging.getLogger("sitepress")

# 1x1 neutral grey PNG used for freshly created plans
PLACEHOLDER_BLURHASH = (
    "data:image/png;base64,"
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mN8/x8AAuMB8DtXNJsAAAAASUVORK5CYII="
)

RENDITION_PARAMS = {"w": "50", "h": "50", "blur": "5"}


class PlaceholderGenerator:
    def __init__(self, proxy_url: Optional[str] = None, timeout_seconds: Optional[float] = None):
        self.proxy_url = proxy_url or settings.IMAGE_PROXY_URL
        self.timeout_seconds = timeout_seconds or settings.IMAGE_PLACEHOLDER_TIMEOUT_SECONDS

    async def blur_data_url(self, image: Optional[str]) -> Optional[str]:
        """Return a data URL for image's blurred rendition, or None if unavailable."""
        if not image:
            return None
        if urlparse(image).scheme not in ("http", "https"):
            return None

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.get(self.proxy_url, params={"url": image, **RENDITION_PARAMS})
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"placeholder.fetch_failed image={image!r}: {e}")
            return None

        mime = response.headers.get("content-type", "image/png").split(";")[0].strip() or "image/png"
        encoded = base64.b64encode(response.content).decode("ascii")
        return f"data:{mime};base64,{encoded}"
