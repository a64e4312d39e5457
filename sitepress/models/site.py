"""
sitepress/models/site.py
Site models: one tenant, served on a subdomain and/or a custom domain.
"""

from datetime import datetime
from typing import List, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field


class Site(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str = Field(description="Owner user ID")
    name: Optional[str] = None
    description: Optional[str] = None
    subdomain: Optional[str] = None
    custom_domain: Optional[str] = None
    image: Optional[str] = None
    image_blurhash: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    def public_hosts(self, public_domain: str) -> List[Tuple[str, str]]:
        """(hostname, tenant key) pairs this site is served on, subdomain first."""
        hosts = []
        if self.subdomain:
            hosts.append((f"{self.subdomain}.{public_domain}", self.subdomain))
        if self.custom_domain:
            hosts.append((self.custom_domain, self.custom_domain))
        return hosts
