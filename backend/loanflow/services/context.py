"""Who is acting, and from where. Built by the API layer, read by services."""

from dataclasses import dataclass
from typing import Optional

APPLICANT_ROLE = "applicant"
STAFF_ROLES = frozenset({"staff", "admin"})


@dataclass(frozen=True)
class Actor:
    id: str
    name: str
    role: str
    tenant_id: str

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    def as_dict(self) -> dict:
        return {"id": self.id, "name": self.name}


@dataclass(frozen=True)
class RequestMeta:
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    # Device coordinates reported by the client, if it shared them
    geolocation: Optional[dict] = None
