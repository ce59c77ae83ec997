"""Approximate location of a client IP, for timeline enrichment only."""

import ipaddress
import logging
from typing import Optional

import httpx

from loanflow.config import settings

logger = logging.getLogger(__name__)

LOCAL_LABEL = "Local/Privada"


def _is_local(ip: str) -> bool:
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        return False
    return address.is_loopback or address.is_private or address.is_link_local


async def approximate_location(ip: Optional[str]) -> Optional[str]:
    """Return "city, region, country" for a public IP.

    Loopback and private ranges resolve to ``LOCAL_LABEL`` without a network
    call. Returns None on any failure; this function never raises.
    """
    if not ip:
        return None
    if _is_local(ip):
        return LOCAL_LABEL
    if not settings.geolocation_enabled:
        return None

    url = settings.geolocation_url.format(ip=ip)
    try:
        async with httpx.AsyncClient() as client:
            response = await client.get(url, timeout=settings.geolocation_timeout_seconds)
        data = response.json()
    except Exception as e:
        logger.warning("Geolocation lookup failed for %s: %s", ip, e)
        return None

    if not isinstance(data, dict) or data.get("status") != "success":
        return None
    parts = [data.get(key) for key in ("city", "regionName", "country")]
    return ", ".join(p for p in parts if p) or None
