"""Request helpers shared by the routers."""

from typing import Optional

from fastapi import Request

from loanflow.services.context import RequestMeta


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def request_meta(request: Request, geolocation: Optional[dict] = None) -> RequestMeta:
    return RequestMeta(
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
        geolocation=geolocation,
    )
