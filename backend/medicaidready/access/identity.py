"""
Caller identity resolution.

The caller's submission id may arrive through several carriers. They are
tried in a fixed order and the first non-blank value wins:

    query ?submission_id  >  header x-submission-id  >  cookies
    (submission_id, mr_submission_id, medicaidready_submission_id)

Nothing here touches storage.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

from starlette.requests import Request


def _clean(value) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


@dataclass(frozen=True)
class QueryParamSource:
    name: str

    def extract(self, request: Request) -> Optional[str]:
        return _clean(request.query_params.get(self.name))


@dataclass(frozen=True)
class HeaderSource:
    name: str

    def extract(self, request: Request) -> Optional[str]:
        return _clean(request.headers.get(self.name))


@dataclass(frozen=True)
class CookieSource:
    name: str

    def extract(self, request: Request) -> Optional[str]:
        return _clean(request.cookies.get(self.name))


DEFAULT_IDENTITY_SOURCES = (
    QueryParamSource("submission_id"),
    HeaderSource("x-submission-id"),
    CookieSource("submission_id"),
    CookieSource("mr_submission_id"),
    CookieSource("medicaidready_submission_id"),
)


def resolve_submission_id(
    request: Request,
    sources: Sequence = DEFAULT_IDENTITY_SOURCES,
) -> Optional[str]:
    """Return the first non-blank submission id found, or None."""
    for source in sources:
        value = source.extract(request)
        if value:
            return value
    return None


def resolve_client_ip(request: Request) -> Optional[str]:
    """First x-forwarded-for hop, then x-real-ip, then the socket peer."""
    forwarded = _clean(request.headers.get("x-forwarded-for"))
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = _clean(request.headers.get("x-real-ip"))
    if real_ip:
        return real_ip

    if request.client and request.client.host:
        return request.client.host
    return None
