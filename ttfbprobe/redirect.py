"""Redirect following policy.

A redirect is only followed when the response carries a usable
``Location`` header.  The hop counter travels on the
:class:`~ttfbprobe.models.ProbeRequest` so concurrent probes never share
redirect state.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from ttfbprobe.config import DEFAULT_MAX_REDIRECTS
from ttfbprobe.errors import TooManyRedirects
from ttfbprobe.models import ProbeRequest

logger = logging.getLogger(__name__)


def is_redirect(status_code: int) -> bool:
    return 300 <= status_code < 400


def redirect_location(response: httpx.Response) -> Optional[str]:
    """Return the ``Location`` header, or None when it is absent or blank."""
    location = response.headers.get("location", "").strip()
    return location or None


def resolve_location(current_url: str, location: str) -> str:
    """Resolve *location* against the URL that produced it.

    Handles absolute (``https://other/x``), scheme-relative (``//other/x``),
    root-relative (``/x``) and path-relative (``x``) values.
    """
    return str(httpx.URL(current_url).join(location))


class RedirectPolicy:
    """Decides whether a redirect response may be followed."""

    def __init__(self, max_redirects: int = DEFAULT_MAX_REDIRECTS) -> None:
        self.max_redirects = max_redirects

    def follow(self, request: ProbeRequest, location: str) -> ProbeRequest:
        """Return the request for the next hop.

        Raises
        ------
        TooManyRedirects
            When *request* has already used up the hop budget.
        """
        if request.hops >= self.max_redirects:
            raise TooManyRedirects(request.hops)

        target = resolve_location(request.url, location)
        logger.debug(
            "Following redirect %d/%d: %s -> %s",
            request.hops + 1,
            self.max_redirects,
            request.url,
            target,
        )
        return request.next_hop(target)
