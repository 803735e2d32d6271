"""Internal exception types raised inside a probe before classification."""

from __future__ import annotations


class ProbeException(Exception):
    """Base class for failures detected by ttfbprobe itself."""


class MalformedTarget(ProbeException):
    """The target string does not parse into a host and path."""


class TooManyRedirects(ProbeException):
    """The redirect chain exceeded the hop budget."""

    def __init__(self, hops: int) -> None:
        super().__init__(f"redirect budget exhausted after {hops} hops")
        self.hops = hops
