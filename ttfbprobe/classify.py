"""Map raw transport failures onto the probe error taxonomy.

Every failure a probe can run into ends up here exactly once and leaves as
a :class:`ProbeError`:

    TooManyRedirects                      -> too-many-redirects
    MalformedTarget, bad URL / scheme     -> malformed-target
    ConnectionResetError in the chain     -> connection-reset
    socket-level timeouts                 -> timed-out
    anything else                         -> other-transport-error

The deadline timer does not raise; it reports through :func:`deadline_error`
so both timeout triggers look the same to the caller.
"""

from __future__ import annotations

import asyncio
import errno
from typing import Iterator

import httpx

from ttfbprobe.config import (
    MSG_CONNECTION_RESET,
    MSG_DEADLINE,
    MSG_SOCKET_TIMEOUT,
    MSG_TOO_MANY_REDIRECTS,
)
from ttfbprobe.errors import MalformedTarget, TooManyRedirects
from ttfbprobe.models import ErrorKind, ProbeError


def _exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield *exc* and every exception it was raised from or during."""
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def _is_connection_reset(exc: BaseException) -> bool:
    for link in _exception_chain(exc):
        if isinstance(link, ConnectionResetError):
            return True
        if isinstance(link, OSError) and link.errno == errno.ECONNRESET:
            return True
    return False


def _is_socket_timeout(exc: BaseException) -> bool:
    return any(
        isinstance(link, (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError))
        for link in _exception_chain(exc)
    )


def _describe(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


def classify_exception(
    exc: BaseException,
    url: str = "",
    network_started: bool = False,
) -> ProbeError:
    """Convert an exception raised while probing *url* into a ProbeError.

    A bad URL or scheme only counts as ``malformed-target`` before any
    response was received; once a redirect has pointed somewhere unusable
    it is an ``other-transport-error``.
    """
    if isinstance(exc, TooManyRedirects):
        return ProbeError(ErrorKind.TOO_MANY_REDIRECTS, MSG_TOO_MANY_REDIRECTS, url)

    if isinstance(exc, MalformedTarget):
        return ProbeError(ErrorKind.MALFORMED_TARGET, _describe(exc), url)

    if isinstance(exc, (httpx.InvalidURL, httpx.UnsupportedProtocol)):
        kind = ErrorKind.OTHER_TRANSPORT_ERROR if network_started else ErrorKind.MALFORMED_TARGET
        return ProbeError(kind, _describe(exc), url)

    # Reset is checked first: a reset surfaced as a read timeout is still a reset.
    if _is_connection_reset(exc):
        return ProbeError(ErrorKind.CONNECTION_RESET, MSG_CONNECTION_RESET, url)

    if _is_socket_timeout(exc):
        return ProbeError(ErrorKind.TIMED_OUT, MSG_SOCKET_TIMEOUT, url)

    return ProbeError(ErrorKind.OTHER_TRANSPORT_ERROR, _describe(exc), url)


def deadline_error(url: str = "") -> ProbeError:
    """Error delivered when the probe deadline timer fires."""
    return ProbeError(ErrorKind.TIMED_OUT, MSG_DEADLINE, url)
