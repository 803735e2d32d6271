"""Core timing engine for ttfbprobe.

Times a single GET against an arbitrary URL:

  start -> response headers -> first body byte (TTFB) -> end of body (total)

Timestamps come from time.perf_counter() and are reported in
milliseconds.  Byte counts are taken from ``Response.aiter_raw()`` so they
reflect what came off the wire, not the decompressed body.

Every invocation resolves to exactly one :class:`ProbeResult` or
:class:`ProbeError`.  The worker coroutine and the deadline timer race to
settle a once-only :class:`Outcome`; whichever gets there first wins and
everything after it is dropped.

Public API:
    probe       -- time one target
    probe_all   -- time several targets, concurrently or one by one
    run_probe   -- probe and return the JSON-ready dict for an HTTP caller
"""

from __future__ import annotations

import asyncio
import ipaddress
import logging
import re
import time
from typing import Callable, Iterable, Optional

import httpx

from ttfbprobe.classify import classify_exception, deadline_error
from ttfbprobe.config import DEADLINE_SCOPES, DEFAULT_SCHEME
from ttfbprobe.errors import MalformedTarget
from ttfbprobe.models import (
    ErrorKind,
    ProbeError,
    ProbeOutcome,
    ProbeRequest,
    ProbeResult,
    ProbeSettings,
)
from ttfbprobe.redirect import RedirectPolicy, is_redirect, redirect_location

logger = logging.getLogger(__name__)

# Signature: (index, target, outcome_or_none).  None means the probe is starting.
ProgressCallback = Callable[[int, str, Optional[ProbeOutcome]], None]

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)
_LABEL_RE = re.compile(r"^[A-Za-z0-9_](?:[A-Za-z0-9_-]{0,61}[A-Za-z0-9_])?$")


# ---------------------------------------------------------------------------
# Target normalization
# ---------------------------------------------------------------------------

def normalize_target(target: str) -> str:
    """Return *target* as an absolute http(s) URL.

    ``https://`` is prepended when the string carries neither ``http://``
    nor ``https://``.

    Raises
    ------
    MalformedTarget
        When the string is empty or does not parse into a URL with a host.
    """
    candidate = (target or "").strip()
    if not candidate:
        raise MalformedTarget("Invalid URL: empty target")

    if not _SCHEME_RE.match(candidate):
        candidate = DEFAULT_SCHEME + candidate

    try:
        url = httpx.URL(candidate)
    except httpx.InvalidURL as exc:
        raise MalformedTarget(f"Invalid URL {target!r}: {exc}") from exc

    if not url.host:
        raise MalformedTarget(f"Invalid URL {target!r}: missing host")

    if not _valid_host(url.raw_host.decode("ascii", errors="replace")):
        raise MalformedTarget(f"Invalid URL {target!r}: invalid host {url.host!r}")

    if url.port is not None and not 1 <= url.port <= 65535:
        raise MalformedTarget(f"Invalid URL {target!r}: port {url.port} out of range")

    return candidate


def _valid_host(host: str) -> bool:
    """Check *host* (IDNA-encoded, no brackets) is an IP literal or DNS name."""
    try:
        ipaddress.ip_address(host)
        return True
    except ValueError:
        pass

    name = host[:-1] if host.endswith(".") else host
    if not name or len(name) > 253:
        return False
    labels = name.split(".")
    if not all(_LABEL_RE.match(label) for label in labels):
        return False
    # An all-numeric final label is only valid as part of an IPv4 address.
    return not labels[-1].isdigit()


def split_targets(text: str) -> list[str]:
    """Split a comma-separated list of targets, dropping blanks."""
    return [part.strip() for part in text.split(",") if part.strip()]


def _elapsed_ms(start: float, end: float) -> float:
    return round((end - start) * 1000.0, 3)


# ---------------------------------------------------------------------------
# Once-only completion
# ---------------------------------------------------------------------------

class Outcome:
    """A result slot that can be settled exactly once.

    Later calls to :meth:`settle` are ignored and return False.
    """

    def __init__(self) -> None:
        self._future: asyncio.Future = asyncio.get_running_loop().create_future()

    @property
    def settled(self) -> bool:
        return self._future.done()

    def settle(self, outcome: ProbeOutcome) -> bool:
        if self._future.done():
            logger.debug("Discarding late outcome for %s: %r", outcome.url, outcome)
            return False
        self._future.set_result(outcome)
        return True

    async def wait(self) -> ProbeOutcome:
        return await self._future


# ---------------------------------------------------------------------------
# Single invocation
# ---------------------------------------------------------------------------

class _ProbeRun:
    """State owned by one top-level probe: worker task, timer and outcome."""

    def __init__(
        self,
        url: str,
        settings: ProbeSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.url = url
        self.settings = settings
        self.policy = RedirectPolicy(settings.max_redirects)
        self._transport = transport
        self._outcome = Outcome()
        self._timer: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task] = None
        self._responses = 0  # response headers received across all hops

    async def run(self) -> ProbeOutcome:
        request = ProbeRequest(url=self.url, deadline=self.settings.deadline)
        self._task = asyncio.ensure_future(self._follow_chain(request))
        self._task.add_done_callback(self._on_worker_done)
        self._arm_deadline(request.deadline)

        try:
            return await self._outcome.wait()
        finally:
            self._disarm_deadline()
            if not self._task.done():
                self._task.cancel()
            # Let the worker close its connection before returning.
            await asyncio.gather(self._task, return_exceptions=True)

    # -- deadline -----------------------------------------------------------

    def _arm_deadline(self, deadline: float) -> None:
        self._disarm_deadline()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(deadline, self._on_deadline, deadline)

    def _disarm_deadline(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_deadline(self, deadline: float) -> None:
        self._timer = None
        if self._outcome.settle(deadline_error(self.url)):
            logger.debug(
                "Deadline of %.1fs reached for %s, aborting",
                deadline,
                self.url,
            )
            if self._task is not None:
                self._task.cancel()

    # -- worker -------------------------------------------------------------

    def _on_worker_done(self, task: asyncio.Task) -> None:
        if self._outcome.settled:
            return
        exc = None if task.cancelled() else task.exception()
        if exc is not None:
            self._outcome.settle(
                classify_exception(exc, self.url, network_started=self._responses > 0)
            )
        else:
            self._outcome.settle(
                ProbeError(
                    ErrorKind.OTHER_TRANSPORT_ERROR,
                    "Probe ended without a result",
                    self.url,
                )
            )

    async def _follow_chain(self, request: ProbeRequest) -> None:
        current: Optional[ProbeRequest] = request
        while current is not None:
            try:
                current = await self._fetch(current)
            except Exception as exc:
                error = classify_exception(exc, self.url, network_started=self._responses > 0)
                logger.debug(
                    "Probe of %s failed at %s: %s (%s)",
                    self.url,
                    current.url,
                    error.kind.value,
                    exc,
                )
                self._outcome.settle(error)
                return

    def _client(self, deadline: float) -> httpx.AsyncClient:
        # A fresh client per hop: one connection each, nothing pooled.
        return httpx.AsyncClient(
            transport=self._transport,
            verify=self.settings.verify_tls,
            timeout=httpx.Timeout(deadline),
            follow_redirects=False,
        )

    async def _fetch(self, request: ProbeRequest) -> Optional[ProbeRequest]:
        """Fetch one hop.

        Returns the next hop's request when a redirect is followed, or None
        once an outcome has been settled.
        """
        if request.hops and self.settings.deadline_scope == "hop":
            self._arm_deadline(request.deadline)

        async with self._client(request.deadline) as client:
            start = time.perf_counter()
            async with client.stream(
                "GET", request.url, headers=self.settings.headers,
            ) as response:
                self._responses += 1
                if is_redirect(response.status_code):
                    location = redirect_location(response)
                    if location:
                        return self.policy.follow(request, location)
                    logger.debug(
                        "%s answered %d without Location, treating as final",
                        request.url,
                        response.status_code,
                    )

                first_byte: Optional[float] = None
                received = 0
                if response.is_stream_consumed:
                    # Body was read before it reached us; count what came off the wire.
                    received = response.num_bytes_downloaded
                    if received:
                        first_byte = time.perf_counter()
                else:
                    async for chunk in response.aiter_raw():
                        if not chunk:
                            continue
                        if first_byte is None:
                            first_byte = time.perf_counter()
                        received += len(chunk)

                done = time.perf_counter()
                self._outcome.settle(
                    ProbeResult(
                        url=self.url,
                        ttfb=_elapsed_ms(start, first_byte) if first_byte is not None else None,
                        total=_elapsed_ms(start, done),
                        bytes=received,
                        status_code=response.status_code,
                        redirects=request.hops,
                    )
                )
        return None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

async def probe(
    target: str,
    settings: Optional[ProbeSettings] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ProbeOutcome:
    """Time a GET of *target* and return a ProbeResult or ProbeError.

    Never raises for network or target problems; those come back as a
    :class:`ProbeError`.  *transport* replaces the network layer and is
    meant for tests.
    """
    settings = settings or ProbeSettings()
    if settings.deadline_scope not in DEADLINE_SCOPES:
        raise ValueError(
            f"Unknown deadline scope: {settings.deadline_scope!r}. "
            f"Available: {list(DEADLINE_SCOPES)}"
        )

    try:
        url = normalize_target(target)
    except MalformedTarget as exc:
        logger.debug("Rejected target %r: %s", target, exc)
        return classify_exception(exc, target or "")

    outcome = await _ProbeRun(url, settings, transport).run()
    if isinstance(outcome, ProbeResult):
        logger.debug(
            "Probed %s: ttfb=%s total=%.1fms bytes=%d",
            url,
            outcome.ttfb,
            outcome.total,
            outcome.bytes,
        )
    return outcome


async def probe_all(
    targets: Iterable[str],
    settings: Optional[ProbeSettings] = None,
    *,
    sequential: bool = False,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    progress_callback: ProgressCallback | None = None,
) -> list[ProbeOutcome]:
    """Probe every target once, returning outcomes in input order.

    Probes run concurrently via ``asyncio.gather`` unless *sequential* is
    set, in which case each waits for the previous one.

    Parameters
    ----------
    targets:
        URLs to probe; the scheme may be omitted.
    settings:
        Shared probe settings.  Each probe still owns its own connection.
    progress_callback:
        Optional callable invoked with the target's position and URL when
        a probe starts (with ``None``) and when it finishes (with its
        outcome).  Positions tell duplicate URLs apart.
    """
    async def _safe_probe(index: int, target: str) -> ProbeOutcome:
        """Wrapper that turns unexpected crashes into a per-target error."""
        if progress_callback:
            progress_callback(index, target, None)
        try:
            outcome = await probe(target, settings, transport=transport)
        except Exception as exc:
            logger.exception("Fatal error probing %s", target)
            outcome = ProbeError(
                ErrorKind.OTHER_TRANSPORT_ERROR,
                f"Fatal probe error: {exc}",
                target,
            )
        if progress_callback:
            progress_callback(index, target, outcome)
        return outcome

    target_list = list(targets)
    if sequential:
        return [await _safe_probe(i, t) for i, t in enumerate(target_list)]

    results = await asyncio.gather(
        *(_safe_probe(i, t) for i, t in enumerate(target_list))
    )
    return list(results)


async def run_probe(
    url: str,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> dict:
    """Probe *url* with default settings and return a JSON-ready dict.

    Success: ``{"url", "ttfb", "total", "bytes"}``.
    Failure: ``{"url", "error"}``.
    """
    outcome = await probe(url, transport=transport)
    return outcome.to_dict()
