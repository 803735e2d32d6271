"""Data models for ttfbprobe."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from typing import Optional, Union

from ttfbprobe.config import (
    BROWSER_HEADERS,
    DEFAULT_DEADLINE,
    DEFAULT_DEADLINE_SCOPE,
    DEFAULT_MAX_REDIRECTS,
    VERIFY_TLS,
)


class ErrorKind(str, enum.Enum):
    """Stable failure taxonomy for a probe."""

    TOO_MANY_REDIRECTS = "too-many-redirects"
    CONNECTION_RESET = "connection-reset"
    TIMED_OUT = "timed-out"
    OTHER_TRANSPORT_ERROR = "other-transport-error"
    MALFORMED_TARGET = "malformed-target"


@dataclass(frozen=True)
class ProbeRequest:
    """One hop of a probe: the URL to fetch and how many redirects led here."""

    url: str
    hops: int = 0
    deadline: float = DEFAULT_DEADLINE

    def next_hop(self, url: str) -> ProbeRequest:
        return replace(self, url=url, hops=self.hops + 1)


@dataclass(frozen=True)
class ProbeResult:
    """Timing of the final hop of a successful probe."""

    url: str  # originally requested URL, not the redirect target
    ttfb: Optional[float]  # ms; None when the body was empty
    total: float  # ms
    bytes: int  # raw bytes as received, before any content decoding
    status_code: Optional[int] = None
    redirects: int = 0

    @property
    def ok(self) -> bool:
        return True

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "ttfb": self.ttfb,
            "total": self.total,
            "bytes": self.bytes,
        }


@dataclass(frozen=True)
class ProbeError:
    """A classified probe failure."""

    kind: ErrorKind
    message: str
    url: str = ""

    @property
    def ok(self) -> bool:
        return False

    def to_dict(self) -> dict:
        return {"url": self.url, "error": self.message}


ProbeOutcome = Union[ProbeResult, ProbeError]


@dataclass
class ProbeSettings:
    """Tunables for a probe invocation."""

    deadline: float = DEFAULT_DEADLINE  # seconds
    max_redirects: int = DEFAULT_MAX_REDIRECTS
    deadline_scope: str = DEFAULT_DEADLINE_SCOPE  # chain | hop
    verify_tls: bool = VERIFY_TLS
    headers: dict[str, str] = field(default_factory=lambda: dict(BROWSER_HEADERS))


@dataclass
class RunConfig:
    """Configuration for a CLI run."""

    targets: list[str] = field(default_factory=list)
    sequential: bool = False
    per_hop_deadline: bool = False
    json_output: bool = False
    csv_output: bool = False
    output_file: Optional[str] = None
    quiet: bool = False
    verbose: bool = False

    def probe_settings(self) -> ProbeSettings:
        return ProbeSettings(deadline_scope="hop" if self.per_hop_deadline else "chain")
