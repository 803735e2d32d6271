"""Constants and configuration for ttfbprobe."""

# Probe policy
DEFAULT_DEADLINE = 15.0       # seconds
DEFAULT_MAX_REDIRECTS = 3
DEADLINE_SCOPES = ("chain", "hop")
DEFAULT_DEADLINE_SCOPE = "chain"  # one timer for the whole redirect chain

# Certificate validation is off so misconfigured and self-signed endpoints
# can still be timed.  Do not point the probe at trust-sensitive hosts.
VERIFY_TLS = False

DEFAULT_SCHEME = "https://"

# Browser-like request headers.  Sent unchanged for every target so results
# are comparable across origins.
BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "Accept-Encoding": "gzip, deflate, br",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
}

# Error messages surfaced to callers
MSG_TOO_MANY_REDIRECTS = "Too many redirects"
MSG_CONNECTION_RESET = "Connection reset by server"
MSG_SOCKET_TIMEOUT = "Connection timed out"
MSG_DEADLINE = "Request timed out"

# Latency color thresholds (milliseconds)
PHASE_THRESHOLDS = {
    "ttfb": {"fast": 100.0, "medium": 400.0},
    "total": {"fast": 300.0, "medium": 1000.0},
}
