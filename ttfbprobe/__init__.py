"""ttfbprobe: time-to-first-byte and transfer timing for arbitrary URLs."""

__version__ = "0.1.0"
