"""Mail delivery queue: prioritised, retrying in-memory notification delivery."""

__version__ = "0.1.0"
