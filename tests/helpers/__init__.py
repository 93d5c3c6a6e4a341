"""Test helper utilities for mail delivery queue tests."""

from .fakes import FakeTransport, FixedClock, SentMessage

__all__ = ["FakeTransport", "FixedClock", "SentMessage"]
