"""Observability utilities for the session core."""
from .logger import log_event
from .tracing import timed

__all__ = ["log_event", "timed"]
