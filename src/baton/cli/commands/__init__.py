"""baton CLI commands."""

from .providers import providers
from .send import send
from .validate import validate

__all__ = ["providers", "send", "validate"]
