"""baton - failover orchestration for AI coding-agent CLIs."""

__version__ = "0.4.0"
