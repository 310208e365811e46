"""API route handlers."""
from . import assets, brokers, snaptrade

__all__ = ["assets", "brokers", "snaptrade"]
