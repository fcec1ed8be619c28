"""API route handlers."""
from . import banking, deps

__all__ = ["banking", "deps"]
