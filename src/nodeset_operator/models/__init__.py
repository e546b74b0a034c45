"""Pydantic models for all CRDs."""

# Import all models to ensure they're registered
from . import nodeset
from . import deployment

__all__ = ["nodeset", "deployment"]
