"""Pure data models shared across services."""

from .error_models import ErrorDetail

__all__ = ["ErrorDetail"]
