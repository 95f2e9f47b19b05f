"""API layer for content resources and the global update signal."""

from .content_api import ContentAPI
from .update_api import UpdateAPI

__all__ = ["ContentAPI", "UpdateAPI"]
