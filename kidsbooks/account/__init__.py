"""Endpoints scoped to the current user (profile, lists, following)."""

from .following import router as following_router  # noqa: F401
from .router import router as account_router  # noqa: F401
