"""Aggregate import for all API route modules."""

from . import auth, profile, posts

__all__ = ["auth", "profile", "posts"]
