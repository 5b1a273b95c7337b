"""HTTP surface for the UniGestor task board."""

from .api import create_app

__all__ = ["create_app"]
