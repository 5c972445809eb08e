"""
Configuration for the editor service.
`settings` is read once at import from the environment and `.env`.
"""
from .settings import settings

__all__ = ["settings"]
