"""Core module - settings, database, cache, security and OAuth."""

from .settings import settings

__all__ = ["settings"]
