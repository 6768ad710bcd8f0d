"""Read-only replay of transform output over a Gmail-compatible HTTP surface."""

from .app import create_app
from .store import MessageStore

__all__ = ["MessageStore", "create_app"]
