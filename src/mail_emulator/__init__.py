"""Mail Emulator - synthetic Gmail-shaped fixtures from raw mail archives.

This package converts a foldered mail corpus into a deterministic,
privacy-safe dataset shaped like the Gmail messages API, and replays it
through a read-only HTTP service for integration testing.
"""

__version__ = "0.1.0"
__author__ = "Trickl"

from mail_emulator.config import Settings, get_settings

__all__ = ["Settings", "get_settings", "__version__", "__author__"]
