"""Application support: structured logging.

This package is library-agnostic. It must NEVER import from ``botapi/``.
"""

from core.logger import BotLogger

__all__ = [
    "BotLogger",
]
