"""Constants for tap-service."""

from common.version import __version__

__all__ = ['__version__']
