"""Constants for tap-unlock."""

from common.version import __version__

__all__ = ['__version__']
