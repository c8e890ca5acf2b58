"""Tap Unlock - record and confirm a tap pattern.

Drives a recording session against tap-service: record a pattern, tap it
again to confirm, then hand the confirmed pattern to an installer.
"""

from .constants import __version__

__all__ = ['__version__']
