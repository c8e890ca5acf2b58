"""Tap Service - background detection of device taps.

Observes a tap detector, buffers recent taps and serves tap windows and
pattern-match notifications to recording sessions over a Unix socket.
"""

from .constants import __version__

__all__ = ['__version__']
