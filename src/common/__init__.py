"""Shared core of tap-unlock: tap patterns, matching, IPC contract and detectors."""
