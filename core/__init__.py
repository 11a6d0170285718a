"""
Core utilities and shared components for Slotwise.

This package provides the exception hierarchy and DRF exception handler used
by every app, and stable cache key generation.
"""

__version__ = "1.0.0"
