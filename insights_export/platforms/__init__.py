"""Advertising source platforms.

- facebook: Facebook Marketing API (Graph API v19.0)
"""

__all__ = []
