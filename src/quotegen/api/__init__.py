"""
HTTP API layer.
"""

from quotegen.api.app import create_app

__all__ = ["create_app"]
