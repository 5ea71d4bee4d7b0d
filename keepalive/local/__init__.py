"""
Local package for the keepalive supervisor.

This package provides the merged runtime configuration through the
app_globals singleton, the supervision core and the operator console.
"""

from .config import app_globals

__all__ = ["app_globals"]
