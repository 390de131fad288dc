"""
Local package for the NFS server supervisor.

This package provides the supervisor's global configuration through the
app_globals module.
"""

from .global_config import app_globals

__all__ = ["app_globals"]
