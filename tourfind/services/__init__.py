# tourfind Services Package
"""
Backend services for tourfind.

Services handle external data loading and persistence.
"""

from .cache import DatasetCache
from .dataset import DatasetLoader

__all__ = ["DatasetCache", "DatasetLoader"]
