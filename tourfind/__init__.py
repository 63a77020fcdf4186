# tourfind package
"""
Search component for interactive virtual tours.

Layers:
  - index: Classify, label, filter and traverse the tour scene graph
  - services: External spreadsheet/CSV dataset loading and caching
  - search: Query routing, fuzzy matching and result grouping
  - dispatch: Turn a chosen result into host navigation
"""

__version__ = "0.1.0-dev"

from .engine import TourSearch
from .errors import ConfigError, DatasetError, HostCapabilityError, TourFindError

__all__ = [
    "TourSearch",
    "TourFindError",
    "ConfigError",
    "DatasetError",
    "HostCapabilityError",
]
