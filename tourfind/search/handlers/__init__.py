"""
Search handlers - Pluggable query processors.

Each handler checks if it can handle a term and returns ranked results.
"""

from .exact import ExactLabelHandler
from .fuzzy import FuzzyHandler
from .wildcard import WildcardHandler

__all__ = [
    "ExactLabelHandler",
    "FuzzyHandler",
    "WildcardHandler",
]
