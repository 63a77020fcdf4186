"""
Dispatch package - Navigate the host to a selected entry.
"""

from .dispatcher import Dispatcher
from .handlers import HandlerToken, PendingHandlers
from .retry import RetryHandle, RetryPolicy, retry_with_backoff

__all__ = [
    "Dispatcher",
    "HandlerToken",
    "PendingHandlers",
    "RetryHandle",
    "RetryPolicy",
    "retry_with_backoff",
]
