"""
Exception types for tourfind.

Core pipeline stages catch these at their degrade boundaries; callers of
TourSearch.rebuild(), search() and select() never see them.
"""


class TourFindError(Exception):
    """Base class for all tourfind errors."""


class ConfigError(TourFindError):
    """Settings could not be read or contain an unusable value."""


class DatasetError(TourFindError):
    """The external dataset could not be fetched or parsed."""


class HostCapabilityError(TourFindError):
    """The host handle lacks a capability a call site needs."""

    def __init__(self, capability: str):
        super().__init__(f"Host capability not available: {capability}")
        self.capability = capability
