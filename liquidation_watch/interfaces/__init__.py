"""Protocol interfaces for the liquidation watcher."""
from .discovery import AccountSource
from .lending import LendingReader
from .read_provider import ReadBackend, ReadProvider
from .state_store import AssetReferenceData, MonitoringStateStore

__all__ = [
    "AccountSource",
    "AssetReferenceData",
    "LendingReader",
    "MonitoringStateStore",
    "ReadBackend",
    "ReadProvider",
]
