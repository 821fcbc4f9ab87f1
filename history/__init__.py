"""Call log and recording synchronization."""
from history.sync import CallHistorySynchronizer

__all__ = ["CallHistorySynchronizer"]
