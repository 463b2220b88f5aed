from .asset_sync import AssetSync
from .discovery import DiscoveryRunner
from .evaluator import OpportunityEvaluator
from .monitor import AccountMonitor
from .scheduler import TierWorker, WorkerState

__all__ = [
    "AccountMonitor",
    "AssetSync",
    "DiscoveryRunner",
    "OpportunityEvaluator",
    "TierWorker",
    "WorkerState",
]
