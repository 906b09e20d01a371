"""Protocol interfaces for the liquidator."""
from .chain import ChainClient
from .notifier import Notifier
from .signer import TransactionSigner
from .snapshot_store import SnapshotStore
from .swap_aggregator import SwapAggregator

__all__ = ["ChainClient", "Notifier", "SnapshotStore", "SwapAggregator", "TransactionSigner"]
