"""Snapshot store protocol — persistence lives outside the core."""
from typing import Protocol

from ..models import PortfolioSnapshot


class SnapshotStore(Protocol):
    """Accepts finalized valuation snapshots; never read by the core."""

    async def save_snapshot(self, snapshot: PortfolioSnapshot) -> None: ...
