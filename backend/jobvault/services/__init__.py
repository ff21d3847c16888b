"""Service layer for snapshots.

Exposes:
- SnapshotManager
- SnapshotVerifier
"""

from .snapshots import OperationLock, Snapshot, SnapshotManager, get_snapshot_manager
from .verifier import SnapshotVerifier, VerificationResult

__all__ = [
    "OperationLock",
    "Snapshot",
    "SnapshotManager",
    "SnapshotVerifier",
    "VerificationResult",
    "get_snapshot_manager",
]
