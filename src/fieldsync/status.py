"""
Sync State Resolver

Derives a record's synchronisation lifecycle state from its identity and
metadata timestamps. Pure: the same snapshot always resolves to the same
state, nothing is read from the store or the network.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional


class SyncStatus(Enum):
    """
    Synchronisation lifecycle states.

    SYNCHRONISING: A remote request for the record is in flight
    CONFLICT: Changed both locally and on the server since the last sync
    CHANGED_LOCALLY: Changed locally since the last sync
    CHANGED_SERVER: Changed on the server since the last sync
    SYNCED: Local and server copies match
    SERVER: Known to exist on the server but never fully synced
    LOCAL: Exists only on this device
    """
    SYNCHRONISING = "synchronising"
    CONFLICT = "conflict"
    CHANGED_LOCALLY = "changed_locally"
    CHANGED_SERVER = "changed_server"
    SYNCED = "synced"
    SERVER = "server"
    LOCAL = "local"


def _is_newer(reference: datetime, other: Optional[datetime]) -> bool:
    # A missing timestamp never counts as a change
    return other is not None and reference < other


def resolve_sync_status(
    server_id: Optional[int],
    metadata: Any,
    synchronising: bool = False,
) -> SyncStatus:
    """
    Resolve the sync status of a record.

    Args:
        server_id: Warehouse id, None when the record was never created remotely
        metadata: Object exposing synced_on, updated_on and server_on
        synchronising: Transient in-flight flag

    Returns:
        The resolved SyncStatus

    Example:
        >>> meta = Metadata(synced_on=t0, updated_on=t1, server_on=t0)
        >>> resolve_sync_status(42, meta)
        <SyncStatus.CHANGED_LOCALLY: 'changed_locally'>
    """
    if synchronising:
        return SyncStatus.SYNCHRONISING

    if server_id is None:
        return SyncStatus.LOCAL

    synced_on = metadata.synced_on
    if synced_on is None:
        # placeholder exists on the server, data not pulled yet
        return SyncStatus.SERVER

    changed_locally = _is_newer(synced_on, metadata.updated_on)
    changed_server = _is_newer(synced_on, metadata.server_on)

    if changed_locally and changed_server:
        return SyncStatus.CONFLICT
    if changed_locally:
        return SyncStatus.CHANGED_LOCALLY
    if changed_server:
        return SyncStatus.CHANGED_SERVER
    return SyncStatus.SYNCED
