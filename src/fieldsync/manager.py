"""
Manager - facade over a Store and the remote sync client.

Usage:
    store = SQLiteStore("records.db")
    config = SyncConfig.from_yaml("config.yaml")

    async with Manager(store, config) as manager:
        sample = Sample({"location": "51.5,-0.12"})
        sample.add_occurrence(Occurrence({"taxon": 1234}))
        await manager.set(sample)

        results = await manager.sync_all()
"""

import asyncio
import logging
from collections import Counter
from typing import List, Optional, Union

from .collection import Collection
from .config import SyncConfig
from .errors import FieldSyncError, StoreError, ValidationError
from .event_bus import EventBus, get_event_bus
from .events import BatchSyncCompletedEvent, RecordRemovedEvent, RecordStoredEvent
from .keys import DEFAULT_KEYS, WarehouseKeys
from .models.entity import Entity
from .models.sample import Sample
from .remote import RemoteSyncClient, SyncOutcome, SyncResult
from .store.base import Store
from .validation import validate_remote

logger = logging.getLogger(__name__)


class Manager:
    """
    Persists root samples and drives their synchronisation.

    Each root sample is stored as one record under its client id, holding
    the whole tree. Children are persisted by saving their root.
    """

    def __init__(
        self,
        store: Store,
        config: SyncConfig,
        keys: Optional[WarehouseKeys] = None,
        client: Optional[RemoteSyncClient] = None,
        event_bus: Optional[EventBus] = None,
    ):
        """
        Args:
            store: Backing store for root samples
            config: Warehouse configuration
            keys: Warehouse key tables (default: DEFAULT_KEYS)
            client: Remote client, created from config when omitted
            event_bus: Bus for record events (default: the global bus)
        """
        self.store = store
        self.config = config
        self.keys = keys or DEFAULT_KEYS
        self.event_bus = event_bus or get_event_bus()
        self.client = client or RemoteSyncClient(config, keys=self.keys, event_bus=self.event_bus)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        """Close the remote client and the store."""
        await self.client.close()
        await self.store.close()

    # ==================== Store ====================

    def collection(self, samples: Optional[List[Sample]] = None) -> Collection:
        """Create a sample collection bound to the store."""
        return Collection(samples, model=Sample, store=self.store)

    async def get(self, cid: str) -> Optional[Sample]:
        """
        Load a root sample tree.

        Returns:
            The sample, or None if nothing is stored under the client id

        Raises:
            StoreError: If the store fails or the record is corrupt
        """
        data = await self.store.get(cid)
        if data is None:
            return None
        try:
            return Sample.from_dict(data)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise StoreError(f"Corrupt record under key '{cid}': {e}") from e

    async def get_all(self) -> Collection:
        """Load every stored root sample into a bound collection."""
        return await self.collection().fetch()

    async def set(self, sample: Sample) -> Sample:
        """
        Persist a root sample with its whole tree, replacing any stored copy.

        Returns:
            The sample
        """
        if not isinstance(sample, Sample):
            raise TypeError(f"Only root samples can be stored, got {type(sample).__name__}")

        await self.store.set(sample.cid, sample.to_dict())
        logger.info(f"Stored sample {sample.cid}")
        self.event_bus.publish(RecordStoredEvent(cid=sample.cid, server_id=sample.id))
        return sample

    async def remove(self, entity: Entity, root: Optional[Sample] = None) -> None:
        """
        Remove a record.

        A root sample is deleted from the store. A child (occurrence, media,
        sub-sample) is detached from its parent inside root, and root is
        saved again.

        Args:
            entity: Root sample or descendant to remove
            root: Root sample holding the descendant

        Raises:
            ValueError: If entity is not found under root
        """
        if root is None or root is entity or root.cid == entity.cid:
            await self.store.remove(entity.cid)
            logger.info(f"Removed sample {entity.cid}")
            self.event_bus.publish(RecordRemovedEvent(cid=entity.cid))
            return

        if not root.remove_child(entity):
            raise ValueError(f"{entity!r} is not part of sample {root.cid}")
        root.touch()
        await self.set(root)

    async def has(self, sample: Union[Sample, str]) -> bool:
        """Check whether a root sample (or client id) is stored."""
        cid = sample if isinstance(sample, str) else sample.cid
        return await self.store.has(cid)

    async def clear(self) -> None:
        """Delete every stored record."""
        await self.store.clear()
        logger.info("Cleared record store")

    # ==================== Sync ====================

    async def sync(self, sample: Sample, timeout: Optional[float] = None) -> SyncResult:
        """
        Validate, send and re-persist one root sample.

        Never raises for library errors: failures come back as an INVALID
        or FAILED result carrying the exception.

        Args:
            sample: Root sample
            timeout: Per-request timeout override in seconds
        """
        errors = validate_remote(sample)
        if errors:
            logger.warning(f"Sample {sample.cid} is not ready to sync: {errors}")
            return SyncResult(
                sample.cid,
                SyncOutcome.INVALID,
                server_id=sample.id,
                status=sample.get_sync_status(),
                error=ValidationError(errors),
            )

        try:
            result = await self.client.create(sample, timeout=timeout)
            if result.ok:
                await self.set(sample)
        except FieldSyncError as e:
            return SyncResult(
                sample.cid,
                SyncOutcome.FAILED,
                server_id=sample.id,
                status=sample.get_sync_status(),
                error=e,
            )
        return result

    async def sync_all(
        self,
        collection: Optional[Collection] = None,
        timeout: Optional[float] = None,
    ) -> List[SyncResult]:
        """
        Sync every record of a collection (default: everything stored).

        Records are sent concurrently; one record failing never stops the
        others.

        Returns:
            One SyncResult per record, in collection order

        Raises:
            StoreError: If the stored records can't be loaded
        """
        if collection is None:
            collection = await self.get_all()

        samples = list(collection)
        settled = await asyncio.gather(
            *(self.sync(sample, timeout=timeout) for sample in samples),
            return_exceptions=True,
        )

        results: List[SyncResult] = []
        for sample, outcome in zip(samples, settled):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                logger.error(f"Sync of {sample.cid} failed: {outcome}", exc_info=outcome)
                outcome = SyncResult(
                    sample.cid,
                    SyncOutcome.FAILED,
                    server_id=sample.id,
                    status=sample.get_sync_status(),
                    error=outcome,
                )
            results.append(outcome)

        counts = Counter(result.outcome.value for result in results)
        logger.info(f"Synced batch of {len(results)} records: {dict(counts)}")
        self.event_bus.publish(BatchSyncCompletedEvent(total=len(results), outcomes=dict(counts)))
        return results
