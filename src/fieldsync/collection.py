"""
Collection - ordered, deduplicated in-memory index of entities.

A collection optionally binds to a Store. Root samples are persisted one
Store key per root (the root client id), so fetch() rebuilds whole trees.
Child collections inside a sample are never bound.
"""

import logging
from typing import Any, Dict, Iterator, List, Optional, Tuple, Type, Union, TYPE_CHECKING

from .errors import StoreError

if TYPE_CHECKING:
    from .keys import WarehouseKeys
    from .models.entity import Entity
    from .store.base import Store

logger = logging.getLogger(__name__)

# entity, client id or warehouse id
EntityRef = Union['Entity', str, int]


class Collection:
    """
    Ordered collection of entities, unique by warehouse id or client id.

    Overwriting an existing identity keeps its original position, so batch
    sync iterates records in a stable order.
    """

    def __init__(
        self,
        models: Optional[List['Entity']] = None,
        model: Optional[Type['Entity']] = None,
        store: Optional['Store'] = None,
    ):
        """
        Args:
            models: Initial members
            model: Entity class used to rebuild records on fetch()
            store: Optional backing store
        """
        self.model = model
        self.store = store
        self._models: List['Entity'] = []
        for entity in models or []:
            self.set(entity)

    def __len__(self) -> int:
        return len(self._models)

    def __iter__(self) -> Iterator['Entity']:
        return iter(list(self._models))

    def __contains__(self, ref: EntityRef) -> bool:
        return self.has(ref)

    def __repr__(self) -> str:
        name = self.model.__name__ if self.model else "Entity"
        return f"Collection({name}, length={len(self)})"

    @property
    def models(self) -> List['Entity']:
        """Copy of the members in order."""
        return list(self._models)

    def _index_of(self, ref: EntityRef) -> int:
        if isinstance(ref, str):
            cid, server_id = ref, None
        elif isinstance(ref, int) and not isinstance(ref, bool):
            cid, server_id = None, ref
        else:
            cid, server_id = ref.cid, ref.id

        for i, entity in enumerate(self._models):
            if server_id is not None and entity.id == server_id:
                return i
            if cid is not None and entity.cid == cid:
                return i
        return -1

    def set(self, entity: 'Entity') -> 'Entity':
        """
        Insert or replace an entity by identity. Nothing is persisted.

        Returns:
            The entity
        """
        if self.model is not None and not isinstance(entity, self.model):
            raise TypeError(
                f"Collection of {self.model.__name__} cannot hold {type(entity).__name__}"
            )
        index = self._index_of(entity)
        if index >= 0:
            self._models[index] = entity
        else:
            self._models.append(entity)
        return entity

    def add(self, entity: 'Entity') -> 'Entity':
        """Alias of set()."""
        return self.set(entity)

    def get(self, ref: EntityRef) -> Optional['Entity']:
        """Get a member by entity, client id or warehouse id."""
        index = self._index_of(ref)
        return self._models[index] if index >= 0 else None

    def has(self, ref: EntityRef) -> bool:
        """Check membership by entity, client id or warehouse id."""
        return self._index_of(ref) >= 0

    def at(self, index: int) -> Optional['Entity']:
        """Get the member at a position, None when out of range."""
        if -len(self._models) <= index < len(self._models):
            return self._models[index]
        return None

    def remove(self, ref: EntityRef) -> Optional['Entity']:
        """
        Remove a member from memory. Nothing is persisted.

        Returns:
            The removed entity, or None if it was not a member
        """
        index = self._index_of(ref)
        if index < 0:
            return None
        return self._models.pop(index)

    def reset(self, models: Optional[List['Entity']] = None) -> None:
        """Replace all in-memory contents."""
        self._models = []
        for entity in models or []:
            self.set(entity)

    # ==================== Store ====================

    async def fetch(self) -> 'Collection':
        """
        Load every record from the bound store, replacing the contents.

        Returns:
            self

        Raises:
            StoreError: If no store is bound, the store fails or a record
                        cannot be rebuilt
        """
        if self.store is None:
            raise StoreError("Trying to fetch a collection without a store")
        if self.model is None:
            raise StoreError("Trying to fetch a collection without a model class")

        records = await self.store.get_all()

        models = []
        for key, data in records.items():
            try:
                models.append(self.model.from_dict(data))
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                raise StoreError(f"Corrupt record under key '{key}': {e}") from e

        self.reset(models)
        logger.debug(f"Fetched {len(models)} records from {type(self.store).__name__}")
        return self

    async def destroy(self) -> None:
        """Clear the bound store and the in-memory contents."""
        if self.store is not None:
            await self.store.clear()
        self._models = []

    # ==================== Serialization ====================

    def to_list(self) -> List[Dict[str, Any]]:
        """Deep plain-data snapshot of every member."""
        return [entity.to_dict() for entity in self._models]

    def get_submission(
        self,
        keys: Optional['WarehouseKeys'] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> Tuple[List[Dict[str, Any]], List['Entity']]:
        """
        Build submissions for every member.

        Returns:
            (submissions, media) with all members' media concatenated
        """
        submissions = []
        media: List['Entity'] = []
        for entity in self._models:
            submission, entity_media = entity.get_submission(keys, options)
            submissions.append(submission)
            media.extend(entity_media)
        return submissions, media
