"""
Abstract Ledger Store Interface

DESIGN DECISION: The ledger and the price-sync core talk to storage
only through LedgerStorePort. This allows us to:
1. Run fully in memory (demo mode) or against Google Sheets
2. Keep balance math and price matching in exactly one place
3. Test every flow without network access

The backend is chosen once at startup and injected. No caller ever
asks "is storage configured?".

Reads are snapshot-based: subscribers receive the full current
collection on every change, never a delta.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Callable, Optional, Union

import structlog

from finboard.models.ledger import Account, Collection, Holding, Transaction


Entity = Union[Account, Transaction, Holding]
ChangeListener = Callable[[list], None]
Unsubscribe = Callable[[], None]

ENTITY_MODELS: dict[Collection, type] = {
    Collection.ACCOUNTS: Account,
    Collection.TRANSACTIONS: Transaction,
    Collection.HOLDINGS: Holding,
}


class LedgerStorePort(ABC):
    """
    Abstract interface for ledger storage.

    Any storage implementation (memory, Google Sheets, ...)
    must implement these methods.

    GUARANTEES every backend must honour:
    - a completed write() is visible to the next read() and to the
      next subscription notification
    - a completed delete() removes the entity from all later reads
    """

    def __init__(self):
        self._listeners: dict[Collection, list[ChangeListener]] = {
            collection: [] for collection in Collection
        }
        self._logger = structlog.get_logger(type(self).__module__)

    @abstractmethod
    def read(self, collection: Collection) -> list:
        """
        Current snapshot of a collection.

        Returns:
            List of entities in store order (copies; mutating them
            does not affect the store)
        """
        pass

    @abstractmethod
    async def write(self, collection: Collection, entity: Entity) -> bool:
        """
        Insert or replace an entity, keyed by entity.key.

        Returns:
            True if written successfully

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, collection: Collection, key: str) -> bool:
        """
        Delete an entity by key.

        Returns:
            True if deleted successfully

        Raises:
            NotFoundError: If no entity has this key
            StorageError: If the delete fails
        """
        pass

    def subscribe(self, collection: Collection, on_change: ChangeListener) -> Unsubscribe:
        """
        Register a listener for a collection.

        The listener is called immediately with the current snapshot,
        then again with the full collection after every change.

        Returns:
            A callable that removes the listener
        """
        self._listeners[collection].append(on_change)
        on_change(self.read(collection))

        def unsubscribe() -> None:
            if on_change in self._listeners[collection]:
                self._listeners[collection].remove(on_change)

        return unsubscribe

    def get(self, collection: Collection, key: str) -> Optional[Entity]:
        """Look up one entity by key in the current snapshot."""
        for entity in self.read(collection):
            if entity.key == key:
                return entity
        return None

    def _notify(self, collection: Collection) -> None:
        """Push the current snapshot to every listener of a collection."""
        snapshot = self.read(collection)
        for listener in list(self._listeners[collection]):
            try:
                listener(list(snapshot))
            except Exception as e:
                # A broken listener (UI) must not fail the write that triggered it
                self._logger.error(
                    "store_listener_failed",
                    collection=collection.value,
                    error=str(e),
                )


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class ConsistencyHazardError(StorageError):
    """
    A multi-step write partially completed.

    The store now holds some of the intended changes but not all of
    them. This is never auto-healed: the store's current state is the
    source of truth and must be reconciled by hand.
    """

    def __init__(
        self,
        message: str,
        entity_id: str,
        step: str,
        attempted_delta: Optional[Decimal] = None,
        completed: Optional[list[str]] = None,
    ):
        self.entity_id = entity_id
        self.step = step
        self.attempted_delta = attempted_delta
        self.completed = completed or []
        super().__init__(message)
