"""
In-Memory Ledger Store

The ephemeral backend: all state lives in process memory, is mutated
synchronously and is lost on restart. Used for demo mode (when no
persisted store is configured) and for tests.
"""

from typing import Optional

from finboard.models.defaults import demo_accounts, demo_holdings, demo_transactions
from finboard.models.ledger import Collection
from finboard.services.storage.interface import (
    ENTITY_MODELS,
    Entity,
    LedgerStorePort,
    NotFoundError,
    StorageError,
)


class EphemeralStore(LedgerStorePort):
    """
    Dict-backed implementation of LedgerStorePort.

    Entities are stored as copies keyed by entity.key, in insertion
    order, so callers can never mutate store state by accident.
    """

    def __init__(self, seed: bool = False):
        super().__init__()
        self._data: dict[Collection, dict[str, Entity]] = {
            collection: {} for collection in Collection
        }
        if seed:
            self.seed_demo_data()

    def seed_demo_data(self) -> None:
        """Load the demo accounts, transactions and holdings."""
        transactions = demo_transactions()
        self.load(Collection.TRANSACTIONS, transactions)
        self.load(Collection.ACCOUNTS, demo_accounts(transactions))
        self.load(Collection.HOLDINGS, demo_holdings())

    def load(self, collection: Collection, entities: list) -> None:
        """Replace a whole collection (no per-entity writes, one notification)."""
        self._data[collection] = {
            entity.key: entity.model_copy() for entity in entities
        }
        self._notify(collection)

    def read(self, collection: Collection) -> list:
        return [entity.model_copy() for entity in self._data[collection].values()]

    def get(self, collection: Collection, key: str) -> Optional[Entity]:
        entity = self._data[collection].get(key)
        return entity.model_copy() if entity is not None else None

    async def write(self, collection: Collection, entity: Entity) -> bool:
        expected = ENTITY_MODELS[collection]
        if not isinstance(entity, expected):
            raise StorageError(
                f"Cannot write {type(entity).__name__} to {collection.value}; "
                f"expected {expected.__name__}"
            )
        self._data[collection][entity.key] = entity.model_copy()
        self._notify(collection)
        return True

    async def delete(self, collection: Collection, key: str) -> bool:
        if key not in self._data[collection]:
            raise NotFoundError(f"{collection.value} entry not found: {key}")
        del self._data[collection][key]
        self._notify(collection)
        return True
