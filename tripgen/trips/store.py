"""Document store interface and an in-memory implementation with change listeners."""
import copy
import logging
from typing import Any, Callable, Dict, List, Optional, Protocol

from tripgen.errors import StoreWriteError

logger = logging.getLogger("document-store")

Listener = Callable[[Optional[Dict[str, Any]]], None]
Unsubscribe = Callable[[], None]


class DocumentStore(Protocol):
    async def create(self, collection: str, doc_id: str, document: Dict[str, Any]) -> None:
        ...

    async def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        ...

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        ...

    async def delete(self, collection: str, doc_id: str) -> None:
        ...

    async def query(self, collection: str, field: str, value: Any) -> List[Dict[str, Any]]:
        ...

    def subscribe(self, collection: str, doc_id: str, callback: Listener) -> Unsubscribe:
        ...


class InMemoryDocumentStore:
    """
    Keyed document store with partial updates and push notifications.

    Each write completes without yielding to the event loop, so a partial
    update is applied and broadcast as one step; concurrent writers touching
    different top-level fields never clobber each other.
    """

    def __init__(self):
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.listeners: Dict[tuple, List[Listener]] = {}
        logger.info("In-memory document store initialized")

    def _docs(self, collection: str) -> Dict[str, Dict[str, Any]]:
        return self.collections.setdefault(collection, {})

    def _deliver(self, callback: Listener, collection: str, doc_id: str):
        document = self._docs(collection).get(doc_id)
        try:
            callback(copy.deepcopy(document))
        except Exception as e:
            logger.error(f"Listener for {collection}/{doc_id} failed: {e}", exc_info=True)

    def _notify(self, collection: str, doc_id: str):
        for callback in list(self.listeners.get((collection, doc_id), [])):
            self._deliver(callback, collection, doc_id)

    async def create(self, collection: str, doc_id: str, document: Dict[str, Any]) -> None:
        docs = self._docs(collection)
        if doc_id in docs:
            raise StoreWriteError(f"Document {collection}/{doc_id} already exists")
        docs[doc_id] = copy.deepcopy(document)
        logger.debug(f"Created {collection}/{doc_id}")
        self._notify(collection, doc_id)

    async def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        """Merge top-level fields into an existing document."""
        docs = self._docs(collection)
        if doc_id not in docs:
            raise StoreWriteError(f"Document {collection}/{doc_id} does not exist")
        docs[doc_id].update(copy.deepcopy(fields))
        logger.debug(f"Updated {collection}/{doc_id}: {sorted(fields)}")
        self._notify(collection, doc_id)

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        document = self._docs(collection).get(doc_id)
        return copy.deepcopy(document) if document is not None else None

    async def delete(self, collection: str, doc_id: str) -> None:
        if self._docs(collection).pop(doc_id, None) is None:
            logger.warning(f"Attempted to delete non-existent document {collection}/{doc_id}")
            return
        logger.debug(f"Deleted {collection}/{doc_id}")
        self._notify(collection, doc_id)

    async def query(self, collection: str, field: str, value: Any) -> List[Dict[str, Any]]:
        return [copy.deepcopy(doc) for doc in self._docs(collection).values() if doc.get(field) == value]

    def subscribe(self, collection: str, doc_id: str, callback: Listener) -> Unsubscribe:
        """
        Register a listener for one document.

        The callback fires immediately with the current state (None when the
        document does not exist), then once after every write or delete.

        Returns:
            Function that removes the listener
        """
        key = (collection, doc_id)
        self.listeners.setdefault(key, []).append(callback)
        self._deliver(callback, collection, doc_id)

        def unsubscribe():
            callbacks = self.listeners.get(key, [])
            if callback in callbacks:
                callbacks.remove(callback)
            if not callbacks:
                self.listeners.pop(key, None)

        return unsubscribe
