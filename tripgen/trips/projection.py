"""Live view of a trip document as background passes mutate it."""
import asyncio
import logging
from typing import AsyncIterator, Callable, List, Optional

from tripgen.trips.models import TripDocument
from tripgen.trips.store import DocumentStore, Unsubscribe

logger = logging.getLogger("trip-projection")


def subscribe_trip(
    store: DocumentStore,
    collection: str,
    trip_id: str,
    on_update: Callable[[Optional[TripDocument]], None],
) -> Unsubscribe:
    """
    Subscribe to a trip document.

    ``on_update`` fires once immediately with the current state and then after
    every write; it receives None when the trip does not exist or was deleted.
    """

    def listener(data):
        on_update(TripDocument.from_store(data) if data is not None else None)

    return store.subscribe(collection, trip_id, listener)


class TripProgress:
    """
    Consumer-side projection of a trip's generation progress.

    ``enhancing`` turns False exactly once, when the document is first seen
    with isEnhanced=True. Images only ever accumulate; a place without a
    token after enhancement has no photo.
    """

    def __init__(self):
        self.document: Optional[TripDocument] = None
        self.enhancing = True
        self.image_count = 0
        self.deleted = False
        self.events: List[str] = []

    def apply(self, document: Optional[TripDocument]) -> List[str]:
        """Fold a snapshot into the projection and return the events it produced."""
        events = []
        if document is None:
            if self.document is not None and not self.deleted:
                self.deleted = True
                events.append("deleted")
            self.events.extend(events)
            return events

        if self.document is None:
            events.append("loaded")
        self.deleted = False

        if document.is_enhanced and self.enhancing:
            self.enhancing = False
            events.append("enhanced")

        count = document.image_refs.count()
        if count > self.image_count:
            self.image_count = count
            events.append("images")

        self.document = document
        self.events.extend(events)
        return events


async def watch_trip(
    store: DocumentStore,
    collection: str,
    trip_id: str,
    timeout: Optional[float] = None,
) -> AsyncIterator[Optional[TripDocument]]:
    """
    Yield trip snapshots as they are written.

    Stops after the first snapshot that is enhanced and carries the
    enrichment write (imagesReady), when the trip is missing or deleted, or
    when no update arrives within ``timeout`` seconds.
    """
    queue: asyncio.Queue = asyncio.Queue()
    unsubscribe = subscribe_trip(store, collection, trip_id, queue.put_nowait)
    try:
        while True:
            try:
                document = await asyncio.wait_for(queue.get(), timeout)
            except asyncio.TimeoutError:
                logger.info(f"No update for trip {trip_id} within {timeout}s; stopping watch")
                return
            yield document
            if document is None or (document.is_enhanced and document.images_ready):
                return
    finally:
        unsubscribe()
