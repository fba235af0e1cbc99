"""Trip lifecycle operations used by the HTTP surface and the CLI."""
import logging
from typing import List

from tripgen.errors import StoreWriteError, TripNotFoundError
from tripgen.trips.generator import TripGenerator
from tripgen.trips.models import Owner, TripDocument, TripPreferences
from tripgen.trips.store import DocumentStore

logger = logging.getLogger("trip-service")


class TripService:
    """Create, read, list, delete and restore a traveler's trips."""

    def __init__(self, generator: TripGenerator, store: DocumentStore, collection: str = "UserTrips"):
        self.generator = generator
        self.store = store
        self.collection = collection

    async def create_trip(self, preferences: TripPreferences, owner: Owner) -> TripDocument:
        return await self.generator.generate(preferences, owner)

    async def get_trip(self, trip_id: str) -> TripDocument:
        data = await self.store.get(self.collection, trip_id)
        if data is None:
            raise TripNotFoundError(f"Trip {trip_id} not found")
        return TripDocument.from_store(data)

    async def list_trips(self, owner_id: str) -> List[TripDocument]:
        """All trips owned by a user, newest first."""
        rows = await self.store.query(self.collection, "ownerId", owner_id)
        trips = [TripDocument.from_store(row) for row in rows]
        return sorted(trips, key=lambda trip: trip.created_at, reverse=True)

    async def delete_trip(self, trip_id: str) -> TripDocument:
        """
        Delete a trip and hand back what was removed so it can be restored.

        Raises:
            TripNotFoundError: If the trip does not exist
        """
        document = await self.get_trip(trip_id)
        await self.store.delete(self.collection, trip_id)
        logger.info(f"Deleted trip {trip_id}")
        return document

    async def restore_trip(self, document: TripDocument) -> TripDocument:
        """
        Re-create a previously deleted trip under its original id.

        Raises:
            StoreWriteError: If a trip with that id exists again
        """
        try:
            await self.store.create(self.collection, document.id, document.to_store())
        except StoreWriteError:
            logger.warning(f"Cannot restore trip {document.id}: it already exists")
            raise
        logger.info(f"Restored trip {document.id}")
        return document
