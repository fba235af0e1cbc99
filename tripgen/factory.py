import logging
from contextlib import AsyncExitStack
from typing import Optional

from tripgen.ai.gemini_client import GeminiProvider, LLMProvider, ModelClient
from tripgen.config import Settings, settings as default_settings
from tripgen.trips.enrichment import TripImageEnricher
from tripgen.trips.generator import TripGenerator
from tripgen.trips.more_places import MorePlacesGenerator
from tripgen.trips.places import GooglePlacesPhotoLookup, PhotoLookup
from tripgen.trips.service import TripService
from tripgen.trips.store import DocumentStore, InMemoryDocumentStore

logger = logging.getLogger("trip-factory")


class TripServiceFactory:
    """Wires settings, HTTP clients, store and generators together and tears them down."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or default_settings
        self.store: Optional[DocumentStore] = None
        self.generator: Optional[TripGenerator] = None
        self.trips: Optional[TripService] = None
        self.more_places: Optional[MorePlacesGenerator] = None
        self._exit_stack: Optional[AsyncExitStack] = None

    @property
    def ready(self) -> bool:
        return self.trips is not None

    async def initialize(
        self,
        provider: Optional[LLMProvider] = None,
        lookup: Optional[PhotoLookup] = None,
        store: Optional[DocumentStore] = None,
    ) -> TripService:
        """
        Build the service graph. Collaborators not supplied are created from settings.

        Returns:
            The trip service
        """
        if self.trips is not None:
            logger.info("Trip services already initialized")
            return self.trips

        cfg = self.settings
        self._exit_stack = AsyncExitStack()

        if provider is None:
            if not cfg.gemini_api_key:
                logger.warning("GEMINI_API_KEY is not set; every generation will fail")
            gemini = GeminiProvider(cfg.gemini_api_key, cfg.gemini_api_base, cfg.gemini_timeout)
            self._exit_stack.push_async_callback(gemini.aclose)
            provider = gemini

        if lookup is None:
            if not cfg.google_places_api_key:
                logger.warning("GOOGLE_PLACES_API_KEY is not set; trips will have no photos")
            places = GooglePlacesPhotoLookup(cfg.google_places_api_key, cfg.places_api_base, cfg.places_timeout)
            self._exit_stack.push_async_callback(places.aclose)
            lookup = places

        self.store = store if store is not None else InMemoryDocumentStore()

        model_client = ModelClient(
            provider,
            cfg.model_candidates(),
            cfg.sampling_config(),
            min_response_chars=cfg.min_response_chars,
        )
        enricher = TripImageEnricher(lookup, concurrency=cfg.enrichment_concurrency)

        self.generator = TripGenerator(
            model_client,
            self.store,
            enricher=enricher,
            collection=cfg.trips_collection,
            detail_max_attempts=cfg.detail_max_attempts,
        )
        self.more_places = MorePlacesGenerator(model_client, self.store, enricher, collection=cfg.trips_collection)
        self.trips = TripService(self.generator, self.store, collection=cfg.trips_collection)

        logger.info(f"Trip services initialized (models: {', '.join(cfg.model_candidates())})")
        return self.trips

    async def cleanup(self):
        """Wait for background passes, then close HTTP clients."""
        logger.info("Cleaning up trip services...")
        if self.generator is not None:
            await self.generator.wait_for_background()
        if self._exit_stack is not None:
            await self._exit_stack.aclose()
        self.store = None
        self.generator = None
        self.trips = None
        self.more_places = None
        self._exit_stack = None
        logger.info("Cleanup complete")
