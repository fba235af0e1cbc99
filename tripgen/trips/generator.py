"""Two-phase itinerary generation.

Phase 1 asks the model for a fast skeleton (place names and time slots),
persists it and returns to the caller. Phase 2 runs as a detached task: it
asks for descriptions, pricing and coordinates, merges them onto the
skeleton and swaps the document's ``tripPlan`` and ``isEnhanced`` in one
write. Photo enrichment starts only after that write succeeds.
"""
import asyncio
import logging
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Coroutine, Dict, List, Optional, Set

from tripgen.ai.gemini_client import ModelClient
from tripgen.ai.json_extractor import extract_json
from tripgen.ai.prompts import build_detail_prompt, build_skeleton_prompt
from tripgen.errors import StoreWriteError
from tripgen.trips.enrichment import TripImageEnricher
from tripgen.trips.merge import carry_over_additions, merge_enhanced
from tripgen.trips.models import (
    Owner,
    TripDocument,
    TripPreferences,
    dump_itinerary,
    parse_enhanced,
    parse_skeleton,
    utcnow,
)
from tripgen.trips.store import DocumentStore

logger = logging.getLogger("trip-generator")


class GenerationState(str, Enum):
    IDLE = "idle"
    SKELETON_INFLIGHT = "skeleton_inflight"
    SKELETON_SAVED = "skeleton_saved"
    DETAIL_INFLIGHT = "detail_inflight"
    ENHANCED_SAVED = "enhanced_saved"


_TRANSITIONS = {
    GenerationState.IDLE: {GenerationState.SKELETON_INFLIGHT},
    GenerationState.SKELETON_INFLIGHT: {GenerationState.SKELETON_SAVED, GenerationState.IDLE},
    GenerationState.SKELETON_SAVED: {GenerationState.DETAIL_INFLIGHT},
    GenerationState.DETAIL_INFLIGHT: {GenerationState.ENHANCED_SAVED, GenerationState.SKELETON_SAVED},
    GenerationState.ENHANCED_SAVED: set(),
}


@dataclass
class GenerationRun:
    """Progress of one trip generation request."""

    trip_id: str
    state: GenerationState = GenerationState.IDLE
    error: Optional[str] = None
    history: List[GenerationState] = field(default_factory=lambda: [GenerationState.IDLE])

    def transition(self, state: GenerationState):
        if state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Invalid transition {self.state.value} -> {state.value} for trip {self.trip_id}")
        logger.info(f"Trip {self.trip_id}: {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)


def new_trip_id() -> str:
    return uuid.uuid4().hex


class TripGenerator:
    """Drives skeleton generation and the detached detail/enrichment passes."""

    def __init__(
        self,
        model_client: ModelClient,
        store: DocumentStore,
        enricher: Optional[TripImageEnricher] = None,
        collection: str = "UserTrips",
        detail_max_attempts: int = 1,
        id_factory: Callable[[], str] = new_trip_id,
        max_runs: int = 256,
    ):
        self.model_client = model_client
        self.store = store
        self.enricher = enricher
        self.collection = collection
        self.detail_max_attempts = max(1, detail_max_attempts)
        self.id_factory = id_factory
        self.max_runs = max(1, max_runs)
        # Most recent runs only; an evicted in-flight run lives on in its task
        self.runs: "OrderedDict[str, GenerationRun]" = OrderedDict()
        self._background: Set[asyncio.Task] = set()

    def get_run(self, trip_id: str) -> Optional[GenerationRun]:
        return self.runs.get(trip_id)

    def _track(self, run: GenerationRun):
        self.runs[run.trip_id] = run
        while len(self.runs) > self.max_runs:
            self.runs.popitem(last=False)

    async def generate(self, preferences: TripPreferences, owner: Owner) -> TripDocument:
        """
        Generate and persist a skeleton trip, then enhance it in the background.

        Args:
            preferences: The traveler's submitted preferences
            owner: Identity to stamp on the document

        Returns:
            The persisted skeleton document (isEnhanced=False)

        Raises:
            ModelExhaustedError: If no model produced a usable answer
            MalformedResponseError: If the answer could not be parsed or validated
            StoreWriteError: If the document could not be created
        """
        trip_id = self.id_factory()
        run = GenerationRun(trip_id)
        self._track(run)
        run.transition(GenerationState.SKELETON_INFLIGHT)

        try:
            prompt = build_skeleton_prompt(preferences)
            logger.info(f"Requesting skeleton for {preferences.destination} ({preferences.total_days} days)")
            text = await self.model_client.send(prompt)
            skeleton = parse_skeleton(extract_json(text), preferences)

            document = TripDocument(
                id=trip_id,
                owner_id=owner.id,
                user_email=owner.email,
                preferences=preferences,
                trip_plan=dump_itinerary(skeleton),
                is_enhanced=False,
            )
            await self.store.create(self.collection, trip_id, document.to_store())
        except Exception as e:
            run.error = str(e)
            run.transition(GenerationState.IDLE)
            logger.error(f"Skeleton generation failed for trip {trip_id}: {e}")
            raise

        run.transition(GenerationState.SKELETON_SAVED)
        logger.info(f"Skeleton saved for trip {trip_id}")

        self.spawn(self._detail_phase(run, document), name=f"detail-{trip_id}")
        return document

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task:
        """Start a detached task; its failure is logged, never raised to the caller."""
        task = asyncio.create_task(coro, name=name)
        self._background.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task):
        self._background.discard(task)
        if task.cancelled():
            logger.warning(f"Background task {task.get_name()} was cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Background task {task.get_name()} failed: {exc}", exc_info=exc)

    async def wait_for_background(self):
        """Wait until every detached detail and enrichment task has finished."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def _enhance(self, document: TripDocument) -> Dict[str, Any]:
        prompt = build_detail_prompt(document.preferences, document.trip_plan)
        text = await self.model_client.send(prompt)
        merged = merge_enhanced(document.trip_plan, extract_json(text))
        return dump_itinerary(parse_enhanced(merged))

    async def _detail_phase(self, run: GenerationRun, document: TripDocument):
        run.transition(GenerationState.DETAIL_INFLIGHT)

        enhanced = None
        for attempt in range(1, self.detail_max_attempts + 1):
            try:
                enhanced = await self._enhance(document)
                break
            except Exception as e:
                run.error = str(e)
                logger.warning(
                    f"Detail phase attempt {attempt}/{self.detail_max_attempts} failed for trip {run.trip_id}: {e}",
                    exc_info=True,
                )

        if enhanced is None:
            run.transition(GenerationState.SKELETON_SAVED)
            logger.error(f"Detail phase gave up; trip {run.trip_id} stays as skeleton")
            return

        try:
            current = await self.store.get(self.collection, run.trip_id)
            if current is not None:
                # Places added while the detail pass ran must survive the swap
                enhanced = carry_over_additions(enhanced, document.trip_plan, current.get("tripPlan") or {})
            # tripPlan and isEnhanced change together so no reader sees a torn state
            await self.store.update(
                self.collection,
                run.trip_id,
                {"tripPlan": enhanced, "isEnhanced": True, "updatedAt": utcnow().isoformat()},
            )
        except StoreWriteError as e:
            run.error = str(e)
            run.transition(GenerationState.SKELETON_SAVED)
            logger.error(f"Could not save enhanced itinerary for trip {run.trip_id}: {e}")
            return

        run.error = None
        run.transition(GenerationState.ENHANCED_SAVED)

        if self.enricher is not None:
            self.spawn(
                self.enricher.enrich_document(
                    self.store,
                    self.collection,
                    run.trip_id,
                    enhanced["travelPlan"],
                    document.preferences.destination,
                ),
                name=f"images-{run.trip_id}",
            )
