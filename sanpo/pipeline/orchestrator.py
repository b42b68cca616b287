from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Set

from sanpo.core.config import settings
from sanpo.core.exceptions import PipelineError, ServiceError
from sanpo.core.logging import reset_run_id, set_run_id
from sanpo.models.domain import Coordinate, EncodedImage, PlacePair, Route
from sanpo.pipeline import messages
from sanpo.pipeline.states import (
    TERMINAL_STATES,
    InvalidTransitionError,
    PipelineState,
    check_transition,
)
from sanpo.pipeline.status_log import StatusLog
from sanpo.services.geocoding import GeocodingService, geocoding_service
from sanpo.services.imagery import ImageryService, imagery_service
from sanpo.services.routing import RoutingService, routing_service
from sanpo.services.scene_explainer import SceneExplainer, scene_explainer
from sanpo.services.text_extractor import TextExtractor
from sanpo.services.text_extractor import text_extractor as default_text_extractor

logger = logging.getLogger(__name__)

RunListener = Callable[["PipelineRun"], None]


class StaleRunError(Exception):
    """A newer submission replaced the run that is still executing."""


@dataclass
class PipelineRun:
    run_id: int
    request_text: str
    status_log: StatusLog
    state: PipelineState = PipelineState.IDLE
    places: Optional[PlacePair] = None
    departure_coords: Optional[Coordinate] = None
    destination_coords: Optional[Coordinate] = None
    route: Optional[Route] = None
    scene_description: Optional[str] = None
    explained: bool = False
    error: Optional[PipelineError] = None
    history: List[PipelineState] = field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES


class PipelineOrchestrator:
    """Runs one walking-route request through every stage of the pipeline.

    Stages run strictly in order and each one is entered only when its
    precondition holds. Only the most recent submission is current: every
    submission bumps a generation counter, and a run that finds itself
    superseded after a suspension point stops without touching shared state
    or emitting status events.
    """

    def __init__(
        self,
        text_extractor: Optional[TextExtractor] = None,
        geocoder: Optional[GeocodingService] = None,
        route_planner: Optional[RoutingService] = None,
        imagery: Optional[ImageryService] = None,
        explainer: Optional[SceneExplainer] = None,
        max_route_duration_seconds: Optional[float] = None,
    ) -> None:
        self.text_extractor = text_extractor or default_text_extractor
        self.geocoder = geocoder or geocoding_service
        self.route_planner = route_planner or routing_service
        self.imagery = imagery or imagery_service
        self.explainer = explainer or scene_explainer
        self.max_route_duration_seconds = (
            settings.MAX_ROUTE_DURATION_SECONDS
            if max_route_duration_seconds is None
            else max_route_duration_seconds
        )

        self._generation = 0
        self._current = PipelineRun(run_id=0, request_text="", status_log=StatusLog(0))
        self._current.status_log.append(messages.WAITING)
        self._tasks: Set[asyncio.Task] = set()
        self._listeners: List[RunListener] = []

    # ------------------------------------------------------------------
    # Presentation-facing API
    # ------------------------------------------------------------------

    @property
    def current_run(self) -> PipelineRun:
        return self._current

    @property
    def generation(self) -> int:
        return self._generation

    def subscribe(self, listener: RunListener) -> Callable[[], None]:
        """Call ``listener`` with the current run after every change."""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def submit(self, text: str) -> Optional[PipelineRun]:
        """Start a new run in the background; blank text is ignored."""

        run = self._begin_run(text)
        if run is None:
            return None

        task = asyncio.create_task(self._execute(run), name=f"pipeline-run-{run.run_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return run

    async def run(self, text: str) -> Optional[PipelineRun]:
        """Start a new run and wait until it reaches a terminal state."""

        run = self._begin_run(text)
        if run is None:
            return None

        await self._execute(run)
        return run

    async def wait_idle(self) -> None:
        """Wait for every background run, current or stale, to finish."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------

    def _begin_run(self, text: str) -> Optional[PipelineRun]:
        if not text or not text.strip():
            logger.info("Ignoring empty route request")
            return None

        self._generation += 1
        run = PipelineRun(
            run_id=self._generation,
            request_text=text,
            status_log=StatusLog(self._generation),
        )
        self._current = run
        logger.info(f"Route request accepted as run {run.run_id}")
        return run

    async def _execute(self, run: PipelineRun) -> None:
        token = set_run_id(run.run_id)
        try:
            await self._run_stages(run)
        except StaleRunError:
            logger.info(f"Run {run.run_id} superseded by run {self._generation}, discarding")
        except PipelineError as exc:
            self._fail(run, exc)
        except Exception as exc:
            logger.exception("Unexpected pipeline failure")
            self._fail(run, ServiceError(f"Unexpected failure: {exc}"))
        finally:
            reset_run_id(token)

    async def _run_stages(self, run: PipelineRun) -> None:
        self._emit(run, messages.REQUEST_RECEIVED)

        await self._extract_places(run)
        await self._geocode(run)
        await self._plan_route(run)

        if self._is_too_long(run.route):
            self._halt_too_long(run)
            return

        self._render(run)
        image = await self._fetch_imagery(run)
        await self._explain(run, image)

    def _fail(self, run: PipelineRun, exc: PipelineError) -> None:
        if not self._is_current(run):
            logger.info(f"Stale run {run.run_id} failed with {exc.category}: {exc.message}")
            return
        if run.is_terminal:
            logger.error(f"Run already {run.state.value}, ignoring late failure: {exc.message}")
            return

        logger.warning(f"Run failed in {run.state.value} ({exc.category}): {exc.message}")
        run.error = exc
        self._enter(run, PipelineState.ERROR)
        self._emit(run, messages.error_message(exc.category))

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _extract_places(self, run: PipelineRun) -> None:
        self._enter(run, PipelineState.EXTRACTING_PLACES)
        self._emit(run, messages.EXTRACTING_PLACES)

        places = await self.text_extractor.extract(run.request_text)
        self._ensure_current(run)

        run.places = places
        self._emit(run, messages.PLACES_EXTRACTED)

    async def _geocode(self, run: PipelineRun) -> None:
        self._enter(run, PipelineState.GEOCODING)
        self._emit(run, messages.GEOCODING)

        run.departure_coords = await self._geocode_one(run, run.places.departure)
        self._notify(run)
        run.destination_coords = await self._geocode_one(run, run.places.destination)
        self._emit(run, messages.GEOCODED)

    async def _geocode_one(self, run: PipelineRun, place_name: str) -> Coordinate:
        coords = await self.geocoder.geocode(place_name)
        self._ensure_current(run)
        return coords

    async def _plan_route(self, run: PipelineRun) -> None:
        self._enter(run, PipelineState.ROUTING)
        self._emit(run, messages.ROUTING)

        route = await self.route_planner.get_walking_route(
            run.departure_coords, run.destination_coords
        )
        self._ensure_current(run)

        run.route = route
        self._emit(run, messages.ROUTED)

    def _halt_too_long(self, run: PipelineRun) -> None:
        self._enter(run, PipelineState.HALTED_TOO_LONG)
        minutes = int(self.max_route_duration_seconds // 60)
        self._emit(run, messages.TOO_LONG.format(minutes=minutes))
        self._emit(run, messages.TRY_ANOTHER_ROUTE)

    def _render(self, run: PipelineRun) -> None:
        # Listeners draw the route from the run they are handed
        self._enter(run, PipelineState.RENDERING)
        self._emit(run, messages.RENDERING)
        self._emit(run, messages.RENDERED)

    async def _fetch_imagery(self, run: PipelineRun) -> EncodedImage:
        self._enter(run, PipelineState.FETCHING_IMAGERY)
        self._emit(run, messages.FETCHING_IMAGERY)

        image = await self.imagery.get_route_imagery(run.route.path)
        self._ensure_current(run)

        self._emit(run, messages.IMAGERY_FETCHED)
        return image

    async def _explain(self, run: PipelineRun, image: EncodedImage) -> None:
        self._enter(run, PipelineState.EXPLAINING)
        self._emit(run, messages.EXPLAINING)

        explanation = await self.explainer.explain(run.request_text, image)
        self._ensure_current(run)

        run.scene_description = explanation or None
        run.explained = True
        self._emit(run, messages.EXPLAINED)
        self._enter(run, PipelineState.DONE)

    # ------------------------------------------------------------------
    # State machine plumbing
    # ------------------------------------------------------------------

    def _is_too_long(self, route: Optional[Route]) -> bool:
        return route is not None and route.duration_seconds > self.max_route_duration_seconds

    def _precondition_holds(self, run: PipelineRun, target: PipelineState) -> bool:
        if target == PipelineState.GEOCODING:
            return bool(run.places and run.places.departure and run.places.destination)
        if target == PipelineState.ROUTING:
            return run.departure_coords is not None and run.destination_coords is not None
        if target == PipelineState.HALTED_TOO_LONG:
            return self._is_too_long(run.route)
        if target in (PipelineState.RENDERING, PipelineState.FETCHING_IMAGERY):
            return (
                run.route is not None
                and not self._is_too_long(run.route)
                and not run.explained
            )
        if target == PipelineState.EXPLAINING:
            return run.route is not None and not run.explained
        if target == PipelineState.DONE:
            return run.explained
        return True

    def _enter(self, run: PipelineRun, target: PipelineState) -> None:
        self._ensure_current(run)
        check_transition(run.state, target)
        if not self._precondition_holds(run, target):
            raise InvalidTransitionError(
                f"Precondition for {target.value} does not hold in run {run.run_id}"
            )

        logger.debug(f"{run.state.value} → {target.value}")
        run.history.append(run.state)
        run.state = target
        self._notify(run)

    def _emit(self, run: PipelineRun, message: str) -> None:
        self._ensure_current(run)
        run.status_log.append(message)
        logger.info(message)
        self._notify(run)

    def _notify(self, run: PipelineRun) -> None:
        for listener in list(self._listeners):
            listener(run)

    def _is_current(self, run: PipelineRun) -> bool:
        return run.run_id == self._generation

    def _ensure_current(self, run: PipelineRun) -> None:
        if not self._is_current(run):
            raise StaleRunError(run.run_id)
