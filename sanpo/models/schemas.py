from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from pydantic import BaseModel, Field

from sanpo.models.domain import Coordinate

if TYPE_CHECKING:
    from sanpo.pipeline.orchestrator import PipelineRun


class RouteSubmission(BaseModel):
    text: str = Field(..., description="Free-text walking route request")


class SubmissionResponse(BaseModel):
    run_id: int
    state: str


class CoordinatePoint(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)

    @classmethod
    def from_coordinate(cls, coords: Optional[Coordinate]) -> Optional["CoordinatePoint"]:
        if coords is None:
            return None
        return cls(lat=coords.lat, lon=coords.lon)


class StatusEventOut(BaseModel):
    sequence: int
    message: str
    created_at: datetime


class PipelineErrorOut(BaseModel):
    category: str
    message: str


class PipelineSnapshot(BaseModel):
    run_id: int
    state: str
    is_terminal: bool
    request_text: str
    departure: Optional[str] = None
    destination: Optional[str] = None
    departure_coords: Optional[CoordinatePoint] = None
    destination_coords: Optional[CoordinatePoint] = None
    duration_seconds: Optional[float] = None
    route_geojson: Optional[Dict[str, Any]] = None
    scene_description: Optional[str] = None
    error: Optional[PipelineErrorOut] = None
    status_events: List[StatusEventOut] = []

    @classmethod
    def from_run(cls, run: "PipelineRun") -> "PipelineSnapshot":
        route = run.route
        error = run.error
        return cls(
            run_id=run.run_id,
            state=run.state.value,
            is_terminal=run.is_terminal,
            request_text=run.request_text,
            departure=run.places.departure if run.places else None,
            destination=run.places.destination if run.places else None,
            departure_coords=CoordinatePoint.from_coordinate(run.departure_coords),
            destination_coords=CoordinatePoint.from_coordinate(run.destination_coords),
            duration_seconds=route.duration_seconds if route else None,
            route_geojson=route.to_geojson() if route else None,
            scene_description=run.scene_description,
            error=PipelineErrorOut(category=error.category, message=error.message) if error else None,
            status_events=[
                StatusEventOut(
                    sequence=event.sequence,
                    message=event.message,
                    created_at=event.created_at,
                )
                for event in run.status_log
            ],
        )
