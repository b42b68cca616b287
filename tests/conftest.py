import os
import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Dict, List
from unittest.mock import AsyncMock

os.environ.setdefault("LLM_PROVIDER", "anthropic")
os.environ.setdefault("ANTHROPIC_API_KEY", "test-anthropic-key")
os.environ.setdefault("OPENAI_API_KEY", "test-openai-key")

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

import pytest

from sanpo.models.domain import EncodedImage
from sanpo.pipeline import PipelineOrchestrator
from sanpo.services.cache import AsyncCache
from sanpo.services.geocoding import GeocodingService
from sanpo.services.polyline import encode_polyline
from sanpo.services.routing import RoutingService
from sanpo.services.scene_explainer import SceneExplainer
from sanpo.services.text_extractor import TextExtractor


TOKYO_STATION = {"lat": "35.6812362", "lon": "139.7671248", "display_name": "Tokyo Station"}
SHIBUYA_STATION = {"lat": "35.6580339", "lon": "139.7016358", "display_name": "Shibuya Station"}

CANDIDATES: Dict[str, List[Dict[str, Any]]] = {
    "Tokyo Station": [TOKYO_STATION],
    "Shibuya Station": [SHIBUYA_STATION],
}

# (lon, lat) along the route
ROUTE_POINTS = [
    (139.767125, 35.681236),
    (139.745123, 35.672001),
    (139.720456, 35.664512),
    (139.701636, 35.658034),
]

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16
SCENE = "The walk leaves the red-brick station, follows the moat and crosses quiet parkland."


def valhalla_response(duration: float, points=ROUTE_POINTS) -> Dict[str, Any]:
    return {
        "trip": {
            "summary": {"time": duration, "length": 6.1},
            "legs": [{"shape": encode_polyline(points), "summary": {"time": duration}}],
            "status": 0,
        }
    }


class FakeLLM:
    """Echoes the request as extractor output and returns a fixed scene."""

    def __init__(self, explanation: str = SCENE):
        self.extract_departure_and_destination = AsyncMock(side_effect=lambda text: text)
        self.explain_route_imagery = AsyncMock(return_value=explanation)


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def osm() -> SimpleNamespace:
    async def search(query: str, limit=None):
        return CANDIDATES.get(query, [])

    return SimpleNamespace(
        search=AsyncMock(side_effect=search),
        route=AsyncMock(return_value=valhalla_response(1800)),
    )


@pytest.fixture
def imagery() -> SimpleNamespace:
    return SimpleNamespace(
        get_route_imagery=AsyncMock(
            return_value=EncodedImage(media_type="image/png", data="iVBORw0KGgo=")
        )
    )


@pytest.fixture
def build_orchestrator(fake_llm, osm, imagery):
    def _build(**overrides) -> PipelineOrchestrator:
        kwargs = dict(
            text_extractor=TextExtractor(llm=fake_llm),
            geocoder=GeocodingService(client=osm, cache=AsyncCache("geocode")),
            route_planner=RoutingService(client=osm, cache=AsyncCache("route_walk")),
            imagery=imagery,
            explainer=SceneExplainer(llm=fake_llm),
            max_route_duration_seconds=3600,
        )
        kwargs.update(overrides)
        return PipelineOrchestrator(**kwargs)

    return _build
