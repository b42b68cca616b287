import logging
from typing import Optional

from sanpo.core.exceptions import ParseError
from sanpo.models.domain import PlacePair
from sanpo.services.llm import LLMService, llm_service

logger = logging.getLogger(__name__)


def parse_place_lines(raw: Optional[str]) -> PlacePair:
    """Split extractor output into departure and destination.

    The output must hold exactly two non-blank lines; blank lines anywhere are
    ignored and each name is stripped.
    """

    if not raw:
        raise ParseError("Extractor returned no result")

    lines = [line.strip() for line in raw.splitlines() if line.strip()]
    if len(lines) != 2:
        raise ParseError(f"Expected 2 place names, got {len(lines)}")

    return PlacePair(departure=lines[0], destination=lines[1])


class TextExtractor:
    def __init__(self, llm: Optional[LLMService] = None):
        self.llm = llm or llm_service

    async def extract(self, text: str) -> PlacePair:
        raw = await self.llm.extract_departure_and_destination(text)
        places = parse_place_lines(raw)
        logger.info(f"✓ Places: {places.departure} → {places.destination}")
        return places


text_extractor = TextExtractor()
