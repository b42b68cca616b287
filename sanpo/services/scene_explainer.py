import logging
from typing import Optional

from sanpo.models.domain import EncodedImage
from sanpo.services.llm import LLMService, llm_service

logger = logging.getLogger(__name__)


class SceneExplainer:
    """Natural-language description of a route's surroundings"""

    def __init__(self, llm: Optional[LLMService] = None):
        self.llm = llm or llm_service

    async def explain(self, text: str, image: EncodedImage) -> Optional[str]:
        """Explanation for ``image``, or None when the service has nothing to say"""

        explanation = await self.llm.explain_route_imagery(text, image)
        if not explanation:
            logger.info("Scene explainer returned no explanation")
            return None

        logger.info(f"✓ Scene explanation: {len(explanation)} chars")
        return explanation


scene_explainer = SceneExplainer()
