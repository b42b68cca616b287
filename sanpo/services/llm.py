import logging
from typing import Any, Dict, List, Optional

import anthropic
import openai
from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from sanpo.core.config import settings
from sanpo.core.exceptions import ServiceError
from sanpo.models.domain import EncodedImage

logger = logging.getLogger(__name__)


EXTRACTION_SYSTEM_PROMPT = """You read requests for a walk and find where it starts and where it ends.

RULES:
1. Answer with exactly two lines and nothing else
2. Line 1: the departure place, line 2: the destination place
3. Write each place the way a map search would understand it (add the city when the request implies it)
4. Keep the language of the request
5. If either place is missing or ambiguous, answer with an empty message"""


EXPLANATION_SYSTEM_PROMPT = """You are a wandering guide who reads satellite photos of walking routes.

You receive the walker's request and a satellite image that covers the whole route.
Describe what the walker will pass through: parks, rivers, dense blocks, wide roads, rail lines, open squares, waterfronts.

RULES:
1. Answer in the language of the request
2. 3-5 sentences, vivid but grounded in what the image actually shows
3. Do not invent names of shops or buildings you cannot see
4. No markdown, no lists
5. If the image shows nothing useful, answer with an empty message"""


class LLMService:
    def __init__(
        self,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        client: Any = None,
    ):
        self.provider = (provider or settings.LLM_PROVIDER).lower()
        self.model = model or settings.LLM_MODEL
        self._client = client

        if self.provider not in ("anthropic", "openai"):
            raise ValueError(f"Unsupported LLM provider: {self.provider}")

    @property
    def client(self) -> Any:
        # Created on first use so a missing API key only fails the calls that need it
        if self._client is None:
            if self.provider == "anthropic":
                self._client = AsyncAnthropic(api_key=settings.ANTHROPIC_API_KEY)
            else:
                self._client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY)
        return self._client

    async def extract_departure_and_destination(self, text: str) -> Optional[str]:
        """Raw two-line answer naming departure and destination, or None"""

        return await self._complete(EXTRACTION_SYSTEM_PROMPT, text)

    async def explain_route_imagery(self, text: str, image: EncodedImage) -> Optional[str]:
        """Description of the route surroundings seen in ``image``, or None"""

        user_prompt = f"""
WALKER'S REQUEST:
{text}

The attached satellite image covers the route from start to end.
"""
        return await self._complete(EXPLANATION_SYSTEM_PROMPT, user_prompt, image=image)

    async def _complete(
        self,
        system_prompt: str,
        user_prompt: str,
        image: Optional[EncodedImage] = None,
    ) -> Optional[str]:
        try:
            if self.provider == "anthropic":
                content = await self._complete_anthropic(system_prompt, user_prompt, image)
            else:
                content = await self._complete_openai(system_prompt, user_prompt, image)
        except (anthropic.AnthropicError, openai.OpenAIError) as exc:
            logger.error(f"LLM request failed: {exc}")
            raise ServiceError(f"LLM request failed: {exc}") from exc

        logger.debug(f"Raw LLM response length: {len(content or '')} chars")
        content = (content or "").strip()
        return content or None

    async def _complete_anthropic(
        self, system_prompt: str, user_prompt: str, image: Optional[EncodedImage]
    ) -> Optional[str]:
        blocks: List[Dict[str, Any]] = []
        if image is not None:
            blocks.append(
                {
                    "type": "image",
                    "source": {
                        "type": "base64",
                        "media_type": image.media_type,
                        "data": image.data,
                    },
                }
            )
        blocks.append({"type": "text", "text": user_prompt})

        response = await self.client.messages.create(
            model=self.model,
            max_tokens=settings.LLM_MAX_TOKENS,
            temperature=settings.LLM_TEMPERATURE,
            system=system_prompt,
            messages=[{"role": "user", "content": blocks}],
        )
        return "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )

    async def _complete_openai(
        self, system_prompt: str, user_prompt: str, image: Optional[EncodedImage]
    ) -> Optional[str]:
        blocks: List[Dict[str, Any]] = [{"type": "text", "text": user_prompt}]
        if image is not None:
            blocks.append({"type": "image_url", "image_url": {"url": image.data_url}})

        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": blocks},
            ],
            temperature=settings.LLM_TEMPERATURE,
            max_tokens=settings.LLM_MAX_TOKENS,
        )
        if not response.choices:
            return None
        return response.choices[0].message.content


llm_service = LLMService()
