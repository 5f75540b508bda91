import logging
import re
from typing import Any, Dict, Mapping, Optional

from groq import AsyncGroq

from contentforge.config import Settings
from contentforge.errors import GenerationFailure
from contentforge.schemas.generation import GenerationRequest

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a professional content creator who generates high-quality, engaging content for social media platforms and blogs.

IMPORTANT: If you include a quote, DO NOT use any quotation marks (" or ') around it. Write the quote as plain text.

CRITICAL: Generate ONLY the post content. Do not include any headers, titles, footers, or explanatory text.
REMEMBER: Output ONLY the post text. No "Here's your post:" or similar prefixes.
"""


def strip_outer_quotes(text: str) -> str:
    # Remove leading/trailing single or double quotes, and any leading/trailing whitespace/newlines
    return re.sub(r'^[\'"]+|[\'"]+$', '', text).strip()


def build_prompt(request: GenerationRequest, hint: str) -> str:
    prompt = f"Create {request.platform} content about: {request.topic}\n\n"
    prompt += f"Tone: {request.tone}\n"
    prompt += f"Platform: {request.platform}\n\n"
    if request.reference_body:
        prompt += f"Base the post on this article:\n{request.reference_body}\n\n"
    prompt += hint or f"Create {request.platform} content that is engaging and appropriate for the platform."
    return prompt


class GenerationService:
    """
    One call to the upstream content generator per request.

    Holds no state besides the client. Each call either returns usable text
    or raises GenerationFailure; empty or whitespace-only output counts as a
    failure, not as an empty variant.
    """

    def __init__(
        self,
        settings: Settings,
        client: Optional[Any] = None,
        prompt_hints: Optional[Mapping[str, str]] = None,
    ):
        self.settings = settings
        self.model = settings.generation_model
        self.prompt_hints: Dict[str, str] = dict(prompt_hints or {})
        self.client = client if client is not None else self._initialize_client()

    def _initialize_client(self):
        """Initialize the Groq client."""
        if not self.settings.groq_api_key:
            logger.warning("Groq API key not configured")
            return None
        logger.info("Groq client initialized successfully")
        return AsyncGroq(api_key=self.settings.groq_api_key)

    def is_available(self) -> bool:
        """Check if the generator is available."""
        return self.client is not None

    async def generate(self, request: GenerationRequest) -> str:
        """Generate one social post for `request.platform`."""
        prompt = build_prompt(request, self.prompt_hints.get(request.platform, ""))
        return await self._complete(prompt, max_tokens=self.settings.generation_max_tokens)

    async def generate_long_form(self, topic: str, tone: str = "professional") -> str:
        """Generate the long-form article a content piece is built around."""
        prompt = (
            f"Create a comprehensive blog post about: {topic}\n\n"
            f"Tone: {tone}\n\n"
            "Start with a compelling markdown headline and use well-structured sections."
        )
        return await self._complete(prompt, max_tokens=self.settings.generation_max_tokens * 4)

    async def _complete(self, prompt: str, max_tokens: int) -> str:
        if not self.client:
            raise GenerationFailure("Generation client not initialized. Please check your Groq API key configuration.")

        try:
            completion = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt}
                ],
                max_tokens=max_tokens,
                temperature=self.settings.generation_temperature,
                stream=False
            )
        except Exception as e:
            logger.error(f"Error generating content with Groq: {e}")
            raise GenerationFailure(f"Generator error: {e}") from e

        content = ""
        if completion.choices:
            content = completion.choices[0].message.content or ""
        content = strip_outer_quotes(content)
        if not content:
            raise GenerationFailure("Generator returned empty text")
        return content
