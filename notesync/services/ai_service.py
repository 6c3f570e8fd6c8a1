"""Gemini text generation for AI note content."""

import logging
from enum import Enum

import httpx

from notesync.config import settings
from notesync.utils.exceptions import ApiError, NetworkError, NoAPIKey

logger = logging.getLogger(__name__)


class AIGenerationType(str, Enum):
    """Kinds of generated content a note can receive."""

    SUMMARY = "summary"
    FLASHCARDS = "flashcards"
    QUIZ = "quiz"
    CORNELL = "cornell"
    QA = "qa"
    CUSTOM = "custom"


PROMPTS = {
    AIGenerationType.SUMMARY: (
        "Please create a concise summary of the following content. "
        "Focus on the main points and key takeaways:\n\n{content}"
    ),
    AIGenerationType.FLASHCARDS: (
        "Create flashcards from the following content. Format each flashcard as:\n"
        "**Q:** [Question]\n**A:** [Answer]\n\n"
        "Make sure to cover the most important concepts:\n\n{content}"
    ),
    AIGenerationType.QUIZ: (
        "Create a quiz with multiple choice questions based on the following content. Format as:\n"
        "**Question 1:** [Question]\nA) [Option A]\nB) [Option B]\nC) [Option C]\nD) [Option D]\n"
        "**Answer:** [Correct option]\n\nContent:\n{content}"
    ),
    AIGenerationType.CORNELL: (
        "Format the following content as Cornell Notes with these sections:\n"
        "**NOTES:**\n[Main notes and details]\n\n"
        "**CUES:**\n[Key terms, questions, and cues]\n\n"
        "**SUMMARY:**\n[Brief summary of main points]\n\nContent:\n{content}"
    ),
    AIGenerationType.QA: (
        "Create a Q&A format from the following content. "
        "Generate thoughtful questions and comprehensive answers:\n"
        "**Q:** [Question]\n**A:** [Detailed answer]\n\nContent:\n{content}"
    ),
}


class AIService:
    """Client for the Gemini generateContent endpoint."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the AI service.

        Args:
            api_key: Gemini API key (defaults to settings)
            base_url: Models endpoint base URL
            model: Model to generate with
            transport: Custom httpx transport, used by tests
        """
        self.api_key = api_key if api_key is not None else settings.gemini_api_key
        self.base_url = (base_url or settings.gemini_base_url).rstrip("/")
        self.model = model or settings.gemini_model
        self.transport = transport

    def check_configured(self) -> bool:
        return bool(self.api_key)

    def _generation_config(self) -> dict:
        return {
            "temperature": settings.gemini_temperature,
            "topK": settings.gemini_top_k,
            "topP": settings.gemini_top_p,
            "maxOutputTokens": settings.gemini_max_output_tokens,
        }

    async def generate(self, prompt: str) -> str:
        """
        Generate text for a prompt.

        Args:
            prompt: Full prompt text

        Returns:
            Text of the first candidate

        Raises:
            NoAPIKey: If no API key is configured
            NetworkError: If the endpoint cannot be reached
            ApiError: If the endpoint answers with an error or no content
        """
        if not self.api_key:
            raise NoAPIKey("Gemini API")

        body = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": self._generation_config(),
        }

        try:
            async with httpx.AsyncClient(
                transport=self.transport, timeout=settings.http_timeout_seconds
            ) as client:
                response = await client.post(
                    f"{self.base_url}/{self.model}:generateContent",
                    params={"key": self.api_key},
                    headers={"Content-Type": "application/json"},
                    json=body,
                )
        except httpx.RequestError as e:
            logger.error(f"Gemini request failed: {e}")
            raise NetworkError() from e

        if response.status_code != 200:
            raise ApiError(_error_message(response))

        try:
            data = response.json()
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ApiError("No content generated") from e

        logger.info(f"Generated {len(text)} characters with {self.model}")
        return text

    async def generate_for(self, kind: AIGenerationType, content: str) -> str:
        """Generate one of the prompt-templated kinds; custom falls back to a summary."""
        template = PROMPTS.get(kind, PROMPTS[AIGenerationType.SUMMARY])
        return await self.generate(template.format(content=content))

    async def generate_summary(self, content: str) -> str:
        return await self.generate_for(AIGenerationType.SUMMARY, content)

    async def generate_flashcards(self, content: str) -> str:
        return await self.generate_for(AIGenerationType.FLASHCARDS, content)

    async def generate_quiz(self, content: str) -> str:
        return await self.generate_for(AIGenerationType.QUIZ, content)

    async def generate_cornell_notes(self, content: str) -> str:
        return await self.generate_for(AIGenerationType.CORNELL, content)

    async def generate_qa(self, content: str) -> str:
        return await self.generate_for(AIGenerationType.QA, content)

    async def generate_custom(self, content: str, instruction: str) -> str:
        return await self.generate(f"{instruction}\n\nContent:\n{content}")


def _error_message(response: httpx.Response) -> str:
    try:
        return response.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return f"HTTP {response.status_code}"
