"""Generative-language client wrapping a LangChain chat model."""

import logging
from collections.abc import Callable

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_openai import ChatOpenAI

from src.tools.shared_libraries.helpers import extract_text_content


logger = logging.getLogger(__name__)

DEFAULT_GOOGLE_MODEL = 'gemini-2.0-flash'


class GenerationError(Exception):
    """The chat model returned no usable text."""


def create_chat_model(
    model_source: str = 'google',
    model_name: str | None = None,
    api_key: str | None = None,
    base_url: str | None = None,
) -> BaseChatModel:
    """Build the chat model for ``model_source`` ("google" or "openai")."""
    if model_source == 'google':
        return ChatGoogleGenerativeAI(
            model=model_name or DEFAULT_GOOGLE_MODEL,
            google_api_key=api_key,
            temperature=0.7,
            max_output_tokens=1024,
            max_retries=2,
        )
    return ChatOpenAI(
        model=model_name or 'gpt-4',
        api_key=api_key or 'EMPTY',
        base_url=base_url,
        temperature=0.7,
        max_retries=2,
    )


class GenerativeClient:
    """Prompt-in, text-out access to a chat model.

    The model is built lazily from ``model_factory`` so that a broken
    configuration fails at call time, where callers fall back, instead of at
    startup.
    """

    def __init__(self, model_factory: Callable[[], BaseChatModel]):
        self._model_factory = model_factory
        self._model: BaseChatModel | None = None

    @property
    def model(self) -> BaseChatModel:
        if self._model is None:
            self._model = self._model_factory()
        return self._model

    def reinitialize(self) -> None:
        """Drop the current model and build a fresh one."""
        logger.info('Reinitializing chat model')
        self._model = self._model_factory()

    async def generate(self, prompt: str) -> str:
        """Send ``prompt`` and return the response text.

        Raises:
            GenerationError: The model answered with empty content.
        """
        response = await self.model.ainvoke(prompt)
        text = extract_text_content(response.content)
        if not text or not text.strip():
            raise GenerationError('Empty response from language model')
        return text
