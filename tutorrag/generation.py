"""Streaming chat completions for the study assistant."""

from collections.abc import Iterator

from openai import OpenAI

from .config import config
from .models import ChatMessage

logger = config.get_logger(__name__)


class ChatGenerator:
    """Streams assistant replies from the OpenAI chat completions API."""

    def __init__(
        self, openai_api_key: str | None = None, model: str | None = None
    ) -> None:
        """Initialize the generator.

        Args:
            openai_api_key: OpenAI API key. If None, reads OPENAI_API_KEY.
            model: Chat model name. If None, uses config.CHAT_MODEL.
        """
        default_headers = config.get_api_headers()
        self.client = OpenAI(
            api_key=openai_api_key or config.get_openai_api_key(),
            base_url=config.OPENAI_BASE_URL,
            default_headers=default_headers or None,
        )
        self.model = model or config.CHAT_MODEL

    @staticmethod
    def build_messages(
        system_prompt: str, history: list[ChatMessage], user_message: str
    ) -> list[dict[str, str]]:
        return [
            {"role": "system", "content": system_prompt},
            *(
                {"role": message.role, "content": message.content}
                for message in history
            ),
            {"role": "user", "content": user_message},
        ]

    def stream_completion(
        self,
        system_prompt: str,
        history: list[ChatMessage],
        user_message: str,
    ) -> Iterator[str]:
        """Stream the reply to ``user_message`` as text fragments.

        The request is sent when iteration starts. Closing the iterator closes
        the underlying HTTP stream.

        Yields:
            Non-empty content deltas in arrival order.
        """
        messages = self.build_messages(system_prompt, history, user_message)
        logger.info(
            "Requesting %s completion with %d messages", self.model, len(messages)
        )

        stream = self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            max_tokens=config.CHAT_MAX_TOKENS,
            temperature=config.CHAT_TEMPERATURE,
            stream=True,
        )
        try:
            for chunk in stream:
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    yield content
        finally:
            stream.close()
