from abc import ABC, abstractmethod
from typing import List

from ..types import ApiStream, CanonicalMessage, ResolvedModel


class ApiHandler(ABC):
    """
    Contract every provider adapter satisfies.

    Adapters validate their mandatory configuration in ``__init__`` and keep
    only immutable configuration plus a shared client afterwards, so
    concurrent calls on one handler are independent.
    """

    provider_name: str = "unknown"

    @abstractmethod
    def create_message(
        self,
        system_prompt: str,
        messages: List[CanonicalMessage],
    ) -> ApiStream:
        """
        Stream a response to the conversation.

        Implementations are async generators: nothing is sent until the
        caller starts iterating, and closing the generator early closes the
        underlying connection.

        Args:
            system_prompt (str): Instructions sent ahead of ``messages``.
            messages (List[CanonicalMessage]): Conversation, oldest first.
                Only read for the duration of the call.

        Yields:
            StreamChunk: Text and reasoning chunks, then at most one usage chunk.

        Raises:
            ApiError: The classified failure, at connection time or mid-stream.
        """

    @abstractmethod
    async def complete_prompt(self, prompt: str) -> str:
        """
        Run a single-turn, non-streaming completion.

        Args:
            prompt (str): User prompt.

        Returns:
            str: Response text, or an empty string when the backend returns none.

        Raises:
            ApiError: The classified failure.
        """

    @abstractmethod
    def get_model(self) -> ResolvedModel:
        """
        Resolve the configured model without any I/O.

        Returns:
            ResolvedModel: Model id and descriptor, falling back to the
            provider default for missing or unknown ids.
        """

    async def aclose(self) -> None:
        """Release the shared client (optional)."""
        return None
