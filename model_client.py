"""Chat-completion client for any OpenAI-compatible endpoint."""

import logging

import openai
from openai import OpenAI

from config import Settings

logger = logging.getLogger(__name__)


class ModelCallError(RuntimeError):
    """The model call failed (transport, auth, status or timeout)."""

    def __init__(self, message: str, timed_out: bool = False) -> None:
        self.timed_out = timed_out
        super().__init__(message)


class ModelClient:
    """Sends one prompt per call and returns the reply text.

    Calls are not retried; a failed call skips the file being reviewed.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        max_tokens: int,
        base_url: str | None = None,
        timeout: float = 60.0,
        client: OpenAI | None = None,
    ) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self._client = client or OpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "ModelClient":
        return cls(
            api_key=settings.model_api_key,
            model=settings.model,
            max_tokens=settings.max_tokens,
            base_url=settings.model_base_url,
            timeout=settings.request_timeout,
        )

    def complete(self, prompt: str) -> str | None:
        """
        Send *prompt* as a single user message.

        Returns:
            The first choice's message content, or None when the reply
            carries no content (e.g. blocked by a safety filter)

        Raises:
            ModelCallError: On any API or transport failure
        """
        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=self.max_tokens,
            )
        except openai.APITimeoutError as e:
            raise ModelCallError(f"model call timed out: {e}", timed_out=True) from e
        except openai.APIError as e:
            raise ModelCallError(f"model call failed: {e}") from e

        if not response.choices:
            logger.debug("Model reply has no choices: %r", response)
            return None

        choice = response.choices[0]
        logger.debug(
            "Model reply (finish_reason=%s): %r",
            getattr(choice, "finish_reason", None),
            choice.message.content,
        )
        return choice.message.content
