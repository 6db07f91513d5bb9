"""Abstract base class for LLM chat providers.

Providers receive the assembled system prompt and the replayed
conversation, and return the raw completion text. Transport and upstream
failures are raised as ProviderError with a generic category; upstream
detail is only logged.
"""

from abc import ABC, abstractmethod
from typing import Any

import requests

from atcvirtual.core.errors import ProviderError, ProviderErrorCategory
from atcvirtual.core.logging_system import get_logger

logger = get_logger(__name__)


class LLMProvider(ABC):
    """Abstract interface for chat completion providers.

    Attributes:
        timeout: Timeout for one round-trip in seconds.
    """

    def __init__(self, timeout: float = 60.0) -> None:
        self.timeout = timeout

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name for logs."""

    @abstractmethod
    def complete(self, system_prompt: str, messages: list[dict[str, str]]) -> str:
        """Request a completion.

        Args:
            system_prompt: Assembled system prompt.
            messages: Conversation as role/content entries ("user" or
                "assistant"), ending with the pilot's utterance.

        Returns:
            Completion text (empty string if the provider returned none).

        Raises:
            ProviderError: If the provider cannot be reached or rejects the request.
        """

    def _post_json(self, url: str, headers: dict[str, str], body: dict[str, Any]) -> dict[str, Any]:
        """POST a JSON body and decode the JSON reply.

        Args:
            url: Endpoint URL.
            headers: Request headers (credentials included).
            body: JSON body.

        Returns:
            Decoded response.

        Raises:
            ProviderError: On timeout, connection failure, non-2xx status
                or an undecodable body.
        """
        try:
            response = requests.post(url, headers=headers, json=body, timeout=self.timeout)
        except requests.Timeout:
            logger.error("%s request timed out after %.0fs", self.name, self.timeout)
            raise ProviderError(ProviderErrorCategory.FAILED) from None
        except requests.RequestException as e:
            logger.error("%s request failed: %s", self.name, e)
            raise ProviderError(ProviderErrorCategory.FAILED) from None

        if not response.ok:
            logger.error("%s API error: %d %s", self.name, response.status_code, response.text)
            raise ProviderError(
                ProviderErrorCategory.from_status(response.status_code),
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError:
            logger.error("%s returned a non-JSON body", self.name)
            raise ProviderError(ProviderErrorCategory.FAILED, status_code=response.status_code) from None

        if not isinstance(data, dict):
            raise ProviderError(ProviderErrorCategory.FAILED, status_code=response.status_code)
        return data
