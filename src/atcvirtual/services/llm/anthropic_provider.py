"""Anthropic Messages API provider, used when the pilot supplies a key."""

from atcvirtual.core.logging_system import get_logger
from atcvirtual.services.llm.base import LLMProvider

logger = get_logger(__name__)


class AnthropicProvider(LLMProvider):
    """Chat completions through the Anthropic Messages API."""

    def __init__(
        self,
        api_key: str,
        url: str = "https://api.anthropic.com/v1/messages",
        model: str = "claude-sonnet-4-20250514",
        version: str = "2023-06-01",
        max_tokens: int = 1024,
        timeout: float = 60.0,
    ) -> None:
        """Initialize Anthropic provider.

        Args:
            api_key: The pilot's Anthropic API key.
            url: Messages API endpoint.
            model: Model id.
            version: anthropic-version header value.
            max_tokens: Completion token limit.
            timeout: Request timeout in seconds.
        """
        super().__init__(timeout=timeout)
        self._api_key = api_key
        self.url = url
        self.model = model
        self.version = version
        self.max_tokens = max_tokens

    @property
    def name(self) -> str:
        return "Anthropic"

    def complete(self, system_prompt: str, messages: list[dict[str, str]]) -> str:
        logger.info("Using Anthropic API with model %s", self.model)
        data = self._post_json(
            self.url,
            headers={
                "Content-Type": "application/json",
                "x-api-key": self._api_key,
                "anthropic-version": self.version,
            },
            body={
                "model": self.model,
                "max_tokens": self.max_tokens,
                "system": system_prompt,
                "messages": [{"role": m["role"], "content": m["content"]} for m in messages],
            },
        )
        content = data.get("content") or []
        if content and isinstance(content[0], dict):
            return str(content[0].get("text") or "")
        return ""
