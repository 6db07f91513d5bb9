"""OpenAI-compatible gateway provider, used with the server-side key."""

from atcvirtual.core.errors import ProviderError, ProviderErrorCategory
from atcvirtual.core.logging_system import get_logger
from atcvirtual.services.llm.base import LLMProvider

logger = get_logger(__name__)


class GatewayProvider(LLMProvider):
    """Chat completions through an OpenAI-compatible gateway.

    The system prompt is sent as the first message of the conversation.
    """

    def __init__(self, api_key: str | None, url: str, model: str, timeout: float = 60.0) -> None:
        """Initialize gateway provider.

        Args:
            api_key: Server-side gateway key; None when not configured.
            url: Chat completions endpoint.
            model: Model id (already checked against the allowed list).
            timeout: Request timeout in seconds.
        """
        super().__init__(timeout=timeout)
        self._api_key = api_key
        self.url = url
        self.model = model

    @property
    def name(self) -> str:
        return "Gateway"

    def complete(self, system_prompt: str, messages: list[dict[str, str]]) -> str:
        if not self._api_key:
            logger.error("Gateway API key not configured")
            raise ProviderError(ProviderErrorCategory.NOT_CONFIGURED)

        logger.info("Using AI gateway with model %s", self.model)
        data = self._post_json(
            self.url,
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
            },
            body={
                "model": self.model,
                "messages": [{"role": "system", "content": system_prompt}, *messages],
                "stream": False,
            },
        )
        choices = data.get("choices") or []
        if choices and isinstance(choices[0], dict):
            message = choices[0].get("message") or {}
            return str(message.get("content") or "")
        return ""
