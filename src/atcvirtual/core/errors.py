"""Exception types for ATC Virtual.

Input validation errors carry a short user-facing message. Provider
errors carry a category; upstream detail is only logged.
"""

from enum import Enum


class ATCVirtualError(Exception):
    """Base class for ATC Virtual errors."""


class InputValidationError(ATCVirtualError):
    """Malformed request rejected before any LLM call.

    Attributes:
        user_message: Short message safe to show to the pilot.
        field: Name of the offending field, if known.
    """

    def __init__(self, user_message: str, field: str | None = None) -> None:
        super().__init__(user_message)
        self.user_message = user_message
        self.field = field


class ProviderErrorCategory(Enum):
    """Generic categories for upstream LLM provider failures."""

    AUTH_FAILED = "auth_failed"
    RATE_LIMITED = "rate_limited"
    QUOTA_EXHAUSTED = "quota_exhausted"
    NOT_CONFIGURED = "not_configured"
    FAILED = "failed"

    @property
    def user_message(self) -> str:
        """Message shown to the pilot for this category."""
        return _CATEGORY_MESSAGES[self]

    @classmethod
    def from_status(cls, status_code: int) -> "ProviderErrorCategory":
        """Map an HTTP status code to a category.

        Args:
            status_code: HTTP status returned by the provider.

        Returns:
            Matching category, FAILED for anything unrecognised.
        """
        if status_code in (401, 403):
            return cls.AUTH_FAILED
        if status_code == 429:
            return cls.RATE_LIMITED
        if status_code == 402:
            return cls.QUOTA_EXHAUSTED
        return cls.FAILED


_CATEGORY_MESSAGES = {
    ProviderErrorCategory.AUTH_FAILED: "Falha na autenticação",
    ProviderErrorCategory.RATE_LIMITED: "Limite de requisições excedido",
    ProviderErrorCategory.QUOTA_EXHAUSTED: "Créditos insuficientes",
    ProviderErrorCategory.NOT_CONFIGURED: "Serviço não configurado",
    ProviderErrorCategory.FAILED: "Erro no serviço de IA",
}


class ProviderError(ATCVirtualError):
    """Upstream LLM provider failure.

    Attributes:
        category: Generic failure category.
        status_code: HTTP status, if the provider answered.
    """

    def __init__(self, category: ProviderErrorCategory, status_code: int | None = None) -> None:
        super().__init__(category.user_message)
        self.category = category
        self.status_code = status_code

    @property
    def user_message(self) -> str:
        """Message safe to show to the pilot."""
        return self.category.user_message


class ConcurrentRequestError(ATCVirtualError):
    """A transmission was sent while another request is still pending."""
