"""Abstract base class for third-party AI providers reached over REST."""

import logging
from abc import ABC
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

import httpx
from tenacity import (
    before_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)


class ProviderType(str, Enum):
    """Enumeration of provider types."""
    GEMINI = "gemini"
    GOOGLE_TTS = "google_tts"


@dataclass
class ProviderConfig:
    """Configuration for a provider."""
    provider_type: ProviderType
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    timeout: float = 30.0
    max_retries: int = 3
    extra: Dict[str, Any] = field(default_factory=dict)


class ProviderError(Exception):
    """Base exception for provider errors."""
    pass


class ProviderConnectionError(ProviderError):
    """Raised when unable to connect to provider."""
    pass


class ProviderAuthError(ProviderError):
    """Raised when authentication fails."""
    pass


class ProviderRateLimitError(ProviderError):
    """Raised when rate limited by provider."""
    pass


class ProviderResponseError(ProviderError):
    """Raised when the provider answers with something we cannot use."""
    pass


class NoSuchVoiceError(ProviderError):
    """Raised when no voice matches the requested language, tier and gender."""
    pass


@dataclass
class TokenUsage:
    """Tokens consumed by one model call."""
    input_tokens: int = 0
    output_tokens: int = 0


class BaseProvider(ABC):
    """
    Base class for REST providers.

    Owns one pooled httpx.Client (safe to share across handler threads),
    maps HTTP failures onto the provider error hierarchy and retries
    connection failures.
    """

    def __init__(self, config: ProviderConfig, transport: Optional[httpx.BaseTransport] = None):
        """
        Initialize provider with configuration.

        Args:
            config: ProviderConfig instance with provider settings
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.config = config
        self.name = config.provider_type.value
        if not config.api_key:
            logger.warning(f"No API key provided for {self.name}")

        headers = {"x-goog-api-key": config.api_key} if config.api_key else {}
        self._client = httpx.Client(
            base_url=config.base_url or "",
            headers=headers,
            timeout=config.timeout,
            transport=transport,
        )
        self._retry = retry(
            retry=retry_if_exception_type(ProviderConnectionError),
            stop=stop_after_attempt(max(1, config.max_retries)),
            wait=wait_exponential(multiplier=0.5, max=4),
            before=before_log(logger, logging.DEBUG),
            reraise=True,
        )
        logger.info(f"{self.name} provider initialized with base_url: {config.base_url}")

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def _request(
        self,
        method: str,
        path: str,
        timeout: Optional[float] = None,
        **kwargs,
    ) -> Dict[str, Any]:
        """Send a request with retries and return the decoded JSON body."""
        if timeout is not None and timeout <= 0:
            raise ProviderConnectionError(f"Deadline exceeded before {self.name} request")
        return self._retry(self._request_once)(method, path, timeout=timeout, **kwargs)

    def _request_once(
        self,
        method: str,
        path: str,
        timeout: Optional[float] = None,
        **kwargs,
    ) -> Dict[str, Any]:
        request_timeout = self.config.timeout if timeout is None else min(timeout, self.config.timeout)
        try:
            response = self._client.request(method, path, timeout=request_timeout, **kwargs)
        except httpx.TimeoutException as e:
            raise ProviderConnectionError(f"{self.name} request timed out: {e}") from e
        except httpx.TransportError as e:
            raise ProviderConnectionError(f"{self.name} connection failed: {e}") from e

        if response.status_code in (401, 403):
            raise ProviderAuthError(f"{self.name} authentication failed: {response.status_code}")
        if response.status_code == 429:
            raise ProviderRateLimitError(f"Rate limited by {self.name}")
        if response.status_code >= 500:
            raise ProviderConnectionError(f"{self.name} API error {response.status_code}: {response.text}")
        if response.status_code >= 400:
            raise ProviderResponseError(f"{self.name} API error {response.status_code}: {response.text}")

        try:
            return response.json()
        except ValueError as e:
            raise ProviderResponseError(f"{self.name} returned invalid JSON: {e}") from e
