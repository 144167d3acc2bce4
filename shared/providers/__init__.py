"""Provider clients for the generative model and speech synthesis."""

from .base_provider import (
    BaseProvider,
    NoSuchVoiceError,
    ProviderAuthError,
    ProviderConfig,
    ProviderConnectionError,
    ProviderError,
    ProviderRateLimitError,
    ProviderResponseError,
    ProviderType,
    TokenUsage,
)
from .gemini_provider import (
    DefinitionResult,
    GeminiProvider,
    SentenceResult,
    TranslationResult,
)
from .tts_provider import GoogleTTSProvider, VoiceGender, VoiceTier

__all__ = [
    # Base classes
    "BaseProvider",
    # Configuration and types
    "ProviderConfig",
    "ProviderType",
    "TokenUsage",
    "SentenceResult",
    "TranslationResult",
    "DefinitionResult",
    "VoiceGender",
    "VoiceTier",
    # Error types
    "ProviderError",
    "ProviderConnectionError",
    "ProviderAuthError",
    "ProviderRateLimitError",
    "ProviderResponseError",
    "NoSuchVoiceError",
    # Implementations
    "GeminiProvider",
    "GoogleTTSProvider",
]
