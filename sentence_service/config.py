"""
Configuration for the sentence gateway.

Centralizes listener, ledger, pricing and provider settings. Values come
from environment variables, after an optional .env file is loaded.
Configuration is read once at startup and never changes afterwards.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from shared.billing import PricingConfigError, PricingTable
from shared.billing.pricing import (
    PREMIUM_VOICE_FREE_TIER,
    PREMIUM_VOICE_PRICE_MICROS,
    STANDARD_VOICE_FREE_TIER,
    STANDARD_VOICE_PRICE_MICROS,
)

logger = logging.getLogger(__name__)


def _int_env(name: str, default: Optional[int] = None) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw.replace("_", ""))
    except ValueError as e:
        raise PricingConfigError(f"{name} must be an integer, got {raw!r}") from e


@dataclass
class SentenceServiceConfig:
    """
    Configuration for the sentence gateway.

    Attributes:
        daily_quota_micros: Daily spending ceiling in micro-USD
        gemini_model: Generative model name
        gemini_input_price: Micro-USD per model input token
        gemini_output_price: Micro-USD per model output token
        ledger_db_path: SQLite usage ledger path
        host: gRPC server host
        port: gRPC server port
        max_workers: ThreadPoolExecutor workers
    """
    # Billing
    daily_quota_micros: int = 0
    gemini_input_price: int = -1
    gemini_output_price: int = -1
    premium_voice_price: int = PREMIUM_VOICE_PRICE_MICROS
    premium_voice_free_tier: int = PREMIUM_VOICE_FREE_TIER
    standard_voice_price: int = STANDARD_VOICE_PRICE_MICROS
    standard_voice_free_tier: int = STANDARD_VOICE_FREE_TIER
    ledger_db_path: str = "data/spending.db"

    # Providers
    gemini_model: str = ""
    gemini_api_key: Optional[str] = None
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    tts_api_key: Optional[str] = None
    tts_base_url: str = "https://texttospeech.googleapis.com/v1"
    provider_timeout: float = 30.0

    # Service configuration
    host: str = "[::]"
    port: int = 50051
    max_workers: int = 10
    log_level: str = "INFO"
    log_json: bool = True

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "SentenceServiceConfig":
        """
        Load configuration from environment variables.

        Environment variables:
            DAILY_QUOTA: Daily ceiling in micro-USD (required)
            GEMINI_MODEL: Model name (required)
            GEMINI_INPUT_PRICE / GEMINI_OUTPUT_PRICE: Micro-USD per token (required)
            GEMINI_API_KEY, GEMINI_BASE_URL
            TTS_API_KEY, TTS_BASE_URL
            PREMIUM_VOICE_PRICE, PREMIUM_VOICE_FREE_TIER
            STANDARD_VOICE_PRICE, STANDARD_VOICE_FREE_TIER
            LEDGER_DB_PATH
            SENTENCE_HOST, SENTENCE_PORT, SENTENCE_MAX_WORKERS
            PROVIDER_TIMEOUT, LOG_LEVEL, LOG_JSON

        Args:
            env_file: Path to .env file (default: .env in working directory)
        """
        if env_file:
            load_dotenv(env_file)
        else:
            env_path = Path.cwd() / ".env"
            if env_path.exists():
                load_dotenv(env_path)

        return cls(
            daily_quota_micros=_int_env("DAILY_QUOTA", 0),
            gemini_input_price=_int_env("GEMINI_INPUT_PRICE", -1),
            gemini_output_price=_int_env("GEMINI_OUTPUT_PRICE", -1),
            premium_voice_price=_int_env("PREMIUM_VOICE_PRICE", PREMIUM_VOICE_PRICE_MICROS),
            premium_voice_free_tier=_int_env("PREMIUM_VOICE_FREE_TIER", PREMIUM_VOICE_FREE_TIER),
            standard_voice_price=_int_env("STANDARD_VOICE_PRICE", STANDARD_VOICE_PRICE_MICROS),
            standard_voice_free_tier=_int_env("STANDARD_VOICE_FREE_TIER", STANDARD_VOICE_FREE_TIER),
            ledger_db_path=os.getenv("LEDGER_DB_PATH", cls.ledger_db_path),
            gemini_model=os.getenv("GEMINI_MODEL", ""),
            gemini_api_key=os.getenv("GEMINI_API_KEY"),
            gemini_base_url=os.getenv("GEMINI_BASE_URL", cls.gemini_base_url),
            tts_api_key=os.getenv("TTS_API_KEY"),
            tts_base_url=os.getenv("TTS_BASE_URL", cls.tts_base_url),
            provider_timeout=float(os.getenv("PROVIDER_TIMEOUT", str(cls.provider_timeout))),
            host=os.getenv("SENTENCE_HOST", cls.host),
            port=int(os.getenv("SENTENCE_PORT", str(cls.port))),
            max_workers=int(os.getenv("SENTENCE_MAX_WORKERS", str(cls.max_workers))),
            log_level=os.getenv("LOG_LEVEL", cls.log_level),
            log_json=os.getenv("LOG_JSON", "true").lower() == "true",
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            PricingConfigError: If quota or prices are missing or invalid
            ValueError: If other settings are invalid
        """
        if self.daily_quota_micros <= 0:
            raise PricingConfigError(f"DAILY_QUOTA must be > 0, got {self.daily_quota_micros}")

        if self.gemini_input_price < 0 or self.gemini_output_price < 0:
            raise PricingConfigError("GEMINI_INPUT_PRICE and GEMINI_OUTPUT_PRICE must be set and >= 0")

        # Raises PricingConfigError on negative voice prices or tiers
        self.pricing_table()

        if not self.gemini_model:
            raise ValueError("GEMINI_MODEL must be set")

        if self.port < 1024 or self.port > 65535:
            raise ValueError(f"port must be in [1024, 65535], got {self.port}")

        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")

        if self.provider_timeout <= 0:
            raise ValueError(f"provider_timeout must be > 0, got {self.provider_timeout}")

        logger.info("Configuration validated successfully")

    def pricing_table(self) -> PricingTable:
        return PricingTable.from_prices(
            model_input_price=self.gemini_input_price,
            model_output_price=self.gemini_output_price,
            premium_voice_price=self.premium_voice_price,
            premium_voice_free_tier=self.premium_voice_free_tier,
            standard_voice_price=self.standard_voice_price,
            standard_voice_free_tier=self.standard_voice_free_tier,
        )

    def log_config(self) -> None:
        """Log configuration for debugging."""
        logger.info("Sentence Service Configuration:")
        logger.info(f"  Daily quota: {self.daily_quota_micros} micro-USD")
        logger.info(f"  Model: {self.gemini_model}")
        logger.info(f"  Ledger: {self.ledger_db_path}")
        logger.info(f"  Server: {self.host}:{self.port}")
        logger.info(f"  Workers: {self.max_workers}")


def get_config(env_file: Optional[str] = None) -> SentenceServiceConfig:
    """
    Get sentence gateway configuration.

    Loads from environment variables, validates, and returns config instance.
    """
    config = SentenceServiceConfig.from_env(env_file)
    config.validate()
    return config
