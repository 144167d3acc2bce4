"""Google Text-to-Speech provider - voice selection and MP3 synthesis."""

import base64
import binascii
import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from .base_provider import BaseProvider, NoSuchVoiceError, ProviderResponseError

logger = logging.getLogger(__name__)


class VoiceTier(str, Enum):
    """Voice tiers, matched against the voice name."""
    PREMIUM = "Chirp3-HD"
    STANDARD = "Standard"


class VoiceGender(str, Enum):
    FEMALE = "FEMALE"
    MALE = "MALE"


class GoogleTTSProvider(BaseProvider):
    """Selects a voice for a language and synthesizes MP3 audio."""

    def list_voices(self, language_code: str, timeout: Optional[float] = None) -> List[Dict[str, Any]]:
        data = self._request(
            "GET", "/voices", params={"languageCode": language_code}, timeout=timeout
        )
        return data.get("voices") or []

    def select_voice(
        self,
        language_code: str,
        gender: VoiceGender,
        tier: VoiceTier,
        timeout: Optional[float] = None,
    ) -> str:
        """
        Pick the first voice whose name contains the tier marker and whose
        SSML gender matches.

        Raises:
            NoSuchVoiceError: If no voice matches
        """
        for voice in self.list_voices(language_code, timeout=timeout):
            if tier.value in voice.get("name", "") and voice.get("ssmlGender") == gender.value:
                return voice["name"]
        raise NoSuchVoiceError(
            f"No {tier.value} {gender.value.lower()} voice for language {language_code}"
        )

    def synthesize(
        self,
        text: str,
        language_code: str,
        gender: VoiceGender = VoiceGender.FEMALE,
        tier: VoiceTier = VoiceTier.PREMIUM,
        timeout: Optional[float] = None,
    ) -> bytes:
        """
        Synthesize text to MP3.

        Returns:
            MP3 audio bytes

        Raises:
            NoSuchVoiceError: If no voice matches language, gender and tier
            ProviderError: If synthesis fails
        """
        name = self.select_voice(language_code, gender, tier, timeout=timeout)
        payload = {
            "input": {"text": text},
            "voice": {"languageCode": language_code, "name": name},
            "audioConfig": {"audioEncoding": "MP3"},
        }
        data = self._request("POST", "/text:synthesize", json=payload, timeout=timeout)

        try:
            audio = base64.b64decode(data["audioContent"], validate=True)
        except (KeyError, TypeError, binascii.Error) as e:
            raise ProviderResponseError("Speech synthesis returned no audio") from e
        logger.debug(f"Synthesized {len(text)} characters with voice {name}")
        return audio
