"""
Sentence service - business logic behind the SentenceGen RPCs.

Each RPC makes one model call and optionally one speech synthesis call.
Every call that succeeds is metered right away with its own
SpendingRecorder.record(); a failed call is never billed.
"""

import logging
import time
from typing import Optional

from shared.billing import SpendingRecorder, UsageBatch, UsageDimension
from shared.providers import (
    GeminiProvider,
    GoogleTTSProvider,
    NoSuchVoiceError,
    TokenUsage,
    VoiceGender,
    VoiceTier,
)

from .models import (
    GenerateDefinitionRequest,
    GenerateDefinitionResponse,
    GenerateSentenceRequest,
    GenerateSentenceResponse,
    TranslateRequest,
    TranslateResponse,
)

logger = logging.getLogger(__name__)

VOICE_DIMENSIONS = {
    VoiceTier.PREMIUM: UsageDimension.PREMIUM_VOICE,
    VoiceTier.STANDARD: UsageDimension.STANDARD_VOICE,
}


def _deadline(timeout: Optional[float]) -> Optional[float]:
    return None if timeout is None else time.monotonic() + timeout


def _remaining(deadline: Optional[float]) -> Optional[float]:
    """Seconds left before deadline, or None when the call has none."""
    return None if deadline is None else deadline - time.monotonic()


class SentenceService:
    """Generates sentences, translations and definitions with optional audio."""

    def __init__(
        self,
        model: GeminiProvider,
        tts: GoogleTTSProvider,
        recorder: SpendingRecorder,
        voice_tier: VoiceTier = VoiceTier.PREMIUM,
    ):
        self.model = model
        self.tts = tts
        self.recorder = recorder
        self.voice_tier = voice_tier

    def _record_model_usage(self, usage: TokenUsage, deadline: Optional[float]) -> None:
        self.recorder.record(
            UsageBatch(
                model_input_units=usage.input_tokens,
                model_output_units=usage.output_tokens,
            ),
            timeout=_remaining(deadline),
        )

    def _speak(
        self,
        text: str,
        language: str,
        gender: VoiceGender,
        deadline: Optional[float],
    ) -> bytes:
        """Synthesize text and meter its characters once synthesis succeeded."""
        audio = self.tts.synthesize(
            text, language, gender=gender, tier=self.voice_tier, timeout=_remaining(deadline)
        )
        dimension = VOICE_DIMENSIONS[self.voice_tier]
        self.recorder.record(
            UsageBatch(**{dimension.value: len(text)}),
            timeout=_remaining(deadline),
        )
        return audio

    def generate_sentence(
        self,
        req: GenerateSentenceRequest,
        timeout: Optional[float] = None,
    ) -> GenerateSentenceResponse:
        deadline = _deadline(timeout)
        sentence, usage = self.model.generate_sentence(
            req.word,
            req.word_language,
            req.translation_language,
            req.translation_hint,
            timeout=_remaining(deadline),
        )
        self._record_model_usage(usage, deadline)

        resp = GenerateSentenceResponse(
            original_sentence=sentence.original_sentence,
            translated_sentence=sentence.translated_sentence,
        )
        resp.validate_content()

        if req.include_audio:
            resp.audio = self._speak(
                sentence.original_sentence, req.word_language, req.voice_gender, deadline
            )
        return resp

    def translate(
        self,
        req: TranslateRequest,
        timeout: Optional[float] = None,
    ) -> TranslateResponse:
        deadline = _deadline(timeout)
        translation, usage = self.model.translate(
            req.word,
            req.from_language,
            req.to_language,
            req.translation_hint,
            timeout=_remaining(deadline),
        )
        self._record_model_usage(usage, deadline)

        resp = TranslateResponse(translation=translation.translation)
        resp.validate_content()

        if req.include_audio:
            resp.audio = self._speak(req.word, req.from_language, req.voice_gender, deadline)
        return resp

    def generate_definition(
        self,
        req: GenerateDefinitionRequest,
        timeout: Optional[float] = None,
    ) -> GenerateDefinitionResponse:
        deadline = _deadline(timeout)
        definition, usage = self.model.generate_definition(
            req.word,
            req.language,
            req.definition_hint,
            timeout=_remaining(deadline),
        )
        self._record_model_usage(usage, deadline)

        resp = GenerateDefinitionResponse(definition=definition.definition)
        resp.validate_content()

        if req.include_audio:
            try:
                resp.audio = self._speak(req.word, req.language, req.voice_gender, deadline)
            except NoSuchVoiceError as e:
                logger.info(f"Definition returned without audio: {e}")
        return resp
