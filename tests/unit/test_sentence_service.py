"""
Unit tests for SentenceService metering.

Providers are mocked; spending goes through a real SpendingRecorder and
SQLite ledger so the tests observe what actually got billed.
"""

from unittest.mock import Mock

import pytest
from pydantic import ValidationError

from sentence_service.models import (
    MAX_HINT_LENGTH,
    MAX_WORD_LENGTH,
    GenerateDefinitionRequest,
    GenerateSentenceRequest,
    InvalidResponseError,
    TranslateRequest,
)
from sentence_service.service import SentenceService
from shared.billing import LedgerUnavailableError, SpendingRecorder
from shared.providers import (
    DefinitionResult,
    GeminiProvider,
    GoogleTTSProvider,
    NoSuchVoiceError,
    ProviderConnectionError,
    SentenceResult,
    TokenUsage,
    TranslationResult,
    VoiceGender,
    VoiceTier,
)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def model():
    model = Mock(spec=GeminiProvider)
    model.generate_sentence.return_value = (
        SentenceResult(original_sentence="El gato duerme", translated_sentence="The cat sleeps"),
        TokenUsage(input_tokens=100, output_tokens=40),
    )
    model.translate.return_value = (
        TranslationResult(translation="cat"),
        TokenUsage(input_tokens=20, output_tokens=2),
    )
    model.generate_definition.return_value = (
        DefinitionResult(definition="Animal doméstico"),
        TokenUsage(input_tokens=30, output_tokens=10),
    )
    return model


@pytest.fixture
def tts():
    tts = Mock(spec=GoogleTTSProvider)
    tts.synthesize.return_value = b"ID3-mp3-bytes"
    return tts


@pytest.fixture
def service(model, tts, recorder):
    return SentenceService(model, tts, recorder)


def _sentence_request(**overrides):
    fields = {"word": "gato", "word_language": "es-ES", "translation_language": "en-US"}
    fields.update(overrides)
    return GenerateSentenceRequest(**fields)


# ============================================================================
# GenerateSentence
# ============================================================================


class TestGenerateSentence:
    """Model and voice usage of sentence generation."""

    def test_model_usage_is_billed(self, service, ledger):
        resp = service.generate_sentence(_sentence_request())

        assert resp.original_sentence == "El gato duerme"
        assert resp.audio == b""
        daily = ledger.read_daily()
        assert daily.cost_micros == 100 * 2 + 40 * 5
        assert daily.model_input_units == 100
        assert daily.model_output_units == 40
        assert daily.premium_voice_characters == 0

    def test_audio_characters_are_metered(self, service, tts, ledger):
        resp = service.generate_sentence(_sentence_request(include_audio=True, voice_gender="MALE"))

        assert resp.audio == b"ID3-mp3-bytes"
        tts.synthesize.assert_called_once()
        args, kwargs = tts.synthesize.call_args
        assert args == ("El gato duerme", "es-ES")
        assert kwargs["gender"] is VoiceGender.MALE
        assert kwargs["tier"] is VoiceTier.PREMIUM
        assert ledger.read_daily().premium_voice_characters == len("El gato duerme")
        # Within the premium free tier
        assert ledger.read_daily().cost_micros == 400

    def test_standard_tier_uses_its_own_counter(self, model, tts, recorder, ledger):
        service = SentenceService(model, tts, recorder, voice_tier=VoiceTier.STANDARD)
        service.generate_sentence(_sentence_request(include_audio=True))

        assert tts.synthesize.call_args.kwargs["tier"] is VoiceTier.STANDARD
        assert ledger.read_daily().standard_voice_characters == len("El gato duerme")
        assert ledger.read_daily().premium_voice_characters == 0

    def test_failed_synthesis_is_not_billed(self, service, tts, ledger):
        tts.synthesize.side_effect = ProviderConnectionError("tts down")

        with pytest.raises(ProviderConnectionError):
            service.generate_sentence(_sentence_request(include_audio=True))

        # The model call already succeeded and stays billed
        assert ledger.read_daily().model_input_units == 100
        assert ledger.read_daily().premium_voice_characters == 0

    def test_failed_model_call_is_not_billed(self, service, model, tts, ledger):
        model.generate_sentence.side_effect = ProviderConnectionError("model down")

        with pytest.raises(ProviderConnectionError):
            service.generate_sentence(_sentence_request(include_audio=True))

        tts.synthesize.assert_not_called()
        assert ledger.history() == []

    def test_empty_sentence_is_invalid_but_billed(self, service, model, tts, ledger):
        model.generate_sentence.return_value = (SentenceResult(), TokenUsage(input_tokens=50))

        with pytest.raises(InvalidResponseError):
            service.generate_sentence(_sentence_request(include_audio=True))

        tts.synthesize.assert_not_called()
        assert ledger.read_daily().cost_micros == 100

    def test_ledger_failure_fails_the_request(self, model, tts):
        recorder = Mock(spec=SpendingRecorder)
        recorder.record.side_effect = LedgerUnavailableError("store down")
        service = SentenceService(model, tts, recorder)

        with pytest.raises(LedgerUnavailableError):
            service.generate_sentence(_sentence_request())

    def test_timeout_is_shared_across_calls(self, model, tts):
        recorder = Mock(spec=SpendingRecorder)
        service = SentenceService(model, tts, recorder)

        service.generate_sentence(_sentence_request(include_audio=True), timeout=5.0)

        model_timeout = model.generate_sentence.call_args.kwargs["timeout"]
        tts_timeout = tts.synthesize.call_args.kwargs["timeout"]
        record_timeouts = [c.kwargs["timeout"] for c in recorder.record.call_args_list]
        assert 0 < tts_timeout <= model_timeout <= 5.0
        assert len(record_timeouts) == 2
        assert all(0 < t <= 5.0 for t in record_timeouts)

    def test_no_deadline_passes_none(self, model, tts):
        recorder = Mock(spec=SpendingRecorder)
        SentenceService(model, tts, recorder).generate_sentence(_sentence_request())
        assert model.generate_sentence.call_args.kwargs["timeout"] is None
        assert recorder.record.call_args.kwargs["timeout"] is None


# ============================================================================
# Translate and GenerateDefinition
# ============================================================================


class TestTranslate:
    def test_translation_with_audio_speaks_the_word(self, service, tts, ledger):
        req = TranslateRequest(word="gato", from_language="es", to_language="en", include_audio=True)
        resp = service.translate(req)

        assert resp.translation == "cat"
        assert tts.synthesize.call_args.args == ("gato", "es")
        daily = ledger.read_daily()
        assert daily.cost_micros == 20 * 2 + 2 * 5
        assert daily.premium_voice_characters == 4

    def test_empty_translation_is_invalid(self, service, model):
        model.translate.return_value = (TranslationResult(), TokenUsage())
        with pytest.raises(InvalidResponseError):
            service.translate(TranslateRequest(word="xyzzy", from_language="es", to_language="en"))


class TestGenerateDefinition:
    def test_definition_without_audio(self, service, tts, ledger):
        resp = service.generate_definition(GenerateDefinitionRequest(word="gato", language="es"))

        assert resp.definition == "Animal doméstico"
        tts.synthesize.assert_not_called()
        assert ledger.read_daily().cost_micros == 30 * 2 + 10 * 5

    def test_missing_voice_returns_definition_without_audio(self, service, tts, ledger):
        tts.synthesize.side_effect = NoSuchVoiceError("no voice")

        resp = service.generate_definition(
            GenerateDefinitionRequest(word="gato", language="eu", include_audio=True)
        )

        assert resp.definition == "Animal doméstico"
        assert resp.audio == b""
        assert ledger.read_daily().premium_voice_characters == 0

    def test_missing_voice_fails_translation(self, service, tts):
        tts.synthesize.side_effect = NoSuchVoiceError("no voice")
        with pytest.raises(NoSuchVoiceError):
            service.translate(
                TranslateRequest(word="gato", from_language="eu", to_language="en", include_audio=True)
            )


# ============================================================================
# Request validation
# ============================================================================


class TestRequestValidation:
    """Pydantic validation of incoming requests."""

    def test_word_too_long(self):
        with pytest.raises(ValidationError):
            _sentence_request(word="a" * (MAX_WORD_LENGTH + 1))

    def test_word_at_limit(self):
        assert _sentence_request(word="a" * MAX_WORD_LENGTH).word

    def test_blank_word(self):
        with pytest.raises(ValidationError):
            _sentence_request(word="   ")

    def test_hint_too_long(self):
        with pytest.raises(ValidationError):
            _sentence_request(translation_hint="h" * (MAX_HINT_LENGTH + 1))

    def test_invalid_language(self):
        with pytest.raises(ValidationError):
            TranslateRequest(word="gato", from_language="spanish!", to_language="en")

    def test_unknown_gender(self):
        with pytest.raises(ValidationError):
            GenerateDefinitionRequest(word="gato", language="es", voice_gender="ROBOT")

    def test_json_parsing_ignores_unknown_fields(self):
        req = GenerateDefinitionRequest.model_validate_json(
            '{"word": "gato", "language": "es", "trace": "abc"}'
        )
        assert req.voice_gender is VoiceGender.FEMALE
        assert not req.include_audio

    def test_audio_is_base64_in_json(self, service):
        resp = service.generate_sentence(_sentence_request(include_audio=True))
        assert '"audio":"SUQzLW1wMy1ieXRlcw=="' in resp.model_dump_json()
