"""Unit tests for the Gemini and Google TTS providers over httpx.MockTransport."""

import base64
import json

import httpx
import pytest

from shared.providers import (
    GeminiProvider,
    GoogleTTSProvider,
    NoSuchVoiceError,
    ProviderAuthError,
    ProviderConfig,
    ProviderConnectionError,
    ProviderRateLimitError,
    ProviderResponseError,
    ProviderType,
    VoiceGender,
    VoiceTier,
)

GEMINI_URL = "https://gemini.test/v1beta"
TTS_URL = "https://tts.test/v1"


def _gemini(handler, max_retries=1):
    config = ProviderConfig(
        provider_type=ProviderType.GEMINI,
        api_key="test-key",
        base_url=GEMINI_URL,
        max_retries=max_retries,
    )
    return GeminiProvider(config, model="gemini-test", transport=httpx.MockTransport(handler))


def _tts(handler):
    config = ProviderConfig(provider_type=ProviderType.GOOGLE_TTS, api_key="tts-key", base_url=TTS_URL)
    return GoogleTTSProvider(config, transport=httpx.MockTransport(handler))


def _generate_content(payload, prompt_tokens=12, output_tokens=7):
    return {
        "candidates": [{"content": {"parts": [{"text": json.dumps(payload)}]}}],
        "usageMetadata": {"promptTokenCount": prompt_tokens, "candidatesTokenCount": output_tokens},
    }


# ============================================================================
# GeminiProvider
# ============================================================================


class TestGeminiProvider:
    """Structured generation and token accounting."""

    def test_generate_sentence(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["key"] = request.headers.get("x-goog-api-key")
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json=_generate_content(
                    {"original_sentence": "El gato duerme", "translated_sentence": "The cat sleeps"}
                ),
            )

        with _gemini(handler) as provider:
            result, usage = provider.generate_sentence("gato", "es-ES", "en-US", "animal")

        assert result.original_sentence == "El gato duerme"
        assert result.translated_sentence == "The cat sleeps"
        assert (usage.input_tokens, usage.output_tokens) == (12, 7)
        assert seen["path"] == "/v1beta/models/gemini-test:generateContent"
        assert seen["key"] == "test-key"
        config = seen["body"]["generationConfig"]
        assert config["responseMimeType"] == "application/json"
        assert config["responseSchema"]["required"] == ["original_sentence", "translated_sentence"]
        assert "gato" in seen["body"]["contents"][0]["parts"][0]["text"]

    def test_translate_and_define(self):
        def handler(request):
            schema = json.loads(request.content)["generationConfig"]["responseSchema"]
            if "translation" in schema["properties"]:
                return httpx.Response(200, json=_generate_content({"translation": "cat"}))
            return httpx.Response(200, json=_generate_content({"definition": "A small feline"}))

        with _gemini(handler) as provider:
            translation, _ = provider.translate("gato", "es", "en")
            definition, _ = provider.generate_definition("cat", "en")

        assert translation.translation == "cat"
        assert definition.definition == "A small feline"

    def test_missing_usage_metadata_counts_zero(self):
        def handler(request):
            body = _generate_content({"translation": "cat"})
            del body["usageMetadata"]
            return httpx.Response(200, json=body)

        with _gemini(handler) as provider:
            _, usage = provider.translate("gato", "es", "en")
        assert (usage.input_tokens, usage.output_tokens) == (0, 0)

    def test_empty_fields_are_returned_empty(self):
        def handler(request):
            return httpx.Response(200, json=_generate_content({"translation": ""}))

        with _gemini(handler) as provider:
            translation, _ = provider.translate("xyzzy", "es", "en")
        assert translation.translation == ""

    @pytest.mark.parametrize(
        "body",
        [
            {"candidates": []},
            {"candidates": [{"content": {"parts": [{"text": "not json"}]}}]},
            {"candidates": [{"content": {"parts": [{"text": "[1, 2]"}]}}]},
        ],
    )
    def test_unusable_output(self, body):
        with _gemini(lambda request: httpx.Response(200, json=body)) as provider:
            with pytest.raises(ProviderResponseError):
                provider.translate("gato", "es", "en")

    @pytest.mark.parametrize(
        "status, error",
        [
            (401, ProviderAuthError),
            (403, ProviderAuthError),
            (429, ProviderRateLimitError),
            (400, ProviderResponseError),
            (503, ProviderConnectionError),
        ],
    )
    def test_status_mapping(self, status, error):
        with _gemini(lambda request: httpx.Response(status, text="nope")) as provider:
            with pytest.raises(error):
                provider.translate("gato", "es", "en")

    def test_server_errors_are_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(503, text="busy")
            return httpx.Response(200, json=_generate_content({"translation": "cat"}))

        with _gemini(handler, max_retries=2) as provider:
            translation, _ = provider.translate("gato", "es", "en")

        assert translation.translation == "cat"
        assert len(calls) == 2

    def test_client_errors_are_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(429)

        with _gemini(handler, max_retries=3) as provider:
            with pytest.raises(ProviderRateLimitError):
                provider.translate("gato", "es", "en")
        assert len(calls) == 1

    def test_transport_failure_is_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with _gemini(handler) as provider:
            with pytest.raises(ProviderConnectionError):
                provider.translate("gato", "es", "en")

    def test_expired_deadline_sends_nothing(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json=_generate_content({"translation": "cat"}))

        with _gemini(handler) as provider:
            with pytest.raises(ProviderConnectionError):
                provider.translate("gato", "es", "en", timeout=0)
        assert calls == []


# ============================================================================
# GoogleTTSProvider
# ============================================================================

VOICES = {
    "voices": [
        {"name": "es-ES-Standard-A", "ssmlGender": "FEMALE"},
        {"name": "es-ES-Chirp3-HD-Charon", "ssmlGender": "MALE"},
        {"name": "es-ES-Chirp3-HD-Kore", "ssmlGender": "FEMALE"},
        {"name": "es-ES-Standard-B", "ssmlGender": "MALE"},
    ]
}


class TestGoogleTTSProvider:
    """Voice selection and synthesis."""

    @pytest.fixture
    def requests_seen(self):
        return []

    @pytest.fixture
    def provider(self, requests_seen):
        def handler(request):
            requests_seen.append(request)
            if request.url.path == "/v1/voices":
                return httpx.Response(200, json=VOICES)
            if request.url.path == "/v1/text:synthesize":
                return httpx.Response(200, json={"audioContent": base64.b64encode(b"mp3").decode()})
            return httpx.Response(404)

        with _tts(handler) as provider:
            yield provider

    def test_select_voice_by_tier_and_gender(self, provider):
        assert provider.select_voice("es-ES", VoiceGender.FEMALE, VoiceTier.PREMIUM) == "es-ES-Chirp3-HD-Kore"
        assert provider.select_voice("es-ES", VoiceGender.MALE, VoiceTier.PREMIUM) == "es-ES-Chirp3-HD-Charon"
        assert provider.select_voice("es-ES", VoiceGender.MALE, VoiceTier.STANDARD) == "es-ES-Standard-B"

    def test_synthesize(self, provider, requests_seen):
        audio = provider.synthesize("hola", "es-ES", gender=VoiceGender.MALE)

        assert audio == b"mp3"
        voices_request, synth_request = requests_seen
        assert voices_request.url.params["languageCode"] == "es-ES"
        body = json.loads(synth_request.content)
        assert body["input"] == {"text": "hola"}
        assert body["voice"] == {"languageCode": "es-ES", "name": "es-ES-Chirp3-HD-Charon"}
        assert body["audioConfig"] == {"audioEncoding": "MP3"}

    def test_no_matching_voice(self):
        provider = _tts(lambda request: httpx.Response(200, json={"voices": []}))
        try:
            with pytest.raises(NoSuchVoiceError):
                provider.synthesize("kaixo", "eu-ES")
        finally:
            provider.close()

    def test_missing_audio_content(self):
        def handler(request):
            if request.url.path == "/v1/voices":
                return httpx.Response(200, json=VOICES)
            return httpx.Response(200, json={})

        with _tts(handler) as provider:
            with pytest.raises(ProviderResponseError):
                provider.synthesize("hola", "es-ES")
