"""Gemini provider - structured JSON generation with token accounting."""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import httpx

from .base_provider import (
    BaseProvider,
    ProviderConfig,
    ProviderResponseError,
    TokenUsage,
)

logger = logging.getLogger(__name__)

GENERATE_SENTENCE_PROMPT = """
Generate a simple sentence in {word_language} using the word {word}.
-The sentence should make it easy to understand the word from context.
-If the word doesn't exist or if it is from another language, leave the fields empty
-Otherwise, return the sentence and its translation to {translation_language} language.
-Translation hint:{hint}"""

GENERATE_DEFINITION_PROMPT = """
Generate a simple definition in {language} for the word/term {word}.
-If the word/term doesn't exist in the language leave the fields empty
-Definition hint:{hint}"""

TRANSLATION_PROMPT = """
Translate word/phrase {word} from language {from_language} to {to_language}.
-If the word/phrase doesn't exist in the language leave the fields empty
-Translation hint:{hint}"""


def _object_schema(**properties: str) -> Dict[str, Any]:
    return {
        "type": "OBJECT",
        "properties": {
            name: {"type": "STRING", "description": description}
            for name, description in properties.items()
        },
        "required": list(properties),
        "propertyOrdering": list(properties),
    }


SENTENCE_SCHEMA = _object_schema(
    original_sentence="Sentence in the language of the provided word.",
    translated_sentence="Translated sentence.",
)
TRANSLATION_SCHEMA = _object_schema(translation="Translated word/phrase")
DEFINITION_SCHEMA = _object_schema(
    definition="Definition of the word/phrase without the word/phrase itself",
)


@dataclass
class SentenceResult:
    original_sentence: str = ""
    translated_sentence: str = ""


@dataclass
class TranslationResult:
    translation: str = ""


@dataclass
class DefinitionResult:
    definition: str = ""


class GeminiProvider(BaseProvider):
    """Calls ``models/{model}:generateContent`` and reports token usage."""

    def __init__(
        self,
        config: ProviderConfig,
        model: str,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        super().__init__(config, transport=transport)
        self.model = model

    def generate_json(
        self,
        prompt: str,
        schema: Dict[str, Any],
        timeout: Optional[float] = None,
    ) -> Tuple[Dict[str, Any], TokenUsage]:
        """
        Generate a JSON object matching schema.

        Returns:
            (parsed object, TokenUsage)

        Raises:
            ProviderError: If the call fails or the output is not a JSON object
        """
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": schema,
            },
        }
        data = self._request(
            "POST", f"/models/{self.model}:generateContent", json=payload, timeout=timeout
        )

        try:
            parts = data["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderResponseError(f"Gemini response has no candidates: {data}") from e
        text = "".join(part.get("text", "") for part in parts)

        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as e:
            raise ProviderResponseError(f"Gemini returned invalid JSON: {text!r}") from e
        if not isinstance(parsed, dict):
            raise ProviderResponseError(f"Gemini returned non-object JSON: {text!r}")

        metadata = data.get("usageMetadata") or {}
        usage = TokenUsage(
            input_tokens=int(metadata.get("promptTokenCount", 0)),
            output_tokens=int(metadata.get("candidatesTokenCount", 0)),
        )
        logger.debug(
            f"Gemini call completed: input_tokens={usage.input_tokens}, "
            f"output_tokens={usage.output_tokens}"
        )
        return parsed, usage

    def generate_sentence(
        self,
        word: str,
        word_language: str,
        translation_language: str,
        translation_hint: str = "",
        timeout: Optional[float] = None,
    ) -> Tuple[SentenceResult, TokenUsage]:
        prompt = GENERATE_SENTENCE_PROMPT.format(
            word_language=word_language,
            word=word,
            translation_language=translation_language,
            hint=translation_hint,
        )
        parsed, usage = self.generate_json(prompt, SENTENCE_SCHEMA, timeout=timeout)
        return SentenceResult(
            original_sentence=str(parsed.get("original_sentence", "")),
            translated_sentence=str(parsed.get("translated_sentence", "")),
        ), usage

    def translate(
        self,
        word: str,
        from_language: str,
        to_language: str,
        translation_hint: str = "",
        timeout: Optional[float] = None,
    ) -> Tuple[TranslationResult, TokenUsage]:
        prompt = TRANSLATION_PROMPT.format(
            word=word,
            from_language=from_language,
            to_language=to_language,
            hint=translation_hint,
        )
        parsed, usage = self.generate_json(prompt, TRANSLATION_SCHEMA, timeout=timeout)
        return TranslationResult(translation=str(parsed.get("translation", ""))), usage

    def generate_definition(
        self,
        word: str,
        language: str,
        definition_hint: str = "",
        timeout: Optional[float] = None,
    ) -> Tuple[DefinitionResult, TokenUsage]:
        prompt = GENERATE_DEFINITION_PROMPT.format(
            language=language,
            word=word,
            hint=definition_hint,
        )
        parsed, usage = self.generate_json(prompt, DEFINITION_SCHEMA, timeout=timeout)
        return DefinitionResult(definition=str(parsed.get("definition", ""))), usage
