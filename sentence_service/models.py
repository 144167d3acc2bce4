"""Request and response schemas for the SentenceGen service."""

import base64
import re

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from shared.providers import VoiceGender

MAX_WORD_LENGTH = 100
MAX_HINT_LENGTH = 200

_LANGUAGE_TAG = re.compile(r"^[A-Za-z]{2,3}(-[A-Za-z0-9]{2,8})*$")


class InvalidResponseError(Exception):
    """Raised when the model produced an empty or unusable answer."""
    pass


def _validate_language(value: str) -> str:
    if not _LANGUAGE_TAG.match(value):
        raise ValueError(f"invalid language code: {value!r}")
    return value


class _Request(BaseModel):
    model_config = ConfigDict(extra="ignore")

    word: str = Field(min_length=1, max_length=MAX_WORD_LENGTH)
    include_audio: bool = False
    voice_gender: VoiceGender = VoiceGender.FEMALE

    @field_validator("word")
    @classmethod
    def check_word(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("empty word")
        return value


class GenerateSentenceRequest(_Request):
    word_language: str
    translation_language: str
    translation_hint: str = Field(default="", max_length=MAX_HINT_LENGTH)

    @field_validator("word_language", "translation_language")
    @classmethod
    def check_languages(cls, value: str) -> str:
        return _validate_language(value)


class TranslateRequest(_Request):
    from_language: str
    to_language: str
    translation_hint: str = Field(default="", max_length=MAX_HINT_LENGTH)

    @field_validator("from_language", "to_language")
    @classmethod
    def check_languages(cls, value: str) -> str:
        return _validate_language(value)


class GenerateDefinitionRequest(_Request):
    language: str
    definition_hint: str = Field(default="", max_length=MAX_HINT_LENGTH)

    @field_validator("language")
    @classmethod
    def check_languages(cls, value: str) -> str:
        return _validate_language(value)


class _Response(BaseModel):
    audio: bytes = b""

    @field_serializer("audio")
    def serialize_audio(self, audio: bytes) -> str:
        return base64.b64encode(audio).decode("ascii")


class GenerateSentenceResponse(_Response):
    original_sentence: str
    translated_sentence: str

    def validate_content(self) -> None:
        if not self.original_sentence or not self.translated_sentence:
            raise InvalidResponseError("model returned an empty sentence")


class TranslateResponse(_Response):
    translation: str

    def validate_content(self) -> None:
        if not self.translation:
            raise InvalidResponseError("model returned an empty translation")


class GenerateDefinitionResponse(_Response):
    definition: str

    def validate_content(self) -> None:
        if not self.definition:
            raise InvalidResponseError("model returned an empty definition")
