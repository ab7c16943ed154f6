"""Tests for ``studio.generation.service``: request validation and error mapping."""

from __future__ import annotations

import pytest

from studio.core.errors import ErrorCategory
from studio.generation import (
    GENERATION_CONFIG,
    GenerationErrorCode,
    GenerationRequest,
    GenerationRequestError,
    create_generated_filename,
    map_status_to_error_code,
    normalize_request,
    require_valid_request,
    sanitize_api_key_for_logging,
    sanitize_prompt_for_logging,
    validate_api_key,
    validate_generation_request,
)


class TestValidateGenerationRequest:
    def test_valid(self):
        result = validate_generation_request(GenerationRequest(prompt="a red fox"))
        assert result.valid is True
        assert result.error_code is None

    @pytest.mark.parametrize("prompt", [None, "", 42])
    def test_missing_prompt(self, prompt):
        result = validate_generation_request(GenerationRequest(prompt=prompt))
        assert result.error_code == GenerationErrorCode.MISSING_PROMPT

    def test_short_prompt_is_measured_after_trim(self):
        result = validate_generation_request(GenerationRequest(prompt="  ab   "))
        assert result.error_code == GenerationErrorCode.INVALID_PROMPT
        assert result.error_message == "Prompt must be at least 3 characters"

    def test_prompt_length_bounds(self):
        assert validate_generation_request(GenerationRequest(prompt="x" * 5000)).valid
        too_long = validate_generation_request(GenerationRequest(prompt="x" * 5001))
        assert too_long.error_code == GenerationErrorCode.PROMPT_TOO_LONG

    @pytest.mark.parametrize(
        ("width", "height", "valid"),
        [(256, 256, True), (2048, 2048, True), (255, 1024, False), (1024, 2049, False), (None, None, True)],
    )
    def test_dimensions(self, width, height, valid):
        result = validate_generation_request(GenerationRequest(prompt="fox", width=width, height=height))
        assert result.valid is valid
        if not valid:
            assert result.error_code == GenerationErrorCode.INVALID_DIMENSIONS

    def test_unsupported_model(self):
        result = validate_generation_request(GenerationRequest(prompt="fox", model="dall-e"))
        assert result.error_code == GenerationErrorCode.GENERATION_FAILED
        assert "dall-e" in result.error_message

    def test_prompt_checked_before_dimensions(self):
        result = validate_generation_request(GenerationRequest(prompt="", width=1))
        assert result.error_code == GenerationErrorCode.MISSING_PROMPT


class TestValidateApiKey:
    def test_cases(self):
        assert validate_api_key(None).error_code == GenerationErrorCode.MISSING_API_KEY
        assert validate_api_key("short").error_code == GenerationErrorCode.INVALID_API_KEY
        assert validate_api_key("  abcdefgh  ").error_code == GenerationErrorCode.INVALID_API_KEY
        assert validate_api_key("AIzaSyExample123").valid


class TestNormalizeRequest:
    def test_defaults_filled(self):
        normalized = normalize_request(GenerationRequest(prompt="  fox  ", negative_prompt=" blur "))
        assert normalized.prompt == "fox"
        assert normalized.negative_prompt == "blur"
        assert normalized.width == GENERATION_CONFIG.default_width == 1024
        assert normalized.height == 1024
        assert normalized.model == "imagen-3.0-generate-001"

    def test_require_valid_request(self):
        assert require_valid_request(GenerationRequest(prompt="fox", width=512)).width == 512
        with pytest.raises(GenerationRequestError) as exc_info:
            require_valid_request(GenerationRequest(prompt="no", width=512))
        err = exc_info.value
        assert err.error_code == GenerationErrorCode.INVALID_PROMPT
        assert err.code == "INVALID_PROMPT"
        assert err.category == ErrorCategory.VALIDATION


class TestSanitizers:
    def test_prompt(self):
        assert sanitize_prompt_for_logging("  short  ") == "short..."
        assert sanitize_prompt_for_logging("x" * 80, max_length=10) == "x" * 10 + "..."

    def test_api_key(self):
        assert sanitize_api_key_for_logging("tiny") == "***"
        assert sanitize_api_key_for_logging("AIzaSyExample1234") == "AIzaSy...1234"


class TestMapStatusToErrorCode:
    @pytest.mark.parametrize(
        ("status", "message", "expected"),
        [
            (400, "API key not valid", GenerationErrorCode.MISSING_API_KEY),
            (401, "Unauthorized", GenerationErrorCode.INVALID_API_KEY),
            (429, "Rate limit exceeded", GenerationErrorCode.RATE_LIMITED),
            (403, "Quota exceeded", GenerationErrorCode.QUOTA_EXCEEDED),
            (400, "blocked by content policy", GenerationErrorCode.CONTENT_FILTERED),
            (500, "request timed out", GenerationErrorCode.TIMEOUT),
            (403, None, GenerationErrorCode.INVALID_API_KEY),
            (404, None, GenerationErrorCode.SERVICE_UNAVAILABLE),
            (502, "", GenerationErrorCode.SERVER_ERROR),
            (504, None, GenerationErrorCode.TIMEOUT),
            (418, None, GenerationErrorCode.UNKNOWN_ERROR),
        ],
    )
    def test_mapping(self, status, message, expected):
        assert map_status_to_error_code(status, message) == expected


class TestCreateGeneratedFilename:
    def test_slug(self):
        name = create_generated_filename("A Red Fox, in the Snow!", 42, now_ms=1000)
        assert name == "gen-a-red-fox-in-the-snow-42-1000.png"

    def test_slug_truncated(self):
        name = create_generated_filename("word " * 20, 7, now_ms=5)
        slug = name[len("gen-"):-len("-7-5.png")]
        assert len(slug) <= 30
        assert not slug.endswith("-")
