"""
Image-generation request validation, normalization and error mapping.

The provider call itself lives elsewhere; this module decides whether a
request may be sent, fills in defaults, keeps prompts and keys out of
logs, and turns provider HTTP failures into stable error codes.

Features:
    - **validate_generation_request():** prompt → dimensions → model, first failure wins
    - **validate_api_key():** presence and minimum length
    - **normalize_request():** trimmed prompt plus defaults
    - **map_status_to_error_code():** message patterns first, then HTTP status
    - **create_generated_filename():** filesystem-safe image name

Examples:
    >>> validate_generation_request(GenerationRequest(prompt="hi")).error_code
    <GenerationErrorCode.INVALID_PROMPT: 'INVALID_PROMPT'>
    >>> map_status_to_error_code(429, "Rate limit exceeded")
    <GenerationErrorCode.RATE_LIMITED: 'RATE_LIMITED'>

Tags:
    generation, validation, error-mapping, studio-core
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

from studio.core.errors import ValidationError
from studio.core.timestamps import now_ms as _now_ms


@dataclass(frozen=True)
class GenerationConfig:
    min_width: int = 256
    max_width: int = 2048
    min_height: int = 256
    max_height: int = 2048
    default_width: int = 1024
    default_height: int = 1024
    min_prompt_length: int = 3
    max_prompt_length: int = 5000
    min_api_key_length: int = 10
    request_timeout_s: float = 90.0
    supported_models: tuple[str, ...] = (
        "imagen-3.0-generate-001",
        "imagen-3.0-fast-generate-001",
    )
    default_model: str = "imagen-3.0-generate-001"


GENERATION_CONFIG = GenerationConfig()


class GenerationErrorCode(str, Enum):
    MISSING_PROMPT = "MISSING_PROMPT"
    INVALID_PROMPT = "INVALID_PROMPT"
    PROMPT_TOO_LONG = "PROMPT_TOO_LONG"
    INVALID_DIMENSIONS = "INVALID_DIMENSIONS"
    MISSING_API_KEY = "MISSING_API_KEY"
    INVALID_API_KEY = "INVALID_API_KEY"
    RATE_LIMITED = "RATE_LIMITED"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    CONTENT_FILTERED = "CONTENT_FILTERED"
    TIMEOUT = "TIMEOUT"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    SERVER_ERROR = "SERVER_ERROR"
    GENERATION_FAILED = "GENERATION_FAILED"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


@dataclass(frozen=True)
class GenerationRequest:
    """A generation request as received; every field may be absent."""

    prompt: Any = None
    negative_prompt: str | None = None
    width: int | None = None
    height: int | None = None
    model: str | None = None
    seed: int | None = None


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    error_code: GenerationErrorCode | None = None
    error_message: str | None = None

    @classmethod
    def ok(cls) -> ValidationResult:
        return cls(valid=True)

    @classmethod
    def fail(cls, code: GenerationErrorCode, message: str) -> ValidationResult:
        return cls(valid=False, error_code=code, error_message=message)


class GenerationRequestError(ValidationError):
    """A generation request failed validation."""

    def __init__(self, result: ValidationResult):
        super().__init__(
            result.error_message or "Invalid generation request",
            code=result.error_code.value if result.error_code else None,
        )
        self.error_code = result.error_code


# ── Validation ───────────────────────────────────────────────────────────


def validate_generation_request(
    request: GenerationRequest, config: GenerationConfig = GENERATION_CONFIG
) -> ValidationResult:
    """Check prompt, then dimensions, then model."""
    if not request.prompt or not isinstance(request.prompt, str):
        return ValidationResult.fail(GenerationErrorCode.MISSING_PROMPT, "Prompt is required")

    prompt = request.prompt.strip()
    if len(prompt) < config.min_prompt_length:
        return ValidationResult.fail(
            GenerationErrorCode.INVALID_PROMPT,
            f"Prompt must be at least {config.min_prompt_length} characters",
        )
    if len(prompt) > config.max_prompt_length:
        return ValidationResult.fail(
            GenerationErrorCode.PROMPT_TOO_LONG,
            f"Prompt must be less than {config.max_prompt_length} characters",
        )

    width = request.width if request.width is not None else config.default_width
    height = request.height if request.height is not None else config.default_height
    if not (
        config.min_width <= width <= config.max_width
        and config.min_height <= height <= config.max_height
    ):
        return ValidationResult.fail(
            GenerationErrorCode.INVALID_DIMENSIONS,
            f"Dimensions must be between {config.min_width}x{config.min_height} "
            f"and {config.max_width}x{config.max_height}",
        )

    if request.model and request.model not in config.supported_models:
        return ValidationResult.fail(
            GenerationErrorCode.GENERATION_FAILED, f"Unsupported model: {request.model}"
        )

    return ValidationResult.ok()


def validate_api_key(
    api_key: str | None, config: GenerationConfig = GENERATION_CONFIG
) -> ValidationResult:
    if not api_key or not isinstance(api_key, str):
        return ValidationResult.fail(GenerationErrorCode.MISSING_API_KEY, "API key is required")
    if len(api_key.strip()) < config.min_api_key_length:
        return ValidationResult.fail(GenerationErrorCode.INVALID_API_KEY, "API key is too short")
    return ValidationResult.ok()


def require_valid_request(
    request: GenerationRequest, config: GenerationConfig = GENERATION_CONFIG
) -> GenerationRequest:
    """Validate and normalize, raising ``GenerationRequestError`` on failure."""
    result = validate_generation_request(request, config)
    if not result.valid:
        raise GenerationRequestError(result)
    return normalize_request(request, config)


# ── Transformation ───────────────────────────────────────────────────────


def normalize_request(
    request: GenerationRequest, config: GenerationConfig = GENERATION_CONFIG
) -> GenerationRequest:
    """Trimmed prompts with default dimensions and model filled in."""
    prompt = request.prompt.strip() if isinstance(request.prompt, str) else ""
    return GenerationRequest(
        prompt=prompt,
        negative_prompt=request.negative_prompt.strip() if request.negative_prompt else request.negative_prompt,
        width=request.width if request.width is not None else config.default_width,
        height=request.height if request.height is not None else config.default_height,
        model=request.model or config.default_model,
        seed=request.seed,
    )


def sanitize_prompt_for_logging(prompt: str, max_length: int = 50) -> str:
    trimmed = prompt.strip()
    if len(trimmed) <= max_length:
        return trimmed + "..."
    return trimmed[:max_length] + "..."


def sanitize_api_key_for_logging(api_key: str) -> str:
    if len(api_key) < 10:
        return "***"
    return f"{api_key[:6]}...{api_key[-4:]}"


# ── Error mapping ────────────────────────────────────────────────────────

_STATUS_TO_CODE = {
    400: GenerationErrorCode.GENERATION_FAILED,
    401: GenerationErrorCode.INVALID_API_KEY,
    403: GenerationErrorCode.INVALID_API_KEY,
    404: GenerationErrorCode.SERVICE_UNAVAILABLE,
    429: GenerationErrorCode.RATE_LIMITED,
    500: GenerationErrorCode.SERVER_ERROR,
    502: GenerationErrorCode.SERVER_ERROR,
    503: GenerationErrorCode.SERVER_ERROR,
    504: GenerationErrorCode.TIMEOUT,
}


def map_status_to_error_code(status: int, message: str | None = None) -> GenerationErrorCode:
    """Classify a provider failure. Message patterns win over the status."""
    text = (message or "").lower()

    if "api key" in text or "unauthorized" in text:
        return (
            GenerationErrorCode.MISSING_API_KEY if status == 400
            else GenerationErrorCode.INVALID_API_KEY
        )
    if "rate" in text or "quota" in text or "limit" in text:
        return (
            GenerationErrorCode.RATE_LIMITED if status == 429
            else GenerationErrorCode.QUOTA_EXCEEDED
        )
    if "content" in text or "filter" in text or "policy" in text:
        return GenerationErrorCode.CONTENT_FILTERED
    if "timeout" in text or "timed out" in text:
        return GenerationErrorCode.TIMEOUT

    return _STATUS_TO_CODE.get(status, GenerationErrorCode.UNKNOWN_ERROR)


def create_generated_filename(prompt: str, seed: int, now_ms: int | None = None) -> str:
    """``gen-{slug}-{seed}-{timestamp}.png`` with a slug of at most 30 chars."""
    slug = re.sub(r"[^a-z0-9]+", "-", prompt.lower())[:30]
    slug = re.sub(r"^-|-$", "", slug)
    timestamp = now_ms if now_ms is not None else _now_ms()
    return f"gen-{slug}-{seed}-{timestamp}.png"
