"""Generation request validation and provider error mapping."""

from studio.generation.service import (
    GENERATION_CONFIG,
    GenerationConfig,
    GenerationErrorCode,
    GenerationRequest,
    GenerationRequestError,
    ValidationResult,
    create_generated_filename,
    map_status_to_error_code,
    normalize_request,
    require_valid_request,
    sanitize_api_key_for_logging,
    sanitize_prompt_for_logging,
    validate_api_key,
    validate_generation_request,
)

__all__ = [
    "GENERATION_CONFIG",
    "GenerationConfig",
    "GenerationErrorCode",
    "GenerationRequest",
    "GenerationRequestError",
    "ValidationResult",
    "create_generated_filename",
    "map_status_to_error_code",
    "normalize_request",
    "require_valid_request",
    "sanitize_api_key_for_logging",
    "sanitize_prompt_for_logging",
    "validate_api_key",
    "validate_generation_request",
]
