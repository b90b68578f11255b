"""Security configuration constants for the Handboek Generator API.

This module centralizes:
- Keys that must be redacted from structured logs
- Which error envelope fields may be exposed per environment
"""

# Keys redacted from logs. Matching is substring based and case-insensitive,
# so "x-openrouter-key" also covers "X-OpenRouter-Key".
SENSITIVE_KEYS: set[str] = {
    # Credentials
    "password",
    "secret",
    # substring match, so plain "token" would also hide max_tokens
    "access_token",
    "refresh_token",
    "auth_token",
    "authorization",
    "api_key",
    "apikey",
    "x-openrouter-key",
    "openrouter_key",
    "bearer",
    "cookie",
    "set-cookie",
    "session_id",
    # Personal data that may end up in request bodies
    "email",
    "phone",
    "address",
}

# In production, error responses should only contain these fields
PRODUCTION_ERROR_FIELDS: set[str] = {
    "correlation_id",
    "type",
}

# Development additionally exposes debugging details
DEVELOPMENT_ERROR_FIELDS: set[str] = PRODUCTION_ERROR_FIELDS | {
    "details",
    "traceback",
    "exception_type",
    "validation_errors",
}


def get_allowed_error_fields(environment: str) -> set[str]:
    """Return the error envelope fields allowed in `environment`."""
    if environment == "production":
        return PRODUCTION_ERROR_FIELDS.copy()
    return DEVELOPMENT_ERROR_FIELDS.copy()


def is_sensitive_key(key: str) -> bool:
    """Check if a key should be considered sensitive and redacted."""
    key_lower = key.lower()
    return any(sensitive in key_lower for sensitive in SENSITIVE_KEYS)
