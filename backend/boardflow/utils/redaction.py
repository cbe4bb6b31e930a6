"""Secret redaction for persisted run data.

Run log inputs/outputs and trigger payloads are stored for audit, so any value
held under a secret-looking key is replaced before it reaches the database.
Values are also converted to JSON-safe primitives on the way through.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from pydantic_core import to_jsonable_python

from boardflow.core.config import settings

REDACTED = "[REDACTED]"


def is_sensitive_key(key: str, sensitive_keys: Iterable[str] | None = None) -> bool:
    """Check whether a mapping key names a secret.

    Matching is case-insensitive and by substring, so ``slackWebhook_url``
    and ``X-Api-Key`` are both caught by the default key list.
    """
    normalized = key.lower().replace("-", "_")
    return any(candidate in normalized for candidate in _resolve_keys(sensitive_keys))


def redact_secrets(
    data: Any,
    sensitive_keys: Iterable[str] | None = None,
) -> Any:
    """Return a JSON-safe copy of ``data`` with secret values masked.

    Args:
        data: Arbitrary value (dicts and lists are walked recursively).
        sensitive_keys: Lower-case key fragments to mask. Defaults to
            ``settings.AUTOMATION_REDACTED_KEYS``.

    Returns:
        New structure; the input is never modified. ``None`` values under a
        secret key stay ``None``.

    Example:
        >>> redact_secrets({"url": "https://x", "token": "abc"})
        {'url': 'https://x', 'token': '[REDACTED]'}
    """
    keys = _resolve_keys(sensitive_keys)
    return _redact(to_jsonable_python(data, fallback=str), keys)


def _resolve_keys(sensitive_keys: Iterable[str] | None) -> list[str]:
    if sensitive_keys is None:
        sensitive_keys = settings.AUTOMATION_REDACTED_KEYS
    return [key.lower() for key in sensitive_keys]


def _redact(value: Any, keys: list[str]) -> Any:
    if isinstance(value, dict):
        redacted: dict[str, Any] = {}
        for key, item in value.items():
            if item is not None and is_sensitive_key(str(key), keys):
                redacted[key] = REDACTED
            else:
                redacted[key] = _redact(item, keys)
        return redacted
    if isinstance(value, list):
        return [_redact(item, keys) for item in value]
    return value


__all__ = [
    "REDACTED",
    "is_sensitive_key",
    "redact_secrets",
]
