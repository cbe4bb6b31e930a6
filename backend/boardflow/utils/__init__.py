"""Utility helpers."""

from boardflow.utils.redaction import REDACTED, redact_secrets

__all__ = [
    "REDACTED",
    "redact_secrets",
]
