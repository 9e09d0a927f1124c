"""Classification of hosted-store failures ahead of the fallback decision."""

from __future__ import annotations

from enum import Enum
from typing import Dict, Optional, Tuple

from tools.remote_store import RemoteStoreError


class FailureClass(str, Enum):
    SCHEMA_MISMATCH = "schema-mismatch"
    AUTH_FAILURE = "auth-failure"
    PERMISSION_DENIED = "permission-denied"
    UNKNOWN = "unknown"


# Postgres SQLSTATEs and PostgREST codes that identify a class without
# inspecting the message.
ERROR_CODES: Dict[str, FailureClass] = {
    "42501": FailureClass.PERMISSION_DENIED,
    "42703": FailureClass.SCHEMA_MISMATCH,
    "42P01": FailureClass.SCHEMA_MISMATCH,
    "23505": FailureClass.SCHEMA_MISMATCH,
    "PGRST204": FailureClass.SCHEMA_MISMATCH,
    "PGRST301": FailureClass.AUTH_FAILURE,
    "PGRST302": FailureClass.AUTH_FAILURE,
}

# Checked in order; permission phrases mention "policy" and "table" so they
# go before the schema vocabulary.
MESSAGE_VOCABULARY: Tuple[Tuple[FailureClass, Tuple[str, ...]], ...] = (
    (
        FailureClass.PERMISSION_DENIED,
        ("row-level security", "row level security", "permission denied", "violates policy"),
    ),
    (
        FailureClass.SCHEMA_MISMATCH,
        ("column", "does not exist", "not present in table", "schema cache", "duplicate", "conflict"),
    ),
    (FailureClass.AUTH_FAILURE, ("auth", "jwt", "session", "api key", "apikey")),
)


def classify_message(message: Optional[str], code: Optional[str] = None) -> FailureClass:
    if code and code in ERROR_CODES:
        return ERROR_CODES[code]
    text = (message or "").lower()
    for failure_class, phrases in MESSAGE_VOCABULARY:
        if any(phrase in text for phrase in phrases):
            return failure_class
    return FailureClass.UNKNOWN


def classify_remote_error(error: RemoteStoreError) -> FailureClass:
    """Map a hosted-store error to a failure class.

    The structured code wins when the backend sent one; the message
    vocabulary is only consulted otherwise.
    """

    return classify_message(error.message, error.code)


__all__ = ["ERROR_CODES", "FailureClass", "classify_message", "classify_remote_error"]
