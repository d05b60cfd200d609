from __future__ import annotations

import secrets
from typing import Optional


class StorefrontError(Exception):
    status_code = 500

    def __init__(self, message: str, error: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.error = error

    def to_payload(self) -> dict:
        payload = {"success": False, "message": self.message}
        if self.error:
            payload["error"] = self.error
        return payload


class ClientInputError(StorefrontError):
    status_code = 400


class SecurityViolation(StorefrontError):
    status_code = 400


class AuthenticationError(StorefrontError):
    status_code = 401


class NotFoundError(StorefrontError):
    status_code = 404


class RateLimitError(StorefrontError):
    status_code = 429


class UpstreamDatastoreError(StorefrontError):
    """Datastore failure. Clients only ever see the opaque reference."""

    status_code = 500

    def __init__(self, message: str, detail: str):
        self.reference = "ref-" + secrets.token_hex(6)
        super().__init__(message, error=self.reference)
        self.detail = detail
