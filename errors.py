"""
errors.py — failures of the one-time link service.

Every error carries the HTTP status it maps to; main.py turns them into
{"error": message} responses.
"""
from typing import Optional


class ShareLinkError(Exception):
    status_code = 500
    message = "Secure link request failed"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class InvalidPayload(ShareLinkError):
    status_code = 400
    message = "Invalid payload"


class PayloadTooLarge(ShareLinkError):
    status_code = 413
    message = "File too large"


class LinkAlreadyExists(ShareLinkError):
    status_code = 409
    message = "Link id already in use"


class NotFoundOrConsumed(ShareLinkError):
    # Same message for never-issued, used and expired links
    status_code = 404
    message = "Link not found or expired"


class StorageWriteError(ShareLinkError):
    message = "Could not store the link. Please try again."


class StorageReadError(ShareLinkError):
    message = "Could not read the link. Please try again."
