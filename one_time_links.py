"""
one_time_links.py — issue and consume self-destructing share links.

A link id is a bearer capability: whoever holds the URL can fetch the file,
once. Nothing else is checked.
"""
import re

from sqlalchemy.orm import Session

import config
from data_uri import decoded_size, parse_data_uri
from errors import InvalidPayload, PayloadTooLarge
from link_store import get_and_delete_link, put_link
from secure_share import generate_link_id, is_valid_link_id
from storage import storage

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def build_share_url(link_id: str, base_url: str = None) -> str:
    base = (base_url or config.PUBLIC_BASE_URL).rstrip("/")
    return f"{base}/s/{link_id}"


def issue_link(db: Session, payload, file_name, link_id: str = None, store=storage):
    """Store a payload behind a fresh one-time link. Returns (link_id, url)."""
    if not isinstance(file_name, str) or not file_name.strip():
        raise InvalidPayload("fileName is required")
    if _CONTROL_CHARS.search(file_name):
        raise InvalidPayload("fileName must not contain control characters")
    if link_id is not None and not is_valid_link_id(link_id):
        raise InvalidPayload("id must be 16-128 URL-safe characters")

    if isinstance(payload, str) and decoded_size(payload) > config.SECURE_LINK_MAX_BYTES:
        raise PayloadTooLarge()
    data_uri = parse_data_uri(payload)

    link_id = link_id or generate_link_id()
    put_link(
        db,
        link_id,
        payload,
        file_name,
        mime_type=data_uri.mime_type,
        size=len(data_uri.data),
        inline_limit=config.SECURE_LINK_INLINE_LIMIT,
        store=store,
    )
    return link_id, build_share_url(link_id)


def consume_link(db: Session, link_id: str, store=storage) -> dict:
    """Hand back {"payload", "fileName"} and destroy the link. Raises NotFoundOrConsumed."""
    return get_and_delete_link(db, link_id, ttl_seconds=config.SECURE_LINK_TTL_SECONDS, store=store)
