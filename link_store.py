"""
link_store.py — persistence for one-time links.

Records are keyed by the sha256 of the link id and hold the payload sealed
with a key derived from the id. Sealed bodies over the inline limit live in
blob storage and the row keeps only the blob key.

get_and_delete_link is the single-use primitive: it reads and decrypts
first, then deletes the row in its own transaction. Only the caller whose
DELETE removes the row gets the payload.
"""
import logging
import secrets
import time

from cryptography.fernet import InvalidToken
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

import models
from config import SECURE_LINK_INLINE_LIMIT
from errors import (
    LinkAlreadyExists,
    NotFoundOrConsumed,
    StorageReadError,
    StorageWriteError,
)
from secure_share import is_valid_link_id, lookup_key, open_payload, seal_payload
from storage import storage

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


def put_link(
    db: Session,
    link_id: str,
    payload: str,
    file_name: str,
    mime_type: str,
    size: int,
    inline_limit: int = SECURE_LINK_INLINE_LIMIT,
    store=storage,
) -> models.SecureLink:
    key = lookup_key(link_id)

    try:
        taken = db.get(models.SecureLink, key) is not None
    except SQLAlchemyError as e:
        logger.error(f"Lookup failed for link {key[:12]}: {e}")
        raise StorageWriteError()
    if taken:
        raise LinkAlreadyExists()

    sealed = seal_payload(link_id, payload, file_name)
    blob_key = None
    if len(sealed) > inline_limit:
        # Random suffix so a losing duplicate never overwrites the winner's blob
        blob_key = f"{key}-{secrets.token_hex(8)}"
        if not store.put(blob_key, sealed):
            raise StorageWriteError()
        sealed = None

    record = models.SecureLink(
        lookup_key=key,
        sealed=sealed,
        blob_key=blob_key,
        size=size,
        mime_type=mime_type,
        created_at=now_ms(),
    )
    db.add(record)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        if blob_key:
            store.delete(blob_key)
        raise LinkAlreadyExists()
    except SQLAlchemyError as e:
        db.rollback()
        if blob_key:
            store.delete(blob_key)
        logger.error(f"Could not store link {key[:12]}: {e}")
        raise StorageWriteError()

    logger.info(f"Stored link {key[:12]} ({mime_type}, {size} bytes, {'blob' if blob_key else 'inline'})")
    return record


def _delete_row(db: Session, key: str) -> int:
    try:
        deleted = (
            db.query(models.SecureLink)
            .filter(models.SecureLink.lookup_key == key)
            .delete(synchronize_session=False)
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Could not delete link {key[:12]}: {e}")
        raise StorageWriteError()
    return deleted


def _read_sealed(db: Session, key: str, record: models.SecureLink, store) -> bytes:
    if not record.blob_key:
        return record.sealed

    try:
        sealed = store.get(record.blob_key)
    except OSError as e:
        logger.error(f"Blob read failed for link {key[:12]}: {e}")
        raise StorageReadError()

    if sealed is None:
        # A concurrent consumer may have removed row and blob after our lookup
        db.expire_all()
        if db.get(models.SecureLink, key) is None:
            raise NotFoundOrConsumed()
        logger.error(f"Blob {record.blob_key} missing for link {key[:12]}")
        raise StorageReadError()
    return sealed


def get_and_delete_link(db: Session, link_id: str, ttl_seconds: int = 0, store=storage) -> dict:
    """
    Returns {"payload", "fileName"} exactly once per link.
    Raises NotFoundOrConsumed for unknown, used and expired ids.
    """
    if not is_valid_link_id(link_id):
        raise NotFoundOrConsumed()

    key = lookup_key(link_id)
    try:
        record = db.get(models.SecureLink, key)
    except SQLAlchemyError as e:
        logger.error(f"Lookup failed for link {key[:12]}: {e}")
        raise StorageReadError()
    if record is None:
        raise NotFoundOrConsumed()

    blob_key = record.blob_key

    if ttl_seconds and now_ms() - record.created_at > ttl_seconds * 1000:
        if _delete_row(db, key) and blob_key:
            store.delete(blob_key)
        logger.info(f"Link {key[:12]} expired on access")
        raise NotFoundOrConsumed()

    sealed = _read_sealed(db, key, record, store)
    try:
        contents = open_payload(link_id, sealed)
    except InvalidToken:
        logger.error(f"Could not decrypt link {key[:12]}")
        raise StorageReadError()

    if _delete_row(db, key) != 1:
        # Lost the race to another consumer
        raise NotFoundOrConsumed()

    if blob_key:
        store.delete(blob_key)
    logger.info(f"Link {key[:12]} consumed")
    return contents


def sweep_expired(db: Session, ttl_seconds: int, store=storage) -> int:
    """Delete every link older than ttl_seconds. Returns how many rows went."""
    if ttl_seconds <= 0:
        return 0

    cutoff = now_ms() - ttl_seconds * 1000
    try:
        blob_keys = [
            row.blob_key
            for row in db.query(models.SecureLink.blob_key)
            .filter(models.SecureLink.created_at < cutoff, models.SecureLink.blob_key.isnot(None))
        ]
        # Range delete, no per-key parameter list
        deleted = (
            db.query(models.SecureLink)
            .filter(models.SecureLink.created_at < cutoff)
            .delete(synchronize_session=False)
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Expired link sweep failed: {e}")
        raise StorageWriteError()

    for blob_key in blob_keys:
        store.delete(blob_key)

    logger.info(f"Swept {deleted} expired links")
    return deleted
