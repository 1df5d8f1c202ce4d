# secure_share.py

import base64
import hashlib
import json
import re
import secrets

from cryptography.fernet import Fernet
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from config import SECRET_KEY

LINK_ID_BYTES = 32
_LINK_ID_RE = re.compile(r"^[A-Za-z0-9_-]{16,128}\Z")


# ─── LINK IDS ─────────────────────────────────────────────

def generate_link_id() -> str:
    """256 bits from the OS CSPRNG, base64url encoded (43 chars)."""
    return secrets.token_urlsafe(LINK_ID_BYTES)


def is_valid_link_id(link_id) -> bool:
    return isinstance(link_id, str) and bool(_LINK_ID_RE.match(link_id))


def lookup_key(link_id: str) -> str:
    return hashlib.sha256(link_id.encode("utf-8")).hexdigest()


def derive_key(link_id: str, secret: str = SECRET_KEY) -> bytes:
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=32,
        salt=secret.encode("utf-8"),
        info=b"sharespace secure-link",
    )
    return base64.urlsafe_b64encode(hkdf.derive(link_id.encode("utf-8")))


# ─── SEAL / OPEN ─────────────────────────────────────────────

def seal_payload(link_id: str, payload: str, file_name: str) -> bytes:
    body = json.dumps({"payload": payload, "fileName": file_name}).encode("utf-8")
    return Fernet(derive_key(link_id)).encrypt(body)


def open_payload(link_id: str, sealed: bytes) -> dict:
    """Returns {"payload", "fileName"}. Raises InvalidToken if the key doesn't match."""
    body = Fernet(derive_key(link_id)).decrypt(sealed)
    return json.loads(body.decode("utf-8"))
