"""
data_uri.py — parsing for the base64 data URIs that carry shared files.

Browsers produce them with FileReader.readAsDataURL:
    data:<mimetype>[;param=value]*;base64,<data>
"""
import base64
import binascii
import re
from typing import NamedTuple

from errors import InvalidPayload

_DATA_URI_RE = re.compile(
    r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)"
    r"(?P<params>(?:;[\w.+-]+=[^;,]*)*)"
    r";base64,(?P<data>[A-Za-z0-9+/]*={0,2})\Z"
)


class DataURI(NamedTuple):
    mime_type: str
    params: dict
    data: bytes


def parse_data_uri(value) -> DataURI:
    """Validate and decode a data URI. Raises InvalidPayload on anything malformed."""
    if not isinstance(value, str):
        raise InvalidPayload("Payload must be a data URI string")

    match = _DATA_URI_RE.match(value)
    if not match:
        raise InvalidPayload("Payload must be a data URI of the form data:<mimetype>;base64,<data>")

    params = {}
    for part in match.group("params").split(";"):
        if part:
            key, _, val = part.partition("=")
            params[key.lower()] = val

    try:
        data = base64.b64decode(match.group("data"), validate=True)
    except binascii.Error:
        raise InvalidPayload("Payload is not valid base64")

    return DataURI(match.group("mime").lower(), params, data)


def decoded_size(value: str) -> int:
    """Decoded byte length of a data URI body without decoding it."""
    body = value.rsplit(",", 1)[-1]
    return len(body) * 3 // 4 - body[-2:].count("=")
