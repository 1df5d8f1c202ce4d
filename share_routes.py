# share_routes.py

import io
import os
import re
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Query
from fastapi.responses import FileResponse, StreamingResponse
from sqlalchemy.orm import Session

from data_uri import parse_data_uri
from database import get_db
from errors import InvalidPayload, StorageReadError
from one_time_links import consume_link, issue_link
from schemas import (
    CreateSecureLinkRequest,
    CreateSecureLinkResponse,
    ErrorResponse,
    SecureLinkContents,
)

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
FRONTEND_DIR = os.path.join(BASE_DIR, "frontend")

router = APIRouter(prefix="/secure-links", tags=["Secure Links"])
page_router = APIRouter(tags=["Secure Links"])

_ERRORS = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
}
_UNSAFE_HEADER_CHARS = re.compile(r'[\x00-\x1f\x7f"\\]')


# ─── ISSUE ─────────────────────────────────────────────

@router.post(
    "",
    status_code=201,
    response_model=CreateSecureLinkResponse,
    responses={**_ERRORS, 409: {"model": ErrorResponse}, 413: {"model": ErrorResponse}},
)
def create_secure_link(req: CreateSecureLinkRequest, db: Session = Depends(get_db)):
    link_id, url = issue_link(db, req.payload, req.file_name, link_id=req.id)
    return CreateSecureLinkResponse(id=link_id, url=url)


# ─── CONSUME ─────────────────────────────────────────────

@router.get("", response_model=SecureLinkContents, responses=_ERRORS)
def consume_secure_link_by_query(id: Optional[str] = Query(None), db: Session = Depends(get_db)):
    if not id:
        raise InvalidPayload("Missing id")
    return SecureLinkContents(**consume_link(db, id))


@router.get("/{link_id}", response_model=SecureLinkContents, responses=_ERRORS)
def consume_secure_link(link_id: str, db: Session = Depends(get_db)):
    return SecureLinkContents(**consume_link(db, link_id))


@router.get("/{link_id}/download", responses=_ERRORS)
def download_secure_link(link_id: str, db: Session = Depends(get_db)):
    contents = consume_link(db, link_id)
    try:
        data_uri = parse_data_uri(contents["payload"])
    except InvalidPayload:
        # Validated at issuance; a bad body here means the stored record is corrupt
        raise StorageReadError()

    return StreamingResponse(
        io.BytesIO(data_uri.data),
        media_type=data_uri.mime_type,
        headers={"Content-Disposition": content_disposition(contents["fileName"])},
    )


def content_disposition(file_name: str) -> str:
    """Header value safe for any display name; filename* carries the exact UTF-8 name."""
    fallback = file_name.encode("ascii", "replace").decode("ascii")
    fallback = _UNSAFE_HEADER_CHARS.sub("_", fallback) or "file"
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(file_name, safe='')}"


# ─── SHARE PAGE ─────────────────────────────────────────────

@page_router.get("/s/{link_id}", include_in_schema=False)
def secure_link_page(link_id: str):
    # Static page; the link is consumed only when the recipient presses Download
    return FileResponse(
        os.path.join(FRONTEND_DIR, "share.html"),
        media_type="text/html",
        headers={"Cache-Control": "no-store", "Referrer-Policy": "no-referrer"},
    )
