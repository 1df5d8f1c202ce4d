import base64

import config
import models
from database import SessionLocal
from share_routes import content_disposition

from conftest import HELLO


def _issue(client, **body):
    body.setdefault("payload", HELLO)
    body.setdefault("fileName", "hello.txt")
    return client.post("/secure-links", json=body)


def test_issue_returns_201_with_share_url(client):
    res = _issue(client)
    assert res.status_code == 201
    data = res.json()
    assert data["success"] is True
    assert data["url"] == f"https://share.test/s/{data['id']}"
    assert len(data["id"]) >= 43


def test_consume_once_then_404(client):
    link_id = _issue(client).json()["id"]

    first = client.get(f"/secure-links/{link_id}")
    assert first.status_code == 200
    assert first.json() == {"payload": HELLO, "fileName": "hello.txt"}

    second = client.get(f"/secure-links/{link_id}")
    assert second.status_code == 404
    assert second.json() == {"error": "Link not found or expired"}


def test_consume_by_query_string(client):
    link_id = _issue(client).json()["id"]
    assert client.get("/secure-links", params={"id": link_id}).json()["fileName"] == "hello.txt"
    assert client.get("/secure-links", params={"id": link_id}).status_code == 404


def test_consume_by_query_string_requires_id(client):
    res = client.get("/secure-links")
    assert res.status_code == 400
    assert "error" in res.json()


def test_unknown_id_is_404(client):
    res = client.get("/secure-links/nonexistent-id")
    assert res.status_code == 404
    assert res.json()["error"] == "Link not found or expired"


def test_malformed_payload_is_400(client):
    res = _issue(client, payload="hello world")
    assert res.status_code == 400
    assert "data URI" in res.json()["error"]
    with SessionLocal() as db:
        assert db.query(models.SecureLink).count() == 0


def test_missing_fields_are_400(client):
    res = client.post("/secure-links", json={"fileName": "a.txt"})
    assert res.status_code == 400
    assert "payload" in res.json()["error"]


def test_legacy_field_names(client):
    res = client.post("/secure-links", json={
        "linkId": "legacy-link-id-0001",
        "fileDataUri": HELLO,
        "fileName": "hello.txt",
    })
    assert res.status_code == 201
    assert res.json()["id"] == "legacy-link-id-0001"
    assert client.get("/secure-links/legacy-link-id-0001").json()["payload"] == HELLO


def test_duplicate_id_is_409(client):
    assert _issue(client, id="my-own-link-id-42").status_code == 201
    res = _issue(client, id="my-own-link-id-42")
    assert res.status_code == 409
    assert "error" in res.json()


def test_oversized_payload_is_413(client, monkeypatch):
    monkeypatch.setattr(config, "SECURE_LINK_MAX_BYTES", 3)
    assert _issue(client).status_code == 413


def test_large_payload_uses_blob_storage(client, app_blob_dir, monkeypatch):
    monkeypatch.setattr(config, "SECURE_LINK_INLINE_LIMIT", 64)
    raw = b"x" * 4096
    payload = "data:application/octet-stream;base64," + base64.b64encode(raw).decode()
    link_id = _issue(client, payload=payload, fileName="x.bin").json()["id"]
    assert len(list(app_blob_dir.iterdir())) == 1

    assert client.get(f"/secure-links/{link_id}").json()["payload"] == payload
    assert list(app_blob_dir.iterdir()) == []


def test_download_streams_decoded_bytes(client):
    link_id = _issue(client, fileName="résumé \"final\".txt").json()["id"]

    res = client.get(f"/secure-links/{link_id}/download")
    assert res.status_code == 200
    assert res.content == b"hello"
    assert res.headers["content-type"].startswith("text/plain")
    disposition = res.headers["content-disposition"]
    assert disposition.startswith("attachment;")
    assert "filename*=UTF-8''r%C3%A9sum%C3%A9%20%22final%22.txt" in disposition

    assert client.get(f"/secure-links/{link_id}/download").status_code == 404


def test_file_name_with_line_break_is_rejected(client):
    res = _issue(client, fileName="a.txt\r\nSet-Cookie: evil=1")
    assert res.status_code == 400
    assert "control characters" in res.json()["error"]
    with SessionLocal() as db:
        assert db.query(models.SecureLink).count() == 0


def test_content_disposition_never_carries_control_characters():
    header = content_disposition("a.txt\r\nSet-Cookie: evil=1\x00\x7f")
    assert not any(ord(ch) < 0x20 or ord(ch) == 0x7f for ch in header)
    assert "%0D%0ASet-Cookie" in header
    assert content_disposition("é").startswith('attachment; filename="?"')


def test_share_page_does_not_consume_the_link(client):
    link_id = _issue(client).json()["id"]

    for _ in range(3):
        page = client.get(f"/s/{link_id}")
        assert page.status_code == 200
        assert page.headers["content-type"].startswith("text/html")
        assert page.headers["cache-control"] == "no-store"
        assert "Download File" in page.text
        assert link_id not in page.text

    assert client.get(f"/secure-links/{link_id}").json() == {"payload": HELLO, "fileName": "hello.txt"}


def test_share_page_consumes_only_through_the_api(client):
    page = client.get("/s/unknown-link-id-0000")
    assert page.status_code == 200
    assert 'fetch("/secure-links/"' in page.text
    assert "Link Expired" in page.text


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "ok"
    assert body["database"] == "ok"
    assert body["storage"]["status"] == "local_disk"
