"""
tests/test_avatar_routes.py -- Integration tests for /account/avatar and AvatarStorage.

The client fixture caps avatars at 1024 bytes and stores them under tmp_path,
so nothing touches the real uploads directory.
"""

from __future__ import annotations

from pathlib import Path

from fastapi.testclient import TestClient

from api.main import app
from auth.avatars import safe_filename

_PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def _auth(signed_up: dict) -> dict:
    return {"Authorization": f"Bearer {signed_up['meta']['token']}"}


def _upload(client: TestClient, signed_up: dict, name: str = "me.png", content: bytes = _PNG, ctype: str = "image/png"):
    return client.post("/account/avatar", files={"avatar": (name, content, ctype)}, headers=_auth(signed_up))


def _file_for(avatar_path: str) -> Path:
    return app.state.avatars.directory / Path(avatar_path).name


class TestUpload:
    def test_upload_stores_file_and_path(self, client: TestClient, signed_up: dict) -> None:
        resp = _upload(client, signed_up)
        assert resp.status_code == 200, resp.text
        avatar = resp.json()["data"]["avatar"]
        assert avatar.startswith("uploads/")
        assert avatar.endswith("-me.png")
        assert _file_for(avatar).read_bytes() == _PNG

    def test_oversized_upload_is_rejected(self, client: TestClient, signed_up: dict) -> None:
        resp = _upload(client, signed_up, content=b"\x00" * 2048)
        assert resp.status_code == 413
        assert resp.json()["meta"]["code"] == "file_too_large"
        assert app.state.account_store.get_by_name("knight").avatar == ""

    def test_non_image_is_rejected(self, client: TestClient, signed_up: dict) -> None:
        resp = _upload(client, signed_up, name="notes.txt", content=b"hello", ctype="text/plain")
        assert resp.status_code == 400

    def test_new_upload_replaces_previous_file(self, client: TestClient, signed_up: dict) -> None:
        first = _upload(client, signed_up, name="old.png").json()["data"]["avatar"]
        second = _upload(client, signed_up, name="new.png").json()["data"]["avatar"]
        assert not _file_for(first).exists()
        assert _file_for(second).exists()

    def test_path_components_are_stripped(self, client: TestClient, signed_up: dict) -> None:
        avatar = _upload(client, signed_up, name="../../evil.png").json()["data"]["avatar"]
        assert avatar.endswith("-evil.png")
        assert _file_for(avatar).parent == app.state.avatars.directory

    def test_upload_requires_auth(self, client: TestClient) -> None:
        resp = client.post("/account/avatar", files={"avatar": ("me.png", _PNG, "image/png")})
        assert resp.status_code == 401


class TestGetAndDelete:
    def test_get_returns_public_url(self, client: TestClient, signed_up: dict) -> None:
        avatar = _upload(client, signed_up).json()["data"]["avatar"]
        resp = client.get("/account/avatar", headers=_auth(signed_up))
        assert resp.status_code == 200
        assert resp.json()["data"] == f"http://localhost:3001/{avatar}"

    def test_get_without_avatar_returns_account(self, client: TestClient, signed_up: dict) -> None:
        resp = client.get("/account/avatar", headers=_auth(signed_up))
        assert resp.status_code == 200
        assert resp.json()["data"]["name"] == "knight"

    def test_delete_clears_path_and_file(self, client: TestClient, signed_up: dict) -> None:
        avatar = _upload(client, signed_up).json()["data"]["avatar"]
        resp = client.delete("/account/avatar", headers=_auth(signed_up))
        assert resp.status_code == 200
        assert resp.json()["data"]["avatar"] == ""
        assert not _file_for(avatar).exists()

    def test_delete_without_avatar_is_client_error(self, client: TestClient, signed_up: dict) -> None:
        resp = client.delete("/account/avatar", headers=_auth(signed_up))
        assert resp.status_code == 400
        assert resp.json()["meta"]["code"] == "not_found"


class TestSafeFilename:
    def test_keeps_plain_names(self) -> None:
        assert safe_filename("me.png") == "me.png"

    def test_replaces_unsafe_characters(self) -> None:
        assert safe_filename("my photo (1).png") == "my_photo_1_.png"

    def test_drops_windows_directories(self) -> None:
        assert safe_filename("C:\\Users\\me\\face.jpg") == "face.jpg"

    def test_empty_name_gets_default(self) -> None:
        assert safe_filename(None) == "avatar"
        assert safe_filename("...") == "avatar"
