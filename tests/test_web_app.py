"""Tests for the FastAPI web application."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from docgrep.config import AppConfig
from docgrep.web.app import create_app


@pytest.fixture
def web_app(tmp_path: Path, extractor, clock):
    config = AppConfig(
        upload_dir=tmp_path / "uploads",
        session_ttl=3600,
        max_upload_files=5,
        max_upload_bytes=1024,
    )
    return create_app(config, extractor=extractor, clock=clock)


@pytest.fixture
def client(web_app) -> Iterator[TestClient]:
    with TestClient(web_app) as test_client:
        yield test_client


def _pdf(name: str, text: str) -> tuple[str, tuple[str, bytes, str]]:
    return ("files", (name, text.encode("utf-8"), "application/pdf"))


class TestHealthEndpoint:
    def test_health(self, client: TestClient) -> None:
        response = client.get("/api/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "OK"
        assert data["activeSessions"] == 0


class TestSearchEndpoint:
    """Tests for POST /api/search."""

    def test_docs_example(self, client: TestClient, docs_dir: Path) -> None:
        response = client.post(
            "/api/search", json={"folderPath": str(docs_dir), "searchText": "2023"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["searchText"] == "2023"
        assert data["folderPath"] == str(docs_dir)
        assert data["totalPdfs"] == 2
        assert data["matchingPdfs"] == 1
        assert data["failedPdfs"] == 0
        assert data["results"] == [
            {
                "fileName": "a.pdf",
                "filePath": (docs_dir / "a.pdf").as_posix(),
                "relativePath": "a.pdf",
            }
        ]

    def test_empty_search_text(self, client: TestClient, docs_dir: Path) -> None:
        """Returns 400 and never scans."""
        with patch("docgrep.search.searcher.scan_directory") as mock_scan:
            response = client.post(
                "/api/search", json={"folderPath": str(docs_dir), "searchText": ""}
            )

        assert response.status_code == 400
        assert response.json()["success"] is False
        assert response.json()["kind"] == "InvalidInput"
        mock_scan.assert_not_called()

    def test_whitespace_search_text(self, client: TestClient, docs_dir: Path) -> None:
        response = client.post(
            "/api/search", json={"folderPath": str(docs_dir), "searchText": "   "}
        )

        assert response.status_code == 400
        assert response.json()["kind"] == "InvalidInput"

    def test_missing_folder_path(self, client: TestClient) -> None:
        response = client.post("/api/search", json={"searchText": "2023"})

        assert response.status_code == 400
        assert "folderPath" in response.json()["error"]

    def test_folder_not_found(self, client: TestClient, tmp_path: Path) -> None:
        response = client.post(
            "/api/search", json={"folderPath": str(tmp_path / "missing"), "searchText": "x"}
        )

        assert response.status_code == 400
        assert response.json()["kind"] == "NotFound"
        assert "Folder not found" in response.json()["error"]

    def test_path_is_a_file(self, client: TestClient, docs_dir: Path) -> None:
        response = client.post(
            "/api/search", json={"folderPath": str(docs_dir / "a.pdf"), "searchText": "x"}
        )

        assert response.status_code == 400
        assert response.json()["kind"] == "NotFound"
        assert "not a directory" in response.json()["error"]

    def test_no_pdfs(self, client: TestClient, tmp_path: Path) -> None:
        empty = tmp_path / "empty"
        empty.mkdir()

        response = client.post("/api/search", json={"folderPath": str(empty), "searchText": "x"})

        assert response.status_code == 200
        data = response.json()
        assert data["totalPdfs"] == 0
        assert data["results"] == []
        assert "No PDF files found" in data["message"]

    def test_corrupt_file_is_skipped(self, client: TestClient, docs_dir: Path) -> None:
        (docs_dir / "broken.pdf").write_text("CORRUPT 2023")

        response = client.post("/api/search", json={"folderPath": str(docs_dir), "searchText": "2023"})

        data = response.json()
        assert response.status_code == 200
        assert data["totalPdfs"] == 3
        assert data["matchingPdfs"] == 1
        assert data["failedPdfs"] == 1

    def test_internal_error(self, client: TestClient, docs_dir: Path) -> None:
        """Unexpected faults become a 500 with no partial report."""
        with patch(
            "docgrep.search.searcher.scan_directory", side_effect=RuntimeError("disk on fire")
        ):
            response = client.post(
                "/api/search", json={"folderPath": str(docs_dir), "searchText": "2023"}
            )

        assert response.status_code == 500
        data = response.json()
        assert data["success"] is False
        assert data["kind"] == "InternalError"
        assert "results" not in data


class TestMalformedRequests:
    """Bodies that fail request parsing still get the structured error shape."""

    def test_search_without_body(self, client: TestClient) -> None:
        response = client.post("/api/search")

        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert data["kind"] == "InvalidInput"
        assert data["error"]

    def test_search_text_not_a_string(self, client: TestClient, docs_dir: Path) -> None:
        response = client.post("/api/search", json={"folderPath": str(docs_dir), "searchText": 2023})

        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert data["kind"] == "InvalidInput"
        assert "searchText" in data["error"]

    def test_session_search_invalid_json(self, client: TestClient) -> None:
        response = client.post(
            "/api/search-session",
            content=b"{not json",
            headers={"content-type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["success"] is False
        assert response.json()["kind"] == "InvalidInput"

    def test_session_id_not_a_string(self, client: TestClient) -> None:
        response = client.post(
            "/api/search-session", json={"sessionId": ["a"], "searchText": "contract"}
        )

        assert response.status_code == 400
        assert response.json()["kind"] == "InvalidInput"


class TestUploadEndpoint:
    """Tests for POST /api/upload."""

    def test_upload_batch(self, client: TestClient, web_app) -> None:
        response = client.post(
            "/api/upload", files=[_pdf("one.pdf", "alpha"), _pdf("two.pdf", "beta")]
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["filesCount"] == 2
        assert data["files"] == [{"name": "one.pdf", "size": 5}, {"name": "two.pdf", "size": 4}]
        assert data["sessionId"] in web_app.state.sessions

    def test_rejects_unsupported_type(self, client: TestClient, web_app) -> None:
        response = client.post(
            "/api/upload",
            files=[_pdf("one.pdf", "alpha"), ("files", ("notes.txt", b"text", "text/plain"))],
        )

        assert response.status_code == 400
        assert response.json()["kind"] == "InvalidInput"
        assert len(web_app.state.sessions) == 0
        assert not any(web_app.state.storage.root.glob("*"))

    def test_rejects_too_many_files(self, client: TestClient) -> None:
        files = [_pdf(f"f{i}.pdf", "x") for i in range(6)]

        response = client.post("/api/upload", files=files)

        assert response.status_code == 413
        assert response.json()["kind"] == "UploadTooLarge"

    def test_oversized_file_is_never_stored(self, client: TestClient, web_app) -> None:
        """The declared size is checked before anything is written."""
        storage = web_app.state.storage
        with patch.object(storage, "save", wraps=storage.save) as mock_save:
            response = client.post("/api/upload", files=[_pdf("big.pdf", "y" * 2048)])

        assert response.status_code == 413
        mock_save.assert_not_called()

    def test_rejects_oversized_file_and_keeps_nothing(self, client: TestClient, web_app) -> None:
        response = client.post(
            "/api/upload", files=[_pdf("small.pdf", "x"), _pdf("big.pdf", "y" * 2048)]
        )

        assert response.status_code == 413
        assert len(web_app.state.sessions) == 0
        assert not any(web_app.state.storage.root.glob("*"))

    def test_no_files(self, client: TestClient) -> None:
        response = client.post("/api/upload")

        assert response.status_code == 400
        assert response.json()["kind"] == "InvalidInput"


class TestSessionSearchEndpoint:
    """Tests for POST /api/search-session and DELETE /api/session/{id}."""

    def _upload(self, client: TestClient) -> str:
        response = client.post(
            "/api/upload",
            files=[
                _pdf("contract.pdf", "Signed contract 2023"),
                _pdf("invoice.pdf", "Invoice for the CONTRACT"),
                _pdf("menu.pdf", "Lunch menu"),
            ],
        )
        assert response.status_code == 200
        return response.json()["sessionId"]

    def test_upload_search_expire(self, client: TestClient, web_app, clock) -> None:
        session_id = self._upload(client)

        response = client.post(
            "/api/search-session", json={"sessionId": session_id, "searchText": "contract"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["totalPdfs"] == 3
        assert data["matchingPdfs"] == 2
        assert data["results"] == [
            {"fileName": "contract.pdf", "fileSize": len("Signed contract 2023")},
            {"fileName": "invoice.pdf", "fileSize": len("Invoice for the CONTRACT")},
        ]

        clock.advance(3600)
        web_app.state.sessions.sweep()

        response = client.post(
            "/api/search-session", json={"sessionId": session_id, "searchText": "contract"}
        )
        assert response.status_code == 400
        assert response.json()["kind"] == "SessionExpiredOrInvalid"
        assert not any(web_app.state.storage.root.glob("*"))

    def test_unknown_session(self, client: TestClient) -> None:
        response = client.post(
            "/api/search-session", json={"sessionId": "nope", "searchText": "contract"}
        )

        assert response.status_code == 400
        assert response.json()["kind"] == "SessionExpiredOrInvalid"

    def test_missing_fields(self, client: TestClient) -> None:
        response = client.post("/api/search-session", json={"searchText": "contract"})

        assert response.status_code == 400
        assert response.json()["kind"] == "InvalidInput"

    def test_empty_search_text(self, client: TestClient) -> None:
        session_id = self._upload(client)

        response = client.post("/api/search-session", json={"sessionId": session_id, "searchText": " "})

        assert response.status_code == 400
        assert response.json()["kind"] == "InvalidInput"

    def test_delete_session(self, client: TestClient, web_app) -> None:
        session_id = self._upload(client)

        response = client.delete(f"/api/session/{session_id}")

        assert response.status_code == 200
        assert response.json() == {"success": True, "sessionId": session_id}
        assert session_id not in web_app.state.sessions
        again = client.delete(f"/api/session/{session_id}")
        assert again.status_code == 400
        assert again.json()["kind"] == "SessionExpiredOrInvalid"


class TestLifespan:
    def test_shutdown_cleans_uploads(self, web_app) -> None:
        with TestClient(web_app) as client:
            client.post("/api/upload", files=[_pdf("a.pdf", "x")])
            assert any(web_app.state.storage.root.glob("*"))

        assert len(web_app.state.sessions) == 0
        assert not web_app.state.storage.root.exists()

    def test_shutdown_keeps_existing_upload_dir_contents(self, tmp_path: Path, extractor) -> None:
        """A configured upload dir the user already had keeps its files."""
        user_dir = tmp_path / "user"
        user_dir.mkdir()
        precious = user_dir / "precious.txt"
        precious.write_text("keep me")
        app = create_app(AppConfig(upload_dir=user_dir), extractor=extractor)

        with TestClient(app) as client:
            response = client.post("/api/upload", files=[_pdf("a.pdf", "x")])
            assert response.status_code == 200

        assert precious.read_text() == "keep me"
        assert user_dir.exists()
        assert not app.state.storage.root.exists()
