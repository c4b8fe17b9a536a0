"""HTTP client and publishing API tests"""

from __future__ import annotations

import httpx
import pytest

from webglpub.api import _json_or_raise, _ProgressReader, get_progress, upload_build
from webglpub.client import REQUEST_ABORTED, PublishClient, RequestAborted
from webglpub.models import ProgressResponse, UploadResponse

BASE = "https://connect-staging.unity.com"


class TestUploadBuild:
    def test_form_fields(self, client: PublishClient, zip_file: str) -> None:
        request = upload_build(client, BASE, "tok", zip_file, "Demo", build_guid="", project_id="p-1")

        assert request.url == f"{BASE}/api/webgl/upload"
        assert request.form == {"title": "Demo", "projectId": "p-1"}
        assert request.headers["Authorization"] == "Bearer tok"

    def test_send_reports_full_progress(self, client: PublishClient, service, zip_file: str) -> None:
        request = upload_build(client, BASE, "tok", zip_file, "Demo", build_guid="g")
        assert request.upload_progress == 0.0
        assert not request.is_done

        response = request.send()

        assert response == UploadResponse(key="job-1")
        assert request.is_done
        assert request.upload_progress == 1.0
        assert b"connectwebgl.zip" in service.upload_bodies[0]

    def test_abort_before_send(self, client: PublishClient, service, zip_file: str) -> None:
        request = upload_build(client, BASE, "tok", zip_file, "Demo")
        request.abort()

        with pytest.raises(RequestAborted) as info:
            request.send()

        assert str(info.value) == REQUEST_ABORTED
        assert request.is_done
        assert service.upload_requests == []

    def test_abort_while_streaming(self, client: PublishClient, service, tmp_path, monkeypatch) -> None:
        archive = tmp_path / "big.zip"
        archive.write_bytes(b"x" * (4 * 64 * 1024))
        request = upload_build(client, BASE, "tok", str(archive), "Demo")
        original_read = _ProgressReader.read

        def read_then_abort(reader, size=-1):
            chunk = original_read(reader, size)
            request.abort()
            return chunk

        monkeypatch.setattr(_ProgressReader, "read", read_then_abort)

        with pytest.raises(RequestAborted) as info:
            request.send()

        assert str(info.value) == REQUEST_ABORTED
        assert request.upload_progress == 0.25
        assert request.is_done
        assert service.upload_requests == []

    def test_http_error_propagates(self, client: PublishClient, service, zip_file: str) -> None:
        service.upload_status = 413
        request = upload_build(client, BASE, "tok", zip_file, "Demo")

        with pytest.raises(httpx.HTTPStatusError):
            request.send()
        assert request.is_done


class TestGetProgress:
    def test_parses_response(self, client: PublishClient, service) -> None:
        service.progress_payloads = [{"progress": 100, "url": "https://x/p", "projectId": "p-2", "error": None}]

        response = get_progress(client, BASE, "tok", "job-7")

        assert response == ProgressResponse(project_id="p-2", url="https://x/p", progress=100, error="")
        assert response.finished
        assert service.progress_keys == ["job-7"]

    def test_request_is_logged_redacted(self, client: PublishClient, tmp_path) -> None:
        get_progress(client, BASE, "secret-token", "job-7")

        log = (tmp_path / "http.log").read_text()
        assert "/api/webgl/progress" in log
        assert "secret-token" not in log
        assert "[REDACTED]" in log


class TestJsonOrRaise:
    def test_non_json(self) -> None:
        with pytest.raises(RuntimeError):
            _json_or_raise(httpx.Response(200, text="<html>"))

    def test_non_object(self) -> None:
        with pytest.raises(RuntimeError):
            _json_or_raise(httpx.Response(200, json=[1, 2]))

    def test_object(self) -> None:
        assert _json_or_raise(httpx.Response(200, json={"key": "k"})) == {"key": "k"}


class TestModels:
    def test_progress_defaults(self) -> None:
        response = ProgressResponse.from_payload({})
        assert response == ProgressResponse()
        assert not response.finished

    def test_error_is_finished(self) -> None:
        assert ProgressResponse.from_payload({"progress": 5, "error": "bad"}).finished
