from typing import Any, Dict, IO, Optional
import os
import threading

import httpx

from endpoints import WEBGL
from .client import PublishClient, RequestAborted
from .models import ProgressResponse, UploadResponse


def _json_or_raise(resp: httpx.Response) -> Dict[str, Any]:
    try:
        payload = resp.json()
    except ValueError as exc:
        raise RuntimeError(f"Non-JSON response: {resp.text[:200]}") from exc
    if not isinstance(payload, dict):
        raise RuntimeError(f"Unexpected response: {payload!r}")
    return payload


class _ProgressReader:
    """Binary file wrapper that counts the bytes httpx pulls from it."""

    def __init__(self, handle: IO[bytes], request: "UploadRequest") -> None:
        self._handle = handle
        self._request = request
        self.bytes_read = 0

    def fileno(self) -> int:
        return self._handle.fileno()

    def tell(self) -> int:
        return self._handle.tell()

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        position = self._handle.seek(offset, whence)
        self.bytes_read = position
        return position

    def read(self, size: int = -1) -> bytes:
        if self._request.aborted:
            raise RequestAborted()
        chunk = self._handle.read(size)
        self.bytes_read += len(chunk)
        return chunk


class UploadRequest:
    """A multipart upload that can be sampled for progress and aborted from another thread."""

    def __init__(
        self,
        client: PublishClient,
        url: str,
        headers: Dict[str, str],
        form: Dict[str, str],
        file_path: str,
    ) -> None:
        self._client = client
        self.url = url
        self.headers = headers
        self.form = form
        self.file_path = file_path
        self._aborted = threading.Event()
        self._done = threading.Event()
        self._reader: Optional[_ProgressReader] = None
        self._total_bytes = 0

    @property
    def aborted(self) -> bool:
        return self._aborted.is_set()

    @property
    def is_done(self) -> bool:
        return self._done.is_set()

    @property
    def upload_progress(self) -> float:
        if self._reader is None or self._total_bytes <= 0:
            return 0.0
        return min(max(self._reader.bytes_read / self._total_bytes, 0.0), 1.0)

    def abort(self) -> None:
        self._aborted.set()

    def send(self) -> UploadResponse:
        try:
            if self.aborted:
                raise RequestAborted()
            self._total_bytes = os.path.getsize(self.file_path)
            with open(self.file_path, "rb") as handle:
                self._reader = _ProgressReader(handle, self)
                files = {"file": (os.path.basename(self.file_path), self._reader, "application/zip")}
                resp = self._client.request(
                    WEBGL["upload"]["method"], self.url, headers=self.headers, data=self.form, files=files
                )
            if self.aborted:
                raise RequestAborted()
            return UploadResponse.from_payload(_json_or_raise(resp))
        except RequestAborted:
            raise
        except Exception as exc:
            if self.aborted:
                raise RequestAborted() from exc
            raise
        finally:
            self._done.set()


def upload_build(
    client: PublishClient,
    base_url: str,
    token: str,
    zip_path: str,
    title: str,
    build_guid: str = "",
    project_id: str = "",
) -> UploadRequest:
    form: Dict[str, str] = {"title": title}
    if build_guid:
        form["buildGUID"] = build_guid
    if project_id:
        form["projectId"] = project_id
    url = f"{base_url.rstrip('/')}{WEBGL['upload']['path']}"
    return UploadRequest(client, url, client.auth_headers(token), form, zip_path)


def get_progress(client: PublishClient, base_url: str, token: str, key: str) -> ProgressResponse:
    url = f"{base_url.rstrip('/')}{WEBGL['progress']['path']}"
    resp = client.request(
        WEBGL["progress"]["method"], url, headers=client.auth_headers(token), params={"key": key}
    )
    return ProgressResponse.from_payload(_json_or_raise(resp))
