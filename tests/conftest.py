"""Shared fixtures: a synchronous runner, a fake session and a fake publishing service."""

from __future__ import annotations

import os
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest

from endpoints import base_url_for
from webglpub.client import PublishClient
from webglpub.packager import Packager
from webglpub.preferences import ProjectPreferences


class FakeTimer:
    def __init__(self, delay: float, fn: Callable[[], None]) -> None:
        self.delay = delay
        self.fn = fn


class FakeRunner:
    """Runs work inline (or on demand) and holds timers until fired."""

    def __init__(self, eager: bool = True) -> None:
        self.eager = eager
        self.tasks: List[Tuple[Callable[[], Any], Any, Any, Any]] = []
        self.timers: List[FakeTimer] = []

    def run(self, fn, on_result=None, on_error=None, on_finished=None) -> None:
        self.tasks.append((fn, on_result, on_error, on_finished))
        if self.eager:
            self.run_tasks()

    def run_tasks(self) -> None:
        while self.tasks:
            fn, on_result, on_error, on_finished = self.tasks.pop(0)
            try:
                result = fn()
            except Exception as exc:
                if on_error:
                    on_error(exc)
            else:
                if on_result:
                    on_result(result)
            finally:
                if on_finished:
                    on_finished()

    def schedule(self, delay: float, fn: Callable[[], None]) -> "FakeTimer":
        timer = FakeTimer(delay, fn)
        self.timers.append(timer)
        return timer

    def cancel(self, timer: "FakeTimer") -> None:
        if timer in self.timers:
            self.timers.remove(timer)

    def fire_timers(self) -> None:
        timers, self.timers = self.timers, []
        for timer in timers:
            timer.fn()


class FakeSession:
    def __init__(self, token: str = "token-1", environment: str = "production") -> None:
        self.token = token
        self.environment = environment
        self.login_requests = 0

    def get_access_token(self) -> str:
        return self.token

    def current_environment(self) -> str:
        return self.environment

    def base_url(self) -> str:
        return base_url_for(self.environment)

    def begin_login(self) -> bool:
        self.login_requests += 1
        return True


class FakeService:
    """MockTransport handler for the upload and progress endpoints."""

    def __init__(self) -> None:
        self.upload_requests: List[httpx.Request] = []
        self.upload_bodies: List[bytes] = []
        self.progress_keys: List[str] = []
        self.upload_status = 200
        self.upload_payload: Dict[str, Any] = {"key": "job-1"}
        self.progress_status = 200
        self.progress_payloads: List[Dict[str, Any]] = [{"progress": 100, "url": "https://play.unity.com/p/demo"}]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/webgl/upload":
            self.upload_bodies.append(request.read())
            self.upload_requests.append(request)
            if self.upload_status != 200:
                return httpx.Response(self.upload_status, json={"message": "upload rejected"})
            return httpx.Response(200, json=self.upload_payload)
        if request.url.path == "/api/webgl/progress":
            self.progress_keys.append(request.url.params.get("key", ""))
            if self.progress_status != 200:
                return httpx.Response(self.progress_status, text="unavailable")
            if len(self.progress_payloads) > 1:
                return httpx.Response(200, json=self.progress_payloads.pop(0))
            return httpx.Response(200, json=self.progress_payloads[0])
        return httpx.Response(404)


class SizedPackager(Packager):
    """Real packager whose reported archive size can be forced."""

    def __init__(self, project_dir: str, size: Optional[int] = None) -> None:
        super().__init__(project_dir)
        self.size = size

    def archive_size(self, path: str) -> int:
        if self.size is not None:
            return self.size
        return super().archive_size(path)


def make_build(root, name: str = "MyGame", version: str = "2020.2.1f1", guid: Optional[str] = None) -> str:
    build = root / name
    (build / "Build").mkdir(parents=True)
    (build / "ProjectVersion.txt").write_text(f"m_EditorVersion: {version}\nm_EditorVersionWithRevision: x\n")
    for suffix in ("data.gz", "framework.js.gz", "loader.js", "wasm.gz"):
        (build / "Build" / f"{name}.{suffix}").write_bytes(b"x" * 64)
    (build / "index.html").write_text("<html></html>")
    if guid is not None:
        (build / "GUID.txt").write_text(guid)
    return str(build)


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def service() -> FakeService:
    return FakeService()


@pytest.fixture
def client(service: FakeService, tmp_path) -> PublishClient:
    c = PublishClient(transport=httpx.MockTransport(service), http_log_path=str(tmp_path / "http.log"))
    yield c
    c.close()


@pytest.fixture
def prefs(tmp_path) -> ProjectPreferences:
    return ProjectPreferences(str(tmp_path / "settings.json"))


@pytest.fixture
def project_dir(tmp_path) -> str:
    path = tmp_path / "project"
    path.mkdir()
    return str(path)


@pytest.fixture
def zip_file(tmp_path) -> str:
    path = tmp_path / "connectwebgl.zip"
    path.write_bytes(os.urandom(4096))
    return str(path)
