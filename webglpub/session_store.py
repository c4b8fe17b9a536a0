import json
import os
import webbrowser
from pathlib import Path
from typing import Any, Dict, Optional

from endpoints import BASE_URLS, DEFAULT_ENVIRONMENT, base_url_for
from .utils import get_logger

DEFAULT_SESSION_PATH = ".webglpub/session.json"
DEFAULT_SNAPSHOT_PATH = ".webglpub/snapshots.json"


def load_tokens_from_json(path: str) -> Dict[str, Any]:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("Tokens file must be a JSON object")
    return data


def save_session(path: str, tokens: Dict[str, Any], environment: str = DEFAULT_ENVIRONMENT) -> None:
    if environment not in BASE_URLS:
        raise ValueError(f"Unknown environment: {environment}")
    session_path = Path(path)
    session_path.parent.mkdir(parents=True, exist_ok=True)
    payload = {"tokens": tokens, "environment": environment}
    session_path.write_text(json.dumps(payload, indent=2, ensure_ascii=True) + "\n", encoding="utf-8")
    os.chmod(session_path, 0o600)


def load_session(path: str) -> Dict[str, Any]:
    session_path = Path(path)
    data = json.loads(session_path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("Session file must be a JSON object")
    tokens = data.get("tokens", {})
    if not isinstance(tokens, dict):
        raise ValueError("Session tokens must be a JSON object")
    return {"tokens": tokens, "environment": data.get("environment") or DEFAULT_ENVIRONMENT}


class SessionProvider:
    """Access token and environment, read from the session file on demand.

    The file is re-read whenever its modification time changes, so a login
    completed by another process is picked up by the login-wait loop.
    """

    def __init__(self, path: str = DEFAULT_SESSION_PATH) -> None:
        self.path = path
        self.logger = get_logger("webglpub")
        self._mtime: Optional[float] = None
        self._session: Dict[str, Any] = {"tokens": {}, "environment": DEFAULT_ENVIRONMENT}

    def _refresh(self) -> Dict[str, Any]:
        try:
            mtime = os.path.getmtime(self.path)
        except OSError:
            self._mtime = None
            self._session = {"tokens": {}, "environment": DEFAULT_ENVIRONMENT}
            return self._session
        if mtime != self._mtime:
            try:
                self._session = load_session(self.path)
            except ValueError as exc:
                self.logger.warning("Session file %s unreadable: %s", self.path, exc)
                self._session = {"tokens": {}, "environment": DEFAULT_ENVIRONMENT}
            self._mtime = mtime
        return self._session

    def get_access_token(self) -> str:
        override = os.getenv("WEBGLPUB_TOKEN")
        if override:
            return override
        tokens = self._refresh().get("tokens", {})
        return str(tokens.get("access_token") or "")

    def current_environment(self) -> str:
        env = os.getenv("WEBGLPUB_ENV") or self._refresh().get("environment") or DEFAULT_ENVIRONMENT
        return env if env in BASE_URLS else DEFAULT_ENVIRONMENT

    def base_url(self) -> str:
        return base_url_for(self.current_environment())

    def begin_login(self) -> bool:
        url = self.base_url()
        self.logger.info("Opening %s; import the session afterwards with 'webglpub auth import'", url)
        return webbrowser.open_new(url)


def save_snapshot(workflow: str, state_json: str, path: str = DEFAULT_SNAPSHOT_PATH) -> None:
    snapshot_path = Path(path)
    snapshots: Dict[str, Any] = {}
    if snapshot_path.exists():
        try:
            snapshots = json.loads(snapshot_path.read_text(encoding="utf-8"))
        except ValueError:
            snapshots = {}
        if not isinstance(snapshots, dict):
            snapshots = {}
    snapshots[workflow] = state_json
    snapshot_path.parent.mkdir(parents=True, exist_ok=True)
    snapshot_path.write_text(json.dumps(snapshots, indent=2, ensure_ascii=True) + "\n", encoding="utf-8")


def load_snapshot(workflow: str, path: str = DEFAULT_SNAPSHOT_PATH) -> str:
    snapshot_path = Path(path)
    if not snapshot_path.exists():
        return "{}"
    try:
        snapshots = json.loads(snapshot_path.read_text(encoding="utf-8"))
    except ValueError:
        return "{}"
    if not isinstance(snapshots, dict):
        return "{}"
    value = snapshots.get(workflow)
    return value if isinstance(value, str) else "{}"
