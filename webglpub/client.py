from typing import Any, Dict, Optional
import json
import os

try:
    import httpx
except ModuleNotFoundError as exc:  # pragma: no cover - user environment dependency
    raise ModuleNotFoundError(
        "Missing dependency 'httpx'. Install with: pip install httpx"
    ) from exc

from .utils import append_log_line, get_logger, redact_payload, redacted_headers, truncate_text

REQUEST_ABORTED = "Request aborted"


class RequestAborted(Exception):
    def __init__(self) -> None:
        super().__init__(REQUEST_ABORTED)


class PublishClient:
    def __init__(
        self,
        timeout: float = 60.0,
        transport: Optional[httpx.BaseTransport] = None,
        http_log_path: Optional[str] = None,
    ):
        self.timeout = timeout
        self.logger = get_logger('webglpub')
        self._client = httpx.Client(timeout=self.timeout, transport=transport)
        self.http_log_path = http_log_path or os.path.join(os.getcwd(), "webglpub_http.log")

    @staticmethod
    def auth_headers(token: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "X-Requested-With": "XMLHTTPREQUEST",
        }

    def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        headers = dict(kwargs.get('headers', {}) or {})
        kwargs['headers'] = headers
        redacted = redacted_headers(headers)
        payload = None
        if "data" in kwargs:
            payload = redact_payload(kwargs.get("data"))
        if "files" in kwargs:
            payload = {"form": payload, "files": list((kwargs.get("files") or {}).keys())}
        self.logger.debug('HTTP %s %s headers=%s', method, url, redacted)
        if payload is not None:
            append_log_line(self.http_log_path, f"{method} {url} headers={redacted} payload={payload}")
        else:
            append_log_line(self.http_log_path, f"{method} {url} headers={redacted}")
        resp = self._client.request(method, url, **kwargs)
        response_body: Any = None
        try:
            response_body = resp.json()
            response_body = redact_payload(response_body)
        except ValueError:
            response_body = truncate_text(resp.text or "")
        append_log_line(
            self.http_log_path,
            f"{method} {url} status={resp.status_code} response={json.dumps(response_body, ensure_ascii=True)}",
        )
        resp.raise_for_status()
        return resp

    def close(self) -> None:
        self._client.close()
