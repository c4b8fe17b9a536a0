from dataclasses import dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class UploadResponse:
    key: str = ""

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "UploadResponse":
        return cls(key=str(payload.get("key") or ""))


@dataclass(frozen=True)
class ProgressResponse:
    project_id: str = ""
    url: str = ""
    progress: int = 0
    error: str = ""

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ProgressResponse":
        return cls(
            project_id=str(payload.get("projectId") or ""),
            url=str(payload.get("url") or ""),
            progress=int(payload.get("progress") or 0),
            error=str(payload.get("error") or ""),
        )

    @property
    def finished(self) -> bool:
        return self.progress == 100 or bool(self.error)
