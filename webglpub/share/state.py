import json
from dataclasses import asdict, dataclass, fields, replace
from enum import Enum
from typing import Any, Dict

from ..utils import filtered_title


class ShareStep(str, Enum):
    IDLE = "Idle"
    LOGIN = "Login"
    ZIP = "Zip"
    UPLOAD = "Upload"
    PROCESS = "Process"


# snapshot key -> AppState field
_SNAPSHOT_KEYS = {
    "step": "step",
    "title": "title",
    "buildOutputDir": "build_output_dir",
    "buildGUID": "build_guid",
    "zipPath": "zip_path",
    "key": "key",
    "url": "url",
    "errorMsg": "error_msg",
}


@dataclass(frozen=True)
class AppState:
    step: ShareStep = ShareStep.IDLE
    title: str = ""
    build_output_dir: str = ""
    build_guid: str = ""
    zip_path: str = ""
    key: str = ""
    url: str = ""
    error_msg: str = ""

    @property
    def display_title(self) -> str:
        return filtered_title(self.title)

    def copy_with(self, **changes: Any) -> "AppState":
        """New state with the given fields replaced; ``None`` keeps the current value."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    def reset(self) -> "AppState":
        return AppState(build_output_dir=self.build_output_dir, build_guid=self.build_guid)

    def resumable(self) -> "AppState":
        """State to restore in a new session.

        Packaging and uploads die with the session that started them, so those
        steps come back as a reset state (title kept). Processing survives on
        the server and is kept when there is a job key to poll.
        """
        if self.step in (ShareStep.ZIP, ShareStep.UPLOAD) or (self.step == ShareStep.PROCESS and not self.key):
            return replace(self.reset(), title=self.title)
        return self

    @property
    def needs_poll(self) -> bool:
        return self.step == ShareStep.PROCESS and bool(self.key)

    def to_json(self) -> str:
        data = asdict(self)
        data["step"] = self.step.value
        return json.dumps({key: data[attr] for key, attr in _SNAPSHOT_KEYS.items()})

    @classmethod
    def from_json(cls, text: str) -> "AppState":
        try:
            data = json.loads(text or "{}")
        except ValueError:
            return cls()
        if not isinstance(data, dict):
            return cls()
        values: Dict[str, Any] = {}
        known = {f.name for f in fields(cls)}
        for key, attr in _SNAPSHOT_KEYS.items():
            if key in data and attr in known and data[key] is not None:
                values[attr] = str(data[key])
        try:
            values["step"] = ShareStep(values.get("step", ShareStep.IDLE.value))
        except ValueError:
            values["step"] = ShareStep.IDLE
        return cls(**values)
