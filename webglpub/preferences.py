import json
from pathlib import Path
from typing import Dict

DEFAULT_SETTINGS_PATH = ".webglpub/settings.json"


class ProjectPreferences:
    """String key/value settings scoped to one project directory."""

    def __init__(self, path: str = DEFAULT_SETTINGS_PATH) -> None:
        self.path = Path(path)

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except ValueError:
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items() if v is not None}

    def get(self, key: str) -> str:
        data = self._load()
        if key not in data:
            self.set(key, "")
            return ""
        return data[key]

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2, ensure_ascii=True) + "\n", encoding="utf-8")
