"""Messages dispatched to the share store.

Each action is an immutable record carrying only the fields its transition
needs. ``ShareAction`` is the closed union the reducer and middlewares match on.
"""

from dataclasses import dataclass, field
from typing import Optional, Union

from ..models import ProgressResponse


@dataclass(frozen=True)
class ShareStartAction:
    """Start publishing the build found at ``build_path``."""

    title: str
    build_path: str


@dataclass(frozen=True)
class BuildFinishAction:
    """A build finished; remember where it went."""

    output_dir: str
    build_guid: str


@dataclass(frozen=True)
class ZipPathChangeAction:
    zip_path: str


@dataclass(frozen=True)
class UploadStartAction:
    build_guid: str


@dataclass(frozen=True)
class UploadProgressAction:
    """Percentage of the archive sent so far (0-100)."""

    progress: int


@dataclass(frozen=True)
class QueryProgressAction:
    """Poll server processing; ``None`` re-polls the key already in the state."""

    key: Optional[str] = None


@dataclass(frozen=True)
class QueryProgressResponseAction:
    response: ProgressResponse = field(default_factory=ProgressResponse)


@dataclass(frozen=True)
class TitleChangeAction:
    title: str


@dataclass(frozen=True)
class DestroyAction:
    """Tear the session down, keeping only the detected build."""


@dataclass(frozen=True)
class OnErrorAction:
    error_msg: str


@dataclass(frozen=True)
class StopUploadAction:
    """User cancelled the upload."""


@dataclass(frozen=True)
class NotLoginAction:
    """No access token is available."""


@dataclass(frozen=True)
class LoginAction:
    """An access token became available."""


ShareAction = Union[
    ShareStartAction,
    BuildFinishAction,
    ZipPathChangeAction,
    UploadStartAction,
    UploadProgressAction,
    QueryProgressAction,
    QueryProgressResponseAction,
    TitleChangeAction,
    DestroyAction,
    OnErrorAction,
    StopUploadAction,
    NotLoginAction,
    LoginAction,
]
