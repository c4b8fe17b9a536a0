from typing import Any

from .actions import (
    BuildFinishAction,
    DestroyAction,
    LoginAction,
    NotLoginAction,
    OnErrorAction,
    QueryProgressAction,
    QueryProgressResponseAction,
    StopUploadAction,
    TitleChangeAction,
    UploadStartAction,
    ZipPathChangeAction,
)
from .state import AppState, ShareStep


def share_reducer(old: AppState, action: Any) -> AppState:
    if isinstance(action, BuildFinishAction):
        return old.copy_with(build_output_dir=action.output_dir, build_guid=action.build_guid)

    if isinstance(action, ZipPathChangeAction):
        return old.copy_with(zip_path=action.zip_path, step=ShareStep.ZIP)

    if isinstance(action, UploadStartAction):
        return old.copy_with(step=ShareStep.UPLOAD)

    if isinstance(action, QueryProgressAction):
        key = action.key or old.key
        if not key:
            return old
        return old.copy_with(step=ShareStep.PROCESS, key=key)

    if isinstance(action, QueryProgressResponseAction):
        response = action.response
        if response.error:
            return old.copy_with(step=ShareStep.IDLE, error_msg=response.error)
        if response.progress == 100:
            return old.copy_with(step=ShareStep.IDLE, url=response.url or None)
        # Partial progress may already carry a preview url.
        return old.copy_with(url=response.url or None)

    if isinstance(action, TitleChangeAction):
        return old.copy_with(title=action.title)

    if isinstance(action, (DestroyAction, StopUploadAction)):
        return old.reset()

    if isinstance(action, OnErrorAction):
        return old.copy_with(error_msg=action.error_msg)

    if isinstance(action, NotLoginAction):
        return old.copy_with(step=ShareStep.LOGIN)

    if isinstance(action, LoginAction):
        return old.copy_with(step=ShareStep.IDLE)

    # UploadProgressAction and unknown actions leave the state untouched.
    return old
